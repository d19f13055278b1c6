"""
FastAPI dependencies shared by the routers.

  get_workspace  -> resolves the X-Workspace-ID header to a Workspace
  get_publisher  -> the EventPublisher services notify after writes

Authentication is handled in front of this service; the workspace header
is the only scoping input. An unknown workspace is a 404, like any other
missing resource.
"""

import uuid

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from household_ledger.database import get_db
from household_ledger.events import EventPublisher, default_publisher
from household_ledger.models.workspace import Workspace
from household_ledger.services import account_service


async def get_workspace(
    x_workspace_id: uuid.UUID = Header(..., description="Workspace the request acts on"),
    db: AsyncSession = Depends(get_db),
) -> Workspace:
    """
    Load the workspace named by the X-Workspace-ID header.

    Raises:
        WorkspaceNotFoundError: If no such workspace exists.
    """
    return await account_service.get_workspace(db, x_workspace_id)


def get_publisher() -> EventPublisher:
    """Overridden in tests to capture events."""
    return default_publisher
