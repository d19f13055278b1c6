"""
Workspaces router.

Endpoints:
  POST /workspaces       — Create a workspace (a household)
  GET  /workspaces/{id}  — Get a workspace
"""

import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from household_ledger.database import get_db
from household_ledger.schemas.account import WorkspaceCreateRequest, WorkspaceResponse
from household_ledger.services import account_service

router = APIRouter()


@router.post(
    "",
    response_model=WorkspaceResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a workspace",
)
async def create_workspace(
    request: WorkspaceCreateRequest,
    db: AsyncSession = Depends(get_db),
):
    return await account_service.create_workspace(db, request.name)


@router.get(
    "/{workspace_id}",
    response_model=WorkspaceResponse,
    summary="Get a workspace",
)
async def get_workspace(
    workspace_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    return await account_service.get_workspace(db, workspace_id)
