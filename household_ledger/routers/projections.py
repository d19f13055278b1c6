"""
Projections router — manual triggers for the projection generator.

Endpoints:
  POST /projections/generate        — Every active template, N months ahead
  POST /projections/generate-month  — Every template, one month

Both report {generated, skipped, errors}; a non-empty errors list is a
partial success, not a failure.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from household_ledger.database import get_db
from household_ledger.dependencies import get_publisher, get_workspace
from household_ledger.events import EventPublisher
from household_ledger.models.workspace import Workspace
from household_ledger.schemas.recurring_template import (
    GenerateMonthRequest,
    GenerateProjectionsRequest,
    GenerationResultResponse,
)
from household_ledger.services import projection_service

router = APIRouter()


@router.post(
    "/generate",
    response_model=GenerationResultResponse,
    summary="Generate projections for the configured horizon",
)
async def generate(
    request: GenerateProjectionsRequest | None = None,
    workspace: Workspace = Depends(get_workspace),
    publisher: EventPublisher = Depends(get_publisher),
    db: AsyncSession = Depends(get_db),
):
    return await projection_service.generate_projections(
        db,
        workspace.id,
        months_ahead=request.months_ahead if request else None,
        publisher=publisher,
    )


@router.post(
    "/generate-month",
    response_model=GenerationResultResponse,
    summary="Generate projections for a single month",
)
async def generate_month(
    request: GenerateMonthRequest,
    workspace: Workspace = Depends(get_workspace),
    publisher: EventPublisher = Depends(get_publisher),
    db: AsyncSession = Depends(get_db),
):
    return await projection_service.generate_projections_for_month(
        db, workspace.id, request.year, request.month, publisher=publisher
    )
