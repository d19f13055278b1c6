"""
Recurring templates router.

Endpoints (scoped by the X-Workspace-ID header):
  POST   /recurring-templates                  — Create and generate ahead
  GET    /recurring-templates                  — List (optionally active only)
  GET    /recurring-templates/{id}             — Get one
  PUT    /recurring-templates/{id}             — Update and regenerate
  DELETE /recurring-templates/{id}             — Delete, orphaning history
  POST   /recurring-templates/{id}/regenerate  — Regenerate untouched projections
"""

import uuid

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from household_ledger.database import get_db
from household_ledger.dependencies import get_publisher, get_workspace
from household_ledger.events import EventPublisher
from household_ledger.models.workspace import Workspace
from household_ledger.schemas.recurring_template import (
    GenerateProjectionsRequest,
    GenerationResultResponse,
    TemplateCreateRequest,
    TemplateResponse,
    TemplateUpdateRequest,
    TemplateWithGenerationResponse,
)
from household_ledger.services import projection_service, recurring_template_service

router = APIRouter()


def _with_generation(template, result) -> TemplateWithGenerationResponse:
    return TemplateWithGenerationResponse(
        template=TemplateResponse.model_validate(template),
        generation=GenerationResultResponse.model_validate(result),
    )


@router.post(
    "",
    response_model=TemplateWithGenerationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a recurring template",
)
async def create_template(
    request: TemplateCreateRequest,
    workspace: Workspace = Depends(get_workspace),
    publisher: EventPublisher = Depends(get_publisher),
    db: AsyncSession = Depends(get_db),
):
    """
    Create a monthly rule. The due day is the day of month of
    **start_date**; short months clamp it to their last day.
    """
    template, result = await recurring_template_service.create_template(
        db=db,
        workspace_id=workspace.id,
        description=request.description,
        amount_cents=request.amount_cents,
        account_id=request.account_id,
        start_date=request.start_date,
        end_date=request.end_date,
        txn_type=request.type,
        category_id=request.category_id,
        frequency=request.frequency,
        notes=request.notes,
        settlement_intent=request.settlement_intent,
        publisher=publisher,
    )
    return _with_generation(template, result)


@router.get(
    "",
    response_model=list[TemplateResponse],
    summary="List recurring templates",
)
async def list_templates(
    active: bool = Query(False, description="Only templates that have not ended"),
    workspace: Workspace = Depends(get_workspace),
    db: AsyncSession = Depends(get_db),
):
    return await recurring_template_service.list_templates(db, workspace.id, active_only=active)


@router.get(
    "/{template_id}",
    response_model=TemplateResponse,
    summary="Get a recurring template",
)
async def get_template(
    template_id: uuid.UUID,
    workspace: Workspace = Depends(get_workspace),
    db: AsyncSession = Depends(get_db),
):
    return await recurring_template_service.get_template(db, workspace.id, template_id)


@router.put(
    "/{template_id}",
    response_model=TemplateWithGenerationResponse,
    summary="Update a recurring template",
)
async def update_template(
    template_id: uuid.UUID,
    request: TemplateUpdateRequest,
    workspace: Workspace = Depends(get_workspace),
    publisher: EventPublisher = Depends(get_publisher),
    db: AsyncSession = Depends(get_db),
):
    """Untouched future projections are rebuilt; edited or paid ones are kept."""
    template, result = await recurring_template_service.update_template(
        db,
        workspace.id,
        template_id,
        request.model_dump(exclude_unset=True),
        publisher=publisher,
    )
    return _with_generation(template, result)


@router.delete(
    "/{template_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a recurring template",
)
async def delete_template(
    template_id: uuid.UUID,
    workspace: Workspace = Depends(get_workspace),
    publisher: EventPublisher = Depends(get_publisher),
    db: AsyncSession = Depends(get_db),
):
    await recurring_template_service.delete_template(
        db, workspace.id, template_id, publisher=publisher
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{template_id}/regenerate",
    response_model=GenerationResultResponse,
    summary="Regenerate a template's projections",
)
async def regenerate(
    template_id: uuid.UUID,
    request: GenerateProjectionsRequest | None = None,
    workspace: Workspace = Depends(get_workspace),
    publisher: EventPublisher = Depends(get_publisher),
    db: AsyncSession = Depends(get_db),
):
    return await projection_service.regenerate_projections_for_template(
        db,
        workspace.id,
        template_id,
        months_ahead=request.months_ahead if request else None,
        publisher=publisher,
    )
