"""
Transactions router.

Endpoints (scoped by the X-Workspace-ID header):
  POST   /transactions                     — Record a manual transaction
  GET    /transactions                     — List, with filters
  GET    /transactions/{id}                — Get one transaction
  PATCH  /transactions/{id}                — Partial update
  DELETE /transactions/{id}                — Soft delete (transfers: both halves)
  POST   /transactions/{id}/toggle-billed  — Credit card: pending <-> billed
  POST   /transactions/batch-billed        — Credit card: mark many as billed
"""

import uuid
from datetime import date

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from household_ledger.database import get_db
from household_ledger.dependencies import get_publisher, get_workspace
from household_ledger.events import EventPublisher
from household_ledger.models.transaction import TransactionType
from household_ledger.models.workspace import Workspace
from household_ledger.schemas.transaction import (
    BatchBilledRequest,
    TransactionCreateRequest,
    TransactionResponse,
    TransactionUpdateRequest,
)
from household_ledger.services import transaction_service
from household_ledger.services.cc_state import CCState

router = APIRouter()


@router.post(
    "",
    response_model=TransactionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a transaction",
)
async def create_transaction(
    request: TransactionCreateRequest,
    workspace: Workspace = Depends(get_workspace),
    publisher: EventPublisher = Depends(get_publisher),
    db: AsyncSession = Depends(get_db),
):
    """
    Record a manual income or expense.

    On a credit-card account the charge starts **pending** (deferred intent)
    or **settled** (immediate intent). All amounts are in **integer cents**.
    """
    return await transaction_service.create_transaction(
        db=db,
        workspace_id=workspace.id,
        account_id=request.account_id,
        name=request.name,
        amount_cents=request.amount_cents,
        txn_type=request.type,
        transaction_date=request.transaction_date,
        is_paid=request.is_paid,
        notes=request.notes,
        category_id=request.category_id,
        settlement_intent=request.settlement_intent,
        publisher=publisher,
    )


@router.get(
    "",
    response_model=list[TransactionResponse],
    summary="List transactions",
)
async def list_transactions(
    account_id: uuid.UUID | None = Query(None),
    start_date: date | None = Query(None),
    end_date: date | None = Query(None, description="Future dates generate projections on the fly"),
    type: TransactionType | None = Query(None, description="Filter by type: income, expense"),
    cc_state: CCState | None = Query(None, description="Filter by pending, billed, settled"),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    workspace: Workspace = Depends(get_workspace),
    db: AsyncSession = Depends(get_db),
):
    """List transactions, newest first."""
    return await transaction_service.list_transactions(
        db=db,
        workspace_id=workspace.id,
        account_id=account_id,
        start_date=start_date,
        end_date=end_date,
        type_filter=type,
        cc_state=cc_state,
        limit=limit,
        offset=offset,
    )


@router.post(
    "/batch-billed",
    response_model=list[TransactionResponse],
    summary="Mark pending credit-card charges as billed",
)
async def batch_toggle_to_billed(
    request: BatchBilledRequest,
    workspace: Workspace = Depends(get_workspace),
    publisher: EventPublisher = Depends(get_publisher),
    db: AsyncSession = Depends(get_db),
):
    """Promote every pending charge in the list; returns the ones that changed."""
    return await transaction_service.batch_toggle_to_billed(
        db, workspace.id, request.transaction_ids, publisher=publisher
    )


@router.get(
    "/{transaction_id}",
    response_model=TransactionResponse,
    summary="Get a single transaction",
)
async def get_transaction(
    transaction_id: uuid.UUID,
    workspace: Workspace = Depends(get_workspace),
    db: AsyncSession = Depends(get_db),
):
    return await transaction_service.get_transaction(db, workspace.id, transaction_id)


@router.patch(
    "/{transaction_id}",
    response_model=TransactionResponse,
    summary="Update a transaction",
)
async def update_transaction(
    transaction_id: uuid.UUID,
    request: TransactionUpdateRequest,
    workspace: Workspace = Depends(get_workspace),
    publisher: EventPublisher = Depends(get_publisher),
    db: AsyncSession = Depends(get_db),
):
    """
    Change selected fields. Editing a generated row protects it from
    regeneration; amount and date of a transfer half are fixed.
    """
    return await transaction_service.update_transaction(
        db,
        workspace.id,
        transaction_id,
        request.model_dump(exclude_unset=True),
        publisher=publisher,
    )


@router.delete(
    "/{transaction_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a transaction",
)
async def delete_transaction(
    transaction_id: uuid.UUID,
    workspace: Workspace = Depends(get_workspace),
    publisher: EventPublisher = Depends(get_publisher),
    db: AsyncSession = Depends(get_db),
):
    await transaction_service.delete_transaction(
        db, workspace.id, transaction_id, publisher=publisher
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{transaction_id}/toggle-billed",
    response_model=TransactionResponse,
    summary="Toggle a credit-card charge between pending and billed",
)
async def toggle_billed(
    transaction_id: uuid.UUID,
    workspace: Workspace = Depends(get_workspace),
    publisher: EventPublisher = Depends(get_publisher),
    db: AsyncSession = Depends(get_db),
):
    """Settled charges cannot be toggled (409)."""
    return await transaction_service.toggle_billed(
        db, workspace.id, transaction_id, publisher=publisher
    )
