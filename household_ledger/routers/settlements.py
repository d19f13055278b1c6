"""
Settlements router — paying off billed credit-card charges.

Endpoints:
  POST /settlements — Settle a set of billed charges from a funding account
  GET  /cc/overdue  — Billed charges left unpaid for too long, by month
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from household_ledger.database import get_db
from household_ledger.dependencies import get_publisher, get_workspace
from household_ledger.events import EventPublisher
from household_ledger.models.workspace import Workspace
from household_ledger.schemas.settlement import (
    OverdueGroupResponse,
    SettlementRequest,
    SettlementResponse,
)
from household_ledger.schemas.transaction import TransactionResponse
from household_ledger.services import overdue_service, settlement_service

router = APIRouter()


@router.post(
    "/settlements",
    response_model=SettlementResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Settle billed credit-card charges",
)
async def settle(
    request: SettlementRequest,
    workspace: Workspace = Depends(get_workspace),
    publisher: EventPublisher = Depends(get_publisher),
    db: AsyncSession = Depends(get_db),
):
    """
    Pay off billed, deferred charges on one card with a transfer from a
    non-card account.

    All-or-nothing: if any charge is missing, not billed, or not on the
    target card, nothing is settled and no transfer is created.
    """
    result = await settlement_service.atomic_settle(
        db=db,
        workspace_id=workspace.id,
        transaction_ids=request.transaction_ids,
        source_account_id=request.source_account_id,
        target_account_id=request.target_account_id,
        settlement_date=request.settlement_date,
        publisher=publisher,
    )
    return SettlementResponse(
        transfer_id=result.transfer_id,
        settled_count=result.settled_count,
        total_amount_cents=result.total_amount_cents,
        settled_at=result.settled_at,
    )


@router.get(
    "/cc/overdue",
    response_model=list[OverdueGroupResponse],
    summary="Overdue credit-card charges grouped by billing month",
)
async def get_overdue(
    after_months: int | None = Query(None, ge=0, description="Defaults to OVERDUE_AFTER_MONTHS"),
    workspace: Workspace = Depends(get_workspace),
    db: AsyncSession = Depends(get_db),
):
    groups = await overdue_service.get_overdue(db, workspace.id, after_months=after_months)
    return [
        OverdueGroupResponse(
            month=group.month,
            month_label=group.month_label,
            months_overdue=group.months_overdue,
            total_amount_cents=group.total_amount_cents,
            item_count=group.item_count,
            transactions=[TransactionResponse.model_validate(t) for t in group.transactions],
        )
        for group in groups
    ]
