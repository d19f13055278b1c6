"""
Transfers router — moving money between two accounts of a workspace.

Endpoints:
  POST /transfers — Create a transfer pair

A transfer creates two linked transactions sharing a transfer_pair_id:
  1. An EXPENSE on the source account
  2. An INCOME on the destination account

A transfer onto a credit card is recorded as a card payment.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from household_ledger.database import get_db
from household_ledger.dependencies import get_publisher, get_workspace
from household_ledger.events import EventPublisher
from household_ledger.models.workspace import Workspace
from household_ledger.schemas.transaction import (
    TransactionResponse,
    TransferRequest,
    TransferResponse,
)
from household_ledger.services import transaction_service

router = APIRouter()


@router.post(
    "",
    response_model=TransferResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Transfer money between accounts",
)
async def create_transfer(
    request: TransferRequest,
    workspace: Workspace = Depends(get_workspace),
    publisher: EventPublisher = Depends(get_publisher),
    db: AsyncSession = Depends(get_db),
):
    """
    Transfer money from one account to another.

    Both halves are written together or not at all.

    - **amount_cents**: Positive integer in cents (e.g., 50.00 = 5000)
    - Cannot transfer to the same account
    """
    from_txn, to_txn = await transaction_service.create_transfer_pair(
        db=db,
        workspace_id=workspace.id,
        from_account_id=request.from_account_id,
        to_account_id=request.to_account_id,
        amount_cents=request.amount_cents,
        transaction_date=request.transaction_date,
        notes=request.notes,
        publisher=publisher,
    )

    return TransferResponse(
        transfer_pair_id=from_txn.transfer_pair_id,
        from_transaction=TransactionResponse.model_validate(from_txn),
        to_transaction=TransactionResponse.model_validate(to_txn),
        amount_cents=request.amount_cents,
    )
