"""
Pydantic schemas for Transaction and Transfer endpoints.

All monetary amounts are in integer cents (e.g., 250.00 = 25000).
"""

import uuid
from datetime import date, datetime

from pydantic import AliasChoices, BaseModel, Field, model_validator

from household_ledger.models.transaction import (
    SettlementIntent,
    TransactionSource,
    TransactionType,
)
from household_ledger.services.cc_state import CCState


class TransactionCreateRequest(BaseModel):
    """Request body for POST /transactions."""
    account_id: uuid.UUID
    name: str = Field(min_length=1, max_length=255)
    amount_cents: int = Field(gt=0, description="Amount in cents (must be positive)")
    type: TransactionType
    transaction_date: date | None = None
    is_paid: bool | None = Field(
        None, description="Ignored on credit-card accounts, which follow the CC lifecycle"
    )
    notes: str | None = Field(None, max_length=1000)
    category_id: uuid.UUID | None = None
    settlement_intent: SettlementIntent | None = Field(
        None, description="Credit-card accounts only; defaults to deferred"
    )


class TransactionUpdateRequest(BaseModel):
    """Request body for PATCH /transactions/{id}. Omitted fields are unchanged."""
    name: str | None = Field(None, min_length=1, max_length=255)
    amount_cents: int | None = Field(None, gt=0)
    transaction_date: date | None = None
    notes: str | None = Field(None, max_length=1000)
    category_id: uuid.UUID | None = None
    settlement_intent: SettlementIntent | None = None


class TransactionResponse(BaseModel):
    """Public representation of a transaction."""
    id: uuid.UUID
    workspace_id: uuid.UUID
    account_id: uuid.UUID
    name: str
    amount_cents: int
    type: TransactionType
    transaction_date: date
    is_paid: bool
    notes: str | None
    category_id: uuid.UUID | None
    settlement_intent: SettlementIntent | None
    cc_state: CCState | None
    billed_at: datetime | None
    settled_at: datetime | None
    is_cc_payment: bool
    transfer_pair_id: uuid.UUID | None
    source: TransactionSource
    template_id: uuid.UUID | None
    # Derived from the date, see Transaction.is_future_projection
    is_projected: bool = Field(validation_alias=AliasChoices("projected", "is_projected"))
    is_modified: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class BatchBilledRequest(BaseModel):
    """Request body for POST /transactions/batch-billed."""
    transaction_ids: list[uuid.UUID] = Field(min_length=1)


class TransferRequest(BaseModel):
    """Request body for POST /transfers."""
    from_account_id: uuid.UUID
    to_account_id: uuid.UUID
    amount_cents: int = Field(gt=0, description="Amount in cents (must be positive)")
    transaction_date: date | None = None
    notes: str | None = Field(None, max_length=1000)

    @model_validator(mode="after")
    def accounts_must_differ(self):
        """Cannot transfer money to the same account."""
        if self.from_account_id == self.to_account_id:
            raise ValueError("Cannot transfer to the same account")
        return self


class TransferResponse(BaseModel):
    """Response body for a successful transfer."""
    transfer_pair_id: uuid.UUID
    from_transaction: TransactionResponse
    to_transaction: TransactionResponse
    amount_cents: int
