"""
Pydantic schemas for credit-card settlement and overdue reporting.
"""

import uuid
from datetime import date, datetime

from pydantic import BaseModel, Field

from household_ledger.schemas.transaction import TransactionResponse


class SettlementRequest(BaseModel):
    """Request body for POST /settlements."""
    transaction_ids: list[uuid.UUID] = Field(
        default_factory=list,
        description="Billed, deferred charges on the target card",
    )
    source_account_id: uuid.UUID = Field(description="Non-card account that pays")
    target_account_id: uuid.UUID = Field(description="Credit-card account being paid off")
    settlement_date: date | None = Field(
        None, description="Date of the payment transfer; defaults to today"
    )


class SettlementResponse(BaseModel):
    transfer_id: uuid.UUID
    settled_count: int
    total_amount_cents: int
    settled_at: datetime


class OverdueGroupResponse(BaseModel):
    """Billed, unpaid charges whose statement month is long past."""
    month: str = Field(description="YYYY-MM of billed_at")
    month_label: str
    months_overdue: int
    total_amount_cents: int
    item_count: int
    transactions: list[TransactionResponse]
