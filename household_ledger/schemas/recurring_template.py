"""
Pydantic schemas for recurring templates and projection generation.
"""

import uuid
from datetime import date, datetime

from pydantic import BaseModel, Field, model_validator

from household_ledger.models.transaction import SettlementIntent, TransactionType


class TemplateCreateRequest(BaseModel):
    """Request body for POST /recurring-templates."""
    description: str = Field(min_length=1, max_length=255)
    amount_cents: int = Field(gt=0, description="Amount in cents (must be positive)")
    type: TransactionType = TransactionType.EXPENSE
    account_id: uuid.UUID
    category_id: uuid.UUID | None = None
    frequency: str = Field("monthly", description="Only 'monthly' is supported")
    start_date: date = Field(description="First occurrence; its day of month is the due day")
    end_date: date | None = Field(None, description="Last month to generate; omit for open-ended")
    notes: str | None = Field(None, max_length=1000)
    settlement_intent: SettlementIntent | None = Field(
        None, description="Credit-card accounts only; defaults to deferred"
    )

    @model_validator(mode="after")
    def end_not_before_start(self):
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date cannot be before start_date")
        return self


class TemplateUpdateRequest(BaseModel):
    """Request body for PUT /recurring-templates/{id}. Omitted fields are unchanged."""
    description: str | None = Field(None, min_length=1, max_length=255)
    amount_cents: int | None = Field(None, gt=0)
    type: TransactionType | None = None
    account_id: uuid.UUID | None = None
    category_id: uuid.UUID | None = None
    frequency: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    notes: str | None = Field(None, max_length=1000)
    settlement_intent: SettlementIntent | None = None


class TemplateResponse(BaseModel):
    """Public representation of a recurring template."""
    id: uuid.UUID
    workspace_id: uuid.UUID
    description: str
    amount_cents: int
    type: TransactionType
    account_id: uuid.UUID
    category_id: uuid.UUID | None
    frequency: str
    start_date: date
    end_date: date | None
    due_day: int
    notes: str | None
    settlement_intent: SettlementIntent | None
    created_at: datetime

    model_config = {"from_attributes": True}


class GenerationResultResponse(BaseModel):
    """Outcome of a projection run. Partial success is normal."""
    generated: int
    skipped: int
    errors: list[str]

    model_config = {"from_attributes": True}


class TemplateWithGenerationResponse(BaseModel):
    template: TemplateResponse
    generation: GenerationResultResponse


class GenerateProjectionsRequest(BaseModel):
    """Request body for POST /projections/generate."""
    months_ahead: int | None = Field(None, ge=1, le=60)


class GenerateMonthRequest(BaseModel):
    """Request body for POST /projections/generate-month."""
    year: int = Field(ge=1970, le=9999)
    month: int = Field(ge=1, le=12)
