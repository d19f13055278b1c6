"""
Pydantic schemas for Workspace and Account endpoints.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from household_ledger.models.account import AccountTemplate, AccountType


class WorkspaceCreateRequest(BaseModel):
    """Request body for POST /workspaces."""
    name: str = Field(min_length=1, max_length=255)


class WorkspaceResponse(BaseModel):
    id: uuid.UUID
    name: str
    created_at: datetime

    model_config = {"from_attributes": True}


class AccountCreateRequest(BaseModel):
    """Request body for POST /accounts."""
    name: str = Field(min_length=1, max_length=255)
    template: AccountTemplate = Field(
        default=AccountTemplate.BANK,
        description="bank, cash, ewallet or credit_card",
    )
    initial_balance_cents: int = 0


class AccountResponse(BaseModel):
    """Public representation of an account."""
    id: uuid.UUID
    workspace_id: uuid.UUID
    name: str
    template: AccountTemplate
    account_type: AccountType
    initial_balance_cents: int
    created_at: datetime

    model_config = {"from_attributes": True}
