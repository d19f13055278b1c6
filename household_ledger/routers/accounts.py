"""
Accounts router.

Endpoints (scoped by the X-Workspace-ID header):
  POST /accounts       — Create an account (bank, cash, ewallet, credit_card)
  GET  /accounts       — List the workspace's accounts
  GET  /accounts/{id}  — Get one account
"""

import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from household_ledger.database import get_db
from household_ledger.dependencies import get_workspace
from household_ledger.models.workspace import Workspace
from household_ledger.schemas.account import AccountCreateRequest, AccountResponse
from household_ledger.services import account_service

router = APIRouter()


@router.post(
    "",
    response_model=AccountResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an account",
)
async def create_account(
    request: AccountCreateRequest,
    workspace: Workspace = Depends(get_workspace),
    db: AsyncSession = Depends(get_db),
):
    """
    Create an account in the workspace.

    The template decides the account type: credit_card accounts are
    liabilities and their transactions follow the billing lifecycle;
    everything else is an asset.
    """
    return await account_service.create_account(
        db,
        workspace_id=workspace.id,
        name=request.name,
        template=request.template,
        initial_balance_cents=request.initial_balance_cents,
    )


@router.get(
    "",
    response_model=list[AccountResponse],
    summary="List accounts",
)
async def list_accounts(
    workspace: Workspace = Depends(get_workspace),
    db: AsyncSession = Depends(get_db),
):
    return await account_service.list_accounts(db, workspace.id)


@router.get(
    "/{account_id}",
    response_model=AccountResponse,
    summary="Get an account",
)
async def get_account(
    account_id: uuid.UUID,
    workspace: Workspace = Depends(get_workspace),
    db: AsyncSession = Depends(get_db),
):
    return await account_service.get_account(db, workspace.id, account_id)
