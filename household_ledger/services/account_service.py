"""
Account service — workspaces and the accounts inside them.

Scoping:
  Every lookup takes the workspace_id of the caller. An account that
  exists in another workspace raises AccountNotFoundError, the same as an
  account that does not exist.
"""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from household_ledger.exceptions import AccountNotFoundError, WorkspaceNotFoundError
from household_ledger.models.account import Account, AccountTemplate
from household_ledger.models.workspace import Workspace


async def create_workspace(db: AsyncSession, name: str) -> Workspace:
    workspace = Workspace(name=name)
    db.add(workspace)
    await db.flush()
    return workspace


async def get_workspace(db: AsyncSession, workspace_id: uuid.UUID) -> Workspace:
    workspace = await db.get(Workspace, workspace_id)
    if workspace is None:
        raise WorkspaceNotFoundError(workspace_id)
    return workspace


async def list_workspace_ids(db: AsyncSession) -> list[uuid.UUID]:
    result = await db.execute(select(Workspace.id).order_by(Workspace.created_at))
    return list(result.scalars().all())


async def create_account(
    db: AsyncSession,
    workspace_id: uuid.UUID,
    name: str,
    template: AccountTemplate = AccountTemplate.BANK,
    initial_balance_cents: int = 0,
) -> Account:
    account = Account(
        workspace_id=workspace_id,
        name=name,
        template=template,
        initial_balance_cents=initial_balance_cents,
    )
    db.add(account)
    await db.flush()
    return account


async def get_account(
    db: AsyncSession,
    workspace_id: uuid.UUID,
    account_id: uuid.UUID,
    lock: bool = False,
) -> Account:
    """
    Get a live account in the workspace.

    Args:
        lock: Take a row lock (SELECT ... FOR UPDATE). No-op on SQLite.

    Raises:
        AccountNotFoundError: If the account doesn't exist, was deleted,
                              or belongs to another workspace.
    """
    query = select(Account).where(
        Account.id == account_id,
        Account.workspace_id == workspace_id,
        Account.deleted_at.is_(None),
    )
    if lock:
        query = query.with_for_update()

    result = await db.execute(query)
    account = result.scalar_one_or_none()
    if account is None:
        raise AccountNotFoundError(account_id)
    return account


async def list_accounts(db: AsyncSession, workspace_id: uuid.UUID) -> list[Account]:
    result = await db.execute(
        select(Account)
        .where(Account.workspace_id == workspace_id, Account.deleted_at.is_(None))
        .order_by(Account.created_at)
    )
    return list(result.scalars().all())
