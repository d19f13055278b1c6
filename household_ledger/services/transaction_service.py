"""
Transaction service — the ledger's write and read paths.

This module handles:
  - Creating, reading, listing, updating and deleting transactions
  - The credit-card billing toggle (pending <-> billed)
  - Building transfer pairs (used by manual transfers and by settlement)

Credit-card rules:
  A transaction on a credit-card account always has a settlement intent
  (deferred unless the caller says otherwise). "immediate" charges are
  created already settled. Transactions on any other account never carry
  intent, billed_at or settled_at. The lifecycle state itself is derived
  by services.cc_state and never written.

Transfer pairs:
  A transfer is two rows sharing a transfer_pair_id: an expense on the
  source account and an income on the destination. Both are written inside
  one SAVEPOINT, so either both exist or neither does. Deleting either half
  soft-deletes the pair with a single UPDATE keyed by transfer_pair_id.
  Amount and date of a pair half cannot be edited.

Projected rows:
  Editing a row generated from a recurring template marks it is_modified,
  which shields it from regeneration. Deleting one records a
  ProjectionExclusion for its month so it is not generated again.

Locking:
  with_for_update() is a no-op on SQLite but locks rows on PostgreSQL.
  Accounts of a transfer are locked in sorted UUID order.
"""

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from household_ledger import events
from household_ledger.dates import month_start
from household_ledger.events import EventPublisher
from household_ledger.exceptions import (
    AccountNotFoundError,
    InvalidAmountError,
    InvalidCCStateTransitionError,
    NotCCTransactionError,
    SameAccountTransferError,
    TransactionNotFoundError,
    TransferPairImmutableError,
)
from household_ledger.models.account import Account
from household_ledger.models.recurring_template import ProjectionExclusion
from household_ledger.models.transaction import (
    SettlementIntent,
    Transaction,
    TransactionSource,
    TransactionType,
)
from household_ledger.schemas.transaction import TransactionResponse
from household_ledger.services import account_service, projection_service
from household_ledger.services.cc_state import CCState, state_clause

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "name",
    "amount_cents",
    "transaction_date",
    "notes",
    "category_id",
    "settlement_intent",
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def serialize(txn: Transaction) -> dict[str, Any]:
    """JSON-ready payload for events."""
    return TransactionResponse.model_validate(txn).model_dump(mode="json")


# ---------------------------------------------------------------------------
# Create / read
# ---------------------------------------------------------------------------

async def create_transaction(
    db: AsyncSession,
    workspace_id: uuid.UUID,
    account_id: uuid.UUID,
    name: str,
    amount_cents: int,
    txn_type: TransactionType,
    transaction_date: date | None = None,
    is_paid: bool | None = None,
    notes: str | None = None,
    category_id: uuid.UUID | None = None,
    settlement_intent: SettlementIntent | None = None,
    publisher: EventPublisher | None = None,
) -> Transaction:
    """
    Record a manual transaction.

    On a credit-card account the row starts pending with a deferred intent,
    or settled when the intent is immediate. On other accounts the CC
    columns stay NULL and is_paid defaults to True.

    Raises:
        InvalidAmountError: If amount_cents is not positive.
        AccountNotFoundError: If the account is not in the workspace.
    """
    if amount_cents <= 0:
        raise InvalidAmountError(amount_cents)

    account = await account_service.get_account(db, workspace_id, account_id)

    settled_at = None
    if account.is_credit_card:
        settlement_intent = settlement_intent or SettlementIntent.DEFERRED
        if settlement_intent == SettlementIntent.IMMEDIATE:
            is_paid = True
            settled_at = _utcnow()
        else:
            is_paid = False
    else:
        settlement_intent = None
        if is_paid is None:
            is_paid = True

    txn = Transaction(
        workspace_id=workspace_id,
        account_id=account.id,
        name=name,
        amount_cents=amount_cents,
        type=txn_type,
        transaction_date=transaction_date or date.today(),
        is_paid=is_paid,
        notes=notes,
        category_id=category_id,
        settlement_intent=settlement_intent,
        settled_at=settled_at,
        source=TransactionSource.MANUAL,
    )
    db.add(txn)
    await db.flush()

    events.publish(
        db, publisher, workspace_id, events.ENTITY_TRANSACTION, events.CHANGE_CREATED, serialize(txn)
    )
    return txn


async def get_transaction(
    db: AsyncSession,
    workspace_id: uuid.UUID,
    transaction_id: uuid.UUID,
    lock: bool = False,
) -> Transaction:
    """
    Get a live transaction in the workspace.

    Raises:
        TransactionNotFoundError: If it doesn't exist, was deleted, or
                                  belongs to another workspace.
    """
    query = select(Transaction).where(
        Transaction.id == transaction_id,
        Transaction.workspace_id == workspace_id,
        Transaction.deleted_at.is_(None),
    )
    if lock:
        query = query.with_for_update()

    result = await db.execute(query)
    txn = result.scalar_one_or_none()
    if txn is None:
        raise TransactionNotFoundError(transaction_id)
    return txn


async def list_transactions(
    db: AsyncSession,
    workspace_id: uuid.UUID,
    account_id: uuid.UUID | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    type_filter: TransactionType | None = None,
    cc_state: CCState | None = None,
    limit: int = 100,
    offset: int = 0,
    today: date | None = None,
) -> list[Transaction]:
    """
    List live transactions, newest first.

    When the requested range reaches today or later, recurring templates
    are first generated through end_date, so a read of a future month sees
    its projections without any scheduler having run.
    """
    if today is None:
        today = date.today()

    if end_date is not None and end_date >= today:
        await projection_service.ensure_workspace_generated(
            db, workspace_id, end_date, today=today
        )

    query = (
        select(Transaction)
        .where(
            Transaction.workspace_id == workspace_id,
            Transaction.deleted_at.is_(None),
        )
        .order_by(Transaction.transaction_date.desc(), Transaction.created_at.desc())
        .limit(limit)
        .offset(offset)
    )

    if account_id is not None:
        query = query.where(Transaction.account_id == account_id)
    if start_date is not None:
        query = query.where(Transaction.transaction_date >= start_date)
    if end_date is not None:
        query = query.where(Transaction.transaction_date <= end_date)
    if type_filter is not None:
        query = query.where(Transaction.type == type_filter)
    if cc_state is not None:
        query = query.where(state_clause(cc_state))

    result = await db.execute(query)
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Update / delete
# ---------------------------------------------------------------------------

async def update_transaction(
    db: AsyncSession,
    workspace_id: uuid.UUID,
    transaction_id: uuid.UUID,
    fields: dict[str, Any],
    publisher: EventPublisher | None = None,
) -> Transaction:
    """
    Apply a partial update.

    Only keys in EDITABLE_FIELDS are considered; others are ignored.

    Raises:
        TransactionNotFoundError: If the transaction is not in the workspace.
        InvalidAmountError: If a new amount is not positive.
        TransferPairImmutableError: If amount or date of a transfer half changes.
        NotCCTransactionError: If an intent is set on a non-CC transaction.
        InvalidCCStateTransitionError: If the intent of a settled charge changes.
    """
    txn = await get_transaction(db, workspace_id, transaction_id, lock=True)
    changes = {
        key: value
        for key, value in fields.items()
        if key in EDITABLE_FIELDS and getattr(txn, key) != value
    }
    if not changes:
        return txn

    if "amount_cents" in changes and changes["amount_cents"] <= 0:
        raise InvalidAmountError(changes["amount_cents"])

    if txn.transfer_pair_id is not None and (
        "amount_cents" in changes or "transaction_date" in changes
    ):
        raise TransferPairImmutableError(txn.id)

    if "settlement_intent" in changes:
        state = txn.cc_state
        if state is None or changes["settlement_intent"] is None:
            raise NotCCTransactionError(txn.id)
        if state == CCState.SETTLED:
            raise InvalidCCStateTransitionError(txn.id, state.value)

    for key, value in changes.items():
        setattr(txn, key, value)

    if txn.template_id is not None:
        txn.is_modified = True

    await db.flush()

    events.publish(
        db, publisher, workspace_id, events.ENTITY_TRANSACTION, events.CHANGE_UPDATED, serialize(txn)
    )
    return txn


async def soft_delete_transfer_pair(
    db: AsyncSession,
    workspace_id: uuid.UUID,
    transfer_pair_id: uuid.UUID,
) -> int:
    """Soft-delete both halves of a transfer in one statement. Returns rows hit."""
    now = _utcnow()
    result = await db.execute(
        update(Transaction)
        .where(
            Transaction.workspace_id == workspace_id,
            Transaction.transfer_pair_id == transfer_pair_id,
            Transaction.deleted_at.is_(None),
        )
        .values(deleted_at=now, updated_at=now)
    )
    return result.rowcount


async def delete_transaction(
    db: AsyncSession,
    workspace_id: uuid.UUID,
    transaction_id: uuid.UUID,
    publisher: EventPublisher | None = None,
) -> None:
    """
    Soft-delete a transaction.

    A transfer half takes its partner with it. A row generated from a
    template leaves an exclusion behind for its month.
    """
    txn = await get_transaction(db, workspace_id, transaction_id, lock=True)
    payload = serialize(txn)

    if txn.transfer_pair_id is not None:
        await soft_delete_transfer_pair(db, workspace_id, txn.transfer_pair_id)
    else:
        if txn.template_id is not None:
            await add_exclusion(
                db,
                workspace_id,
                txn.template_id,
                txn.projection_month or month_start(txn.transaction_date),
            )
        txn.deleted_at = _utcnow()
        await db.flush()

    events.publish(
        db, publisher, workspace_id, events.ENTITY_TRANSACTION, events.CHANGE_DELETED, payload
    )


async def add_exclusion(
    db: AsyncSession,
    workspace_id: uuid.UUID,
    template_id: uuid.UUID,
    month: date,
) -> ProjectionExclusion:
    """Record that `month` must not be generated for the template. Idempotent."""
    result = await db.execute(
        select(ProjectionExclusion).where(
            ProjectionExclusion.workspace_id == workspace_id,
            ProjectionExclusion.template_id == template_id,
            ProjectionExclusion.excluded_month == month,
        )
    )
    exclusion = result.scalar_one_or_none()
    if exclusion is None:
        exclusion = ProjectionExclusion(
            workspace_id=workspace_id,
            template_id=template_id,
            excluded_month=month,
        )
        db.add(exclusion)
        await db.flush()
    return exclusion


# ---------------------------------------------------------------------------
# Credit-card billing
# ---------------------------------------------------------------------------

async def toggle_billed(
    db: AsyncSession,
    workspace_id: uuid.UUID,
    transaction_id: uuid.UUID,
    publisher: EventPublisher | None = None,
) -> Transaction:
    """
    Flip a CC transaction between pending and billed.

    Calling it twice returns the row to where it started. Amount and
    intent never change.

    Raises:
        TransactionNotFoundError: If the transaction is not in the workspace.
        NotCCTransactionError: If the transaction has no settlement intent.
        InvalidCCStateTransitionError: If the transaction is already settled.
    """
    txn = await get_transaction(db, workspace_id, transaction_id, lock=True)

    state = txn.cc_state
    if state is None:
        raise NotCCTransactionError(txn.id)
    if state == CCState.SETTLED:
        raise InvalidCCStateTransitionError(txn.id, state.value)

    txn.billed_at = _utcnow() if state == CCState.PENDING else None
    await db.flush()

    logger.debug("Transaction %s: %s -> %s", txn.id, state.value, txn.cc_state.value)
    events.publish(
        db, publisher, workspace_id, events.ENTITY_TRANSACTION, events.CHANGE_BILLED, serialize(txn)
    )
    return txn


async def batch_toggle_to_billed(
    db: AsyncSession,
    workspace_id: uuid.UUID,
    transaction_ids: list[uuid.UUID],
    publisher: EventPublisher | None = None,
) -> list[Transaction]:
    """
    Mark every pending CC transaction in the set as billed.

    Rows that are not pending CC charges (or not in the workspace) are
    left alone. Returns the rows that changed.
    """
    if not transaction_ids:
        return []

    result = await db.execute(
        select(Transaction)
        .where(
            Transaction.id.in_(list(set(transaction_ids))),
            Transaction.workspace_id == workspace_id,
            Transaction.deleted_at.is_(None),
            state_clause(CCState.PENDING),
        )
        .with_for_update()
    )
    promoted = list(result.scalars().all())

    now = _utcnow()
    for txn in promoted:
        txn.billed_at = now
    await db.flush()

    for txn in promoted:
        events.publish(
            db, publisher, workspace_id, events.ENTITY_TRANSACTION, events.CHANGE_BILLED, serialize(txn)
        )
    return promoted


# ---------------------------------------------------------------------------
# Transfer pairs
# ---------------------------------------------------------------------------

async def lock_accounts(
    db: AsyncSession,
    workspace_id: uuid.UUID,
    *account_ids: uuid.UUID,
) -> dict[uuid.UUID, Account]:
    """
    Fetch and lock accounts in sorted UUID order.

    Raises:
        AccountNotFoundError: For the first requested account that is missing.
    """
    accounts = {}
    for account_id in sorted(set(account_ids)):
        result = await db.execute(
            select(Account)
            .where(
                Account.id == account_id,
                Account.workspace_id == workspace_id,
                Account.deleted_at.is_(None),
            )
            .with_for_update()
        )
        account = result.scalar_one_or_none()
        if account is not None:
            accounts[account_id] = account

    for account_id in account_ids:
        if account_id not in accounts:
            raise AccountNotFoundError(account_id)
    return accounts


def build_transfer_pair(
    workspace_id: uuid.UUID,
    source: Account,
    destination: Account,
    amount_cents: int,
    transaction_date: date,
    notes: str | None = None,
    source_name: str | None = None,
    destination_name: str | None = None,
    is_cc_payment: bool = False,
) -> tuple[Transaction, Transaction]:
    """
    Build (not persist) the two halves of a transfer.

    Both halves are paid, share a fresh transfer_pair_id, and carry no
    credit-card lifecycle fields.
    """
    transfer_pair_id = uuid.uuid4()
    common = dict(
        workspace_id=workspace_id,
        amount_cents=amount_cents,
        transaction_date=transaction_date,
        is_paid=True,
        notes=notes,
        transfer_pair_id=transfer_pair_id,
        source=TransactionSource.MANUAL,
    )
    expense = Transaction(
        account_id=source.id,
        name=source_name or f"Transfer to {destination.name}",
        type=TransactionType.EXPENSE,
        **common,
    )
    income = Transaction(
        account_id=destination.id,
        name=destination_name or f"Transfer from {source.name}",
        type=TransactionType.INCOME,
        is_cc_payment=is_cc_payment,
        **common,
    )
    return expense, income


async def create_transfer_pair(
    db: AsyncSession,
    workspace_id: uuid.UUID,
    from_account_id: uuid.UUID,
    to_account_id: uuid.UUID,
    amount_cents: int,
    transaction_date: date | None = None,
    notes: str | None = None,
    publisher: EventPublisher | None = None,
) -> tuple[Transaction, Transaction]:
    """
    Move money between two accounts of the workspace.

    A transfer onto a credit card is recorded as a card payment.

    Returns:
        Tuple of (expense on from_account, income on to_account).

    Raises:
        SameAccountTransferError: If both accounts are the same.
        AccountNotFoundError: If either account is not in the workspace.
        InvalidAmountError: If amount_cents is not positive.
    """
    if from_account_id == to_account_id:
        raise SameAccountTransferError(from_account_id)

    accounts = await lock_accounts(db, workspace_id, from_account_id, to_account_id)

    if amount_cents <= 0:
        raise InvalidAmountError(amount_cents)

    source = accounts[from_account_id]
    destination = accounts[to_account_id]

    async with db.begin_nested():
        expense, income = build_transfer_pair(
            workspace_id,
            source,
            destination,
            amount_cents,
            transaction_date or date.today(),
            notes=notes,
            is_cc_payment=destination.is_credit_card,
        )
        db.add_all([expense, income])
        await db.flush()

    logger.info(
        "Transfer %s: %d cents from %s to %s",
        expense.transfer_pair_id, amount_cents, source.id, destination.id,
    )
    for txn in (expense, income):
        events.publish(
            db, publisher, workspace_id, events.ENTITY_TRANSACTION, events.CHANGE_CREATED, serialize(txn)
        )
    return expense, income
