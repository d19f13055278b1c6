"""
Settlement service — paying off billed credit-card charges in one unit.

atomic_settle() takes a set of billed, deferred charges on one card and a
funding account, and in a single SAVEPOINT:

  1. sums the charges
  2. creates a transfer pair: expense on the funding account, income on
     the card (flagged is_cc_payment), both for the total
  3. marks every charge paid with the same settled_at

Either all of that is written or none of it is.

Validation order (first failure wins):
  target account exists and is a credit card      AccountNotFound / InvalidTargetAccount
  source account exists and is not a credit card  AccountNotFound / InvalidSourceAccount
  every ID resolves in the workspace              TransactionsNotFound
  every charge is billed                          TransactionNotBilled
  every charge is deferred and on the target      TransactionNotSettleable
  the set is non-empty                            EmptySettlement

Double settlement:
  Rows are read with FOR UPDATE (PostgreSQL) and the final UPDATE repeats
  the "billed and unpaid" condition. If a concurrent settlement got there
  first, fewer rows match, TransactionNotBilledError is raised and the
  SAVEPOINT discards the transfer pair.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from household_ledger import events
from household_ledger.events import EventPublisher
from household_ledger.exceptions import (
    EmptySettlementError,
    InvalidSourceAccountError,
    InvalidTargetAccountError,
    TransactionNotBilledError,
    TransactionNotSettleableError,
    TransactionsNotFoundError,
)
from household_ledger.models.transaction import SettlementIntent, Transaction
from household_ledger.services import transaction_service
from household_ledger.services.cc_state import CCState

logger = logging.getLogger(__name__)

SETTLEMENT_NAME = "CC Settlement"


@dataclass
class SettlementResult:
    transfer_id: uuid.UUID
    settled_count: int
    total_amount_cents: int
    settled_at: datetime


async def mark_settled(
    db: AsyncSession,
    workspace_id: uuid.UUID,
    transaction_ids: list[uuid.UUID],
    settled_at: datetime,
) -> int:
    """
    Flip billed, unpaid rows to paid. Returns the number of rows changed.

    The WHERE clause re-checks the billed state inside the write.
    """
    result = await db.execute(
        update(Transaction)
        .where(
            Transaction.id.in_(transaction_ids),
            Transaction.workspace_id == workspace_id,
            Transaction.billed_at.is_not(None),
            Transaction.is_paid.is_(False),
            Transaction.deleted_at.is_(None),
        )
        .values(is_paid=True, settled_at=settled_at, updated_at=settled_at)
    )
    return result.rowcount


async def atomic_settle(
    db: AsyncSession,
    workspace_id: uuid.UUID,
    transaction_ids: list[uuid.UUID],
    source_account_id: uuid.UUID,
    target_account_id: uuid.UUID,
    settlement_date: date | None = None,
    publisher: EventPublisher | None = None,
) -> SettlementResult:
    """
    Settle billed credit-card charges with a transfer from a funding account.

    Args:
        db: Database session.
        workspace_id: Tenant scope for every lookup.
        transaction_ids: Charges to settle. Duplicates are ignored.
        source_account_id: The paying (non-card) account.
        target_account_id: The credit-card account the charges sit on.
        settlement_date: Date of the transfer rows; defaults to today.
        publisher: Receives a settlement.created event once the session commits.

    Returns:
        SettlementResult with the transfer pair ID, count, total and timestamp.

    Raises:
        See the module docstring for the validation order.
    """
    ids = list(dict.fromkeys(transaction_ids))

    locked = await transaction_service.lock_accounts(db, workspace_id, target_account_id)
    target = locked[target_account_id]
    if not target.is_credit_card:
        raise InvalidTargetAccountError(target_account_id)

    locked = await transaction_service.lock_accounts(db, workspace_id, source_account_id)
    source = locked[source_account_id]
    if source.is_credit_card:
        raise InvalidSourceAccountError(source_account_id)

    txns: list[Transaction] = []
    if ids:
        result = await db.execute(
            select(Transaction)
            .where(
                Transaction.id.in_(ids),
                Transaction.workspace_id == workspace_id,
                Transaction.deleted_at.is_(None),
            )
            .with_for_update()
        )
        by_id = {txn.id: txn for txn in result.scalars().all()}
        missing = [i for i in ids if i not in by_id]
        if missing:
            raise TransactionsNotFoundError(missing)
        txns = [by_id[i] for i in ids]

    for txn in txns:
        if txn.cc_state != CCState.BILLED:
            raise TransactionNotBilledError(txn.id)

    for txn in txns:
        if txn.settlement_intent != SettlementIntent.DEFERRED:
            raise TransactionNotSettleableError(txn.id, "settlement intent is not deferred")
        if txn.account_id != target.id:
            raise TransactionNotSettleableError(txn.id, "charge is on a different account")

    if not txns:
        raise EmptySettlementError()

    total_amount_cents = sum(txn.amount_cents for txn in txns)
    settled_at = datetime.now(timezone.utc)

    async with db.begin_nested():
        expense, income = transaction_service.build_transfer_pair(
            workspace_id,
            source,
            target,
            total_amount_cents,
            settlement_date or date.today(),
            source_name=SETTLEMENT_NAME,
            destination_name=SETTLEMENT_NAME,
            is_cc_payment=True,
        )
        db.add_all([expense, income])
        await db.flush()

        settled_count = await mark_settled(db, workspace_id, ids, settled_at)
        if settled_count != len(ids):
            raise TransactionNotBilledError()

    logger.info(
        "Settled %d charge(s) on %s for %d cents from %s (workspace %s)",
        settled_count, target.id, total_amount_cents, source.id, workspace_id,
    )

    settlement = SettlementResult(
        transfer_id=expense.transfer_pair_id,
        settled_count=settled_count,
        total_amount_cents=total_amount_cents,
        settled_at=settled_at,
    )
    events.publish(
        db,
        publisher,
        workspace_id,
        events.ENTITY_SETTLEMENT,
        events.CHANGE_CREATED,
        {
            "transfer_id": str(settlement.transfer_id),
            "transaction_ids": [str(i) for i in ids],
            "settled_count": settled_count,
            "total_amount_cents": total_amount_cents,
            "settled_at": settled_at.isoformat(),
        },
    )
    return settlement
