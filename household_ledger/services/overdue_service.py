"""
Overdue service — billed credit-card charges that were never paid off.

A charge is overdue when it sits on a credit-card account, is billed,
unpaid, deferred and live, and its billed_at is more than
OVERDUE_AFTER_MONTHS months in the past. Charges are grouped by the
calendar month of billed_at, oldest first.
"""

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from household_ledger.config import settings
from household_ledger.dates import add_months, months_between
from household_ledger.models.account import Account, AccountTemplate
from household_ledger.models.transaction import SettlementIntent, Transaction
from household_ledger.services.cc_state import CCState, state_clause


@dataclass
class OverdueGroup:
    month: str
    month_label: str
    months_overdue: int
    total_amount_cents: int = 0
    item_count: int = 0
    transactions: list[Transaction] = field(default_factory=list)


async def get_overdue(
    db: AsyncSession,
    workspace_id: uuid.UUID,
    now: datetime | None = None,
    after_months: int | None = None,
) -> list[OverdueGroup]:
    """
    Group overdue CC charges by billing month.

    Args:
        now: Reference time; defaults to the current UTC time.
        after_months: Age threshold; defaults to OVERDUE_AFTER_MONTHS.
                      0 reports every billed deferred charge.

    Returns:
        Groups in ascending billed_at order, each with its total,
        count and the number of months between it and `now`.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    if after_months is None:
        after_months = settings.OVERDUE_AFTER_MONTHS

    query = (
        select(Transaction)
        .join(Account, Account.id == Transaction.account_id)
        .where(
            Transaction.workspace_id == workspace_id,
            Account.template == AccountTemplate.CREDIT_CARD,
            state_clause(CCState.BILLED),
            Transaction.settlement_intent == SettlementIntent.DEFERRED,
            Transaction.deleted_at.is_(None),
        )
        .order_by(Transaction.billed_at.asc(), Transaction.created_at.asc())
    )
    if after_months > 0:
        cutoff_day = add_months(now.date(), -after_months)
        cutoff = now.replace(
            year=cutoff_day.year, month=cutoff_day.month, day=cutoff_day.day
        )
        query = query.where(Transaction.billed_at < cutoff)

    result = await db.execute(query)

    current_month = date(now.year, now.month, 1)
    groups: dict[str, OverdueGroup] = {}
    for txn in result.scalars().all():
        billed = txn.billed_at
        key = f"{billed:%Y-%m}"
        group = groups.get(key)
        if group is None:
            group = OverdueGroup(
                month=key,
                month_label=f"{billed:%B %Y}",
                months_overdue=months_between(date(billed.year, billed.month, 1), current_month),
            )
            groups[key] = group
        group.total_amount_cents += txn.amount_cents
        group.item_count += 1
        group.transactions.append(txn)

    return list(groups.values())
