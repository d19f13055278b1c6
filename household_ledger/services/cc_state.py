"""
Credit-card lifecycle state.

A CC transaction is in exactly one of three states, derived from two
stored columns and never stored itself:

    settled  if is_paid
    billed   if not is_paid and billed_at is set
    pending  otherwise

derive_state() is used for every read and every precondition check.
state_clause() is the same mapping expressed as a SQL WHERE clause, so
list filters never re-state the rule by hand.
"""

import enum
from datetime import datetime


class CCState(str, enum.Enum):
    PENDING = "pending"
    BILLED = "billed"
    SETTLED = "settled"


def derive_state(is_paid: bool, billed_at: datetime | None) -> CCState:
    if is_paid:
        return CCState.SETTLED
    if billed_at is not None:
        return CCState.BILLED
    return CCState.PENDING


def state_clause(state: CCState):
    """
    SQL condition selecting CC transactions currently in `state`.

    Rows without a settlement intent are never CC transactions and never
    match, whatever their is_paid/billed_at columns say.
    """
    from sqlalchemy import and_

    from household_ledger.models.transaction import Transaction

    is_cc = Transaction.settlement_intent.is_not(None)
    if state == CCState.SETTLED:
        return and_(is_cc, Transaction.is_paid.is_(True))
    if state == CCState.BILLED:
        return and_(is_cc, Transaction.is_paid.is_(False), Transaction.billed_at.is_not(None))
    return and_(is_cc, Transaction.is_paid.is_(False), Transaction.billed_at.is_(None))
