"""
SQLAlchemy ORM models package.

All models are imported here so that Base.metadata knows every table
before create_all() runs, and so other modules can import from
household_ledger.models directly.
"""

from household_ledger.models.workspace import Workspace  # noqa: F401
from household_ledger.models.account import Account, AccountTemplate, AccountType  # noqa: F401
from household_ledger.models.transaction import (  # noqa: F401
    SettlementIntent,
    Transaction,
    TransactionSource,
    TransactionType,
)
from household_ledger.models.recurring_template import (  # noqa: F401
    FREQUENCY_MONTHLY,
    ProjectionExclusion,
    RecurringTemplate,
)
