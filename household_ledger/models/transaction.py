"""
Transaction model — one ledger entry.

Every entry is a positive amount with a direction (income or expense) on
one account. Three groups of optional columns layer behaviour on top:

Credit-card lifecycle (only on credit-card accounts):
  - settlement_intent: "immediate" or "deferred"; NULL means the row is not
    a CC transaction at all
  - billed_at: set when the charge appeared on a statement
  - is_paid / settled_at: set when the charge was paid off
  cc_state is computed from is_paid and billed_at, never stored.

Transfers:
  - transfer_pair_id: shared by exactly two rows, an expense on the source
    account and an income on the destination, same amount, same date.
    The pair is created together and soft-deleted together.

Recurring projections:
  - template_id / source="recurring": generated from a RecurringTemplate
  - projection_month: first day of the month the row was generated for.
    A partial unique index allows one live row per template and month.
  - is_projected: the row was generated ahead of its date
  - is_modified: the user edited a generated row; regeneration keeps it

Rows are never hard-deleted by user actions; deleted_at marks them gone.
"""

import enum
import uuid
from datetime import date, datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from household_ledger.database import Base
from household_ledger.services.cc_state import CCState, derive_state


class TransactionType(str, enum.Enum):
    INCOME = "income"
    EXPENSE = "expense"


class SettlementIntent(str, enum.Enum):
    IMMEDIATE = "immediate"
    DEFERRED = "deferred"


class TransactionSource(str, enum.Enum):
    MANUAL = "manual"
    RECURRING = "recurring"


def _enum(enum_cls):
    return Enum(
        enum_cls,
        native_enum=False,
        length=20,
        values_callable=lambda e: [m.value for m in e],
    )


class Transaction(Base):
    __tablename__ = "transactions"

    __table_args__ = (
        CheckConstraint("amount_cents > 0", name="ck_transactions_positive_amount"),
        # One live generated row per template and month
        Index(
            "uq_transactions_template_month",
            "workspace_id",
            "template_id",
            "projection_month",
            unique=True,
            sqlite_where=text("deleted_at IS NULL AND template_id IS NOT NULL"),
            postgresql_where=text("deleted_at IS NULL AND template_id IS NOT NULL"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    workspace_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("workspaces.id"),
        nullable=False,
        index=True,
    )

    account_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("accounts.id"),
        nullable=False,
        index=True,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    # Always positive; direction comes from type
    amount_cents: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    type: Mapped[TransactionType] = mapped_column(
        _enum(TransactionType),
        nullable=False,
    )

    transaction_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        index=True,
    )

    is_paid: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )

    notes: Mapped[str | None] = mapped_column(
        String(1000),
        nullable=True,
    )

    # Categories live outside this service; the ID is carried through
    category_id: Mapped[uuid.UUID | None] = mapped_column(
        nullable=True,
    )

    # --- Credit-card lifecycle ---
    settlement_intent: Mapped[SettlementIntent | None] = mapped_column(
        _enum(SettlementIntent),
        nullable=True,
    )
    billed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    settled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    # Income half of a settlement on the card account
    is_cc_payment: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    # --- Transfers ---
    transfer_pair_id: Mapped[uuid.UUID | None] = mapped_column(
        nullable=True,
        index=True,
    )

    # --- Projection lineage ---
    source: Mapped[TransactionSource] = mapped_column(
        _enum(TransactionSource),
        nullable=False,
        default=TransactionSource.MANUAL,
    )
    template_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("recurring_templates.id"),
        nullable=True,
        index=True,
    )
    projection_month: Mapped[date | None] = mapped_column(
        Date,
        nullable=True,
    )
    is_projected: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )
    is_modified: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    @property
    def cc_state(self) -> CCState | None:
        if self.settlement_intent is None:
            return None
        return derive_state(self.is_paid, self.billed_at)

    def is_future_projection(self, today: date | None = None) -> bool:
        """
        Whether this row is still a projection.

        The stored flag is never cleared when the date arrives, so the date
        is what decides.
        """
        if today is None:
            today = date.today()
        return self.is_projected and self.transaction_date >= today

    @property
    def projected(self) -> bool:
        return self.is_future_projection()
