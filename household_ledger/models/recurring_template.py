"""
Recurring template and projection exclusion models.

A RecurringTemplate is a rule ("rent, 1500.00, on the 1st, every month
from March") that the projection generator expands into concrete
Transaction rows ahead of time. Only monthly frequency exists today; the
day of month comes from start_date and is clamped in short months.

A ProjectionExclusion records that the user deleted a single generated
instance. Its presence stops that (template, month) from ever being
generated again, while the template keeps producing other months.
"""

import uuid
from datetime import date, datetime, timezone

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from household_ledger.database import Base
from household_ledger.models.transaction import SettlementIntent, TransactionType, _enum

FREQUENCY_MONTHLY = "monthly"


class RecurringTemplate(Base):
    __tablename__ = "recurring_templates"

    __table_args__ = (
        CheckConstraint("amount_cents > 0", name="ck_recurring_templates_positive_amount"),
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

    description: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    amount_cents: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    type: Mapped[TransactionType] = mapped_column(
        _enum(TransactionType),
        nullable=False,
        default=TransactionType.EXPENSE,
    )

    account_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("accounts.id"),
        nullable=False,
    )

    category_id: Mapped[uuid.UUID | None] = mapped_column(
        nullable=True,
    )

    frequency: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=FREQUENCY_MONTHLY,
    )

    start_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    # NULL = open-ended
    end_date: Mapped[date | None] = mapped_column(
        Date,
        nullable=True,
    )

    notes: Mapped[str | None] = mapped_column(
        String(1000),
        nullable=True,
    )

    # Only meaningful when account_id is a credit card
    settlement_intent: Mapped[SettlementIntent | None] = mapped_column(
        _enum(SettlementIntent),
        nullable=True,
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

    @property
    def due_day(self) -> int:
        return self.start_date.day


class ProjectionExclusion(Base):
    __tablename__ = "projection_exclusions"

    __table_args__ = (
        UniqueConstraint(
            "workspace_id",
            "template_id",
            "excluded_month",
            name="uq_projection_exclusions_template_month",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    workspace_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("workspaces.id"),
        nullable=False,
    )

    template_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("recurring_templates.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # First day of the suppressed month
    excluded_month: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
