"""
Account model — a place money lives: a bank account, cash, an e-wallet or
a credit card.

The account *template* decides how transactions on it behave:
  - bank / cash / ewallet are assets; their transactions never carry
    credit-card fields
  - credit_card is a liability; its transactions move through the
    pending -> billed -> settled lifecycle

Balances are not cached on the row. initial_balance_cents is the opening
balance; everything after it is the sum of the account's transactions.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Integer, DateTime, Enum, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from household_ledger.database import Base


class AccountTemplate(str, enum.Enum):
    BANK = "bank"
    CASH = "cash"
    EWALLET = "ewallet"
    CREDIT_CARD = "credit_card"


class AccountType(str, enum.Enum):
    ASSET = "asset"
    LIABILITY = "liability"


class Account(Base):
    __tablename__ = "accounts"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    workspace_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("workspaces.id"),
        nullable=False,
        index=True,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    template: Mapped[AccountTemplate] = mapped_column(
        Enum(
            AccountTemplate,
            native_enum=False,
            length=20,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=AccountTemplate.BANK,
    )

    initial_balance_cents: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
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
    def is_credit_card(self) -> bool:
        return self.template == AccountTemplate.CREDIT_CARD

    @property
    def account_type(self) -> AccountType:
        if self.is_credit_card:
            return AccountType.LIABILITY
        return AccountType.ASSET
