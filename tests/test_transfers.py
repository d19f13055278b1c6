"""
Tests for transfer pairs.

These tests verify:
  - A transfer creates an expense and an income sharing a transfer_pair_id
  - Same-account, missing-account and non-positive transfers are rejected
  - Deleting either half soft-deletes both
  - Amount and date of a half cannot be edited
  - Transfers onto a credit card are flagged as card payments
"""

import uuid
from datetime import date

import pytest
from sqlalchemy import select

from household_ledger import events
from household_ledger.exceptions import (
    AccountNotFoundError,
    InvalidAmountError,
    SameAccountTransferError,
    TransferPairImmutableError,
)
from household_ledger.models.transaction import Transaction, TransactionType
from household_ledger.services import account_service, transaction_service


class TestCreateTransferPair:
    """Service-level transfer creation."""

    async def test_pair_is_linked_and_balanced(
        self, db_session, workspace, bank_account, publisher
    ):
        wallet = await account_service.create_account(db_session, workspace.id, "Wallet")

        expense, income = await transaction_service.create_transfer_pair(
            db_session,
            workspace.id,
            bank_account.id,
            wallet.id,
            12000,
            transaction_date=date(2026, 4, 2),
            notes="ATM",
            publisher=publisher,
        )

        assert expense.type == TransactionType.EXPENSE
        assert income.type == TransactionType.INCOME
        assert expense.account_id == bank_account.id
        assert income.account_id == wallet.id
        assert expense.amount_cents == income.amount_cents == 12000
        assert expense.transaction_date == income.transaction_date == date(2026, 4, 2)
        assert expense.transfer_pair_id is not None
        assert expense.transfer_pair_id == income.transfer_pair_id
        assert expense.is_paid and income.is_paid
        assert expense.name == "Transfer to Wallet"
        assert income.name == "Transfer from Checking"
        assert income.is_cc_payment is False
        await events.commit_and_publish(db_session)
        assert publisher.types() == ["transaction.created", "transaction.created"]

    async def test_transfer_to_card_is_cc_payment(
        self, db_session, workspace, bank_account, cc_account
    ):
        _, income = await transaction_service.create_transfer_pair(
            db_session, workspace.id, bank_account.id, cc_account.id, 5000
        )
        assert income.is_cc_payment is True
        assert income.cc_state is None
        assert income.transaction_date == date.today()

    async def test_same_account_rejected(self, db_session, workspace, bank_account):
        with pytest.raises(SameAccountTransferError):
            await transaction_service.create_transfer_pair(
                db_session, workspace.id, bank_account.id, bank_account.id, 100
            )

    async def test_missing_destination(self, db_session, workspace, bank_account):
        with pytest.raises(AccountNotFoundError):
            await transaction_service.create_transfer_pair(
                db_session, workspace.id, bank_account.id, uuid.uuid4(), 100
            )

    async def test_account_in_other_workspace_is_missing(
        self, db_session, workspace, bank_account
    ):
        other = await account_service.create_workspace(db_session, "Other")
        foreign = await account_service.create_account(db_session, other.id, "Foreign")

        with pytest.raises(AccountNotFoundError):
            await transaction_service.create_transfer_pair(
                db_session, workspace.id, bank_account.id, foreign.id, 100
            )

    @pytest.mark.parametrize("amount", [0, -500])
    async def test_non_positive_amount(self, db_session, workspace, bank_account, cc_account, amount):
        with pytest.raises(InvalidAmountError):
            await transaction_service.create_transfer_pair(
                db_session, workspace.id, bank_account.id, cc_account.id, amount
            )


class TestTransferPairIntegrity:
    """The pair is deleted together and its money fields are fixed."""

    async def test_deleting_one_half_deletes_both(
        self, db_session, workspace, bank_account, cc_account
    ):
        expense, income = await transaction_service.create_transfer_pair(
            db_session, workspace.id, bank_account.id, cc_account.id, 5000
        )

        await transaction_service.delete_transaction(db_session, workspace.id, income.id)

        result = await db_session.execute(
            select(Transaction).where(Transaction.transfer_pair_id == expense.transfer_pair_id)
        )
        rows = list(result.scalars().all())
        assert len(rows) == 2
        assert all(row.deleted_at is not None for row in rows)

    async def test_amount_of_half_is_immutable(
        self, db_session, workspace, bank_account, cc_account
    ):
        expense, _ = await transaction_service.create_transfer_pair(
            db_session, workspace.id, bank_account.id, cc_account.id, 5000
        )

        with pytest.raises(TransferPairImmutableError):
            await transaction_service.update_transaction(
                db_session, workspace.id, expense.id, {"amount_cents": 6000}
            )
        with pytest.raises(TransferPairImmutableError):
            await transaction_service.update_transaction(
                db_session, workspace.id, expense.id, {"transaction_date": date(2020, 1, 1)}
            )

    async def test_notes_of_half_can_change(
        self, db_session, workspace, bank_account, cc_account
    ):
        expense, _ = await transaction_service.create_transfer_pair(
            db_session, workspace.id, bank_account.id, cc_account.id, 5000
        )
        updated = await transaction_service.update_transaction(
            db_session, workspace.id, expense.id, {"notes": "Card payment"}
        )
        assert updated.notes == "Card payment"


class TestTransferEndpoint:
    """HTTP surface for transfers."""

    async def test_create_transfer(self, api):
        response = await api.post(
            "/transfers",
            json={
                "from_account_id": api.bank_id,
                "to_account_id": api.cc_id,
                "amount_cents": 15000,
            },
        )
        assert response.status_code == 201, response.text
        data = response.json()
        assert data["amount_cents"] == 15000
        assert data["from_transaction"]["type"] == "expense"
        assert data["to_transaction"]["type"] == "income"
        assert data["to_transaction"]["is_cc_payment"] is True
        assert (
            data["from_transaction"]["transfer_pair_id"]
            == data["to_transaction"]["transfer_pair_id"]
            == data["transfer_pair_id"]
        )

    async def test_same_account_is_422(self, api):
        response = await api.post(
            "/transfers",
            json={
                "from_account_id": api.bank_id,
                "to_account_id": api.bank_id,
                "amount_cents": 100,
            },
        )
        assert response.status_code == 422

    async def test_unknown_account_is_404(self, api):
        response = await api.post(
            "/transfers",
            json={
                "from_account_id": api.bank_id,
                "to_account_id": str(uuid.uuid4()),
                "amount_cents": 100,
            },
        )
        assert response.status_code == 404
        assert response.json()["error_type"] == "account_not_found"

    async def test_delete_half_removes_pair(self, api):
        created = await api.post(
            "/transfers",
            json={
                "from_account_id": api.bank_id,
                "to_account_id": api.cc_id,
                "amount_cents": 100,
            },
        )
        data = created.json()

        response = await api.delete(f"/transactions/{data['from_transaction']['id']}")
        assert response.status_code == 204

        other_half = await api.get(f"/transactions/{data['to_transaction']['id']}")
        assert other_half.status_code == 404
