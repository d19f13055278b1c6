"""
Tests for the credit-card billing toggle.

These tests verify:
  - pending -> billed -> pending, with billed_at set and cleared
  - Toggling twice is the identity
  - Settled charges and non-CC transactions are rejected
  - Other workspaces' transactions are reported as not found
  - Batch promotion only touches pending charges
  - Each change publishes a transaction.billed event
"""

import uuid

import pytest

from household_ledger import events
from household_ledger.exceptions import (
    InvalidCCStateTransitionError,
    NotCCTransactionError,
    TransactionNotFoundError,
)
from household_ledger.services import account_service, transaction_service
from household_ledger.services.cc_state import CCState


class TestToggleBilled:
    """Service-level toggle behaviour."""

    async def test_pending_to_billed_and_back(
        self, db_session, workspace, cc_account, make_charge, publisher
    ):
        charge = await make_charge(workspace.id, cc_account.id, 4500, billed=False)

        txn = await transaction_service.toggle_billed(
            db_session, workspace.id, charge.id, publisher=publisher
        )
        assert txn.cc_state == CCState.BILLED
        assert txn.billed_at is not None

        txn = await transaction_service.toggle_billed(
            db_session, workspace.id, charge.id, publisher=publisher
        )
        assert txn.cc_state == CCState.PENDING
        assert txn.billed_at is None
        await events.commit_and_publish(db_session)
        assert publisher.types() == ["transaction.billed", "transaction.billed"]

    async def test_toggle_does_not_touch_amount_or_intent(
        self, db_session, workspace, cc_account, make_charge
    ):
        charge = await make_charge(workspace.id, cc_account.id, 4500, billed=False)

        txn = await transaction_service.toggle_billed(db_session, workspace.id, charge.id)

        assert txn.amount_cents == 4500
        assert txn.settlement_intent == "deferred"
        assert txn.is_paid is False

    async def test_settled_charge_cannot_toggle(
        self, db_session, workspace, cc_account, make_charge
    ):
        charge = await make_charge(workspace.id, cc_account.id, 4500, billed=True, paid=True)

        with pytest.raises(InvalidCCStateTransitionError):
            await transaction_service.toggle_billed(db_session, workspace.id, charge.id)

    async def test_non_cc_transaction_rejected(
        self, db_session, workspace, bank_account, make_charge
    ):
        txn = await make_charge(workspace.id, bank_account.id, 4500, billed=False, intent=None)

        with pytest.raises(NotCCTransactionError):
            await transaction_service.toggle_billed(db_session, workspace.id, txn.id)

    async def test_unknown_transaction(self, db_session, workspace):
        with pytest.raises(TransactionNotFoundError):
            await transaction_service.toggle_billed(db_session, workspace.id, uuid.uuid4())

    async def test_other_workspace_looks_missing(
        self, db_session, workspace, cc_account, make_charge
    ):
        charge = await make_charge(workspace.id, cc_account.id, 4500, billed=False)
        other = await account_service.create_workspace(db_session, "Neighbours")

        with pytest.raises(TransactionNotFoundError):
            await transaction_service.toggle_billed(db_session, other.id, charge.id)


class TestBatchToggle:
    """Promoting many pending charges at once."""

    async def test_only_pending_charges_promoted(
        self, db_session, workspace, cc_account, bank_account, make_charge, publisher
    ):
        pending_a = await make_charge(workspace.id, cc_account.id, 1000, billed=False)
        pending_b = await make_charge(workspace.id, cc_account.id, 2000, billed=False)
        already_billed = await make_charge(workspace.id, cc_account.id, 3000, billed=True)
        not_cc = await make_charge(workspace.id, bank_account.id, 4000, billed=False, intent=None)

        promoted = await transaction_service.batch_toggle_to_billed(
            db_session,
            workspace.id,
            [pending_a.id, pending_b.id, already_billed.id, not_cc.id, uuid.uuid4()],
            publisher=publisher,
        )

        assert {t.id for t in promoted} == {pending_a.id, pending_b.id}
        assert all(t.cc_state == CCState.BILLED for t in promoted)
        await events.commit_and_publish(db_session)
        assert len(publisher.events) == 2

        await db_session.refresh(not_cc)
        assert not_cc.billed_at is None

    async def test_empty_batch(self, db_session, workspace):
        assert await transaction_service.batch_toggle_to_billed(db_session, workspace.id, []) == []


class TestBillingEndpoints:
    """HTTP surface for the toggle."""

    async def test_toggle_endpoint_round_trip(self, api):
        created = await api.post(
            "/transactions",
            json={
                "account_id": api.cc_id,
                "name": "Dinner",
                "amount_cents": 8900,
                "type": "expense",
            },
        )
        assert created.status_code == 201
        txn_id = created.json()["id"]
        assert created.json()["cc_state"] == "pending"

        billed = await api.post(f"/transactions/{txn_id}/toggle-billed")
        assert billed.status_code == 200
        assert billed.json()["cc_state"] == "billed"

        pending = await api.post(f"/transactions/{txn_id}/toggle-billed")
        assert pending.json()["cc_state"] == "pending"
        assert pending.json()["billed_at"] is None

    async def test_toggle_on_bank_transaction_is_422(self, api):
        created = await api.post(
            "/transactions",
            json={
                "account_id": api.bank_id,
                "name": "Salary",
                "amount_cents": 300000,
                "type": "income",
            },
        )
        response = await api.post(f"/transactions/{created.json()['id']}/toggle-billed")
        assert response.status_code == 422
        assert response.json()["error_type"] == "not_cc_transaction"

    async def test_toggle_settled_is_409(self, api):
        created = await api.post(
            "/transactions",
            json={
                "account_id": api.cc_id,
                "name": "Coffee",
                "amount_cents": 450,
                "type": "expense",
                "settlement_intent": "immediate",
            },
        )
        assert created.json()["cc_state"] == "settled"

        response = await api.post(f"/transactions/{created.json()['id']}/toggle-billed")
        assert response.status_code == 409
        assert response.json()["error_type"] == "invalid_cc_state_transition"

    async def test_batch_endpoint(self, api):
        ids = []
        for amount in (1000, 2000):
            created = await api.post(
                "/transactions",
                json={
                    "account_id": api.cc_id,
                    "name": "Charge",
                    "amount_cents": amount,
                    "type": "expense",
                },
            )
            ids.append(created.json()["id"])

        response = await api.post("/transactions/batch-billed", json={"transaction_ids": ids})
        assert response.status_code == 200
        assert sorted(t["id"] for t in response.json()) == sorted(ids)
        assert all(t["cc_state"] == "billed" for t in response.json())
