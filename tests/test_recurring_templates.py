"""
Tests for recurring template CRUD.

These tests verify:
  - Invalid amount, frequency and date range are rejected
  - Settlement intent follows the account (deferred on cards, none elsewhere)
  - Deleting a template keeps history and drops untouched projections
  - The HTTP endpoints create, list, update, regenerate and delete
"""

import uuid
from datetime import date

import pytest
from sqlalchemy import select

from household_ledger import events
from household_ledger.exceptions import (
    AccountNotFoundError,
    InvalidAmountError,
    InvalidDateRangeError,
    InvalidFrequencyError,
    TemplateNotFoundError,
)
from household_ledger.models.recurring_template import ProjectionExclusion, RecurringTemplate
from household_ledger.models.transaction import SettlementIntent, Transaction
from household_ledger.services import recurring_template_service, transaction_service

TODAY = date(2026, 1, 15)


class TestTemplateValidation:
    async def test_non_positive_amount(self, db_session, workspace, bank_account):
        with pytest.raises(InvalidAmountError):
            await recurring_template_service.create_template(
                db_session, workspace.id, "Rent", 0, bank_account.id, date(2026, 1, 1), today=TODAY
            )

    async def test_unsupported_frequency(self, db_session, workspace, bank_account):
        with pytest.raises(InvalidFrequencyError):
            await recurring_template_service.create_template(
                db_session,
                workspace.id,
                "Rent",
                1000,
                bank_account.id,
                date(2026, 1, 1),
                frequency="weekly",
                today=TODAY,
            )

    async def test_end_before_start(self, db_session, workspace, bank_account):
        with pytest.raises(InvalidDateRangeError):
            await recurring_template_service.create_template(
                db_session,
                workspace.id,
                "Rent",
                1000,
                bank_account.id,
                start_date=date(2026, 5, 1),
                end_date=date(2026, 4, 30),
                today=TODAY,
            )

    async def test_unknown_account(self, db_session, workspace):
        with pytest.raises(AccountNotFoundError):
            await recurring_template_service.create_template(
                db_session, workspace.id, "Rent", 1000, uuid.uuid4(), date(2026, 1, 1), today=TODAY
            )

    async def test_update_rejects_bad_amount(self, db_session, workspace, bank_account):
        template, _ = await recurring_template_service.create_template(
            db_session, workspace.id, "Rent", 1000, bank_account.id, date(2026, 1, 1), today=TODAY
        )
        with pytest.raises(InvalidAmountError):
            await recurring_template_service.update_template(
                db_session, workspace.id, template.id, {"amount_cents": -5}, today=TODAY
            )


class TestSettlementIntent:
    async def test_card_template_defaults_to_deferred(self, db_session, workspace, cc_account):
        template, _ = await recurring_template_service.create_template(
            db_session, workspace.id, "Netflix", 1599, cc_account.id, date(2026, 1, 3), today=TODAY
        )
        assert template.settlement_intent == SettlementIntent.DEFERRED

    async def test_card_template_keeps_explicit_intent(self, db_session, workspace, cc_account):
        template, _ = await recurring_template_service.create_template(
            db_session,
            workspace.id,
            "Netflix",
            1599,
            cc_account.id,
            date(2026, 1, 3),
            settlement_intent=SettlementIntent.IMMEDIATE,
            today=TODAY,
        )
        assert template.settlement_intent == SettlementIntent.IMMEDIATE

    async def test_bank_template_never_has_intent(self, db_session, workspace, bank_account):
        template, _ = await recurring_template_service.create_template(
            db_session,
            workspace.id,
            "Rent",
            1000,
            bank_account.id,
            date(2026, 1, 3),
            settlement_intent=SettlementIntent.DEFERRED,
            today=TODAY,
        )
        assert template.settlement_intent is None

    async def test_moving_to_bank_clears_intent(
        self, db_session, workspace, bank_account, cc_account
    ):
        template, _ = await recurring_template_service.create_template(
            db_session, workspace.id, "Gym", 4500, cc_account.id, date(2026, 1, 20), today=TODAY
        )
        template, _ = await recurring_template_service.update_template(
            db_session, workspace.id, template.id, {"account_id": bank_account.id}, today=TODAY
        )
        assert template.settlement_intent is None

        rows = (
            await db_session.execute(
                select(Transaction).where(
                    Transaction.template_id == template.id,
                    Transaction.deleted_at.is_(None),
                )
            )
        ).scalars().all()
        assert rows
        assert all(r.account_id == bank_account.id for r in rows)
        assert all(r.settlement_intent is None for r in rows)


class TestDeleteTemplate:
    async def test_history_is_orphaned(self, db_session, workspace, bank_account, publisher):
        template, _ = await recurring_template_service.create_template(
            db_session,
            workspace.id,
            "Rent",
            150000,
            bank_account.id,
            start_date=date(2026, 1, 31),
            today=TODAY,
        )
        rows = (
            await db_session.execute(
                select(Transaction)
                .where(Transaction.template_id == template.id)
                .order_by(Transaction.transaction_date)
            )
        ).scalars().all()
        paid = rows[0]
        paid.is_paid = True
        await db_session.flush()
        await transaction_service.delete_transaction(db_session, workspace.id, rows[1].id)
        template_id = template.id

        await recurring_template_service.delete_template(
            db_session, workspace.id, template_id, today=TODAY, publisher=publisher
        )

        assert await db_session.get(RecurringTemplate, template_id) is None
        exclusions = (
            await db_session.execute(
                select(ProjectionExclusion).where(ProjectionExclusion.template_id == template_id)
            )
        ).scalars().all()
        assert exclusions == []

        remaining = (
            await db_session.execute(
                select(Transaction).where(Transaction.workspace_id == workspace.id)
            )
        ).scalars().all()
        # the paid row and the soft-deleted February row survive
        assert {r.id for r in remaining} == {paid.id, rows[1].id}
        for row in remaining:
            await db_session.refresh(row)
            assert row.template_id is None
        await events.commit_and_publish(db_session)
        assert publisher.types()[-1] == "recurring.deleted"

    async def test_unknown_template(self, db_session, workspace):
        with pytest.raises(TemplateNotFoundError):
            await recurring_template_service.delete_template(db_session, workspace.id, uuid.uuid4())


class TestListTemplates:
    async def test_active_only(self, db_session, workspace, bank_account):
        await recurring_template_service.create_template(
            db_session,
            workspace.id,
            "Old lease",
            90000,
            bank_account.id,
            start_date=date(2024, 1, 1),
            end_date=date(2025, 6, 30),
            today=TODAY,
        )
        await recurring_template_service.create_template(
            db_session, workspace.id, "Rent", 150000, bank_account.id, date(2026, 1, 1), today=TODAY
        )

        everything = await recurring_template_service.list_templates(db_session, workspace.id)
        active = await recurring_template_service.list_templates(
            db_session, workspace.id, active_only=True, today=TODAY
        )
        assert [t.description for t in everything] == ["Old lease", "Rent"]
        assert [t.description for t in active] == ["Rent"]


class TestTemplateEndpoints:
    """HTTP surface. Dates are relative to the real current day."""

    def _start(self) -> str:
        return date.today().replace(day=1).isoformat()

    async def test_create_generates_horizon(self, api, publisher):
        response = await api.post(
            "/recurring-templates",
            json={
                "description": "Rent",
                "amount_cents": 150000,
                "account_id": api.bank_id,
                "start_date": self._start(),
            },
        )
        assert response.status_code == 201, response.text
        data = response.json()
        assert data["template"]["due_day"] == 1
        assert data["template"]["settlement_intent"] is None
        assert data["generation"] == {"generated": 13, "skipped": 0, "errors": []}
        assert "recurring.created" in publisher.types()
        assert "projection.synced" in publisher.types()

        listed = await api.get("/transactions", params={"account_id": api.bank_id})
        assert len(listed.json()) == 13

    async def test_create_on_card_defaults_deferred(self, api):
        response = await api.post(
            "/recurring-templates",
            json={
                "description": "Streaming",
                "amount_cents": 1599,
                "account_id": api.cc_id,
                "start_date": self._start(),
            },
        )
        assert response.status_code == 201, response.text
        assert response.json()["template"]["settlement_intent"] == "deferred"

    async def test_invalid_body_is_422(self, api):
        response = await api.post(
            "/recurring-templates",
            json={
                "description": "Rent",
                "amount_cents": 150000,
                "account_id": api.bank_id,
                "start_date": "2026-05-01",
                "end_date": "2026-04-01",
            },
        )
        assert response.status_code == 422

    async def test_update_list_regenerate_delete(self, api):
        created = await api.post(
            "/recurring-templates",
            json={
                "description": "Gym",
                "amount_cents": 4500,
                "account_id": api.bank_id,
                "start_date": self._start(),
            },
        )
        template_id = created.json()["template"]["id"]

        updated = await api.put(
            f"/recurring-templates/{template_id}", json={"amount_cents": 5000}
        )
        assert updated.status_code == 200, updated.text
        assert updated.json()["template"]["amount_cents"] == 5000

        listed = await api.get("/recurring-templates")
        assert [t["id"] for t in listed.json()] == [template_id]

        fetched = await api.get(f"/recurring-templates/{template_id}")
        assert fetched.json()["description"] == "Gym"

        regenerated = await api.post(
            f"/recurring-templates/{template_id}/regenerate", json={"months_ahead": 2}
        )
        assert regenerated.status_code == 200, regenerated.text
        assert regenerated.json()["errors"] == []

        deleted = await api.delete(f"/recurring-templates/{template_id}")
        assert deleted.status_code == 204
        missing = await api.get(f"/recurring-templates/{template_id}")
        assert missing.status_code == 404
        assert missing.json()["error_type"] == "template_not_found"

    async def test_generate_endpoints(self, api):
        await api.post(
            "/recurring-templates",
            json={
                "description": "Rent",
                "amount_cents": 150000,
                "account_id": api.bank_id,
                "start_date": self._start(),
            },
        )

        again = await api.post("/projections/generate", json={"months_ahead": 12})
        assert again.status_code == 200, again.text
        assert again.json() == {"generated": 0, "skipped": 13, "errors": []}

        today = date.today()
        month = await api.post(
            "/projections/generate-month", json={"year": today.year, "month": today.month}
        )
        assert month.json() == {"generated": 0, "skipped": 1, "errors": []}

        bad = await api.post("/projections/generate-month", json={"year": 2026, "month": 13})
        assert bad.status_code == 422
