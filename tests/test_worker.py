"""
Tests for the background projection worker.

These tests verify:
  - A sweep generates every workspace and is idempotent
  - A failing workspace is reported without stopping the sweep
  - The worker starts, runs a sweep, survives any sweep error and stops
"""

import asyncio
import logging
from datetime import date
from unittest.mock import AsyncMock, patch

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from household_ledger.models.recurring_template import RecurringTemplate
from household_ledger.models.transaction import Transaction
from household_ledger.services import account_service, projection_service
from household_ledger.services.projection_worker import ProjectionWorker, sync_all_workspaces


async def _seed_template(db_session, workspace, account) -> RecurringTemplate:
    template = RecurringTemplate(
        workspace_id=workspace.id,
        description="Rent",
        amount_cents=150000,
        account_id=account.id,
        start_date=date.today().replace(day=1),
    )
    db_session.add(template)
    await db_session.commit()
    return template


class TestSyncAllWorkspaces:
    async def test_sweep_generates_and_is_idempotent(
        self, db_session, session_factory, workspace, bank_account, publisher
    ):
        await _seed_template(db_session, workspace, bank_account)

        first = await sync_all_workspaces(session_factory, months_ahead=2, publisher=publisher)
        second = await sync_all_workspaces(session_factory, months_ahead=2, publisher=publisher)

        assert (first.generated, first.skipped, first.errors) == (3, 0, [])
        assert (second.generated, second.skipped) == (0, 3)
        assert publisher.types() == ["projection.synced"]

        count = await db_session.scalar(
            select(func.count()).select_from(Transaction).where(
                Transaction.workspace_id == workspace.id
            )
        )
        assert count == 3

    async def test_failing_workspace_is_reported(
        self, db_session, session_factory, workspace, bank_account
    ):
        await _seed_template(db_session, workspace, bank_account)
        other = await account_service.create_workspace(db_session, "Broken")
        await db_session.commit()
        original = projection_service.generate_projections

        async def flaky(db, workspace_id, **kwargs):
            if workspace_id == other.id:
                raise SQLAlchemyError("disk I/O error")
            return await original(db, workspace_id, **kwargs)

        with patch(
            "household_ledger.services.projection_service.generate_projections", new=flaky
        ):
            result = await sync_all_workspaces(session_factory, months_ahead=1)

        assert result.generated == 2
        assert len(result.errors) == 1
        assert str(other.id) in result.errors[0]


class TestProjectionWorker:
    async def test_start_runs_a_sweep_and_stop_cancels(self, session_factory):
        sweep = AsyncMock()
        with patch("household_ledger.services.projection_worker.sync_all_workspaces", new=sweep):
            worker = ProjectionWorker(session_factory, interval=3600, months_ahead=2)
            await worker.start()
            await worker.start()  # second start is a no-op
            for _ in range(3):
                await asyncio.sleep(0)

            assert worker.running is True
            sweep.assert_awaited_once_with(session_factory, 2, None)

            await worker.stop()

        assert worker.running is False
        assert worker._task is None

    async def test_database_error_does_not_kill_the_loop(self, session_factory):
        sweep = AsyncMock(side_effect=SQLAlchemyError("database is locked"))
        with patch("household_ledger.services.projection_worker.sync_all_workspaces", new=sweep):
            worker = ProjectionWorker(session_factory, interval=0.01)
            await worker.start()
            await asyncio.sleep(0.1)
            await worker.stop()

        assert sweep.await_count >= 2

    async def test_unexpected_error_is_logged_and_the_loop_continues(
        self, session_factory, caplog
    ):
        sweep = AsyncMock(side_effect=RuntimeError("listing workspaces failed"))
        with patch("household_ledger.services.projection_worker.sync_all_workspaces", new=sweep):
            with caplog.at_level(logging.ERROR, logger="household_ledger.services.projection_worker"):
                worker = ProjectionWorker(session_factory, interval=0.01)
                await worker.start()
                await asyncio.sleep(0.1)
                assert worker.running is True
                await worker.stop()

        assert sweep.await_count >= 2
        failures = [r for r in caplog.records if r.getMessage() == "Projection sweep failed"]
        assert failures
        assert failures[0].exc_info[0] is RuntimeError
