"""
Background projection worker.

Reads already extend generation on access, so the worker is optional
(PROJECTION_WORKER_ENABLED). When it runs, it sweeps every workspace on a
fixed interval and generates PROJECTION_MONTHS_AHEAD months, each
workspace in its own session and transaction so one failing workspace
does not hold back the rest.
"""

import asyncio
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from household_ledger.config import settings
from household_ledger.database import session_scope
from household_ledger.events import EventPublisher
from household_ledger.exceptions import LedgerError
from household_ledger.services import account_service, projection_service
from household_ledger.services.projection_service import GenerationResult

logger = logging.getLogger(__name__)


async def sync_all_workspaces(
    session_factory: async_sessionmaker[AsyncSession],
    months_ahead: int | None = None,
    publisher: EventPublisher | None = None,
) -> GenerationResult:
    """Generate projections for every workspace. Returns the combined totals."""
    async with session_factory() as db:
        workspace_ids = await account_service.list_workspace_ids(db)

    total = GenerationResult()
    for workspace_id in workspace_ids:
        try:
            async with session_scope(session_factory) as db:
                result = await projection_service.generate_projections(
                    db, workspace_id, months_ahead=months_ahead, publisher=publisher
                )
        except (SQLAlchemyError, LedgerError) as exc:
            message = f"Failed to generate projections for workspace {workspace_id}: {exc}"
            logger.error(message)
            total.errors.append(message)
            continue
        total.merge(result)

    logger.info(
        "Projection sweep over %d workspace(s): %d generated, %d skipped, %d errors",
        len(workspace_ids), total.generated, total.skipped, len(total.errors),
    )
    return total


class ProjectionWorker:
    """Runs sync_all_workspaces() every `interval` seconds until stopped."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        interval: float | None = None,
        months_ahead: int | None = None,
        publisher: EventPublisher | None = None,
    ):
        self.session_factory = session_factory
        self.interval = interval or settings.PROJECTION_WORKER_INTERVAL_SECONDS
        self.months_ahead = months_ahead
        self.publisher = publisher
        self._task: asyncio.Task[None] | None = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info("Projection worker started (every %ss)", self.interval)

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Projection worker stopped")

    async def _loop(self) -> None:
        while self._running:
            try:
                await sync_all_workspaces(
                    self.session_factory, self.months_ahead, self.publisher
                )
            except Exception:
                logger.exception("Projection sweep failed")
            await asyncio.sleep(self.interval)
