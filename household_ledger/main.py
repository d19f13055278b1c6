"""
FastAPI application factory and entry point.

This module creates and configures the FastAPI application:
  1. Logging — root logger configured from LOG_LEVEL
  2. Lifespan manager — creates tables, starts/stops the projection worker
  3. CORS middleware
  4. Exception handlers — maps ledger errors to HTTP responses
  5. Router registration

Running locally:
    uvicorn household_ledger.main:app --reload
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import household_ledger.models  # noqa: F401  (registers every table on Base.metadata)
from household_ledger.config import settings
from household_ledger.database import AsyncSessionLocal, Base, engine
from household_ledger.exceptions import register_exception_handlers
from household_ledger.routers import (
    accounts,
    projections,
    recurring_templates,
    settlements,
    transactions,
    transfers,
    workspaces,
)
from household_ledger.services.projection_worker import ProjectionWorker

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup:
      Creates all tables if they don't exist and, when enabled, starts the
      background projection worker.

    Shutdown:
      Stops the worker and disposes of the engine.
    """
    configure_logging()

    # --- Startup ---
    logger.info("Starting %s %s", settings.APP_NAME, settings.APP_VERSION)
    if engine.dialect.name == "sqlite" and engine.url.database:
        Path(engine.url.database).parent.mkdir(parents=True, exist_ok=True)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    worker = None
    if settings.PROJECTION_WORKER_ENABLED:
        worker = ProjectionWorker(AsyncSessionLocal)
        await worker.start()
    app.state.projection_worker = worker

    yield

    # --- Shutdown ---
    if worker is not None:
        await worker.stop()
    await engine.dispose()


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Household ledger: credit-card billing and settlement, transfers, "
                "and recurring transaction projections",
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

register_exception_handlers(app)

# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

app.include_router(workspaces.router, prefix="/workspaces", tags=["Workspaces"])
app.include_router(accounts.router, prefix="/accounts", tags=["Accounts"])
app.include_router(transactions.router, prefix="/transactions", tags=["Transactions"])
app.include_router(transfers.router, prefix="/transfers", tags=["Transfers"])
app.include_router(settlements.router, tags=["Credit Cards"])
app.include_router(
    recurring_templates.router, prefix="/recurring-templates", tags=["Recurring Templates"]
)
app.include_router(projections.router, prefix="/projections", tags=["Projections"])


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

@app.get("/health", tags=["Health"])
async def health_check():
    """Liveness probe."""
    return {"status": "ok", "version": settings.APP_VERSION}
