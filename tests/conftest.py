"""
Test fixtures for the Household Ledger test suite.

  - db_engine / db_session: fresh in-memory SQLite database for each test
  - publisher: in-memory event publisher injected into services and routes
  - client: async HTTP test client with the test database injected
  - api: client already scoped to a workspace with a bank and a card account
  - workspace / bank_account / cc_account: the same, created through services
  - make_charge: factory for credit-card charges in a given state

Notes:
  - The in-memory database lives on a single shared connection. Seed data
    through db_session and commit it *before* using the HTTP client, and
    only query through db_session again once the HTTP calls are done.
  - Engines are built with create_engine_for() so SAVEPOINTs behave the way
    they do in production.
"""

import uuid
from datetime import date, datetime, timezone

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

import household_ledger.models  # noqa: F401
from household_ledger.database import Base, create_engine_for, get_db, session_scope
from household_ledger.dependencies import get_publisher
from household_ledger.events import InMemoryEventPublisher
from household_ledger.main import app
from household_ledger.models.account import AccountTemplate
from household_ledger.models.transaction import SettlementIntent, Transaction, TransactionType
from household_ledger.services import account_service


# In-memory SQLite for fast, isolated tests
TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest_asyncio.fixture
async def db_engine():
    """Create a fresh async engine with all tables for each test."""
    engine = create_engine_for(TEST_DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Provide an async session bound to the test engine."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def publisher():
    return InMemoryEventPublisher()


@pytest_asyncio.fixture
async def client(session_factory, publisher):
    """
    Async HTTP test client with the test database injected.

    get_db is overridden with the production commit/rollback behaviour
    against the in-memory engine; get_publisher returns `publisher`.
    """

    async def override_get_db():
        async with session_scope(session_factory) as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_publisher] = lambda: publisher

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def api(client):
    """
    Client scoped to a fresh workspace holding a bank and a credit-card account.

    The account IDs are available as client.bank_id and client.cc_id.
    """
    response = await client.post("/workspaces", json={"name": "Household"})
    assert response.status_code == 201, response.text
    client.workspace_id = response.json()["id"]
    client.headers["X-Workspace-ID"] = client.workspace_id

    bank = await client.post("/accounts", json={"name": "Checking", "template": "bank"})
    card = await client.post("/accounts", json={"name": "Visa", "template": "credit_card"})
    assert bank.status_code == 201, bank.text
    assert card.status_code == 201, card.text
    client.bank_id = bank.json()["id"]
    client.cc_id = card.json()["id"]
    return client


@pytest_asyncio.fixture
async def workspace(db_session):
    ws = await account_service.create_workspace(db_session, "Household")
    await db_session.commit()
    return ws


@pytest_asyncio.fixture
async def bank_account(db_session, workspace):
    account = await account_service.create_account(
        db_session, workspace.id, "Checking", AccountTemplate.BANK, initial_balance_cents=500000
    )
    await db_session.commit()
    return account


@pytest_asyncio.fixture
async def cc_account(db_session, workspace):
    account = await account_service.create_account(
        db_session, workspace.id, "Visa", AccountTemplate.CREDIT_CARD
    )
    await db_session.commit()
    return account


@pytest.fixture
def make_charge(db_session):
    """
    Factory for credit-card charges written straight to the database.

    billed=True gives a billed charge, paid=True a settled one.
    """

    async def _make(
        workspace_id: uuid.UUID,
        account_id: uuid.UUID,
        amount_cents: int,
        billed: bool = True,
        paid: bool = False,
        intent: SettlementIntent | None = SettlementIntent.DEFERRED,
        billed_at: datetime | None = None,
        name: str = "Groceries",
    ) -> Transaction:
        if billed and billed_at is None:
            billed_at = datetime.now(timezone.utc)
        txn = Transaction(
            workspace_id=workspace_id,
            account_id=account_id,
            name=name,
            amount_cents=amount_cents,
            type=TransactionType.EXPENSE,
            transaction_date=date.today(),
            is_paid=paid,
            settlement_intent=intent,
            billed_at=billed_at if billed else None,
        )
        db_session.add(txn)
        await db_session.commit()
        return txn

    return _make
