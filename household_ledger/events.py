"""
Change notifications emitted by the ledger services.

Services queue an Event on their session after their writes are
flushed. The queue is delivered only once that session commits
(commit_and_publish) and is dropped if it rolls back. Delivery to
clients (WebSocket fan-out and friends) lives outside this package; the
default publisher just logs, and tests use InMemoryEventPublisher to
assert on what was emitted.

Event types are "<entity>.<change>", for example "transaction.billed" or
"settlement.created".
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Protocol

from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

ENTITY_TRANSACTION = "transaction"
ENTITY_SETTLEMENT = "settlement"
ENTITY_RECURRING = "recurring"
ENTITY_PROJECTION = "projection"

CHANGE_CREATED = "created"
CHANGE_UPDATED = "updated"
CHANGE_DELETED = "deleted"
CHANGE_BILLED = "billed"
CHANGE_SYNCED = "synced"


class Event(BaseModel):
    """A single change notification."""
    type: str
    entity: str
    payload: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def build(cls, entity: str, change: str, payload: dict[str, Any]) -> "Event":
        return cls(type=f"{entity}.{change}", entity=entity, payload=payload)


class EventPublisher(Protocol):
    """Anything that can receive events for a workspace."""

    async def publish(self, workspace_id: uuid.UUID, event: Event) -> None:
        ...


class LoggingEventPublisher:
    """Default publisher: writes every event to the log at DEBUG level."""

    async def publish(self, workspace_id: uuid.UUID, event: Event) -> None:
        logger.debug("Event %s for workspace %s: %s", event.type, workspace_id, event.payload)


class InMemoryEventPublisher:
    """Collects events in a list. Used by the test suite."""

    def __init__(self):
        self.events: list[tuple[uuid.UUID, Event]] = []

    async def publish(self, workspace_id: uuid.UUID, event: Event) -> None:
        self.events.append((workspace_id, event))

    def types(self) -> list[str]:
        return [event.type for _, event in self.events]


default_publisher = LoggingEventPublisher()



# Events waiting for the session's transaction to commit
PENDING_KEY = "pending_events"


def publish(
    db: AsyncSession,
    publisher: EventPublisher | None,
    workspace_id: uuid.UUID,
    entity: str,
    change: str,
    payload: dict[str, Any],
) -> None:
    """
    Queue an event on the session.

    Nothing is delivered until commit_and_publish() commits the session;
    discard_pending() drops the queue when the transaction is rolled back.
    """
    pending = db.info.setdefault(PENDING_KEY, [])
    event = Event.build(entity, change, payload)
    pending.append((publisher or default_publisher, workspace_id, event))


def pending_events(db: AsyncSession) -> list[Event]:
    return [event for _, _, event in db.info.get(PENDING_KEY, [])]


def discard_pending(db: AsyncSession) -> None:
    dropped = db.info.pop(PENDING_KEY, [])
    if dropped:
        logger.debug("Discarded %d event(s) from a rolled-back transaction", len(dropped))


async def commit_and_publish(db: AsyncSession) -> None:
    """
    Commit the session, then deliver the events queued during it.

    If the commit raises, the queue is left in place for the caller's
    rollback path to discard.
    """
    await db.commit()
    for publisher, workspace_id, event in db.info.pop(PENDING_KEY, []):
        await publisher.publish(workspace_id, event)
