"""
Recurring template service — CRUD for generation rules.

Creating a template generates its first PROJECTION_MONTHS_AHEAD months
right away. Updating one regenerates its untouched future projections and,
when the end date moved earlier, trims what lies beyond it. Deleting one
removes untouched future projections and orphans everything else, so
transaction history outlives the rule that produced it.

Settlement intent follows the target account: credit-card templates
default to deferred, templates on any other account never carry one.
"""

import logging
import uuid
from datetime import date
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from household_ledger import events
from household_ledger.events import EventPublisher
from household_ledger.exceptions import (
    InvalidAmountError,
    InvalidDateRangeError,
    InvalidFrequencyError,
)
from household_ledger.models.recurring_template import (
    FREQUENCY_MONTHLY,
    ProjectionExclusion,
    RecurringTemplate,
)
from household_ledger.models.transaction import SettlementIntent, TransactionType
from household_ledger.schemas.recurring_template import TemplateResponse
from household_ledger.services import account_service, projection_service
from household_ledger.services.projection_service import GenerationResult

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "description",
    "amount_cents",
    "type",
    "account_id",
    "category_id",
    "frequency",
    "start_date",
    "end_date",
    "notes",
    "settlement_intent",
)

# Columns that cannot be cleared by an update
REQUIRED_FIELDS = ("description", "amount_cents", "type", "account_id", "frequency", "start_date")


def _serialize(template: RecurringTemplate) -> dict[str, Any]:
    return TemplateResponse.model_validate(template).model_dump(mode="json")


def _validate(template: RecurringTemplate) -> None:
    if template.amount_cents <= 0:
        raise InvalidAmountError(template.amount_cents)
    if template.frequency != FREQUENCY_MONTHLY:
        raise InvalidFrequencyError(template.frequency)
    if template.end_date is not None and template.end_date < template.start_date:
        raise InvalidDateRangeError()


async def _resolve_intent(
    db: AsyncSession,
    workspace_id: uuid.UUID,
    account_id: uuid.UUID,
    intent: SettlementIntent | None,
) -> SettlementIntent | None:
    account = await account_service.get_account(db, workspace_id, account_id)
    if not account.is_credit_card:
        return None
    return intent or SettlementIntent.DEFERRED


async def create_template(
    db: AsyncSession,
    workspace_id: uuid.UUID,
    description: str,
    amount_cents: int,
    account_id: uuid.UUID,
    start_date: date,
    end_date: date | None = None,
    txn_type: TransactionType = TransactionType.EXPENSE,
    category_id: uuid.UUID | None = None,
    frequency: str = FREQUENCY_MONTHLY,
    notes: str | None = None,
    settlement_intent: SettlementIntent | None = None,
    today: date | None = None,
    publisher: EventPublisher | None = None,
) -> tuple[RecurringTemplate, GenerationResult]:
    """
    Create a template and generate its projection horizon.

    Raises:
        InvalidAmountError / InvalidFrequencyError / InvalidDateRangeError
        AccountNotFoundError: If the account is not in the workspace.
    """
    template = RecurringTemplate(
        workspace_id=workspace_id,
        description=description,
        amount_cents=amount_cents,
        type=txn_type,
        account_id=account_id,
        category_id=category_id,
        frequency=frequency,
        start_date=start_date,
        end_date=end_date,
        notes=notes,
    )
    _validate(template)
    template.settlement_intent = await _resolve_intent(
        db, workspace_id, account_id, settlement_intent
    )

    db.add(template)
    await db.flush()

    result = await projection_service.regenerate_projections_for_template(
        db, workspace_id, template.id, today=today, publisher=publisher
    )
    events.publish(
        db, publisher, workspace_id, events.ENTITY_RECURRING, events.CHANGE_CREATED, _serialize(template)
    )
    return template, result


async def get_template(
    db: AsyncSession, workspace_id: uuid.UUID, template_id: uuid.UUID
) -> RecurringTemplate:
    return await projection_service.get_template(db, workspace_id, template_id)


async def list_templates(
    db: AsyncSession,
    workspace_id: uuid.UUID,
    active_only: bool = False,
    today: date | None = None,
) -> list[RecurringTemplate]:
    if active_only:
        return await projection_service.active_templates(db, workspace_id, today or date.today())

    result = await db.execute(
        select(RecurringTemplate)
        .where(RecurringTemplate.workspace_id == workspace_id)
        .order_by(RecurringTemplate.created_at)
    )
    return list(result.scalars().all())


async def update_template(
    db: AsyncSession,
    workspace_id: uuid.UUID,
    template_id: uuid.UUID,
    fields: dict[str, Any],
    today: date | None = None,
    publisher: EventPublisher | None = None,
) -> tuple[RecurringTemplate, GenerationResult]:
    """
    Change a template and bring its projections in line.

    Order matters: rows past a new, earlier end date are trimmed first,
    then the untouched future rows are regenerated from the new values.
    """
    if today is None:
        today = date.today()

    template = await get_template(db, workspace_id, template_id)
    for key, value in fields.items():
        if key not in EDITABLE_FIELDS:
            continue
        if value is None and key in REQUIRED_FIELDS:
            continue
        setattr(template, key, value)

    _validate(template)
    template.settlement_intent = await _resolve_intent(
        db, workspace_id, template.account_id, template.settlement_intent
    )
    await db.flush()

    await projection_service.cleanup_beyond_end_date(db, template, today=today)
    result = await projection_service.regenerate_projections_for_template(
        db, workspace_id, template.id, today=today, publisher=publisher
    )

    events.publish(
        db, publisher, workspace_id, events.ENTITY_RECURRING, events.CHANGE_UPDATED, _serialize(template)
    )
    return template, result


async def delete_template(
    db: AsyncSession,
    workspace_id: uuid.UUID,
    template_id: uuid.UUID,
    today: date | None = None,
    publisher: EventPublisher | None = None,
) -> None:
    """
    Remove a template.

    Untouched future projections go with it; every other row it produced
    stays, detached from the template.
    """
    if today is None:
        today = date.today()

    template = await get_template(db, workspace_id, template_id)
    payload = _serialize(template)

    deleted = await projection_service.delete_untouched_projections(db, template.id, today)
    orphaned = await projection_service.orphan_template_rows(db, template.id)
    await db.execute(
        delete(ProjectionExclusion).where(ProjectionExclusion.template_id == template.id)
    )
    await db.delete(template)
    await db.flush()

    logger.info(
        "Template %s deleted: %d projection(s) removed, %d orphaned",
        template_id, deleted, orphaned,
    )
    events.publish(
        db, publisher, workspace_id, events.ENTITY_RECURRING, events.CHANGE_DELETED, payload
    )

