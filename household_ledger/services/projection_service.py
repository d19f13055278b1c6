"""
Projection service — materializing recurring templates as transactions.

Every path that creates rows from templates goes through ensure_generated(),
which fills in one template's months from the current month through a
given month. It is idempotent: a month that already has a live row, or
that the user excluded, is counted as skipped.

Entry points:
  - generate_projections: every active template, `months_ahead` months out
  - generate_projections_for_month: every template, one month
  - ensure_workspace_generated: on-access extension for list queries
  - regenerate_projections_for_template: after a template edit, drop the
    untouched future rows and generate again

What regeneration may delete:
  Only rows that are still pure projections: generated, dated today or
  later, unpaid, unbilled and never edited (is_modified). Anything else is
  the user's history and is kept. When a template ends early or is
  removed, such rows are orphaned (template_id cleared) instead.

Error policy:
  Generation is best-effort. A failure for one template/month is logged,
  recorded in `errors` and the loop moves on. Each insert runs in its own
  SAVEPOINT so a failed month leaves the session usable. A duplicate-key
  rejection (two generators racing for the same month) counts as skipped.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy import delete, exists, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from household_ledger import events
from household_ledger.config import settings
from household_ledger.dates import add_months, calculate_actual_due_date, iter_month_starts, month_start
from household_ledger.events import EventPublisher
from household_ledger.exceptions import DuplicateProjectionError, LedgerError, TemplateNotFoundError
from household_ledger.models.recurring_template import ProjectionExclusion, RecurringTemplate
from household_ledger.models.transaction import Transaction, TransactionSource

logger = logging.getLogger(__name__)

GENERATED = "generated"
SKIPPED = "skipped"


@dataclass
class GenerationResult:
    generated: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)

    def merge(self, other: "GenerationResult") -> "GenerationResult":
        self.generated += other.generated
        self.skipped += other.skipped
        self.errors.extend(other.errors)
        return self


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

async def get_template(
    db: AsyncSession, workspace_id: uuid.UUID, template_id: uuid.UUID
) -> RecurringTemplate:
    result = await db.execute(
        select(RecurringTemplate).where(
            RecurringTemplate.id == template_id,
            RecurringTemplate.workspace_id == workspace_id,
        )
    )
    template = result.scalar_one_or_none()
    if template is None:
        raise TemplateNotFoundError(template_id)
    return template


async def active_templates(
    db: AsyncSession, workspace_id: uuid.UUID, today: date
) -> list[RecurringTemplate]:
    """Templates that are open-ended or end in the current month or later."""
    result = await db.execute(
        select(RecurringTemplate)
        .where(
            RecurringTemplate.workspace_id == workspace_id,
            (RecurringTemplate.end_date.is_(None))
            | (RecurringTemplate.end_date >= month_start(today)),
        )
        .order_by(RecurringTemplate.created_at)
    )
    return list(result.scalars().all())


async def _month_is_taken(db: AsyncSession, template: RecurringTemplate, target: date) -> bool:
    instance = exists().where(
        Transaction.workspace_id == template.workspace_id,
        Transaction.template_id == template.id,
        Transaction.projection_month == target,
        Transaction.deleted_at.is_(None),
    )
    exclusion = exists().where(
        ProjectionExclusion.workspace_id == template.workspace_id,
        ProjectionExclusion.template_id == template.id,
        ProjectionExclusion.excluded_month == target,
    )
    result = await db.execute(select(instance | exclusion))
    return bool(result.scalar())


def _untouched_projection(template_id: uuid.UUID, today: date):
    return (
        (Transaction.template_id == template_id)
        & Transaction.is_projected.is_(True)
        & Transaction.is_paid.is_(False)
        & Transaction.is_modified.is_(False)
        & Transaction.billed_at.is_(None)
        & Transaction.deleted_at.is_(None)
        & (Transaction.transaction_date >= today)
    )


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------

async def _insert_projection(db: AsyncSession, txn: Transaction, target: date) -> None:
    try:
        async with db.begin_nested():
            db.add(txn)
            await db.flush()
    except IntegrityError as exc:
        raise DuplicateProjectionError(txn.template_id, target.year, target.month) from exc


async def generate_single_projection(
    db: AsyncSession,
    template: RecurringTemplate,
    year: int,
    month: int,
    today: date | None = None,
) -> str:
    """
    Materialize one month of a template.

    Returns GENERATED or SKIPPED. Months outside the template's range,
    months already generated and excluded months are skipped.
    """
    if today is None:
        today = date.today()
    target = date(year, month, 1)

    if target < month_start(template.start_date):
        return SKIPPED
    if template.end_date is not None and target > month_start(template.end_date):
        return SKIPPED
    if await _month_is_taken(db, template, target):
        return SKIPPED

    due_date = calculate_actual_due_date(template.due_day, year, month)
    txn = Transaction(
        workspace_id=template.workspace_id,
        account_id=template.account_id,
        name=template.description,
        amount_cents=template.amount_cents,
        type=template.type,
        transaction_date=due_date,
        is_paid=False,
        notes=template.notes,
        category_id=template.category_id,
        settlement_intent=template.settlement_intent,
        source=TransactionSource.RECURRING,
        template_id=template.id,
        projection_month=target,
        is_projected=due_date >= today,
    )

    try:
        await _insert_projection(db, txn, target)
    except DuplicateProjectionError:
        logger.warning(
            "Template %s already generated for %d-%02d, skipping", template.id, year, month
        )
        return SKIPPED
    return GENERATED


async def ensure_generated(
    db: AsyncSession,
    template: RecurringTemplate,
    through_month: date,
    today: date | None = None,
) -> GenerationResult:
    """
    Generate `template` for every month from now through `through_month`.

    The walk starts at the later of the template's first month and the
    current month, and stops at the earlier of `through_month` and the
    template's last month. Past months are never back-filled.
    """
    if today is None:
        today = date.today()

    first = max(month_start(template.start_date), month_start(today))
    last = month_start(through_month)
    if template.end_date is not None:
        last = min(last, month_start(template.end_date))

    result = GenerationResult()
    for target in iter_month_starts(first, last):
        try:
            outcome = await generate_single_projection(
                db, template, target.year, target.month, today=today
            )
        except (SQLAlchemyError, LedgerError) as exc:
            message = f"Failed to generate {target:%Y-%m} for {template.description}: {exc}"
            logger.warning(message)
            result.errors.append(message)
            continue

        if outcome == GENERATED:
            result.generated += 1
        else:
            result.skipped += 1

    logger.debug(
        "Template %s through %s: %d generated, %d skipped",
        template.id, last, result.generated, result.skipped,
    )
    return result


def _publish_sync(
    db: AsyncSession,
    publisher: EventPublisher | None,
    workspace_id: uuid.UUID,
    result: GenerationResult,
    **extra,
) -> None:
    if result.generated == 0:
        return
    events.publish(
        db,
        publisher,
        workspace_id,
        events.ENTITY_PROJECTION,
        events.CHANGE_SYNCED,
        {"generated": result.generated, "skipped": result.skipped, **extra},
    )


async def generate_projections(
    db: AsyncSession,
    workspace_id: uuid.UUID,
    months_ahead: int | None = None,
    today: date | None = None,
    publisher: EventPublisher | None = None,
) -> GenerationResult:
    """
    Bulk horizon generation for every active template in the workspace.

    Args:
        months_ahead: Horizon in months; defaults to PROJECTION_MONTHS_AHEAD.
    """
    if today is None:
        today = date.today()
    if months_ahead is None:
        months_ahead = settings.PROJECTION_MONTHS_AHEAD

    through = add_months(month_start(today), months_ahead)
    result = GenerationResult()
    for template in await active_templates(db, workspace_id, today):
        result.merge(await ensure_generated(db, template, through, today=today))

    logger.info(
        "Workspace %s projections through %s: %d generated, %d skipped, %d errors",
        workspace_id, through, result.generated, result.skipped, len(result.errors),
    )
    _publish_sync(db, publisher, workspace_id, result)
    return result


async def generate_projections_for_month(
    db: AsyncSession,
    workspace_id: uuid.UUID,
    year: int,
    month: int,
    today: date | None = None,
    publisher: EventPublisher | None = None,
) -> GenerationResult:
    """
    Generate a single month for every template of the workspace.

    Months before the current one are not back-filled; every template
    counts as skipped for them.
    """
    if today is None:
        today = date.today()
    target = date(year, month, 1)

    result = GenerationResult()
    for template in await active_templates(db, workspace_id, today):
        if target < month_start(today):
            result.skipped += 1
            continue
        try:
            outcome = await generate_single_projection(db, template, year, month, today=today)
        except (SQLAlchemyError, LedgerError) as exc:
            message = f"Failed to generate {target:%Y-%m} for {template.description}: {exc}"
            logger.warning(message)
            result.errors.append(message)
            continue
        if outcome == GENERATED:
            result.generated += 1
        else:
            result.skipped += 1

    _publish_sync(db, publisher, workspace_id, result, month=f"{target:%Y-%m}")
    return result


async def ensure_workspace_generated(
    db: AsyncSession,
    workspace_id: uuid.UUID,
    through_date: date,
    today: date | None = None,
) -> GenerationResult:
    """
    On-access extension: make sure every active template reaches `through_date`.

    Reads never generate past the rolling horizon, PROJECTION_MONTHS_AHEAD
    months from the current month, however far out they ask.
    """
    if today is None:
        today = date.today()
    horizon = add_months(month_start(today), settings.PROJECTION_MONTHS_AHEAD)
    through_date = min(through_date, horizon)

    result = GenerationResult()
    for template in await active_templates(db, workspace_id, today):
        result.merge(await ensure_generated(db, template, through_date, today=today))
    return result


# ---------------------------------------------------------------------------
# Regeneration and cleanup
# ---------------------------------------------------------------------------

async def delete_untouched_projections(
    db: AsyncSession,
    template_id: uuid.UUID,
    today: date,
    after_month: date | None = None,
) -> int:
    """
    Hard-delete future rows of a template that nobody has touched.

    Args:
        after_month: Only rows generated for months after this one.
    """
    condition = _untouched_projection(template_id, today)
    if after_month is not None:
        condition = condition & (Transaction.projection_month > after_month)

    result = await db.execute(delete(Transaction).where(condition))
    return result.rowcount


async def orphan_template_rows(
    db: AsyncSession,
    template_id: uuid.UUID,
    after_month: date | None = None,
) -> int:
    """Detach remaining rows from a template, keeping them as plain history."""
    query = update(Transaction).where(Transaction.template_id == template_id)
    if after_month is not None:
        query = query.where(Transaction.projection_month > after_month)

    result = await db.execute(query.values(template_id=None))
    return result.rowcount


async def cleanup_beyond_end_date(
    db: AsyncSession,
    template: RecurringTemplate,
    today: date | None = None,
) -> tuple[int, int]:
    """
    Apply an end date to rows already generated past it.

    Returns:
        Tuple of (deleted, orphaned).
    """
    if template.end_date is None:
        return 0, 0
    if today is None:
        today = date.today()

    boundary = month_start(template.end_date)
    deleted = await delete_untouched_projections(db, template.id, today, after_month=boundary)
    orphaned = await orphan_template_rows(db, template.id, after_month=boundary)
    if deleted or orphaned:
        logger.info(
            "Template %s ends %s: %d projection(s) deleted, %d orphaned",
            template.id, template.end_date, deleted, orphaned,
        )
    return deleted, orphaned


async def regenerate_projections_for_template(
    db: AsyncSession,
    workspace_id: uuid.UUID,
    template_id: uuid.UUID,
    months_ahead: int | None = None,
    today: date | None = None,
    publisher: EventPublisher | None = None,
) -> GenerationResult:
    """
    Replace a template's untouched future projections with fresh ones.

    Paid, billed, edited and past rows are left as they are; the months
    they occupy are skipped by the regeneration.

    Raises:
        TemplateNotFoundError: If the template is not in the workspace.
    """
    if today is None:
        today = date.today()
    if months_ahead is None:
        months_ahead = settings.PROJECTION_MONTHS_AHEAD

    template = await get_template(db, workspace_id, template_id)
    removed = await delete_untouched_projections(db, template.id, today)

    through = add_months(month_start(today), months_ahead)
    result = await ensure_generated(db, template, through, today=today)

    logger.info(
        "Template %s regenerated: %d removed, %d generated, %d skipped",
        template.id, removed, result.generated, result.skipped,
    )
    _publish_sync(db, publisher, workspace_id, result, template_id=str(template.id))
    return result
