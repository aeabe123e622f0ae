"""
Recurrence Engine

Expands a subscription definition into the dated transaction records that
are due up to a point in time.

DESIGN DECISION: Generation is a pure function of (definition, cursor, now).
Storage, logging and commits belong to the sweep in the orchestrator, so
everything here can be tested without a store.

CRITICAL: The cursor only moves forward. A subscription with a stored
last_generated_date resumes at the occurrence AFTER it, so calling
generate_due again with the same "now" emits nothing.

Cycle arithmetic is calendar-aware (dateutil.relativedelta) and runs in
the configured timezone. Each occurrence is computed from the previous
one, so a month-end start drifts: Jan 31 -> Feb 28 -> Mar 28.
"""

from datetime import datetime, timezone as dt_timezone, tzinfo
from typing import Optional

from dateutil.relativedelta import relativedelta

from inout.models.transaction import (
    CycleUnit,
    GenerationResult,
    SubscriptionDefinition,
    TransactionRecord,
)


class MissingFieldsError(ValueError):
    """A subscription lacks a field needed to generate transactions."""

    def __init__(self, subscription_id, missing: list[str]):
        self.subscription_id = subscription_id
        self.missing = missing
        super().__init__(
            f"Subscription {subscription_id} is missing: {', '.join(missing)}"
        )


_STEP = {
    CycleUnit.DAY: lambda n: relativedelta(days=n),
    CycleUnit.WEEK: lambda n: relativedelta(weeks=n),
    CycleUnit.MONTH: lambda n: relativedelta(months=n),
    CycleUnit.YEAR: lambda n: relativedelta(years=n),
}


def advance(moment: datetime, unit: CycleUnit, count: int, tz: tzinfo) -> datetime:
    """
    Move one cycle forward.

    Month and year steps clamp to the last day of a shorter month
    (Jan 31 + 1 month = Feb 28, Feb 29 + 1 year = Feb 28).
    """
    local = moment.astimezone(tz)
    return (local + _STEP[unit](count)).astimezone(dt_timezone.utc)


def _require_complete(subscription: SubscriptionDefinition) -> None:
    missing = subscription.missing_required_fields()
    if missing:
        raise MissingFieldsError(subscription.id, missing)


def _first_pending(subscription: SubscriptionDefinition, tz: tzinfo) -> datetime:
    if subscription.last_generated_date is None:
        return subscription.start_date
    return advance(
        subscription.last_generated_date,
        subscription.cycle_unit,
        subscription.cycle_count,
        tz,
    )


def _passes_end(moment: datetime, subscription: SubscriptionDefinition) -> bool:
    return subscription.end_date is not None and moment > subscription.end_date


def _materialize(
    subscription: SubscriptionDefinition,
    moment: datetime,
    default_currency: str,
) -> TransactionRecord:
    return TransactionRecord(
        title=subscription.title,
        amount=subscription.amount,
        currency=subscription.currency or default_currency,
        kind=subscription.kind,
        category=subscription.category,
        notes=subscription.notes,
        timestamp=moment,
        subscription_id=subscription.id,
    )


def generate_due(
    subscription: SubscriptionDefinition,
    now: datetime,
    default_currency: str,
    tz: tzinfo = dt_timezone.utc,
) -> GenerationResult:
    """
    Every occurrence after the cursor that is due at `now`.

    Returns:
        GenerationResult with the new records (oldest first), the new
        cursor (unchanged when nothing was due) and whether the
        subscription has run past its end date for good.

    Raises:
        MissingFieldsError: If a required field is absent
    """
    _require_complete(subscription)

    records: list[TransactionRecord] = []
    cursor = subscription.last_generated_date
    pending = _first_pending(subscription, tz)
    terminated = False

    while True:
        if _passes_end(pending, subscription):
            terminated = True
            break
        if pending > now:
            break
        records.append(_materialize(subscription, pending, default_currency))
        cursor = pending
        pending = advance(pending, subscription.cycle_unit, subscription.cycle_count, tz)

    return GenerationResult(records=records, cursor=cursor, terminated=terminated)


# =============================================================================
# SCHEDULE QUERIES
# =============================================================================

def _has_schedule(subscription: SubscriptionDefinition) -> bool:
    return (
        subscription.start_date is not None
        and subscription.cycle_unit is not None
        and subscription.cycle_count is not None
        and subscription.cycle_count >= 1
    )


def next_renewal_date(
    subscription: SubscriptionDefinition,
    now: datetime,
    tz: tzinfo = dt_timezone.utc,
) -> Optional[datetime]:
    """
    First occurrence strictly after `now`.

    None if the schedule is incomplete or that occurrence passes end_date.
    """
    if not _has_schedule(subscription):
        return None

    moment = subscription.start_date
    while moment <= now:
        moment = advance(moment, subscription.cycle_unit, subscription.cycle_count, tz)

    if _passes_end(moment, subscription):
        return None
    return moment


def is_final_renewal(
    next_date: datetime,
    subscription: SubscriptionDefinition,
    tz: tzinfo = dt_timezone.utc,
) -> bool:
    """True if the occurrence after `next_date` would pass end_date."""
    if subscription.end_date is None or not _has_schedule(subscription):
        return False
    following = advance(next_date, subscription.cycle_unit, subscription.cycle_count, tz)
    return _passes_end(following, subscription)


def is_expired(
    subscription: SubscriptionDefinition,
    now: datetime,
    tz: tzinfo = dt_timezone.utc,
) -> bool:
    """The end date is behind us and no renewal is left."""
    if subscription.end_date is None or now <= subscription.end_date:
        return False
    return next_renewal_date(subscription, now, tz) is None


def describe_cycle(count: int, unit: CycleUnit) -> str:
    """Human-readable cycle, e.g. "Every month" or "Every 3 weeks"."""
    name = unit.value.lower()
    if count == 1:
        return f"Every {name}"
    return f"Every {count} {name}s"
