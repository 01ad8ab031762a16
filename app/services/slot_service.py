import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import NamedTuple

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import NotFoundError, ValidationError
from app.models.slot import Slot
from app.models.user import User
from app.services.dates import (
    day_start,
    sliding_window_end,
    to_naive_utc,
    utc_naive_now,
    week_start,
)
from app.services.timezone import get_utc_working_hours, is_valid_utc_offset

logger = logging.getLogger(__name__)

INSERT_CHUNK_SIZE = 500


class SlotWindow(NamedTuple):
    start: datetime
    end: datetime
    day: datetime  # midnight of the nominal local workday


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


def build_slot_windows(
    timezone_offset: str,
    start_date: date | datetime,
    end_date: date | datetime,
    now: datetime,
) -> list[SlotWindow]:
    """Candidate slots for every workday in [start_date, end_date], as naive UTC.

    The workday test uses the nominal day being scheduled; its 09:00-17:00 local
    span may begin on the previous UTC day and/or end on the next one. Only slots
    starting strictly after ``now`` are returned.
    """
    hours = get_utc_working_hours(timezone_offset)
    step = timedelta(minutes=settings.slot_duration_minutes)
    windows: list[SlotWindow] = []
    day = _as_date(start_date)
    last = _as_date(end_date)
    while day <= last:
        if day.weekday() in settings.workdays:
            base = day_start(day)
            cursor = base + timedelta(days=hours.start.day_adjustment, minutes=hours.start.minutes)
            window_end = base + timedelta(days=hours.end.day_adjustment, minutes=hours.end.minutes)
            while cursor < window_end:
                if cursor > now:
                    windows.append(SlotWindow(cursor, cursor + step, base))
                cursor += step
        day += timedelta(days=1)
    return windows


async def _existing_slot_starts(
    session: AsyncSession, user_id: int, starts: Sequence[datetime]
) -> set[datetime]:
    result = await session.execute(
        select(Slot.start_time).where(
            Slot.user_id == user_id,
            Slot.start_time >= min(starts),
            Slot.start_time <= max(starts),
        )
    )
    return {row[0] for row in result.all()}


async def _insert_ignoring_conflicts(session: AsyncSession, rows: list[dict]) -> int:
    """Insert rows, silently dropping any that collide on (user_id, start_time)."""
    slot_table = Slot.__table__
    dialect = session.get_bind().dialect.name
    if dialect in ("postgresql", "sqlite"):
        insert_fn = pg_insert if dialect == "postgresql" else sqlite_insert
        stmt = (
            insert_fn(slot_table)
            .values(rows)
            .on_conflict_do_nothing(index_elements=["user_id", "start_time"])
            .returning(slot_table.c.id)
        )
        result = await session.execute(stmt)
        return len(result.scalars().all())
    inserted = 0
    for row in rows:
        try:
            async with session.begin_nested():
                await session.execute(insert(slot_table).values(**row))
            inserted += 1
        except IntegrityError:
            continue
    return inserted


async def generate_slots_for_range(
    session: AsyncSession,
    user_id: int,
    start_date: date | datetime,
    end_date: date | datetime,
    now: datetime | None = None,
) -> int:
    """Create the provider's missing slots for [start_date, end_date]. Returns rows inserted."""
    user = await session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    if not is_valid_utc_offset(user.timezone):
        raise ValidationError(f"User {user_id} has no valid timezone")

    now = to_naive_utc(now) if now else utc_naive_now()
    windows = build_slot_windows(user.timezone, start_date, end_date, now)
    if not windows:
        return 0

    existing = await _existing_slot_starts(session, user_id, [w.start for w in windows])
    new_windows = [w for w in windows if w.start not in existing]
    if not new_windows:
        logger.info("No new slots to generate for user %s (all already exist)", user_id)
        return 0

    created_at = utc_naive_now()
    rows = [
        {
            "user_id": user_id,
            "start_time": w.start,
            "end_time": w.end,
            "date": w.day,
            "is_booked": False,
            "created_at": created_at,
            "updated_at": created_at,
        }
        for w in new_windows
    ]
    inserted = 0
    for i in range(0, len(rows), INSERT_CHUNK_SIZE):
        inserted += await _insert_ignoring_conflicts(session, rows[i : i + INSERT_CHUNK_SIZE])
    await session.flush()

    if inserted < len(rows):
        logger.warning(
            "Inserted %d slots, skipped %d duplicates for user %s",
            inserted,
            len(rows) - inserted,
            user_id,
        )
    else:
        logger.info("Generated %d new slots for user %s", inserted, user_id)
    return inserted


async def generate_slots_for_week(
    session: AsyncSession, user_id: int, week_of: date, now: datetime | None = None
) -> int:
    """Generate the Monday-Sunday week containing week_of."""
    monday = week_start(week_of)
    return await generate_slots_for_range(session, user_id, monday, monday + timedelta(days=6), now=now)


async def generate_initial_slots(
    session: AsyncSession, user_id: int, today: date | None = None, now: datetime | None = None
) -> int:
    """Signup window: today through the end of next month."""
    today = today or utc_naive_now().date()
    end = sliding_window_end(today)
    logger.info("Generating initial slots for user %s from %s to %s", user_id, today, end)
    return await generate_slots_for_range(session, user_id, today, end, now=now)


async def find_furthest_slot_date(session: AsyncSession, user_id: int) -> date | None:
    result = await session.execute(select(func.max(Slot.date)).where(Slot.user_id == user_id))
    furthest = result.scalar_one_or_none()
    return _as_date(furthest) if furthest is not None else None


class OutcomeStatus(str, Enum):
    GENERATED = "generated"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class ProviderOutcome:
    user_id: int
    status: OutcomeStatus
    created: int = 0
    error: str | None = None


@dataclass
class MonthlyGenerationReport:
    target_end: date
    outcomes: list[ProviderOutcome] = field(default_factory=list)

    @property
    def total_created(self) -> int:
        return sum(o.created for o in self.outcomes)

    @property
    def failed(self) -> list[ProviderOutcome]:
        return [o for o in self.outcomes if o.status is OutcomeStatus.FAILED]


async def extend_provider_window(
    session: AsyncSession,
    user_id: int,
    today: date,
    target_end: date,
    now: datetime | None = None,
) -> ProviderOutcome:
    furthest = await find_furthest_slot_date(session, user_id)
    if furthest is None:
        start = today
        logger.info("No existing slots for user %s, generating from today", user_id)
    elif furthest >= target_end:
        logger.info("User %s already has slots until %s, skipping", user_id, furthest)
        return ProviderOutcome(user_id, OutcomeStatus.SKIPPED)
    else:
        start = furthest + timedelta(days=1)
        logger.info(
            "User %s has slots until %s, generating from %s to %s", user_id, furthest, start, target_end
        )
    created = await generate_slots_for_range(session, user_id, start, target_end, now=now)
    return ProviderOutcome(user_id, OutcomeStatus.GENERATED, created)


async def generate_monthly_slots(
    session_factory: Callable[[], AsyncSession],
    today: date | None = None,
    now: datetime | None = None,
) -> MonthlyGenerationReport:
    """Sliding window: extend every provider's slots to the end of next month.

    Each provider runs in its own transaction; a failure is logged and recorded
    in the report without stopping the batch.
    """
    today = today or utc_naive_now().date()
    report = MonthlyGenerationReport(target_end=sliding_window_end(today))
    logger.info("Starting monthly slot generation for all users (target %s)", report.target_end)

    async with session_factory() as session:
        result = await session.execute(select(User.id).order_by(User.id))
        user_ids = list(result.scalars().all())

    for user_id in user_ids:
        try:
            async with session_factory() as session:
                outcome = await extend_provider_window(session, user_id, today, report.target_end, now=now)
                await session.commit()
        except Exception as e:
            logger.exception("Failed to generate slots for user %s: %s", user_id, e)
            outcome = ProviderOutcome(user_id, OutcomeStatus.FAILED, error=str(e))
        report.outcomes.append(outcome)

    logger.info(
        "Monthly slot generation completed. Total slots generated: %d (%d failed)",
        report.total_created,
        len(report.failed),
    )
    return report


async def delete_past_unbooked_slots(session: AsyncSession, now: datetime | None = None) -> int:
    """Delete slots that ended before now and were never booked. Returns count deleted."""
    now = to_naive_utc(now) if now else utc_naive_now()
    result = await session.execute(
        delete(Slot).where(Slot.end_time < now, Slot.is_booked == False)  # noqa: E712
    )
    await session.flush()
    deleted = result.rowcount or 0
    logger.info("Deleted %d past unbooked slots", deleted)
    return deleted


async def get_slot(session: AsyncSession, slot_id: int) -> Slot | None:
    return await session.get(Slot, slot_id)


async def claim_slot(session: AsyncSession, slot_id: int) -> bool:
    """Flip is_booked false -> true. False means another writer got there first."""
    result = await session.execute(
        update(Slot)
        .where(Slot.id == slot_id, Slot.is_booked == False)  # noqa: E712
        .values(is_booked=True, updated_at=utc_naive_now())
    )
    return result.rowcount == 1


async def release_slot(session: AsyncSession, slot_id: int) -> bool:
    result = await session.execute(
        update(Slot)
        .where(Slot.id == slot_id, Slot.is_booked == True)  # noqa: E712
        .values(is_booked=False, updated_at=utc_naive_now())
    )
    return result.rowcount == 1


def weekday_id(dt: datetime) -> int:
    """0 = Sunday ... 6 = Saturday."""
    return (dt.weekday() + 1) % 7


async def get_slots_for_week(
    session: AsyncSession, user_id: int, week_offset: int = 0, now: datetime | None = None
) -> list[tuple[int, list[Slot]]]:
    """Future slots (booked and free) of the Monday-based week `week_offset` weeks away,
    grouped by UTC weekday of the slot start."""
    now = to_naive_utc(now) if now else utc_naive_now()
    monday = day_start(week_start(now.date())) + timedelta(weeks=week_offset)
    result = await session.execute(
        select(Slot)
        .where(
            Slot.user_id == user_id,
            Slot.date >= monday,
            Slot.date < monday + timedelta(days=7),
            Slot.start_time >= now,
        )
        .order_by(Slot.start_time)
    )
    by_day: dict[int, list[Slot]] = {}
    for slot in result.scalars().all():
        by_day.setdefault(weekday_id(slot.start_time), []).append(slot)
    return sorted(by_day.items())
