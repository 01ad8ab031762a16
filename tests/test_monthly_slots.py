"""Tests for the sliding-window monthly generation and the cleanup sweep."""

from datetime import date, datetime

import pytest
from sqlalchemy import func, select

from app.models.slot import Slot
from app.services.slot_service import (
    OutcomeStatus,
    delete_past_unbooked_slots,
    find_furthest_slot_date,
    generate_monthly_slots,
)

from factories import make_slot, make_user

TODAY = date(2026, 11, 15)
NOW = datetime(2026, 11, 15)


async def _dates(db, user_id: int) -> list[datetime]:
    result = await db.execute(select(Slot.date).where(Slot.user_id == user_id).distinct().order_by(Slot.date))
    return list(result.scalars().all())


@pytest.mark.asyncio
async def test_extends_from_day_after_furthest_slot(db, owner, session_factory):
    await make_slot(db, owner, datetime(2026, 12, 10, 9, 0))

    report = await generate_monthly_slots(session_factory, today=TODAY, now=NOW)

    assert report.target_end == date(2026, 12, 31)
    [outcome] = report.outcomes
    assert outcome.status is OutcomeStatus.GENERATED
    # Dec 11 (Fri), 14-18, 21-25, 28-31
    assert outcome.created == 15 * 16
    dates = await _dates(db, owner.id)
    assert dates[0] == datetime(2026, 12, 10)
    assert dates[1] == datetime(2026, 12, 11)
    assert dates[-1] == datetime(2026, 12, 31)
    result = await db.execute(
        select(func.count()).select_from(Slot).where(
            Slot.user_id == owner.id, Slot.date >= datetime(2026, 12, 1), Slot.date < datetime(2026, 12, 10)
        )
    )
    assert result.scalar_one() == 0


@pytest.mark.asyncio
async def test_provider_without_slots_starts_today(db, owner, session_factory):
    report = await generate_monthly_slots(session_factory, today=TODAY, now=NOW)
    assert report.outcomes[0].status is OutcomeStatus.GENERATED
    dates = await _dates(db, owner.id)
    # Nov 15 is a Sunday, so the first workday is Monday the 16th
    assert dates[0] == datetime(2026, 11, 16)
    assert dates[-1] == datetime(2026, 12, 31)


@pytest.mark.asyncio
async def test_provider_with_enough_lookahead_is_skipped(db, owner, session_factory):
    await make_slot(db, owner, datetime(2026, 12, 31, 9, 0))
    report = await generate_monthly_slots(session_factory, today=TODAY, now=NOW)
    assert report.outcomes[0].status is OutcomeStatus.SKIPPED
    assert report.total_created == 0
    assert await find_furthest_slot_date(db, owner.id) == date(2026, 12, 31)


@pytest.mark.asyncio
async def test_one_failing_provider_does_not_abort_the_batch(db, owner, session_factory):
    broken = await make_user(db, email="broken@example.com", timezone="not-an-offset")
    healthy = await make_user(db, email="healthy@example.com", timezone="-08:00")

    report = await generate_monthly_slots(session_factory, today=TODAY, now=NOW)

    by_user = {o.user_id: o for o in report.outcomes}
    assert by_user[broken.id].status is OutcomeStatus.FAILED
    assert by_user[broken.id].error
    assert by_user[healthy.id].status is OutcomeStatus.GENERATED
    assert by_user[owner.id].status is OutcomeStatus.GENERATED
    assert report.failed == [by_user[broken.id]]
    assert report.total_created == by_user[healthy.id].created + by_user[owner.id].created > 0


@pytest.mark.asyncio
async def test_rerun_creates_nothing_new(db, owner, session_factory):
    first = await generate_monthly_slots(session_factory, today=TODAY, now=NOW)
    second = await generate_monthly_slots(session_factory, today=TODAY, now=NOW)
    assert first.total_created > 0
    assert second.outcomes[0].status is OutcomeStatus.SKIPPED


@pytest.mark.asyncio
async def test_cleanup_deletes_only_past_unbooked(db, owner):
    now = datetime(2026, 11, 10, 12, 0)
    await make_slot(db, owner, datetime(2026, 11, 9, 9, 0))
    booked_past = await make_slot(db, owner, datetime(2025, 1, 6, 9, 0), is_booked=True)
    # Ends exactly at now: not strictly before, stays
    await make_slot(db, owner, datetime(2026, 11, 10, 11, 30))
    future = await make_slot(db, owner, datetime(2026, 11, 11, 9, 0))

    deleted = await delete_past_unbooked_slots(db, now=now)
    await db.commit()

    assert deleted == 1
    result = await db.execute(select(Slot.id).where(Slot.user_id == owner.id))
    remaining = set(result.scalars().all())
    assert booked_past.id in remaining
    assert future.id in remaining
    assert len(remaining) == 3
