"""Periodic triggers: monthly sliding-window slot generation and daily slot cleanup.

Both run as asyncio tasks started from the FastAPI lifespan. All times are UTC.
"""

import asyncio
import calendar
import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.db import async_session_maker
from app.services.dates import add_months, utc_naive_now
from app.services.slot_service import (
    MonthlyGenerationReport,
    delete_past_unbooked_slots,
    generate_monthly_slots,
)

logger = logging.getLogger(__name__)


def next_daily_run(now: datetime, hour: int) -> datetime:
    run = now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if run <= now:
        run += timedelta(days=1)
    return run


def _monthly_run_in(year: int, month: int, day: int, hour: int) -> datetime:
    return datetime(year, month, min(day, calendar.monthrange(year, month)[1]), hour)


def next_monthly_run(now: datetime, day: int, hour: int) -> datetime:
    """Next run on `day` of the month; the day is clamped to short months (31 -> Feb 28)."""
    run = _monthly_run_in(now.year, now.month, day, hour)
    if run <= now:
        following = add_months(now.date().replace(day=1), 1)
        run = _monthly_run_in(following.year, following.month, day, hour)
    return run


async def run_slot_cleanup(
    session_factory: Callable[[], AsyncSession] = async_session_maker,
) -> int:
    """Delete past unbooked slots. Errors are logged, never raised."""
    try:
        async with session_factory() as session:
            try:
                n = await delete_past_unbooked_slots(session)
                await session.commit()
            except Exception:
                await session.rollback()
                raise
        logger.info("Daily slot cleanup completed. Deleted %d past unbooked slots", n)
        return n
    except Exception as e:
        logger.exception("Daily slot cleanup failed: %s", e)
        return 0


async def run_monthly_slot_generation(
    session_factory: Callable[[], AsyncSession] = async_session_maker,
) -> MonthlyGenerationReport | None:
    try:
        return await generate_monthly_slots(session_factory)
    except Exception as e:
        logger.exception("Monthly slot generation failed: %s", e)
        return None


async def _sleep_until(when: datetime) -> None:
    delay = (when - utc_naive_now()).total_seconds()
    if delay > 0:
        await asyncio.sleep(delay)


async def _daily_cleanup_loop() -> None:
    while True:
        await _sleep_until(next_daily_run(utc_naive_now(), settings.daily_cleanup_hour))
        await run_slot_cleanup()


async def _monthly_generation_loop() -> None:
    while True:
        await _sleep_until(
            next_monthly_run(utc_naive_now(), settings.monthly_generation_day, settings.monthly_generation_hour)
        )
        await run_monthly_slot_generation()


def start_jobs() -> list[asyncio.Task]:
    logger.info(
        "Jobs scheduled: monthly slot generation on day %d at %02d:00 UTC, daily cleanup at %02d:00 UTC",
        settings.monthly_generation_day,
        settings.monthly_generation_hour,
        settings.daily_cleanup_hour,
    )
    return [
        asyncio.create_task(_monthly_generation_loop()),
        asyncio.create_task(_daily_cleanup_loop()),
    ]


async def stop_jobs(tasks: list[asyncio.Task]) -> None:
    for task in tasks:
        task.cancel()
    for task in tasks:
        try:
            await task
        except asyncio.CancelledError:
            pass
