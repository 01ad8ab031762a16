"""Fixed UTC offset arithmetic for provider working hours.

Providers carry a signed ``HH:MM`` offset (``+05:30``, ``-08:00``), not an IANA
zone; no daylight-saving adjustment is modelled. UTC = local - offset.
"""

import re
from typing import NamedTuple

from app.core.config import settings
from app.core.exceptions import ValidationError

MINUTES_PER_DAY = 24 * 60

_OFFSET_RE = re.compile(r"^([+-])(\d{2}):(\d{2})$")


class UtcClockTime(NamedTuple):
    hour: int
    minute: int
    day_adjustment: int  # -1, 0 or 1 relative to the local calendar day

    @property
    def minutes(self) -> int:
        return self.hour * 60 + self.minute


class UtcWorkingHours(NamedTuple):
    start: UtcClockTime
    end: UtcClockTime


def parse_utc_offset(offset: str) -> tuple[int, int, int]:
    """Split an offset into (sign, hours, minutes).

    The sign comes from the leading character and applies to both components,
    so ``-00:30`` is thirty minutes behind UTC.
    """
    match = _OFFSET_RE.match(offset or "")
    if not match:
        raise ValidationError(
            f"Timezone must be in UTC offset format (e.g., +05:30, -08:00), got {offset!r}"
        )
    sign = 1 if match.group(1) == "+" else -1
    hours = int(match.group(2))
    minutes = int(match.group(3))
    if hours > 14 or minutes > 59 or (hours == 14 and minutes):
        raise ValidationError(f"Timezone offset out of range: {offset}")
    return sign, hours, minutes


def offset_to_minutes(offset: str) -> int:
    sign, hours, minutes = parse_utc_offset(offset)
    return sign * (hours * 60 + minutes)


def format_utc_offset(total_minutes: int) -> str:
    sign = "-" if total_minutes < 0 else "+"
    hours, minutes = divmod(abs(total_minutes), 60)
    return f"{sign}{hours:02d}:{minutes:02d}"


def is_valid_utc_offset(offset: str) -> bool:
    try:
        parse_utc_offset(offset)
    except ValidationError:
        return False
    return True


def convert_local_to_utc(local_hour: int, local_minute: int, offset: str) -> UtcClockTime:
    if not 0 <= local_hour <= 23 or not 0 <= local_minute <= 59:
        raise ValidationError(f"Invalid local time {local_hour:02d}:{local_minute:02d}")
    total = local_hour * 60 + local_minute - offset_to_minutes(offset)
    # |offset| <= 14h, so the shift never crosses more than one midnight
    day_adjustment, total = divmod(total, MINUTES_PER_DAY)
    hour, minute = divmod(total, 60)
    return UtcClockTime(hour, minute, day_adjustment)


def get_utc_working_hours(offset: str) -> UtcWorkingHours:
    """UTC clock times of the local working-day anchors.

    Start and end are converted independently and may carry different day
    adjustments, e.g. ``-08:00`` gives 17:00 (+0) to 01:00 (+1).
    """
    return UtcWorkingHours(
        start=convert_local_to_utc(settings.local_start_hour, 0, offset),
        end=convert_local_to_utc(settings.local_end_hour, 0, offset),
    )
