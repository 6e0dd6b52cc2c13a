"""Cadence resolution: monthly equivalents and next occurrences.

Pure functions over a recurring schedule description. ``today`` is always
passed in explicitly so results are reproducible.
"""

import calendar
import logging
import math
import re
from datetime import date, datetime, timedelta

from fincast.models.schemas import Cadence, CustomCadenceUnit, finite_or_zero

logger = logging.getLogger("fincast")

# Average Gregorian year length in days.
DAYS_PER_YEAR = 365.2425

# Upper bound on months probed when looking for a month-cycle occurrence.
MONTH_SEARCH_LIMIT = 36

# Upper bound on monthly cycles counted since an anchor (50 years).
MAX_COMPLETED_CYCLES = 600

_MONTH_KEY_RE = re.compile(r"^\d{4}-\d{2}$")

_FIXED_MONTH_CYCLES = {
    Cadence.MONTHLY: 1,
    Cadence.QUARTERLY: 3,
    Cadence.YEARLY: 12,
}


# --- Calendar helpers ---


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def clamped_date(year: int, month: int, day: int) -> date:
    """Build a date, clamping *day* into 1..days-in-month.

    *month* may fall outside 1..12; it rolls over into adjacent years.
    """
    total = year * 12 + (month - 1)
    year, month = divmod(total, 12)
    month += 1
    day = min(max(day, 1), days_in_month(year, month))
    return date(year, month, day)


def add_months_keeping_day(value: date, months: int) -> date:
    return clamped_date(value.year, value.month + months, value.day)


def months_between(start: date, end: date) -> int:
    """Whole calendar months from *start*'s month to *end*'s month."""
    return (end.year - start.year) * 12 + (end.month - start.month)


def month_key(value: date) -> str:
    return value.strftime("%Y-%m")


def parse_month_key(value: str) -> date | None:
    """Return the first day of a ``YYYY-MM`` month, or None if malformed."""
    if not isinstance(value, str) or not _MONTH_KEY_RE.match(value):
        return None
    year, month = int(value[:4]), int(value[5:7])
    if not 1 <= month <= 12:
        return None
    return date(year, month, 1)


def last_day_of_month(value: date) -> date:
    return value.replace(day=days_in_month(value.year, value.month))


def anchor_date(anchor: datetime | date) -> date:
    """Date part of an anchor instant; time of day is ignored."""
    if isinstance(anchor, datetime):
        return anchor.date()
    return anchor


# --- Monthly equivalents ---


def monthly_equivalent(
    amount: float,
    cadence: Cadence,
    custom_interval: float | None = None,
    custom_unit: CustomCadenceUnit | None = None,
) -> float:
    """Normalize an amount paid on *cadence* to a per-month figure.

    Malformed custom parameters and one-time cadences yield 0.
    """
    amount = finite_or_zero(amount)

    if cadence == Cadence.WEEKLY:
        return amount * 52 / 12
    if cadence == Cadence.BIWEEKLY:
        return amount * 26 / 12
    if cadence == Cadence.MONTHLY:
        return amount
    if cadence == Cadence.QUARTERLY:
        return amount / 3
    if cadence == Cadence.YEARLY:
        return amount / 12
    if cadence == Cadence.ONE_TIME:
        return 0.0
    if cadence == Cadence.CUSTOM:
        interval = finite_or_zero(custom_interval)
        if interval <= 0 or custom_unit is None:
            logger.debug("Custom cadence without interval/unit contributes 0")
            return 0.0
        if custom_unit == CustomCadenceUnit.DAYS:
            return amount * DAYS_PER_YEAR / (interval * 12)
        if custom_unit == CustomCadenceUnit.WEEKS:
            return amount * DAYS_PER_YEAR / (interval * 7 * 12)
        if custom_unit == CustomCadenceUnit.MONTHS:
            return amount / interval
        if custom_unit == CustomCadenceUnit.YEARS:
            return amount / (interval * 12)
    return 0.0


# --- Next occurrence ---


def _whole_interval(custom_interval: float | None) -> int | None:
    interval = finite_or_zero(custom_interval)
    if interval < 1:
        return None
    return int(interval)


def _next_by_day_step(start: date, step_days: int, today: date) -> date:
    """First date ``start + k*step_days`` (k >= 0) that is on or after today."""
    if start >= today:
        return start
    steps = math.ceil((today - start).days / step_days)
    return start + timedelta(days=steps * step_days)


def _next_by_month_cycle(
    day: int,
    cycle_months: int,
    anchor: date,
    today: date,
) -> date | None:
    anchor_month = anchor.replace(day=1)
    for offset in range(MONTH_SEARCH_LIMIT):
        candidate = clamped_date(today.year, today.month + offset, day)
        diff = months_between(anchor_month, candidate)
        if candidate >= today and diff >= 0 and diff % cycle_months == 0:
            return candidate
    logger.debug(
        "No occurrence within %d months (cycle=%d, anchor=%s)",
        MONTH_SEARCH_LIMIT, cycle_months, anchor,
    )
    return None


def next_occurrence(
    cadence: Cadence,
    anchor: datetime | date,
    today: date,
    day_of_month: int | None = None,
    custom_interval: float | None = None,
    custom_unit: CustomCadenceUnit | None = None,
) -> date | None:
    """Resolve the next calendar occurrence on or after *today*.

    Returns ``None`` for one-time cadences, malformed custom cadences, and
    month cycles with no match inside :data:`MONTH_SEARCH_LIMIT` months.
    """
    start = anchor_date(anchor)
    day = min(max(day_of_month if day_of_month is not None else start.day, 1), 31)

    if cadence == Cadence.ONE_TIME:
        return None
    if cadence == Cadence.WEEKLY:
        return _next_by_day_step(start, 7, today)
    if cadence == Cadence.BIWEEKLY:
        return _next_by_day_step(start, 14, today)
    if cadence == Cadence.CUSTOM:
        interval = _whole_interval(custom_interval)
        if interval is None or custom_unit is None:
            return None
        if custom_unit == CustomCadenceUnit.DAYS:
            return _next_by_day_step(start, interval, today)
        if custom_unit == CustomCadenceUnit.WEEKS:
            return _next_by_day_step(start, interval * 7, today)
        cycle = interval if custom_unit == CustomCadenceUnit.MONTHS else interval * 12
        return _next_by_month_cycle(day, cycle, start, today)

    cycle = _FIXED_MONTH_CYCLES.get(cadence)
    if cycle is None:
        return None
    return _next_by_month_cycle(day, cycle, start, today)


def count_completed_monthly_cycles(anchor: datetime | date, today: date) -> int:
    """Count whole monthly cycles elapsed from *anchor* up to *today*."""
    marker = anchor_date(anchor)
    cycles = 0
    for _ in range(MAX_COMPLETED_CYCLES):
        following = add_months_keeping_day(marker, 1)
        if following > today:
            break
        marker = following
        cycles += 1
    return cycles
