"""In-game clock: advancing and formatting TimeState.

Months are a flat 30 days. Years are named by the sexagenary cycle
(heavenly stem + earthly branch), starting from Jia-Zi in year 1.
"""

from __future__ import annotations

from jianghu.models import TimeState
from jianghu.rules import DAYS_PER_MONTH, HOURS_PER_DAY, MONTHS_PER_YEAR, TICKS_PER_HOUR

HEAVENLY_STEMS = ["Jia", "Yi", "Bing", "Ding", "Wu", "Ji", "Geng", "Xin", "Ren", "Gui"]
EARTHLY_BRANCHES = ["Zi", "Chou", "Yin", "Mao", "Chen", "Si", "Wu", "Wei", "Shen", "You", "Xu", "Hai"]


def advance_time(time: TimeState, ticks: int) -> TimeState:
    """Return a new TimeState `ticks` later, carrying into hour/day/month/year."""
    if ticks < 0:
        raise ValueError("Time only moves forward")
    if ticks == 0:
        return time

    tick = time.tick + ticks
    hour = time.hour + tick // TICKS_PER_HOUR
    tick %= TICKS_PER_HOUR

    day = time.day + hour // HOURS_PER_DAY
    hour %= HOURS_PER_DAY

    # day and month are 1-based
    month = time.month + (day - 1) // DAYS_PER_MONTH
    day = (day - 1) % DAYS_PER_MONTH + 1

    year = time.year + (month - 1) // MONTHS_PER_YEAR
    month = (month - 1) % MONTHS_PER_YEAR + 1

    return TimeState(year=year, month=month, day=day, hour=hour, tick=tick)


def format_time(time: TimeState) -> str:
    """Label such as "Jia-Zi year, month 1, day 1, hour 6"."""
    cycle = (time.year - 1) % 60
    stem = HEAVENLY_STEMS[cycle % 10]
    branch = EARTHLY_BRANCHES[cycle % 12]
    return f"{stem}-{branch} year, month {time.month}, day {time.day}, hour {time.hour}"
