"""Date and display helpers for the monthly calendar."""

from __future__ import annotations

from calendar import monthrange
from datetime import date, timedelta
from decimal import Decimal


MONTH_NAMES = [
    "janeiro", "fevereiro", "março", "abril", "maio", "junho",
    "julho", "agosto", "setembro", "outubro", "novembro", "dezembro",
]

# Calendar columns start on Sunday
WEEKDAY_HEADERS = ["Dom", "Seg", "Ter", "Qua", "Qui", "Sex", "Sáb"]


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """Get the first and last day of a month."""
    return date(year, month, 1), date(year, month, monthrange(year, month)[1])


def date_key(d: date) -> str:
    """ISO key (yyyy-MM-dd) used for day status lookups."""
    return d.isoformat()


def format_date_br(d: date) -> str:
    return d.strftime("%d/%m/%Y")


def month_title(year: int, month: int) -> str:
    return f"{MONTH_NAMES[month - 1]} {year}"


def shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    """Move ``delta`` months forwards (or backwards) from year/month."""
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def get_month_weeks(year: int, month: int) -> list[list[date | None]]:
    """Get the month's days as Sunday-first weeks, padded with None."""
    first_day, last_day = month_bounds(year, month)
    # Sunday = 6 in weekday()
    leading = (first_day.weekday() + 1) % 7

    weeks: list[list[date | None]] = []
    week: list[date | None] = [None] * leading
    current = first_day
    while current <= last_day:
        week.append(current)
        if len(week) == 7:
            weeks.append(week)
            week = []
        current += timedelta(days=1)

    if week:
        week.extend([None] * (7 - len(week)))
        weeks.append(week)

    return weeks


def format_hours_display(hours) -> str:
    """Hours without trailing zeros: 9.0 -> "9", 4.50 -> "4.5"."""
    return f"{Decimal(hours).normalize():f}"
