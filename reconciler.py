"""Keeps a worked-hours field and a percentage-of-day field in step.

Editing either field rewrites the other from the day's reference hours, which
is the clock entry's total when one exists and the configured default (8h)
otherwise. The most recent edit always wins.
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

DEFAULT_DAY_HOURS = Decimal("8")

_NON_DIGIT = re.compile(r"[^\d]")
_NON_NUMERIC = re.compile(r"[^\d.]")


def _to_decimal(value) -> Decimal:
    """Parse a number leniently, treating anything unparseable as zero."""
    if isinstance(value, Decimal):
        return value
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return Decimal("0")
    return result if result.is_finite() else Decimal("0")


def format_hours(raw: str) -> str:
    """Keep digits and the first decimal point."""
    cleaned = _NON_NUMERIC.sub("", raw)
    head, dot, tail = cleaned.partition(".")
    return head + dot + tail.replace(".", "")


def clamp_percentage(value: int) -> int:
    return min(100, max(0, value))


def format_percentage(raw: str) -> str:
    """Keep digits, then clamp to 0-100. Empty input becomes "0"."""
    cleaned = _NON_DIGIT.sub("", raw)
    value = int(cleaned) if cleaned else 0
    return str(clamp_percentage(value))


def percentage_from_hours(hours, total_day_hours) -> int:
    total = _to_decimal(total_day_hours)
    if total <= 0:
        return 0
    percentage = (_to_decimal(hours) / total * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return clamp_percentage(int(percentage))


def hours_from_percentage(percentage, total_day_hours) -> str:
    hours = _to_decimal(percentage) / 100 * _to_decimal(total_day_hours)
    return str(hours.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


class TimePercentageReconciler:
    """State behind the paired Horas / Porcentagem inputs."""

    def __init__(self, total_day_hours=DEFAULT_DAY_HOURS, hours: str = "", percentage: str = ""):
        self.total_day_hours = total_day_hours
        self.hours = hours
        self.percentage = percentage
        self.last_changed = "hours"

    def set_hours(self, raw: str) -> str:
        """Store cleaned hours and recompute the percentage. Returns the percentage."""
        self.hours = format_hours(raw)
        self.percentage = str(percentage_from_hours(self.hours, self.total_day_hours))
        self.last_changed = "hours"
        return self.percentage

    def set_percentage(self, raw: str) -> str:
        """Store the clamped percentage and recompute the hours. Returns the hours."""
        self.percentage = format_percentage(raw)
        self.hours = hours_from_percentage(self.percentage, self.total_day_hours)
        self.last_changed = "percentage"
        return self.hours
