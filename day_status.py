"""Monthly day-completion status.

A day is only tracked once it has a clock entry. Records on a date without one
are left out of the result entirely.
"""

from __future__ import annotations

import logging
import sqlite3
from collections import defaultdict
from decimal import Decimal
from typing import Iterable

import storage
from errors import DataAccessError
from models import AllocationRecord, ClockEntry, DayStatus
from utils import date_key

logger = logging.getLogger(__name__)


def sum_hours_by_date(records: Iterable[AllocationRecord]) -> dict[str, Decimal]:
    totals: dict[str, Decimal] = defaultdict(lambda: Decimal("0"))
    for record in records:
        totals[date_key(record.date)] += Decimal(record.worked_hours)
    return dict(totals)


def classify_day(allocated: Decimal, clocked: Decimal) -> DayStatus:
    if allocated <= 0:
        return DayStatus.NONE
    if allocated >= clocked:
        return DayStatus.COMPLETE
    return DayStatus.INCOMPLETE


def compute_day_status(
    clock_entries: Iterable[ClockEntry],
    records: Iterable[AllocationRecord],
) -> dict[str, DayStatus]:
    """Map each clocked date (yyyy-MM-dd) to its completion status."""
    allocated = sum_hours_by_date(records)
    return {
        date_key(entry.date): classify_day(
            allocated.get(date_key(entry.date), Decimal("0")),
            entry.total_hours,
        )
        for entry in clock_entries
    }


def month_day_status(user_id: str, year: int, month: int) -> dict[str, DayStatus]:
    """Recompute the status of every clocked day in a month."""
    try:
        clock_entries = storage.get_clock_entries_for_month(user_id, year, month)
        records = storage.get_records_for_month(user_id, year, month)
    except sqlite3.Error as e:
        logger.error("Erro ao calcular status do mês %04d-%02d: %s", year, month, e, exc_info=True)
        raise DataAccessError("Erro ao carregar status do mês.") from e
    return compute_day_status(clock_entries, records)
