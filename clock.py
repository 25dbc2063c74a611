"""Saving the day's clock entry (ponto do dia)."""

from __future__ import annotations

import logging
import sqlite3
from datetime import date
from decimal import Decimal, InvalidOperation

import storage
from errors import DataAccessError, ValidationError
from models import ClockEntry, SessionContext
from reconciler import DEFAULT_DAY_HOURS

logger = logging.getLogger(__name__)

MSG_INVALID_HOURS = "Por favor, informe um número válido de horas."


def parse_total_hours(raw: str) -> Decimal:
    try:
        total = Decimal(raw.strip().replace(",", "."))
    except (InvalidOperation, ValueError):
        raise ValidationError(MSG_INVALID_HOURS)
    if not total.is_finite() or total <= 0:
        raise ValidationError(MSG_INVALID_HOURS)
    return total


def default_hours_text(entry: ClockEntry | None, default: Decimal = DEFAULT_DAY_HOURS) -> str:
    """Initial value of the clock entry form."""
    return str(entry.total_hours if entry else default)


def save_clock_entry(context: SessionContext, day: date, raw_hours: str) -> ClockEntry:
    """Insert the day's clock entry, or update it when one exists."""
    entry = ClockEntry(user_id=context.user_id, date=day, total_hours=parse_total_hours(raw_hours))
    try:
        if storage.get_clock_entry(context.user_id, day):
            storage.update_clock_entry(entry)
        else:
            storage.insert_clock_entry(entry)
    except sqlite3.Error as e:
        logger.error("Erro ao salvar ponto de %s: %s", day, e, exc_info=True)
        raise DataAccessError("Erro ao salvar ponto.") from e
    logger.info("Ponto de %s salvo: %sh", day, entry.total_hours)
    return entry


def remove_clock_entry(context: SessionContext, day: date) -> None:
    """Drop the day's clock entry. Its records stay but no longer count for the month."""
    try:
        storage.delete_clock_entry(context.user_id, day)
    except sqlite3.Error as e:
        logger.error("Erro ao remover ponto de %s: %s", day, e, exc_info=True)
        raise DataAccessError("Erro ao remover ponto.") from e
    logger.info("Ponto de %s removido", day)
