"""Custom widgets for the work sync application."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from textual.message import Message
from textual.widgets import Static
from rich.text import Text

from models import ClockEntry, DayStatus
from utils import (
    WEEKDAY_HEADERS,
    date_key,
    format_date_br,
    format_hours_display,
    get_month_weeks,
    month_title,
)

STATUS_STYLES = {
    DayStatus.COMPLETE: "bold white on blue",
    DayStatus.INCOMPLETE: "bold white on red",
    DayStatus.NONE: "dim",
}

LEGEND = [
    (DayStatus.COMPLETE, "Completo"),
    (DayStatus.INCOMPLETE, "Incompleto"),
    (DayStatus.NONE, "Sem registro"),
]

CELL_WIDTH = 5
# Title and weekday header come before the first week row
GRID_TOP = 2


class CalendarGrid(Static):
    """Month grid with one coloured cell per day."""

    class DaySelected(Message):
        def __init__(self, day: date) -> None:
            super().__init__()
            self.day = day

    def __init__(self, year: int, month: int, **kwargs):
        super().__init__(**kwargs)
        self.year = year
        self.month = month
        self.selected: date | None = None
        self.statuses: dict[str, DayStatus] = {}
        self.holidays: dict[date, str] = {}
        self.weeks = get_month_weeks(year, month)

    def update_display(
        self,
        year: int,
        month: int,
        selected: date | None,
        statuses: dict[str, DayStatus],
        holidays: dict[date, str] | None = None,
    ):
        self.year = year
        self.month = month
        self.selected = selected
        self.statuses = statuses
        self.holidays = holidays or {}
        self.weeks = get_month_weeks(year, month)
        self.update(self.render_month())

    def status_for(self, d: date) -> DayStatus:
        return self.statuses.get(date_key(d), DayStatus.NONE)

    def render_month(self) -> Text:
        text = Text()
        text.append(month_title(self.year, self.month).capitalize(), style="bold")
        text.append("\n")
        for header in WEEKDAY_HEADERS:
            text.append(f"{header:^{CELL_WIDTH}}", style="bold")
        text.append("\n")

        for week in self.weeks:
            for d in week:
                if d is None:
                    text.append(" " * CELL_WIDTH)
                    continue
                is_selected = d == self.selected
                left = "[" if is_selected else " "
                right = "]" if is_selected else ("*" if d in self.holidays else " ")
                text.append(f"{left}{d.day:>2}{right}", style=STATUS_STYLES[self.status_for(d)])
                text.append(" ")
            text.append("\n")

        text.append("\nLegenda: ")
        for status, label in LEGEND:
            text.append("  ", style=STATUS_STYLES[status])
            text.append(f" {label}  ")
        if self.holidays:
            text.append("* Feriado", style="italic")
        return text

    def day_at(self, x: int, y: int) -> date | None:
        """Map a click position to the day drawn there."""
        row = y - GRID_TOP
        col = x // CELL_WIDTH
        if 0 <= row < len(self.weeks) and 0 <= col < 7:
            return self.weeks[row][col]
        return None

    def on_click(self, event) -> None:
        d = self.day_at(event.x, event.y)
        if d is not None:
            self.post_message(self.DaySelected(d))


class DayHeader(Static):
    """Shows the selected date and its clock entry."""

    def update_display(self, d: date, clock_entry: ClockEntry | None):
        text = Text()
        text.append(f"Registros - {format_date_br(d)}", style="bold")
        if clock_entry:
            text.append(f"    Ponto do dia: {format_hours_display(clock_entry.total_hours)}h")
        else:
            text.append("    Ponto do dia não registrado", style="yellow")
        self.update(text)


class DaySummary(Static):
    """Shows the day's allocated total and any overtime."""

    def update_display(self, record_count: int, total_hours: Decimal, total_percentage: int,
                       is_overtime: bool, excess_hours: Decimal):
        if record_count == 0:
            self.update(Text("Nenhum registro encontrado para este dia.", style="dim"))
            return

        text = Text()
        text.append("Total: ", style="bold")
        text.append(f"{format_hours_display(total_hours)}h ({total_percentage}%)", style="bold red" if is_overtime else "bold")
        if is_overtime:
            text.append(f"\nExcesso: {excess_hours}h", style="red")
        self.update(text)
