#!/usr/bin/env python3
"""Work Sync TUI application."""

from __future__ import annotations

import logging
import os
import sqlite3
from datetime import date, timedelta
from pathlib import Path

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal, Vertical
from textual.coordinate import Coordinate
from textual.widgets import DataTable, Footer, Input, Static
from rich.text import Text

import clock
import day_status
import export
import storage
from errors import DataAccessError, WorkSyncError
from models import Config, DayStatus, RecordForm, SessionContext
from records import MSG_NO_CLOCK_ENTRY, RecordManager
from screens import (
    ClockEntryScreen,
    ConfirmScreen,
    ProjectManagementScreen,
    RecordFormScreen,
    UserManagementScreen,
)
from utils import format_hours_display, month_bounds, shift_month
from widgets import CalendarGrid, DayHeader, DaySummary

logger = logging.getLogger(__name__)


class RecordsDataTable(DataTable):
    """DataTable that hands left/right to the app to move between days."""

    def on_key(self, event) -> None:
        if event.key == "left":
            self.app.action_prev_day()  # type: ignore[attr-defined]
            event.prevent_default()
            event.stop()
        elif event.key == "right":
            self.app.action_next_day()  # type: ignore[attr-defined]
            event.prevent_default()
            event.stop()


class WorkSyncApp(App):
    """Calendar on the left, the selected day's records on the right."""

    CSS = """
    Screen {
        background: $surface;
    }

    #app-header {
        height: auto;
        background: $primary;
        color: $text;
        padding: 0 1;
        text-style: bold;
    }

    #calendar-panel {
        width: 40;
        padding: 1 2;
    }

    #day-panel {
        width: 1fr;
        padding: 1 2;
    }

    #day-header {
        height: auto;
        margin-bottom: 1;
    }

    #records-search {
        margin-bottom: 1;
    }

    #records-table-container {
        height: 1fr;
    }

    #day-summary {
        height: auto;
        padding: 1 0;
    }

    DataTable {
        height: 100%;
    }

    DataTable > .datatable--cursor {
        background: $secondary;
    }
    """

    BINDINGS = [
        Binding("q", "quit", "Sair"),
        Binding("t", "goto_today", "Hoje"),
        Binding("left_square_bracket", "prev_month", "◄ Mês"),
        Binding("right_square_bracket", "next_month", "Mês ►"),
        Binding("p", "clock_entry", "Ponto"),
        Binding("a", "add_record", "Adicionar"),
        Binding("e", "edit_record", "Editar"),
        Binding("d", "delete_record", "Excluir"),
        Binding("r", "refresh", "Atualizar"),
        Binding("slash", "search", "Buscar"),
        Binding("escape", "clear_search", "Limpar", show=False),
        Binding("P", "manage_projects", "Projetos"),
        Binding("U", "manage_users", "Usuários"),
        Binding("x", "export_month", "Exportar"),
    ]

    def __init__(self, context: SessionContext, config: Config | None = None):
        super().__init__()
        storage.init_db()
        self.context = context
        self.config = config or storage.get_config()

        today = date.today()
        self.selected_date = today
        self.view_year = today.year
        self.view_month = today.month
        self.month_status: dict[str, DayStatus] = {}
        self.search_term = ""

        self.manager = RecordManager(
            context,
            today,
            on_month_changed=self._refresh_month_status,
            default_day_hours=self.config.default_day_hours,
        )

    def compose(self) -> ComposeResult:
        yield Static(id="app-header")
        with Horizontal():
            with Vertical(id="calendar-panel"):
                yield CalendarGrid(self.view_year, self.view_month, id="calendar")
            with Vertical(id="day-panel"):
                yield DayHeader(id="day-header")
                yield Input(placeholder="Buscar registros...", id="records-search")
                yield Container(RecordsDataTable(id="records-table"), id="records-table-container")
                yield DaySummary(id="day-summary")
        yield Footer()

    def on_mount(self):
        self._setup_records_table()
        user = self.context.user
        self.query_one("#app-header", Static).update(
            Text(f"Work Sync    {user.display_name} ({user.role.label})", style="bold")
        )
        self._refresh_month_status()
        self._load_day()
        self.query_one("#records-table", DataTable).focus()

    def _setup_records_table(self):
        table = self.query_one("#records-table", DataTable)
        table.cursor_type = "row"
        table.add_column("Projeto", width=20)
        table.add_column("Etapa", width=16)
        table.add_column("Tarefa", width=16)
        table.add_column("Horas", width=7)
        table.add_column("%", width=5)
        table.add_column("Obs", width=24)

    def _notify_error(self, error: WorkSyncError) -> None:
        self.notify(error.message, title="Erro", severity="error")

    # --- Loading ---

    def _get_holidays(self) -> dict[date, str]:
        start, end = month_bounds(self.view_year, self.view_month)
        try:
            return storage.get_holidays_in_range(start, end, self.config.holiday_country)
        except NotImplementedError:
            logger.warning("Calendário de feriados indisponível para %s", self.config.holiday_country)
            return {}

    def _refresh_month_status(self) -> None:
        """Recompute the whole visible month and redraw the calendar."""
        try:
            self.month_status = day_status.month_day_status(
                self.context.user_id, self.view_year, self.view_month
            )
        except WorkSyncError as e:
            self._notify_error(e)
        self._refresh_calendar()

    def _refresh_calendar(self) -> None:
        calendar = self.query_one("#calendar", CalendarGrid)
        calendar.update_display(
            self.view_year,
            self.view_month,
            self.selected_date,
            self.month_status,
            self._get_holidays(),
        )

    def _load_day(self) -> None:
        """Fetch the selected day's records and clock entry."""
        table = self.query_one("#records-table", DataTable)
        table.loading = True
        try:
            self.manager.set_day(self.selected_date)
        except WorkSyncError as e:
            self._notify_error(e)
        finally:
            table.loading = False
        self._refresh_day_display()

    def _refresh_day_display(self) -> None:
        manager = self.manager
        self.query_one("#day-header", DayHeader).update_display(self.selected_date, manager.clock_entry)

        table = self.query_one("#records-table", DataTable)
        table.clear()
        for record in manager.filter(self.search_term):
            table.add_row(
                manager.project_name(record.project_id),
                manager.stage_name(record.stage_id),
                manager.task_name(record.task_id),
                f"{format_hours_display(record.worked_hours)}h",
                f"{record.percentage}%",
                (record.description or "")[:24],
                key=record.id,
            )

        self.query_one("#day-summary", DaySummary).update_display(
            len(manager.records),
            manager.total_hours,
            manager.total_percentage,
            manager.is_overtime,
            manager.excess_hours,
        )
        self.refresh_bindings()

    def check_action(self, action: str, parameters: tuple[object, ...]) -> bool | None:
        """Disable Add until the day's clock entry exists, hide admin-only actions."""
        if action == "add_record":
            return self.manager.can_add
        if action == "manage_users":
            return True if self.context.user.can_manage_users else None
        return True

    # --- Date navigation ---

    def _select_date(self, target: date) -> None:
        self.selected_date = target
        if (target.year, target.month) != (self.view_year, self.view_month):
            self.view_year, self.view_month = target.year, target.month
            self._refresh_month_status()
        else:
            self._refresh_calendar()
        self._load_day()

    def on_calendar_grid_day_selected(self, event: CalendarGrid.DaySelected) -> None:
        self._select_date(event.day)

    def action_prev_day(self) -> None:
        self._select_date(self.selected_date - timedelta(days=1))

    def action_next_day(self) -> None:
        self._select_date(self.selected_date + timedelta(days=1))

    def action_goto_today(self) -> None:
        self._select_date(date.today())

    def _shift_view_month(self, delta: int) -> None:
        self.view_year, self.view_month = shift_month(self.view_year, self.view_month, delta)
        self._refresh_month_status()

    def action_prev_month(self) -> None:
        self._shift_view_month(-1)

    def action_next_month(self) -> None:
        self._shift_view_month(1)

    def action_refresh(self) -> None:
        self._load_day()
        self._refresh_month_status()

    # --- Search ---

    def action_search(self) -> None:
        self.query_one("#records-search", Input).focus()

    def action_clear_search(self) -> None:
        search = self.query_one("#records-search", Input)
        search.value = ""
        self.query_one("#records-table", DataTable).focus()

    def on_input_changed(self, event: Input.Changed) -> None:
        if event.input.id == "records-search":
            self.search_term = event.value
            self._refresh_day_display()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id == "records-search":
            self.query_one("#records-table", DataTable).focus()

    # --- Clock entry ---

    def action_clock_entry(self) -> None:
        target_date = self.selected_date
        self.push_screen(
            ClockEntryScreen(target_date, self.manager.clock_entry),
            lambda result: self._on_clock_entry_saved(result, target_date),
        )

    def _on_clock_entry_saved(self, result: str | None, target_date: date) -> None:
        if result is None:
            return
        if result == ClockEntryScreen.REMOVE:
            self.push_screen(
                ConfirmScreen("Remover o ponto do dia? Os registros do dia serão mantidos."),
                lambda confirmed: self._on_clock_entry_removed(confirmed, target_date),
            )
            return
        try:
            clock.save_clock_entry(self.context, target_date, result)
        except WorkSyncError as e:
            self._notify_error(e)
            return
        self.notify("Ponto registrado com sucesso!", title="Sucesso")
        self._load_day()
        self._refresh_month_status()

    def _on_clock_entry_removed(self, confirmed: bool | None, target_date: date) -> None:
        if not confirmed:
            return
        try:
            clock.remove_clock_entry(self.context, target_date)
        except WorkSyncError as e:
            self._notify_error(e)
            return
        self.notify("Ponto removido com sucesso!", title="Sucesso")
        self._load_day()
        self._refresh_month_status()

    # --- Records ---

    def _get_selected_record_id(self) -> str | None:
        table = self.query_one("#records-table", DataTable)
        if table.row_count == 0:
            return None
        row_key = table.coordinate_to_cell_key(Coordinate(table.cursor_row, 0)).row_key
        return str(row_key.value) if row_key else None

    def action_add_record(self) -> None:
        if not self.manager.can_add:
            self.notify(MSG_NO_CLOCK_ENTRY, title="Erro", severity="error")
            return
        self.push_screen(RecordFormScreen(self.manager), self._on_record_added)

    def _on_record_added(self, form: RecordForm | None) -> None:
        if form is None:
            return
        try:
            self.manager.create(form)
        except WorkSyncError as e:
            self._notify_error(e)
            return
        self.notify("Registro adicionado com sucesso!", title="Sucesso")
        self._refresh_day_display()

    def action_edit_record(self) -> None:
        record_id = self._get_selected_record_id()
        if not record_id:
            self.notify("Nenhum registro selecionado", severity="warning")
            return
        record = next((r for r in self.manager.records if r.id == record_id), None)
        if record is None:
            return
        self.push_screen(
            RecordFormScreen(self.manager, RecordForm.from_record(record), editing=True),
            lambda form: self._on_record_edited(form, record_id),
        )

    def _on_record_edited(self, form: RecordForm | None, record_id: str) -> None:
        if form is None:
            return
        try:
            self.manager.update_from_form(record_id, form)
        except WorkSyncError as e:
            self._notify_error(e)
            return
        self.notify("Registro atualizado com sucesso!", title="Sucesso")
        self._refresh_day_display()

    def action_delete_record(self) -> None:
        record_id = self._get_selected_record_id()
        if not record_id:
            self.notify("Nenhum registro para excluir", severity="warning")
            return
        self.push_screen(
            ConfirmScreen("Excluir este registro?"),
            lambda confirmed: self._on_delete_confirmed(confirmed, record_id),
        )

    def _on_delete_confirmed(self, confirmed: bool | None, record_id: str) -> None:
        if not confirmed:
            return
        try:
            self.manager.delete(record_id)
        except WorkSyncError as e:
            self._notify_error(e)
            return
        self.notify("Registro excluído com sucesso!", title="Sucesso")
        self._refresh_day_display()

    # --- Other screens ---

    def action_manage_projects(self) -> None:
        self.push_screen(ProjectManagementScreen(), lambda _: self.action_refresh())

    def action_manage_users(self) -> None:
        if not self.context.user.can_manage_users:
            return
        self.push_screen(UserManagementScreen(self.context))

    def action_export_month(self) -> None:
        path = storage.DB_PATH.parent / "exports" / f"registros-{self.view_year:04d}-{self.view_month:02d}.xlsx"
        try:
            count = export.export_month(self.context, self.view_year, self.view_month, path)
        except (sqlite3.Error, OSError) as e:
            logger.error("Erro ao exportar registros: %s", e, exc_info=True)
            self.notify("Erro ao exportar registros.", title="Erro", severity="error")
            return
        self.notify(f"{count} registros exportados para {path}")


def configure_logging() -> Path:
    """Send logs to a file; the terminal belongs to the TUI."""
    if env_path := os.environ.get("WORKSYNC_LOG"):
        log_path = Path(env_path)
    else:
        log_path = storage.DB_PATH.parent / "worksync.log"
    log_path.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        filename=log_path,
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return log_path


def main():
    import sys
    args = sys.argv[1:]
    if args and args[0] == "--db-info":
        from datetime import datetime
        db_path = storage.DB_PATH
        print(f"Database: {db_path}")
        if db_path.exists():
            mtime = datetime.fromtimestamp(db_path.stat().st_mtime)
            size = db_path.stat().st_size
            print(f"Modified: {mtime.strftime('%Y-%m-%d %H:%M:%S')}")
            print(f"Size: {size:,} bytes")
        else:
            print("Status: Does not exist (will be created on first run)")
        return

    email = _option(args, "--user") or os.environ.get("WORKSYNC_USER")
    if not email:
        print("Usage: app.py --user EMAIL [--day-hours H] [--country CC]  (or set WORKSYNC_USER)")
        sys.exit(2)

    configure_logging()
    storage.init_db()

    import profiles
    try:
        config = update_config(_option(args, "--day-hours"), _option(args, "--country"))
        context = profiles.open_session(email)
    except WorkSyncError as e:
        print(e.message)
        sys.exit(2)

    app = WorkSyncApp(context, config)
    app.run()


def _option(args: list[str], name: str) -> str | None:
    if name in args:
        index = args.index(name)
        if index + 1 < len(args):
            return args[index + 1]
    return None


def update_config(day_hours: str | None = None, country: str | None = None) -> Config:
    """Persist --day-hours / --country overrides and return the stored config."""
    try:
        config = storage.get_config()
        if day_hours is None and country is None:
            return config
        if day_hours is not None:
            config.default_day_hours = clock.parse_total_hours(day_hours)
        if country is not None:
            config.holiday_country = country.strip().upper()
        storage.save_config(config)
    except sqlite3.Error as e:
        logger.error("Erro ao salvar configuração: %s", e, exc_info=True)
        raise DataAccessError("Erro ao salvar configuração.") from e
    logger.info("Configuração salva: %sh, %s", config.default_day_hours, config.holiday_country)
    return config


if __name__ == "__main__":
    main()
