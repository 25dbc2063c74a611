"""Modal screens for the work sync application."""

from __future__ import annotations

from datetime import date

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.coordinate import Coordinate
from textual.widgets import Button, DataTable, Input, Label, Select
from textual.screen import ModalScreen

import projects
import profiles
from clock import default_hours_text, parse_total_hours
from errors import WorkSyncError
from models import ClockEntry, ProjectStatus, RecordForm, SessionContext, UserRole
from reconciler import TimePercentageReconciler
from records import RecordManager
from utils import format_date_br

DIALOG_CSS = """
    .dialog {
        height: auto;
        padding: 1 2;
        background: $surface;
        border: thick $primary;
    }

    .dialog-title {
        width: 100%;
        text-align: center;
        text-style: bold;
        margin-bottom: 1;
    }

    .field-group {
        width: 1fr;
        height: auto;
        margin: 0 1 1 0;
    }

    .field-label {
        height: 1;
        margin-bottom: 0;
        color: $text-muted;
    }

    .field-row {
        width: 100%;
        height: auto;
    }

    .field-group Input, .field-group Select {
        width: 100%;
    }

    .dialog-buttons {
        width: 100%;
        height: auto;
        margin-top: 1;
        align: center middle;
    }

    .dialog-buttons Button {
        width: auto;
        min-width: 12;
        margin: 0 1;
    }
"""


def _selected(value) -> str:
    """Select value as a string, with no selection as ""."""
    return value if isinstance(value, str) else ""


class ConfirmScreen(ModalScreen[bool]):
    """Simple confirmation dialog."""

    CSS = """
    ConfirmScreen {
        align: center middle;
    }

    #confirm-dialog {
        width: 60;
        height: auto;
        padding: 1 2;
        background: $surface;
        border: thick $warning;
    }

    #confirm-buttons {
        width: 100%;
        height: auto;
        margin-top: 1;
    }

    #confirm-buttons Button {
        width: 1fr;
        margin: 0 1;
    }
    """

    BINDINGS = [
        Binding("escape", "cancel", "Cancelar"),
        Binding("s", "confirm", "Sim"),
        Binding("n", "cancel", "Não"),
    ]

    def __init__(self, message: str):
        super().__init__()
        self.message = message

    def compose(self) -> ComposeResult:
        with Vertical(id="confirm-dialog"):
            yield Label(self.message)
            with Horizontal(id="confirm-buttons"):
                yield Button("Sim (S)", variant="warning", id="yes")
                yield Button("Não (N)", variant="default", id="no")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss(event.button.id == "yes")

    def action_confirm(self) -> None:
        self.dismiss(True)

    def action_cancel(self) -> None:
        self.dismiss(False)


class ClockEntryScreen(ModalScreen[str | None]):
    """Register or edit the day's clock entry.

    Returns the hours typed, or ``REMOVE`` when an existing entry is removed.
    """

    REMOVE = "remove"

    CSS = DIALOG_CSS + """
    ClockEntryScreen {
        align: center middle;
    }

    #clock-dialog {
        width: 50;
    }

    #clock-hint {
        color: $text-muted;
    }
    """

    BINDINGS = [
        Binding("escape", "cancel", "Cancelar"),
    ]

    def __init__(self, day: date, entry: ClockEntry | None):
        super().__init__()
        self.day = day
        self.entry = entry

    def compose(self) -> ComposeResult:
        verb = "Editar" if self.entry else "Registrar"
        with Vertical(id="clock-dialog", classes="dialog"):
            yield Label(f"{verb} Ponto do Dia - {format_date_br(self.day)}", classes="dialog-title")
            with Vertical(classes="field-group"):
                yield Label("Horas do dia", classes="field-label")
                yield Input(value=default_hours_text(self.entry), placeholder="8.0", id="clock-hours")
            yield Label("Total de horas a serem trabalhadas neste dia", id="clock-hint")
            with Horizontal(classes="dialog-buttons"):
                yield Button("Salvar", variant="primary", id="save")
                if self.entry:
                    yield Button("Remover", variant="error", id="remove")
                yield Button("Cancelar", variant="default", id="cancel")

    def on_mount(self) -> None:
        self.query_one("#clock-hours", Input).focus()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        self._save()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "cancel":
            self.dismiss(None)
        elif event.button.id == "remove":
            self.dismiss(self.REMOVE)
        elif event.button.id == "save":
            self._save()

    def action_cancel(self) -> None:
        self.dismiss(None)

    def _save(self) -> None:
        raw = self.query_one("#clock-hours", Input).value
        try:
            parse_total_hours(raw)
        except WorkSyncError as e:
            self.app.notify(e.message, title="Erro", severity="error")
            return
        self.dismiss(raw)


class RecordFormScreen(ModalScreen[RecordForm | None]):
    """Add or edit an allocation record.

    Project, stage and task are cascading selects; hours and percentage are
    kept in step by a TimePercentageReconciler.
    """

    CSS = DIALOG_CSS + """
    RecordFormScreen {
        align: center middle;
    }

    #record-dialog {
        width: 90;
    }
    """

    BINDINGS = [
        Binding("escape", "cancel", "Cancelar"),
    ]

    def __init__(self, manager: RecordManager, form: RecordForm | None = None, editing: bool = False):
        super().__init__()
        self.manager = manager
        self.form = form or RecordForm()
        self.editing = editing
        self.reconciler = TimePercentageReconciler(
            manager.reference_hours,
            hours=self.form.worked_hours,
            percentage=self.form.percentage,
        )

    def _project_options(self) -> list[tuple[str, str]]:
        return [(p.name, p.id) for p in self.manager.projects if p.id]

    def _stage_options(self) -> list[tuple[str, str]]:
        return [(s.name, s.id) for s in self.manager.stages_for(self.form.project_id) if s.id]

    def _task_options(self) -> list[tuple[str, str]]:
        return [(t.name, t.id) for t in self.manager.tasks_for(self.form.stage_id) if t.id]

    def compose(self) -> ComposeResult:
        title = "Editando Registro" if self.editing else "Novo Registro"
        with Vertical(id="record-dialog", classes="dialog"):
            yield Label(title, classes="dialog-title")
            with Horizontal(classes="field-row"):
                with Vertical(classes="field-group"):
                    yield Label("Projeto", classes="field-label")
                    yield Select(
                        self._project_options(),
                        prompt="Selecionar projeto",
                        value=self.form.project_id or Select.BLANK,
                        id="record-project",
                    )
                with Vertical(classes="field-group"):
                    yield Label("Etapa", classes="field-label")
                    yield Select(
                        self._stage_options(),
                        prompt="Selecionar etapa",
                        value=self.form.stage_id or Select.BLANK,
                        disabled=not self.form.project_id,
                        id="record-stage",
                    )
                with Vertical(classes="field-group"):
                    yield Label("Tarefa", classes="field-label")
                    yield Select(
                        self._task_options(),
                        prompt="Selecionar tarefa (opcional)",
                        value=self.form.task_id or Select.BLANK,
                        disabled=not self.form.stage_id,
                        id="record-task",
                    )
            with Horizontal(classes="field-row"):
                with Vertical(classes="field-group"):
                    yield Label("Horas", classes="field-label")
                    yield Input(value=self.reconciler.hours, placeholder="0.0", id="record-hours")
                with Vertical(classes="field-group"):
                    yield Label("Porcentagem", classes="field-label")
                    yield Input(value=self.reconciler.percentage, placeholder="0", id="record-percentage")
            with Vertical(classes="field-group"):
                yield Label("Observação (opcional)", classes="field-label")
                yield Input(value=self.form.description, id="record-description")
            with Horizontal(classes="dialog-buttons"):
                yield Button("Salvar", variant="primary", id="save")
                yield Button("Cancelar", variant="default", id="cancel")

    def on_mount(self) -> None:
        self.query_one("#record-project", Select).focus()

    def on_select_changed(self, event: Select.Changed) -> None:
        value = _selected(event.value)
        select_id = event.select.id

        if select_id == "record-project":
            if value == self.form.project_id:
                return
            self.form = self.form.select_project(value)
            stage_select = self.query_one("#record-stage", Select)
            stage_select.set_options(self._stage_options())
            stage_select.disabled = not value
            task_select = self.query_one("#record-task", Select)
            task_select.set_options([])
            task_select.disabled = True
        elif select_id == "record-stage":
            if value == self.form.stage_id:
                return
            self.form = self.form.select_stage(value)
            task_select = self.query_one("#record-task", Select)
            task_select.set_options(self._task_options())
            task_select.disabled = not value
        elif select_id == "record-task":
            self.form = self.form.select_task(value)

    def on_input_changed(self, event: Input.Changed) -> None:
        # Echoes of our own writes carry the reconciler's current value
        if event.input.id == "record-hours":
            if event.value == self.reconciler.hours:
                return
            self.reconciler.set_hours(event.value)
            self._sync_inputs()
        elif event.input.id == "record-percentage":
            if event.value == self.reconciler.percentage:
                return
            self.reconciler.set_percentage(event.value)
            self._sync_inputs()

    def _sync_inputs(self) -> None:
        hours_input = self.query_one("#record-hours", Input)
        if hours_input.value != self.reconciler.hours:
            hours_input.value = self.reconciler.hours
        percentage_input = self.query_one("#record-percentage", Input)
        if percentage_input.value != self.reconciler.percentage:
            percentage_input.value = self.reconciler.percentage

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "cancel":
            self.dismiss(None)
        elif event.button.id == "save":
            self._save()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        self._save()

    def action_cancel(self) -> None:
        self.dismiss(None)

    def current_form(self) -> RecordForm:
        return RecordForm(
            project_id=self.form.project_id,
            stage_id=self.form.stage_id,
            task_id=self.form.task_id,
            worked_hours=self.reconciler.hours,
            percentage=self.reconciler.percentage,
            description=self.query_one("#record-description", Input).value,
        )

    def _save(self) -> None:
        form = self.current_form()
        try:
            self.manager.validate(form)
        except WorkSyncError as e:
            self.app.notify(e.message, title="Erro", severity="error")
            return
        self.dismiss(form)


class EditItemScreen(ModalScreen[tuple[str, str, ProjectStatus | None] | None]):
    """Create or edit a project, stage or task.

    Returns (name, description, status); status is None for stages and tasks.
    """

    CSS = DIALOG_CSS + """
    EditItemScreen {
        align: center middle;
    }

    #item-dialog {
        width: 64;
    }
    """

    BINDINGS = [
        Binding("escape", "cancel", "Cancelar"),
    ]

    KIND_LABELS = {"project": "Projeto", "stage": "Etapa", "task": "Tarefa"}

    def __init__(self, kind: str, name: str = "", description: str = "",
                 status: ProjectStatus | None = None, editing: bool = False):
        super().__init__()
        self.kind = kind
        self.name_value = name
        self.description_value = description
        self.status = status or (ProjectStatus.OPEN if kind == "project" else None)
        self.editing = editing

    def compose(self) -> ComposeResult:
        label = self.KIND_LABELS[self.kind]
        title = f"Editar {label}" if self.editing else f"Novo(a) {label}"
        with Vertical(id="item-dialog", classes="dialog"):
            yield Label(title, classes="dialog-title")
            with Vertical(classes="field-group"):
                yield Label("Nome", classes="field-label")
                yield Input(value=self.name_value, id="item-name")
            with Vertical(classes="field-group"):
                yield Label("Descrição", classes="field-label")
                yield Input(value=self.description_value, id="item-description")
            if self.kind == "project":
                with Vertical(classes="field-group"):
                    yield Label("Status", classes="field-label")
                    yield Select(
                        [(s.label, s.value) for s in ProjectStatus],
                        value=self.status.value if self.status else ProjectStatus.OPEN.value,
                        allow_blank=False,
                        id="item-status",
                    )
            with Horizontal(classes="dialog-buttons"):
                yield Button("Salvar", variant="primary", id="save")
                yield Button("Cancelar", variant="default", id="cancel")

    def on_mount(self) -> None:
        self.query_one("#item-name", Input).focus()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id == "item-name":
            self.query_one("#item-description", Input).focus()
        else:
            self._save()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "cancel":
            self.dismiss(None)
        elif event.button.id == "save":
            self._save()

    def action_cancel(self) -> None:
        self.dismiss(None)

    def _save(self) -> None:
        name = self.query_one("#item-name", Input).value.strip()
        description = self.query_one("#item-description", Input).value.strip()
        if not name:
            self.app.notify(projects.MSG_NAME_REQUIRED, title="Erro", severity="error")
            return

        status = None
        if self.kind == "project":
            status = ProjectStatus(_selected(self.query_one("#item-status", Select).value) or "aberto")
        self.dismiss((name, description, status))


class ProjectManagementScreen(ModalScreen[None]):
    """Project > stage > task tree editor."""

    CSS = """
    ProjectManagementScreen {
        align: center middle;
    }

    #projects-dialog {
        width: 96;
        height: 30;
        padding: 1 2;
        background: $surface;
        border: thick $primary;
    }

    #projects-title {
        width: 100%;
        text-align: center;
        text-style: bold;
        margin-bottom: 1;
    }

    #projects-search {
        width: 100%;
        margin-bottom: 1;
    }

    #projects-table {
        height: 1fr;
    }

    #projects-footer {
        width: 100%;
        height: auto;
        margin-top: 1;
        align: center middle;
    }

    #projects-footer Button {
        width: auto;
        min-width: 10;
        margin: 0 1;
    }
    """

    BINDINGS = [
        Binding("escape", "close", "Fechar"),
        Binding("n", "new_project", "Projeto"),
        Binding("s", "new_stage", "Etapa"),
        Binding("t", "new_task", "Tarefa"),
        Binding("e", "edit_item", "Editar"),
        Binding("d", "delete_item", "Excluir"),
    ]

    INDENT = {0: "", 1: "  └ ", 2: "      └ "}

    def __init__(self):
        super().__init__()
        self.project_tree = projects.ProjectTree()

    def compose(self) -> ComposeResult:
        with Vertical(id="projects-dialog"):
            yield Label("Projetos, etapas e tarefas", id="projects-title")
            yield Input(placeholder="Buscar...", id="projects-search")
            yield DataTable(id="projects-table")
            with Horizontal(id="projects-footer"):
                yield Button("Projeto [n]", id="btn-project")
                yield Button("Etapa [s]", id="btn-stage")
                yield Button("Tarefa [t]", id="btn-task")
                yield Button("Editar [e]", id="btn-edit")
                yield Button("Excluir [d]", id="btn-delete")
                yield Button("Fechar [Esc]", id="btn-close")

    def on_mount(self) -> None:
        table = self.query_one("#projects-table", DataTable)
        table.cursor_type = "row"
        table.add_column("Nome", width=40)
        table.add_column("Tipo", width=8)
        table.add_column("Status", width=14)
        table.add_column("Descrição", width=24)
        self._refresh_table()
        table.focus()

    def _refresh_table(self, search: str = "") -> None:
        table = self.query_one("#projects-table", DataTable)
        table.clear()
        try:
            self.project_tree = projects.load_tree()
        except WorkSyncError as e:
            self.app.notify(e.message, title="Erro", severity="error")
            return

        needle = search.lower()
        for kind, depth, item in self.project_tree.rows():
            if needle and needle not in item.name.lower():
                continue
            status = item.status.label if kind == "project" else ""
            table.add_row(
                f"{self.INDENT[depth]}{item.name}",
                EditItemScreen.KIND_LABELS[kind],
                status,
                (item.description or "")[:24],
                key=f"{kind}:{item.id}",
            )

    def _search(self) -> str:
        return self.query_one("#projects-search", Input).value

    def on_input_changed(self, event: Input.Changed) -> None:
        if event.input.id == "projects-search":
            self._refresh_table(event.value)

    def _get_selected(self) -> tuple[str, str] | None:
        """(kind, id) of the highlighted row."""
        table = self.query_one("#projects-table", DataTable)
        if table.row_count == 0:
            return None
        row_key = table.coordinate_to_cell_key(Coordinate(table.cursor_row, 0)).row_key
        if not row_key or row_key.value is None:
            return None
        kind, _, item_id = str(row_key.value).partition(":")
        return kind, item_id

    def _find(self, kind: str, item_id: str):
        items = {"project": self.project_tree.projects, "stage": self.project_tree.stages, "task": self.project_tree.tasks}[kind]
        return next((i for i in items if i.id == item_id), None)

    def _selected_project_id(self) -> str | None:
        selected = self._get_selected()
        if not selected:
            return None
        kind, item_id = selected
        if kind == "project":
            return item_id
        if kind == "stage":
            stage = self._find("stage", item_id)
            return stage.project_id if stage else None
        task = self._find("task", item_id)
        stage = self._find("stage", task.stage_id) if task else None
        return stage.project_id if stage else None

    def _selected_stage_id(self) -> str | None:
        selected = self._get_selected()
        if not selected:
            return None
        kind, item_id = selected
        if kind == "stage":
            return item_id
        if kind == "task":
            task = self._find("task", item_id)
            return task.stage_id if task else None
        return None

    def action_close(self) -> None:
        self.dismiss(None)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        actions = {
            "btn-project": self.action_new_project,
            "btn-stage": self.action_new_stage,
            "btn-task": self.action_new_task,
            "btn-edit": self.action_edit_item,
            "btn-delete": self.action_delete_item,
            "btn-close": self.action_close,
        }
        if event.button.id in actions:
            actions[event.button.id]()

    def action_new_project(self) -> None:
        self.app.push_screen(EditItemScreen("project"), lambda result: self._save("project", result))

    def action_new_stage(self) -> None:
        project_id = self._selected_project_id()
        if not project_id:
            self.app.notify("Selecione um projeto", severity="warning")
            return
        self.app.push_screen(
            EditItemScreen("stage"),
            lambda result: self._save("stage", result, parent_id=project_id),
        )

    def action_new_task(self) -> None:
        stage_id = self._selected_stage_id()
        if not stage_id:
            self.app.notify("Selecione uma etapa", severity="warning")
            return
        self.app.push_screen(
            EditItemScreen("task"),
            lambda result: self._save("task", result, parent_id=stage_id),
        )

    def action_edit_item(self) -> None:
        selected = self._get_selected()
        if not selected:
            self.app.notify("Nenhum item selecionado", severity="warning")
            return
        kind, item_id = selected
        item = self._find(kind, item_id)
        if item is None:
            return
        parent_id = getattr(item, "project_id", None) or getattr(item, "stage_id", None)
        self.app.push_screen(
            EditItemScreen(
                kind,
                name=item.name,
                description=item.description or "",
                status=getattr(item, "status", None),
                editing=True,
            ),
            lambda result: self._save(kind, result, parent_id=parent_id, item_id=item_id),
        )

    def _save(self, kind: str, result, parent_id: str | None = None, item_id: str | None = None) -> None:
        if not result:
            return
        name, description, status = result
        try:
            if kind == "project":
                projects.save_project(name, description, status or ProjectStatus.OPEN, project_id=item_id)
            elif kind == "stage":
                projects.save_stage(name, parent_id or "", description, stage_id=item_id)
            else:
                projects.save_task(name, parent_id or "", description, task_id=item_id)
        except WorkSyncError as e:
            self.app.notify(e.message, title="Erro", severity="error")
            return
        self.app.notify(f"{EditItemScreen.KIND_LABELS[kind]} {name} salvo(a)")
        self._refresh_table(self._search())

    def action_delete_item(self) -> None:
        selected = self._get_selected()
        if not selected:
            self.app.notify("Nenhum item selecionado", severity="warning")
            return
        kind, item_id = selected
        item = self._find(kind, item_id)
        if item is None:
            return
        self.app.push_screen(
            ConfirmScreen(projects.DELETE_WARNINGS[kind].format(name=item.name)),
            lambda confirmed: self._on_delete_confirmed(confirmed, kind, item_id),
        )

    def _on_delete_confirmed(self, confirmed: bool | None, kind: str, item_id: str) -> None:
        if not confirmed:
            return
        try:
            projects.delete_item(kind, item_id)
        except WorkSyncError as e:
            self.app.notify(e.message, title="Erro", severity="error")
            return
        self.app.notify(f"{EditItemScreen.KIND_LABELS[kind]} excluído(a)")
        self._refresh_table(self._search())


class UserManagementScreen(ModalScreen[None]):
    """Profiles and their roles. Managers and administrators only."""

    CSS = """
    UserManagementScreen {
        align: center middle;
    }

    #users-dialog {
        width: 90;
        height: 24;
        padding: 1 2;
        background: $surface;
        border: thick $primary;
    }

    #users-title {
        width: 100%;
        text-align: center;
        text-style: bold;
        margin-bottom: 1;
    }

    #users-table {
        height: 1fr;
    }

    #users-help {
        margin-top: 1;
        color: $text-muted;
    }
    """

    BINDINGS = [
        Binding("escape", "close", "Fechar"),
        Binding("1", "set_role('colaborador')", "Colaborador"),
        Binding("2", "set_role('gerente')", "Gerente"),
        Binding("3", "set_role('administrador')", "Administrador"),
        Binding("d", "delete_user", "Excluir"),
    ]

    def __init__(self, context: SessionContext):
        super().__init__()
        self.context = context

    def compose(self) -> ComposeResult:
        with Vertical(id="users-dialog"):
            yield Label("Usuários", id="users-title")
            yield DataTable(id="users-table")
            yield Label("1 Colaborador · 2 Gerente · 3 Administrador · d Excluir", id="users-help")

    def on_mount(self) -> None:
        table = self.query_one("#users-table", DataTable)
        table.cursor_type = "row"
        table.add_column("Nome", width=28)
        table.add_column("E-mail", width=32)
        table.add_column("Cargo", width=14)
        self._refresh_table()
        table.focus()

    def _refresh_table(self) -> None:
        table = self.query_one("#users-table", DataTable)
        table.clear()
        try:
            users = profiles.list_profiles(self.context)
        except WorkSyncError as e:
            self.app.notify(e.message, title="Erro", severity="error")
            return
        for user in users:
            name = user.display_name
            if user.id == self.context.user_id:
                name += " (você)"
            table.add_row(name, user.email, user.role.label, key=user.id)

    def _get_selected_user_id(self) -> str | None:
        table = self.query_one("#users-table", DataTable)
        if table.row_count == 0:
            return None
        row_key = table.coordinate_to_cell_key(Coordinate(table.cursor_row, 0)).row_key
        return str(row_key.value) if row_key else None

    def action_close(self) -> None:
        self.dismiss(None)

    def action_set_role(self, role: str) -> None:
        user_id = self._get_selected_user_id()
        if not user_id:
            return
        try:
            profile = profiles.change_role(self.context, user_id, UserRole(role))
        except WorkSyncError as e:
            self.app.notify(e.message, title="Erro", severity="error")
            return
        self.app.notify(f"{profile.display_name}: {profile.role.label}")
        self._refresh_table()

    def action_delete_user(self) -> None:
        user_id = self._get_selected_user_id()
        if not user_id:
            return
        if user_id == self.context.user_id:
            self.app.notify(profiles.MSG_OWN_PROFILE, title="Erro", severity="error")
            return
        self.app.push_screen(
            ConfirmScreen("Excluir este usuário?"),
            lambda confirmed: self._on_delete_confirmed(confirmed, user_id),
        )

    def _on_delete_confirmed(self, confirmed: bool | None, user_id: str) -> None:
        if not confirmed:
            return
        try:
            profiles.delete_profile(self.context, user_id)
        except WorkSyncError as e:
            self.app.notify(e.message, title="Erro", severity="error")
            return
        self.app.notify("Usuário excluído")
        self._refresh_table()
