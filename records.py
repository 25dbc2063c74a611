"""Allocation records of one user on one date."""

from __future__ import annotations

import logging
import sqlite3
from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_DOWN, ROUND_HALF_UP
from typing import Callable

import storage
from errors import DataAccessError, ValidationError
from models import AllocationRecord, ClockEntry, Project, RecordForm, SessionContext, Stage, Task
from reconciler import DEFAULT_DAY_HOURS

logger = logging.getLogger(__name__)

MSG_NO_CLOCK_ENTRY = "É necessário ter o ponto do dia salvo antes de adicionar registros."
MSG_PROJECT_STAGE_REQUIRED = "Projeto e etapa são obrigatórios."
MSG_INVALID_VALUES = "Informe horas e porcentagem válidas."
MSG_STAGE_MISMATCH = "A etapa selecionada não pertence ao projeto."
MSG_TASK_MISMATCH = "A tarefa selecionada não pertence à etapa."

UNKNOWN_PROJECT = "Projeto não encontrado"
UNKNOWN_STAGE = "Etapa não encontrada"
UNKNOWN_TASK = "Tarefa não encontrada"


def parse_hours(raw) -> Decimal:
    try:
        hours = Decimal(str(raw).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(MSG_INVALID_VALUES)
    if not hours.is_finite() or hours < 0:
        raise ValidationError(MSG_INVALID_VALUES)
    return hours


def parse_percentage(raw) -> int:
    try:
        percentage = Decimal(str(raw).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(MSG_INVALID_VALUES)
    if not percentage.is_finite() or not 0 <= percentage <= 100:
        raise ValidationError(MSG_INVALID_VALUES)
    return int(percentage.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class RecordManager:
    """Loads, filters and mutates a day's allocation records.

    Every mutation is followed by a full re-fetch of the day and a call to
    ``on_month_changed`` so the calendar can recompute the month's statuses.
    """

    def __init__(
        self,
        context: SessionContext,
        day: date,
        on_month_changed: Callable[[], None] | None = None,
        default_day_hours: Decimal = DEFAULT_DAY_HOURS,
    ):
        self.context = context
        self.day = day
        self.on_month_changed = on_month_changed
        self.default_day_hours = default_day_hours

        self.records: list[AllocationRecord] = []
        self.projects: list[Project] = []
        self.stages: list[Stage] = []
        self.tasks: list[Task] = []
        self.clock_entry: ClockEntry | None = None
        self.form = RecordForm()
        self.loading = False

    # --- Loading ---

    def list(self) -> list[AllocationRecord]:
        """Fetch the day's records, oldest first."""
        try:
            return storage.get_records_for_date(self.context.user_id, self.day)
        except sqlite3.Error as e:
            logger.error("Erro ao carregar registros de %s: %s", self.day, e, exc_info=True)
            raise DataAccessError("Erro ao carregar registros.") from e

    def refresh(self) -> None:
        """Reload records, the project tree and the clock entry.

        On failure the previously loaded state is kept.
        """
        self.loading = True
        try:
            records = self.list()
            try:
                projects = storage.get_all_projects()
                stages = storage.get_all_stages()
                tasks = storage.get_all_tasks()
                clock_entry = storage.get_clock_entry(self.context.user_id, self.day)
            except sqlite3.Error as e:
                logger.error("Erro ao carregar dados de %s: %s", self.day, e, exc_info=True)
                raise DataAccessError("Erro ao carregar registros.") from e
        finally:
            self.loading = False

        self.records = records
        self.projects = projects
        self.stages = stages
        self.tasks = tasks
        self.clock_entry = clock_entry

    def set_day(self, day: date) -> None:
        self.day = day
        self.form = RecordForm()
        self.refresh()

    def _notify_month_changed(self) -> None:
        if self.on_month_changed:
            self.on_month_changed()

    # --- Lookups ---

    @property
    def can_add(self) -> bool:
        return self.clock_entry is not None

    @property
    def reference_hours(self) -> Decimal:
        """Hours a 100% day is worth."""
        if self.clock_entry:
            return self.clock_entry.total_hours
        return self.default_day_hours

    def project_name(self, project_id: str) -> str:
        return next((p.name for p in self.projects if p.id == project_id), UNKNOWN_PROJECT)

    def stage_name(self, stage_id: str) -> str:
        return next((s.name for s in self.stages if s.id == stage_id), UNKNOWN_STAGE)

    def task_name(self, task_id: str | None) -> str:
        if not task_id:
            return ""
        return next((t.name for t in self.tasks if t.id == task_id), UNKNOWN_TASK)

    def stages_for(self, project_id: str) -> list[Stage]:
        return [s for s in self.stages if s.project_id == project_id]

    def tasks_for(self, stage_id: str) -> list[Task]:
        return [t for t in self.tasks if t.stage_id == stage_id]

    def filter(self, term: str) -> list[AllocationRecord]:
        """Records whose project, stage or task name contains ``term``."""
        needle = term.lower()
        return [
            r for r in self.records
            if needle in self.project_name(r.project_id).lower()
            or needle in self.stage_name(r.stage_id).lower()
            or needle in self.task_name(r.task_id).lower()
        ]

    # --- Form selection ---

    def select_project(self, project_id: str) -> RecordForm:
        self.form = self.form.select_project(project_id)
        return self.form

    def select_stage(self, stage_id: str) -> RecordForm:
        self.form = self.form.select_stage(stage_id)
        return self.form

    def select_task(self, task_id: str) -> RecordForm:
        self.form = self.form.select_task(task_id)
        return self.form

    # --- Totals ---

    @property
    def total_hours(self) -> Decimal:
        return sum((Decimal(r.worked_hours) for r in self.records), Decimal("0"))

    @property
    def total_percentage(self) -> int:
        """Allocated share of the clock hours in whole percent, which can exceed 100."""
        if self.clock_entry and self.clock_entry.total_hours > 0:
            share = self.total_hours / self.clock_entry.total_hours * 100
            return int(share.quantize(Decimal("1"), rounding=ROUND_DOWN))
        return sum(r.percentage for r in self.records)

    @property
    def is_overtime(self) -> bool:
        return self.clock_entry is not None and self.total_hours > self.clock_entry.total_hours

    @property
    def excess_hours(self) -> Decimal:
        if not self.is_overtime:
            return Decimal("0.0")
        assert self.clock_entry is not None
        excess = self.total_hours - self.clock_entry.total_hours
        return excess.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)

    # --- Mutations ---

    def _check_hierarchy(self, project_id: str, stage_id: str, task_id: str | None) -> None:
        stage = next((s for s in self.stages if s.id == stage_id), None)
        if stage is None or stage.project_id != project_id:
            raise ValidationError(MSG_STAGE_MISMATCH)
        if task_id:
            task = next((t for t in self.tasks if t.id == task_id), None)
            if task is None or task.stage_id != stage_id:
                raise ValidationError(MSG_TASK_MISMATCH)

    def validate(self, form: RecordForm) -> AllocationRecord:
        """Build a record from the form without touching storage."""
        if self.clock_entry is None:
            raise ValidationError(MSG_NO_CLOCK_ENTRY)
        if not form.project_id or not form.stage_id:
            raise ValidationError(MSG_PROJECT_STAGE_REQUIRED)

        worked_hours = parse_hours(form.worked_hours)
        percentage = parse_percentage(form.percentage)
        task_id = form.task_id or None
        self._check_hierarchy(form.project_id, form.stage_id, task_id)

        return AllocationRecord(
            user_id=self.context.user_id,
            date=self.day,
            project_id=form.project_id,
            stage_id=form.stage_id,
            task_id=task_id,
            worked_hours=worked_hours,
            percentage=percentage,
            description=form.description.strip() or None,
        )

    def _after_write(self) -> None:
        """Re-fetch the day; the month is recomputed even if that fails."""
        try:
            self.refresh()
        finally:
            self._notify_month_changed()

    def create(self, form: RecordForm | None = None) -> AllocationRecord:
        record = self.validate(form if form is not None else self.form)
        try:
            storage.insert_record(record)
        except sqlite3.Error as e:
            logger.error("Erro ao adicionar registro: %s", e, exc_info=True)
            raise DataAccessError("Erro ao adicionar registro.") from e

        logger.info("Registro %s adicionado em %s", record.id, self.day)
        self.form = RecordForm()
        self._after_write()
        return record

    def _stored_record(self, record_id: str) -> AllocationRecord | None:
        record = next((r for r in self.records if r.id == record_id), None)
        if record is not None:
            return record
        try:
            return storage.get_record(record_id)
        except sqlite3.Error as e:
            logger.error("Erro ao carregar registro %s: %s", record_id, e, exc_info=True)
            raise DataAccessError("Erro ao atualizar registro.") from e

    def update(self, record_id: str, **fields) -> None:
        """Change any subset of a record's fields. Last writer wins.

        Project, stage and task changes are merged over the stored record
        and the merged hierarchy is checked.
        """
        if "worked_hours" in fields:
            fields["worked_hours"] = parse_hours(fields["worked_hours"])
        if "percentage" in fields:
            fields["percentage"] = parse_percentage(fields["percentage"])
        for optional in ("task_id", "description"):
            if optional in fields and not fields[optional]:
                fields[optional] = None

        if {"project_id", "stage_id", "task_id"} & fields.keys():
            current = self._stored_record(record_id)
            if current is not None:
                project_id = fields.get("project_id", current.project_id)
                stage_id = fields.get("stage_id", current.stage_id)
                task_id = fields["task_id"] if "task_id" in fields else current.task_id
                if not project_id or not stage_id:
                    raise ValidationError(MSG_PROJECT_STAGE_REQUIRED)
                self._check_hierarchy(project_id, stage_id, task_id)

        try:
            storage.update_record(record_id, **fields)
        except sqlite3.Error as e:
            logger.error("Erro ao atualizar registro %s: %s", record_id, e, exc_info=True)
            raise DataAccessError("Erro ao atualizar registro.") from e

        self._after_write()

    def update_from_form(self, record_id: str, form: RecordForm) -> None:
        if not form.project_id or not form.stage_id:
            raise ValidationError(MSG_PROJECT_STAGE_REQUIRED)
        self.update(
            record_id,
            project_id=form.project_id,
            stage_id=form.stage_id,
            task_id=form.task_id,
            worked_hours=form.worked_hours,
            percentage=form.percentage,
            description=form.description.strip(),
        )

    def delete(self, record_id: str) -> None:
        try:
            storage.delete_record(record_id)
        except sqlite3.Error as e:
            logger.error("Erro ao excluir registro %s: %s", record_id, e, exc_info=True)
            raise DataAccessError("Erro ao excluir registro.") from e

        logger.info("Registro %s excluído", record_id)
        self._after_write()
