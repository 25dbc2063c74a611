"""Tests for records.py - the day's record collection."""

import sqlite3
from datetime import date
from decimal import Decimal
from unittest.mock import patch

import pytest

from day_status import month_day_status
from errors import DataAccessError, ValidationError
from models import DayStatus, RecordForm
from records import (
    MSG_INVALID_VALUES,
    MSG_NO_CLOCK_ENTRY,
    MSG_PROJECT_STAGE_REQUIRED,
    MSG_STAGE_MISMATCH,
    MSG_TASK_MISMATCH,
    RecordManager,
    UNKNOWN_PROJECT,
)


def _form(tree, hours="5", percentage="62", **overrides) -> RecordForm:
    form = RecordForm(
        project_id=tree["A"].id,
        stage_id=tree["S1"].id,
        worked_hours=hours,
        percentage=percentage,
    )
    for key, value in overrides.items():
        setattr(form, key, value)
    return form


class TestCreate:
    """Tests for RecordManager.create."""

    def test_rejected_without_clock_entry(self, context, project_tree):
        manager = RecordManager(context, date(2024, 5, 2))
        manager.refresh()

        with patch("storage.insert_record") as insert:
            with pytest.raises(ValidationError) as exc_info:
                manager.create(_form(project_tree))

        insert.assert_not_called()
        assert exc_info.value.message == MSG_NO_CLOCK_ENTRY
        assert manager.can_add is False

    def test_rejected_without_project(self, manager, project_tree):
        with patch("storage.insert_record") as insert:
            with pytest.raises(ValidationError) as exc_info:
                manager.create(_form(project_tree, project_id=""))

        insert.assert_not_called()
        assert exc_info.value.message == MSG_PROJECT_STAGE_REQUIRED

    def test_rejected_without_stage(self, manager, project_tree):
        with patch("storage.insert_record") as insert:
            with pytest.raises(ValidationError):
                manager.create(_form(project_tree, stage_id=""))
        insert.assert_not_called()

    @pytest.mark.parametrize("hours,percentage", [("abc", "50"), ("-1", "50"), ("", "50"), ("4", "101")])
    def test_rejected_with_invalid_numbers(self, manager, project_tree, hours, percentage):
        with patch("storage.insert_record") as insert:
            with pytest.raises(ValidationError) as exc_info:
                manager.create(_form(project_tree, hours=hours, percentage=percentage))

        insert.assert_not_called()
        assert exc_info.value.message == MSG_INVALID_VALUES

    def test_rejected_when_stage_of_other_project(self, manager, project_tree):
        with pytest.raises(ValidationError) as exc_info:
            manager.create(_form(project_tree, stage_id=project_tree["S3"].id))
        assert exc_info.value.message == MSG_STAGE_MISMATCH

    def test_rejected_when_task_of_other_stage(self, manager, project_tree):
        with pytest.raises(ValidationError) as exc_info:
            manager.create(_form(project_tree, stage_id=project_tree["S2"].id, task_id=project_tree["T1"].id))
        assert exc_info.value.message == MSG_TASK_MISMATCH

    def test_success_clears_form_and_refreshes(self, manager, project_tree):
        manager.form = _form(project_tree, task_id=project_tree["T1"].id, description="  Revisão ")

        record = manager.create()

        assert record.id is not None
        assert record.task_id == project_tree["T1"].id
        assert record.description == "Revisão"
        assert manager.form == RecordForm()
        assert [r.id for r in manager.records] == [record.id]
        assert manager.month_refreshes == [1]

    def test_empty_task_stored_as_none(self, manager, project_tree):
        record = manager.create(_form(project_tree))
        assert record.task_id is None
        assert manager.records[0].task_id is None

    def test_storage_failure(self, manager, project_tree):
        with patch("storage.insert_record", side_effect=sqlite3.OperationalError("disk I/O error")):
            with pytest.raises(DataAccessError) as exc_info:
                manager.create(_form(project_tree))

        assert exc_info.value.message == "Erro ao adicionar registro."
        assert manager.month_refreshes == []

    def test_month_recomputed_when_reload_fails(self, manager, project_tree, temp_database):
        with patch("storage.get_records_for_date", side_effect=sqlite3.OperationalError("gone")):
            with pytest.raises(DataAccessError) as exc_info:
                manager.create(_form(project_tree))

        assert exc_info.value.message == "Erro ao carregar registros."
        assert manager.month_refreshes == [1]
        assert len(temp_database.get_records_for_month(manager.context.user_id, 2024, 5)) == 1


class TestList:
    """Tests for RecordManager.list / refresh."""

    def test_ordered_by_creation(self, manager, project_tree):
        first = manager.create(_form(project_tree, hours="1", percentage="13"))
        second = manager.create(_form(project_tree, hours="2", percentage="25"))
        third = manager.create(_form(project_tree, hours="3", percentage="38"))

        assert [r.id for r in manager.list()] == [first.id, second.id, third.id]

    def test_scoped_to_user_and_date(self, manager, project_tree, other_context, temp_database):
        manager.create(_form(project_tree))

        other = RecordManager(other_context, manager.day)
        other.refresh()
        assert other.records == []

        next_day = RecordManager(manager.context, date(2024, 5, 2))
        next_day.refresh()
        assert next_day.records == []

    def test_failure_keeps_previous_state(self, manager, project_tree):
        manager.create(_form(project_tree))
        before = list(manager.records)

        with patch("storage.get_records_for_date", side_effect=sqlite3.OperationalError("gone")):
            with pytest.raises(DataAccessError) as exc_info:
                manager.refresh()

        assert exc_info.value.message == "Erro ao carregar registros."
        assert manager.records == before
        assert manager.loading is False

    def test_loads_clock_entry(self, manager):
        assert manager.clock_entry is not None
        assert manager.clock_entry.total_hours == Decimal("8")
        assert manager.reference_hours == Decimal("8")
        assert manager.can_add is True

    def test_reference_hours_default(self, context):
        manager = RecordManager(context, date(2024, 5, 2))
        manager.refresh()
        assert manager.reference_hours == Decimal("8")


class TestUpdate:
    """Tests for RecordManager.update."""

    def test_partial_update(self, manager, project_tree):
        record = manager.create(_form(project_tree, description="antes"))

        manager.update(record.id, worked_hours="6", percentage="75")

        updated = manager.records[0]
        assert updated.worked_hours == Decimal("6")
        assert updated.percentage == 75
        assert updated.description == "antes"
        assert updated.project_id == project_tree["A"].id
        assert manager.month_refreshes == [1, 1]

    def test_clearing_optional_fields(self, manager, project_tree):
        record = manager.create(_form(project_tree, task_id=project_tree["T1"].id, description="nota"))

        manager.update(record.id, task_id="", description="")

        assert manager.records[0].task_id is None
        assert manager.records[0].description is None

    def test_invalid_hours(self, manager, project_tree):
        record = manager.create(_form(project_tree))
        with pytest.raises(ValidationError):
            manager.update(record.id, worked_hours="muito")

    def test_update_from_form(self, manager, project_tree):
        record = manager.create(_form(project_tree))
        form = RecordForm.from_record(record).select_project(project_tree["B"].id)
        form = form.select_stage(project_tree["S3"].id)

        manager.update_from_form(record.id, form)

        assert manager.records[0].project_id == project_tree["B"].id
        assert manager.records[0].stage_id == project_tree["S3"].id

    def test_update_from_form_checks_hierarchy(self, manager, project_tree):
        record = manager.create(_form(project_tree))
        form = RecordForm.from_record(record)
        form.stage_id = project_tree["S3"].id

        with patch("storage.update_record") as update:
            with pytest.raises(ValidationError):
                manager.update_from_form(record.id, form)
        update.assert_not_called()


    def test_project_change_alone_rejected(self, manager, project_tree):
        record = manager.create(_form(project_tree))

        with patch("storage.update_record") as update:
            with pytest.raises(ValidationError) as exc_info:
                manager.update(record.id, project_id=project_tree["B"].id)

        update.assert_not_called()
        assert exc_info.value.message == MSG_STAGE_MISMATCH

    def test_stage_change_checked_against_stored_project(self, manager, project_tree):
        record = manager.create(_form(project_tree))

        with pytest.raises(ValidationError):
            manager.update(record.id, stage_id=project_tree["S3"].id)

        stored = manager.records[0]
        assert stored.project_id == project_tree["A"].id
        assert stored.stage_id == project_tree["S1"].id

    def test_task_change_checked_against_stored_stage(self, manager, project_tree):
        record = manager.create(_form(project_tree, stage_id=project_tree["S2"].id))

        with pytest.raises(ValidationError) as exc_info:
            manager.update(record.id, task_id=project_tree["T1"].id)
        assert exc_info.value.message == MSG_TASK_MISMATCH

    def test_consistent_partial_move(self, manager, project_tree):
        record = manager.create(_form(project_tree, task_id=project_tree["T1"].id))

        manager.update(record.id, stage_id=project_tree["S2"].id, task_id="")

        stored = manager.records[0]
        assert stored.stage_id == project_tree["S2"].id
        assert stored.task_id is None
        stage = next(s for s in manager.stages if s.id == stored.stage_id)
        assert stage.project_id == stored.project_id

    def test_month_recomputed_when_reload_fails(self, manager, project_tree):
        record = manager.create(_form(project_tree))

        with patch("storage.get_records_for_date", side_effect=sqlite3.OperationalError("gone")):
            with pytest.raises(DataAccessError):
                manager.update(record.id, worked_hours="7")

        assert manager.month_refreshes == [1, 1]


class TestDelete:
    """Tests for RecordManager.delete."""

    def test_month_recomputed_when_reload_fails(self, manager, project_tree):
        record = manager.create(_form(project_tree))

        with patch("storage.get_records_for_date", side_effect=sqlite3.OperationalError("gone")):
            with pytest.raises(DataAccessError):
                manager.delete(record.id)

        assert manager.month_refreshes == [1, 1]

    def test_removes_and_recomputes_month(self, manager, project_tree):
        record = manager.create(_form(project_tree, hours="8", percentage="100"))
        assert month_day_status(manager.context.user_id, 2024, 5)["2024-05-01"] == DayStatus.COMPLETE

        manager.delete(record.id)

        assert manager.records == []
        assert manager.month_refreshes == [1, 1]
        assert month_day_status(manager.context.user_id, 2024, 5)["2024-05-01"] == DayStatus.NONE

    def test_storage_failure(self, manager, project_tree):
        record = manager.create(_form(project_tree))
        with patch("storage.delete_record", side_effect=sqlite3.OperationalError("locked")):
            with pytest.raises(DataAccessError) as exc_info:
                manager.delete(record.id)
        assert exc_info.value.message == "Erro ao excluir registro."


class TestFilterAndSelection:
    """Tests for name filtering and cascading selection."""

    def test_filter_by_resolved_names(self, manager, project_tree):
        manager.create(_form(project_tree, task_id=project_tree["T2"].id))
        manager.create(_form(project_tree, project_id=project_tree["B"].id, stage_id=project_tree["S3"].id))

        assert len(manager.filter("projeto a")) == 1
        assert len(manager.filter("S3")) == 1
        assert len(manager.filter("tarefa t2")) == 1
        assert len(manager.filter("etapa")) == 2
        assert len(manager.filter("")) == 2

    def test_filter_ignores_raw_ids(self, manager, project_tree):
        manager.create(_form(project_tree))
        assert manager.filter(project_tree["A"].id) == []

    def test_unknown_names(self, manager):
        assert manager.project_name("missing") == UNKNOWN_PROJECT
        assert manager.task_name(None) == ""

    def test_select_project_resets_dependents(self, manager, project_tree):
        manager.form = RecordForm(
            project_id=project_tree["A"].id,
            stage_id=project_tree["S1"].id,
            task_id=project_tree["T1"].id,
        )

        form = manager.select_project(project_tree["B"].id)

        assert form.stage_id == ""
        assert form.task_id == ""
        assert [s.id for s in manager.stages_for(form.project_id)] == [project_tree["S3"].id]

    def test_select_stage_resets_task(self, manager, project_tree):
        manager.select_project(project_tree["A"].id)
        manager.select_stage(project_tree["S1"].id)
        manager.select_task(project_tree["T1"].id)

        form = manager.select_stage(project_tree["S2"].id)

        assert form.project_id == project_tree["A"].id
        assert form.task_id == ""
        assert manager.tasks_for(form.stage_id) == []

    def test_tasks_for_stage(self, manager, project_tree):
        names = [t.name for t in manager.tasks_for(project_tree["S1"].id)]
        assert names == ["Tarefa T1", "Tarefa T2"]


class TestTotals:
    """Tests for the day totals."""

    def test_end_to_end_overtime(self, manager, project_tree):
        manager.create(_form(project_tree, hours="5", percentage="62"))
        manager.create(_form(project_tree, hours="4", percentage="38"))

        assert manager.total_hours == Decimal("9")
        assert manager.total_percentage == 112
        assert manager.is_overtime is True
        assert manager.excess_hours == Decimal("1.0")
        assert month_day_status(manager.context.user_id, 2024, 5)["2024-05-01"] == DayStatus.COMPLETE

    def test_no_overtime(self, manager, project_tree):
        manager.create(_form(project_tree, hours="3", percentage="38"))

        assert manager.is_overtime is False
        assert manager.excess_hours == Decimal("0.0")
        assert manager.total_percentage == 37

    def test_empty_day(self, manager):
        assert manager.total_hours == Decimal("0")
        assert manager.total_percentage == 0
