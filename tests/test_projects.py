"""Tests for projects.py - project tree editing."""

import sqlite3
from unittest.mock import patch

import pytest

import storage
from errors import DataAccessError, ValidationError
from models import ProjectStatus
from projects import (
    DELETE_WARNINGS,
    MSG_NAME_REQUIRED,
    MSG_PARENT_REQUIRED,
    delete_item,
    load_tree,
    save_project,
    save_stage,
    save_task,
)


class TestSave:
    """Tests for the save functions."""

    def test_blank_name_rejected(self):
        with patch("storage.save_project") as save:
            with pytest.raises(ValidationError) as exc_info:
                save_project("   ")
        save.assert_not_called()
        assert exc_info.value.message == MSG_NAME_REQUIRED

    def test_trims_and_blanks_description(self):
        project = save_project("  Portal  ", "   ")
        assert project.name == "Portal"
        assert project.description is None

    def test_edit_keeps_id(self):
        project = save_project("Portal")
        edited = save_project("Portal novo", "desc", ProjectStatus.DONE, project_id=project.id)

        loaded = storage.get_project(project.id)
        assert edited.id == project.id
        assert loaded.name == "Portal novo"
        assert loaded.status == ProjectStatus.DONE

    def test_stage_needs_project(self):
        with pytest.raises(ValidationError) as exc_info:
            save_stage("Etapa", "")
        assert exc_info.value.message == MSG_PARENT_REQUIRED

    def test_task_needs_stage(self):
        with pytest.raises(ValidationError):
            save_task("Tarefa", "")

    def test_storage_failure(self):
        with patch("storage.save_project", side_effect=sqlite3.OperationalError("locked")):
            with pytest.raises(DataAccessError) as exc_info:
                save_project("Portal")
        assert exc_info.value.message == "Erro ao salvar projeto."


class TestLoadTree:
    """Tests for load_tree and ProjectTree."""

    def test_rows_depth_first(self, project_tree):
        tree = load_tree()

        rows = [(kind, depth, item.name) for kind, depth, item in tree.rows()]

        assert rows == [
            ("project", 0, "Projeto A"),
            ("stage", 1, "Etapa S1"),
            ("task", 2, "Tarefa T1"),
            ("task", 2, "Tarefa T2"),
            ("stage", 1, "Etapa S2"),
            ("project", 0, "Projeto B"),
            ("stage", 1, "Etapa S3"),
        ]

    def test_children_lookup(self, project_tree):
        tree = load_tree()
        assert [s.name for s in tree.stages_of(project_tree["B"].id)] == ["Etapa S3"]
        assert tree.tasks_of(project_tree["S2"].id) == []

    def test_storage_failure(self):
        with patch("storage.get_all_projects", side_effect=sqlite3.OperationalError("locked")):
            with pytest.raises(DataAccessError):
                load_tree()


class TestDeleteItem:
    """Tests for delete_item function."""

    def test_delete_project_removes_children(self, project_tree):
        delete_item("project", project_tree["A"].id)

        tree = load_tree()
        assert [p.name for p in tree.projects] == ["Projeto B"]
        assert [s.name for s in tree.stages] == ["Etapa S3"]
        assert tree.tasks == []

    def test_delete_stage(self, project_tree):
        delete_item("stage", project_tree["S1"].id)

        tree = load_tree()
        assert storage.get_task(project_tree["T1"].id) is None
        assert len(tree.stages) == 2

    def test_delete_task(self, project_tree):
        delete_item("task", project_tree["T1"].id)
        assert [t.name for t in load_tree().tasks] == ["Tarefa T2"]

    def test_storage_failure(self, project_tree):
        with patch("storage.delete_stage", side_effect=sqlite3.OperationalError("locked")):
            with pytest.raises(DataAccessError) as exc_info:
                delete_item("stage", project_tree["S1"].id)
        assert exc_info.value.message == "Erro ao excluir etapa."

    def test_warnings_mention_cascade(self):
        assert "etapas e tarefas" in DELETE_WARNINGS["project"].format(name="A")
        assert "tarefas" in DELETE_WARNINGS["stage"].format(name="S1")
