"""Project / stage / task tree editing."""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field

import storage
from errors import DataAccessError, ValidationError
from models import Project, ProjectStatus, Stage, Task

logger = logging.getLogger(__name__)

MSG_NAME_REQUIRED = "Nome é obrigatório."
MSG_PARENT_REQUIRED = "Selecione o item pai."

DELETE_WARNINGS = {
    "project": "Excluir o projeto {name}? Todas as etapas e tarefas também serão excluídas.",
    "stage": "Excluir a etapa {name}? Todas as tarefas também serão excluídas.",
    "task": "Excluir a tarefa {name}?",
}


@dataclass
class ProjectTree:
    """Projects with their stages and tasks, each level sorted by name."""

    projects: list[Project] = field(default_factory=list)
    stages: list[Stage] = field(default_factory=list)
    tasks: list[Task] = field(default_factory=list)

    def stages_of(self, project_id: str) -> list[Stage]:
        return [s for s in self.stages if s.project_id == project_id]

    def tasks_of(self, stage_id: str) -> list[Task]:
        return [t for t in self.tasks if t.stage_id == stage_id]

    def rows(self) -> list[tuple[str, int, Project | Stage | Task]]:
        """Flatten the tree depth-first as (kind, depth, item)."""
        result: list[tuple[str, int, Project | Stage | Task]] = []
        for project in self.projects:
            result.append(("project", 0, project))
            for stage in self.stages_of(project.id or ""):
                result.append(("stage", 1, stage))
                for task in self.tasks_of(stage.id or ""):
                    result.append(("task", 2, task))
        return result


def load_tree() -> ProjectTree:
    try:
        return ProjectTree(
            projects=storage.get_all_projects(),
            stages=storage.get_all_stages(),
            tasks=storage.get_all_tasks(),
        )
    except sqlite3.Error as e:
        logger.error("Erro ao carregar projetos: %s", e, exc_info=True)
        raise DataAccessError("Erro ao carregar projetos.") from e


def _clean(name: str, description: str | None) -> tuple[str, str | None]:
    name = name.strip()
    if not name:
        raise ValidationError(MSG_NAME_REQUIRED)
    return name, (description or "").strip() or None


def save_project(
    name: str,
    description: str | None = None,
    status: ProjectStatus = ProjectStatus.OPEN,
    project_id: str | None = None,
) -> Project:
    name, description = _clean(name, description)
    project = Project(id=project_id, name=name, description=description, status=status)
    try:
        return storage.save_project(project)
    except sqlite3.Error as e:
        logger.error("Erro ao salvar projeto: %s", e, exc_info=True)
        raise DataAccessError("Erro ao salvar projeto.") from e


def save_stage(
    name: str,
    project_id: str,
    description: str | None = None,
    stage_id: str | None = None,
) -> Stage:
    name, description = _clean(name, description)
    if not project_id:
        raise ValidationError(MSG_PARENT_REQUIRED)
    stage = Stage(id=stage_id, name=name, description=description, project_id=project_id)
    try:
        return storage.save_stage(stage)
    except sqlite3.Error as e:
        logger.error("Erro ao salvar etapa: %s", e, exc_info=True)
        raise DataAccessError("Erro ao salvar etapa.") from e


def save_task(
    name: str,
    stage_id: str,
    description: str | None = None,
    task_id: str | None = None,
) -> Task:
    name, description = _clean(name, description)
    if not stage_id:
        raise ValidationError(MSG_PARENT_REQUIRED)
    task = Task(id=task_id, name=name, description=description, stage_id=stage_id)
    try:
        return storage.save_task(task)
    except sqlite3.Error as e:
        logger.error("Erro ao salvar tarefa: %s", e, exc_info=True)
        raise DataAccessError("Erro ao salvar tarefa.") from e


_DELETERS = {
    "project": ("delete_project", "Erro ao excluir projeto."),
    "stage": ("delete_stage", "Erro ao excluir etapa."),
    "task": ("delete_task", "Erro ao excluir tarefa."),
}


def delete_item(kind: str, item_id: str) -> None:
    """Delete a project, stage or task. Children are removed by storage."""
    deleter, message = _DELETERS[kind]
    try:
        getattr(storage, deleter)(item_id)
    except sqlite3.Error as e:
        logger.error("Erro ao excluir %s %s: %s", kind, item_id, e, exc_info=True)
        raise DataAccessError(message) from e
    logger.info("Excluído %s %s", kind, item_id)
