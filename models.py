from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal
from enum import Enum


class DayStatus(Enum):
    COMPLETE = "complete"
    INCOMPLETE = "incomplete"
    NONE = "none"


class ProjectStatus(Enum):
    OPEN = "aberto"
    IN_PROGRESS = "em_andamento"
    DONE = "concluido"
    PAUSED = "pausado"

    @property
    def label(self) -> str:
        return PROJECT_STATUS_LABELS[self]


PROJECT_STATUS_LABELS = {
    ProjectStatus.OPEN: "Aberto",
    ProjectStatus.IN_PROGRESS: "Em andamento",
    ProjectStatus.DONE: "Concluído",
    ProjectStatus.PAUSED: "Pausado",
}


class UserRole(Enum):
    COLLABORATOR = "colaborador"
    MANAGER = "gerente"
    ADMINISTRATOR = "administrador"

    @property
    def label(self) -> str:
        return USER_ROLE_LABELS[self]


USER_ROLE_LABELS = {
    UserRole.COLLABORATOR: "Colaborador",
    UserRole.MANAGER: "Gerente",
    UserRole.ADMINISTRATOR: "Administrador",
}


@dataclass
class ClockEntry:
    """A user's declared total working hours for one date (horasponto)."""

    user_id: str
    date: date
    total_hours: Decimal


@dataclass
class AllocationRecord:
    user_id: str
    date: date
    project_id: str
    stage_id: str
    worked_hours: Decimal = Decimal("0")
    percentage: int = 0
    task_id: str | None = None
    description: str | None = None
    id: str | None = None
    created_at: datetime | None = None


@dataclass
class Project:
    name: str
    description: str | None = None
    status: ProjectStatus = ProjectStatus.OPEN
    id: str | None = None


@dataclass
class Stage:
    name: str
    project_id: str
    description: str | None = None
    id: str | None = None


@dataclass
class Task:
    name: str
    stage_id: str
    description: str | None = None
    id: str | None = None


@dataclass
class UserProfile:
    email: str
    full_name: str | None = None
    role: UserRole = UserRole.COLLABORATOR
    id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def display_name(self) -> str:
        return self.full_name or self.email

    @property
    def can_manage_users(self) -> bool:
        return self.role in (UserRole.MANAGER, UserRole.ADMINISTRATOR)


@dataclass(frozen=True)
class SessionContext:
    """The authenticated user every manager and screen acts on behalf of."""

    user: UserProfile

    @property
    def user_id(self) -> str:
        assert self.user.id is not None
        return self.user.id


@dataclass
class RecordForm:
    """Editable state of the add/edit record form.

    Changing the project clears the stage and task, changing the stage clears
    the task, so the selection can never point at a child of another parent.
    """

    project_id: str = ""
    stage_id: str = ""
    task_id: str = ""
    worked_hours: str = ""
    percentage: str = ""
    description: str = ""

    def select_project(self, project_id: str) -> RecordForm:
        return replace(self, project_id=project_id, stage_id="", task_id="")

    def select_stage(self, stage_id: str) -> RecordForm:
        return replace(self, stage_id=stage_id, task_id="")

    def select_task(self, task_id: str) -> RecordForm:
        return replace(self, task_id=task_id)

    @classmethod
    def from_record(cls, record: AllocationRecord) -> RecordForm:
        return cls(
            project_id=record.project_id,
            stage_id=record.stage_id,
            task_id=record.task_id or "",
            worked_hours=str(record.worked_hours),
            percentage=str(record.percentage),
            description=record.description or "",
        )


@dataclass
class Config:
    default_day_hours: Decimal = Decimal("8")
    holiday_country: str = "BR"
