from __future__ import annotations

import os
import sqlite3
import uuid
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path

from models import (
    AllocationRecord,
    ClockEntry,
    Config,
    Project,
    ProjectStatus,
    Stage,
    Task,
    UserProfile,
    UserRole,
)
from utils import month_bounds

# Columns an allocation record update may touch
RECORD_FIELDS = (
    "project_id",
    "stage_id",
    "task_id",
    "worked_hours",
    "percentage",
    "description",
)


def _get_db_path() -> Path:
    """Get database path from environment variable or default location."""
    if env_path := os.environ.get("WORKSYNC_DB"):
        return Path(env_path)
    return Path(__file__).parent / "data" / "worksync.db"


DB_PATH = _get_db_path()


def get_connection() -> sqlite3.Connection:
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(DB_PATH)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_db():
    """Create tables if they don't exist."""
    conn = get_connection()
    conn.executescript("""
        CREATE TABLE IF NOT EXISTS profiles (
            id TEXT PRIMARY KEY,
            email TEXT NOT NULL UNIQUE,
            full_name TEXT,
            role TEXT NOT NULL DEFAULT 'colaborador',
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS config (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS projects (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            description TEXT,
            status TEXT NOT NULL DEFAULT 'aberto'
        );

        CREATE TABLE IF NOT EXISTS stages (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            description TEXT,
            project_id TEXT NOT NULL,
            FOREIGN KEY (project_id) REFERENCES projects(id) ON DELETE CASCADE
        );

        CREATE TABLE IF NOT EXISTS tasks (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            description TEXT,
            stage_id TEXT NOT NULL,
            FOREIGN KEY (stage_id) REFERENCES stages(id) ON DELETE CASCADE
        );

        CREATE TABLE IF NOT EXISTS horasponto (
            user_id TEXT NOT NULL,
            date TEXT NOT NULL,
            total_hours TEXT NOT NULL,
            PRIMARY KEY (user_id, date)
        );

        CREATE TABLE IF NOT EXISTS records (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            date TEXT NOT NULL,
            project_id TEXT NOT NULL,
            stage_id TEXT NOT NULL,
            task_id TEXT,
            worked_hours TEXT NOT NULL,
            percentage INTEGER NOT NULL,
            description TEXT,
            created_at TEXT NOT NULL,
            FOREIGN KEY (project_id) REFERENCES projects(id) ON DELETE CASCADE,
            FOREIGN KEY (stage_id) REFERENCES stages(id) ON DELETE CASCADE,
            FOREIGN KEY (task_id) REFERENCES tasks(id) ON DELETE SET NULL
        );

        CREATE INDEX IF NOT EXISTS idx_records_user_date ON records(user_id, date);
        CREATE INDEX IF NOT EXISTS idx_stages_project ON stages(project_id);
        CREATE INDEX IF NOT EXISTS idx_tasks_stage ON tasks(stage_id);
    """)
    conn.commit()
    conn.close()


def _new_id() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now()


# --- Config ---


def get_config() -> Config:
    """Load config from database."""
    conn = get_connection()
    rows = conn.execute("SELECT key, value FROM config").fetchall()
    conn.close()

    config = Config()
    for row in rows:
        if row["key"] == "default_day_hours":
            config.default_day_hours = Decimal(row["value"])
        elif row["key"] == "holiday_country":
            config.holiday_country = row["value"]

    return config


def save_config(config: Config):
    """Save config to database."""
    conn = get_connection()
    conn.execute("INSERT OR REPLACE INTO config (key, value) VALUES (?, ?)",
                 ("default_day_hours", str(config.default_day_hours)))
    conn.execute("INSERT OR REPLACE INTO config (key, value) VALUES (?, ?)",
                 ("holiday_country", config.holiday_country))
    conn.commit()
    conn.close()


def get_holidays_in_range(start: date, end: date, country: str = "BR") -> dict[date, str]:
    """Get national holidays in a date range."""
    import holidays

    years = list(range(start.year, end.year + 1))
    calendar = holidays.country_holidays(country, years=years)
    return {d: name for d, name in calendar.items() if start <= d <= end}


# --- Clock entry (horasponto) Functions ---


def _row_to_clock_entry(row: sqlite3.Row) -> ClockEntry:
    return ClockEntry(
        user_id=row["user_id"],
        date=date.fromisoformat(row["date"]),
        total_hours=Decimal(row["total_hours"]),
    )


def get_clock_entry(user_id: str, d: date) -> ClockEntry | None:
    """Get the clock entry of a user for one date."""
    conn = get_connection()
    row = conn.execute(
        "SELECT * FROM horasponto WHERE user_id = ? AND date = ?",
        (user_id, d.isoformat()),
    ).fetchone()
    conn.close()
    return _row_to_clock_entry(row) if row else None


def insert_clock_entry(entry: ClockEntry) -> None:
    conn = get_connection()
    conn.execute(
        "INSERT INTO horasponto (user_id, date, total_hours) VALUES (?, ?, ?)",
        (entry.user_id, entry.date.isoformat(), str(entry.total_hours)),
    )
    conn.commit()
    conn.close()


def update_clock_entry(entry: ClockEntry) -> None:
    conn = get_connection()
    conn.execute(
        "UPDATE horasponto SET total_hours = ? WHERE user_id = ? AND date = ?",
        (str(entry.total_hours), entry.user_id, entry.date.isoformat()),
    )
    conn.commit()
    conn.close()


def delete_clock_entry(user_id: str, d: date) -> None:
    conn = get_connection()
    conn.execute(
        "DELETE FROM horasponto WHERE user_id = ? AND date = ?",
        (user_id, d.isoformat()),
    )
    conn.commit()
    conn.close()


def get_clock_entries_for_month(user_id: str, year: int, month: int) -> list[ClockEntry]:
    """Get a user's clock entries for a calendar month."""
    start, end = month_bounds(year, month)
    conn = get_connection()
    rows = conn.execute(
        """
        SELECT * FROM horasponto
        WHERE user_id = ? AND date >= ? AND date <= ?
        ORDER BY date
        """,
        (user_id, start.isoformat(), end.isoformat()),
    ).fetchall()
    conn.close()
    return [_row_to_clock_entry(row) for row in rows]


# --- Allocation record Functions ---


def _row_to_record(row: sqlite3.Row) -> AllocationRecord:
    """Convert a database row to an AllocationRecord object."""
    return AllocationRecord(
        id=row["id"],
        user_id=row["user_id"],
        date=date.fromisoformat(row["date"]),
        project_id=row["project_id"],
        stage_id=row["stage_id"],
        task_id=row["task_id"],
        worked_hours=Decimal(row["worked_hours"]),
        percentage=int(row["percentage"]),
        description=row["description"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def get_records_for_date(user_id: str, d: date) -> list[AllocationRecord]:
    """Get a user's records for one date, oldest first."""
    conn = get_connection()
    rows = conn.execute(
        """
        SELECT * FROM records
        WHERE user_id = ? AND date = ?
        ORDER BY created_at, rowid
        """,
        (user_id, d.isoformat()),
    ).fetchall()
    conn.close()
    return [_row_to_record(row) for row in rows]


def get_records_for_month(user_id: str, year: int, month: int) -> list[AllocationRecord]:
    """Get a user's records for a calendar month."""
    start, end = month_bounds(year, month)
    conn = get_connection()
    rows = conn.execute(
        """
        SELECT * FROM records
        WHERE user_id = ? AND date >= ? AND date <= ?
        ORDER BY date, created_at, rowid
        """,
        (user_id, start.isoformat(), end.isoformat()),
    ).fetchall()
    conn.close()
    return [_row_to_record(row) for row in rows]


def get_record(record_id: str) -> AllocationRecord | None:
    conn = get_connection()
    row = conn.execute("SELECT * FROM records WHERE id = ?", (record_id,)).fetchone()
    conn.close()
    return _row_to_record(row) if row else None


def insert_record(record: AllocationRecord) -> AllocationRecord:
    """Insert a record, assigning its id and creation timestamp."""
    record.id = record.id or _new_id()
    record.created_at = record.created_at or _now()
    conn = get_connection()
    conn.execute(
        """
        INSERT INTO records
        (id, user_id, date, project_id, stage_id, task_id,
         worked_hours, percentage, description, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            record.id,
            record.user_id,
            record.date.isoformat(),
            record.project_id,
            record.stage_id,
            record.task_id,
            str(record.worked_hours),
            record.percentage,
            record.description,
            record.created_at.isoformat(),
        ),
    )
    conn.commit()
    conn.close()
    return record


def update_record(record_id: str, **fields) -> None:
    """Partially update a record. Unknown field names raise ValueError."""
    unknown = set(fields) - set(RECORD_FIELDS)
    if unknown:
        raise ValueError(f"Unknown record fields: {', '.join(sorted(unknown))}")
    if not fields:
        return

    values = []
    for name in fields:
        value = fields[name]
        if name == "worked_hours":
            value = str(value)
        values.append(value)

    assignments = ", ".join(f"{name} = ?" for name in fields)
    conn = get_connection()
    conn.execute(
        f"UPDATE records SET {assignments} WHERE id = ?",
        (*values, record_id),
    )
    conn.commit()
    conn.close()


def delete_record(record_id: str) -> None:
    conn = get_connection()
    conn.execute("DELETE FROM records WHERE id = ?", (record_id,))
    conn.commit()
    conn.close()


# --- Project / Stage / Task Functions ---


def _row_to_project(row: sqlite3.Row) -> Project:
    return Project(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        status=ProjectStatus(row["status"]),
    )


def _row_to_stage(row: sqlite3.Row) -> Stage:
    return Stage(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        project_id=row["project_id"],
    )


def _row_to_task(row: sqlite3.Row) -> Task:
    return Task(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        stage_id=row["stage_id"],
    )


def save_project(project: Project) -> Project:
    """Insert or update a project."""
    project.id = project.id or _new_id()
    conn = get_connection()
    conn.execute(
        """
        INSERT INTO projects (id, name, description, status) VALUES (?, ?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET
            name = excluded.name,
            description = excluded.description,
            status = excluded.status
        """,
        (project.id, project.name, project.description, project.status.value),
    )
    conn.commit()
    conn.close()
    return project


def get_project(project_id: str) -> Project | None:
    conn = get_connection()
    row = conn.execute("SELECT * FROM projects WHERE id = ?", (project_id,)).fetchone()
    conn.close()
    return _row_to_project(row) if row else None


def get_all_projects() -> list[Project]:
    conn = get_connection()
    rows = conn.execute("SELECT * FROM projects ORDER BY name").fetchall()
    conn.close()
    return [_row_to_project(row) for row in rows]


def delete_project(project_id: str) -> None:
    """Delete a project. Its stages, tasks and records go with it."""
    conn = get_connection()
    conn.execute("DELETE FROM projects WHERE id = ?", (project_id,))
    conn.commit()
    conn.close()


def save_stage(stage: Stage) -> Stage:
    """Insert or update a stage."""
    stage.id = stage.id or _new_id()
    conn = get_connection()
    conn.execute(
        """
        INSERT INTO stages (id, name, description, project_id) VALUES (?, ?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET
            name = excluded.name,
            description = excluded.description,
            project_id = excluded.project_id
        """,
        (stage.id, stage.name, stage.description, stage.project_id),
    )
    conn.commit()
    conn.close()
    return stage


def get_stage(stage_id: str) -> Stage | None:
    conn = get_connection()
    row = conn.execute("SELECT * FROM stages WHERE id = ?", (stage_id,)).fetchone()
    conn.close()
    return _row_to_stage(row) if row else None


def get_all_stages(project_id: str | None = None) -> list[Stage]:
    """Get stages, optionally only those of one project."""
    conn = get_connection()
    if project_id is None:
        rows = conn.execute("SELECT * FROM stages ORDER BY name").fetchall()
    else:
        rows = conn.execute(
            "SELECT * FROM stages WHERE project_id = ? ORDER BY name",
            (project_id,),
        ).fetchall()
    conn.close()
    return [_row_to_stage(row) for row in rows]


def delete_stage(stage_id: str) -> None:
    """Delete a stage. Its tasks and records go with it."""
    conn = get_connection()
    conn.execute("DELETE FROM stages WHERE id = ?", (stage_id,))
    conn.commit()
    conn.close()


def save_task(task: Task) -> Task:
    """Insert or update a task."""
    task.id = task.id or _new_id()
    conn = get_connection()
    conn.execute(
        """
        INSERT INTO tasks (id, name, description, stage_id) VALUES (?, ?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET
            name = excluded.name,
            description = excluded.description,
            stage_id = excluded.stage_id
        """,
        (task.id, task.name, task.description, task.stage_id),
    )
    conn.commit()
    conn.close()
    return task


def get_task(task_id: str) -> Task | None:
    conn = get_connection()
    row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
    conn.close()
    return _row_to_task(row) if row else None


def get_all_tasks(stage_id: str | None = None) -> list[Task]:
    """Get tasks, optionally only those of one stage."""
    conn = get_connection()
    if stage_id is None:
        rows = conn.execute("SELECT * FROM tasks ORDER BY name").fetchall()
    else:
        rows = conn.execute(
            "SELECT * FROM tasks WHERE stage_id = ? ORDER BY name",
            (stage_id,),
        ).fetchall()
    conn.close()
    return [_row_to_task(row) for row in rows]


def delete_task(task_id: str) -> None:
    conn = get_connection()
    conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
    conn.commit()
    conn.close()


# --- Profile Functions ---


def _row_to_profile(row: sqlite3.Row) -> UserProfile:
    return UserProfile(
        id=row["id"],
        email=row["email"],
        full_name=row["full_name"],
        role=UserRole(row["role"]),
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


def save_profile(profile: UserProfile) -> UserProfile:
    """Insert or update a profile, maintaining its timestamps."""
    now = _now()
    profile.id = profile.id or _new_id()
    profile.created_at = profile.created_at or now
    profile.updated_at = now
    conn = get_connection()
    conn.execute(
        """
        INSERT INTO profiles (id, email, full_name, role, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET
            email = excluded.email,
            full_name = excluded.full_name,
            role = excluded.role,
            updated_at = excluded.updated_at
        """,
        (
            profile.id,
            profile.email,
            profile.full_name,
            profile.role.value,
            profile.created_at.isoformat(),
            profile.updated_at.isoformat(),
        ),
    )
    conn.commit()
    conn.close()
    return profile


def get_profile(profile_id: str) -> UserProfile | None:
    conn = get_connection()
    row = conn.execute("SELECT * FROM profiles WHERE id = ?", (profile_id,)).fetchone()
    conn.close()
    return _row_to_profile(row) if row else None


def get_profile_by_email(email: str) -> UserProfile | None:
    conn = get_connection()
    row = conn.execute(
        "SELECT * FROM profiles WHERE lower(email) = lower(?)", (email,)
    ).fetchone()
    conn.close()
    return _row_to_profile(row) if row else None


def get_all_profiles() -> list[UserProfile]:
    conn = get_connection()
    rows = conn.execute(
        "SELECT * FROM profiles ORDER BY COALESCE(full_name, email)"
    ).fetchall()
    conn.close()
    return [_row_to_profile(row) for row in rows]


def count_profiles() -> int:
    conn = get_connection()
    row = conn.execute("SELECT COUNT(*) as count FROM profiles").fetchone()
    conn.close()
    return row["count"]


def delete_profile(profile_id: str) -> None:
    conn = get_connection()
    conn.execute("DELETE FROM profiles WHERE id = ?", (profile_id,))
    conn.commit()
    conn.close()
