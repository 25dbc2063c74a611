"""Shared fixtures for tests."""

from __future__ import annotations

import importlib
import os
import tempfile
from datetime import date
from decimal import Decimal

import pytest

# Point storage at a throwaway database before anything imports it
_test_db_fd, _test_db_path = tempfile.mkstemp(suffix=".db")
os.close(_test_db_fd)
os.environ["WORKSYNC_DB"] = _test_db_path


@pytest.fixture(autouse=True)
def temp_database(tmp_path, monkeypatch):
    """Use a fresh temporary database for every test."""
    db_path = tmp_path / "test_worksync.db"
    monkeypatch.setenv("WORKSYNC_DB", str(db_path))

    # Re-import storage to pick up new DB_PATH
    import storage
    importlib.reload(storage)
    storage.init_db()

    yield storage

    if db_path.exists():
        db_path.unlink()


@pytest.fixture
def context(temp_database):
    """Session for the first (administrator) user."""
    import profiles

    return profiles.open_session("ana@example.com", "Ana Souza")


@pytest.fixture
def other_context(context):
    """Session for a second user, who starts as a collaborator."""
    import profiles

    return profiles.open_session("bruno@example.com", "Bruno Lima")


@pytest.fixture
def project_tree(temp_database):
    """Two projects: A with stages S1 (tasks T1, T2) and S2, B with stage S3."""
    import projects

    project_a = projects.save_project("Projeto A", "Primeiro projeto")
    project_b = projects.save_project("Projeto B")
    s1 = projects.save_stage("Etapa S1", project_a.id)
    s2 = projects.save_stage("Etapa S2", project_a.id)
    s3 = projects.save_stage("Etapa S3", project_b.id)
    t1 = projects.save_task("Tarefa T1", s1.id)
    t2 = projects.save_task("Tarefa T2", s1.id)

    return {
        "A": project_a, "B": project_b,
        "S1": s1, "S2": s2, "S3": s3,
        "T1": t1, "T2": t2,
    }


@pytest.fixture
def clocked_day(context):
    """2024-05-01 with an 8 hour clock entry."""
    import storage
    from models import ClockEntry

    day = date(2024, 5, 1)
    storage.insert_clock_entry(ClockEntry(user_id=context.user_id, date=day, total_hours=Decimal("8")))
    return day


@pytest.fixture
def manager(context, project_tree, clocked_day):
    """RecordManager on the clocked day, counting month refreshes."""
    from records import RecordManager

    calls = []
    mgr = RecordManager(context, clocked_day, on_month_changed=lambda: calls.append(1))
    mgr.refresh()
    mgr.month_refreshes = calls
    return mgr
