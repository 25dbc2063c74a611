"""Export a month of allocation records to an Excel workbook."""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path

from openpyxl import Workbook
from openpyxl.styles import Font

import storage
from day_status import compute_day_status
from models import SessionContext
from utils import MONTH_NAMES

HEADERS = ["Data", "Projeto", "Etapa", "Tarefa", "Horas", "%", "Observação"]

STATUS_LABELS = {
    "complete": "Completo",
    "incomplete": "Incompleto",
    "none": "Sem registro",
}


def export_month(context: SessionContext, year: int, month: int, path: Path) -> int:
    """Write the user's records for a month to ``path``. Returns the row count."""
    records = storage.get_records_for_month(context.user_id, year, month)
    clock_entries = storage.get_clock_entries_for_month(context.user_id, year, month)
    projects = {p.id: p.name for p in storage.get_all_projects()}
    stages = {s.id: s.name for s in storage.get_all_stages()}
    tasks = {t.id: t.name for t in storage.get_all_tasks()}

    wb = Workbook()
    ws = wb.active
    ws.title = f"{MONTH_NAMES[month - 1][:3]} {year}"
    ws.append(HEADERS)
    for cell in ws[1]:
        cell.font = Font(bold=True)

    for record in records:
        ws.append([
            record.date,
            projects.get(record.project_id, ""),
            stages.get(record.stage_id, ""),
            tasks.get(record.task_id, "") if record.task_id else "",
            float(record.worked_hours),
            record.percentage,
            record.description or "",
        ])

    # Per-day summary sheet
    summary = wb.create_sheet("Ponto")
    summary.append(["Data", "Ponto (h)", "Alocado (h)", "Status"])
    for cell in summary[1]:
        cell.font = Font(bold=True)

    status = compute_day_status(clock_entries, records)
    for entry in clock_entries:
        allocated = sum(
            (r.worked_hours for r in records if r.date == entry.date), Decimal("0")
        )
        summary.append([
            entry.date,
            float(entry.total_hours),
            float(allocated),
            STATUS_LABELS[status[entry.date.isoformat()].value],
        ])

    path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(path)
    return len(records)
