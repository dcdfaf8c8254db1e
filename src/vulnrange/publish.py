from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Iterable

from .models import OutputRow


def format_row(row: OutputRow, delimiter: str = ";") -> str:
    # Free-text fields are quoted but not escaped; consumers split on the delimiter.
    return delimiter.join(row.fields())


def write_rows(rows: Iterable[OutputRow], path: str, delimiter: str = ";") -> int:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    written = 0
    with open(path, "w", encoding="utf-8", newline="\n") as handle:
        for row in rows:
            handle.write(format_row(row, delimiter) + "\n")
            written += 1
    os.chmod(path, 0o644)
    return written


def write_run_report(report_dir: str, report: dict) -> str:
    Path(report_dir).mkdir(parents=True, exist_ok=True)
    timestamp = (
        report["run_started_at"]
        .replace(":", "")
        .replace("-", "")
        .replace("+", "")
        .replace("T", "")
        .replace(".", "")
    )
    filename = f"run-{timestamp}.json"
    path = os.path.join(report_dir, filename)
    with open(path, "w", encoding="utf-8") as handle:
        json.dump(report, handle, indent=2)
    return path


def load_latest_report(report_dir: str) -> dict | None:
    path = Path(report_dir)
    if not path.exists():
        return None
    reports = sorted(path.glob("run-*.json"), key=lambda p: (p.stat().st_mtime, p.name))
    if not reports:
        return None
    with reports[-1].open("r", encoding="utf-8") as handle:
        return json.load(handle)
