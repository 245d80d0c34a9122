"""Write a :class:`~cnpjsync.sync.SyncReport` to JSON, CSV or an Excel workbook."""

from __future__ import annotations

import json
from pathlib import Path

import pandas as pd

from .sync import SyncReport
from .utils.logging_setup import setup_logger

_BASE_LOGGER = setup_logger()
LOGGER = _BASE_LOGGER.getChild("report_export")

_FAILURE_COLUMNS = ["registry_id", "kind", "message"]
EXPORT_FORMATS = (".json", ".csv", ".xlsx")


def report_frames(report: SyncReport) -> tuple[pd.DataFrame, pd.DataFrame]:
    """Return ``(summary, failures)`` data frames for *report*."""

    summary = pd.DataFrame(
        [{"total": report.total, "success": report.success, "failed": report.failed}]
    )
    failures = pd.DataFrame(
        [failure.to_dict() for failure in report.errors],
        columns=_FAILURE_COLUMNS,
    )
    return summary, failures


def check_export_path(path: str | Path) -> Path:
    """Return *path* as a ``Path`` or raise ``ValueError`` for an unknown format."""

    target = Path(path)
    if target.suffix.lower() not in EXPORT_FORMATS:
        raise ValueError(f"Formato de relatório não suportado: {target.suffix or target.name}")
    return target


def export_report(report: SyncReport, path: str | Path) -> Path:
    target = check_export_path(path)
    suffix = target.suffix.lower()
    target.parent.mkdir(parents=True, exist_ok=True)

    if suffix == ".json":
        target.write_text(
            json.dumps(report.to_dict(), indent=2, ensure_ascii=False),
            encoding="utf-8",
        )
    elif suffix == ".csv":
        _, failures = report_frames(report)
        failures.to_csv(target, index=False)
    else:
        summary, failures = report_frames(report)
        with pd.ExcelWriter(target, engine="openpyxl") as writer:
            summary.to_excel(writer, sheet_name="resumo", index=False)
            failures.to_excel(writer, sheet_name="falhas", index=False)

    LOGGER.info("Relatório gravado em %s", target)
    return target
