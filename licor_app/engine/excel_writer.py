from __future__ import annotations

import math
import os
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional

import numpy as np
import pandas as pd
from openpyxl import Workbook


def _ensure_parent(path: Path) -> None:
    if not path.parent.exists():
        path.parent.mkdir(parents=True, exist_ok=True)


def _clean_value(value: Any) -> Any:
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        return value
    if value is pd.NA or value is pd.NaT:
        return None
    if isinstance(value, (Path, os.PathLike)):
        value = os.fspath(value)
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    if isinstance(value, str):
        if value and value[0] in "=+-@":
            if not value.startswith("'"):
                return "'" + value
        return value
    return value


def _write_frame(ws, frame: pd.DataFrame) -> None:
    ws.append([str(column) for column in frame.columns])
    for row in frame.itertuples(index=False, name=None):
        ws.append([_clean_value(value) for value in row])


def write_workbook(
    out_path: str | Path,
    combined: pd.DataFrame,
    aggregated: pd.DataFrame,
    audit: Iterable[str],
    figures: Optional[Mapping[str, bytes]] = None,
) -> str:
    """Write the pooled records, the per-timepoint summary and the audit log."""

    workbook_path = Path(out_path)
    _ensure_parent(workbook_path)

    wb = Workbook()
    ws_combined = wb.active
    ws_combined.title = "Combined"
    _write_frame(ws_combined, combined)

    ws_aggregated = wb.create_sheet("Aggregated")
    summary = aggregated.copy()
    if "genotype" in summary.columns:
        summary["genotype"] = summary["genotype"].astype(object)
    _write_frame(ws_aggregated, summary)

    ws_audit = wb.create_sheet("Audit_Log")
    ws_audit.append(["Index", "Entry"])
    for idx, entry in enumerate(audit or [], start=1):
        ws_audit.append([idx, _clean_value(entry)])

    if figures:
        ws_figures = wb.create_sheet("Figures")
        ws_figures.append(["Name", "Bytes"])
        names: List[str] = sorted(figures)
        for name in names:
            ws_figures.append([name, len(figures[name])])

    wb.save(workbook_path)
    return str(workbook_path)
