"""Discovery and parsing of Li-COR gas-exchange spreadsheet exports.

The instrument writes a block of session metadata above the measurement
table.  The column names live on spreadsheet row 15, row 16 holds the units
and the numeric data starts on row 17.  Both parts are read from the first
sheet and aligned by column position.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List, Optional

import pandas as pd

from licor_app.engine.plugin_api import LicorFormatError

logger = logging.getLogger(__name__)

HEADER_ROW = 15
DATA_SKIP_ROWS = 16
HEADER_WIDTH = 147  # columns A through EQ


def discover_files(keyword: str, directory: Path | str | None = None) -> List[Path]:
    """Return files in ``directory`` whose name contains ``keyword``.

    Matching is a case-sensitive substring test on the file name and the
    result is ordered by name.  A keyword without matches yields an empty
    list.
    """

    root = Path(directory) if directory is not None else Path.cwd()
    matches = sorted(
        (root / name for name in os.listdir(root) if keyword in name),
        key=lambda path: path.name,
    )
    files = [path for path in matches if path.is_file()]
    if not files:
        logger.debug("No files in %s match keyword '%s'", root, keyword)
    return files


def _header_names(header: pd.DataFrame, width: int) -> List[str]:
    values = list(header.iloc[0, :HEADER_WIDTH]) if not header.empty else []
    names: List[str] = []
    for idx in range(width):
        value = values[idx] if idx < len(values) else None
        if value is None or pd.isna(value) or not str(value).strip():
            names.append(f"col_{idx}")
        else:
            names.append(str(value).strip())
    return names


def read_licor_workbook(path: Path | str, sheet: int | str = 0) -> pd.DataFrame:
    """Read the measurement table of a Li-COR export.

    The workbook is opened once and closed before returning, also when
    parsing fails.  Any failure to interpret the file as a spreadsheet is
    reported as :class:`LicorFormatError`.
    """

    path = Path(path)
    try:
        with pd.ExcelFile(path) as workbook:
            header = workbook.parse(
                sheet_name=sheet,
                header=None,
                skiprows=HEADER_ROW - 1,
                nrows=1,
            )
            data = workbook.parse(sheet_name=sheet, header=None, skiprows=DATA_SKIP_ROWS)
    except Exception as exc:
        raise LicorFormatError(f"Could not read Li-COR workbook {path.name}: {exc}") from exc

    if data.shape[1] == 0:
        width = min(header.shape[1], HEADER_WIDTH)
        return pd.DataFrame(columns=_header_names(header, width))
    data = data.copy()
    data.columns = _header_names(header, data.shape[1])
    logger.debug("Read %d data rows from %s", len(data), path.name)
    return data


def load_keyword_files(keyword: str, directory: Optional[Path | str] = None) -> List[tuple[Path, pd.DataFrame]]:
    """Read every workbook matching ``keyword`` in file-name order."""

    loaded: List[tuple[Path, pd.DataFrame]] = []
    for path in discover_files(keyword, directory):
        logger.info("Loading %s for genotype '%s'", path.name, keyword)
        loaded.append((path, read_licor_workbook(path)))
    return loaded
