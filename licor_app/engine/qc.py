"""Outlier screening for per-file gas-exchange traces."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np
import pandas as pd

BOXPLOT_COEF = 1.5


@dataclass
class BoxplotStats:
    hinges: Tuple[float, float, float, float, float]
    lower_fence: float
    upper_fence: float
    outliers: np.ndarray
    used_points: int


def five_number_summary(values) -> Tuple[float, float, float, float, float]:
    """Tukey five-number summary (minimum, lower hinge, median, upper hinge, maximum)."""

    arr = np.asarray(values, dtype=float).ravel()
    arr = np.sort(arr[np.isfinite(arr)])
    n = arr.size
    if n == 0:
        nan = float("nan")
        return (nan, nan, nan, nan, nan)
    n4 = np.floor((n + 3) / 2) / 2
    depths = np.array([1.0, n4, (n + 1) / 2, n + 1 - n4, float(n)])
    lower = arr[np.floor(depths).astype(int) - 1]
    upper = arr[np.ceil(depths).astype(int) - 1]
    summary = 0.5 * (lower + upper)
    return tuple(float(value) for value in summary)  # type: ignore[return-value]


def boxplot_stats(values, coef: float = BOXPLOT_COEF) -> BoxplotStats:
    arr = np.asarray(values, dtype=float).ravel()
    finite = arr[np.isfinite(arr)]
    hinges = five_number_summary(finite)
    spread = hinges[3] - hinges[1]
    if finite.size == 0 or not np.isfinite(spread):
        return BoxplotStats(hinges, float("nan"), float("nan"), np.array([], dtype=float), int(finite.size))
    lower_fence = hinges[1] - coef * spread
    upper_fence = hinges[3] + coef * spread
    mask = (finite < lower_fence) | (finite > upper_fence)
    return BoxplotStats(hinges, float(lower_fence), float(upper_fence), finite[mask], int(finite.size))


def remove_boxplot_outliers(frame: pd.DataFrame, column: str = "WUE") -> pd.DataFrame:
    """Drop every row whose ``column`` value is a boxplot outlier of that column."""

    if frame.empty:
        return frame
    stats = boxplot_stats(frame[column].to_numpy(dtype=float))
    if stats.outliers.size == 0:
        return frame
    flagged = frame[column].isin(stats.outliers)
    return frame.loc[~flagged]
