"""Core Li-COR processing pipeline.

Workbooks matching each genotype keyword are reduced to the observation
index, CO2 assimilation and stomatal conductance, enriched with relative
conductance and intrinsic water-use efficiency, pooled across files and
summarised per timepoint and genotype.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd

from licor_app.engine import audit as audit_log
from licor_app.engine import qc as qc_engine
from licor_app.engine.io_licor import load_keyword_files
from licor_app.engine.plugin_api import LicorFormatError, LicorResult
from licor_app.engine.recipe_model import Recipe
from licor_app.engine.render import get_palette, render_summary_plot

__all__ = [
    "MEASURED_COLUMNS",
    "COMBINED_COLUMNS",
    "SUMMARY_COLUMNS",
    "transform_file",
    "accumulate",
    "apply_area_correction",
    "aggregate",
    "run_pipeline",
    "licornetics",
]

logger = logging.getLogger(__name__)

MEASURED_COLUMNS = ("obs", "A", "gsw")
COMBINED_COLUMNS = ("obs", "A", "gsw", "relgsw", "WUE", "individual", "genotype")

# source column -> (mean, sd, se) output names
SUMMARY_COLUMNS = {
    "gsw": ("mean_gsw", "sd_abs", "se_abs"),
    "relgsw": ("mean_relgsw", "sd_rel", "se_rel"),
    "A": ("mean_A", "sd_A", "se_A"),
    "WUE": ("mean_WUE", "sd_WUE", "se_WUE"),
}


def _empty_combined() -> pd.DataFrame:
    frame = pd.DataFrame({name: pd.Series(dtype=float) for name in COMBINED_COLUMNS[:5]})
    frame["individual"] = pd.Series(dtype=object)
    frame["genotype"] = pd.Series(dtype=object)
    return frame


def _crop_positions(frame: pd.DataFrame, observations: Sequence[int]) -> pd.DataFrame:
    size = len(frame)
    positions = [int(pos) - 1 for pos in observations if 1 <= int(pos) <= size]
    return frame.iloc[positions]


def transform_file(
    raw: pd.DataFrame,
    genotype: str,
    source: str,
    observations: Optional[Sequence[int]] = None,
    remove_outliers: bool = False,
) -> pd.DataFrame:
    """Reduce one workbook table to the enriched per-timepoint records."""

    raw = raw.loc[:, ~pd.Index(raw.columns).duplicated()]
    missing = [name for name in MEASURED_COLUMNS if name not in raw.columns]
    if missing:
        raise LicorFormatError(f"{source} lacks required column(s): {', '.join(missing)}")

    subset = raw.loc[:, list(MEASURED_COLUMNS)].copy()
    for name in MEASURED_COLUMNS:
        subset[name] = pd.to_numeric(subset[name], errors="coerce")

    if observations is not None:
        subset = _crop_positions(subset, observations)
    cropped = subset.dropna().copy()

    cropped["relgsw"] = cropped["gsw"] / cropped["gsw"].max()
    cropped["WUE"] = cropped["A"] / cropped["gsw"]
    derived = ["relgsw", "WUE"]
    cropped[derived] = cropped[derived].replace([np.inf, -np.inf], np.nan)
    cropped["individual"] = source
    cropped["genotype"] = genotype

    if remove_outliers:
        before = len(cropped)
        cropped = qc_engine.remove_boxplot_outliers(cropped, "WUE")
        if len(cropped) != before:
            logger.info("Removed %d WUE outlier row(s) from %s", before - len(cropped), source)

    enriched = cropped.dropna()
    logger.debug("%s: %d of %d rows retained", source, len(enriched), len(raw))
    return enriched.loc[:, list(COMBINED_COLUMNS)]


def accumulate(frames: Iterable[pd.DataFrame]) -> pd.DataFrame:
    collected = [frame for frame in frames if not frame.empty]
    if not collected:
        return _empty_combined()
    combined = pd.concat(collected, ignore_index=True)
    return combined.dropna().reset_index(drop=True)


def apply_area_correction(combined: pd.DataFrame, factor: float) -> pd.DataFrame:
    """Scale absolute conductance and assimilation by the leaf area ``factor``.

    Relative conductance and WUE keep the values derived from the raw
    readings.
    """

    if factor != 1:
        combined["gsw"] = combined["gsw"] * factor
        combined["A"] = combined["A"] * factor
    return combined


def _genotype_levels(identifier: Sequence[str]) -> List[str]:
    levels: List[str] = []
    for item in identifier:
        if item not in levels:
            levels.append(item)
    return levels


def aggregate(combined: pd.DataFrame, identifier: Sequence[str]) -> pd.DataFrame:
    """Mean, standard deviation and standard error per (obs, genotype)."""

    grouped = combined.groupby(["obs", "genotype"], sort=True)
    columns = {}
    for source, (mean_name, sd_name, se_name) in SUMMARY_COLUMNS.items():
        series = grouped[source]
        sd = series.std(ddof=1)
        columns[mean_name] = series.mean()
        columns[sd_name] = sd
        columns[se_name] = sd / np.sqrt(series.count())
    summary = pd.DataFrame(columns).reset_index()
    if summary.empty:
        summary = pd.DataFrame(
            columns=["obs", "genotype"] + [name for names in SUMMARY_COLUMNS.values() for name in names]
        )
    summary["genotype"] = pd.Categorical(
        summary["genotype"], categories=_genotype_levels(identifier), ordered=True
    )
    return summary


def run_pipeline(recipe: Recipe, audit: Optional[List[str]] = None) -> tuple[pd.DataFrame, pd.DataFrame]:
    """Load, transform, pool, correct and summarise every matching workbook."""

    recipe.raise_for_errors()
    get_palette(recipe.colours)
    if audit is None:
        audit = audit_log.start_audit(recipe.identifier)

    frames: List[pd.DataFrame] = []
    for keyword in recipe.identifier:
        loaded = load_keyword_files(keyword, recipe.directory)
        audit_log.log_step(audit, "Genotype '%s': %d file(s) matched", keyword, len(loaded))
        for path, raw in loaded:
            frames.append(
                transform_file(
                    raw,
                    keyword,
                    path.name,
                    observations=recipe.observations,
                    remove_outliers=recipe.outlier_removal,
                )
            )

    combined = accumulate(frames)
    audit_log.log_frame(audit, "Combined table", combined)
    if combined.empty:
        logger.warning("No usable rows found for %s", ", ".join(recipe.identifier))

    factor = float(recipe.area_correction)
    combined = apply_area_correction(combined, factor)
    if factor != 1:
        audit_log.log_step(audit, "Area correction factor %g applied to gsw and A", factor)

    aggregated = aggregate(combined, recipe.identifier)
    audit_log.log_frame(audit, "Aggregated table", aggregated)
    return combined, aggregated


def licornetics(
    identifier: Sequence[str],
    type: str = "gsw",
    area_correction: float = 1,
    timestamps: Optional[Sequence[float]] = None,
    observations: Optional[Sequence[int]] = None,
    y_axis_limits: Optional[Sequence[float]] = None,
    errorbars: str = "se",
    legend_title: str = "Genotype",
    legend_labels: Optional[Sequence[str]] = None,
    remove_outliers: str = "no",
    colours: str = "Isfahan1",
    directory: Path | str | None = None,
    ax=None,
) -> LicorResult:
    """Plot Li-COR gas-exchange kinetics for several genotypes.

    ``identifier`` lists the keywords that pick the workbooks of each
    genotype in ``directory`` (default: the working directory) and fixes
    the legend and colour order.  ``type`` selects the y axis: ``"gsw"``
    (absolute stomatal conductance), ``"relgsw"`` (conductance relative to
    the per-file maximum), ``"A"`` (CO2 assimilation) or ``"WUE"``
    (intrinsic water-use efficiency, A/gsw).  ``area_correction`` is the
    chamber size divided by the mean measured leaf area.  ``observations``
    crops each file to 1-based row positions before anything is derived.
    ``errorbars`` is ``"se"`` or ``"sd"``; ``remove_outliers="yes"`` drops
    boxplot outliers of the per-file WUE.

    No file is written; the figure is returned inside the result.
    """

    recipe = Recipe(
        identifier=identifier,
        plot_type=type,
        area_correction=area_correction,
        timestamps=timestamps,
        observations=observations,
        y_axis_limits=y_axis_limits,
        errorbars=errorbars,
        legend_title=legend_title,
        legend_labels=legend_labels,
        remove_outliers=remove_outliers,
        colours=colours,
        directory=Path(directory) if directory is not None else None,
    )
    audit = audit_log.start_audit(recipe.identifier)
    combined, aggregated = run_pipeline(recipe, audit)
    figure = render_summary_plot(aggregated, recipe, ax=ax)
    audit_log.log_step(audit, "Rendered %s plot with %s error bars", recipe.plot_type, recipe.errorbars)
    return LicorResult(combined=combined, aggregated=aggregated, figure=figure, audit=audit)
