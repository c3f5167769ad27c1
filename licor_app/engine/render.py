"""Summary plots of aggregated Li-COR kinetics."""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
import matplotlib
import matplotlib.pyplot as plt
import matplotlib.ticker as mticker
import met_brewer
from matplotlib import colors as mcolors
from matplotlib.figure import Figure

from licor_app.engine.plugin_api import LicorRecipeError
from licor_app.engine.recipe_model import Recipe

logger = logging.getLogger(__name__)

X_LABEL = "Time [min]"
RELATIVE_TICKS = (0.0, 0.25, 0.5, 0.75, 1.0)


@dataclass(frozen=True)
class MetricStyle:
    mean_column: str
    sd_column: str
    se_column: str
    ylabel: str
    percent_scale: bool = False

    def error_column(self, errorbars: str) -> str:
        if errorbars == "sd":
            return self.sd_column
        if errorbars == "se":
            return self.se_column
        raise LicorRecipeError([f"Unknown error bar type '{errorbars}'"])


METRICS: Mapping[str, MetricStyle] = {
    "gsw": MetricStyle(
        "mean_gsw", "sd_abs", "se_abs",
        r"Absolute g$_{SW}$ [mol*m$^{-2}$*s$^{-1}$]",
    ),
    "relgsw": MetricStyle(
        "mean_relgsw", "sd_rel", "se_rel",
        r"Relative g$_{SW}$ [%]",
        percent_scale=True,
    ),
    "A": MetricStyle(
        "mean_A", "sd_A", "se_A",
        r"CO$_{2}$ assimilation [mol*m$^{-2}$*s$^{-1}$]",
    ),
    "WUE": MetricStyle(
        "mean_WUE", "sd_WUE", "se_WUE",
        r"iWUE [mol(CO$_{2}$) * mol(H$_{2}$O)$^{-1}$]",
    ),
}


def get_palette(name: str, count: int = 7) -> List[str]:
    """Resolve ``name`` to a list of hex colours.

    MetBrewer names are looked up in ``met_brewer``; anything else is
    treated as a matplotlib colormap and sampled ``count`` times.
    """

    if name in met_brewer.MET_PALETTES:
        return [mcolors.to_hex(colour) for colour in met_brewer.met_brew(name=name, brew_type="discrete")]
    try:
        cmap = matplotlib.colormaps[name]
    except KeyError:
        raise LicorRecipeError([f"Unknown colour palette '{name}'"]) from None
    listed = getattr(cmap, "colors", None)
    if listed is not None and len(listed) <= 20:
        return [mcolors.to_hex(colour) for colour in listed]
    return [mcolors.to_hex(cmap(pos)) for pos in np.linspace(0.0, 1.0, max(count, 2))]


def _present_levels(aggregated: pd.DataFrame, identifier: Sequence[str]) -> List[str]:
    column = aggregated["genotype"]
    if isinstance(column.dtype, pd.CategoricalDtype):
        levels = [str(level) for level in column.cat.categories]
    else:
        levels = list(dict.fromkeys(identifier))
    values = set(column.dropna().astype(str))
    return [level for level in levels if level in values]


def _apply_classic_theme(ax) -> None:
    ax.spines["top"].set_visible(False)
    ax.spines["right"].set_visible(False)
    ax.grid(False)


def render_summary_plot(aggregated: pd.DataFrame, recipe: Recipe, ax=None) -> Figure:
    """Scatter the per-timepoint means of one metric with error bars."""

    style = METRICS.get(recipe.plot_type)
    if style is None:
        raise LicorRecipeError([f"Unknown plot type '{recipe.plot_type}'"])
    err_column = style.error_column(recipe.errorbars)

    if ax is None:
        fig, ax = plt.subplots(figsize=(6, 4))
    else:
        fig = ax.figure

    levels = _present_levels(aggregated, recipe.identifier)
    palette = get_palette(recipe.colours, count=max(len(levels), 1))
    labels = list(recipe.legend_labels or [])
    if not levels:
        logger.warning("Nothing to plot for %s", ", ".join(recipe.identifier))
    elif len(levels) > len(palette):
        logger.warning(
            "Palette '%s' has %d colours for %d genotypes; colours will repeat",
            recipe.colours,
            len(palette),
            len(levels),
        )

    genotype = aggregated["genotype"].astype(str)
    for idx, level in enumerate(levels):
        rows = aggregated.loc[genotype == level]
        colour = palette[idx % len(palette)]
        x = rows["obs"].to_numpy(dtype=float)
        y = rows[style.mean_column].to_numpy(dtype=float)
        err = rows[err_column].to_numpy(dtype=float)
        with_err = np.isfinite(err)
        if with_err.any():
            ax.errorbar(
                x[with_err],
                y[with_err],
                yerr=err[with_err],
                fmt="none",
                ecolor=colour,
                alpha=0.5,
                capsize=2,
            )
        # labels pair with identifier positions, not with the levels that have data
        position = recipe.identifier.index(level) if level in recipe.identifier else len(labels)
        label = labels[position] if position < len(labels) else level
        ax.scatter(x, y, color=colour, s=14, label=label, zorder=3)

    for mark in recipe.timestamps or []:
        ax.axvline(float(mark), color="black", linestyle=":", linewidth=0.8)

    if style.percent_scale:
        ax.yaxis.set_major_locator(mticker.FixedLocator(RELATIVE_TICKS))
        ax.yaxis.set_major_formatter(mticker.FuncFormatter(lambda value, _pos: f"{value * 100:g}"))
    elif recipe.y_axis_limits is not None:
        lower, upper = (float(value) for value in recipe.y_axis_limits)
        ax.set_ylim(lower, upper)

    _apply_classic_theme(ax)
    ax.set_xlabel(X_LABEL)
    ax.set_ylabel(style.ylabel)
    if levels:
        ax.legend(
            title=recipe.legend_title,
            loc="upper left",
            bbox_to_anchor=(0.0, -0.18),
            ncol=len(levels),
            frameon=False,
        )
    fig.tight_layout()
    return fig


def _sanitise_figure_name(*parts: str, ext: str = "png") -> str:
    tokens: List[str] = []
    for part in parts:
        if part is None:
            continue
        cleaned = "".join(ch if ch.isalnum() or ch in {"-", "_"} else "_" for ch in str(part))
        cleaned = cleaned.strip("_")
        if cleaned:
            tokens.append(cleaned)
    base = "_".join(tokens) or "figure"
    ext_str = str(ext or "").strip().lstrip(".")
    return f"{base}.{ext_str}" if ext_str else base


def _normalise_figure_formats(formats: object = None) -> Tuple[str, ...]:
    default = ("png",)
    if formats is None:
        return default
    candidates = [formats] if isinstance(formats, str) else list(formats)  # type: ignore[arg-type]
    normalised: List[str] = []
    for raw in candidates:
        token = str(raw).strip().lower().lstrip(".")
        if token in {"png", "svg", "pdf"} and token not in normalised:
            normalised.append(token)
    return tuple(normalised) if normalised else default


def figure_to_bytes(fig: Figure, *name_parts: str, formats: Optional[object] = None) -> Dict[str, bytes]:
    """Serialise ``fig`` once per requested format, keyed by file name."""

    figures: Dict[str, bytes] = {}
    for fmt in _normalise_figure_formats(formats):
        buf = io.BytesIO()
        save_kwargs = {"format": fmt}
        if fmt == "png":
            save_kwargs["dpi"] = 150
        fig.savefig(buf, **save_kwargs)
        figures[_sanitise_figure_name(*name_parts, ext=fmt)] = buf.getvalue()
    return figures
