"""Plot Li-COR gas-exchange kinetics from spreadsheet exports."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt

from licor_app.engine.excel_writer import write_workbook
from licor_app.engine.pipeline import licornetics
from licor_app.engine.plugin_api import LicorFormatError, LicorRecipeError
from licor_app.engine.recipe_model import ERRORBAR_TYPES, OUTLIER_CHOICES, PLOT_TYPES, parse_observations
from licor_app.engine.render import figure_to_bytes

logger = logging.getLogger("licor_app")

FIGURE_SUFFIXES = (".png", ".svg", ".pdf")


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "identifier",
        nargs="+",
        help="Keywords that pick the workbooks of each genotype (e.g. wt mutant1).",
    )
    parser.add_argument(
        "--type",
        dest="plot_type",
        choices=PLOT_TYPES,
        default="gsw",
        help="Y axis metric (default: gsw).",
    )
    parser.add_argument(
        "--area-correction",
        type=float,
        default=1.0,
        help="Chamber size divided by the mean measured leaf area (default: 1).",
    )
    parser.add_argument(
        "--timestamps",
        nargs="*",
        type=float,
        help="Times at which dotted vertical lines are drawn.",
    )
    parser.add_argument(
        "--observations",
        help="Row range kept from every file, e.g. 16:70.",
    )
    parser.add_argument(
        "--y-axis-limits",
        nargs=2,
        type=float,
        metavar=("LOWER", "UPPER"),
        help="Y axis bounds (ignored for relgsw).",
    )
    parser.add_argument(
        "--errorbars",
        choices=ERRORBAR_TYPES,
        default="se",
        help="Standard error or standard deviation bars (default: se).",
    )
    parser.add_argument("--legend-title", default="Genotype", help="Legend title.")
    parser.add_argument(
        "--legend-labels",
        nargs="*",
        help="Legend labels, one per identifier (default: the identifiers).",
    )
    parser.add_argument(
        "--remove-outliers",
        choices=OUTLIER_CHOICES,
        default="no",
        help="Drop boxplot outliers of the per-file WUE.",
    )
    parser.add_argument("--colours", default="Isfahan1", help="Colour palette name (default: Isfahan1).")
    parser.add_argument(
        "--directory",
        default=".",
        help="Directory searched for workbooks (default: current directory).",
    )
    parser.add_argument("--output", help="Save the plot to this file (png, svg or pdf).")
    parser.add_argument("--workbook", help="Write the combined and aggregated tables to this xlsx file.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    directory = Path(args.directory)
    if not directory.is_dir():
        logger.error("Directory not found: %s", directory)
        return 2
    if args.output and Path(args.output).suffix.lower() not in FIGURE_SUFFIXES:
        logger.error("Plot output must end in one of %s", ", ".join(FIGURE_SUFFIXES))
        return 2

    try:
        observations = parse_observations(args.observations) if args.observations else None
        result = licornetics(
            args.identifier,
            type=args.plot_type,
            area_correction=args.area_correction,
            timestamps=args.timestamps,
            observations=observations,
            y_axis_limits=args.y_axis_limits,
            errorbars=args.errorbars,
            legend_title=args.legend_title,
            legend_labels=args.legend_labels or None,
            remove_outliers=args.remove_outliers,
            colours=args.colours,
            directory=directory,
        )
    except LicorRecipeError as exc:
        logger.error("Invalid options: %s", exc)
        return 2
    except LicorFormatError as exc:
        logger.error("%s", exc)
        return 1

    try:
        figures = {}
        if args.output:
            output = Path(args.output)
            output.parent.mkdir(parents=True, exist_ok=True)
            figures = figure_to_bytes(result.figure, output.stem, formats=[output.suffix])
            output.write_bytes(next(iter(figures.values())))
            logger.info("Plot written to %s", output)
            result.audit.append(f"Plot written to {output}")
        if args.workbook:
            path = write_workbook(args.workbook, result.combined, result.aggregated, result.audit, figures)
            logger.info("Workbook written to %s", path)
    finally:
        plt.close(result.figure)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
