import numbers
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from licor_app.engine.plugin_api import LicorRecipeError

PLOT_TYPES: Tuple[str, ...] = ("gsw", "relgsw", "A", "WUE")
ERRORBAR_TYPES: Tuple[str, ...] = ("se", "sd")
OUTLIER_CHOICES: Tuple[str, ...] = ("yes", "no")


def parse_observations(text: str) -> range:
    """Turn an ``"16:70"`` style range into 1-based inclusive positions."""

    raw = str(text).strip()
    if ":" not in raw:
        try:
            single = int(raw)
        except ValueError:
            raise LicorRecipeError([f"Observation range '{text}' must look like 'start:stop'"]) from None
        return range(single, single + 1)
    left, right = raw.split(":", 1)
    try:
        start, stop = int(left), int(right)
    except ValueError:
        raise LicorRecipeError([f"Observation range '{text}' must contain integers"]) from None
    if stop < start:
        raise LicorRecipeError([f"Observation range '{text}' must not run backwards"])
    return range(start, stop + 1)


@dataclass
class Recipe:
    identifier: List[str] = field(default_factory=list)
    plot_type: str = "gsw"
    area_correction: float = 1.0
    timestamps: Optional[Sequence[float]] = None
    observations: Optional[Sequence[int]] = None
    y_axis_limits: Optional[Sequence[float]] = None
    errorbars: str = "se"
    legend_title: str = "Genotype"
    legend_labels: Optional[List[str]] = None
    remove_outliers: str = "no"
    colours: str = "Isfahan1"
    directory: Optional[Path] = None

    def __post_init__(self):
        if isinstance(self.identifier, str):
            self.identifier = [self.identifier]
        else:
            self.identifier = [str(item) for item in self.identifier]
        if self.legend_labels is None:
            self.legend_labels = list(self.identifier)
        elif isinstance(self.legend_labels, str):
            self.legend_labels = [self.legend_labels]
        else:
            self.legend_labels = [str(label) for label in self.legend_labels]

    @property
    def outlier_removal(self) -> bool:
        return self.remove_outliers == "yes"

    def validate(self) -> list[str]:
        errs = []
        if not self.identifier:
            errs.append("At least one genotype identifier is required")
        elif any(not item for item in self.identifier):
            errs.append("Genotype identifiers must be non-empty strings")

        if self.plot_type not in PLOT_TYPES:
            errs.append(f"Plot type must be one of {', '.join(PLOT_TYPES)} (got '{self.plot_type}')")
        if self.errorbars not in ERRORBAR_TYPES:
            errs.append(f"Error bars must be one of {', '.join(ERRORBAR_TYPES)} (got '{self.errorbars}')")
        if self.remove_outliers not in OUTLIER_CHOICES:
            errs.append("remove_outliers must be 'yes' or 'no'")

        try:
            if float(self.area_correction) <= 0:
                errs.append("Area correction must be positive")
        except (TypeError, ValueError):
            errs.append("Area correction must be numeric")

        if self.y_axis_limits is not None:
            limits = list(self.y_axis_limits)
            if len(limits) != 2:
                errs.append("Y axis limits must contain a lower and an upper bound")
            else:
                try:
                    lower, upper = float(limits[0]), float(limits[1])
                    if lower >= upper:
                        errs.append("Y axis lower limit must be less than the upper limit")
                except (TypeError, ValueError):
                    errs.append("Y axis limits must be numeric")

        if self.timestamps is not None:
            try:
                [float(mark) for mark in self.timestamps]
            except (TypeError, ValueError):
                errs.append("Timestamps must be numeric")

        if self.observations is not None:
            positions = list(self.observations)
            if not positions:
                errs.append("Observation range must not be empty")
            elif any(not isinstance(pos, numbers.Integral) or isinstance(pos, bool) or pos < 1 for pos in positions):
                errs.append("Observation positions must be positive integers")

        if self.identifier and len(self.legend_labels or []) < len(self.identifier):
            errs.append("Legend labels must cover every genotype identifier")
        return errs

    def raise_for_errors(self) -> None:
        errs = self.validate()
        if errs:
            raise LicorRecipeError(errs)
