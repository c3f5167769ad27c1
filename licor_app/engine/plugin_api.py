from dataclasses import dataclass, field
from typing import List, Optional

import pandas as pd
from matplotlib.figure import Figure


class LicorError(ValueError):
    """Base class for errors raised while processing Li-COR exports."""


class LicorFormatError(LicorError):
    """A workbook could not be read or lacks the expected columns."""


class LicorRecipeError(LicorError):
    """The requested plot options are invalid."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


@dataclass
class LicorResult:
    combined: pd.DataFrame          # one row per file and timepoint
    aggregated: pd.DataFrame        # one row per (obs, genotype)
    figure: Optional[Figure]
    audit: List[str] = field(default_factory=list)
