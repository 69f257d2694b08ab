"""Split the study horizon into acquisition, consolidation, intensive and taper phases."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Literal

PhaseName = Literal["acquisition", "consolidation", "intensive", "taper"]

ACQUISITION_SHARE = 0.40
CONSOLIDATION_SHARE = 0.80
INTENSIVE_SHARE = 0.95


@dataclass(frozen=True)
class PhaseBoundaries:
    """Exclusive end indices of each phase over ``total_days`` study days."""

    total_days: int
    acquisition_end: int
    consolidation_end: int
    intensive_end: int

    def phase_for_day(self, day_index: int) -> PhaseName:
        if day_index < self.acquisition_end:
            return "acquisition"
        if day_index < self.consolidation_end:
            return "consolidation"
        if day_index < self.intensive_end:
            return "intensive"
        return "taper"

    def as_dict(self) -> dict:
        return {
            "total_days": self.total_days,
            "acquisition_end": self.acquisition_end,
            "consolidation_end": self.consolidation_end,
            "intensive_end": self.intensive_end,
        }


def plan_phases(total_days: int) -> PhaseBoundaries:
    total = max(total_days, 0)
    return PhaseBoundaries(
        total_days=total,
        acquisition_end=math.floor(total * ACQUISITION_SHARE),
        consolidation_end=math.floor(total * CONSOLIDATION_SHARE),
        intensive_end=math.floor(total * INTENSIVE_SHARE),
    )


__all__ = ["PhaseBoundaries", "PhaseName", "plan_phases"]
