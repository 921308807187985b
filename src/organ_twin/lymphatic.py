"""
Organ Twin — Lymphatic Organs
=============================
Spleen: red pulp (blood filtration, RBC breakdown) and white pulp
(lymphocyte and macrophage reserves). No coupling to other organs.

Author: Organ Twin contributors
License: MIT
"""

from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING

import numpy as np

from .core import Organ, OrganType, clamp

if TYPE_CHECKING:
    from .patient import Patient


@dataclass
class RedPulp:
    filtration_rate: float = 1.0        # relative
    rbc_breakdown_rate: float = 0.5     # relative


@dataclass
class WhitePulp:
    lymphocyte_count: float = 1500.0    # million
    macrophage_count: float = 500.0     # million


class Spleen(Organ):
    organ_type = OrganType.SPLEEN

    def __init__(self, organ_id: int = 12, rng: Optional[np.random.Generator] = None):
        super().__init__(organ_id, rng)
        self.red_pulp = RedPulp()
        self.white_pulp = WhitePulp()

    def update(self, patient: 'Patient', dt: float) -> None:
        red, white = self.red_pulp, self.white_pulp
        red.filtration_rate = clamp(red.filtration_rate + self.fluctuation(0.01), 0.9, 1.1)
        red.rbc_breakdown_rate = clamp(red.rbc_breakdown_rate + self.fluctuation(0.005), 0.45, 0.55)
        white.lymphocyte_count = clamp(white.lymphocyte_count + self.fluctuation(1.0), 1400.0, 1600.0)
        white.macrophage_count = clamp(white.macrophage_count + self.fluctuation(0.5), 450.0, 550.0)

    def summary(self) -> str:
        lines = [
            "--- Spleen Summary ---",
            "--- Red Pulp ---",
            f"Filtration Rate: {self.red_pulp.filtration_rate:.1f}",
            f"RBC Breakdown Rate: {self.red_pulp.rbc_breakdown_rate:.1f}",
            "--- White Pulp ---",
            f"Lymphocyte Count: {self.white_pulp.lymphocyte_count:.1f} million",
            f"Macrophage Count: {self.white_pulp.macrophage_count:.1f} million",
        ]
        return "\n".join(lines)
