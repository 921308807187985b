"""
Organ Twin — Core Abstractions
==============================
Shared building blocks for the multi-organ simulation:

  - Blood: the shared compartment every organ reads and writes
  - OrganType: closed set of organ type tags used for lookup
  - Organ: abstract capability every concrete organ implements

Every organ owns its own ``numpy.random.Generator`` so that a patient built
from a fixed seed replays exactly.

Usage:
    from organ_twin.core import Blood, Organ, OrganType

    blood = Blood()
    print(blood.mean_arterial_pressure)

Author: Organ Twin contributors
License: MIT
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional, TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from .patient import Patient


def clamp(value: float, low: float, high: float) -> float:
    """Clamp ``value`` into ``[low, high]`` and return a plain float."""
    return float(min(max(value, low), high))


# ═══════════════════════════════════════════════════════════════
# Shared Blood Compartment
# ═══════════════════════════════════════════════════════════════

# Physiological bounds (owner organs clamp what they write)
OXYGEN_SATURATION_BOUNDS = (0.0, 100.0)   # %
CO2_BOUNDS = (0.0, 200.0)                 # mmHg
GLUCOSE_BOUNDS = (0.0, 600.0)             # mg/dL
ANGIOTENSIN_BOUNDS = (0.0, 50.0)          # a.u.


@dataclass
class Blood:
    """Blood composition shared by all organs of a patient.

    Defaults describe a healthy resting adult.
    """
    # Arterial pressure (mmHg)
    systolic_bp: float = 120.0
    diastolic_bp: float = 80.0

    # Gases
    oxygen_saturation: float = 98.0      # %
    co2_partial_pressure: float = 40.0   # mmHg

    # Chemistry
    glucose: float = 90.0                # mg/dL
    angiotensin: float = 0.0             # a.u. (vasoconstrictor)
    toxins: float = 0.0                  # a.u.

    @property
    def mean_arterial_pressure(self) -> float:
        """MAP ≈ DBP + (SBP - DBP) / 3."""
        return self.diastolic_bp + (self.systolic_bp - self.diastolic_bp) / 3.0


# ═══════════════════════════════════════════════════════════════
# Organ Capability
# ═══════════════════════════════════════════════════════════════

class OrganType(Enum):
    """Type tags, one per concrete organ model."""
    HEART = "Heart"
    LUNGS = "Lungs"
    BRAIN = "Brain"
    LIVER = "Liver"
    KIDNEYS = "Kidneys"
    BLADDER = "Bladder"
    STOMACH = "Stomach"
    INTESTINES = "Intestines"
    GALLBLADDER = "Gallbladder"
    PANCREAS = "Pancreas"
    ESOPHAGUS = "Esophagus"
    SPLEEN = "Spleen"
    SPINAL_CORD = "SpinalCord"


class Organ(ABC):
    """Abstract organ model.

    Subclasses set the class attribute ``organ_type`` and implement
    ``update`` and ``summary``. ``update`` may read and write
    ``patient.blood`` and may look up other organs through
    ``patient.get_organ``; it must tolerate any of them being absent and
    must keep every clamped quantity in range for any ``dt >= 0``.
    """

    organ_type: OrganType

    def __init__(self, organ_id: int, rng: Optional[np.random.Generator] = None):
        self.organ_id = organ_id
        self.rng = rng if rng is not None else np.random.default_rng()

    @property
    def type_tag(self) -> str:
        return self.organ_type.value

    def fluctuation(self, stddev: float) -> float:
        """Zero-mean Gaussian noise sample with the given standard deviation."""
        return float(self.rng.normal(0.0, stddev))

    @abstractmethod
    def update(self, patient: 'Patient', dt: float) -> None:
        """Advance internal state by ``dt`` seconds."""

    @abstractmethod
    def summary(self) -> str:
        """Human-readable snapshot of the organ's state."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(organ_id={self.organ_id})"
