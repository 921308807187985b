"""
Organ Twin — Renal System
=========================
Kidneys and bladder.

Kidneys:
  GFR relaxes toward 125 mL/min scaled by nephron capacity and perfusion
  (aortic pressure relative to 90 mmHg). Urine output follows GFR and is
  passed to the bladder. Renin rises when blood MAP falls below 85 mmHg and
  converts liver angiotensinogen into circulating angiotensin, which the
  heart turns into vasoconstriction (RAAS loop).

Bladder:
  FILLING → FULL (volume or pressure threshold) → VOIDING (after 10 s) → FILLING

Author: Organ Twin contributors
License: MIT
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, TYPE_CHECKING

import numpy as np

from .core import Organ, OrganType, clamp, ANGIOTENSIN_BOUNDS
from .cardiopulmonary import Heart
from .digestive import Liver

if TYPE_CHECKING:
    from .patient import Patient

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════
# Bladder
# ═══════════════════════════════════════════════════════════════

class MicturitionState(Enum):
    FILLING = "Filling"
    FULL = "Full"
    VOIDING = "Voiding"


@dataclass
class BladderParams:
    capacity: float = 500.0             # mL
    initial_volume: float = 50.0        # mL
    max_pressure: float = 60.0          # cmH2O at capacity
    pressure_threshold: float = 40.0    # cmH2O
    full_fraction: float = 0.8          # of capacity
    full_dwell_time: float = 10.0       # s before voiding starts
    voiding_rate: float = 15.0          # mL/s


class Bladder(Organ):
    """Micturition state machine."""

    organ_type = OrganType.BLADDER

    def __init__(self, organ_id: int = 6, params: Optional[BladderParams] = None,
                 rng: Optional[np.random.Generator] = None):
        super().__init__(organ_id, rng)
        self.params = params or BladderParams()
        self.state = MicturitionState.FILLING
        self.volume = self.params.initial_volume
        self.pressure = self._pressure_for(self.volume)
        self.sphincter_closed = True
        self.time_in_full = 0.0

    def _pressure_for(self, volume: float) -> float:
        return volume / self.params.capacity * self.params.max_pressure

    def add_urine(self, amount: float):
        """Urine from the kidneys; ignored while voiding."""
        if self.state != MicturitionState.VOIDING:
            self.volume = clamp(self.volume + amount, 0.0, self.params.capacity)

    def update(self, patient: 'Patient', dt: float) -> None:
        p = self.params
        self.pressure = self._pressure_for(self.volume)

        if self.state == MicturitionState.FILLING:
            if self.volume > p.capacity * p.full_fraction or self.pressure > p.pressure_threshold:
                self.state = MicturitionState.FULL
                self.time_in_full = 0.0
                logger.debug("Bladder full (%.1f mL, %.1f cmH2O)", self.volume, self.pressure)

        elif self.state == MicturitionState.FULL:
            self.time_in_full += dt
            if self.time_in_full > p.full_dwell_time:
                self.state = MicturitionState.VOIDING
                self.sphincter_closed = False
                self.time_in_full = 0.0
                logger.debug("Bladder voiding")

        elif self.state == MicturitionState.VOIDING:
            self.volume -= p.voiding_rate * dt
            if self.volume <= 0:
                self.volume = 0.0
                self.state = MicturitionState.FILLING
                self.sphincter_closed = True
                logger.debug("Bladder emptied")

        self.pressure = self._pressure_for(self.volume)

    def summary(self) -> str:
        lines = [
            "--- Bladder Summary ---",
            f"State: {self.state.value}",
            f"Volume: {self.volume:.1f} / {self.params.capacity:.1f} mL",
            f"Pressure: {self.pressure:.1f} cmH2O",
        ]
        return "\n".join(lines)


# ═══════════════════════════════════════════════════════════════
# Kidneys
# ═══════════════════════════════════════════════════════════════

@dataclass
class Nephron:
    filtration_efficiency: float = 1.0
    is_damaged: bool = False


@dataclass
class KidneyParams:
    """Renal model parameters."""
    num_nephrons: int = 100
    baseline_gfr: float = 125.0           # mL/min
    reference_perfusion: float = 90.0     # mmHg
    perfusion_modifier_bounds: tuple = (0.5, 1.2)
    gfr_relaxation: float = 0.1           # 1/s
    gfr_bounds: tuple = (90.0, 150.0)
    urine_fraction: float = 0.01          # of filtrate (per mL/s of GFR)
    urine_bounds: tuple = (0.01, 0.03)    # mL/s
    sodium_bounds: tuple = (135.0, 145.0)     # mEq/L
    potassium_bounds: tuple = (3.5, 5.0)      # mEq/L

    # RAAS
    renin_map_threshold: float = 85.0     # mmHg
    renin_gain: float = 0.1
    renin_decay: float = 0.05
    renin_bounds: tuple = (0.5, 50.0)     # ng/mL/hr
    default_angiotensinogen: float = 10.0
    angiotensin_conversion: float = 0.001
    angiotensin_clearance: float = 0.05   # 1/s


class Kidneys(Organ):
    """Nephron aggregate with GFR, urine output, electrolytes and RAAS."""

    organ_type = OrganType.KIDNEYS

    def __init__(self, organ_id: int = 5, params: Optional[KidneyParams] = None,
                 rng: Optional[np.random.Generator] = None):
        super().__init__(organ_id, rng)
        self.params = params or KidneyParams()
        self.nephrons = [Nephron() for _ in range(self.params.num_nephrons)]
        self.gfr = 125.0
        self.urine_output_rate = 0.02     # mL/s
        self.blood_sodium = 140.0
        self.blood_potassium = 4.0
        self.renin_secretion_rate = 1.0

    @property
    def filtration_capacity(self) -> float:
        """Mean efficiency over all nephrons, counting damaged ones as zero."""
        if not self.nephrons:
            return 0.0
        healthy = sum(n.filtration_efficiency for n in self.nephrons if not n.is_damaged)
        return healthy / len(self.nephrons)

    def update(self, patient: 'Patient', dt: float) -> None:
        p = self.params

        perfusion = p.reference_perfusion
        heart = patient.get_organ(Heart)
        if heart is not None:
            perfusion = heart.aortic_pressure
        modifier = clamp(perfusion / p.reference_perfusion, *p.perfusion_modifier_bounds)

        target_gfr = p.baseline_gfr * self.filtration_capacity * modifier
        self.gfr = clamp(self.gfr + p.gfr_relaxation * (target_gfr - self.gfr) * dt
                         + self.fluctuation(0.5), *p.gfr_bounds)

        self.urine_output_rate = clamp(self.gfr / 60.0 * p.urine_fraction + self.fluctuation(0.001),
                                       *p.urine_bounds)
        bladder = patient.get_organ(Bladder)
        if bladder is not None:
            bladder.add_urine(self.urine_output_rate * dt)

        self.blood_sodium = clamp(self.blood_sodium + self.fluctuation(0.05), *p.sodium_bounds)
        self.blood_potassium = clamp(self.blood_potassium + self.fluctuation(0.01), *p.potassium_bounds)

        self._regulate_raas(patient, dt)

    def _regulate_raas(self, patient: 'Patient', dt: float):
        p = self.params
        blood = patient.blood

        map_ = blood.mean_arterial_pressure
        if map_ < p.renin_map_threshold:
            self.renin_secretion_rate += (p.renin_map_threshold - map_) * p.renin_gain * dt
        else:
            self.renin_secretion_rate -= (self.renin_secretion_rate - 1.0) * p.renin_decay * dt
        self.renin_secretion_rate = clamp(self.renin_secretion_rate, *p.renin_bounds)

        # Renin cleaves hepatic angiotensinogen; angiotensin is cleared continuously
        angiotensinogen = p.default_angiotensinogen
        liver = patient.get_organ(Liver)
        if liver is not None:
            angiotensinogen = liver.angiotensinogen_production
        produced = self.renin_secretion_rate * angiotensinogen * p.angiotensin_conversion * dt
        cleared = p.angiotensin_clearance * blood.angiotensin * dt
        blood.angiotensin = clamp(blood.angiotensin + produced - cleared, *ANGIOTENSIN_BOUNDS)

    def summary(self) -> str:
        lines = [
            "--- Kidneys Summary ---",
            f"Glomerular Filtration Rate (GFR): {self.gfr:.1f} mL/min",
            f"Urine Output: {self.urine_output_rate * 3600:.1f} mL/hr",
            f"Renin Secretion: {self.renin_secretion_rate:.1f} ng/mL/hr",
            f"Blood Sodium: {self.blood_sodium:.1f} mEq/L",
            f"Blood Potassium: {self.blood_potassium:.1f} mEq/L",
        ]
        return "\n".join(lines)
