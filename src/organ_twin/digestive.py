"""
Organ Twin — Digestive System
=============================
Hepatobiliary, pancreatic and gastrointestinal models.

Flow of material between organs:

    Esophagus ──bolus──▶ Stomach ──chyme──▶ Intestines ──glucose──▶ Blood
                                              ▲      ▲
    Liver ──bile──▶ Gallbladder ──bile────────┘      │
    Pancreas ──enzymes───────────────────────────────┘

State machines:
  Stomach:     EMPTY → FILLING → DIGESTING → EMPTYING → EMPTY
  Gallbladder: STORING ⇄ CONTRACTING
  Esophagus:   IDLE ⇄ CONTRACTING

Metabolic control:
  Liver detoxifies blood and corrects glucose outside [80, 120] mg/dL;
  Pancreas secretes insulin/glucagon in response to blood glucose.

Usage:
    stomach = patient.get_organ(Stomach)
    stomach.add_substance(300.0)          # a meal
    for _ in range(600):
        update_patient(patient, dt=0.1)

Author: Organ Twin contributors
License: MIT
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, TYPE_CHECKING

import numpy as np

from .core import Organ, OrganType, clamp, GLUCOSE_BOUNDS

if TYPE_CHECKING:
    from .patient import Patient

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════
# Liver
# ═══════════════════════════════════════════════════════════════

@dataclass
class HepaticLobule:
    metabolic_activity: float = 1.0
    is_damaged: bool = False


@dataclass
class LiverParams:
    """Hepatic model parameters."""
    num_lobules: int = 100
    baseline_bile_rate: float = 0.0069        # mL/s
    baseline_glucose_production: float = 0.001  # g/s
    production_relaxation: float = 0.02       # 1/s
    bile_bounds: tuple = (0.005, 0.009)
    glucose_production_bounds: tuple = (0.0008, 0.0012)
    enzyme_bounds: tuple = (10.0, 40.0)       # ALT/AST U/L
    bilirubin_bounds: tuple = (0.3, 1.2)      # mg/dL
    detox_rate: float = 0.1                   # fraction of toxins per second
    glucose_correction_rate: float = 0.1      # 1/s
    glucose_band: tuple = (80.0, 120.0)       # mg/dL
    angiotensinogen_production: float = 10.0  # a.u.


class Liver(Organ):
    """Lobule aggregate with metabolism, detoxification and glucose buffering."""

    organ_type = OrganType.LIVER

    def __init__(self, organ_id: int = 4, params: Optional[LiverParams] = None,
                 rng: Optional[np.random.Generator] = None):
        super().__init__(organ_id, rng)
        self.params = params or LiverParams()
        p = self.params

        self.lobules = [HepaticLobule() for _ in range(p.num_lobules)]
        self.bile_production_rate = p.baseline_bile_rate
        self.glucose_production_rate = p.baseline_glucose_production
        self.alt_level = 25.0
        self.ast_level = 25.0
        self.bilirubin_level = 0.8
        self.angiotensinogen_production = p.angiotensinogen_production

    @property
    def metabolic_capacity(self) -> float:
        """Mean activity over all lobules, counting damaged ones as zero."""
        if not self.lobules:
            return 0.0
        healthy = sum(lobule.metabolic_activity for lobule in self.lobules if not lobule.is_damaged)
        return healthy / len(self.lobules)

    def update(self, patient: 'Patient', dt: float) -> None:
        p = self.params
        capacity = self.metabolic_capacity

        self.bile_production_rate = clamp(
            self.bile_production_rate
            + p.production_relaxation * (p.baseline_bile_rate * capacity - self.bile_production_rate) * dt
            + self.fluctuation(0.0001),
            *p.bile_bounds)
        self.glucose_production_rate = clamp(
            self.glucose_production_rate
            + p.production_relaxation * (p.baseline_glucose_production * capacity
                                         - self.glucose_production_rate) * dt
            + self.fluctuation(0.00005),
            *p.glucose_production_bounds)

        self.alt_level = clamp(self.alt_level + self.fluctuation(0.1), *p.enzyme_bounds)
        self.ast_level = clamp(self.ast_level + self.fluctuation(0.1), *p.enzyme_bounds)
        self.bilirubin_level = clamp(self.bilirubin_level + self.fluctuation(0.01), *p.bilirubin_bounds)

        blood = patient.blood
        blood.toxins = max(0.0, blood.toxins - blood.toxins * p.detox_rate * capacity * dt)

        low, high = p.glucose_band
        if blood.glucose > high:
            blood.glucose -= (blood.glucose - high) * p.glucose_correction_rate * capacity * dt
        elif blood.glucose < low:
            blood.glucose += (low - blood.glucose) * p.glucose_correction_rate * capacity * dt
        blood.glucose = clamp(blood.glucose, *GLUCOSE_BOUNDS)

    def summary(self) -> str:
        lines = [
            "--- Liver Summary ---",
            f"Bile Production: {self.bile_production_rate * 60.0:.3f} mL/min",
            f"Glucose Production: {self.glucose_production_rate * 60.0:.3f} g/min",
            f"ALT Level: {self.alt_level:.3f} U/L",
            f"AST Level: {self.ast_level:.3f} U/L",
            f"Bilirubin: {self.bilirubin_level:.3f} mg/dL",
        ]
        return "\n".join(lines)


# ═══════════════════════════════════════════════════════════════
# Pancreas
# ═══════════════════════════════════════════════════════════════

@dataclass
class DigestiveEnzymes:
    """A packet of pancreatic juice."""
    volume: float = 0.0     # mL
    amylase: float = 0.0    # U/L
    lipase: float = 0.0     # U/L


@dataclass
class PancreasParams:
    enzyme_release_rate: float = 0.5   # mL/s of pancreatic juice
    insulin_bounds: tuple = (0.5, 10.0)
    glucagon_bounds: tuple = (20.0, 100.0)
    amylase_bounds: tuple = (60.0, 100.0)
    lipase_bounds: tuple = (20.0, 60.0)


class Pancreas(Organ):
    """Endocrine (insulin/glucagon) and exocrine (amylase/lipase) pancreas."""

    organ_type = OrganType.PANCREAS

    def __init__(self, organ_id: int = 10, params: Optional[PancreasParams] = None,
                 rng: Optional[np.random.Generator] = None):
        super().__init__(organ_id, rng)
        self.params = params or PancreasParams()
        self.insulin_secretion = 1.0     # units/hr
        self.glucagon_secretion = 50.0   # ng/hr
        self.amylase_secretion = 80.0    # U/L
        self.lipase_secretion = 40.0     # U/L

    def update(self, patient: 'Patient', dt: float) -> None:
        p = self.params
        glucose = patient.blood.glucose

        if glucose > 120.0:
            self.insulin_secretion += (glucose - 120.0) * 0.1 * dt
        else:
            self.insulin_secretion -= 0.5 * dt
        self.insulin_secretion = clamp(self.insulin_secretion, *p.insulin_bounds)

        if glucose < 80.0:
            self.glucagon_secretion += (80.0 - glucose) * 0.2 * dt
        else:
            self.glucagon_secretion -= 1.0 * dt
        self.glucagon_secretion = clamp(self.glucagon_secretion, *p.glucagon_bounds)

        self.amylase_secretion = clamp(self.amylase_secretion + self.fluctuation(0.2), *p.amylase_bounds)
        self.lipase_secretion = clamp(self.lipase_secretion + self.fluctuation(0.2), *p.lipase_bounds)

    def release_enzymes(self, dt: float) -> DigestiveEnzymes:
        """Pancreatic juice released over ``dt`` seconds."""
        return DigestiveEnzymes(volume=self.params.enzyme_release_rate * dt,
                                amylase=self.amylase_secretion,
                                lipase=self.lipase_secretion)

    def summary(self) -> str:
        lines = [
            "--- Pancreas Summary ---",
            "--- Endocrine Function ---",
            f"Insulin Secretion: {self.insulin_secretion:.1f} units/hr",
            f"Glucagon Secretion: {self.glucagon_secretion:.1f} ng/hr",
            "--- Exocrine Function ---",
            f"Amylase Secretion: {self.amylase_secretion:.1f} U/L",
            f"Lipase Secretion: {self.lipase_secretion:.1f} U/L",
        ]
        return "\n".join(lines)


# ═══════════════════════════════════════════════════════════════
# Gallbladder
# ═══════════════════════════════════════════════════════════════

class GallbladderState(Enum):
    STORING = "Storing/Concentrating"
    CONTRACTING = "Contracting (Releasing)"


@dataclass
class GallbladderParams:
    capacity: float = 50.0               # mL
    initial_volume: float = 30.0         # mL
    release_rate: float = 2.0            # mL/s while contracting
    concentration_rate: float = 0.05     # per second while storing
    max_concentration: float = 10.0
    refill_volume: float = 5.0           # mL, below this contraction stops
    contraction_duration: float = 30.0   # s


class Gallbladder(Organ):
    """Bile store that concentrates while STORING and releases on demand."""

    organ_type = OrganType.GALLBLADDER

    def __init__(self, organ_id: int = 9, params: Optional[GallbladderParams] = None,
                 rng: Optional[np.random.Generator] = None):
        super().__init__(organ_id, rng)
        self.params = params or GallbladderParams()
        self.state = GallbladderState.STORING
        self.stored_bile = self.params.initial_volume
        self.bile_concentration = 5.0
        self.contraction_time = 0.0

    def store_bile(self, volume: float):
        """Accept hepatic bile; ignored while contracting."""
        if self.state == GallbladderState.STORING:
            self.stored_bile = clamp(self.stored_bile + volume, 0.0, self.params.capacity)

    def release_bile(self, dt: float) -> float:
        """Contract and release bile for ``dt`` seconds. Returns volume released (mL)."""
        if self.stored_bile <= 0.0:
            return 0.0
        if self.state != GallbladderState.CONTRACTING:
            logger.debug("Gallbladder contracting (%.1f mL stored)", self.stored_bile)
        self.state = GallbladderState.CONTRACTING
        released = min(self.params.release_rate * dt, self.stored_bile)
        self.stored_bile -= released
        return released

    def update(self, patient: 'Patient', dt: float) -> None:
        p = self.params

        liver = patient.get_organ(Liver)
        if liver is not None:
            self.store_bile(liver.bile_production_rate * dt)

        if self.state == GallbladderState.STORING:
            self.bile_concentration = min(p.max_concentration,
                                          self.bile_concentration + p.concentration_rate * dt)
        else:
            self.contraction_time += dt
            if self.stored_bile < p.refill_volume or self.contraction_time >= p.contraction_duration:
                self.state = GallbladderState.STORING
                self.bile_concentration = 1.0
                self.contraction_time = 0.0
                logger.debug("Gallbladder back to storing (%.1f mL)", self.stored_bile)

    def summary(self) -> str:
        lines = [
            "--- Gallbladder Summary ---",
            f"State: {self.state.value}",
            f"Volume: {self.stored_bile:.1f} / {self.params.capacity:.1f} mL",
            f"Concentration: {self.bile_concentration:.1f}x",
        ]
        return "\n".join(lines)


# ═══════════════════════════════════════════════════════════════
# Intestines
# ═══════════════════════════════════════════════════════════════

@dataclass
class IntestinalSegment:
    name: str
    length: float                   # m
    motility: float                 # relative
    nutrient_absorption_rate: float
    water_absorption_rate: float


class Intestines(Organ):
    """Small and large bowel: digestion with bile/enzymes and absorption."""

    organ_type = OrganType.INTESTINES

    # Digestion is this many times faster with both bile and enzymes present
    ASSISTED_DIGESTION = 5.0

    def __init__(self, organ_id: int = 8, rng: Optional[np.random.Generator] = None):
        super().__init__(organ_id, rng)
        self.duodenum = IntestinalSegment("Duodenum", 0.25, 1.0, 0.5, 0.1)
        self.jejunum = IntestinalSegment("Jejunum", 2.5, 1.0, 1.0, 0.3)
        self.ileum = IntestinalSegment("Ileum", 3.0, 1.0, 0.8, 0.5)
        self.colon = IntestinalSegment("Colon", 1.5, 0.5, 0.1, 1.0)

        self.chyme_volume = 0.0     # mL
        self.bile_volume = 0.0      # mL
        self.enzyme_volume = 0.0    # mL
        self.amylase = 0.0          # U/L
        self.lipase = 0.0           # U/L

    @property
    def segments(self) -> List[IntestinalSegment]:
        return [self.duodenum, self.jejunum, self.ileum, self.colon]

    def receive_chyme(self, volume: float):
        self.chyme_volume += max(0.0, volume)

    def receive_bile(self, volume: float):
        self.bile_volume += max(0.0, volume)

    def receive_enzymes(self, enzymes: DigestiveEnzymes):
        """Mix a packet of pancreatic juice, volume-weighting concentrations."""
        if enzymes.volume <= 0:
            return
        total = self.enzyme_volume + enzymes.volume
        self.amylase = (self.amylase * self.enzyme_volume + enzymes.amylase * enzymes.volume) / total
        self.lipase = (self.lipase * self.enzyme_volume + enzymes.lipase * enzymes.volume) / total
        self.enzyme_volume = total

    def update(self, patient: 'Patient', dt: float) -> None:
        if self.chyme_volume > 0:
            gallbladder = patient.get_organ(Gallbladder)
            if gallbladder is not None:
                self.receive_bile(gallbladder.release_bile(dt))
            pancreas = patient.get_organ(Pancreas)
            if pancreas is not None:
                self.receive_enzymes(pancreas.release_enzymes(dt))

            efficiency = 1.0
            if self.bile_volume > 0 and self.enzyme_volume > 0:
                efficiency = self.ASSISTED_DIGESTION

            small_bowel = (self.duodenum, self.jejunum, self.ileum)
            nutrient_rate = sum(s.nutrient_absorption_rate for s in small_bowel) * efficiency
            water_rate = sum(s.water_absorption_rate for s in self.segments)

            blood = patient.blood
            blood.glucose = clamp(blood.glucose + nutrient_rate * self.chyme_volume * 0.001 * dt,
                                  *GLUCOSE_BOUNDS)

            self.chyme_volume -= (nutrient_rate * 0.01 + water_rate * 0.1) * dt
            self.bile_volume -= 0.1 * self.bile_volume * dt
            self.enzyme_volume -= 0.1 * self.enzyme_volume * dt

            self.chyme_volume = max(0.0, self.chyme_volume)
            self.bile_volume = max(0.0, self.bile_volume)
            self.enzyme_volume = max(0.0, self.enzyme_volume)
            if self.enzyme_volume == 0.0:
                self.amylase = 0.0
                self.lipase = 0.0

        self.duodenum.motility = clamp(self.duodenum.motility + self.fluctuation(0.01), 0.9, 1.1)

    def summary(self) -> str:
        lines = [
            "--- Intestines Summary ---",
            f"Chyme Volume: {self.chyme_volume:.2f} mL",
            f"Bile Volume: {self.bile_volume:.2f} mL",
            f"Enzyme Volume: {self.enzyme_volume:.2f} mL",
            f"Amylase: {self.amylase:.2f} U/L",
            f"Lipase: {self.lipase:.2f} U/L",
            "",
            "--- Segments ---",
            f"{self.duodenum.name}: Motility {self.duodenum.motility:.2f}",
            f"{self.jejunum.name}: Nutrient Abs. {self.jejunum.nutrient_absorption_rate:.2f}",
            f"{self.ileum.name}: Water Abs. {self.ileum.water_absorption_rate:.2f}",
            f"{self.colon.name}: Water Abs. {self.colon.water_absorption_rate:.2f}",
        ]
        return "\n".join(lines)


# ═══════════════════════════════════════════════════════════════
# Stomach
# ═══════════════════════════════════════════════════════════════

class GastricState(Enum):
    EMPTY = "Empty"
    FILLING = "Filling"
    DIGESTING = "Digesting"
    EMPTYING = "Emptying"


@dataclass
class StomachParams:
    capacity: float = 1500.0            # mL
    baseline_ph: float = 4.5
    buffered_ph_cap: float = 4.0        # pH ceiling right after food arrives
    food_buffering: float = 0.5         # pH rise per meal
    acidic_floor: float = 1.5
    acidification_rate: float = 0.5     # pH units/s while digesting
    filling_time: float = 2.0           # s
    digestion_time: float = 30.0        # s
    emptying_rate: float = 0.5          # mL/s into the duodenum
    digesting_secretion: float = 2.0    # mL/s
    basal_secretion: float = 0.1        # mL/s


class Stomach(Organ):
    """Gastric state machine: fill, acidify and digest, then empty into the bowel."""

    organ_type = OrganType.STOMACH

    def __init__(self, organ_id: int = 7, params: Optional[StomachParams] = None,
                 rng: Optional[np.random.Generator] = None):
        super().__init__(organ_id, rng)
        self.params = params or StomachParams()
        self.state = GastricState.EMPTY
        self.volume = 0.0
        self.ph = self.params.baseline_ph
        self.filling_time = 0.0
        self.digestion_time = 0.0

    def add_substance(self, volume: float):
        """Swallowed food or liquid arriving from the esophagus."""
        if volume <= 0:
            return
        p = self.params
        self.volume += volume
        self.ph = min(p.buffered_ph_cap, self.ph + p.food_buffering)
        self.filling_time = 0.0
        self.digestion_time = 0.0
        self._transition(GastricState.FILLING)

    def _transition(self, state: GastricState):
        if state != self.state:
            logger.debug("Stomach %s -> %s (%.1f mL)", self.state.value, state.value, self.volume)
        self.state = state

    def update(self, patient: 'Patient', dt: float) -> None:
        p = self.params

        if self.state == GastricState.FILLING:
            self.filling_time += dt
            if self.filling_time > p.filling_time:
                self.digestion_time = 0.0
                self._transition(GastricState.DIGESTING)

        elif self.state == GastricState.DIGESTING:
            self.ph = max(p.acidic_floor, self.ph - p.acidification_rate * dt)
            self.digestion_time += dt
            if self.digestion_time > p.digestion_time:
                self._transition(GastricState.EMPTYING)

        elif self.state == GastricState.EMPTYING:
            amount = min(p.emptying_rate * dt, self.volume)
            self.volume -= amount
            intestines = patient.get_organ(Intestines)
            if intestines is not None:
                intestines.receive_chyme(amount)
            if self.volume <= 0:
                self.volume = 0.0
                self.ph = p.baseline_ph
                self._transition(GastricState.EMPTY)

        secretion = p.digesting_secretion if self.state == GastricState.DIGESTING else p.basal_secretion
        self.volume = clamp(self.volume + secretion * dt, 0.0, p.capacity)

    def summary(self) -> str:
        lines = [
            "--- Stomach Summary ---",
            f"State: {self.state.value}",
            f"Volume: {self.volume:.1f} / {self.params.capacity:.1f} mL",
            f"Acidity (pH): {self.ph:.1f}",
        ]
        return "\n".join(lines)


# ═══════════════════════════════════════════════════════════════
# Esophagus
# ═══════════════════════════════════════════════════════════════

class EsophagusState(Enum):
    IDLE = "Idle"
    CONTRACTING = "Contracting"


@dataclass
class Bolus:
    volume: float           # mL
    position: float = 0.0   # cm from the upper sphincter


@dataclass
class EsophagusParams:
    length: float = 25.0            # cm
    peristaltic_speed: float = 3.0  # cm/s


class Esophagus(Organ):
    """Peristaltic transport of swallowed boluses to the stomach."""

    organ_type = OrganType.ESOPHAGUS

    def __init__(self, organ_id: int = 11, params: Optional[EsophagusParams] = None,
                 rng: Optional[np.random.Generator] = None):
        super().__init__(organ_id, rng)
        self.params = params or EsophagusParams()
        self.boluses: List[Bolus] = []
        self.motility = 1.0

    @property
    def state(self) -> EsophagusState:
        return EsophagusState.CONTRACTING if self.boluses else EsophagusState.IDLE

    def initiate_swallow(self, volume: float):
        if volume > 0:
            self.boluses.append(Bolus(volume))

    def update(self, patient: 'Patient', dt: float) -> None:
        p = self.params
        delivered = 0.0
        in_transit = []
        for bolus in self.boluses:
            bolus.position += p.peristaltic_speed * dt
            if bolus.position >= p.length:
                delivered += bolus.volume
            else:
                in_transit.append(bolus)
        self.boluses = in_transit

        if delivered > 0:
            stomach = patient.get_organ(Stomach)
            if stomach is not None:
                stomach.add_substance(delivered)

        self.motility = clamp(self.motility + self.fluctuation(0.001) * dt, 0.95, 1.05)

    def summary(self) -> str:
        lines = [
            "--- Esophagus Summary ---",
            f"State: {self.state.value}",
            f"Boluses in Transit: {len(self.boluses)}",
            f"Motility: {self.motility * 100:.1f}%",
        ]
        return "\n".join(lines)
