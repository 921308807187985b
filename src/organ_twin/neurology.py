"""
Organ Twin — Neurological Models
================================
Brain and spinal cord.

Brain:
  - Regional activity (five regions) driving O2 consumption / CO2 production
  - Intracranial pressure, cerebral perfusion pressure (CPP = MAP - ICP)
  - Glasgow Coma Scale from blood gases, perfusion, toxins and cord integrity
  - EEG synthesized from alpha/beta sine components plus noise
  - Autonomic control: chemoreflex → Lungs respiration rate,
                       baroreflex → Heart pacing rate

Spinal cord:
  - Descending motor and ascending sensory tracts with conduction velocity
  - Reflex arc intact iff both tracts are NORMAL

Usage:
    brain = patient.get_organ(Brain)
    print(brain.gcs.total, brain.gcs.category)

Author: Organ Twin contributors
License: MIT
"""

from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Deque, List, Optional, TYPE_CHECKING

import numpy as np

from .core import Organ, OrganType, clamp, OXYGEN_SATURATION_BOUNDS, CO2_BOUNDS
from .cardiopulmonary import Heart, Lungs

if TYPE_CHECKING:
    from .patient import Patient


# ═══════════════════════════════════════════════════════════════
# Spinal Cord
# ═══════════════════════════════════════════════════════════════

class SignalStatus(Enum):
    NORMAL = "Normal"
    IMPAIRED = "Impaired"
    SEVERED = "Severed"


@dataclass
class SpinalTract:
    """A long spinal pathway. Status changes only by external assignment."""
    name: str
    conduction_velocity: float          # m/s
    velocity_bounds: tuple
    status: SignalStatus = SignalStatus.NORMAL


class SpinalCord(Organ):
    """Motor and sensory tract integrity."""

    organ_type = OrganType.SPINAL_CORD

    def __init__(self, organ_id: int = 13, rng: Optional[np.random.Generator] = None):
        super().__init__(organ_id, rng)
        self.motor_tract = SpinalTract("Descending Motor Tract", 75.0, (70.0, 80.0))
        self.sensory_tract = SpinalTract("Ascending Sensory Tract", 65.0, (60.0, 70.0))

    @property
    def reflex_arc_intact(self) -> bool:
        return (self.motor_tract.status == SignalStatus.NORMAL
                and self.sensory_tract.status == SignalStatus.NORMAL)

    def update(self, patient: 'Patient', dt: float) -> None:
        for tract in (self.motor_tract, self.sensory_tract):
            if tract.status == SignalStatus.NORMAL:
                tract.conduction_velocity = clamp(
                    tract.conduction_velocity + self.fluctuation(0.1), *tract.velocity_bounds)

    def summary(self) -> str:
        m, s = self.motor_tract, self.sensory_tract
        lines = [
            "--- Spinal Cord Summary ---",
            f"Motor Pathway ({m.name}): {m.status.value} ({m.conduction_velocity:.1f} m/s)",
            f"Sensory Pathway ({s.name}): {s.status.value} ({s.conduction_velocity:.1f} m/s)",
            f"Reflex Arc Intact: {'Yes' if self.reflex_arc_intact else 'No'}",
        ]
        return "\n".join(lines)


# ═══════════════════════════════════════════════════════════════
# Brain
# ═══════════════════════════════════════════════════════════════

@dataclass
class BrainRegion:
    name: str
    activity_level: float   # 0-1
    blood_flow: float       # mL/100g/min


@dataclass
class GlasgowComaScale:
    """GCS components: eye 1-4, verbal 1-5, motor 1-6."""
    eye: int = 4
    verbal: int = 5
    motor: int = 6

    @property
    def total(self) -> int:
        return self.eye + self.verbal + self.motor

    @property
    def category(self) -> str:
        return gcs_category(self.total)


def gcs_category(total: int) -> str:
    """Head-injury severity for a total GCS score."""
    if 3 <= total <= 8:
        return "Severe"
    if 9 <= total <= 12:
        return "Moderate"
    if 13 <= total <= 15:
        return "Minor"
    return "Invalid"


@dataclass
class BrainParams:
    """Neurological model parameters."""
    eeg_history_size: int = 200

    # Pressures (mmHg)
    initial_icp: float = 10.0
    icp_bounds: tuple = (8.0, 12.0)
    icp_noise: float = 0.01
    initial_map: float = 90.0
    fallback_map_bounds: tuple = (85.0, 95.0)
    fallback_map_noise: float = 0.1

    # Chemoreflex
    baseline_respiration_rate: float = 16.0
    co2_setpoint: float = 40.0            # mmHg
    o2_setpoint: float = 98.0             # %
    co2_gain: float = 0.5                 # breaths/min per mmHg
    o2_gain: float = 0.8                  # breaths/min per % desaturation
    respiration_adjust_speed: float = 0.5
    respiration_bounds: tuple = (8.0, 35.0)

    # Baroreflex
    baseline_heart_rate: float = 75.0
    map_setpoint: float = 90.0
    baroreflex_gain: float = 0.4          # bpm per mmHg
    heart_rate_adjust_speed: float = 0.4
    heart_rate_bounds: tuple = (50.0, 160.0)

    # Metabolism (per second at full activity)
    o2_consumption: float = 0.1           # % saturation
    co2_production: float = 0.08          # mmHg

    # Ventilator inference
    ventilated_pressure: float = 5.0      # cmH2O


def _default_regions() -> List[BrainRegion]:
    return [
        BrainRegion("Frontal Lobe", 0.8, 50.0),
        BrainRegion("Temporal Lobe", 0.7, 50.0),
        BrainRegion("Parietal Lobe", 0.7, 50.0),
        BrainRegion("Occipital Lobe", 0.8, 55.0),
        BrainRegion("Cerebellum", 0.6, 60.0),
    ]


class Brain(Organ):
    """Brain with GCS, ICP/CPP, EEG and autonomic control of heart and lungs."""

    organ_type = OrganType.BRAIN

    def __init__(self, organ_id: int = 3, params: Optional[BrainParams] = None,
                 rng: Optional[np.random.Generator] = None):
        super().__init__(organ_id, rng)
        self.params = params or BrainParams()
        p = self.params

        self.regions = _default_regions()
        self.gcs = GlasgowComaScale()
        self.intracranial_pressure = p.initial_icp
        self.cerebral_perfusion_pressure = 80.0
        self.mean_arterial_pressure = p.initial_map
        self.target_respiration_rate = p.baseline_respiration_rate
        self.target_heart_rate = p.baseline_heart_rate
        self.elapsed_time = 0.0
        self._eeg: Deque[float] = deque(maxlen=p.eeg_history_size)

    @property
    def eeg_history(self) -> List[float]:
        """EEG samples (μV), newest first."""
        return list(self._eeg)

    @property
    def mean_activity(self) -> float:
        return float(np.mean([r.activity_level for r in self.regions]))

    def get_region(self, name: str) -> BrainRegion:
        for region in self.regions:
            if region.name == name:
                return region
        raise ValueError(f"Unknown brain region: {name}. "
                         f"Available: {[r.name for r in self.regions]}")

    def update(self, patient: 'Patient', dt: float) -> None:
        p = self.params
        self.elapsed_time += dt

        heart = patient.get_organ(Heart)
        if heart is not None:
            self.mean_arterial_pressure = heart.aortic_pressure
        else:
            self.mean_arterial_pressure = clamp(
                self.mean_arterial_pressure + self.fluctuation(p.fallback_map_noise),
                *p.fallback_map_bounds)

        frontal = self.regions[0]
        frontal.activity_level = clamp(frontal.activity_level + self.fluctuation(0.005), 0.7, 0.9)

        self.intracranial_pressure = clamp(
            self.intracranial_pressure + self.fluctuation(p.icp_noise), *p.icp_bounds)
        self.cerebral_perfusion_pressure = max(0.0, self.mean_arterial_pressure - self.intracranial_pressure)

        self._autonomic_control(patient, dt)
        self._eeg.appendleft(self._eeg_sample())

        blood = patient.blood
        activity = self.mean_activity
        blood.oxygen_saturation = clamp(
            blood.oxygen_saturation - p.o2_consumption * activity * dt, *OXYGEN_SATURATION_BOUNDS)
        blood.co2_partial_pressure = clamp(
            blood.co2_partial_pressure + p.co2_production * activity * dt, *CO2_BOUNDS)

        self._update_gcs(patient)

    def _autonomic_control(self, patient: 'Patient', dt: float):
        p = self.params
        blood = patient.blood

        # Chemoreflex: hypoxia drives breathing harder than hypercapnia
        co2_drive = max(0.0, blood.co2_partial_pressure - p.co2_setpoint) * p.co2_gain
        o2_drive = max(0.0, p.o2_setpoint - blood.oxygen_saturation) * p.o2_gain
        respiration_goal = p.baseline_respiration_rate + co2_drive + o2_drive
        self.target_respiration_rate += ((respiration_goal - self.target_respiration_rate)
                                         * p.respiration_adjust_speed * dt)
        self.target_respiration_rate = clamp(self.target_respiration_rate, *p.respiration_bounds)

        lungs = patient.get_organ(Lungs)
        if lungs is not None:
            lungs.set_respiration_rate(self.target_respiration_rate)

        # Baroreflex
        bp_error = p.map_setpoint - blood.mean_arterial_pressure
        heart_rate_goal = p.baseline_heart_rate + bp_error * p.baroreflex_gain
        self.target_heart_rate += ((heart_rate_goal - self.target_heart_rate)
                                   * p.heart_rate_adjust_speed * dt)
        self.target_heart_rate = clamp(self.target_heart_rate, *p.heart_rate_bounds)

        heart = patient.get_organ(Heart)
        if heart is not None:
            heart.set_heart_rate(self.target_heart_rate)

    def _eeg_sample(self) -> float:
        t = self.elapsed_time
        alpha = 0.5 * np.sin(2 * np.pi * 10 * t)
        beta = 0.3 * np.sin(2 * np.pi * 20 * t)
        return float((alpha + beta + self.fluctuation(0.1)) * 20.0)

    def _update_gcs(self, patient: 'Patient'):
        blood = patient.blood
        o2 = blood.oxygen_saturation
        co2 = blood.co2_partial_pressure
        cpp = self.cerebral_perfusion_pressure
        gcs = self.gcs

        if o2 > 94.0 and cpp > 60:
            gcs.eye = 4
        elif o2 > 90.0 and cpp > 55:
            gcs.eye = 3
        elif o2 > 80.0 or cpp > 50:
            gcs.eye = 2
        else:
            gcs.eye = 1

        if co2 < 45.0 and o2 > 94.0:
            gcs.verbal = 5
        elif co2 < 55.0 and o2 > 90.0:
            gcs.verbal = 4
        elif co2 < 65.0 or o2 > 85.0:
            gcs.verbal = 3
        elif co2 < 75.0 or o2 > 75.0:
            gcs.verbal = 2
        else:
            gcs.verbal = 1

        if cpp > 60 and o2 > 92.0:
            gcs.motor = 6
        elif cpp > 55 and o2 > 88.0:
            gcs.motor = 5
        elif cpp > 50 or o2 > 80.0:
            gcs.motor = 4
        elif cpp > 45 or o2 > 70.0:
            gcs.motor = 3
        elif cpp > 40 or o2 > 60.0:
            gcs.motor = 2
        else:
            gcs.motor = 1

        # Toxic encephalopathy
        if blood.toxins > 50.0:
            gcs.eye = min(gcs.eye, 2)
            gcs.verbal = min(gcs.verbal, 3)
            gcs.motor = min(gcs.motor, 4)
        if blood.toxins > 80.0:
            gcs.eye = 1
            gcs.verbal = min(gcs.verbal, 2)
            gcs.motor = min(gcs.motor, 3)

        spinal_cord = patient.get_organ(SpinalCord)
        if spinal_cord is not None and spinal_cord.motor_tract.status != SignalStatus.NORMAL:
            gcs.motor = 1

        # Raised airway pressure implies intubation: verbal not testable
        lungs = patient.get_organ(Lungs)
        if lungs is not None and lungs.peak_inspiratory_pressure > self.params.ventilated_pressure:
            gcs.verbal = 1

    def summary(self) -> str:
        lines = [
            "--- Brain Summary ---",
            f"Glasgow Coma Scale (GCS): {self.gcs.total}",
            f"Intracranial Pressure (ICP): {self.intracranial_pressure:.1f} mmHg",
            f"Mean Arterial Pressure (MAP): {self.mean_arterial_pressure:.1f} mmHg",
            f"Cerebral Perfusion (CPP): {self.cerebral_perfusion_pressure:.1f} mmHg",
        ]
        return "\n".join(lines)
