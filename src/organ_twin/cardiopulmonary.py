"""
Organ Twin — Cardiopulmonary Models
===================================
Heart and lungs, the two organs that drive blood pressure and blood gases.

Heart:
  Electrical: cycle position wrapping at 60/HR, R-peak timing → measured HR,
              multi-lead EKG synthesized from five Gaussian waves (P, Q, R, S, T)
  Mechanical: four chambers with systole/diastole windows, pressure-driven
              valves, volume integration, EDV/ESV capture → ejection fraction
  Vascular:   aortic pressure and blood pressure (HR + angiotensin)

Lungs:
  Mechanics:  half-sine inspiratory pressure, passive recoil on expiration,
              five lobes with compliance, one bronchus with resistance
  Gases:      SpO2 / etCO2 relax toward ventilation-dependent targets
  Waveform:   capnography (baseline, upstroke, plateau, downstroke)
  Exchange:   blood O2 / CO2 pulled toward alveolar values

Usage:
    heart = Heart(organ_id=1, num_leads=12)
    lungs = Lungs(organ_id=2)
    patient.add_organ(heart)
    patient.add_organ(lungs)
    update_patient(patient, dt=0.1)
    print(heart.heart_rate, lungs.oxygen_saturation)

Author: Organ Twin contributors
License: MIT
"""

import logging
import warnings
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Deque, Dict, List, Optional, TYPE_CHECKING

import numpy as np

from .core import Organ, OrganType, clamp, OXYGEN_SATURATION_BOUNDS, CO2_BOUNDS

if TYPE_CHECKING:
    from .patient import Patient

logger = logging.getLogger(__name__)


def _crossed(old_fraction: float, new_fraction: float, wrapped: bool, mark: float) -> bool:
    """True if the cycle fraction passed ``mark`` during this tick."""
    if wrapped:
        return old_fraction < mark or new_fraction >= mark
    return old_fraction < mark <= new_fraction


# ═══════════════════════════════════════════════════════════════
# Heart
# ═══════════════════════════════════════════════════════════════

EKG_LEAD_NAMES = ["I", "II", "III", "aVR", "aVL", "aVF",
                  "V1", "V2", "V3", "V4", "V5", "V6"]

# (center as fraction of cycle, amplitude mV, width as fraction of cycle)
EKG_WAVES = {
    'P': (0.10, 0.15, 0.04),
    'Q': (0.20, -0.10, 0.02),
    'R': (0.22, 1.00, 0.02),
    'S': (0.24, -0.25, 0.02),
    'T': (0.40, 0.30, 0.06),
}


class ChamberState(Enum):
    SYSTOLE = "SYSTOLE"
    DIASTOLE = "DIASTOLE"


class ValveStatus(Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


@dataclass
class Chamber:
    """One cardiac chamber."""
    name: str
    volume: float                      # mL
    pressure: float                    # mmHg
    state: ChamberState = ChamberState.DIASTOLE
    end_diastolic_volume: float = 0.0  # mL
    end_systolic_volume: float = 0.0   # mL


@dataclass
class Valve:
    """One cardiac valve. Stenosis/regurgitation are 0-1 severities."""
    name: str
    status: ValveStatus = ValveStatus.CLOSED
    stenosis: float = 0.0
    regurgitation: float = 0.0

    @property
    def is_open(self) -> bool:
        return self.status == ValveStatus.OPEN


@dataclass
class HeartParams:
    """Cardiac model parameters."""
    baseline_rate: float = 75.0            # bpm
    rate_noise: float = 0.01               # bpm per tick (std)
    min_rate: float = 1.0                  # bpm, floor for pacing noise
    ekg_history_size: int = 200            # samples per lead

    # Cycle landmarks (fraction of cycle)
    r_peak_fraction: float = 0.22
    atrial_systole_end: float = 0.15
    ventricular_systole_start: float = 0.20
    ventricular_systole_end: float = 0.50

    # Pressures (mmHg)
    la_pressure: tuple = (10.0, 5.0)       # (systole, diastole)
    ra_pressure: tuple = (7.0, 2.0)
    lv_peak_pressure: float = 125.0
    lv_diastolic_pressure: float = 5.0
    rv_peak_pressure: float = 25.0
    rv_diastolic_pressure: float = 2.0
    pulmonary_artery_pressure: float = 20.0
    aortic_diastolic_floor: float = 80.0
    aortic_decay_amplitude: float = 40.0

    # Volumes
    flow_rate: float = 500.0               # mL/s through an open valve
    ejection_factor: float = 1.5           # outflow relative to inflow
    min_ventricular_volume: float = 40.0   # mL
    max_ventricular_volume: float = 130.0  # mL

    # Blood pressure model
    baseline_systolic: float = 110.0
    baseline_diastolic: float = 75.0
    systolic_rate_gain: float = 0.5        # mmHg per bpm above baseline
    diastolic_rate_gain: float = 0.25
    angiotensin_gain: float = 2.0          # mmHg per a.u.
    systolic_bounds: tuple = (80.0, 180.0)
    diastolic_bounds: tuple = (50.0, 110.0)


class Heart(Organ):
    """Electromechanical heart model with multi-lead EKG.

    The pacing rate is set externally (normally by the Brain's baroreflex);
    ``heart_rate`` reports the rate measured from successive R-peaks.
    ``vascular_tone`` is a persistent offset (mmHg) added to both arterial
    pressures; negative values model vasodilation.
    """

    organ_type = OrganType.HEART

    def __init__(self, organ_id: int = 1, num_leads: int = 12,
                 params: Optional[HeartParams] = None,
                 rng: Optional[np.random.Generator] = None):
        super().__init__(organ_id, rng)
        self.params = params or HeartParams()
        p = self.params

        if num_leads < 1:
            raise ValueError(f"num_leads must be at least 1, got {num_leads}")
        if num_leads > len(EKG_LEAD_NAMES):
            warnings.warn(f"{num_leads} EKG leads requested; "
                          f"clamping to {len(EKG_LEAD_NAMES)}")
            num_leads = len(EKG_LEAD_NAMES)

        self.leads: List[str] = EKG_LEAD_NAMES[:num_leads]
        self._ekg: Dict[str, Deque[float]] = {
            lead: deque(maxlen=p.ekg_history_size) for lead in self.leads
        }

        self._rate = p.baseline_rate
        self._measured_rate = p.baseline_rate
        self._last_r_peak_time: Optional[float] = None
        self.elapsed_time = 0.0
        self.cycle_position = 0.0   # seconds into current cycle

        self.left_atrium = Chamber("Left Atrium", 50.0, p.la_pressure[1])
        self.right_atrium = Chamber("Right Atrium", 50.0, p.ra_pressure[1])
        self.left_ventricle = Chamber("Left Ventricle", 120.0, p.lv_diastolic_pressure,
                                      end_diastolic_volume=120.0,
                                      end_systolic_volume=54.0)
        self.right_ventricle = Chamber("Right Ventricle", 120.0, p.rv_diastolic_pressure,
                                       end_diastolic_volume=120.0,
                                       end_systolic_volume=54.0)

        self.mitral_valve = Valve("Mitral Valve")
        self.tricuspid_valve = Valve("Tricuspid Valve")
        self.aortic_valve = Valve("Aortic Valve")
        self.pulmonary_valve = Valve("Pulmonary Valve")

        self._ejection_fraction = 0.55
        self.vascular_tone = 0.0    # mmHg

    # ── Public accessors ──

    @property
    def heart_rate(self) -> float:
        """Heart rate measured from R-R intervals (bpm)."""
        return self._measured_rate

    @property
    def target_heart_rate(self) -> float:
        return self._rate

    @property
    def ejection_fraction(self) -> float:
        return self._ejection_fraction

    @property
    def cycle_duration(self) -> float:
        return 60.0 / self._rate

    @property
    def aortic_pressure(self) -> float:
        """Aortic pressure: LV pressure during ejection, else diastolic decay."""
        p = self.params
        if self.aortic_valve.is_open:
            return self.left_ventricle.pressure
        return p.aortic_diastolic_floor + p.aortic_decay_amplitude * np.exp(-self.cycle_position)

    @property
    def chambers(self) -> List[Chamber]:
        return [self.left_atrium, self.right_atrium,
                self.left_ventricle, self.right_ventricle]

    @property
    def valves(self) -> List[Valve]:
        return [self.mitral_valve, self.tricuspid_valve,
                self.aortic_valve, self.pulmonary_valve]

    def ekg_history(self, lead: str = "I") -> List[float]:
        """EKG samples for ``lead``, newest first."""
        if lead not in self._ekg:
            raise ValueError(f"Unknown lead: {lead}. Available: {self.leads}")
        return list(self._ekg[lead])

    def set_heart_rate(self, bpm: float):
        """Set the pacing rate (bpm)."""
        if bpm <= 0:
            raise ValueError(f"Heart rate must be positive, got {bpm}")
        self._rate = float(bpm)

    # ── Simulation ──

    @staticmethod
    def ekg_waveform(fraction: float) -> float:
        """Single-lead EKG voltage at a position within the cycle (0-1)."""
        voltage = 0.0
        for center, amplitude, width in EKG_WAVES.values():
            voltage += amplitude * np.exp(-0.5 * ((fraction - center) / width) ** 2)
        return float(voltage)

    def update(self, patient: 'Patient', dt: float) -> None:
        p = self.params

        # Electrical: pacing with small natural variation
        self._rate = max(p.min_rate, self._rate + self.fluctuation(p.rate_noise))
        cycle = 60.0 / self._rate

        old_position = self.cycle_position
        self.cycle_position += dt
        self.elapsed_time += dt
        wrapped = self.cycle_position >= cycle
        if wrapped:
            self.cycle_position %= cycle

        old_f = old_position / cycle
        f = self.cycle_position / cycle

        self._detect_r_peak(old_f, f, wrapped, cycle)

        base_voltage = self.ekg_waveform(f)
        for i, lead in enumerate(self.leads):
            self._ekg[lead].appendleft(base_voltage * (1.0 - 0.1 * i))

        # Mechanical: aortic pressure seen by the aortic valve this tick
        aortic_pressure = self.aortic_pressure
        self._update_chambers(old_f, f, wrapped)
        self._update_valves(aortic_pressure)
        self._update_volumes(dt)

        # Blood pressure from pacing rate, vascular tone and RAAS vasoconstriction
        blood = patient.blood
        pressure_offset = blood.angiotensin * p.angiotensin_gain + self.vascular_tone
        rate_delta = self._rate - p.baseline_rate
        blood.systolic_bp = clamp(p.baseline_systolic + rate_delta * p.systolic_rate_gain
                                  + pressure_offset, *p.systolic_bounds)
        blood.diastolic_bp = clamp(p.baseline_diastolic + rate_delta * p.diastolic_rate_gain
                                   + pressure_offset, *p.diastolic_bounds)

    def _detect_r_peak(self, old_f: float, f: float, wrapped: bool, cycle: float):
        mark = self.params.r_peak_fraction
        if not _crossed(old_f, f, wrapped, mark):
            return

        # Interpolate the crossing time within the tick
        if f >= mark:
            peak_time = self.elapsed_time - (f - mark) * cycle
        else:
            peak_time = self.elapsed_time - self.cycle_position - (1.0 - mark) * cycle

        if self._last_r_peak_time is not None:
            interval = peak_time - self._last_r_peak_time
            if interval > 0:
                self._measured_rate = 60.0 / interval
        self._last_r_peak_time = peak_time

    def _update_chambers(self, old_f: float, f: float, wrapped: bool):
        p = self.params
        atrial = ChamberState.SYSTOLE if f < p.atrial_systole_end else ChamberState.DIASTOLE
        ventricular = (ChamberState.SYSTOLE
                       if p.ventricular_systole_start <= f < p.ventricular_systole_end
                       else ChamberState.DIASTOLE)
        self.left_atrium.state = self.right_atrium.state = atrial
        self.left_ventricle.state = self.right_ventricle.state = ventricular

        ventricles = (self.left_ventricle, self.right_ventricle)
        if _crossed(old_f, f, wrapped, p.atrial_systole_end):
            for chamber in ventricles:
                chamber.end_diastolic_volume = chamber.volume
        if _crossed(old_f, f, wrapped, p.ventricular_systole_end):
            for chamber in ventricles:
                chamber.end_systolic_volume = chamber.volume
            lv = self.left_ventricle
            if lv.end_diastolic_volume > 0:
                self._ejection_fraction = ((lv.end_diastolic_volume - lv.end_systolic_volume)
                                           / lv.end_diastolic_volume)

        la_sys, la_dia = p.la_pressure
        ra_sys, ra_dia = p.ra_pressure
        self.left_atrium.pressure = la_sys if atrial == ChamberState.SYSTOLE else la_dia
        self.right_atrium.pressure = ra_sys if atrial == ChamberState.SYSTOLE else ra_dia

        if ventricular == ChamberState.SYSTOLE:
            contraction = np.sin((f - p.ventricular_systole_start)
                                 / (p.ventricular_systole_end - p.ventricular_systole_start) * np.pi)
            self.left_ventricle.pressure = float(p.lv_peak_pressure * contraction)
            self.right_ventricle.pressure = float(p.rv_peak_pressure * contraction)
        else:
            self.left_ventricle.pressure = p.lv_diastolic_pressure
            self.right_ventricle.pressure = p.rv_diastolic_pressure

    def _update_valves(self, aortic_pressure: float):
        def status(upstream: float, downstream: float) -> ValveStatus:
            return ValveStatus.OPEN if upstream > downstream else ValveStatus.CLOSED

        pa = self.params.pulmonary_artery_pressure
        self.tricuspid_valve.status = status(self.right_atrium.pressure, self.right_ventricle.pressure)
        self.mitral_valve.status = status(self.left_atrium.pressure, self.left_ventricle.pressure)
        self.pulmonary_valve.status = status(self.right_ventricle.pressure, pa)
        self.aortic_valve.status = status(self.left_ventricle.pressure, aortic_pressure)

    def _update_volumes(self, dt: float):
        p = self.params
        flow = p.flow_rate * dt
        lv, rv = self.left_ventricle, self.right_ventricle

        if self.mitral_valve.is_open:
            lv.volume += flow
        if self.tricuspid_valve.is_open:
            rv.volume += flow
        if self.aortic_valve.is_open:
            lv.volume -= flow * p.ejection_factor
        if self.pulmonary_valve.is_open:
            rv.volume -= flow * p.ejection_factor

        lv.volume = clamp(lv.volume, p.min_ventricular_volume, p.max_ventricular_volume)
        rv.volume = clamp(rv.volume, p.min_ventricular_volume, p.max_ventricular_volume)

    def summary(self) -> str:
        def valve_text(valve: Valve) -> str:
            return valve.status.value

        lines = [
            "--- Heart Summary ---",
            f"Heart Rate (Measured): {self.heart_rate:.2f} bpm",
            f"Ejection Fraction: {self.ejection_fraction * 100.0:.2f}%",
            f"Aortic Pressure: {self.aortic_pressure:.2f} mmHg",
            "",
            "--- Chambers ---",
            f" LV Volume: {self.left_ventricle.volume:.2f} mL",
            f" LV Pressure: {self.left_ventricle.pressure:.2f} mmHg",
            f" RV Volume: {self.right_ventricle.volume:.2f} mL",
            f" RV Pressure: {self.right_ventricle.pressure:.2f} mmHg",
            "",
            "--- Valves ---",
            f" Aortic Valve: {valve_text(self.aortic_valve)}",
            f" Mitral Valve: {valve_text(self.mitral_valve)}",
        ]
        return "\n".join(lines)


# ═══════════════════════════════════════════════════════════════
# Lungs
# ═══════════════════════════════════════════════════════════════

class RespiratoryState(Enum):
    INSPIRATION = "INSPIRATION"
    EXPIRATION = "EXPIRATION"
    PAUSE = "PAUSE"


@dataclass
class Lobe:
    name: str
    compliance: float    # L/cmH2O
    volume: float = 0.0  # mL


@dataclass
class Bronchus:
    resistance: float = 0.8   # cmH2O/L/s


@dataclass
class LungParams:
    """Respiratory model parameters."""
    baseline_rate: float = 16.0             # breaths/min
    baseline_tidal_volume: float = 500.0    # mL
    total_lung_capacity: float = 6000.0     # mL
    inspiratory_fraction: float = 0.4       # of each breath
    peak_inspiratory_pressure: float = 15.0 # cmH2O
    recoil_pressure: float = 5.0            # cmH2O at baseline tidal volume
    capnography_history_size: int = 200

    # Gas targets and relaxation rates (1/s)
    baseline_spo2: float = 98.0
    baseline_etco2: float = 40.0
    spo2_relaxation: float = 0.1
    etco2_relaxation: float = 0.2
    spo2_noise: float = 0.02
    etco2_noise: float = 0.05
    plateau_noise: float = 0.1
    spo2_bounds: tuple = (94.0, 100.0)
    etco2_bounds: tuple = (35.0, 50.0)

    # Blood exchange
    o2_transfer_rate: float = 0.8
    co2_transfer_rate: float = 0.5
    ventilation_bounds: tuple = (0.5, 1.5)


DEFAULT_LOBES = [
    ("Right Upper Lobe", 0.10),
    ("Right Middle Lobe", 0.07),
    ("Right Lower Lobe", 0.13),
    ("Left Upper Lobe", 0.10),
    ("Left Lower Lobe", 0.10),
]


class Lungs(Organ):
    """Respiratory mechanics, gas exchange and capnography.

    The respiration rate is set externally by the Brain's chemoreflex.
    """

    organ_type = OrganType.LUNGS

    def __init__(self, organ_id: int = 2, params: Optional[LungParams] = None,
                 rng: Optional[np.random.Generator] = None):
        super().__init__(organ_id, rng)
        self.params = params or LungParams()
        p = self.params

        self.lobes = [Lobe(name, compliance) for name, compliance in DEFAULT_LOBES]
        self.bronchus = Bronchus()

        self.respiration_rate = p.baseline_rate
        self.tidal_volume = p.baseline_tidal_volume
        self.oxygen_saturation = p.baseline_spo2
        self.end_tidal_co2 = p.baseline_etco2
        self.peak_inspiratory_pressure = 0.0
        self.state = RespiratoryState.PAUSE
        self.cycle_position = 0.0
        self._capnography: Deque[float] = deque(maxlen=p.capnography_history_size)

    @property
    def total_compliance(self) -> float:
        return sum(lobe.compliance for lobe in self.lobes)

    @property
    def capnography_history(self) -> List[float]:
        """Capnography samples (mmHg), newest first."""
        return list(self._capnography)

    @property
    def ventilation_factor(self) -> float:
        """Minute ventilation relative to baseline (1.0 = normal)."""
        p = self.params
        return (self.tidal_volume / p.baseline_tidal_volume) * (self.respiration_rate / p.baseline_rate)

    def set_respiration_rate(self, rate: float):
        if rate > 0:
            self.respiration_rate = float(rate)

    def inflict_damage(self, fraction: float):
        """Permanently reduce every lobe's compliance by ``fraction`` (0-1)."""
        fraction = clamp(fraction, 0.0, 1.0)
        for lobe in self.lobes:
            lobe.compliance *= (1.0 - fraction)
        logger.debug("Lung injury: compliance reduced by %.0f%%", fraction * 100)

    def update(self, patient: 'Patient', dt: float) -> None:
        cycle = 60.0 / self.respiration_rate
        inspiration = self.params.inspiratory_fraction * cycle

        self._update_mechanics(dt, cycle, inspiration)
        self._update_gases(dt)
        self._update_capnography(cycle, inspiration)
        self._exchange_with_blood(patient, dt)

    def _update_mechanics(self, dt: float, cycle: float, inspiration: float):
        p = self.params
        self.cycle_position += dt
        if self.cycle_position > cycle:
            self.cycle_position %= cycle

        if self.cycle_position <= inspiration:
            self.state = RespiratoryState.INSPIRATION
            self.peak_inspiratory_pressure = float(
                p.peak_inspiratory_pressure * np.sin(np.pi * self.cycle_position / inspiration))
            flow = self.peak_inspiratory_pressure / self.bronchus.resistance * 100.0 * self.total_compliance
        else:
            self.state = RespiratoryState.EXPIRATION
            self.peak_inspiratory_pressure = 0.0
            recoil = (self.tidal_volume / p.baseline_tidal_volume) * p.recoil_pressure
            flow = -(recoil / self.bronchus.resistance) * 100.0

        self.tidal_volume = clamp(self.tidal_volume + flow * dt, 0.0, p.total_lung_capacity / 2.0)

    def _update_gases(self, dt: float):
        p = self.params
        vf = self.ventilation_factor

        target_spo2 = p.baseline_spo2 * clamp(vf, 0.9, 1.0)
        self.oxygen_saturation += (p.spo2_relaxation * (target_spo2 - self.oxygen_saturation) * dt
                                   + self.fluctuation(p.spo2_noise))
        self.oxygen_saturation = clamp(self.oxygen_saturation, *p.spo2_bounds)

        target_etco2 = p.baseline_etco2 / clamp(vf, 0.8, 1.2)
        self.end_tidal_co2 += (p.etco2_relaxation * (target_etco2 - self.end_tidal_co2) * dt
                               + self.fluctuation(p.etco2_noise))
        self.end_tidal_co2 = clamp(self.end_tidal_co2, *p.etco2_bounds)

    def _update_capnography(self, cycle: float, inspiration: float):
        t = self.cycle_position
        plateau_start = 0.5 * cycle
        plateau_end = 0.8 * cycle

        if self.state == RespiratoryState.INSPIRATION:
            value = 0.0
        elif t < plateau_start:
            value = self.end_tidal_co2 * (t - inspiration) / (plateau_start - inspiration)
        elif t < plateau_end:
            value = self.end_tidal_co2 + self.fluctuation(self.params.plateau_noise)
        else:
            value = self.end_tidal_co2 * (1.0 - (t - plateau_end) / (cycle - plateau_end))

        self._capnography.appendleft(max(0.0, value))

    def _exchange_with_blood(self, patient: 'Patient', dt: float):
        p = self.params
        blood = patient.blood
        vf = clamp(self.ventilation_factor, *p.ventilation_bounds)

        o2_gradient = self.oxygen_saturation - blood.oxygen_saturation
        blood.oxygen_saturation = clamp(
            blood.oxygen_saturation + o2_gradient * p.o2_transfer_rate * vf * dt,
            *OXYGEN_SATURATION_BOUNDS)

        alveolar_co2 = p.baseline_etco2 / vf
        blood.co2_partial_pressure = clamp(
            blood.co2_partial_pressure - (blood.co2_partial_pressure - alveolar_co2) * p.co2_transfer_rate * dt,
            *CO2_BOUNDS)

    def summary(self) -> str:
        lines = [
            "--- Lungs Summary ---",
            f"Respiration Rate: {self.respiration_rate:.1f} breaths/min",
            f"Oxygen Saturation (SpO2): {self.oxygen_saturation:.1f} %",
            f"Tidal Volume: {self.tidal_volume:.1f} mL",
            f"End-Tidal CO2 (etCO2): {self.end_tidal_co2:.1f} mmHg",
            f"Peak Airway Pressure: {self.peak_inspiratory_pressure:.1f} cmH2O",
        ]
        return "\n".join(lines)
