"""
Organ Twin — Patient Aggregate
==============================
A patient owns the shared Blood compartment and an ordered set of organs.
Registration order is update order: an organ later in the list sees this
tick's state of the organs before it and last tick's state of those after.

Usage:
    patient = initialize_patient(1, num_leads=12, seed=42)
    for _ in range(600):
        update_patient(patient, dt=0.1)
    print(get_patient_summary(patient))

Author: Organ Twin contributors
License: MIT
"""

import logging
from typing import Dict, List, Optional, Type, TypeVar, Union

import numpy as np

from .core import Blood, Organ, OrganType
from .cardiopulmonary import Heart, Lungs
from .neurology import Brain, SpinalCord
from .digestive import Liver, Pancreas, Gallbladder, Intestines, Stomach, Esophagus
from .renal import Kidneys, Bladder
from .lymphatic import Spleen

logger = logging.getLogger(__name__)

OrganT = TypeVar('OrganT', bound=Organ)

# Default roster, in update order
ORGAN_ORDER: List[Type[Organ]] = [
    Heart, Lungs, Brain, Liver, Kidneys, Bladder, Stomach,
    Intestines, Gallbladder, Pancreas, Esophagus, Spleen, SpinalCord,
]


class Patient:
    """Blood plus organs, with lookup by organ type.

    At most one organ per type is allowed so that lookups are unambiguous.
    """

    def __init__(self, patient_id: int, blood: Optional[Blood] = None):
        self.patient_id = patient_id
        self.blood = blood or Blood()
        self.organs: List[Organ] = []
        self._registry: Dict[OrganType, Organ] = {}

    def add_organ(self, organ: Organ) -> Organ:
        if organ.organ_type in self._registry:
            raise ValueError(f"Patient {self.patient_id} already has a {organ.type_tag}")
        self.organs.append(organ)
        self._registry[organ.organ_type] = organ
        return organ

    def get_organ(self, kind: Union[Type[OrganT], OrganType]) -> Optional[OrganT]:
        """Organ of the given class or type tag, or None if absent."""
        organ_type = kind if isinstance(kind, OrganType) else kind.organ_type
        return self._registry.get(organ_type)  # type: ignore[return-value]

    def has_organ(self, kind: Union[Type[Organ], OrganType]) -> bool:
        return self.get_organ(kind) is not None

    def __len__(self) -> int:
        return len(self.organs)

    def __repr__(self) -> str:
        return f"Patient(patient_id={self.patient_id}, organs={[o.type_tag for o in self.organs]})"


# ═══════════════════════════════════════════════════════════════
# Factory & Driver
# ═══════════════════════════════════════════════════════════════

def initialize_patient(patient_id: int, num_leads: int = 12,
                       seed: Optional[int] = None) -> Patient:
    """Create a healthy patient with the full organ roster.

    Args:
        patient_id: Identifier for the patient
        num_leads: EKG lead count forwarded to the Heart
        seed: Seed for reproducible runs (None → fresh entropy)

    Returns: Patient with organs registered in update order
    """
    patient = Patient(patient_id)
    streams = np.random.SeedSequence(seed).spawn(len(ORGAN_ORDER))

    for organ_id, (organ_cls, stream) in enumerate(zip(ORGAN_ORDER, streams), start=1):
        rng = np.random.default_rng(stream)
        if organ_cls is Heart:
            organ = Heart(organ_id, num_leads=num_leads, rng=rng)
        else:
            organ = organ_cls(organ_id, rng=rng)
        patient.add_organ(organ)

    logger.debug("Initialized patient %s with %d organs (seed=%s)",
                 patient_id, len(patient.organs), seed)
    return patient


def update_patient(patient: Patient, dt: float):
    """Advance every organ by ``dt`` seconds in registration order."""
    if dt < 0:
        raise ValueError(f"Time step must be non-negative, got {dt}")
    for organ in patient.organs:
        organ.update(patient, dt)


# ═══════════════════════════════════════════════════════════════
# Reporting
# ═══════════════════════════════════════════════════════════════

def get_organ_summary(patient: Patient, type_tag: str) -> str:
    """Summary of the first organ whose type tag matches, or ''."""
    for organ in patient.organs:
        if organ.type_tag == type_tag:
            return organ.summary()
    return ""


def get_patient_summary(patient: Patient) -> str:
    return "\n".join(organ.summary() for organ in patient.organs)


def calculate_bmi(weight_kg: float, height_m: float) -> float:
    """Body mass index (kg/m²)."""
    if weight_kg <= 0 or height_m <= 0:
        raise ValueError(f"Weight and height must be positive, "
                         f"got weight={weight_kg} kg, height={height_m} m")
    return weight_kg / (height_m ** 2)
