"""
Organ Twin - Multi-Organ Physiological Simulation

A discrete-time digital twin of a patient: thirteen organ models share a
blood compartment and influence each other through direct feedback loops
(baroreflex, chemoreflex, RAAS, digestion and absorption).
"""

__version__ = "0.1.0"

# Core abstractions
from .core import Blood, Organ, OrganType

# Organ models
from .cardiopulmonary import Heart, Lungs, HeartParams, LungParams
from .neurology import Brain, SpinalCord, BrainParams, GlasgowComaScale, SignalStatus
from .digestive import (
    Liver,
    Pancreas,
    Gallbladder,
    Intestines,
    Stomach,
    Esophagus,
    DigestiveEnzymes,
)
from .renal import Kidneys, Bladder
from .lymphatic import Spleen

# Patient aggregate
from .patient import (
    Patient,
    ORGAN_ORDER,
    initialize_patient,
    update_patient,
    get_organ_summary,
    get_patient_summary,
    calculate_bmi,
)

# Simulation runner
from .simulation import PatientSimulation, ClinicalScenario, CLINICAL_SCENARIOS

__all__ = [
    "Blood",
    "Organ",
    "OrganType",
    "Heart",
    "Lungs",
    "HeartParams",
    "LungParams",
    "Brain",
    "SpinalCord",
    "BrainParams",
    "GlasgowComaScale",
    "SignalStatus",
    "Liver",
    "Pancreas",
    "Gallbladder",
    "Intestines",
    "Stomach",
    "Esophagus",
    "DigestiveEnzymes",
    "Kidneys",
    "Bladder",
    "Spleen",
    "Patient",
    "ORGAN_ORDER",
    "initialize_patient",
    "update_patient",
    "get_organ_summary",
    "get_patient_summary",
    "calculate_bmi",
    "PatientSimulation",
    "ClinicalScenario",
    "CLINICAL_SCENARIOS",
]
