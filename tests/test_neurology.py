"""
Unit tests for the Brain and SpinalCord models.

Tests:
- Fallback MAP random walk and heart-derived MAP
- ICP/CPP bounds
- Chemoreflex and baroreflex commands to Lungs and Heart
- Glasgow Coma Scale ladders and overrides
- EEG buffer
- Spinal tract conduction and reflex arc
"""

import pytest
import numpy as np
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(__file__)), 'src'))

from organ_twin.cardiopulmonary import Heart, Lungs
from organ_twin.neurology import (
    Brain, SpinalCord, SignalStatus, GlasgowComaScale, gcs_category,
)
from organ_twin.patient import Patient


class TestGlasgowComaScale:
    """Test GCS scoring helpers."""

    def test_total(self):
        """Test that the total sums the three components."""
        assert GlasgowComaScale().total == 15
        assert GlasgowComaScale(eye=1, verbal=1, motor=1).total == 3

    @pytest.mark.parametrize("total,category", [
        (3, "Severe"), (8, "Severe"), (9, "Moderate"), (12, "Moderate"),
        (13, "Minor"), (15, "Minor"), (2, "Invalid"), (16, "Invalid"),
    ])
    def test_category(self, total, category):
        """Test severity categories at their boundaries."""
        assert gcs_category(total) == category


class TestBrainPressures:
    """Test MAP, ICP and CPP."""

    def test_fallback_map_bounded(self, rng):
        """Test that without a heart MAP random-walks inside [85, 95]."""
        patient = Patient(1)
        brain = patient.add_organ(Brain(rng=rng))
        for _ in range(1000):
            brain.update(patient, 0.1)
            assert 85.0 <= brain.mean_arterial_pressure <= 95.0
            assert 8.0 <= brain.intracranial_pressure <= 12.0
            assert brain.cerebral_perfusion_pressure == pytest.approx(
                max(0.0, brain.mean_arterial_pressure - brain.intracranial_pressure))

    def test_map_from_heart(self, rng):
        """Test that MAP is read from the heart's aortic pressure when present."""
        patient = Patient(1)
        heart = patient.add_organ(Heart(rng=np.random.default_rng(1)))
        brain = patient.add_organ(Brain(rng=rng))
        for _ in range(50):
            heart.update(patient, 0.1)
            brain.update(patient, 0.1)
            assert brain.mean_arterial_pressure == pytest.approx(heart.aortic_pressure)

    def test_cpp_never_negative(self, rng):
        """Test CPP floor at zero."""
        patient = Patient(1)
        brain = patient.add_organ(Brain(rng=rng))
        brain.mean_arterial_pressure = 85.0
        brain.intracranial_pressure = 12.0
        brain.update(patient, 0.1)
        assert brain.cerebral_perfusion_pressure >= 0.0


class TestAutonomicControl:
    """Test chemoreflex and baroreflex."""

    def test_hypercapnia_raises_respiration(self, rng):
        """Test that high CO2 speeds breathing and is forwarded to the lungs."""
        patient = Patient(1)
        lungs = patient.add_organ(Lungs(rng=np.random.default_rng(1)))
        brain = patient.add_organ(Brain(rng=rng))
        patient.blood.co2_partial_pressure = 60.0
        for _ in range(10):
            lungs.update(patient, 0.1)
            brain.update(patient, 0.1)
        assert brain.target_respiration_rate > 16.0
        assert lungs.respiration_rate == brain.target_respiration_rate

    def test_hypoxia_raises_respiration(self, rng):
        """Test that desaturation drives breathing."""
        patient = Patient(1)
        brain = patient.add_organ(Brain(rng=rng))
        patient.blood.oxygen_saturation = 85.0
        brain.update(patient, 1.0)
        assert brain.target_respiration_rate > 16.0

    def test_respiration_bounds(self, rng):
        """Test the target respiration rate stays in [8, 35]."""
        patient = Patient(1)
        brain = patient.add_organ(Brain(rng=rng))
        patient.blood.co2_partial_pressure = 150.0
        patient.blood.oxygen_saturation = 40.0
        brain.update(patient, 100.0)
        assert 8.0 <= brain.target_respiration_rate <= 35.0

    def test_hypotension_raises_heart_rate(self, rng):
        """Test that low blood MAP raises the target heart rate."""
        patient = Patient(1)
        brain = patient.add_organ(Brain(rng=rng))
        patient.blood.systolic_bp = 90.0
        patient.blood.diastolic_bp = 55.0
        brain.update(patient, 1.0)
        assert brain.target_heart_rate > 75.0

    def test_hypertension_lowers_heart_rate(self, rng):
        """Test that high blood MAP lowers the target heart rate."""
        patient = Patient(1)
        brain = patient.add_organ(Brain(rng=rng))
        patient.blood.systolic_bp = 170.0
        patient.blood.diastolic_bp = 105.0
        brain.update(patient, 1.0)
        assert brain.target_heart_rate < 75.0

    def test_heart_rate_forwarded(self, rng):
        """Test that the brain paces the heart."""
        patient = Patient(1)
        heart = patient.add_organ(Heart(rng=np.random.default_rng(1)))
        brain = patient.add_organ(Brain(rng=rng))
        for _ in range(20):
            heart.update(patient, 0.1)
            brain.update(patient, 0.1)
        assert heart.target_heart_rate == brain.target_heart_rate
        assert 50.0 <= brain.target_heart_rate <= 160.0

    def test_metabolism(self, rng):
        """Test that the brain consumes O2 and produces CO2."""
        patient = Patient(1)
        brain = patient.add_organ(Brain(rng=rng))
        brain.update(patient, 1.0)
        assert patient.blood.oxygen_saturation < 98.0
        assert patient.blood.co2_partial_pressure > 40.0

    def test_metabolism_bounded(self, rng):
        """Test blood gases stay bounded for a huge step."""
        patient = Patient(1)
        brain = patient.add_organ(Brain(rng=rng))
        brain.update(patient, 5000.0)
        assert patient.blood.oxygen_saturation == 0.0
        assert patient.blood.co2_partial_pressure == 200.0


class TestGCS:
    """Test GCS assessment from physiology."""

    @pytest.fixture
    def setup(self, rng):
        patient = Patient(1)
        brain = patient.add_organ(Brain(rng=rng))
        return patient, brain

    def test_healthy(self, setup):
        """Test full score for a healthy patient."""
        patient, brain = setup
        brain.update(patient, 0.1)
        assert brain.gcs.total == 15
        assert brain.gcs.category == "Minor"

    def test_hypoxia(self, setup):
        """Test component ladders under severe desaturation."""
        patient, brain = setup
        patient.blood.oxygen_saturation = 50.0
        brain.update(patient, 0.1)
        assert brain.gcs.eye == 2
        assert brain.gcs.verbal == 3
        assert brain.gcs.motor == 4

    def test_moderate_toxins(self, setup):
        """Test toxin load above 50 caps components."""
        patient, brain = setup
        patient.blood.toxins = 60.0
        brain.update(patient, 0.1)
        assert (brain.gcs.eye, brain.gcs.verbal, brain.gcs.motor) == (2, 3, 4)
        assert brain.gcs.category == "Moderate"

    def test_severe_toxins(self, setup):
        """Test toxin load above 80 caps components further."""
        patient, brain = setup
        patient.blood.toxins = 90.0
        brain.update(patient, 0.1)
        assert (brain.gcs.eye, brain.gcs.verbal, brain.gcs.motor) == (1, 2, 3)
        assert brain.gcs.category == "Severe"

    def test_spinal_motor_lesion(self, setup):
        """Test that an impaired motor tract forces motor = 1."""
        patient, brain = setup
        cord = patient.add_organ(SpinalCord())
        cord.motor_tract.status = SignalStatus.IMPAIRED
        brain.update(patient, 0.1)
        assert brain.gcs.motor == 1
        assert brain.gcs.eye == 4

    def test_sensory_lesion_spares_motor(self, setup):
        """Test that a sensory lesion alone does not change motor score."""
        patient, brain = setup
        cord = patient.add_organ(SpinalCord())
        cord.sensory_tract.status = SignalStatus.SEVERED
        brain.update(patient, 0.1)
        assert brain.gcs.motor == 6

    def test_raised_airway_pressure(self, setup):
        """Test that PIP above 5 cmH2O makes verbal untestable."""
        patient, brain = setup
        lungs = patient.add_organ(Lungs())
        lungs.peak_inspiratory_pressure = 10.0
        brain.update(patient, 0.1)
        assert brain.gcs.verbal == 1

    def test_components_in_range(self, setup):
        """Test component ranges across extreme blood states."""
        patient, brain = setup
        for o2, co2, toxins in [(0, 200, 0), (100, 0, 100), (70, 70, 55), (99, 30, 0)]:
            patient.blood.oxygen_saturation = o2
            patient.blood.co2_partial_pressure = co2
            patient.blood.toxins = toxins
            brain.update(patient, 0.1)
            assert 1 <= brain.gcs.eye <= 4
            assert 1 <= brain.gcs.verbal <= 5
            assert 1 <= brain.gcs.motor <= 6


class TestBrainMisc:
    """Test EEG and region helpers."""

    def test_eeg_capped(self, rng):
        """Test the EEG buffer keeps at most 200 samples."""
        patient = Patient(1)
        brain = patient.add_organ(Brain(rng=rng))
        for _ in range(250):
            brain.update(patient, 0.01)
        assert len(brain.eeg_history) == 200

    def test_frontal_activity_bounded(self, rng):
        """Test frontal lobe activity stays in [0.7, 0.9]."""
        patient = Patient(1)
        brain = patient.add_organ(Brain(rng=rng))
        for _ in range(2000):
            brain.update(patient, 0.1)
            assert 0.7 <= brain.get_region("Frontal Lobe").activity_level <= 0.9

    def test_unknown_region(self):
        """Test that an unknown region raises ValueError."""
        with pytest.raises(ValueError, match="Unknown brain region"):
            Brain().get_region("Hippocampus")


class TestSpinalCord:
    """Test spinal tracts."""

    def test_initial_state(self):
        """Test both tracts start NORMAL with an intact reflex arc."""
        cord = SpinalCord()
        assert cord.motor_tract.conduction_velocity == 75.0
        assert cord.sensory_tract.conduction_velocity == 65.0
        assert cord.reflex_arc_intact

    def test_velocities_bounded(self, rng):
        """Test conduction velocities stay within their bands."""
        patient = Patient(1)
        cord = patient.add_organ(SpinalCord(rng=rng))
        for _ in range(5000):
            cord.update(patient, 0.1)
            assert 70.0 <= cord.motor_tract.conduction_velocity <= 80.0
            assert 60.0 <= cord.sensory_tract.conduction_velocity <= 70.0

    def test_lesion(self, rng):
        """Test that a damaged tract freezes its velocity and breaks the reflex arc."""
        patient = Patient(1)
        cord = patient.add_organ(SpinalCord(rng=rng))
        cord.motor_tract.status = SignalStatus.SEVERED
        assert not cord.reflex_arc_intact
        for _ in range(100):
            cord.update(patient, 0.1)
        assert cord.motor_tract.conduction_velocity == 75.0
        assert cord.motor_tract.status == SignalStatus.SEVERED
        assert "Reflex Arc Intact: No" in cord.summary()


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
