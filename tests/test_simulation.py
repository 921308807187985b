"""
Integration tests for the full patient and the simulation runner.

Tests:
- End-to-end stability of the thirteen-organ patient
- Clinical scenarios
- Recording, DataFrame export, biomarkers and clinical report
- EKG-derived heart rate and plotting
"""

import pytest
import numpy as np
import pandas as pd
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(__file__)), 'src'))

from organ_twin.cardiopulmonary import Heart, Lungs
from organ_twin.neurology import Brain, SpinalCord
from organ_twin.digestive import Stomach, Esophagus, GastricState
from organ_twin.renal import Kidneys, Bladder
from organ_twin.lymphatic import Spleen
from organ_twin.patient import Patient, initialize_patient, update_patient
from organ_twin.simulation import PatientSimulation, CLINICAL_SCENARIOS, VITAL_KEYS


def assert_bounded(patient):
    blood = patient.blood
    assert 0.0 <= blood.oxygen_saturation <= 100.0
    assert 0.0 <= blood.co2_partial_pressure <= 200.0
    assert 0.0 <= blood.glucose <= 600.0
    assert 0.0 <= blood.angiotensin <= 50.0
    assert blood.toxins >= 0.0
    assert 80.0 <= blood.systolic_bp <= 180.0
    assert 50.0 <= blood.diastolic_bp <= 110.0

    heart = patient.get_organ(Heart)
    assert 40.0 <= heart.left_ventricle.volume <= 130.0
    assert 40.0 <= heart.right_ventricle.volume <= 130.0
    lungs = patient.get_organ(Lungs)
    assert 94.0 <= lungs.oxygen_saturation <= 100.0
    brain = patient.get_organ(Brain)
    assert 3 <= brain.gcs.total <= 15
    assert brain.cerebral_perfusion_pressure >= 0.0
    kidneys = patient.get_organ(Kidneys)
    assert 90.0 <= kidneys.gfr <= 150.0
    bladder = patient.get_organ(Bladder)
    assert 0.0 <= bladder.volume <= 500.0
    stomach = patient.get_organ(Stomach)
    assert 0.0 <= stomach.volume <= 1500.0


class TestEndToEnd:
    """Test the fully coupled patient."""

    def test_one_minute_healthy(self, patient):
        """Test 600 ticks of 0.1 s: bounds hold and heart follows the brain."""
        heart = patient.get_organ(Heart)
        brain = patient.get_organ(Brain)
        for _ in range(600):
            update_patient(patient, 0.1)
            assert_bounded(patient)

        assert abs(heart.heart_rate - brain.target_heart_rate) < 5.0
        for lead in heart.leads:
            assert len(heart.ekg_history(lead)) == 200

    def test_large_steps(self, patient):
        """Test huge time steps keep every clamp in range."""
        for dt in (1.0, 5.0, 50.0, 500.0):
            update_patient(patient, dt)
            assert_bounded(patient)

    def test_lung_injury_event(self, patient):
        """Test a mid-run lung injury keeps the patient bounded."""
        for i in range(400):
            if i == 200:
                patient.get_organ(Lungs).inflict_damage(0.7)
            update_patient(patient, 0.1)
            assert_bounded(patient)

    @pytest.mark.slow
    def test_long_run_drift(self, patient):
        """Test ten simulated minutes stay bounded, including slow drifters."""
        spleen = patient.get_organ(Spleen)
        cord = patient.get_organ(SpinalCord)
        for _ in range(6000):
            update_patient(patient, 0.1)
        assert_bounded(patient)
        assert 1400.0 <= spleen.white_pulp.lymphocyte_count <= 1600.0
        assert 70.0 <= cord.motor_tract.conduction_velocity <= 80.0

    def test_single_organ_patients(self):
        """Test every organ runs on its own."""
        template = initialize_patient(1, seed=0)
        for organ in template.organs:
            patient = Patient(2)
            patient.add_organ(organ)
            for _ in range(50):
                update_patient(patient, 0.1)


class TestScenarios:
    """Test clinical scenarios."""

    def test_unknown_scenario(self):
        """Test that an unknown scenario raises ValueError."""
        sim = PatientSimulation(seed=0)
        with pytest.raises(ValueError, match="Unknown scenario"):
            sim.apply_scenario('appendicitis')

    def test_all_scenarios_run(self):
        """Test every scenario applies and runs."""
        for name in CLINICAL_SCENARIOS:
            sim = PatientSimulation(seed=0)
            sim.apply_scenario(name)
            sim.run(5.0, dt=0.1)
            assert_bounded(sim.patient)

    def test_toxin_clearance(self):
        """Test the liver clears an acute toxin load."""
        sim = PatientSimulation(seed=0)
        sim.apply_scenario('toxin_exposure')
        assert sim.patient.blood.toxins == 100.0
        sim.run(30.0, dt=0.1)
        assert sim.patient.blood.toxins < 10.0

    def test_lung_injury(self):
        """Test the lung injury scenario reduces compliance."""
        sim = PatientSimulation(seed=0)
        sim.apply_scenario('lung_injury')
        assert sim.patient.get_organ(Lungs).total_compliance == pytest.approx(0.1)

    def test_postprandial(self):
        """Test a meal lands in the stomach and a bolus starts down the esophagus."""
        sim = PatientSimulation(seed=0)
        sim.apply_scenario('postprandial')
        assert sim.patient.get_organ(Stomach).state == GastricState.FILLING
        assert len(sim.patient.get_organ(Esophagus).boluses) == 1

    def test_hyperglycemia_recovers(self):
        """Test the liver brings blood glucose down."""
        sim = PatientSimulation(seed=0)
        sim.apply_scenario('hyperglycemia')
        sim.run(10.0, dt=0.1)
        assert sim.patient.blood.glucose < 250.0

    def test_hypotension_paces_heart(self):
        """Test the hypotension scenario paces heart and brain target at 60 bpm."""
        sim = PatientSimulation(seed=0)
        sim.apply_scenario('hypotension')
        assert sim.patient.get_organ(Heart).target_heart_rate == 60.0
        assert sim.patient.get_organ(Brain).target_heart_rate == 60.0
        assert sim.patient.get_organ(Heart).vascular_tone == -20.0

    def test_hypotension_drives_raas(self):
        """Test MAP stays under the renin threshold and angiotensin climbs well above rest."""
        healthy = PatientSimulation(seed=0).run(20.0, dt=0.1)
        assert np.max(healthy['angiotensin']) < 0.25
        assert np.max(healthy['renin']) < 1.1

        sim = PatientSimulation(seed=0)
        sim.apply_scenario('hypotension')
        result = sim.run(20.0, dt=0.1)
        assert np.all(result['mean_arterial_pressure'] < 85.0)
        assert result['renin'][-1] > 10.0
        assert result['angiotensin'][-1] > 0.8
        assert result['angiotensin'][-1] > 4 * np.max(healthy['angiotensin'])
        # Angiotensin pulls MAP back up from its nadir
        assert result['mean_arterial_pressure'][-1] > np.min(result['mean_arterial_pressure'])
        assert_bounded(sim.patient)


class TestRunner:
    """Test recording and reporting."""

    @pytest.fixture
    def sim(self):
        sim = PatientSimulation(patient_id=7, seed=42)
        sim.run(10.0, dt=0.1)
        return sim

    def test_run_records(self, sim):
        """Test run returns one array entry per tick."""
        assert len(sim.recording['time']) == 100
        assert sim.time == pytest.approx(10.0)
        assert sim.recording['time'][0] == pytest.approx(0.1)

    def test_run_returns_arrays(self):
        """Test run returns numpy arrays keyed by vital."""
        sim = PatientSimulation(seed=1)
        result = sim.run(2.0, dt=0.1)
        assert set(result) == set(VITAL_KEYS)
        assert isinstance(result['heart_rate'], np.ndarray)
        assert result['heart_rate'].shape == (20,)

    def test_run_without_recording(self):
        """Test record=False advances time but stores nothing."""
        sim = PatientSimulation(seed=1)
        assert sim.run(1.0, dt=0.1, record=False) == {}
        assert sim.time == pytest.approx(1.0)
        assert sim.recording['time'] == []

    def test_invalid_dt(self):
        """Test non-positive dt is rejected."""
        sim = PatientSimulation(seed=1)
        with pytest.raises(ValueError):
            sim.run(1.0, dt=0.0)

    def test_step_returns_vitals(self):
        """Test step returns a vital snapshot."""
        sim = PatientSimulation(seed=1)
        vitals = sim.step(0.1)
        assert set(vitals) == set(VITAL_KEYS)
        assert vitals['gcs'] == 15

    def test_wraps_existing_patient(self):
        """Test a caller-built patient is used as-is."""
        patient = Patient(5)
        patient.add_organ(Heart(rng=np.random.default_rng(0)))
        sim = PatientSimulation(patient=patient)
        vitals = sim.step(0.1)
        assert sim.patient is patient
        assert np.isnan(vitals['gcs'])
        assert np.isfinite(vitals['ekg'])

    def test_dataframe(self, sim):
        """Test DataFrame export indexed by time."""
        df = sim.to_dataframe()
        assert isinstance(df, pd.DataFrame)
        assert df.index.name == 'time'
        assert len(df) == 100
        assert list(df.columns) == VITAL_KEYS[1:]

    def test_reproducible(self):
        """Test identical seeds give identical recordings."""
        a = PatientSimulation(seed=3)
        b = PatientSimulation(seed=3)
        a.run(5.0, dt=0.1)
        b.run(5.0, dt=0.1)
        pd.testing.assert_frame_equal(a.to_dataframe(), b.to_dataframe())

    def test_biomarkers(self, sim):
        """Test biomarker keys and plausible healthy values."""
        bio = sim.extract_biomarkers()
        for key in ['mean_heart_rate', 'ekg_heart_rate', 'mean_arterial_pressure',
                    'mean_spo2', 'min_gcs', 'gcs_category', 'mean_gfr',
                    'final_glucose', 'final_toxins', 'scenario']:
            assert key in bio
        assert 50.0 <= bio['mean_heart_rate'] <= 160.0
        assert np.isnan(bio['ekg_heart_rate'])
        # Inspiratory airway pressure above 5 cmH2O masks the verbal score
        assert 11 <= bio['min_gcs'] <= 15
        assert bio['gcs_category'] in ('Minor', 'Moderate')
        assert bio['scenario'] == 'healthy'

    def test_biomarkers_empty(self):
        """Test biomarkers before any run."""
        assert PatientSimulation(seed=0).extract_biomarkers() == {}

    def test_clinical_report(self, sim):
        """Test report sections."""
        report = sim.clinical_report()
        assert "CLINICAL REPORT" in report
        assert "Patient: 7" in report
        assert "Healthy Baseline" in report
        for section in ["CARDIOVASCULAR:", "RESPIRATORY:", "NEUROLOGICAL:", "RENAL / METABOLIC:"]:
            assert section in report

    def test_clinical_report_empty(self):
        """Test the report before any run."""
        assert "No simulation data" in PatientSimulation(seed=0).clinical_report()


class TestEKGHeartRate:
    """Test heart rate from recorded EKG peaks."""

    def test_fine_sampling(self):
        """Test EKG-derived rate agrees with the R-R measured rate."""
        sim = PatientSimulation(seed=42)
        sim.run(4.0, dt=0.005)
        ekg_rate = sim.ekg_heart_rate(0.005)
        assert np.isfinite(ekg_rate)
        assert ekg_rate == pytest.approx(np.mean(sim.recording['heart_rate'][-200:]), abs=5.0)

    def test_coarse_sampling(self):
        """Test that coarse recordings cannot resolve R-peaks."""
        sim = PatientSimulation(seed=42)
        sim.run(2.0, dt=0.1)
        assert np.isnan(sim.ekg_heart_rate(0.1))

    def test_too_short(self):
        """Test NaN with fewer than two peaks."""
        sim = PatientSimulation(seed=42)
        sim.run(0.1, dt=0.005)
        assert np.isnan(sim.ekg_heart_rate(0.005))


class TestPlotting:
    """Test vitals plot."""

    def test_plot_vitals(self, tmp_path):
        """Test the figure is created and saved."""
        matplotlib = pytest.importorskip("matplotlib")
        matplotlib.use("Agg")
        import matplotlib.pyplot as plt

        sim = PatientSimulation(seed=0)
        sim.run(2.0, dt=0.1)
        path = tmp_path / "vitals.png"
        fig = sim.plot_vitals(save_path=str(path))
        assert fig is not None
        assert path.exists()
        plt.close(fig)

    def test_repeated_plots_closed_by_caller(self):
        """Test each call returns a fresh figure that the caller can close."""
        matplotlib = pytest.importorskip("matplotlib")
        matplotlib.use("Agg")
        import matplotlib.pyplot as plt

        plt.close('all')
        sim = PatientSimulation(seed=0)
        sim.run(1.0, dt=0.1)
        for _ in range(3):
            fig = sim.plot_vitals()
            assert len(plt.get_fignums()) == 1
            plt.close(fig)
        assert plt.get_fignums() == []

    def test_plot_without_data(self):
        """Test plotting before a run warns and returns None."""
        pytest.importorskip("matplotlib")
        sim = PatientSimulation(seed=0)
        with pytest.warns(UserWarning):
            assert sim.plot_vitals() is None


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
