"""
Organ Twin — Multi-Organ Demonstration
======================================
Walks through the main uses of the simulation:
1. Live patient with a toxin load, a meal and a mid-run lung injury
2. Clinical scenario comparison
3. RAAS response to hypotension
4. High-resolution EKG and vitals plot

Author: Organ Twin contributors
"""

import sys
import os
import logging

sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(__file__)), 'src'))

from organ_twin import (
    Heart, Lungs, Kidneys, Stomach,
    PatientSimulation, initialize_patient, update_patient, get_patient_summary,
)


def demo_1_live_patient():
    """Demo 1: 60 s of a patient clearing toxins and digesting, lung injury at t = 20 s."""
    print("\n" + "="*70)
    print("DEMO 1: LIVE PATIENT")
    print("="*70)

    patient = initialize_patient(1, num_leads=12, seed=42)
    print(f"\n[Patient] Created patient {patient.patient_id} with {len(patient)} organs")

    patient.blood.toxins = 100.0
    print("[Patient] Initial toxin load of 100.0 a.u. introduced")
    patient.get_organ(Stomach).add_substance(300.0)
    print("[Patient] A 300 mL meal has been consumed")

    dt = 0.1
    n_steps = int(60.0 / dt)
    for i in range(n_steps):
        t = i * dt
        if abs(t - 20.0) < dt / 2:
            print("\n  *** LUNG INJURY EVENT (80% compliance loss) ***")
            patient.get_organ(Lungs).inflict_damage(0.8)

        update_patient(patient, dt)

        if (i + 1) % 100 == 0:
            blood = patient.blood
            print(f"\n  t = {t + dt:5.1f} s | SpO2 {blood.oxygen_saturation:5.1f}% | "
                  f"PaCO2 {blood.co2_partial_pressure:5.1f} mmHg | "
                  f"Glucose {blood.glucose:6.1f} mg/dL | Toxins {blood.toxins:5.1f} a.u.")

    print("\n--- Final State ---\n")
    print(get_patient_summary(patient))
    print("\n✓ Live patient demo complete!")


def demo_2_scenario_comparison():
    """Demo 2: Compare clinical scenarios."""
    print("\n" + "="*70)
    print("DEMO 2: CLINICAL SCENARIO COMPARISON")
    print("="*70)

    scenarios = ['healthy', 'toxin_exposure', 'lung_injury', 'hyperglycemia', 'hypotension']
    results = {}

    for name in scenarios:
        print(f"\n[Compare] Running {name.upper()}...")
        sim = PatientSimulation(patient_id=1, seed=42)
        sim.apply_scenario(name)
        sim.run(60.0, dt=0.1)
        results[name] = sim.extract_biomarkers()

    print("\n  Scenario Comparison:")
    print(f"  {'Scenario':<16} {'HR (bpm)':<10} {'MAP':<8} {'SpO2':<8} {'GCS':<6} {'Glucose':<9} {'Toxins':<8}")
    print(f"  {'-'*65}")

    for name in scenarios:
        bio = results[name]
        print(f"  {name:<16} "
              f"{bio['mean_heart_rate']:<10.1f} "
              f"{bio['mean_arterial_pressure']:<8.1f} "
              f"{bio['mean_spo2']:<8.1f} "
              f"{bio['min_gcs']:<6.0f} "
              f"{bio['final_glucose']:<9.1f} "
              f"{bio['final_toxins']:<8.1f}")

    print("\n✓ Scenario comparison complete!")


def demo_3_raas():
    """Demo 3: Renin-angiotensin response to low blood pressure."""
    print("\n" + "="*70)
    print("DEMO 3: RAAS RESPONSE TO HYPOTENSION")
    print("="*70)

    sim = PatientSimulation(patient_id=2, seed=7)
    sim.apply_scenario('hypotension')
    kidneys = sim.patient.get_organ(Kidneys)
    heart = sim.patient.get_organ(Heart)

    print(f"\n  {'t (s)':<8} {'MAP':<8} {'Renin':<8} {'Angiotensin':<13} {'Target HR':<10}")
    print(f"  {'-'*47}")
    for second in range(0, 61, 10):
        if second:
            sim.run(10.0, dt=0.1, record=False)
        print(f"  {second:<8} {sim.patient.blood.mean_arterial_pressure:<8.1f} "
              f"{kidneys.renin_secretion_rate:<8.2f} {sim.patient.blood.angiotensin:<13.3f} "
              f"{heart.target_heart_rate:<10.1f}")

    print("\n✓ RAAS demo complete!")


def demo_4_ekg():
    """Demo 4: Fine-step run for EKG-derived heart rate and a vitals plot."""
    print("\n" + "="*70)
    print("DEMO 4: HIGH-RESOLUTION EKG")
    print("="*70)

    sim = PatientSimulation(patient_id=3, seed=42)
    sim.run(10.0, dt=0.005, verbose=True)
    bio = sim.extract_biomarkers()
    print(f"\n  R-R measured heart rate: {bio['mean_heart_rate']:.1f} bpm")
    print(f"  EKG peak-derived rate:   {bio['ekg_heart_rate']:.1f} bpm")

    fig = sim.plot_vitals(save_path='demo_vitals.png')
    if fig is not None:
        print("  Saved vitals plot to demo_vitals.png")
        import matplotlib.pyplot as plt
        plt.close(fig)

    print("\n✓ EKG demo complete!")


def main():
    """Run all demonstrations."""
    logging.basicConfig(level=logging.INFO)

    print("╔══════════════════════════════════════════════════════════════╗")
    print("║  Organ Twin — Multi-Organ Demonstration                      ║")
    print("╚══════════════════════════════════════════════════════════════╝")

    demo_1_live_patient()
    demo_2_scenario_comparison()
    demo_3_raas()
    demo_4_ekg()

    print("\n" + "="*70)
    print("ALL DEMOS COMPLETE!")
    print("="*70)


if __name__ == '__main__':
    main()
