"""
Organ Twin — Test Suite
=======================
Test modules:
- test_core.py: Blood, organ registry, patient factory/driver, reporting
- test_cardiopulmonary.py: Heart and Lungs
- test_neurology.py: Brain and SpinalCord
- test_digestive.py: Liver, Pancreas, Gallbladder, Intestines, Stomach, Esophagus
- test_renal.py: Kidneys and Bladder
- test_simulation.py: end-to-end runs, scenarios, biomarkers, reporting
"""

__version__ = '0.1.0'
