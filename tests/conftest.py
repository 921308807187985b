"""
Pytest configuration and fixtures for reproducible testing.

This file provides centralized test configuration including:
- Seeded generators for organs built directly in a test
- Seeded patients shared across test modules
"""
import os
import sys

import pytest
import numpy as np

sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(__file__)), 'src'))

from organ_twin.patient import Patient, initialize_patient


@pytest.fixture
def rng():
    """Seeded generator for organs built directly in a test."""
    return np.random.default_rng(42)


@pytest.fixture
def patient():
    """Fully populated patient (12-lead heart, fixed seed)."""
    return initialize_patient(1, num_leads=12, seed=42)


@pytest.fixture
def bare_patient():
    """Patient with healthy blood and no organs; tests add what they need."""
    return Patient(1)


def pytest_configure(config):
    config.addinivalue_line("markers", "slow: long-running simulation tests")
