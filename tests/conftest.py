"""Pytest configuration for AlphaFeatures tests.

This module provides common fixtures for all tests. Runs are synthetic:
isotope envelopes following the Poisson model with Gaussian elution
profiles, so expected feature positions are known exactly.
"""

import numpy as np
import pytest

from alphafeatures.constants import ISOTOPE_MASS_DIFFERENCE, PROTON_MASS
from alphafeatures.features.isotope_model import poisson_distribution
from alphafeatures.models import Peak, Run, Scan

# 13C spacing used to place synthetic isotope peaks
C13_SPACING = 1.0033548


def envelope(mz0, charge, n_peaks=5, amplitude=1e6):
    """(m/z, intensity) of an ideal isotope envelope at its apex."""
    mass = (mz0 - PROTON_MASS) * charge
    abundances = poisson_distribution(mass)
    mz = mz0 + np.arange(n_peaks) * C13_SPACING / charge
    return mz, amplitude * abundances[:n_peaks]


def make_run(n_scans=50, center=24, mz0=500.0, charge=2, n_peaks=5, amplitude=1e6,
             sigma=3.0, envelopes=None, centroided=False):
    """Synthetic run with Gaussian-eluting isotope envelopes.

    Args:
        n_scans: Number of scans; numbered from 1, retention time = index (s)
        center, mz0, charge, n_peaks, amplitude, sigma: One envelope
        envelopes: Optional list of dicts with those keys, replacing the single envelope
        centroided: Flag of the run

    Returns:
        Run
    """
    if envelopes is None:
        envelopes = [dict(center=center, mz0=mz0, charge=charge, n_peaks=n_peaks,
                          amplitude=amplitude, sigma=sigma)]
    scans = []
    for i in range(n_scans):
        mzs = []
        intensities = []
        for env in envelopes:
            mz, apex = envelope(env["mz0"], env["charge"], env.get("n_peaks", 5),
                                env.get("amplitude", 1e6))
            profile = np.exp(-0.5 * ((i - env["center"]) / env.get("sigma", 3.0)) ** 2)
            mzs.append(mz)
            intensities.append(apex * profile)
        mz = np.concatenate(mzs)
        intensity = np.concatenate(intensities)
        order = np.argsort(mz, kind="stable")
        scans.append(Scan(i + 1, float(i), mz[order], intensity[order]))
    return Run(scans, centroided)


@pytest.fixture
def synthetic_run():
    """50 scans, one charge 2 envelope of 5 peaks at m/z 500.0 peaking at scan 25."""
    return make_run()


@pytest.fixture
def run_factory():
    """Factory building synthetic runs, see :func:`make_run`."""
    return make_run


@pytest.fixture
def envelope_peaks():
    """Factory for ideal envelope peaks at one scan, most intense first in m/z order."""
    def _make(mz0, charge, n_peaks=6, scan=10, amplitude=1e6):
        mz, intensity = envelope(mz0, charge, n_peaks, amplitude)
        return [
            Peak(scan=scan, mz=float(m), intensity=float(v), total_intensity=float(v))
            for m, v in zip(mz, intensity)
        ]
    return _make


@pytest.fixture
def isotope_spacing():
    """13C - 12C mass difference."""
    return ISOTOPE_MASS_DIFFERENCE


# Random seed for reproducibility
@pytest.fixture(scope="session", autouse=True)
def set_random_seed():
    """Set random seed for reproducible tests."""
    np.random.seed(42)
