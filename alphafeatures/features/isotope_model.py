"""Poisson isotope abundance model and divergence scores.

Peptide isotope envelopes are close to a Poisson distribution whose mean
grows linearly with mass (roughly one extra heavy isotope per 1800 Da). The
model is precomputed as a table of 640 rows, one per 10 Da from 5 Da to
6395 Da, with the first 6 isotope abundances of each row normalised to one.

Scores are computed in bits (log2).
"""

import numpy as np
from numba import njit

from alphafeatures.constants import (
    ISOTOPE_SLOTS,
    POISSON_LAMBDA_PER_DA,
    POISSON_TABLE_OFFSET,
    POISSON_TABLE_ROWS,
    POISSON_TABLE_STEP,
    PROTON_MASS,
)


def build_poisson_table(rows: int = POISSON_TABLE_ROWS, slots: int = ISOTOPE_SLOTS,
                        step: float = POISSON_TABLE_STEP, offset: float = POISSON_TABLE_OFFSET,
                        lambda_per_da: float = POISSON_LAMBDA_PER_DA) -> np.ndarray:
    """Normalised Poisson abundances, one row per mass step.

    Returns:
        Array of shape (rows, slots)
    """
    mass = np.arange(rows, dtype=np.float64) * step + offset
    mu = mass * lambda_per_da
    table = np.empty((rows, slots), dtype=np.float64)
    term = np.exp(-mu)
    for k in range(slots):
        if k > 0:
            term = term * mu / k
        table[:, k] = term
    return table / table.sum(axis=1, keepdims=True)


POISSON_TABLE = build_poisson_table()


@njit
def poisson_row(mass: float) -> int:
    """Row of the Poisson table modelling ``mass``."""
    idx = (int(mass) - POISSON_TABLE_OFFSET) // POISSON_TABLE_STEP
    if idx < 0:
        return 0
    if idx >= POISSON_TABLE_ROWS:
        return POISSON_TABLE_ROWS - 1
    return idx


def poisson_distribution(mass: float) -> np.ndarray:
    """Expected relative abundances of the first 6 isotopes of ``mass``."""
    return POISSON_TABLE[poisson_row(float(mass))].copy()


@njit
def kl_divergence_symmetric(p: np.ndarray, q: np.ndarray) -> float:
    """Symmetric KL divergence ``KL(p||q) + KL(q||p)`` in bits.

    Both vectors must be strictly positive; callers floor missing slots.
    """
    total = 0.0
    for i in range(len(p)):
        total += (p[i] - q[i]) * np.log2(p[i] / q[i])
    return total


@njit
def kl_divergence(p: np.ndarray, q: np.ndarray) -> float:
    """One-directional KL divergence ``KL(p||q)`` in bits."""
    total = 0.0
    for i in range(len(p)):
        if p[i] > 0.0:
            total += p[i] * np.log2(p[i] / q[i])
    return total


def kl_poisson_distance(mass: float, signal: np.ndarray) -> float:
    """KL divergence of a normalised 6-slot signal from the model at ``mass``."""
    signal = np.asarray(signal, dtype=np.float64)
    return kl_divergence(signal, poisson_distribution(mass)[:len(signal)])


@njit
def convert_mz_to_mass(mz: float, charge: int) -> float:
    """Neutral mass of an ion; 0 for charge 0, negative charges lose protons."""
    if charge > 0:
        return (mz - PROTON_MASS) * charge
    if charge < 0:
        return (mz + PROTON_MASS) * -charge
    return 0.0
