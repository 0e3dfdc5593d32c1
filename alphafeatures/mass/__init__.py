"""Accurate m/z refinement against raw (non-resampled) spectra.

This module provides:
- Centroid mode: most intense raw peak per isotope slot with a ppm check
- Profile mode: centre-of-mass or maximum m/z averaged over adjacent scans
- Optional intensity recalculation around the refined m/z
"""

from .accurate_mass import (
    AccurateMassRefiner,
    ppm_to_da,
)

__all__ = [
    'AccurateMassRefiner',
    'ppm_to_da',
]
