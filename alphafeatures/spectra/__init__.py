"""Spectrum resampling onto uniform m/z grids.

This module provides:
- Linear-split resampling with [1, 2, 1] smoothing (main detection grid)
- Zero-order (nearest bin) companion resampling
- Neutral mass projection for a fixed charge
- Parallel resampling of a whole window of scans
"""

from .resampling import (
    grid_size,
    median_smooth,
    resample_nearest,
    resample_spectrum,
    resample_window,
    smooth_a_little,
    smooth_elution,
    smooth_rows,
    translate_zero_charge,
)

__all__ = [
    'grid_size',
    'median_smooth',
    'resample_nearest',
    'resample_spectrum',
    'resample_window',
    'smooth_a_little',
    'smooth_elution',
    'smooth_rows',
    'translate_zero_charge',
]
