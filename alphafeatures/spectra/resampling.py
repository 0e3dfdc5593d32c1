"""Resampling of raw spectra onto a uniform m/z grid.

Raw MS1 spectra have irregular m/z spacing. Maxima detection and wavelet
filtering need a regular grid, so every scan of a window is resampled to
``resolution`` bins per Dalton, giving a (scans x bins) intensity matrix.

Each raw sample is split linearly between the two bins that bracket it and
each bin is normalised by its accumulated weight (never by less than one),
followed by a light [1, 2, 1] / 4 smoothing along m/z. Along elution the
matrix is smoothed the same way, optionally after a 3-point running median
which removes single-scan spikes such as lock mass spray.

Performance
-----------
- Whole window is resampled by one parallel numba kernel over scans
- Input scans are packed into flat buffers with an offset table
"""

from typing import List, Tuple

import numba as nb
import numpy as np
from numba import njit

from alphafeatures.constants import PROTON_MASS
from alphafeatures.models import ResampledMatrix, Scan


# ========== Numba kernels ==========

@njit
def smooth_a_little(x: np.ndarray) -> np.ndarray:
    """Apply a [1, 2, 1] / 4 kernel, replicating edge values.

    Args:
        x: 1D signal

    Returns:
        Smoothed copy of ``x``
    """
    n = len(x)
    out = np.empty(n, dtype=np.float64)
    if n == 0:
        return out
    last = x[0]
    for i in range(n):
        cur = x[i]
        nxt = x[i + 1] if i + 1 < n else cur
        out[i] = (last + 2.0 * cur + nxt) / 4.0
        last = cur
    return out


@njit
def median_smooth(x: np.ndarray) -> np.ndarray:
    """3-point running median; the two end samples are kept."""
    n = len(x)
    out = x.copy()
    for i in range(1, n - 1):
        a = x[i - 1]
        b = x[i]
        c = x[i + 1]
        if a > b:
            a, b = b, a
        if b > c:
            b = c
        out[i] = a if a > b else b
    return out


@njit
def _resample_linear(
    mz: np.ndarray,
    intensity: np.ndarray,
    mz_start: float,
    resolution: float,
    out: np.ndarray,
) -> None:
    """Split every sample between its two bracketing bins into ``out``."""
    n_bins = len(out)
    weights = np.zeros(n_bins, dtype=np.float64)
    for k in range(len(mz)):
        bucket = (mz[k] - mz_start) * resolution
        index = int(np.floor(bucket))
        if index < 0 or index >= n_bins:
            continue
        frac = bucket - index
        out[index] += intensity[k] * (1.0 - frac)
        weights[index] += 1.0 - frac
        if index + 1 < n_bins:
            out[index + 1] += intensity[k] * frac
            weights[index + 1] += frac
    for i in range(n_bins):
        if weights[i] > 1.0:
            out[i] /= weights[i]


@njit
def _resample_nearest(
    mz: np.ndarray,
    intensity: np.ndarray,
    mz_start: float,
    resolution: float,
    out: np.ndarray,
) -> None:
    """Mean of the samples rounding to each bin."""
    n_bins = len(out)
    counts = np.zeros(n_bins, dtype=np.int64)
    for k in range(len(mz)):
        index = int(np.floor((mz[k] - mz_start) * resolution + 0.5))
        if index < 0 or index >= n_bins:
            continue
        out[index] += intensity[k]
        counts[index] += 1
    for i in range(n_bins):
        if counts[i] > 1:
            out[i] /= counts[i]


@nb.njit(parallel=True)
def _resample_scans(
    flat_mz: np.ndarray,
    flat_intensity: np.ndarray,
    offsets: np.ndarray,
    mz_start: float,
    resolution: float,
    n_bins: int,
    smooth: bool,
    nearest: bool,
) -> np.ndarray:
    """Resample packed scans in parallel, one matrix row per scan."""
    n_scans = len(offsets) - 1
    out = np.zeros((n_scans, n_bins), dtype=np.float64)
    for s in nb.prange(n_scans):
        lo = offsets[s]
        hi = offsets[s + 1]
        row = np.zeros(n_bins, dtype=np.float64)
        if nearest:
            _resample_nearest(flat_mz[lo:hi], flat_intensity[lo:hi], mz_start, resolution, row)
        else:
            _resample_linear(flat_mz[lo:hi], flat_intensity[lo:hi], mz_start, resolution, row)
            if smooth:
                row = smooth_a_little(row)
        out[s, :] = row
    return out


@nb.njit(parallel=True)
def smooth_elution(spectra: np.ndarray, use_median: bool = False) -> np.ndarray:
    """Smooth every m/z bin along elution."""
    n_scans, n_bins = spectra.shape
    out = np.empty_like(spectra)
    for b in nb.prange(n_bins):
        column = spectra[:, b].copy()
        if use_median:
            column = median_smooth(column)
        out[:, b] = smooth_a_little(column)
    return out


@nb.njit(parallel=True)
def smooth_rows(spectra: np.ndarray) -> np.ndarray:
    """Apply the [1, 2, 1] / 4 kernel to every scan along m/z."""
    out = np.empty_like(spectra)
    for s in nb.prange(spectra.shape[0]):
        out[s, :] = smooth_a_little(spectra[s, :].copy())
    return out


# ========== Public API ==========

def grid_size(mz_range: Tuple[float, float], resolution: int) -> int:
    """Number of bins covering ``mz_range`` at ``resolution`` bins per Da."""
    low, high = mz_range
    if high < low:
        raise ValueError(f"Invalid m/z range: {mz_range}")
    return int(np.ceil((high - low) * resolution)) + 1


def _check_spectrum(mz: np.ndarray, intensity: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    mz = np.asarray(mz, dtype=np.float64)
    intensity = np.asarray(intensity, dtype=np.float64)
    if len(mz) != len(intensity):
        raise ValueError(
            f"Length mismatch: {len(mz)} m/z values, {len(intensity)} intensities"
        )
    if len(mz) > 1 and np.any(np.diff(mz) < 0):
        raise ValueError("m/z values must be sorted ascending")
    return mz, intensity


def resample_spectrum(
    mz: np.ndarray,
    intensity: np.ndarray,
    mz_range: Tuple[float, float],
    resolution: int,
    smooth: bool = True,
) -> np.ndarray:
    """Resample one spectrum onto a uniform grid.

    Parameters
    ----------
    mz : np.ndarray
        Raw m/z values, ascending
    intensity : np.ndarray
        Raw intensities
    mz_range : tuple of float
        (low, high) of the grid; bin 0 sits at ``low``
    resolution : int
        Bins per Dalton
    smooth : bool, default=True
        Apply the [1, 2, 1] / 4 kernel after binning

    Returns
    -------
    resampled : np.ndarray
        Intensity per bin, ``ceil((high - low) * resolution) + 1`` bins

    Raises
    ------
    ValueError
        If m/z is not sorted or the arrays differ in length
    """
    mz, intensity = _check_spectrum(mz, intensity)
    out = np.zeros(grid_size(mz_range, resolution), dtype=np.float64)
    _resample_linear(mz, intensity, float(mz_range[0]), float(resolution), out)
    if smooth:
        out = smooth_a_little(out)
    return out


def resample_nearest(
    mz: np.ndarray,
    intensity: np.ndarray,
    mz_range: Tuple[float, float],
    resolution: int,
) -> np.ndarray:
    """Zero-order resampling: each bin is the mean of the samples nearest to it."""
    mz, intensity = _check_spectrum(mz, intensity)
    out = np.zeros(grid_size(mz_range, resolution), dtype=np.float64)
    _resample_nearest(mz, intensity, float(mz_range[0]), float(resolution), out)
    return out


def translate_zero_charge(
    mz: np.ndarray,
    intensity: np.ndarray,
    mass_range: Tuple[float, float],
    charge: int,
    resolution: int,
) -> Tuple[np.ndarray, np.ndarray]:
    """Project a spectrum onto a neutral mass axis for a given charge.

    Args:
        mz: Raw m/z values, ascending
        intensity: Raw intensities
        mass_range: (low, high) neutral mass range of the axis
        charge: Charge state assumed for every sample (> 0)
        resolution: Bins per Dalton of neutral mass

    Returns:
        Tuple of (mass_axis, signal)
    """
    if charge < 1:
        raise ValueError(f"Charge must be positive, got {charge}")
    mz, intensity = _check_spectrum(mz, intensity)
    mass = (mz - PROTON_MASS) * charge
    signal = np.zeros(grid_size(mass_range, resolution), dtype=np.float64)
    _resample_nearest(mass, intensity, float(mass_range[0]), float(resolution), signal)
    axis = mass_range[0] + np.arange(len(signal)) / resolution
    return axis, signal


def _pack_scans(scans: List[Scan]) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    offsets = np.zeros(len(scans) + 1, dtype=np.int64)
    for i, scan in enumerate(scans):
        offsets[i + 1] = offsets[i] + len(scan)
    if offsets[-1] == 0:
        empty = np.zeros(0, dtype=np.float64)
        return empty, empty, offsets
    flat_mz = np.concatenate([s.mz for s in scans])
    flat_intensity = np.concatenate([s.intensity for s in scans])
    return flat_mz, flat_intensity, offsets


def resample_window(scans: List[Scan], mz_range: Tuple[float, float], params) -> ResampledMatrix:
    """Resample a block of scans into a (scans x bins) matrix.

    Args:
        scans: Consecutive scans of the window
        mz_range: (low, high) m/z range; padded by ``params.padding`` on both sides
        params: ResampleParams

    Returns:
        ResampledMatrix with elution-smoothed spectra
    """
    mz_start = float(mz_range[0]) - params.padding
    mz_end = float(mz_range[1]) + params.padding
    n_bins = grid_size((mz_start, mz_end), params.resolution)

    flat_mz, flat_intensity, offsets = _pack_scans(scans)
    spectra = _resample_scans(
        flat_mz, flat_intensity, offsets, mz_start, float(params.resolution),
        n_bins, params.smooth, False,
    )
    spectra = smooth_elution(spectra, params.median_smooth)

    zero_order = None
    if params.zero_order:
        zero_order = _resample_scans(
            flat_mz, flat_intensity, offsets, mz_start, float(params.resolution),
            n_bins, False, True,
        )
    return ResampledMatrix(spectra, mz_start, params.resolution, zero_order)
