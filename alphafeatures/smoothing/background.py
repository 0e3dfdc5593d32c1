"""Background and local noise estimation on the resampled matrix.

Two quantities accompany every candidate peak:

- **background**: the baseline intensity under the peak. The default estimate
  works per scan on 1-Da blocks. In a block only a handful of bins can carry
  real isotope peaks (at most ``samples_per_peak`` bins per charge), so the
  K-th highest intensity (K = samples_per_peak * max_charge), nudged towards
  the 2K-th, bounds what is left. Intensities are clipped at that bound and
  smoothed along both axes.
- **median**: a windowed median along m/z (two Daltons) and along elution
  (``resolution`` scans), combined by maximum. It is the noise floor used in
  the ridge thresholds and envelope scoring.

The windowed statistics follow the same recipe: statistic per bucket, each
bucket lowered to its neighbours, light smoothing, then linear interpolation
between bucket centres.
"""

import numba as nb
import numpy as np
from numba import njit

from alphafeatures.config import BackgroundMethod, BackgroundParams
from alphafeatures.spectra.resampling import smooth_a_little, smooth_elution, smooth_rows


# ========== Numba kernels ==========

@njit
def _windowed_statistic(x: np.ndarray, window: int, use_median: bool) -> np.ndarray:
    n = len(x)
    out = np.zeros(n, dtype=np.float64)
    if n == 0:
        return out
    ws = min(n, window)
    n_windows = (n - 1) // ws + 1

    buckets = np.empty(n_windows, dtype=np.float64)
    for w in range(n_windows):
        seg = x[w * ws:min(n, (w + 1) * ws)]
        if use_median:
            buckets[w] = np.sort(seg)[len(seg) // 2]
        else:
            buckets[w] = seg.min()

    # Lower every bucket to its neighbours so a peak never lifts its own floor
    right = buckets.copy()
    for w in range(n_windows - 1):
        right[w] = min(buckets[w], buckets[w + 1])
    lowered = right.copy()
    for w in range(1, n_windows):
        lowered[w] = min(right[w], right[w - 1])
    lowered = smooth_a_little(lowered)

    out[:] = lowered[0]
    for w in range(n_windows - 1):
        start = n * w // n_windows + ws // 2
        end = n * (w + 1) // n_windows + ws // 2
        if end <= start:
            continue
        for i in range(start, min(end, n)):
            out[i] = lowered[w] + (lowered[w + 1] - lowered[w]) * (i - start) / (end - start)
    last_centre = n * (n_windows - 1) // n_windows + ws // 2
    for i in range(min(last_centre, n), n):
        out[i] = lowered[n_windows - 1]
    return out


@nb.njit(parallel=True)
def _windowed_rows(spectra: np.ndarray, window: int, use_median: bool) -> np.ndarray:
    out = np.empty_like(spectra)
    for s in nb.prange(spectra.shape[0]):
        out[s, :] = _windowed_statistic(spectra[s, :].copy(), window, use_median)
    return out


@nb.njit(parallel=True)
def _windowed_columns(spectra: np.ndarray, window: int, use_median: bool) -> np.ndarray:
    out = np.empty_like(spectra)
    for b in nb.prange(spectra.shape[1]):
        out[:, b] = _windowed_statistic(spectra[:, b].copy(), window, use_median)
    return out


@nb.njit(parallel=True)
def _quantile_background(spectra: np.ndarray, resolution: int, k: int,
                         fraction: float) -> np.ndarray:
    n_scans, n_bins = spectra.shape
    out = np.empty_like(spectra)
    for s in nb.prange(n_scans):
        for start in range(0, n_bins, resolution):
            end = min(n_bins, start + resolution)
            block = np.sort(spectra[s, start:end])[::-1]
            n = end - start
            kk = min(k, n)
            k2 = min(2 * k, n)
            cutoff = block[kk - 1] + fraction * (block[k2 - 1] - block[kk - 1])
            for i in range(start, end):
                out[s, i] = min(spectra[s, i], cutoff)
    return out


# ========== Public API ==========

def windowed_median(x: np.ndarray, window: int, axis: int = -1) -> np.ndarray:
    """Smoothly interpolated windowed median along ``axis`` of a 1D or 2D array."""
    return _windowed(x, window, axis, True)


def windowed_minimum(x: np.ndarray, window: int, axis: int = -1) -> np.ndarray:
    """Smoothly interpolated windowed minimum along ``axis`` of a 1D or 2D array."""
    return _windowed(x, window, axis, False)


def _windowed(x: np.ndarray, window: int, axis: int, use_median: bool) -> np.ndarray:
    if window < 1:
        raise ValueError(f"window must be >= 1, got {window}")
    x = np.ascontiguousarray(x, dtype=np.float64)
    if x.ndim == 1:
        return _windowed_statistic(x, window, use_median)
    if x.ndim != 2:
        raise ValueError(f"Expected a 1D or 2D array, got {x.ndim} dimensions")
    if axis in (1, -1):
        return _windowed_rows(x, window, use_median)
    return _windowed_columns(x, window, use_median)


def estimate_background(
    spectra: np.ndarray,
    resolution: int,
    max_charge: int,
    params: BackgroundParams,
) -> np.ndarray:
    """Estimate the baseline under every matrix cell.

    Args:
        spectra: Resampled matrix (scans x bins)
        resolution: Bins per Dalton
        max_charge: Highest charge considered; more charges, more bins may be signal
        params: BackgroundParams

    Returns:
        Background matrix, same shape as ``spectra``
    """
    spectra = np.ascontiguousarray(spectra, dtype=np.float64)
    if spectra.size == 0:
        return np.zeros_like(spectra)

    if params.method == BackgroundMethod.MINIMA:
        background = windowed_minimum(spectra, params.minima_window_spectrum, axis=1)
        return windowed_minimum(background, params.minima_window_elution, axis=0)

    k = max(1, params.samples_per_peak * max_charge)
    background = _quantile_background(spectra, int(resolution), k, params.fraction)
    for _ in range(params.smoothing_passes):
        background = smooth_rows(background)
        background = smooth_elution(background)
    return background


def estimate_local_median(spectra: np.ndarray, resolution: int, window_spectrum: int = 0,
                          window_elution: int = 0) -> np.ndarray:
    """Local noise floor: max of the m/z-wise and elution-wise windowed medians.

    Windows of 0 follow the grid: twice ``resolution`` bins along m/z and
    ``resolution`` scans along elution.
    """
    spectra = np.ascontiguousarray(spectra, dtype=np.float64)
    if spectra.size == 0:
        return np.zeros_like(spectra)
    window_spectrum = int(window_spectrum) or 2 * int(resolution)
    window_elution = int(window_elution) or int(resolution)
    along_mz = windowed_median(spectra, window_spectrum, axis=1)
    along_elution = windowed_median(spectra, window_elution, axis=0)
    return np.maximum(along_mz, along_elution)
