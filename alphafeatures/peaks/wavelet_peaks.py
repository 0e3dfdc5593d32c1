"""Ridge-walking peak extraction on wavelet-sharpened spectra.

This is the default detector. Every scan is sharpened along m/z with the
level-3 MODWT detail, which suppresses baseline and separates neighbouring
isotope peaks; the sharpened matrix is low-passed along elution and its 2D
maxima seed the peaks. From each seed the elution ridge is followed towards
earlier and later scans while

- the resampled intensity stays above a threshold derived from the apex, the
  background and the local median,
- the ridge stays at least as high as the bins two to either side (the
  profile still belongs to the same m/z), and
- the smoothed trace does not climb out of a valley into another peak.

Ridges shorter than ``min_peak_scans`` are dropped. Survivors must finally
have a correlated neighbour, i.e. another peak at a different m/z that
co-elutes with them, as isotope envelopes always provide one.

Performance
-----------
- Ridge walking and the neighbour filter are numba kernels
- The neighbour filter only compares peaks within ``neighbor_scans``
"""

import logging
from typing import List

import numpy as np
from numba import njit

from alphafeatures.config import PeakParams
from alphafeatures.models import Peak
from alphafeatures.peaks.maxima import find_maxima_2d
from alphafeatures.smoothing.lowpass import LowPass
from alphafeatures.smoothing.separation import SmoothedMatrix
from alphafeatures.smoothing.wavelet import wavelet_detail

logger = logging.getLogger(__name__)


# ========== Numba kernels ==========

@njit
def _walk_ridges(
    spectra: np.ndarray,
    smoothed: np.ndarray,
    ridge: np.ndarray,
    background: np.ndarray,
    median: np.ndarray,
    seed_scan: np.ndarray,
    seed_bin: np.ndarray,
    min_ridge_proportion: float,
    offset: float,
    valley_factor: float,
):
    """Follow every seed along elution.

    Returns:
        Tuple of (scan_first, scan_last) arrays
    """
    n_scans = spectra.shape[0]
    n_seeds = len(seed_scan)
    first = np.empty(n_seeds, dtype=np.int64)
    last = np.empty(n_seeds, dtype=np.int64)

    for k in range(n_seeds):
        s0 = seed_scan[k]
        m = seed_bin[k]
        apex = spectra[s0, m]
        threshold = max(min_ridge_proportion * apex,
                        offset + 0.5 * background[s0, m] + 2.0 * median[s0, m])

        for direction in (-1, 1):
            min_in = smoothed[s0, m]
            end = s0
            s = s0 + direction
            while 0 <= s < n_scans:
                if spectra[s, m] < threshold:
                    break
                if ridge[s, m] < ridge[s, m - 2] or ridge[s, m] < ridge[s, m + 2]:
                    break
                smooth_in = smoothed[s, m]
                if smooth_in > min_in * valley_factor + threshold:
                    break
                if smooth_in < min_in:
                    min_in = smooth_in
                end = s
                s += direction
            if direction < 0:
                first[k] = end
            else:
                last[k] = end
    return first, last


@njit
def _integrate(spectra: np.ndarray, rts: np.ndarray, m: int, first: int, last: int) -> float:
    """Retention-time weighted sum of the elution trace; edge scans weigh 1."""
    n_scans = spectra.shape[0]
    total = 0.0
    for s in range(first, last + 1):
        if 0 < s < n_scans - 1:
            dt = (rts[s + 1] - rts[s - 1]) / 2.0
        else:
            dt = 1.0
        total += spectra[s, m] * dt
    return total


@njit
def filter_correlated(
    scan: np.ndarray,
    scan_first: np.ndarray,
    scan_last: np.ndarray,
    mz: np.ndarray,
    intensity: np.ndarray,
    background: np.ndarray,
    median: np.ndarray,
    min_length: int,
    neighbor_scans: int,
    neighbor_mz: float,
    min_mz_distance: float,
) -> np.ndarray:
    """Keep peaks that co-elute with a peak at a different m/z.

    Peaks are visited longest first. Two peaks confirm each other when their
    apexes lie within ``neighbor_scans`` scans and ``neighbor_mz`` Da but at
    least ``min_mz_distance`` apart in m/z, and each apex lies inside the
    other's ridge. If neither is confirmed yet, their combined length must
    reach ``min_length`` and at least one must rise above its noise floor.

    Returns:
        Boolean keep mask
    """
    n = len(scan)
    keep = np.zeros(n, dtype=np.bool_)
    lengths = scan_last - scan_first + 1
    order = np.argsort(-lengths, kind="mergesort")

    for a in range(n):
        f = order[a]
        for b in range(n):
            g = order[b]
            if f == g:
                continue
            if abs(scan[g] - scan[f]) > neighbor_scans:
                continue
            dmz = abs(mz[g] - mz[f])
            if dmz > neighbor_mz or dmz < min_mz_distance:
                continue
            if scan[f] < scan_first[g] or scan[f] > scan_last[g]:
                continue
            if scan[g] < scan_first[f] or scan[g] > scan_last[f]:
                continue
            if not keep[f] and not keep[g]:
                if lengths[f] + lengths[g] < min_length:
                    continue
                floor_f = 1.0 + 0.5 * background[f] + 3.0 * max(1.0, median[f])
                floor_g = 1.0 + 0.5 * background[g] + 3.0 * max(1.0, median[g])
                if intensity[f] < floor_f and intensity[g] < floor_g:
                    continue
            keep[f] = True
            keep[g] = True
    return keep


# ========== Public API ==========

def wavelet_sharpen(spectra: np.ndarray, level: int = 3) -> np.ndarray:
    """Level ``level`` MODWT detail of every scan along m/z."""
    if spectra.size == 0:
        return np.zeros_like(spectra, dtype=np.float64)
    return wavelet_detail(spectra, level, axis=1)


def extract_wavelet_peaks(
    smoothed: SmoothedMatrix,
    rts: np.ndarray,
    lowpass: LowPass,
    params: PeakParams,
    wavelet_level: int = 3,
) -> List[Peak]:
    """Detect elution ridges in a window.

    Args:
        smoothed: Window with background and median estimates
        rts: Retention time per scan of the window (seconds)
        lowpass: Low-pass applied to the sharpened matrix
        params: PeakParams
        wavelet_level: MODWT detail level used for sharpening

    Returns:
        Peaks with ridge extent, in scan then m/z order
    """
    spectra = smoothed.spectra
    n_scans, n_bins = spectra.shape
    if n_scans < 3 or n_bins < 5:
        return []

    wavelets = wavelet_sharpen(spectra, wavelet_level)
    sharpened = lowpass(wavelets)
    # Seeds live in the wavelet domain, so their neighbours come from the
    # sharpened matrix; the ridge walk then tests them against the noise floor
    seed_scan, seed_bin, _ = find_maxima_2d(sharpened, 0.0)
    if len(seed_scan) == 0:
        return []

    if params.ridge_on_wavelet:
        ridge = wavelets
        offset = params.threshold_offset_wavelet
    else:
        ridge = sharpened
        offset = params.threshold_offset_smoothed

    first, last = _walk_ridges(
        spectra, sharpened, ridge, smoothed.background, smoothed.median,
        seed_scan, seed_bin, params.min_ridge_proportion, offset, params.valley_factor,
    )
    rts = np.asarray(rts, dtype=np.float64)

    peaks = []
    for k in range(len(seed_scan)):
        if last[k] - first[k] + 1 < params.min_peak_scans:
            continue
        s = int(seed_scan[k])
        m = int(seed_bin[k])
        peaks.append(Peak(
            scan=s,
            mz=smoothed.mz_at(m),
            intensity=float(spectra[s, m]),
            background=float(smoothed.background[s, m]),
            median=float(smoothed.median[s, m]),
            score=float(sharpened[s, m]),
            scan_first=int(first[k]),
            scan_last=int(last[k]),
            total_intensity=_integrate(spectra, rts, m, int(first[k]), int(last[k])),
            time=float(rts[s]),
        ))
    logger.debug(f"{len(seed_scan)} ridge seeds, {len(peaks)} ridges long enough")

    if params.filter_correlated and peaks:
        peaks = correlated_peaks(peaks, smoothed.resolution, params)
    return peaks


def correlated_peaks(peaks: List[Peak], resolution: int, params: PeakParams) -> List[Peak]:
    """Drop peaks without a co-eluting partner, see :func:`filter_correlated`."""
    keep = filter_correlated(
        np.array([p.scan for p in peaks], dtype=np.int64),
        np.array([p.scan_first for p in peaks], dtype=np.int64),
        np.array([p.scan_last for p in peaks], dtype=np.int64),
        np.array([p.mz for p in peaks], dtype=np.float64),
        np.array([p.intensity for p in peaks], dtype=np.float64),
        np.array([p.background for p in peaks], dtype=np.float64),
        np.array([p.median for p in peaks], dtype=np.float64),
        params.min_peak_scans + 1,
        params.neighbor_scans,
        params.neighbor_mz,
        params.neighbor_min_bins / resolution,
    )
    return [p for p, k in zip(peaks, keep) if k]
