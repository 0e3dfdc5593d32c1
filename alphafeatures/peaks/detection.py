"""Peak detection strategies.

Each strategy turns a :class:`SmoothedMatrix` into a list of :class:`Peak`
objects with background and local median attached. The pipeline picks one
through :class:`alphafeatures.config.PeakDetectorType`.
"""

import logging
import warnings
from typing import List

import numpy as np

from alphafeatures.config import EdgeParams, PeakParams
from alphafeatures.models import Peak
from alphafeatures.peaks.edges import detect_edges
from alphafeatures.peaks.maxima import find_maxima_2d
from alphafeatures.peaks.wavelet_peaks import extract_wavelet_peaks
from alphafeatures.smoothing.lowpass import LowPass
from alphafeatures.smoothing.separation import SmoothedMatrix

logger = logging.getLogger(__name__)


def _too_short(smoothed: SmoothedMatrix) -> bool:
    if smoothed.spectra.shape[0] < 3:
        warnings.warn(
            f"Window has {smoothed.spectra.shape[0]} scans; at least 3 are needed "
            "for 2D maxima detection"
        )
        return True
    return False


def _points_to_peaks(smoothed: SmoothedMatrix, rts: np.ndarray, scan_idx: np.ndarray,
                     bin_idx: np.ndarray, intensity: np.ndarray, score: np.ndarray) -> List[Peak]:
    peaks = []
    for s, m, value, sc in zip(scan_idx, bin_idx, intensity, score):
        s = int(s)
        m = int(m)
        peaks.append(Peak(
            scan=s,
            mz=smoothed.mz_at(m),
            intensity=float(value),
            background=float(smoothed.background[s, m]),
            median=float(smoothed.median[s, m]),
            score=float(sc),
            total_intensity=float(value),
            time=float(rts[s]),
        ))
    return peaks


def detect_wavelet_peaks(smoothed: SmoothedMatrix, rts: np.ndarray, lowpass: LowPass,
                         params: PeakParams, wavelet_level: int = 3) -> List[Peak]:
    """Ridge-walking detector on the wavelet-sharpened window (default)."""
    if _too_short(smoothed):
        return []
    return extract_wavelet_peaks(smoothed, rts, lowpass, params, wavelet_level)


def detect_maxima_peaks(smoothed: SmoothedMatrix, rts: np.ndarray,
                        params: PeakParams) -> List[Peak]:
    """2D maxima of the low-passed window.

    Candidates are 1D peaks of the low-passed rows; the low-passed value at
    scan ``s`` must not be exceeded by the resampled (unsmoothed) values of
    scans ``s - 1`` and ``s + 1``. A strong low-pass therefore suits this
    detector poorly. Peak intensity is the resampled value at the maximum;
    the low-passed value becomes the score.
    """
    if _too_short(smoothed):
        return []
    scan_idx, bin_idx, score = find_maxima_2d(smoothed.smoothed, params.min_intensity,
                                              neighbors=smoothed.spectra)
    intensity = smoothed.spectra[scan_idx, bin_idx]
    return _points_to_peaks(smoothed, np.asarray(rts), scan_idx, bin_idx, intensity, score)


def detect_gross_peaks(smoothed: SmoothedMatrix, rts: np.ndarray,
                       params: EdgeParams) -> List[Peak]:
    """Edge intersections; fast but coarse."""
    if smoothed.spectra.size == 0:
        return []
    edges = detect_edges(smoothed.spectra, params)
    logger.debug(f"Edge detector found {len(edges.scan_idx)} gross features")
    return _points_to_peaks(smoothed, np.asarray(rts), edges.scan_idx, edges.bin_idx,
                            edges.intensity, edges.score)
