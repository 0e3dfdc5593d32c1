"""Composition of the per-window processing steps.

A :class:`FeaturePipeline` is four plain callables. :func:`build_pipeline`
assembles the configured ones; any of them can be replaced, e.g. to plug in
a different detector, without subclassing.
"""

from dataclasses import dataclass
from typing import Callable, List, Tuple

import numpy as np

from alphafeatures.config import FeatureFinderConfig, PeakDetectorType
from alphafeatures.features.clustering import cluster_peaks
from alphafeatures.models import Feature, Peak, ResampledMatrix, Scan
from alphafeatures.peaks.detection import (
    detect_gross_peaks,
    detect_maxima_peaks,
    detect_wavelet_peaks,
)
from alphafeatures.smoothing.lowpass import get_lowpass
from alphafeatures.smoothing.separation import SmoothedMatrix, separate_signal
from alphafeatures.spectra.resampling import resample_window


@dataclass
class FeaturePipeline:
    """Steps applied to every window, in order."""

    resample: Callable[[List[Scan], Tuple[float, float]], ResampledMatrix]
    smooth: Callable[[ResampledMatrix], SmoothedMatrix]
    detect_peaks: Callable[[SmoothedMatrix, List[Scan]], List[Peak]]
    cluster: Callable[[List[Peak]], List[Feature]]


def _rts(scans: List[Scan]) -> np.ndarray:
    return np.array([s.rt for s in scans], dtype=np.float64)


def build_pipeline(config: FeatureFinderConfig) -> FeaturePipeline:
    """Assemble the pipeline selected by ``config``.

    Raises:
        ValueError: Unknown detector type
    """
    lowpass = get_lowpass(config.smoothing)

    def resample(scans, mz_range):
        return resample_window(scans, mz_range, config.resample)

    def smooth(matrix):
        return separate_signal(matrix, lowpass, config)

    detector = config.peaks.detector
    if detector == PeakDetectorType.WAVELET:
        def detect_peaks(smoothed, scans):
            return detect_wavelet_peaks(smoothed, _rts(scans), lowpass, config.peaks,
                                        config.smoothing.wavelet_level)
    elif detector == PeakDetectorType.MAXIMA:
        def detect_peaks(smoothed, scans):
            return detect_maxima_peaks(smoothed, _rts(scans), config.peaks)
    elif detector == PeakDetectorType.EDGES:
        def detect_peaks(smoothed, scans):
            return detect_gross_peaks(smoothed, _rts(scans), config.edges)
    else:
        raise ValueError(f"Unknown peak detector: {detector}")

    def cluster(peaks):
        return cluster_peaks(peaks, config.cluster, config.resample.resolution)

    return FeaturePipeline(resample, smooth, detect_peaks, cluster)
