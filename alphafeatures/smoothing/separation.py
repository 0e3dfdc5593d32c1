"""Split a resampled window into signal, background and noise estimates."""

from dataclasses import dataclass

import numpy as np

from alphafeatures.config import FeatureFinderConfig
from alphafeatures.models import ResampledMatrix
from alphafeatures.smoothing.background import estimate_background, estimate_local_median
from alphafeatures.smoothing.lowpass import LowPass


@dataclass
class SmoothedMatrix:
    """A resampled window with its low-passed copy and noise estimates.

    All four matrices share the shape (scans x bins).
    """

    spectra: np.ndarray
    smoothed: np.ndarray
    background: np.ndarray
    median: np.ndarray
    mz_start: float
    resolution: int

    def mz_at(self, bin_idx) -> float:
        return self.mz_start + bin_idx / self.resolution

    def bin_at(self, mz: float) -> int:
        return int(round((mz - self.mz_start) * self.resolution))


def separate_signal(
    matrix: ResampledMatrix,
    lowpass: LowPass,
    config: FeatureFinderConfig,
) -> SmoothedMatrix:
    """Low-pass the window and estimate its background and local median.

    Args:
        matrix: Resampled window
        lowpass: Low-pass filter, see :func:`alphafeatures.smoothing.get_lowpass`
        config: Feature finder configuration

    Returns:
        SmoothedMatrix; ``matrix.spectra`` is not modified
    """
    spectra = matrix.spectra
    smoothed = lowpass(spectra)
    background = estimate_background(
        spectra, matrix.resolution, config.cluster.max_charge, config.background
    )
    median = estimate_local_median(
        spectra, matrix.resolution,
        config.background.median_window_spectrum, config.background.median_window_elution,
    )
    assert smoothed.shape == spectra.shape, "low-pass changed the matrix shape"
    assert background.shape == spectra.shape, "background shape mismatch"
    assert median.shape == spectra.shape, "median shape mismatch"
    return SmoothedMatrix(spectra, smoothed, background, median,
                          matrix.mz_start, matrix.resolution)
