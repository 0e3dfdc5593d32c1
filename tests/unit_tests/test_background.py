"""Tests for background and local median estimation."""

import numpy as np
import pytest

from alphafeatures.config import BackgroundMethod, BackgroundParams, FeatureFinderConfig
from alphafeatures.models import ResampledMatrix
from alphafeatures.smoothing import (
    estimate_background,
    estimate_local_median,
    get_lowpass,
    separate_signal,
    windowed_median,
    windowed_minimum,
)


@pytest.fixture
def baseline_with_peaks():
    """Flat baseline of 10 with sparse tall peaks, 36 bins per Da."""
    spectra = np.full((20, 36 * 4), 10.0)
    spectra[8:12, 18] = 1000.0
    spectra[8:12, 54] = 800.0
    spectra[5:8, 90:93] = 500.0
    return spectra


@pytest.fixture
def broad_block():
    """Baseline of 10 with a 20-bin by 10-scan block of 1000."""
    spectra = np.full((40, 36 * 4), 10.0)
    spectra[10:20, 60:80] = 1000.0
    return spectra


class TestWindowedStatistics:
    """Test windowed median and minimum."""

    def test_constant(self):
        """A constant is its own median and minimum."""
        x = np.full(100, 4.0)

        np.testing.assert_allclose(windowed_median(x, 10), 4.0)
        np.testing.assert_allclose(windowed_minimum(x, 10), 4.0)

    def test_peak_does_not_lift_floor(self):
        """A narrow peak leaves the windowed median at the baseline."""
        x = np.ones(100)
        x[48:52] = 100.0

        assert windowed_median(x, 20).max() == pytest.approx(1.0)

    def test_minimum_below_median(self):
        """The windowed minimum never exceeds the windowed median."""
        x = np.random.rand(200)

        assert np.all(windowed_minimum(x, 25) <= windowed_median(x, 25) + 1e-12)

    def test_axis(self):
        """2D input is processed along the requested axis."""
        x = np.random.rand(30, 40)

        np.testing.assert_allclose(windowed_median(x, 8, axis=0),
                                   windowed_median(x.T, 8, axis=1).T)

    def test_invalid_window(self):
        """Window must be positive."""
        with pytest.raises(ValueError):
            windowed_median(np.ones(5), 0)


class TestBackground:
    """Test background estimation."""

    def test_quantile_background_ignores_peaks(self, baseline_with_peaks):
        """Peaks are clipped away; the baseline remains."""
        background = estimate_background(baseline_with_peaks, 36, 6, BackgroundParams())

        assert background.shape == baseline_with_peaks.shape
        np.testing.assert_allclose(background, 10.0)

    def test_minima_background(self, baseline_with_peaks):
        """Windowed minima find the baseline too."""
        params = BackgroundParams(method=BackgroundMethod.MINIMA)
        background = estimate_background(baseline_with_peaks, 36, 6, params)

        np.testing.assert_allclose(background, 10.0)

    def test_never_above_signal_on_flat_data(self):
        """On a flat matrix the background equals the signal."""
        spectra = np.full((4, 72), 3.0)

        np.testing.assert_allclose(estimate_background(spectra, 36, 2, BackgroundParams()), 3.0)

    def test_empty(self):
        """Empty matrices give empty estimates."""
        spectra = np.zeros((0, 10))

        assert estimate_background(spectra, 36, 6, BackgroundParams()).shape == (0, 10)
        assert estimate_local_median(spectra, 36).shape == (0, 10)

    def test_local_median(self, baseline_with_peaks):
        """The local median sits at the baseline."""
        median = estimate_local_median(baseline_with_peaks, 36)

        np.testing.assert_allclose(median, 10.0)

    def test_local_median_windows(self, broad_block):
        """Narrow windows let a broad block lift the median; the defaults do not."""
        default = estimate_local_median(broad_block, 36)
        narrow = estimate_local_median(broad_block, 36, window_spectrum=8, window_elution=4)

        np.testing.assert_allclose(default, 10.0)
        assert narrow[15, 70] > 500.0
        assert narrow[15, 10] == pytest.approx(10.0)


class TestSeparateSignal:
    """Test the combined separation step."""

    def test_shapes_and_grid(self, baseline_with_peaks):
        """All matrices share one shape; the grid is carried over."""
        config = FeatureFinderConfig()
        matrix = ResampledMatrix(baseline_with_peaks, mz_start=498.5, resolution=36)

        smoothed = separate_signal(matrix, get_lowpass(config.smoothing), config)

        for array in (smoothed.smoothed, smoothed.background, smoothed.median):
            assert array.shape == baseline_with_peaks.shape
        assert smoothed.spectra is baseline_with_peaks
        assert smoothed.mz_at(54) == pytest.approx(500.0)
        assert smoothed.bin_at(500.0) == 54

    def test_median_windows_from_config(self, broad_block):
        """The configured median windows reach the local median."""
        config = FeatureFinderConfig().from_dict({
            "background.median_window_spectrum": 8,
            "background.median_window_elution": 4,
        })
        matrix = ResampledMatrix(broad_block, mz_start=498.5, resolution=36)

        narrow = separate_signal(matrix, get_lowpass(config.smoothing), config)
        default = separate_signal(matrix, get_lowpass(config.smoothing), FeatureFinderConfig())

        assert narrow.median[15, 70] > 500.0
        assert default.median[15, 70] == pytest.approx(10.0)

    def test_negative_median_window_rejected(self):
        """Median windows cannot be negative."""
        config = FeatureFinderConfig().from_dict({"background.median_window_elution": -1})

        with pytest.raises(ValueError, match="median windows"):
            config.validate()
