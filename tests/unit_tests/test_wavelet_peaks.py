"""Tests for ridge-walking peak extraction and the detection strategies.

Tests:
- Wavelet sharpening
- Ridge extent and integration on a synthetic envelope
- Correlated-neighbour filter
- Plain maxima and edge strategies on the same window
"""

import numpy as np
import pytest

from alphafeatures.config import FeatureFinderConfig, PeakParams
from alphafeatures.peaks import (
    detect_gross_peaks,
    detect_maxima_peaks,
    detect_wavelet_peaks,
    filter_correlated,
    wavelet_sharpen,
)
from alphafeatures.smoothing import SmoothedMatrix, get_lowpass, separate_signal
from alphafeatures.spectra import resample_window


def _smoothed_window(run, config):
    matrix = resample_window(run.scans, run.extraction_range(), config.resample)
    return separate_signal(matrix, get_lowpass(config.smoothing), config)


@pytest.fixture
def window(synthetic_run):
    """Synthetic run resampled and separated with the default configuration."""
    config = FeatureFinderConfig()
    return _smoothed_window(synthetic_run, config), synthetic_run.rts, config


class TestWaveletSharpen:
    """Test sharpening along m/z."""

    def test_flat_rows_vanish(self):
        """A constant spectrum has no level 3 detail."""
        out = wavelet_sharpen(np.full((3, 32), 7.0))

        np.testing.assert_allclose(out, 0.0, atol=1e-10)

    def test_empty(self):
        """Empty windows stay empty."""
        assert wavelet_sharpen(np.zeros((0, 32))).shape == (0, 32)


class TestRidgeWalking:
    """Test the default detector on a synthetic charge 2 envelope."""

    def test_one_peak_per_isotope(self, window):
        """Five isotopes give five ridges at the apex scan."""
        smoothed, rts, config = window

        peaks = detect_wavelet_peaks(smoothed, rts, get_lowpass(config.smoothing), config.peaks)

        assert len(peaks) == 5
        assert all(p.scan == 24 for p in peaks)
        mzs = sorted(p.mz for p in peaks)
        np.testing.assert_allclose(np.diff(mzs), 0.5, atol=2.0 / 36)
        assert mzs[0] == pytest.approx(500.0, abs=1.0 / 36)

    def test_ridge_extent(self, window):
        """Ridges extend over the elution profile and integrate over time."""
        smoothed, rts, config = window

        peaks = detect_wavelet_peaks(smoothed, rts, get_lowpass(config.smoothing), config.peaks)
        apex = max(peaks, key=lambda p: p.intensity)

        assert apex.scan_first <= 20
        assert apex.scan_last >= 28
        assert apex.length >= config.peaks.min_peak_scans
        assert apex.total_intensity > apex.intensity
        assert apex.time == 24.0

    def test_min_peak_scans(self, window):
        """Ridges shorter than min_peak_scans are dropped."""
        smoothed, rts, config = window
        params = PeakParams(min_peak_scans=40)

        peaks = detect_wavelet_peaks(smoothed, rts, get_lowpass(config.smoothing), params)

        assert peaks == []

    def test_too_few_scans_warns(self, run_factory):
        """Windows of fewer than three scans warn and give no peaks."""
        config = FeatureFinderConfig()
        run = run_factory(n_scans=2, center=1)
        smoothed = _smoothed_window(run, config)

        with pytest.warns(UserWarning, match="at least 3"):
            peaks = detect_wavelet_peaks(smoothed, run.rts, get_lowpass(config.smoothing),
                                         config.peaks)
        assert peaks == []


class TestFilterCorrelated:
    """Test the correlated-neighbour filter."""

    def _filter(self, scan, first, last, mz, intensity):
        n = len(scan)
        return filter_correlated(
            np.array(scan, dtype=np.int64), np.array(first, dtype=np.int64),
            np.array(last, dtype=np.int64), np.array(mz, dtype=np.float64),
            np.array(intensity, dtype=np.float64), np.zeros(n), np.ones(n),
            6, 5, 1.1, 1.5 / 36,
        )

    def test_coeluting_pair_kept(self):
        """Two co-eluting peaks half a Dalton apart confirm each other; a loner is dropped."""
        keep = self._filter(
            scan=[10, 10, 10], first=[6, 7, 6], last=[14, 13, 14],
            mz=[500.0, 500.5, 520.0], intensity=[100.0, 60.0, 100.0],
        )

        np.testing.assert_array_equal(keep, [True, True, False])

    def test_same_mz_is_not_a_partner(self):
        """Peaks closer than the minimum m/z distance do not count."""
        keep = self._filter(
            scan=[10, 12], first=[6, 8], last=[14, 16],
            mz=[500.0, 500.01], intensity=[100.0, 100.0],
        )

        assert not keep.any()

    def test_weak_short_pair_dropped(self):
        """Unconfirmed partners need enough length and intensity."""
        keep = self._filter(
            scan=[10, 10], first=[10, 10], last=[11, 11],
            mz=[500.0, 500.5], intensity=[100.0, 100.0],
        )
        assert not keep.any()

        keep = self._filter(
            scan=[10, 10], first=[6, 6], last=[14, 14],
            mz=[500.0, 500.5], intensity=[2.0, 2.0],
        )
        assert not keep.any()


class TestOtherStrategies:
    """Test the plain maxima and edge strategies."""

    def _matrix(self, spectra, smoothed):
        zeros = np.zeros_like(spectra)
        return SmoothedMatrix(spectra, smoothed, zeros, zeros.copy(), mz_start=500.0,
                              resolution=36)

    def test_maxima_detector(self, synthetic_run):
        """With a light low-pass the apex scan carries every isotope."""
        config = FeatureFinderConfig().from_dict({"smoothing.lowpass": "smooth_a_little"})
        smoothed = _smoothed_window(synthetic_run, config)

        peaks = detect_maxima_peaks(smoothed, synthetic_run.rts, config.peaks)

        assert len(peaks) == 5
        assert all(p.scan == 24 for p in peaks)
        assert min(p.mz for p in peaks) == pytest.approx(500.0, abs=1.0 / 36)

    def test_maxima_checked_against_unsmoothed_rows(self):
        """A resampled neighbour above the low-passed value rejects the maximum."""
        spectra = np.zeros((3, 12))
        spectra[0, 5] = 9.0
        smoothed = np.zeros((3, 12))
        smoothed[1, 4:7] = [1.0, 5.0, 1.0]

        peaks = detect_maxima_peaks(self._matrix(spectra, smoothed), np.arange(3.0), PeakParams())

        assert peaks == []

    def test_maxima_at_or_above_unsmoothed_rows(self):
        """Resampled neighbours at or below the low-passed value keep the maximum."""
        spectra = np.zeros((3, 12))
        spectra[0, 5] = 5.0
        spectra[1, 5] = 6.0
        smoothed = np.zeros((3, 12))
        smoothed[1, 4:7] = [1.0, 5.0, 1.0]

        peaks = detect_maxima_peaks(self._matrix(spectra, smoothed), np.arange(3.0), PeakParams())

        assert len(peaks) == 1
        assert peaks[0].scan == 1
        assert peaks[0].intensity == 6.0
        assert peaks[0].score == 5.0
        assert peaks[0].mz == pytest.approx(500.0 + 5 / 36)

    def test_maxima_flat_run(self):
        """A constant block gives no maxima at its plateau ends."""
        spectra = np.zeros((5, 60))
        spectra[:, 18:42] = 2.0

        peaks = detect_maxima_peaks(self._matrix(spectra, spectra.copy()), np.arange(5.0),
                                    PeakParams())

        assert peaks == []

    def test_gross_detector(self, window):
        """Edge intersections land near the envelope."""
        smoothed, rts, config = window

        peaks = detect_gross_peaks(smoothed, rts, config.edges)

        assert len(peaks) >= 1
        for peak in peaks:
            assert abs(peak.scan - 24) <= 6
            assert 499.5 <= peak.mz <= 502.5
