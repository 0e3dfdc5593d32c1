"""Tests for accurate m/z refinement against raw spectra.

Tests:
- Centroid mode: slot 0 observation with the 5 ppm consistency check
- Profile mode: centre and maximum modes, scan window
- Intensity recalculation and comprised peak adjustment
"""

import numpy as np
import pytest

from alphafeatures.config import AccurateMassParams, ProfileMassMode
from alphafeatures.constants import AVERAGINE_ISOTOPE_SPACING, PROTON_MASS
from alphafeatures.mass import AccurateMassRefiner, ppm_to_da
from alphafeatures.models import Feature, Peak, Run, Scan


RESOLUTION = 36
SLOT1 = 500.0 + AVERAGINE_ISOTOPE_SPACING / 2


def _feature(scan, mzs, charge, intensity=100.0):
    peaks = [None if mz is None else Peak(scan=scan, mz=mz, intensity=intensity) for mz in mzs]
    feature = Feature.from_peak(peaks[0])
    feature.comprised = peaks
    feature.charge = charge
    return feature


def _centroided(points, nums=(10,)):
    mz = np.array([m for m, _ in points])
    intensity = np.array([i for _, i in points])
    return Run([Scan(n, float(n), mz, intensity) for n in nums], centroided=True)


@pytest.fixture
def refiner():
    return AccurateMassRefiner(AccurateMassParams(), RESOLUTION)


class TestPpm:
    def test_ppm_to_da(self):
        assert ppm_to_da(5.0, 500.0) == pytest.approx(0.0025)


class TestCentroidMode:
    """Test refinement on centroided runs."""

    def test_consistent_slots(self, refiner):
        """Consistent isotope peaks give the observed monoisotopic m/z."""
        run = _centroided([(500.0, 100.0), (SLOT1, 80.0)])
        feature = _feature(10, [500.01, SLOT1 + 0.005], 2)

        mz = refiner.accurate_mz(run, feature)

        assert mz == 500.0
        assert feature.comprised[0].mz == 500.0
        assert feature.comprised[1].mz == SLOT1

    def test_inconsistent_slots(self, refiner):
        """Slots further apart than 5 ppm fail."""
        run = _centroided([(500.0, 100.0), (SLOT1 + 0.01, 80.0)])
        feature = _feature(10, [500.0, SLOT1 + 0.01], 2)

        assert refiner.accurate_mz(run, feature) == 0.0

    def test_empty_slot(self, refiner):
        """A slot without raw signal fails."""
        run = _centroided([(500.0, 100.0)])
        feature = _feature(10, [500.0, None], 2)

        assert refiner.accurate_mz(run, feature) == 0.0

    def test_missing_slot_uses_averagine_spacing(self, refiner):
        """An empty comprised slot is looked up at the averagine position."""
        run = _centroided([(500.0, 100.0), (SLOT1, 80.0)])
        feature = _feature(10, [500.0, None], 2)

        assert refiner.accurate_mz(run, feature) == 500.0

    def test_charge_zero(self, refiner):
        """Singletons take the most intense raw peak near their m/z."""
        run = _centroided([(612.295, 10.0), (612.305, 50.0)])
        feature = _feature(10, [612.3], 0)

        assert refiner.accurate_mz(run, feature) == 612.305

    def test_refine_all(self, refiner):
        """Features are sorted by scan and updated on success only."""
        run = _centroided([(500.0, 100.0), (SLOT1, 80.0)], nums=(10, 11, 12))
        late = _feature(12, [500.01, SLOT1], 2)
        early = _feature(10, [500.01, SLOT1], 2)
        failing = _feature(11, [700.0, None], 2)
        features = [late, failing, early]

        refined = refiner.refine_all(run, features)

        assert refined == 2
        assert features == [early, failing, late]
        assert early.accurate_mz and late.accurate_mz
        assert not failing.accurate_mz
        assert early.mz == 500.0
        assert failing.mz == 700.0
        assert early.mass == pytest.approx(2 * (500.0 - PROTON_MASS))


class TestProfileMode:
    """Test refinement on profile runs."""

    def _split_run(self):
        """Three scans with two samples around m/z 500."""
        mz = np.array([499.995, 500.005, 600.0])
        intensity = np.array([100.0, 300.0, 10.0])
        return Run([Scan(n, float(n), mz, intensity) for n in (1, 2, 3)])

    def test_center(self, refiner):
        """The intensity-weighted centre is averaged over the scan window."""
        feature = _feature(2, [500.0], 2)

        mz = refiner.accurate_mz(self._split_run(), feature)

        assert mz == pytest.approx(500.0025)

    def test_max(self):
        """MAX mode takes the m/z of the most intense sample."""
        refiner = AccurateMassRefiner(AccurateMassParams(mode=ProfileMassMode.MAX), RESOLUTION)
        feature = _feature(2, [500.0], 2)

        assert refiner.accurate_mz(self._split_run(), feature) == 500.005

    def test_nothing_in_window(self, refiner):
        """No raw signal near the feature fails."""
        feature = _feature(2, [550.0], 2)

        assert refiner.accurate_mz(self._split_run(), feature) == 0.0

    def test_disabled(self, synthetic_run):
        """scans = 0 switches profile refinement off."""
        refiner = AccurateMassRefiner(AccurateMassParams(scans=0), RESOLUTION)
        feature = _feature(25, [500.01], 2)

        assert not refiner.enabled(synthetic_run)
        assert refiner.refine_all(synthetic_run, [feature]) == 0
        assert feature.mz == 500.01

    @pytest.mark.parametrize("scans, idx, expected", [
        (3, 24, (23, 25)),
        (3, 0, (0, 1)),
        (5, 49, (47, 49)),
        (1, 10, (10, 10)),
        (4, 10, (9, 12)),
    ])
    def test_scan_window(self, synthetic_run, scans, idx, expected):
        """The window is centred on the feature scan and clipped to the run."""
        refiner = AccurateMassRefiner(AccurateMassParams(scans=scans), RESOLUTION)
        feature = _feature(synthetic_run.scans[idx].num, [500.0], 2)

        assert refiner.scan_window(synthetic_run, feature) == expected

    def test_synthetic_envelope(self, refiner, synthetic_run):
        """The grid m/z snaps to the raw monoisotopic m/z."""
        feature = _feature(25, [500.01], 2)

        assert refiner.accurate_mz(synthetic_run, feature) == pytest.approx(500.0)

    def test_recalc_intensity(self, synthetic_run):
        """Intensity becomes the apex sum and total its integral over the window."""
        params = AccurateMassParams(recalc_intensity=True)
        refiner = AccurateMassRefiner(params, RESOLUTION)
        feature = _feature(25, [500.01], 2)

        refiner.profile_mz(synthetic_run, feature)

        apex = synthetic_run.scans[24].intensity[0]
        window = sum(synthetic_run.scans[i].intensity[0] for i in (23, 24, 25))
        assert feature.intensity == pytest.approx(apex)
        assert feature.total_intensity == pytest.approx(window)

    def test_adjust_comprised(self, synthetic_run):
        """Comprised peaks are moved to their raw m/z."""
        params = AccurateMassParams(adjust_comprised=True)
        refiner = AccurateMassRefiner(params, RESOLUTION)
        feature = _feature(25, [500.01, 500.51, None], 2)

        mz = refiner.profile_mz(synthetic_run, feature)

        assert mz == pytest.approx(500.0)
        assert feature.comprised[0].mz == pytest.approx(500.0)
        assert feature.comprised[1].mz == pytest.approx(500.0 + 1.0033548 / 2)
        assert feature.comprised[2] is None
