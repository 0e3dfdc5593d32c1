"""Tests for greedy isotope clustering.

Tests:
- Spatial peak index and ownership table
- Best-feature selection among hypotheses
- Envelope recovery, singletons and exclusive peak ownership
"""

import pytest

from alphafeatures.config import ClusterParams
from alphafeatures.constants import PROTON_MASS
from alphafeatures.features import (
    IsotopeClusterer,
    PeakIndex,
    PeakOwnership,
    cluster_peaks,
    determine_best_feature,
    distance_nearest_fraction,
)
from alphafeatures.models import Feature, Peak


MZ0 = 500.0 + PROTON_MASS


def _feature(comprised, charge, peaks, kl):
    feature = Feature.from_peak(comprised[0])
    feature.comprised = list(comprised)
    feature.charge = charge
    feature.peaks = peaks
    feature.kl = kl
    return feature


class TestPeakIndex:
    """Test range queries."""

    def test_query(self):
        """Results are in scan order, input order within a scan."""
        peaks = [
            Peak(scan=3, mz=500.0, intensity=1.0),
            Peak(scan=1, mz=501.0, intensity=1.0),
            Peak(scan=2, mz=502.0, intensity=1.0),
            Peak(scan=1, mz=499.0, intensity=1.0),
            Peak(scan=2, mz=510.0, intensity=1.0),
        ]
        index = PeakIndex(peaks)

        found = index.query(1, 2, 495.0, 505.0)

        assert found == [peaks[1], peaks[3], peaks[2]]
        assert len(index) == 5

    def test_bounds_inclusive(self):
        """Both scan and m/z bounds are inclusive."""
        peaks = [Peak(scan=5, mz=500.0, intensity=1.0)]

        assert PeakIndex(peaks).query(5, 5, 500.0, 500.0) == peaks
        assert PeakIndex(peaks).query(6, 9, 0.0, 1000.0) == []


class TestPeakOwnership:
    """Test the ownership table."""

    def test_claim(self):
        """Claimed peaks are no longer free."""
        peaks = [Peak(scan=1, mz=500.0, intensity=1.0), Peak(scan=1, mz=501.0, intensity=1.0)]
        ownership = PeakOwnership(peaks)

        ownership.claim(peaks[0], 4)

        assert not ownership.is_free(peaks[0])
        assert ownership.owner_of(peaks[0]) == 4
        assert ownership.owner_of(peaks[1]) == -1
        assert ownership.unclaimed() == [peaks[1]]

    def test_double_claim_fails(self):
        """A peak cannot belong to two features."""
        peak = Peak(scan=1, mz=500.0, intensity=1.0)
        ownership = PeakOwnership([peak])
        ownership.claim(peak, 0)

        with pytest.raises(AssertionError, match="already owned"):
            ownership.claim(peak, 1)

    def test_untracked_peak(self):
        """Peaks outside the table are reported."""
        ownership = PeakOwnership([Peak(scan=1, mz=500.0, intensity=1.0)])

        with pytest.raises(KeyError, match="not tracked"):
            ownership.is_free(Peak(scan=1, mz=500.0, intensity=1.0))


class TestDistanceNearestFraction:
    """Test the charge compatibility of a distance."""

    def test_exact_multiple(self):
        assert distance_nearest_fraction(1.0, 2) == 0.0
        assert distance_nearest_fraction(2.0 / 3.0, 3) == pytest.approx(0.0)

    def test_offset(self):
        assert distance_nearest_fraction(0.35, 3) == pytest.approx(0.05 / 3)
        assert distance_nearest_fraction(0.26, 2) == pytest.approx(0.24)


class TestDetermineBestFeature:
    """Test hypothesis selection."""

    @pytest.fixture
    def peaks(self):
        return [Peak(scan=1, mz=500.0 + i * 0.25, intensity=100.0 - i) for i in range(8)]

    def test_no_candidates(self):
        """Nothing to pick from."""
        assert determine_best_feature([], 0.5) is None

    def test_kl_cutoff(self, peaks):
        """Hypotheses far worse than the best KL are dropped despite more peaks."""
        good = _feature(peaks[:3], 4, 3, 0.1)
        poor = _feature(peaks[:6], 4, 6, 0.9)

        assert determine_best_feature([good, poor], 0.5) is good

    def test_containment_removes_alias(self, peaks):
        """A lower charge whose envelope is contained in a richer one is an alias."""
        high = _feature(peaks[:4], 4, 4, 0.2)
        low = _feature([peaks[0], peaks[2]], 2, 3, 0.1)

        best = determine_best_feature([high, low], 0.5)

        assert best is high
        assert best.next is None

    def test_ranking_links_runners_up(self, peaks):
        """Survivors rank by 0.1 * peaks - kl and chain through next."""
        a = _feature(peaks[:5], 3, 5, 0.3)
        b = _feature(peaks[5:7], 2, 2, 0.05)

        best = determine_best_feature([b, a], 0.5)

        assert best is a
        assert a.next is b


class TestIsotopeClusterer:
    """Test clustering of peak lists."""

    def test_perfect_envelope(self, envelope_peaks):
        """An ideal charge 3 envelope becomes one feature owning all its peaks."""
        peaks = envelope_peaks(MZ0, 3)
        clusterer = IsotopeClusterer(ClusterParams(), resolution=36)

        features = clusterer.cluster(peaks)

        assert len(features) == 1
        feature = features[0]
        assert feature.charge == 3
        assert feature.peaks >= 4
        assert feature.mz == pytest.approx(MZ0, abs=0.005)
        assert feature.mass == pytest.approx(1500.0, abs=0.02)
        assert clusterer.ownership.unclaimed() == []

    def test_negative_mode(self, envelope_peaks):
        """Negative mode reports negative charges."""
        peaks = envelope_peaks(MZ0, 3)

        features = cluster_peaks(peaks, ClusterParams(negative_charge=True), 36)

        assert features[0].charge == -3

    def test_singleton(self):
        """A lone peak becomes a charge 0 feature."""
        peak = Peak(scan=5, mz=612.3, intensity=1000.0, total_intensity=5000.0, time=12.5)

        features = cluster_peaks([peak], ClusterParams(), 36)

        assert len(features) == 1
        feature = features[0]
        assert feature.charge == 0
        assert feature.kl == -1.0
        assert feature.peaks == 1
        assert feature.comprised == [peak]
        assert feature.mass == 0.0
        assert feature.total_intensity == 5000.0
        assert feature.time == 12.5

    def test_empty(self):
        """No peaks, no features."""
        assert cluster_peaks([], ClusterParams(), 36) == []

    def test_exclusive_ownership(self, envelope_peaks):
        """Overlapping envelopes never share a peak and every peak is owned."""
        peaks = envelope_peaks(MZ0, 3) + envelope_peaks(501.1, 2, amplitude=4e5, scan=11)
        clusterer = IsotopeClusterer(ClusterParams(), resolution=36)

        features = clusterer.cluster(peaks)

        seen = set()
        for feature_id, feature in enumerate(features):
            for peak in feature.comprised:
                if peak is None:
                    continue
                assert id(peak) not in seen
                seen.add(id(peak))
                assert clusterer.ownership.owner_of(peak) == feature_id
        assert len(seen) == len(peaks)
        assert clusterer.ownership.unclaimed() == []

    def test_deterministic(self, envelope_peaks):
        """The same input gives the same features."""
        def run():
            peaks = envelope_peaks(MZ0, 3) + envelope_peaks(501.1, 2, amplitude=4e5, scan=11)
            return [(f.charge, f.mz, f.peaks, len(f.comprised))
                    for f in cluster_peaks(peaks, ClusterParams(), 36)]

        assert run() == run()
