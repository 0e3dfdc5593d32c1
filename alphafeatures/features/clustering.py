"""Greedy isotope envelope clustering.

Peaks are visited from the most to the least intense. Each free peak
(the "anchor") is explained by the best envelope that contains it: every
free, not much weaker peak at or below the anchor m/z is tried as the
monoisotopic peak for every charge whose isotope spacing fits the distance
to the anchor. The winner claims all its peaks, which are then unavailable
to later, weaker anchors. A peak no envelope explains becomes a charge 0
singleton.

Ownership of peaks is kept in a :class:`PeakOwnership` table rather than on
the peaks, so a claim can be checked and the unexplained peaks audited.
"""

import logging
from typing import Dict, List, Optional

import numpy as np

from alphafeatures.config import ClusterParams
from alphafeatures.features.scoring import FeatureScorer
from alphafeatures.models import Feature, Peak

logger = logging.getLogger(__name__)


# Survivors rank by 0.1 * peaks - kl
PEAK_COUNT_WEIGHT = 0.1
# Containment pruning always applies to envelopes with this many peaks
FULL_ENVELOPE_PEAKS = 6


class PeakIndex:
    """Peaks sorted by scan with range queries on scan and m/z.

    Results keep scan order, and input order within a scan.
    """

    def __init__(self, peaks: List[Peak]):
        self.peaks = list(peaks)
        scans = np.array([p.scan for p in self.peaks], dtype=np.int64)
        self._order = np.argsort(scans, kind="stable")
        self._scans = scans[self._order]
        self._mz = np.array([p.mz for p in self.peaks], dtype=np.float64)[self._order]

    def __len__(self) -> int:
        return len(self.peaks)

    def query(self, scan_low: int, scan_high: int, mz_low: float, mz_high: float) -> List[Peak]:
        """Peaks with ``scan_low <= scan <= scan_high`` and ``mz_low <= mz <= mz_high``."""
        lo = int(np.searchsorted(self._scans, scan_low, side="left"))
        hi = int(np.searchsorted(self._scans, scan_high, side="right"))
        mz = self._mz[lo:hi]
        selected = self._order[lo:hi][(mz >= mz_low) & (mz <= mz_high)]
        return [self.peaks[i] for i in selected]


class PeakOwnership:
    """Which feature, if any, owns each peak.

    ``owner[i]`` is the id of the feature that claimed peak ``i`` or -1.
    """

    def __init__(self, peaks: List[Peak]):
        self.peaks = list(peaks)
        self._position: Dict[Peak, int] = {p: i for i, p in enumerate(self.peaks)}
        self.owner = np.full(len(self.peaks), -1, dtype=np.int64)

    def _index(self, peak: Peak) -> int:
        try:
            return self._position[peak]
        except KeyError:
            raise KeyError(f"Peak at scan {peak.scan}, m/z {peak.mz:.4f} is not tracked") from None

    def is_free(self, peak: Peak) -> bool:
        return self.owner[self._index(peak)] < 0

    def owner_of(self, peak: Peak) -> int:
        return int(self.owner[self._index(peak)])

    def claim(self, peak: Peak, feature_id: int) -> None:
        """Assign ``peak`` to ``feature_id``; a peak can be claimed only once."""
        idx = self._index(peak)
        assert self.owner[idx] < 0, (
            f"Peak at scan {peak.scan}, m/z {peak.mz:.4f} already owned by "
            f"feature {self.owner[idx]}"
        )
        self.owner[idx] = feature_id

    def unclaimed(self) -> List[Peak]:
        """Peaks no feature explains."""
        return [p for p, o in zip(self.peaks, self.owner) if o < 0]


def distance_nearest_fraction(distance: float, charge: int) -> float:
    """Distance of ``distance`` from the nearest multiple of ``1 / charge``."""
    scaled = distance * charge
    return abs(scaled - round(scaled)) / charge


def determine_best_feature(candidates: List[Feature], kl_cutoff: float) -> Optional[Feature]:
    """Pick the best envelope among the hypotheses for one anchor.

    Hypotheses worse than the best KL by more than ``kl_cutoff`` are dropped.
    A hypothesis whose charge divides another's, and whose monoisotopic peak
    that other envelope already contains, is an alias of the more specific
    fit and is dropped when the other has more peaks (or a full envelope).
    The rest rank by ``0.1 * peaks - kl``; runners-up are linked via ``next``.

    Returns:
        Winning feature, or None without candidates
    """
    if not candidates:
        return None
    min_kl = min(c.kl for c in candidates)
    survivors = [c for c in candidates if c.kl <= min_kl + kl_cutoff]
    if len(survivors) == 1:
        return survivors[0]

    removed = [False] * len(survivors)
    for i, a in enumerate(survivors):
        if removed[i]:
            continue
        for j in range(i + 1, len(survivors)):
            if removed[j]:
                continue
            b = survivors[j]
            if abs(a.charge) % abs(b.charge) != 0:
                continue
            if not a.contains_peak(b.comprised[0]):
                continue
            if a.peaks > b.peaks or a.peaks >= FULL_ENVELOPE_PEAKS:
                removed[j] = True

    remaining = [c for c, r in zip(survivors, removed) if not r]
    remaining.sort(key=lambda c: -(PEAK_COUNT_WEIGHT * c.peaks - c.kl))
    for a, b in zip(remaining, remaining[1:]):
        a.next = b
    return remaining[0]


class IsotopeClusterer:
    """Explain a window's peaks as isotope envelopes.

    Args:
        params: ClusterParams
        resolution: Resampling resolution (bins per Da)

    Examples:
        >>> clusterer = IsotopeClusterer(ClusterParams(), resolution=36)
        >>> features = clusterer.cluster(peaks)
        >>> unexplained = clusterer.ownership.unclaimed()
    """

    def __init__(self, params: ClusterParams, resolution: int):
        self.params = params
        self.resolution = resolution
        self.scorer = FeatureScorer(params, resolution)
        self.max_distance = self.scorer.max_distance
        self.ownership: Optional[PeakOwnership] = None

    def cluster(self, peaks: List[Peak], ownership: Optional[PeakOwnership] = None) -> List[Feature]:
        """Cluster peaks into features, most intense anchors first.

        Args:
            peaks: Peaks of one window
            ownership: Ownership table covering ``peaks``; a new one by default

        Returns:
            Features in creation order; feature ``i`` owns its peaks under id ``i``
        """
        if ownership is None:
            ownership = PeakOwnership(peaks)
        self.ownership = ownership
        if not peaks:
            return []

        index = PeakIndex(peaks)
        order = sorted(range(len(peaks)), key=lambda i: -peaks[i].intensity)

        features: List[Feature] = []
        for i in order:
            anchor = peaks[i]
            if not ownership.is_free(anchor):
                continue
            feature = self.explain(anchor, index, ownership)
            feature_id = len(features)
            for peak in feature.comprised:
                if peak is not None:
                    ownership.claim(peak, feature_id)
            features.append(feature)

        n_singletons = sum(1 for f in features if f.charge == 0)
        logger.debug(
            f"Clustered {len(peaks)} peaks into {len(features)} features "
            f"({n_singletons} singletons)"
        )
        return features

    def neighbourhood(self, anchor: Peak, index: PeakIndex,
                      ownership: PeakOwnership) -> List[Peak]:
        """Free peaks around ``anchor``, sorted by m/z, one per m/z value.

        Of several peaks with the same m/z the one closest in scan to the
        anchor is kept, the most intense on ties.
        """
        p = self.params
        window = index.query(
            anchor.scan - p.window_scans, anchor.scan + p.window_scans,
            anchor.mz - p.window_mz_below, anchor.mz + p.window_mz_above,
        )
        window = [peak for peak in window if ownership.is_free(peak)]
        window.sort(key=lambda peak: -peak.intensity)
        window.sort(key=lambda peak: peak.mz)

        unique: List[Peak] = []
        for peak in window:
            if unique and unique[-1].mz == peak.mz:
                if abs(peak.scan - anchor.scan) < abs(unique[-1].scan - anchor.scan):
                    unique[-1] = peak
                continue
            unique.append(peak)
        return unique

    def explain(self, anchor: Peak, index: PeakIndex, ownership: PeakOwnership) -> Feature:
        """Best envelope containing ``anchor``, or a charge 0 singleton."""
        p = self.params
        window = self.neighbourhood(anchor, index, ownership)
        sign = -1 if p.negative_charge else 1
        fraction_tolerance = 2.0 * self.max_distance

        candidates: List[Feature] = []
        for lead in window:
            if lead.mz > anchor.mz:
                break
            if lead.intensity < anchor.intensity / p.leading_peak_ratio:
                continue
            distance = anchor.mz - lead.mz
            for charge in range(p.max_charge, 0, -1):
                if distance_nearest_fraction(distance, charge) >= fraction_tolerance:
                    continue
                candidate = Feature.from_peak(anchor)
                candidate.mz = lead.mz
                candidate.charge = sign * charge
                self.scorer.score(candidate, window, ownership)
                if candidate.peaks <= 1:
                    continue
                if not candidate.contains_peak(anchor):
                    continue
                candidates.append(candidate)

        best = determine_best_feature(candidates, p.kl_cutoff)
        if best is None:
            best = Feature.from_peak(anchor)
            best.charge = 0
            best.peaks = 1
            best.kl = -1.0
        elif best.peaks == 1:
            best.charge = 0
            best.kl = -1.0

        assert best.comprised and best.comprised[0] is not None, "feature without anchor peak"
        best.total_intensity = anchor.total_intensity
        best.time = anchor.time
        best.update_mass()
        return best


def cluster_peaks(peaks: List[Peak], params: ClusterParams, resolution: int,
                  ownership: Optional[PeakOwnership] = None) -> List[Feature]:
    """Cluster peaks into isotope features, see :class:`IsotopeClusterer`."""
    return IsotopeClusterer(params, resolution).cluster(peaks, ownership)
