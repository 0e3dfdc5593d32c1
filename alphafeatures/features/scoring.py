"""Scoring of isotope envelope hypotheses.

A hypothesis is a candidate monoisotopic m/z and a charge. The scorer walks
the isotope slots ``mz + i / z`` through the m/z-sorted neighbourhood, picks
the closest free peak for each slot, and summarises the match:

- ``mz``: intensity-weighted mean of ``peak.mz - i / z`` over matched slots
- ``kl``: symmetric KL divergence between the observed 6-slot abundance
  vector and the Poisson model at the feature mass
- ``peaks``: number of matched slots clearly above noise
- ``dist``: model-weighted sum of squared m/z and intensity deviations

The walk stops after two consecutive empty slots, and truncates the envelope
when a later peak is much more intense than the previous one, which marks
the start of an overlapping envelope.
"""

from typing import List, Optional

import numpy as np

from alphafeatures.config import ClusterParams
from alphafeatures.constants import (
    ISOTOPE_SLOTS,
    MISSING_SLOT_INTENSITY,
    SUMSQUARES_INTENSITY_WEIGHT,
    SUMSQUARES_MZ_WEIGHT,
)
from alphafeatures.features.isotope_model import (
    convert_mz_to_mass,
    kl_divergence_symmetric,
    poisson_distribution,
)
from alphafeatures.models import Feature, Peak


# Overlap heuristics
SLOT_TOLERANCE_FACTOR = 2.5   # slot tolerance in units of the max peak distance
OVERLAP_RISE_FACTOR = 1.33    # later slot this much above the previous ends the envelope
NOISE_PEAK_FRACTION = 50.0    # well supported slots exceed max / 50


def closest_peak(mzs: np.ndarray, start: int, target: float):
    """Walk forward from ``start`` while the distance to ``target`` shrinks.

    Returns:
        Tuple of (index, distance); index is -1 when ``start`` is past the end
    """
    best = -1
    best_dist = np.inf
    i = start
    while i < len(mzs):
        d = abs(mzs[i] - target)
        if d > best_dist:
            break
        best = i
        best_dist = d
        i += 1
    return best, best_dist


class FeatureScorer:
    """Score envelope hypotheses against a neighbourhood of peaks.

    Args:
        params: ClusterParams
        resolution: Resampling resolution (bins per Da); sets the m/z tolerances
    """

    def __init__(self, params: ClusterParams, resolution: int):
        self.params = params
        self.resolution = resolution
        self.max_distance = params.max_abs_distance_between_peaks / (resolution - 1)
        self.tolerance = SLOT_TOLERANCE_FACTOR * self.max_distance

    def score(self, feature: Feature, neighbourhood: List[Peak], ownership=None) -> Feature:
        """Fill ``feature`` with the envelope found at its m/z and charge.

        Each slot is looked up at its nominal position shifted by a running
        anchor: the mean signed residual ``peak.mz - nominal`` of the peaks
        above half the highest intensity so far. Residuals are measured
        against the nominal slot, not the shifted target, and keep their
        sign, so a drift in either direction is followed and opposite
        deviations cancel. A mean of absolute distances would only ever
        push the target upwards.

        Args:
            feature: Hypothesis; ``mz`` is the candidate monoisotopic m/z
            neighbourhood: Peaks sorted by ascending m/z
            ownership: Optional PeakOwnership; owned peaks never match

        Returns:
            The same feature, updated in place
        """
        z = abs(feature.charge)
        if z == 0:
            raise ValueError("Cannot score a charge 0 hypothesis")
        mz0 = feature.mz
        mzs = np.array([p.mz for p in neighbourhood], dtype=np.float64)
        start = max(0, int(np.searchsorted(mzs, mz0)) - 1)

        comprised: List[Optional[Peak]] = []
        highest = 0.0
        last_intensity = 0.0
        misses = 0
        dist_sum = 0.0
        dist_count = 0
        mean_dist = 0.0
        skipped = False
        prev_idx = -1

        for slot in range(self.params.max_peaks):
            nominal = mz0 + slot / z
            idx, dist = closest_peak(mzs, start, nominal + mean_dist)
            found = idx >= 0 and dist < self.tolerance
            if found and ownership is not None:
                found = ownership.is_free(neighbourhood[idx])
            if not found:
                comprised.append(None)
                misses += 1
                if misses >= 2:
                    break
                continue
            misses = 0

            peak = neighbourhood[idx]
            if peak.intensity > highest:
                highest = peak.intensity
            elif slot > 2 and peak.intensity > last_intensity * OVERLAP_RISE_FACTOR + feature.median:
                break

            if prev_idx >= 0:
                for j in range(prev_idx + 1, idx):
                    if neighbourhood[j].intensity > last_intensity / 2.0 + feature.median:
                        skipped = True

            # Self-correcting anchor: mean residual of the well supported peaks
            if peak.intensity > highest / 2.0:
                dist_sum += peak.mz - nominal
                dist_count += 1
                mean_dist = dist_sum / dist_count

            comprised.append(peak)
            last_intensity = peak.intensity
            prev_idx = idx
            start = idx

        while comprised and comprised[-1] is None:
            comprised.pop()

        feature.comprised = comprised
        feature.skipped_peaks = skipped
        matched = [(i, p) for i, p in enumerate(comprised) if p is not None]
        if not matched or comprised[0] is None:
            feature.peaks = 0
            feature.kl = np.inf
            return feature

        total = sum(p.intensity for _, p in matched)
        if total > 0:
            feature.mz = sum(p.intensity * (p.mz - i / z) for i, p in matched) / total
        else:
            feature.mz = comprised[0].mz
        feature.mz_peak0 = comprised[0].mz

        signal = np.full(ISOTOPE_SLOTS, MISSING_SLOT_INTENSITY, dtype=np.float64)
        for i, p in matched:
            if i < ISOTOPE_SLOTS:
                signal[i] = max(MISSING_SLOT_INTENSITY, p.intensity)
        signal /= signal.sum()

        expected = poisson_distribution(convert_mz_to_mass(feature.mz, feature.charge))
        feature.kl = float(kl_divergence_symmetric(signal, expected))
        feature.peaks = sum(
            1 for _, p in matched
            if p.intensity > highest / NOISE_PEAK_FRACTION and p.intensity > 2.0 * feature.median
        )
        feature.dist = self.sum_squares_distance(feature, signal, expected)
        return feature

    def sum_squares_distance(self, feature: Feature, signal: np.ndarray,
                             expected: np.ndarray) -> float:
        """Model-weighted squared deviation of the envelope in m/z and intensity.

        An m/z deviation of 1/6 Da or a normalised intensity deviation of 1/4
        each contribute as much as a whole missing slot.
        """
        z = abs(feature.charge)
        half_bin = 1.0 / (2.0 * self.resolution)
        last = max(i for i, p in enumerate(feature.comprised) if p is not None)
        total = 0.0
        for i in range(min(last + 1, ISOTOPE_SLOTS)):
            peak = feature.comprised[i]
            d_mz = 0.0
            if peak is not None:
                d_mz = max(0.0, abs(peak.mz - (feature.mz + i / z)) - half_bin)
                d_mz *= SUMSQUARES_MZ_WEIGHT
            d_in = abs(signal[i] - expected[i]) * SUMSQUARES_INTENSITY_WEIGHT
            total += (d_mz * d_mz + d_in * d_in) * expected[i]
        return total
