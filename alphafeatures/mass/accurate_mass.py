"""Accurate m/z refinement against the raw spectra.

Features carry the m/z of a resampled bin, which is only as precise as the
grid (1/36 Da by default). This module goes back to the raw scans:

- Centroided runs: the most intense raw peak near each of the first isotope
  slots of the feature scan, checked for consistency (5 ppm) and reported as
  the observed monoisotopic m/z
- Profile runs: the intensity-weighted centre (or the m/z at maximum
  intensity) within a fraction of a bin, averaged over a few scans around the
  feature scan

A refinement that fails leaves the feature untouched.
"""

import logging
from typing import List, Optional, Tuple

import numpy as np

from alphafeatures.config import AccurateMassParams, ProfileMassMode
from alphafeatures.features.isotope_model import convert_mz_to_mass
from alphafeatures.models import Feature, Run, Scan

logger = logging.getLogger(__name__)


def _slice(scan: Scan, mz_low: float, mz_high: float) -> Tuple[np.ndarray, np.ndarray]:
    """Raw points with ``mz_low <= mz <= mz_high``."""
    lo = int(np.searchsorted(scan.mz, mz_low, side="left"))
    hi = int(np.searchsorted(scan.mz, mz_high, side="right"))
    return scan.mz[lo:hi], scan.intensity[lo:hi]


def ppm_to_da(ppm: float, mass: float) -> float:
    return mass * ppm / 1e6


class AccurateMassRefiner:
    """Recompute feature m/z values from raw spectra.

    Args:
        params: AccurateMassParams
        resolution: Resampling resolution (bins per Da); search windows are
            fractions of one bin
    """

    def __init__(self, params: AccurateMassParams, resolution: int):
        self.params = params
        self.resolution = resolution

    def enabled(self, run: Run) -> bool:
        return self.params.scans > 0 or run.centroided

    def refine_all(self, run: Run, features: List[Feature]) -> int:
        """Refine every feature in place.

        Features are sorted by scan first. On success a feature gets the new
        ``mz``, ``accurate_mz = True`` and a recomputed mass.

        Returns:
            Number of refined features
        """
        if not self.enabled(run):
            return 0
        features.sort(key=lambda f: f.scan)

        refined = 0
        for feature in features:
            mz = self.accurate_mz(run, feature)
            if mz > 0:
                feature.mz = mz
                feature.accurate_mz = True
                feature.update_mass()
                refined += 1

        mode = "centroid" if run.centroided else f"profile/{self.params.mode.value}"
        logger.info(f"Accurate mass ({mode}): refined {refined:,} of {len(features):,} features")
        if features and refined == 0:
            logger.warning("No feature could be refined against the raw spectra")
        return refined

    def accurate_mz(self, run: Run, feature: Feature) -> float:
        """Accurate m/z of ``feature``, or 0.0 if none can be determined."""
        if run.centroided:
            return self.centroid_mz(run, feature)
        return self.profile_mz(run, feature)

    # ========================================================================
    # Centroided data
    # ========================================================================

    def centroid_mz(self, run: Run, feature: Feature) -> float:
        """Observed monoisotopic m/z in the feature scan.

        For each of the first ``centroid_slots`` isotope slots the most
        intense raw peak within ``0.66 / resolution`` of the slot m/z is
        taken. Their intensity-weighted mean, shifted back to slot 0, must
        agree with the slot 0 observation within ``centroid_max_ppm``.

        Returns:
            Slot 0 raw m/z, or 0.0 if a slot is empty or the check fails
        """
        p = self.params
        scan = run.scans[run.index_for_scan_num(feature.scan)]
        delta = p.centroid_window_proportion / self.resolution
        charge = abs(feature.charge)
        n_slots = min(p.centroid_slots, max(1, len(feature.comprised)))

        mz_p0 = 0.0
        observed = np.zeros(n_slots)
        weights = np.zeros(n_slots)
        for i in range(n_slots):
            peak = feature.comprised[i] if i < len(feature.comprised) else None
            if peak is not None:
                mz_slot = peak.mz
            elif charge > 0:
                mz_slot = feature.mz + i * p.isotope_spacing / charge
            else:
                return 0.0

            mz, intensity = _slice(scan, mz_slot - delta, mz_slot + delta)
            if len(mz) == 0 or intensity.max() <= 0:
                return 0.0
            best = int(np.argmax(intensity))
            if charge == 0:
                return float(mz[best])
            if i == 0:
                mz_p0 = float(mz[best])
            observed[i] = mz[best]
            weights[i] = intensity[best]

        shifted = observed - np.arange(n_slots) * p.isotope_spacing / charge
        mean_mz = float(np.sum(shifted * weights) / np.sum(weights))

        for i in range(n_slots):
            if feature.comprised[i] is not None:
                feature.comprised[i].mz = float(observed[i])

        if abs(mean_mz - mz_p0) > ppm_to_da(p.centroid_max_ppm, mz_p0):
            return 0.0
        return mz_p0

    # ========================================================================
    # Profile data
    # ========================================================================

    def scan_window(self, run: Run, feature: Feature) -> Tuple[int, int]:
        """First and last scan index averaged for ``feature``."""
        idx = run.index_for_scan_num(feature.scan)
        half = (self.params.scans - 1) / 2.0
        low = int(max(idx - half + 0.5, 0))
        high = int(min(idx + half + 0.5, len(run) - 1))
        return low, high

    def profile_mz(self, run: Run, feature: Feature) -> float:
        """Profile mode m/z averaged over ``params.scans`` scans.

        With ``recalc_intensity`` the feature intensity becomes the largest
        per-scan sum within ``intensity_ppm`` of the new m/z and the total
        intensity its time-integrated sum. With ``adjust_comprised`` the
        comprised peaks are refined too; failures there are ignored.

        Returns:
            New m/z, or 0.0 if no scan contributes
        """
        if self.params.scans <= 0:
            return 0.0
        low, high = self.scan_window(run, feature)
        mz, intensities = self._profile_multi_scan(run, feature.mz, feature.charge, low, high)
        if self.params.recalc_intensity and mz > 0:
            feature.intensity, feature.total_intensity = intensities

        if self.params.adjust_comprised:
            for i, peak in enumerate(feature.comprised):
                if peak is None:
                    continue
                if i == 0:
                    if mz > 0:
                        peak.mz = mz
                    continue
                peak_mz, peak_intensities = self._profile_multi_scan(
                    run, peak.mz, feature.charge, low, high
                )
                if peak_mz > 0:
                    peak.mz = peak_mz
                    if self.params.recalc_intensity:
                        peak.intensity = peak_intensities[0]
        return mz

    def _profile_scan(self, scan: Scan, mz: float) -> Tuple[float, float]:
        """(m/z, intensity) of one scan near ``mz``; m/z 0.0 when empty."""
        delta = self.params.profile_window_proportion / self.resolution
        mzs, intensity = _slice(scan, mz - delta, mz + delta)
        if self.params.mode == ProfileMassMode.CENTER:
            total = float(np.sum(intensity))
            if total <= 0.0:
                return 0.0, 0.0
            return float(np.sum(mzs * intensity) / total), total
        if len(mzs) == 0 or intensity.max() <= 0:
            return 0.0, 0.0
        best = int(np.argmax(intensity))
        return float(mzs[best]), float(intensity[best])

    def _profile_multi_scan(
        self, run: Run, mz: float, charge: int, low: int, high: int
    ) -> Tuple[float, Optional[Tuple[float, float]]]:
        values = []
        max_intensity = 0.0
        mz_at_max = 0.0
        for s in range(low, high + 1):
            scan_mz, scan_intensity = self._profile_scan(run.scans[s], mz)
            if scan_mz > 0.0:
                values.append(scan_mz)
                if scan_intensity > max_intensity:
                    max_intensity = scan_intensity
                    mz_at_max = scan_mz

        if not values:
            return 0.0, None
        if self.params.mode == ProfileMassMode.CENTER:
            acc_mz = float(np.mean(values))
        else:
            acc_mz = mz_at_max

        if not self.params.recalc_intensity:
            return acc_mz, None
        intensities = self._recalc_intensity(run, mz, charge, acc_mz, low, high)
        if intensities is None:
            return 0.0, None
        return acc_mz, intensities

    def _recalc_intensity(
        self, run: Run, mz: float, charge: int, acc_mz: float, low: int, high: int
    ) -> Optional[Tuple[float, float]]:
        """Max and time-integrated intensity within ``intensity_ppm`` of ``acc_mz``.

        Charge 0 is treated as charge 1. Returns None when no scan has
        intensity in range, which invalidates the accurate m/z.
        """
        mass = convert_mz_to_mass(mz, max(abs(charge), 1))
        delta = ppm_to_da(self.params.intensity_ppm, mass)
        rts = run.rts
        max_intensity = 0.0
        total = 0.0
        for s in range(low, high + 1):
            _, intensity = _slice(run.scans[s], acc_mz - delta, acc_mz + delta)
            scan_intensity = float(np.sum(intensity))
            max_intensity = max(max_intensity, scan_intensity)
            if scan_intensity > 0:
                dt = 1.0
                if 0 < s < len(run) - 1:
                    dt = (rts[s + 1] - rts[s - 1]) / 2.0
                total += dt * scan_intensity
        if max_intensity == 0:
            return None
        return max_intensity, total
