"""Data model for LC-MS feature detection.

A :class:`Run` is an ordered list of :class:`Scan` objects. Each window of a
run is resampled into a :class:`ResampledMatrix` (scans x m/z bins), in which
2D :class:`Peak` objects are detected and clustered into isotope
:class:`Feature` objects, collected in a :class:`FeatureSet`.

Scan indexes inside a window are local; the run driver translates them to
scan numbers before features leave the pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

import numpy as np

from alphafeatures.constants import (
    DEFAULT_SELECTOR_MAX_KL,
    DEFAULT_SELECTOR_MIN_PEAKS,
    PROTON_MASS,
)


@dataclass(frozen=True, eq=False)
class Scan:
    """One MS1 spectrum.

    Attributes:
        num: External scan number
        rt: Retention time (seconds)
        mz: m/z values, ascending
        intensity: Intensities, same length as ``mz``
    """

    num: int
    rt: float
    mz: np.ndarray
    intensity: np.ndarray

    def __post_init__(self):
        mz = np.array(self.mz, dtype=np.float64)
        intensity = np.array(self.intensity, dtype=np.float64)
        if mz.ndim != 1 or intensity.ndim != 1:
            raise ValueError(f"Scan {self.num}: m/z and intensity must be 1D arrays")
        if len(mz) != len(intensity):
            raise ValueError(
                f"Scan {self.num}: {len(mz)} m/z values but {len(intensity)} intensities"
            )
        if len(mz) > 1 and np.any(np.diff(mz) < 0):
            raise ValueError(f"Scan {self.num}: m/z values must be sorted ascending")
        mz.flags.writeable = False
        intensity.flags.writeable = False
        object.__setattr__(self, "mz", mz)
        object.__setattr__(self, "intensity", intensity)

    def __len__(self) -> int:
        return len(self.mz)


@dataclass
class Run:
    """An LC-MS run: scans ordered by scan number."""

    scans: List[Scan]
    centroided: bool = False

    def __post_init__(self):
        self.scans = list(self.scans)
        if not self.scans:
            raise ValueError("Run contains no scans")
        nums = np.array([s.num for s in self.scans], dtype=np.int64)
        if len(nums) > 1 and np.any(np.diff(nums) <= 0):
            raise ValueError("Scan numbers must be strictly increasing")
        self._nums = nums

    def __len__(self) -> int:
        return len(self.scans)

    @property
    def scan_nums(self) -> np.ndarray:
        return self._nums

    @property
    def rts(self) -> np.ndarray:
        return np.array([s.rt for s in self.scans], dtype=np.float64)

    def index_for_scan_num(self, num: int) -> int:
        """Index of the scan with number ``num``.

        Raises:
            KeyError: If no scan carries that number
        """
        idx = int(np.searchsorted(self._nums, num))
        if idx >= len(self._nums) or self._nums[idx] != num:
            raise KeyError(f"Scan number {num} not in run")
        return idx

    def mz_range(self) -> Tuple[float, float]:
        """Lowest and highest m/z over all scans, (0, 0) for an empty run."""
        lows = [s.mz[0] for s in self.scans if len(s)]
        highs = [s.mz[-1] for s in self.scans if len(s)]
        if not lows:
            return 0.0, 0.0
        return float(min(lows)), float(max(highs))

    def extraction_range(self) -> Tuple[float, float]:
        """m/z range used for resampling: whole Daltons, one Da of slack."""
        low, high = self.mz_range()
        return float(np.floor(low) - 1.0), float(np.ceil(high) + 1.0)


@dataclass
class ResampledMatrix:
    """Intensities on a uniform m/z grid, one row per scan."""

    spectra: np.ndarray
    mz_start: float
    resolution: int
    zero_order: Optional[np.ndarray] = None

    @property
    def n_scans(self) -> int:
        return self.spectra.shape[0]

    @property
    def n_bins(self) -> int:
        return self.spectra.shape[1]

    @property
    def interval(self) -> float:
        return 1.0 / self.resolution

    def mz_at(self, bin_idx) -> float:
        return self.mz_start + bin_idx / self.resolution

    def bin_at(self, mz: float) -> int:
        return int(round((mz - self.mz_start) * self.resolution))


@dataclass(eq=False)
class Peak:
    """A local maximum on the (scan, m/z) surface.

    Peaks compare and hash by identity; ownership by features is tracked in
    a separate table, not on the peak.
    """

    scan: int
    mz: float
    intensity: float
    background: float = 0.0
    median: float = 0.0
    score: float = 0.0

    # Ridge extent (ridge-walking detector only)
    scan_first: int = -1
    scan_last: int = -1
    total_intensity: float = 0.0
    time: float = 0.0

    def __post_init__(self):
        if self.scan_first < 0:
            self.scan_first = self.scan
        if self.scan_last < 0:
            self.scan_last = self.scan

    @property
    def length(self) -> int:
        return self.scan_last - self.scan_first + 1


@dataclass(eq=False)
class Feature:
    """An isotope envelope: a group of peaks sharing elution and charge.

    ``comprised`` holds one entry per isotope slot (``None`` for a slot without
    a peak); ``comprised[0]`` is the monoisotopic peak. ``charge == 0`` marks a
    singleton for which no envelope was found, with ``kl == -1``.
    """

    scan: int
    mz: float
    intensity: float
    charge: int = 0
    kl: float = -1.0
    peaks: int = 1
    comprised: List[Optional[Peak]] = field(default_factory=list)
    scan_first: int = 0
    scan_last: int = 0
    total_intensity: float = 0.0
    background: float = 0.0
    median: float = 0.0
    dist: float = 0.0
    skipped_peaks: bool = False
    mz_peak0: float = 0.0
    mass: float = 0.0
    time: float = 0.0
    accurate_mz: bool = False
    next: Optional['Feature'] = None
    intensity_window: Optional[np.ndarray] = None

    @classmethod
    def from_peak(cls, peak: Peak) -> 'Feature':
        """Start a feature from its anchor peak."""
        return cls(
            scan=peak.scan,
            mz=peak.mz,
            intensity=peak.intensity,
            comprised=[peak],
            scan_first=peak.scan_first,
            scan_last=peak.scan_last,
            total_intensity=peak.total_intensity,
            background=peak.background,
            median=peak.median,
            mz_peak0=peak.mz,
            time=peak.time,
        )

    @property
    def scan_count(self) -> int:
        return self.scan_last - self.scan_first + 1

    def update_mass(self) -> None:
        """Recompute the neutral mass from ``mz`` and ``charge``."""
        if self.charge > 0:
            self.mass = max(0.0, (self.mz - PROTON_MASS) * self.charge)
        elif self.charge == 0:
            self.mass = 0.0
        else:
            self.mass = max(0.0, (self.mz + PROTON_MASS) * -self.charge)

    def contains_peak(self, peak: Peak) -> bool:
        return any(p is peak for p in self.comprised)


@dataclass
class FeatureSelector:
    """Post-hoc feature filter.

    Defaults follow common practice for peptide data (at least two isotope
    peaks, KL divergence at most 3). ``None`` disables a bound.
    """

    min_peaks: int = DEFAULT_SELECTOR_MIN_PEAKS
    max_kl: float = DEFAULT_SELECTOR_MAX_KL
    min_intensity: float = 0.0
    min_charge: Optional[int] = None
    max_charge: Optional[int] = None
    min_mz: Optional[float] = None
    max_mz: Optional[float] = None
    min_scans: Optional[int] = None

    def accepts(self, feature: Feature) -> bool:
        if feature.peaks < self.min_peaks:
            return False
        if feature.kl > self.max_kl:
            return False
        if feature.intensity < self.min_intensity:
            return False
        if self.min_charge is not None and feature.charge < self.min_charge:
            return False
        if self.max_charge is not None and feature.charge > self.max_charge:
            return False
        if self.min_mz is not None and feature.mz < self.min_mz:
            return False
        if self.max_mz is not None and feature.mz > self.max_mz:
            return False
        if self.min_scans is not None and feature.scan_count < self.min_scans:
            return False
        return True


@dataclass
class FeatureSet:
    """Features of one run plus provenance properties."""

    features: List[Feature] = field(default_factory=list)
    properties: Dict[str, Any] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.features)

    def __iter__(self) -> Iterator[Feature]:
        return iter(self.features)

    def __getitem__(self, idx: int) -> Feature:
        return self.features[idx]

    def sort_by_intensity(self) -> None:
        """Sort in place, most intense first (stable)."""
        self.features.sort(key=lambda f: -f.intensity)

    def filter(self, selector: FeatureSelector) -> 'FeatureSet':
        """New FeatureSet with the features ``selector`` accepts."""
        kept = [f for f in self.features if selector.accepts(f)]
        return FeatureSet(kept, dict(self.properties))
