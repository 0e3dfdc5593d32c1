"""Configuration for the feature finder.

Every tunable value of the pipeline lives in one of the parameter dataclasses
below. They are composed into a single :class:`FeatureFinderConfig` which is
built once and handed explicitly to each component; no algorithm reads
module-level state.

Examples
--------
>>> from alphafeatures.config import FeatureFinderConfig, SampleType
>>> config = FeatureFinderConfig.for_sample(SampleType.PEPTIDE)
>>> config = config.from_dict({"window.width": 128, "window.margin": 32})
>>> config.validate()
"""

from __future__ import annotations

import copy
import math
import warnings
from dataclasses import dataclass, field, fields, asdict
from enum import Enum
from typing import Any, Dict, Optional

from alphafeatures import constants as c


class SampleType(Enum):
    """Sample classes with different envelope and elution characteristics."""
    PEPTIDE = "peptide"                # multiply charged, broad envelopes
    SMALL_MOLECULE = "small_molecule"  # mostly singly charged, narrow peaks


class LowPassType(Enum):
    """Low-pass strategy applied before maxima detection."""
    WAVELET_THRESHOLD = "wavelet_threshold"  # MODWT smooth along elution
    FFT = "fft"                              # Gaussian frequency taper
    SMOOTH_A_LITTLE = "smooth_a_little"      # [1, 2, 1] / 4 along elution
    NONE = "none"


class BackgroundMethod(Enum):
    """Background estimation method."""
    QUANTILE = "quantile"  # per 1-Da block order statistic
    MINIMA = "minima"      # windowed minima per scan and per row


class PeakDetectorType(Enum):
    """Peak detection strategy."""
    WAVELET = "wavelet"  # ridge walking on wavelet-sharpened spectra
    MAXIMA = "maxima"    # plain 2D maxima of the low-passed matrix
    EDGES = "edges"      # Haar edge intersections ("gross" features)


class ProfileMassMode(Enum):
    """How a single profile scan contributes to the accurate m/z."""
    CENTER = "center"  # intensity-weighted centre
    MAX = "max"        # m/z of the most intense sample


@dataclass
class ResampleParams:
    """Spectrum resampling parameters."""

    resolution: int = c.DEFAULT_RESAMPLE_FREQUENCY  # bins per Da
    padding: float = c.DEFAULT_RESAMPLE_PADDING     # Da on both sides
    smooth: bool = True          # [1, 2, 1] / 4 along m/z after binning
    median_smooth: bool = False  # 3-point median along elution (lock mass)
    zero_order: bool = False     # also keep a nearest-bin companion matrix


@dataclass
class SmoothingParams:
    """Low-pass filter parameters."""

    lowpass: LowPassType = LowPassType.WAVELET_THRESHOLD
    wavelet_level: int = c.DEFAULT_WAVELET_LEVEL
    threshold_levels: int = c.DEFAULT_THRESHOLD_LEVELS
    fft_elution_factor: float = c.DEFAULT_FFT_ELUTION_FACTOR
    fft_spectrum_factor: float = c.DEFAULT_FFT_SPECTRUM_FACTOR


@dataclass
class BackgroundParams:
    """Background and local median estimation parameters."""

    method: BackgroundMethod = BackgroundMethod.QUANTILE
    samples_per_peak: int = c.DEFAULT_BACKGROUND_SAMPLES_PER_PEAK
    fraction: float = c.DEFAULT_BACKGROUND_FRACTION
    smoothing_passes: int = c.DEFAULT_BACKGROUND_SMOOTHING_PASSES
    minima_window_spectrum: int = c.DEFAULT_MINIMA_WINDOW_SPECTRUM
    minima_window_elution: int = c.DEFAULT_MINIMA_WINDOW_ELUTION
    median_window_spectrum: int = c.DEFAULT_MEDIAN_WINDOW_SPECTRUM
    median_window_elution: int = c.DEFAULT_MEDIAN_WINDOW_ELUTION


@dataclass
class PeakParams:
    """Peak detection parameters."""

    detector: PeakDetectorType = PeakDetectorType.WAVELET
    min_intensity: float = 0.0  # floor for the plain maxima detector

    # Ridge walking
    min_peak_scans: int = c.DEFAULT_MIN_PEAK_SCANS
    min_ridge_proportion: float = c.DEFAULT_MIN_RIDGE_PROPORTION
    ridge_on_wavelet: bool = True  # follow the wavelet ridge, not the smoothed one
    threshold_offset_wavelet: float = c.DEFAULT_THRESHOLD_OFFSET_WAVELET
    threshold_offset_smoothed: float = c.DEFAULT_THRESHOLD_OFFSET_SMOOTHED
    valley_factor: float = c.DEFAULT_VALLEY_FACTOR

    # Correlated-neighbour filter
    filter_correlated: bool = True
    neighbor_scans: int = c.DEFAULT_NEIGHBOR_SCANS
    neighbor_mz: float = c.DEFAULT_NEIGHBOR_MZ
    neighbor_min_bins: float = c.DEFAULT_NEIGHBOR_MIN_BINS


@dataclass
class EdgeParams:
    """Edge ("gross feature") detector parameters."""

    filter_elution: int = c.DEFAULT_EDGE_FILTER_ELUTION
    filter_spectrum: int = c.DEFAULT_EDGE_FILTER_SPECTRUM
    threshold: float = c.DEFAULT_EDGE_THRESHOLD  # multiple of median |haar| removed
    minimum: float = c.DEFAULT_EDGE_MINIMUM      # rise needed before a zero mark
    min_filter: float = 0.0

    vertical_window_width: int = c.DEFAULT_EDGE_WINDOW
    vertical_window_height: int = c.DEFAULT_EDGE_WINDOW
    vertical_count: int = c.DEFAULT_EDGE_COUNT
    horizontal_window_width: int = c.DEFAULT_EDGE_WINDOW
    horizontal_window_height: int = c.DEFAULT_EDGE_WINDOW
    horizontal_count: int = c.DEFAULT_EDGE_COUNT


@dataclass
class ClusterParams:
    """Isotope envelope clustering parameters."""

    max_charge: int = c.DEFAULT_MAX_CHARGE
    negative_charge: bool = False
    max_peaks: int = c.DEFAULT_MAX_PEAKS_PER_FEATURE
    max_abs_distance_between_peaks: float = c.DEFAULT_MAX_ABS_DISTANCE_BETWEEN_PEAKS
    window_mz_below: float = c.DEFAULT_WINDOW_MZ_BELOW
    window_mz_above: float = c.DEFAULT_WINDOW_MZ_ABOVE
    window_scans: int = c.DEFAULT_WINDOW_SCANS
    kl_cutoff: float = c.DEFAULT_KL_CUTOFF
    leading_peak_ratio: float = c.DEFAULT_LEADING_PEAK_RATIO


@dataclass
class WindowParams:
    """Windowed run driver parameters."""

    width: int = c.DEFAULT_WINDOW_WIDTH    # scans per window
    margin: int = c.DEFAULT_WINDOW_MARGIN  # scans discarded on each inner side
    n_workers: int = 1

    # Optional restriction of the run (scan numbers and m/z, inclusive)
    scan_first: Optional[int] = None
    scan_last: Optional[int] = None
    mz_min: Optional[float] = None
    mz_max: Optional[float] = None

    # Attach the resampled neighbourhood of each feature for diagnostics
    dump_window: bool = False
    dump_window_size: float = 1.0  # Da on both sides


@dataclass
class AccurateMassParams:
    """Accurate mass refinement parameters."""

    scans: int = c.DEFAULT_ACCURATE_MASS_SCANS  # 0 disables profile mode
    mode: ProfileMassMode = ProfileMassMode.CENTER
    recalc_intensity: bool = False
    adjust_comprised: bool = False
    isotope_spacing: float = c.AVERAGINE_ISOTOPE_SPACING
    centroid_window_proportion: float = c.DEFAULT_CENTROID_WINDOW_PROPORTION
    profile_window_proportion: float = c.DEFAULT_PROFILE_WINDOW_PROPORTION
    centroid_max_ppm: float = c.DEFAULT_CENTROID_MAX_PPM
    centroid_slots: int = c.DEFAULT_CENTROID_SLOTS
    intensity_ppm: float = c.DEFAULT_INTENSITY_RECALC_PPM


_SECTIONS = (
    "resample",
    "smoothing",
    "background",
    "peaks",
    "edges",
    "cluster",
    "window",
    "accurate_mass",
)


@dataclass
class FeatureFinderConfig:
    """Complete feature finder configuration.

    Each section is one parameter dataclass. Values are addressed externally
    by dotted names, e.g. ``"cluster.max_charge"``.
    """

    resample: ResampleParams = field(default_factory=ResampleParams)
    smoothing: SmoothingParams = field(default_factory=SmoothingParams)
    background: BackgroundParams = field(default_factory=BackgroundParams)
    peaks: PeakParams = field(default_factory=PeakParams)
    edges: EdgeParams = field(default_factory=EdgeParams)
    cluster: ClusterParams = field(default_factory=ClusterParams)
    window: WindowParams = field(default_factory=WindowParams)
    accurate_mass: AccurateMassParams = field(default_factory=AccurateMassParams)

    @property
    def max_distance(self) -> float:
        """Maximum m/z deviation of a peak from its isotope slot (Da)."""
        return self.cluster.max_abs_distance_between_peaks / (self.resample.resolution - 1)

    @classmethod
    def for_sample(cls, sample: SampleType) -> 'FeatureFinderConfig':
        """Create a configuration tuned for a sample type.

        Args:
            sample: Sample type enum

        Returns:
            FeatureFinderConfig with sample-specific defaults
        """
        if sample == SampleType.PEPTIDE:
            return cls()
        elif sample == SampleType.SMALL_MOLECULE:
            return cls(
                peaks=PeakParams(min_peak_scans=3),
                cluster=ClusterParams(max_charge=2, window_mz_above=3.1),
            )
        else:
            raise ValueError(f"Unknown sample type: {sample}")

    def from_dict(self, values: Dict[str, Any]) -> 'FeatureFinderConfig':
        """Return a copy with named parameters replaced.

        Args:
            values: Mapping of dotted ``section.field`` names to new values.
                Enum fields accept the enum member or its string value.

        Returns:
            New FeatureFinderConfig; ``self`` is not modified

        Raises:
            ValueError: Unknown parameter name or value of the wrong type
        """
        config = copy.deepcopy(self)
        for name, value in values.items():
            section_name, _, field_name = name.partition(".")
            if section_name not in _SECTIONS or not field_name:
                raise ValueError(f"Unknown parameter: {name}")
            section = getattr(config, section_name)
            known = {f.name for f in fields(section)}
            if field_name not in known:
                raise ValueError(f"Unknown parameter: {name}")
            current = getattr(section, field_name)
            setattr(section, field_name, _coerce(name, current, value))
        return config

    def to_dict(self) -> Dict[str, Any]:
        """Flatten to dotted names with enum members replaced by their values."""
        flat = {}
        for section_name in _SECTIONS:
            for key, value in asdict(getattr(self, section_name)).items():
                if isinstance(value, Enum):
                    value = value.value
                flat[f"{section_name}.{key}"] = value
        return flat

    def validate(self) -> None:
        """Check the configuration for impossible or suspicious settings.

        Raises:
            ValueError: If a setting cannot work
        """
        if self.resample.resolution <= 1:
            raise ValueError(
                f"resample.resolution must be > 1, got {self.resample.resolution}"
            )
        if self.resample.padding < 0.5:
            raise ValueError(f"resample.padding must be >= 0.5 Da, got {self.resample.padding}")
        if self.window.margin < 0:
            raise ValueError(f"window.margin must be >= 0, got {self.window.margin}")
        if self.window.width <= 2 * self.window.margin:
            raise ValueError(
                f"window.width ({self.window.width}) must exceed twice "
                f"window.margin ({self.window.margin})"
            )
        if self.window.n_workers < 1:
            raise ValueError(f"window.n_workers must be >= 1, got {self.window.n_workers}")
        if self.cluster.max_charge < 1:
            raise ValueError(f"cluster.max_charge must be >= 1, got {self.cluster.max_charge}")
        if self.cluster.max_peaks < 2:
            raise ValueError(f"cluster.max_peaks must be >= 2, got {self.cluster.max_peaks}")
        if self.peaks.min_peak_scans < 1:
            raise ValueError(
                f"peaks.min_peak_scans must be >= 1, got {self.peaks.min_peak_scans}"
            )
        if self.background.median_window_spectrum < 0 or self.background.median_window_elution < 0:
            raise ValueError("background median windows must be >= 0 (0 follows the resolution)")
        if self.accurate_mass.scans < 0:
            raise ValueError(f"accurate_mass.scans must be >= 0, got {self.accurate_mass.scans}")
        if self.smoothing.wavelet_level < 1 or self.smoothing.threshold_levels < 1:
            raise ValueError("Wavelet levels must be >= 1")

        # Level 3 resolves isotope peaks at 36 bins per Da
        expected_level = max(1, round(math.log2(self.resample.resolution / 4.5)))
        if abs(self.smoothing.wavelet_level - expected_level) >= 1:
            warnings.warn(
                f"Wavelet level {self.smoothing.wavelet_level} was tuned for a different "
                f"resolution; level {expected_level} suits "
                f"{self.resample.resolution} bins per Da"
            )


def _coerce(name: str, current: Any, value: Any) -> Any:
    """Check ``value`` against the type of the current setting."""
    if isinstance(current, Enum):
        enum_type = type(current)
        if isinstance(value, enum_type):
            return value
        try:
            return enum_type(value)
        except ValueError:
            raise ValueError(f"Invalid value for {name}: {value!r}") from None
    if isinstance(current, bool):
        if not isinstance(value, bool):
            raise ValueError(f"{name} expects a bool, got {value!r}")
        return value
    if isinstance(current, int):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"{name} expects an int, got {value!r}")
        return value
    if isinstance(current, float):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"{name} expects a float, got {value!r}")
        return float(value)
    if current is None:
        # Optional restrictions (scan range, m/z range)
        if value is not None and (isinstance(value, bool) or not isinstance(value, (int, float))):
            raise ValueError(f"{name} expects a number or None, got {value!r}")
        return value
    return value
