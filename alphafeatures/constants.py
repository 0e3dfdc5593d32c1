"""Physical constants and algorithm defaults for LC-MS feature detection.

This module collects the physical constants used to convert between m/z and
neutral mass, and every numeric default of the feature finder, so that the
parameter dataclasses in :mod:`alphafeatures.config` have a single source.

Key Features
------------
- Correct PROTON_MASS (1.007276466622 Da, not hydrogen atom mass!)
- Isotope spacing used for envelope walking and accurate mass refinement
- Resampling, smoothing, detection, clustering and windowing defaults

The detection defaults were tuned for a resampling frequency of 36 bins per
Dalton. They are empirical and should not be assumed to transfer to
instruments or resolutions far outside that regime.

Sources
-------
- NIST physical constants: https://physics.nist.gov/cgi-bin/cuu/Value
"""

# =============================================================================
# Fundamental Physical Constants (NIST values)
# =============================================================================

# Proton mass (NOT hydrogen atom mass!)
# Source: NIST 2018 CODATA
PROTON_MASS = 1.007276466622  # Da

# Mass difference between C12 and C13
ISOTOPE_MASS_DIFFERENCE = 1.003355  # Da

# Averaged isotope spacing for accurate mass refinement
# Some heavy isotopes sit above +1 Da (13C: 1.0033), some below (15N: 0.9971)
AVERAGINE_ISOTOPE_SPACING = 1.0013  # Da

# =============================================================================
# Isotope Model
# =============================================================================

# Poisson approximation of peptide isotope abundances
# lambda = mass / 1800 (empirical)
POISSON_LAMBDA_PER_DA = 0.0005556
POISSON_TABLE_ROWS = 640       # covers 0-6400 Da in 10 Da steps
POISSON_TABLE_STEP = 10        # Da per row
POISSON_TABLE_OFFSET = 5       # row i models mass i * 10 + 5
ISOTOPE_SLOTS = 6              # slots compared against the model

# Floor intensity for isotope slots without a matched peak
MISSING_SLOT_INTENSITY = 0.1

# =============================================================================
# Resampling Defaults
# =============================================================================

DEFAULT_RESAMPLE_FREQUENCY = 36   # bins per Da
DEFAULT_RESAMPLE_PADDING = 0.5    # Da added on both sides of the m/z range

# =============================================================================
# Smoothing / Background Defaults
# =============================================================================

DEFAULT_WAVELET_LEVEL = 3         # level 3 works well at 36 bins per Da
DEFAULT_THRESHOLD_LEVELS = 3      # MODWT levels for the elution low-pass
DEFAULT_FFT_ELUTION_FACTOR = 12.0
DEFAULT_FFT_SPECTRUM_FACTOR = 8.0

DEFAULT_BACKGROUND_SAMPLES_PER_PEAK = 3
DEFAULT_BACKGROUND_FRACTION = 0.5
DEFAULT_BACKGROUND_SMOOTHING_PASSES = 2
DEFAULT_MINIMA_WINDOW_SPECTRUM = 72   # bins
DEFAULT_MINIMA_WINDOW_ELUTION = 15    # scans
DEFAULT_MEDIAN_WINDOW_SPECTRUM = 0    # bins; 0 means twice the resolution
DEFAULT_MEDIAN_WINDOW_ELUTION = 0     # scans; 0 means the resolution

# =============================================================================
# Peak Detection Defaults
# =============================================================================

DEFAULT_MIN_PEAK_SCANS = 5
DEFAULT_MIN_RIDGE_PROPORTION = 0.05
DEFAULT_THRESHOLD_OFFSET_WAVELET = 1.0
DEFAULT_THRESHOLD_OFFSET_SMOOTHED = 0.0
DEFAULT_VALLEY_FACTOR = 1.1

# Correlated-neighbour filter
DEFAULT_NEIGHBOR_SCANS = 5
DEFAULT_NEIGHBOR_MZ = 1.1
DEFAULT_NEIGHBOR_MIN_BINS = 1.5

# Edge ("gross feature") detector
DEFAULT_EDGE_FILTER_ELUTION = 8
DEFAULT_EDGE_FILTER_SPECTRUM = 4
DEFAULT_EDGE_THRESHOLD = 1.0
DEFAULT_EDGE_MINIMUM = 4.0
DEFAULT_EDGE_WINDOW = 5
DEFAULT_EDGE_COUNT = 1

# =============================================================================
# Clustering Defaults
# =============================================================================

DEFAULT_MAX_CHARGE = 6
DEFAULT_MAX_PEAKS_PER_FEATURE = 10
DEFAULT_MAX_ABS_DISTANCE_BETWEEN_PEAKS = 1.0
DEFAULT_WINDOW_MZ_BELOW = 2.1     # Da below the anchor
DEFAULT_WINDOW_MZ_ABOVE = 6.1     # Da above the anchor
DEFAULT_WINDOW_SCANS = 9
DEFAULT_KL_CUTOFF = 0.5
DEFAULT_LEADING_PEAK_RATIO = 10.0

# Sum-of-squares fit weights: 1/6 Da is bad, 1/4 scaled intensity is bad
SUMSQUARES_MZ_WEIGHT = 6.0
SUMSQUARES_INTENSITY_WEIGHT = 4.0

# =============================================================================
# Run Driver Defaults
# =============================================================================

DEFAULT_WINDOW_WIDTH = 256        # scans
DEFAULT_WINDOW_MARGIN = 64        # scans

# =============================================================================
# Accurate Mass Defaults
# =============================================================================

DEFAULT_ACCURATE_MASS_SCANS = 3
DEFAULT_CENTROID_WINDOW_PROPORTION = 0.66
DEFAULT_PROFILE_WINDOW_PROPORTION = 0.66666667
DEFAULT_CENTROID_MAX_PPM = 5.0
DEFAULT_INTENSITY_RECALC_PPM = 3.0
DEFAULT_CENTROID_SLOTS = 2

# =============================================================================
# Feature Selection Defaults
# =============================================================================

DEFAULT_SELECTOR_MIN_PEAKS = 2
DEFAULT_SELECTOR_MAX_KL = 3.0
