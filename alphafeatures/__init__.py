"""AlphaFeatures - Numba-accelerated LC-MS feature detection.

Finds isotope features (charge-resolved envelopes of peaks sharing elution)
in MS1 runs: spectra are resampled onto a uniform m/z grid window by window,
smoothed and separated from background, searched for 2D peaks, and the peaks
are clustered greedily into envelopes scored against a Poisson isotope model.
Feature m/z values are finally refined against the raw spectra.

Examples
--------
>>> from alphafeatures import FeatureFinder, FeatureFinderConfig, Run, Scan
>>> run = Run([Scan(num, rt, mz, intensity) for num, rt, mz, intensity in spectra])
>>> result = FeatureFinder(FeatureFinderConfig()).find_features(run)
>>> for feature in result.feature_set:
...     print(feature.mz, feature.charge, feature.scan)
"""

__version__ = "0.1.0"

# Import main submodules for convenient access
from alphafeatures import spectra
from alphafeatures import smoothing
from alphafeatures import peaks
from alphafeatures import features
from alphafeatures import mass
from alphafeatures import pipeline

from alphafeatures.config import FeatureFinderConfig, SampleType
from alphafeatures.models import Feature, FeatureSelector, FeatureSet, Peak, Run, Scan
from alphafeatures.pipeline import CancellationToken, FeatureFinder, RunStatus

__all__ = [
    "spectra",
    "smoothing",
    "peaks",
    "features",
    "mass",
    "pipeline",
    "CancellationToken",
    "Feature",
    "FeatureFinder",
    "FeatureFinderConfig",
    "FeatureSelector",
    "FeatureSet",
    "Peak",
    "Run",
    "RunStatus",
    "SampleType",
    "Scan",
]
