"""Run-level feature finding.

:class:`FeatureFinder` ties the pieces together: optional restriction of the
run to a scan and m/z range, windowed detection and clustering, accurate mass
refinement, and the final intensity ordering with provenance properties.

Examples
--------
>>> finder = FeatureFinder(FeatureFinderConfig())
>>> result = finder.find_features(run, progress=lambda p: print(f"{p:.0f}%"))
>>> if result.status == RunStatus.COMPLETED:
...     features = result.feature_set.filter(FeatureSelector())
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

import alphafeatures
from alphafeatures.config import FeatureFinderConfig
from alphafeatures.mass.accurate_mass import AccurateMassRefiner
from alphafeatures.models import Feature, FeatureSelector, FeatureSet, Run, Scan
from alphafeatures.pipeline.cancellation import CancellationToken, ProgressCallback, RunStatus
from alphafeatures.pipeline.strategies import FeaturePipeline
from alphafeatures.pipeline.window import run_windows

logger = logging.getLogger(__name__)

ALGORITHM_NAME = "wavelet-ridge isotope clustering"


@dataclass
class FeatureFinderResult:
    """Outcome of :meth:`FeatureFinder.find_features`.

    ``feature_set`` is only set for completed runs. A cancelled run exposes
    the features of the windows it finished as ``partial_features``.
    """

    status: RunStatus
    feature_set: Optional[FeatureSet] = None
    partial_features: List[Feature] = field(default_factory=list)
    windows_completed: int = 0


class FeatureFinder:
    """Detect isotope features in an LC-MS run.

    Args:
        config: Feature finder configuration; validated on construction
        pipeline: Optional custom window pipeline (single worker only)
    """

    def __init__(self, config: Optional[FeatureFinderConfig] = None,
                 pipeline: Optional[FeaturePipeline] = None):
        self.config = config if config is not None else FeatureFinderConfig()
        self.config.validate()
        self.pipeline = pipeline

    def restrict(self, run: Run) -> Run:
        """Apply the configured scan and m/z restrictions.

        Raises:
            ValueError: If no scan is left
        """
        window = self.config.window
        scans = run.scans
        if window.scan_first is not None:
            scans = [s for s in scans if s.num >= window.scan_first]
        if window.scan_last is not None:
            scans = [s for s in scans if s.num <= window.scan_last]
        if window.mz_min is not None or window.mz_max is not None:
            lo = -np.inf if window.mz_min is None else window.mz_min
            hi = np.inf if window.mz_max is None else window.mz_max
            restricted = []
            for s in scans:
                keep = (s.mz >= lo) & (s.mz <= hi)
                restricted.append(Scan(s.num, s.rt, s.mz[keep], s.intensity[keep]))
            scans = restricted
        if not scans:
            raise ValueError("No scans left after applying the scan range")
        if len(scans) == len(run.scans) and scans[0] is run.scans[0] and scans[-1] is run.scans[-1]:
            return run
        return Run(scans, run.centroided)

    def find_features(
        self,
        run: Run,
        token: Optional[CancellationToken] = None,
        progress: Optional[ProgressCallback] = None,
        selector: Optional[FeatureSelector] = None,
    ) -> FeatureFinderResult:
        """Find all features of ``run``.

        Args:
            run: The run
            token: Optional cancellation token, checked before each window
            progress: Optional callback receiving 0 to 100
            selector: Optional filter applied to the final features

        Returns:
            FeatureFinderResult; features sorted by intensity, most intense first
        """
        run = self.restrict(run)
        logger.info(f"Finding features in {len(run):,} scans")

        windows = run_windows(run, self.config, self.pipeline, token, progress)
        if windows.status == RunStatus.CANCELLED:
            logger.info(f"Cancelled after {windows.windows_completed} windows")
            return FeatureFinderResult(
                RunStatus.CANCELLED,
                partial_features=windows.features,
                windows_completed=windows.windows_completed,
            )

        features = windows.features
        refiner = AccurateMassRefiner(self.config.accurate_mass, self.config.resample.resolution)
        refiner.refine_all(run, features)

        feature_set = FeatureSet(features, self.properties())
        feature_set.sort_by_intensity()
        if selector is not None:
            feature_set = feature_set.filter(selector)
        logger.info(f"✓ Found {len(feature_set):,} features")
        return FeatureFinderResult(
            RunStatus.COMPLETED,
            feature_set=feature_set,
            windows_completed=windows.windows_completed,
        )

    def properties(self) -> dict:
        """Provenance of a feature set."""
        return {
            "algorithm": ALGORITHM_NAME,
            "detector": self.config.peaks.detector.value,
            "version": alphafeatures.__version__,
            "config": self.config.to_dict(),
        }
