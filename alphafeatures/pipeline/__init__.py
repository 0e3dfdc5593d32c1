"""Run-level feature finding.

This module provides:
- Composable per-window pipelines (resample, smooth, detect, cluster)
- Overlapping windows with seam deduplication and optional worker processes
- Cooperative cancellation and progress reporting
- The FeatureFinder entry point
"""

from .cancellation import (
    CancellationToken,
    ProgressCallback,
    RunStatus,
)

from .strategies import (
    FeaturePipeline,
    build_pipeline,
)

from .window import (
    WindowRunResult,
    WindowSpan,
    analyze_window,
    plan_windows,
    run_windows,
)

from .finder import (
    FeatureFinder,
    FeatureFinderResult,
)

__all__ = [
    # Cancellation
    'CancellationToken',
    'ProgressCallback',
    'RunStatus',

    # Strategies
    'FeaturePipeline',
    'build_pipeline',

    # Windows
    'WindowRunResult',
    'WindowSpan',
    'analyze_window',
    'plan_windows',
    'run_windows',

    # Finder
    'FeatureFinder',
    'FeatureFinderResult',
]
