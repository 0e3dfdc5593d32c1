"""Windowed processing of a whole run.

A run is cut into overlapping windows of ``width`` scans that advance by
``width - 2 * margin``. Each window is processed independently; of its
features only those whose scan lies in the window core are kept. Cores tile
the run exactly: the first window keeps from scan 0, the last up to the end,
and every other window keeps ``[pos + margin, end - margin)``. Features near
a seam are therefore reported by exactly one window, the one that saw them
away from its edges.

Examples
--------
>>> plan_windows(120, width=64, margin=16)
[WindowSpan(start=0, end=64, keep_start=0, keep_end=48),
 WindowSpan(start=32, end=96, keep_start=48, keep_end=80),
 WindowSpan(start=56, end=120, keep_start=80, keep_end=120)]
"""

import logging
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

from alphafeatures.config import FeatureFinderConfig
from alphafeatures.models import Feature, Peak, ResampledMatrix, Run
from alphafeatures.pipeline.cancellation import CancellationToken, ProgressCallback, RunStatus
from alphafeatures.pipeline.strategies import FeaturePipeline, build_pipeline

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WindowSpan:
    """Scan indexes ``[start, end)`` processed, ``[keep_start, keep_end)`` kept."""

    start: int
    end: int
    keep_start: int
    keep_end: int

    def keeps(self, index: int) -> bool:
        return self.keep_start <= index < self.keep_end


@dataclass
class WindowRunResult:
    """Features of all completed windows, in window order."""

    status: RunStatus
    features: List[Feature] = field(default_factory=list)
    windows_completed: int = 0
    windows_total: int = 0


def plan_windows(n_scans: int, width: int, margin: int) -> List[WindowSpan]:
    """Split ``n_scans`` scans into overlapping windows.

    Args:
        n_scans: Number of scans in the run
        width: Scans per window
        margin: Scans at each inner window edge whose features are discarded

    Returns:
        Window spans in run order; their keep ranges tile ``[0, n_scans)``

    Raises:
        ValueError: If ``width <= 2 * margin`` or ``margin < 0``
    """
    if margin < 0 or width <= 2 * margin:
        raise ValueError(f"Window width {width} must exceed twice the margin {margin}")
    spans = []
    pos = 0
    while n_scans > 0:
        end = min(n_scans, pos + width)
        start = max(0, end - width)
        keep_start = 0 if pos == 0 else pos + margin
        keep_end = n_scans if end == n_scans else end - margin
        spans.append(WindowSpan(start, end, keep_start, keep_end))
        if end >= n_scans:
            break
        pos += width - 2 * margin
    return spans


def _intensity_window(matrix: ResampledMatrix, feature: Feature, size: float) -> np.ndarray:
    lo = max(0, matrix.bin_at(feature.mz - size))
    hi = min(matrix.n_bins, matrix.bin_at(feature.mz + size) + 1)
    first = max(0, feature.scan_first)
    last = min(matrix.n_scans - 1, feature.scan_last)
    return matrix.spectra[first:last + 1, lo:hi].copy()


def _translate_peak(run: Run, offset: int, peak: Peak) -> None:
    peak.time = run.scans[offset + peak.scan].rt
    peak.scan = int(run.scans[offset + peak.scan].num)
    peak.scan_first = int(run.scans[offset + peak.scan_first].num)
    peak.scan_last = int(run.scans[offset + peak.scan_last].num)


def _translate_feature(run: Run, offset: int, feature: Feature) -> None:
    scan = run.scans[offset + feature.scan]
    feature.time = scan.rt
    feature.scan = int(scan.num)
    feature.scan_first = int(run.scans[offset + feature.scan_first].num)
    feature.scan_last = int(run.scans[offset + feature.scan_last].num)


def analyze_window(
    run: Run,
    span: WindowSpan,
    pipeline: FeaturePipeline,
    config: FeatureFinderConfig,
    mz_range: Optional[Tuple[float, float]] = None,
) -> List[Feature]:
    """Find the features of one window.

    Args:
        run: The run
        span: Window to process
        pipeline: Processing steps
        config: Feature finder configuration
        mz_range: m/z range of the matrix; ``run.extraction_range()`` by default

    Returns:
        Features whose scan lies in the window core, with scan numbers and
        retention times of the run
    """
    if mz_range is None:
        mz_range = run.extraction_range()
    scans = run.scans[span.start:span.end]

    matrix = pipeline.resample(scans, mz_range)
    smoothed = pipeline.smooth(matrix)
    peaks = pipeline.detect_peaks(smoothed, scans)
    features = pipeline.cluster(peaks)
    kept = [f for f in features if span.keeps(span.start + f.scan)]

    if config.window.dump_window:
        for feature in kept:
            feature.intensity_window = _intensity_window(
                matrix, feature, config.window.dump_window_size
            )

    for peak in peaks:
        _translate_peak(run, span.start, peak)
    for feature in kept:
        runner = feature
        while runner is not None:
            _translate_feature(run, span.start, runner)
            runner = runner.next

    logger.debug(
        f"Window scans {span.start}-{span.end}: {len(peaks)} peaks, "
        f"{len(features)} features, {len(kept)} kept"
    )
    return kept


def _analyze_window_job(scans, centroided, span, config, mz_range) -> List[Feature]:
    """Worker process entry point: rebuild the pipeline and run one window."""
    local = WindowSpan(0, span.end - span.start,
                       span.keep_start - span.start, span.keep_end - span.start)
    return analyze_window(Run(scans, centroided), local, build_pipeline(config),
                          config, mz_range)


def run_windows(
    run: Run,
    config: FeatureFinderConfig,
    pipeline: Optional[FeaturePipeline] = None,
    token: Optional[CancellationToken] = None,
    progress: Optional[ProgressCallback] = None,
    mz_range: Optional[Tuple[float, float]] = None,
) -> WindowRunResult:
    """Process a run window by window.

    The token is checked before every window. After each window ``progress``
    receives ``(end - margin) * 100 / n_scans`` clamped to [0, 100], and 100
    once the run is complete.

    With ``config.window.n_workers > 1`` windows run in worker processes,
    each with its own matrices, peaks and ownership table; results are
    merged in window order.

    Args:
        run: The run
        config: Feature finder configuration
        pipeline: Processing steps; built from ``config`` by default
        token: Optional cancellation token
        progress: Optional progress callback
        mz_range: m/z range of the matrices; ``run.extraction_range()`` by default

    Returns:
        WindowRunResult with status CANCELLED if the token fired

    Raises:
        ValueError: A custom pipeline combined with several workers
    """
    n_scans = len(run)
    width = config.window.width
    margin = config.window.margin
    spans = plan_windows(n_scans, width, margin)
    if mz_range is None:
        mz_range = run.extraction_range()
    n_workers = config.window.n_workers
    if n_workers > 1 and pipeline is not None:
        raise ValueError("Custom pipelines can only run with window.n_workers = 1")
    if pipeline is None and n_workers == 1:
        pipeline = build_pipeline(config)

    result = WindowRunResult(RunStatus.COMPLETED, windows_total=len(spans))

    def report(span: WindowSpan) -> None:
        if progress is not None:
            progress(float(min(100.0, max(0.0, (span.end - margin) * 100.0 / n_scans))))

    if n_workers == 1:
        for span in spans:
            if token is not None and token.cancelled:
                result.status = RunStatus.CANCELLED
                break
            result.features.extend(analyze_window(run, span, pipeline, config, mz_range))
            result.windows_completed += 1
            report(span)
    else:
        with ProcessPoolExecutor(max_workers=n_workers) as executor:
            futures = []
            for span in spans:
                if token is not None and token.cancelled:
                    result.status = RunStatus.CANCELLED
                    break
                futures.append((span, executor.submit(
                    _analyze_window_job, run.scans[span.start:span.end], run.centroided,
                    span, config, mz_range,
                )))
            for span, future in futures:
                if token is not None and token.cancelled:
                    result.status = RunStatus.CANCELLED
                    future.cancel()
                    continue
                result.features.extend(future.result())
                result.windows_completed += 1
                report(span)

    if result.status == RunStatus.COMPLETED and progress is not None:
        progress(100.0)
    logger.info(
        f"Processed {result.windows_completed}/{len(spans)} windows, "
        f"{len(result.features)} features ({result.status.value})"
    )
    return result
