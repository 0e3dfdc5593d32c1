"""Edge detection for fast "gross feature" localisation.

Every elution trace (one per m/z bin) and every spectrum (one per scan) is
Haar-filtered independently. In the filtered trace a peak shows up as a
positive lobe followed by a zero crossing at its apex, so marking "the first
sample at or below zero after a sufficient rise" gives one mark per peak and
axis. The two mark maps are dilated, counted, and intersected; what remains
are broad blobs of accepted points, collapsed to one point per 8-connected
island.
"""

from dataclasses import dataclass

import numba as nb
import numpy as np
from numba import njit

from alphafeatures.config import EdgeParams


@dataclass
class EdgeResult:
    """Edge mark counts per axis and the collapsed gross feature points.

    ``vertical`` and ``horizontal`` hold the dilated mark counts; ``gross``
    holds the combined count at each surviving point (zero elsewhere).
    """

    vertical: np.ndarray
    horizontal: np.ndarray
    gross: np.ndarray
    scan_idx: np.ndarray
    bin_idx: np.ndarray
    intensity: np.ndarray
    score: np.ndarray


# ========== Numba kernels ==========

@njit
def haar_transform(x: np.ndarray, width: int) -> np.ndarray:
    """Box difference: mean of the next ``width // 2`` samples minus the previous ones.

    Sums are truncated at the array ends and normalised by ``2 * (width // 2)``.
    """
    n = len(x)
    half = max(1, width // 2)
    csum = np.zeros(n + 1, dtype=np.float64)
    for i in range(n):
        csum[i + 1] = csum[i] + x[i]
    out = np.empty(n, dtype=np.float64)
    for i in range(n):
        right = csum[min(n, i + half)] - csum[i]
        left = csum[i] - csum[max(0, i - half)]
        out[i] = (right - left) / (2.0 * half)
    return out


@njit
def median_abs(x: np.ndarray) -> float:
    """Median of ``|x|``; the lower middle element for even lengths."""
    n = len(x)
    if n == 0:
        return 0.0
    values = np.sort(np.abs(x))
    return values[(n - 1) // 2]


@njit
def zero_indexes(signal: np.ndarray, min_filter: float) -> np.ndarray:
    """Mark the first sample at or below zero after a rise topping above ``min_filter``."""
    n = len(signal)
    marks = np.zeros(n, dtype=np.bool_)
    top = -np.inf
    rising = False
    for i in range(1, n):
        if signal[i] > signal[i - 1]:
            rising = True
        if rising:
            if signal[i - 1] > top:
                top = signal[i - 1]
            if signal[i] <= 0.0:
                if top > min_filter:
                    marks[i] = True
                rising = False
                top = -np.inf
    return marks


@njit
def _trace_marks(trace: np.ndarray, width: int, threshold: float, minimum: float,
                 min_filter: float) -> np.ndarray:
    haar = haar_transform(trace, width)
    med = median_abs(haar)
    haar -= med * threshold
    return zero_indexes(haar, max(min_filter, med * minimum))


@nb.njit(parallel=True)
def _vertical_marks(spectra: np.ndarray, width: int, threshold: float, minimum: float,
                    min_filter: float) -> np.ndarray:
    n_scans, n_bins = spectra.shape
    marks = np.zeros((n_scans, n_bins), dtype=np.bool_)
    for b in nb.prange(n_bins):
        marks[:, b] = _trace_marks(spectra[:, b].copy(), width, threshold, minimum, min_filter)
    return marks


@nb.njit(parallel=True)
def _horizontal_marks(spectra: np.ndarray, width: int, threshold: float, minimum: float,
                      min_filter: float) -> np.ndarray:
    n_scans, n_bins = spectra.shape
    marks = np.zeros((n_scans, n_bins), dtype=np.bool_)
    for s in nb.prange(n_scans):
        marks[s, :] = _trace_marks(spectra[s, :].copy(), width, threshold, minimum, min_filter)
    return marks


@njit
def dilate_marks(marks: np.ndarray, width: int, height: int) -> np.ndarray:
    """Count marks in a ``height`` (scans) x ``width`` (bins) window around every cell.

    The window around (s, m) spans rows ``s - height // 2`` to
    ``s - height // 2 + height - 1`` and likewise for columns.
    """
    n_scans, n_bins = marks.shape
    table = np.zeros((n_scans + 1, n_bins + 1), dtype=np.int64)
    for s in range(n_scans):
        for m in range(n_bins):
            table[s + 1, m + 1] = (table[s, m + 1] + table[s + 1, m]
                                   - table[s, m] + (1 if marks[s, m] else 0))
    counts = np.zeros((n_scans, n_bins), dtype=np.int64)
    for s in range(n_scans):
        s0 = max(0, s - height // 2)
        s1 = min(n_scans, s - height // 2 + height)
        for m in range(n_bins):
            m0 = max(0, m - width // 2)
            m1 = min(n_bins, m - width // 2 + width)
            if s1 <= s0 or m1 <= m0:
                continue
            counts[s, m] = table[s1, m1] - table[s0, m1] - table[s1, m0] + table[s0, m0]
    return counts


@njit
def collapse_islands(values: np.ndarray) -> np.ndarray:
    """Keep one point per 8-connected island of non-zero values.

    Islands are traversed with an explicit stack and a visited mask; the
    survivor is the island's maximum, the first one visited on ties.

    Args:
        values: 2D matrix, zero outside islands

    Returns:
        New matrix holding only the survivors
    """
    n_rows, n_cols = values.shape
    out = np.zeros_like(values)
    visited = np.zeros((n_rows, n_cols), dtype=np.bool_)
    stack = np.empty((n_rows * n_cols, 2), dtype=np.int64)

    for r0 in range(n_rows):
        for c0 in range(n_cols):
            if visited[r0, c0] or values[r0, c0] == 0:
                continue
            best_r = r0
            best_c = c0
            top = 0
            stack[top, 0] = r0
            stack[top, 1] = c0
            top += 1
            visited[r0, c0] = True
            while top > 0:
                top -= 1
                r = stack[top, 0]
                c = stack[top, 1]
                if values[r, c] > values[best_r, best_c]:
                    best_r = r
                    best_c = c
                for dr in range(-1, 2):
                    for dc in range(-1, 2):
                        rr = r + dr
                        cc = c + dc
                        if rr < 0 or rr >= n_rows or cc < 0 or cc >= n_cols:
                            continue
                        if visited[rr, cc] or values[rr, cc] == 0:
                            continue
                        visited[rr, cc] = True
                        stack[top, 0] = rr
                        stack[top, 1] = cc
                        top += 1
            out[best_r, best_c] = values[best_r, best_c]
    return out


# ========== Public API ==========

def detect_edges(spectra: np.ndarray, params: EdgeParams) -> EdgeResult:
    """Locate gross features as intersections of elution and m/z edges.

    Args:
        spectra: Resampled matrix (scans x bins)
        params: EdgeParams

    Returns:
        EdgeResult; the point arrays cover interior cells only and carry the
        mean of the 2x2 block starting at the point as intensity and the
        combined count as score
    """
    spectra = np.ascontiguousarray(spectra, dtype=np.float64)
    n_scans, n_bins = spectra.shape

    v_marks = _vertical_marks(spectra, params.filter_elution, params.threshold,
                              params.minimum, params.min_filter)
    h_marks = _horizontal_marks(spectra, params.filter_spectrum, params.threshold,
                                params.minimum, params.min_filter)
    vertical = dilate_marks(v_marks, params.vertical_window_width, params.vertical_window_height)
    horizontal = dilate_marks(h_marks, params.horizontal_window_width,
                              params.horizontal_window_height)

    accepted = (vertical >= params.vertical_count) & (horizontal >= params.horizontal_count)
    combined = np.where(accepted, vertical + horizontal, 0)
    gross = collapse_islands(combined)

    interior = np.zeros_like(accepted)
    interior[1:n_scans - 1, 1:n_bins - 1] = True
    scan_idx, bin_idx = np.nonzero((gross > 0) & interior)
    intensity = np.array([
        spectra[s:s + 2, m:m + 2].mean() for s, m in zip(scan_idx, bin_idx)
    ], dtype=np.float64)
    score = gross[scan_idx, bin_idx].astype(np.float64)
    return EdgeResult(vertical, horizontal, gross, scan_idx.astype(np.int64),
                      bin_idx.astype(np.int64), intensity, score)
