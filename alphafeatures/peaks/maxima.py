"""1D peak picking and 2D local maxima on the resampled matrix."""

import numba as nb
import numpy as np
from numba import njit


# Row neighbours this close (relative) to a pick make it part of a plateau
FLAT_TOLERANCE = 1e-9


@njit
def pick_peak_indexes(signal: np.ndarray, min_filter: float) -> np.ndarray:
    """Indexes of local maxima along a 1D signal.

    Walks rising runs (``prev <= cur``) and falling runs (``prev >= cur``)
    alternately; the last sample of every rising run whose value exceeds
    ``min_filter`` is reported. A plateau therefore reports its last sample,
    and a rise that runs into the end of the signal is not reported.

    Args:
        signal: 1D intensities
        min_filter: Tops at or below this value are ignored

    Returns:
        Ascending int64 indexes
    """
    n = len(signal)
    out = np.empty(n, dtype=np.int64)
    count = 0
    i = 1
    while i < n:
        while i < n and signal[i - 1] <= signal[i]:
            i += 1
        if i < n and signal[i - 1] > min_filter:
            out[count] = i - 1
            count += 1
        while i < n and signal[i - 1] >= signal[i]:
            i += 1
    return out[:count]


@nb.njit(parallel=True)
def _maxima_per_scan(matrix: np.ndarray, neighbors: np.ndarray, min_intensity: float,
                     edge: int) -> np.ndarray:
    """Boolean mask of accepted maxima."""
    n_scans, n_bins = matrix.shape
    mask = np.zeros((n_scans, n_bins), dtype=np.bool_)
    for s in nb.prange(1, n_scans - 1):
        picks = pick_peak_indexes(matrix[s], min_intensity)
        for j in range(len(picks)):
            m = picks[j]
            if m < edge or m >= n_bins - edge:
                continue
            value = matrix[s, m]
            # Flat tops wider than one bin are not maxima
            flat = value - FLAT_TOLERANCE * abs(value)
            if matrix[s, m - 1] >= flat or matrix[s, m + 1] >= flat:
                continue
            ok = True
            for ds in (-1, 1):
                for dm in range(-1, 2):
                    if neighbors[s + ds, m + dm] > value:
                        ok = False
            if ok:
                mask[s, m] = True
    return mask


def find_maxima_2d(matrix: np.ndarray, min_intensity: float, neighbors: np.ndarray = None,
                   edge: int = 2):
    """Find 2D local maxima.

    A maximum at (s, m) is a 1D peak of row ``s`` that is not exceeded by any
    of the six cells in rows ``s - 1`` and ``s + 1`` (columns ``m - 1`` to
    ``m + 1``). Ties with those rows are allowed; a flat top spanning more
    than one bin of row ``s`` (equal within ``FLAT_TOLERANCE``, relative) is
    not a maximum. The first and last scans, and the first and last ``edge``
    bins, are never reported.

    Parameters
    ----------
    matrix : np.ndarray
        (scans x bins) matrix the maxima are taken from
    min_intensity : float
        Floor for the 1D peak tops; ``-np.inf`` disables it
    neighbors : np.ndarray, optional
        Matrix supplying rows ``s - 1`` and ``s + 1``, typically the
        unsmoothed spectra. Defaults to ``matrix``.
    edge : int, default=2
        Bins excluded at each end of the m/z axis

    Returns
    -------
    scan_idx, bin_idx : np.ndarray
        Positions ordered by scan, then bin
    intensity : np.ndarray
        ``matrix`` values at those positions
    """
    matrix = np.ascontiguousarray(matrix, dtype=np.float64)
    if neighbors is None:
        neighbors = matrix
    else:
        neighbors = np.ascontiguousarray(neighbors, dtype=np.float64)
        if neighbors.shape != matrix.shape:
            raise ValueError(
                f"neighbors shape {neighbors.shape} does not match {matrix.shape}"
            )
    if matrix.ndim != 2 or matrix.shape[0] < 3 or matrix.shape[1] < 3:
        empty = np.zeros(0, dtype=np.int64)
        return empty, empty.copy(), np.zeros(0, dtype=np.float64)

    mask = _maxima_per_scan(matrix, neighbors, float(min_intensity), max(1, int(edge)))
    scan_idx, bin_idx = np.nonzero(mask)
    return scan_idx.astype(np.int64), bin_idx.astype(np.int64), matrix[scan_idx, bin_idx]
