"""Haar maximal overlap discrete wavelet transform (MODWT).

The MODWT is undecimated, so every level has the full signal length and the
multiresolution analysis (MRA) is shift invariant: details and smooth are
aligned with the input and sum back to it exactly. Boundaries are periodic.

Level ``j`` uses the Haar filters ``h = [1/2, -1/2]`` and ``g = [1/2, 1/2]``
with lag ``2**(j - 1)``. Detail level 3 acts as a band-pass of roughly 4 to
8 samples, which matches an isotope peak at 36 bins per Dalton.

Examples
--------
>>> details, smooth = modwt_decompose(x, 3)
>>> mra = modwt_multiresolution(x, 3)
>>> np.allclose(mra.sum(axis=0), x)
True
"""

import numba as nb
import numpy as np
from numba import njit


_H0 = 0.5
_H1 = -0.5
_G0 = 0.5
_G1 = 0.5


# ========== Numba kernels ==========

@njit
def _forward_step(v: np.ndarray, lag: int):
    n = len(v)
    w = np.empty(n, dtype=np.float64)
    v_next = np.empty(n, dtype=np.float64)
    shift = lag % n
    for t in range(n):
        k = t - shift
        if k < 0:
            k += n
        w[t] = _H0 * v[t] + _H1 * v[k]
        v_next[t] = _G0 * v[t] + _G1 * v[k]
    return w, v_next


@njit
def _inverse_step(w: np.ndarray, v: np.ndarray, lag: int) -> np.ndarray:
    n = len(v)
    out = np.empty(n, dtype=np.float64)
    shift = lag % n
    for t in range(n):
        k = t + shift
        if k >= n:
            k -= n
        out[t] = _H0 * w[t] + _G0 * v[t] + _H1 * w[k] + _G1 * v[k]
    return out


@njit
def _decompose_1d(x: np.ndarray, levels: int) -> np.ndarray:
    """Rows 0..levels-1 hold wavelet coefficients, the last row the scaling ones."""
    n = len(x)
    out = np.zeros((levels + 1, n), dtype=np.float64)
    if n == 0:
        return out
    v = x.astype(np.float64)
    for j in range(levels):
        w, v = _forward_step(v, 1 << j)
        out[j, :] = w
    out[levels, :] = v
    return out


@njit
def _mra_1d(x: np.ndarray, levels: int) -> np.ndarray:
    """Rows 0..levels-1 hold the details, the last row the smooth."""
    n = len(x)
    out = np.zeros((levels + 1, n), dtype=np.float64)
    if n == 0:
        return out
    coeffs = _decompose_1d(x, levels)
    zero = np.zeros(n, dtype=np.float64)

    for j in range(levels):
        d = _inverse_step(coeffs[j].copy(), zero, 1 << j)
        for i in range(j - 1, -1, -1):
            d = _inverse_step(zero, d, 1 << i)
        out[j, :] = d

    s = coeffs[levels].copy()
    for i in range(levels - 1, -1, -1):
        s = _inverse_step(zero, s, 1 << i)
    out[levels, :] = s
    return out


@nb.njit(parallel=True)
def _decompose_rows(rows: np.ndarray, levels: int) -> np.ndarray:
    m, n = rows.shape
    out = np.zeros((levels + 1, m, n), dtype=np.float64)
    for r in nb.prange(m):
        out[:, r, :] = _decompose_1d(rows[r], levels)
    return out


@nb.njit(parallel=True)
def _mra_rows(rows: np.ndarray, levels: int) -> np.ndarray:
    m, n = rows.shape
    out = np.zeros((levels + 1, m, n), dtype=np.float64)
    for r in nb.prange(m):
        out[:, r, :] = _mra_1d(rows[r], levels)
    return out


# ========== Public API ==========

def _along_axis(kernel, x: np.ndarray, levels: int, axis: int) -> np.ndarray:
    """Run a row kernel along ``axis``; result has a leading level dimension."""
    if levels < 1:
        raise ValueError(f"levels must be >= 1, got {levels}")
    x = np.asarray(x, dtype=np.float64)
    if x.size == 0:
        return np.zeros((levels + 1,) + x.shape, dtype=np.float64)
    moved = np.moveaxis(x, axis, -1)
    shape = moved.shape
    rows = np.ascontiguousarray(moved.reshape(-1, shape[-1]))
    result = kernel(rows, levels).reshape((levels + 1,) + shape)
    return np.stack([np.moveaxis(r, -1, axis) for r in result])


def modwt_decompose(x: np.ndarray, levels: int, axis: int = -1):
    """Haar MODWT coefficients.

    Args:
        x: Input array
        levels: Number of decomposition levels
        axis: Axis along which to transform

    Returns:
        Tuple of (details, smooth): ``details[j]`` holds the level ``j + 1``
        wavelet coefficients, ``smooth`` the level ``levels`` scaling ones
    """
    result = _along_axis(_decompose_rows, x, levels, axis)
    return result[:levels], result[levels]


def modwt_multiresolution(x: np.ndarray, levels: int, axis: int = -1) -> np.ndarray:
    """Additive Haar MODWT multiresolution analysis.

    Returns:
        Array of shape ``(levels + 1,) + x.shape``: details for levels
        1..levels followed by the smooth; summing over the first axis
        reproduces ``x``
    """
    return _along_axis(_mra_rows, x, levels, axis)


def wavelet_detail(x: np.ndarray, level: int = 3, axis: int = -1) -> np.ndarray:
    """MRA detail of one level, e.g. level 3 to sharpen isotope peaks along m/z."""
    return modwt_multiresolution(x, level, axis)[level - 1]


def wavelet_smooth(x: np.ndarray, levels: int = 3, axis: int = -1) -> np.ndarray:
    """MRA smooth after ``levels`` levels (a zero-phase low-pass)."""
    return modwt_multiresolution(x, levels, axis)[levels]
