"""Peak detection on resampled LC-MS windows.

This module provides:
- 1D peak picking and 2D local maxima with edge exclusion
- Haar edge detection with island collapsing ("gross features")
- Ridge-walking extraction on wavelet-sharpened spectra (default detector)
- Detection strategies returning Peak lists
"""

from .maxima import (
    find_maxima_2d,
    pick_peak_indexes,
)

from .edges import (
    EdgeResult,
    collapse_islands,
    detect_edges,
    dilate_marks,
    haar_transform,
    median_abs,
    zero_indexes,
)

from .wavelet_peaks import (
    correlated_peaks,
    extract_wavelet_peaks,
    filter_correlated,
    wavelet_sharpen,
)

from .detection import (
    detect_gross_peaks,
    detect_maxima_peaks,
    detect_wavelet_peaks,
)

__all__ = [
    # Maxima
    'find_maxima_2d',
    'pick_peak_indexes',

    # Edges
    'EdgeResult',
    'collapse_islands',
    'detect_edges',
    'dilate_marks',
    'haar_transform',
    'median_abs',
    'zero_indexes',

    # Ridge walking
    'correlated_peaks',
    'extract_wavelet_peaks',
    'filter_correlated',
    'wavelet_sharpen',

    # Strategies
    'detect_gross_peaks',
    'detect_maxima_peaks',
    'detect_wavelet_peaks',
]
