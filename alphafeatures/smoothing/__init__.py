"""Multi-scale smoothing and background separation.

This module provides:
- Haar MODWT decomposition and multiresolution analysis
- Low-pass strategies (wavelet smooth, FFT taper, [1, 2, 1] kernel)
- Background and local median estimation
- Separation of a window into signal, background and noise
"""

from .wavelet import (
    modwt_decompose,
    modwt_multiresolution,
    wavelet_detail,
    wavelet_smooth,
)

from .lowpass import (
    LowPass,
    fft_smooth,
    get_lowpass,
    lowpass_fft,
    lowpass_smooth_a_little,
    lowpass_wavelet_threshold,
)

from .background import (
    estimate_background,
    estimate_local_median,
    windowed_median,
    windowed_minimum,
)

from .separation import (
    SmoothedMatrix,
    separate_signal,
)

__all__ = [
    # Wavelets
    'modwt_decompose',
    'modwt_multiresolution',
    'wavelet_detail',
    'wavelet_smooth',

    # Low-pass
    'LowPass',
    'fft_smooth',
    'get_lowpass',
    'lowpass_fft',
    'lowpass_smooth_a_little',
    'lowpass_wavelet_threshold',

    # Background
    'estimate_background',
    'estimate_local_median',
    'windowed_median',
    'windowed_minimum',

    # Separation
    'SmoothedMatrix',
    'separate_signal',
]
