"""Low-pass filters applied to the resampled matrix before maxima detection.

All filters take a (scans x bins) matrix and return a new one; the input is
never modified. :func:`get_lowpass` picks the filter named by the
configuration and binds its parameters.
"""

from typing import Callable

import numpy as np

from alphafeatures.config import LowPassType, SmoothingParams
from alphafeatures.smoothing.wavelet import wavelet_smooth
from alphafeatures.spectra.resampling import smooth_elution


LowPass = Callable[[np.ndarray], np.ndarray]


def fft_smooth(x: np.ndarray, factor: float, axis: int = 0) -> np.ndarray:
    """Gaussian taper in the frequency domain.

    Frequency ``k`` (1..n//2) of the real FFT is scaled by
    ``exp(-u**2 * factor**2 / 2)`` with ``u`` running linearly over [0, 1];
    the DC term is kept, so the mean is preserved.

    Args:
        x: Input array
        factor: Taper strength; larger removes more high frequencies
        axis: Axis to filter

    Returns:
        Filtered array, same shape as ``x``
    """
    x = np.asarray(x, dtype=np.float64)
    n = x.shape[axis]
    if n < 2:
        return x.copy()
    spectrum = np.fft.rfft(x, axis=axis)
    half = n // 2
    u = np.linspace(0.0, 1.0, half)
    taper = np.ones(spectrum.shape[axis], dtype=np.float64)
    taper[1:half + 1] = np.exp(-(u ** 2) * factor ** 2 / 2.0)
    shape = [1] * x.ndim
    shape[axis] = len(taper)
    spectrum = spectrum * taper.reshape(shape)
    return np.fft.irfft(spectrum, n=n, axis=axis)


def lowpass_wavelet_threshold(spectra: np.ndarray, levels: int = 3) -> np.ndarray:
    """Replace every elution profile by its MODWT smooth; m/z is untouched."""
    if spectra.shape[0] == 0:
        return spectra.copy()
    return wavelet_smooth(spectra, levels, axis=0)


def lowpass_fft(spectra: np.ndarray, elution_factor: float = 12.0,
                spectrum_factor: float = 8.0) -> np.ndarray:
    """FFT taper along elution, then along m/z."""
    out = fft_smooth(spectra, elution_factor, axis=0)
    return fft_smooth(out, spectrum_factor, axis=1)


def lowpass_smooth_a_little(spectra: np.ndarray) -> np.ndarray:
    return smooth_elution(np.ascontiguousarray(spectra, dtype=np.float64))


def get_lowpass(params: SmoothingParams) -> LowPass:
    """Return the configured low-pass filter as a ``matrix -> matrix`` callable.

    Raises:
        ValueError: Unknown low-pass type
    """
    if params.lowpass == LowPassType.WAVELET_THRESHOLD:
        levels = params.threshold_levels
        return lambda spectra: lowpass_wavelet_threshold(spectra, levels)
    elif params.lowpass == LowPassType.FFT:
        elution = params.fft_elution_factor
        spectrum = params.fft_spectrum_factor
        return lambda spectra: lowpass_fft(spectra, elution, spectrum)
    elif params.lowpass == LowPassType.SMOOTH_A_LITTLE:
        return lowpass_smooth_a_little
    elif params.lowpass == LowPassType.NONE:
        return lambda spectra: np.array(spectra, dtype=np.float64, copy=True)
    else:
        raise ValueError(f"Unknown low-pass type: {params.lowpass}")
