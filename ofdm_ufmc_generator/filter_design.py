"""
Prototype FIR design for UFMC subband filtering.

One real linear-phase lowpass is designed per frame with a Dolph-Chebyshev
window, so all sidelobes sit at or below the requested attenuation. The
cutoff, normalized to Nyquist, is tones_per_subband / N; the two-sided
passband therefore spans one subband. Each subband uses a copy modulated to
its centre bin.
"""

import logging
from typing import Dict

import numpy as np
from scipy import signal

logger = logging.getLogger(__name__)


class PrototypeFilterDesigner:
    """Designs the shared Dolph-Chebyshev windowed lowpass prototype."""

    def __init__(self, filter_length: int = 43, stopband_attenuation_db: float = 60.0):
        """Initialize filter designer.

        Args:
            filter_length: Number of taps L (odd)
            stopband_attenuation_db: Sidelobe attenuation A in dB
        """
        if filter_length < 1 or filter_length % 2 == 0:
            raise ValueError(f"filter_length must be odd and positive, got {filter_length}")
        if stopband_attenuation_db <= 0:
            raise ValueError("stopband_attenuation_db must be positive")

        self.filter_length = int(filter_length)
        self.stopband_attenuation_db = float(stopband_attenuation_db)

    def design(self, cutoff: float) -> np.ndarray:
        """Design the lowpass prototype.

        Args:
            cutoff: Cutoff normalized to Nyquist, in (0, 1)

        Returns:
            Real coefficients of length L with unit DC gain
        """
        if not 0 < cutoff < 1:
            raise ValueError(f"cutoff must be in range (0, 1), got {cutoff}")

        taps = signal.firwin(
            self.filter_length,
            cutoff,
            window=("chebwin", self.stopband_attenuation_db),
            pass_zero="lowpass",
            scale=True,
        )

        logger.debug(
            f"Designed prototype: L={self.filter_length}, cutoff={cutoff:.4f}, "
            f"A={self.stopband_attenuation_db} dB"
        )

        return taps

    def design_for_subband(self, tones_per_subband: int, fft_size: int) -> np.ndarray:
        """Design a prototype whose passband matches one subband."""
        return self.design(tones_per_subband / fft_size)

    def window(self) -> np.ndarray:
        """The Dolph-Chebyshev window used by the design."""
        return signal.windows.chebwin(self.filter_length, self.stopband_attenuation_db)

    def __repr__(self) -> str:
        """String representation of PrototypeFilterDesigner."""
        return (
            f"PrototypeFilterDesigner(length={self.filter_length}, "
            f"attenuation={self.stopband_attenuation_db}dB)"
        )


def frequency_shift(prototype: np.ndarray, center_bin: int, fft_size: int) -> np.ndarray:
    """Modulate the prototype to a subband centre.

    g_m[n] = g[n] * exp(j 2 pi (k_c / N) n), n = 0 .. L - 1
    """
    n = np.arange(prototype.size)
    return prototype * np.exp(1j * 2 * np.pi * (center_bin / fft_size) * n)


def frequency_response(taps: np.ndarray, num_points: int = 4096) -> Dict[str, np.ndarray]:
    """Two-sided magnitude response on a centred normalized-frequency grid.

    Returns:
        Dictionary with ``frequency`` in cycles/sample [-0.5, 0.5) and
        ``magnitude_db``
    """
    frequency, response = signal.freqz(taps, worN=num_points, whole=True)
    frequency = np.fft.fftshift(frequency / (2 * np.pi))
    frequency = np.where(frequency >= 0.5, frequency - 1.0, frequency)
    magnitude = np.fft.fftshift(np.abs(response))
    return {
        "frequency": frequency,
        "magnitude_db": 20 * np.log10(magnitude / np.max(magnitude) + 1e-15),
    }
