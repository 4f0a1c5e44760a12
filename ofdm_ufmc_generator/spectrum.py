"""
Spectral estimation and frame statistics.

Welch PSD on a centred (two-sided) frequency axis, out-of-band power relative
to the allocated band, and simple power statistics of a waveform.
"""

import logging
from typing import Dict, Optional

import numpy as np
from scipy import signal

logger = logging.getLogger(__name__)


def estimate_psd(
    waveform: np.ndarray,
    sampling_rate: float,
    segment_length: int = 2048,
    overlap: int = 1024,
    nfft: int = 4096,
) -> Dict[str, np.ndarray]:
    """Estimate the two-sided power spectral density with Welch's method.

    Segments shorter than ``segment_length`` are used when the waveform is
    shorter; overlap and FFT length shrink accordingly.

    Args:
        waveform: Complex baseband samples
        sampling_rate: Sampling rate in Hz
        segment_length: Hann window length
        overlap: Samples shared by adjacent segments
        nfft: FFT length per segment

    Returns:
        Dictionary with ``frequency`` (Hz, ascending, centred on 0) and
        ``psd`` (power per Hz)
    """
    waveform = np.asarray(waveform)
    if waveform.size == 0:
        raise ValueError("Cannot estimate the PSD of an empty waveform")

    nperseg = min(segment_length, waveform.size)
    noverlap = min(overlap, nperseg - 1)
    nfft = max(nfft, nperseg)

    frequency, psd = signal.welch(
        waveform,
        fs=sampling_rate,
        window="hann",
        nperseg=nperseg,
        noverlap=noverlap,
        nfft=nfft,
        detrend=False,
        return_onesided=False,
        scaling="density",
    )

    logger.debug(
        f"Welch PSD: {waveform.size} samples, nperseg={nperseg}, "
        f"noverlap={noverlap}, nfft={nfft}"
    )

    return {"frequency": np.fft.fftshift(frequency), "psd": np.fft.fftshift(psd)}


def psd_to_db(psd: np.ndarray) -> np.ndarray:
    """Convert a PSD to dB, flooring at machine epsilon."""
    return 10 * np.log10(np.asarray(psd) + np.finfo(float).eps)


def out_of_band_power_ratio(
    frequency: np.ndarray,
    psd: np.ndarray,
    used_bins: np.ndarray,
    subcarrier_spacing: float,
    margin_bins: float = 0.0,
) -> float:
    """Fraction of the estimated power falling outside the allocated band.

    The band spans from the lowest to the highest used bin, widened by half a
    subcarrier plus ``margin_bins`` on each edge.

    Args:
        frequency: Centred frequency axis in Hz
        psd: PSD values on that axis
        used_bins: Signed indices of the occupied bins
        subcarrier_spacing: Bin spacing in Hz
        margin_bins: Extra guard, in bins, counted as in-band

    Returns:
        Out-of-band power divided by total power
    """
    used_bins = np.asarray(used_bins)
    low = (used_bins.min() - 0.5 - margin_bins) * subcarrier_spacing
    high = (used_bins.max() + 0.5 + margin_bins) * subcarrier_spacing

    total = float(np.sum(psd))
    if total == 0:
        return 0.0

    outside = (frequency < low) | (frequency > high)
    return float(np.sum(psd[outside]) / total)


def analyze_frame(waveform: np.ndarray, start: int = 0, stop: Optional[int] = None) -> Dict[str, float]:
    """Compute power statistics over a waveform segment.

    Args:
        waveform: Complex baseband samples
        start: First sample of the analyzed segment
        stop: End of the segment (exclusive, defaults to the end)

    Returns:
        Dictionary with mean_power, peak_power, papr_db and rms_amplitude
    """
    segment = np.asarray(waveform)[start:stop]
    if segment.size == 0:
        raise ValueError("Cannot analyze an empty waveform segment")

    instantaneous = np.abs(segment) ** 2
    mean_power = float(np.mean(instantaneous))
    peak_power = float(np.max(instantaneous))
    papr_db = float(10 * np.log10(peak_power / mean_power)) if mean_power > 0 else 0.0

    return {
        "mean_power": mean_power,
        "peak_power": peak_power,
        "papr_db": papr_db,
        "rms_amplitude": float(np.sqrt(mean_power)),
    }


class SpectrumAnalyzer:
    """Welch PSD estimator with fixed segment parameters."""

    def __init__(self, segment_length: int = 2048, overlap: int = 1024, nfft: int = 4096):
        if segment_length <= 0:
            raise ValueError("segment_length must be positive")
        if not 0 <= overlap < segment_length:
            raise ValueError("overlap must be in range [0, segment_length)")
        if nfft < segment_length:
            raise ValueError("nfft must be >= segment_length")

        self.segment_length = segment_length
        self.overlap = overlap
        self.nfft = nfft

    @classmethod
    def from_config(cls, spectrum_config: Dict[str, int]) -> "SpectrumAnalyzer":
        """Build from the ``[spectrum]`` configuration section."""
        return cls(
            segment_length=spectrum_config["segment_length"],
            overlap=spectrum_config["overlap"],
            nfft=spectrum_config["nfft"],
        )

    def estimate(self, waveform: np.ndarray, sampling_rate: float) -> Dict[str, np.ndarray]:
        """Estimate the centred PSD of a waveform."""
        return estimate_psd(waveform, sampling_rate, self.segment_length, self.overlap, self.nfft)

    def analyze(self, frame, margin_bins: float = 0.0) -> Dict[str, object]:
        """PSD, out-of-band ratio and power statistics of a TransmitFrame.

        The PSD covers the whole frame; the out-of-band ratio and the power
        statistics cover the data segment only.
        """
        meta = frame.metadata
        spacing = meta.sampling_rate / meta.fft_size

        analysis = dict(self.estimate(frame.waveform, meta.sampling_rate))

        data_spectrum = self.estimate(frame.data_segment, meta.sampling_rate)
        analysis["out_of_band_ratio"] = out_of_band_power_ratio(
            data_spectrum["frequency"], data_spectrum["psd"], meta.used_bins, spacing, margin_bins
        )
        analysis.update(analyze_frame(frame.data_segment))
        return analysis

    def __repr__(self) -> str:
        return (
            f"SpectrumAnalyzer(segment_length={self.segment_length}, "
            f"overlap={self.overlap}, nfft={self.nfft})"
        )
