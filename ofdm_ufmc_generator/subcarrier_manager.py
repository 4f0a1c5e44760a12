"""
Subcarrier bin allocation for OFDM and UFMC frames.

Bins are signed indices in the centred convention [-N/2, N/2 - 1]. The used
set sits symmetrically around DC with DC itself always empty:
{-ceil(U/2), ..., -1} U {1, ..., floor(U/2)}, in ascending order. UFMC further
splits the used set into equal-width contiguous subbands.
"""

import logging
from typing import Dict, Union

import numpy as np

from .models import NumerologyConfig, SubbandLayout, TruncationPolicy, UFMCConfig

logger = logging.getLogger(__name__)


def allocate_used_bins(fft_size: int, num_used_tones: int) -> np.ndarray:
    """Return the DC-excluded symmetric bin set for U used tones.

    Args:
        fft_size: Transform size N
        num_used_tones: Number of used tones U (U < N - 1)

    Returns:
        Ascending signed bin indices of length U

    Raises:
        ValueError: If U does not fit in the transform
    """
    if num_used_tones < 0 or num_used_tones >= fft_size - 1:
        raise ValueError(
            f"num_used_tones ({num_used_tones}) must be in range [0, fft_size - 1) "
            f"for fft_size={fft_size}"
        )

    num_negative = -(-num_used_tones // 2)  # ceil(U / 2)
    num_positive = num_used_tones // 2
    negative = np.arange(-num_negative, 0, dtype=np.int64)
    positive = np.arange(1, num_positive + 1, dtype=np.int64)
    return np.concatenate([negative, positive])


def centered_bin_axis(fft_size: int) -> np.ndarray:
    """Signed bin index of every position of a centred length-N vector."""
    return np.arange(-(fft_size // 2), fft_size - fft_size // 2, dtype=np.int64)


def bins_to_positions(bins: np.ndarray, fft_size: int) -> np.ndarray:
    """Array positions of signed bins within a centred length-N vector."""
    return np.asarray(bins, dtype=np.int64) + fft_size // 2


def round_half_away(values: Union[float, np.ndarray]) -> np.ndarray:
    """Round to the nearest integer, halves away from zero."""
    values = np.asarray(values, dtype=np.float64)
    return (np.sign(values) * np.floor(np.abs(values) + 0.5)).astype(np.int64)


def partition_subbands(
    fft_size: int,
    num_used_tones: int,
    num_subbands: int,
    truncation: TruncationPolicy = TruncationPolicy.HIGHEST,
) -> SubbandLayout:
    """Split the used bins into equal-width contiguous subbands.

    tones_per_subband = floor(U / S). When S does not divide U, the excess
    tones are dropped and a warning is logged: with ``HIGHEST`` the last
    entries of the ascending bin set go, with ``SYMMETRIC`` the set is rebuilt
    around DC for the reduced count so tones leave from both edges.

    Args:
        fft_size: Transform size N
        num_used_tones: Number of used tones U
        num_subbands: Number of subbands S
        truncation: Policy for dropping excess tones

    Returns:
        SubbandLayout with one row of bins per subband

    Raises:
        ValueError: If S is not in range [1, U]
    """
    if num_subbands < 1 or num_subbands > num_used_tones:
        raise ValueError(
            f"num_subbands ({num_subbands}) must be in range [1, {num_used_tones}]"
        )

    tones_per_subband = num_used_tones // num_subbands
    num_effective = tones_per_subband * num_subbands
    num_dropped = num_used_tones - num_effective

    if num_dropped > 0:
        logger.warning(
            f"UFMC: Dropping {num_dropped} tones to fit {num_subbands} subbands evenly "
            f"({truncation.value} policy)."
        )

    if truncation == TruncationPolicy.SYMMETRIC:
        used_bins = allocate_used_bins(fft_size, num_effective)
    else:
        used_bins = allocate_used_bins(fft_size, num_used_tones)[:num_effective]

    # Row m holds entries [m * tps, (m + 1) * tps) of the ascending bin set
    subband_bins = used_bins.reshape(num_subbands, tones_per_subband)
    center_bins = round_half_away(subband_bins.mean(axis=1))

    logger.debug(
        f"Subband partition: {num_subbands} x {tones_per_subband} tones, "
        f"centres={center_bins.tolist()}"
    )

    return SubbandLayout(
        used_bins=used_bins,
        subband_bins=subband_bins,
        center_bins=center_bins,
        tones_per_subband=tones_per_subband,
        num_dropped_tones=num_dropped,
    )


class SubcarrierManager:
    """Bin allocation bound to one numerology.

    Provides the OFDM used-bin set and, for UFMC, the subband partition,
    together with the helpers that place symbols into a centred spectrum.
    """

    def __init__(self, numerology: NumerologyConfig):
        """Initialize subcarrier manager.

        Args:
            numerology: Numerology parameters
        """
        self.numerology = numerology
        self._used_bins = allocate_used_bins(numerology.fft_size, numerology.num_used_tones)

        logger.debug(
            f"SubcarrierManager initialized: N={numerology.fft_size}, "
            f"U={numerology.num_used_tones}, "
            f"bins=[{self._used_bins[0]}, {self._used_bins[-1]}]"
        )

    @property
    def fft_size(self) -> int:
        """Transform size N."""
        return self.numerology.fft_size

    @property
    def used_bins(self) -> np.ndarray:
        """OFDM used-bin set (copy)."""
        return self._used_bins.copy()

    @property
    def used_positions(self) -> np.ndarray:
        """Positions of the OFDM used bins in a centred length-N vector."""
        return bins_to_positions(self._used_bins, self.fft_size)

    def get_bin_axis(self) -> np.ndarray:
        """Signed bin index of every centred spectrum position."""
        return centered_bin_axis(self.fft_size)

    def get_subband_layout(self, ufmc_config: UFMCConfig) -> SubbandLayout:
        """Partition the used tones according to the UFMC settings."""
        return partition_subbands(
            self.fft_size,
            self.numerology.num_used_tones,
            ufmc_config.num_subbands,
            ufmc_config.truncation,
        )

    def get_allocation_info(self) -> Dict[str, Union[int, float, list]]:
        """Get a summary of the OFDM allocation.

        Returns:
            Dictionary with allocation parameters
        """
        spacing = self.numerology.subcarrier_spacing
        return {
            "fft_size": self.fft_size,
            "num_used_tones": int(self._used_bins.size),
            "num_negative_bins": int(np.sum(self._used_bins < 0)),
            "num_positive_bins": int(np.sum(self._used_bins > 0)),
            "lowest_bin": int(self._used_bins[0]),
            "highest_bin": int(self._used_bins[-1]),
            "subcarrier_spacing": spacing,
            "occupied_bandwidth": float(
                (self._used_bins[-1] - self._used_bins[0] + 1) * spacing
            ),
        }

    def __repr__(self) -> str:
        """String representation of SubcarrierManager."""
        return (
            f"SubcarrierManager(fft_size={self.fft_size}, "
            f"used_tones={self.numerology.num_used_tones})"
        )
