"""
Core data models for OFDM and UFMC frame synthesis.

This module defines the immutable parameter records consumed by every
component and the records describing a finished transmit frame.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Union

import numpy as np


class PreambleType(Enum):
    """Synchronization preamble variants shared by both transmit paths."""

    REPEATED_HALVES = "sc"
    SIGN_FLIPPED_QUARTERS = "park"

    @classmethod
    def parse(cls, value: Union["PreambleType", str]) -> "PreambleType":
        """Resolve an enum member, its value or its name.

        Raises:
            PreconditionError: If the selector names no known variant
        """
        if isinstance(value, cls):
            return value

        if isinstance(value, str):
            key = value.strip()
            for member in cls:
                if key.lower() == member.value or key.upper() == member.name:
                    return member

        from .error_handling import PreconditionError

        raise PreconditionError(
            f"Unknown preamble type {value!r}. Use 'sc' (repeated halves) "
            f"or 'park' (sign-flipped quarters)."
        )


class TruncationPolicy(Enum):
    """How excess tones are dropped when subbands do not divide the tone count."""

    HIGHEST = "highest"
    SYMMETRIC = "symmetric"


@dataclass(frozen=True)
class NumerologyConfig:
    """Numerology shared by the OFDM and UFMC transmitters.

    Attributes:
        sampling_rate: Sampling rate in Hz
        fft_size: Inverse transform length N
        cp_length: Cyclic prefix length in samples (OFDM only)
        num_used_tones: Number of occupied subcarriers U (DC excluded)
        modulation_order: QAM constellation size M (power of two >= 2)
        num_symbols: Number of data symbol intervals per frame
        preamble_type: Preamble variant selector
    """

    sampling_rate: float
    fft_size: int
    cp_length: int
    num_used_tones: int
    modulation_order: int
    num_symbols: int
    preamble_type: PreambleType = PreambleType.REPEATED_HALVES

    def __post_init__(self):
        """Normalize the preamble selector and validate parameters."""
        object.__setattr__(self, "preamble_type", PreambleType.parse(self.preamble_type))

        from .validation import ConfigValidator

        ConfigValidator.validate_numerology_config(self)

    @property
    def subcarrier_spacing(self) -> float:
        """Subcarrier spacing in Hz."""
        return self.sampling_rate / self.fft_size

    @property
    def bits_per_symbol(self) -> int:
        """Bits carried by one QAM symbol."""
        return int(self.modulation_order).bit_length() - 1

    @property
    def bits_per_interval(self) -> int:
        """Bits carried by one OFDM symbol interval."""
        return self.num_used_tones * self.bits_per_symbol

    @property
    def required_num_bits(self) -> int:
        """Payload size of one OFDM frame in bits."""
        return self.num_symbols * self.bits_per_interval

    @property
    def cp_duration(self) -> float:
        """Cyclic prefix duration in seconds."""
        return self.cp_length / self.sampling_rate


@dataclass(frozen=True)
class UFMCConfig:
    """Subband filtering parameters for UFMC.

    Attributes:
        num_subbands: Number of contiguous equal-width subbands
        filter_length: Prototype FIR length (odd)
        stopband_attenuation_db: Dolph-Chebyshev sidelobe attenuation in dB
        truncation: Which tones to drop when subbands do not divide the tone count
    """

    num_subbands: int = 10
    filter_length: int = 43
    stopband_attenuation_db: float = 60.0
    truncation: TruncationPolicy = TruncationPolicy.HIGHEST

    def __post_init__(self):
        """Validate parameters and normalize the truncation policy."""
        from .validation import ConfigValidator

        ConfigValidator.validate_ufmc_config(self)

        if not isinstance(self.truncation, TruncationPolicy):
            object.__setattr__(self, "truncation", TruncationPolicy(str(self.truncation).lower()))

    @property
    def transient_length(self) -> int:
        """Length of the filter transient (L - 1)."""
        return self.filter_length - 1


@dataclass(frozen=True)
class SubbandLayout:
    """Partition of the used bins into contiguous UFMC subbands.

    Attributes:
        used_bins: Truncated bin index set in ascending order
        subband_bins: Bin matrix [num_subbands x tones_per_subband], one row per subband
        center_bins: Rounded mean bin of every subband
        tones_per_subband: Bins per subband
        num_dropped_tones: Tones removed so that subbands are equally wide
    """

    used_bins: np.ndarray
    subband_bins: np.ndarray
    center_bins: np.ndarray
    tones_per_subband: int
    num_dropped_tones: int = 0

    @property
    def num_subbands(self) -> int:
        """Number of subbands."""
        return int(self.subband_bins.shape[0])

    @property
    def num_effective_tones(self) -> int:
        """Tones actually carrying data."""
        return int(self.used_bins.size)


@dataclass
class OFDMFrameMetadata:
    """Structural description of a generated OFDM frame."""

    fft_bins: np.ndarray
    used_bins: np.ndarray
    bits_per_symbol: int
    modulation_order: int
    fft_size: int
    cp_length: int
    num_used_tones: int
    num_symbols: int
    preamble: np.ndarray
    preamble_type: PreambleType
    guard_length: int
    frame_length: int
    sampling_rate: float

    @property
    def symbol_length(self) -> int:
        """Samples per data interval including the cyclic prefix."""
        return self.fft_size + self.cp_length


@dataclass
class UFMCFrameMetadata:
    """Structural description of a generated UFMC frame."""

    num_subbands: int
    tones_per_subband: int
    subband_bins: np.ndarray
    center_bins: np.ndarray
    used_bins: np.ndarray
    num_dropped_tones: int
    filter_length: int
    stopband_attenuation_db: float
    prototype_filter: np.ndarray
    bits_per_symbol: int
    modulation_order: int
    fft_size: int
    num_symbols: int
    preamble: np.ndarray
    preamble_type: PreambleType
    guard_length: int
    frame_length: int
    sampling_rate: float

    @property
    def symbol_length(self) -> int:
        """Samples per data interval including the filter tail."""
        return self.fft_size + self.filter_length - 1


@dataclass
class TransmitFrame:
    """A finished baseband frame and the metadata describing it.

    Attributes:
        waveform: Complex baseband samples (preamble, zero guard, data)
        metadata: OFDM or UFMC frame metadata
        scheme: "OFDM" or "UFMC"
        generation_timestamp: When the frame was synthesized
    """

    waveform: np.ndarray
    metadata: Union[OFDMFrameMetadata, UFMCFrameMetadata]
    scheme: str
    generation_timestamp: datetime = field(default_factory=datetime.now)

    @property
    def frame_length(self) -> int:
        """Total frame length in samples."""
        return int(self.waveform.size)

    @property
    def duration(self) -> float:
        """Frame duration in seconds."""
        return self.frame_length / self.metadata.sampling_rate

    @property
    def preamble_segment(self) -> np.ndarray:
        """View of the preamble samples."""
        return self.waveform[: self.metadata.preamble.size]

    @property
    def data_segment(self) -> np.ndarray:
        """View of the data samples following the zero guard."""
        return self.waveform[self.metadata.preamble.size + self.metadata.guard_length :]

    def get_symbol_block(self, index: int) -> np.ndarray:
        """Get the samples of one data interval.

        Args:
            index: Interval index (0-based)

        Returns:
            Block of ``metadata.symbol_length`` samples

        Raises:
            IndexError: If index is out of range
        """
        if index < 0 or index >= self.metadata.num_symbols:
            raise IndexError(
                f"Symbol index {index} out of range [0, {self.metadata.num_symbols - 1}]"
            )
        length = self.metadata.symbol_length
        return self.data_segment[index * length : (index + 1) * length]


def describe_frame(frame: TransmitFrame, extra: Optional[dict] = None) -> dict:
    """Summarize frame structure as plain Python values."""
    meta = frame.metadata
    summary = {
        "scheme": frame.scheme,
        "frame_length": frame.frame_length,
        "duration_s": frame.duration,
        "fft_size": meta.fft_size,
        "num_symbols": meta.num_symbols,
        "modulation_order": meta.modulation_order,
        "preamble_type": meta.preamble_type.value,
        "guard_length": meta.guard_length,
    }
    if isinstance(meta, UFMCFrameMetadata):
        summary.update(
            {
                "num_subbands": meta.num_subbands,
                "tones_per_subband": meta.tones_per_subband,
                "num_dropped_tones": meta.num_dropped_tones,
                "filter_length": meta.filter_length,
            }
        )
    else:
        summary.update({"cp_length": meta.cp_length, "num_used_tones": meta.num_used_tones})
    if extra:
        summary.update(extra)
    return summary
