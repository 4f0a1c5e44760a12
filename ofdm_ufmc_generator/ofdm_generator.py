"""
CP-OFDM frame synthesis.

Frame layout: preamble (N) | zero guard (Ncp) | numSyms x [CP (Ncp) | symbol (N)].

Symbols are consumed in interval-major order: interval t carries QAM symbols
[t * U, (t + 1) * U), placed onto the used bins in ascending bin order.
"""

import logging
from datetime import datetime
from typing import Dict, Optional, Union

import numpy as np

from .error_handling import PreconditionError
from .gpu_backend import GPUBackend
from .models import NumerologyConfig, OFDMFrameMetadata, TransmitFrame
from .preamble import PreambleGenerator
from .qam_mapper import QAMMapper
from .subcarrier_manager import SubcarrierManager

logger = logging.getLogger(__name__)


class OFDMGenerator:
    """Cyclic-prefix OFDM transmitter.

    Maps a payload bit sequence onto QAM symbols, synthesizes every data
    interval with a centred inverse DFT, prepends the cyclic prefix and
    assembles the frame behind the synchronization preamble.
    """

    def __init__(self, numerology: NumerologyConfig, gpu_backend: Optional[GPUBackend] = None):
        """Initialize OFDM generator.

        Args:
            numerology: Numerology parameters
            gpu_backend: GPU backend for acceleration (NumPy backend if None)
        """
        self.numerology = numerology
        self.gpu_backend = gpu_backend or GPUBackend(force_cpu=True)

        self.subcarrier_manager = SubcarrierManager(numerology)
        self.qam_mapper = QAMMapper(numerology.modulation_order)
        self.preamble_generator = PreambleGenerator(
            numerology.fft_size, numerology.preamble_type
        )

        logger.info(
            f"OFDMGenerator initialized: N={numerology.fft_size}, CP={numerology.cp_length}, "
            f"U={numerology.num_used_tones}, M={numerology.modulation_order}, "
            f"backend={'GPU' if self.gpu_backend.is_gpu_available else 'CPU'}"
        )

    @property
    def guard_length(self) -> int:
        """Zero guard between preamble and data."""
        return self.numerology.cp_length

    @property
    def symbol_length(self) -> int:
        """Samples per data interval (N + Ncp)."""
        return self.numerology.fft_size + self.numerology.cp_length

    @property
    def frame_length(self) -> int:
        """Total frame length in samples."""
        return (
            self.numerology.fft_size
            + self.guard_length
            + self.numerology.num_symbols * self.symbol_length
        )

    def map_payload(self, bits) -> np.ndarray:
        """Map payload bits to a [num_symbols x U] symbol grid.

        Raises:
            PreconditionError: If the bit count does not fill the frame exactly
        """
        numerology = self.numerology
        bits = np.asarray(bits)

        if bits.size % numerology.bits_per_interval != 0:
            raise PreconditionError(
                f"Bit sequence length {bits.size} is not a multiple of "
                f"U * log2(M) = {numerology.bits_per_interval}",
                "bits",
            )
        if bits.size != numerology.required_num_bits:
            raise PreconditionError(
                f"Bit sequence carries {bits.size // numerology.bits_per_interval} symbol "
                f"intervals, frame expects {numerology.num_symbols} "
                f"({numerology.required_num_bits} bits)",
                "bits",
            )

        symbols = self.qam_mapper.map(bits)
        return symbols.reshape(numerology.num_symbols, numerology.num_used_tones)

    def modulate_symbol(self, data: np.ndarray) -> Union[np.ndarray, "cp.ndarray"]:
        """Synthesize one interval without cyclic prefix.

        Args:
            data: U QAM symbols for this interval

        Returns:
            Time-domain block of length N
        """
        spectrum = self.gpu_backend.allocate_signal_memory(self.numerology.fft_size)
        spectrum[self.subcarrier_manager.used_positions] = self.gpu_backend.to_gpu(data)
        return self.gpu_backend.perform_centered_ifft(spectrum)

    def generate_frame(self, bits, rng: Optional[np.random.Generator] = None) -> TransmitFrame:
        """Build a complete OFDM frame.

        Args:
            bits: Payload bits, exactly ``numerology.required_num_bits`` long
            rng: Random generator for the preamble

        Returns:
            TransmitFrame with the waveform and OFDMFrameMetadata

        Raises:
            PreconditionError: If the payload length is wrong
        """
        numerology = self.numerology
        grid = self.map_payload(bits)
        preamble = self.preamble_generator.generate(rng)

        n_fft = numerology.fft_size
        n_cp = numerology.cp_length
        frame = self.gpu_backend.allocate_signal_memory(self.frame_length)
        frame[:n_fft] = self.gpu_backend.match_device(preamble, frame)

        offset = n_fft + self.guard_length
        for interval in range(numerology.num_symbols):
            block = self.gpu_backend.match_device(self.modulate_symbol(grid[interval]), frame)
            if n_cp:
                frame[offset : offset + n_cp] = block[-n_cp:]
            frame[offset + n_cp : offset + self.symbol_length] = block
            offset += self.symbol_length

        waveform = self.gpu_backend.to_cpu(frame)
        self.gpu_backend.cleanup_memory()

        metadata = OFDMFrameMetadata(
            fft_bins=self.subcarrier_manager.get_bin_axis(),
            used_bins=self.subcarrier_manager.used_bins,
            bits_per_symbol=numerology.bits_per_symbol,
            modulation_order=numerology.modulation_order,
            fft_size=n_fft,
            cp_length=n_cp,
            num_used_tones=numerology.num_used_tones,
            num_symbols=numerology.num_symbols,
            preamble=preamble,
            preamble_type=numerology.preamble_type,
            guard_length=self.guard_length,
            frame_length=int(waveform.size),
            sampling_rate=numerology.sampling_rate,
        )

        logger.info(
            f"Generated OFDM frame: {numerology.num_symbols} symbols, "
            f"{waveform.size} samples"
        )

        return TransmitFrame(
            waveform=waveform,
            metadata=metadata,
            scheme="OFDM",
            generation_timestamp=datetime.now(),
        )

    def get_frame_parameters(self) -> Dict[str, Union[int, float]]:
        """Get derived frame parameters.

        Returns:
            Dictionary with frame structure parameters
        """
        return {
            "fft_size": self.numerology.fft_size,
            "cp_length": self.numerology.cp_length,
            "cp_duration_us": 1e6 * self.numerology.cp_duration,
            "symbol_length": self.symbol_length,
            "guard_length": self.guard_length,
            "frame_length": self.frame_length,
            "bits_per_frame": self.numerology.required_num_bits,
            "subcarrier_spacing": self.numerology.subcarrier_spacing,
        }

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit with automatic cleanup."""
        self.gpu_backend.cleanup_memory()

    def __repr__(self) -> str:
        """String representation of OFDMGenerator."""
        return (
            f"OFDMGenerator(fft_size={self.numerology.fft_size}, "
            f"cp={self.numerology.cp_length}, symbols={self.numerology.num_symbols}, "
            f"backend={'GPU' if self.gpu_backend.is_gpu_available else 'CPU'})"
        )
