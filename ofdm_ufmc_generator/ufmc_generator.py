"""
UFMC frame synthesis.

Frame layout: preamble (N) | zero guard (L - 1) | numSyms x [filtered block (N + L - 1)].

Per interval every subband is synthesized on its own (centred inverse DFT,
no cyclic prefix), convolved with the prototype shifted to the subband
centre, and the S filtered blocks are summed. Blocks are concatenated without
gaps; the filter ramps take the place of the cyclic prefix. The preamble is
inserted unfiltered to keep its correlation structure.
"""

import logging
from datetime import datetime
from typing import Dict, Optional, Union

import numpy as np

from .error_handling import PreconditionError
from .filter_design import PrototypeFilterDesigner, frequency_shift
from .gpu_backend import GPUBackend
from .models import NumerologyConfig, TransmitFrame, UFMCConfig, UFMCFrameMetadata
from .preamble import PreambleGenerator
from .qam_mapper import QAMMapper
from .subcarrier_manager import SubcarrierManager, bins_to_positions
from .validation import ConfigValidator

logger = logging.getLogger(__name__)


class UFMCGenerator:
    """Universal Filtered Multi-Carrier transmitter.

    The subband partition and the shifted subband filters are computed once
    at construction; every frame reuses them.
    """

    def __init__(
        self,
        numerology: NumerologyConfig,
        ufmc_config: Optional[UFMCConfig] = None,
        gpu_backend: Optional[GPUBackend] = None,
    ):
        """Initialize UFMC generator.

        Args:
            numerology: Numerology parameters (cp_length is unused)
            ufmc_config: Subband filtering parameters (built-in defaults if None)
            gpu_backend: GPU backend for acceleration (NumPy backend if None)
        """
        self.numerology = numerology
        self.ufmc_config = ufmc_config or UFMCConfig()
        self.gpu_backend = gpu_backend or GPUBackend(force_cpu=True)

        ConfigValidator.validate_parameter_compatibility(numerology, self.ufmc_config)

        self.subcarrier_manager = SubcarrierManager(numerology)
        self.layout = self.subcarrier_manager.get_subband_layout(self.ufmc_config)
        self.qam_mapper = QAMMapper(numerology.modulation_order)
        self.preamble_generator = PreambleGenerator(
            numerology.fft_size, numerology.preamble_type
        )

        designer = PrototypeFilterDesigner(
            self.ufmc_config.filter_length, self.ufmc_config.stopband_attenuation_db
        )
        self.prototype_filter = designer.design_for_subband(
            self.layout.tones_per_subband, numerology.fft_size
        )
        self.subband_filters = np.stack(
            [
                frequency_shift(self.prototype_filter, int(center), numerology.fft_size)
                for center in self.layout.center_bins
            ]
        )

        logger.info(
            f"UFMCGenerator initialized: N={numerology.fft_size}, "
            f"{self.layout.num_subbands} subbands x {self.layout.tones_per_subband} tones, "
            f"L={self.ufmc_config.filter_length}, "
            f"A={self.ufmc_config.stopband_attenuation_db} dB"
        )

    @property
    def guard_length(self) -> int:
        """Zero guard between preamble and data (filter transient)."""
        return self.ufmc_config.filter_length - 1

    @property
    def symbol_length(self) -> int:
        """Samples per data interval (N + L - 1)."""
        return self.numerology.fft_size + self.ufmc_config.filter_length - 1

    @property
    def frame_length(self) -> int:
        """Total frame length in samples."""
        return (
            self.numerology.fft_size
            + self.guard_length
            + self.numerology.num_symbols * self.symbol_length
        )

    @property
    def bits_per_interval(self) -> int:
        """Bits carried by one interval after subband truncation."""
        return self.layout.num_effective_tones * self.numerology.bits_per_symbol

    @property
    def required_num_bits(self) -> int:
        """Payload size of one UFMC frame in bits."""
        return self.numerology.num_symbols * self.bits_per_interval

    def map_payload(self, bits) -> np.ndarray:
        """Map payload bits to a [num_symbols x S x tones_per_subband] grid.

        Raises:
            PreconditionError: If the bit count does not fill the frame exactly
        """
        bits = np.asarray(bits)

        if bits.size % self.bits_per_interval != 0:
            raise PreconditionError(
                f"Bit sequence length {bits.size} is not a multiple of "
                f"effective tones * log2(M) = {self.bits_per_interval}",
                "bits",
            )
        if bits.size != self.required_num_bits:
            raise PreconditionError(
                f"Bit sequence carries {bits.size // self.bits_per_interval} symbol "
                f"intervals, frame expects {self.numerology.num_symbols} "
                f"({self.required_num_bits} bits)",
                "bits",
            )

        symbols = self.qam_mapper.map(bits)
        return symbols.reshape(
            self.numerology.num_symbols, self.layout.num_subbands, self.layout.tones_per_subband
        )

    def modulate_subband(
        self, subband: int, data: np.ndarray
    ) -> Union[np.ndarray, "cp.ndarray"]:
        """Synthesize and filter one subband of one interval.

        Args:
            subband: Subband index m
            data: tones_per_subband QAM symbols for subband m

        Returns:
            Filtered block of length N + L - 1
        """
        n_fft = self.numerology.fft_size
        spectrum = self.gpu_backend.allocate_signal_memory(n_fft)
        positions = bins_to_positions(self.layout.subband_bins[subband], n_fft)
        spectrum[positions] = self.gpu_backend.to_gpu(data)

        time_signal = self.gpu_backend.perform_centered_ifft(spectrum)
        return self.gpu_backend.convolve(time_signal, self.subband_filters[subband])

    def modulate_symbol(self, data: np.ndarray) -> Union[np.ndarray, "cp.ndarray"]:
        """Sum of all filtered subbands for one interval.

        Args:
            data: [S x tones_per_subband] QAM symbols

        Returns:
            Combined block of length N + L - 1
        """
        combined = self.gpu_backend.allocate_signal_memory(self.symbol_length)
        for subband in range(self.layout.num_subbands):
            block = self.modulate_subband(subband, data[subband])
            combined += self.gpu_backend.match_device(block, combined)
        return combined

    def generate_frame(self, bits, rng: Optional[np.random.Generator] = None) -> TransmitFrame:
        """Build a complete UFMC frame.

        Args:
            bits: Payload bits, exactly ``required_num_bits`` long
            rng: Random generator for the preamble

        Returns:
            TransmitFrame with the waveform and UFMCFrameMetadata

        Raises:
            PreconditionError: If the payload length is wrong
        """
        numerology = self.numerology
        grid = self.map_payload(bits)
        preamble = self.preamble_generator.generate(rng)

        n_fft = numerology.fft_size
        frame = self.gpu_backend.allocate_signal_memory(self.frame_length)
        frame[:n_fft] = self.gpu_backend.match_device(preamble, frame)

        offset = n_fft + self.guard_length
        for interval in range(numerology.num_symbols):
            block = self.modulate_symbol(grid[interval])
            frame[offset : offset + self.symbol_length] = self.gpu_backend.match_device(
                block, frame
            )
            offset += self.symbol_length

        waveform = self.gpu_backend.to_cpu(frame)
        self.gpu_backend.cleanup_memory()

        metadata = UFMCFrameMetadata(
            num_subbands=self.layout.num_subbands,
            tones_per_subband=self.layout.tones_per_subband,
            subband_bins=self.layout.subband_bins.copy(),
            center_bins=self.layout.center_bins.copy(),
            used_bins=self.layout.used_bins.copy(),
            num_dropped_tones=self.layout.num_dropped_tones,
            filter_length=self.ufmc_config.filter_length,
            stopband_attenuation_db=self.ufmc_config.stopband_attenuation_db,
            prototype_filter=self.prototype_filter.copy(),
            bits_per_symbol=numerology.bits_per_symbol,
            modulation_order=numerology.modulation_order,
            fft_size=n_fft,
            num_symbols=numerology.num_symbols,
            preamble=preamble,
            preamble_type=numerology.preamble_type,
            guard_length=self.guard_length,
            frame_length=int(waveform.size),
            sampling_rate=numerology.sampling_rate,
        )

        logger.info(
            f"Generated UFMC frame: {numerology.num_symbols} symbols, "
            f"{self.layout.num_subbands} x {self.layout.tones_per_subband} tones, "
            f"{waveform.size} samples"
        )

        return TransmitFrame(
            waveform=waveform,
            metadata=metadata,
            scheme="UFMC",
            generation_timestamp=datetime.now(),
        )

    def get_frame_parameters(self) -> Dict[str, Union[int, float]]:
        """Get derived frame parameters.

        Returns:
            Dictionary with frame structure parameters
        """
        return {
            "fft_size": self.numerology.fft_size,
            "num_subbands": self.layout.num_subbands,
            "tones_per_subband": self.layout.tones_per_subband,
            "num_dropped_tones": self.layout.num_dropped_tones,
            "filter_length": self.ufmc_config.filter_length,
            "stopband_attenuation_db": self.ufmc_config.stopband_attenuation_db,
            "symbol_length": self.symbol_length,
            "guard_length": self.guard_length,
            "frame_length": self.frame_length,
            "bits_per_frame": self.required_num_bits,
        }

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit with automatic cleanup."""
        self.gpu_backend.cleanup_memory()

    def __repr__(self) -> str:
        """String representation of UFMCGenerator."""
        return (
            f"UFMCGenerator(fft_size={self.numerology.fft_size}, "
            f"subbands={self.layout.num_subbands}, L={self.ufmc_config.filter_length}, "
            f"backend={'GPU' if self.gpu_backend.is_gpu_available else 'CPU'})"
        )
