"""
Main interface and high-level API for the OFDM/UFMC waveform generator.

This module ties configuration, the compute backend and both transmitters
together. It draws the payload from a seeded generator, builds an OFDM and a
UFMC frame from the same bits, and formats the console summary.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import numpy as np

from .config_manager import get_config
from .error_handling import ErrorHandler, create_error_context
from .gpu_backend import GPUBackend
from .models import NumerologyConfig, TransmitFrame, UFMCConfig, describe_frame
from .ofdm_generator import OFDMGenerator
from .signal_export import FrameExporter, SignalVisualizer
from .spectrum import SpectrumAnalyzer
from .ufmc_generator import UFMCGenerator

logger = logging.getLogger(__name__)

PACKAGE_LOGGER = "ofdm_ufmc_generator"


class MulticarrierTransmitter:
    """Main interface for OFDM and UFMC frame generation.

    Loads the numerology and UFMC settings from the TOML configuration (or
    takes them explicitly), owns the seeded random generator, and builds
    frames of both schemes on a shared compute backend.
    """

    def __init__(
        self,
        config_file: Optional[str] = None,
        numerology: Optional[NumerologyConfig] = None,
        ufmc_config: Optional[UFMCConfig] = None,
        enable_gpu: Optional[bool] = None,
        random_seed: Optional[int] = None,
        create_default_config: bool = True,
    ):
        """Initialize the transmitter.

        Args:
            config_file: Path to configuration file (uses config.toml if None)
            numerology: Numerology object (loads from config if None)
            ufmc_config: UFMC settings object (loads from config if None)
            enable_gpu: Force GPU enable/disable (uses config setting if None)
            random_seed: Seed of the payload and preamble generator (config if None)
            create_default_config: Create default config file if it doesn't exist

        Raises:
            RuntimeError: If system initialization fails
        """
        self._error_handler = ErrorHandler()

        try:
            self.config_manager = get_config(config_file, create_default_config)

            level = self.config_manager.get_logging_config()["level"]
            logging.getLogger(PACKAGE_LOGGER).setLevel(getattr(logging, level, logging.INFO))

            self.numerology = numerology or self.config_manager.create_numerology_config_object()
            self.ufmc_config = ufmc_config or self.config_manager.create_ufmc_config_object()

            if enable_gpu is None:
                enable_gpu = self.config_manager.get_gpu_config()["enable_gpu"]
            self.gpu_backend = GPUBackend(force_cpu=not enable_gpu)

            if random_seed is None:
                random_seed = self.config_manager.get_defaults_config()["random_seed"]
            self.random_seed = random_seed
            self.rng = np.random.default_rng(random_seed)

            self.ofdm_generator = OFDMGenerator(self.numerology, self.gpu_backend)
            self.ufmc_generator = UFMCGenerator(self.numerology, self.ufmc_config, self.gpu_backend)
            self.spectrum_analyzer = SpectrumAnalyzer.from_config(
                self.config_manager.get_spectrum_config()
            )

            self._last_frames: Optional[Tuple[TransmitFrame, TransmitFrame]] = None

            logger.info(
                f"MulticarrierTransmitter initialized: N={self.numerology.fft_size}, "
                f"U={self.numerology.num_used_tones}, M={self.numerology.modulation_order}, "
                f"seed={random_seed}, "
                f"backend={'GPU' if self.gpu_backend.is_gpu_available else 'CPU'}"
            )

        except Exception as e:
            context = create_error_context("system_initialization", "MulticarrierTransmitter")
            self._error_handler.handle_error(e, context)
            raise RuntimeError(f"Failed to initialize multicarrier transmitter: {e}")

    def reseed(self, random_seed: Optional[int]) -> None:
        """Restart the random generator from a new seed."""
        self.random_seed = random_seed
        self.rng = np.random.default_rng(random_seed)

    def generate_random_bits(self, num_bits: Optional[int] = None) -> np.ndarray:
        """Draw i.i.d. payload bits.

        Args:
            num_bits: Number of bits (one full OFDM frame if None)

        Returns:
            uint8 array of 0/1 values
        """
        if num_bits is None:
            num_bits = self.numerology.required_num_bits
        return self.rng.integers(0, 2, size=num_bits, dtype=np.uint8)

    def generate_ofdm_frame(self, bits: Optional[np.ndarray] = None) -> TransmitFrame:
        """Build an OFDM frame (random payload if bits is None)."""
        if bits is None:
            bits = self.generate_random_bits(self.numerology.required_num_bits)
        return self.ofdm_generator.generate_frame(bits, self.rng)

    def generate_ufmc_frame(self, bits: Optional[np.ndarray] = None) -> TransmitFrame:
        """Build a UFMC frame (random payload if bits is None)."""
        if bits is None:
            bits = self.generate_random_bits(self.ufmc_generator.required_num_bits)
        return self.ufmc_generator.generate_frame(bits, self.rng)

    def generate_frames(
        self, bits: Optional[np.ndarray] = None
    ) -> Tuple[TransmitFrame, TransmitFrame]:
        """Build an OFDM and a UFMC frame carrying the same payload.

        The payload is sized for OFDM. When the UFMC partition drops tones,
        UFMC carries the leading ``ufmc_generator.required_num_bits`` bits.

        Args:
            bits: Payload bits (random if None)

        Returns:
            Tuple of (ofdm_frame, ufmc_frame)
        """
        if bits is None:
            bits = self.generate_random_bits()
        bits = np.asarray(bits)

        ofdm_frame = self.ofdm_generator.generate_frame(bits, self.rng)
        ufmc_frame = self.ufmc_generator.generate_frame(
            bits[: self.ufmc_generator.required_num_bits], self.rng
        )

        self._last_frames = (ofdm_frame, ufmc_frame)
        return ofdm_frame, ufmc_frame

    def analyze_frames(self, frames: List[TransmitFrame]) -> Dict[str, Dict[str, object]]:
        """Spectral and power analysis of each frame, keyed by scheme."""
        return {frame.scheme: self.spectrum_analyzer.analyze(frame) for frame in frames}

    def format_summary(self, ufmc_frame: Optional[TransmitFrame] = None) -> str:
        """Human-readable description of both frames.

        Args:
            ufmc_frame: UFMC frame whose subband layout is reported
                (the generator's layout if None)

        Returns:
            Two-line summary
        """
        numerology = self.numerology
        if ufmc_frame is not None:
            num_subbands = ufmc_frame.metadata.num_subbands
            tones_per_subband = ufmc_frame.metadata.tones_per_subband
        else:
            num_subbands = self.ufmc_generator.layout.num_subbands
            tones_per_subband = self.ufmc_generator.layout.tones_per_subband

        return (
            f"OFDM frame: {numerology.num_symbols} data symbols, "
            f"Fs = {numerology.sampling_rate / 1e6:.2f} MHz, Nfft = {numerology.fft_size}, "
            f"CP = {numerology.cp_length} ({1e6 * numerology.cp_duration:.2f} us)\n"
            f"UFMC frame: {numerology.num_symbols} data symbols (no CP), "
            f"subbands = {num_subbands} x {tones_per_subband} tones"
        )

    def export_frames(
        self,
        frames: List[TransmitFrame],
        output_dir: Union[str, Path],
        format: str = "numpy",
        include_visualization: bool = False,
    ) -> List[Path]:
        """Export frames and, optionally, the comparison figures.

        Args:
            frames: Frames to export
            output_dir: Destination directory
            format: Export format ('numpy' or 'json')
            include_visualization: Whether to save the comparison plots

        Returns:
            List of paths to exported files
        """
        exporter = FrameExporter(output_dir)
        exported_files = [
            exporter.export_frame(frame, frame.scheme.lower(), format) for frame in frames
        ]

        if include_visualization:
            try:
                visualizer = SignalVisualizer(self.spectrum_analyzer)
                exported_files.extend(visualizer.create_comparison_report(frames, output_dir).values())
            except ImportError as e:
                logger.warning(f"Could not generate visualization: {e}")

        logger.info(f"Exported {len(frames)} frames to {len(exported_files)} files")

        return exported_files

    def get_system_info(self) -> Dict[str, object]:
        """Get system configuration and status.

        Returns:
            Dictionary with configuration, backend status and error counts,
            and last frame summaries
        """
        return {
            "ofdm": self.ofdm_generator.get_frame_parameters(),
            "ufmc": self.ufmc_generator.get_frame_parameters(),
            "gpu_backend": self.gpu_backend.device_info,
            "backend_errors": self.gpu_backend.error_handler.get_error_statistics(),
            "configuration": self.config_manager.to_dict(),
            "random_seed": self.random_seed,
            "last_frames": (
                [describe_frame(frame) for frame in self._last_frames]
                if self._last_frames
                else None
            ),
            "timestamp": datetime.now().isoformat(),
        }

    def cleanup_resources(self) -> None:
        """Clean up GPU memory."""
        if hasattr(self, "gpu_backend"):
            self.gpu_backend.cleanup_memory()

        logger.info("System resources cleaned up")

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit with automatic cleanup."""
        self.cleanup_resources()

    def __repr__(self) -> str:
        """String representation of MulticarrierTransmitter."""
        return (
            f"MulticarrierTransmitter(fft_size={self.numerology.fft_size}, "
            f"subbands={self.ufmc_config.num_subbands}, "
            f"backend={'GPU' if self.gpu_backend.is_gpu_available else 'CPU'}, "
            f"config='{self.config_manager.config_file}')"
        )


# Convenience functions for quick access
def create_transmitter(config_file: Optional[str] = None, **kwargs) -> MulticarrierTransmitter:
    """Create a MulticarrierTransmitter with default settings.

    Args:
        config_file: Path to configuration file
        **kwargs: Additional arguments passed to MulticarrierTransmitter

    Returns:
        Initialized MulticarrierTransmitter instance
    """
    return MulticarrierTransmitter(config_file=config_file, **kwargs)


def quick_generate_frames(
    config_file: Optional[str] = None, random_seed: Optional[int] = None
) -> Tuple[TransmitFrame, TransmitFrame]:
    """Generate an OFDM and a UFMC frame from shared random bits.

    Args:
        config_file: Path to configuration file
        random_seed: Generator seed (config default if None)

    Returns:
        Tuple of (ofdm_frame, ufmc_frame)
    """
    with create_transmitter(config_file, random_seed=random_seed) as transmitter:
        return transmitter.generate_frames()
