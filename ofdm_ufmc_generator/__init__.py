"""
OFDM/UFMC Waveform Generator Package

Baseband transmit-waveform synthesis for cyclic-prefix OFDM and Universal
Filtered Multi-Carrier frames, with Gray QAM mapping, synchronization
preambles and Dolph-Chebyshev subband filtering.
"""

from .config_manager import ConfigurationError, ConfigurationManager, get_config
from .error_handling import ErrorHandler, PreconditionError, WaveformError
from .filter_design import PrototypeFilterDesigner, frequency_response, frequency_shift
from .gpu_backend import GPUBackend
from .main import MulticarrierTransmitter, create_transmitter, quick_generate_frames
from .models import (
    NumerologyConfig,
    OFDMFrameMetadata,
    PreambleType,
    SubbandLayout,
    TransmitFrame,
    TruncationPolicy,
    UFMCConfig,
    UFMCFrameMetadata,
    describe_frame,
)
from .ofdm_generator import OFDMGenerator
from .preamble import PreambleGenerator, generate_preamble
from .qam_mapper import QAMMapper, map_bits
from .signal_export import FrameExporter, SignalVisualizer
from .spectrum import SpectrumAnalyzer, analyze_frame, estimate_psd, out_of_band_power_ratio
from .subcarrier_manager import SubcarrierManager, allocate_used_bins, partition_subbands
from .ufmc_generator import UFMCGenerator
from .validation import ConfigValidator, ValidationError

__version__ = "0.1.0"
__all__ = [
    # Core data models
    "NumerologyConfig",
    "UFMCConfig",
    "PreambleType",
    "TruncationPolicy",
    "SubbandLayout",
    "OFDMFrameMetadata",
    "UFMCFrameMetadata",
    "TransmitFrame",
    "describe_frame",
    # Validation, errors and configuration
    "ConfigValidator",
    "ValidationError",
    "WaveformError",
    "PreconditionError",
    "ErrorHandler",
    "ConfigurationManager",
    "ConfigurationError",
    "get_config",
    # GPU backend
    "GPUBackend",
    # Building blocks
    "QAMMapper",
    "map_bits",
    "SubcarrierManager",
    "allocate_used_bins",
    "partition_subbands",
    "PreambleGenerator",
    "generate_preamble",
    "PrototypeFilterDesigner",
    "frequency_shift",
    "frequency_response",
    # Frame synthesis
    "OFDMGenerator",
    "UFMCGenerator",
    # Analysis, export and visualization
    "SpectrumAnalyzer",
    "estimate_psd",
    "out_of_band_power_ratio",
    "analyze_frame",
    "FrameExporter",
    "SignalVisualizer",
    # Main interface (primary API)
    "MulticarrierTransmitter",
    "create_transmitter",
    "quick_generate_frames",
]
