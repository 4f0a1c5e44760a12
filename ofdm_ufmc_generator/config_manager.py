"""
Configuration management using Dynaconf for centralized parameter handling.

This module provides a centralized configuration system that loads the
transmitter numerology and UFMC filtering parameters from TOML files and
provides validation and default value management.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

try:
    from dynaconf import Dynaconf

    DYNACONF_AVAILABLE = True
except ImportError:
    DYNACONF_AVAILABLE = False
    Dynaconf = None

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Exception raised for configuration-related errors."""

    pass


DEFAULT_CONFIG = """# OFDM/UFMC Waveform Generator Configuration
# LTE-like numerology: 256 * 15 kHz

[numerology]
sampling_rate = 3840000.0  # Hz
fft_size = 256
cp_length = 32  # fft_size / 8
num_used_tones = 200  # DC and band edges unused
modulation_order = 4  # 4 = QPSK
num_symbols = 10
preamble_type = "sc"  # "sc" (repeated halves) or "park" (sign-flipped quarters)

[ufmc]
num_subbands = 10
filter_length = 43  # odd
stopband_attenuation_db = 60.0
truncation = "highest"  # "highest" or "symmetric"

[gpu]
enable_gpu = false
memory_limit_gb = 4.0
fallback_to_cpu = true
cleanup_memory_after_operations = true

[spectrum]
segment_length = 2048
overlap = 1024
nfft = 4096

[logging]
level = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL

[defaults]
random_seed = 42
"""


class ConfigurationManager:
    """Centralized configuration manager using Dynaconf.

    This class provides a unified interface for loading and validating
    configuration parameters from TOML files using Dynaconf.
    """

    def __init__(self, config_file: Optional[str] = None, create_default: bool = True):
        """Initialize configuration manager.

        Args:
            config_file: Path to configuration file (defaults to config.toml)
            create_default: Whether to create default config if file doesn't exist
        """
        if not DYNACONF_AVAILABLE:
            raise ConfigurationError("Dynaconf is not available. Install it with: pip install dynaconf")

        self.config_file = str(config_file or "config.toml")
        self.config_path = Path(self.config_file)

        if not self.config_path.exists() and create_default:
            self._create_default_config()

        try:
            self.settings = Dynaconf(
                settings_files=[self.config_file],
                envvar_prefix="OFDM_UFMC",
            )
        except Exception as e:
            raise ConfigurationError(f"Failed to load configuration: {e}")

        self._validate_configuration()

        logger.info(f"Configuration loaded from {self.config_file}")

    def _create_default_config(self) -> None:
        """Create a default configuration file."""
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_path, "w") as f:
            f.write(DEFAULT_CONFIG)

        logger.info(f"Created default configuration file: {self.config_file}")

    def _validate_configuration(self) -> None:
        """Validate configuration parameters."""
        errors = []

        try:
            numerology = self.get_numerology_config()

            if numerology["sampling_rate"] <= 0:
                errors.append("numerology.sampling_rate must be positive")

            fft_size = numerology["fft_size"]
            if fft_size <= 0 or fft_size & (fft_size - 1):
                errors.append("numerology.fft_size must be a power of two")

            if not 0 <= numerology["cp_length"] <= fft_size:
                errors.append("numerology.cp_length must be in range [0, fft_size]")

            if not 1 <= numerology["num_used_tones"] < fft_size - 1:
                errors.append("numerology.num_used_tones must be in range [1, fft_size - 1)")

            order = numerology["modulation_order"]
            if order < 2 or order & (order - 1):
                errors.append("numerology.modulation_order must be a power of two >= 2")

            if numerology["num_symbols"] <= 0:
                errors.append("numerology.num_symbols must be positive")

            if numerology["preamble_type"].lower() not in ("sc", "park"):
                errors.append("numerology.preamble_type must be 'sc' or 'park'")

        except Exception as e:
            errors.append(f"Error validating numerology configuration: {e}")

        try:
            ufmc = self.get_ufmc_config()

            if ufmc["num_subbands"] <= 0:
                errors.append("ufmc.num_subbands must be positive")

            if ufmc["filter_length"] < 3 or ufmc["filter_length"] % 2 == 0:
                errors.append("ufmc.filter_length must be an odd number >= 3")

            if ufmc["stopband_attenuation_db"] <= 0:
                errors.append("ufmc.stopband_attenuation_db must be positive")

            if ufmc["truncation"].lower() not in ("highest", "symmetric"):
                errors.append("ufmc.truncation must be 'highest' or 'symmetric'")

        except Exception as e:
            errors.append(f"Error validating UFMC configuration: {e}")

        try:
            spectrum = self.get_spectrum_config()

            if spectrum["segment_length"] <= 0:
                errors.append("spectrum.segment_length must be positive")

            if not 0 <= spectrum["overlap"] < spectrum["segment_length"]:
                errors.append("spectrum.overlap must be in range [0, segment_length)")

            if spectrum["nfft"] < spectrum["segment_length"]:
                errors.append("spectrum.nfft must be >= spectrum.segment_length")

        except Exception as e:
            errors.append(f"Error validating spectrum configuration: {e}")

        try:
            gpu = self.get_gpu_config()

            if gpu["memory_limit_gb"] <= 0:
                errors.append("gpu.memory_limit_gb must be positive")

        except Exception as e:
            errors.append(f"Error validating GPU configuration: {e}")

        if errors:
            error_msg = "Configuration validation failed:\n" + "\n".join(
                f"  - {error}" for error in errors
            )
            raise ConfigurationError(error_msg)

    def get_numerology_config(self) -> Dict[str, Any]:
        """Get numerology parameters.

        Returns:
            Dictionary with numerology configuration
        """
        return {
            "sampling_rate": float(self.settings.get("numerology.sampling_rate", 3.84e6)),
            "fft_size": int(self.settings.get("numerology.fft_size", 256)),
            "cp_length": int(self.settings.get("numerology.cp_length", 32)),
            "num_used_tones": int(self.settings.get("numerology.num_used_tones", 200)),
            "modulation_order": int(self.settings.get("numerology.modulation_order", 4)),
            "num_symbols": int(self.settings.get("numerology.num_symbols", 10)),
            "preamble_type": str(self.settings.get("numerology.preamble_type", "sc")),
        }

    def get_ufmc_config(self) -> Dict[str, Any]:
        """Get UFMC subband filtering parameters.

        Returns:
            Dictionary with UFMC configuration
        """
        return {
            "num_subbands": int(self.settings.get("ufmc.num_subbands", 10)),
            "filter_length": int(self.settings.get("ufmc.filter_length", 43)),
            "stopband_attenuation_db": float(
                self.settings.get("ufmc.stopband_attenuation_db", 60.0)
            ),
            "truncation": str(self.settings.get("ufmc.truncation", "highest")),
        }

    def get_gpu_config(self) -> Dict[str, Any]:
        """Get GPU configuration parameters.

        Returns:
            Dictionary with GPU configuration
        """
        return {
            "enable_gpu": bool(self.settings.get("gpu.enable_gpu", False)),
            "memory_limit_gb": float(self.settings.get("gpu.memory_limit_gb", 4.0)),
            "fallback_to_cpu": bool(self.settings.get("gpu.fallback_to_cpu", True)),
            "cleanup_memory_after_operations": bool(
                self.settings.get("gpu.cleanup_memory_after_operations", True)
            ),
        }

    def get_spectrum_config(self) -> Dict[str, Any]:
        """Get Welch spectral estimation parameters.

        Returns:
            Dictionary with spectrum configuration
        """
        return {
            "segment_length": int(self.settings.get("spectrum.segment_length", 2048)),
            "overlap": int(self.settings.get("spectrum.overlap", 1024)),
            "nfft": int(self.settings.get("spectrum.nfft", 4096)),
        }

    def get_logging_config(self) -> Dict[str, Any]:
        """Get logging configuration parameters.

        Returns:
            Dictionary with logging configuration
        """
        return {"level": str(self.settings.get("logging.level", "INFO")).upper()}

    def get_defaults_config(self) -> Dict[str, Any]:
        """Get default values configuration.

        Returns:
            Dictionary with default values
        """
        seed = self.settings.get("defaults.random_seed", 42)
        return {"random_seed": None if seed is None else int(seed)}

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary.

        Returns:
            Dictionary representation of configuration
        """
        return {
            "numerology": self.get_numerology_config(),
            "ufmc": self.get_ufmc_config(),
            "gpu": self.get_gpu_config(),
            "spectrum": self.get_spectrum_config(),
            "logging": self.get_logging_config(),
            "defaults": self.get_defaults_config(),
        }

    def create_numerology_config_object(self):
        """Create NumerologyConfig object from configuration.

        Returns:
            NumerologyConfig instance
        """
        from .models import NumerologyConfig

        return NumerologyConfig(**self.get_numerology_config())

    def create_ufmc_config_object(self):
        """Create UFMCConfig object from configuration.

        Returns:
            UFMCConfig instance
        """
        from .models import UFMCConfig

        return UFMCConfig(**self.get_ufmc_config())

    def get_memory_limit_bytes(self) -> int:
        """Get GPU memory limit in bytes.

        Returns:
            Memory limit in bytes
        """
        return int(self.get_gpu_config()["memory_limit_gb"] * 1024 * 1024 * 1024)

    def __repr__(self) -> str:
        """String representation of ConfigurationManager."""
        return f"ConfigurationManager(config_file='{self.config_file}')"


# Global configuration instance
_global_config: Optional[ConfigurationManager] = None


def get_config(
    config_file: Optional[str] = None, create_default: bool = True
) -> ConfigurationManager:
    """Get global configuration instance.

    Args:
        config_file: Path to configuration file
        create_default: Whether to create default config if file doesn't exist

    Returns:
        ConfigurationManager instance
    """
    global _global_config

    if _global_config is None or config_file is not None:
        _global_config = ConfigurationManager(config_file, create_default)

    return _global_config


def reset_config() -> None:
    """Reset global configuration (force reload on next access)."""
    global _global_config
    _global_config = None
