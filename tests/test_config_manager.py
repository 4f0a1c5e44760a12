"""
Tests for configuration management using Dynaconf.

This module tests the ConfigurationManager class and its integration
with the numerology and UFMC records.
"""

from unittest.mock import patch

import pytest

from ofdm_ufmc_generator.config_manager import (
    DEFAULT_CONFIG,
    ConfigurationError,
    ConfigurationManager,
    get_config,
    reset_config,
)
from ofdm_ufmc_generator.models import NumerologyConfig, PreambleType, TruncationPolicy, UFMCConfig


class TestConfigurationManager:
    """Test cases for ConfigurationManager class."""

    def test_initialization_with_default_config(self, tmp_path):
        """Test ConfigurationManager initialization with default config creation."""
        config_file = tmp_path / "test_config.toml"

        config_manager = ConfigurationManager(str(config_file), create_default=True)

        assert config_file.exists()
        assert config_file.read_text() == DEFAULT_CONFIG
        assert config_manager.config_file == str(config_file)
        assert config_manager.settings is not None

    def test_initialization_without_dynaconf(self, tmp_path):
        """Test ConfigurationManager initialization when Dynaconf is not available."""
        config_file = tmp_path / "test_config.toml"

        with patch("ofdm_ufmc_generator.config_manager.DYNACONF_AVAILABLE", False):
            with pytest.raises(ConfigurationError, match="Dynaconf is not available"):
                ConfigurationManager(str(config_file))

    def test_default_values(self, tmp_path):
        """The generated default file reproduces the reference numerology."""
        config_manager = ConfigurationManager(str(tmp_path / "config.toml"))

        numerology = config_manager.get_numerology_config()
        assert numerology == {
            "sampling_rate": 3.84e6,
            "fft_size": 256,
            "cp_length": 32,
            "num_used_tones": 200,
            "modulation_order": 4,
            "num_symbols": 10,
            "preamble_type": "sc",
        }

        ufmc = config_manager.get_ufmc_config()
        assert ufmc["num_subbands"] == 10
        assert ufmc["filter_length"] == 43
        assert ufmc["stopband_attenuation_db"] == 60.0
        assert ufmc["truncation"] == "highest"

        assert config_manager.get_gpu_config()["enable_gpu"] is False
        assert config_manager.get_spectrum_config() == {
            "segment_length": 2048,
            "overlap": 1024,
            "nfft": 4096,
        }
        assert config_manager.get_logging_config()["level"] == "INFO"
        assert config_manager.get_defaults_config()["random_seed"] == 42

    def test_initialization_with_existing_config(self, tmp_path):
        """Values from an existing file override the defaults."""
        config_file = tmp_path / "existing_config.toml"
        config_file.write_text(
            """
[numerology]
sampling_rate = 1920000.0
fft_size = 128
cp_length = 9
num_used_tones = 72
modulation_order = 16
num_symbols = 4
preamble_type = "park"

[ufmc]
num_subbands = 6
filter_length = 31
stopband_attenuation_db = 50.0
truncation = "symmetric"

[logging]
level = "debug"
"""
        )

        config_manager = ConfigurationManager(str(config_file), create_default=False)

        numerology = config_manager.create_numerology_config_object()
        assert isinstance(numerology, NumerologyConfig)
        assert numerology.fft_size == 128
        assert numerology.cp_length == 9
        assert numerology.modulation_order == 16
        assert numerology.preamble_type == PreambleType.SIGN_FLIPPED_QUARTERS

        ufmc = config_manager.create_ufmc_config_object()
        assert isinstance(ufmc, UFMCConfig)
        assert ufmc.num_subbands == 6
        assert ufmc.filter_length == 31
        assert ufmc.truncation == TruncationPolicy.SYMMETRIC

        assert config_manager.get_logging_config()["level"] == "DEBUG"
        # Sections absent from the file fall back to built-in defaults
        assert config_manager.get_spectrum_config()["nfft"] == 4096

    def test_invalid_configuration(self, tmp_path):
        """Invalid values are collected into one ConfigurationError."""
        config_file = tmp_path / "invalid.toml"
        config_file.write_text(
            """
[numerology]
fft_size = 100
modulation_order = 6

[ufmc]
filter_length = 42
"""
        )

        with pytest.raises(ConfigurationError) as exc_info:
            ConfigurationManager(str(config_file), create_default=False)

        message = str(exc_info.value)
        assert "Configuration validation failed" in message
        assert "numerology.fft_size must be a power of two" in message
        assert "numerology.modulation_order must be a power of two >= 2" in message
        assert "ufmc.filter_length must be an odd number >= 3" in message

    def test_invalid_spectrum_configuration(self, tmp_path):
        """Welch overlap must be shorter than the segment."""
        config_file = tmp_path / "spectrum.toml"
        config_file.write_text(
            """
[spectrum]
segment_length = 512
overlap = 512
nfft = 256
"""
        )

        with pytest.raises(ConfigurationError) as exc_info:
            ConfigurationManager(str(config_file), create_default=False)

        assert "spectrum.overlap" in str(exc_info.value)
        assert "spectrum.nfft" in str(exc_info.value)

    def test_environment_override(self, tmp_path, monkeypatch):
        """OFDM_UFMC_ prefixed environment variables override the file."""
        monkeypatch.setenv("OFDM_UFMC_NUMEROLOGY__NUM_SYMBOLS", "7")

        config_manager = ConfigurationManager(str(tmp_path / "config.toml"))

        assert config_manager.get_numerology_config()["num_symbols"] == 7

    def test_to_dict(self, tmp_path):
        """Every section appears in the dictionary form."""
        config_manager = ConfigurationManager(str(tmp_path / "config.toml"))

        config_dict = config_manager.to_dict()

        assert set(config_dict) == {"numerology", "ufmc", "gpu", "spectrum", "logging", "defaults"}

    def test_memory_limit_bytes(self, tmp_path):
        """GPU memory limit converts from GB."""
        config_manager = ConfigurationManager(str(tmp_path / "config.toml"))

        assert config_manager.get_memory_limit_bytes() == 4 * 1024**3

    def test_repr(self, tmp_path):
        """String representation names the file."""
        config_file = str(tmp_path / "config.toml")
        assert config_file in repr(ConfigurationManager(config_file))


class TestGlobalConfiguration:
    """Test the module-level configuration singleton."""

    def test_get_config_caches_instance(self):
        """Repeated calls without a file return the same manager."""
        first = get_config()
        second = get_config()

        assert first is second
        assert first.config_path.exists()

    def test_get_config_with_file_replaces_instance(self, tmp_path):
        """Passing a file always builds a new manager."""
        first = get_config()
        second = get_config(str(tmp_path / "other.toml"))

        assert first is not second
        assert get_config() is second

    def test_reset_config(self):
        """Reset forces a new instance on the next access."""
        first = get_config()
        reset_config()

        assert get_config() is not first
