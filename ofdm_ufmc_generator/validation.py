"""
Input validation for OFDM/UFMC numerology and payload parameters.

This module provides validation for all configuration records and for the
payload bit sequence to ensure parameter compatibility before synthesis.
"""

from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from .models import NumerologyConfig, UFMCConfig


class ValidationError(Exception):
    """Custom exception for configuration validation errors."""

    pass


def _is_power_of_two(value: int) -> bool:
    return value > 0 and (value & (value - 1)) == 0


class ConfigValidator:
    """Validator class for all configuration parameters."""

    # Configuration constraints
    MIN_FFT_SIZE = 4
    MAX_FFT_SIZE = 65536
    MIN_SAMPLING_RATE = 1.0  # Hz
    MAX_SAMPLING_RATE = 1e10  # Hz
    MIN_MODULATION_ORDER = 2
    MAX_MODULATION_ORDER = 4096
    MIN_FILTER_LENGTH = 3
    MAX_STOPBAND_ATTENUATION_DB = 300.0

    @classmethod
    def validate_numerology_config(cls, config: "NumerologyConfig") -> None:
        """Validate numerology parameters.

        Args:
            config: NumerologyConfig instance to validate

        Raises:
            ValidationError: If any parameter is invalid
        """
        # Validate sampling_rate
        if not isinstance(config.sampling_rate, (int, float)) or isinstance(
            config.sampling_rate, bool
        ):
            raise ValidationError("sampling_rate must be a number")
        if config.sampling_rate < cls.MIN_SAMPLING_RATE:
            raise ValidationError(f"sampling_rate must be >= {cls.MIN_SAMPLING_RATE}")
        if config.sampling_rate > cls.MAX_SAMPLING_RATE:
            raise ValidationError(f"sampling_rate must be <= {cls.MAX_SAMPLING_RATE}")

        # Validate fft_size
        if not isinstance(config.fft_size, int):
            raise ValidationError("fft_size must be an integer")
        if not _is_power_of_two(config.fft_size):
            raise ValidationError("fft_size must be a power of two")
        if not cls.MIN_FFT_SIZE <= config.fft_size <= cls.MAX_FFT_SIZE:
            raise ValidationError(
                f"fft_size must be in range [{cls.MIN_FFT_SIZE}, {cls.MAX_FFT_SIZE}]"
            )

        # Validate cp_length
        if not isinstance(config.cp_length, int):
            raise ValidationError("cp_length must be an integer")
        if not 0 <= config.cp_length <= config.fft_size:
            raise ValidationError("cp_length must be in range [0, fft_size]")

        # Validate num_used_tones (DC is never used)
        if not isinstance(config.num_used_tones, int):
            raise ValidationError("num_used_tones must be an integer")
        if config.num_used_tones < 1:
            raise ValidationError("num_used_tones must be >= 1")
        if config.num_used_tones >= config.fft_size - 1:
            raise ValidationError(
                f"num_used_tones ({config.num_used_tones}) must be < fft_size - 1 "
                f"({config.fft_size - 1})"
            )

        # Validate modulation_order
        if not isinstance(config.modulation_order, int):
            raise ValidationError("modulation_order must be an integer")
        if not _is_power_of_two(config.modulation_order) or config.modulation_order < 2:
            raise ValidationError("modulation_order must be a power of two >= 2")
        if config.modulation_order > cls.MAX_MODULATION_ORDER:
            raise ValidationError(f"modulation_order must be <= {cls.MAX_MODULATION_ORDER}")

        # Validate num_symbols
        if not isinstance(config.num_symbols, int):
            raise ValidationError("num_symbols must be an integer")
        if config.num_symbols < 1:
            raise ValidationError("num_symbols must be >= 1")

    @classmethod
    def validate_ufmc_config(cls, config: "UFMCConfig") -> None:
        """Validate UFMC subband filtering parameters.

        Args:
            config: UFMCConfig instance to validate

        Raises:
            ValidationError: If any parameter is invalid
        """
        if not isinstance(config.num_subbands, int):
            raise ValidationError("num_subbands must be an integer")
        if config.num_subbands < 1:
            raise ValidationError("num_subbands must be >= 1")

        if not isinstance(config.filter_length, int):
            raise ValidationError("filter_length must be an integer")
        if config.filter_length < cls.MIN_FILTER_LENGTH:
            raise ValidationError(f"filter_length must be >= {cls.MIN_FILTER_LENGTH}")
        if config.filter_length % 2 == 0:
            raise ValidationError("filter_length must be odd")

        if not isinstance(config.stopband_attenuation_db, (int, float)):
            raise ValidationError("stopband_attenuation_db must be a number")
        if not 0 < config.stopband_attenuation_db <= cls.MAX_STOPBAND_ATTENUATION_DB:
            raise ValidationError(
                f"stopband_attenuation_db must be in range (0, {cls.MAX_STOPBAND_ATTENUATION_DB}]"
            )

        from .models import TruncationPolicy

        policies = [policy.value for policy in TruncationPolicy]
        if not isinstance(config.truncation, TruncationPolicy) and (
            str(config.truncation).lower() not in policies
        ):
            raise ValidationError(f"truncation must be one of {policies}")

    @classmethod
    def validate_parameter_compatibility(
        cls, numerology: "NumerologyConfig", ufmc_config: "UFMCConfig"
    ) -> None:
        """Validate compatibility between numerology and UFMC settings.

        Args:
            numerology: Numerology parameters
            ufmc_config: UFMC parameters

        Raises:
            ValidationError: If configurations are incompatible
        """
        if ufmc_config.num_subbands > numerology.num_used_tones:
            raise ValidationError(
                f"num_subbands ({ufmc_config.num_subbands}) exceeds "
                f"num_used_tones ({numerology.num_used_tones})"
            )

        if ufmc_config.filter_length > numerology.fft_size:
            raise ValidationError(
                f"filter_length ({ufmc_config.filter_length}) exceeds "
                f"fft_size ({numerology.fft_size})"
            )

    @classmethod
    def validate_bits(cls, bits) -> np.ndarray:
        """Validate a payload bit sequence.

        Args:
            bits: Sequence of binary values

        Returns:
            Bits as a 1-D uint8 array

        Raises:
            ValidationError: If the sequence is not 1-D or holds non-binary values
        """
        array = np.asarray(bits)
        if array.ndim != 1:
            raise ValidationError("bits must be a 1-dimensional sequence")
        if array.size and not np.all((array == 0) | (array == 1)):
            raise ValidationError("bits must only contain the values 0 and 1")
        return array.astype(np.uint8)
