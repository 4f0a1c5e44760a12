"""
Synchronization preamble generation.

Both variants are random, length-N, and periodic with lag N/2:

- repeated halves (Schmidl & Cox style): [a, a] with a of length N/2
- sign-flipped quarters (Park style): [a1, -a2, a1, -a2] with quarters of
  length N/4, which keeps the half-period structure but narrows the timing
  metric peak

Samples are circularly symmetric complex Gaussian with unit variance. The
caller owns the random generator; it is never reseeded here.
"""

import logging
from typing import Optional, Union

import numpy as np

from .error_handling import PreconditionError
from .models import PreambleType

logger = logging.getLogger(__name__)


def complex_gaussian(rng: np.random.Generator, size: int) -> np.ndarray:
    """Draw unit-variance circularly symmetric complex samples (real part first)."""
    real = rng.standard_normal(size)
    imag = rng.standard_normal(size)
    return (real + 1j * imag) / np.sqrt(2.0)


class PreambleGenerator:
    """Builds time-domain synchronization preambles of one transform length."""

    def __init__(self, fft_size: int, preamble_type: Union[PreambleType, str] = "sc"):
        """Initialize preamble generator.

        Args:
            fft_size: Preamble length N (divisible by 4 for the quarter variant)
            preamble_type: Variant selector

        Raises:
            PreconditionError: If the selector is unknown or N does not split evenly
        """
        self.fft_size = int(fft_size)
        self.preamble_type = PreambleType.parse(preamble_type)

        divisor = 4 if self.preamble_type == PreambleType.SIGN_FLIPPED_QUARTERS else 2
        if self.fft_size <= 0 or self.fft_size % divisor:
            raise PreconditionError(
                f"Preamble length {self.fft_size} must be a positive multiple of {divisor} "
                f"for the {self.preamble_type.name.lower()} variant",
                "fft_size",
            )

    def generate(self, rng: Optional[np.random.Generator] = None) -> np.ndarray:
        """Generate one preamble.

        Args:
            rng: Random generator (a fresh unseeded one if None)

        Returns:
            Complex preamble of length N
        """
        rng = rng if rng is not None else np.random.default_rng()

        if self.preamble_type == PreambleType.REPEATED_HALVES:
            half = complex_gaussian(rng, self.fft_size // 2)
        else:
            quarter_a = complex_gaussian(rng, self.fft_size // 4)
            quarter_b = complex_gaussian(rng, self.fft_size // 4)
            half = np.concatenate([quarter_a, -quarter_b])

        preamble = np.concatenate([half, half])

        logger.debug(f"Generated {self.preamble_type.value} preamble of {preamble.size} samples")

        return preamble

    def __repr__(self) -> str:
        """String representation of PreambleGenerator."""
        return f"PreambleGenerator(fft_size={self.fft_size}, type='{self.preamble_type.value}')"


def generate_preamble(
    fft_size: int,
    preamble_type: Union[PreambleType, str],
    rng: Optional[np.random.Generator] = None,
) -> np.ndarray:
    """Generate a preamble of the selected variant."""
    return PreambleGenerator(fft_size, preamble_type).generate(rng)


def half_period_correlation(preamble: np.ndarray) -> complex:
    """Normalized correlation between the two halves of a preamble."""
    half = preamble.size // 2
    first, second = preamble[:half], preamble[half : 2 * half]
    energy = np.sqrt(np.sum(np.abs(first) ** 2) * np.sum(np.abs(second) ** 2))
    if energy == 0:
        return 0j
    return complex(np.sum(np.conj(first) * second) / energy)
