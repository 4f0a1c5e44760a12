"""
Gray-coded QAM symbol mapping.

Bits are grouped MSB first into log2(M)-bit labels. The upper half of each
label selects the in-phase level and the lower half the quadrature level,
each through a Gray code, so horizontally or vertically adjacent points differ
in exactly one bit. Square lattices are used for even log2(M) and rectangular
lattices (extra bit on the in-phase axis) for odd log2(M). The constellation
is scaled to unit average power.
"""

import logging
from typing import Tuple

import numpy as np

from .error_handling import PreconditionError
from .validation import ConfigValidator

logger = logging.getLogger(__name__)


def gray_to_binary(codes: np.ndarray) -> np.ndarray:
    """Convert Gray-coded integers to their binary rank."""
    result = np.asarray(codes, dtype=np.int64).copy()
    shift = result >> 1
    while np.any(shift):
        result ^= shift
        shift >>= 1
    return result


class QAMMapper:
    """Gray-coded QAM constellation mapper.

    Attributes:
        modulation_order: Constellation size M
        bits_per_symbol: log2(M)
        constellation: Unit-average-power points indexed by label

    Example:
        >>> mapper = QAMMapper(16)
        >>> symbols = mapper.map(bits)
    """

    def __init__(self, modulation_order: int):
        """Initialize QAM mapper.

        Args:
            modulation_order: Constellation size, a power of two >= 2

        Raises:
            ValueError: If the order is not a power of two >= 2
        """
        order = int(modulation_order)
        if order < 2 or order & (order - 1):
            raise ValueError(f"Unsupported modulation order: {modulation_order}")

        self.modulation_order = order
        self.bits_per_symbol = order.bit_length() - 1
        self.constellation = self._build_table()

        logger.debug(
            f"QAMMapper initialized: M={order}, {self.bits_per_symbol} bits/symbol, "
            f"lattice={self.lattice_shape[0]}x{self.lattice_shape[1]}"
        )

    @property
    def lattice_shape(self) -> Tuple[int, int]:
        """Number of (in-phase, quadrature) levels."""
        bits_i = (self.bits_per_symbol + 1) // 2
        bits_q = self.bits_per_symbol // 2
        return 1 << bits_i, 1 << bits_q

    def _build_table(self) -> np.ndarray:
        """Build the normalized label-to-point lookup table."""
        bits_q = self.bits_per_symbol // 2
        levels_i, levels_q = self.lattice_shape

        labels = np.arange(self.modulation_order)
        rank_i = gray_to_binary(labels >> bits_q)
        rank_q = gray_to_binary(labels & (levels_q - 1))

        # In-phase grows left to right, quadrature is counted from the top row down
        in_phase = 2 * rank_i - (levels_i - 1)
        quadrature = (levels_q - 1) - 2 * rank_q

        table = in_phase.astype(np.float64) + 1j * quadrature.astype(np.float64)
        return table / np.sqrt(np.mean(np.abs(table) ** 2))

    def bits_to_labels(self, bits) -> np.ndarray:
        """Pack bits MSB first into integer labels.

        Raises:
            PreconditionError: If the bit count is not a multiple of log2(M)
        """
        bits = ConfigValidator.validate_bits(bits)
        if bits.size % self.bits_per_symbol != 0:
            raise PreconditionError(
                f"Bit sequence length {bits.size} is not a multiple of "
                f"log2(M) = {self.bits_per_symbol}",
                "bits",
            )

        groups = bits.reshape(-1, self.bits_per_symbol).astype(np.int64)
        weights = 1 << np.arange(self.bits_per_symbol - 1, -1, -1)
        return groups @ weights

    def map(self, bits) -> np.ndarray:
        """Map bits to QAM symbols.

        Args:
            bits: Input bits (length must be multiple of bits_per_symbol)

        Returns:
            Complex QAM symbols, one per log2(M) bits
        """
        return self.constellation[self.bits_to_labels(bits)]

    @property
    def average_power(self) -> float:
        """Average power of the constellation (1 up to rounding)."""
        return float(np.mean(np.abs(self.constellation) ** 2))

    def __repr__(self) -> str:
        """String representation of QAMMapper."""
        return f"QAMMapper(M={self.modulation_order}, bits_per_symbol={self.bits_per_symbol})"


def map_bits(bits, modulation_order: int) -> np.ndarray:
    """Map a bit sequence to unit-average-power Gray QAM symbols."""
    return QAMMapper(modulation_order).map(bits)
