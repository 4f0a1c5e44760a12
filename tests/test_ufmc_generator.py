"""
Tests for UFMC frame synthesis.

This module tests the frame layout, the subband filtering against a direct
per-subband computation, tone truncation and the payload preconditions.
"""

import logging

import numpy as np
import pytest
from scipy import signal

from ofdm_ufmc_generator.error_handling import PreconditionError
from ofdm_ufmc_generator.models import NumerologyConfig, TruncationPolicy, UFMCConfig, UFMCFrameMetadata
from ofdm_ufmc_generator.qam_mapper import map_bits
from ofdm_ufmc_generator.subcarrier_manager import allocate_used_bins
from ofdm_ufmc_generator.ufmc_generator import UFMCGenerator
from ofdm_ufmc_generator.validation import ValidationError


class TestUFMCGenerator:
    """Test suite for UFMCGenerator class."""

    @pytest.fixture
    def generator(self, default_numerology, default_ufmc_config, cpu_backend):
        """Generator for the reference numerology and filter."""
        return UFMCGenerator(default_numerology, default_ufmc_config, cpu_backend)

    @pytest.fixture
    def bits(self, default_numerology, rng):
        """One frame of random payload bits."""
        return rng.integers(0, 2, size=default_numerology.required_num_bits)

    def test_generator_initialization(self, generator):
        """Layout, prototype and shifted filters are prepared up front."""
        assert generator.layout.num_subbands == 10
        assert generator.layout.tones_per_subband == 20
        assert generator.prototype_filter.shape == (43,)
        assert generator.subband_filters.shape == (10, 43)
        assert generator.guard_length == 42
        assert generator.symbol_length == 298
        assert generator.frame_length == 3278
        assert generator.required_num_bits == 4000

    def test_default_ufmc_config(self, default_numerology, cpu_backend):
        """Built-in UFMC defaults apply when no settings are given."""
        generator = UFMCGenerator(default_numerology, gpu_backend=cpu_backend)

        assert generator.ufmc_config == UFMCConfig()

    def test_default_backend(self, tmp_path):
        """Without a backend, synthesis runs on NumPy and leaves no files behind."""
        numerology = NumerologyConfig(16000.0, 16, 4, 8, 4, 1)
        generator = UFMCGenerator(numerology, UFMCConfig(num_subbands=2, filter_length=5))

        generator.generate_frame(np.zeros(16, dtype=int), np.random.default_rng(0))

        assert not generator.gpu_backend.is_gpu_available
        assert list(tmp_path.iterdir()) == []

    def test_reference_frame_length(self, generator, bits, rng):
        """N + (L - 1) + numSyms * (N + L - 1) = 256 + 42 + 10 * 298 = 3278."""
        frame = generator.generate_frame(bits, rng)

        assert frame.scheme == "UFMC"
        assert frame.frame_length == 3278
        assert frame.metadata.frame_length == 3278
        assert frame.waveform.dtype == np.complex128

    def test_frame_layout(self, generator, bits, rng):
        """Unfiltered preamble, L - 1 zeros, then the filtered data."""
        frame = generator.generate_frame(bits, rng)

        np.testing.assert_array_equal(frame.waveform[:256], frame.metadata.preamble)
        np.testing.assert_array_equal(frame.waveform[256:298], 0)
        assert frame.data_segment.size == 10 * 298

    def test_matches_direct_computation(self, cpu_backend):
        """Each interval equals the sum of shifted-filter convolutions of the subband IDFTs."""
        numerology = NumerologyConfig(16000.0, 16, 4, 8, 4, 2)
        ufmc_config = UFMCConfig(num_subbands=2, filter_length=5, stopband_attenuation_db=40.0)
        generator = UFMCGenerator(numerology, ufmc_config, cpu_backend)
        rng = np.random.default_rng(11)
        bits = rng.integers(0, 2, size=generator.required_num_bits)

        frame = generator.generate_frame(bits, rng)

        prototype = signal.firwin(5, 4 / 16, window=("chebwin", 40.0))
        subbands = np.array([[-4, -3, -2, -1], [1, 2, 3, 4]])
        centres = [-3, 3]  # means -2.5 and 2.5 rounded away from zero
        symbols = map_bits(bits, 4).reshape(2, 2, 4)
        n = np.arange(5)

        assert frame.frame_length == 16 + 4 + 2 * 20
        for interval in range(2):
            expected = np.zeros(20, dtype=np.complex128)
            for m in range(2):
                spectrum = np.zeros(16, dtype=np.complex128)
                spectrum[subbands[m] + 8] = symbols[interval, m]
                block = np.fft.ifft(np.fft.ifftshift(spectrum))
                taps = prototype * np.exp(2j * np.pi * centres[m] * n / 16)
                expected += np.convolve(block, taps)

            np.testing.assert_allclose(frame.get_symbol_block(interval), expected, atol=1e-12)

    def test_symbol_block_matches_modulate_symbol(self, generator, bits, rng):
        """Frame blocks are the per-interval subband sums."""
        frame = generator.generate_frame(bits, rng)
        grid = generator.map_payload(bits)

        np.testing.assert_allclose(
            frame.get_symbol_block(3), generator.modulate_symbol(grid[3]), atol=1e-12
        )

    def test_single_subband_spectrum(self, generator, bits):
        """A lone filtered subband keeps its symbols in-band and little energy elsewhere."""
        grid = generator.map_payload(bits)

        filtered = generator.modulate_subband(0, grid[0, 0])
        spectrum = np.abs(np.fft.fftshift(np.fft.fft(filtered, 4096)))
        frequency = np.arange(-2048, 2048) / 4096 * 256  # in bins

        in_band = (frequency >= -100.5) & (frequency <= -80.5)
        far = np.abs(frequency - (-90.5)) > 40

        assert filtered.size == 298
        assert np.sum(spectrum[far] ** 2) < 1e-3 * np.sum(spectrum[in_band] ** 2)

    def test_metadata(self, generator, bits, rng):
        """Metadata describes the subband structure and the prototype."""
        frame = generator.generate_frame(bits, rng)
        meta = frame.metadata

        assert isinstance(meta, UFMCFrameMetadata)
        assert meta.num_subbands == 10
        assert meta.tones_per_subband == 20
        assert meta.subband_bins.shape == (10, 20)
        assert meta.num_dropped_tones == 0
        assert meta.filter_length == 43
        assert meta.stopband_attenuation_db == 60.0
        assert meta.guard_length == 42
        assert meta.symbol_length == 298
        np.testing.assert_array_equal(meta.prototype_filter, generator.prototype_filter)
        np.testing.assert_array_equal(meta.center_bins, [-91, -71, -51, -31, -11, 11, 31, 51, 71, 91])

    def test_tone_dropping(self, cpu_backend, rng, caplog):
        """Uneven division drops tones, logs a notice and shrinks the payload."""
        numerology = NumerologyConfig(3.84e6, 256, 32, 203, 4, 2)

        with caplog.at_level(logging.WARNING):
            generator = UFMCGenerator(numerology, UFMCConfig(), cpu_backend)

        assert "Dropping 3 tones" in caplog.text
        assert generator.required_num_bits == 2 * 200 * 2
        np.testing.assert_array_equal(
            generator.layout.used_bins, allocate_used_bins(256, 203)[:200]
        )

        frame = generator.generate_frame(rng.integers(0, 2, size=800), rng)

        assert frame.metadata.num_dropped_tones == 3
        assert frame.frame_length == 256 + 42 + 2 * 298

        with pytest.raises(PreconditionError):
            generator.generate_frame(rng.integers(0, 2, size=numerology.required_num_bits))

    def test_symmetric_truncation(self, cpu_backend):
        """The symmetric policy centres the reduced tone set."""
        numerology = NumerologyConfig(3.84e6, 256, 32, 203, 4, 1)

        generator = UFMCGenerator(
            numerology, UFMCConfig(truncation=TruncationPolicy.SYMMETRIC), cpu_backend
        )

        np.testing.assert_array_equal(generator.layout.used_bins, allocate_used_bins(256, 200))

    def test_determinism(self, generator, bits):
        """Equal bits and seeds give identical frames."""
        first = generator.generate_frame(bits, np.random.default_rng(9))
        second = generator.generate_frame(bits, np.random.default_rng(9))

        np.testing.assert_array_equal(first.waveform, second.waveform)

    def test_bit_count_not_multiple(self, generator):
        """Partial intervals are rejected."""
        with pytest.raises(PreconditionError, match="not a multiple of"):
            generator.generate_frame(np.zeros(401, dtype=int))

    def test_bit_count_wrong_interval_count(self, generator):
        """A whole number of intervals that differs from num_symbols is rejected."""
        with pytest.raises(PreconditionError, match="frame expects 10"):
            generator.generate_frame(np.zeros(800, dtype=int))

    def test_incompatible_parameters(self, default_numerology, cpu_backend):
        """A prototype longer than N or more subbands than tones is rejected."""
        with pytest.raises(ValidationError, match="filter_length"):
            UFMCGenerator(default_numerology, UFMCConfig(filter_length=301), cpu_backend)

        with pytest.raises(ValidationError, match="num_subbands"):
            UFMCGenerator(default_numerology, UFMCConfig(num_subbands=250), cpu_backend)

    def test_frame_parameters(self, generator):
        """Derived parameters report the frame structure."""
        params = generator.get_frame_parameters()

        assert params["frame_length"] == 3278
        assert params["symbol_length"] == 298
        assert params["num_subbands"] == 10
        assert params["tones_per_subband"] == 20

    def test_context_manager_and_repr(self, default_numerology, cpu_backend):
        """The generator works as a context manager."""
        with UFMCGenerator(default_numerology, gpu_backend=cpu_backend) as generator:
            assert "subbands=10" in repr(generator)
            assert "L=43" in repr(generator)
