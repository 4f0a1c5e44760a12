"""
Shared pytest fixtures.

Every test runs in its own temporary working directory so that the default
config.toml written by the configuration manager never leaks between tests.
"""

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest

from ofdm_ufmc_generator.config_manager import reset_config
from ofdm_ufmc_generator.gpu_backend import GPUBackend
from ofdm_ufmc_generator.models import NumerologyConfig, UFMCConfig


@pytest.fixture(autouse=True)
def isolated_workdir(tmp_path, monkeypatch):
    """Run each test from a fresh directory with no cached configuration."""
    monkeypatch.chdir(tmp_path)
    reset_config()
    yield tmp_path
    reset_config()


@pytest.fixture
def cpu_backend():
    """CPU-only compute backend."""
    return GPUBackend(force_cpu=True)


@pytest.fixture
def default_numerology():
    """LTE-like numerology: 256 * 15 kHz, 200 used tones, QPSK, 10 symbols."""
    return NumerologyConfig(
        sampling_rate=3.84e6,
        fft_size=256,
        cp_length=32,
        num_used_tones=200,
        modulation_order=4,
        num_symbols=10,
        preamble_type="sc",
    )


@pytest.fixture
def default_ufmc_config():
    """Ten subbands, 43-tap prototype, 60 dB sidelobes."""
    return UFMCConfig(num_subbands=10, filter_length=43, stopband_attenuation_db=60.0)


@pytest.fixture
def rng():
    """Seeded random generator."""
    return np.random.default_rng(42)
