"""
GPU backend implementation with CuPy integration and CPU fallback.

This module provides GPU acceleration for frame synthesis using CuPy,
with graceful fallback to NumPy CPU computation when GPU is unavailable.
"""

import logging
from typing import Optional, Tuple, Union

import numpy as np

from .config_manager import ConfigurationError, get_config
from .error_handling import (
    ErrorHandler,
    ErrorSeverity,
    GPUError,
    GPUMemoryError,
    create_error_context,
)

# Try to import CuPy, fall back gracefully if not available
try:
    import cupy as cp

    CUPY_AVAILABLE = True
except ImportError:
    cp = None
    CUPY_AVAILABLE = False


def is_device_array(array) -> bool:
    """True for CuPy arrays."""
    return CUPY_AVAILABLE and isinstance(array, cp.ndarray)


logger = logging.getLogger(__name__)


class GPUBackend:
    """GPU computation backend with automatic CPU fallback.

    This class provides a unified interface for the array operations used by
    the synthesizers, running on CuPy when available and on NumPy otherwise.
    """

    def __init__(self, force_cpu: Optional[bool] = None, config_file: Optional[str] = None):
        """Initialize GPU backend.

        Args:
            force_cpu: If True, force CPU computation even if GPU is available (loads from config if None)
            config_file: Path to configuration file (uses default if None)
        """
        self._gpu_available = False
        self._memory_pool = None
        self._device_id = None
        self._error_handler = ErrorHandler()
        self._memory_limit = 4 * 1024 * 1024 * 1024
        self._cleanup_after_operations = True

        if force_cpu is None:
            try:
                config_manager = get_config(config_file)
                gpu_config = config_manager.get_gpu_config()
                self._force_cpu = not gpu_config["enable_gpu"]
                self._memory_limit = config_manager.get_memory_limit_bytes()
                self._cleanup_after_operations = gpu_config["cleanup_memory_after_operations"]

                logger.debug(
                    f"Loaded GPU configuration: enable_gpu={gpu_config['enable_gpu']}, "
                    f"memory_limit={self._memory_limit/1024**3:.1f}GB"
                )
            except ConfigurationError as e:
                context = create_error_context(
                    "gpu_config_load", "GPUBackend", config_file=config_file
                )
                self._error_handler.handle_error(e, context)
                logger.warning(f"Could not load GPU configuration: {e}. Using CPU.")
                self._force_cpu = True
        else:
            self._force_cpu = force_cpu

        if not self._force_cpu:
            self._gpu_available = self.initialize_gpu()

        if not self._gpu_available:
            logger.debug("Using CPU backend (NumPy)")
        else:
            logger.info(f"Using GPU backend (CuPy) on device {self._device_id}")

    def initialize_gpu(self) -> bool:
        """Initialize GPU and check availability.

        Returns:
            True if GPU is available and initialized successfully, False otherwise
        """
        if not CUPY_AVAILABLE:
            error = GPUError(
                "CuPy not available. Install cupy-cuda12x for GPU acceleration.",
                "cupy_import",
                ErrorSeverity.LOW,
            )
            context = create_error_context("gpu_initialization", "GPUBackend")
            self._error_handler.handle_error(error, context)
            return False

        try:
            device_count = cp.cuda.runtime.getDeviceCount()
            if device_count == 0:
                error = GPUError("No CUDA devices found", "cuda_device_check", ErrorSeverity.HIGH)
                context = create_error_context("gpu_initialization", "GPUBackend")
                self._error_handler.handle_error(error, context)
                return False

            self._device_id = cp.cuda.Device().id

            # Test basic GPU operation
            if int(cp.sum(cp.array([1, 2, 3])).get()) != 6:
                raise GPUError("GPU computation test failed", "gpu_test", ErrorSeverity.HIGH)

            self._memory_pool = cp.get_default_memory_pool()

            mem_info = cp.cuda.Device().mem_info
            if mem_info[0] < 100 * 1024 * 1024:  # Less than 100MB free
                logger.warning(f"Low GPU memory available: {mem_info[0] / 1024**2:.1f} MB")

            logger.info(f"GPU initialized successfully on device {self._device_id}")
            return True

        except Exception as e:
            gpu_error = (
                e
                if isinstance(e, GPUError)
                else GPUError(f"GPU initialization failed: {e}", "gpu_init", ErrorSeverity.HIGH)
            )
            context = create_error_context("gpu_initialization", "GPUBackend")
            self._error_handler.handle_error(gpu_error, context)
            return False

    @property
    def is_gpu_available(self) -> bool:
        """Check if GPU is available for computation."""
        return self._gpu_available and not self._force_cpu

    @property
    def device_info(self) -> dict:
        """Get information about the current compute device."""
        if self.is_gpu_available:
            device = cp.cuda.Device(self._device_id)
            return {
                "backend": "GPU",
                "device_id": self._device_id,
                "memory_total": device.mem_info[1],
                "memory_free": device.mem_info[0],
                "compute_capability": f"{device.compute_capability[0]}.{device.compute_capability[1]}",
            }
        return {
            "backend": "CPU",
            "device_name": "CPU",
            "memory_total": None,
            "memory_free": None,
        }

    def _fall_back_to_cpu(self, error: Exception, operation: str, **parameters) -> None:
        """Report a GPU failure and switch this backend to NumPy."""
        if not isinstance(error, (GPUError, GPUMemoryError)):
            error = GPUError(f"GPU {operation} failed: {error}", operation, ErrorSeverity.MEDIUM)
        context = create_error_context(operation, "GPUBackend", **parameters)
        self._error_handler.handle_error(error, context)
        logger.warning(f"GPU {operation} failed: {error}. Falling back to CPU.")
        self._gpu_available = False

    def allocate_signal_memory(
        self, shape: Union[int, Tuple[int, ...]], dtype: np.dtype = np.complex128
    ) -> Union[np.ndarray, "cp.ndarray"]:
        """Allocate a zero-filled buffer.

        Args:
            shape: Shape of the array to allocate
            dtype: Data type for the array

        Returns:
            Allocated array (CuPy array if GPU available, NumPy array otherwise)
        """
        shape = (shape,) if isinstance(shape, int) else tuple(shape)
        required_bytes = int(np.prod(shape)) * np.dtype(dtype).itemsize

        if not self.is_gpu_available:
            return np.zeros(shape, dtype=dtype)

        try:
            available_bytes = min(cp.cuda.Device().mem_info[0], self._memory_limit)
            if required_bytes > available_bytes:
                raise GPUMemoryError(
                    f"Insufficient GPU memory: required {required_bytes/1024**2:.1f} MB, "
                    f"available {available_bytes/1024**2:.1f} MB",
                    required_bytes,
                    available_bytes,
                )
            return cp.zeros(shape, dtype=dtype)
        except Exception as e:
            self._fall_back_to_cpu(
                e, "memory_allocation", shape=shape, required_mb=required_bytes / 1024**2
            )
            return np.zeros(shape, dtype=dtype)

    def to_gpu(self, array: np.ndarray) -> Union[np.ndarray, "cp.ndarray"]:
        """Transfer array to GPU if available.

        Args:
            array: NumPy array to transfer

        Returns:
            CuPy array if GPU available, original NumPy array otherwise
        """
        if self.is_gpu_available:
            try:
                return cp.asarray(array)
            except Exception as e:
                logger.warning(f"GPU transfer failed: {e}. Using CPU array.")
                return array
        return array

    def to_cpu(self, array: Union[np.ndarray, "cp.ndarray"]) -> np.ndarray:
        """Transfer array to CPU.

        Args:
            array: Array to transfer (CuPy or NumPy)

        Returns:
            NumPy array
        """
        if hasattr(array, "get"):
            return array.get()
        return np.asarray(array)

    def match_device(
        self, array: Union[np.ndarray, "cp.ndarray"], reference: Union[np.ndarray, "cp.ndarray"]
    ) -> Union[np.ndarray, "cp.ndarray"]:
        """Move ``array`` to the device that holds ``reference``.

        Buffers allocated on the GPU stay there after a mid-frame fallback to
        NumPy, so blocks computed afterwards are copied back before they are
        written into them.
        """
        if is_device_array(reference):
            return cp.asarray(array)
        return self.to_cpu(array)

    def perform_centered_ifft(
        self, spectrum: Union[np.ndarray, "cp.ndarray"]
    ) -> Union[np.ndarray, "cp.ndarray"]:
        """Inverse DFT of a spectrum whose DC bin sits at index N/2.

        The centred vector is re-ordered so that DC lands at index 0 before
        transforming, and the 1/N scaling of the inverse DFT is kept.

        Args:
            spectrum: Centred frequency vector of length N

        Returns:
            Time-domain block of length N
        """
        if self.is_gpu_available and is_device_array(spectrum):
            try:
                return cp.fft.ifft(cp.fft.ifftshift(spectrum))
            except Exception as e:
                self._fall_back_to_cpu(e, "ifft", length=int(spectrum.size))

        return np.fft.ifft(np.fft.ifftshift(self.to_cpu(spectrum)))

    def convolve(
        self, signal: Union[np.ndarray, "cp.ndarray"], taps: Union[np.ndarray, "cp.ndarray"]
    ) -> Union[np.ndarray, "cp.ndarray"]:
        """Full linear convolution (output length len(signal) + len(taps) - 1)."""
        if self.is_gpu_available and is_device_array(signal):
            try:
                return cp.convolve(signal, cp.asarray(taps))
            except Exception as e:
                self._fall_back_to_cpu(e, "convolution", length=int(signal.size))

        return np.convolve(self.to_cpu(signal), self.to_cpu(taps))

    def get_memory_info(self) -> dict:
        """Get current memory usage information.

        Returns:
            Dictionary with memory usage statistics
        """
        if self.is_gpu_available and self._memory_pool:
            return {
                "backend": "GPU",
                "used_bytes": self._memory_pool.used_bytes(),
                "total_bytes": self._memory_pool.total_bytes(),
                "free_bytes": cp.cuda.Device().mem_info[0],
            }
        return {"backend": "CPU", "used_bytes": None, "total_bytes": None, "free_bytes": None}

    def cleanup_memory(self) -> None:
        """Clean up GPU memory and free unused allocations."""
        if self.is_gpu_available and self._cleanup_after_operations:
            try:
                if self._memory_pool:
                    self._memory_pool.free_all_blocks()
                cp.cuda.Stream.null.synchronize()
                logger.debug("GPU memory cleanup completed")
            except Exception as e:
                logger.warning(f"GPU memory cleanup failed: {e}")

    @property
    def error_handler(self) -> ErrorHandler:
        """Error handler recording this backend's failures."""
        return self._error_handler

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit with automatic cleanup."""
        self.cleanup_memory()

    def __repr__(self) -> str:
        """String representation of GPUBackend."""
        return f"GPUBackend(backend={'GPU' if self.is_gpu_available else 'CPU'})"
