"""
Tests for the error handling system.

This module tests the error classes, classification, fallback recovery and
diagnostic reporting.
"""

import logging
from datetime import datetime

import pytest

from ofdm_ufmc_generator.config_manager import ConfigurationError
from ofdm_ufmc_generator.error_handling import (
    CUPY_AVAILABLE,
    ErrorCategory,
    ErrorContext,
    ErrorHandler,
    ErrorSeverity,
    GPUError,
    GPUMemoryError,
    PreconditionError,
    WaveformError,
    classify_error,
    create_error_context,
)
from ofdm_ufmc_generator.validation import ValidationError


class TestErrorClasses:
    """Test custom error classes."""

    def test_waveform_error_creation(self):
        """Test WaveformError creation and attributes."""
        error = WaveformError("Test error", ErrorCategory.SYSTEM_ERROR, ErrorSeverity.HIGH)

        assert str(error) == "Test error"
        assert error.category == ErrorCategory.SYSTEM_ERROR
        assert error.severity == ErrorSeverity.HIGH
        assert isinstance(error.timestamp, datetime)

    def test_precondition_error_is_value_error(self):
        """Precondition failures can be caught as ValueError."""
        error = PreconditionError("bad bits", "bits")

        assert isinstance(error, ValueError)
        assert isinstance(error, WaveformError)
        assert error.category == ErrorCategory.PRECONDITION_ERROR
        assert error.severity == ErrorSeverity.HIGH
        assert error.parameter == "bits"

    def test_gpu_error_creation(self):
        """Test GPUError creation and attributes."""
        error = GPUError("GPU operation failed", "ifft", ErrorSeverity.HIGH)

        assert error.category == ErrorCategory.GPU_ERROR
        assert error.gpu_operation == "ifft"

    def test_gpu_memory_error_creation(self):
        """Test GPUMemoryError creation and attributes."""
        error = GPUMemoryError("Out of memory", 1000, 500, ErrorSeverity.CRITICAL)

        assert error.category == ErrorCategory.MEMORY_ERROR
        assert error.severity == ErrorSeverity.CRITICAL
        assert error.memory_requested == 1000
        assert error.memory_available == 500



class TestClassifyError:
    """Test mapping of exceptions to categories and severities."""

    @pytest.mark.parametrize(
        "error, category, severity",
        [
            (
                ValidationError("fft_size must be a power of two"),
                ErrorCategory.VALIDATION_ERROR,
                ErrorSeverity.MEDIUM,
            ),
            (
                ConfigurationError("bad file"),
                ErrorCategory.CONFIGURATION_ERROR,
                ErrorSeverity.MEDIUM,
            ),
            (RuntimeError("CUDA driver missing"), ErrorCategory.GPU_ERROR, ErrorSeverity.HIGH),
            (RuntimeError("allocation failed"), ErrorCategory.MEMORY_ERROR, ErrorSeverity.HIGH),
            (MemoryError(), ErrorCategory.MEMORY_ERROR, ErrorSeverity.HIGH),
            (
                RuntimeError("result contains nan"),
                ErrorCategory.COMPUTATION_ERROR,
                ErrorSeverity.MEDIUM,
            ),
            (RuntimeError("unexpected"), ErrorCategory.SYSTEM_ERROR, ErrorSeverity.MEDIUM),
            (PreconditionError("bits"), ErrorCategory.PRECONDITION_ERROR, ErrorSeverity.HIGH),
        ],
    )
    def test_classification(self, error, category, severity):
        """Errors are classified by type, then by message."""
        assert classify_error(error) == (category, severity)

    def test_package_errors_keep_their_classification(self):
        """Keywords in a WaveformError message do not override its category."""
        error = WaveformError("gpu device lost", severity=ErrorSeverity.CRITICAL)

        assert classify_error(error) == (ErrorCategory.SYSTEM_ERROR, ErrorSeverity.CRITICAL)


class TestErrorHandler:
    """Test ErrorHandler recording and recovery."""

    @pytest.fixture
    def error_handler(self):
        """Fresh error handler."""
        return ErrorHandler()

    @pytest.fixture
    def context(self):
        """Sample error context."""
        return create_error_context("ifft", "GPUBackend", length=256)

    def test_create_error_context(self, context):
        """Context captures operation, component and parameters."""
        assert isinstance(context, ErrorContext)
        assert context.operation == "ifft"
        assert context.component == "GPUBackend"
        assert context.parameters == {"length": 256}
        assert context.cupy_available == CUPY_AVAILABLE
        assert isinstance(context.timestamp, datetime)

    def test_default_context(self, error_handler):
        """Errors without a context are attributed to an unknown operation."""
        report = error_handler.handle_error(RuntimeError("unexpected"))

        assert report.context.operation == "unknown"
        assert report.context.component == "unknown"

    def test_error_ids_are_sequential(self, error_handler):
        """Each report gets the next identifier."""
        first = error_handler.handle_error(RuntimeError("one"))
        second = error_handler.handle_error(RuntimeError("two"))

        assert first.error_id == "E0001"
        assert second.error_id == "E0002"
        assert error_handler.error_history == [first, second]

    def test_gpu_error_fallback(self, error_handler, context):
        """GPU errors switch the caller to NumPy."""
        report = error_handler.handle_error(GPUError("kernel launch failed", "ifft"), context)

        assert report.fallback_used
        assert report.recovery_actions[0] == "Switched to NumPy computation"
        assert report.diagnostic_data == {"gpu_fallback_triggered": True}

    def test_memory_error_fallback(self, error_handler, context):
        """Memory errors collect garbage and record the request size."""
        error = GPUMemoryError("Insufficient GPU memory", 2048, 1024)

        report = error_handler.handle_error(error, context)

        assert report.fallback_used
        assert report.recovery_actions[0].startswith("Garbage collection freed")
        assert report.recovery_actions[-1] == "Reduce num_symbols or fft_size per frame"
        assert report.diagnostic_data["memory_recovery_attempted"] is True
        assert report.diagnostic_data["memory_requested"] == 2048
        assert report.diagnostic_data["memory_available"] == 1024

    def test_precondition_errors_are_not_recovered(self, error_handler):
        """Precondition failures have no fallback."""
        report = error_handler.handle_error(PreconditionError("wrong bit count", "bits"))

        assert not report.fallback_used
        assert report.recovery_actions == []

    def test_recovery_disabled(self, context):
        """No fallback runs when fallbacks are disabled."""
        handler = ErrorHandler(enable_fallbacks=False)

        report = handler.handle_error(GPUError("failure"), context)

        assert not report.fallback_used
        assert handler.fallback_count == 0

    def test_recovery_not_attempted(self, error_handler, context):
        """Callers can record an error without recovering from it."""
        report = error_handler.handle_error(GPUError("failure"), context, attempt_recovery=False)

        assert not report.fallback_used
        assert report.recovery_actions == []

    def test_failed_recovery_is_recorded(self, error_handler, monkeypatch):
        """A recovery that raises is recorded, not propagated."""

        def broken(error):
            raise RuntimeError("pool release broke")

        monkeypatch.setitem(error_handler._recoveries, ErrorCategory.GPU_ERROR, broken)

        report = error_handler.handle_error(GPUError("device lost"))

        assert not report.fallback_used
        assert report.recovery_actions == ["Recovery failed: pool release broke"]

    def test_error_is_logged(self, error_handler, context, caplog):
        """Reports are logged at the level of their severity."""
        with caplog.at_level(logging.INFO, logger="ofdm_ufmc_generator.error_handling"):
            error_handler.handle_error(GPUError("device lost"), context)

        messages = [r.getMessage() for r in caplog.records if r.levelno == logging.ERROR]
        assert any("GPUBackend.ifft: device lost" in message for message in messages)
        assert "Continuing on NumPy" in caplog.text

    def test_error_statistics(self, error_handler):
        """Statistics count errors, fallbacks, categories and severities."""
        error_handler.handle_error(GPUError("gpu failure"))
        error_handler.handle_error(PreconditionError("bad bits"))
        error_handler.handle_error(WaveformError("fatal", severity=ErrorSeverity.CRITICAL))

        stats = error_handler.get_error_statistics()

        assert stats == {
            "total_errors": 3,
            "fallbacks": 1,
            "by_category": {"gpu_error": 1, "precondition_error": 1, "system_error": 1},
            "by_severity": {"high": 2, "critical": 1},
        }

    def test_empty_statistics(self, error_handler):
        """A fresh handler reports nothing."""
        assert error_handler.get_error_statistics()["total_errors"] == 0
        assert error_handler.generate_diagnostic_report() == (
            "Compute backend diagnostics: 0 error(s), 0 NumPy fallback(s)"
        )

    def test_diagnostic_report(self, error_handler, context):
        """The report lists each error with its recovery actions."""
        error_handler.handle_error(GPUError("device lost"), context)

        lines = error_handler.generate_diagnostic_report().splitlines()

        assert lines[0] == "Compute backend diagnostics: 1 error(s), 1 NumPy fallback(s)"
        assert lines[1] == "  [E0001] high gpu_error during ifft: device lost"
        assert lines[2] == "    - Switched to NumPy computation"

    def test_diagnostic_report_with_traceback(self, error_handler):
        """Tracebacks are appended on request."""
        try:
            raise GPUError("device lost")
        except GPUError as e:
            error_handler.handle_error(e)

        report = error_handler.generate_diagnostic_report(include_traceback=True)

        assert "Traceback" in report
        assert "Traceback" not in error_handler.generate_diagnostic_report()
