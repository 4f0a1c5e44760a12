"""
Error handling for the OFDM/UFMC waveform generator.

Precondition violations are raised to the caller and never recovered. Compute
backend failures (CuPy errors, device memory exhaustion) are recorded by an
ErrorHandler, which releases device memory so that the backend can continue
on NumPy, and which summarizes what happened for the transmitter's status
output.
"""

import gc
import logging
import traceback
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

try:
    import cupy as cp

    CUPY_AVAILABLE = True
except ImportError:
    cp = None
    CUPY_AVAILABLE = False


class ErrorSeverity(Enum):
    """Error severity levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories for classification."""

    GPU_ERROR = "gpu_error"
    MEMORY_ERROR = "memory_error"
    COMPUTATION_ERROR = "computation_error"
    CONFIGURATION_ERROR = "configuration_error"
    VALIDATION_ERROR = "validation_error"
    PRECONDITION_ERROR = "precondition_error"
    SYSTEM_ERROR = "system_error"


_LOG_LEVELS = {
    ErrorSeverity.LOW: logging.INFO,
    ErrorSeverity.MEDIUM: logging.WARNING,
    ErrorSeverity.HIGH: logging.ERROR,
    ErrorSeverity.CRITICAL: logging.CRITICAL,
}

# Raised by modules that import this one, so matched by name.
_CATEGORIES_BY_TYPE = {
    "ValidationError": ErrorCategory.VALIDATION_ERROR,
    "ConfigurationError": ErrorCategory.CONFIGURATION_ERROR,
}

_CATEGORY_KEYWORDS = (
    (ErrorCategory.GPU_ERROR, ("cuda", "cupy", "gpu", "device")),
    (ErrorCategory.MEMORY_ERROR, ("memory", "allocation")),
    (ErrorCategory.COMPUTATION_ERROR, ("nan", "inf", "overflow")),
)


@dataclass
class ErrorContext:
    """Where an error happened.

    Attributes:
        operation: Backend or generator operation (e.g. "ifft")
        component: Class that hit the error
        parameters: Sizes and settings involved
        timestamp: When the context was created
        cupy_available: Whether CuPy could be imported at all
    """

    operation: str
    component: str
    parameters: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)
    cupy_available: bool = CUPY_AVAILABLE


@dataclass
class ErrorReport:
    """One handled error and the recovery applied to it."""

    error_id: str
    category: ErrorCategory
    severity: ErrorSeverity
    message: str
    context: ErrorContext
    traceback_info: str
    recovery_actions: List[str] = field(default_factory=list)
    fallback_used: bool = False
    diagnostic_data: Dict[str, Any] = field(default_factory=dict)


class WaveformError(Exception):
    """Base exception class for waveform generator errors."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.SYSTEM_ERROR,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        context: Optional[ErrorContext] = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.context = context
        self.timestamp = datetime.now()


class PreconditionError(WaveformError, ValueError):
    """Input that makes synthesis impossible, raised before any sample is produced."""

    def __init__(self, message: str, parameter: str = ""):
        super().__init__(message, ErrorCategory.PRECONDITION_ERROR, ErrorSeverity.HIGH)
        self.parameter = parameter


class GPUError(WaveformError):
    """GPU-related errors."""

    def __init__(
        self, message: str, gpu_operation: str = "", severity: ErrorSeverity = ErrorSeverity.HIGH
    ):
        super().__init__(message, ErrorCategory.GPU_ERROR, severity)
        self.gpu_operation = gpu_operation


class GPUMemoryError(WaveformError):
    """Device memory errors."""

    def __init__(
        self,
        message: str,
        memory_requested: int = 0,
        memory_available: int = 0,
        severity: ErrorSeverity = ErrorSeverity.HIGH,
    ):
        super().__init__(message, ErrorCategory.MEMORY_ERROR, severity)
        self.memory_requested = memory_requested
        self.memory_available = memory_available


def classify_error(error: Exception) -> Tuple[ErrorCategory, ErrorSeverity]:
    """Map an exception to a category and severity.

    Package exceptions carry their own classification; anything else is
    classified by type name, then by keywords in its message.
    """
    if isinstance(error, WaveformError):
        return error.category, error.severity

    category = _CATEGORIES_BY_TYPE.get(type(error).__name__)
    if category is not None:
        return category, ErrorSeverity.MEDIUM

    if isinstance(error, MemoryError):
        return ErrorCategory.MEMORY_ERROR, ErrorSeverity.HIGH

    message = str(error).lower()
    for category, keywords in _CATEGORY_KEYWORDS:
        if any(keyword in message for keyword in keywords):
            severity = (
                ErrorSeverity.MEDIUM
                if category == ErrorCategory.COMPUTATION_ERROR
                else ErrorSeverity.HIGH
            )
            return category, severity

    return ErrorCategory.SYSTEM_ERROR, ErrorSeverity.MEDIUM


def _free_device_memory(actions: List[str]) -> None:
    if not CUPY_AVAILABLE:
        return
    try:
        cp.get_default_memory_pool().free_all_blocks()
        actions.append("Released CuPy memory pool")
    except Exception as e:
        actions.append(f"CuPy memory pool release failed: {e}")


class ErrorHandler:
    """Records backend errors and applies the NumPy fallback.

    GPU and device-memory errors have a recovery that frees the CuPy memory
    pool; the caller then continues on NumPy. Other categories are only
    recorded and logged.
    """

    def __init__(self, enable_fallbacks: bool = True):
        self.enable_fallbacks = enable_fallbacks
        self.error_history: List[ErrorReport] = []
        self._recoveries: Dict[ErrorCategory, Callable[[Exception], Dict[str, Any]]] = {
            ErrorCategory.GPU_ERROR: self._recover_from_gpu_error,
            ErrorCategory.MEMORY_ERROR: self._recover_from_memory_error,
        }

    def handle_error(
        self,
        error: Exception,
        context: Optional[ErrorContext] = None,
        attempt_recovery: bool = True,
    ) -> ErrorReport:
        """Record an error and, for backend failures, apply the NumPy fallback.

        Args:
            error: Exception that occurred
            context: Where it happened (an "unknown" context if None)
            attempt_recovery: Whether to run the category's recovery

        Returns:
            ErrorReport describing the error and any recovery
        """
        category, severity = classify_error(error)
        report = ErrorReport(
            error_id=f"E{len(self.error_history) + 1:04d}",
            category=category,
            severity=severity,
            message=str(error),
            context=context or ErrorContext("unknown", "unknown"),
            traceback_info=traceback.format_exc(),
        )

        recovery = self._recoveries.get(category)
        if recovery is not None and attempt_recovery and self.enable_fallbacks:
            try:
                result = recovery(error)
            except Exception as recovery_error:
                logger.error(f"[{report.error_id}] Recovery failed: {recovery_error}")
                report.recovery_actions.append(f"Recovery failed: {recovery_error}")
            else:
                report.fallback_used = True
                report.recovery_actions.extend(result["actions"])
                report.diagnostic_data.update(result["diagnostic_data"])

        logger.log(
            _LOG_LEVELS[severity],
            f"[{report.error_id}] {category.value} in "
            f"{report.context.component}.{report.context.operation}: {report.message}",
        )
        if report.fallback_used:
            logger.info(f"[{report.error_id}] Continuing on NumPy")

        self.error_history.append(report)
        return report

    @staticmethod
    def _recover_from_gpu_error(error: Exception) -> Dict[str, Any]:
        actions = ["Switched to NumPy computation"]
        _free_device_memory(actions)
        return {"actions": actions, "diagnostic_data": {"gpu_fallback_triggered": True}}

    @staticmethod
    def _recover_from_memory_error(error: Exception) -> Dict[str, Any]:
        actions = [f"Garbage collection freed {gc.collect()} objects"]
        _free_device_memory(actions)
        actions.append("Reduce num_symbols or fft_size per frame")

        diagnostic_data: Dict[str, Any] = {"memory_recovery_attempted": True}
        if isinstance(error, GPUMemoryError):
            diagnostic_data["memory_requested"] = error.memory_requested
            diagnostic_data["memory_available"] = error.memory_available
        return {"actions": actions, "diagnostic_data": diagnostic_data}

    @property
    def fallback_count(self) -> int:
        """Number of errors that ended in a NumPy fallback."""
        return sum(report.fallback_used for report in self.error_history)

    def get_error_statistics(self) -> Dict[str, Any]:
        """Counts of recorded errors by category and severity."""
        return {
            "total_errors": len(self.error_history),
            "fallbacks": self.fallback_count,
            "by_category": dict(Counter(r.category.value for r in self.error_history)),
            "by_severity": dict(Counter(r.severity.value for r in self.error_history)),
        }

    def generate_diagnostic_report(self, include_traceback: bool = False) -> str:
        """Plain-text listing of the recorded errors.

        Args:
            include_traceback: Append the captured traceback of each error

        Returns:
            Report text, one block per error
        """
        lines = [
            f"Compute backend diagnostics: {len(self.error_history)} error(s), "
            f"{self.fallback_count} NumPy fallback(s)"
        ]
        for report in self.error_history:
            lines.append(
                f"  [{report.error_id}] {report.severity.value} {report.category.value} "
                f"during {report.context.operation}: {report.message}"
            )
            lines.extend(f"    - {action}" for action in report.recovery_actions)
            if include_traceback and report.traceback_info:
                lines.append(report.traceback_info.rstrip())
        return "\n".join(lines)


def create_error_context(operation: str, component: str, **parameters) -> ErrorContext:
    """Build an ErrorContext for ``component.operation`` with its parameters."""
    return ErrorContext(operation=operation, component=component, parameters=parameters)
