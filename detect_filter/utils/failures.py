"""
Structured error handling and failure tracking for the detect filter.

Every failure in the capture/inference path is absorbed at its component
boundary; these types exist so the boundary can log and count them.
"""
import threading
import time
from typing import Dict, List, Optional

from detect_filter.utils.logger import Logger


class DetectFilterError(Exception):
    """Base class for all detect filter exceptions."""
    def __init__(self, message: str, critical: bool = False):
        super().__init__(message)
        self.message = message
        self.critical = critical
        self.timestamp = time.time()


class CaptureUnavailable(DetectFilterError):
    """Source disabled, zero-sized, or the GPU readback failed."""
    pass


class ModelLoadFailure(DetectFilterError):
    """Model file missing, corrupt or incompatible."""

    def __init__(self, path: str, message: str):
        super().__init__(f"{path}: {message}")
        self.path = path


class FrameFormatError(DetectFilterError):
    """Captured frame cannot be reinterpreted as BGRA."""
    pass


class ConfigError(DetectFilterError):
    """Exception raised for configuration-related failures."""
    pass


class FailureManager:
    """Tracks and manages recurring failures to improve system resilience."""

    def __init__(self, settings: Optional[dict] = None):
        """
        Initialize the failure manager.

        Args:
            settings: Dictionary containing 'threshold' and 'window_seconds'
        """
        self.logger = Logger("FailureManager")

        self.settings = settings or {}
        self.threshold = self.settings.get('threshold', 50)
        self.window_seconds = self.settings.get('window_seconds', 60)

        self.failures: Dict[str, List[float]] = {}
        self.history: List[DetectFilterError] = []
        self._max_history = 100
        self._alerted: Dict[str, bool] = {}
        self._lock = threading.Lock()

    def record_failure(self, error: Exception):
        """
        Record a failure incident (thread-safe).

        Non-critical DetectFilterErrors are only counted; the component that
        raised them decides how loudly to log.

        Args:
            error: The exception that occurred.
        """
        with self._lock:
            error_type = type(error).__name__
            now = time.time()

            timestamps = self.failures.setdefault(error_type, [])
            timestamps.append(now)

            # Prune old entries beyond the time window
            cutoff = now - self.window_seconds
            self.failures[error_type] = [t for t in timestamps if t > cutoff]

            if isinstance(error, DetectFilterError):
                self.history.append(error)
                if error.critical:
                    self.logger.error(f"CRITICAL: {error_type} - {error.message}")
            else:
                self.logger.error(f"Unexpected failure: {error_type} - {error}")

            if len(self.history) > self._max_history:
                self.history = self.history[-self._max_history:]

            exceeded = len(self.failures[error_type]) >= self.threshold
            if exceeded and not self._alerted.get(error_type):
                self.logger.warning(
                    f"Resilience Alert: '{error_type}' exceeded threshold "
                    f"({self.threshold} in {self.window_seconds}s)"
                )
            self._alerted[error_type] = exceeded

    def is_threshold_exceeded(self, error_type: str) -> bool:
        """Check if a specific error type has exceeded the frequency threshold."""
        with self._lock:
            if error_type not in self.failures:
                return False

            now = time.time()
            self.failures[error_type] = [
                t for t in self.failures[error_type] if (now - t) < self.window_seconds
            ]
            return len(self.failures[error_type]) >= self.threshold

    def count(self, error_type: str) -> int:
        """Number of failures of this type inside the current window."""
        with self._lock:
            return len(self.failures.get(error_type, []))

    def get_recent_history(self, count: int = 10) -> List[DetectFilterError]:
        """Return the most recent failures."""
        with self._lock:
            return self.history[-count:]

    def clear(self):
        """Reset all tracked failures."""
        with self._lock:
            self.failures = {}
            self.history = []
            self._alerted = {}
        self.logger.info("Failure history cleared.")
