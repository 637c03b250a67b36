"""
Callback interface for extractor progress reporting and cancellation.
"""

import threading
from typing import Protocol

from core.logging import get_logger

LOGGER = get_logger("extractors.callbacks")


class ExtractorCallbacks(Protocol):
    """
    Callback interface for extractor progress reporting.

    Extractors call these methods to report progress, logs and errors, and
    poll ``is_cancelled`` at their checkpoints. Cancellation is never pushed
    into an extractor.
    """

    def on_progress(self, current: int, total: int, message: str = "") -> None:
        """
        Report progress.

        Args:
            current: Current item (1-based once work on it started)
            total: Total items
            message: Optional status message
        """
        ...

    def on_log(self, message: str, level: str = "info") -> None:
        """
        Log a message.

        Args:
            message: Log message
            level: "debug" | "info" | "warning" | "error"
        """
        ...

    def on_error(self, error: str, details: str = "") -> None:
        """Report a user-facing error with optional details."""
        ...

    def on_step(self, step_name: str) -> None:
        """Report entering a new processing step."""
        ...

    def is_cancelled(self) -> bool:
        """Return True once the operation should stop."""
        ...


class LoggingCallbacks:
    """
    ExtractorCallbacks implementation that writes to the application log.

    Cancellation is backed by a ``threading.Event`` so ``cancel()`` may be
    called from a signal handler or another thread.
    """

    def __init__(self, logger=None) -> None:
        self._logger = logger or LOGGER
        self._cancel_event = threading.Event()
        self.errors: list[str] = []

    def on_progress(self, current: int, total: int, message: str = "") -> None:
        self._logger.info("[%d/%d] %s", current, total, message)

    def on_log(self, message: str, level: str = "info") -> None:
        log_method = getattr(self._logger, level, self._logger.info)
        log_method(message)

    def on_error(self, error: str, details: str = "") -> None:
        self.errors.append(error)
        if details:
            self._logger.error("%s: %s", error, details)
        else:
            self._logger.error(error)

    def on_step(self, step_name: str) -> None:
        self._logger.info("Step: %s", step_name)

    def is_cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def cancel(self) -> None:
        self._cancel_event.set()
