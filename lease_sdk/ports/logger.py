"""Logging port used by the lease manager, resolver and transports."""

from abc import ABC, abstractmethod
from typing import Any


class LoggerPort(ABC):
    """Where the SDK reports lease and resolution events.

    Context travels as keyword arguments rather than being formatted into
    the message, e.g. ``logger.warning("Heartbeat failed", identifier=...,
    consecutive_failures=3)``. Keys used across the SDK are ``identifier``,
    ``service``, ``operation`` and ``url``.
    """

    @abstractmethod
    def debug(self, message: str, **kwargs: Any) -> None:
        """Per-request detail: renewals sent, registry responses."""

    @abstractmethod
    def info(self, message: str, **kwargs: Any) -> None:
        """Lease lifecycle transitions."""

    @abstractmethod
    def warning(self, message: str, **kwargs: Any) -> None:
        """Recoverable failures such as a missed heartbeat."""

    @abstractmethod
    def error(self, message: str, **kwargs: Any) -> None:
        """Failures the caller has to act on."""

    def exception(self, message: str, exc_info: Exception | None = None, **kwargs: Any) -> None:
        """Report an unexpected error.

        Adapters that can render tracebacks override this; the default logs
        the error text through ``error()``.
        """
        if exc_info is not None:
            kwargs["error"] = f"{type(exc_info).__name__}: {exc_info}"
        self.error(message, **kwargs)
