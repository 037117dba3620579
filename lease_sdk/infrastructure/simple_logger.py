"""Simple logger implementation over the standard logging module."""

import logging
from typing import Any

from ..ports.logger import LoggerPort


class SimpleLogger(LoggerPort):
    """Logger writing structured context as ``key=value`` pairs.

    Keyword arguments are appended to the message so they show up with any
    formatter, e.g. ``Heartbeat failed (identifier=abc, error=boom)``.
    """

    def __init__(self, name: str = "lease_sdk", level: int = logging.INFO):
        """Initialize the logger.

        Args:
            name: Logger name (default: "lease_sdk")
            level: Logging level (default: INFO)
        """
        self._logger = logging.getLogger(name)
        self._logger.setLevel(level)

        if not self._logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
            handler.setFormatter(formatter)
            self._logger.addHandler(handler)

    @staticmethod
    def _format(message: str, context: dict[str, Any]) -> str:
        if not context:
            return message
        pairs = ", ".join(f"{key}={value}" for key, value in context.items())
        return f"{message} ({pairs})"

    def debug(self, message: str, **kwargs: Any) -> None:
        """Log a debug message."""
        self._logger.debug(self._format(message, kwargs))

    def info(self, message: str, **kwargs: Any) -> None:
        """Log an info message."""
        self._logger.info(self._format(message, kwargs))

    def warning(self, message: str, **kwargs: Any) -> None:
        """Log a warning message."""
        self._logger.warning(self._format(message, kwargs))

    def error(self, message: str, **kwargs: Any) -> None:
        """Log an error message."""
        self._logger.error(self._format(message, kwargs))

    def exception(self, message: str, exc_info: Exception | None = None, **kwargs: Any) -> None:
        """Log an exception with traceback."""
        self._logger.error(self._format(message, kwargs), exc_info=exc_info or True)
