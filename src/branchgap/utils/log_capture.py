"""Per-run log transcripts.

``LogCapture`` attaches a buffering handler to the ``branchgap`` logger for
the duration of one repository run, so the transcript can be persisted next
to the analysis result. Progress steps shown on the console are added as
plain lines through ``add``.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Self

_ROOT_LOGGER = "branchgap"


class _TranscriptFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created, tz=UTC).isoformat(
            timespec="milliseconds"
        )
        message = f"[{timestamp}] [{record.levelname}] {record.getMessage()}"
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return message


class _BufferHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__(level=logging.DEBUG)
        self.lines: list[str] = []
        self.setFormatter(_TranscriptFormatter())

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.lines.append(self.format(record))
        except Exception:
            self.handleError(record)


class LogCapture:
    """Context manager collecting every ``branchgap`` log record emitted inside it."""

    def __init__(self, logger_name: str = _ROOT_LOGGER) -> None:
        self._logger = logging.getLogger(logger_name)
        self._handler = _BufferHandler()
        self._previous_level: int | None = None

    def __enter__(self) -> Self:
        self._handler.lines.clear()
        self._previous_level = self._logger.level
        # Records below the logger's own level never reach handlers.
        if self._logger.getEffectiveLevel() > logging.DEBUG:
            self._logger.setLevel(logging.DEBUG)
        self._logger.addHandler(self._handler)
        return self

    def __exit__(self, *exc_info: object) -> None:
        self._logger.removeHandler(self._handler)
        if self._previous_level is not None:
            self._logger.setLevel(self._previous_level)
            self._previous_level = None

    def add(self, message: str) -> None:
        """Append a line that did not come from a log record, such as a progress step."""
        self._handler.lines.append(message)

    @property
    def transcript(self) -> str:
        return "\n".join(self._handler.lines)


class NullLogCapture:
    """Drop-in ``LogCapture`` that records nothing."""

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *exc_info: object) -> None:
        return None

    def add(self, message: str) -> None:
        return None

    @property
    def transcript(self) -> str:
        return ""
