"""In-memory log sink for the administration interface."""

from __future__ import annotations

import logging
from collections import deque

from .const import LOG_BUFFER_SIZE


class BufferedLogHandler(logging.Handler):
    """Keep the most recent formatted log lines in a bounded buffer."""

    def __init__(self, capacity: int = LOG_BUFFER_SIZE, level: int = logging.NOTSET) -> None:
        """Initialise an empty buffer holding at most ``capacity`` lines."""

        super().__init__(level)
        self._lines: deque[str] = deque(maxlen=capacity)
        self.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            line = self.format(record)
        except Exception:
            self.handleError(record)
            return
        self._lines.append(line)

    def get_logs(self) -> list[str]:
        """Return buffered lines, oldest first."""

        return list(self._lines)

    def clear(self) -> None:
        self._lines.clear()
