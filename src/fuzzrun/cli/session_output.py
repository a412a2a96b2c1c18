"""Terminal sink for session output, teed into the run's container log."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import BinaryIO, Optional

logger = logging.getLogger(__name__)


class TerminalOutput:
    """Write raw session bytes to the terminal and to ``container.log``."""

    def __init__(self, stream: BinaryIO, log_path: Optional[Path] = None) -> None:
        self.stream = stream
        self.log_path = log_path
        self.bytes_written = 0
        self._log = open(log_path, "ab") if log_path else None

    async def __call__(self, chunk: bytes) -> None:
        self.bytes_written += len(chunk)
        try:
            self.stream.write(chunk)
            self.stream.flush()
        except (OSError, ValueError) as exc:
            # Terminal gone (closed pipe); keep the log going.
            logger.debug("Terminal write failed: %s", exc)
        if self._log is not None:
            self._log.write(chunk)
            self._log.flush()

    def close(self) -> None:
        if self._log is not None:
            self._log.close()
            self._log = None


__all__ = ["TerminalOutput"]
