"""Run result data structure."""

from dataclasses import dataclass
from typing import Optional

from .exceptions import EXIT_INTERRUPTED, EXIT_SESSION_START_FAILURE


@dataclass(frozen=True)
class RunResult:
    """Outcome of one supervised session."""

    exit_code: int
    signaled: bool
    duration_ms: int
    instance_name: str = ""
    session_id: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.exit_code == 0 and not self.signaled

    @property
    def process_exit_code(self) -> int:
        """Exit status the launcher process should return.

        Mirrors the target's own code; an interrupted run whose target left
        no code (or reported 0) maps to 130. A negative code means the
        runtime could not report one.
        """
        if self.signaled and self.exit_code <= 0:
            return EXIT_INTERRUPTED
        if self.exit_code < 0:
            return EXIT_SESSION_START_FAILURE
        return self.exit_code & 0xFF


__all__ = ["RunResult"]
