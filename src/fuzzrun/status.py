"""Session lifecycle states."""

from enum import Enum


class SessionState(Enum):
    """Possible states for a launcher session."""

    IDLE = "idle"
    CREATING = "creating"
    RUNNING = "running"
    TEARING_DOWN = "tearing_down"
    TERMINATED = "terminated"


__all__ = ["SessionState"]
