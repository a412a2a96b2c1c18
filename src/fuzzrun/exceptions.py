"""fuzzrun exception hierarchy.

Each launcher-side failure carries the process exit code the CLI returns for
it. The codes live in a reserved band (119-125) so callers can tell "the test
suite reported failures" apart from "the launcher itself could not run".
"""

from __future__ import annotations

from typing import List, Optional

__all__ = [
    "EXIT_CONFIG_ERROR",
    "EXIT_IMAGE_UNAVAILABLE",
    "EXIT_INTERRUPTED",
    "EXIT_NAME_COLLISION",
    "EXIT_PORT_UNAVAILABLE",
    "EXIT_RUNTIME_UNAVAILABLE",
    "EXIT_SESSION_START_FAILURE",
    "DockerError",
    "ImageUnavailable",
    "InstanceAlreadyRunning",
    "LauncherError",
    "NameCollision",
    "PortUnavailable",
    "RuntimeUnavailable",
    "SessionStartFailure",
    "ValidationError",
]

EXIT_CONFIG_ERROR = 119
EXIT_RUNTIME_UNAVAILABLE = 120
EXIT_PORT_UNAVAILABLE = 121
EXIT_IMAGE_UNAVAILABLE = 122
EXIT_NAME_COLLISION = 123
EXIT_SESSION_START_FAILURE = 125
EXIT_INTERRUPTED = 130


class LauncherError(Exception):
    """Base class for fuzzrun exceptions."""

    exit_code: int = EXIT_SESSION_START_FAILURE
    hints: List[str] = []

    def __init__(self, message: str = "", *, hints: Optional[List[str]] = None):
        super().__init__(message)
        if hints is not None:
            self.hints = list(hints)


class ValidationError(LauncherError):
    """Raised when configuration values are invalid."""

    exit_code = EXIT_CONFIG_ERROR


class RuntimeUnavailable(LauncherError):
    """Raised when the isolation runtime (Docker daemon) cannot be reached."""

    exit_code = EXIT_RUNTIME_UNAVAILABLE
    hints = ["start Docker", "check $DOCKER_HOST", "run: docker info"]


class PortUnavailable(LauncherError):
    """Raised when the published host port is already bound."""

    exit_code = EXIT_PORT_UNAVAILABLE

    def __init__(self, port: int, host: str = "0.0.0.0") -> None:
        super().__init__(
            f"Host port {port} is already in use on {host}",
            hints=[
                f"find the owner: lsof -i :{port}",
                "stop the process or container holding the port",
                "pick another port with --port",
            ],
        )
        self.port = port
        self.host = host


class ImageUnavailable(LauncherError):
    """Raised when the image cannot be resolved locally by the runtime."""

    exit_code = EXIT_IMAGE_UNAVAILABLE

    def __init__(self, image: str, detail: str = "") -> None:
        message = f"Docker image '{image}' is not available locally"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(
            message,
            hints=[f"docker pull {image}", "then re-run the launcher"],
        )
        self.image = image


class NameCollision(LauncherError):
    """Raised when a session name is taken and cannot be reclaimed."""

    exit_code = EXIT_NAME_COLLISION

    def __init__(self, name: str, detail: str = "") -> None:
        message = f"A container named '{name}' already exists"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message, hints=[f"docker rm -f {name}", "or pass --name"])
        self.name = name


class InstanceAlreadyRunning(NameCollision):
    """Raised when a live session already holds the instance name."""

    def __init__(self, name: str) -> None:
        super().__init__(name, "it is still running")
        self.hints = [
            f"attach to it: docker attach {name}",
            f"stop it: docker stop {name}",
            "or pass --name to run alongside it on another --port",
        ]


class SessionStartFailure(LauncherError):
    """Raised when the runtime rejects the create or start of a session."""

    exit_code = EXIT_SESSION_START_FAILURE


class DockerError(LauncherError):
    """Raised when a Docker operation fails mid-session."""

    exit_code = EXIT_SESSION_START_FAILURE
