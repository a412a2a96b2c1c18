"""Host port availability checks."""

from __future__ import annotations

import socket

from .exceptions import PortUnavailable

__all__ = ["ensure_port_free", "is_port_free"]


def is_port_free(port: int, host: str = "0.0.0.0") -> bool:
    """Return ``True`` when a TCP listener could bind ``host:port`` right now."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        # Match how Docker's proxy binds so TIME_WAIT sockets do not count.
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            s.bind((host, int(port)))
            return True
        except OSError:
            return False


def ensure_port_free(port: int, host: str = "0.0.0.0") -> None:
    """Raise ``PortUnavailable`` if ``host:port`` is already bound."""
    if not is_port_free(port, host):
        raise PortUnavailable(port, host)
