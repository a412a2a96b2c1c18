"""Translate operator interrupts into a cancellation token."""

from __future__ import annotations

import asyncio
import logging
import signal
from contextlib import contextmanager
from typing import Iterator, List, Optional

logger = logging.getLogger(__name__)

__all__ = ["interrupt_token"]

_SIGNALS = (signal.SIGINT, signal.SIGTERM, getattr(signal, "SIGHUP", None))


@contextmanager
def interrupt_token(
    loop: Optional[asyncio.AbstractEventLoop] = None,
) -> Iterator[asyncio.Event]:
    """Yield an event that is set when SIGINT/SIGTERM/SIGHUP arrives.

    Handlers are installed on the running loop for the duration of the
    block and removed afterwards. Where the loop cannot install signal
    handlers (Windows), the event is still usable; Ctrl-C then surfaces as
    ``KeyboardInterrupt`` in the caller.
    """
    loop = loop or asyncio.get_event_loop()
    token = asyncio.Event()
    installed: List[int] = []

    def _on_signal(signum: int) -> None:
        logger.info("Received signal %s", signal.Signals(signum).name)
        token.set()

    for sig in _SIGNALS:
        if sig is None:
            continue
        try:
            loop.add_signal_handler(sig, _on_signal, int(sig))
            installed.append(int(sig))
        except (NotImplementedError, RuntimeError, ValueError):
            logger.debug("Cannot install handler for %s on this platform", sig)
    try:
        yield token
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)
