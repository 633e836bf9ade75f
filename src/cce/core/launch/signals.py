"""
Signal forwarding from the launcher to its child process.

While a child runs, SIGINT and SIGTERM delivered to the launcher are pushed
onto a dedicated queue and relayed to the child by one listener thread. The
subscription is scoped: entering the forwarder installs the handlers,
leaving it restores the previous handlers and stops the listener, on every
exit path.

Usage:
    >>> with SignalForwarder(process) as forwarder:
    ...     process.wait()
    >>> forwarder.forwarded
    [2]
"""

from __future__ import annotations

import logging
import queue
import signal
import subprocess
import threading
from collections.abc import Sequence
from types import TracebackType
from typing import Any

logger = logging.getLogger(__name__)

FORWARDED_SIGNALS: tuple[signal.Signals, ...] = (signal.SIGINT, signal.SIGTERM)

_STOP = object()


class SignalForwarder:
    """
    Scoped SIGINT/SIGTERM subscription that relays signals to a child.

    Signal handlers can only be installed from the main thread. Elsewhere the
    forwarder stays passive: signals keep their existing handling and the
    child still receives terminal-generated signals through its process
    group.

    Attributes:
        forwarded: Signal numbers relayed to the child, in order
        active: Whether handlers are currently installed
    """

    def __init__(
        self,
        process: subprocess.Popen[Any],
        signals: Sequence[signal.Signals] = FORWARDED_SIGNALS,
    ) -> None:
        self._process = process
        self._signals = tuple(signals)
        # SimpleQueue.put is reentrant, so the signal handler can use it.
        self._queue: queue.SimpleQueue[object] = queue.SimpleQueue()
        self._previous: dict[signal.Signals, Any] = {}
        self._listener: threading.Thread | None = None
        self.forwarded: list[int] = []
        self.active = False

    def __enter__(self) -> SignalForwarder:
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.stop()

    def start(self) -> None:
        """Install handlers and start the listener thread."""
        if self.active:
            return
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not on the main thread; signal forwarding disabled")
            return

        for sig in self._signals:
            self._previous[sig] = signal.signal(sig, self._handle_signal)
        self.active = True

        self._listener = threading.Thread(
            target=self._listen,
            name=f"cce-signal-forwarder-{self._process.pid}",
            daemon=True,
        )
        self._listener.start()

    def stop(self) -> None:
        """Restore previous handlers and stop the listener thread."""
        if not self.active:
            return

        for sig, previous in self._previous.items():
            signal.signal(sig, previous)
        self._previous.clear()
        self.active = False

        self._queue.put(_STOP)
        if self._listener is not None:
            self._listener.join(timeout=1)
            self._listener = None

    def _handle_signal(self, signum: int, frame: object) -> None:
        self._queue.put(signum)

    def _listen(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                return
            if isinstance(item, int):
                self._forward(item)

    def _forward(self, signum: int) -> None:
        if self._process.poll() is not None:
            return
        try:
            self._process.send_signal(signum)
        except OSError as e:
            logger.debug("Could not forward signal %d to pid %d: %s", signum, self._process.pid, e)
            return
        self.forwarded.append(signum)
        logger.debug("Forwarded signal %d to pid %d", signum, self._process.pid)


__all__ = ["FORWARDED_SIGNALS", "SignalForwarder"]
