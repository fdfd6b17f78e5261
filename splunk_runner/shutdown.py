"""
Process-wide shutdown coordination.

A single one-shot cancellation flag shared by every supervised unit. The first
termination signal cancels it; it never resets.
"""

import logging
import signal
import threading
from typing import Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

DEFAULT_SIGNALS = (signal.SIGINT, signal.SIGTERM)

T = TypeVar("T")


class ShutdownCoordinator:
    """One-way cancellation flag with observers."""

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.RLock()
        self._observers: list[Callable[[], None]] = []
        self.reason: str = None

    def arm(self, signals=DEFAULT_SIGNALS):
        """Install handlers so the given signals cancel the coordinator.

        Must be called from the main thread.
        """
        for signum in signals:
            signal.signal(signum, self._handle_signal)
        logger.debug(f"Shutdown coordinator armed for {[signal.Signals(s).name for s in signals]}")

    def _handle_signal(self, signum, frame):
        # The interrupted main thread may hold the event's or our own lock.
        name = signal.Signals(signum).name
        threading.Thread(target=self._cancel_from_signal, args=(name,), name="shutdown", daemon=True).start()

    def _cancel_from_signal(self, name: str):
        if not self.cancel(reason=name):
            logger.debug(f"Ignoring repeated {name}, shutdown already in progress")

    def cancel(self, reason: str = "requested") -> bool:
        """Cancel. Returns True if this call performed the transition."""
        with self._lock:
            if self._event.is_set():
                return False
            self.reason = reason
            self._event.set()
            observers = list(self._observers)
            self._observers.clear()

        logger.info(f"Shutdown requested ({reason})")
        for callback in observers:
            try:
                callback()
            except Exception as e:
                logger.error(f"Shutdown observer failed: {e}")
        return True

    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float = None) -> bool:
        """Block until cancelled or until timeout. Returns cancelled()."""
        return self._event.wait(timeout)

    def add_observer(self, callback: Callable[[], None]):
        """Run callback once on cancellation (immediately if already cancelled)."""
        with self._lock:
            if not self._event.is_set():
                self._observers.append(callback)
                return
        callback()

    def call_unless_cancelled(self, fn: Callable[[], T]) -> Optional[T]:
        """Call fn unless cancelled, holding off cancellation while it runs.

        Returns None without calling fn once cancelled.
        """
        with self._lock:
            if self._event.is_set():
                return None
            return fn()
