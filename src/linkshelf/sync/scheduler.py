"""Fixed-cadence trigger for reconciliation passes."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

LOGGER = logging.getLogger(__name__)


class RunScheduler:
    """Run a job on a fixed interval, never more than one at a time.

    Each tick fires ``trigger`` on its own worker thread. A trigger that
    arrives while a run is in flight is dropped, not queued.
    """

    def __init__(self, job: Callable[[], object], interval_seconds: float) -> None:
        """Initialize the scheduler.

        Args:
            job: Callable executed for each accepted trigger.
            interval_seconds: Delay between scheduled triggers.

        Raises:
            ValueError: If the interval is not positive.
        """
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be greater than zero.")
        self._job = job
        self._interval = interval_seconds
        self._running = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._workers: list[threading.Thread] = []

    @property
    def interval_seconds(self) -> float:
        """Return the delay between scheduled triggers."""
        return self._interval

    def is_busy(self) -> bool:
        """Return True while a run is in flight."""
        return self._running.locked()

    def is_started(self) -> bool:
        """Return True while the ticker thread is active."""
        return self._thread is not None

    def trigger(self) -> bool:
        """Run the job now unless another run is in flight.

        Exceptions raised by the job are logged and swallowed, and the
        running flag is released in every case.

        Returns:
            bool: True if the job ran (successfully or not), False if dropped.
        """
        if not self._running.acquire(blocking=False):
            LOGGER.warning("Previous reconciliation pass still running; skipping this trigger.")
            return False
        try:
            self._job()
        except Exception:
            LOGGER.exception("Reconciliation pass failed")
        finally:
            self._running.release()
        return True

    def start(self) -> None:
        """Fire an immediate run, then keep triggering every interval.

        Idempotent: calling ``start`` on a started scheduler does nothing.
        """
        if self._thread is not None:
            LOGGER.debug("Scheduler already running")
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name="linkshelf-ticker", daemon=True)
        self._thread.start()
        LOGGER.info("Scheduler started; running every %.0f seconds", self._interval)

    def stop(self, timeout: float = 5.0) -> None:
        """Stop ticking and wait briefly for in-flight runs. Idempotent."""
        if self._thread is None:
            return
        self._stop_event.set()
        self._thread.join(timeout=timeout)
        self._thread = None
        for worker in list(self._workers):
            worker.join(timeout=timeout)
        self._workers.clear()
        LOGGER.info("Scheduler stopped")

    def run_forever(self) -> None:
        """Start the scheduler and block until :meth:`stop` is called."""
        self.start()
        self._stop_event.wait()

    def _loop(self) -> None:
        while not self._stop_event.is_set():
            self._dispatch()
            self._stop_event.wait(timeout=self._interval)

    def _dispatch(self) -> None:
        self._workers = [worker for worker in self._workers if worker.is_alive()]
        worker = threading.Thread(target=self.trigger, name="linkshelf-pass", daemon=True)
        self._workers.append(worker)
        worker.start()


__all__ = ["RunScheduler"]
