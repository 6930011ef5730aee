"""Background refresher for clauditor."""

import logging
import threading
from queue import Queue

from clauditor.collector import ProcessCollector
from clauditor.config import MIN_POLL_RATE
from clauditor.models import ProcessRecord

logger = logging.getLogger(__name__)


class ClaudeMonitor:
    """
    Periodically collects monitored processes in a background thread.

    Each completed refresh pushes a fresh list onto a thread-safe Queue; the
    consumer keeps whichever list arrived last. A single refresh that fails is
    logged and skipped, the loop keeps running.
    """

    def __init__(
        self,
        update_queue: Queue[list[ProcessRecord]],
        collector: ProcessCollector | None = None,
        poll_rate: float = 2.0,
    ) -> None:
        """
        Initialize the ClaudeMonitor.

        Args:
            update_queue: Thread-safe queue to push process lists to.
            collector: Runs a single refresh. Defaults to a psutil-backed collector.
            poll_rate: How often to refresh (in seconds). Default 2.0s.
        """
        self._queue = update_queue
        self._collector = collector if collector is not None else ProcessCollector()
        self._poll_rate = max(MIN_POLL_RATE, poll_rate)
        self._stop_event = threading.Event()
        self._wake_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def poll_rate(self) -> float:
        """Get the current poll rate."""
        return self._poll_rate

    @poll_rate.setter
    def poll_rate(self, value: float) -> None:
        """Set the poll rate."""
        self._poll_rate = max(MIN_POLL_RATE, value)

    @property
    def is_running(self) -> bool:
        """Check if the monitor thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the monitoring thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._poll_loop,
            daemon=True,
            name="ClaudeMonitor",
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the monitoring thread.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self._stop_event.set()
        self._wake_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def refresh_now(self) -> None:
        """Cut the current wait short and refresh immediately."""
        self._wake_event.set()

    def collect_once(self) -> list[ProcessRecord]:
        """Run one refresh synchronously in the calling thread."""
        return self._collector.collect()

    def _poll_loop(self) -> None:
        """Main polling loop running in the background thread."""
        while not self._stop_event.is_set():
            try:
                self._queue.put(self._collector.collect())
            except Exception:
                logger.exception("Refresh failed")

            # Wait for poll_rate seconds, a manual refresh, or stop
            self._wake_event.wait(timeout=self._poll_rate)
            self._wake_event.clear()
