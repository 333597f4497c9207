"""Background polling for the interactive dashboard.

Only ``svcexporter-top`` polls on a timer. The exporter never runs this
thread; it polls once per scrape from ``ServiceCollector.collect``.
"""

import logging
import threading
from queue import Queue

from svcexporter.collector import MetricsCollector, PollResult
from svcexporter.errors import EnvironmentFault

logger = logging.getLogger(__name__)

MonitorUpdate = PollResult | EnvironmentFault

MIN_POLL_RATE = 0.1


class ServiceMonitor(threading.Thread):
    """
    Daemon thread that pushes a PollResult to a Queue every poll_rate seconds.

    An EnvironmentFault is pushed in place of a result and ends the thread.
    The interval is fixed for the life of the thread.
    """

    def __init__(
        self,
        collector: MetricsCollector,
        update_queue: Queue[MonitorUpdate],
        poll_rate: float = 2.0,
    ) -> None:
        super().__init__(name="ServiceMonitor", daemon=True)
        self.collector = collector
        self.poll_rate = max(MIN_POLL_RATE, poll_rate)
        self._queue = update_queue
        self._stopped = threading.Event()

    @property
    def is_running(self) -> bool:
        return self.is_alive()

    def stop(self, timeout: float | None = 5.0) -> None:
        """Ask the thread to finish and wait for it if it was started."""
        self._stopped.set()
        if self.is_alive():
            self.join(timeout=timeout)

    def run(self) -> None:
        while not self._stopped.is_set():
            try:
                update: MonitorUpdate = self.collector.poll_all()
            except EnvironmentFault as exc:
                logger.critical("%s", exc)
                update = exc
            self._queue.put(update)
            if isinstance(update, EnvironmentFault):
                return
            self._stopped.wait(self.poll_rate)
