"""Poll-cycle orchestration and metric derivation."""

from collections.abc import Iterable
from dataclasses import dataclass

from svcexporter.models import Running, ServiceMetrics, ServiceState, SystemState
from svcexporter.procfs import StatSnapshotReader, SystemClockReader
from svcexporter.status import StatusSource
from svcexporter.tracker import LivenessTracker


@dataclass(slots=True, frozen=True)
class PollResult:
    """Everything derived during one poll cycle."""

    system: SystemState
    services: tuple[ServiceMetrics, ...]

    def get(self, name: str) -> ServiceMetrics:
        """Return the metrics for the named service."""
        for metrics in self.services:
            if metrics.name == name:
                return metrics
        raise KeyError(name)


def compute_metrics(name: str, state: ServiceState, system: SystemState) -> ServiceMetrics:
    """Derive the metric values for one service from this cycle's state."""
    if not isinstance(state, Running):
        return ServiceMetrics.not_running(name)

    snapshot = state.snapshot
    start_tick = state.identity.start_tick
    return ServiceMetrics(
        name=name,
        running=True,
        pid=state.identity.pid,
        start_tick=start_tick,
        cpu_self_time=snapshot.cpu_self_ticks,
        cpu_total_time=snapshot.cpu_total_ticks,
        virtual_size=snapshot.vsize_bytes,
        resident_set_size=snapshot.rss_pages,
        uptime_seconds=(system.uptime_ticks - start_tick) / system.tick_rate,
    )


class MetricsCollector:
    """
    Owns the liveness trackers for a fixed set of services.

    Every call to poll_all() is a fresh cycle: each tracker is refreshed in
    turn, the system clock is read once, and metrics are computed from the
    states returned by that cycle only.
    """

    def __init__(
        self,
        service_names: Iterable[str],
        clock: SystemClockReader,
        status_source: StatusSource,
        stat_reader: StatSnapshotReader | None = None,
    ) -> None:
        """
        Initialize the collector.

        Args:
            service_names: Services to track. Duplicates are ignored.
            clock: Source of the tick rate and system uptime.
            status_source: Reports the pid of a named service.
            stat_reader: Reads per-process accounting records.
        """
        self._clock = clock
        stat_reader = stat_reader if stat_reader is not None else StatSnapshotReader()
        names = list(dict.fromkeys(service_names))
        self._trackers = [LivenessTracker(name, status_source, stat_reader) for name in names]

    @property
    def service_names(self) -> list[str]:
        return [tracker.name for tracker in self._trackers]

    @property
    def trackers(self) -> list[LivenessTracker]:
        return list(self._trackers)

    @property
    def tick_rate(self) -> int:
        return self._clock.tick_rate

    def poll_all(self) -> PollResult:
        """
        Run one poll cycle across every tracked service.

        Raises:
            EnvironmentFault: A kernel record or status query was unusable.
        """
        states = [(tracker.name, tracker.refresh()) for tracker in self._trackers]
        system = self._clock.read()
        return PollResult(
            system=system,
            services=tuple(compute_metrics(name, state, system) for name, state in states),
        )
