"""Prometheus exposition of per-service process metrics."""

import logging
import threading
from collections.abc import Iterator
from queue import Queue

import psutil
from prometheus_client import start_http_server
from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily, Metric
from prometheus_client.registry import Collector, CollectorRegistry

from svcexporter.collector import MetricsCollector, PollResult
from svcexporter.errors import EnvironmentFault

logger = logging.getLogger(__name__)

SERVICE_LABELS = ["service"]


class ServiceCollector(Collector):
    """
    Custom collector that runs one poll cycle per scrape.

    An EnvironmentFault fails the scrape and is put on ``faults`` so the
    thread that owns the process can shut it down.
    """

    def __init__(self, metrics_collector: MetricsCollector, start_time: float | None = None) -> None:
        """
        Initialize the collector.

        Args:
            metrics_collector: Owner of the per-service trackers.
            start_time: Unix time the exporter started. Defaults to the
                creation time of the current process.
        """
        self._metrics_collector = metrics_collector
        self._start_time = start_time if start_time is not None else psutil.Process().create_time()
        self._lock = threading.Lock()
        self.faults: Queue[EnvironmentFault] = Queue()

    @property
    def start_time(self) -> float:
        return self._start_time

    def describe(self) -> Iterator[Metric]:
        yield from self._families()

    def collect(self) -> Iterator[Metric]:
        with self._lock:
            try:
                result = self._metrics_collector.poll_all()
            except EnvironmentFault as exc:
                self.faults.put(exc)
                raise
        yield from self._families(result)

    def _families(self, result: PollResult | None = None) -> list[Metric]:
        start_time = GaugeMetricFamily(
            "service_exporter_start_time",
            "The time at which the service exporter was started",
            value=self._start_time if result is not None else None,
        )
        process_start = GaugeMetricFamily(
            "service_process_start",
            "The time at which the current process was started, in clock ticks since boot; "
            "-1 if currently not running.",
            labels=SERVICE_LABELS,
        )
        cpu_self_time = CounterMetricFamily(
            "service_cpu_self_time",
            "The amount of CPU time used by this process, excluding children, measured in clock ticks.",
            labels=SERVICE_LABELS,
        )
        cpu_time = CounterMetricFamily(
            "service_cpu_time",
            "The amount of CPU time used by this process and its waited-for children, "
            "measured in clock ticks.",
            labels=SERVICE_LABELS,
        )
        vsize = GaugeMetricFamily(
            "service_current_vsize",
            "The virtual memory size of the process, in bytes; 0 if currently not running.",
            labels=SERVICE_LABELS,
        )
        rss = GaugeMetricFamily(
            "service_current_rss",
            "The Resident Set Size of the process, in pages; 0 if currently not running.",
            labels=SERVICE_LABELS,
        )
        uptime = GaugeMetricFamily(
            "service_process_uptime_seconds",
            "The uptime of the process in seconds; -1 if currently not running.",
            labels=SERVICE_LABELS,
        )

        if result is not None:
            for metrics in result.services:
                labels = [metrics.name]
                process_start.add_metric(labels, metrics.start_tick)
                cpu_self_time.add_metric(labels, metrics.cpu_self_time)
                cpu_time.add_metric(labels, metrics.cpu_total_time)
                vsize.add_metric(labels, metrics.virtual_size)
                rss.add_metric(labels, metrics.resident_set_size)
                uptime.add_metric(labels, metrics.uptime_seconds)

        return [start_time, process_start, cpu_self_time, cpu_time, vsize, rss, uptime]


def build_registry(collector: ServiceCollector) -> CollectorRegistry:
    """Create a registry holding only the service collector."""
    registry = CollectorRegistry()
    registry.register(collector)
    return registry


def serve(collector: ServiceCollector, port: int, addr: str = "") -> EnvironmentFault:
    """
    Serve /metrics until a scrape hits an EnvironmentFault.

    Blocks the calling thread and returns the fault once the HTTP server has
    been shut down.
    """
    registry = build_registry(collector)
    server, thread = start_http_server(port, addr=addr, registry=registry)
    logger.info("serving metrics on %s:%d", addr or "*", port)
    try:
        fault = collector.faults.get()
    finally:
        server.shutdown()
        server.server_close()
        thread.join()
    logger.critical("%s", fault)
    return fault
