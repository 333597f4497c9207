"""Verification Test: tracking real processes through restarts.

Spawns real child processes standing in for services, kills and restarts
them while polling, and checks that the collector follows each restart
through the live procfs and never attributes a dead process's data to a
service.
"""

import random
import subprocess
import sys

import pytest

from svcexporter.collector import MetricsCollector
from svcexporter.errors import ServiceNotRunning
from svcexporter.procfs import StatSnapshotReader, SystemClockReader

pytestmark = pytest.mark.skipif(not sys.platform.startswith("linux"), reason="requires Linux procfs")


class ChildProcessStatus:
    """Status source backed by child processes started by the test."""

    def __init__(self) -> None:
        self.children: dict[str, subprocess.Popen] = {}

    def start(self, service: str) -> int:
        child = subprocess.Popen([sys.executable, "-c", "import time; time.sleep(60)"])
        self.children[service] = child
        return child.pid

    def kill(self, service: str) -> None:
        child = self.children.pop(service)
        child.kill()
        child.wait()

    def query(self, service: str) -> int:
        child = self.children.get(service)
        if child is None or child.poll() is not None:
            raise ServiceNotRunning(service)
        return child.pid

    def close(self) -> None:
        for service in list(self.children):
            self.kill(service)


@pytest.fixture
def children():
    source = ChildProcessStatus()
    yield source
    source.close()


@pytest.fixture
def collector(children) -> MetricsCollector:
    clock = SystemClockReader.from_host()
    return MetricsCollector(["alpha", "beta", "gamma"], clock, children, StatSnapshotReader())


class TestRestarts:
    """Restart tracking against real processes."""

    def test_discovers_running_children(self, children, collector):
        """Test every started child is discovered with a sane uptime."""
        pids = {name: children.start(name) for name in ["alpha", "beta"]}

        result = collector.poll_all()

        for name, pid in pids.items():
            metrics = result.get(name)
            assert metrics.running
            assert metrics.pid == pid
            assert metrics.start_tick > 0
            assert metrics.uptime_seconds >= 0
            assert metrics.cpu_total_time >= metrics.cpu_self_time
        assert not result.get("gamma").running
        assert result.get("gamma").uptime_seconds == -1

    def test_follows_kill_and_restart(self, children, collector):
        """Test a killed service reports sentinels and its restart is picked up."""
        first_pid = children.start("alpha")
        assert collector.poll_all().get("alpha").pid == first_pid

        children.kill("alpha")
        assert not collector.poll_all().get("alpha").running

        second_pid = children.start("alpha")
        metrics = collector.poll_all().get("alpha")
        assert metrics.running
        assert metrics.pid == second_pid

    def test_survives_random_kills(self, children, collector):
        """Test polling while services are randomly killed and restarted."""
        rng = random.Random(1234)
        names = ["alpha", "beta", "gamma"]
        for name in names:
            children.start(name)

        for _ in range(20):
            name = rng.choice(names)
            if name in children.children:
                children.kill(name)
            else:
                children.start(name)

            result = collector.poll_all()

            for metrics in result.services:
                child = children.children.get(metrics.name)
                if child is None:
                    assert not metrics.running
                    assert metrics.pid == -1
                else:
                    assert metrics.running
                    assert metrics.pid == child.pid
