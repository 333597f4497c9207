"""Shared fixtures: a fake procfs tree and a scripted status source."""

from pathlib import Path

import pytest

from svcexporter.errors import ServiceNotRunning
from svcexporter.procfs import StatSnapshotReader, SystemClockReader


def stat_line(
    pid: int,
    comm: str | bytes = "daemon",
    utime: int = 0,
    stime: int = 0,
    cutime: int = 0,
    cstime: int = 0,
    start_tick: int = 1000,
    vsize: int = 4096000,
    rss: int = 50,
) -> bytes:
    """Build a /proc/<pid>/stat record with the given accounting fields."""
    if isinstance(comm, str):
        comm = comm.encode()
    rest = (
        f" S 1 {pid} {pid} 0 -1 4194560 120 0 0 0 "
        f"{utime} {stime} {cutime} {cstime} 20 0 1 0 {start_tick} {vsize} {rss} "
        "18446744073709551615 1 1 0 0 0 0 0 0 0 0 0 0 17 0 0 0 0 0 0\n"
    )
    return f"{pid} (".encode() + comm + b")" + rest.encode()


class FakeProc:
    """A directory laid out like the parts of procfs the readers use."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.set_uptime(50.0)

    def set_uptime(self, seconds: float) -> None:
        (self.root / "uptime").write_text(f"{seconds:.2f} 1234.56\n")

    def add(self, pid: int, **fields) -> None:
        self.write_raw(pid, stat_line(pid, **fields))

    def write_raw(self, pid: int, raw: bytes) -> None:
        directory = self.root / str(pid)
        directory.mkdir(exist_ok=True)
        (directory / "stat").write_bytes(raw)

    def remove(self, pid: int) -> None:
        directory = self.root / str(pid)
        (directory / "stat").unlink()
        directory.rmdir()


class ScriptedStatusSource:
    """
    Status source answering from per-service scripts.

    Each script is a list of pids (None meaning not running) consumed one
    query at a time; the last answer repeats once the script runs out.
    """

    def __init__(self, scripts: dict[str, list[int | None]] | None = None) -> None:
        self.scripts: dict[str, list[int | None]] = {k: list(v) for k, v in (scripts or {}).items()}
        self.calls: list[str] = []

    def set(self, service: str, *answers: int | None) -> None:
        self.scripts[service] = list(answers)

    def query(self, service: str) -> int:
        self.calls.append(service)
        script = self.scripts.get(service, [None])
        answer = script.pop(0) if len(script) > 1 else script[0]
        if answer is None:
            raise ServiceNotRunning(service)
        return answer


class CountingStatReader(StatSnapshotReader):
    """StatSnapshotReader that records the pids it was asked for."""

    def __init__(self, proc_root) -> None:
        super().__init__(proc_root)
        self.reads: list[int] = []

    def read(self, pid: int):
        self.reads.append(pid)
        return super().read(pid)


@pytest.fixture
def proc(tmp_path: Path) -> FakeProc:
    return FakeProc(tmp_path)


@pytest.fixture
def status() -> ScriptedStatusSource:
    return ScriptedStatusSource()


@pytest.fixture
def stat_reader(proc: FakeProc) -> CountingStatReader:
    return CountingStatReader(proc.root)


@pytest.fixture
def clock(proc: FakeProc) -> SystemClockReader:
    return SystemClockReader(100, proc.root)
