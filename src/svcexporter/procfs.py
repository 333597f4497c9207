"""Readers for the kernel's per-process and system-wide accounting records."""

import logging
import os
from pathlib import Path

import psutil

from svcexporter.errors import EnvironmentFault, ProcessGone
from svcexporter.models import StatSnapshot, SystemState

logger = logging.getLogger(__name__)

# 1-based field numbers from proc(5)
STAT_UTIME = 14
STAT_STIME = 15
STAT_CUTIME = 16
STAT_CSTIME = 17
STAT_STARTTIME = 22
STAT_VSIZE = 23
STAT_RSS = 24

# Fields after the command name start at field 3 (state)
_FIRST_FIELD_AFTER_COMM = 3


class StatSnapshotReader:
    """
    Reads and parses /proc/<pid>/stat into a StatSnapshot.

    The command name (field 2) is free text and may contain spaces or
    parentheses, so every field is located relative to the last ')' in the
    record.
    """

    def __init__(self, proc_root: str | os.PathLike[str] | None = None) -> None:
        """
        Initialize the reader.

        Args:
            proc_root: Mount point of procfs. Defaults to psutil.PROCFS_PATH.
        """
        self._proc_root = Path(proc_root if proc_root is not None else psutil.PROCFS_PATH)

    @property
    def proc_root(self) -> Path:
        return self._proc_root

    def read(self, pid: int) -> StatSnapshot:
        """
        Read the accounting record for pid.

        Raises:
            ProcessGone: The pid has no live process.
            EnvironmentFault: The record could not be read or parsed.
        """
        path = self._proc_root / str(pid) / "stat"
        try:
            raw = path.read_bytes()
        except (FileNotFoundError, ProcessLookupError) as exc:
            raise ProcessGone(pid) from exc
        except OSError as exc:
            raise EnvironmentFault(f"could not read process data for pid {pid}: {exc}") from exc
        return parse_stat(pid, raw)


def parse_stat(pid: int, raw: bytes) -> StatSnapshot:
    """
    Parse a /proc/<pid>/stat record.

    The command name is whatever bytes the process set, truncated to 15
    bytes, so it need not be valid in any encoding. It is skipped and only
    the ASCII fields after it are parsed.
    """
    comm_end = raw.rfind(b")")
    if comm_end < 0:
        raise EnvironmentFault(f"unexpected stat data for pid {pid}: no command name")
    fields = raw[comm_end + 1 :].split()
    if len(fields) < STAT_RSS - _FIRST_FIELD_AFTER_COMM + 1:
        raise EnvironmentFault(f"unexpected stat data for pid {pid}: {len(fields)} fields")

    def field(number: int) -> int:
        value = fields[number - _FIRST_FIELD_AFTER_COMM]
        try:
            return int(value)
        except ValueError:
            raise EnvironmentFault(
                f"garbage data at field {number} for pid {pid}: {value.decode('ascii', 'replace')!r}"
            ) from None

    return StatSnapshot(
        pid=pid,
        user_ticks=field(STAT_UTIME),
        kernel_ticks=field(STAT_STIME),
        children_user_ticks=field(STAT_CUTIME),
        children_kernel_ticks=field(STAT_CSTIME),
        start_tick=field(STAT_STARTTIME),
        vsize_bytes=field(STAT_VSIZE),
        rss_pages=field(STAT_RSS),
    )


def query_tick_rate() -> int:
    """Return the host's clock ticks per second."""
    try:
        tick_rate = os.sysconf("SC_CLK_TCK")
    except (ValueError, OSError) as exc:
        raise EnvironmentFault(f"could not query CLK_TCK: {exc}") from exc
    if tick_rate <= 0:
        raise EnvironmentFault(f"could not query CLK_TCK: got {tick_rate}")
    return tick_rate


class SystemClockReader:
    """Supplies the tick rate and the current system uptime."""

    def __init__(self, tick_rate: int, proc_root: str | os.PathLike[str] | None = None) -> None:
        """
        Initialize the reader.

        Args:
            tick_rate: Clock ticks per second, resolved once at start-up.
            proc_root: Mount point of procfs. Defaults to psutil.PROCFS_PATH.
        """
        if tick_rate <= 0:
            raise ValueError(f"tick_rate must be positive, got {tick_rate}")
        self._tick_rate = tick_rate
        self._proc_root = Path(proc_root if proc_root is not None else psutil.PROCFS_PATH)

    @classmethod
    def from_host(cls, proc_root: str | os.PathLike[str] | None = None) -> "SystemClockReader":
        """Build a reader using the tick rate of the running host."""
        tick_rate = query_tick_rate()
        logger.debug("CLK_TCK is %d", tick_rate)
        return cls(tick_rate, proc_root)

    @property
    def tick_rate(self) -> int:
        return self._tick_rate

    def read(self) -> SystemState:
        """Read /proc/uptime and combine it with the tick rate."""
        path = self._proc_root / "uptime"
        try:
            raw = path.read_text(encoding="ascii")
        except (OSError, UnicodeDecodeError) as exc:
            raise EnvironmentFault(f"could not read {path}: {exc}") from exc

        # Second field is idle time, unused
        parts = raw.split()
        if len(parts) < 2:
            raise EnvironmentFault(f"unexpected {path} data {raw!r}")
        try:
            uptime_seconds = float(parts[0])
        except ValueError:
            raise EnvironmentFault(f"unexpected {path} data {parts[0]!r}") from None
        return SystemState(tick_rate=self._tick_rate, uptime_seconds=uptime_seconds)
