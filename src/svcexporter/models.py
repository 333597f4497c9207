"""Data models for svcexporter."""

from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class StatSnapshot:
    """Immutable snapshot of a process's kernel accounting record."""

    pid: int
    user_ticks: int
    kernel_ticks: int
    children_user_ticks: int  # Waited-for children only
    children_kernel_ticks: int
    start_tick: int  # Ticks since boot
    vsize_bytes: int
    rss_pages: int

    @property
    def cpu_self_ticks(self) -> int:
        """CPU time spent by the process itself, in ticks."""
        return self.user_ticks + self.kernel_ticks

    @property
    def cpu_total_ticks(self) -> int:
        """CPU time spent by the process and its waited-for children, in ticks."""
        return self.cpu_self_ticks + self.children_user_ticks + self.children_kernel_ticks


@dataclass(slots=True, frozen=True)
class SystemState:
    """Host clock state, read once per poll cycle."""

    tick_rate: int  # Ticks per second
    uptime_seconds: float

    @property
    def uptime_ticks(self) -> int:
        return int(self.uptime_seconds * self.tick_rate)


@dataclass(slots=True, frozen=True)
class ServiceIdentity:
    """The pid and start tick that together identify one incarnation of a service."""

    pid: int
    start_tick: int


@dataclass(slots=True, frozen=True)
class NotRunning:
    """No live process is known for the service."""

    @property
    def is_running(self) -> bool:
        return False


@dataclass(slots=True, frozen=True)
class Running:
    """A verified process and the snapshot read for it this cycle."""

    identity: ServiceIdentity
    snapshot: StatSnapshot

    @property
    def is_running(self) -> bool:
        return True


ServiceState = NotRunning | Running


@dataclass(slots=True, frozen=True)
class ServiceMetrics:
    """
    Metric values for one service, derived within a single poll cycle.

    Services that are not running report -1 for pid, start_tick and
    uptime_seconds, and 0 for the CPU and memory values.
    """

    name: str
    running: bool
    pid: int
    start_tick: int
    cpu_self_time: int  # Ticks
    cpu_total_time: int  # Ticks
    virtual_size: int  # Bytes
    resident_set_size: int  # Pages
    uptime_seconds: float

    @classmethod
    def not_running(cls, name: str) -> "ServiceMetrics":
        """Sentinel metrics for a service with no live process."""
        return cls(
            name=name,
            running=False,
            pid=-1,
            start_tick=-1,
            cpu_self_time=0,
            cpu_total_time=0,
            virtual_size=0,
            resident_set_size=0,
            uptime_seconds=-1.0,
        )
