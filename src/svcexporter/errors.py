"""Exception types for svcexporter.

ProcessGone, ServiceNotRunning and RaceDetected are expected conditions that
the liveness tracker absorbs. EnvironmentFault means the host can no longer be
trusted to report correct data for any service and must end the exporter.
"""

import psutil


class ProcessGone(psutil.NoSuchProcess):
    """The pid no longer maps to a live process."""


class ServiceUnavailable(Exception):
    """Base class for per-service conditions that leave a service not running."""

    def __init__(self, service: str, msg: str) -> None:
        super().__init__(msg)
        self.service = service


class ServiceNotRunning(ServiceUnavailable):
    """The status source reports no running process for the service."""

    def __init__(self, service: str) -> None:
        super().__init__(service, f"service {service} is not running")


class RaceDetected(ServiceUnavailable):
    """The service's pid changed while its stat record was being read."""

    def __init__(self, service: str, first_pid: int, second_pid: int | None) -> None:
        if second_pid is None:
            msg = f"service {service} (pid {first_pid}) stopped during discovery"
        else:
            msg = f"service {service} changed pid from {first_pid} to {second_pid} during discovery"
        super().__init__(service, msg)
        self.first_pid = first_pid
        self.second_pid = second_pid


class EnvironmentFault(RuntimeError):
    """A kernel record or external command returned data that cannot be trusted."""
