"""Service status queries."""

import logging
import subprocess
from collections.abc import Sequence
from typing import Protocol

from svcexporter.errors import EnvironmentFault, ServiceNotRunning

logger = logging.getLogger(__name__)

RUNNING_STATE = "start/running"


class StatusSource(Protocol):
    """Reports the pid of a named service."""

    def query(self, service: str) -> int:
        """
        Return the pid of the service's main process.

        Raises:
            ServiceNotRunning: The service is not reported running.
            EnvironmentFault: The status could not be determined.
        """
        ...


def parse_upstart_status(service: str, output: str) -> int:
    """
    Parse the output of ``service NAME status`` on an upstart host.

    A running service reports ``NAME start/running, process PID``; anything
    other than ``start/running`` as the state means not running.
    """
    comma_separated = output.split(",")
    parts = comma_separated[0].split(" ")
    if len(parts) < 2:
        logger.error("unexpected service status %r", output)
        raise EnvironmentFault(f"could not query for the status of service {service}")

    state = parts[-1].strip()
    if state != RUNNING_STATE:
        raise ServiceNotRunning(service)

    if len(comma_separated) != 2:
        logger.error("unexpected service status %r", output)
        raise EnvironmentFault(f"could not query for the status of service {service}")
    pid_str = comma_separated[1].split(" ")[-1].strip()
    try:
        return int(pid_str)
    except ValueError:
        raise EnvironmentFault(
            f"could not query for the status of service {service}: unexpected PID {pid_str}"
        ) from None


class UpstartStatusSource:
    """Runs ``service NAME status`` and parses its output."""

    def __init__(self, command: Sequence[str] = ("service",)) -> None:
        """
        Initialize the status source.

        Args:
            command: Command prefix; the service name and ``status`` are appended.
        """
        self._command = tuple(command)

    def query(self, service: str) -> int:
        argv = [*self._command, service, "status"]
        try:
            result = subprocess.run(
                argv,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                check=False,
            )
        except OSError as exc:
            raise EnvironmentFault(f"could not query for the status of service {service}: {exc}") from exc

        if result.returncode != 0:
            first_line = result.stdout.split("\n", 1)[0] if result.stdout else ""
            logger.error("command %r failed with exit status %d", " ".join(argv), result.returncode)
            raise EnvironmentFault(
                f"could not query for the status of service {service}: {first_line or result.returncode}"
            )
        return parse_upstart_status(service, result.stdout)
