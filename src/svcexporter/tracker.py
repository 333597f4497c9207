"""Per-service liveness tracking."""

import logging
import threading

from svcexporter.errors import ProcessGone, RaceDetected, ServiceNotRunning, ServiceUnavailable
from svcexporter.models import NotRunning, Running, ServiceIdentity, ServiceState
from svcexporter.procfs import StatSnapshotReader
from svcexporter.status import StatusSource

logger = logging.getLogger(__name__)


class LivenessTracker:
    """
    Maps one service name to the process currently backing it.

    A process is the same one seen on the previous cycle only while both its
    pid and its start tick are unchanged. Discovery reads the stat record
    between two status queries and commits only if both queries agree on the
    pid. A process that dies and is replaced under the same pid between the
    two queries is still accepted; the next cycle resets it on a start tick
    mismatch.
    """

    def __init__(
        self,
        name: str,
        status_source: StatusSource,
        stat_reader: StatSnapshotReader,
    ) -> None:
        self._name = name
        self._status_source = status_source
        self._stat_reader = stat_reader
        self._state: ServiceState = NotRunning()
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> ServiceState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state.is_running

    @property
    def pid(self) -> int | None:
        """The pid of the tracked process, or None if not running."""
        state = self._state
        return state.identity.pid if isinstance(state, Running) else None

    def refresh(self) -> ServiceState:
        """
        Advance the state machine by one poll cycle and return the new state.

        Expected per-service conditions are absorbed; EnvironmentFault propagates.
        """
        with self._lock:
            state = self._state
            if isinstance(state, Running):
                state = self._reverify(state)
            if not isinstance(state, Running):
                state = self._discover()
            self._state = state
            return state

    def _reverify(self, state: Running) -> ServiceState:
        pid = state.identity.pid
        try:
            snapshot = self._stat_reader.read(pid)
        except ProcessGone:
            logger.info("service %s (pid %d) has died", self._name, pid)
            return NotRunning()

        if snapshot.start_tick != state.identity.start_tick:
            logger.info(
                "service %s (pid %d) has died; pid reused by a process started at tick %d",
                self._name,
                pid,
                snapshot.start_tick,
            )
            return NotRunning()
        return Running(identity=state.identity, snapshot=snapshot)

    def _discover(self) -> ServiceState:
        try:
            state = self._try_discover()
        except ServiceNotRunning:
            return NotRunning()
        except ServiceUnavailable as exc:
            logger.info("%s", exc)
            return NotRunning()
        logger.info("service %s running, pid %d", self._name, state.identity.pid)
        return state

    def _try_discover(self) -> Running:
        pid = self._status_source.query(self._name)

        try:
            snapshot = self._stat_reader.read(pid)
        except ProcessGone:
            logger.info("service %s (pid %d) has died", self._name, pid)
            raise ServiceNotRunning(self._name) from None

        # Ask again so the stat read is bracketed by two status queries that
        # agree on the pid.
        try:
            recheck_pid = self._status_source.query(self._name)
        except ServiceNotRunning:
            raise RaceDetected(self._name, pid, None) from None
        if recheck_pid != pid:
            raise RaceDetected(self._name, pid, recheck_pid)

        identity = ServiceIdentity(pid=pid, start_tick=snapshot.start_tick)
        return Running(identity=identity, snapshot=snapshot)
