"""Command line entry points."""

import argparse
import logging
import sys
from collections.abc import Sequence

from svcexporter.collector import MetricsCollector
from svcexporter.errors import EnvironmentFault
from svcexporter.exporter import ServiceCollector, serve
from svcexporter.logging_config import LOG_LEVEL_ENV, resolve_level, setup_logging
from svcexporter.procfs import StatSnapshotReader, SystemClockReader
from svcexporter.status import UpstartStatusSource

logger = logging.getLogger(__name__)


def _port(value: str) -> int:
    try:
        port = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid port {value!r}") from None
    if not 0 < port < 65536:
        raise argparse.ArgumentTypeError(f"port out of range: {port}")
    return port


def _log_level(value: str) -> str:
    try:
        resolve_level(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from None
    return value


def build_exporter_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="svcexporter",
        description="Export process metrics for upstart services to Prometheus.",
    )
    parser.add_argument("listen_port", metavar="LISTEN_PORT", type=_port)
    parser.add_argument("services", metavar="SERVICENAME", nargs="+")
    parser.add_argument("--listen-address", default="", help="address to bind (default: all)")
    parser.add_argument(
        "--log-level",
        type=_log_level,
        default=None,
        help=f"logging level (default: ${LOG_LEVEL_ENV} or INFO)",
    )
    return parser


def build_top_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="svcexporter-top",
        description="Live view of the processes behind upstart services.",
    )
    parser.add_argument("services", metavar="SERVICENAME", nargs="+")
    parser.add_argument("--poll-rate", type=float, default=2.0, help="seconds between polls")
    parser.add_argument("--log-file", default=None, help="write logs to this file")
    parser.add_argument("--log-level", type=_log_level, default=None)
    return parser


def build_collector(services: Sequence[str]) -> MetricsCollector:
    """
    Resolve the host clock and create a collector for the services.

    Raises:
        EnvironmentFault: The tick rate could not be determined.
    """
    clock = SystemClockReader.from_host()
    return MetricsCollector(services, clock, UpstartStatusSource(), StatSnapshotReader())


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the svcexporter command."""
    args = build_exporter_parser().parse_args(argv)
    setup_logging(args.log_level)
    logger.info("service exporter starting up")

    try:
        collector = build_collector(args.services)
    except EnvironmentFault as exc:
        logger.critical("%s", exc)
        return 1

    serve(ServiceCollector(collector), args.listen_port, args.listen_address)
    return 1


def top_main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the svcexporter-top command."""
    from svcexporter.app import ServiceTopApp

    args = build_top_parser().parse_args(argv)
    log_file = None
    if args.log_file:
        log_file = open(args.log_file, "a", encoding="utf-8")
        setup_logging(args.log_level, stream=log_file)
    else:
        # Keep log records off the terminal Textual is drawing on
        logging.getLogger("svcexporter").addHandler(logging.NullHandler())

    try:
        try:
            collector = build_collector(args.services)
        except EnvironmentFault as exc:
            print(f"svcexporter-top: {exc}", file=sys.stderr)
            return 1

        app = ServiceTopApp(collector, poll_rate=args.poll_rate)
        fault = app.run()
        if isinstance(fault, EnvironmentFault):
            print(f"svcexporter-top: {fault}", file=sys.stderr)
            return 1
        return app.return_code or 0
    finally:
        if log_file is not None:
            log_file.close()


def run() -> None:
    sys.exit(main())


def run_top() -> None:
    sys.exit(top_main())


if __name__ == "__main__":
    run()
