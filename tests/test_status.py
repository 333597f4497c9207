"""Tests for the upstart status source."""

import subprocess

import pytest

from svcexporter.errors import EnvironmentFault, ServiceNotRunning
from svcexporter.status import UpstartStatusSource, parse_upstart_status


class TestParseUpstartStatus:
    """Tests for parse_upstart_status."""

    def test_running(self):
        """Test the pid is taken from a start/running status."""
        assert parse_upstart_status("alpha", "alpha start/running, process 500\n") == 500

    def test_instance_job_running(self):
        """Test instance jobs with a parenthesised instance name."""
        assert parse_upstart_status("tty", "tty (tty1) start/running, process 1337\n") == 1337

    @pytest.mark.parametrize(
        "output",
        ["alpha stop/waiting\n", "alpha start/pre-start, process 12\n", "alpha stop/killed, process 9\n"],
    )
    def test_not_running(self, output):
        """Test any state other than start/running means not running."""
        with pytest.raises(ServiceNotRunning) as exc_info:
            parse_upstart_status("alpha", output)

        assert exc_info.value.service == "alpha"

    @pytest.mark.parametrize(
        "output",
        [
            "garbage",
            "alpha start/running\n",
            "alpha start/running, process 500, extra\n",
            "alpha start/running, process five\n",
        ],
    )
    def test_malformed(self, output):
        """Test unexpected output is an environment fault."""
        with pytest.raises(EnvironmentFault):
            parse_upstart_status("alpha", output)


class TestUpstartStatusSource:
    """Tests for UpstartStatusSource."""

    def test_query_runs_service_status(self, monkeypatch):
        """Test the status command line and output parsing."""
        calls = []

        def fake_run(argv, **kwargs):
            calls.append(argv)
            return subprocess.CompletedProcess(argv, 0, stdout="alpha start/running, process 500\n")

        monkeypatch.setattr(subprocess, "run", fake_run)

        assert UpstartStatusSource().query("alpha") == 500
        assert calls == [["service", "alpha", "status"]]

    def test_custom_command(self, monkeypatch):
        """Test a command prefix can wrap the status query."""
        calls = []

        def fake_run(argv, **kwargs):
            calls.append(argv)
            return subprocess.CompletedProcess(argv, 0, stdout="beta stop/waiting\n")

        monkeypatch.setattr(subprocess, "run", fake_run)

        with pytest.raises(ServiceNotRunning):
            UpstartStatusSource(command=("sudo", "-n", "service")).query("beta")
        assert calls == [["sudo", "-n", "service", "beta", "status"]]

    def test_command_failure(self, monkeypatch):
        """Test a failing status command is an environment fault."""

        def fake_run(argv, **kwargs):
            return subprocess.CompletedProcess(argv, 1, stdout="status: Unknown job: alpha\nmore\n")

        monkeypatch.setattr(subprocess, "run", fake_run)

        with pytest.raises(EnvironmentFault, match="Unknown job: alpha"):
            UpstartStatusSource().query("alpha")

    def test_command_missing(self):
        """Test a status command that cannot be started is an environment fault."""
        source = UpstartStatusSource(command=("/nonexistent/svcexporter-test-service",))

        with pytest.raises(EnvironmentFault):
            source.query("alpha")
