"""Tests for the pack8s command line."""

import logging
from unittest.mock import Mock

import pytest
from docker.errors import DockerException
from typer.testing import CliRunner

from pack8s import cli
from pack8s.config import Pack8sSettings
from pack8s.podman import LABEL_GENERATION, ErrorOccurredError, Handle

runner = CliRunner()

# Replaced by a mock in every test below.
_configure_logging = cli.configure_logging


def flat(output: str) -> str:
    """Undo rich's line wrapping."""
    return " ".join(output.split())


@pytest.fixture(autouse=True)
def isolated(monkeypatch, tmp_path):
    """Keep settings and logging independent of the host."""
    monkeypatch.delenv("PACK8S_SOCKET", raising=False)
    monkeypatch.delenv("PACK8S_LOG_LEVEL", raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(cli, "configure_logging", Mock())


@pytest.fixture
def podman(mock_docker_client_class, engine):
    """Fake engine reached by every command."""
    return engine


def add_container(engine, name, running=True, labels=None):
    container_id = engine.create_container("alpine", name=name, labels=labels)["Id"]
    if running:
        engine.start(container_id)
    return container_id


class TestGlobalOptions:
    """Tests for the callback options."""

    def test_socket_option(self, podman, mock_docker_client_class):
        """Test --socket selects the engine address."""
        result = runner.invoke(cli.app, ["--socket", "tcp://127.0.0.1:8080", "ps"])

        assert result.exit_code == 0
        assert mock_docker_client_class.call_args.kwargs["base_url"] == "tcp://127.0.0.1:8080"

    def test_invalid_socket(self, podman):
        """Test an invalid socket exits with a usage error."""
        result = runner.invoke(cli.app, ["--socket", "/run/podman.sock", "ps"])

        assert result.exit_code == 2
        assert "invalid settings" in flat(result.output)

    def test_log_level_option(self, podman):
        """Test --log-level reaches the logging setup."""
        result = runner.invoke(cli.app, ["--log-level", "debug", "ps"])

        assert result.exit_code == 0
        settings = cli.configure_logging.call_args.args[0]
        assert settings.log_level == "DEBUG"

    def test_connection_failure(self, mock_docker_client_class, mock_docker_client):
        """Test an unreachable engine is reported and exits 1."""
        mock_docker_client.ping.side_effect = DockerException("connection refused")

        result = runner.invoke(cli.app, ["ps"])

        assert result.exit_code == 1
        assert "Error calling open: ConnectionFailedError" in flat(result.output)


class TestListing:
    """Tests for ps and volumes."""

    def test_ps(self, podman):
        """Test ps shows matching containers only."""
        add_container(podman, "pack8s-node01", labels={LABEL_GENERATION: "7"})
        add_container(podman, "other")

        result = runner.invoke(cli.app, ["ps", "pack8s"])

        assert result.exit_code == 0
        assert "pack8s-node01" in result.output
        assert "7" in result.output
        assert "other" not in result.output

    def test_volumes(self, podman):
        """Test volumes shows matching volumes only."""
        podman.create_volume(name="pack8s-data")
        podman.create_volume(name="scratch")

        result = runner.invoke(cli.app, ["volumes", "pack8s"])

        assert result.exit_code == 0
        assert "pack8s-data" in result.output
        assert "scratch" not in result.output


class TestActions:
    """Tests for pull, shell, stop and rm."""

    def test_pull(self, podman, mock_docker_client):
        """Test pull reports the image ID."""
        mock_docker_client.images.pull.return_value = Mock(id="sha256:abc")

        result = runner.invoke(cli.app, ["pull", "docker.io/library/registry:2"])

        assert result.exit_code == 0
        assert "sha256:abc" in flat(result.output)

    def test_stop(self, podman):
        """Test stop resolves the prefix and stops the container."""
        container_id = add_container(podman, "pack8s-node01")

        result = runner.invoke(cli.app, ["stop", "pack8s-node", "--timeout", "1"])

        assert result.exit_code == 0
        assert "Stopped pack8s-node01" in result.output
        assert podman.inspect_container(container_id)["State"]["Running"] is False

    def test_stop_ambiguous(self, podman):
        """Test an ambiguous prefix is reported and exits 1."""
        add_container(podman, "a")
        add_container(podman, "a-1")

        result = runner.invoke(cli.app, ["stop", "a"])

        assert result.exit_code == 1
        assert (
            "Error calling find_one_prefixed: PrefixLookupError - "
            "'failed to find the container with name a'"
        ) in flat(result.output)

    def test_shell(self, podman, monkeypatch):
        """Test shell attaches to the resolved container and runs the command."""
        container_id = add_container(podman, "pack8s-node01")
        terminal = Mock()
        monkeypatch.setattr(Handle, "terminal", terminal)

        result = runner.invoke(cli.app, ["shell", "pack8s-node01", "cat", "/etc/hostname"])

        assert result.exit_code == 0
        args = terminal.call_args.args
        assert args[0] == container_id
        assert args[1] == ["cat", "/etc/hostname"]

    def test_shell_requires_command(self, podman, monkeypatch):
        """Test shell refuses to start a session without a command."""
        add_container(podman, "pack8s-node01")
        terminal = Mock()
        monkeypatch.setattr(Handle, "terminal", terminal)

        result = runner.invoke(cli.app, ["shell", "pack8s-node01"])

        assert result.exit_code == 2
        terminal.assert_not_called()

    def test_shell_remote_error(self, podman, monkeypatch):
        """Test a failed session is rendered with the terminal operation name."""
        add_container(podman, "pack8s-node01")
        monkeypatch.setattr(
            Handle,
            "terminal",
            Mock(side_effect=ErrorOccurredError("terminal", "command exited with code 1")),
        )

        result = runner.invoke(cli.app, ["shell", "pack8s-node01", "false"])

        assert result.exit_code == 1
        assert "Error calling terminal:" in flat(result.output)
        assert "reason='command exited with code 1'" in flat(result.output)

    def test_rm(self, podman):
        """Test rm removes matching containers and volumes."""
        add_container(podman, "pack8s-node01", running=False)
        add_container(podman, "pack8s-node02", running=False)
        add_container(podman, "other", running=False)
        podman.create_volume(name="pack8s-data")
        podman.create_volume(name="keep")

        result = runner.invoke(cli.app, ["rm", "pack8s", "--volumes"])

        assert result.exit_code == 0
        assert [c["Names"] for c in podman.containers(all=True)] == [["/other"]]
        assert [v["Name"] for v in podman.volumes()["Volumes"]] == ["keep"]

    def test_rm_running_without_force(self, podman):
        """Test the engine refusing a removal is reported."""
        add_container(podman, "pack8s-node01")

        result = runner.invoke(cli.app, ["rm", "pack8s"])

        assert result.exit_code == 1
        assert "Error calling remove_container:" in flat(result.output)


def test_configure_logging_plain():
    """Test logging is configured on the root logger from settings."""
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        _configure_logging(Pack8sSettings(log_format="plain", log_level="WARNING"))

        assert root.level == logging.WARNING
        assert [type(h) for h in root.handlers] == [logging.StreamHandler]
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)


def test_configure_logging_rich():
    """Test the rich format logs through RichHandler."""
    from rich.logging import RichHandler

    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        _configure_logging(Pack8sSettings(log_format="rich"))

        assert isinstance(root.handlers[0], RichHandler)
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
