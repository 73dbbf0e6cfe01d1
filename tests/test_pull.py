"""Tests for the resilient image pull."""

import logging
from unittest.mock import Mock

import pytest
import requests
from docker.errors import APIError, ImageNotFound

from pack8s.podman import PULL_BACKOFF_SECONDS, ContextEndedError, Handle, PullError


def server_error():
    return APIError("500", response=Mock(status_code=500), explanation="registry unavailable")


def test_default_schedule():
    """Test the default schedule is four attempts with growing delays."""
    assert PULL_BACKOFF_SECONDS == (0, 1, 2, 6)


def test_first_attempt_succeeds(handle, mock_docker_client, context):
    """Test a successful pull returns at once without waiting."""
    mock_docker_client.images.pull.return_value = Mock(id="sha256:abc")

    assert handle.pull_image("docker.io/library/registry:2") == "sha256:abc"
    mock_docker_client.images.pull.assert_called_once_with("docker.io/library/registry:2")
    assert context.waits == [0]


def test_succeeds_on_last_attempt(handle, mock_docker_client, context):
    """Test three failures then a success take four attempts and all delays."""
    mock_docker_client.images.pull.side_effect = [
        server_error(),
        requests.exceptions.ConnectionError("reset"),
        ImageNotFound("manifest unknown"),
        Mock(id="sha256:abc"),
    ]

    assert handle.pull_image("registry:2") == "sha256:abc"
    assert mock_docker_client.images.pull.call_count == 4
    assert context.waits == [0, 1, 2, 6]
    assert sum(context.waits) == 9


def test_gives_up_after_four_attempts(handle, mock_docker_client, context):
    """Test a pull that always fails is attempted exactly four times."""
    mock_docker_client.images.pull.side_effect = server_error()

    with pytest.raises(PullError) as exc_info:
        handle.pull_image("registry:2")

    assert mock_docker_client.images.pull.call_count == 4
    assert exc_info.value.attempts == 4
    assert str(exc_info.value) == "failed to download registry:2 4 times, giving up"
    assert context.waits == [0, 1, 2, 6]


def test_failed_attempts_logged(handle, mock_docker_client, caplog):
    """Test every attempt and every failure are logged."""
    mock_docker_client.images.pull.side_effect = [server_error(), Mock(id="sha256:abc")]

    with caplog.at_level(logging.INFO, logger="pack8s.podman.handle"):
        handle.pull_image("registry:2")

    assert "attempt #0 to download registry:2" in caplog.text
    assert "attempt #1 to download registry:2" in caplog.text
    warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
    assert len(warnings) == 1
    assert "failed to download registry:2" in warnings[0].getMessage()


def test_context_ended(handle, mock_docker_client, context):
    """Test an ended context aborts before the next attempt."""
    context.set()

    with pytest.raises(ContextEndedError):
        handle.pull_image("registry:2")

    mock_docker_client.images.pull.assert_not_called()


def test_custom_schedule(mock_docker_client_class, mock_docker_client, context):
    """Test the schedule length is the attempt budget."""
    hnd = Handle(context=context, pull_backoff=(0, 0))
    mock_docker_client.images.pull.side_effect = server_error()

    with pytest.raises(PullError) as exc_info:
        hnd.pull_image("registry:2")

    assert exc_info.value.attempts == 2
    assert mock_docker_client.images.pull.call_count == 2

