"""Podman session handle with error translation and interactive attach."""

from .errors import handle_errors, sprint_error, translate
from .exceptions import (
    ConnectionAborted,
    ConnectionClosed,
    ConnectionFailedError,
    ContainerNotFoundError,
    ContextEndedError,
    EngineRuntimeError,
    ErrorOccurredError,
    HandleClosedError,
    ImageNotFoundError,
    InterfaceNotFoundError,
    InvalidParameterError,
    MethodNotFoundError,
    MethodNotImplementedError,
    MultiResourceError,
    NoContainerRunningError,
    Pack8sError,
    PrefixLookupError,
    ProtocolError,
    PullError,
    RemoteCallError,
    UnknownRemoteError,
    VolumeNotFoundError,
)
from .handle import DEFAULT_SOCKET, PULL_BACKOFF_SECONDS, Handle, open_handle
from .models import (
    LABEL_GENERATION,
    ContainerRecord,
    ContainerSpec,
    ExecResult,
    ImageRecord,
    PullAttempt,
    VolumeRecord,
)
from .terminal import AttachSession, PosixTerminal, TerminalControl, raw_mode

__all__ = [
    # Handle
    "Handle",
    "open_handle",
    "DEFAULT_SOCKET",
    "PULL_BACKOFF_SECONDS",
    "LABEL_GENERATION",
    # Attach
    "AttachSession",
    "PosixTerminal",
    "TerminalControl",
    "raw_mode",
    # Records
    "ContainerRecord",
    "ContainerSpec",
    "ExecResult",
    "ImageRecord",
    "PullAttempt",
    "VolumeRecord",
    # Errors
    "handle_errors",
    "sprint_error",
    "translate",
    "Pack8sError",
    "ConnectionFailedError",
    "ContextEndedError",
    "HandleClosedError",
    "PrefixLookupError",
    "PullError",
    "RemoteCallError",
    "ImageNotFoundError",
    "ContainerNotFoundError",
    "VolumeNotFoundError",
    "NoContainerRunningError",
    "MultiResourceError",
    "ErrorOccurredError",
    "EngineRuntimeError",
    "ProtocolError",
    "InvalidParameterError",
    "MethodNotFoundError",
    "MethodNotImplementedError",
    "InterfaceNotFoundError",
    "ConnectionClosed",
    "ConnectionAborted",
    "UnknownRemoteError",
]
