"""Custom exceptions for the podman session layer.

Remote failures are translated into one class per structured error kind the
engine can report, plus a catch-all. Every class follows the same pattern:
a human-readable ``message`` and a ``details`` dict for structured context.
"""

from typing import Any


class Pack8sError(Exception):
    """Base exception for all pack8s errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ConnectionFailedError(Pack8sError):
    """Raised when the engine socket cannot be reached."""

    def __init__(self, address: str, details: dict[str, Any] | None = None):
        self.address = address
        super().__init__(f"Cannot connect to podman at {address}", details=details)


class HandleClosedError(Pack8sError):
    """Raised when a closed handle is used."""

    pass


class ContextEndedError(Pack8sError):
    """Raised when the handle's context ended while an operation was waiting."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"context ended during {operation}", details={"operation": operation})


class PrefixLookupError(Pack8sError):
    """Raised when a name prefix does not match exactly one container."""

    def __init__(self, prefix: str, matches: list[str] | None = None):
        self.prefix = prefix
        self.matches = matches or []
        super().__init__(
            f"failed to find the container with name {prefix}",
            details={"prefix": prefix, "matches": self.matches},
        )


class PullError(Pack8sError):
    """Raised when an image could not be downloaded."""

    def __init__(self, reference: str, attempts: int, reason: str | None = None):
        self.reference = reference
        self.attempts = attempts
        message = reason or f"failed to download {reference} {attempts} times, giving up"
        super().__init__(message, details={"reference": reference, "attempts": attempts})


# =============================================================================
# Remote call errors
# =============================================================================


class RemoteCallError(Pack8sError):
    """
    Base exception for failures reported by a call to the engine.

    Parameters
    ----------
    method : str
        Handle operation that issued the failing call.
    message : str
        Human-readable error message.
    details : dict[str, Any], optional
        Structured error details.
    """

    def __init__(self, method: str, message: str, details: dict[str, Any] | None = None):
        self.method = method
        super().__init__(message, details={"method": method, **(details or {})})


class ImageNotFoundError(RemoteCallError):
    """Raised when the engine has no image with the given name."""

    def __init__(self, method: str, name: str):
        self.name = name
        super().__init__(method, f"image not found: {name}", details={"name": name})


class ContainerNotFoundError(RemoteCallError):
    """Raised when the engine has no container with the given name."""

    def __init__(self, method: str, name: str):
        self.name = name
        super().__init__(method, f"container not found: {name}", details={"name": name})


class VolumeNotFoundError(RemoteCallError):
    """Raised when the engine has no volume with the given name."""

    def __init__(self, method: str, name: str):
        self.name = name
        super().__init__(method, f"volume not found: {name}", details={"name": name})


class NoContainerRunningError(RemoteCallError):
    """Raised when an operation needs a running container and there is none."""

    def __init__(self, method: str, name: str = ""):
        self.name = name
        super().__init__(method, "no container running", details={"name": name})


class MultiResourceError(RemoteCallError):
    """
    Raised when a batch operation fails for one or more of its members.

    Parameters
    ----------
    method : str
        Handle operation that issued the batch.
    group : str
        Kind of resource the batch operated on (e.g. ``"volumes"``).
    errors : list[dict[str, str]]
        One ``{"id": ..., "reason": ...}`` entry per failed member.
    """

    def __init__(self, method: str, group: str, errors: list[dict[str, str]]):
        self.group = group
        self.errors = errors
        super().__init__(
            method,
            f"{len(errors)} {group} failed",
            details={"group": group, "errors": errors},
        )


class ErrorOccurredError(RemoteCallError):
    """Raised for a request the engine rejected, with its reason."""

    def __init__(self, method: str, reason: str):
        self.reason = reason
        super().__init__(method, f"error occurred: {reason}", details={"reason": reason})


class EngineRuntimeError(RemoteCallError):
    """Raised when the engine itself failed while serving a request."""

    def __init__(self, method: str, reason: str):
        self.reason = reason
        super().__init__(method, f"runtime error: {reason}", details={"reason": reason})


# Protocol errors


class ProtocolError(RemoteCallError):
    """Raised for a transport-level protocol failure."""

    def __init__(
        self,
        method: str,
        parameters: dict[str, Any] | None = None,
        message: str = "protocol error",
    ):
        self.parameters = parameters or {}
        super().__init__(method, message, details={"parameters": self.parameters})


class InvalidParameterError(ProtocolError):
    """Raised when a request parameter was refused."""

    def __init__(self, method: str, parameter: str):
        self.parameter = parameter
        super().__init__(method, {"parameter": parameter}, f"invalid parameter: {parameter}")


class MethodNotFoundError(ProtocolError):
    """Raised when the engine does not know the requested endpoint."""

    def __init__(self, method: str, remote_method: str):
        self.remote_method = remote_method
        super().__init__(method, {"method": remote_method}, f"method not found: {remote_method}")


class MethodNotImplementedError(ProtocolError):
    """Raised when the engine knows the endpoint but does not implement it."""

    def __init__(self, method: str, remote_method: str):
        self.remote_method = remote_method
        super().__init__(
            method, {"method": remote_method}, f"method not implemented: {remote_method}"
        )


class InterfaceNotFoundError(ProtocolError):
    """Raised when the engine does not serve the requested API version."""

    def __init__(self, method: str, interface: str):
        self.interface = interface
        super().__init__(method, {"interface": interface}, f"interface not found: {interface}")


# Stream termination


class StreamTerminated(RemoteCallError):
    """Base exception for a connection stream that ended."""

    pass


class ConnectionClosed(StreamTerminated):
    """Raised when the stream ended cleanly."""

    def __init__(self, method: str):
        super().__init__(method, "connection closed")


class ConnectionAborted(StreamTerminated):
    """Raised when the stream ended unexpectedly."""

    def __init__(self, method: str):
        super().__init__(method, "connection aborted")


class UnknownRemoteError(RemoteCallError):
    """Raised for any failure of a shape not recognized above."""

    def __init__(self, method: str, original: BaseException):
        self.original = original
        super().__init__(
            method,
            str(original),
            details={"type": type(original).__name__},
        )
