"""Translation of engine failures into pack8s errors, and their rendering.

``translate`` turns whatever the docker SDK raised into one of the variants of
:mod:`pack8s.podman.exceptions`; ``sprint_error`` renders any error into the
single diagnostic line shown to users.
"""

from collections.abc import Generator
from contextlib import contextmanager
from typing import Literal

import requests
from docker.errors import (
    APIError,
    DockerException,
    ImageNotFound,
    InvalidArgument,
    InvalidVersion,
    NotFound,
)

from .exceptions import (
    ConnectionAborted,
    ConnectionClosed,
    ContainerNotFoundError,
    EngineRuntimeError,
    ErrorOccurredError,
    ImageNotFoundError,
    InterfaceNotFoundError,
    InvalidParameterError,
    MethodNotFoundError,
    MethodNotImplementedError,
    MultiResourceError,
    NoContainerRunningError,
    ProtocolError,
    RemoteCallError,
    UnknownRemoteError,
    VolumeNotFoundError,
)

ResourceKind = Literal["container", "volume", "image"]

# The engine answers unknown routes with a 404 carrying this message.
_UNKNOWN_ROUTE = "page not found"


def _explanation(exc: APIError) -> str:
    explanation = exc.explanation
    if isinstance(explanation, bytes):
        explanation = explanation.decode("utf-8", errors="replace")
    return str(explanation or exc)


def _route(exc: APIError) -> str:
    response = exc.response
    request = getattr(response, "request", None)
    path = getattr(request, "path_url", None)
    return path if isinstance(path, str) else ""


def translate(
    method: str,
    exc: BaseException,
    kind: ResourceKind | None = None,
    name: str = "",
) -> RemoteCallError:
    """
    Map an exception raised by the docker SDK onto a remote error variant.

    Parameters
    ----------
    method : str
        Handle operation that issued the call.
    exc : BaseException
        The exception raised by the SDK or the transport.
    kind : {"container", "volume", "image"}, optional
        Resource addressed by the call, used to pick the not-found variant.
    name : str
        Name of the addressed resource.

    Returns
    -------
    RemoteCallError
        The matching variant. Variants are returned unchanged.
    """
    if isinstance(exc, RemoteCallError):
        return exc

    if isinstance(exc, ImageNotFound):
        return ImageNotFoundError(method, name or _explanation(exc))

    if isinstance(exc, NotFound):
        if _UNKNOWN_ROUTE in _explanation(exc).lower():
            return MethodNotFoundError(method, _route(exc) or method)
        if kind == "volume":
            return VolumeNotFoundError(method, name or _explanation(exc))
        if kind == "image":
            return ImageNotFoundError(method, name or _explanation(exc))
        return ContainerNotFoundError(method, name or _explanation(exc))

    if isinstance(exc, APIError):
        status = exc.status_code
        if status == 501:
            return MethodNotImplementedError(method, _route(exc) or method)
        if status == 400:
            return InvalidParameterError(method, _explanation(exc))
        if status == 409 and "not running" in _explanation(exc).lower():
            return NoContainerRunningError(method, name)
        if exc.is_server_error():
            return EngineRuntimeError(method, _explanation(exc))
        return ErrorOccurredError(method, _explanation(exc))

    if isinstance(exc, InvalidVersion):
        return InterfaceNotFoundError(method, str(exc))

    if isinstance(exc, InvalidArgument):
        return InvalidParameterError(method, str(exc))

    if isinstance(exc, DockerException):
        return ProtocolError(method, {"error": str(exc)})

    if isinstance(exc, EOFError):
        return ConnectionClosed(method)

    if isinstance(
        exc,
        requests.exceptions.ChunkedEncodingError
        | requests.exceptions.ConnectionError
        | ConnectionResetError
        | BrokenPipeError,
    ):
        return ConnectionAborted(method)

    return UnknownRemoteError(method, exc)


@contextmanager
def handle_errors(
    method: str, kind: ResourceKind | None = None, name: str = ""
) -> Generator[None, None, None]:
    """
    Context manager translating SDK failures raised inside its block.

    Example:
        with handle_errors("start_container", kind="container", name=cid):
            api.start(cid)
    """
    try:
        yield
    except RemoteCallError:
        raise
    except (DockerException, requests.exceptions.RequestException, OSError, EOFError) as e:
        raise translate(method, e, kind=kind, name=name) from e


def sprint_error(method: str, err: BaseException) -> str:
    """
    Render an error raised through the handle as a diagnostic line.

    Never raises; the same error always renders the same way.

    Parameters
    ----------
    method : str
        Name of the failing operation, shown first.
    err : BaseException
        Any exception; remote error variants get their fields spelled out.

    Returns
    -------
    str
        ``"Error calling <method>: ..."`` terminated by a newline.
    """
    prefix = f"Error calling {method}: "
    match err:
        case (
            ImageNotFoundError(name=name)
            | ContainerNotFoundError(name=name)
            | VolumeNotFoundError(name=name)
        ):
            body = f"'{err}' name='{name}'"
        case NoContainerRunningError():
            body = f"'{err}'"
        case MultiResourceError(group=group, errors=errors):
            body = f"'{err}' group='{group}' errors='{errors}'"
        case ErrorOccurredError(reason=reason) | EngineRuntimeError(reason=reason):
            body = f"'{err}' reason='{reason}'"
        case InvalidParameterError(parameter=parameter):
            body = f"'{err}' parameter='{parameter}'"
        case MethodNotFoundError(remote_method=remote) | MethodNotImplementedError(
            remote_method=remote
        ):
            body = f"'{err}' method='{remote}'"
        case InterfaceNotFoundError(interface=interface):
            body = f"'{err}' interface='{interface}'"
        case ProtocolError(parameters=parameters):
            body = f"'{err}' parameters='{parameters}'"
        case ConnectionClosed() | EOFError():
            body = "Connection closed"
        case ConnectionAborted() | ConnectionResetError() | BrokenPipeError():
            body = "Connection aborted"
        case UnknownRemoteError(original=original):
            body = f"{type(original).__name__} - '{original}'"
        case _:
            body = f"{type(err).__name__} - '{err}'"
    return f"{prefix}{body}\n"
