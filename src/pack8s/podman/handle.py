"""Session handle to the podman engine: connection, queries and lifecycle."""

import logging
import threading
from collections.abc import Iterable, Sequence
from types import TracebackType
from typing import IO, TYPE_CHECKING, Any

import docker
import requests
from docker import DockerClient as _DockerClient
from docker.api import APIClient
from docker.errors import DockerException

from .errors import handle_errors
from .exceptions import (
    ConnectionFailedError,
    ContextEndedError,
    HandleClosedError,
    MultiResourceError,
    PrefixLookupError,
    PullError,
    RemoteCallError,
)
from .models import (
    ContainerRecord,
    ContainerSpec,
    ExecResult,
    ImageRecord,
    PullAttempt,
    VolumeRecord,
)

if TYPE_CHECKING:
    from pack8s.config import Pack8sSettings

    from .terminal import TerminalControl

logger = logging.getLogger(__name__)

DEFAULT_SOCKET = "unix:///run/podman/podman.sock"

# Delay in seconds before each pull attempt; the length is the attempt budget.
PULL_BACKOFF_SECONDS: tuple[float, ...] = (0, 1, 2, 6)

# Container states a wait returns on; "created" is not one of them.
EXITED_STATES = frozenset({"exited", "stopped", "dead"})


class Handle:
    """
    Session to a podman engine.

    Owns a context and an open connection; every operation is a method on it.
    Operations never close the connection, the caller does (``close()`` or a
    ``with`` block).

    Parameters
    ----------
    address : str, optional
        Engine socket URL (default: ``DEFAULT_SOCKET``)
    timeout : int
        Request timeout in seconds
    context : threading.Event, optional
        Cancellation context; once set, waiting operations give up
    pull_backoff : Sequence[float]
        Pre-attempt delays of ``pull_image``

    Raises
    ------
    ConnectionFailedError
        If the engine cannot be reached. There is no retry.

    Examples
    --------
    >>> with Handle() as hnd:
    ...     node = hnd.find_one_prefixed("pack8s-node01")
    ...     hnd.stop_container(node.id, timeout=10)
    """

    _client: _DockerClient | None = None

    def __init__(
        self,
        address: str | None = None,
        *,
        timeout: int = 60,
        context: threading.Event | None = None,
        pull_backoff: Sequence[float] = PULL_BACKOFF_SECONDS,
    ) -> None:
        self.address = address or DEFAULT_SOCKET
        self.timeout = timeout
        self.context = context if context is not None else threading.Event()
        self.pull_backoff = tuple(pull_backoff)
        self._connect()

    @classmethod
    def from_settings(
        cls, settings: "Pack8sSettings", context: threading.Event | None = None
    ) -> "Handle":
        """Open a handle configured from ``Pack8sSettings``."""
        return cls(settings.socket, timeout=settings.timeout, context=context)

    def _connect(self) -> None:
        """Establish connection to the engine."""
        logger.info(f"connecting to {self.address}")
        try:
            self._client = docker.DockerClient(base_url=self.address, timeout=self.timeout)
            # Verify connection
            self._client.ping()
        except (DockerException, requests.exceptions.RequestException) as e:
            logger.error(f"Failed to connect to {self.address}: {e}")
            raise ConnectionFailedError(
                self.address, details={"error": str(e), "address": self.address}
            ) from e
        logger.info(f"connected to {self.address}")

    @property
    def client(self) -> _DockerClient:
        """Get the underlying SDK client."""
        if self._client is None:
            raise HandleClosedError("handle is closed", details={"address": self.address})
        return self._client

    @property
    def api(self) -> APIClient:
        """Low-level API client, one method per engine endpoint."""
        return self.client.api

    # =========================================================================
    # Queries
    # =========================================================================

    def list_containers(self) -> list[ContainerRecord]:
        """List every container known to the engine, in engine order."""
        with handle_errors("list_containers"):
            containers = self.api.containers(all=True)
        return [ContainerRecord.from_api(c) for c in containers]

    def list_volumes(self) -> list[VolumeRecord]:
        """List every volume known to the engine, in engine order."""
        with handle_errors("list_volumes"):
            response = self.api.volumes()
        return [VolumeRecord.from_api(v) for v in (response or {}).get("Volumes") or []]

    def list_images(self) -> list[ImageRecord]:
        with handle_errors("list_images"):
            images = self.api.images()
        return [ImageRecord.from_api(i) for i in images]

    def prefixed_containers(self, prefix: str) -> list[ContainerRecord]:
        """
        Containers whose name starts with ``prefix``.

        Parameters
        ----------
        prefix : str
            Case-sensitive name prefix

        Returns
        -------
        list[ContainerRecord]
            Matches, in the order the engine reported them
        """
        containers = self.list_containers()
        logger.info(f"found {len(containers)} containers in the system")

        matches = []
        for cont in containers:
            if cont.name.startswith(prefix):
                logger.debug(f"matching container: {cont.name} ({cont.id})")
                matches.append(cont)
        logger.info(f"found {len(matches)} containers matching the prefix")
        return matches

    def prefixed_volumes(self, prefix: str) -> list[VolumeRecord]:
        """Volumes whose name starts with ``prefix``, in engine order."""
        volumes = self.list_volumes()
        logger.info(f"found {len(volumes)} volumes in the system")

        matches = []
        for vol in volumes:
            if vol.name.startswith(prefix):
                logger.debug(f"matching volume: {vol.name} @({vol.mountpoint})")
                matches.append(vol)
        logger.info(f"found {len(matches)} volumes matching the prefix")
        return matches

    def find_one_prefixed(self, prefix: str) -> ContainerRecord:
        """
        The only container whose name starts with ``prefix``.

        Raises
        ------
        PrefixLookupError
            If no container, or more than one, matches
        """
        matches = self.prefixed_containers(prefix)
        if len(matches) != 1:
            raise PrefixLookupError(prefix, [c.name for c in matches])
        return matches[0]

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def create_volume(self, name: str, labels: dict[str, str] | None = None) -> str:
        """Create a named volume and return its name."""
        with handle_errors("create_volume", kind="volume", name=name):
            result = self.api.create_volume(name=name, labels=labels)
        logger.info(f"created volume {name}")
        return result.get("Name", name)

    def create_container(self, spec: ContainerSpec) -> str:
        """
        Create (without starting) a container.

        Parameters
        ----------
        spec : ContainerSpec
            Container specification

        Returns
        -------
        str
            Container ID

        Raises
        ------
        ImageNotFoundError
            If the image is not present on the engine
        """
        api = self.api
        with handle_errors("create_container", kind="image", name=spec.image):
            host_config = api.create_host_config(**spec.host_config())
            result = api.create_container(
                spec.image,
                command=spec.command,
                name=spec.name,
                labels=spec.labels or None,
                environment=spec.environment or None,
                ports=list(spec.ports.values()) or None,
                tty=spec.tty,
                stdin_open=spec.tty,
                host_config=host_config,
            )
        container_id: str = result["Id"]
        logger.info(f"created container {spec.name or spec.image} ({container_id})")
        return container_id

    def start_container(self, container_id: str) -> str:
        with handle_errors("start_container", kind="container", name=container_id):
            self.api.start(container_id)
        logger.info(f"started container {container_id}")
        return container_id

    def stop_container(self, container_id: str, timeout: int = 10) -> str:
        """Stop a container, killing it after ``timeout`` seconds."""
        with handle_errors("stop_container", kind="container", name=container_id):
            self.api.stop(container_id, timeout=timeout)
        logger.info(f"stopped container {container_id}")
        return container_id

    def wait_container(self, container_id: str, interval: float = 1) -> int:
        """
        Block until a container has exited.

        A container that was created but never started is waited on until it
        runs and exits. The state is polled so that the handle's context can
        interrupt the wait.

        Parameters
        ----------
        container_id : str
            Container ID or name
        interval : float
            Seconds between two state checks

        Returns
        -------
        int
            Exit code of the container's main process

        Raises
        ------
        ContextEndedError
            If the handle's context ends while waiting
        """
        while True:
            with handle_errors("wait_container", kind="container", name=container_id):
                state = self.api.inspect_container(container_id).get("State") or {}
            if state.get("Status") in EXITED_STATES:
                return int(state.get("ExitCode") or 0)
            if self.context.wait(interval):
                raise ContextEndedError("wait_container")

    def remove_container(
        self,
        container: ContainerRecord | str,
        force: bool = False,
        remove_volumes: bool = False,
    ) -> str:
        """Remove a container, given as a record or an ID."""
        if isinstance(container, ContainerRecord):
            container_id, label = container.id, f"{container.name} ({container.id})"
        else:
            container_id = label = container
        logger.info(
            f"trying to remove: {label} force={force} removeVolumes={remove_volumes}"
        )
        with handle_errors("remove_container", kind="container", name=container_id):
            self.api.remove_container(container_id, v=remove_volumes, force=force)
        return container_id

    def remove_volumes(self, volumes: Iterable[VolumeRecord | str]) -> None:
        """
        Force-remove volumes by name.

        The engine's REST API removes one volume per request and has no batch
        removal, so each volume gets its own call. Every volume is attempted;
        failures are reported together.

        Raises
        ------
        MultiResourceError
            Listing each volume that could not be removed
        """
        failures = []
        for vol in volumes:
            name = vol.name if isinstance(vol, VolumeRecord) else vol
            mountpoint = vol.mountpoint if isinstance(vol, VolumeRecord) else ""
            logger.info(f"removing volume {name} @{mountpoint}")
            try:
                with handle_errors("remove_volumes", kind="volume", name=name):
                    self.api.remove_volume(name, force=True)
            except RemoteCallError as e:
                failures.append({"id": name, "reason": e.message})
        if failures:
            raise MultiResourceError("remove_volumes", "volumes", failures)

    # =========================================================================
    # Execution
    # =========================================================================

    def exec(
        self,
        container: str,
        command: Sequence[str],
        tty: bool = False,
        privileged: bool = True,
    ) -> ExecResult:
        """
        Run a command inside a running container and wait for it.

        Returns
        -------
        ExecResult
            Exit code and collected output
        """
        api = self.api
        with handle_errors("exec", kind="container", name=container):
            created = api.exec_create(container, list(command), tty=tty, privileged=privileged)
            exec_id = created["Id"]
            output = api.exec_start(exec_id, tty=tty)
            info = api.exec_inspect(exec_id)
        return ExecResult(exit_code=info.get("ExitCode") or 0, output=output or b"")

    def terminal(
        self,
        container: str,
        command: Sequence[str],
        file: IO[Any],
        terminal: "TerminalControl | None" = None,
    ) -> None:
        """
        Attach ``file`` (usually stdin) to a container and run ``command``.

        The attached stream belongs to the container's main process.
        ``command`` runs next to it without stdin, so an interactive shell
        given as ``command`` exits at once and ends the session.

        Returns once the session ends: interrupt, end of either stream, or
        completion of the command. Raises the error that ended it, if any.
        """
        from .terminal import AttachSession

        AttachSession(self, container, command, file, terminal=terminal).run()

    # =========================================================================
    # Images
    # =========================================================================

    def pull_image(self, reference: str) -> str:
        """
        Download an image, retrying on any failure.

        Waits ``pull_backoff[i]`` seconds before attempt ``i``; failed
        attempts are logged, not aggregated.

        Parameters
        ----------
        reference : str
            Image reference, e.g. ``docker.io/library/registry:2``

        Returns
        -------
        str
            ID of the pulled image

        Raises
        ------
        PullError
            After the last attempt failed
        ContextEndedError
            If the handle's context ends during a backoff
        """
        for idx, delay in enumerate(self.pull_backoff):
            attempt = PullAttempt(index=idx, reference=reference, delay=delay)
            if self.context.wait(attempt.delay):
                raise ContextEndedError("pull_image")

            logger.info(f"attempt #{attempt.index} to download {reference}")
            # TODO: report download progress while the pull runs
            try:
                return self._pull_once(attempt)
            except RemoteCallError as e:
                logger.warning(f"failed to download {reference}: {e}")
        raise PullError(reference, len(self.pull_backoff))

    def _pull_once(self, attempt: PullAttempt) -> str:
        with handle_errors("pull_image", kind="image", name=attempt.reference):
            image = self.client.images.pull(attempt.reference)
        image_id: str = image.id
        logger.info(f"downloaded {attempt.reference} ({image_id})")
        return image_id

    # =========================================================================
    # Lifetime
    # =========================================================================

    def close(self) -> None:
        """Close connection to the engine."""
        if self._client:
            self._client.close()
            self._client = None
            logger.info("Closed podman connection")

    def __enter__(self) -> "Handle":
        """Context manager entry."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Context manager exit."""
        self.close()


def open_handle(
    address: str | None = None,
    *,
    timeout: int = 60,
    context: threading.Event | None = None,
) -> Handle:
    """Open a handle; an empty or missing address selects ``DEFAULT_SOCKET``."""
    return Handle(address, timeout=timeout, context=context)
