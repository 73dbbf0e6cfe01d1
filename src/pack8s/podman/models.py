"""
Pydantic data models for the podman session layer.

Records returned by queries are frozen snapshots of what the engine reported;
field names follow the engine's own schema, including the plural ``Names`` of
container listings.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

LABEL_GENERATION = "io.kubevirt/pack8s.generation"

# =============================================================================
# Records
# =============================================================================


class ContainerRecord(BaseModel):
    """
    A container as reported by a listing.

    Parameters
    ----------
    id : str
        Container ID
    names : list[str]
        Names as reported by the engine (``Names``), possibly ``/``-prefixed
    image : str
        Image the container was created from
    state : str
        Engine state (e.g. ``"running"``, ``"exited"``)
    status : str
        Human-readable status line
    labels : dict[str, str]
        Container labels

    Examples
    --------
    >>> rec = ContainerRecord.from_api({"Id": "abc", "Names": ["/pack8s-node01"]})
    >>> rec.name
    'pack8s-node01'
    """

    model_config = ConfigDict(frozen=True)

    id: str
    names: list[str] = Field(default_factory=list)
    image: str = ""
    state: str = ""
    status: str = ""
    labels: dict[str, str] = Field(default_factory=dict)
    created: int | str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "ContainerRecord":
        """Build a record from an entry of the engine's container listing."""
        names = data.get("Names") or []
        if isinstance(names, str):
            names = [names]
        return cls(
            id=data["Id"],
            names=list(names),
            image=data.get("Image") or "",
            state=data.get("State") or "",
            status=data.get("Status") or "",
            labels=data.get("Labels") or {},
            created=data.get("Created"),
        )

    @property
    def name(self) -> str:
        """Primary name, without the leading slash."""
        if not self.names:
            return ""
        return self.names[0].lstrip("/")

    @property
    def generation(self) -> str | None:
        """Value of the pack8s generation label, if set."""
        return self.labels.get(LABEL_GENERATION)

    @property
    def running(self) -> bool:
        return self.state == "running"


class VolumeRecord(BaseModel):
    """A volume and its host mount path."""

    model_config = ConfigDict(frozen=True)

    name: str
    mountpoint: str = ""
    driver: str = "local"
    labels: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "VolumeRecord":
        return cls(
            name=data["Name"],
            mountpoint=data.get("Mountpoint") or "",
            driver=data.get("Driver") or "local",
            labels=data.get("Labels") or {},
        )


class ImageRecord(BaseModel):
    """An image stored by the engine."""

    model_config = ConfigDict(frozen=True)

    id: str
    repo_tags: list[str] = Field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "ImageRecord":
        return cls(id=data["Id"], repo_tags=data.get("RepoTags") or [])


# =============================================================================
# Requests and results
# =============================================================================


class ContainerSpec(BaseModel):
    """
    Specification of a container to create.

    Parameters
    ----------
    image : str
        Image reference
    name : str, optional
        Container name
    command : list[str], optional
        Command to run instead of the image default
    labels : dict[str, str]
        Labels to set
    environment : dict[str, str]
        Environment variables
    volumes : dict[str, str]
        Named volume -> mount path inside the container
    ports : dict[int, int]
        Host port -> container port (TCP)
    privileged : bool
        Run the container privileged
    tty : bool
        Allocate a TTY for the main process
    network_mode : str, optional
        Network mode (e.g. ``"container:<name>"``)

    Examples
    --------
    >>> spec = ContainerSpec(image="docker.io/library/registry:2", name="pack8s-registry")
    >>> spec.privileged
    False
    """

    image: str
    name: str | None = None
    command: list[str] | None = None
    labels: dict[str, str] = Field(default_factory=dict)
    environment: dict[str, str] = Field(default_factory=dict)
    volumes: dict[str, str] = Field(default_factory=dict)
    ports: dict[int, int] = Field(default_factory=dict)
    privileged: bool = False
    tty: bool = False
    network_mode: str | None = None

    def host_config(self) -> dict[str, Any]:
        """Keyword arguments for the SDK's ``create_host_config``."""
        config: dict[str, Any] = {"privileged": self.privileged}
        if self.volumes:
            config["binds"] = [f"{vol}:{path}" for vol, path in self.volumes.items()]
        if self.ports:
            config["port_bindings"] = {
                container_port: host_port for host_port, container_port in self.ports.items()
            }
        if self.network_mode:
            config["network_mode"] = self.network_mode
        return config


class ExecResult(BaseModel):
    """Outcome of a command executed inside a container."""

    exit_code: int
    output: bytes = b""


class PullAttempt(BaseModel):
    """One attempt of a resilient pull."""

    model_config = ConfigDict(frozen=True)

    index: int
    reference: str
    delay: float = 0
