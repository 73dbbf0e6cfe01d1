"""pack8s - podman control plane for ephemeral test clusters."""

from pack8s.config import Pack8sSettings, load_settings
from pack8s.podman import (
    DEFAULT_SOCKET,
    LABEL_GENERATION,
    ContainerRecord,
    ContainerSpec,
    Handle,
    Pack8sError,
    VolumeRecord,
    open_handle,
    sprint_error,
)

__version__ = "0.1.0"

__all__ = [
    # Config
    "Pack8sSettings",
    "load_settings",
    # Podman
    "Handle",
    "open_handle",
    "DEFAULT_SOCKET",
    "LABEL_GENERATION",
    "ContainerRecord",
    "ContainerSpec",
    "VolumeRecord",
    # Errors
    "Pack8sError",
    "sprint_error",
]
