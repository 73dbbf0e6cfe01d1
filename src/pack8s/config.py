"""
Configuration management for pack8s.

Settings come from the environment (prefixed with ``PACK8S_``) and an
optional ``.env`` file, through Pydantic Settings.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from pack8s.podman.handle import DEFAULT_SOCKET


class Pack8sSettings(BaseSettings):
    """
    Connection and logging settings.

    Parameters
    ----------
    socket : str
        Engine socket URL (default: unix:///run/podman/podman.sock)
    timeout : int
        Request timeout in seconds
    stop_timeout : int
        Seconds a stopped container gets before it is killed
    wait_interval : float
        Seconds between two state checks while waiting for a container
    log_level : str
        Logging level ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
    log_format : str
        Log format ("rich", "plain")

    Environment Variables
    ---------------------
    PACK8S_SOCKET : str
        Override the engine socket
    PACK8S_TIMEOUT : int
        Request timeout
    PACK8S_LOG_LEVEL : str
        Logging level

    Examples
    --------
    >>> config = Pack8sSettings()
    >>> config.socket
    'unix:///run/podman/podman.sock'
    >>> config = Pack8sSettings(socket="tcp://localhost:8080")
    >>> config.socket
    'tcp://localhost:8080'
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_prefix="PACK8S_",
    )

    socket: str = Field(default=DEFAULT_SOCKET, description="Engine socket URL")
    timeout: int = Field(default=60, ge=1, le=3600, description="Request timeout (s)")
    stop_timeout: int = Field(default=10, ge=0, le=3600, description="Stop grace period (s)")
    wait_interval: float = Field(default=1.0, gt=0, le=60, description="Wait poll interval (s)")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: Literal["rich", "plain"] = Field(default="rich", description="Log format")

    @field_validator("socket")
    @classmethod
    def validate_socket(cls, v: str) -> str:
        """Validate engine socket URL format."""
        valid_schemes = ("unix://", "tcp://", "http://", "https://", "ssh://")
        if not any(v.startswith(scheme) for scheme in valid_schemes):
            raise ValueError(f"Socket must start with one of: {valid_schemes}. Got: {v}")
        return v


def load_settings(env_file: Path | str | None = None) -> Pack8sSettings:
    """
    Load settings from the environment and an optional .env file.

    Parameters
    ----------
    env_file : Path or str, optional
        Path to .env file (default: .env in current directory)

    Returns
    -------
    Pack8sSettings
        Loaded settings
    """
    if env_file:
        return Pack8sSettings(_env_file=str(env_file))
    return Pack8sSettings()
