"""Base registry protocol and types."""

from __future__ import annotations

import base64
import json
import os
from contextlib import AbstractContextManager
from pathlib import Path
from typing import IO, TYPE_CHECKING, Protocol, runtime_checkable

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from layer_audit.core.image import ContainerImage


class RegistryAuth(BaseModel):
    """Authentication credentials for a container registry."""

    model_config = {"frozen": True}

    username: str | None = Field(default=None, description="Registry username")
    password: str | None = Field(default=None, description="Registry password or token")
    token: str | None = Field(default=None, description="Bearer token")

    @classmethod
    def from_env(cls) -> "RegistryAuth | None":
        """Create auth from environment variables.

        Looks for REGISTRY_USERNAME and REGISTRY_PASSWORD,
        or REGISTRY_TOKEN for token auth.
        """
        username = os.environ.get("REGISTRY_USERNAME")
        password = os.environ.get("REGISTRY_PASSWORD")
        token = os.environ.get("REGISTRY_TOKEN")

        if token:
            return cls(token=token)
        if username and password:
            return cls(username=username, password=password)
        return None

    @classmethod
    def from_docker_config(
        cls, registry: str | None, config_path: Path | str | None = None
    ) -> "RegistryAuth | None":
        """Read credentials for ``registry`` from a Docker ``config.json``.

        Args:
            registry: Registry hostname (None means Docker Hub)
            config_path: Explicit config file, defaults to ``~/.docker/config.json``

        Returns:
            Credentials stored under ``auths``, or None
        """
        if config_path is None:
            docker_config = os.environ.get("DOCKER_CONFIG")
            base = Path(docker_config) if docker_config else Path.home() / ".docker"
            config_path = base / "config.json"
        path = Path(config_path)
        if not path.exists():
            return None

        try:
            auths = json.loads(path.read_text()).get("auths", {})
        except (OSError, ValueError) as e:
            raise RegistryError(f"Invalid Docker config {path}: {e}", code="CONFIG_ERROR") from e

        host = registry or "docker.io"
        candidates = [host, f"https://{host}", f"https://{host}/v1/", f"https://{host}/v2/"]
        if host == "docker.io":
            candidates.append("https://index.docker.io/v1/")

        for key in candidates:
            entry = auths.get(key)
            if not entry:
                continue
            if entry.get("identitytoken"):
                return cls(token=entry["identitytoken"])
            if entry.get("auth"):
                decoded = base64.b64decode(entry["auth"]).decode("utf-8")
                username, _, password = decoded.partition(":")
                return cls(username=username, password=password)
            if entry.get("username") and entry.get("password"):
                return cls(username=entry["username"], password=entry["password"])
        return None


class RegistryError(Exception):
    """Base exception for registry operations."""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code or "REGISTRY_ERROR"


class RegistryAuthError(RegistryError):
    """Authentication failed."""

    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(message, code="AUTH_ERROR")


class RegistryNotFoundError(RegistryError):
    """Image, manifest or blob not found."""

    def __init__(self, reference: str) -> None:
        super().__init__(f"Image not found: {reference}", code="NOT_FOUND")
        self.reference = reference


@runtime_checkable
class Layer(Protocol):
    """One content-addressed, read-only increment of an image filesystem.

    Example:
        with layer.open_uncompressed() as stream:
            tar = tarfile.open(fileobj=stream, mode="r|")
    """

    @property
    def digest(self) -> str:
        """Content identifier of the layer (e.g. ``sha256:...``)."""
        ...

    def open_uncompressed(self) -> AbstractContextManager[IO[bytes]]:
        """Open the uncompressed tar stream of the layer.

        Each call opens a fresh stream; the caller must close it, which the
        returned context manager does on exit.
        """
        ...


@runtime_checkable
class Registry(Protocol):
    """Protocol for image sources.

    Sources turn an image reference into an ordered sequence of layers,
    oldest first.
    """

    def pull(self, reference: str) -> "ContainerImage":
        """Retrieve an image and expose its layers.

        Raises:
            RegistryNotFoundError: If image not found
            RegistryAuthError: If authentication fails
            RegistryError: For other errors
        """
        ...
