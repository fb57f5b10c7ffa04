"""Images exported from the local Docker daemon."""

from __future__ import annotations

import shutil
import tempfile
from pathlib import Path
from typing import Any

from layer_audit.core.image import ContainerImage
from layer_audit.registry.archive import ArchiveLoader
from layer_audit.registry.base import (
    RegistryAuth,
    RegistryAuthError,
    RegistryError,
    RegistryNotFoundError,
)
from layer_audit.utils.logging import get_logger

logger = get_logger(__name__)


def _sdk() -> Any:
    try:
        import docker
        import docker.errors
    except ImportError:
        raise RegistryError(
            "The docker source needs the Docker SDK: pip install 'layer-audit[docker]'",
            code="MISSING_DEPENDENCY",
        ) from None
    return docker


class DockerRegistry:
    """Reads images held by the local Docker daemon.

    The image is streamed out in ``docker save`` format into a private work
    directory and then handled like any other image archive.

    Example:
        with DockerRegistry().pull("registry.access.redhat.com/ubi9:latest") as image:
            print(image.layers())
    """

    def __init__(self, auth: RegistryAuth | None = None) -> None:
        self._auth = auth
        self._daemon: Any = None

    @property
    def daemon(self) -> Any:
        """Lazily connected ``docker.DockerClient``."""
        if self._daemon is None:
            docker = _sdk()
            try:
                self._daemon = docker.from_env()
            except docker.errors.DockerException as e:
                raise RegistryError(f"Cannot reach the Docker daemon: {e}", code="CONNECTION_ERROR") from e
        return self._daemon

    def image_exists(self, reference: str) -> bool:
        daemon = self.daemon
        try:
            daemon.images.get(reference)
        except _sdk().errors.ImageNotFound:
            return False
        return True

    def _fetch(self, reference: str) -> None:
        """Have the daemon pull ``reference`` from its registry."""
        credentials = None
        if self._auth is not None and self._auth.username:
            credentials = {"username": self._auth.username, "password": self._auth.password}

        errors = _sdk().errors
        logger.info("%s not present locally, pulling", reference)
        try:
            self.daemon.images.pull(reference, auth_config=credentials)
        except errors.NotFound as e:
            raise RegistryNotFoundError(reference) from e
        except errors.APIError as e:
            if e.status_code in (401, 403) or "unauthorized" in str(e).lower():
                raise RegistryAuthError(f"Daemon was refused access to {reference}") from e
            raise RegistryError(f"Daemon could not pull {reference}: {e}") from e

    def pull(self, reference: str) -> ContainerImage:
        """Export ``reference``, asking the daemon to pull it first if needed.

        Returns:
            ContainerImage whose layers live in the exported archive
        """
        if not self.image_exists(reference):
            self._fetch(reference)

        errors = _sdk().errors
        workdir = Path(tempfile.mkdtemp(prefix="layer-audit-"))
        archive = workdir / "image.tar"
        try:
            exported = self.daemon.images.get(reference).save(named=True)
            with archive.open("wb") as out:
                for chunk in exported:
                    out.write(chunk)
            layers = ArchiveLoader().load(archive, reference).layers()
        except errors.ImageNotFound as e:
            shutil.rmtree(workdir, ignore_errors=True)
            raise RegistryNotFoundError(reference) from e
        except errors.APIError as e:
            shutil.rmtree(workdir, ignore_errors=True)
            raise RegistryError(f"Export of {reference} failed: {e}") from e
        except BaseException:
            shutil.rmtree(workdir, ignore_errors=True)
            raise

        logger.debug("exported %s with %d layers", reference, len(layers))
        return ContainerImage(reference, layers, workdir=workdir)
