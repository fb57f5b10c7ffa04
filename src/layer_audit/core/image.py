"""ContainerImage and layer implementations."""

from __future__ import annotations

import gzip
import io
import shutil
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import IO, TYPE_CHECKING

from layer_audit.utils.hashing import content_digest

if TYPE_CHECKING:
    from layer_audit.registry.base import Layer, RegistryAuth

GZIP_MAGIC = b"\x1f\x8b"


def maybe_decompress(stream: IO[bytes]) -> IO[bytes]:
    """Wrap a seekable stream in a gzip reader if it starts with the gzip magic."""
    head = stream.read(2)
    stream.seek(0)
    if head == GZIP_MAGIC:
        return gzip.GzipFile(fileobj=stream, mode="rb")
    return stream


class MemoryLayer:
    """A layer held in memory as an uncompressed tar archive.

    Example:
        layer = MemoryLayer(tar_bytes)
        with layer.open_uncompressed() as stream:
            ...
    """

    def __init__(self, data: bytes, digest: str | None = None) -> None:
        self._data = data
        self._digest = digest or content_digest(data)

    @property
    def digest(self) -> str:
        return self._digest

    def open_uncompressed(self) -> IO[bytes]:
        return io.BytesIO(self._data)

    def __repr__(self) -> str:
        return f"MemoryLayer(digest='{self._digest}')"


class FileLayer:
    """A layer blob stored on disk, gzip compressed or plain tar."""

    def __init__(self, path: Path | str, digest: str) -> None:
        self._path = Path(path)
        self._digest = digest

    @property
    def digest(self) -> str:
        return self._digest

    @property
    def path(self) -> Path:
        return self._path

    @contextmanager
    def open_uncompressed(self) -> Iterator[IO[bytes]]:
        with open(self._path, "rb") as raw:
            stream = maybe_decompress(raw)
            try:
                yield stream
            finally:
                stream.close()

    def __repr__(self) -> str:
        return f"FileLayer(digest='{self._digest}', path='{self._path}')"


class ContainerImage:
    """An image as an ordered sequence of layers, oldest first.

    Images loaded from a registry, an archive or the local Docker daemon keep
    their layer blobs in a private work directory that is removed by
    ``close()``. Use the image as a context manager to release it.

    Example:
        with ContainerImage.from_registry("quay.io/ns/app@sha256:...") as image:
            result = LayerAuditor().audit(image)
    """

    def __init__(
        self,
        reference: str,
        layers: Sequence["Layer"],
        workdir: Path | None = None,
    ) -> None:
        """Initialize with the image layers.

        Args:
            reference: Image reference the layers were loaded for
            layers: Layers, oldest first
            workdir: Directory owned by this image, removed on close
        """
        self._reference = reference
        self._layers = list(layers)
        self._workdir = workdir

    @property
    def reference(self) -> str:
        return self._reference

    def layers(self) -> list["Layer"]:
        """The layers of the image, oldest first."""
        return list(self._layers)

    @classmethod
    def from_layers(cls, reference: str, layers: Sequence["Layer"]) -> "ContainerImage":
        """Create an image from already materialized layers."""
        return cls(reference, layers)

    @classmethod
    def from_registry(
        cls,
        reference: str,
        auth: "RegistryAuth | None" = None,
        timeout: float = 300.0,
        max_retries: int = 3,
    ) -> "ContainerImage":
        """Pull an image from an OCI-compliant registry.

        Args:
            reference: Image reference (e.g., "quay.io/ns/app:1.0")
            auth: Optional authentication credentials
            timeout: Request timeout in seconds
            max_retries: Transport retry attempts

        Raises:
            RegistryError: If the image cannot be retrieved
        """
        from layer_audit.registry.oci import OCIRegistry

        return OCIRegistry(auth=auth, timeout=timeout, max_retries=max_retries).pull(reference)

    @classmethod
    def from_archive(cls, path: Path | str) -> "ContainerImage":
        """Load an image from a ``docker save`` or OCI layout tarball."""
        from layer_audit.registry.archive import ArchiveLoader

        return ArchiveLoader().load(path)

    @classmethod
    def from_local(cls, reference: str) -> "ContainerImage":
        """Export an image from the local Docker daemon."""
        from layer_audit.registry.docker import DockerRegistry

        return DockerRegistry().pull(reference)

    def close(self) -> None:
        """Remove any layer blobs owned by this image."""
        if self._workdir is not None:
            shutil.rmtree(self._workdir, ignore_errors=True)
            self._workdir = None

    def __enter__(self) -> "ContainerImage":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __len__(self) -> int:
        return len(self._layers)

    def __repr__(self) -> str:
        return f"ContainerImage(reference='{self._reference}', layers={len(self._layers)})"
