"""Loader for image tarballs written by ``docker save`` or as OCI layouts."""

from __future__ import annotations

import json
import tarfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Any

from layer_audit.core.image import ContainerImage, maybe_decompress
from layer_audit.registry.base import RegistryError, RegistryNotFoundError
from layer_audit.utils.logging import get_logger

logger = get_logger(__name__)


class ArchiveLayer:
    """A layer stored as a member of an image tarball."""

    def __init__(self, archive: Path, member: str, digest: str) -> None:
        self._archive = archive
        self._member = member
        self._digest = digest

    @property
    def digest(self) -> str:
        return self._digest

    @property
    def member(self) -> str:
        return self._member

    @contextmanager
    def open_uncompressed(self) -> Iterator[IO[bytes]]:
        with tarfile.open(self._archive, "r:") as outer:
            blob = outer.extractfile(self._member)
            if blob is None:
                raise tarfile.ReadError(f"{self._member} is not a regular file")
            stream = maybe_decompress(blob)
            try:
                yield stream
            finally:
                stream.close()

    def __repr__(self) -> str:
        return f"ArchiveLayer(digest='{self._digest}', member='{self._member}')"


class ArchiveLoader:
    """Reads the layer list of an image tarball without extracting it.

    ``docker save`` archives are described by ``manifest.json``; their layer
    digests come from the image config's ``rootfs.diff_ids``. Plain OCI
    layouts are described by ``index.json`` and use the manifest's layer
    digests.

    Example:
        image = ArchiveLoader().load("app.tar")
    """

    def load(self, path: Path | str, reference: str | None = None) -> ContainerImage:
        """Load an image tarball.

        Args:
            path: Path to the tarball
            reference: Reference recorded on the image (defaults to a RepoTag or the path)

        Raises:
            RegistryNotFoundError: If the file does not exist
            RegistryError: If the archive is not an image tarball
        """
        archive = Path(path)
        if not archive.exists():
            raise RegistryNotFoundError(str(archive))

        try:
            with tarfile.open(archive, "r:") as tar:
                names = set(tar.getnames())
                if "manifest.json" in names:
                    return self._load_docker(tar, archive, reference)
                if "index.json" in names:
                    return self._load_oci(tar, archive, reference)
        except (tarfile.TarError, OSError, ValueError, KeyError) as e:
            raise RegistryError(f"Failed to read image archive {archive}: {e}") from e

        raise RegistryError(f"{archive} has neither manifest.json nor index.json")

    @staticmethod
    def _read_json(tar: tarfile.TarFile, name: str) -> Any:
        member = tar.extractfile(name)
        if member is None:
            raise RegistryError(f"{name} is not a regular file")
        with member:
            return json.loads(member.read())

    def _load_docker(
        self, tar: tarfile.TarFile, archive: Path, reference: str | None
    ) -> ContainerImage:
        manifests = self._read_json(tar, "manifest.json")
        if not manifests:
            raise RegistryError("manifest.json lists no images")
        if len(manifests) > 1:
            logger.warning("%s holds %d images, auditing the first", archive, len(manifests))
        manifest = manifests[0]

        config = self._read_json(tar, manifest["Config"])
        diff_ids = config.get("rootfs", {}).get("diff_ids", [])
        members = manifest.get("Layers", [])
        if diff_ids and len(diff_ids) != len(members):
            raise RegistryError(
                f"config lists {len(diff_ids)} diff_ids for {len(members)} layers"
            )

        layers = []
        for i, member in enumerate(members):
            digest = diff_ids[i] if diff_ids else "sha256:" + Path(member).parent.name
            layers.append(ArchiveLayer(archive, member, digest))

        if reference is None:
            tags = manifest.get("RepoTags") or []
            reference = tags[0] if tags else str(archive)
        return ContainerImage(reference, layers)

    def _load_oci(
        self, tar: tarfile.TarFile, archive: Path, reference: str | None
    ) -> ContainerImage:
        index = self._read_json(tar, "index.json")
        descriptors = index.get("manifests", [])
        if not descriptors:
            raise RegistryError("index.json lists no manifests")

        descriptor = descriptors[0]
        manifest = self._read_json(tar, self._blob_path(descriptor["digest"]))
        # nested index: follow the first entry
        if "manifests" in manifest and "layers" not in manifest:
            manifest = self._read_json(tar, self._blob_path(manifest["manifests"][0]["digest"]))

        layers = [
            ArchiveLayer(archive, self._blob_path(layer["digest"]), layer["digest"])
            for layer in manifest.get("layers", [])
        ]

        if reference is None:
            annotations = descriptor.get("annotations", {})
            reference = annotations.get("org.opencontainers.image.ref.name") or str(archive)
        return ContainerImage(reference, layers)

    @staticmethod
    def _blob_path(digest: str) -> str:
        algorithm, _, value = digest.partition(":")
        return f"blobs/{algorithm}/{value}"
