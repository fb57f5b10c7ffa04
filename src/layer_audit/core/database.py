"""Package database extraction from image layers."""

from __future__ import annotations

import os
import shutil
import tarfile
import tempfile
import zlib
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING

from layer_audit.core.changes import WHITEOUT_PREFIX
from layer_audit.core.paths import is_within, normalize
from layer_audit.models.audit import DatabaseLookup, LookupStatus
from layer_audit.models.packages import PackageRecord
from layer_audit.rpmdb import RpmDatabaseError, open_database
from layer_audit.utils.errors import DatabaseCorruptError, DatabaseNotFoundError, LayerReadError
from layer_audit.utils.logging import get_logger, layer_logger

if TYPE_CHECKING:
    from layer_audit.registry.base import Layer

logger = get_logger(__name__)

DEFAULT_DATABASE_DIR = "var/lib/rpm"

# Relative to the database directory, most preferred first.
DATABASE_FILES = ("rpmdb.sqlite", "Packages")


class DatabaseExtractor:
    """Materializes a layer's package database and reads its packages.

    Entries under the database directory are copied into a private scratch
    directory that is removed on every exit path, then the first known
    database file is opened and fully read before the scratch area goes away.

    Example:
        extractor = DatabaseExtractor()
        lookup = extractor.extract(layer)
        if lookup.status == LookupStatus.FOUND:
            print(len(lookup.packages))
    """

    def __init__(self, database_dir: str = DEFAULT_DATABASE_DIR) -> None:
        self._database_dir = normalize(database_dir)

    @property
    def database_dir(self) -> str:
        return self._database_dir

    def extract(self, layer: "Layer") -> DatabaseLookup:
        """Look for a package database in ``layer``.

        Never raises for the expected outcomes; they are reported through the
        lookup status instead.
        """
        with tempfile.TemporaryDirectory(prefix="rpmdb-") as scratch:
            basepath = Path(scratch)
            try:
                self._materialize(layer, basepath)
            except (tarfile.TarError, OSError, EOFError, zlib.error) as e:
                return DatabaseLookup.read_error(layer.digest, str(e))

            database_path = self._locate(basepath)
            if database_path is None:
                return DatabaseLookup.not_found(layer.digest)

            relative = database_path.relative_to(basepath).as_posix()
            try:
                packages = open_database(database_path).list_packages()
            except RpmDatabaseError as e:
                return DatabaseLookup.corrupt(layer.digest, relative, str(e))

            return DatabaseLookup.found(layer.digest, packages, relative)

    def _materialize(self, layer: "Layer", basepath: Path) -> None:
        log = layer_logger(__name__, layer.digest)
        with layer.open_uncompressed() as stream:
            with tarfile.open(fileobj=stream, mode="r|") as tar:
                for member in tar:
                    name = normalize(member.name)
                    if not is_within(name, self._database_dir):
                        continue
                    if os.path.basename(name).startswith(WHITEOUT_PREFIX):
                        continue

                    target = basepath / name
                    if member.isdir():
                        target.mkdir(parents=True, exist_ok=True)
                        target.chmod((member.mode & 0o7777) | 0o700)
                    elif member.isreg():
                        target.parent.mkdir(parents=True, exist_ok=True)
                        source = tar.extractfile(member)
                        if source is None:
                            raise tarfile.ReadError(f"cannot read {member.name}")
                        with open(target, "wb") as out:
                            shutil.copyfileobj(source, out)
                        target.chmod((member.mode & 0o7777) | 0o600)
                        log.debug("copied %s (%d bytes)", name, member.size)

    def _locate(self, basepath: Path) -> Path | None:
        directory = basepath / self._database_dir
        for filename in DATABASE_FILES:
            candidate = directory / filename
            if candidate.is_file():
                return candidate
        return None


def find_database(
    layers: Sequence["Layer"],
    extractor: DatabaseExtractor | None = None,
) -> tuple[int, list[PackageRecord]]:
    """Find the oldest layer holding a package database.

    Args:
        layers: Image layers, oldest first
        extractor: Extractor to use (defaults to ``var/lib/rpm``)

    Returns:
        Index of the database layer and its packages

    Raises:
        DatabaseNotFoundError: If no layer holds a database
        DatabaseCorruptError: If a database file is present but unreadable
        LayerReadError: If a layer archive is malformed
    """
    extractor = extractor or DatabaseExtractor()
    for index, layer in enumerate(layers):
        lookup = extractor.extract(layer)
        if lookup.status == LookupStatus.FOUND:
            logger.info("layer %s contained the rpmdb (%s)", layer.digest, lookup.database_path)
            return index, lookup.packages
        if lookup.status == LookupStatus.CORRUPT:
            raise DatabaseCorruptError(layer.digest, lookup.reason or "unknown error")
        if lookup.status == LookupStatus.READ_ERROR:
            raise LayerReadError(layer.digest, lookup.reason or "unknown error")
        logger.debug("layer %s has no rpmdb", layer.digest)

    raise DatabaseNotFoundError(len(layers))
