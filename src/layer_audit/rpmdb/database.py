"""Opening an RPM package database."""

from __future__ import annotations

from pathlib import Path

from layer_audit.models.packages import PackageRecord
from layer_audit.rpmdb.bdb import BerkeleyDBBackend
from layer_audit.rpmdb.errors import RpmDatabaseError
from layer_audit.rpmdb.header import parse_package
from layer_audit.rpmdb.sqlite import SQLITE_MAGIC, SqliteBackend


class RpmDatabase:
    """An opened package database.

    Example:
        db = open_database(Path("var/lib/rpm/rpmdb.sqlite"))
        for package in db.list_packages():
            print(package.nvr, len(package.files))
    """

    def __init__(self, path: Path, backend: SqliteBackend | BerkeleyDBBackend) -> None:
        self._path = path
        self._backend = backend

    @property
    def path(self) -> Path:
        return self._path

    @property
    def format(self) -> str:
        return "sqlite" if isinstance(self._backend, SqliteBackend) else "bdb"

    def list_packages(self) -> list[PackageRecord]:
        """Decode every stored header, in storage order.

        Raises:
            RpmDatabaseError: If any header cannot be decoded
        """
        packages = []
        for blob in self._backend.blobs():
            try:
                packages.append(parse_package(blob))
            except RpmDatabaseError as e:
                raise RpmDatabaseError(f"could not list packages: {e}", path=str(self._path)) from e
        return packages


def open_database(path: Path | str) -> RpmDatabase:
    """Open ``path`` as an sqlite or Berkeley DB package database.

    Raises:
        RpmDatabaseError: If the file cannot be opened as either format
    """
    path = Path(path)
    try:
        with open(path, "rb") as f:
            magic = f.read(len(SQLITE_MAGIC))
    except OSError as e:
        raise RpmDatabaseError(f"could not open rpm db: {e}", path=str(path)) from e

    if magic == SQLITE_MAGIC:
        return RpmDatabase(path, SqliteBackend(path))
    return RpmDatabase(path, BerkeleyDBBackend(path))
