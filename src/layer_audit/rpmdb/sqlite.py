"""Backend for ``rpmdb.sqlite`` databases."""

from __future__ import annotations

import sqlite3
from contextlib import closing
from pathlib import Path

from layer_audit.rpmdb.errors import RpmDatabaseError

SQLITE_MAGIC = b"SQLite format 3\x00"


class SqliteBackend:
    """Reads header blobs from the ``Packages`` table, ordered by ``hnum``."""

    def __init__(self, path: Path) -> None:
        self._path = path

    def blobs(self) -> list[bytes]:
        try:
            with closing(sqlite3.connect(str(self._path))) as conn:
                rows = conn.execute("SELECT blob FROM Packages ORDER BY hnum").fetchall()
        except sqlite3.Error as e:
            raise RpmDatabaseError(f"could not list packages: {e}", path=str(self._path)) from e

        blobs = []
        for (blob,) in rows:
            if not isinstance(blob, bytes):
                raise RpmDatabaseError("Packages row without a header blob", path=str(self._path))
            blobs.append(blob)
        return blobs
