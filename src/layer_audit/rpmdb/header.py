"""Decoder for RPM header blobs as stored in the package database.

A stored header has no lead or magic. It starts with two big-endian 32-bit
counts, the number of index entries and the size of the data store, followed
by the 16-byte index entries and then the data store they point into.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum

from layer_audit.models.packages import InstalledFile, PackageRecord
from layer_audit.rpmdb.errors import RpmDatabaseError

INDEX_ENTRY_SIZE = 16
PREAMBLE_SIZE = 8
MAX_INDEX_ENTRIES = 0xFFFF
MAX_DATA_SIZE = 256 * 1024 * 1024


class TagType(IntEnum):
    NULL = 0
    CHAR = 1
    INT8 = 2
    INT16 = 3
    INT32 = 4
    INT64 = 5
    STRING = 6
    BIN = 7
    STRING_ARRAY = 8
    I18NSTRING = 9


class Tag(IntEnum):
    HEADERIMMUTABLE = 63
    NAME = 1000
    VERSION = 1001
    RELEASE = 1002
    EPOCH = 1003
    ARCH = 1022
    OLDFILENAMES = 1027
    FILEFLAGS = 1037
    DIRINDEXES = 1116
    BASENAMES = 1117
    DIRNAMES = 1118


@dataclass(frozen=True)
class IndexEntry:
    tag: int
    type: int
    offset: int
    count: int


class RpmHeader:
    """A parsed header: index entries keyed by tag plus the data store."""

    def __init__(self, entries: dict[int, IndexEntry], store: bytes) -> None:
        self._entries = entries
        self._store = store

    @classmethod
    def parse(cls, blob: bytes) -> "RpmHeader":
        """Parse a stored header blob.

        Raises:
            RpmDatabaseError: If the blob is truncated or inconsistent
        """
        if len(blob) < PREAMBLE_SIZE:
            raise RpmDatabaseError(f"header blob too short ({len(blob)} bytes)")

        index_count, data_size = struct.unpack_from(">II", blob, 0)
        if index_count < 1 or index_count > MAX_INDEX_ENTRIES:
            raise RpmDatabaseError(f"invalid header index count {index_count}")
        if data_size > MAX_DATA_SIZE:
            raise RpmDatabaseError(f"invalid header data size {data_size}")

        store_start = PREAMBLE_SIZE + index_count * INDEX_ENTRY_SIZE
        if len(blob) < store_start + data_size:
            raise RpmDatabaseError("header blob truncated")
        store = blob[store_start:store_start + data_size]

        entries: dict[int, IndexEntry] = {}
        for i in range(index_count):
            tag, tag_type, offset, count = struct.unpack_from(
                ">IIiI", blob, PREAMBLE_SIZE + i * INDEX_ENTRY_SIZE
            )
            if offset < 0 or offset > data_size:
                raise RpmDatabaseError(f"tag {tag} points outside the data store")
            # first occurrence wins
            entries.setdefault(tag, IndexEntry(tag, tag_type, offset, count))
        return cls(entries, store)

    def __contains__(self, tag: int) -> bool:
        return tag in self._entries

    def _entry(self, tag: int, *types: TagType) -> IndexEntry | None:
        entry = self._entries.get(tag)
        if entry is None:
            return None
        if entry.type not in types:
            raise RpmDatabaseError(f"tag {tag} has unexpected type {entry.type}")
        return entry

    def _cstrings(self, offset: int, count: int) -> list[str]:
        values = []
        for _ in range(count):
            end = self._store.find(b"\0", offset)
            if end < 0:
                raise RpmDatabaseError("unterminated string in header data store")
            values.append(self._store[offset:end].decode("utf-8", errors="surrogateescape"))
            offset = end + 1
        return values

    def string(self, tag: int) -> str | None:
        entry = self._entry(tag, TagType.STRING, TagType.I18NSTRING, TagType.STRING_ARRAY)
        if entry is None:
            return None
        values = self._cstrings(entry.offset, 1)
        return values[0]

    def strings(self, tag: int) -> list[str]:
        entry = self._entry(tag, TagType.STRING_ARRAY, TagType.I18NSTRING, TagType.STRING)
        if entry is None:
            return []
        return self._cstrings(entry.offset, entry.count)

    def int32s(self, tag: int) -> list[int]:
        entry = self._entry(tag, TagType.INT32)
        if entry is None:
            return []
        end = entry.offset + 4 * entry.count
        if end > len(self._store):
            raise RpmDatabaseError(f"tag {tag} overruns the data store")
        return list(struct.unpack_from(f">{entry.count}I", self._store, entry.offset))

    def file_paths(self) -> list[str]:
        """Installed file paths, from the compressed file list when present."""
        basenames = self.strings(Tag.BASENAMES)
        if not basenames:
            return self.strings(Tag.OLDFILENAMES)

        dirnames = self.strings(Tag.DIRNAMES)
        dirindexes = self.int32s(Tag.DIRINDEXES)
        if len(dirindexes) != len(basenames):
            raise RpmDatabaseError(
                f"{len(basenames)} base names but {len(dirindexes)} directory indexes"
            )

        paths = []
        for basename, index in zip(basenames, dirindexes):
            if index >= len(dirnames):
                raise RpmDatabaseError(f"directory index {index} out of range")
            paths.append(dirnames[index] + basename)
        return paths

    def to_package(self) -> PackageRecord:
        """Build a PackageRecord from the header tags."""
        name = self.string(Tag.NAME)
        if not name:
            raise RpmDatabaseError("package header has no name")

        paths = self.file_paths()
        flags = self.int32s(Tag.FILEFLAGS)
        if not flags:
            flags = [0] * len(paths)
        elif len(flags) != len(paths):
            raise RpmDatabaseError(f"{name}: {len(paths)} files but {len(flags)} file flags")

        epochs = self.int32s(Tag.EPOCH)
        return PackageRecord(
            name=name,
            version=self.string(Tag.VERSION) or "",
            release=self.string(Tag.RELEASE) or "",
            epoch=epochs[0] if epochs else None,
            arch=self.string(Tag.ARCH),
            files=[InstalledFile(path=p, flags=f) for p, f in zip(paths, flags)],
        )


def parse_package(blob: bytes) -> PackageRecord:
    """Decode one stored header blob into a PackageRecord."""
    return RpmHeader.parse(blob).to_package()
