"""Shared test fixtures for layer-audit tests."""

import hashlib
import io
import json
import sqlite3
import struct
import tarfile
from pathlib import Path
from typing import Any

import pytest

from layer_audit.core.image import MemoryLayer
from layer_audit.models.packages import FileFlag, InstalledFile, PackageRecord
from layer_audit.rpmdb.header import Tag, TagType


def build_tar(members: list[tuple[Any, ...]]) -> bytes:
    """Build an uncompressed tar archive.

    Each member is ``(kind, name, *args)`` where kind is one of ``file``
    (optional data), ``dir``, ``symlink`` (target), ``hardlink`` (target)
    or ``fifo``.
    """
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w", format=tarfile.PAX_FORMAT) as tar:
        for kind, name, *args in members:
            info = tarfile.TarInfo(name)
            if kind == "file":
                data = args[0] if args else b""
                info.size = len(data)
                info.mode = 0o644
                tar.addfile(info, io.BytesIO(data))
                continue
            if kind == "dir":
                info.type = tarfile.DIRTYPE
                info.mode = 0o755
            elif kind == "symlink":
                info.type = tarfile.SYMTYPE
                info.linkname = args[0]
            elif kind == "hardlink":
                info.type = tarfile.LNKTYPE
                info.linkname = args[0]
            elif kind == "fifo":
                info.type = tarfile.FIFOTYPE
            else:
                raise ValueError(f"unknown member kind {kind}")
            tar.addfile(info)
    return buf.getvalue()


def build_header(package: PackageRecord, compressed: bool = True) -> bytes:
    """Encode a PackageRecord as a stored RPM header blob."""
    entries: list[tuple[int, int, int, int]] = []
    store = bytearray()

    def add(tag: int, tag_type: int, payload: bytes, count: int) -> None:
        if tag_type == TagType.INT32:
            store.extend(b"\0" * (-len(store) % 4))
        entries.append((tag, tag_type, len(store), count))
        store.extend(payload)

    def cstrings(values: list[str]) -> bytes:
        return b"".join(v.encode() + b"\0" for v in values)

    add(Tag.NAME, TagType.STRING, cstrings([package.name]), 1)
    add(Tag.VERSION, TagType.STRING, cstrings([package.version]), 1)
    add(Tag.RELEASE, TagType.STRING, cstrings([package.release]), 1)
    if package.epoch is not None:
        add(Tag.EPOCH, TagType.INT32, struct.pack(">I", package.epoch), 1)
    if package.arch:
        add(Tag.ARCH, TagType.STRING, cstrings([package.arch]), 1)

    if package.files:
        paths = [f.path for f in package.files]
        count = len(paths)
        if compressed:
            dirnames: list[str] = []
            dirindexes: list[int] = []
            basenames: list[str] = []
            for path in paths:
                dirname, basename = path.rsplit("/", 1)
                dirname += "/"
                if dirname not in dirnames:
                    dirnames.append(dirname)
                dirindexes.append(dirnames.index(dirname))
                basenames.append(basename)
            add(Tag.BASENAMES, TagType.STRING_ARRAY, cstrings(basenames), count)
            add(Tag.DIRNAMES, TagType.STRING_ARRAY, cstrings(dirnames), len(dirnames))
            add(Tag.DIRINDEXES, TagType.INT32, struct.pack(f">{count}I", *dirindexes), count)
        else:
            add(Tag.OLDFILENAMES, TagType.STRING_ARRAY, cstrings(paths), count)
        flags = [f.flags for f in package.files]
        add(Tag.FILEFLAGS, TagType.INT32, struct.pack(f">{count}I", *flags), count)

    index = b"".join(struct.pack(">IIiI", *entry) for entry in entries)
    return struct.pack(">II", len(entries), len(store)) + index + bytes(store)


def build_sqlite_rpmdb(path: Path, blobs: list[bytes]) -> bytes:
    """Write an ``rpmdb.sqlite`` holding ``blobs`` and return its bytes."""
    conn = sqlite3.connect(str(path))
    try:
        conn.execute(
            "CREATE TABLE Packages (hnum INTEGER PRIMARY KEY AUTOINCREMENT, blob BLOB NOT NULL)"
        )
        conn.executemany("INSERT INTO Packages (blob) VALUES (?)", [(b,) for b in blobs])
        conn.commit()
    finally:
        conn.close()
    return path.read_bytes()


def build_bdb(blobs: list[bytes], page_size: int = 4096, inline: bool = False) -> bytes:
    """Assemble a little-endian Berkeley DB hash file holding ``blobs``.

    Page 0 is the metadata page and page 1 the single hash page. Values are
    stored inline on the hash page, or on overflow chains starting at page 2.
    """
    header_size = 26
    overflow_pages: list[bytes] = []
    items: list[bytes] = []

    for hnum, blob in enumerate(blobs, start=1):
        items.append(b"\x01" + struct.pack("<I", hnum))
        if inline:
            items.append(b"\x01" + blob)
            continue

        first = 2 + len(overflow_pages)
        capacity = page_size - header_size
        chunks = [blob[i:i + capacity] for i in range(0, len(blob), capacity)]
        for n, chunk in enumerate(chunks):
            next_page = first + n + 1 if n + 1 < len(chunks) else 0
            page = bytearray(page_size)
            struct.pack_into("<IHH", page, 16, next_page, 1, len(chunk))
            page[25] = 7
            page[header_size:header_size + len(chunk)] = chunk
            overflow_pages.append(bytes(page))
        items.append(b"\x03\0\0\0" + struct.pack("<II", first, len(blob)))

    hash_page = bytearray(page_size)
    cursor = page_size
    offsets = []
    for item in items:
        cursor -= len(item)
        hash_page[cursor:cursor + len(item)] = item
        offsets.append(cursor)
    struct.pack_into(f"<{len(offsets)}H", hash_page, header_size, *offsets)
    struct.pack_into("<IHH", hash_page, 16, 0, len(offsets), cursor)
    hash_page[25] = 13

    last_page = 1 + len(overflow_pages)
    meta = bytearray(page_size)
    struct.pack_into("<I", meta, 12, 0x061561)
    struct.pack_into("<I", meta, 20, page_size)
    meta[25] = 8
    struct.pack_into("<I", meta, 32, last_page)

    return bytes(meta) + bytes(hash_page) + b"".join(overflow_pages)


@pytest.fixture
def make_tar():
    """Factory for in-memory tar archives."""
    return build_tar


@pytest.fixture
def make_header():
    """Factory for RPM header blobs."""
    return build_header


@pytest.fixture
def make_bdb():
    """Factory for Berkeley DB hash databases."""
    return build_bdb


@pytest.fixture
def make_sqlite_rpmdb(tmp_path: Path):
    """Factory for rpmdb.sqlite contents built from package records."""
    counter = iter(range(1000))

    def _make(packages: list[PackageRecord]) -> bytes:
        path = tmp_path / f"rpmdb-{next(counter)}.sqlite"
        return build_sqlite_rpmdb(path, [build_header(p) for p in packages])

    return _make


@pytest.fixture
def sample_packages() -> list[PackageRecord]:
    """Create a small installed package set."""
    return [
        PackageRecord(
            name="setup",
            version="2.13.7",
            release="8.el9",
            arch="noarch",
            files=[
                InstalledFile(path="/etc/passwd", flags=FileFlag.CONFIG | FileFlag.NOREPLACE),
                InstalledFile(path="/etc/hosts", flags=FileFlag.CONFIG | FileFlag.NOREPLACE),
                InstalledFile(path="/etc/os-release", flags=0),
                InstalledFile(path="/run", flags=0),
                InstalledFile(path="/var/log", flags=0),
            ],
        ),
        PackageRecord(
            name="bash",
            version="5.1.8",
            release="6.el9",
            arch="x86_64",
            files=[
                InstalledFile(path="/usr/bin/bash", flags=0),
                InstalledFile(path="/usr/bin/sh", flags=0),
                InstalledFile(path="/etc/skel/.bashrc", flags=FileFlag.CONFIG | FileFlag.NOREPLACE),
                InstalledFile(path="/usr/share/doc/bash/README", flags=FileFlag.DOC),
            ],
        ),
        PackageRecord(
            name="coreutils",
            version="8.32",
            release="34.el9",
            epoch=1,
            arch="x86_64",
            files=[
                InstalledFile(path="/usr/bin/ls", flags=0),
                InstalledFile(path="/usr/bin/cat", flags=0),
                InstalledFile(path="/usr/share/licenses/coreutils/COPYING", flags=FileFlag.LICENSE),
                InstalledFile(path="/usr/lib/.build-id", flags=FileFlag.MISSINGOK),
            ],
        ),
    ]


@pytest.fixture
def database_layer(make_tar, make_sqlite_rpmdb, sample_packages) -> MemoryLayer:
    """A base layer holding the installed files and an rpmdb.sqlite."""
    return MemoryLayer(
        make_tar(
            [
                ("dir", "etc"),
                ("file", "etc/os-release", b"ID=test\n"),
                ("file", "etc/passwd", b"root:x:0:0::/root:/bin/bash\n"),
                ("dir", "usr/bin"),
                ("file", "usr/bin/bash", b"\x7fELF"),
                ("symlink", "usr/bin/sh", "bash"),
                ("file", "usr/bin/ls", b"\x7fELF"),
                ("file", "usr/bin/cat", b"\x7fELF"),
                ("dir", "var/lib/rpm"),
                ("file", "var/lib/rpm/rpmdb.sqlite", make_sqlite_rpmdb(sample_packages)),
            ]
        ),
        digest="sha256:" + "0" * 64,
    )


@pytest.fixture
def write_image_archive(tmp_path: Path):
    """Factory writing a ``docker save`` style tarball from layer bytes."""

    def _write(layers: list[bytes], name: str = "image.tar", tag: str = "example.com/app:1.0") -> Path:
        diff_ids = []
        members = []
        for layer in layers:
            digest = "sha256:" + hashlib.sha256(layer).hexdigest()
            diff_ids.append(digest)
            members.append((f"{digest.split(':')[1]}/layer.tar", layer))

        config = json.dumps({"rootfs": {"type": "layers", "diff_ids": diff_ids}}).encode()
        manifest = json.dumps(
            [{"Config": "config.json", "RepoTags": [tag], "Layers": [m for m, _ in members]}]
        ).encode()

        path = tmp_path / name
        with tarfile.open(path, "w") as tar:
            for member, data in [("manifest.json", manifest), ("config.json", config), *members]:
                info = tarfile.TarInfo(member)
                info.size = len(data)
                tar.addfile(info, io.BytesIO(data))
        return path

    return _write
