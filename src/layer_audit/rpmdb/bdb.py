"""Backend for Berkeley DB hash ``Packages`` databases.

Only what rpm writes is supported: a hash database whose values are header
blobs, stored either inline on the hash page or on a chain of overflow pages.
"""

from __future__ import annotations

import struct
from pathlib import Path

from layer_audit.rpmdb.errors import RpmDatabaseError

HASH_MAGIC = 0x061561
METADATA_SIZE = 512
PAGE_HEADER_SIZE = 26

# page types
HASH_UNSORTED_PAGE = 2
OVERFLOW_PAGE = 7
HASH_METADATA_PAGE = 8
HASH_PAGE = 13

# hash item types
H_KEYDATA = 1
H_OFFPAGE = 3


class BerkeleyDBBackend:
    """Reads header blobs from every hash page of the database, in page order."""

    def __init__(self, path: Path) -> None:
        self._path = path
        try:
            self._data = path.read_bytes()
        except OSError as e:
            raise RpmDatabaseError(f"could not open rpm db: {e}", path=str(path)) from e
        self._order, self._page_size, self._last_page = self._read_metadata()

    def _fail(self, message: str) -> RpmDatabaseError:
        return RpmDatabaseError(message, path=str(self._path))

    def _read_metadata(self) -> tuple[str, int, int]:
        if len(self._data) < METADATA_SIZE:
            raise self._fail("file too small for a Berkeley DB metadata page")

        for order in ("<", ">"):
            (magic,) = struct.unpack_from(f"{order}I", self._data, 12)
            if magic == HASH_MAGIC:
                break
        else:
            raise self._fail("not a Berkeley DB hash database")

        (page_size,) = struct.unpack_from(f"{order}I", self._data, 20)
        page_type = self._data[25]
        (last_page,) = struct.unpack_from(f"{order}I", self._data, 32)

        if page_type != HASH_METADATA_PAGE:
            raise self._fail(f"unexpected metadata page type {page_type}")
        if page_size < METADATA_SIZE or page_size & (page_size - 1):
            raise self._fail(f"invalid page size {page_size}")
        if (last_page + 1) * page_size > len(self._data):
            raise self._fail("database truncated")
        return order, page_size, last_page

    def _page(self, number: int) -> bytes:
        if number > self._last_page:
            raise self._fail(f"page {number} beyond last page {self._last_page}")
        start = number * self._page_size
        return self._data[start:start + self._page_size]

    def _header(self, page: bytes) -> tuple[int, int, int, int]:
        """Return (next page, entries, free area offset, page type)."""
        next_page, entries, hf_offset = struct.unpack_from(f"{self._order}IHH", page, 16)
        return next_page, entries, hf_offset, page[25]

    def _overflow_value(self, first_page: int, length: int) -> bytes:
        chunks = []
        remaining = length
        page_number = first_page
        seen: set[int] = set()
        while page_number and remaining > 0:
            if page_number in seen:
                raise self._fail(f"overflow chain loops at page {page_number}")
            seen.add(page_number)

            page = self._page(page_number)
            next_page, _, used, page_type = self._header(page)
            if page_type != OVERFLOW_PAGE:
                raise self._fail(f"page {page_number} is not an overflow page")
            if next_page == 0:
                chunk = page[PAGE_HEADER_SIZE:PAGE_HEADER_SIZE + used]
            else:
                chunk = page[PAGE_HEADER_SIZE:]
            chunk = chunk[:remaining]
            chunks.append(chunk)
            remaining -= len(chunk)
            page_number = next_page

        if remaining:
            raise self._fail("overflow chain shorter than the stored value")
        return b"".join(chunks)

    def _page_values(self, page: bytes) -> list[bytes]:
        _, entries, _, _ = self._header(page)
        if entries % 2:
            raise self._fail("hash page holds an odd number of entries")
        if PAGE_HEADER_SIZE + 2 * entries > self._page_size:
            raise self._fail(f"hash page claims {entries} entries")

        offsets = struct.unpack_from(f"{self._order}{entries}H", page, PAGE_HEADER_SIZE)
        boundaries = sorted(set(offsets)) + [self._page_size]
        values = []
        # entries alternate key, value
        for offset in offsets[1::2]:
            if not PAGE_HEADER_SIZE <= offset < self._page_size:
                raise self._fail(f"hash item offset {offset} out of range")
            item_type = page[offset]
            if item_type == H_OFFPAGE:
                if offset + 12 > self._page_size:
                    raise self._fail(f"off-page item at {offset} truncated")
                page_number, length = struct.unpack_from(f"{self._order}II", page, offset + 4)
                values.append(self._overflow_value(page_number, length))
            elif item_type == H_KEYDATA:
                end = boundaries[boundaries.index(offset) + 1]
                values.append(page[offset + 1:end])
        return values

    def blobs(self) -> list[bytes]:
        blobs = []
        for number in range(1, self._last_page + 1):
            page = self._page(number)
            if page[25] not in (HASH_UNSORTED_PAGE, HASH_PAGE):
                continue
            blobs.extend(self._page_values(page))
        return blobs
