"""Canonical form of archive and database paths."""

import posixpath

ROOT = "/"


def normalize(path: str) -> str:
    """Clean ``path`` for comparison.

    Redundant separators and ``.``/``..`` segments are collapsed as if the
    path were rooted, then the leading separator is stripped. The root path
    itself is returned as-is. E.g. ``/foo/../baz`` -> ``baz``.
    """
    if path == ROOT:
        return path
    cleaned = posixpath.normpath(ROOT + path).lstrip(ROOT)
    return cleaned or ROOT


def join(dirname: str, basename: str) -> str:
    """Join two path components and normalize the result."""
    return normalize(posixpath.join(dirname, basename))


def is_within(path: str, directory: str) -> bool:
    """True if normalized ``path`` equals or lies under normalized ``directory``."""
    return path == directory or path.startswith(directory.rstrip(ROOT) + ROOT)
