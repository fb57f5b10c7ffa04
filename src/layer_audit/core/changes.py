"""Per-layer change-set extraction."""

from __future__ import annotations

import posixpath
import tarfile
import zlib
from typing import TYPE_CHECKING

from layer_audit.core.paths import join, normalize
from layer_audit.models.audit import ChangeSet
from layer_audit.utils.errors import LayerReadError
from layer_audit.utils.logging import get_logger

if TYPE_CHECKING:
    from layer_audit.registry.base import Layer

logger = get_logger(__name__)

WHITEOUT_PREFIX = ".wh."
OPAQUE_WHITEOUT = ".wh..wh..opq"


def touched_path(member: tarfile.TarInfo) -> str | None:
    """Return the path an archive entry touches, or None if it is ignored.

    Regular files report their own path. Whiteouts (regular files or
    directories whose name starts with ``.wh.``) report the deleted path, and
    the opaque marker reports the directory it hides. Symbolic links report
    the path they point at, resolved against the link's directory when
    relative. This is stricter than reporting the raw link target: a relative
    link ``usr/lib/lib.so -> lib.so.1`` reports ``usr/lib/lib.so.1`` rather
    than ``lib.so.1``. Every other entry kind is ignored.
    """
    name = normalize(member.name)
    dirname, basename = posixpath.split(name)

    if member.issym():
        target = member.linkname
        if not target.startswith("/"):
            target = posixpath.join(dirname, target)
        return normalize(target)

    if not (member.isreg() or member.isdir()):
        return None

    if basename == OPAQUE_WHITEOUT:
        return normalize(dirname)

    if basename.startswith(WHITEOUT_PREFIX):
        return join(dirname, basename[len(WHITEOUT_PREFIX):])

    if member.isreg():
        return name

    # plain directories are not evidence of a change
    return None


def generate_changes(layer: "Layer") -> ChangeSet:
    """Compute the paths touched by ``layer``.

    Args:
        layer: Layer to inspect (never the database-bearing one)

    Returns:
        ChangeSet with paths in archive order

    Raises:
        LayerReadError: If the layer archive is malformed or unreadable
    """
    paths: list[str] = []
    try:
        with layer.open_uncompressed() as stream:
            with tarfile.open(fileobj=stream, mode="r|") as tar:
                for member in tar:
                    path = touched_path(member)
                    if path is not None:
                        paths.append(path)
    except (tarfile.TarError, OSError, EOFError, zlib.error) as e:
        raise LayerReadError(layer.digest, str(e)) from e

    logger.debug("layer %s touches %d paths", layer.digest, len(paths))
    return ChangeSet(digest=layer.digest, paths=paths)
