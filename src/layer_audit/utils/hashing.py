"""Digest helpers for layer blobs."""

import hashlib
from pathlib import Path
from typing import BinaryIO


def compute_hash(data: bytes, algorithm: str = "sha256") -> str:
    """Compute hash of bytes data.

    Args:
        data: Bytes to hash
        algorithm: Hash algorithm to use

    Returns:
        Hex digest of the hash
    """
    hasher = hashlib.new(algorithm)
    hasher.update(data)
    return hasher.hexdigest()


def hash_stream(stream: BinaryIO, algorithm: str = "sha256", chunk_size: int = 65536) -> str:
    """Compute hash of a readable binary stream, consuming it."""
    hasher = hashlib.new(algorithm)
    while chunk := stream.read(chunk_size):
        hasher.update(chunk)
    return hasher.hexdigest()


def hash_file(path: Path | str, algorithm: str = "sha256", chunk_size: int = 65536) -> str:
    """Compute hash of a file.

    Args:
        path: Path to the file
        algorithm: Hash algorithm to use
        chunk_size: Size of chunks to read

    Returns:
        Hex digest of the file hash
    """
    with open(path, "rb") as f:
        return hash_stream(f, algorithm, chunk_size)


def content_digest(data: bytes, algorithm: str = "sha256") -> str:
    """Return an OCI-style content identifier such as ``sha256:abc...``."""
    return f"{algorithm}:{compute_hash(data, algorithm)}"
