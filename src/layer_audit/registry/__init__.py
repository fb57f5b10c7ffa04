"""Image sources: OCI registries, image tarballs and the Docker daemon."""

from layer_audit.registry.archive import ArchiveLayer, ArchiveLoader
from layer_audit.registry.base import (
    Layer,
    Registry,
    RegistryAuth,
    RegistryAuthError,
    RegistryError,
    RegistryNotFoundError,
)
from layer_audit.registry.docker import DockerRegistry
from layer_audit.registry.oci import OCIRegistry

__all__ = [
    "ArchiveLayer",
    "ArchiveLoader",
    "DockerRegistry",
    "Layer",
    "OCIRegistry",
    "Registry",
    "RegistryAuth",
    "RegistryAuthError",
    "RegistryError",
    "RegistryNotFoundError",
]
