"""Image references and registry descriptors."""

from pydantic import BaseModel, Field


class ImageReference(BaseModel):
    """A parsed ``[registry/]repository[:tag][@digest]`` reference."""

    model_config = {"frozen": True}

    registry: str | None = Field(default=None, description="Registry host, None for Docker Hub")
    repository: str = Field(description="Repository path inside the registry")
    tag: str | None = Field(default=None)
    digest: str | None = Field(default=None)

    @classmethod
    def parse(cls, reference: str) -> "ImageReference":
        """Split a reference the way the Docker CLI does.

        The first path component is a registry host only when it looks like
        one (contains ``.`` or ``:``, or is ``localhost``), so
        ``localhost:5000/app:1.0`` keeps its port out of the tag.
        """
        name, _, digest = reference.partition("@")

        tag = None
        if ":" in name.rsplit("/", 1)[-1]:
            name, tag = name.rsplit(":", 1)

        registry = None
        host, sep, rest = name.partition("/")
        if sep and ("." in host or ":" in host or host == "localhost"):
            registry, name = host, rest

        return cls(registry=registry, repository=name, tag=tag, digest=digest or None)

    @property
    def manifest_ref(self) -> str:
        """Digest if pinned, else tag, else ``latest``."""
        return self.digest or self.tag or "latest"


class ImageDigest(BaseModel):
    """Content digest of a manifest or blob."""

    model_config = {"frozen": True}

    algorithm: str = Field(default="sha256", description="Hash algorithm")
    hash: str = Field(description="Hex digest")

    def __str__(self) -> str:
        return f"{self.algorithm}:{self.hash}"

    @classmethod
    def from_string(cls, digest: str) -> "ImageDigest":
        algorithm, sep, value = digest.partition(":")
        return cls(algorithm=algorithm, hash=value) if sep else cls(hash=digest)


class LayerInfo(BaseModel):
    """Descriptor of a layer blob as listed in a manifest."""

    model_config = {"frozen": True}

    digest: ImageDigest
    size: int = Field(default=0, description="Blob size in bytes")
    media_type: str = Field(default="")


class ImageManifest(BaseModel):
    """A resolved single-platform image manifest."""

    model_config = {"frozen": True}

    schema_version: int = Field(default=2)
    media_type: str = Field(description="Manifest media type")
    digest: ImageDigest | None = Field(default=None, description="Digest reported by the registry")
    config_digest: ImageDigest | None = Field(default=None)
    layers: list[LayerInfo] = Field(default_factory=list, description="Image layers, oldest first")
