"""Package database records."""

from enum import IntFlag

from pydantic import BaseModel, Field


class FileFlag(IntFlag):
    """RPM file attribute flags (``RPMFILE_*``)."""

    NONE = 0
    CONFIG = 1 << 0
    DOC = 1 << 1
    ICON = 1 << 2
    MISSINGOK = 1 << 3
    NOREPLACE = 1 << 4
    SPECFILE = 1 << 5
    GHOST = 1 << 6
    LICENSE = 1 << 7
    README = 1 << 8
    UNPATCHED = 1 << 9
    PUBKEY = 1 << 11
    ARTIFACT = 1 << 12


# Files carrying any of these flags are expected to change after installation.
EXEMPT_FLAGS = FileFlag.CONFIG | FileFlag.DOC | FileFlag.LICENSE | FileFlag.MISSINGOK | FileFlag.README


class InstalledFile(BaseModel):
    """A file written by package installation."""

    model_config = {"frozen": True}

    path: str = Field(description="Absolute path as recorded in the database")
    flags: int = Field(default=0, description="Raw RPM file attribute flags")

    @property
    def file_flags(self) -> FileFlag:
        """The attribute flags as a FileFlag set."""
        return FileFlag(self.flags)

    @property
    def exempt(self) -> bool:
        """Whether the file is expected to be user or deployment modifiable."""
        return bool(self.flags & EXEMPT_FLAGS)


class PackageRecord(BaseModel):
    """An installed package and the files it claims."""

    model_config = {"frozen": True}

    name: str = Field(description="Package name")
    version: str = Field(description="Package version")
    release: str = Field(description="Package release")
    epoch: int | None = Field(default=None, description="Package epoch")
    arch: str | None = Field(default=None, description="Package architecture")
    files: list[InstalledFile] = Field(default_factory=list, description="Installed files")

    @property
    def nvr(self) -> str:
        """The ``name-version-release`` identifier used as baseline owner."""
        return f"{self.name}-{self.version}-{self.release}"

    def installed_files(self) -> list[InstalledFile]:
        """Files installed by this package, in database order."""
        return list(self.files)
