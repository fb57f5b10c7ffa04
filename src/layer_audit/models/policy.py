"""Baseline and exclusion policy models."""

from enum import Enum

from pydantic import BaseModel, Field


class BaselinePolicy(str, Enum):
    """Which installed files enter the baseline."""

    ALL = "all"
    FLAGS = "flags"


class ExclusionRule(str, Enum):
    """The rule that exempted a path from tamper reporting."""

    DIRECTORY = "directory"
    PATH = "path"


DEFAULT_EXCLUDED_DIRECTORIES = ["etc", "var", "run"]

# Directories appear with and without a trailing separator in archives.
DEFAULT_EXCLUDED_PATHS = [
    "etc/resolv.conf",
    "etc/hostname",
    "etc",
    "etc/",
    "run",
    "run/",
]


class ExclusionPolicy(BaseModel):
    """Static set of paths exempt from tamper reporting."""

    model_config = {"frozen": True}

    directories: list[str] = Field(
        default_factory=lambda: list(DEFAULT_EXCLUDED_DIRECTORIES),
        description="Directories whose contents (and themselves) are excluded",
    )
    paths: list[str] = Field(
        default_factory=lambda: list(DEFAULT_EXCLUDED_PATHS),
        description="Exact paths that are excluded",
    )
