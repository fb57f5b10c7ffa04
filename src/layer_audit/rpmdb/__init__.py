"""Reader for RPM package databases (sqlite and Berkeley DB)."""

from layer_audit.rpmdb.database import RpmDatabase, open_database
from layer_audit.rpmdb.errors import RpmDatabaseError
from layer_audit.rpmdb.header import RpmHeader, Tag, TagType, parse_package

__all__ = [
    "RpmDatabase",
    "RpmDatabaseError",
    "RpmHeader",
    "Tag",
    "TagType",
    "open_database",
    "parse_package",
]
