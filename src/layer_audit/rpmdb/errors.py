"""Errors raised while reading an RPM database."""


class RpmDatabaseError(Exception):
    """The database file exists but cannot be decoded."""

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path
