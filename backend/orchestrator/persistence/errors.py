"""
Errors raised by the job stores.

Every store failure surfaces as a PersistenceError so callers (the service
and the HTTP adapter) handle storage problems in one place. Nothing here is
retried automatically.
"""


class PersistenceError(Exception):
    """Base exception for job store reads and writes."""

    pass


class LoadError(PersistenceError):
    """A store file exists but could not be read from disk."""

    pass


class CorruptStoreError(LoadError):
    """
    A store file exists and is non-empty but is not a valid job collection.

    Covers undecodable bytes, invalid JSON, a non-array document, invalid
    records and duplicate ids. A missing file is an empty collection instead.
    The file is never overwritten automatically.
    """

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Store file {path} is unreadable: {reason}")


class SaveError(PersistenceError):
    """The collection could not be serialized or atomically written."""

    pass
