"""
Errors raised while talking to object stores.

StorageError and ObjectNotFound are raised by the store clients. TransferError
is not raised: it records one failed object inside a MigrationReport.
"""
from dataclasses import dataclass


class StorageError(Exception):
    """A provider call failed (after retries for transient failures)"""

    def __init__(self, message, key=None):
        super().__init__(message)
        self.message = message
        self.key = key
        # Set by ObjectMigrator.migrate when listing fails mid-run
        self.report = None


class ObjectNotFound(StorageError):
    """The object does not exist in the store"""


class ConfigurationError(Exception):
    """Store configuration in the environment is missing or invalid"""

    def __init__(self, missing=None, invalid=None):
        self.missing = list(missing or [])
        self.invalid = list(invalid or [])
        parts = []
        if self.missing:
            parts.append(f"Missing required environment variables: {', '.join(self.missing)}")
        if self.invalid:
            parts.append(f"Invalid environment variables: {'; '.join(self.invalid)}")
        super().__init__('. '.join(parts) or 'Invalid storage configuration')


@dataclass(frozen=True)
class TransferError:
    key: str
    message: str
    error_type: str = 'StorageError'

    @classmethod
    def from_exception(cls, key, exc):
        return cls(key=key, message=str(exc) or repr(exc), error_type=type(exc).__name__)

    def as_dict(self):
        return {'key': self.key, 'error': self.message, 'type': self.error_type}
