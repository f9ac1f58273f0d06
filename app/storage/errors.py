# app/storage/errors.py
"""
Error kinds raised by storage providers.

StorageNotConfigured is a soft condition: callers skip work instead of
failing the run. Every other error is a StorageError and is never swallowed
by a provider.
"""


class StorageNotConfigured(Exception):
    """The provider has no usable target or credentials."""


class StorageError(Exception):
    """The remote store rejected or failed an operation."""

    def __init__(self, message: str, key: str | None = None):
        super().__init__(message)
        self.key = key


class ObjectNotFound(StorageError):
    """No object exists under the requested key."""


class RestoreInProgress(StorageError):
    """
    The object sits in an asynchronous-retrieval class and is being restored.

    Retryable: the same read succeeds once the restore completes.
    """
