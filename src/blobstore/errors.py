"""Errors raised by blob storage operations.

Every backend failure surfaces as one of these types so callers can
branch on the kind of failure without inspecting SDK exceptions. The
original SDK exception is always chained as ``__cause__``.
"""


class StorageError(Exception):
    """Base class for all blob storage errors."""

    def __init__(self, message: str, key: str | None = None) -> None:
        super().__init__(message)
        self.key = key


class NotFound(StorageError):
    """No object exists at the derived key."""


class InvalidRange(StorageError, ValueError):
    """The requested byte range is not satisfiable."""


class UnsupportedAlgorithm(StorageError, ValueError):
    """The requested digest algorithm is not available."""

    def __init__(self, algorithm: str) -> None:
        super().__init__(f'Unsupported checksum algorithm: {algorithm}')
        self.algorithm = algorithm


class BackendUnavailable(StorageError):
    """The backend could not be reached or did not answer in time."""


class BackendRejected(StorageError):
    """The backend answered with an error other than not-found."""

    def __init__(
        self,
        message: str,
        key: str | None = None,
        code: str | None = None,
    ) -> None:
        super().__init__(message, key)
        self.code = code


class StreamReadError(StorageError):
    """Producing the input chunks for an upload failed."""
