"""
Typed errors raised by blob storage providers.

Providers never let raw SDK exceptions escape. Every failure is converted
into a StorageError carrying one of a fixed set of error codes, so callers
can branch on the kind of failure without knowing which cloud is behind
the provider.
"""

from enum import Enum
from typing import Optional


class ErrorCode(Enum):
    """Kinds of storage failure callers can branch on."""
    CONNECTION_FAILED = "connection_failed"  # Reachability / health check failures
    OTHER = "other"  # Wrapped backend errors


class StorageError(Exception):
    """
    Raised when a storage operation fails.

    `not_found` is set when the backend reported a missing key or
    container using its own native identifier (NoSuchKey, 404,
    ResourceNotFoundError). It is not an error code of its own: a
    missing blob is an OTHER error that callers may choose to treat
    as an empty state.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        not_found: bool = False,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.not_found = not_found

    def __repr__(self) -> str:
        return f"StorageError(code={self.code.name}, message={self.message!r}, not_found={self.not_found})"


class StorageConfigurationError(ValueError):
    """Raised at startup when storage configuration is missing or invalid."""
    pass


def wrap_error(
    error: Exception,
    operation: str,
    backend: str,
    not_found: bool = False,
    code: Optional[ErrorCode] = None,
) -> StorageError:
    """
    Wrap a backend exception with an operation label.

    Produces messages like "S3 upload failed: <original message>".
    The original exception should be chained by the caller with
    `raise wrap_error(e, ...) from e`.
    """
    return StorageError(
        code or ErrorCode.OTHER,
        f"{backend} {operation} failed: {str(error) or 'Unknown error'}",
        not_found=not_found,
    )
