# Overview: Exception taxonomy shared by every storage backend.

from __future__ import annotations


class StorageError(Exception):
    """Base class for storage-layer failures."""


class AuthenticationError(StorageError):
    """No credential, or the server rejected it. Never degraded."""


class TranslationError(StorageError):
    """A query could not be translated for the selected backend."""


class UnsupportedQueryError(TranslationError):
    """The statement falls outside the dialect every backend can express."""


class PlaceholderMismatchError(TranslationError):
    def __init__(self, placeholders: int, params: int):
        super().__init__(
            f"parameter count mismatch: {placeholders} placeholders, {params} params"
        )
        self.placeholders = placeholders
        self.params = params


class BackendError(StorageError):
    """The backend failed or rejected a well-formed call."""

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class TransientBackendError(BackendError):
    """Network failure or timeout. Reads degrade to empty results, writes raise."""


class BackendTimeout(TransientBackendError):
    """Gateway/request timeout (HTTP 408/504 or client-side timeout)."""


class IntegrityViolation(BackendError):
    """
    Constraint failure (FK restrict, unique collision).

    str() is a generic user-facing message; the backend's own text is kept
    in `detail`.
    """

    user_message = "The record could not be saved because it conflicts with existing data."

    def __init__(self, detail: str | None = None, *, status_code: int | None = None):
        super().__init__(self.user_message, status_code=status_code)
        self.detail = detail


class SnapshotUnavailable(StorageError):
    """A snapshot target could not be read or written."""
