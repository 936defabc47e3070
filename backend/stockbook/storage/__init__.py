# Overview: Public surface of the storage layer: one prepare(sql).run/get/all contract over every backend.

from .base import BackendKind, Credentials, PreparedStatement, RunResult, StorageBackend
from .document import RemoteDocumentBackend
from .embedded import EmbeddedBackend
from .errors import (
    AuthenticationError,
    BackendError,
    BackendTimeout,
    IntegrityViolation,
    PlaceholderMismatchError,
    SnapshotUnavailable,
    StorageError,
    TransientBackendError,
    TranslationError,
    UnsupportedQueryError,
)
from .hybrid import HybridBackend
from .keys import KeyedIndex, canonical_key
from .relational import RemoteRelationalBackend
from .selector import StorageSettings, create_backend, resolve_backend_kind
from .snapshots import BlobSnapshotStore, FileSnapshotStore, ReadOnlySnapshotStore

__all__ = [
    "AuthenticationError",
    "BackendError",
    "BackendKind",
    "BackendTimeout",
    "BlobSnapshotStore",
    "Credentials",
    "EmbeddedBackend",
    "FileSnapshotStore",
    "HybridBackend",
    "IntegrityViolation",
    "KeyedIndex",
    "PlaceholderMismatchError",
    "PreparedStatement",
    "ReadOnlySnapshotStore",
    "RemoteDocumentBackend",
    "RemoteRelationalBackend",
    "RunResult",
    "SnapshotUnavailable",
    "StorageBackend",
    "StorageError",
    "StorageSettings",
    "TransientBackendError",
    "TranslationError",
    "UnsupportedQueryError",
    "canonical_key",
    "create_backend",
    "resolve_backend_kind",
]
