# Overview: Resolves which backend kind this process uses and builds it (unopened).

"""
Backend selection.

The decision is made once, from explicit settings, by resolve_backend_kind().
Everything downstream depends only on the resulting BackendKind; nothing
inspects the environment again after StorageSettings.from_env().

Policy:
- STOCKBOOK_BACKEND set -> that kind, no further checks.
- desktop runtime -> HYBRID (document sync when STOCKBOOK_MONGODB_SYNC,
  otherwise the embedded file-backed database).
- web runtime -> DOCUMENT if USE_MONGODB, RELATIONAL if USE_POSTGRES,
  otherwise LOCAL persisted to the blob store, with the local file as the
  alternate target.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping

from .base import BackendKind, Credentials, StorageBackend
from .document import RemoteDocumentBackend
from .embedded import EmbeddedBackend
from .hybrid import HybridBackend
from .relational import RemoteRelationalBackend
from .scheduler import DEFAULT_AUTOSAVE_SECONDS
from .snapshots import BlobSnapshotStore, FileSnapshotStore, SnapshotStore, default_snapshot_path

DESKTOP = "desktop"
WEB = "web"
DEFAULT_API_URL = "http://127.0.0.1:5000"

_TRUE = {"1", "true", "yes", "on"}


def _flag(env: Mapping[str, str], name: str) -> bool:
    return env.get(name, "").strip().lower() in _TRUE


@dataclass(frozen=True)
class StorageSettings:
    backend: BackendKind | None = None
    runtime: str = WEB
    use_postgres: bool = False
    use_mongodb: bool = False
    mongodb_sync: bool = False
    api_url: str = DEFAULT_API_URL
    data_dir: str | None = None
    blob_url: str | None = None
    blob_token: str | None = field(default=None, repr=False)
    autosave_seconds: float | None = DEFAULT_AUTOSAVE_SECONDS
    credentials: Credentials | None = field(default=None, repr=False)

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "StorageSettings":
        env = os.environ if env is None else env

        backend = env.get("STOCKBOOK_BACKEND", "").strip().lower() or None
        runtime = env.get("STOCKBOOK_RUNTIME", WEB).strip().lower()
        if runtime not in (DESKTOP, WEB):
            raise ValueError(f"STOCKBOOK_RUNTIME must be '{DESKTOP}' or '{WEB}', got {runtime!r}")

        autosave = env.get("STOCKBOOK_AUTOSAVE_SECONDS", "").strip()
        if autosave:
            autosave_seconds = float(autosave) if float(autosave) > 0 else None
        else:
            autosave_seconds = DEFAULT_AUTOSAVE_SECONDS

        username = env.get("STOCKBOOK_ADMIN_USERNAME")
        password = env.get("STOCKBOOK_ADMIN_PASSWORD")
        credentials = Credentials(username, password) if username and password else None

        return cls(
            backend=BackendKind(backend) if backend else None,
            runtime=runtime,
            use_postgres=_flag(env, "STOCKBOOK_USE_POSTGRES"),
            use_mongodb=_flag(env, "STOCKBOOK_USE_MONGODB"),
            mongodb_sync=_flag(env, "STOCKBOOK_MONGODB_SYNC"),
            api_url=env.get("STOCKBOOK_API_URL") or DEFAULT_API_URL,
            data_dir=env.get("STOCKBOOK_DATA_DIR") or None,
            blob_url=env.get("STOCKBOOK_BLOB_URL") or None,
            blob_token=env.get("STOCKBOOK_BLOB_TOKEN") or None,
            autosave_seconds=autosave_seconds,
            credentials=credentials,
        )


def resolve_backend_kind(settings: StorageSettings) -> BackendKind:
    if settings.backend is not None:
        return settings.backend
    if settings.runtime == DESKTOP:
        return BackendKind.HYBRID
    if settings.use_mongodb:
        return BackendKind.DOCUMENT
    if settings.use_postgres:
        return BackendKind.RELATIONAL
    return BackendKind.LOCAL


def _snapshot_stores(settings: StorageSettings) -> tuple[SnapshotStore, SnapshotStore | None]:
    """(primary, alternate): the blob store leads on web, the local file on desktop."""
    file_store = FileSnapshotStore(default_snapshot_path(settings.data_dir))
    if not settings.blob_url:
        return file_store, None
    blob_store = BlobSnapshotStore(settings.blob_url, token=settings.blob_token)
    if settings.runtime == WEB:
        return blob_store, file_store
    return file_store, blob_store


def create_backend(settings: StorageSettings, kind: BackendKind | None = None, **remote_kwargs) -> StorageBackend:
    """
    Build the backend for `kind` (default: the policy decision). Not opened.

    remote_kwargs (timeout, client) are passed to the remote backends.
    """
    kind = kind or resolve_backend_kind(settings)

    def local() -> EmbeddedBackend:
        primary, alternate = _snapshot_stores(settings)
        return EmbeddedBackend(primary, alternate, autosave_interval=settings.autosave_seconds)

    def relational() -> RemoteRelationalBackend:
        return RemoteRelationalBackend.for_base_url(settings.api_url, settings.credentials, **remote_kwargs)

    def document() -> RemoteDocumentBackend:
        return RemoteDocumentBackend.for_base_url(settings.api_url, settings.credentials, **remote_kwargs)

    if kind == BackendKind.LOCAL:
        return local()
    if kind == BackendKind.RELATIONAL:
        return relational()
    if kind == BackendKind.DOCUMENT:
        return document()
    remote = relational if settings.use_postgres and not settings.mongodb_sync else document
    return HybridBackend(local, remote, use_remote=settings.mongodb_sync or settings.use_postgres)
