# Overview: Where the embedded engine's snapshot blob lives (local file or keyed blob store).

from __future__ import annotations

import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import click
import httpx

from .errors import SnapshotUnavailable

logger = logging.getLogger(__name__)

APP_NAME = "stockbook"
SNAPSHOT_KEY = "stockbook.db"


def default_snapshot_path(data_dir: str | None = None) -> Path:
    """Snapshot file under the per-user application data directory."""
    base = Path(data_dir) if data_dir else Path(click.get_app_dir(APP_NAME))
    return base / SNAPSHOT_KEY


class SnapshotStore(ABC):
    """One opaque blob, read whole and written whole."""

    name = "snapshot"
    read_only = False

    @abstractmethod
    def load(self) -> Optional[bytes]:
        """Return the stored blob, None if nothing is stored yet. Raises SnapshotUnavailable."""

    @abstractmethod
    def save(self, data: bytes) -> None:
        """Replace the stored blob. Raises SnapshotUnavailable."""


class FileSnapshotStore(SnapshotStore):
    name = "file"

    def __init__(self, path: str | os.PathLike):
        self.path = Path(path)

    def load(self) -> Optional[bytes]:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            if not self.path.exists():
                return None
            return self.path.read_bytes()
        except OSError as exc:
            raise SnapshotUnavailable(f"cannot read snapshot file {self.path}: {exc}") from exc

    def save(self, data: bytes) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            # Write-then-rename so a crash mid-write never truncates the last good snapshot
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".snapshot-")
            try:
                with os.fdopen(fd, "wb") as fh:
                    fh.write(data)
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise SnapshotUnavailable(f"cannot write snapshot file {self.path}: {exc}") from exc

    def __repr__(self) -> str:
        return f"<FileSnapshotStore path={str(self.path)!r}>"


class ReadOnlySnapshotStore(SnapshotStore):
    """Loads through another store and refuses to write (inspection tools)."""

    name = "read-only"
    read_only = True

    def __init__(self, inner: SnapshotStore):
        self.inner = inner

    def load(self) -> Optional[bytes]:
        return self.inner.load()

    def save(self, data: bytes) -> None:
        raise SnapshotUnavailable(f"{self.inner!r} is opened read-only")

    def __repr__(self) -> str:
        return f"<ReadOnlySnapshotStore {self.inner!r}>"


class BlobSnapshotStore(SnapshotStore):
    """
    Keyed blob store reached over HTTP (hosted deployments).

    GET {base_url}/{key} returns the blob (404 when absent);
    PUT {base_url}/{key} replaces it. Requests carry a bearer token.
    """

    name = "blob"

    def __init__(
        self,
        base_url: str,
        *,
        token: str | None,
        key: str = SNAPSHOT_KEY,
        timeout: float = 20.0,
        client: httpx.Client | None = None,
    ):
        self.url = f"{base_url.rstrip('/')}/{key}"
        self.token = token
        self.timeout = timeout
        self._client = client

    def _headers(self) -> dict:
        if not self.token:
            raise SnapshotUnavailable("blob store token not configured")
        return {"Authorization": f"Bearer {self.token}"}

    def _request(self, method: str, **kwargs) -> httpx.Response:
        headers = self._headers()
        try:
            if self._client is not None:
                return self._client.request(method, self.url, headers=headers, timeout=self.timeout, **kwargs)
            with httpx.Client(timeout=self.timeout) as client:
                return client.request(method, self.url, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            raise SnapshotUnavailable(f"blob store unreachable: {exc}") from exc

    def load(self) -> Optional[bytes]:
        response = self._request("GET")
        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise SnapshotUnavailable(f"blob store load failed: HTTP {response.status_code}")
        return response.content

    def save(self, data: bytes) -> None:
        response = self._request("PUT", content=data)
        if response.status_code not in (200, 201, 204):
            raise SnapshotUnavailable(f"blob store save failed: HTTP {response.status_code}")

    def __repr__(self) -> str:
        return f"<BlobSnapshotStore url={self.url!r}>"


def resolve_snapshot_target(
    primary: SnapshotStore | None,
    alternate: SnapshotStore | None = None,
) -> tuple[SnapshotStore | None, Optional[bytes]]:
    """
    Pick the one persistence target for this process and load from it.

    Tries `primary`, then `alternate`. Returns (target, blob); target is
    None when neither is usable, meaning the engine runs in memory only.
    """
    for store in (primary, alternate):
        if store is None:
            continue
        try:
            data = store.load()
        except SnapshotUnavailable:
            logger.warning("Snapshot target %r unavailable, trying next", store, exc_info=True)
            continue
        logger.info("Using snapshot target %r (existing snapshot: %s)", store, data is not None)
        return store, data

    logger.warning("No snapshot target available; database will not be persisted")
    return None, None
