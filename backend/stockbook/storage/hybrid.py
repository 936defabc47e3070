# Overview: Wrapper that prefers a remote backend and falls back to the embedded one.

from __future__ import annotations

import logging
from typing import Callable, Optional

from .base import BackendKind, RunResult, StorageBackend
from .errors import BackendError, StorageError

logger = logging.getLogger(__name__)


class HybridBackend(StorageBackend):
    """
    Exactly one inner backend is active at a time.

    open() tries the remote factory when `use_remote` is set and falls back
    to the local factory if the remote cannot be opened. Statements are
    delegated to whichever backend is active when they execute, so a
    statement prepared before switch_mode() follows the switch.
    """

    kind = BackendKind.HYBRID

    def __init__(
        self,
        local_factory: Callable[[], StorageBackend],
        remote_factory: Callable[[], StorageBackend] | None = None,
        use_remote: bool = False,
    ):
        self._local_factory = local_factory
        self._remote_factory = remote_factory
        self.use_remote = use_remote and remote_factory is not None
        self.active: StorageBackend | None = None

    @property
    def mode(self) -> str | None:
        if self.active is None:
            return None
        return "local" if self.active.kind == BackendKind.LOCAL else "remote"

    def open(self) -> "HybridBackend":
        if self.active is not None:
            return self

        if self.use_remote:
            remote = self._remote_factory()
            try:
                remote.open()
                remote.ping()
                self.active = remote
                logger.info("Hybrid storage using remote backend %r", remote)
                return self
            except StorageError:
                logger.warning("Remote backend unavailable, falling back to local", exc_info=True)
                remote.close()

        self.active = self._local_factory().open()
        logger.info("Hybrid storage using local backend %r", self.active)
        return self

    def close(self) -> None:
        if self.active is not None:
            self.active.close()
            self.active = None

    def switch_mode(self, use_remote: bool) -> str | None:
        """Close the active backend and reopen with the requested preference."""
        self.close()
        self.use_remote = use_remote and self._remote_factory is not None
        self.open()
        return self.mode

    def _require_active(self) -> StorageBackend:
        if self.active is None:
            raise BackendError("storage is not open")
        return self.active

    def execute_run(self, sql: str, params: list) -> RunResult:
        return self._require_active().execute_run(sql, params)

    def execute_get(self, sql: str, params: list) -> Optional[dict]:
        return self._require_active().execute_get(sql, params)

    def execute_all(self, sql: str, params: list) -> list[dict]:
        return self._require_active().execute_all(sql, params)

    def __repr__(self) -> str:
        return f"<HybridBackend mode={self.mode}>"
