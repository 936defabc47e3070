# Overview: In-process SQLite backend whose whole database image is the unit of persistence.

"""
Embedded SQL backend.

Invariants:
- One in-memory SQLite connection per backend instance (StaticPool), shared
  by the caller and the snapshot worker under one lock.
- On open: a stored snapshot is deserialized as-is (schema creation
  skipped); otherwise the full schema is created and an initial snapshot is
  written.
- run() applies the write synchronously, then queues a snapshot save. The
  caller never waits for persistence, and a failed save never undoes the
  write. A read-only target is loaded but never written.
- get()/all() coerce numeric-looking strings to numbers so rows read the
  same as they do from the remote backends.
"""

from __future__ import annotations

import logging
import re
import threading
from typing import Any, Optional

from sqlalchemy import MetaData, create_engine
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.pool import StaticPool

from ..extensions import db
from .base import BackendKind, RunResult, StorageBackend
from .errors import BackendError, IntegrityViolation
from .scheduler import DEFAULT_AUTOSAVE_SECONDS, DEFAULT_EXIT_GRACE_SECONDS, PersistenceScheduler
from .snapshots import SnapshotStore, resolve_snapshot_target

logger = logging.getLogger(__name__)

_INTEGER_RE = re.compile(r"[-+]?\d+")
_FLOAT_RE = re.compile(r"[-+]?(?:\d+\.\d*|\.\d+|\d+)(?:[eE][-+]?\d+)?")
_LEADING_ZERO_RE = re.compile(r"[-+]?0\d")


def coerce_value(value: Any) -> Any:
    """'42' -> 42, '3.5' -> 3.5; everything else unchanged."""
    if not isinstance(value, str):
        return value
    text = value.strip()
    if not text or _LEADING_ZERO_RE.match(text):
        # Phone numbers, zero-padded codes
        return value
    if _INTEGER_RE.fullmatch(text):
        return int(text)
    if _FLOAT_RE.fullmatch(text):
        return float(text)
    return value


def coerce_row(row) -> dict:
    return {key: coerce_value(value) for key, value in row.items()}


def schema_metadata() -> MetaData:
    # Registers every table on db.metadata
    from .. import models  # noqa: F401
    return db.metadata


class EmbeddedBackend(StorageBackend):
    kind = BackendKind.LOCAL

    def __init__(
        self,
        snapshot_store: SnapshotStore | None = None,
        alternate_store: SnapshotStore | None = None,
        *,
        autosave_interval: float | None = DEFAULT_AUTOSAVE_SECONDS,
        exit_grace: float = DEFAULT_EXIT_GRACE_SECONDS,
    ):
        self.primary = snapshot_store
        self.alternate = alternate_store
        self.exit_grace = exit_grace
        self.target: SnapshotStore | None = None
        self.restored = False

        self._engine = None
        self._conn = None
        self._lock = threading.RLock()
        self.scheduler = PersistenceScheduler(
            self.save_snapshot,
            interval=autosave_interval,
            exit_grace=exit_grace,
        )

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @property
    def persistent(self) -> bool:
        return self.target is not None and not self.target.read_only

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self) -> "EmbeddedBackend":
        if self.is_open:
            return self

        self.target, data = resolve_snapshot_target(self.primary, self.alternate)
        self._engine = create_engine(
            "sqlite://",
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
        self._conn = self._engine.connect()

        with self._lock:
            if data:
                self._sqlite().deserialize(data)
                # Connection flags are not part of the image
                self._conn.exec_driver_sql("PRAGMA foreign_keys=ON")
                self._conn.commit()
                self.restored = True
                logger.info("Embedded database restored from snapshot (%d bytes)", len(data))
            else:
                schema_metadata().create_all(self._conn)
                self._conn.commit()
                logger.info("Embedded database created with a fresh schema")

        if not self.restored and self.persistent:
            try:
                self.save_snapshot()
            except Exception:
                logger.exception("Initial snapshot save failed")

        if self.persistent:
            self.scheduler.start()
        return self

    def close(self) -> None:
        if not self.is_open:
            return
        if self.persistent:
            if not self.scheduler.stop(self.exit_grace):
                logger.warning("Embedded database closed before the final snapshot save finished")
        with self._lock:
            self._conn.close()
            self._engine.dispose()
            self._conn = None
            self._engine = None

    def flush(self, timeout: float | None = None) -> bool:
        """Persist now and wait (bounded). True when the save completed."""
        if not self.persistent:
            return True
        return self.scheduler.flush(timeout)

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def _sqlite(self):
        return self._conn.connection.driver_connection

    def export_snapshot(self) -> bytes:
        with self._lock:
            self._require_open()
            return bytes(self._sqlite().serialize())

    def save_snapshot(self) -> None:
        if not self.persistent:
            return
        data = self.export_snapshot()
        self.target.save(data)
        logger.debug("Snapshot saved to %r (%d bytes)", self.target, len(data))

    # ------------------------------------------------------------------
    # Query contract
    # ------------------------------------------------------------------

    def _require_open(self) -> None:
        if not self.is_open:
            raise BackendError("embedded database is not open")

    def _execute(self, sql: str, params: list):
        try:
            return self._conn.exec_driver_sql(sql, tuple(params))
        except IntegrityError as exc:
            self._conn.rollback()
            raise IntegrityViolation(str(exc.orig)) from exc
        except DBAPIError as exc:
            self._conn.rollback()
            raise BackendError(str(exc.orig)) from exc

    def execute_run(self, sql: str, params: list) -> RunResult:
        with self._lock:
            self._require_open()
            self._execute(sql, params)
            last_id = self._conn.exec_driver_sql("SELECT last_insert_rowid()").scalar()
            self._conn.commit()

        if self.persistent:
            self.scheduler.request_save()
        # Single-statement writes always report one change
        return RunResult(last_insert_rowid=last_id, changes=1)

    def execute_get(self, sql: str, params: list) -> Optional[dict]:
        with self._lock:
            self._require_open()
            row = self._execute(sql, params).mappings().first()
            self._conn.rollback()
        return coerce_row(row) if row is not None else None

    def execute_all(self, sql: str, params: list) -> list[dict]:
        with self._lock:
            self._require_open()
            rows = self._execute(sql, params).mappings().all()
            self._conn.rollback()
        return [coerce_row(row) for row in rows]

    def __repr__(self) -> str:
        return f"<EmbeddedBackend target={self.target!r} open={self.is_open}>"
