# Overview: The uniform prepare(sql).run/get/all contract every backend implements.

from __future__ import annotations

import base64
import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from .translator import flatten_params


class BackendKind(str, enum.Enum):
    LOCAL = "local"
    RELATIONAL = "relational"
    DOCUMENT = "document"
    HYBRID = "hybrid"


@dataclass(frozen=True)
class RunResult:
    """Outcome of a write. last_insert_rowid is an int or a document id string."""
    last_insert_rowid: Any = None
    changes: int = 0

    @classmethod
    def from_payload(cls, payload: Optional[dict]) -> "RunResult":
        payload = payload or {}
        return cls(
            last_insert_rowid=payload.get("lastInsertRowid"),
            changes=int(payload.get("changes") or 0),
        )

    def to_payload(self) -> dict:
        return {"lastInsertRowid": self.last_insert_rowid, "changes": self.changes}


@dataclass(frozen=True)
class Credentials:
    """The single static admin credential pair sent with every remote call."""
    username: str
    password: str

    def basic_auth_header(self) -> str:
        token = base64.b64encode(f"{self.username}:{self.password}".encode("utf-8")).decode("ascii")
        return f"Basic {token}"


class PreparedStatement:
    """
    Binds one SQL text to a backend.

    Each method accepts params flat (`run(a, b)`) or as one list
    (`run([a, b])`).
    """

    def __init__(self, backend: "StorageBackend", sql: str):
        self.backend = backend
        self.sql = sql

    def run(self, *params) -> RunResult:
        return self.backend.execute_run(self.sql, flatten_params(params))

    def get(self, *params) -> Optional[dict]:
        return self.backend.execute_get(self.sql, flatten_params(params))

    def all(self, *params) -> list[dict]:
        return self.backend.execute_all(self.sql, flatten_params(params))

    def __repr__(self) -> str:
        return f"<PreparedStatement backend={self.backend.kind.value} sql={self.sql.strip()[:60]!r}>"


class StorageBackend(ABC):
    """
    Base class for the concrete backends.

    Lifecycle is explicit: construct, open(), use, close(). Instances are
    injected into whatever needs them; nothing is cached at module level.
    """

    kind: BackendKind

    def open(self) -> "StorageBackend":
        return self

    def close(self) -> None:
        pass

    def ping(self) -> None:
        """Raise a StorageError when the backend cannot serve queries right now."""

    def __enter__(self) -> "StorageBackend":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def prepare(self, sql: str) -> PreparedStatement:
        return PreparedStatement(self, sql)

    @abstractmethod
    def execute_run(self, sql: str, params: list) -> RunResult:
        ...

    @abstractmethod
    def execute_get(self, sql: str, params: list) -> Optional[dict]:
        ...

    @abstractmethod
    def execute_all(self, sql: str, params: list) -> list[dict]:
        ...
