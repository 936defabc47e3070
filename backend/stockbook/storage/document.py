# Overview: Client backend that renders dialect SQL as document operations for the document handler.

"""
Remote document backend.

Bodies travel as MongoDB extended JSON (bson.json_util) so ObjectIds and
dates survive the wire. Outgoing filters and data use `_id` with native
keys; incoming documents are mapped back to rows with a string `id`.

Default stamping lives here and only here: insertOne gains created_at and
updated_at, updates gain updated_at, unless the caller already set them.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from bson import json_util

from ..time_utils import utcnow
from .base import BackendKind, RunResult
from .errors import UnsupportedQueryError
from .keys import EXTERNAL_KEY, NATIVE_KEY, from_document, to_native_fields, to_native_filter, to_native_key
from .remote import RemoteBackend
from .translator import DocumentOperation, to_document

logger = logging.getLogger(__name__)

WRITE_METHODS = {"insertOne", "updateOne", "updateMany", "deleteOne", "deleteMany"}


class RemoteDocumentBackend(RemoteBackend):
    kind = BackendKind.DOCUMENT
    default_path = "/api/db/mongodb"

    def __init__(self, *args, clock=utcnow, **kwargs):
        super().__init__(*args, **kwargs)
        self._clock = clock

    def _encode(self, payload: dict) -> str:
        return json_util.dumps(payload)

    def _decode(self, text: str) -> Any:
        return json_util.loads(text)

    # ------------------------------------------------------------------
    # Operation shaping
    # ------------------------------------------------------------------

    def build_payload(self, op: DocumentOperation, *, now: datetime | None = None) -> dict:
        """Native wire payload for one operation (key mapping and stamping applied)."""
        now = now or self._clock()
        data = dict(op.data)

        if op.method == "insertOne":
            if EXTERNAL_KEY in data:
                data[NATIVE_KEY] = to_native_key(data.pop(EXTERNAL_KEY))
            data.setdefault("created_at", now)
            data.setdefault("updated_at", now)
        elif op.method in ("updateOne", "updateMany"):
            # Keys are immutable
            data.pop(EXTERNAL_KEY, None)
            data.pop(NATIVE_KEY, None)
            data.setdefault("updated_at", now)

        options = dict(op.options)
        for name in ("sort", "projection"):
            if name in options:
                options[name] = to_native_fields(options[name])

        return {
            "method": op.method,
            "collection": op.collection,
            "filter": to_native_filter(op.filter),
            "data": data,
            "options": options,
        }

    def _operation(self, sql: str, params: list) -> tuple[DocumentOperation, dict]:
        now = self._clock()
        op = to_document(sql, params, now=now)
        return op, self.build_payload(op, now=now)

    # ------------------------------------------------------------------
    # Query contract
    # ------------------------------------------------------------------

    def execute_run(self, sql: str, params: list) -> RunResult:
        op, payload = self._operation(sql, params)
        if op.method not in WRITE_METHODS:
            raise UnsupportedQueryError(f"run() needs a write statement, got {op.method}")

        data = self._post(payload) or {}
        result = RunResult.from_payload(data)
        if result.last_insert_rowid is not None:
            result = RunResult(str(result.last_insert_rowid), result.changes)
        if "matchedCount" in data:
            # Same meaning as SQL's row count: rows matched, changed or not
            result = RunResult(result.last_insert_rowid, int(data["matchedCount"] or 0))
        return result

    def execute_get(self, sql: str, params: list) -> Optional[dict]:
        op, payload = self._operation(sql, params)
        if op.method in WRITE_METHODS:
            raise UnsupportedQueryError(f"get() needs a SELECT, got {op.method}")

        if op.method == "count":
            count = self._read(payload)
            return {op.result_alias: int(count or 0)}

        payload["method"] = "findOne"
        doc = self._read(payload)
        return from_document(doc) if doc else None

    def execute_all(self, sql: str, params: list) -> list[dict]:
        op, payload = self._operation(sql, params)
        if op.method in WRITE_METHODS:
            raise UnsupportedQueryError(f"all() needs a SELECT, got {op.method}")

        if op.method == "count":
            count = self._read(payload)
            return [{op.result_alias: int(count or 0)}]

        docs = self._read(payload) or []
        return [from_document(doc) for doc in docs]
