# Overview: Client backend that ships translated SQL to the relational query handler.

from __future__ import annotations

import logging
from typing import Optional

from .base import BackendKind, RunResult
from .errors import StorageError
from .remote import RemoteBackend
from .translator import to_relational

logger = logging.getLogger(__name__)


class RemoteRelationalBackend(RemoteBackend):
    """
    POSTs `{method, query, params}` with `$n` placeholders.

    INSERTs carry `RETURNING id`, so the server reports the new primary key
    as lastInsertRowid.
    """

    kind = BackendKind.RELATIONAL
    default_path = "/api/db/postgres"

    @property
    def setup_url(self) -> str:
        return self.api_url.replace("/postgres", "/setup")

    def open(self) -> "RemoteRelationalBackend":
        # Schema creation is idempotent server side; a failure here only
        # means the first real query reports the problem instead.
        if self.credentials is not None:
            try:
                self._post({}, url=self.setup_url)
                logger.info("Relational schema ensured via %s", self.setup_url)
            except StorageError:
                logger.warning("Relational schema setup failed", exc_info=True)
        return self

    def execute_run(self, sql: str, params: list) -> RunResult:
        query = to_relational(sql, params)
        return RunResult.from_payload(self._post(query.to_payload("run")))

    def execute_get(self, sql: str, params: list) -> Optional[dict]:
        query = to_relational(sql, params)
        return self._read(query.to_payload("get"))

    def execute_all(self, sql: str, params: list) -> list[dict]:
        query = to_relational(sql, params)
        return self._read(query.to_payload("all")) or []
