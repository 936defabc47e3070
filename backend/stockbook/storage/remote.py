# Overview: Shared HTTP plumbing for the backends that delegate every query to a server handler.

"""
Remote backend base.

Both remote backends POST one JSON envelope per call and receive either
`{"success": true, "data": ...}` or `{"error": ..., "message": ...}`.

Failure policy:
- No credential -> AuthenticationError before any network I/O.
- 401/403 -> AuthenticationError (never degraded).
- 409 -> IntegrityViolation; 400 and 5xx -> BackendError.
- Client timeout, 408/504 -> BackendTimeout; other transport failures ->
  TransientBackendError. Reads turn these into an empty result (and log);
  writes always raise.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

import httpx

from .base import Credentials, StorageBackend
from .errors import (
    AuthenticationError,
    BackendError,
    BackendTimeout,
    IntegrityViolation,
    TransientBackendError,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
NOT_AUTHENTICATED = "Not authenticated. Please login."

_TIMEOUT_STATUSES = {408, 504}
_AUTH_STATUSES = {401, 403}


class RemoteBackend(StorageBackend):
    default_path = "/api/db"

    def __init__(
        self,
        api_url: str,
        credentials: Credentials | None = None,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: httpx.Client | None = None,
    ):
        self.api_url = api_url
        self.credentials = credentials
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    @classmethod
    def for_base_url(cls, base_url: str, credentials: Credentials | None = None, **kwargs) -> "RemoteBackend":
        return cls(f"{base_url.rstrip('/')}{cls.default_path}", credentials, **kwargs)

    def set_credentials(self, credentials: Credentials | None) -> None:
        self.credentials = credentials

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout)
        return self._client

    def close(self) -> None:
        if self._owns_client and self._client is not None:
            self._client.close()
            self._client = None

    @property
    def health_url(self) -> str:
        base, sep, _ = self.api_url.partition("/api/")
        return f"{base}/api/health" if sep else self.api_url

    def ping(self) -> None:
        """Credential check plus a health request; raises instead of degrading."""
        self._auth_header()
        try:
            response = self.client.get(self.health_url, timeout=self.timeout)
        except httpx.TimeoutException as exc:
            raise BackendTimeout(f"health check against {self.health_url} timed out") from exc
        except httpx.TransportError as exc:
            raise TransientBackendError(f"health check against {self.health_url} failed: {exc}") from exc
        if not response.is_success:
            raise self._error_for(response.status_code, self._body(response))

    # ------------------------------------------------------------------
    # Wire
    # ------------------------------------------------------------------

    def _auth_header(self) -> dict:
        if self.credentials is None:
            raise AuthenticationError(NOT_AUTHENTICATED)
        return {"Authorization": self.credentials.basic_auth_header()}

    def _encode(self, payload: dict) -> str:
        return json.dumps(payload)

    def _decode(self, text: str) -> Any:
        return json.loads(text)

    def _post(self, payload: dict, *, url: str | None = None) -> Any:
        """POST one envelope and return its `data`, raising the mapped error otherwise."""
        headers = self._auth_header()
        headers["Content-Type"] = "application/json"
        target = url or self.api_url

        logger.debug("POST %s method=%s", target, payload.get("method"))
        try:
            response = self.client.post(
                target,
                content=self._encode(payload),
                headers=headers,
                timeout=self.timeout,
            )
        except httpx.TimeoutException as exc:
            raise BackendTimeout(f"request to {target} timed out") from exc
        except httpx.TransportError as exc:
            raise TransientBackendError(f"request to {target} failed: {exc}") from exc

        body = self._body(response)
        if response.is_success:
            return body.get("data") if isinstance(body, dict) else body
        raise self._error_for(response.status_code, body)

    def _body(self, response: httpx.Response) -> Any:
        if not response.content:
            return {}
        try:
            return self._decode(response.text)
        except ValueError:
            return {"error": response.text[:200]}

    def _error_for(self, status: int, body: Any) -> Exception:
        message = None
        if isinstance(body, dict):
            message = body.get("message") or body.get("error")
        message = message or f"HTTP {status}"

        if status in _AUTH_STATUSES:
            return AuthenticationError(message)
        if status in _TIMEOUT_STATUSES:
            return BackendTimeout(message, status_code=status)
        if status == 409:
            return IntegrityViolation(message, status_code=status)
        return BackendError(message, status_code=status)

    def _read(self, payload: dict) -> Optional[Any]:
        """Reads degrade: a transient failure yields None instead of raising."""
        try:
            return self._post(payload)
        except TransientBackendError:
            logger.warning(
                "Read against %s degraded to an empty result", self.api_url, exc_info=True
            )
            return None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} url={self.api_url!r}>"
