"""One signed HTTP call per invocation, body or nothing."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Protocol

import httpx

from aws_vm_plugin.config import load_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SignedRequest:
    method: str
    url: str
    body: str | None
    headers: dict[str, str] = field(default_factory=dict)


class Gateway(Protocol):
    def execute(self, request: SignedRequest) -> str | None: ...


class HttpGateway:
    """Blocking ``httpx`` gateway.

    Returns the response text on a 2xx status. Transport errors and any
    other status give ``None``; nothing is retried here.
    """

    def __init__(
        self,
        timeout_seconds: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if timeout_seconds is None:
            timeout_seconds = load_settings().execution.http_timeout_seconds
        self._timeout = timeout_seconds
        self._transport = transport
        self._client: httpx.Client | None = None
        self._lock = threading.Lock()

    def _get_client(self) -> httpx.Client:
        if self._client is not None:
            return self._client

        with self._lock:
            if self._client is None:
                self._client = httpx.Client(timeout=self._timeout, transport=self._transport)
            return self._client

    def execute(self, request: SignedRequest) -> str | None:
        client = self._get_client()
        content = request.body.encode("utf-8") if request.body is not None else None
        headers = dict(request.headers)
        if content is not None:
            headers.setdefault("Content-Type", "application/x-www-form-urlencoded")
        try:
            response = client.request(
                request.method,
                request.url,
                content=content,
                headers=headers,
            )
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", request.method, request.url, exc)
            return None

        if not response.is_success:
            logger.warning(
                "%s %s returned status %d: %s",
                request.method,
                request.url,
                response.status_code,
                response.text[:500],
            )
            return None
        return response.text

    def close(self) -> None:
        with self._lock:
            if self._client is not None:
                self._client.close()
                self._client = None
