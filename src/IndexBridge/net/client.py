"""
HTTPX-backed request executor for the remote index APIs.

Architecture:
1. ``RemoteClient`` owns one ``httpx.Client`` (its connection pool is the
   multiplexing handle) for the lifetime of a ``ClientContext``.
2. ``request()`` resolves the absolute URL, attaches JSON or blob-storage
   headers, serialises the body, and classifies failures.
3. Failures against each attempted host are collected; 4xx rejections
   propagate immediately, everything else is summarised once in a
   ``HostUnreachableError`` after the last host.
4. Event hooks emit one ``net.request`` debug record per attempt.
"""

from __future__ import annotations

import json
import logging
import os
import time
from collections.abc import Mapping, Sequence
from typing import Any, Optional, Union
from urllib.parse import urlencode

import httpx

from ..config.models import EndpointsConfig, HttpConfig
from ..errors import (
    ConnectivityError,
    HostUnreachableError,
    IndexBridgeError,
    RemoteRejectedError,
    RemoteServiceError,
)
from .context import ClientContext

logger = logging.getLogger(__name__)

__all__ = [
    "BLOB_UPLOAD_HEADERS",
    "RemoteClient",
    "build_http_client",
    "build_query",
    "build_url",
]

BLOB_UPLOAD_HEADERS = {
    "Content-Type": "application/octet-stream",
    "x-amz-server-side-encryption": "AES256",
}

_BODY_METHODS = {"POST", "PUT"}
_RAW_SUCCESS_METHODS = {"PUT", "DELETE"}

HostSpec = Union[str, Sequence[str]]

# ============================================================================
# URL helpers
# ============================================================================


def _encode_param(value: Any) -> str:
    if isinstance(value, (Mapping, list, tuple)):
        return json.dumps(value, separators=(",", ":"))
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def build_query(params: Optional[Mapping[str, Any]]) -> str:
    """URL-encode ``params``; structured values are JSON-encoded first.

    Examples:
        >>> build_query({"fileId": "abc", "filter": {"a": 1}})
        'fileId=abc&filter=%7B%22a%22%3A1%7D'
    """
    if not params:
        return ""
    return urlencode({key: _encode_param(value) for key, value in params.items()})


def build_url(host: str, path: str = "", params: Optional[Mapping[str, Any]] = None) -> str:
    """Return the absolute URL for ``host`` + ``path`` with an encoded query string."""
    base = host if host.startswith(("http://", "https://")) else f"https://{host}"
    url = base + path
    query = build_query(params)
    if query:
        url += ("&" if "?" in url else "?") + query
    return url


# ============================================================================
# Client Construction
# ============================================================================


def build_http_client(config: Optional[HttpConfig] = None) -> httpx.Client:
    """Build the HTTPX client used by :class:`RemoteClient`."""
    cfg = config or HttpConfig()
    timeout = httpx.Timeout(
        cfg.timeout_read_s,
        connect=cfg.timeout_connect_s,
    )
    client = httpx.Client(
        timeout=timeout,
        verify=cfg.verify_tls,
        headers={"User-Agent": cfg.user_agent},
        follow_redirects=False,
    )
    client.event_hooks["request"] = [_on_request]
    client.event_hooks["response"] = [_on_response]
    logger.debug("HTTPX client created: verify_tls=%s", cfg.verify_tls)
    return client


def _on_request(request: httpx.Request) -> None:
    """Hook: capture request start time and a request id."""
    request.extensions["t0_perf"] = time.perf_counter()
    request.extensions["request_id"] = os.urandom(8).hex()


def _on_response(response: httpx.Response) -> None:
    """Hook: emit net.request telemetry for the attempt."""
    req = response.request
    t0 = req.extensions.get("t0_perf", time.perf_counter())
    elapsed_ms = (time.perf_counter() - t0) * 1000.0
    logger.debug(
        "net.request",
        extra={
            "event": {
                "method": req.method,
                "host": req.url.host,
                "path": req.url.path,
                "status": response.status_code,
                "elapsed_ms": round(elapsed_ms, 2),
                "request_id": req.extensions.get("request_id"),
            }
        },
    )


# ============================================================================
# Remote Client
# ============================================================================


class RemoteClient:
    """Thin request executor bound to one :class:`ClientContext`.

    The client owns its HTTPX connection pool unless one is injected; an
    injected client is left open on :meth:`close` so callers (and tests) can
    share it.

    Examples:
        >>> ctx = ClientContext("acme", "src-1", "secret")
        >>> with RemoteClient(ctx) as client:  # doctest: +SKIP
        ...     client.request("GET", "/indexes/page/fields", host="platform.example")
    """

    def __init__(
        self,
        context: ClientContext,
        *,
        http_client: Optional[httpx.Client] = None,
        http_config: Optional[HttpConfig] = None,
        endpoints: Optional[EndpointsConfig] = None,
    ) -> None:
        self._context = context
        self._endpoints = endpoints or EndpointsConfig()
        self._owns_http = http_client is None
        self._http = http_client if http_client is not None else build_http_client(http_config)
        self._closed = False

    @property
    def context(self) -> ClientContext:
        """Return the immutable context shared with pipelines created from this client."""

        return self._context

    @property
    def endpoints(self) -> EndpointsConfig:
        """Return the configured remote endpoint bases."""

        return self._endpoints

    def organization_url(self, base: str, suffix: str = "") -> str:
        """Return ``<base>/organizations/<org><suffix>``."""

        return f"{base}/organizations/{self._context.organization_id}{suffix}"

    def source_url(self, suffix: str = "") -> str:
        """Return the push URL of the context's source with ``suffix`` appended."""

        return self.organization_url(
            self._endpoints.push_base_url, f"/sources/{self._context.source_id}{suffix}"
        )

    def close(self) -> None:
        """Release the owned connection pool. Safe to call repeatedly."""

        if self._owns_http and not self._closed:
            self._http.close()
            logger.debug("HTTPX client closed")
        self._closed = True

    def __enter__(self) -> "RemoteClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def request(
        self,
        method: str,
        path: str = "",
        *,
        params: Optional[Mapping[str, Any]] = None,
        body: Any = None,
        host: Optional[HostSpec] = None,
        blob_upload: bool = False,
    ) -> Any:
        """Send one logical request, trying each host in order.

        Args:
            method: HTTP method.
            path: Path appended to the host.
            params: Query parameters; structured values are JSON-encoded.
            body: JSON body for POST/PUT (``None`` or empty encodes as ``{}``).
            host: Host or sequence of hosts; defaults to the context's resolved host.
            blob_upload: Send blob-storage headers instead of the JSON/bearer defaults.

        Returns:
            Decoded JSON, or the raw text for empty PUT/DELETE successes.

        Raises:
            RemoteRejectedError: The remote answered with a 4xx status.
            HostUnreachableError: Every host failed with a connectivity or server error.
        """

        method = method.upper()
        hosts = _host_list(host if host else self._context.resolved_host)
        failures: dict[str, IndexBridgeError] = {}
        for candidate in hosts:
            try:
                return self._do_request(method, candidate, path, params, body, blob_upload)
            except RemoteRejectedError:
                raise
            except (ConnectivityError, RemoteServiceError) as exc:
                failures[candidate] = exc
                logger.warning(
                    "remote-request-failed",
                    extra={
                        "event": {
                            "method": method,
                            "host": _host_label(candidate),
                            "status": exc.status,
                            "error": exc.message,
                        }
                    },
                )
        raise HostUnreachableError(failures)

    def _headers(self, blob_upload: bool) -> dict[str, str]:
        if blob_upload:
            return dict(BLOB_UPLOAD_HEADERS)
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._context.api_key}",
        }
        headers.update(self._context.extra_headers)
        return headers

    def _do_request(
        self,
        method: str,
        host: str,
        path: str,
        params: Optional[Mapping[str, Any]],
        body: Any,
        blob_upload: bool,
    ) -> Any:
        url = build_url(host, path, params)
        content: Optional[str] = None
        if method in _BODY_METHODS:
            content = json.dumps(body) if body else "{}"

        try:
            response = self._http.request(
                method, url, headers=self._headers(blob_upload), content=content
            )
        except httpx.RequestError as exc:
            raise ConnectivityError(str(exc) or type(exc).__name__, host=host) from exc

        status = response.status_code
        text = response.text

        if 200 <= status < 300:
            if method in _RAW_SUCCESS_METHODS and (not text or text == "null"):
                return text
            if not text.strip():
                return None
            try:
                return json.loads(text)
            except ValueError as exc:
                raise RemoteServiceError(
                    f"{status}: response body is not valid JSON", status=status
                ) from exc

        payload = _decode_error_payload(text)
        message = payload.get("message")
        if status // 100 == 4:
            raise RemoteRejectedError(
                str(message) if message else f"{status} error", status=status, payload=payload
            )
        raise RemoteServiceError(
            f"{status}: {message if message else response.reason_phrase}",
            status=status,
            payload=payload,
        )


def _host_list(host: HostSpec) -> list[str]:
    if isinstance(host, str):
        return [host]
    hosts = [candidate for candidate in host if candidate]
    if not hosts:
        raise ValueError("At least one host is required")
    return hosts


def _host_label(host: str) -> str:
    """Return the host without query strings (pre-signed URLs carry signatures)."""

    return host.split("?", 1)[0]


def _decode_error_payload(text: str) -> dict[str, Any]:
    try:
        payload = json.loads(text) if text else {}
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}
