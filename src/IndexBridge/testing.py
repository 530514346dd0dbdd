"""Testing utilities for exercising IndexBridge without network access.

``MockRemote`` queues canned responses per ``(method, path)`` and records
every request it serves. Its :meth:`MockRemote.build_httpx_transport` hands
out an :class:`httpx.MockTransport`, so a real :class:`RemoteClient` runs
end-to-end against it: URL building, headers, body encoding and failure
classification are all exercised.

Example:
    >>> remote = MockRemote()
    >>> remote.add_response("POST", "/v1/organizations/acme/files",
    ...                     body={"uploadUri": "https://blob.example/u?sig=1", "fileId": "f1"})
    >>> client = remote.remote_client(ClientContext("acme", "src", "key"))  # doctest: +SKIP
"""

from __future__ import annotations

import json
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Mapping, Optional, Tuple, Type, Union

import httpx

from .config.models import EndpointsConfig
from .net.client import RemoteClient
from .net.context import ClientContext

__all__ = [
    "MockRemote",
    "RequestRecord",
    "ResponseSpec",
]


@dataclass
class ResponseSpec:
    """Canned response; ``error`` raises a transport failure instead of answering."""

    status: int = 200
    body: Union[bytes, str, Mapping[str, Any], List[Any], None] = None
    headers: Mapping[str, str] = field(default_factory=dict)
    error: Optional[Type[httpx.TransportError]] = None

    def serialise_body(self) -> bytes:
        if self.body is None:
            return b""
        if isinstance(self.body, bytes):
            return self.body
        if isinstance(self.body, str):
            return self.body.encode("utf-8")
        return json.dumps(self.body).encode("utf-8")


@dataclass
class RequestRecord:
    """Captured request served by :class:`MockRemote`."""

    method: str
    url: str
    host: str
    path: str
    params: Dict[str, str]
    headers: httpx.Headers
    body: bytes

    def json(self) -> Any:
        return json.loads(self.body) if self.body else None


class MockRemote:
    """In-memory stand-in for the push, platform and search APIs."""

    def __init__(self) -> None:
        self._responses: Dict[Tuple[str, str], Deque[ResponseSpec]] = defaultdict(deque)
        self.requests: List[RequestRecord] = []

    def add_response(
        self,
        method: str,
        path: str,
        *,
        status: int = 200,
        body: Any = None,
        headers: Optional[Mapping[str, str]] = None,
        error: Optional[Type[httpx.TransportError]] = None,
    ) -> ResponseSpec:
        """Queue one response for ``method`` + URL ``path``; responses are served FIFO."""
        spec = ResponseSpec(status=status, body=body, headers=dict(headers or {}), error=error)
        self._responses[(method.upper(), path)].append(spec)
        return spec

    def calls(self, method: Optional[str] = None) -> List[RequestRecord]:
        if method is None:
            return list(self.requests)
        return [record for record in self.requests if record.method == method.upper()]

    def build_httpx_transport(self) -> httpx.MockTransport:
        def _handler(request: httpx.Request) -> httpx.Response:
            record = RequestRecord(
                method=request.method,
                url=str(request.url),
                host=request.url.host,
                path=request.url.path,
                params=dict(request.url.params),
                headers=httpx.Headers(request.headers),
                body=request.content or b"",
            )
            self.requests.append(record)

            queue = self._responses.get((request.method.upper(), request.url.path))
            if not queue:
                return httpx.Response(404, request=request, json={"message": "no canned response"})
            spec = queue.popleft()
            if spec.error is not None:
                raise spec.error("mock transport failure", request=request)
            return httpx.Response(
                spec.status,
                headers=dict(spec.headers),
                content=spec.serialise_body(),
                request=request,
            )

        return httpx.MockTransport(_handler)

    def http_client(self) -> httpx.Client:
        return httpx.Client(transport=self.build_httpx_transport(), follow_redirects=False)

    def remote_client(
        self,
        context: Optional[ClientContext] = None,
        *,
        endpoints: Optional[EndpointsConfig] = None,
    ) -> RemoteClient:
        """Return a :class:`RemoteClient` wired to this mock."""
        return RemoteClient(
            context or ClientContext("acme", "src-1", "secret-key"),
            http_client=self.http_client(),
            endpoints=endpoints,
        )
