"""
Network layer for IndexBridge.

Architecture:
- ``ClientContext``: immutable credentials + host resolution
- ``RemoteClient``: one HTTPX client per context, URL/query building,
  JSON vs blob-storage headers, failure classification, host fan-out
- ``readiness``: Tenacity backoff used between the upload and commit
  phases of a push
"""

from .client import BLOB_UPLOAD_HEADERS, RemoteClient, build_http_client, build_query, build_url
from .context import DEFAULT_PUSH_HOST, ClientContext
from .readiness import ReadinessProbe, create_readiness_policy, wait_until_ready

__all__ = [
    "BLOB_UPLOAD_HEADERS",
    "DEFAULT_PUSH_HOST",
    "ClientContext",
    "ReadinessProbe",
    "RemoteClient",
    "build_http_client",
    "build_query",
    "build_url",
    "create_readiness_policy",
    "wait_until_ready",
]
