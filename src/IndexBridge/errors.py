# === NAVMAP v1 ===
# {
#   "module": "IndexBridge.errors",
#   "purpose": "Failure taxonomy and structured logging helpers for remote index calls.",
#   "sections": [
#     {
#       "id": "indexbridgeerror",
#       "name": "IndexBridgeError",
#       "anchor": "class-indexbridgeerror",
#       "kind": "class"
#     },
#     {
#       "id": "hostunreachableerror",
#       "name": "HostUnreachableError",
#       "anchor": "class-hostunreachableerror",
#       "kind": "class"
#     },
#     {
#       "id": "log-remote-failure",
#       "name": "log_remote_failure",
#       "anchor": "function-log-remote-failure",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Failure taxonomy and logging helpers for the IndexBridge adapter.

Responsibilities
----------------
- Define the exception hierarchy shared by the remote client, the push
  pipeline, the field schema manager and the search service. Every failure
  carries an optional ``status`` so callers can branch on the remote HTTP
  status without parsing messages.
- Keep validation failures (raised before any network call) distinguishable
  from connectivity, rejection and server failures.
- Centralise structured failure logging through :func:`log_remote_failure`.

Design Notes
------------
- Validation errors also subclass :class:`ValueError` so generic callers that
  only know about builtin exceptions still see a sensible type.
- ``HostUnreachableError`` is the only aggregate: it wraps one failure per
  attempted host and is raised once, after every host has been tried.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

__all__ = (
    "IndexBridgeError",
    "ConfigurationError",
    "BatchValidationError",
    "UnsupportedOperatorError",
    "ConnectivityError",
    "RemoteRejectedError",
    "RemoteServiceError",
    "HostUnreachableError",
    "UploadNotReadyError",
    "log_remote_failure",
)

LOGGER = logging.getLogger(__name__)

CONNECTIVITY_STATUS = 503
ALREADY_EXISTS_STATUS = 412


class IndexBridgeError(Exception):
    """Base class for every failure raised by IndexBridge."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status


class ConfigurationError(IndexBridgeError, ValueError):
    """Raised when a required credential or setting is missing."""


class BatchValidationError(IndexBridgeError, ValueError):
    """Raised when a batch operation carries a missing or unsupported action."""

    def __init__(self, message: str, *, action: object = None) -> None:
        super().__init__(message)
        self.action = action


class UnsupportedOperatorError(IndexBridgeError, ValueError):
    """Raised when a filter condition uses an operator outside the supported set."""

    def __init__(self, message: str, *, operator: object = None) -> None:
        super().__init__(message)
        self.operator = operator


class ConnectivityError(IndexBridgeError):
    """Raised when the transport failed before any response was received."""

    def __init__(self, message: str, *, host: str | None = None) -> None:
        super().__init__(message, status=CONNECTIVITY_STATUS)
        self.host = host


class RemoteRejectedError(IndexBridgeError):
    """Raised for 4xx responses; carries the remote status and message verbatim."""

    def __init__(
        self, message: str, *, status: int, payload: Mapping[str, Any] | None = None
    ) -> None:
        super().__init__(message, status=status)
        self.payload = dict(payload or {})

    @property
    def is_already_exists(self) -> bool:
        """Return ``True`` when the remote reported a 412 (resource already exists)."""

        return self.status == ALREADY_EXISTS_STATUS


class RemoteServiceError(IndexBridgeError):
    """Raised for non-2xx responses that are not client rejections."""

    def __init__(
        self, message: str, *, status: int, payload: Mapping[str, Any] | None = None
    ) -> None:
        super().__init__(message, status=status)
        self.payload = dict(payload or {})


class HostUnreachableError(IndexBridgeError):
    """Raised once every attempted host failed without a 4xx rejection."""

    def __init__(self, failures: Mapping[str, IndexBridgeError]) -> None:
        self.failures = dict(failures)
        summary = ",".join(f"{host}: {exc.message}" for host, exc in self.failures.items())
        statuses = [exc.status for exc in self.failures.values()]
        if statuses and all(isinstance(exc, ConnectivityError) for exc in self.failures.values()):
            status: int | None = CONNECTIVITY_STATUS
        else:
            status = statuses[-1] if statuses else None
        super().__init__(f"Host unreachable: {summary}", status=status)

    @property
    def hosts(self) -> list[str]:
        """Return the attempted hosts in attempt order."""

        return list(self.failures)


class UploadNotReadyError(IndexBridgeError):
    """Raised when an uploaded batch never became visible before the poll deadline."""

    def __init__(self, message: str, *, file_id: str | None = None, waited_s: float = 0.0) -> None:
        super().__init__(message)
        self.file_id = file_id
        self.waited_s = waited_s


def log_remote_failure(
    logger: logging.Logger,
    error: BaseException,
    *,
    operation: str,
    level: int = logging.ERROR,
    extra_fields: Mapping[str, Any] | None = None,
) -> None:
    """Emit one structured record describing ``error``.

    Args:
        logger: Logger receiving the record.
        error: Failure raised by a remote call.
        operation: Short name of the logical operation (``"push"``, ``"search"``...).
        level: Logging level used for the record.
        extra_fields: Additional context merged into the event payload.

    Examples:
        >>> log_remote_failure(LOGGER, ConnectivityError("boom"), operation="search")
    """

    event: dict[str, Any] = {
        "operation": operation,
        "error_type": type(error).__name__,
        "status": getattr(error, "status", None),
    }
    if isinstance(error, HostUnreachableError):
        event["hosts"] = error.hosts
    if extra_fields:
        event.update(extra_fields)
    logger.log(level, "%s failed: %s", operation, error, extra={"event": event})
