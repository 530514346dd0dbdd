# === NAVMAP v1 ===
# {
#   "module": "IndexBridge.push",
#   "purpose": "Three-phase batch push (open, upload, commit) and index maintenance.",
#   "sections": [
#     {
#       "id": "uploadtarget",
#       "name": "UploadTarget",
#       "anchor": "class-uploadtarget",
#       "kind": "class"
#     },
#     {
#       "id": "batchreceipt",
#       "name": "BatchReceipt",
#       "anchor": "class-batchreceipt",
#       "kind": "class"
#     },
#     {
#       "id": "pushindex",
#       "name": "PushIndex",
#       "anchor": "class-pushindex",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Push documents into the remote index with the open/upload/commit handshake.

A push is strictly sequential:

1. **Open** – ``POST {push}/organizations/{org}/files`` returns a pre-signed
   ``uploadUri`` and a ``fileId``. The URI is split so that scheme, host and
   path form the upload target while its query string becomes the signed
   request parameters.
2. **Upload** – ``PUT`` the ``{"addOrUpdate": [...], "delete": [...]}``
   payload to the pre-signed target with blob-storage headers.
3. **Commit** – ``PUT {push}/.../sources/{source}/documents/batch?fileId=...``
   asks the remote service to ingest the uploaded blob.

Between upload and commit the pipeline waits for the blob to become visible:
it polls a caller-supplied readiness probe with backoff when one is given and
otherwise waits a fixed delay. Any phase failure aborts the push; nothing is
retried automatically, callers retry the whole sequence.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, MutableMapping, Optional, Sequence
from urllib.parse import parse_qsl, urlsplit

from .config.models import UploadConfig
from .errors import BatchValidationError, RemoteServiceError, UploadNotReadyError
from .net.client import RemoteClient
from .net.readiness import ReadinessProbe, wait_until_ready

__all__ = [
    "ALLOWED_ACTIONS",
    "BatchReceipt",
    "PushIndex",
    "UploadTarget",
    "build_operation",
]

logger = logging.getLogger(__name__)

ADD_OR_UPDATE = "addOrUpdate"
DELETE = "delete"
ALLOWED_ACTIONS = frozenset({ADD_OR_UPDATE})
DOCUMENT_ID_KEY = "documentId"


@dataclass(frozen=True)
class UploadTarget:
    """Pre-signed blob container returned by the open phase."""

    file_id: str
    upload_uri: str
    url: str
    params: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_response(cls, payload: Any) -> "UploadTarget":
        """Split the ``uploadUri`` of an open-phase response into URL and signed params."""

        if not isinstance(payload, Mapping) or not payload.get("uploadUri") or not payload.get(
            "fileId"
        ):
            raise RemoteServiceError(
                "File container response is missing uploadUri or fileId", status=200
            )
        upload_uri = str(payload["uploadUri"])
        parts = urlsplit(upload_uri)
        return cls(
            file_id=str(payload["fileId"]),
            upload_uri=upload_uri,
            url=f"{parts.scheme}://{parts.netloc}{parts.path}",
            params=dict(parse_qsl(parts.query, keep_blank_values=True)),
        )


@dataclass
class BatchReceipt:
    """Outcome of one committed push."""

    file_id: str
    operation_counts: Dict[str, int]
    response: Any = None

    @property
    def total_operations(self) -> int:
        return sum(self.operation_counts.values())


def build_operation(document: Mapping[str, Any], id_key: str = DOCUMENT_ID_KEY) -> Dict[str, Any]:
    """Package one document as an ``addOrUpdate`` entry.

    The identifier under ``id_key`` becomes ``documentId``; every other
    top-level field becomes the ``data`` payload and an empty ``permissions``
    object is attached. A document without ``id_key`` is still packaged, just
    without the identifier.

    Examples:
        >>> build_operation({"documentId": 7, "title": "x"})
        {'documentId': '7', 'data': {'title': 'x'}, 'permissions': {}}
    """
    data = dict(document)
    operation: Dict[str, Any] = {}
    if id_key in data:
        operation[DOCUMENT_ID_KEY] = str(data.pop(id_key))
    operation["data"] = data
    operation["permissions"] = {}
    return operation


class PushIndex:
    """Batch push and maintenance operations for one push source.

    Args:
        client: Remote client whose context names the organization and source.
        upload_config: Readiness settings between upload and commit.
        readiness_probe: Callable returning ``True`` once an upload is visible.
        sleep: Sleep function used for the fixed delay and poll backoff.
        clock: Wall clock in seconds used for ordering ids.
    """

    def __init__(
        self,
        client: RemoteClient,
        *,
        upload_config: Optional[UploadConfig] = None,
        readiness_probe: Optional[ReadinessProbe] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._client = client
        self._upload_config = upload_config or UploadConfig()
        self._readiness_probe = readiness_probe
        self._sleep = sleep
        self._clock = clock
        self._last_ordering_id = 0

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------
    @property
    def files_url(self) -> str:
        return self._client.organization_url(self._client.endpoints.push_base_url, "/files")

    @property
    def batch_url(self) -> str:
        return self._client.source_url("/documents/batch")

    @property
    def older_than_url(self) -> str:
        return self._client.source_url("/documents/olderthan")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def save_objects(
        self, documents: Iterable[Mapping[str, Any]], id_key: str = DOCUMENT_ID_KEY
    ) -> BatchReceipt:
        """Push ``documents`` as ``addOrUpdate`` operations."""

        operations = [build_operation(document, id_key) for document in documents]
        return self.batch({ADD_OR_UPDATE: operations, DELETE: []})

    def batch_objects(
        self,
        objects: Iterable[Mapping[str, Any]],
        id_key: str = "objectID",
        action_key: str = "objectAction",
    ) -> BatchReceipt:
        """Push objects that each name their own action under ``action_key``.

        Every object is validated before any network call.

        Raises:
            BatchValidationError: An object has no action or an unsupported one.
        """

        grouped: Dict[str, List[Dict[str, Any]]] = {ADD_OR_UPDATE: [], DELETE: []}
        for obj in objects:
            action = obj.get(action_key)
            if action not in ALLOWED_ACTIONS:
                raise BatchValidationError(
                    f"Invalid or missing batch action: {action!r}", action=action
                )
            body = {key: value for key, value in obj.items() if key != action_key}
            grouped.setdefault(action, []).append(build_operation(body, id_key))
        return self.batch(grouped)

    def batch(self, operations: Mapping[str, Sequence[Mapping[str, Any]]]) -> BatchReceipt:
        """Run the open, upload and commit phases for one batch payload."""

        payload: MutableMapping[str, List[Any]] = {ADD_OR_UPDATE: [], DELETE: []}
        for action, entries in operations.items():
            payload[action] = list(entries)
        counts = {action: len(entries) for action, entries in payload.items()}

        target = self._open()
        self._upload(target, payload)
        self._await_visibility(target)
        response = self._commit(target)

        logger.info(
            "push-committed",
            extra={"event": {"file_id": target.file_id, "operations": counts}},
        )
        return BatchReceipt(file_id=target.file_id, operation_counts=counts, response=response)

    def clear_index(self) -> Any:
        """Delete every document indexed before now."""

        return self.delete_older_than(self._next_ordering_id())

    def delete_older_than(self, ordering_id: int) -> Any:
        """Delete documents whose ordering id is lower than ``ordering_id`` (epoch ms)."""

        logger.info("delete-older-than", extra={"event": {"ordering_id": ordering_id}})
        return self._client.request(
            "DELETE", params={"orderingId": int(ordering_id)}, host=self.older_than_url
        )

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------
    def _open(self) -> UploadTarget:
        response = self._client.request("POST", host=self.files_url)
        target = UploadTarget.from_response(response)
        logger.debug("push-open", extra={"event": {"file_id": target.file_id}})
        return target

    def _upload(self, target: UploadTarget, payload: Mapping[str, Any]) -> None:
        self._client.request(
            "PUT",
            params=dict(target.params),
            body=payload,
            host=target.url,
            blob_upload=True,
        )
        logger.debug("push-upload", extra={"event": {"file_id": target.file_id}})

    def _await_visibility(self, target: UploadTarget) -> None:
        config = self._upload_config
        if self._readiness_probe is None:
            if config.commit_delay_seconds > 0:
                self._sleep(config.commit_delay_seconds)
            return
        ready = wait_until_ready(self._readiness_probe, target, config, sleep=self._sleep)
        if not ready:
            raise UploadNotReadyError(
                f"Upload {target.file_id} not visible after {config.poll_deadline_seconds}s",
                file_id=target.file_id,
                waited_s=config.poll_deadline_seconds,
            )

    def _commit(self, target: UploadTarget) -> Any:
        response = self._client.request(
            "PUT", params={"fileId": target.file_id}, host=self.batch_url
        )
        logger.debug("push-commit", extra={"event": {"file_id": target.file_id}})
        return response

    def _next_ordering_id(self) -> int:
        ordering_id = max(int(self._clock() * 1000), self._last_ordering_id + 1)
        self._last_ordering_id = ordering_id
        return ordering_id
