"""Immutable credentials and host selection shared by every remote call."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Mapping, Optional

from ..errors import ConfigurationError

if TYPE_CHECKING:  # pragma: no cover - typing only
    from ..config.models import RemoteConfig

__all__ = ["ClientContext", "DEFAULT_PUSH_HOST"]

DEFAULT_PUSH_HOST = "push.cloud.coveo.com/v1"


@dataclass(frozen=True)
class ClientContext:
    """Credentials for one organization/push source pair.

    Attributes:
        organization_id: Organization (application) identifier.
        source_id: Push source identifier.
        api_key: Bearer token sent with every JSON request.
        host: Explicit push host; derived from the identifiers when omitted.
        extra_headers: Headers merged over the JSON defaults.

    Examples:
        >>> ctx = ClientContext("acme", "src-1", "secret")
        >>> ctx.resolved_host
        'push.cloud.coveo.com/v1/organizations/acme/sources/src-1/'
    """

    organization_id: str
    source_id: str
    api_key: str = field(repr=False)
    host: Optional[str] = None
    extra_headers: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for attr, label in (
            ("organization_id", "an organization id"),
            ("source_id", "a source id"),
            ("api_key", "an API key"),
        ):
            value = getattr(self, attr)
            if value is None or not str(value).strip():
                raise ConfigurationError(f"IndexBridge requires {label}.")
        object.__setattr__(self, "extra_headers", MappingProxyType(dict(self.extra_headers)))

    @property
    def resolved_host(self) -> str:
        """Return the explicit host or the push host derived from the identifiers."""

        if self.host:
            return self.host
        return (
            f"{DEFAULT_PUSH_HOST}/organizations/{self.organization_id}"
            f"/sources/{self.source_id}/"
        )

    @classmethod
    def from_config(cls, remote: "RemoteConfig") -> "ClientContext":
        """Build a context from the ``remote`` configuration section."""

        return cls(
            organization_id=remote.organization_id,
            source_id=remote.source_id,
            api_key=remote.api_key,
            host=remote.host,
            extra_headers=remote.extra_headers,
        )
