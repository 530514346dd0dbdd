"""
Pydantic v2 Configuration Models for IndexBridge

Provides strict, typed configuration for every IndexBridge subsystem:
- Remote credentials (organization, push source, API key, host override)
- Remote endpoint bases for the push, platform and search APIs
- HTTP client settings (timeouts, TLS)
- Upload readiness between the upload and commit phases of a push
- Index schema conventions (field prefix, back-reference field)
- Search behaviour (fail-open policy, facet limits, source scoping)
- Top-level IndexBridgeConfig as single source of truth

All models use extra="forbid" for strict validation. Environment variables
and programmatic overrides follow: file < env < overrides precedence.
"""

from __future__ import annotations

import hashlib
import json
import re
from typing import ClassVar, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

_FIELD_NAME_PATTERN = re.compile(r"^[a-z0-9_]*$")
_FIELD_PREFIX_PATTERN = re.compile(r"^[a-z0-9_.]*$")

# ============================================================================
# Section Models
# ============================================================================


class RemoteConfig(BaseModel):
    """Credentials and host selection for the remote index."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    organization_id: str = Field(default="", description="Organization (application) id")
    source_id: str = Field(default="", description="Push source id")
    api_key: str = Field(default="", description="API key with push/search privileges")
    host: Optional[str] = Field(
        default=None, description="Explicit push host (derived from ids when unset)"
    )
    extra_headers: Dict[str, str] = Field(
        default_factory=dict, description="Headers merged into every JSON request"
    )


class EndpointsConfig(BaseModel):
    """Base URLs of the remote APIs."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    push_base_url: str = Field(
        default="https://push.cloud.coveo.com/v1", description="Push API base URL"
    )
    platform_base_url: str = Field(
        default="https://platform.cloud.coveo.com/rest",
        description="Platform API base URL (fields and search)",
    )
    search_path: str = Field(default="/search/v2", description="Search endpoint path")

    @field_validator("push_base_url", "platform_base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("Base URLs must include an http(s) scheme")
        return v.rstrip("/")

    @property
    def search_url(self) -> str:
        """Return the absolute search endpoint URL."""

        return self.platform_base_url + self.search_path


class HttpConfig(BaseModel):
    """Configuration for the HTTPX client owned by the remote client."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    user_agent: str = Field(default="IndexBridge/0.1", description="User-Agent string")
    timeout_connect_s: float = Field(default=10.0, description="Connection timeout in seconds")
    timeout_read_s: float = Field(default=60.0, description="Read timeout in seconds")
    verify_tls: bool = Field(default=True, description="Verify TLS certificates")

    @field_validator("timeout_connect_s", "timeout_read_s")
    @classmethod
    def validate_timeouts(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Timeouts must be > 0")
        return v


class UploadConfig(BaseModel):
    """Wait strategy between the upload and the commit phase of a push."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    commit_delay_seconds: float = Field(
        default=3.0, description="Fixed wait before commit when no readiness probe is set"
    )
    poll_initial_seconds: float = Field(default=0.5, description="First readiness poll delay")
    poll_max_seconds: float = Field(default=4.0, description="Cap on a single poll delay")
    poll_deadline_seconds: float = Field(
        default=30.0, description="Give up waiting for readiness after this many seconds"
    )

    @field_validator("commit_delay_seconds")
    @classmethod
    def validate_commit_delay(cls, v: float) -> float:
        if v < 0:
            raise ValueError("commit_delay_seconds must be >= 0")
        return v

    @field_validator("poll_initial_seconds", "poll_max_seconds", "poll_deadline_seconds")
    @classmethod
    def validate_polling(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Polling values must be > 0")
        return v


class IndexSchemaConfig(BaseModel):
    """Naming conventions for fields pushed to the remote index."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    field_prefix: str = Field(
        default="",
        description="Prefix added to every indexed field (lowercase letters, digits, '_' and '.')",
    )
    id_field: str = Field(default="item_id", description="Back-reference field name")
    id_field_description: str = Field(
        default="Back-reference to the originating item", description="Remote field description"
    )

    @field_validator("field_prefix")
    @classmethod
    def validate_field_prefix(cls, v: str) -> str:
        if not _FIELD_PREFIX_PATTERN.match(v):
            raise ValueError("Field prefixes may only contain lowercase letters, digits, '_' and '.'")
        return v

    @field_validator("id_field")
    @classmethod
    def validate_id_field(cls, v: str) -> str:
        if not v:
            raise ValueError("id_field must not be empty")
        if not _FIELD_NAME_PATTERN.match(v):
            raise ValueError("Field names may only contain lowercase letters, digits and '_'")
        return v


class SearchConfig(BaseModel):
    """Search execution and query compilation settings."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    fail_open: bool = Field(
        default=True, description="Convert search failures into an empty result set"
    )
    default_facet_limit: int = Field(default=100, description="maximumNumberOfValues default")
    relevance_field: str = Field(
        default="relevance", description="Sort key that maps to the relevancy token"
    )
    source_name: Optional[str] = Field(
        default=None, description="Scope every search to this push source name"
    )

    @field_validator("default_facet_limit")
    @classmethod
    def validate_facet_limit(cls, v: int) -> int:
        if v < 1:
            raise ValueError("default_facet_limit must be >= 1")
        return v


# ============================================================================
# Top-Level Model
# ============================================================================


class IndexBridgeConfig(BaseModel):
    """Complete IndexBridge configuration."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    remote: RemoteConfig = Field(default_factory=RemoteConfig)
    endpoints: EndpointsConfig = Field(default_factory=EndpointsConfig)
    http: HttpConfig = Field(default_factory=HttpConfig)
    upload: UploadConfig = Field(default_factory=UploadConfig)
    index: IndexSchemaConfig = Field(default_factory=IndexSchemaConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)

    def config_hash(self) -> str:
        """
        Compute deterministic SHA256 hash of config for reproducibility.

        Returns:
            Hex-encoded SHA256 hash of normalized config JSON.
        """
        normalized = json.dumps(self.model_dump(mode="json"), sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(normalized.encode()).hexdigest()

    def redacted_dump(self) -> dict:
        """Return ``model_dump`` output with the API key masked."""

        data = self.model_dump(mode="json")
        if data["remote"].get("api_key"):
            data["remote"]["api_key"] = "***"
        return data
