"""Configuration models and loader for IndexBridge."""

from .loader import export_config_schema, load_config
from .models import (
    EndpointsConfig,
    HttpConfig,
    IndexBridgeConfig,
    IndexSchemaConfig,
    RemoteConfig,
    SearchConfig,
    UploadConfig,
)

__all__ = [
    "EndpointsConfig",
    "HttpConfig",
    "IndexBridgeConfig",
    "IndexSchemaConfig",
    "RemoteConfig",
    "SearchConfig",
    "UploadConfig",
    "export_config_schema",
    "load_config",
]
