"""Configuration package exports."""

from .loader import (
    ConfigLocator,
    ConfigRepository,
    canonical_fields,
    load_settings,
    validate_timeouts,
)
from .models import (
    DEFAULT_PROFILES,
    BrowserOptions,
    CacheBackendKind,
    FieldRole,
    GlobalConfig,
    LabelSet,
    Lane,
    RenderProfile,
    ServiceSettings,
    SourceDescriptor,
    SourceType,
)

__all__ = [
    "BrowserOptions",
    "CacheBackendKind",
    "ConfigLocator",
    "ConfigRepository",
    "DEFAULT_PROFILES",
    "FieldRole",
    "GlobalConfig",
    "LabelSet",
    "Lane",
    "RenderProfile",
    "ServiceSettings",
    "SourceDescriptor",
    "SourceType",
    "canonical_fields",
    "load_settings",
    "validate_timeouts",
]
