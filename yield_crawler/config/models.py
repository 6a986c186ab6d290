"""Pydantic models used across the yield-crawler configuration flow."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class SourceType(str, Enum):
    """Rendering/isolation categories a source can belong to."""

    SHARED_BROWSER_SIMPLE = "shared_browser_simple"
    ISOLATED_BROWSER_LABELED = "isolated_browser_labeled"
    ISOLATED_BROWSER_VAULT = "isolated_browser_vault"


class Lane(str, Enum):
    """Scheduling group a source runs in."""

    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"


class FieldRole(str, Enum):
    """Which yield component a label or marker reports."""

    BASE = "base"
    PT = "pt"


class LabelSet(BaseModel):
    """Phrases locating figures in rendered page text.

    ``markers`` are explicit fixed/combined-rate phrases checked first, in
    order. ``labels`` form the general label dictionary.
    """

    model_config = ConfigDict(frozen=True)

    markers: list[tuple[str, FieldRole]] = Field(default_factory=list)
    labels: dict[str, FieldRole] = Field(default_factory=dict)

    @field_validator("markers", mode="before")
    @classmethod
    def _coerce_markers(cls, value: Any) -> list[tuple[str, FieldRole]]:
        if value in (None, ""):
            return []
        if isinstance(value, dict):
            return [(str(k), FieldRole(v)) for k, v in value.items()]
        pairs = []
        for item in value:
            if isinstance(item, dict):
                pairs.append((str(item["phrase"]), FieldRole(item["role"])))
            else:
                phrase, role = item
                pairs.append((str(phrase), FieldRole(role)))
        return pairs


class RenderProfile(BaseModel):
    """How a page is rendered and how long each step may take."""

    model_config = ConfigDict(frozen=True)

    lane: Lane = Lane.SEQUENTIAL
    wait_until: Literal["networkidle", "domcontentloaded", "load"] = "networkidle"
    dismiss_dialogs: bool = False
    extra_headers: dict[str, str] = Field(default_factory=dict)
    content_signal: str | None = None
    signal_timeout_ms: int = 15000
    navigation_timeout_ms: int = 40000
    attempt_timeout_ms: int = 60000
    pre_signal_delay_ms: int = 0
    settle_ms: int = 0
    max_attempts: int = 2

    @model_validator(mode="after")
    def _validate_layering(self) -> "RenderProfile":
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if min(self.settle_ms, self.pre_signal_delay_ms) < 0:
            raise ValueError("delays must be >= 0")
        if not self.signal_timeout_ms < self.navigation_timeout_ms < self.attempt_timeout_ms:
            raise ValueError(
                "timeouts must be layered: signal_timeout_ms < navigation_timeout_ms < attempt_timeout_ms"
            )
        return self


_REALISTIC_HEADERS = {
    "Accept-Language": "en-US,en;q=0.9",
    "Accept": "text/html,application/xhtml+xml,*/*",
}

DEFAULT_PROFILES: dict[SourceType, RenderProfile] = {
    SourceType.SHARED_BROWSER_SIMPLE: RenderProfile(
        lane=Lane.SEQUENTIAL,
        wait_until="networkidle",
        dismiss_dialogs=True,
        content_signal="Total APY",
        signal_timeout_ms=15000,
        navigation_timeout_ms=40000,
        attempt_timeout_ms=60000,
        pre_signal_delay_ms=1500,
    ),
    SourceType.ISOLATED_BROWSER_LABELED: RenderProfile(
        lane=Lane.PARALLEL,
        wait_until="networkidle",
        extra_headers=_REALISTIC_HEADERS,
        content_signal="Fixed APY",
        signal_timeout_ms=30000,
        navigation_timeout_ms=45000,
        attempt_timeout_ms=90000,
        settle_ms=3000,
    ),
    SourceType.ISOLATED_BROWSER_VAULT: RenderProfile(
        lane=Lane.PARALLEL,
        wait_until="domcontentloaded",
        extra_headers=_REALISTIC_HEADERS,
        content_signal="APY",
        signal_timeout_ms=20000,
        navigation_timeout_ms=40000,
        attempt_timeout_ms=75000,
        settle_ms=2000,
    ),
}


class SourceDescriptor(BaseModel):
    """Static definition of one page to scrape."""

    model_config = ConfigDict(frozen=True)

    key: str
    url: str
    source_type: SourceType
    token_hint: str | None = None
    label_set: LabelSet = Field(default_factory=LabelSet)
    # canonical field name -> extractor key (``<token>`` or ``PT-<token>``)
    field_map: dict[str, str] = Field(default_factory=dict)
    profile: dict[str, Any] = Field(
        default_factory=dict,
        description="Overrides applied on top of the source type's default render profile.",
    )

    @model_validator(mode="after")
    def _validate_source(self) -> "SourceDescriptor":
        if not self.key:
            raise ValueError("key cannot be empty")
        if not self.url.startswith(("http://", "https://")):
            raise ValueError(f"url must be absolute http(s): {self.url}")
        if not self.field_map:
            raise ValueError(f"source {self.key} maps no canonical fields")
        self.render_profile()
        return self

    def render_profile(self) -> RenderProfile:
        base = DEFAULT_PROFILES[self.source_type].model_dump()
        base.update(self.profile)
        return RenderProfile.model_validate(base)

    @property
    def base_key(self) -> str:
        return self.token_hint or "base"

    @property
    def pt_key(self) -> str:
        return f"PT-{self.token_hint}" if self.token_hint else "PT"

    def extractor_key(self, role: FieldRole) -> str:
        return self.pt_key if role is FieldRole.PT else self.base_key

    def extractor_keys(self) -> list[str]:
        """Extractor keys this source is expected to produce, in first-use order."""

        return list(dict.fromkeys(self.field_map.values()))


class BrowserOptions(BaseModel):
    """Chromium launch options."""

    headless: bool = True
    executable_path: str | None = None
    extra_args: list[str] = Field(default_factory=list)
    viewport_size: tuple[int, int] = (1366, 768)
    locale: str = "en-US"


class GlobalConfig(BaseModel):
    """Global controls shared across sources."""

    user_agent_list: list[str] | Path | None = None
    browser: BrowserOptions = Field(default_factory=BrowserOptions)
    max_parallel_browsers: int = 3
    max_segment_length: int = 160
    retry_delay_seconds: float = 1.0
    sources_dir: Path = Field(default=Path("data/sources"))

    @field_validator("sources_dir", mode="before")
    @classmethod
    def _coerce_dirs(cls, value: Any) -> Path:
        return Path(value)

    @model_validator(mode="after")
    def _apply_user_agents(self) -> "GlobalConfig":
        if self.max_parallel_browsers < 1:
            raise ValueError("max_parallel_browsers must be >= 1")
        if self.max_segment_length < 16:
            raise ValueError("max_segment_length must be >= 16")
        if isinstance(self.user_agent_list, Path):
            if not self.user_agent_list.exists():
                raise ValueError(f"UA file not found: {self.user_agent_list}")
            content = self.user_agent_list.read_text(encoding="utf-8").splitlines()
            self.user_agent_list = [line.strip() for line in content if line.strip()]
        return self


class CacheBackendKind(str, Enum):
    MEMORY = "memory"
    MONGODB = "mongodb"
    SQLITE = "sqlite"


class ServiceSettings(BaseModel):
    """Process-level settings read from the environment."""

    frontend_url: str = "*"
    cache_ttl_seconds: float = 300.0
    refresh_interval_seconds: float = 0.0
    cache_backend: CacheBackendKind = CacheBackendKind.MEMORY
    cache_url: str | None = None
    request_timeout_seconds: float = 600.0
    host: str = "0.0.0.0"
    port: int = 3000

    @model_validator(mode="after")
    def _validate_settings(self) -> "ServiceSettings":
        if self.cache_ttl_seconds < 0:
            raise ValueError("cache_ttl_seconds must be >= 0")
        if self.refresh_interval_seconds < 0:
            raise ValueError("refresh_interval_seconds must be >= 0")
        if self.request_timeout_seconds <= 0:
            raise ValueError("request_timeout_seconds must be > 0")
        if self.cache_backend is CacheBackendKind.MONGODB and not self.cache_url:
            raise ValueError("mongodb cache backend requires CACHE_URL")
        return self


__all__ = [
    "BrowserOptions",
    "CacheBackendKind",
    "DEFAULT_PROFILES",
    "FieldRole",
    "GlobalConfig",
    "LabelSet",
    "Lane",
    "RenderProfile",
    "ServiceSettings",
    "SourceDescriptor",
    "SourceType",
]
