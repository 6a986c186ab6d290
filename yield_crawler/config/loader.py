"""Configuration loading helpers for yield-crawler."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Mapping

import yaml
from dotenv import load_dotenv

from .models import GlobalConfig, ServiceSettings, SourceDescriptor

CONFIG_EXTENSIONS = (".yaml", ".yml", ".json")
GLOBAL_CONFIG_FILENAME = "global_config.yaml"
SOURCE_CONFIG_SUFFIX = ".yaml"
DEFAULT_SOURCES_TEMPLATE = "default_sources.yaml"

_ENV_FIELDS = {
    "FRONTEND_URL": "frontend_url",
    "CACHE_TTL_SECONDS": "cache_ttl_seconds",
    "REFRESH_INTERVAL_SECONDS": "refresh_interval_seconds",
    "CACHE_BACKEND": "cache_backend",
    "CACHE_URL": "cache_url",
    "REQUEST_TIMEOUT_SECONDS": "request_timeout_seconds",
    "HOST": "host",
    "PORT": "port",
}


def _slugify(name: str) -> str:
    return "".join(ch.lower() if ch.isalnum() else "-" for ch in name).strip("-")


def _read_file(path: Path) -> dict:
    text = path.read_text(encoding="utf-8")
    if path.suffix in (".yaml", ".yml"):
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file must contain a mapping: {path}")
    return data


def load_settings(environ: Mapping[str, str] | None = None, dotenv: bool = True) -> ServiceSettings:
    """Build service settings from environment variables (and ``.env`` when present)."""

    if environ is None:
        if dotenv:
            load_dotenv()
        environ = os.environ
    payload = {field: environ[name] for name, field in _ENV_FIELDS.items() if environ.get(name)}
    return ServiceSettings.model_validate(payload)


@dataclass(slots=True)
class ConfigLocator:
    """Resolve important paths from project root."""

    project_root: Path | None = None
    data_dir: Path | None = None
    sources_dir: Path | None = None
    logs_dir: Path | None = None

    def __post_init__(self) -> None:
        env_root = os.environ.get("YIELD_CRAWLER_HOME")
        if env_root:
            root = Path(env_root).expanduser().resolve()
        else:
            root = (self.project_root or Path(__file__).resolve().parents[2]).resolve()
        self.project_root = root
        self.data_dir = (root / "data").resolve()
        self.sources_dir = (self.data_dir / "sources").resolve()
        self.logs_dir = (root / "logs").resolve()
        self.ensure_directories()

    def ensure_directories(self) -> None:
        for directory in (self.data_dir, self.sources_dir, self.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def global_config_path(self) -> Path:
        return self.data_dir / GLOBAL_CONFIG_FILENAME


class ConfigRepository:
    """Repository encapsulating config IO and schema validation."""

    def __init__(self, locator: ConfigLocator | None = None) -> None:
        self.locator = locator or ConfigLocator()
        self._global_cache: GlobalConfig | None = None

    # ------------------------------------------------------------------
    # Global configuration helpers
    # ------------------------------------------------------------------
    def load_global_config(self) -> GlobalConfig:
        if self._global_cache is not None:
            return self._global_cache
        path = self.locator.global_config_path()
        if path.exists():
            global_cfg = GlobalConfig.model_validate(_read_file(path))
        else:
            global_cfg = GlobalConfig()
        self._global_cache = global_cfg
        return global_cfg

    # ------------------------------------------------------------------
    # Source configuration helpers
    # ------------------------------------------------------------------
    def source_path(self, key: str) -> Path:
        return self.locator.sources_dir / f"{_slugify(key)}{SOURCE_CONFIG_SUFFIX}"

    def list_source_files(self) -> Iterable[Path]:
        for path in sorted(self.locator.sources_dir.glob("*")):
            if path.is_file() and path.suffix in CONFIG_EXTENSIONS:
                yield path

    def list_sources(self) -> list[SourceDescriptor]:
        """Configured sources in file-name order, or the packaged defaults."""

        sources = [self.load_source(path) for path in self.list_source_files()]
        if not sources:
            sources = self.default_sources()
        keys = [source.key for source in sources]
        duplicates = sorted({key for key in keys if keys.count(key) > 1})
        if duplicates:
            raise ValueError(f"Duplicate source keys: {', '.join(duplicates)}")
        return sources

    def load_source(self, identifier: str | Path) -> SourceDescriptor:
        path = identifier if isinstance(identifier, Path) else self.source_path(identifier)
        if not path.exists():
            raise FileNotFoundError(f"Source configuration not found: {identifier}")
        return SourceDescriptor.model_validate(_read_file(path))

    def default_sources(self) -> list[SourceDescriptor]:
        payload = _read_file(self.template_path(DEFAULT_SOURCES_TEMPLATE))
        return [SourceDescriptor.model_validate(item) for item in payload.get("sources", [])]

    # ------------------------------------------------------------------
    # Utility
    # ------------------------------------------------------------------
    @staticmethod
    def template_path(template_name: str) -> Path:
        template_path = Path(__file__).resolve().parent / "templates" / template_name
        if not template_path.exists():
            raise FileNotFoundError(f"Template not found: {template_path}")
        return template_path


def canonical_fields(sources: Iterable[SourceDescriptor]) -> tuple[str, ...]:
    """Ordered union of every source's canonical field names."""

    names: dict[str, None] = {}
    for source in sources:
        for name in source.field_map:
            names.setdefault(name, None)
    return tuple(names)


def validate_timeouts(sources: Iterable[SourceDescriptor], settings: ServiceSettings) -> None:
    """Every per-attempt budget must fit inside the global request timeout."""

    limit_ms = settings.request_timeout_seconds * 1000
    for source in sources:
        attempt_ms = source.render_profile().attempt_timeout_ms
        if attempt_ms >= limit_ms:
            raise ValueError(
                f"source {source.key}: attempt_timeout_ms ({attempt_ms}) must be shorter "
                f"than the request timeout ({limit_ms:.0f} ms)"
            )


__all__ = [
    "CONFIG_EXTENSIONS",
    "ConfigLocator",
    "ConfigRepository",
    "canonical_fields",
    "load_settings",
    "validate_timeouts",
]
