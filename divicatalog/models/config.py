"""Pipeline configuration loaded from ``config.json``.

Keys are camelCase on disk (``userAgent``, ``thumbs.maxW``, ``cdn.baseUrl``)
and snake_case in Python.  Both spellings are accepted when loading.
"""

import json
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

CONFIG_ENV_VAR = "DIVICATALOG_CONFIG"
_DEFAULT_CONFIG_FILES = ("config.json", "config.example.json")


class ConfigError(RuntimeError):
    """Raised for configuration problems and publish-time invariant violations."""


class _Section(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Viewport(_Section):
    w: int = Field(default=1366, ge=320)
    h: int = Field(default=768, ge=240)


class Timeouts(_Section):
    nav_ms: int = 45_000
    selector_ms: int = 15_000
    settle_ms: int = 1_500
    consent_ms: int = 2_000
    request_s: float = 20.0


class ThumbSettings(_Section):
    max_w: int = Field(default=1200, ge=1)
    max_h: int = Field(default=675, ge=1)
    quality: int = Field(default=80, ge=1, le=100)
    format: str = "webp"
    content_selector: str = "#page-container, main, body"

    @property
    def extension(self) -> str:
        return "jpg" if self.format.lower() == "jpeg" else self.format.lower()


class RateLimit(_Section):
    concurrency: int = Field(default=3, ge=1)


class LinkHealth(_Section):
    retry_count: int = Field(default=3, ge=0)
    retry_backoff_ms: int = Field(default=1_000, ge=0)


class CdnSettings(_Section):
    base_url: Optional[str] = None
    rewrite_thumb_paths: bool = False
    manifest_url: Optional[str] = None

    @property
    def published_manifest_url(self) -> Optional[str]:
        """Where the previously deployed manifest can be fetched from, if anywhere."""
        if self.manifest_url:
            return self.manifest_url
        if self.base_url:
            return f"{self.base_url.rstrip('/')}/manifest.json"
        return None


class Paths(_Section):
    data_dir: Path = Path("data")
    dist_dir: Path = Path("dist")
    cache_dir: Path = Path(".cache") / "http"
    schema_path: Path = Path("schemas") / "manifest.schema.json"

    @property
    def discovered(self) -> Path:
        return self.data_dir / "work" / "discovered.json"

    @property
    def raw_urls(self) -> Path:
        return self.data_dir / "raw" / "layout_pages.json"

    @property
    def history_dir(self) -> Path:
        return self.data_dir / "history"

    @property
    def loop_log(self) -> Path:
        return self.data_dir / "work" / "loop.log"

    @property
    def manifest(self) -> Path:
        return self.dist_dir / "manifest.json"

    @property
    def thumbs_dir(self) -> Path:
        return self.dist_dir / "thumbs"


class CatalogConfig(_Section):
    user_agent: str = "DiviCatalogBot/1.0"
    hub_url: str = "https://www.elegantthemes.com/layouts/"
    sitemap_url: Optional[str] = "https://www.elegantthemes.com/sitemap_index.xml"
    viewports: Viewport = Field(default_factory=Viewport)
    timeouts: Timeouts = Field(default_factory=Timeouts)
    thumbs: ThumbSettings = Field(default_factory=ThumbSettings)
    rate_limit: RateLimit = Field(default_factory=RateLimit)
    link_health: LinkHealth = Field(default_factory=LinkHealth)
    cdn: CdnSettings = Field(default_factory=CdnSettings)
    paths: Paths = Field(default_factory=Paths)


def _resolve_config_path(path: Optional[Path]) -> Optional[Path]:
    if path is not None:
        return path
    from_env = os.environ.get(CONFIG_ENV_VAR)
    if from_env:
        return Path(from_env)
    for candidate in _DEFAULT_CONFIG_FILES:
        if Path(candidate).is_file():
            return Path(candidate)
    return None


def load_config(path: Optional[Path] = None) -> CatalogConfig:
    """Load the pipeline configuration.

    Resolution order: *path*, ``$DIVICATALOG_CONFIG``, ``config.json``,
    ``config.example.json``, then built-in defaults.

    Raises:
        ConfigError: if the chosen file is missing, not JSON, or fails validation.
    """
    resolved = _resolve_config_path(path)
    if resolved is None:
        return CatalogConfig()

    try:
        raw = json.loads(resolved.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise ConfigError(f"Config file not found: {resolved}")
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Config file {resolved} is not valid JSON: {exc}")

    try:
        return CatalogConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(f"Invalid config in {resolved}: {exc}")
