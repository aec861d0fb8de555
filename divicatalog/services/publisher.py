"""Publishing of the accumulated manifest.

The previously published manifest is looked up through an ordered list of
:class:`ManifestSource` backends (the deployed copy first, then the last
local write); newly discovered packs are merged into it, thumbnails are
made absolute, a dated snapshot is kept under ``data/history`` and the
manifest replaces ``dist/manifest.json`` in one rename.
"""

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence

from pydantic import ValidationError

from divicatalog.models.catalog import CrawlSource, Manifest, Pack
from divicatalog.models.config import CatalogConfig
from divicatalog.services.artifacts import read_discovered, write_json
from divicatalog.services.fetcher import CachedFetcher, FetchError
from divicatalog.services.merger import finalize_items, merge_packs

logger = logging.getLogger(__name__)


class ManifestSource(Protocol):
    name: str

    async def load(self) -> Optional[Manifest]: ...


class RemoteManifestSource:
    """The manifest currently served from the deployed location."""

    name = "remote"

    def __init__(self, url: str, fetcher: CachedFetcher) -> None:
        self.url = url
        self.fetcher = fetcher

    async def load(self) -> Optional[Manifest]:
        try:
            body = await self.fetcher.fetch(self.url)
            return Manifest.model_validate_json(body)
        except (FetchError, ValidationError) as exc:
            logger.warning("Published manifest at %s unavailable: %s", self.url, exc)
            return None


class LocalManifestSource:
    """The manifest written by the last local publish."""

    name = "local"

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    async def load(self) -> Optional[Manifest]:
        if not self.path.is_file():
            return None
        try:
            return Manifest.model_validate_json(self.path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as exc:
            logger.warning("Local manifest %s unreadable: %s", self.path, exc)
            return None


def default_sources(config: CatalogConfig, fetcher: CachedFetcher) -> List[ManifestSource]:
    sources: List[ManifestSource] = []
    remote_url = config.cdn.published_manifest_url
    if remote_url:
        sources.append(RemoteManifestSource(remote_url, fetcher))
    sources.append(LocalManifestSource(config.paths.manifest))
    return sources


async def load_prior_manifest(sources: Sequence[ManifestSource]) -> Manifest:
    """Return the first manifest any source yields, else an empty one."""
    for source in sources:
        manifest = await source.load()
        if manifest is not None:
            logger.info("Accumulating onto %s manifest (%d pack(s))", source.name, len(manifest.items))
            return manifest
    logger.info("No prior manifest found; starting empty")
    return Manifest()


def build_manifest(
    prior: Manifest,
    incoming: List[Pack],
    config: CatalogConfig,
    now: Optional[datetime] = None,
) -> Manifest:
    """Merge *incoming* into *prior* and finalize the result for publishing.

    Raises:
        ConfigError: if a thumbnail cannot be made absolute.
    """
    now = now or datetime.now(timezone.utc)
    items = finalize_items(merge_packs(prior.items, incoming), config.cdn)
    return Manifest(
        generated_at=now.isoformat().replace("+00:00", "Z"),
        source=CrawlSource(crawl_version=now.strftime("%Y.%m.%d")),
        items=items,
    )


def write_atomic(path: Path, payload: Dict[str, Any]) -> None:
    """Write *payload* next to *path* and rename it into place."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f"{path.stem}.tmp{path.suffix}")
    tmp.write_text(json.dumps(payload, ensure_ascii=False, indent=2) + "\n", encoding="utf-8")
    os.replace(tmp, path)


async def publish(
    config: CatalogConfig,
    sources: Sequence[ManifestSource],
    now: Optional[datetime] = None,
) -> Manifest:
    """Run the publish stage and return the manifest that was written."""
    now = now or datetime.now(timezone.utc)
    incoming = read_discovered(config.paths.discovered)
    prior = await load_prior_manifest(sources)

    manifest = build_manifest(prior, incoming, config, now)
    payload = manifest.to_json_dict()

    snapshot = config.paths.history_dir / f"manifest-{now.strftime('%Y%m%d')}.json"
    write_json(snapshot, payload)
    write_atomic(config.paths.manifest, payload)

    pages = sum(len(pack.pages) for pack in manifest.items)
    logger.info(
        "publish: wrote %s with %d pack(s), %d page(s) (accumulated)",
        config.paths.manifest, len(manifest.items), pages,
    )
    return manifest
