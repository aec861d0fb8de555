"""The pipeline stages and the loop that re-runs them."""

import asyncio
import logging
import time
from collections import Counter
from typing import Awaitable, Callable, Optional
from urllib.parse import urlparse

from divicatalog.models.catalog import Manifest
from divicatalog.models.config import CatalogConfig
from divicatalog.services.artifacts import read_discovered, write_discovered, write_raw_urls
from divicatalog.services.browser_fetcher import PageRenderer, PlaywrightRenderer
from divicatalog.services.cache import FileCacheStore
from divicatalog.services.discoverer import DiscoveryResult, LinkDiscoverer
from divicatalog.services.enricher import enrich_packs
from divicatalog.services.fetcher import CachedFetcher, Sleep
from divicatalog.services.publisher import default_sources, publish
from divicatalog.services.robots import fetch_robots
from divicatalog.services.schema_gate import validate_manifest_file
from divicatalog.services.thumbnails import ThumbnailAcquirer

logger = logging.getLogger(__name__)

LOOP_FAILURE_PAUSE_S = 30
STAGE_ORDER = ("discover", "thumbs", "enrich", "publish")


def _fetcher(config: CatalogConfig) -> CachedFetcher:
    return CachedFetcher(config, FileCacheStore(config.paths.cache_dir))


async def run_discover(
    config: CatalogConfig, max_links: int = 0, renderer: Optional[PageRenderer] = None
) -> DiscoveryResult:
    async with _fetcher(config) as fetcher, PlaywrightRenderer(config) as default_renderer:
        discoverer = LinkDiscoverer(config, fetcher, renderer or default_renderer)
        result = await discoverer.discover(max_links)

    write_discovered(config.paths.discovered, result.items)
    write_raw_urls(config.paths.raw_urls, result.layout_urls, result.visited)
    logger.info(
        "discover: %d item(s), %d page(s). Processed up to max=%s.",
        len(result.items), len(result.visited), max_links or "all",
    )
    return result


async def run_thumbs(config: CatalogConfig, renderer: Optional[PageRenderer] = None) -> Counter:
    packs = read_discovered(config.paths.discovered)
    async with _fetcher(config) as fetcher, PlaywrightRenderer(config) as default_renderer:
        robots = await fetch_robots(urlparse(config.hub_url).netloc, fetcher)
        acquirer = ThumbnailAcquirer(config, fetcher, renderer or default_renderer, robots=robots)
        summary = await acquirer.acquire_all(packs)

    write_discovered(config.paths.discovered, packs)
    logger.info("thumbs: %s", ", ".join(f"{tier}={count}" for tier, count in sorted(summary.items())) or "no pages")
    return summary


async def run_enrich(config: CatalogConfig) -> int:
    packs = read_discovered(config.paths.discovered)
    count = enrich_packs(packs)
    write_discovered(config.paths.discovered, packs)
    logger.info("enrich: updated facets for %d pack(s)", count)
    return count


async def run_publish(config: CatalogConfig) -> Manifest:
    async with _fetcher(config) as fetcher:
        return await publish(config, default_sources(config, fetcher))


async def run_validate(config: CatalogConfig) -> None:
    validate_manifest_file(config.paths.manifest, config.paths.schema_path)


async def run_stage(name: str, stage: Callable[[], Awaitable[object]]) -> object:
    """Run one stage, logging its wall-clock duration whether it succeeds or not."""
    started = time.perf_counter()
    try:
        return await stage()
    finally:
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info("%s done in %.0f ms", name, elapsed_ms)


async def run_loop(
    config: CatalogConfig,
    interval_s: int = 60,
    max_links: int = 0,
    iterations: int = 0,
    sleep: Sleep = asyncio.sleep,
) -> int:
    """Re-run discover -> thumbs -> enrich -> publish; *iterations* 0 means forever.

    A failing stage abandons the iteration, pauses and starts again from the
    top.  Returns the number of iterations that completed.
    """
    stages = {
        "discover": lambda: run_discover(config, max_links),
        "thumbs": lambda: run_thumbs(config),
        "enrich": lambda: run_enrich(config),
        "publish": lambda: run_publish(config),
    }
    logger.info("loop starting (interval=%ss, max=%s)", interval_s, max_links)

    completed = 0
    iteration = 0
    while iterations <= 0 or iteration < iterations:
        iteration += 1
        logger.info("=== iteration %d begin ===", iteration)
        try:
            for name in STAGE_ORDER:
                await run_stage(name, stages[name])
        except Exception:
            logger.exception("iteration %d failed; pausing %ss", iteration, LOOP_FAILURE_PAUSE_S)
            await sleep(LOOP_FAILURE_PAUSE_S)
            continue

        completed += 1
        logger.info("=== iteration %d complete; sleeping %ss ===", iteration, interval_s)
        if iterations <= 0 or iteration < iterations:
            await sleep(interval_s)
    return completed
