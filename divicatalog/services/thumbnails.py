"""Thumbnail acquisition for layout pages.

Each page goes through an ordered chain and the first tier that produces an
image wins:

1. the target file already exists on disk (no network at all);
2. the ``og:image`` / ``twitter:image`` of the statically fetched layout page;
3. the same meta tags read from the browser-rendered layout page;
4. a viewport screenshot of the live demo (or of the iframe it embeds).

A failing tier only moves the page on to the next one; a page for which
every tier fails is left without a thumbnail.
"""

import asyncio
import logging
from collections import Counter
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from divicatalog.models.catalog import Page, Pack
from divicatalog.models.config import CatalogConfig
from divicatalog.services.attempt import attempt
from divicatalog.services.browser_fetcher import PageRenderer, RenderedPage
from divicatalog.services.fetcher import CachedFetcher, Sleep
from divicatalog.services.imaging import normalize_image
from divicatalog.services.robots import OPEN_POLICY, RobotsPolicy

logger = logging.getLogger(__name__)

# Meta tags checked for a preview image, in order of preference
_META_IMAGE_KEYS = (
    "og:image",
    "og:image:secure_url",
    "og:image:url",
    "twitter:image",
    "twitter:image:src",
)


class Tier(str, Enum):
    EXISTING = "existing"
    STATIC_META = "static_meta"
    BROWSER_META = "browser_meta"
    SCREENSHOT = "screenshot"
    FAILED = "failed"


def extract_meta_image(html: str, base_url: str) -> Optional[str]:
    """Return the absolute Open Graph / Twitter image URL declared in *html*."""
    soup = BeautifulSoup(html, "lxml")
    found = {}
    for meta in soup.find_all("meta"):
        key = meta.get("property") or meta.get("name")
        content = meta.get("content")
        if not key or not content:
            continue
        key = str(key).strip().lower()
        if key in _META_IMAGE_KEYS and key not in found:
            found[key] = str(content).strip()

    for key in _META_IMAGE_KEYS:
        if found.get(key):
            url = urljoin(base_url, found[key])
            if url.startswith(("http://", "https://")):
                return url
    return None


def extract_iframe_src(html: str, base_url: str) -> Optional[str]:
    """Return the absolute ``src`` of the first ``<iframe>`` in *html*."""
    soup = BeautifulSoup(html, "lxml")
    for frame in soup.find_all("iframe"):
        src = str(frame.get("src") or "").strip()
        if src and not src.startswith(("about:", "javascript:", "data:")):
            return urljoin(base_url, src)
    return None


class ThumbnailAcquirer:
    def __init__(
        self,
        config: CatalogConfig,
        fetcher: CachedFetcher,
        renderer: PageRenderer,
        *,
        robots: RobotsPolicy = OPEN_POLICY,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.config = config
        self.fetcher = fetcher
        self.renderer = renderer
        self.robots = robots
        self._sleep = sleep

    def relative_path(self, pack: Pack, page: Page) -> str:
        return f"thumbs/{pack.category}/{page.layout_slug}.{self.config.thumbs.extension}"

    def target_path(self, pack: Pack, page: Page) -> Path:
        return self.config.paths.dist_dir / self.relative_path(pack, page)

    # -- tiers ---------------------------------------------------------------

    async def _download_normalized(self, image_url: str) -> bytes:
        raw = await self.fetcher.fetch_bytes(image_url)
        return normalize_image(raw, self.config.thumbs)

    async def static_meta_image(self, page: Page) -> Optional[bytes]:
        html = await self.fetcher.fetch(page.layout_url)
        image_url = extract_meta_image(html, page.layout_url)
        if image_url is None:
            return None
        return await self._download_normalized(image_url)

    async def browser_meta_image(self, page: Page) -> Optional[bytes]:
        async with self.renderer.render(page.layout_url) as rendered:
            image_url = extract_meta_image(rendered.html, rendered.url or page.layout_url)
        if image_url is None:
            return None
        return await self._download_normalized(image_url)

    async def _capture(self, rendered: RenderedPage) -> bytes:
        timeouts = self.config.timeouts
        await rendered.wait_for(self.config.thumbs.content_selector, timeouts.selector_ms)
        await rendered.settle(timeouts.settle_ms)
        return await rendered.screenshot()

    async def screenshot(self, page: Page) -> Optional[bytes]:
        async with self.renderer.render(page.demo_url) as demo:
            frame_src = extract_iframe_src(demo.html, demo.url or page.demo_url)
            raw = None if frame_src else await self._capture(demo)

        if frame_src:
            async with self.renderer.render(frame_src) as framed:
                raw = await self._capture(framed)
        return normalize_image(raw, self.config.thumbs)

    # -- orchestration -------------------------------------------------------

    def _record(self, pack: Pack, page: Page) -> None:
        page.thumbnail = self.relative_path(pack, page)
        if not pack.source_post:
            pack.source_post = self.config.hub_url

    async def acquire(self, pack: Pack, page: Page) -> Tier:
        """Give *page* a thumbnail, returning the tier that produced it."""
        target = self.target_path(pack, page)
        if target.exists():
            self._record(pack, page)
            return Tier.EXISTING

        if self.robots.crawl_delay_ms:
            await self._sleep(self.robots.crawl_delay_ms / 1000)

        tiers = (
            (Tier.STATIC_META, self.static_meta_image),
            (Tier.BROWSER_META, self.browser_meta_image),
            (Tier.SCREENSHOT, self.screenshot),
        )
        for tier, produce in tiers:
            result = await attempt(produce, page)
            if not result.ok:
                logger.info("%s/%s: %s tier failed (%s)", pack.pack_id, page.layout_slug, tier.value, result.error)
                continue

            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(result.value)
            self._record(pack, page)
            logger.info("%s/%s: wrote %s via %s", pack.pack_id, page.layout_slug, target, tier.value)
            return tier

        logger.warning("%s/%s: no thumbnail, all tiers failed", pack.pack_id, page.layout_slug)
        return Tier.FAILED

    async def acquire_all(self, packs: Iterable[Pack]) -> Counter:
        """Process every page one at a time; returns how many pages each tier served."""
        summary: Counter = Counter()
        for pack in packs:
            for page in pack.pages:
                summary[(await self.acquire(pack, page)).value] += 1
        return summary
