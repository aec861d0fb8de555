"""Layout pack discovery: hub page + sitemap, then a rendered pass per layout.

The hub and the sitemap yield candidate ``/layouts/<category>/<slug>``
URLs.  Each candidate is rendered to find its sibling pages (the other
pages of the same pack), and every page found is folded into a
:class:`~divicatalog.models.catalog.Pack` keyed by the pack base slug.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set, Tuple
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

from divicatalog.models.catalog import Page, Pack
from divicatalog.models.config import CatalogConfig
from divicatalog.services.attempt import attempt
from divicatalog.services.browser_fetcher import PageRenderer
from divicatalog.services.fetcher import CachedFetcher, Sleep
from divicatalog.services.normalizer import (
    LayoutRef,
    demo_url_for,
    has_page_suffix,
    layout_ref,
    normalize_url,
    pack_base,
    page_name_from_slug,
    title_case,
)
from divicatalog.services.robots import RobotsPolicy, fetch_robots
from divicatalog.services.sitemap import discover_layout_urls_via_sitemap

logger = logging.getLogger(__name__)

# Returns the resolved href of every anchor in the rendered DOM
_ANCHOR_HREFS_JS = "() => Array.from(document.querySelectorAll('a[href]'), a => a.href)"


@dataclass
class DiscoveryResult:
    items: List[Pack] = field(default_factory=list)
    layout_urls: List[str] = field(default_factory=list)
    visited: List[str] = field(default_factory=list)


def extract_layout_links(html: str, base_url: str) -> List[str]:
    """Return the distinct layout detail URLs linked from *html*, in page order."""
    soup = BeautifulSoup(html, "lxml")
    base_host = urlparse(base_url).netloc
    seen: Set[str] = set()
    links: List[str] = []
    for a in soup.find_all("a", href=True):
        href = str(a["href"]).strip()
        if not href or href.startswith(("#", "javascript:", "mailto:", "tel:")):
            continue
        ref = layout_ref(urljoin(base_url, href))
        if ref is None or urlparse(ref.url).netloc != base_host:
            continue
        if ref.url not in seen:
            seen.add(ref.url)
            links.append(ref.url)
    return links


def merge_candidates(*sources: Iterable[str]) -> List[str]:
    """Union several URL lists, normalising and de-duplicating while keeping first-seen order."""
    seen: Set[str] = set()
    merged: List[str] = []
    for source in sources:
        for url in source:
            normalized = normalize_url(url)
            if normalized not in seen:
                seen.add(normalized)
                merged.append(normalized)
    return merged


def select_inner_pages(hrefs: Iterable[str], origin: LayoutRef) -> List[LayoutRef]:
    """Keep the hrefs that are sibling pages of *origin* within the same pack."""
    base = pack_base(origin.layout_slug)
    seen: Set[str] = set()
    inner: List[LayoutRef] = []
    for href in hrefs:
        if not isinstance(href, str):
            continue
        ref = layout_ref(href)
        if ref is None or ref.category != origin.category:
            continue
        if not has_page_suffix(ref.layout_slug):
            continue
        if pack_base(ref.layout_slug) != base:
            continue
        if ref.url not in seen:
            seen.add(ref.url)
            inner.append(ref)
    return inner


class PackCollector:
    """Accumulates pages into packs keyed by their own pack base; first sighting of a slug wins."""

    def __init__(self) -> None:
        self._packs: Dict[str, Pack] = {}
        self._seen_pages: Set[Tuple[str, str]] = set()
        self.visited: List[str] = []

    def add(self, ref: LayoutRef) -> bool:
        pack_id = pack_base(ref.layout_slug)
        key = (pack_id, ref.layout_slug)
        if key in self._seen_pages:
            return False
        self._seen_pages.add(key)
        self.visited.append(ref.url)

        pack = self._packs.get(pack_id)
        if pack is None:
            pack = Pack(pack_id=pack_id, pack_name=title_case(pack_id), category=ref.category)
            self._packs[pack_id] = pack
        pack.pages.append(
            Page(
                page_name=page_name_from_slug(ref.layout_slug),
                layout_slug=ref.layout_slug,
                demo_url=demo_url_for(ref.url),
                layout_url=ref.url,
            )
        )
        return True

    @property
    def items(self) -> List[Pack]:
        return list(self._packs.values())


class LinkDiscoverer:
    def __init__(
        self,
        config: CatalogConfig,
        fetcher: CachedFetcher,
        renderer: PageRenderer,
        *,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.config = config
        self.fetcher = fetcher
        self.renderer = renderer
        self._sleep = sleep

    async def hub_links(self) -> List[str]:
        result = await attempt(self.fetcher.fetch, self.config.hub_url)
        if not result.ok:
            logger.warning("Hub page %s unavailable: %s", self.config.hub_url, result.error)
            return []
        links = extract_layout_links(result.value, self.config.hub_url)
        logger.info("Hub %s links %d layout page(s)", self.config.hub_url, len(links))
        return links

    async def sitemap_links(self) -> List[str]:
        if not self.config.sitemap_url:
            return []
        links = await discover_layout_urls_via_sitemap(self.config.sitemap_url, self.fetcher)
        logger.info("Sitemap yielded %d layout page(s)", len(links))
        return links

    async def candidates(self) -> List[str]:
        return merge_candidates(await self.hub_links(), await self.sitemap_links())

    async def inner_pages(self, origin: LayoutRef) -> List[LayoutRef]:
        """Render *origin* and return the pages of its pack (at least *origin* itself)."""
        async with self.renderer.render(origin.url) as page:
            hrefs = await page.evaluate(_ANCHOR_HREFS_JS)
        inner = select_inner_pages(hrefs or [], origin)
        return inner or [origin]

    async def _visit(
        self, ref: LayoutRef, limiter: asyncio.Semaphore, robots: RobotsPolicy
    ) -> List[LayoutRef]:
        async with limiter:
            if robots.crawl_delay_ms:
                await self._sleep(robots.crawl_delay_ms / 1000)
            result = await attempt(self.inner_pages, ref)
        if not result.ok:
            logger.warning("Skipping %s: %s", ref.url, result.error)
            return []
        return result.value

    async def discover(self, max_links: int = 0, robots: Optional[RobotsPolicy] = None) -> DiscoveryResult:
        """Enumerate packs.  *max_links* bounds the candidate layouts visited; 0 means all."""
        if robots is None:
            robots = await fetch_robots(urlparse(self.config.hub_url).netloc, self.fetcher)

        candidates = await self.candidates()
        selected = candidates[:max_links] if max_links > 0 else candidates
        refs = [ref for ref in (layout_ref(url) for url in selected) if ref is not None]

        limiter = asyncio.Semaphore(self.config.rate_limit.concurrency)
        visits = await asyncio.gather(*(self._visit(ref, limiter, robots) for ref in refs))

        # Folded in candidate order so the output does not depend on completion order
        collector = PackCollector()
        for ref, inner_pages in zip(refs, visits):
            added = sum(collector.add(inner) for inner in inner_pages)
            logger.debug("%s: %d new page(s)", ref.url, added)

        logger.info(
            "Discovered %d pack(s), %d page(s) from %d of %d candidate layout(s)",
            len(collector.items), len(collector.visited), len(refs), len(candidates),
        )
        return DiscoveryResult(items=collector.items, layout_urls=candidates, visited=collector.visited)
