"""Sitemap-based discovery of layout detail URLs."""

import logging
from typing import List
from xml.etree import ElementTree

from divicatalog.services.attempt import attempt
from divicatalog.services.fetcher import CachedFetcher
from divicatalog.services.normalizer import layout_ref

logger = logging.getLogger(__name__)

# Nested sitemaps are only followed when their URL mentions layouts
_LAYOUT_SITEMAP_HINT = "layout"


def _parse_sitemap(xml_text: str) -> tuple[List[str], List[str]]:
    """Split the ``<loc>`` values of *xml_text* into (nested sitemaps, page URLs)."""
    sitemaps: List[str] = []
    pages: List[str] = []
    try:
        root = ElementTree.fromstring(xml_text.lstrip())
    except ElementTree.ParseError as exc:
        logger.warning("Failed to parse sitemap XML: %s", exc)
        return sitemaps, pages

    ns = root.tag.split("}")[0] + "}" if root.tag.startswith("{") else ""
    is_index = root.tag == f"{ns}sitemapindex"
    for elem in root.iter(f"{ns}loc"):
        if elem.text and elem.text.strip():
            (sitemaps if is_index else pages).append(elem.text.strip())
    return sitemaps, pages


def _layout_urls(locs: List[str]) -> List[str]:
    urls: List[str] = []
    for loc in locs:
        ref = layout_ref(loc)
        if ref is not None:
            urls.append(ref.url)
    return urls


async def discover_layout_urls_via_sitemap(sitemap_url: str, fetcher: CachedFetcher) -> List[str]:
    """Return layout detail URLs listed in the sitemap at *sitemap_url*.

    *sitemap_url* may be an index or a plain ``<urlset>``.  Each sitemap that
    cannot be fetched is skipped, so partial results are normal.
    """
    index = await attempt(fetcher.fetch, sitemap_url)
    if not index.ok:
        logger.warning("Sitemap index %s unavailable: %s", sitemap_url, index.error)
        return []

    nested, pages = _parse_sitemap(index.value)
    found: List[str] = _layout_urls(pages)

    candidates = [url for url in nested if _LAYOUT_SITEMAP_HINT in url.lower()]
    logger.info(
        "Sitemap index %s lists %d sitemap(s), %d mention layouts",
        sitemap_url, len(nested), len(candidates),
    )
    for url in candidates:
        result = await attempt(fetcher.fetch, url)
        if not result.ok:
            logger.warning("Skipping sitemap %s: %s", url, result.error)
            continue
        _, locs = _parse_sitemap(result.value)
        found.extend(_layout_urls(locs))

    seen: set = set()
    unique: List[str] = []
    for url in found:
        if url not in seen:
            seen.add(url)
            unique.append(url)
    return unique
