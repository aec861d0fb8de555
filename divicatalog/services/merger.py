"""Accumulating merge of newly discovered packs into the published catalog.

Merging never drops what is already published: packs are keyed by
``pack_id`` and pages by ``layout_slug``, unseen keys are appended and seen
keys are updated in place.
"""

import re
from typing import Dict, Iterable, List, Optional

from divicatalog.models.catalog import Page, Pack
from divicatalog.models.config import CdnSettings, ConfigError

_ABSOLUTE_URL_RE = re.compile(r"^https?://", re.IGNORECASE)

# Pack fields where an already-known value is kept
_FIRST_WINS_FIELDS = ("pack_name", "category", "source_post")


def _is_empty(value) -> bool:
    return value is None or value == "" or value == {} or value == []


def merge_pages(existing: Page, incoming: Page) -> Page:
    """Field union of two versions of the same page, non-empty incoming values winning."""
    merged = existing.model_dump()
    for key, value in incoming.model_dump().items():
        if not _is_empty(value):
            merged[key] = value
    return Page.model_validate(merged)


def merge_packs(prior: Iterable[Pack], incoming: Iterable[Pack]) -> List[Pack]:
    """Merge *incoming* packs into *prior*, returning new objects in first-seen order."""
    by_id: Dict[str, Pack] = {}
    for pack in prior:
        by_id[pack.pack_id] = pack.model_copy(deep=True)

    for pack in incoming:
        existing = by_id.get(pack.pack_id)
        if existing is None:
            # Pages of a new pack still go through the slug merge below
            existing = pack.model_copy(update={"pages": []}, deep=True)
            by_id[pack.pack_id] = existing

        for name in _FIRST_WINS_FIELDS:
            if _is_empty(getattr(existing, name)) and not _is_empty(getattr(pack, name)):
                setattr(existing, name, getattr(pack, name))
        if _is_empty(existing.facets) and not _is_empty(pack.facets):
            existing.facets = dict(pack.facets)

        for page in pack.pages:
            for index, known in enumerate(existing.pages):
                if known.layout_slug == page.layout_slug:
                    existing.pages[index] = merge_pages(known, page)
                    break
            else:
                existing.pages.append(page.model_copy(deep=True))

    return list(by_id.values())


def rewrite_thumbnail(thumbnail: str, cdn: CdnSettings, where: str = "") -> str:
    """Turn a relative ``thumbs/...`` path into an absolute CDN URL.

    Raises:
        ConfigError: if the path is relative and CDN rewriting is not configured.
    """
    if _ABSOLUTE_URL_RE.match(thumbnail):
        return thumbnail
    if cdn.rewrite_thumb_paths and cdn.base_url:
        return f"{cdn.base_url.rstrip('/')}/{thumbnail.lstrip('/')}"
    raise ConfigError(
        f"publish: thumbnail {thumbnail!r}{' for ' + where if where else ''} is not http(s). "
        "Set cdn.baseUrl and cdn.rewriteThumbPaths=true."
    )


def finalize_items(items: Iterable[Pack], cdn: CdnSettings) -> List[Pack]:
    """Prepare merged packs for publishing.

    Empty ``thumbnail`` / ``source_post`` values are removed and relative
    thumbnails are rewritten to absolute URLs.  Nothing is returned unless
    every thumbnail could be rewritten.
    """
    finalized: List[Pack] = []
    for pack in items:
        pack = pack.model_copy(deep=True)
        if not pack.source_post:
            pack.source_post = None
        for page in pack.pages:
            thumbnail: Optional[str] = page.thumbnail or None
            if thumbnail is not None:
                thumbnail = rewrite_thumbnail(thumbnail, cdn, f"{pack.pack_id}/{page.layout_slug}")
            page.thumbnail = thumbnail
        finalized.append(pack)
    return finalized
