"""URL and slug normalisation for layout pages.

Layout detail URLs look like ``/layouts/<category>/<slug>``; the slug of a
page inside a pack ends in ``-<type>-page`` (``consulting-home-page``) and the
pack is identified by what remains once that suffix is removed.
"""

import re
from typing import NamedTuple, Optional
from urllib.parse import urlparse, urlunparse

# Page types whose suffix is stripped to find the pack base
PAGE_TYPES = ("home", "about", "contact", "team", "services", "portfolio")

_PAGE_TYPE_SUFFIX_RE = re.compile(r"-(?:%s)-page$" % "|".join(PAGE_TYPES))
_ANY_PAGE_SUFFIX_RE = re.compile(r"-([a-z0-9]+)-page$")
_LAYOUT_PATH_RE = re.compile(r"^/layouts/([^/]+)/([^/]+)$")


class LayoutRef(NamedTuple):
    url: str
    category: str
    layout_slug: str


def normalize_url(url: str) -> str:
    """Drop query string and fragment and strip the trailing slash from the path."""
    parsed = urlparse(url.strip())
    path = parsed.path.rstrip("/")
    return urlunparse((parsed.scheme, parsed.netloc, path, "", "", ""))


def layout_ref(url: str) -> Optional[LayoutRef]:
    """Return the category and slug of a ``/layouts/<category>/<slug>`` URL, else ``None``."""
    normalized = normalize_url(url)
    parsed = urlparse(normalized)
    if parsed.scheme not in ("http", "https"):
        return None
    match = _LAYOUT_PATH_RE.match(parsed.path)
    if not match:
        return None
    return LayoutRef(url=normalized, category=match.group(1), layout_slug=match.group(2))


def has_page_suffix(slug: str) -> bool:
    return bool(_ANY_PAGE_SUFFIX_RE.search(slug))


def pack_base(layout_slug: str) -> str:
    """``consulting-home-page`` -> ``consulting``; slugs without a known page type are kept whole."""
    return _PAGE_TYPE_SUFFIX_RE.sub("", layout_slug)


def title_case(slug: str) -> str:
    return " ".join(part[:1].upper() + part[1:] for part in slug.split("-") if part)


def page_name_from_slug(layout_slug: str) -> str:
    match = _ANY_PAGE_SUFFIX_RE.search(layout_slug)
    if not match:
        return "Page"
    return title_case(match.group(1))


def demo_url_for(layout_url: str) -> str:
    return f"{layout_url.rstrip('/')}/live-demo"
