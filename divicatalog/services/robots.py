"""Minimal robots.txt handling: only ``Crawl-delay`` for ``User-agent: *`` is honoured."""

import logging
import re
from typing import NamedTuple

from divicatalog.services.fetcher import CachedFetcher

logger = logging.getLogger(__name__)

_USER_AGENT_RE = re.compile(r"^user-agent\s*:\s*(.*)$", re.IGNORECASE)
_CRAWL_DELAY_RE = re.compile(r"^crawl-delay\s*:\s*(.*)$", re.IGNORECASE)


class RobotsPolicy(NamedTuple):
    allowed: bool
    crawl_delay_ms: int


OPEN_POLICY = RobotsPolicy(allowed=True, crawl_delay_ms=0)


def parse_crawl_delay(text: str) -> int:
    """Return the ``Crawl-delay`` of the ``User-agent: *`` group in milliseconds (0 if absent)."""
    in_star_group = False
    delay_ms = 0
    for line in text.splitlines():
        line = line.split("#", 1)[0].strip()
        if not line:
            continue

        ua = _USER_AGENT_RE.match(line)
        if ua:
            in_star_group = ua.group(1).strip() == "*"
            continue

        delay = _CRAWL_DELAY_RE.match(line)
        if delay and in_star_group:
            try:
                delay_ms = int(float(delay.group(1).strip()) * 1000)
            except ValueError:
                continue
    return max(delay_ms, 0)


async def fetch_robots(host: str, fetcher: CachedFetcher) -> RobotsPolicy:
    """Fetch ``https://<host>/robots.txt``; any failure yields an open policy."""
    url = f"https://{host}/robots.txt"
    try:
        text = await fetcher.fetch(url)
        policy = RobotsPolicy(allowed=True, crawl_delay_ms=parse_crawl_delay(text))
    except Exception as exc:
        logger.warning("robots.txt unavailable for %s (%s); assuming no crawl delay", host, exc)
        return OPEN_POLICY

    if policy.crawl_delay_ms:
        logger.info("robots.txt for %s requests a crawl delay of %d ms", host, policy.crawl_delay_ms)
    return policy
