"""Local mirror of a published catalog: the manifest plus every thumbnail it references."""

import logging
from pathlib import Path
from typing import NamedTuple, Optional
from urllib.parse import urlparse

import httpx

from divicatalog.services.artifacts import write_json

logger = logging.getLogger(__name__)

DEFAULT_MANIFEST_URL = "https://irmarustad.github.io/Divi_templates/manifest.json"
MIRROR_USER_AGENT = "DiviCatalogDownloader/1.0"
TIMEOUT = 30
DEFAULT_THUMB_SUFFIX = ".webp"


class MirrorResult(NamedTuple):
    manifest_path: Path
    downloaded: int
    failed: int


async def mirror_catalog(
    out_dir: Path,
    manifest_url: str = DEFAULT_MANIFEST_URL,
    client: Optional[httpx.AsyncClient] = None,
) -> MirrorResult:
    """Download the manifest at *manifest_url* and its thumbnails into *out_dir*.

    Raises:
        httpx.HTTPError: if the manifest itself cannot be fetched.
        ValueError: if the manifest is not JSON.
    """
    owns_client = client is None
    if client is None:
        client = httpx.AsyncClient(
            follow_redirects=True, timeout=TIMEOUT, headers={"user-agent": MIRROR_USER_AGENT}
        )
    try:
        logger.info("Downloading manifest from %s", manifest_url)
        response = await client.get(manifest_url)
        response.raise_for_status()
        manifest = response.json()

        manifest_path = out_dir / "manifest.json"
        write_json(manifest_path, manifest)

        downloaded = failed = 0
        for pack in manifest.get("items") or []:
            category_dir = out_dir / "thumbs" / (pack.get("category") or "unknown")
            for page in pack.get("pages") or []:
                url = page.get("thumbnail")
                if not url:
                    continue
                suffix = Path(urlparse(url).path).suffix or DEFAULT_THUMB_SUFFIX
                target = category_dir / f"{page.get('layout_slug')}{suffix}"
                try:
                    image = await client.get(url)
                    image.raise_for_status()
                except httpx.HTTPError as exc:
                    failed += 1
                    logger.warning("failed: %s -> %s", url, exc)
                    continue
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(image.content)
                downloaded += 1
    finally:
        if owns_client:
            await client.aclose()

    logger.info("Saved manifest to %s; downloaded %d thumbnail(s), %d failure(s)", manifest_path, downloaded, failed)
    return MirrorResult(manifest_path, downloaded, failed)
