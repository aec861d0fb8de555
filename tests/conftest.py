"""Shared fakes: an in-memory fetcher, a scripted renderer and a recording sleep."""

import io
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Dict, List, Optional

import pytest
from PIL import Image

from divicatalog.models.config import CatalogConfig
from divicatalog.services.fetcher import FetchError

SCHEMA_PATH = Path(__file__).resolve().parent.parent / "schemas" / "manifest.schema.json"


def make_image(width: int = 64, height: int = 48, color=(200, 40, 40), fmt: str = "PNG") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format=fmt)
    return buffer.getvalue()


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class FakeFetcher:
    """Serves canned bodies; unknown URLs fail with a 404 :class:`FetchError`."""

    def __init__(self, texts: Optional[Dict[str, str]] = None, blobs: Optional[Dict[str, bytes]] = None) -> None:
        self.texts = texts or {}
        self.blobs = blobs or {}
        self.calls: List[str] = []

    async def fetch(self, url: str) -> str:
        self.calls.append(url)
        if url in self.texts:
            return self.texts[url]
        raise FetchError(url, 404)

    async def fetch_bytes(self, url: str) -> bytes:
        self.calls.append(url)
        if url in self.blobs:
            return self.blobs[url]
        raise FetchError(url, 404)


class FakePage:
    def __init__(self, url: str, html: str = "<html></html>", hrefs=None, shot: bytes = b"") -> None:
        self.url = url
        self.html = html
        self.hrefs = list(hrefs or [])
        self.shot = shot
        self.waited: List[str] = []
        self.screenshots_taken = 0

    async def evaluate(self, expression: str):
        return list(self.hrefs)

    async def wait_for(self, selector: str, timeout_ms: int) -> bool:
        self.waited.append(selector)
        return True

    async def settle(self, ms: int) -> None:
        return None

    async def screenshot(self) -> bytes:
        self.screenshots_taken += 1
        return self.shot


class FakeRenderer:
    """Renders only the URLs it was given; anything else raises like a navigation failure."""

    def __init__(self, pages: Optional[Dict[str, FakePage]] = None) -> None:
        self.pages = pages or {}
        self.rendered: List[str] = []

    @asynccontextmanager
    async def render(self, url: str):
        self.rendered.append(url)
        page = self.pages.get(url)
        if page is None:
            raise RuntimeError(f"navigation to {url} failed")
        yield page

    @property
    def screenshots_taken(self) -> int:
        return sum(page.screenshots_taken for page in self.pages.values())


@pytest.fixture
def config(tmp_path) -> CatalogConfig:
    return CatalogConfig.model_validate(
        {
            "hubUrl": "https://site/layouts/",
            "sitemapUrl": None,
            "thumbs": {"maxW": 120, "maxH": 68, "quality": 70},
            "linkHealth": {"retryCount": 3, "retryBackoffMs": 1000},
            "paths": {
                "dataDir": str(tmp_path / "data"),
                "distDir": str(tmp_path / "dist"),
                "cacheDir": str(tmp_path / "cache"),
                "schemaPath": str(SCHEMA_PATH),
            },
        }
    )


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()
