"""Reading and writing the intermediate JSON artifacts under ``data/``."""

import json
import logging
from pathlib import Path
from typing import Any, Iterable, List

from divicatalog.models.catalog import Pack

logger = logging.getLogger(__name__)


def write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, ensure_ascii=False, indent=2) + "\n", encoding="utf-8")


def read_discovered(path: Path) -> List[Pack]:
    """Return the work-in-progress packs, or an empty list when nothing was discovered yet."""
    if not path.is_file():
        logger.info("No work-in-progress items at %s", path)
        return []
    data = json.loads(path.read_text(encoding="utf-8"))
    return [Pack.model_validate(item) for item in data.get("items", [])]


def write_discovered(path: Path, items: Iterable[Pack]) -> None:
    write_json(path, {"items": [pack.model_dump(mode="json", exclude_none=True) for pack in items]})


def write_raw_urls(path: Path, layout_urls: List[str], visited: List[str]) -> None:
    write_json(path, {"layout_urls": layout_urls, "urls": visited})
