from typing import Any, Dict, Iterable

from divicatalog.models.catalog import Pack

# Fixed values until image-based heuristics exist
PLACEHOLDER_FACETS: Dict[str, Any] = {
    "background_style": "light",
    "colorfulness": "medium",
    "font_pair": {"heading": "Unknown", "body": "Unknown"},
    "font_mood": "modern",
    "visual_density": "balanced",
    "complexity": 3,
    "wcag_contrast": "pass",
}


def enrich_packs(packs: Iterable[Pack]) -> int:
    count = 0
    for pack in packs:
        pack.facets = {
            key: dict(value) if isinstance(value, dict) else value
            for key, value in PLACEHOLDER_FACETS.items()
        }
        count += 1
    return count
