from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

MANIFEST_SCHEMA_VERSION = "1.2"


class Page(BaseModel):
    """One crawlable layout page inside a pack."""

    model_config = ConfigDict(extra="allow")

    page_name: str
    layout_slug: str  # unique within its pack
    demo_url: str
    layout_url: str
    thumbnail: Optional[str] = None  # relative until publish, absolute afterwards


class Pack(BaseModel):
    """A themed group of pages sharing one base slug."""

    model_config = ConfigDict(extra="allow")

    pack_id: str
    pack_name: str
    category: str
    source_post: Optional[str] = None
    pages: List[Page] = Field(default_factory=list)
    facets: Dict[str, Any] = Field(default_factory=dict)
    approved: bool = True
    version: str = "1.0.0"
    notes: str = ""

    def find_page(self, layout_slug: str) -> Optional[Page]:
        for page in self.pages:
            if page.layout_slug == layout_slug:
                return page
        return None


class CrawlSource(BaseModel):
    crawl_version: str
    seeds: List[str] = Field(default_factory=lambda: ["blog-packs", "layout-pages"])


class Manifest(BaseModel):
    """The published catalog document read by the browsing UI."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    schema_version: str = Field(default=MANIFEST_SCHEMA_VERSION, alias="schema")
    generated_at: Optional[str] = None
    source: Optional[CrawlSource] = None
    items: List[Pack] = Field(default_factory=list)

    def to_json_dict(self) -> Dict[str, Any]:
        """Return the on-disk representation; unset optional fields are omitted."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
