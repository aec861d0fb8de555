from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CacheEntry(BaseModel):
    """Cached response body plus the validators needed for a conditional GET."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    etag: Optional[str] = None
    last_modified: Optional[str] = None
    body: str
