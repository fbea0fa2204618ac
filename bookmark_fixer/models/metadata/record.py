from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ImageInfo(BaseModel):
    src: str
    width: int = 0
    height: int = 0
    alt: str = ""


class IconInfo(BaseModel):
    href: str
    rel: str
    sizes: Optional[str] = None


class OpenGraphTag(BaseModel):
    property: str
    content: str


class MetaTag(BaseModel):
    name: str
    content: str


class MetadataRecord(BaseModel):
    """Preview data extracted from one fetched page.

    ``title``, ``description`` and ``thumbnail`` each hold the winner of
    their fallback chain, or ``None``.  The auxiliary collections keep
    every matching element in document order.

    Field names are Pythonic; the serialisation aliases are the keys the
    host page reads from its link-preview endpoint.
    """

    model_config = ConfigDict(populate_by_name=True)

    url: str
    thumbnail: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    images: list[ImageInfo] = Field(default_factory=list, alias="html_images")
    icons: list[IconInfo] = Field(default_factory=list, alias="html_icons")
    open_graph_tags: list[OpenGraphTag] = Field(default_factory=list, alias="html_og")
    raw_meta_tags: list[MetaTag] = Field(default_factory=list, alias="html_meta")
    response_headers: str = Field(default="", alias="headers")
    is_webpage: bool = True

    def to_wire(self) -> dict[str, Any]:
        """Return the JSON-ready dict using the host's key names."""
        return self.model_dump(mode="json", by_alias=True)
