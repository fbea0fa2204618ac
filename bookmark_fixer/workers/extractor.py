"""Async page metadata extractor.

Responsible solely for turning a URL into link-preview data: one GET,
one parse, then a fixed fallback chain per field.

Uses httpx.AsyncClient which is meant to be long-lived and reused.
A single shared client is managed by the module; see ``get_http_client``
and ``close_http_client`` for lifecycle hooks.
"""

from __future__ import annotations

import logging
import re
from typing import Optional
from urllib.parse import urljoin

import httpx
from bs4 import BeautifulSoup
from bs4.builder import ParserRejectedMarkup
from bs4.element import Tag

from bookmark_fixer.core.config import settings
from bookmark_fixer.models.metadata.record import (
    IconInfo,
    ImageInfo,
    MetadataRecord,
    MetaTag,
    OpenGraphTag,
)

logger = logging.getLogger(__name__)

_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8"
_HTML_CONTENT_TYPES = frozenset({"text/html", "application/xhtml+xml"})
_LEADING_INT = re.compile(r"^\s*(\d+)")
_OG_PROPERTY = re.compile(r"^og:")

# Icon sizes tried for the thumbnail, best first.
_ICON_SIZES = ("192x192", "128x128")
_MIN_IMAGE_SIDE = 100

# Module-level shared client
_http_client: Optional[httpx.AsyncClient] = None


def get_http_client() -> httpx.AsyncClient:
    """Return the shared AsyncClient.  Creates one if missing."""
    global _http_client  # noqa: PLW0603
    if _http_client is None or _http_client.is_closed:
        _http_client = httpx.AsyncClient(
            timeout=httpx.Timeout(settings.http_timeout),
            follow_redirects=True,
            verify=settings.http_verify_ssl,
            headers={"Accept": _ACCEPT, "User-Agent": settings.user_agent},
        )
    return _http_client


async def close_http_client() -> None:
    """Close the shared AsyncClient gracefully."""
    global _http_client  # noqa: PLW0603
    if _http_client is not None and not _http_client.is_closed:
        await _http_client.aclose()
        _http_client = None
        logger.info("Extractor HTTP client closed.")


class FetchError(Exception):
    """Raised when the target page cannot be retrieved as HTML."""


class ParseError(Exception):
    """Raised when the retrieved markup cannot be parsed at all."""


async def extract(url: str) -> MetadataRecord:
    """Fetch *url* once and derive its :class:`MetadataRecord`.

    There is no retry.  Raises :class:`FetchError` on network failure,
    non-success status or a non-HTML body, and :class:`ParseError` when
    the parser rejects the document outright.  Individual malformed
    elements never raise; they are read as empty values.
    """
    logger.debug("Fetching metadata for %s", url)
    response = await _fetch(url)
    soup = _parse(url, response.text)
    record = build_record(url, soup, base_url=str(response.url), headers=response.headers)
    logger.debug(
        "Extracted metadata for %s: thumbnail=%r title=%r description=%r",
        url,
        record.thumbnail,
        record.title,
        record.description,
    )
    return record


async def _fetch(url: str) -> httpx.Response:
    """Perform the single HTTP GET for *url*."""
    client = get_http_client()
    try:
        response = await client.get(url)
    except httpx.InvalidURL as exc:
        raise FetchError(f"Invalid URL '{url}': {exc}") from exc
    except httpx.RequestError as exc:
        raise FetchError(f"Request error for '{url}': {exc}") from exc

    if not response.is_success:
        raise FetchError(f"'{url}' answered with status {response.status_code}")

    content_type = response.headers.get("content-type", "")
    media_type = content_type.split(";", 1)[0].strip().lower()
    if media_type and media_type not in _HTML_CONTENT_TYPES:
        raise FetchError(f"'{url}' is not an HTML page ({media_type})")
    return response


def _parse(url: str, markup: str) -> BeautifulSoup:
    try:
        return BeautifulSoup(markup, "html.parser")
    except ParserRejectedMarkup as exc:
        raise ParseError(f"Could not parse markup from '{url}': {exc}") from exc


def build_record(
    url: str,
    soup: BeautifulSoup,
    base_url: Optional[str] = None,
    headers: Optional[httpx.Headers] = None,
) -> MetadataRecord:
    """Derive the metadata record from an already parsed document."""
    base = _document_base(soup, base_url or url)
    return MetadataRecord(
        url=url,
        thumbnail=_thumbnail(soup, base),
        title=_title(soup),
        description=_description(soup),
        images=[_image_info(img, base) for img in soup.find_all("img")],
        icons=[
            IconInfo(href=_resolve(base, link.get("href")), rel=_rel(link), sizes=link.get("sizes"))
            for link in _icon_links(soup)
        ],
        open_graph_tags=[
            OpenGraphTag(property=meta["property"], content=meta.get("content", ""))
            for meta in soup.find_all("meta", attrs={"property": _OG_PROPERTY})
        ],
        raw_meta_tags=[
            MetaTag(name=meta.get("name", ""), content=meta.get("content", ""))
            for meta in soup.find_all("meta")
        ],
        response_headers=_format_headers(headers),
    )


# ---------------------------------------------------------------------------
# Fallback chains
# ---------------------------------------------------------------------------


def _thumbnail(soup: BeautifulSoup, base: str) -> Optional[str]:
    candidate = _meta_content(soup, "property", "og:image") or _meta_content(
        soup, "name", "twitter:image"
    )
    if candidate:
        return candidate

    for size in _ICON_SIZES:
        link = next((i for i in _icon_links(soup) if i.get("sizes") == size), None)
        if link is not None:
            href = _resolve(base, link.get("href"))
            if href:
                return href

    for img in soup.find_all("img"):
        if _dimension(img.get("width")) > _MIN_IMAGE_SIDE and _dimension(img.get("height")) > _MIN_IMAGE_SIDE:
            return _resolve(base, img.get("src")) or None
    return None


def _title(soup: BeautifulSoup) -> Optional[str]:
    tag = soup.find("title")
    if tag is not None:
        text = tag.get_text().strip()
        if text:
            return text
    return _meta_content(soup, "property", "og:title")


def _description(soup: BeautifulSoup) -> Optional[str]:
    return _meta_content(soup, "name", "description") or _meta_content(
        soup, "property", "og:description"
    )


# ---------------------------------------------------------------------------
# Element helpers
# ---------------------------------------------------------------------------


def _meta_content(soup: BeautifulSoup, attr: str, value: str) -> Optional[str]:
    """Stripped content of the first ``<meta attr=value>``, or ``None`` when blank."""
    tag = soup.find("meta", attrs={attr: value})
    if tag is None:
        return None
    return (tag.get("content") or "").strip() or None


def _icon_links(soup: BeautifulSoup) -> list[Tag]:
    return [link for link in soup.find_all("link", rel=True) if "icon" in _rel(link)]


def _rel(link: Tag) -> str:
    rel = link.get("rel", "")
    # bs4 splits rel into a list of tokens.
    return " ".join(rel) if isinstance(rel, list) else rel


def _image_info(img: Tag, base: str) -> ImageInfo:
    return ImageInfo(
        src=_resolve(base, img.get("src")),
        width=_dimension(img.get("width")),
        height=_dimension(img.get("height")),
        alt=img.get("alt", ""),
    )


def _dimension(value: Optional[str]) -> int:
    """Read a width/height attribute the way a DOM does; junk is 0."""
    if not value:
        return 0
    match = _LEADING_INT.match(value)
    return int(match.group(1)) if match else 0


def _document_base(soup: BeautifulSoup, fallback: str) -> str:
    base = soup.find("base", href=True)
    if base is not None:
        return urljoin(fallback, base["href"])
    return fallback


def _resolve(base: str, value: Optional[str]) -> str:
    if not value:
        return ""
    return urljoin(base, value.strip())


def _format_headers(headers: Optional[httpx.Headers]) -> str:
    if headers is None:
        return ""
    return "\r\n".join(f"{name}: {value}" for name, value in headers.multi_items())
