"""Capability handle for the host's bookmark editor.

``BookmarkEditor`` is the set of operations the enrichment sequence is
allowed to use.  ``HostBookmarkEditor`` implements it against the host
API over an ``httpx.AsyncClient``; normally the intercepting client, so
its edits are observed like any other.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional, Protocol
from urllib.parse import urlsplit

import httpx
from pydantic import BaseModel

logger = logging.getLogger(__name__)

# Request headers that carry the user's session with the host.
SESSION_HEADERS = ("cookie", "authorization", "x-csrftoken")


class BookmarkEditor(Protocol):
    url: str
    urlbookmark: dict[str, Any]

    async def validate_basic_url(self) -> None: ...

    async def edit_url_bookmark(self, field: str) -> None: ...

    async def upload_thumbnail(self, url: str, image_url: str, thumbnail_worn: str) -> None: ...

    def commit(self, mutation: str, payload: dict[str, Any]) -> None: ...


class EditorState(BaseModel):
    """Local mirror of the host state the editor mutates."""

    thumbnail: Optional[str] = None
    thumbnail_worn: Optional[str] = None


class HostBookmarkEditor:
    def __init__(self, client: httpx.AsyncClient, api_url: str) -> None:
        self._client = client
        self._api = api_url.rstrip("/")
        self._session: dict[str, str] = {}
        self.url = ""
        self.urlbookmark: dict[str, Any] = {}
        self.state = EditorState()
        self._mutations: dict[str, Callable[[dict[str, Any]], None]] = {
            "eventSaveThumbChange": self._save_thumb_change,
        }

    def adopt_session(self, headers: httpx.Headers | dict[str, str]) -> None:
        """Reuse the caller's session headers for subsequent edits."""
        for name in SESSION_HEADERS:
            value = headers.get(name)
            if value:
                self._session[name] = value

    async def validate_basic_url(self) -> None:
        parts = urlsplit(self.url)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ValueError(f"Not a valid bookmark URL: {self.url!r}")

    async def upload_thumbnail(self, url: str, image_url: str, thumbnail_worn: str) -> None:
        await self._post(
            "/edit-urlbookmark-thumb/",
            {"url": url, "image_url": image_url, "thumbnail_worn": thumbnail_worn},
        )

    async def edit_url_bookmark(self, field: str) -> None:
        """Send the pending value of *field* from ``urlbookmark``."""
        if field not in self.urlbookmark:
            raise KeyError(f"No pending value for {field!r}")
        await self._post(
            "/edit-urlbookmark/",
            {"pk": self.urlbookmark.get("pk"), "field": field, field: self.urlbookmark[field]},
        )

    def commit(self, mutation: str, payload: dict[str, Any]) -> None:
        self._mutations[mutation](payload)

    def _save_thumb_change(self, payload: dict[str, Any]) -> None:
        self.state = self.state.model_copy(update=payload)

    async def _post(self, path: str, payload: dict[str, Any]) -> None:
        response = await self._client.post(self._api + path, json=payload, headers=self._session)
        response.raise_for_status()
        logger.debug("POST %s -> %s", path, response.status_code)
