"""Integration tests.

These tests exercise the full proxy → interceptor → enrichment pipeline.

What is mocked:
  - The host API and the bookmarked page, per-test with respx
  - The settle delay, shortened to zero

What is NOT mocked (runs real code):
  - FastAPI routes and the gateway lifespan
  - InterceptingTransport classification, synthesis and observation
  - MetadataExtractor parsing
  - EnrichmentService ordering and HostBookmarkEditor requests
"""

from __future__ import annotations

import json
from typing import Optional
from unittest.mock import patch

import httpx
import respx
from fastapi.testclient import TestClient

from bookmark_fixer.core.config import settings
from bookmark_fixer.main import app

_HOST = "https://core.ggather.com"
_BOOKMARKED = "https://x.test/page"
_PAGE = (
    "<!DOCTYPE html><html><head>"
    '<meta property="og:image" content="https://x.test/og.png">'
    '<meta name="description" content="A page worth keeping">'
    "<title>Example</title>"
    "</head><body></body></html>"
)


def _mock_host(created: Optional[dict] = None) -> None:
    if created is None:
        created = {"pk": 42, "url": _BOOKMARKED, "rating": 3, "owner_notes": "read later"}
    respx.post(f"{_HOST}/api/add-urlbookmark/").mock(return_value=httpx.Response(200, json=created))
    respx.get(_BOOKMARKED).mock(
        return_value=httpx.Response(200, headers={"content-type": "text/html"}, text=_PAGE)
    )
    respx.post(f"{_HOST}/api/edit-urlbookmark-thumb/").mock(
        return_value=httpx.Response(200, json={"ok": True})
    )
    respx.post(f"{_HOST}/api/edit-urlbookmark/").mock(
        side_effect=lambda request: httpx.Response(200, json={"ok": True})
    )


class TestIntegrationEnrichment:
    @respx.mock
    def test_save_triggers_ordered_enrichment(self):
        """Creation of bookmark 42 → thumbnail, title, description updates in order."""
        _mock_host()

        with patch.object(settings, "settle_delay", 0.0):
            with TestClient(app) as client:
                resp = client.post(
                    "/api/add-urlbookmark/",
                    json={"url": _BOOKMARKED},
                    headers={"Cookie": "sessionid=abc"},
                )
                assert resp.status_code == 200
                assert resp.json()["pk"] == 42
            # Lifespan shutdown waits for the enrichment task.

        sent = [(call.request.method, call.request.url.path) for call in respx.calls]
        assert sent == [
            ("POST", "/api/add-urlbookmark/"),
            ("GET", "/page"),
            ("POST", "/api/edit-urlbookmark-thumb/"),
            ("POST", "/api/edit-urlbookmark/"),
            ("POST", "/api/edit-urlbookmark/"),
        ]

        thumb, title, description = (json.loads(call.request.content) for call in respx.calls[2:])
        assert thumb == {"url": _BOOKMARKED, "image_url": "https://x.test/og.png", "thumbnail_worn": "self"}
        assert title == {"pk": 42, "field": "title", "title": "Example"}
        assert description == {"pk": 42, "field": "description", "description": "A page worth keeping"}

        for call in respx.calls[2:]:
            assert call.request.headers["cookie"] == "sessionid=abc"

    @respx.mock
    def test_primary_key_only_save_still_enriches(self):
        """The host answers the creation with `{pk: 42}` alone."""
        _mock_host(created={"pk": 42})

        with patch.object(settings, "settle_delay", 0.0):
            with TestClient(app) as client:
                resp = client.post("/api/add-urlbookmark/", json={"url": _BOOKMARKED})
                assert resp.json() == {"pk": 42}

        edits = [
            json.loads(call.request.content)
            for call in respx.calls
            if call.request.url.path == "/api/edit-urlbookmark/"
        ]
        assert [edit["field"] for edit in edits] == ["title", "description"]
        assert all(edit["pk"] == 42 for edit in edits)
        assert respx.calls[1].request.url == _BOOKMARKED

    @respx.mock
    def test_edits_are_captured_for_diagnostics(self):
        respx.post(f"{_HOST}/api/edit-urlbookmark/").mock(
            return_value=httpx.Response(200, json={"ok": True})
        )

        with TestClient(app) as client:
            client.post("/api/edit-urlbookmark/", json={"pk": 1, "field": "title", "title": "T"})
            resp = client.get("/_fixer/diagnostics/last-edit")

        assert resp.status_code == 200
        body = resp.json()
        assert body["url"] == f"{_HOST}/api/edit-urlbookmark/"
        assert body["method"] == "POST"
        assert json.loads(body["response"]) == {"ok": True}

    @respx.mock
    def test_failed_save_starts_no_enrichment(self):
        route = respx.post(f"{_HOST}/api/add-urlbookmark/").mock(
            return_value=httpx.Response(400, json={"error": "duplicate"})
        )

        with TestClient(app) as client:
            resp = client.post("/api/add-urlbookmark/", json={"url": _BOOKMARKED})

        assert resp.status_code == 400
        assert route.call_count == 1
        assert len(respx.calls) == 1
