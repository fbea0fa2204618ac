from __future__ import annotations

import httpx
import respx
from starlette.datastructures import Headers

from bookmark_fixer.api.proxy.routes import _forwardable

_HOST = "https://core.ggather.com"
_PAGE = (
    "<!DOCTYPE html><html><head>"
    '<meta property="og:image" content="https://x.test/og.png">'
    "<title>Example</title>"
    "</head><body></body></html>"
)


class TestServiceRoutes:
    def test_health(self, client):
        resp = client.get("/_fixer/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}

    def test_last_edit_empty_returns_204(self, client):
        resp = client.get("/_fixer/diagnostics/last-edit")
        assert resp.status_code == 204


class TestProxy:
    @respx.mock
    def test_unmatched_call_is_relayed(self, client):
        route = respx.get(f"{_HOST}/api/feed/").mock(
            return_value=httpx.Response(201, json={"items": []}, headers={"x-upstream": "1"})
        )

        resp = client.get("/api/feed/", headers={"Cookie": "sessionid=abc"})

        assert resp.status_code == 201
        assert resp.json() == {"items": []}
        assert resp.headers["x-upstream"] == "1"
        forwarded = route.calls.last.request
        assert forwarded.headers["cookie"] == "sessionid=abc"
        assert forwarded.headers["host"] == "core.ggather.com"

    @respx.mock
    def test_metadata_lookup_is_synthesized(self, client):
        respx.get("https://x.test/").mock(
            return_value=httpx.Response(200, headers={"content-type": "text/html"}, text=_PAGE)
        )

        resp = client.get("/api/get-urldata/", params={"url": "https://x.test/"})

        assert resp.status_code == 200
        assert resp.headers["content-type"] == "application/json"
        body = resp.json()
        assert list(body) == ["urldata"]
        urldata = body["urldata"]
        assert urldata["url"] == "https://x.test/"
        assert urldata["thumbnail"] == "https://x.test/og.png"
        assert urldata["title"] == "Example"
        assert urldata["description"] is None
        assert urldata["is_webpage"] is True

    @respx.mock
    def test_metadata_lookup_falls_back_to_host_when_page_unreachable(self, client):
        respx.get("https://x.test/").mock(side_effect=httpx.ConnectError("refused"))
        host_route = respx.get(f"{_HOST}/api/get-urldata/").mock(
            return_value=httpx.Response(200, json={"urldata": {"title": "from host"}})
        )

        resp = client.get("/api/get-urldata/", params={"url": "https://x.test/"})

        assert resp.status_code == 200
        assert resp.json() == {"urldata": {"title": "from host"}}
        assert host_route.called

    @respx.mock
    def test_unreachable_host_returns_502(self, client):
        respx.get(f"{_HOST}/api/feed/").mock(side_effect=httpx.ConnectError("refused"))

        resp = client.get("/api/feed/")

        assert resp.status_code == 502
        assert "refused" in resp.json()["detail"]


class TestForwardableHeaders:
    def test_hop_by_hop_headers_are_dropped(self):
        headers = Headers(
            raw=[
                (b"host", b"proxy.local"),
                (b"connection", b"keep-alive"),
                (b"content-length", b"12"),
                (b"cookie", b"sessionid=abc"),
                (b"x-csrftoken", b"tok"),
            ]
        )
        assert _forwardable(headers) == [("cookie", "sessionid=abc"), ("x-csrftoken", "tok")]
