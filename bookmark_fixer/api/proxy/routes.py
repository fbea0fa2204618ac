from __future__ import annotations

import logging

import httpx
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import Response
from starlette.datastructures import Headers

from bookmark_fixer.core.gateway import gateway

logger = logging.getLogger(__name__)

router = APIRouter(tags=["proxy"])

# Never forwarded in either direction.  Bodies are re-sent decoded, so the
# length and encoding headers are recomputed by whoever sends them next.
_HOP_BY_HOP = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailers",
        "transfer-encoding",
        "upgrade",
        "host",
        "content-length",
        "content-encoding",
    }
)

_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"]


# ---------------------------------------------------------------------------
# Dependency
# ---------------------------------------------------------------------------


def _get_client() -> httpx.AsyncClient:
    """FastAPI dependency returning the intercepting upstream client."""
    return gateway.get_client()


def _forwardable(headers: Headers) -> list[tuple[str, str]]:
    return [(name, value) for name, value in headers.items() if name.lower() not in _HOP_BY_HOP]


# ---------------------------------------------------------------------------
# /{path} -> host
# ---------------------------------------------------------------------------


@router.api_route("/{path:path}", methods=_METHODS, summary="Forward a call to the host")
async def forward(
    path: str,
    request: Request,
    client: httpx.AsyncClient = Depends(_get_client),
) -> Response:
    """Send the caller's request to the host through the intercepting client.

    Status, body and end-to-end headers are relayed as received.  Calls the
    interceptor recognises may be answered locally or observed on the way.

    - **502**: the host could not be reached
    """
    gateway.editor.adopt_session(request.headers)

    target = "/" + path
    if request.url.query:
        target += "?" + request.url.query

    upstream_request = client.build_request(
        request.method,
        target,
        headers=_forwardable(request.headers),
        content=await request.body(),
    )
    try:
        upstream = await client.send(upstream_request)
    except httpx.RequestError as exc:
        logger.warning("%s %s upstream error: %s", request.method, target, exc)
        raise HTTPException(status_code=502, detail=str(exc))

    response = Response(content=upstream.content, status_code=upstream.status_code)
    for name, value in upstream.headers.multi_items():
        if name.lower() not in _HOP_BY_HOP:
            response.headers.append(name, value)
    return response
