"""Intercepting httpx transport.

Installed as the transport of the host's ``httpx.AsyncClient`` so every
outgoing call passes through :meth:`InterceptingTransport.handle_async_request`.
Calls are classified by URL path and method:

- metadata lookups are answered locally and never reach the host;
- bookmark creations are forwarded, then observed to start enrichment;
- bookmark edits are forwarded, with their request/response captured;
- everything else is forwarded untouched.

Interception must never break the host's own call.  Any error raised
while classifying or synthesizing is logged and the call is forwarded
as if the transport were not installed.
"""

from __future__ import annotations

import json
import logging
from typing import Awaitable, Callable, Optional

import httpx
from pydantic import ValidationError

from bookmark_fixer.core.config import settings
from bookmark_fixer.interception.calls import CallTable
from bookmark_fixer.interception.diagnostics import EditDiagnostics
from bookmark_fixer.interception.synthesizer import (
    buffered,
    replay,
    schedule_completion,
    synthesize,
)
from bookmark_fixer.models.bookmark import CreatedBookmark
from bookmark_fixer.models.interception import (
    CallKind,
    CallState,
    InterceptedCall,
    ReadyState,
)
from bookmark_fixer.models.metadata.record import MetadataRecord
from bookmark_fixer.workers.extractor import extract

logger = logging.getLogger(__name__)

Extractor = Callable[[str], Awaitable[MetadataRecord]]
BookmarkCreatedHook = Callable[[int, CreatedBookmark], object]

_EDIT_METHODS = frozenset({"PATCH", "PUT"})
_AUTH_MARKERS = ("auth", "login")


def classify(method: str, url: httpx.URL) -> CallKind:
    """Decide which interception branch a call belongs to."""
    path = url.path
    if path == settings.metadata_lookup_path:
        return CallKind.METADATA_LOOKUP
    if path == settings.bookmark_create_path:
        return CallKind.BOOKMARK_CREATE

    target = str(url)
    if settings.bookmark_edit_marker in target:
        return CallKind.FIELD_EDIT
    if "urlbookmark" in target and method.upper() in _EDIT_METHODS:
        return CallKind.FIELD_EDIT
    return CallKind.PASS_THROUGH


class InterceptingTransport(httpx.AsyncBaseTransport):
    """Wraps another async transport and classifies every call it sends."""

    def __init__(
        self,
        inner: Optional[httpx.AsyncBaseTransport] = None,
        *,
        extractor: Extractor = extract,
        on_bookmark_created: Optional[BookmarkCreatedHook] = None,
        diagnostics: Optional[EditDiagnostics] = None,
        calls: Optional[CallTable] = None,
    ) -> None:
        self._inner = inner if inner is not None else httpx.AsyncHTTPTransport(
            verify=settings.http_verify_ssl
        )
        self._extractor = extractor
        self._on_bookmark_created = on_bookmark_created
        self._diagnostics = diagnostics
        self.calls = calls if calls is not None else CallTable()

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        call = self.calls.open(request)
        try:
            try:
                self._prepare(call, request)
                if call.kind is CallKind.METADATA_LOOKUP:
                    return await self._answer_lookup(call, request)
            except Exception:
                logger.exception(
                    "Interception failed for %s %s; passing through",
                    call.method,
                    call.target_url,
                )
                call.kind = CallKind.PASS_THROUGH
                call.listeners.clear()
                return await self._inner.handle_async_request(request)

            if call.kind is CallKind.PASS_THROUGH:
                return await self._pass_through(call, request)
            return await self._forward_observed(call, request)
        finally:
            self.calls.close(request)

    async def aclose(self) -> None:
        await self._inner.aclose()

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def _prepare(self, call: InterceptedCall, request: httpx.Request) -> None:
        call.kind = classify(request.method, request.url)
        call.matched = call.kind is not CallKind.PASS_THROUGH
        call.state = CallState.CLASSIFIED
        logger.debug("%s %s classified as %s", call.method, call.target_url, call.kind.value)

        if call.kind is CallKind.BOOKMARK_CREATE:
            call.requested_url = _requested_url(request)
            call.add_listener("load", self._save_observer(call))
        elif call.kind is CallKind.FIELD_EDIT:
            # Read from the request being sent, so the capture matches the wire.
            call.captured_headers = dict(request.headers)
            call.add_listener("load", self._edit_observer(call, request))

    # ------------------------------------------------------------------
    # Branches
    # ------------------------------------------------------------------

    async def _answer_lookup(self, call: InterceptedCall, request: httpx.Request) -> httpx.Response:
        target = request.url.params.get("url")
        if not target:
            raise ValueError("metadata lookup without a 'url' query parameter")

        logger.info("URL data request for %s", target)
        record = await self._extractor(target)
        response = synthesize(call, request, {"urldata": record.to_wire()})
        logger.debug("URL data response synthesized for %s", target)
        return response

    async def _pass_through(self, call: InterceptedCall, request: httpx.Request) -> httpx.Response:
        response = await self._inner.handle_async_request(request)
        if any(marker in call.target_url for marker in _AUTH_MARKERS):
            logger.debug("Auth request %s %s -> %s", call.method, call.target_url, response.status_code)
        return response

    async def _forward_observed(self, call: InterceptedCall, request: httpx.Request) -> httpx.Response:
        """Send the real call, buffer its body and schedule completion.

        The raw body is buffered here so observers see the full response.
        The client gets a fresh response over the same bytes and reads
        and closes it as it would a network response.
        """
        response = await self._inner.handle_async_request(request)
        call.ready_state = ReadyState.LOADING
        try:
            # Raw bytes, so the encoding headers still describe the body.
            body = b"".join([chunk async for chunk in response.stream])
        finally:
            await response.aclose()

        schedule_completion(call, buffered(response.status_code, response.headers, body, request))
        return replay(response.status_code, response.headers, body, request, response.extensions)

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def _save_observer(self, call: InterceptedCall) -> Callable[[httpx.Response], None]:
        requested_url = call.requested_url

        def observe(response: httpx.Response) -> None:
            if response.status_code != 200:
                return
            try:
                created = CreatedBookmark.model_validate_json(response.content)
            except ValidationError as exc:
                logger.warning("Failed to handle save response: %s", exc)
                return

            if not created.url:
                if not requested_url:
                    logger.warning("Bookmark %s saved without a URL; not enriching", created.pk)
                    return
                created = created.model_copy(update={"url": requested_url})

            logger.info("Bookmark %s saved for %s", created.pk, created.url)
            if self._on_bookmark_created is not None:
                self._on_bookmark_created(created.pk, created)

        return observe

    def _edit_observer(
        self, call: InterceptedCall, request: httpx.Request
    ) -> Callable[[httpx.Response], None]:
        headers = call.captured_headers or {}
        try:
            data: Optional[str] = request.content.decode("utf-8", errors="replace")
        except httpx.RequestNotRead:
            data = None

        def observe(response: httpx.Response) -> None:
            if response.status_code == 200 and self._diagnostics is not None:
                self._diagnostics.record(
                    url=call.target_url,
                    method=call.method,
                    headers=headers,
                    data=data,
                    response=response.text,
                )

        return observe


def _requested_url(request: httpx.Request) -> Optional[str]:
    """The ``url`` key of a JSON creation body, when there is one."""
    try:
        body = json.loads(request.content)
    except (httpx.RequestNotRead, ValueError):
        return None
    url = body.get("url") if isinstance(body, dict) else None
    return url if isinstance(url, str) and url else None
