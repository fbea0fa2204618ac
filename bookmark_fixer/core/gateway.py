from __future__ import annotations

import logging
from typing import Optional

import httpx

from bookmark_fixer.core.config import settings
from bookmark_fixer.host.editor import HostBookmarkEditor
from bookmark_fixer.host.registry import EditorRegistry
from bookmark_fixer.interception.diagnostics import EditDiagnostics
from bookmark_fixer.interception.transport import InterceptingTransport
from bookmark_fixer.services.enrichment.service import EnrichmentService

logger = logging.getLogger(__name__)


class HostGateway:
    """Singleton owner of the intercepting upstream client.

    Use the module-level ``gateway`` instance; do not instantiate directly.

    Lifecycle::

        await gateway.connect()     # call once at startup
        ...
        await gateway.disconnect()  # call once at shutdown

    ``connect`` wires the pieces together: an ``EnrichmentService`` fed
    by the intercepting transport, and a ``HostBookmarkEditor`` that
    sends its edits back through the same client.
    """

    _instance: HostGateway | None = None
    _client: httpx.AsyncClient | None = None

    def __new__(cls) -> HostGateway:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    async def connect(self, inner: Optional[httpx.AsyncBaseTransport] = None) -> None:
        """Build the session state and open the upstream client."""
        self.diagnostics = EditDiagnostics()
        self.registry = EditorRegistry()
        self.enrichment = EnrichmentService(self.registry)
        self.transport = InterceptingTransport(
            inner,
            on_bookmark_created=self.enrichment.spawn,
            diagnostics=self.diagnostics,
        )
        self._client = httpx.AsyncClient(
            transport=self.transport,
            base_url=settings.host_base_url,
            timeout=httpx.Timeout(settings.http_timeout),
        )
        self.editor = HostBookmarkEditor(self._client, settings.host_api_url)
        self.registry.register(settings.editor_component, self.editor)
        logger.info("Upstream client ready for %s.", settings.host_base_url)

    async def disconnect(self) -> None:
        """Finish pending enrichments, close the client and reset session state."""
        if self._client is not None:
            await self.enrichment.drain()
            self.registry.unregister(settings.editor_component)
            self.diagnostics.reset()
            await self._client.aclose()
            self._client = None
            logger.info("Upstream client closed.")

    def get_client(self) -> httpx.AsyncClient:
        """Return the intercepting client for the host."""
        if self._client is None:
            raise RuntimeError("HostGateway is not connected. Call connect() first.")
        return self._client


#: Module-level singleton; import and use this everywhere.
gateway: HostGateway = HostGateway()
