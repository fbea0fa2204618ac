from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from bookmark_fixer.api.router import router
from bookmark_fixer.core.config import settings
from bookmark_fixer.core.gateway import gateway
from bookmark_fixer.workers.extractor import close_http_client


def _configure_logging() -> None:
    """Configure the ``bookmark_fixer`` logger namespace.

    ``logging.basicConfig`` is a no-op when the root logger already has
    handlers (e.g. when uvicorn sets up its own handlers before our lifespan
    runs).  Configuring the package namespace directly, with
    ``propagate = False``, keeps interception diagnostics on stdout
    regardless of uvicorn's root-logger setup.
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)-8s %(name)s: %(message)s")
    )
    app_log = logging.getLogger("bookmark_fixer")
    app_log.setLevel(level)
    if not app_log.handlers:
        app_log.addHandler(handler)
    app_log.propagate = False


_configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    # ── Startup ──────────────────────────────────────────────────────
    await gateway.connect()
    yield
    # ── Shutdown ─────────────────────────────────────────────────────
    await gateway.disconnect()
    await close_http_client()


app = FastAPI(
    title="Bookmark Fixer",
    description="Proxy that answers link-preview lookups locally and enriches saved bookmarks.",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(router)
