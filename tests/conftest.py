from __future__ import annotations

from typing import Any

import pytest
from fastapi.testclient import TestClient

import bookmark_fixer.workers.extractor as extractor_module
from bookmark_fixer.main import app


@pytest.fixture(autouse=True)
def fresh_extractor_client():
    """Make every test build its own shared extractor client.

    A client created on one test's event loop must never leak into the
    next one.
    """
    extractor_module._http_client = None
    yield
    extractor_module._http_client = None


@pytest.fixture
def client():
    """TestClient running the full lifespan (gateway connect/disconnect)."""
    with TestClient(app) as c:
        yield c


class FakeEditor:
    """In-memory ``BookmarkEditor`` that records every host operation."""

    def __init__(self, fail: set[str] | None = None, journal: list | None = None) -> None:
        self.url = ""
        self.urlbookmark: dict[str, Any] = {}
        self.fail = fail or set()
        self.journal = journal if journal is not None else []
        self.committed: list[tuple[str, dict[str, Any]]] = []
        self.sent: dict[str, dict[str, Any]] = {}

    async def validate_basic_url(self) -> None:
        self.journal.append(("validate", self.url))
        if "validate" in self.fail:
            raise ValueError("bad url")

    async def upload_thumbnail(self, url: str, image_url: str, thumbnail_worn: str) -> None:
        self.journal.append(("thumbnail", image_url))
        if "thumbnail" in self.fail:
            raise RuntimeError("thumbnail upload rejected")

    async def edit_url_bookmark(self, field: str) -> None:
        self.journal.append((field, self.urlbookmark.get(field)))
        if field in self.fail:
            raise RuntimeError(f"{field} edit rejected")
        self.sent[field] = dict(self.urlbookmark)

    def commit(self, mutation: str, payload: dict[str, Any]) -> None:
        self.committed.append((mutation, payload))


@pytest.fixture
def make_editor() -> type[FakeEditor]:
    return FakeEditor
