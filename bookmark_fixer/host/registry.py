"""Explicit registry of live host editing components.

The enrichment sequence asks the registry for a named editor instead of
searching for one.  Registration happens wherever the editor is built
(the application lifespan, or a test fixture).
"""

from __future__ import annotations

import logging

from bookmark_fixer.host.editor import BookmarkEditor

logger = logging.getLogger(__name__)


class ComponentNotFoundError(LookupError):
    """Raised when no editor is registered under the requested name."""


class EditorRegistry:
    def __init__(self) -> None:
        self._editors: dict[str, BookmarkEditor] = {}

    def register(self, name: str, editor: BookmarkEditor) -> None:
        self._editors[name] = editor
        logger.debug("Registered editor component %r", name)

    def unregister(self, name: str) -> None:
        self._editors.pop(name, None)

    def lookup(self, name: str) -> BookmarkEditor:
        try:
            return self._editors[name]
        except KeyError:
            raise ComponentNotFoundError(f"Could not find {name} component") from None

    def __contains__(self, name: object) -> bool:
        return name in self._editors
