from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from bookmark_fixer.models.interception import EditSnapshot

logger = logging.getLogger(__name__)


class EditDiagnostics:
    """Session-scoped record of the last successful bookmark edit.

    Created once per application lifespan and reset on shutdown.  Nothing
    in the enrichment path reads it; it exists for inspection only.
    """

    def __init__(self) -> None:
        self._last: Optional[EditSnapshot] = None

    @property
    def last_edit(self) -> Optional[EditSnapshot]:
        return self._last

    def record(
        self,
        url: str,
        method: str,
        headers: dict[str, str],
        data: Optional[str],
        response: str,
    ) -> EditSnapshot:
        self._last = EditSnapshot(
            url=url,
            method=method,
            headers=headers,
            data=data,
            response=response,
            captured_at=datetime.now(timezone.utc),
        )
        logger.debug("Captured successful edit request %s %s", method, url)
        return self._last

    def reset(self) -> None:
        self._last = None
