from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional

from pydantic import BaseModel, Field

from bookmark_fixer.core.config import settings
from bookmark_fixer.host.editor import BookmarkEditor
from bookmark_fixer.host.registry import ComponentNotFoundError, EditorRegistry
from bookmark_fixer.models.bookmark import CreatedBookmark
from bookmark_fixer.models.metadata.record import MetadataRecord
from bookmark_fixer.workers.extractor import FetchError, ParseError, extract

logger = logging.getLogger(__name__)

Extractor = Callable[[str], Awaitable[MetadataRecord]]

THUMBNAIL_WORN = "self"


class UpdateStepError(Exception):
    """One enrichment step's host operation failed."""

    def __init__(self, step: str, bookmark_id: int, cause: BaseException) -> None:
        super().__init__(f"{step} update failed for bookmark {bookmark_id}: {cause}")
        self.step = step
        self.bookmark_id = bookmark_id
        self.cause = cause


class StepStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


class EnrichmentResult(BaseModel):
    bookmark_id: int
    aborted: Optional[str] = None
    steps: dict[str, StepStatus] = Field(default_factory=dict)


class EnrichmentService:
    """Drives the host editor through the post-save update sequence.

    For one bookmark the order is fixed: thumbnail, title, description,
    with a settle delay after each of the first two so the host's own
    state catches up before the next read-modify-write.  Each step is
    attempted regardless of how the previous one ended; a failed step is
    logged and the sequence moves on.  There is no rollback.
    """

    def __init__(
        self,
        registry: EditorRegistry,
        extractor: Extractor = extract,
        settle_delay: Optional[float] = None,
        component: Optional[str] = None,
    ) -> None:
        self._registry = registry
        self._extractor = extractor
        self._settle_delay = settings.settle_delay if settle_delay is None else settle_delay
        self._component = component or settings.editor_component
        self._tasks: set[asyncio.Task[EnrichmentResult]] = set()

    # ------------------------------------------------------------------
    # Background entry point
    # ------------------------------------------------------------------

    def spawn(self, bookmark_id: int, created: CreatedBookmark) -> asyncio.Task[EnrichmentResult]:
        """Start ``enrich`` as an independent task and return immediately."""
        task = asyncio.get_running_loop().create_task(
            self.enrich(bookmark_id, created), name=f"enrich-bookmark-{bookmark_id}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    async def drain(self) -> None:
        """Wait for every running enrichment task to finish."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    def _task_done(self, task: asyncio.Task[EnrichmentResult]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Enrichment task %s crashed", task.get_name(), exc_info=exc)

    # ------------------------------------------------------------------
    # Sequence
    # ------------------------------------------------------------------

    async def enrich(self, bookmark_id: int, created: CreatedBookmark) -> EnrichmentResult:
        result = EnrichmentResult(bookmark_id=bookmark_id)
        logger.info("Starting update attempt for bookmark %s (%s)", bookmark_id, created.url)

        try:
            editor = self._registry.lookup(self._component)
        except ComponentNotFoundError as exc:
            logger.error("Aborting enrichment of bookmark %s: %s", bookmark_id, exc)
            result.aborted = str(exc)
            return result

        try:
            urldata = await self._extractor(created.url)
        except (FetchError, ParseError) as exc:
            logger.error("Aborting enrichment of bookmark %s: %s", bookmark_id, exc)
            result.aborted = str(exc)
            return result

        try:
            editor.url = created.url
            await editor.validate_basic_url()
        except Exception as exc:
            logger.error("Aborting enrichment of bookmark %s: %s", bookmark_id, exc)
            result.aborted = str(exc)
            return result

        await self._run_step(
            result,
            "thumbnail",
            urldata.thumbnail,
            lambda value: self._update_thumbnail(editor, created, value),
            settle=True,
        )
        await self._run_step(
            result,
            "title",
            urldata.title,
            lambda value: self._update_title(editor, bookmark_id, created, value),
            settle=True,
        )
        await self._run_step(
            result,
            "description",
            urldata.description,
            lambda value: self._update_description(editor, bookmark_id, created, value),
        )

        logger.info("Finished updates for bookmark %s: %s", bookmark_id, result.steps)
        return result

    async def _run_step(
        self,
        result: EnrichmentResult,
        step: str,
        value: Optional[str],
        action: Callable[[str], Awaitable[None]],
        settle: bool = False,
    ) -> None:
        if not value:
            result.steps[step] = StepStatus.SKIPPED
            return

        logger.debug("Updating %s for bookmark %s", step, result.bookmark_id)
        try:
            await action(value)
        except Exception as exc:
            error = UpdateStepError(step, result.bookmark_id, exc)
            logger.warning("%s", error, exc_info=exc)
            result.steps[step] = StepStatus.FAILED
        else:
            result.steps[step] = StepStatus.SUCCEEDED

        if settle:
            await asyncio.sleep(self._settle_delay)

    async def _update_thumbnail(
        self, editor: BookmarkEditor, created: CreatedBookmark, thumbnail: str
    ) -> None:
        await editor.upload_thumbnail(created.url, thumbnail, THUMBNAIL_WORN)
        editor.commit(
            "eventSaveThumbChange",
            {"thumbnail": thumbnail, "thumbnail_worn": THUMBNAIL_WORN},
        )

    async def _update_title(
        self,
        editor: BookmarkEditor,
        bookmark_id: int,
        created: CreatedBookmark,
        title: str,
    ) -> None:
        editor.urlbookmark = {
            **editor.urlbookmark,
            "pk": bookmark_id,
            "url": created.url,
            "title": title,
            "rating": created.rating,
            "owner_notes": created.owner_notes,
        }
        await editor.edit_url_bookmark("title")

    async def _update_description(
        self, editor: BookmarkEditor, bookmark_id: int, created: CreatedBookmark, description: str
    ) -> None:
        editor.urlbookmark = {
            **editor.urlbookmark,
            "pk": bookmark_id,
            "url": created.url,
            "description": description,
        }
        await editor.edit_url_bookmark("description")
