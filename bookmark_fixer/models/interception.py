from __future__ import annotations

from datetime import datetime
from enum import Enum, IntEnum
from typing import Any, Callable, Optional

from pydantic import BaseModel, Field


class CallKind(str, Enum):
    PASS_THROUGH = "pass_through"
    METADATA_LOOKUP = "metadata_lookup"
    BOOKMARK_CREATE = "bookmark_create"
    FIELD_EDIT = "field_edit"


class CallState(str, Enum):
    OPENED = "opened"
    CLASSIFIED = "classified"
    COMPLETED = "completed"


class ReadyState(IntEnum):
    """Ready states reported by the host's request object."""

    UNSENT = 0
    OPENED = 1
    HEADERS_RECEIVED = 2
    LOADING = 3
    DONE = 4


#: Completion listener; receives the finished response.
Listener = Callable[[Any], Any]


class InterceptedCall(BaseModel):
    """Bookkeeping for one in-flight call.

    Owned by exactly one request object through ``CallTable`` and dropped
    when that call completes.  Never shared between calls.
    """

    target_url: str
    method: str
    kind: CallKind = CallKind.PASS_THROUGH
    matched: bool = False
    captured_headers: Optional[dict[str, str]] = None
    requested_url: Optional[str] = None
    state: CallState = CallState.OPENED
    ready_state: ReadyState = ReadyState.OPENED
    listeners: dict[str, list[Listener]] = Field(default_factory=dict)
    completed_events: bool = False

    def add_listener(self, event: str, listener: Listener) -> None:
        self.listeners.setdefault(event, []).append(listener)


class EditSnapshot(BaseModel):
    """Request/response pair of the last successful bookmark edit."""

    url: str
    method: str
    headers: dict[str, str]
    data: Optional[str] = None
    response: str
    captured_at: datetime
