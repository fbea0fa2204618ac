from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class CreatedBookmark(BaseModel):
    """Body returned by the host after a bookmark is created.

    Only the keys the enrichment sequence reads are declared; anything
    else the host sends is kept but ignored.  The host may answer with
    the primary key alone; ``url`` is then taken from the creation
    request.
    """

    model_config = ConfigDict(extra="allow")

    pk: int
    url: Optional[str] = None
    rating: Optional[Any] = None
    owner_notes: Optional[str] = None
