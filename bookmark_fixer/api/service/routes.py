from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import Response

from bookmark_fixer.core.gateway import gateway
from bookmark_fixer.models.interception import EditSnapshot

router = APIRouter(prefix="/_fixer", tags=["service"])


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/diagnostics/last-edit",
    response_model=EditSnapshot,
    responses={204: {"description": "No edit captured this session"}},
    summary="Last successful bookmark edit seen by the interceptor",
)
async def last_edit() -> EditSnapshot | Response:
    snapshot = gateway.diagnostics.last_edit
    if snapshot is None:
        return Response(status_code=204)
    return snapshot
