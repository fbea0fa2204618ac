from fastapi import APIRouter

from bookmark_fixer.api.proxy.routes import router as proxy_router
from bookmark_fixer.api.service.routes import router as service_router

router = APIRouter()
# Service routes first: the proxy route matches every path.
router.include_router(service_router)
router.include_router(proxy_router)
