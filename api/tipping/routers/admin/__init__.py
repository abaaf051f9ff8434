"""Admin endpoints, all behind the X-API-Key guard."""

from fastapi import APIRouter, Depends

from ...dependencies.auth import verify_api_key
from . import logs, scheduler

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(verify_api_key)])
router.include_router(scheduler.router)
router.include_router(logs.router)
