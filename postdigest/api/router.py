from __future__ import annotations

from fastapi import APIRouter

from postdigest.api.routers import runs, scrape

router = APIRouter(prefix="/api/v1")
router.include_router(scrape.router)
router.include_router(runs.router)
