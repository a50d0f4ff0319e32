"""HTTP surface: health probes and job submission."""

from fastapi import APIRouter

from overseer.api.health import router as health_router
from overseer.api.jobs import router as jobs_router

api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(jobs_router)

__all__ = ["api_router"]
