"""Health and readiness probes."""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict:
    """Liveness probe -- always returns OK if the process is running."""
    return {"status": "ok"}


@router.get("/ready")
async def ready(request: Request) -> JSONResponse:
    """Readiness probe -- jobs can only run with both Redis and Docker up.

    Returns HTTP 200 when every backend answers, HTTP 503 otherwise.  The
    body lists each backend's state.
    """
    queue = getattr(request.app.state, "queue", None)
    runner = getattr(request.app.state, "runner", None)
    checks = {
        "redis": queue is not None and await queue.health_check(),
        "docker": runner is not None and await runner.health_check(),
    }
    if all(checks.values()):
        return JSONResponse(content={"status": "ready", **checks}, status_code=200)
    return JSONResponse(content={"status": "not_ready", **checks}, status_code=503)
