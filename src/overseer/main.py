"""FastAPI application entry point.

Creates the app with a lifespan that initialises Redis, the job queue,
the Docker-backed phase runner, the grading pipeline, and a background
worker task.  Everything is stored in ``app.state`` and torn down cleanly
on shutdown.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import redis.asyncio as aioredis
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from overseer import __version__
from overseer.api import api_router
from overseer.config import Settings
from overseer.pipeline import JobPipeline
from overseer.queue import JobQueue
from overseer.sandbox import ContainerPhaseRunner
from overseer.worker import run_worker

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan -- set up and tear down shared resources.

    On startup:
        1. Load :class:`Settings` from the environment.
        2. Connect to Redis.
        3. Create :class:`JobQueue`, :class:`ContainerPhaseRunner` and
           :class:`JobPipeline`.
        4. Start a single background worker coroutine.

    On shutdown:
        1. Cancel the background worker.
        2. Close the Redis connection.
    """
    settings = Settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    logger.info("Starting overseer (log_level=%s)", settings.log_level)

    # ---- Redis -----------------------------------------------------------
    redis_client = aioredis.from_url(
        settings.redis_url,
        decode_responses=False,
    )
    queue = JobQueue(redis_client, settings)

    # ---- Pipeline --------------------------------------------------------
    runner = ContainerPhaseRunner(settings)
    pipeline = JobPipeline(settings, runner)

    app.state.settings = settings
    app.state.queue = queue
    app.state.runner = runner
    app.state.pipeline = pipeline

    # ---- Background worker -----------------------------------------------
    worker_task = asyncio.create_task(
        run_worker(queue=queue, pipeline=pipeline, settings=settings),
        name="grading-worker",
    )

    logger.info("Application startup complete")

    try:
        yield
    finally:
        logger.info("Shutting down overseer")

        worker_task.cancel()
        try:
            await worker_task
        except asyncio.CancelledError:
            pass

        await queue.close()

        logger.info("Shutdown complete")


# ---------------------------------------------------------------------------
# Application instance
# ---------------------------------------------------------------------------

app = FastAPI(
    title="overseer",
    description="Sandboxed two-phase execution of grading jobs.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=Settings().cors_allowed_origins,
    allow_credentials=False,
    allow_methods=["GET", "POST"],
    allow_headers=["Authorization", "Content-Type"],
)

app.include_router(api_router)
