"""FastAPI application for the character image library."""

import logging
from contextlib import AsyncExitStack, asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .arq_pool import close_pool, open_pool
from .config import LOG_FORMAT, LOG_LEVEL, get_redis_settings
from .logging import configure_logging
from .routes import characters, jobs
from .services.smart_generation import build_generation_service

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    configure_logging(json_format=LOG_FORMAT == "json", level=getattr(logging, LOG_LEVEL, logging.INFO))

    async with AsyncExitStack() as stack:
        # Startup: clients, asset store (only if the services are configured)
        app.state.generation_service = await build_generation_service(stack)

        redis_settings = get_redis_settings()
        if redis_settings is not None:
            await open_pool(redis_settings)
            stack.push_async_callback(close_pool)
        else:
            logger.warning("REDIS_URL not set - background jobs disabled")

        yield

        # Shutdown: stack closes the pool, clients and database
        app.state.generation_service = None


app = FastAPI(
    title="Character Library API",
    description="""
Generate new images of a character that stay consistent with its reference library.

## Features
- **Reference selection**: Picks the best reference image for the prompt (master, core set, generated)
- **Validation**: Every candidate is scored for quality and consistency before it is accepted
- **Retry**: Rejected candidates are retried with a different reference, up to `max_attempts`

## Workflow
1. POST `/characters/{id}/generate-smart-image` and wait for the result, or
2. POST `/characters/{id}/generate-smart-image/jobs` and poll GET `/jobs/{job_id}`
3. Inspect every attempt via GET `/generations/{request_id}/attempts`
    """,
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware for web frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, specify exact origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(characters.router, prefix="/characters", tags=["Characters"])
app.include_router(jobs.router, tags=["Jobs"])


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
