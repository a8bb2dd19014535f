"""FastAPI application entry point with lifespan management."""

import logging
from contextlib import asynccontextmanager

import redis
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from forkcast.api.routes import error_response, router
from forkcast.config import settings
from forkcast.services.llm import llm_service
from forkcast.services.providers import provider_client
from forkcast.services.redis_connector import redis_connector

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application startup and shutdown."""
    logger.info("Starting food recommendation service...")

    llm_service.initialize()
    logger.info("LLM service initialized")

    # The cache is optional; a store that is down only costs cache misses.
    try:
        await redis_connector.acquire()
    except (redis.RedisError, OSError, ValueError) as e:
        logger.error(f"Failed to connect to Redis, continuing without cache: {e}")

    logger.info("Food recommendation service started successfully")

    yield

    logger.info("Shutting down food recommendation service...")
    await provider_client.close()
    await redis_connector.release()
    logger.info("Food recommendation service stopped")


app = FastAPI(
    title="Forkcast API",
    description="Weather- and location-aware dish recommendations backed by an LLM",
    version="1.0.0",
    lifespan=lifespan,
)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report schema violations as 400 with field-level detail."""
    details = [
        {
            "loc": [str(part) for part in error.get("loc", ())],
            "msg": error.get("msg"),
            "type": error.get("type"),
        }
        for error in exc.errors()
    ]
    return error_response(400, "Invalid request data", details)


# Include API routes
app.include_router(router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("forkcast.main:app", host="0.0.0.0", port=8000)
