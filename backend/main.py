#!/usr/bin/env python3
"""
Docker Hub README Service
Resolves Docker images to README, usage examples, tags and popularity stats

Docker Hub is the primary source; when an image has no README there, the
README of its linked GitHub repository is used instead. All lookups go
through a shared TTL/LRU cache and a retry/backoff policy.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from config.settings import AppConfig, setup_logging
from hub.docker_hub_client import DockerHubClient
from hub.github_client import GitHubClient
from hub.routes import router as hub_router, set_readme_service
from hub.service import DockerHubReadmeService
from utils.cache import CacheStore

# Configure logging
setup_logging()
logger = logging.getLogger(__name__)


def build_service() -> DockerHubReadmeService:
    """Wire the lookup service from configuration"""
    policy = AppConfig.retry_policy()
    request_timeout = policy.timeout_ms / 1000

    cache = CacheStore(
        capacity_bytes=AppConfig.CACHE_MAX_SIZE_BYTES,
        default_ttl_ms=AppConfig.CACHE_TTL_MS,
        sweep_interval_ms=AppConfig.CACHE_SWEEP_INTERVAL_MS,
    )
    return DockerHubReadmeService(
        docker_hub=DockerHubClient(request_timeout=request_timeout),
        github=GitHubClient(token=AppConfig.GITHUB_TOKEN, request_timeout=request_timeout),
        cache=cache,
        retry_policy=policy,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle"""
    # Startup
    # Validate configuration early to fail fast on misconfiguration
    AppConfig.validate()

    logger.info("Starting Docker Hub README service...")

    service = build_service()
    await service.cache.start()
    set_readme_service(service)

    if service.github.authenticated:
        logger.info("GitHub token configured; README fallback requests are authenticated")
    else:
        logger.info("No GitHub token configured; README fallback requests are anonymous")

    logger.info(
        f"Cache configured: capacity={AppConfig.CACHE_MAX_SIZE_BYTES} bytes, "
        f"ttl={AppConfig.CACHE_TTL_MS}ms"
    )

    yield
    # Shutdown
    logger.info("Shutting down Docker Hub README service...")

    set_readme_service(None)
    await service.close()
    await service.cache.stop()


app = FastAPI(
    title="Docker Hub README API",
    version="1.0.0",
    lifespan=lifespan
)


# Custom exception handler for Pydantic validation errors
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Custom handler for Pydantic validation errors.
    Returns user-friendly error messages with field-level details.
    """
    errors = []
    for error in exc.errors():
        field = " -> ".join(str(x) for x in error['loc'])
        errors.append({
            "field": field,
            "message": error['msg'],
            "type": error['type']
        })

    logger.warning(f"Validation failed for {request.url.path}: {errors}")

    return JSONResponse(
        status_code=422,
        content={
            "detail": "Invalid request data",
            "errors": errors
        }
    )


app.include_router(hub_router)


@app.get("/health")
async def health_check():
    """Liveness check"""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=AppConfig.HOST, port=AppConfig.PORT)
