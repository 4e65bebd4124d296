"""
Docker Hub lookup API routes

Provides REST endpoints over DockerHubReadmeService:
- Image README with usage examples
- Image metadata with tags and stats
- Repository search
- Cache statistics and invalidation

Upstream failures are mapped to HTTP errors:
    NotFoundError                       -> 404
    RateLimitedError, RetriesExhausted  -> 503
    Malformed / other upstream errors   -> 502
    Invalid image reference             -> 400
"""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, HTTPException, Query

from hub.errors import (
    HubError,
    InvalidImageReference,
    NotFoundError,
    RateLimitedError,
    RetriesExhaustedError,
)
from hub.service import DockerHubReadmeService
from models.hub_models import (
    CacheStatsResponse,
    ImageInfoQuery,
    ImageInfoResponse,
    ImageReadmeQuery,
    ImageReadmeResponse,
    SearchQuery,
    SearchResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["images"])

# Module-level service reference (set during application startup)
_service: Optional[DockerHubReadmeService] = None


def set_readme_service(service: Optional[DockerHubReadmeService]) -> None:
    """Set the service reference."""
    global _service
    _service = service


def _get_service() -> DockerHubReadmeService:
    if _service is None:
        raise HTTPException(status_code=503, detail="Service not initialized")
    return _service


def _to_http_exception(e: Exception) -> HTTPException:
    """Translate a lookup failure into a user-facing HTTP error"""
    if isinstance(e, InvalidImageReference):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=f"Not found: {e.resource or e.message}")
    if isinstance(e, RateLimitedError):
        headers = {"Retry-After": str(int(e.retry_after))} if e.retry_after else None
        return HTTPException(status_code=503, detail=f"Upstream rate limit reached: {e}", headers=headers)
    if isinstance(e, RetriesExhaustedError):
        return HTTPException(status_code=503, detail=f"Upstream unavailable: {e}")
    if isinstance(e, HubError):
        return HTTPException(status_code=502, detail=f"Upstream error: {e}")
    if isinstance(e, ValueError):
        return HTTPException(status_code=400, detail=str(e))
    return HTTPException(status_code=500, detail="Internal error")


@router.get("/images/readme", response_model=ImageReadmeResponse)
async def get_image_readme(params: Annotated[ImageReadmeQuery, Query()]):
    """README, usage examples and stats for an image"""
    service = _get_service()
    try:
        return await service.get_image_readme(params.image, params.tag, params.include_examples)
    except (HubError, ValueError) as e:
        logger.warning(f"README lookup failed for {params.image}: {e}")
        raise _to_http_exception(e)


@router.get("/images/info", response_model=ImageInfoResponse)
async def get_image_info(params: Annotated[ImageInfoQuery, Query()]):
    """Metadata, tags and stats for an image"""
    service = _get_service()
    try:
        return await service.get_image_info(params.image, params.include_tags, params.include_stats)
    except (HubError, ValueError) as e:
        logger.warning(f"Info lookup failed for {params.image}: {e}")
        raise _to_http_exception(e)


@router.get("/images/search", response_model=SearchResponse)
async def search_images(params: Annotated[SearchQuery, Query()]):
    """Search Docker Hub repositories"""
    service = _get_service()
    try:
        return await service.search_images(params.query, params.limit, params.is_official, params.is_automated)
    except (HubError, ValueError) as e:
        logger.warning(f"Search failed for '{params.query}': {e}")
        raise _to_http_exception(e)


@router.get("/cache/stats", response_model=CacheStatsResponse)
async def get_cache_stats():
    """Current cache counters"""
    stats = _get_service().cache.stats()
    return CacheStatsResponse(
        entries=stats.entries,
        size_bytes=stats.size_bytes,
        capacity_bytes=stats.capacity_bytes,
        hits=stats.hits,
        misses=stats.misses,
        evictions=stats.evictions,
        expirations=stats.expirations,
        hit_rate=stats.hit_rate,
    )


@router.delete("/cache")
async def clear_cache():
    """Drop every cached lookup"""
    service = _get_service()
    count = len(service.cache)
    service.cache.clear()
    return {"cleared": count}


@router.delete("/cache/images")
async def invalidate_image(image: str = Query(..., min_length=1, max_length=255)):
    """Drop cached README and info lookups for one image"""
    service = _get_service()
    try:
        removed = service.invalidate_image(image)
    except ValueError as e:
        raise _to_http_exception(e)
    return {"image": image, "removed": removed}
