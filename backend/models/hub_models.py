"""
Docker Hub Models for the README lookup API

Pydantic models for query validation and response shapes.
Response models mirror the dicts produced by hub.service so cached and
fresh results serialize identically.
"""

import re
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


# =============================================================================
# Shared Validation Helpers
# =============================================================================

_IMAGE_CHARS = re.compile(r'^[A-Za-z0-9._/:@-]+$')


def _validate_image(v: str) -> str:
    """Reject characters that can never appear in an image reference."""
    v = v.strip()
    if not v:
        raise ValueError('Image name cannot be empty')
    if not _IMAGE_CHARS.match(v):
        raise ValueError('Image name contains invalid characters')
    return v


# =============================================================================
# Request Models
# =============================================================================

class ImageReadmeQuery(BaseModel):
    """Query for an image README"""
    image: str = Field(..., min_length=1, max_length=255)
    tag: Optional[str] = Field(None, max_length=128, pattern=r'^[A-Za-z0-9_][A-Za-z0-9_.-]*$')
    include_examples: bool = True

    @field_validator('image')
    @classmethod
    def validate_image(cls, v: str) -> str:
        return _validate_image(v)


class ImageInfoQuery(BaseModel):
    """Query for image metadata"""
    image: str = Field(..., min_length=1, max_length=255)
    include_tags: bool = True
    include_stats: bool = True

    @field_validator('image')
    @classmethod
    def validate_image(cls, v: str) -> str:
        return _validate_image(v)


class SearchQuery(BaseModel):
    """Query for repository search"""
    query: str = Field(..., min_length=1, max_length=200)
    limit: int = Field(20, ge=1, le=100)
    is_official: Optional[bool] = None
    is_automated: Optional[bool] = None

    @field_validator('query')
    @classmethod
    def validate_query(cls, v: str) -> str:
        if not v.strip():
            raise ValueError('Search query cannot be empty')
        return v.strip()


# =============================================================================
# Response Models
# =============================================================================

class ImageStats(BaseModel):
    """Popularity statistics"""
    pull_count: Optional[int] = None
    star_count: Optional[int] = None
    last_updated: Optional[str] = None


class UsageExample(BaseModel):
    """Runnable example extracted from a README"""
    title: str
    description: Optional[str] = None
    code: str
    language: str


class RepositoryLink(BaseModel):
    """Source repository referenced by the image"""
    type: str
    url: str


class ReadmeFallbackInfo(BaseModel):
    """What happened when Docker Hub had no README"""
    outcome: str
    reason: Optional[str] = None
    source_url: Optional[str] = None


class ImageReadmeResponse(BaseModel):
    """Response model for image README lookups"""
    name: str
    namespace: str
    tag: str
    description: Optional[str] = None
    readme_content: Optional[str] = None
    readme_source: Optional[str] = None
    usage_examples: List[UsageExample] = Field(default_factory=list)
    stats: ImageStats
    repository: Optional[RepositoryLink] = None
    readme_fallback: Optional[ReadmeFallbackInfo] = None


class TagInfo(BaseModel):
    """Single image tag"""
    name: str
    size: Optional[int] = None
    last_updated: Optional[str] = None
    digest: Optional[str] = None
    architectures: List[str] = Field(default_factory=list)


class ImageInfoResponse(BaseModel):
    """Response model for image metadata lookups"""
    name: str
    namespace: str
    description: Optional[str] = None
    is_official: bool
    is_automated: bool
    last_updated: Optional[str] = None
    tags: Optional[List[TagInfo]] = None
    stats: Optional[ImageStats] = None


class SearchResult(BaseModel):
    """Single search hit"""
    name: str
    description: Optional[str] = None
    star_count: Optional[int] = None
    pull_count: Optional[int] = None
    is_official: bool = False
    is_automated: bool = False


class SearchResponse(BaseModel):
    """Response model for repository search"""
    query: str
    total: int
    results: List[SearchResult]


class CacheStatsResponse(BaseModel):
    """Response model for cache statistics"""
    entries: int
    size_bytes: int
    capacity_bytes: int
    hits: int
    misses: int
    evictions: int
    expirations: int
    hit_rate: float
