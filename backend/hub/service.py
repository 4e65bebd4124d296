"""
Docker Hub README lookup service.

Per lookup:

    CHECK_CACHE -> FETCH_PRIMARY -> [FETCH_FALLBACK] -> POPULATE_CACHE -> RETURN

1. The cache key covers the operation, image, tag and every requested
   field, so differently shaped requests never share an entry.
2. Docker Hub is queried through the retry executor. NotFoundError and
   other terminal errors propagate and nothing is cached.
3. If Docker Hub has no README, the repository link in the metadata is
   resolved to a GitHub owner/repo and its README fetched (also retried).
   The fallback is best effort: its outcome is recorded as a
   ReadmeFallback value and a failure only leaves readme_content empty.
4. The merged result is cached with the default TTL and returned.

Concurrent misses on the same key share one in-flight task. The task is
shielded from caller cancellation so a result that arrives after the
caller gave up still lands in the cache.

Usage:
    service = DockerHubReadmeService(DockerHubClient(), GitHubClient(token), cache, policy)
    result = await service.get_image_readme("nginx", include_examples=True)
"""

import asyncio
import logging
import re
from typing import Any, Awaitable, Callable, Dict, List, Optional

from hub.docker_hub_client import DockerHubClient
from hub.errors import HubError, MalformedResponseError
from hub.github_client import GitHubClient
from hub.image_ref import ImageReference, parse_image_reference
from hub.retry import run_with_retry
from hub.types import FallbackOutcome, ReadmeFallback, RetryPolicy
from hub.usage_examples import extract_usage_examples
from utils.cache import CacheStore
from utils.repo_url import resolve_repository

logger = logging.getLogger(__name__)

SUPPORTED_REPOSITORY_TYPES = {"git", "github"}
MAX_SEARCH_LIMIT = 100
DEFAULT_TAG_LIMIT = 25

_GITHUB_URL_PATTERN = re.compile(r'(?:https?://(?:www\.)?github\.com/|git@github\.com:)[^\s)\]>"\'<,]+')


def make_cache_key(operation: str, **params: Any) -> str:
    """
    Build a deterministic cache key from an operation name and its parameters.

    Example:
        >>> make_cache_key("readme", image="library/nginx", tag="latest", include_examples=True)
        'readme:image=library/nginx&include_examples=true&tag=latest'
    """
    parts = []
    for name in sorted(params):
        value = params[name]
        if isinstance(value, bool):
            value = "true" if value else "false"
        elif value is None:
            value = ""
        parts.append(f"{name}={value}")
    return f"{operation}:" + "&".join(parts)


def extract_repository_reference(info: Dict[str, Any]) -> Optional[Dict[str, str]]:
    """
    Find a source repository link in Docker Hub metadata.

    Prefers an explicit `repository` mapping ({"type": ..., "url": ...});
    otherwise takes the first GitHub URL in the short description.
    """
    repository = info.get("repository")
    if isinstance(repository, dict) and isinstance(repository.get("url"), str) and repository["url"].strip():
        return {"type": str(repository.get("type") or "git").lower(), "url": repository["url"].strip()}
    if isinstance(repository, str) and repository.strip():
        return {"type": "git", "url": repository.strip()}

    description = info.get("description")
    if isinstance(description, str):
        match = _GITHUB_URL_PATTERN.search(description)
        if match:
            return {"type": "github", "url": match.group(0).rstrip(".")}
    return None


def _optional_int(info: Dict[str, Any], field: str, resource: str) -> Optional[int]:
    value = info.get(field)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise MalformedResponseError(f"Field '{field}' is not an integer: {value!r}", resource)
    return value


def _optional_str(info: Dict[str, Any], field: str, resource: str) -> Optional[str]:
    """None for a missing, null or blank field; anything other than a string is malformed."""
    value = info.get(field)
    if value is None:
        return None
    if not isinstance(value, str):
        raise MalformedResponseError(f"Field '{field}' is not a string: {value!r}", resource)
    return value if value.strip() else None


class DockerHubReadmeService:
    """
    Cached, retried access to Docker Hub image metadata with GitHub README fallback.

    Args:
        docker_hub: Primary metadata client
        github: Fallback README client
        cache: Shared cache store (owned by the caller)
        retry_policy: Applied to every upstream request
        sleep: Backoff sleep, injected by tests
    """

    def __init__(
        self,
        docker_hub: DockerHubClient,
        github: GitHubClient,
        cache: CacheStore,
        retry_policy: RetryPolicy,
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.docker_hub = docker_hub
        self.github = github
        self.cache = cache
        self.retry_policy = retry_policy
        self._sleep = sleep
        self._inflight: Dict[str, asyncio.Task] = {}

    # ==================== Caller-facing operations ====================

    async def get_image_readme(self, image: str, tag: Optional[str] = None,
                               include_examples: bool = True) -> Dict[str, Any]:
        """
        README, usage examples and popularity stats for an image.

        A tag given in `image` is used unless `tag` overrides it.

        Raises:
            InvalidImageReference, NotFoundError, RetriesExhaustedError,
            UpstreamHTTPError, MalformedResponseError
        """
        ref = parse_image_reference(image).with_tag(tag)
        key = make_cache_key("readme", image=ref.repository, tag=ref.tag, include_examples=include_examples)
        return await self._cached(key, lambda: self._load_readme(ref, include_examples))

    async def get_image_info(self, image: str, include_tags: bool = True,
                             include_stats: bool = True) -> Dict[str, Any]:
        """Metadata, tag list and stats for an image."""
        ref = parse_image_reference(image)
        key = make_cache_key("info", image=ref.repository, include_tags=include_tags, include_stats=include_stats)
        return await self._cached(key, lambda: self._load_info(ref, include_tags, include_stats))

    async def search_images(self, query: str, limit: int = 20, is_official: Optional[bool] = None,
                            is_automated: Optional[bool] = None) -> Dict[str, Any]:
        """Search Docker Hub repositories."""
        query = (query or "").strip()
        if not query:
            raise ValueError("Search query cannot be empty")
        if limit < 1 or limit > MAX_SEARCH_LIMIT:
            raise ValueError(f"limit must be between 1 and {MAX_SEARCH_LIMIT}: {limit}")

        key = make_cache_key("search", query=query, limit=limit, is_official=is_official, is_automated=is_automated)
        return await self._cached(key, lambda: self._load_search(query, limit, is_official, is_automated))

    def invalidate_image(self, image: str) -> int:
        """Drop every cached readme/info entry for an image. Returns the count removed."""
        ref = parse_image_reference(image)
        marker = f"image={ref.repository}&"
        removed = 0
        for key in list(self.cache.keys()):
            if key.startswith(("readme:", "info:")) and marker in key:
                removed += int(self.cache.delete(key))
        if removed:
            logger.info(f"Invalidated {removed} cache entries for {ref.repository}")
        return removed

    async def close(self) -> None:
        """Cancel in-flight loads (application shutdown)."""
        tasks = list(self._inflight.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._inflight.clear()

    # ==================== Cache + coalescing ====================

    async def _cached(self, key: str, loader: Callable[[], Awaitable[Dict[str, Any]]]) -> Dict[str, Any]:
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.create_task(self._load_and_store(key, loader))
            self._inflight[key] = task
            task.add_done_callback(lambda done: self._finish_inflight(key, done))
        else:
            logger.debug(f"Joining in-flight lookup for {key}")

        return await asyncio.shield(task)

    async def _load_and_store(self, key: str, loader: Callable[[], Awaitable[Dict[str, Any]]]) -> Dict[str, Any]:
        result = await loader()
        self.cache.set(key, result)
        return result

    def _finish_inflight(self, key: str, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        # Mark the exception retrieved when every waiter was cancelled
        if not task.cancelled() and task.exception() is not None:
            logger.debug(f"Lookup for {key} failed: {task.exception()}")

    async def _retry(self, operation: Callable[[], Awaitable[Any]], description: str) -> Any:
        return await run_with_retry(operation, self.retry_policy, sleep=self._sleep, description=description)

    # ==================== Loaders ====================

    async def _load_readme(self, ref: ImageReference, include_examples: bool) -> Dict[str, Any]:
        info = await self._retry(lambda: self.docker_hub.fetch_image_info(ref.namespace, ref.name), ref.repository)

        readme = _optional_str(info, "full_description", ref.repository)
        readme_source = "docker_hub" if readme else None
        fallback: Optional[ReadmeFallback] = None

        if not readme:
            fallback = await self._fetch_fallback_readme(ref, info)
            if fallback.outcome is FallbackOutcome.FOUND:
                readme = fallback.content
                readme_source = "github"

        result: Dict[str, Any] = {
            "name": ref.display_name,
            "namespace": ref.namespace,
            "tag": ref.tag,
            "description": _optional_str(info, "description", ref.repository),
            "readme_content": readme,
            "readme_source": readme_source,
            "usage_examples": extract_usage_examples(readme) if include_examples else [],
            "stats": self._stats(info, ref.repository),
            "repository": extract_repository_reference(info),
            "readme_fallback": None,
        }
        if fallback is not None:
            result["readme_fallback"] = {
                "outcome": fallback.outcome.value,
                "reason": fallback.reason,
                "source_url": fallback.source_url,
            }
        return result

    async def _fetch_fallback_readme(self, ref: ImageReference, info: Dict[str, Any]) -> ReadmeFallback:
        reference = extract_repository_reference(info)
        if reference is None:
            logger.info(f"No README for {ref.repository} and no repository link to fall back to")
            return ReadmeFallback.skipped("no repository link in image metadata")

        if reference["type"] not in SUPPORTED_REPOSITORY_TYPES:
            logger.info(f"Skipping README fallback for {ref.repository}: unsupported repository type {reference['type']}")
            return ReadmeFallback.skipped(f"unsupported repository type: {reference['type']}")

        identity = resolve_repository(reference["url"])
        if identity is None:
            logger.info(f"Skipping README fallback for {ref.repository}: cannot resolve {reference['url']}")
            return ReadmeFallback.skipped(f"unresolvable repository url: {reference['url']}")

        source_url = identity.html_url()
        try:
            content = await self._retry(
                lambda: self.github.fetch_readme(identity.owner, identity.repo),
                f"github:{identity.full_name}",
            )
        except HubError as e:
            logger.info(f"README fallback for {ref.repository} failed: {e}")
            return ReadmeFallback.failed(str(e), source_url)

        if not isinstance(content, str) or not content.strip():
            return ReadmeFallback.failed("empty README", source_url)

        logger.info(f"Using GitHub README from {identity.full_name} for {ref.repository}")
        return ReadmeFallback.found(content, source_url)

    async def _load_info(self, ref: ImageReference, include_tags: bool, include_stats: bool) -> Dict[str, Any]:
        info = await self._retry(lambda: self.docker_hub.fetch_image_info(ref.namespace, ref.name), ref.repository)

        result: Dict[str, Any] = {
            "name": ref.display_name,
            "namespace": ref.namespace,
            "description": _optional_str(info, "description", ref.repository),
            "is_official": ref.is_official,
            "is_automated": bool(info.get("is_automated", False)),
            "last_updated": _optional_str(info, "last_updated", ref.repository),
            "tags": None,
            "stats": None,
        }
        if include_stats:
            result["stats"] = self._stats(info, ref.repository)
        if include_tags:
            payload = await self._retry(
                lambda: self.docker_hub.fetch_tags(ref.namespace, ref.name, DEFAULT_TAG_LIMIT),
                f"{ref.repository}/tags",
            )
            result["tags"] = [self._tag_summary(tag, ref.repository) for tag in payload["results"]]
        return result

    async def _load_search(self, query: str, limit: int, is_official: Optional[bool],
                           is_automated: Optional[bool]) -> Dict[str, Any]:
        payload = await self._retry(
            lambda: self.docker_hub.search(query, limit, is_official, is_automated),
            f"search:{query}",
        )
        resource = f"search:{query}"
        results: List[Dict[str, Any]] = []
        for item in payload["results"][:limit]:
            if not isinstance(item, dict) or not isinstance(item.get("repo_name"), str):
                raise MalformedResponseError("Search result is missing 'repo_name'", resource)
            results.append({
                "name": item["repo_name"],
                "description": _optional_str(item, "short_description", resource),
                "star_count": _optional_int(item, "star_count", resource),
                "pull_count": _optional_int(item, "pull_count", resource),
                "is_official": bool(item.get("is_official", False)),
                "is_automated": bool(item.get("is_automated", False)),
            })

        total = _optional_int(payload, "count", resource)
        if total is None:
            total = len(results)
        return {"query": query, "total": total, "results": results}

    # ==================== Helpers ====================

    @staticmethod
    def _stats(info: Dict[str, Any], resource: str) -> Dict[str, Any]:
        return {
            "pull_count": _optional_int(info, "pull_count", resource),
            "star_count": _optional_int(info, "star_count", resource),
            "last_updated": _optional_str(info, "last_updated", resource),
        }

    @staticmethod
    def _tag_summary(tag: Any, resource: str) -> Dict[str, Any]:
        if not isinstance(tag, dict) or not isinstance(tag.get("name"), str):
            raise MalformedResponseError("Tag entry is missing 'name'", resource)
        images = tag.get("images") if isinstance(tag.get("images"), list) else []
        architectures = sorted({
            image["architecture"] for image in images
            if isinstance(image, dict) and isinstance(image.get("architecture"), str)
        })
        return {
            "name": tag["name"],
            "size": _optional_int(tag, "full_size", resource),
            "last_updated": _optional_str(tag, "last_updated", resource),
            "digest": _optional_str(tag, "digest", resource),
            "architectures": architectures,
        }
