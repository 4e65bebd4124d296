"""
Docker Hub API client (primary metadata source).

Endpoints (https://hub.docker.com/v2):
- /repositories/{namespace}/{name}/        image metadata incl. full_description (README)
- /repositories/{namespace}/{name}/tags/   tag list
- /search/repositories/                    repository search

Anonymous access is rate limited (~100 requests/hour); 429 responses are
surfaced as RateLimitedError for the retry executor.
"""

import logging
from typing import Any, Dict, Optional

from hub.errors import MalformedResponseError
from hub.http import http_get

logger = logging.getLogger(__name__)

DOCKER_HUB_API_URL = "https://hub.docker.com/v2"


class DockerHubClient:
    """Thin async client for the Docker Hub v2 API. One request per call, no retries."""

    def __init__(self, base_url: str = DOCKER_HUB_API_URL, request_timeout: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.request_timeout = request_timeout

    async def _get_json(self, path: str, resource: str, params: Optional[Dict[str, str]] = None) -> Any:
        result = await http_get(
            f"{self.base_url}{path}",
            resource=resource,
            headers={"Accept": "application/json"},
            params=params,
            timeout_s=self.request_timeout,
        )
        return result.unwrap()

    async def fetch_image_info(self, namespace: str, name: str) -> Dict[str, Any]:
        """
        Fetch repository metadata.

        Returns:
            Dict with keys such as name, namespace, description,
            full_description, star_count, pull_count, last_updated

        Raises:
            NotFoundError, RateLimitedError, TransientNetworkError,
            UpstreamHTTPError, MalformedResponseError
        """
        resource = f"{namespace}/{name}"
        payload = await self._get_json(f"/repositories/{namespace}/{name}/", resource)
        if not isinstance(payload, dict) or not isinstance(payload.get("name"), str):
            raise MalformedResponseError("Repository payload is missing 'name'", resource)
        return payload

    async def fetch_tags(self, namespace: str, name: str, page_size: int = 25) -> Dict[str, Any]:
        """Fetch the most recently pushed tags of a repository."""
        resource = f"{namespace}/{name}"
        payload = await self._get_json(
            f"/repositories/{namespace}/{name}/tags/",
            resource,
            params={"page_size": str(page_size), "ordering": "last_updated"},
        )
        if not isinstance(payload, dict) or not isinstance(payload.get("results"), list):
            raise MalformedResponseError("Tag payload is missing 'results'", resource)
        return payload

    async def search(
        self,
        query: str,
        page_size: int = 25,
        is_official: Optional[bool] = None,
        is_automated: Optional[bool] = None,
    ) -> Dict[str, Any]:
        """Search public repositories."""
        params = {"query": query, "page_size": str(page_size)}
        if is_official is not None:
            params["is_official"] = "true" if is_official else "false"
        if is_automated is not None:
            params["is_automated"] = "true" if is_automated else "false"

        resource = f"search:{query}"
        payload = await self._get_json("/search/repositories/", resource, params=params)
        if not isinstance(payload, dict) or not isinstance(payload.get("results"), list):
            raise MalformedResponseError("Search payload is missing 'results'", resource)
        return payload
