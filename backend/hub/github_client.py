"""
GitHub API client (fallback README source).

Only used when Docker Hub has no README for an image. Requests are sent
anonymously unless a token is configured; an unset or blank token means
no Authorization header at all.
"""

import logging
from typing import Dict, Optional

from hub.http import http_get

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"


class GitHubClient:
    """Fetches repository READMEs as raw markdown."""

    def __init__(self, token: Optional[str] = None, base_url: str = GITHUB_API_URL,
                 request_timeout: float = 30.0):
        self.token = token.strip() if token and token.strip() else None
        self.base_url = base_url.rstrip("/")
        self.request_timeout = request_timeout

    @property
    def authenticated(self) -> bool:
        return self.token is not None

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/vnd.github.raw",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def fetch_readme(self, owner: str, repo: str) -> str:
        """
        Fetch the default-branch README of owner/repo.

        Returns:
            Raw README text

        Raises:
            NotFoundError, RateLimitedError, TransientNetworkError, UpstreamHTTPError
        """
        result = await http_get(
            f"{self.base_url}/repos/{owner}/{repo}/readme",
            resource=f"github:{owner}/{repo}",
            headers=self._headers(),
            timeout_s=self.request_timeout,
            as_json=False,
        )
        return result.unwrap()
