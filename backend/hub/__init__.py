"""
Hub Module

Docker Hub image lookups with caching, retries and a GitHub README fallback.

Architecture:
- DockerHubReadmeService: Cache -> Docker Hub -> GitHub fallback -> cache
- DockerHubClient / GitHubClient: single-request upstream clients
- run_with_retry: Exponential backoff around any zero-argument coroutine
"""

from hub.service import DockerHubReadmeService, make_cache_key
from hub.docker_hub_client import DockerHubClient
from hub.github_client import GitHubClient
from hub.retry import run_with_retry
from hub.types import RetryPolicy, FetchResult, FetchOutcome, ReadmeFallback, FallbackOutcome

__all__ = [
    'DockerHubReadmeService',
    'make_cache_key',
    'DockerHubClient',
    'GitHubClient',
    'run_with_retry',
    'RetryPolicy',
    'FetchResult',
    'FetchOutcome',
    'ReadmeFallback',
    'FallbackOutcome',
]
