"""
Shared pytest fixtures for Docker Hub README service tests.

Fixtures provided:
- fake_clock: Manually advanced millisecond clock for cache tests
- cache: CacheStore driven by fake_clock
- fast_policy: RetryPolicy with tiny delays and timeouts
- no_sleep: Backoff sleep that records delays instead of waiting
- docker_hub: AsyncMock of DockerHubClient
- github: AsyncMock of GitHubClient
- service: DockerHubReadmeService wired from the fixtures above
- nginx_info / tags_payload / search_payload: Sample Docker Hub payloads

Note: No test talks to the network; upstream clients are always mocked.
"""

import pytest
import os
import sys
from unittest.mock import AsyncMock

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from hub.docker_hub_client import DockerHubClient
from hub.github_client import GitHubClient
from hub.service import DockerHubReadmeService
from hub.types import RetryPolicy
from utils.cache import CacheStore


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class RecordingSleep:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.delays = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def cache(fake_clock):
    """1MB cache, 1 second default TTL, driven by the fake clock."""
    return CacheStore(capacity_bytes=1024 * 1024, default_ttl_ms=1000, clock=fake_clock)


@pytest.fixture
def fast_policy():
    return RetryPolicy(max_attempts=3, base_delay_ms=100, backoff_multiplier=2.0, timeout_ms=1000)


@pytest.fixture
def no_sleep():
    return RecordingSleep()


@pytest.fixture
def docker_hub():
    return AsyncMock(spec=DockerHubClient)


@pytest.fixture
def github():
    return AsyncMock(spec=GitHubClient)


@pytest.fixture
def service(docker_hub, github, cache, fast_policy, no_sleep):
    return DockerHubReadmeService(docker_hub, github, cache, fast_policy, sleep=no_sleep)


@pytest.fixture
def nginx_readme():
    return (
        "# Quick reference\n"
        "\n"
        "Maintained by the NGINX Docker Maintainers.\n"
        "\n"
        "## How to use this image\n"
        "\n"
        "Start a static site:\n"
        "\n"
        "```console\n"
        "$ docker run --name some-nginx -d -p 8080:80 nginx\n"
        "```\n"
        "\n"
        "## Using compose\n"
        "\n"
        "```yaml\n"
        "services:\n"
        "  web:\n"
        "    image: nginx\n"
        "```\n"
    )


@pytest.fixture
def nginx_info(nginx_readme):
    """Trimmed /v2/repositories/library/nginx/ payload"""
    return {
        "user": "library",
        "name": "nginx",
        "namespace": "library",
        "repository_type": "image",
        "description": "Official build of Nginx.",
        "is_private": False,
        "is_automated": False,
        "star_count": 20000,
        "pull_count": 1000000000,
        "last_updated": "2025-01-10T12:00:00.000000Z",
        "full_description": nginx_readme,
    }


@pytest.fixture
def tags_payload():
    """Trimmed /v2/repositories/library/nginx/tags/ payload"""
    return {
        "count": 2,
        "results": [
            {
                "name": "latest",
                "full_size": 67000000,
                "last_updated": "2025-01-10T12:00:00.000000Z",
                "digest": "sha256:aaa",
                "images": [
                    {"architecture": "amd64", "os": "linux"},
                    {"architecture": "arm64", "os": "linux"},
                ],
            },
            {
                "name": "1.27-alpine",
                "full_size": 20000000,
                "last_updated": "2025-01-09T12:00:00.000000Z",
                "digest": "sha256:bbb",
                "images": [{"architecture": "amd64", "os": "linux"}],
            },
        ],
    }


@pytest.fixture
def search_payload():
    """Trimmed /v2/search/repositories/ payload"""
    return {
        "count": 1234,
        "results": [
            {
                "repo_name": "nginx",
                "short_description": "Official build of Nginx.",
                "star_count": 20000,
                "pull_count": 1000000000,
                "repo_owner": "",
                "is_automated": False,
                "is_official": True,
            },
            {
                "repo_name": "bitnami/nginx",
                "short_description": "Bitnami nginx Docker Image",
                "star_count": 190,
                "pull_count": 50000000,
                "repo_owner": "",
                "is_automated": True,
                "is_official": False,
            },
        ],
    }
