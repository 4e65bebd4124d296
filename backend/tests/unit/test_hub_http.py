"""
Unit tests for the upstream HTTP layer (hub.http and the API clients).

aiohttp.ClientSession is replaced with a fake session so no test touches
the network.
"""

import asyncio
from unittest.mock import patch

import aiohttp
import pytest

from hub.docker_hub_client import DockerHubClient
from hub.errors import (
    MalformedResponseError,
    NotFoundError,
    RateLimitedError,
    TransientNetworkError,
    UpstreamHTTPError,
)
from hub.github_client import GitHubClient
from hub.http import USER_AGENT, http_get, parse_retry_after
from hub.service import DockerHubReadmeService
from hub.types import FetchOutcome, FetchResult


class FakeResponse:
    """Canned response; `raw` bytes are decoded strictly like aiohttp does for utf-8."""

    def __init__(self, status=200, body="", headers=None, raw=None):
        self.status = status
        self.headers = headers or {}
        self._body = body
        self._raw = raw

    async def text(self):
        if self._raw is not None:
            return self._raw.decode("utf-8")
        return self._body

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeSession:
    """Records GET calls and replays one canned response (or raises)."""

    def __init__(self, response=None, error=None):
        self.response = response or FakeResponse()
        self.error = error
        self.calls = []

    def get(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


@pytest.fixture
def fake_session():
    session = FakeSession()
    with patch("aiohttp.ClientSession", return_value=session):
        yield session


class TestHttpGet:
    """Response classification"""

    @pytest.mark.asyncio
    async def test_json_success(self, fake_session):
        fake_session.response = FakeResponse(200, '{"name": "nginx"}')

        result = await http_get("https://hub.example/x", resource="library/nginx")

        assert result.ok
        assert result.payload == {"name": "nginx"}
        url, kwargs = fake_session.calls[0]
        assert url == "https://hub.example/x"
        assert kwargs["headers"]["User-Agent"] == USER_AGENT
        assert kwargs["timeout"].total == 30.0

    @pytest.mark.asyncio
    async def test_text_success(self, fake_session):
        fake_session.response = FakeResponse(200, "# README")
        result = await http_get("https://x", resource="r", as_json=False)
        assert result.unwrap() == "# README"

    @pytest.mark.asyncio
    async def test_invalid_json(self, fake_session):
        fake_session.response = FakeResponse(200, "<html>")
        result = await http_get("https://x", resource="r")
        assert result.outcome is FetchOutcome.PERMANENT_FAILURE
        assert isinstance(result.error, MalformedResponseError)

    @pytest.mark.asyncio
    async def test_undecodable_body(self, fake_session):
        """A 2xx body that is not valid UTF-8 is a malformed response, not a crash"""
        fake_session.response = FakeResponse(200, raw=b"# Title\n\xff\xfe broken")

        result = await http_get("https://x", resource="github:acme/app", as_json=False)

        assert result.outcome is FetchOutcome.PERMANENT_FAILURE
        assert isinstance(result.error, MalformedResponseError)
        assert result.error.resource == "github:acme/app"

    @pytest.mark.asyncio
    async def test_undecodable_error_body_keeps_status(self, fake_session):
        fake_session.response = FakeResponse(503, raw=b"\xff\xfe")
        result = await http_get("https://x", resource="r")
        assert isinstance(result.error, TransientNetworkError)
        assert result.error.status == 503

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,outcome,error_type", [
        (404, FetchOutcome.NOT_FOUND, NotFoundError),
        (429, FetchOutcome.TRANSIENT_FAILURE, RateLimitedError),
        (500, FetchOutcome.TRANSIENT_FAILURE, TransientNetworkError),
        (503, FetchOutcome.TRANSIENT_FAILURE, TransientNetworkError),
        (401, FetchOutcome.PERMANENT_FAILURE, UpstreamHTTPError),
        (403, FetchOutcome.PERMANENT_FAILURE, UpstreamHTTPError),
    ])
    async def test_status_mapping(self, fake_session, status, outcome, error_type):
        fake_session.response = FakeResponse(status, "nope")

        result = await http_get("https://x", resource="library/nginx")

        assert result.outcome is outcome
        assert type(result.error) is error_type
        assert result.error.status == status
        assert result.error.resource == "library/nginx"

    @pytest.mark.asyncio
    async def test_retry_after_header(self, fake_session):
        fake_session.response = FakeResponse(429, "", {"Retry-After": "60"})
        result = await http_get("https://x", resource="r")
        assert result.error.retry_after == 60

    @pytest.mark.asyncio
    async def test_github_quota_exhausted(self, fake_session):
        """403 with no remaining quota is a rate limit, not a permission error"""
        fake_session.response = FakeResponse(403, "", {"X-RateLimit-Remaining": "0"})
        result = await http_get("https://x", resource="github:a/b")
        assert isinstance(result.error, RateLimitedError)
        assert result.error.retryable

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [
        asyncio.TimeoutError(),
        aiohttp.ClientConnectionError("connection reset"),
    ])
    async def test_network_errors_are_transient(self, fake_session, error):
        fake_session.error = error
        result = await http_get("https://x", resource="r")
        assert result.outcome is FetchOutcome.TRANSIENT_FAILURE
        assert isinstance(result.error, TransientNetworkError)


class TestFetchResult:
    """Tagged result helpers"""

    def test_unwrap_success(self):
        assert FetchResult.success({"a": 1}).unwrap() == {"a": 1}

    def test_unwrap_failure_raises(self):
        error = NotFoundError("Not found", "x", 404)
        with pytest.raises(NotFoundError):
            FetchResult.from_error(error).unwrap()

    @pytest.mark.parametrize("value,expected", [
        ("120", 120.0),
        ("0", 0.0),
        (None, None),
        ("", None),
        ("-5", None),
        ("Wed, 21 Oct 2015 07:28:00 GMT", None),
    ])
    def test_parse_retry_after(self, value, expected):
        assert parse_retry_after(value) == expected


class TestDockerHubClient:
    """Docker Hub endpoints and payload checks"""

    @pytest.mark.asyncio
    async def test_fetch_image_info(self, fake_session):
        fake_session.response = FakeResponse(200, '{"name": "nginx", "star_count": 1}')
        client = DockerHubClient(base_url="https://hub.example/v2/")

        info = await client.fetch_image_info("library", "nginx")

        assert info["star_count"] == 1
        assert fake_session.calls[0][0] == "https://hub.example/v2/repositories/library/nginx/"

    @pytest.mark.asyncio
    async def test_fetch_image_info_missing_name(self, fake_session):
        fake_session.response = FakeResponse(200, "[]")
        with pytest.raises(MalformedResponseError):
            await DockerHubClient().fetch_image_info("library", "nginx")

    @pytest.mark.asyncio
    async def test_fetch_image_info_not_found(self, fake_session):
        fake_session.response = FakeResponse(404, '{"message": "object not found"}')
        with pytest.raises(NotFoundError):
            await DockerHubClient().fetch_image_info("library", "nope")

    @pytest.mark.asyncio
    async def test_fetch_tags(self, fake_session):
        fake_session.response = FakeResponse(200, '{"count": 0, "results": []}')

        await DockerHubClient().fetch_tags("library", "nginx", page_size=10)

        url, kwargs = fake_session.calls[0]
        assert url.endswith("/repositories/library/nginx/tags/")
        assert kwargs["params"] == {"page_size": "10", "ordering": "last_updated"}

    @pytest.mark.asyncio
    async def test_search_filters(self, fake_session):
        fake_session.response = FakeResponse(200, '{"count": 0, "results": []}')

        await DockerHubClient().search("redis", page_size=5, is_official=True, is_automated=False)

        _, kwargs = fake_session.calls[0]
        assert kwargs["params"] == {
            "query": "redis",
            "page_size": "5",
            "is_official": "true",
            "is_automated": "false",
        }

    @pytest.mark.asyncio
    async def test_search_missing_results(self, fake_session):
        fake_session.response = FakeResponse(200, '{"count": 0}')
        with pytest.raises(MalformedResponseError):
            await DockerHubClient().search("redis")


class TestGitHubClient:
    """README endpoint and authentication header"""

    def test_anonymous_headers(self):
        client = GitHubClient()
        headers = client._headers()
        assert not client.authenticated
        assert "Authorization" not in headers
        assert headers["Accept"] == "application/vnd.github.raw"

    @pytest.mark.parametrize("token", [None, "", "   "])
    def test_blank_token_means_anonymous(self, token):
        assert "Authorization" not in GitHubClient(token=token)._headers()

    def test_token_header(self):
        client = GitHubClient(token=" ghp_abc ")
        assert client.authenticated
        assert client._headers()["Authorization"] == "Bearer ghp_abc"

    @pytest.mark.asyncio
    async def test_fetch_readme(self, fake_session):
        fake_session.response = FakeResponse(200, "# react")

        content = await GitHubClient(token="t").fetch_readme("facebook", "react")

        assert content == "# react"
        url, kwargs = fake_session.calls[0]
        assert url == "https://api.github.com/repos/facebook/react/readme"
        assert kwargs["headers"]["Authorization"] == "Bearer t"

    @pytest.mark.asyncio
    async def test_fetch_readme_not_found(self, fake_session):
        fake_session.response = FakeResponse(404, '{"message": "Not Found"}')
        with pytest.raises(NotFoundError) as exc_info:
            await GitHubClient().fetch_readme("facebook", "nope")
        assert exc_info.value.resource == "github:facebook/nope"

    @pytest.mark.asyncio
    async def test_fetch_readme_undecodable(self, fake_session):
        fake_session.response = FakeResponse(200, raw=b"# Title\n\xff\xfe broken")
        with pytest.raises(MalformedResponseError):
            await GitHubClient().fetch_readme("acme", "app")


class TestFallbackThroughHttp:
    """README fallback over the real GitHub client"""

    @pytest.mark.asyncio
    async def test_undecodable_github_readme_does_not_fail_lookup(
        self, fake_session, docker_hub, cache, fast_policy, no_sleep, nginx_info
    ):
        docker_hub.fetch_image_info.return_value = dict(
            nginx_info,
            full_description="",
            repository={"type": "git", "url": "https://github.com/acme/app"},
        )
        fake_session.response = FakeResponse(200, raw=b"# Title\n\xff\xfe broken")
        service = DockerHubReadmeService(docker_hub, GitHubClient(), cache, fast_policy, sleep=no_sleep)

        result = await service.get_image_readme("acme/app")

        assert result["readme_content"] is None
        assert result["readme_fallback"]["outcome"] == "failed"
        assert result["readme_fallback"]["source_url"] == "https://github.com/acme/app"
        assert len(fake_session.calls) == 1
