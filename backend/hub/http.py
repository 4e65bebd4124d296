"""
Single-request HTTP helper shared by the upstream clients.

Performs one GET and turns the response into a FetchResult; it never
retries (see hub.retry) and never raises for HTTP-level failures.
"""

import asyncio
import json
import logging
from typing import Dict, Optional

import aiohttp

from hub.errors import MalformedResponseError, RateLimitedError, TransientNetworkError, error_for_status
from hub.types import FetchResult

logger = logging.getLogger(__name__)

USER_AGENT = "docker-hub-readme/1.0"


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Parse a Retry-After header given in seconds."""
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


async def http_get(
    url: str,
    *,
    resource: str,
    headers: Optional[Dict[str, str]] = None,
    params: Optional[Dict[str, str]] = None,
    timeout_s: float = 30.0,
    as_json: bool = True,
) -> FetchResult:
    """
    GET url and classify the outcome.

    Args:
        url: Absolute URL
        resource: Human-readable resource name for errors (e.g., "library/nginx")
        headers: Request headers
        params: Query parameters
        timeout_s: Total request timeout
        as_json: Decode the body as JSON (otherwise return text)

    Returns:
        FetchResult with the decoded body on 2xx, or a classified error
    """
    request_headers = {"User-Agent": USER_AGENT}
    if headers:
        request_headers.update(headers)

    try:
        async with aiohttp.ClientSession() as session:
            async with session.get(
                url,
                headers=request_headers,
                params=params,
                timeout=aiohttp.ClientTimeout(total=timeout_s),
            ) as response:
                try:
                    body = await response.text()
                except UnicodeDecodeError as e:
                    if 200 <= response.status < 300:
                        logger.error(f"Undecodable body from {url}: {e}")
                        return FetchResult.from_error(
                            MalformedResponseError(f"Response is not valid text: {e}", resource, response.status)
                        )
                    # Error bodies are only used for the message
                    body = ""

                if 200 <= response.status < 300:
                    if not as_json:
                        return FetchResult.success(body)
                    try:
                        return FetchResult.success(json.loads(body))
                    except ValueError as e:
                        logger.error(f"Invalid JSON from {url}: {e}")
                        return FetchResult.from_error(
                            MalformedResponseError(f"Invalid JSON: {e}", resource, response.status)
                        )

                retry_after = parse_retry_after(response.headers.get("Retry-After"))

                # GitHub signals an exhausted quota with 403 instead of 429
                if response.status == 403 and response.headers.get("X-RateLimit-Remaining") == "0":
                    logger.warning(f"Rate limit exhausted for {url}")
                    return FetchResult.from_error(
                        RateLimitedError("Rate limit exhausted", resource, response.status, retry_after=retry_after)
                    )

                if response.status == 429:
                    logger.warning(f"Rate limited by upstream: {url}")
                elif response.status == 404:
                    logger.debug(f"Not found: {url}")
                else:
                    logger.warning(f"Upstream returned {response.status} for {url}")

                return FetchResult.from_error(
                    error_for_status(response.status, resource, body, retry_after=retry_after)
                )

    except asyncio.TimeoutError:
        logger.warning(f"Timeout fetching {url}")
        return FetchResult.from_error(TransientNetworkError(f"Timeout after {timeout_s}s", resource))
    except aiohttp.ClientError as e:
        logger.warning(f"Network error fetching {url}: {e}")
        return FetchResult.from_error(TransientNetworkError(f"Network error: {e}", resource))
