"""
Error taxonomy for Docker Hub lookups.

Every upstream failure is raised as a HubError subclass carrying the
resource that was being fetched and, where one exists, the HTTP status.
The `retryable` class attribute drives the retry executor:

- NotFoundError          terminal (404)
- RateLimitedError       retryable (429)
- TransientNetworkError  retryable (timeouts, connection errors, 408, 5xx)
- UpstreamHTTPError      terminal (other 4xx)
- MalformedResponseError terminal (unexpected payload shape)
- RetriesExhaustedError  terminal (wraps the last retryable cause)
"""

from typing import Optional


class HubError(Exception):
    """Base class for upstream lookup failures."""

    retryable = False

    def __init__(self, message: str, resource: Optional[str] = None, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.resource = resource
        self.status = status

    def __str__(self) -> str:
        parts = [self.message]
        if self.resource:
            parts.append(f"resource={self.resource}")
        if self.status is not None:
            parts.append(f"status={self.status}")
        return " ".join(parts)


class NotFoundError(HubError):
    """The requested image, tag or repository does not exist."""


class RateLimitedError(HubError):
    """Upstream answered 429 Too Many Requests."""

    retryable = True

    def __init__(self, message: str, resource: Optional[str] = None,
                 status: Optional[int] = 429, retry_after: Optional[float] = None):
        super().__init__(message, resource, status)
        self.retry_after = retry_after


class TransientNetworkError(HubError):
    """Timeout, connection reset, 408 or 5xx."""

    retryable = True


class UpstreamHTTPError(HubError):
    """Non-retryable HTTP error (4xx other than 404/408/429)."""


class MalformedResponseError(HubError):
    """Upstream returned a payload we cannot interpret."""


class RetriesExhaustedError(HubError):
    """All retry attempts failed with retryable errors."""

    def __init__(self, last_error: BaseException, attempts: int, resource: Optional[str] = None):
        status = getattr(last_error, "status", None)
        resource = resource or getattr(last_error, "resource", None)
        super().__init__(
            f"Giving up after {attempts} attempts: {last_error}",
            resource=resource,
            status=status,
        )
        self.last_error = last_error
        self.attempts = attempts


class InvalidImageReference(ValueError):
    """The image name cannot be parsed into namespace/name[:tag]."""


def error_for_status(status: int, resource: str, body: str = "",
                     retry_after: Optional[float] = None) -> HubError:
    """
    Map a non-2xx HTTP status to the matching HubError.

    Examples:
        >>> type(error_for_status(404, "library/nginx")).__name__
        'NotFoundError'
        >>> error_for_status(503, "library/nginx").retryable
        True
    """
    detail = body.strip()[:200] if body else ""
    suffix = f": {detail}" if detail else ""

    if status == 404:
        return NotFoundError(f"Not found{suffix}", resource, status)
    if status == 429:
        return RateLimitedError(f"Rate limited{suffix}", resource, status, retry_after=retry_after)
    if status == 408 or status >= 500:
        return TransientNetworkError(f"Upstream returned {status}{suffix}", resource, status)
    return UpstreamHTTPError(f"Upstream returned {status}{suffix}", resource, status)
