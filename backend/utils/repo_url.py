"""
Repository URL resolution.

Normalizes source repository URLs into a canonical (owner, repo) identity
for a single trusted host. Accepted forms:

    https://github.com/owner/repo[.git][/][/tree/...]
    http://github.com/owner/repo
    git+https://github.com/owner/repo.git
    git+ssh://git@github.com/owner/repo.git
    git://github.com/owner/repo.git
    ssh://git@github.com/owner/repo.git
    git@github.com:owner/repo.git

Anything else (other hosts, malformed URLs, empty input) resolves to None.
"""

import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import unquote, urlparse

DEFAULT_HOST = "github.com"

_ACCEPTED_SCHEMES = {"http", "https", "git", "ssh", "git+https", "git+http", "git+ssh"}

# user@host:owner/repo - the scp-like syntax git uses for SSH remotes
_SCP_PATTERN = re.compile(r'^[A-Za-z0-9_.-]+@(?P<host>[^:/\s]+):(?P<path>[^/\s].*)$')


@dataclass(frozen=True)
class RepositoryIdentity:
    """Canonical owner/repo pair. Case is preserved."""
    owner: str
    repo: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    def html_url(self, host: str = DEFAULT_HOST) -> str:
        return f"https://{host}/{self.owner}/{self.repo}"


def resolve_repository(url: Optional[str], host: str = DEFAULT_HOST) -> Optional[RepositoryIdentity]:
    """
    Resolve a repository URL to its owner/repo identity.

    Args:
        url: Repository URL in any accepted form
        host: The only host accepted (compared case-insensitively)

    Returns:
        RepositoryIdentity, or None when the URL is not a repository on host

    Examples:
        >>> resolve_repository("git@github.com:facebook/react.git")
        RepositoryIdentity(owner='facebook', repo='react')
        >>> resolve_repository("https://github.com/facebook/react/tree/main")
        RepositoryIdentity(owner='facebook', repo='react')
        >>> resolve_repository("https://gitlab.com/facebook/react") is None
        True
    """
    if not isinstance(url, str):
        return None

    url = url.strip()
    if not url:
        return None

    scp_match = _SCP_PATTERN.match(url)
    if scp_match and "://" not in url:
        url_host = scp_match.group("host")
        path = scp_match.group("path")
    else:
        try:
            parsed = urlparse(url)
            url_host = parsed.hostname
        except ValueError:
            return None
        if parsed.scheme.lower() not in _ACCEPTED_SCHEMES:
            return None
        path = parsed.path

    if not _host_matches(url_host, host):
        return None

    return _identity_from_path(path)


def _host_matches(url_host: Optional[str], trusted_host: str) -> bool:
    if not url_host:
        return False
    url_host = url_host.lower()
    trusted_host = trusted_host.lower()
    return url_host == trusted_host or url_host == f"www.{trusted_host}"


def _identity_from_path(path: str) -> Optional[RepositoryIdentity]:
    """Take the first two path segments as owner/repo, dropping any suffix."""
    segments = path.strip("/").split("/")
    if len(segments) < 2:
        return None

    owner = unquote(segments[0])
    repo = unquote(segments[1])
    if repo.endswith(".git"):
        repo = repo[:-len(".git")]

    if not owner or not repo:
        return None
    if "/" in owner or "/" in repo:
        # Encoded slashes would change the identity after decoding
        return None

    return RepositoryIdentity(owner=owner, repo=repo)
