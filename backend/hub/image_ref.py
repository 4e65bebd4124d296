"""
Docker Hub image reference parsing.

    nginx            -> library/nginx:latest
    nginx:1.25       -> library/nginx:1.25
    bitnami/redis:7  -> bitnami/redis:7
    docker.io/nginx  -> library/nginx:latest
"""

import re
from dataclasses import dataclass
from typing import Optional

from hub.errors import InvalidImageReference

DEFAULT_TAG = "latest"
OFFICIAL_NAMESPACE = "library"

_HUB_REGISTRIES = ("docker.io", "index.docker.io", "registry-1.docker.io", "registry.hub.docker.com", "hub.docker.com")

_COMPONENT_PATTERN = re.compile(r'^[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*$')
_TAG_PATTERN = re.compile(r'^[A-Za-z0-9_][A-Za-z0-9_.-]{0,127}$')


@dataclass(frozen=True)
class ImageReference:
    """A Docker Hub repository plus tag."""
    namespace: str
    name: str
    tag: str = DEFAULT_TAG

    @property
    def repository(self) -> str:
        """Repository path as used by the Hub API (e.g., "library/nginx")."""
        return f"{self.namespace}/{self.name}"

    @property
    def is_official(self) -> bool:
        return self.namespace == OFFICIAL_NAMESPACE

    @property
    def display_name(self) -> str:
        """Name as users type it: official images drop the library/ prefix."""
        return self.name if self.is_official else self.repository

    def with_tag(self, tag: Optional[str]) -> 'ImageReference':
        if not tag or tag == self.tag:
            return self
        return ImageReference(self.namespace, self.name, _validate_tag(tag, tag))

    def __str__(self) -> str:
        return f"{self.display_name}:{self.tag}"


def parse_image_reference(image: str, default_tag: str = DEFAULT_TAG) -> ImageReference:
    """
    Parse an image name into namespace, name and tag.

    Args:
        image: Image reference (e.g., "nginx", "bitnami/redis:7.0")
        default_tag: Tag used when the reference has none

    Returns:
        ImageReference

    Raises:
        InvalidImageReference: Empty, digest-pinned, non-Hub registry, or
            malformed name components
    """
    if not isinstance(image, str) or not image.strip():
        raise InvalidImageReference("Image name cannot be empty")

    ref = image.strip()

    if "@" in ref:
        raise InvalidImageReference(f"Digest references are not supported: {image}")

    # Split off a registry prefix (first part contains '.' or ':' or is localhost)
    parts = ref.split("/")
    if len(parts) > 1 and ("." in parts[0] or ":" in parts[0] or parts[0] == "localhost"):
        if parts[0].lower() not in _HUB_REGISTRIES:
            raise InvalidImageReference(f"Only Docker Hub images are supported: {image}")
        parts = parts[1:]

    last = parts[-1]
    tag = default_tag
    if ":" in last:
        last, tag = last.rsplit(":", 1)
        parts[-1] = last

    if len(parts) == 1:
        namespace, name = OFFICIAL_NAMESPACE, parts[0]
    elif len(parts) == 2:
        namespace, name = parts
    else:
        raise InvalidImageReference(f"Docker Hub images have at most one namespace: {image}")

    namespace = namespace.lower()
    for component in (namespace, name):
        if not _COMPONENT_PATTERN.match(component):
            raise InvalidImageReference(f"Invalid image name component '{component}' in {image}")

    return ImageReference(namespace=namespace, name=name, tag=_validate_tag(tag, image))


def _validate_tag(tag: str, image: str) -> str:
    if not _TAG_PATTERN.match(tag):
        raise InvalidImageReference(f"Invalid tag '{tag}' in {image}")
    return tag
