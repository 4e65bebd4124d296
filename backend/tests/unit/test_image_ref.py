"""
Unit tests for Docker Hub image reference parsing.
"""

import pytest

from hub.errors import InvalidImageReference
from hub.image_ref import ImageReference, parse_image_reference


class TestParseImageReference:
    """Namespace, name and tag extraction"""

    @pytest.mark.parametrize("image,expected", [
        ("nginx", ("library", "nginx", "latest")),
        ("nginx:1.25", ("library", "nginx", "1.25")),
        ("library/nginx", ("library", "nginx", "latest")),
        ("bitnami/redis:7.0", ("bitnami", "redis", "7.0")),
        ("docker.io/nginx", ("library", "nginx", "latest")),
        ("docker.io/library/nginx:alpine", ("library", "nginx", "alpine")),
        ("registry.hub.docker.com/grafana/grafana:10.0.0", ("grafana", "grafana", "10.0.0")),
        ("linuxserver/docker-sabnzbd", ("linuxserver", "docker-sabnzbd", "latest")),
        ("  nginx  ", ("library", "nginx", "latest")),
        ("Bitnami/redis", ("bitnami", "redis", "latest")),
    ])
    def test_valid_references(self, image, expected):
        ref = parse_image_reference(image)
        assert (ref.namespace, ref.name, ref.tag) == expected

    def test_default_tag(self):
        assert parse_image_reference("nginx", default_tag="stable").tag == "stable"

    @pytest.mark.parametrize("image", [
        "",
        "   ",
        "ghcr.io/owner/app",
        "localhost:5000/app",
        "nginx@sha256:abc",
        "a/b/c",
        "nginx:",
        "nginx:-bad",
        "NGINX",
        "bad name",
    ])
    def test_invalid_references(self, image):
        with pytest.raises(InvalidImageReference):
            parse_image_reference(image)

    def test_invalid_reference_is_value_error(self):
        """Callers catching ValueError also catch parse failures"""
        with pytest.raises(ValueError):
            parse_image_reference("")


class TestImageReference:
    """Derived properties"""

    def test_official_image(self):
        ref = ImageReference("library", "nginx", "latest")
        assert ref.is_official
        assert ref.display_name == "nginx"
        assert ref.repository == "library/nginx"
        assert str(ref) == "nginx:latest"

    def test_user_image(self):
        ref = ImageReference("bitnami", "redis", "7.0")
        assert not ref.is_official
        assert ref.display_name == "bitnami/redis"
        assert str(ref) == "bitnami/redis:7.0"

    def test_with_tag_overrides(self):
        ref = parse_image_reference("nginx:1.25").with_tag("alpine")
        assert ref.tag == "alpine"

    def test_with_tag_none_keeps_tag(self):
        ref = parse_image_reference("nginx:1.25")
        assert ref.with_tag(None) is ref

    def test_with_invalid_tag(self):
        with pytest.raises(InvalidImageReference):
            parse_image_reference("nginx").with_tag("bad tag")
