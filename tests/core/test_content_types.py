"""Tests for content classification."""

import pytest

from sitepush.core.config import ASSET_CACHE_CONTROL, HTML_CACHE_CONTROL, MODERATE_CACHE_CONTROL
from sitepush.core.content_types import (
    DEFAULT_CONTENT_TYPE,
    cache_control,
    classify,
    content_type,
    is_image_file,
    is_text_file,
)


class TestContentType:
    """Tests for content_type()."""

    @pytest.mark.parametrize(
        ("extension", "expected"),
        [
            ("html", "text/html"),
            ("css", "text/css"),
            ("js", "application/javascript"),
            ("png", "image/png"),
            ("svg", "image/svg+xml"),
            ("woff2", "font/woff2"),
            ("json", "application/json"),
            ("webmanifest", "application/manifest+json"),
        ],
    )
    def test_known_types(self, extension: str, expected: str) -> None:
        """Should map common web extensions to their MIME type."""
        assert content_type(extension) == expected

    def test_case_and_dot_ignored(self) -> None:
        """Should treat ".PNG" like "png"."""
        assert content_type(".PNG") == "image/png"

    def test_unknown_extension_defaults(self) -> None:
        """Should fall back to application/octet-stream for unknown extensions."""
        assert content_type("qqqzzz") == DEFAULT_CONTENT_TYPE


class TestClassification:
    """Tests for text/image classification and classify()."""

    def test_text_files(self) -> None:
        """Should send HTML, CSS and JS as text."""
        assert is_text_file("html")
        assert is_text_file("css")
        assert is_text_file("js")
        assert not is_text_file("png")

    def test_image_files(self) -> None:
        """Should classify raster and vector images as images."""
        assert is_image_file("jpg")
        assert is_image_file("svg")
        assert not is_image_file("css")

    def test_cache_control(self) -> None:
        """Should revalidate HTML and cache assets long."""
        assert cache_control("html") == HTML_CACHE_CONTROL
        assert cache_control("js") == ASSET_CACHE_CONTROL
        assert cache_control("xyz") == MODERATE_CACHE_CONTROL

    def test_classify_path(self) -> None:
        """Should classify a path by its suffix."""
        info = classify("blog/index.html")
        assert info.content_type == "text/html"
        assert info.is_text is True
        assert info.cache_control == HTML_CACHE_CONTROL
