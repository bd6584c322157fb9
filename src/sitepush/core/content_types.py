"""Content classification for web files.

Maps file extensions to MIME types, a text/binary classification and a default
Cache-Control directive. Unknown extensions fall back to the ``mimetypes``
registry and finally to ``application/octet-stream``.
"""

from __future__ import annotations

import mimetypes
from dataclasses import dataclass
from pathlib import PurePath

from sitepush.core.config import (
    ASSET_CACHE_CONTROL,
    DOCUMENT_CACHE_CONTROL,
    HTML_CACHE_CONTROL,
    MODERATE_CACHE_CONTROL,
)

DEFAULT_CONTENT_TYPE = "application/octet-stream"

CONTENT_TYPES: dict[str, str] = {
    # HTML and XML
    "html": "text/html",
    "htm": "text/html",
    "xml": "application/xml",
    "xhtml": "application/xhtml+xml",
    # Stylesheets
    "css": "text/css",
    "scss": "text/css",
    "sass": "text/css",
    "less": "text/css",
    # Scripts
    "js": "application/javascript",
    "mjs": "application/javascript",
    "ts": "application/javascript",
    "jsx": "application/javascript",
    "tsx": "application/javascript",
    # Images
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "svg": "image/svg+xml",
    "webp": "image/webp",
    "ico": "image/x-icon",
    # Fonts
    "woff": "font/woff",
    "woff2": "font/woff2",
    "ttf": "font/ttf",
    "otf": "font/otf",
    "eot": "application/vnd.ms-fontobject",
    # Documents
    "pdf": "application/pdf",
    "txt": "text/plain",
    "md": "text/markdown",
    # Data and manifests
    "json": "application/json",
    "jsonld": "application/ld+json",
    "manifest": "application/manifest+json",
    "webmanifest": "application/manifest+json",
    "map": "application/json",
    "rss": "application/rss+xml",
    "atom": "application/atom+xml",
}

CACHE_CONTROLS: dict[str, str] = {
    "html": HTML_CACHE_CONTROL,
    "htm": HTML_CACHE_CONTROL,
    **{
        ext: ASSET_CACHE_CONTROL
        for ext in (
            "css", "js", "png", "jpg", "jpeg", "gif", "svg", "webp", "ico",
            "woff", "woff2", "ttf", "otf", "eot",
        )
    },
    "json": MODERATE_CACHE_CONTROL,
    "webmanifest": MODERATE_CACHE_CONTROL,
    "manifest": MODERATE_CACHE_CONTROL,
    "pdf": DOCUMENT_CACHE_CONTROL,
    "txt": MODERATE_CACHE_CONTROL,
    "md": MODERATE_CACHE_CONTROL,
}

TEXT_EXTENSIONS = frozenset({"html", "htm", "css", "js", "txt", "json", "xml", "svg", "md"})
IMAGE_EXTENSIONS = frozenset({"png", "jpg", "jpeg", "gif", "svg", "webp", "ico"})


@dataclass(frozen=True)
class ContentInfo:
    """Classification of a single file."""

    content_type: str
    is_text: bool
    cache_control: str


def _ext(extension: str) -> str:
    return extension.lstrip(".").lower()


def content_type(extension: str) -> str:
    """Return the MIME type for a file extension."""
    ext = _ext(extension)
    if ext in CONTENT_TYPES:
        return CONTENT_TYPES[ext]
    guessed, _ = mimetypes.guess_type(f"file.{ext}")
    return guessed or DEFAULT_CONTENT_TYPE


def cache_control(extension: str) -> str:
    """Return the default Cache-Control directive for a file extension."""
    return CACHE_CONTROLS.get(_ext(extension), MODERATE_CACHE_CONTROL)


def is_text_file(extension: str) -> bool:
    """Whether files with this extension are sent as text."""
    return _ext(extension) in TEXT_EXTENSIONS


def is_image_file(extension: str) -> bool:
    """Whether the extension is an image format."""
    return _ext(extension) in IMAGE_EXTENSIONS


def classify(path: PurePath | str) -> ContentInfo:
    """Classify a file by its extension."""
    ext = PurePath(path).suffix
    return ContentInfo(
        content_type=content_type(ext),
        is_text=is_text_file(ext),
        cache_control=cache_control(ext),
    )
