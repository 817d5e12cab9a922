"""Content types served for file suffixes."""

from __future__ import annotations

from types import MappingProxyType

DEFAULT_MIME = "text/html"

MIME_TYPES = MappingProxyType(
    {
        ".html": "text/html",
        ".avi": "video/x-msvideo",
        ".bmp": "image/bmp",
        ".c": "text/plain",
        ".doc": "application/msword",
        ".gif": "image/gif",
        ".gz": "application/x-gzip",
        ".htm": "text/html",
        ".ico": "application/x-ico",
        ".jpg": "image/jpeg",
        ".png": "image/png",
        ".txt": "text/plain",
        ".mp3": "audio/mp3",
        "default": DEFAULT_MIME,
    }
)


def get_mime(suffix: str) -> str:
    """Return the content type for a suffix such as ``".png"``."""
    return MIME_TYPES.get(suffix, MIME_TYPES["default"])


def mime_for(file_name: str) -> str:
    """Return the content type for a file name.

    The suffix is everything from the first dot onwards, so ``a.tar.gz``
    is looked up as ``.tar.gz``.
    """
    dot = file_name.find(".")
    if dot < 0:
        return get_mime("default")
    return get_mime(file_name[dot:])