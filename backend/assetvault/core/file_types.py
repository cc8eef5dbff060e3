"""Accepted file types shared by the Drive lister and the folder watcher."""

from __future__ import annotations

from pathlib import PurePath

from assetvault.core.config import settings

AUDIO_EXTENSIONS = frozenset({".wav", ".mp3", ".flac", ".aiff", ".aif", ".m4a"})
PROJECT_EXTENSIONS = frozenset({".flp"})  # FL Studio project
DOCUMENT_EXTENSIONS = frozenset({".pdf", ".txt"})

DEFAULT_EXTENSIONS = AUDIO_EXTENSIONS | PROJECT_EXTENSIONS | DOCUMENT_EXTENSIONS

DEFAULT_MIME_TYPES = (
    "audio/wav",
    "audio/x-wav",
    "audio/mpeg",
    "audio/flac",
    "audio/x-aiff",
    "audio/aiff",
    "audio/mp4",
    "audio/x-m4a",
    "application/pdf",
    "text/plain",
)

_CONTENT_TYPES = {
    ".wav": "audio/wav",
    ".mp3": "audio/mpeg",
    ".flac": "audio/flac",
    ".aiff": "audio/x-aiff",
    ".aif": "audio/x-aiff",
    ".m4a": "audio/mp4",
    ".flp": "application/octet-stream",
    ".pdf": "application/pdf",
    ".txt": "text/plain",
}


def allowed_extensions() -> frozenset[str]:
    """Get the accepted extensions, honoring the settings override."""
    if settings.allowed_extensions:
        return frozenset(_normalize_extension(e) for e in settings.allowed_extensions)
    return DEFAULT_EXTENSIONS


def allowed_mime_types() -> tuple[str, ...]:
    """Get the accepted MIME types, honoring the settings override."""
    if settings.allowed_mime_types:
        return tuple(m.lower() for m in settings.allowed_mime_types)
    return DEFAULT_MIME_TYPES


def _normalize_extension(ext: str) -> str:
    ext = ext.strip().lower()
    return ext if ext.startswith(".") else f".{ext}"


def get_extension(filename: str) -> str:
    """Get the lowercase extension of a file name, including the dot."""
    return PurePath(filename).suffix.lower()


def has_allowed_extension(filename: str) -> bool:
    """Check a file name against the extension allow-list."""
    return get_extension(filename) in allowed_extensions()


def has_allowed_mime_type(mime_type: str | None) -> bool:
    """Check a MIME type against the allow-list.

    Substring match: providers report variants such as
    ``audio/wav; codecs=1`` or ``audio/x-wav``.
    """
    if not mime_type:
        return False
    mime_type = mime_type.lower()
    return any(allowed in mime_type for allowed in allowed_mime_types())


def is_allowed_file(filename: str, mime_type: str | None = None) -> bool:
    """Accept a file if either its MIME type or its extension is allow-listed."""
    return has_allowed_mime_type(mime_type) or has_allowed_extension(filename)


def is_audio_file(filename: str, mime_type: str | None = None) -> bool:
    """Check whether a file should go through audio metadata extraction."""
    if mime_type and mime_type.lower().startswith("audio/"):
        return True
    return get_extension(filename) in AUDIO_EXTENSIONS


def guess_content_type(filename: str) -> str:
    """Get the upload content type for a file name."""
    return _CONTENT_TYPES.get(get_extension(filename), "application/octet-stream")
