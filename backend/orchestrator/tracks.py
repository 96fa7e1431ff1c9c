"""
Track selection (pure).

Picks the first track whose mime type is a supported video codec.
"""

from __future__ import annotations

from typing import Iterable, Sequence

from adapters.media.base import TrackFormat
from spec import SUPPORTED_VIDEO_MIME_TYPES


def is_supported_mime(mime_type: str | None, supported: Iterable[str] = SUPPORTED_VIDEO_MIME_TYPES) -> bool:
    if not mime_type:
        return False
    return mime_type.lower() in {m.lower() for m in supported}


def select_track(
    formats: Sequence[TrackFormat],
    supported: Iterable[str] = SUPPORTED_VIDEO_MIME_TYPES,
) -> int | None:
    """
    Return the index of the first supported track, or None.

    Mime comparison is case-insensitive.
    """
    supported = tuple(supported)
    for index, fmt in enumerate(formats):
        if is_supported_mime(fmt.mime_type, supported):
            return index
    return None
