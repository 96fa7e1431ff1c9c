"""
Media source adapter contract.

This module defines the *interface only*: no demuxing, pacing, or
orchestration decisions live here.

Key invariants:
- Tracks are addressed by index in [0, track_count()).
- Exactly one track is selected before samples are read.
- next_sample_timestamp() is non-decreasing until it returns None
  (end of stream).
- read_into() never grows the caller's buffer; an oversized sample raises
  SampleTooLargeError.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from media.sample import SampleBuffer


class MediaSourceError(Exception):
    """Open, selection, or read failure reported by a media source."""


@dataclass(frozen=True)
class TrackFormat:
    """
    Format description of one track.

    mime_type is lower-case, e.g. "video/avc", "audio/mp4a-latm".
    """
    mime_type: str
    extra: dict[str, Any] = field(default_factory=dict)


class MediaSource(ABC):
    """
    Abstract ordered source of timestamped samples.

    Implementations are responsible for:
    - Opening a locator (path or URI)
    - Describing tracks
    - Yielding samples of the selected track in presentation order

    Non-responsibilities:
    - No pacing
    - No knowledge of transports or payload types
    """

    @abstractmethod
    def open(self, locator: str) -> None:
        """Open the locator. Raises MediaSourceError on failure."""
        raise NotImplementedError

    @abstractmethod
    def track_count(self) -> int:
        raise NotImplementedError

    @abstractmethod
    def track_format(self, index: int) -> TrackFormat:
        raise NotImplementedError

    @abstractmethod
    def select_track(self, index: int) -> None:
        raise NotImplementedError

    @abstractmethod
    def next_sample_timestamp(self) -> int | None:
        """
        Timestamp (µs) of the current sample, or None at end of stream.

        Raises MediaSourceError if the source cannot be read.
        """
        raise NotImplementedError

    @abstractmethod
    def read_into(self, buffer: SampleBuffer) -> int:
        """Copy the current sample into buffer. Returns its size."""
        raise NotImplementedError

    @abstractmethod
    def advance(self) -> None:
        """Move to the next sample."""
        raise NotImplementedError

    def close(self) -> None:
        """Release underlying resources. Idempotent."""
