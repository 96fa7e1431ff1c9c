"""
PyAV media source adapter.

Wraps an av container and yields the selected stream's packets as
samples. Demuxing is entirely PyAV's; this module only maps its objects
onto the MediaSource contract.

Timestamps are decode timestamps (falling back to pts), which are
non-decreasing in demux order even for streams with B-frames. Empty flush
packets emitted by the demuxer at end of stream are skipped.
"""

from __future__ import annotations

from typing import Any, Iterator

import av

from adapters.media.base import MediaSource, MediaSourceError, TrackFormat
from media.sample import SampleBuffer
from observability.logger import log_event


_CODEC_MIME_TYPES: dict[str, str] = {
    "h264": "video/avc",
    "hevc": "video/hevc",
    "vp8": "video/x-vnd.on2.vp8",
    "vp9": "video/x-vnd.on2.vp9",
    "av1": "video/av01",
    "mpeg4": "video/mp4v-es",
    "h263": "video/3gpp",
    "aac": "audio/mp4a-latm",
    "mp3": "audio/mpeg",
    "opus": "audio/opus",
    "vorbis": "audio/vorbis",
    "amr_nb": "audio/3gpp",
    "amr_wb": "audio/amr-wb",
}


def mime_type_for(stream_type: str, codec_name: str) -> str:
    """Map a PyAV (stream type, codec name) pair to a mime type."""
    mime = _CODEC_MIME_TYPES.get(codec_name.lower())
    if mime is not None:
        return mime
    return f"{stream_type}/x-{codec_name.lower()}"


def _packet_time_us(packet: Any) -> int | None:
    ts = packet.dts if packet.dts is not None else packet.pts
    if ts is None or packet.time_base is None:
        return None
    return round(ts * packet.time_base * 1_000_000)


class PyAVMediaSource(MediaSource):
    """MediaSource backed by av.open()."""

    def __init__(self) -> None:
        self._container: Any = None
        self._stream: Any = None
        self._packets: Iterator[Any] | None = None
        self._current: Any = None
        self._current_time_us: int | None = None
        self._locator: str | None = None

    # ------------------------------------------------------------------
    # Open / describe
    # ------------------------------------------------------------------

    def open(self, locator: str) -> None:
        try:
            self._container = av.open(locator, mode="r")
        except (av.error.FFmpegError, OSError) as exc:
            raise MediaSourceError(f"cannot open {locator!r}: {exc}") from exc
        self._locator = locator
        log_event({
            "event_type": "MEDIA_SOURCE_OPENED",
            "locator": locator,
            "tracks": len(self._container.streams),
        })

    def _require_open(self) -> Any:
        if self._container is None:
            raise MediaSourceError("media source is not open")
        return self._container

    def track_count(self) -> int:
        return len(self._require_open().streams)

    def track_format(self, index: int) -> TrackFormat:
        streams = self._require_open().streams
        if not 0 <= index < len(streams):
            raise MediaSourceError(f"track index {index} out of range")
        stream = streams[index]
        ctx = stream.codec_context
        extra: dict[str, Any] = {"codec": ctx.name}
        if stream.type == "video":
            extra["width"] = ctx.width
            extra["height"] = ctx.height
        elif stream.type == "audio":
            extra["sample_rate"] = ctx.sample_rate
        if stream.duration is not None and stream.time_base is not None:
            extra["duration_us"] = round(stream.duration * stream.time_base * 1_000_000)
        return TrackFormat(mime_type=mime_type_for(stream.type, ctx.name), extra=extra)

    def select_track(self, index: int) -> None:
        container = self._require_open()
        if not 0 <= index < len(container.streams):
            raise MediaSourceError(f"track index {index} out of range")
        self._stream = container.streams[index]
        self._packets = iter(container.demux(self._stream))
        self._load_next()

    # ------------------------------------------------------------------
    # Samples
    # ------------------------------------------------------------------

    def _load_next(self) -> None:
        assert self._packets is not None
        try:
            for packet in self._packets:
                if packet.size == 0:
                    continue
                time_us = _packet_time_us(packet)
                if time_us is None:
                    continue
                self._current = packet
                self._current_time_us = time_us
                return
        except av.error.FFmpegError as exc:
            raise MediaSourceError(f"demux failed: {exc}") from exc
        self._current = None
        self._current_time_us = None

    def next_sample_timestamp(self) -> int | None:
        if self._packets is None:
            raise MediaSourceError("no track selected")
        return self._current_time_us

    def read_into(self, buffer: SampleBuffer) -> int:
        if self._current is None:
            raise MediaSourceError("no current sample")
        return buffer.write(bytes(self._current))

    def advance(self) -> None:
        if self._current is None:
            raise MediaSourceError("cannot advance past end of stream")
        self._load_next()

    def close(self) -> None:
        if self._container is not None:
            self._container.close()
        self._container = None
        self._stream = None
        self._packets = None
        self._current = None
        self._current_time_us = None
