"""
Media sample primitives.

MediaSample is a pure data container. SampleBuffer is the fixed-capacity
scratch area a media source reads one sample into.
"""

from __future__ import annotations

from dataclasses import dataclass


class SampleTooLargeError(ValueError):
    """A source produced a sample larger than the buffer capacity."""

    def __init__(self, size: int, capacity: int) -> None:
        super().__init__(f"sample of {size} bytes exceeds capacity {capacity}")
        self.size = size
        self.capacity = capacity


@dataclass(frozen=True)
class MediaSample:
    """
    One access unit taken from the media source.

    time_us:
        Presentation timestamp in microseconds. Non-decreasing across a
        source.

    data:
        Payload bytes; never longer than the configured max sample size.
    """
    time_us: int
    data: bytes

    def __len__(self) -> int:
        return len(self.data)


class SampleBuffer:
    """
    Fixed-capacity byte buffer.

    write() replaces the contents; a payload longer than the capacity is a
    contract violation of the source and raises SampleTooLargeError.
    """

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be > 0")
        self._buf = bytearray(capacity)
        self._size = 0

    @property
    def capacity(self) -> int:
        return len(self._buf)

    @property
    def size(self) -> int:
        return self._size

    def write(self, data: bytes | bytearray | memoryview) -> int:
        n = len(data)
        if n > len(self._buf):
            raise SampleTooLargeError(n, len(self._buf))
        self._buf[:n] = data
        self._size = n
        return n

    def to_bytes(self) -> bytes:
        return bytes(self._buf[: self._size])

    def to_sample(self, time_us: int) -> MediaSample:
        return MediaSample(time_us=time_us, data=self.to_bytes())
