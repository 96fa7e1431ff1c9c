"""
BEHAVIORAL CONSTANTS
--------------------
Single source of truth for every protocol and pacing constant.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers elsewhere in the codebase.
- Other modules MUST import from this file.
"""

from __future__ import annotations

import errno
from typing import Final, Tuple

# =============================================================================
# Status codes
# =============================================================================
# Collaborators report outcomes as integers: OK or a negative errno value.

OK: Final[int] = 0
ERR_NOT_CONNECTED: Final[int] = -errno.ENOTCONN
ERR_INVALID: Final[int] = -errno.EINVAL
ERR_EXISTS: Final[int] = -errno.EEXIST
# Remote host name or literal did not resolve.
ERR_RESOLVE: Final[int] = -errno.EADDRNOTAVAIL
ERR_IO: Final[int] = -errno.EIO

# =============================================================================
# Media source defaults
# =============================================================================

DEFAULT_MEDIA_SOURCE_LOCATOR: Final[str] = "/sdcard/Frame Counter HD 30FPS_1080p.mp4"
DEFAULT_MAX_SAMPLE_SIZE: Final[int] = 1024 * 1024

# Case-insensitive; the first track whose mime matches is streamed.
SUPPORTED_VIDEO_MIME_TYPES: Final[Tuple[str, ...]] = ("video/avc",)

# =============================================================================
# Payload mapping
# =============================================================================

DEFAULT_RTP_PAYLOAD_TYPE: Final[int] = 33
PAYLOAD_TYPE_MIN: Final[int] = 0
PAYLOAD_TYPE_MAX: Final[int] = 127

# =============================================================================
# Ports
# =============================================================================

PORT_MIN: Final[int] = 1
PORT_MAX: Final[int] = 65535

# Local media/control ports are an (even, even + 1) pair from this range.
LOCAL_PORT_RANGE_START: Final[int] = 15550
LOCAL_PORT_RANGE_END: Final[int] = 65535
LOCAL_PORT_BIND_ATTEMPTS: Final[int] = 32

# Control channel lives on media port + 1 on both ends.
CONTROL_PORT_OFFSET: Final[int] = 1

# =============================================================================
# Datagram transport
# =============================================================================

MAX_DATAGRAM_PAYLOAD_BYTES: Final[int] = 1400
RECV_BUFFER_BYTES: Final[int] = 65536

# =============================================================================
# Pacing
# =============================================================================

PACING_ANCHOR_UNSET: Final[int] = -1

# Deliveries later than this (loop running behind) are reported as late.
PACING_LATE_THRESHOLD_US: Final[int] = 10_000

# =============================================================================
# Threads / shutdown
# =============================================================================

NETWORK_THREAD_NAME: Final[str] = "network-session"
LOOPER_THREAD_NAME: Final[str] = "looper"
NETWORK_STOP_TIMEOUT_S: Final[float] = 2.0
