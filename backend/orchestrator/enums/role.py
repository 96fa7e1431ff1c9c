"""
Transport role enumeration.

Rules:
- Identifies which side of the session a command or failure belongs to.
- No behavior.
"""

from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """
    RECEIVER:
        Listen mode; owns the inbound endpoint.

    SENDER:
        Connect mode; owns the media source and the outbound endpoint.
    """

    RECEIVER = "RECEIVER"
    SENDER = "SENDER"
