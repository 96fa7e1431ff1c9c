"""
Application configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide a typed, immutable config object

Non-responsibilities:
- No orchestration logic
- No protocol constants
- No runtime mutation
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Any

from adapters.transport.base import Packetization, TransportMode
from spec import (
    DEFAULT_MAX_SAMPLE_SIZE,
    DEFAULT_MEDIA_SOURCE_LOCATOR,
    DEFAULT_RTP_PAYLOAD_TYPE,
    PAYLOAD_TYPE_MAX,
    PAYLOAD_TYPE_MIN,
)


class ConfigError(ValueError):
    """Raised when a configuration value is missing or out of range."""


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc


def _transport(name: str, raw: str) -> TransportMode:
    try:
        return TransportMode(raw.upper())
    except ValueError as exc:
        raise ConfigError(f"{name} must be one of "
                          f"{[m.value for m in TransportMode]}, got {raw!r}") from exc


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Constructed once at process startup.
    Passed downward to the session runtime.
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    env: str = "dev"
    log_level: str = "INFO"

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    enable_json_logs: bool = True

    # ------------------------------------------------------------------
    # Media source
    # ------------------------------------------------------------------

    media_source_locator: str = DEFAULT_MEDIA_SOURCE_LOCATOR
    max_sample_size: int = DEFAULT_MAX_SAMPLE_SIZE

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    rtp_payload_type: int = DEFAULT_RTP_PAYLOAD_TYPE
    packetization: Packetization = Packetization.H264
    media_transport: TransportMode = TransportMode.UDP
    control_transport: TransportMode = TransportMode.UDP

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> AppConfig:
        """
        Load configuration from environment variables.

        Raises:
            ConfigError if a variable is present but malformed.
        """
        return AppConfig(
            env=os.environ.get("ENV", "dev"),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
            enable_json_logs=os.environ.get("ENABLE_JSON_LOGS", "1") == "1",

            media_source_locator=os.environ.get(
                "MEDIA_SOURCE_LOCATOR", DEFAULT_MEDIA_SOURCE_LOCATOR
            ),
            max_sample_size=_env_int("MAX_SAMPLE_SIZE", DEFAULT_MAX_SAMPLE_SIZE),
            rtp_payload_type=_env_int("RTP_PAYLOAD_TYPE", DEFAULT_RTP_PAYLOAD_TYPE),

            media_transport=_transport(
                "MEDIA_TRANSPORT", os.environ.get("MEDIA_TRANSPORT", "UDP")
            ),
            control_transport=_transport(
                "CONTROL_TRANSPORT", os.environ.get("CONTROL_TRANSPORT", "UDP")
            ),
        )

    def with_overrides(self, **overrides: Any) -> AppConfig:
        """Return a copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes)

    def validate(self) -> AppConfig:
        """
        Check value ranges. Returns self so calls can be chained.

        Raises:
            ConfigError on the first invalid value.
        """
        if not PAYLOAD_TYPE_MIN <= self.rtp_payload_type <= PAYLOAD_TYPE_MAX:
            raise ConfigError(
                f"rtp_payload_type must be in [{PAYLOAD_TYPE_MIN}, "
                f"{PAYLOAD_TYPE_MAX}], got {self.rtp_payload_type}"
            )
        if self.max_sample_size <= 0:
            raise ConfigError("max_sample_size must be > 0")
        if self.media_transport is TransportMode.NONE:
            raise ConfigError("media_transport cannot be NONE")
        if not self.media_source_locator:
            raise ConfigError("media_source_locator must not be empty")
        return self
