# pylint: disable=missing-module-docstring,missing-function-docstring

import pytest

from adapters.transport.base import TransportMode
from config import AppConfig, ConfigError
from spec import DEFAULT_MEDIA_SOURCE_LOCATOR, DEFAULT_RTP_PAYLOAD_TYPE

_ENV_VARS = (
    "ENV",
    "LOG_LEVEL",
    "ENABLE_JSON_LOGS",
    "MEDIA_SOURCE_LOCATOR",
    "RTP_PAYLOAD_TYPE",
    "MAX_SAMPLE_SIZE",
    "MEDIA_TRANSPORT",
    "CONTROL_TRANSPORT",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    config = AppConfig.load_from_env()

    assert config.media_source_locator == DEFAULT_MEDIA_SOURCE_LOCATOR
    assert config.rtp_payload_type == DEFAULT_RTP_PAYLOAD_TYPE
    assert config.max_sample_size == 1024 * 1024
    assert config.media_transport is TransportMode.UDP
    assert config.control_transport is TransportMode.UDP
    assert config.validate() is config


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("MEDIA_SOURCE_LOCATOR", "/data/clip.mp4")
    monkeypatch.setenv("RTP_PAYLOAD_TYPE", "96")
    monkeypatch.setenv("CONTROL_TRANSPORT", "none")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("ENABLE_JSON_LOGS", "0")

    config = AppConfig.load_from_env()

    assert config.media_source_locator == "/data/clip.mp4"
    assert config.rtp_payload_type == 96
    assert config.control_transport is TransportMode.NONE
    assert config.log_level == "DEBUG"
    assert not config.enable_json_logs


def test_malformed_integer_raises(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("MAX_SAMPLE_SIZE", "lots")

    with pytest.raises(ConfigError):
        AppConfig.load_from_env()


def test_unknown_transport_raises(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("MEDIA_TRANSPORT", "carrier-pigeon")

    with pytest.raises(ConfigError):
        AppConfig.load_from_env()


def test_with_overrides_ignores_none():
    config = AppConfig().with_overrides(rtp_payload_type=None, media_source_locator="/x.mp4")

    assert config.rtp_payload_type == DEFAULT_RTP_PAYLOAD_TYPE
    assert config.media_source_locator == "/x.mp4"


@pytest.mark.parametrize(
    "overrides",
    [
        {"rtp_payload_type": 128},
        {"rtp_payload_type": -1},
        {"max_sample_size": 0},
        {"media_transport": TransportMode.NONE},
        {"media_source_locator": ""},
    ],
)
def test_validate_rejects(overrides: dict):
    with pytest.raises(ConfigError):
        AppConfig(**overrides).validate()
