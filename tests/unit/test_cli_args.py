# pylint: disable=missing-module-docstring,missing-function-docstring

import pytest

from adapters.transport.base import TransportMode
from cli.args import (
    ILLEGAL_PORT_MESSAGE,
    NO_MODE_MESSAGE,
    UsageError,
    parse_args,
    parse_connect_target,
)


# ---------------------------------------------------------------------
# HOST:PORT
# ---------------------------------------------------------------------

def test_parse_connect_target_splits_on_last_colon():
    assert parse_connect_target("10.0.0.2:5000") == ("10.0.0.2", 5000)
    assert parse_connect_target("localhost:1") == ("localhost", 1)
    assert parse_connect_target("host:65535") == ("host", 65535)


def test_parse_connect_target_accepts_bracketed_ipv6():
    assert parse_connect_target("[::1]:5000") == ("::1", 5000)
    assert parse_connect_target("[fe80::1]:6000") == ("fe80::1", 6000)


@pytest.mark.parametrize("value", ["host:0", "host:65536", "host:", "host:12ab", "host:-5"])
def test_parse_connect_target_rejects_bad_ports(value: str):
    with pytest.raises(UsageError, match=ILLEGAL_PORT_MESSAGE):
        parse_connect_target(value)


@pytest.mark.parametrize("value", [":5000", "[]:5000", "[not-v6]:5000", "::1:5000", "my host:5000"])
def test_parse_connect_target_rejects_bad_hosts(value: str):
    with pytest.raises(UsageError):
        parse_connect_target(value)


def test_parse_connect_target_requires_colon():
    with pytest.raises(UsageError):
        parse_connect_target("just-a-host")


# ---------------------------------------------------------------------
# Full command line
# ---------------------------------------------------------------------

def test_listen_mode():
    options = parse_args(["-l"])

    assert options.listen
    assert options.connect is None


def test_connect_mode_with_overrides():
    options = parse_args([
        "-c", "10.0.0.2:5000",
        "--source", "/tmp/clip.mp4",
        "--payload-type", "96",
        "--control-transport", "none",
    ])

    assert options.connect == ("10.0.0.2", 5000)
    assert options.source == "/tmp/clip.mp4"
    assert options.payload_type == 96
    assert options.control_transport is TransportMode.NONE
    assert options.media_transport is None


def test_both_modes_are_accepted():
    options = parse_args(["-l", "-c", "h:1"])

    assert options.listen
    assert options.connect == ("h", 1)


def test_no_mode_exits_1(capsys: pytest.CaptureFixture[str]):
    with pytest.raises(SystemExit) as excinfo:
        parse_args([])

    assert excinfo.value.code == 1
    assert NO_MODE_MESSAGE in capsys.readouterr().err


def test_illegal_port_exits_1(capsys: pytest.CaptureFixture[str]):
    with pytest.raises(SystemExit) as excinfo:
        parse_args(["-c", "host:99999"])

    assert excinfo.value.code == 1
    assert ILLEGAL_PORT_MESSAGE in capsys.readouterr().err


def test_missing_colon_prints_usage_and_exits_1(capsys: pytest.CaptureFixture[str]):
    with pytest.raises(SystemExit) as excinfo:
        parse_args(["-c", "hostonly"])

    assert excinfo.value.code == 1
    assert "usage:" in capsys.readouterr().err


def test_unknown_option_exits_1():
    with pytest.raises(SystemExit) as excinfo:
        parse_args(["-x"])

    assert excinfo.value.code == 1


def test_missing_host_prints_usage_and_exits_1(capsys: pytest.CaptureFixture[str]):
    with pytest.raises(SystemExit) as excinfo:
        parse_args(["-c", ":5000"])

    assert excinfo.value.code == 1
    assert "usage:" in capsys.readouterr().err
