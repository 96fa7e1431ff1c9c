"""
Command-line parsing for the stream test tool.

Usage errors exit with status 1 (argparse's default of 2 is overridden).
"""

from __future__ import annotations

import argparse
import ipaddress
import sys
from dataclasses import dataclass
from typing import NoReturn, Sequence

from adapters.transport.base import TransportMode
from spec import PORT_MAX, PORT_MIN

USAGE_EXIT_CODE = 1

ILLEGAL_PORT_MESSAGE = "Illegal port specified."
NO_MODE_MESSAGE = "You need to select either client or server mode."


class UsageError(ValueError):
    """Malformed command line."""


def parse_connect_target(value: str) -> tuple[str, int]:
    """
    Split HOST:PORT on the last colon.

    An IPv6 host must be bracketed ([::1]:5000); the brackets are removed.
    Raises UsageError for an empty or malformed host.
    Raises UsageError with ILLEGAL_PORT_MESSAGE when the port is not an
    integer in [1, 65535].
    """
    host, sep, port_text = value.rpartition(":")
    if not sep:
        raise UsageError(f"expected HOST:PORT, got {value!r}")

    bracketed = host.startswith("[") and host.endswith("]")
    if bracketed:
        host = host[1:-1]
        try:
            ipaddress.IPv6Address(host)
        except ValueError as exc:
            raise UsageError(f"invalid IPv6 address {host!r}") from exc
    if not host:
        raise UsageError(f"missing host in {value!r}")
    if not bracketed and ("[" in host or "]" in host or ":" in host):
        raise UsageError(f"IPv6 hosts must be bracketed, got {value!r}")
    if any(ch.isspace() for ch in host):
        raise UsageError(f"invalid host {host!r}")

    if not (port_text.isascii() and port_text.isdigit()):
        raise UsageError(ILLEGAL_PORT_MESSAGE)
    port = int(port_text)
    if not PORT_MIN <= port <= PORT_MAX:
        raise UsageError(ILLEGAL_PORT_MESSAGE)

    return host, port


@dataclass(frozen=True)
class CliOptions:
    listen: bool
    connect: tuple[str, int] | None
    source: str | None
    payload_type: int | None
    max_sample_size: int | None
    media_transport: TransportMode | None
    control_transport: TransportMode | None
    log_level: str | None


class _Parser(argparse.ArgumentParser):
    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(USAGE_EXIT_CODE, f"{message}\n")


def _transport_arg(value: str) -> TransportMode:
    try:
        return TransportMode(value.upper())
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"unknown transport {value!r}") from exc


def build_parser() -> argparse.ArgumentParser:
    ap = _Parser(
        prog="streamtest",
        description="Paced media stream test tool (listen or connect).",
    )
    ap.add_argument("-l", "--listen", action="store_true", help="listen")
    ap.add_argument(
        "-c", "--connect", metavar="HOST:PORT", help="connect to remote host"
    )
    ap.add_argument("--source", help="media file to stream in connect mode")
    ap.add_argument("--payload-type", type=int, help="payload type (0-127)")
    ap.add_argument("--max-sample-size", type=int, help="sample buffer capacity in bytes")
    ap.add_argument("--media-transport", type=_transport_arg, help="UDP")
    ap.add_argument("--control-transport", type=_transport_arg, help="UDP or NONE")
    ap.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return ap


def parse_args(argv: Sequence[str] | None = None) -> CliOptions:
    """
    Parse argv into CliOptions.

    Exits with status 1 on any usage error, including a missing mode.
    """
    ap = build_parser()
    ns = ap.parse_args(argv)

    connect = None
    if ns.connect is not None:
        try:
            connect = parse_connect_target(ns.connect)
        except UsageError as exc:
            if str(exc) == ILLEGAL_PORT_MESSAGE:
                ap.exit(USAGE_EXIT_CODE, f"{ILLEGAL_PORT_MESSAGE}\n")
            ap.error(str(exc))

    if not ns.listen and connect is None:
        ap.exit(USAGE_EXIT_CODE, f"{NO_MODE_MESSAGE}\n")

    return CliOptions(
        listen=ns.listen,
        connect=connect,
        source=ns.source,
        payload_type=ns.payload_type,
        max_sample_size=ns.max_sample_size,
        media_transport=ns.media_transport,
        control_transport=ns.control_transport,
        log_level=ns.log_level,
    )
