"""
Process entry point.

Wires configuration, logging, the network session, the looper and the
session runtime, then dispatches until the session stops.
"""

from __future__ import annotations

import sys
from typing import Sequence

from dotenv import load_dotenv

from cli.args import CliOptions, parse_args
from config import AppConfig, ConfigError
from looper.errors import LooperError
from looper.looper import Looper
from network.session import NetworkSession
from observability import logger
from observability.logger import log_event
from orchestrator.runtime import SessionRuntime
from orchestrator.runtime_context import default_context

_POLL_INTERVAL_S = 0.5


def build_config(options: CliOptions) -> AppConfig:
    """Environment first, then command-line overrides."""
    return AppConfig.load_from_env().with_overrides(
        media_source_locator=options.source,
        rtp_payload_type=options.payload_type,
        max_sample_size=options.max_sample_size,
        media_transport=options.media_transport,
        control_transport=options.control_transport,
        log_level=options.log_level,
    ).validate()


def _wait(looper: Looper, runtime: SessionRuntime) -> None:
    try:
        while not looper.wait_stopped(_POLL_INTERVAL_S):
            pass
    except KeyboardInterrupt:
        # Stop goes through the looper so releases still run.
        runtime.request_stop(reason="interrupted")
        looper.wait_stopped()


def main(argv: Sequence[str] | None = None) -> int:
    load_dotenv()
    options = parse_args(argv)

    try:
        config = build_config(options)
    except ConfigError as exc:
        print(f"configuration error: {exc}", file=sys.stderr)
        return 1

    logger.configure(level=config.log_level, enabled=config.enable_json_logs)
    log_event({
        "event_type": "SESSION_STARTING",
        "env": config.env,
        "listen": options.listen,
        "connect": list(options.connect) if options.connect else None,
    })

    network = NetworkSession()
    network.start()
    try:
        looper = Looper()
        runtime = SessionRuntime(config=config, context=default_context(network))
        looper.register_handler(runtime)

        if options.listen:
            runtime.listen()
        if options.connect is not None:
            host, port = options.connect
            runtime.connect(host, port)

        looper.start()
        try:
            _wait(looper, runtime)
        except LooperError as exc:
            log_event({
                "level": "ERROR",
                "event_type": "SESSION_ABORTED",
                "exception": type(exc).__name__,
                "message": str(exc),
            })
            return 1
    finally:
        network.stop()

    last_error = runtime.state.last_error
    log_event({"event_type": "SESSION_ENDED", "last_error": last_error})
    return 0 if last_error is None else 1


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
