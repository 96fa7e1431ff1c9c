"""
Network session facility.

Runs an asyncio event loop on its own thread and exposes a small,
thread-safe surface of UDP primitives to transport endpoints:

- create_udp_session(): bind synchronously (so the caller learns the
  local port immediately), then attach to asyncio and resolve the remote
  address asynchronously. Completion is posted as NetworkEvent(READY) or
  NetworkEvent(ERROR) to the owning handler through its looper.
- send_datagrams(): fire-and-forget sends on the asyncio thread.
- destroy_session(): close the socket; nothing is posted afterwards.

The facility never calls endpoint code directly; every observable effect
is a looper message, so endpoints only ever run on the dispatch thread.
"""

from __future__ import annotations

import asyncio
import ipaddress
import itertools
import socket
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Sequence

from observability.logger import log_event
from spec import (
    ERR_INVALID,
    ERR_IO,
    ERR_NOT_CONNECTED,
    ERR_RESOLVE,
    NETWORK_STOP_TIMEOUT_S,
    NETWORK_THREAD_NAME,
    OK,
    RECV_BUFFER_BYTES,
)

if TYPE_CHECKING:
    from looper.looper import Looper
    from looper.message import HandlerId


class NetworkEventKind(str, Enum):
    READY = "READY"
    DATAGRAM = "DATAGRAM"
    ERROR = "ERROR"


@dataclass(frozen=True)
class NetworkEvent:
    """Message payload posted to the handler that owns a session."""
    session_id: int
    kind: NetworkEventKind
    data: bytes = b""
    addr: tuple[str, int] | None = None
    err: int = OK


@dataclass
class _UdpSession:
    session_id: int
    sock: socket.socket
    looper: Looper
    target: HandlerId
    remote: tuple[str, int] | None
    resolved: Any = None
    transport: asyncio.DatagramTransport | None = None
    closed: bool = False
    datagrams_sent: int = field(default=0)

    def post(self, event: NetworkEvent) -> None:
        if not self.closed:
            self.looper.post(self.target, event)


def _errno_of(exc: BaseException) -> int:
    code = getattr(exc, "errno", None)
    return -code if isinstance(code, int) and code > 0 else ERR_IO


def _family_for(remote_host: str | None) -> socket.AddressFamily:
    """AF_INET6 for an IPv6 literal remote, AF_INET otherwise."""
    if remote_host is None:
        return socket.AF_INET
    try:
        address = ipaddress.ip_address(remote_host)
    except ValueError:
        return socket.AF_INET
    return socket.AF_INET6 if address.version == 6 else socket.AF_INET


class _DatagramProtocol(asyncio.DatagramProtocol):
    def __init__(self, session: _UdpSession) -> None:
        self._session = session

    def datagram_received(self, data: bytes, addr: tuple[str, int]) -> None:
        self._session.post(NetworkEvent(
            session_id=self._session.session_id,
            kind=NetworkEventKind.DATAGRAM,
            data=data,
            addr=(addr[0], addr[1]),
        ))

    def error_received(self, exc: Exception) -> None:
        self._session.post(NetworkEvent(
            session_id=self._session.session_id,
            kind=NetworkEventKind.ERROR,
            err=_errno_of(exc),
        ))


class NetworkSession:
    """
    Asynchronous transport primitives shared by all endpoints.

    Started once per process before any endpoint is created; stopped after
    the looper has stopped.
    """

    def __init__(self) -> None:
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self._sessions: dict[int, _UdpSession] = {}
        self._ids = itertools.count(1)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return
        loop = asyncio.new_event_loop()
        ready = threading.Event()

        def _run() -> None:
            asyncio.set_event_loop(loop)
            loop.call_soon(ready.set)
            loop.run_forever()

        self._loop = loop
        self._thread = threading.Thread(target=_run, name=NETWORK_THREAD_NAME, daemon=True)
        self._thread.start()
        ready.wait()
        log_event({"level": "DEBUG", "event_type": "NETWORK_SESSION_STARTED"})

    def stop(self) -> None:
        loop, thread = self._loop, self._thread
        if loop is None or thread is None:
            return

        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            session.closed = True
            loop.call_soon_threadsafe(self._close_on_loop, session)

        loop.call_soon_threadsafe(loop.stop)
        thread.join(NETWORK_STOP_TIMEOUT_S)
        if not thread.is_alive():
            loop.close()
        self._loop = None
        self._thread = None
        log_event({"level": "DEBUG", "event_type": "NETWORK_SESSION_STOPPED"})

    def _require_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            raise RuntimeError("network session is not started")
        return self._loop

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def create_udp_session(
        self,
        *,
        looper: Looper,
        target: HandlerId,
        local_port: int = 0,
        remote_host: str | None = None,
        remote_port: int | None = None,
    ) -> tuple[int, int]:
        """
        Bind a UDP socket on local_port (0 = ephemeral).

        The socket is IPv6 when remote_host is an IPv6 literal, IPv4 otherwise.

        Returns (session_id, bound_port). Raises OSError if the port cannot
        be bound; everything after the bind is reported asynchronously.
        """
        loop = self._require_loop()

        family = _family_for(remote_host)
        sock = socket.socket(family, socket.SOCK_DGRAM)
        try:
            sock.setblocking(False)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF, RECV_BUFFER_BYTES)
            sock.bind(("::" if family == socket.AF_INET6 else "0.0.0.0", local_port))
        except OSError:
            sock.close()
            raise
        bound_port = sock.getsockname()[1]

        remote = None
        if remote_host is not None and remote_port is not None:
            remote = (remote_host, remote_port)

        session = _UdpSession(
            session_id=next(self._ids),
            sock=sock,
            looper=looper,
            target=target,
            remote=remote,
        )
        with self._lock:
            self._sessions[session.session_id] = session

        asyncio.run_coroutine_threadsafe(self._open(session), loop)
        return session.session_id, bound_port

    async def _open(self, session: _UdpSession) -> None:
        loop = asyncio.get_running_loop()

        if session.remote is not None:
            host, port = session.remote
            try:
                infos = await loop.getaddrinfo(
                    host, port, family=session.sock.family, type=socket.SOCK_DGRAM
                )
            except OSError as exc:
                log_event({
                    "level": "WARNING",
                    "event_type": "NETWORK_RESOLVE_FAILED",
                    "session_id": session.session_id,
                    "host": host,
                    "error": str(exc),
                })
                session.post(NetworkEvent(
                    session_id=session.session_id,
                    kind=NetworkEventKind.ERROR,
                    err=ERR_RESOLVE,
                ))
                return
            session.resolved = infos[0][4]

        if session.closed:
            session.sock.close()
            return

        try:
            transport, _ = await loop.create_datagram_endpoint(
                lambda: _DatagramProtocol(session), sock=session.sock
            )
        except OSError as exc:
            session.post(NetworkEvent(
                session_id=session.session_id,
                kind=NetworkEventKind.ERROR,
                err=_errno_of(exc),
            ))
            return

        session.transport = transport
        if session.closed:
            transport.close()
            return

        session.post(NetworkEvent(session_id=session.session_id, kind=NetworkEventKind.READY))

    def send_datagrams(self, session_id: int, chunks: Sequence[bytes]) -> int:
        """
        Queue chunks for transmission to the session's remote address.

        Returns OK, ERR_INVALID for an unknown session, or ERR_NOT_CONNECTED
        if the session has no resolved remote yet.
        """
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            return ERR_INVALID
        if session.resolved is None:
            return ERR_NOT_CONNECTED

        self._require_loop().call_soon_threadsafe(self._send_on_loop, session, list(chunks))
        return OK

    def destroy_session(self, session_id: int) -> None:
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            return
        session.closed = True
        if self._loop is not None:
            self._loop.call_soon_threadsafe(self._close_on_loop, session)
        else:
            session.sock.close()

    # ------------------------------------------------------------------
    # Loop-thread helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _send_on_loop(session: _UdpSession, chunks: list[bytes]) -> None:
        if session.closed or session.transport is None:
            return
        for chunk in chunks:
            session.transport.sendto(chunk, session.resolved)
        session.datagrams_sent += len(chunks)

    @staticmethod
    def _close_on_loop(session: _UdpSession) -> None:
        if session.transport is not None:
            session.transport.close()
        else:
            session.sock.close()
