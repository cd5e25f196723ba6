from __future__ import annotations
import ipaddress
import logging
import socket
import threading
import time
from typing import Protocol, runtime_checkable

import httpx

from httpu.config.settings import Settings
from httpu.transport.conn import PacketConn, is_temporary
from httpu.transport.constants import (
    CANCEL_DEADLINE_OFFSET_S,
    DEFAULT_NUM_SENDS,
    DEFAULT_TIMEOUT_S,
    LOCAL_ADDRESS_HEADER,
    RECV_BUFFER_SIZE,
    SEND_PAUSE_S,
    TEMPORARY_BACKOFF_S,
)
from httpu.transport.framing import FramingError, parse_response, serialize_request
from httpu.utils.context import Context, request_context

logger = logging.getLogger(__name__)

_DEFAULT_PORTS = {"http": 80, "https": 443}


class TransmissionError(Exception):
    """The request could not be serialized, resolved or written."""

class InvalidAddressError(ValueError):
    pass


@runtime_checkable
class ClientInterface(Protocol):
    def execute(
        self, request: httpx.Request, timeout_s: float | None = None, num_sends: int | None = None
    ) -> list[httpx.Response]: ...

@runtime_checkable
class ClientInterfaceCtx(Protocol):
    def execute_with_context(
        self, request: httpx.Request, num_sends: int | None = None, context: Context | None = None
    ) -> list[httpx.Response]: ...


class _CancellationWatcher:
    """
    While active, cancellation of `ctx` pushes the connection deadline into
    the past so a blocked read returns right away. Once exited it never
    touches the connection again.
    """

    def __init__(self, conn: PacketConn, ctx: Context):
        self._conn = conn
        self._ctx = ctx
        self._lock = threading.Lock()
        self._stopped = False
        self._remove = None

    def __enter__(self) -> _CancellationWatcher:
        self._remove = self._ctx.add_done_callback(self._fire)
        return self

    def __exit__(self, *exc_info) -> None:
        with self._lock:
            self._stopped = True
        self._remove()

    def _fire(self) -> None:
        with self._lock:
            if self._stopped:
                return
            try:
                self._conn.set_deadline(time.monotonic() - CANCEL_DEADLINE_OFFSET_S)
            except OSError:
                # closed underneath the exchange; the read loop reports it
                pass


class HTTPUClient:
    """
    Client for HTTP over UDP, typically used for HTTPMU and SSDP.

    One exchange runs at a time per client; concurrent callers wait for the
    whole send-and-collect window of the exchange ahead of them.
    """

    def __init__(
        self,
        conn: PacketConn,
        recv_buffer_size: int = RECV_BUFFER_SIZE,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        num_sends: int = DEFAULT_NUM_SENDS,
    ):
        self._conn = conn
        self._lock = threading.Lock()
        self._recv_buffer_size = recv_buffer_size
        self._timeout_s = timeout_s
        self._num_sends = num_sends
        self._local_ip = conn.local_addr[0]

    @classmethod
    def open(cls) -> HTTPUClient:
        return cls(PacketConn.listen())

    @classmethod
    def open_on_address(cls, address: str) -> HTTPUClient:
        """Bind to the given ip literal on a random port."""
        try:
            ip = ipaddress.ip_address(address)
        except ValueError as e:
            raise InvalidAddressError(f"invalid listening address: {address!r}") from e
        return cls.open_on_address_port(str(ip), 0)

    @classmethod
    def open_on_address_port(cls, address: str, port: int | None = None) -> HTTPUClient:
        """Bind to address and port, given separately or as one "host:port" string."""
        if port is None:
            address, port = _split_host_port(address)
        family = socket.AF_INET6 if ":" in address else socket.AF_INET
        return cls(PacketConn.listen(address, port, family))

    @classmethod
    def from_settings(cls, settings: Settings) -> HTTPUClient:
        """Bind as configured; the configured timeout and send count become the defaults."""
        if not settings.bind_address and not settings.bind_port:
            conn = PacketConn.listen()
        else:
            family = socket.AF_INET6 if ":" in settings.bind_address else socket.AF_INET
            conn = PacketConn.listen(settings.bind_address, settings.bind_port, family)
        return cls(conn, timeout_s=settings.timeout_s, num_sends=settings.num_sends)

    @property
    def local_address(self) -> str:
        return self._local_ip

    def close(self) -> None:
        """
        Close the socket. An exchange blocked on a read fails with OSError;
        the client is unusable afterwards.
        """
        self._conn.close()

    def __enter__(self) -> HTTPUClient:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def execute(
        self, request: httpx.Request, timeout_s: float | None = None, num_sends: int | None = None
    ) -> list[httpx.Response]:
        """
        Send `request` num_sends times and return the responses received
        within timeout_s seconds. A timeout <= 0 leaves the request context's
        own deadline (if any) in charge. Omitted arguments fall back to the
        client defaults.

        Only failing to send raises; receive-side problems just mean fewer
        responses.
        """
        if timeout_s is None:
            timeout_s = self._timeout_s
        ctx = request_context(request)
        if timeout_s > 0:
            with ctx.with_timeout(timeout_s) as bounded:
                return self.execute_with_context(request, num_sends, bounded)
        return self.execute_with_context(request, num_sends, ctx)

    def execute_with_context(
        self, request: httpx.Request, num_sends: int | None = None, context: Context | None = None
    ) -> list[httpx.Response]:
        """
        Like execute(), bounded by `context` (default: the context attached
        to the request) instead of a fixed timeout.

        If the context has no deadline and is never cancelled this call
        never returns. Give it a deadline or cancel it when done.
        """
        if num_sends is None:
            num_sends = self._num_sends
        if context is None:
            context = request_context(request)

        with self._lock:
            try:
                payload = serialize_request(request)
            except FramingError as e:
                raise TransmissionError(f"httpu: cannot serialize request: {e}") from e

            dest = self._resolve(request)

            try:
                self._conn.set_deadline(context.deadline)
            except OSError as e:
                raise TransmissionError(f"httpu: {e}") from e

            with _CancellationWatcher(self._conn, context):
                self._send(payload, dest, num_sends)
                responses = self._collect(request)

        logger.debug(
            "httpu: %s %s to %s:%s collected %d responses",
            request.method, request.url, dest[0], dest[1], len(responses),
        )
        return responses

    def _resolve(self, request: httpx.Request) -> tuple:
        host = request.url.host
        port = request.url.port or _DEFAULT_PORTS.get(request.url.scheme)
        if not host or port is None:
            raise TransmissionError(f"httpu: missing host or port in {str(request.url)!r}")
        try:
            infos = socket.getaddrinfo(host, port, self._conn.family, socket.SOCK_DGRAM)
        except OSError as e:
            raise TransmissionError(f"httpu: cannot resolve {host}:{port}: {e}") from e
        return infos[0][4]

    def _send(self, payload: bytes, dest: tuple, num_sends: int) -> None:
        for _ in range(num_sends):
            try:
                n = self._conn.send_to(payload, dest)
            except OSError as e:
                raise TransmissionError(f"httpu: failed to send request: {e}") from e
            if n < len(payload):
                raise TransmissionError(
                    f"httpu: wrote {n} bytes rather than full {len(payload)} in request"
                )
            time.sleep(SEND_PAUSE_S)

    def _collect(self, request: httpx.Request) -> list[httpx.Response]:
        responses: list[httpx.Response] = []
        while True:
            try:
                data, addr = self._conn.recv_from(self._recv_buffer_size)
            except TimeoutError:
                break
            except OSError as e:
                if is_temporary(e):
                    # persistent errors would otherwise spin until the deadline
                    time.sleep(TEMPORARY_BACKOFF_S)
                    continue
                raise

            try:
                response = parse_response(data, request)
            except FramingError as e:
                logger.warning("httpu: error while parsing response from %s: %s", addr[0], e)
                continue

            response.headers[LOCAL_ADDRESS_HEADER] = self._local_ip
            responses.append(response)

        return responses


def _split_host_port(address: str) -> tuple[str, int]:
    host, sep, port = address.rpartition(":")
    if not sep:
        raise InvalidAddressError(f"missing port in address: {address!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    try:
        return host, int(port)
    except ValueError as e:
        raise InvalidAddressError(f"invalid port in address: {address!r}") from e
