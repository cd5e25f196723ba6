from __future__ import annotations
import errno
import select
import socket
import threading
import time

# recv/send failures worth a short pause and another try rather than aborting
TEMPORARY_ERRNOS = frozenset({
    errno.EAGAIN,
    errno.EWOULDBLOCK,
    errno.EINTR,
    errno.ENOBUFS,
    errno.ENOMEM,
    errno.ECONNREFUSED,
    errno.ECONNRESET,
    errno.EMSGSIZE,
})


def is_temporary(exc: BaseException) -> bool:
    if isinstance(exc, TimeoutError):
        return False
    return isinstance(exc, OSError) and exc.errno in TEMPORARY_ERRNOS


class PacketConn:
    """
    UDP socket with an absolute deadline (a time.monotonic() value) applying
    to reads and to writes that would block.

    set_deadline() and close() may be called from any thread while another
    thread is blocked in recv_from(); the blocked call wakes up and
    re-evaluates. Past the deadline, I/O raises TimeoutError.
    """

    def __init__(self, sock: socket.socket):
        sock.setblocking(False)
        self._sock = sock
        self._wake_r, self._wake_w = socket.socketpair()
        self._wake_r.setblocking(False)
        self._wake_w.setblocking(False)
        self._lock = threading.Lock()
        self._deadline: float | None = None
        self._closed = False

    @classmethod
    def listen(cls, host: str = "", port: int = 0, family: int = socket.AF_INET) -> PacketConn:
        sock = socket.socket(family, socket.SOCK_DGRAM)
        try:
            sock.bind((host, port))
        except OSError:
            sock.close()
            raise
        return cls(sock)

    @property
    def family(self) -> int:
        return self._sock.family

    @property
    def local_addr(self) -> tuple:
        return self._sock.getsockname()

    def set_deadline(self, deadline: float | None) -> None:
        with self._lock:
            if self._closed:
                raise OSError(errno.EBADF, "use of closed connection")
            self._deadline = deadline
        self._wake()

    def send_to(self, data: bytes, addr: tuple) -> int:
        while True:
            self._check_open()
            try:
                return self._sock.sendto(data, addr)
            except BlockingIOError:
                self._wait(writable=True)
            except (OSError, ValueError) as e:
                self._raise_if_closed(e)
                raise

    def recv_from(self, bufsize: int) -> tuple[bytes, tuple]:
        while True:
            self._wait(writable=False)
            try:
                return self._sock.recvfrom(bufsize)
            except BlockingIOError:
                continue
            except (OSError, ValueError) as e:
                self._raise_if_closed(e)
                raise

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._wake()
        self._sock.close()
        self._wake_w.close()
        self._wake_r.close()

    def _check_open(self) -> None:
        if self._closed:
            raise OSError(errno.EBADF, "use of closed connection")

    def _raise_if_closed(self, cause: BaseException) -> None:
        if self._closed:
            raise OSError(errno.EBADF, "use of closed connection") from cause

    def _wake(self) -> None:
        try:
            self._wake_w.send(b"\0")
        except OSError:
            # buffer already holds a pending wakeup, or the pair is closed
            pass

    def _drain_wakeups(self) -> None:
        try:
            while self._wake_r.recv(512):
                pass
        except OSError:
            pass

    def _wait(self, writable: bool) -> None:
        while True:
            self._check_open()
            with self._lock:
                deadline = self._deadline
            timeout = None
            if deadline is not None:
                timeout = deadline - time.monotonic()
                if timeout <= 0:
                    raise TimeoutError("i/o timeout")

            try:
                if writable:
                    readable, ready, _ = select.select([self._wake_r], [self._sock], [], timeout)
                else:
                    ready, _, _ = select.select([self._sock, self._wake_r], [], [], timeout)
                    readable = ready
            except (OSError, ValueError) as e:
                self._raise_if_closed(e)
                raise

            if self._wake_r in readable:
                self._drain_wakeups()
                continue
            if self._sock in ready:
                return
