import errno
import threading
import time

import pytest

from httpu.transport.conn import PacketConn, is_temporary


@pytest.fixture
def conn():
    c = PacketConn.listen("127.0.0.1", 0)
    try:
        yield c
    finally:
        c.close()


def _read_in_thread(conn):
    outcome = {}

    def run():
        try:
            outcome["result"] = conn.recv_from(2048)
        except BaseException as e:
            outcome["error"] = e

    t = threading.Thread(target=run, daemon=True)
    t.start()
    return t, outcome


def test_send_and_receive(conn):
    peer = PacketConn.listen("127.0.0.1", 0)
    try:
        assert peer.send_to(b"hello", conn.local_addr) == 5
        conn.set_deadline(time.monotonic() + 2)
        data, addr = conn.recv_from(2048)
        assert data == b"hello"
        assert addr == peer.local_addr
    finally:
        peer.close()

def test_past_deadline_times_out_at_once(conn):
    conn.set_deadline(time.monotonic() - 1)
    started = time.monotonic()
    with pytest.raises(TimeoutError):
        conn.recv_from(2048)
    assert time.monotonic() - started < 0.5

def test_deadline_moved_into_past_wakes_blocked_read(conn):
    t, outcome = _read_in_thread(conn)
    time.sleep(0.1)
    assert t.is_alive()

    conn.set_deadline(time.monotonic() - 1)
    t.join(2)
    assert not t.is_alive()
    assert isinstance(outcome["error"], TimeoutError)

def test_clearing_deadline_allows_reads_again(conn):
    conn.set_deadline(time.monotonic() - 1)
    conn.set_deadline(None)
    peer = PacketConn.listen("127.0.0.1", 0)
    try:
        peer.send_to(b"x", conn.local_addr)
        assert conn.recv_from(16)[0] == b"x"
    finally:
        peer.close()

def test_close_wakes_blocked_read_with_error(conn):
    t, outcome = _read_in_thread(conn)
    time.sleep(0.1)

    conn.close()
    t.join(2)
    assert not t.is_alive()
    err = outcome["error"]
    assert isinstance(err, OSError) and not isinstance(err, TimeoutError)
    assert err.errno == errno.EBADF

def test_close_is_idempotent(conn):
    conn.close()
    conn.close()
    with pytest.raises(OSError):
        conn.set_deadline(None)

@pytest.mark.parametrize("exc, expected", [
    (OSError(errno.EAGAIN, "again"), True),
    (OSError(errno.ENOBUFS, "no buffers"), True),
    (OSError(errno.ECONNREFUSED, "refused"), True),
    (OSError(errno.EBADF, "closed"), False),
    (TimeoutError("i/o timeout"), False),
    (ValueError("nope"), False),
])
def test_is_temporary(exc, expected):
    assert is_temporary(exc) is expected
