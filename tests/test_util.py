import os
import signal
import socket
import threading

import pytest

from epollweb.util import ignore_sigpipe, read_available, set_nonblocking, write_all


@pytest.fixture
def pair():
    a, b = socket.socketpair()
    a.setblocking(False)
    b.setblocking(False)
    yield a, b
    a.close()
    b.close()


def test_read_returns_available_data(pair):
    a, b = pair
    a.sendall(b"hello")
    assert read_available(b, 4096) == b"hello"


def test_read_respects_limit(pair):
    a, b = pair
    a.sendall(b"0123456789")
    first = read_available(b, 4)
    rest = read_available(b, 4096)
    assert first == b"0123"
    assert rest == b"456789"


def test_read_would_block_raises(pair):
    _, b = pair
    with pytest.raises(BlockingIOError):
        read_available(b, 16)


def test_read_after_drain_would_block(pair):
    a, b = pair
    a.sendall(b"data")
    assert read_available(b, 100) == b"data"
    with pytest.raises(BlockingIOError):
        read_available(b, 100)


def test_read_eof_returns_empty():
    a, b = socket.socketpair()
    b.setblocking(False)
    a.sendall(b"bye")
    a.close()
    try:
        assert read_available(b, 100) == b"bye"
        assert read_available(b, 100) == b""
    finally:
        b.close()


def test_read_closed_socket_raises():
    a, b = socket.socketpair()
    a.close()
    b.close()
    with pytest.raises(OSError):
        read_available(b, 10)


def test_write_all_small(pair):
    a, b = pair
    payload = b"GET / HTTP/1.1\r\n\r\n"
    assert write_all(a, payload) == len(payload)
    assert read_available(b, 4096) == payload


def test_write_all_large_with_reader():
    a, b = socket.socketpair()
    a.setblocking(False)
    payload = os.urandom(1 << 20)
    received = []

    def reader():
        while True:
            chunk = b.recv(65536)
            if not chunk:
                break
            received.append(chunk)

    t = threading.Thread(target=reader)
    t.start()
    try:
        assert write_all(a, payload) == len(payload)
    finally:
        a.close()
        t.join(timeout=10)
        b.close()
    assert b"".join(received) == payload


def test_set_nonblocking_socket():
    a, b = socket.socketpair()
    try:
        assert a.getblocking() is True
        set_nonblocking(a)
        assert a.getblocking() is False
    finally:
        a.close()
        b.close()


def test_set_nonblocking_fd():
    r, w = os.pipe()
    try:
        set_nonblocking(r)
        assert os.get_blocking(r) is False
    finally:
        os.close(r)
        os.close(w)


def test_ignore_sigpipe_turns_broken_pipe_into_error():
    previous = signal.getsignal(signal.SIGPIPE)
    a, b = socket.socketpair()
    try:
        signal.signal(signal.SIGPIPE, signal.SIG_DFL)
        ignore_sigpipe()
        assert signal.getsignal(signal.SIGPIPE) == signal.SIG_IGN
        b.close()
        with pytest.raises(OSError):
            write_all(a, b"x" * 1024)
    finally:
        a.close()
        b.close()
        signal.signal(signal.SIGPIPE, previous)