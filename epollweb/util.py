"""Low-level socket helpers used by the server."""

from __future__ import annotations

import os
import select
import signal
import socket
from typing import Union


def read_available(sock: socket.socket, n: int) -> bytes:
    """Read up to ``n`` bytes from a non-blocking socket.

    Reading stops when ``n`` bytes have arrived, when the peer closes the
    connection, or when no more data is available right now.  If nothing at
    all could be read because the socket would block, ``BlockingIOError`` is
    raised so that callers can tell "try again later" apart from end of file,
    which yields ``b""``.  Any other socket error propagates.
    """
    chunks: list[bytes] = []
    remaining = n
    while remaining > 0:
        try:
            chunk = sock.recv(remaining)
        except InterruptedError:
            continue
        except BlockingIOError:
            if not chunks:
                raise
            break
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def write_all(sock: socket.socket, data: bytes) -> int:
    """Send every byte of ``data``, waiting while the socket is full.

    Returns the number of bytes written, which is always ``len(data)``.
    Errors other than interruption or a full send buffer propagate.
    """
    view = memoryview(data)
    written = 0
    while written < len(view):
        try:
            sent = sock.send(view[written:])
        except InterruptedError:
            continue
        except BlockingIOError:
            select.select([], [sock], [])
            continue
        written += sent
    return written


def ignore_sigpipe() -> None:
    """Ignore SIGPIPE so writes to closed peers fail with an error instead."""
    if not hasattr(signal, "SIGPIPE"):
        return
    try:
        signal.signal(signal.SIGPIPE, signal.SIG_IGN)
    except (ValueError, OSError):
        return


def set_nonblocking(sock: Union[socket.socket, int]) -> None:
    """Put a socket, or a raw file descriptor, into non-blocking mode."""
    if isinstance(sock, int):
        os.set_blocking(sock, False)
    else:
        sock.setblocking(False)