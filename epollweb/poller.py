"""Readiness polling for the listening socket and client connections.

Client connections are watched one-shot: once a connection reports input it
is taken off the watch list until its request handler rearms it.  This keeps
a connection with a single worker at any moment.
"""

from __future__ import annotations

import errno
import logging
import selectors
import socket
import threading
from typing import Dict, List, Optional, Union

from epollweb.request import RequestData
from epollweb.timer import TimerManager
from epollweb.util import set_nonblocking

logger = logging.getLogger(__name__)

TIMER_TIME_OUT = 500

_Sock = Union[socket.socket, int]


def _fd_of(sock: _Sock) -> int:
    fd = sock if isinstance(sock, int) else sock.fileno()
    if fd < 0:
        raise OSError(errno.EBADF, "socket is closed")
    return fd


class Poller:
    """Tracks which request belongs to which descriptor and reports input."""

    def __init__(self, timers: Optional[TimerManager] = None, path: str = "/") -> None:
        self.timers = timers
        self.path = path
        self._selector = selectors.DefaultSelector()
        self._fd2req: Dict[int, Optional[RequestData]] = {}
        self._lock = threading.Lock()

    def add(self, sock: _Sock, request: Optional[RequestData]) -> None:
        """Start watching ``sock`` for input on behalf of ``request``."""
        fd = _fd_of(sock)
        with self._lock:
            try:
                self._selector.register(sock, selectors.EVENT_READ, request)
            except (KeyError, ValueError) as exc:
                raise OSError(f"cannot watch fd {fd}") from exc
            self._fd2req[fd] = request

    def modify(self, sock: _Sock, request: Optional[RequestData]) -> None:
        """Watch ``sock`` again, or change the request attached to it."""
        fd = _fd_of(sock)
        with self._lock:
            try:
                try:
                    self._selector.get_key(fd)
                except KeyError:
                    self._selector.register(sock, selectors.EVENT_READ, request)
                else:
                    self._selector.modify(fd, selectors.EVENT_READ, request)
            except (KeyError, ValueError) as exc:
                raise OSError(f"cannot rearm fd {fd}") from exc
            self._fd2req[fd] = request

    def delete(self, sock: _Sock) -> None:
        """Stop watching ``sock`` and forget its request."""
        fd = _fd_of(sock)
        with self._lock:
            self._fd2req.pop(fd, None)
            try:
                self._selector.unregister(fd)
            except (KeyError, ValueError) as exc:
                raise OSError(f"fd {fd} is not watched") from exc

    def _rearm(self, request: RequestData) -> None:
        self.modify(request.sock, request)

    def accept_connections(self, listen_sock: socket.socket) -> List[RequestData]:
        """Accept every pending connection and start watching each one."""
        accepted: List[RequestData] = []
        while True:
            try:
                conn, addr = listen_sock.accept()
            except BlockingIOError:
                break
            logger.info("connection from %s", addr)
            try:
                set_nonblocking(conn)
            except OSError:
                logger.warning("could not make connection non-blocking")
                conn.close()
                break
            request = RequestData(conn, self.path, rearm=self._rearm, timers=self.timers)
            try:
                self.add(conn, request)
            except OSError:
                logger.warning("could not watch new connection", exc_info=True)
                conn.close()
                continue
            if self.timers is not None:
                self.timers.add_timer(request, TIMER_TIME_OUT)
            accepted.append(request)
        return accepted

    def poll(
        self, listen_sock: Optional[socket.socket] = None, timeout: Optional[float] = None
    ) -> List[RequestData]:
        """Wait up to ``timeout`` seconds and return requests that have input.

        Input on ``listen_sock`` is handled by accepting connections.  Each
        returned request has been detached from its timer and is no longer
        watched until it is rearmed.
        """
        listen_fd = listen_sock.fileno() if listen_sock is not None else -1
        ready: List[RequestData] = []
        for key, mask in self._selector.select(timeout):
            fd = key.fd
            if fd == listen_fd:
                self.accept_connections(listen_sock)
                continue
            if fd < 3:
                break
            with self._lock:
                request = self._fd2req.pop(fd, None)
                try:
                    self._selector.unregister(fd)
                except (KeyError, ValueError):
                    pass
            if request is None or not mask & selectors.EVENT_READ:
                continue
            request.separate_timer()
            ready.append(request)
        return ready

    def close(self) -> None:
        """Close every watched connection and the poller itself."""
        with self._lock:
            requests = [req for req in self._fd2req.values() if req is not None]
            self._fd2req.clear()
            for request in requests:
                request.close()
            self._selector.close()