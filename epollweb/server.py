"""The HTTP server: a listening socket, a poller, timers and a worker pool."""

from __future__ import annotations

import argparse
import logging
import socket
import sys
import threading
from typing import Optional, Sequence

from epollweb.poller import Poller
from epollweb.request import RequestData
from epollweb.threadpool import ShutdownMode, ThreadPool, ThreadPoolError
from epollweb.timer import TimerManager
from epollweb.util import ignore_sigpipe, set_nonblocking

logger = logging.getLogger(__name__)

LISTENQ = 1024
THREADPOOL_THREAD_NUM = 4
QUEUE_SIZE = 65535
PORT = 8888
PATH = "/"
POLL_INTERVAL = 0.5


def socket_bind_listen(port: int) -> socket.socket:
    """Return a TCP socket listening on ``port`` on every IPv4 address.

    Ports outside 1024..65535 raise ``ValueError``.
    """
    if port < 1024 or port > 65535:
        raise ValueError(f"port {port} is outside 1024..65535")
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind(("", port))
        sock.listen(LISTENQ)
    except OSError:
        sock.close()
        raise
    return sock


class Server:
    """Accepts connections and answers their requests on worker threads."""

    def __init__(
        self,
        port: int = PORT,
        thread_count: int = THREADPOOL_THREAD_NUM,
        queue_size: int = QUEUE_SIZE,
        path: str = PATH,
    ) -> None:
        self.port = port
        self.poll_interval = POLL_INTERVAL
        self._stop = threading.Event()
        self._serving = threading.RLock()
        self._closed = False

        self.listen_sock = socket_bind_listen(port)
        try:
            set_nonblocking(self.listen_sock)
            self.timers = TimerManager(on_expire=self._expire)
            self.poller = Poller(self.timers, path)
            self.poller.add(self.listen_sock, None)
        except Exception:
            self.listen_sock.close()
            raise
        self.pool = ThreadPool(thread_count, queue_size)

    def _expire(self, request: RequestData) -> None:
        try:
            self.poller.delete(request.sock)
        except OSError:
            pass
        request.close()

    @staticmethod
    def _handle(request: RequestData) -> None:
        request.handle_request()

    def serve_once(self, timeout: Optional[float] = None) -> int:
        """Wait once for activity, dispatch ready requests, expire timers.

        Returns the number of requests handed to the worker pool.
        """
        requests = iter(self.poller.poll(self.listen_sock, timeout))
        dispatched = 0
        for request in requests:
            try:
                self.pool.submit(self._handle, request)
            except ThreadPoolError:
                logger.warning("worker pool refused a request; dropping the rest")
                request.close()
                for dropped in requests:
                    dropped.close()
                break
            dispatched += 1
        self.timers.handle_expired()
        return dispatched

    def serve_forever(self) -> None:
        """Serve until ``close`` is called."""
        with self._serving:
            while not self._stop.is_set():
                self.serve_once(self.poll_interval)

    def close(self) -> None:
        """Stop serving and release the workers, connections and socket."""
        if self._closed:
            return
        self._stop.set()
        with self._serving:
            if self._closed:
                return
            self._closed = True
            if not self.pool.closed:
                self.pool.shutdown(ShutdownMode.IMMEDIATE)
            self.poller.close()
            self.listen_sock.close()


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the server from the command line."""
    parser = argparse.ArgumentParser(prog="epollweb", description="Serve files over HTTP.")
    parser.add_argument("--port", type=int, default=PORT)
    parser.add_argument("--threads", type=int, default=THREADPOOL_THREAD_NUM)
    parser.add_argument("--queue-size", type=int, default=QUEUE_SIZE)
    parser.add_argument("--path", default=PATH)
    args = parser.parse_args(argv)

    ignore_sigpipe()
    try:
        server = Server(args.port, args.threads, args.queue_size, args.path)
    except (OSError, ValueError) as exc:
        print(f"socket bind failed: {exc}", file=sys.stderr)
        return 1
    logging.basicConfig(level=logging.INFO)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())