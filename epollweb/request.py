"""Per-connection request state: read, parse, answer, then rearm or close."""

from __future__ import annotations

import enum
import logging
import socket
import weakref
from typing import Callable, Dict, Optional

from epollweb.httpparse import (
    HeaderParser,
    HttpParseError,
    HttpVersion,
    Method,
    parse_request_line,
)
from epollweb.response import (
    DEFAULT_OUTPUT_PATH,
    AnalysisError,
    handle_get,
    handle_post,
    wants_keep_alive,
)
from epollweb.timer import TimerManager, TimerNode
from epollweb.util import read_available

logger = logging.getLogger(__name__)

MAX_BUFF = 4096
# A connection that keeps signalling readiness without delivering data is
# given up after this many empty reads.
AGAIN_MAX_TIMES = 200
EPOLL_WAIT_TIME = 500


class State(enum.Enum):
    """Where a request is in its life cycle."""

    PARSE_URI = 1
    PARSE_HEADERS = 2
    RECV_BODY = 3
    ANALYSIS = 4
    FINISH = 5


class RequestData:
    """One client connection and the request currently being received.

    ``rearm`` is called with the request once it should be watched for
    input again; ``timers`` receives a fresh timeout at the same moment.
    Either may be ``None``.
    """

    def __init__(
        self,
        sock: Optional[socket.socket] = None,
        path: str = "/",
        rearm: Optional[Callable[["RequestData"], None]] = None,
        timers: Optional[TimerManager] = None,
    ) -> None:
        self.sock = sock
        self.path = path
        self.rearm = rearm
        self.timers = timers
        self.output_path = DEFAULT_OUTPUT_PATH
        self._timer: Optional[weakref.ReferenceType[TimerNode]] = None
        self._headers = HeaderParser()
        self._clear()

    def _clear(self) -> None:
        self.again_times = 0
        self.content = b""
        self.file_name = ""
        self.method: Optional[Method] = None
        self.version: Optional[HttpVersion] = None
        self.state = State.PARSE_URI
        self.keep_alive = False
        self._headers.reset()

    @property
    def headers(self) -> Dict[str, str]:
        """Headers parsed so far."""
        return self._headers.headers

    def fileno(self) -> int:
        """The socket's descriptor, or -1 when there is none or it is closed."""
        if self.sock is None:
            return -1
        return self.sock.fileno()

    def link_timer(self, timer: TimerNode) -> None:
        """Remember the timer guarding this connection without owning it."""
        self._timer = weakref.ref(timer)

    def separate_timer(self) -> None:
        """Detach from the current timer so that its expiry is harmless."""
        if self._timer is not None:
            timer = self._timer()
            if timer is not None:
                timer.clear_request()
            self._timer = None

    def reset(self) -> None:
        """Prepare for the next request on a kept-alive connection."""
        self._clear()
        self.separate_timer()

    def feed(self, data: bytes = b"") -> State:
        """Add received bytes and advance as far as they allow.

        A complete request is answered on the socket.  Returns the state
        reached; raises ``HttpParseError`` for a malformed request and
        ``AnalysisError`` when it cannot be answered.
        """
        self.content += data

        if self.state is State.PARSE_URI:
            parsed = parse_request_line(self.content)
            if parsed is None:
                return self.state
            line, self.content = parsed
            self.method = line.method
            self.file_name = line.file_name
            self.version = line.version
            self.state = State.PARSE_HEADERS

        if self.state is State.PARSE_HEADERS:
            done, self.content = self._headers.parse(self.content)
            if not done:
                return self.state
            self.state = State.RECV_BODY if self.method is Method.POST else State.ANALYSIS

        if self.state is State.RECV_BODY:
            length_text = self.headers.get("Content-length")
            if length_text is None:
                raise HttpParseError("POST request without Content-length")
            try:
                content_length = int(length_text)
            except ValueError as exc:
                raise HttpParseError("Content-length is not a number") from exc
            if len(self.content) < content_length:
                return self.state
            self.state = State.ANALYSIS

        if self.state is State.ANALYSIS:
            self.keep_alive = wants_keep_alive(self.headers)
            if self.method is Method.POST:
                handle_post(self.sock, self.content, self.keep_alive, self.output_path)
            elif self.method is Method.GET:
                handle_get(self.sock, self.file_name, self.keep_alive)
            else:
                raise AnalysisError("no method to answer")
            self.state = State.FINISH

        return self.state

    def handle_request(self) -> bool:
        """Read what the socket offers and act on it.

        Returns ``True`` when the connection stays open and has been
        rearmed, ``False`` when it has been closed.
        """
        error = False
        while True:
            try:
                data = read_available(self.sock, MAX_BUFF)
            except BlockingIOError:
                if self.again_times > AGAIN_MAX_TIMES:
                    error = True
                else:
                    self.again_times += 1
                break
            except OSError:
                logger.debug("read failed on fd %d", self.fileno(), exc_info=True)
                error = True
                break
            if not data:
                error = True
                break
            try:
                state = self.feed(data)
            except (HttpParseError, AnalysisError):
                logger.debug("request on fd %d failed", self.fileno(), exc_info=True)
                error = True
                break
            if state is not State.RECV_BODY:
                break

        if error:
            self.close()
            return False

        if self.state is State.FINISH:
            if self.keep_alive:
                self.reset()
            else:
                self.close()
                return False

        # The timer goes in before rearming, so a new event can always
        # find it and detach it.
        if self.timers is not None:
            self.timers.add_timer(self, EPOLL_WAIT_TIME)
        if self.rearm is not None:
            try:
                self.rearm(self)
            except OSError:
                self.close()
                return False
        return True

    def close(self) -> None:
        """Close the connection."""
        self.separate_timer()
        if self.sock is not None:
            self.sock.close()

    def __repr__(self) -> str:
        return f"RequestData(fd={self.fileno()}, state={self.state.name})"