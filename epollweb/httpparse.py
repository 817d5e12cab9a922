"""Incremental parsing of an HTTP request line and its header block."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

MAX_HEADER_VALUE = 255

_CR = ord("\r")
_LF = ord("\n")
_COLON = ord(":")
_SPACE = ord(" ")


class HttpParseError(ValueError):
    """The request is malformed."""


class Method(enum.Enum):
    POST = 1
    GET = 2


class HttpVersion(enum.Enum):
    HTTP_10 = 1
    HTTP_11 = 2


@dataclass(frozen=True)
class RequestLine:
    """The parts of a request line the server acts on."""

    method: Method
    file_name: str
    version: HttpVersion


def parse_request_line(content: bytes) -> Optional[Tuple[RequestLine, bytes]]:
    """Parse the request line at the start of ``content``.

    Returns ``None`` while no carriage return has arrived yet.  Otherwise
    returns the parsed line and the bytes after its ``\\r``.  Raises
    ``HttpParseError`` when the line is malformed.
    """
    end = content.find(b"\r")
    if end < 0:
        return None
    line = content[:end]
    rest = content[end + 1:]

    pos = line.find(b"GET")
    if pos >= 0:
        method = Method.GET
    else:
        pos = line.find(b"POST")
        if pos < 0:
            raise HttpParseError("unsupported method")
        method = Method.POST

    slash = line.find(b"/", pos)
    if slash < 0:
        raise HttpParseError("missing request target")
    space = line.find(b" ", slash)
    if space < 0:
        raise HttpParseError("missing space after request target")
    if space - slash > 1:
        target = line[slash + 1:space]
        query = target.find(b"?")
        if query >= 0:
            target = target[:query]
        file_name = target.decode("latin-1")
    else:
        file_name = "index.html"

    slash = line.find(b"/", space)
    if slash < 0:
        raise HttpParseError("missing HTTP version")
    if len(line) - slash <= 3:
        raise HttpParseError("truncated HTTP version")
    version_text = line[slash + 1:slash + 4]
    if version_text == b"1.0":
        version = HttpVersion.HTTP_10
    elif version_text == b"1.1":
        version = HttpVersion.HTTP_11
    else:
        raise HttpParseError("unsupported HTTP version")
    return RequestLine(method, file_name, version), rest


class _State(enum.Enum):
    START = 0
    KEY = 1
    COLON = 2
    SPACES_AFTER_COLON = 3
    VALUE = 4
    CR = 5
    LF = 6
    END_CR = 7
    END_LF = 8


class HeaderParser:
    """Parses ``Key: value`` lines up to the empty line, across several reads.

    Complete header lines are collected in ``headers``.  An unfinished line
    is handed back with the unparsed rest so that it can be parsed again
    once more data has arrived.
    """

    def __init__(self) -> None:
        self.headers: Dict[str, str] = {}
        self._state = _State.START

    @property
    def done(self) -> bool:
        """Whether the empty line ending the headers has been seen."""
        return self._state is _State.END_LF

    def reset(self) -> None:
        """Forget all headers and start over."""
        self.headers = {}
        self._state = _State.START

    def parse(self, content: bytes) -> Tuple[bool, bytes]:
        """Consume header bytes.

        Returns ``(True, body)`` once the header block is complete, where
        ``body`` is what follows it, or ``(False, rest)`` where ``rest``
        must be passed again, extended by new data.  Raises
        ``HttpParseError`` on a malformed header.
        """
        if self.done:
            return True, content
        state = self._state
        line_state = state
        line_begin = 0
        key_start = key_end = value_start = 0

        for i, byte in enumerate(content):
            if state is _State.START:
                if byte in (_CR, _LF):
                    line_begin = i + 1
                    continue
                state = _State.KEY
                key_start = i
                line_begin = i
                line_state = _State.START
            elif state is _State.KEY:
                if byte == _COLON:
                    key_end = i
                    if key_end - key_start <= 0:
                        raise HttpParseError("empty header name")
                    state = _State.COLON
                elif byte in (_CR, _LF):
                    raise HttpParseError("line break in header name")
            elif state is _State.COLON:
                if byte != _SPACE:
                    raise HttpParseError("expected a space after the colon")
                state = _State.SPACES_AFTER_COLON
            elif state is _State.SPACES_AFTER_COLON:
                state = _State.VALUE
                value_start = i
            elif state is _State.VALUE:
                if byte == _CR:
                    if i - value_start <= 0:
                        raise HttpParseError("empty header value")
                    value_end = i
                    state = _State.CR
                    key = content[key_start:key_end].decode("latin-1")
                    value = content[value_start:value_end].decode("latin-1")
                elif i - value_start > MAX_HEADER_VALUE:
                    raise HttpParseError("header value too long")
            elif state is _State.CR:
                if byte != _LF:
                    raise HttpParseError("expected a line feed")
                self.headers[key] = value
                state = _State.LF
                line_begin = i + 1
                line_state = _State.LF
            elif state is _State.LF:
                if byte == _CR:
                    state = _State.END_CR
                else:
                    key_start = i
                    state = _State.KEY
            elif state is _State.END_CR:
                if byte != _LF:
                    raise HttpParseError("expected a line feed after the headers")
                self._state = _State.END_LF
                return True, content[i + 1:]

        self._state = line_state
        return False, content[line_begin:]