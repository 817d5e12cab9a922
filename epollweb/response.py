"""Building and sending the responses the server gives."""

from __future__ import annotations

import io
import os
import socket
from typing import Mapping, Optional

from PIL import Image, UnidentifiedImageError

from epollweb.mime import mime_for
from epollweb.util import write_all

KEEP_ALIVE_TIMEOUT = 500
POST_REPLY = b"I have receiced this."
DEFAULT_OUTPUT_PATH = "receive.bmp"

_BMP_MODES = frozenset({"1", "L", "P", "RGB"})


class AnalysisError(Exception):
    """The request could not be answered successfully."""


def wants_keep_alive(headers: Mapping[str, str]) -> bool:
    """Tell whether the client asked for the connection to be kept open."""
    return headers.get("Connection") == "keep-alive"


def response_head(
    keep_alive: bool, content_length: int, content_type: Optional[str] = None
) -> bytes:
    """Return the status line and headers of a ``200 OK`` response."""
    lines = ["HTTP/1.1 200 OK\r\n"]
    if keep_alive:
        lines.append("Connection: keep-alive\r\n")
        lines.append(f"Keep-Alive: timeout={KEEP_ALIVE_TIMEOUT}\r\n")
    if content_type is not None:
        lines.append(f"Content-type: {content_type}\r\n")
    lines.append(f"Content-length: {content_length}\r\n")
    lines.append("\r\n")
    return "".join(lines).encode("latin-1")


def error_response(err_num: int, short_msg: str) -> bytes:
    """Return a complete HTML error response that closes the connection."""
    short_msg = " " + short_msg
    body = (
        "<html><title>TKeed Error</title>"
        '<body bgcolor="ffffff">'
        f"{err_num}{short_msg}"
        "<hr><em> Web Server</em>\n</body></html>"
    ).encode("latin-1")
    head = (
        f"HTTP/1.1 {err_num}{short_msg}\r\n"
        "Content-type: text/html\r\n"
        "Connection: close\r\n"
        f"Content-length: {len(body)}\r\n"
        "\r\n"
    ).encode("latin-1")
    return head + body


def _send(sock: socket.socket, data: bytes, what: str) -> int:
    try:
        return write_all(sock, data)
    except OSError as exc:
        raise AnalysisError(f"sending {what} failed") from exc


def handle_get(sock: socket.socket, file_name: str, keep_alive: bool) -> int:
    """Send the file ``file_name`` to ``sock``.

    A missing file is answered with a 404 page and raises ``AnalysisError``.
    Returns the number of bytes written.
    """
    content_type = mime_for(file_name)
    try:
        size = os.stat(file_name).st_size
    except OSError as exc:
        _send(sock, error_response(404, "Not Found!"), "error page")
        raise AnalysisError(f"{file_name} not found") from exc

    written = _send(sock, response_head(keep_alive, size, content_type), "header")
    try:
        with open(file_name, "rb") as source:
            data = source.read()
    except OSError as exc:
        raise AnalysisError(f"reading {file_name} failed") from exc
    if len(data) != size:
        raise AnalysisError(f"{file_name} changed while being sent")
    written += _send(sock, data, "file")
    return written


def handle_post(
    sock: socket.socket,
    body: bytes,
    keep_alive: bool,
    output_path: str = DEFAULT_OUTPUT_PATH,
) -> int:
    """Acknowledge an uploaded image and store it as a BMP file.

    The acknowledgement is sent before the image is decoded; a body that is
    not a readable image raises ``AnalysisError``.  Returns the number of
    bytes written to the socket.
    """
    written = _send(sock, response_head(keep_alive, len(POST_REPLY)), "header")
    written += _send(sock, POST_REPLY, "content")
    try:
        with Image.open(io.BytesIO(body)) as image:
            image.load()
            if image.mode not in _BMP_MODES:
                image = image.convert("RGB")
            image.save(output_path, format="BMP")
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise AnalysisError("uploaded body is not a readable image") from exc
    return written