# epollweb

A small event-driven HTTP/1.0 and HTTP/1.1 server. One thread waits for
socket readiness with the standard `selectors` module and accepts new
connections. A fixed-size pool of worker threads reads and parses the
requests and sends the responses. Each connection is watched one-shot, so
only one worker handles it at a time. Connections that stay idle past their
500 ms timer are closed.

## What it serves

- `GET /name` sends the file `name`, looked up relative to the current
  working directory. The `Content-type` header comes from the file name,
  taken from its first dot onwards (`.html`, `.png`, `.jpg`, `.txt`, and so
  on; anything unknown is `text/html`). `GET /` sends `index.html`. A query
  string after `?` is ignored. A missing file gets a `404 Not Found!` HTML
  page, and the connection is closed.
- `POST` requests need a `Content-length` header, spelt exactly so. The
  body is read in full. The server replies `I have receiced this.` and then
  decodes the body as an image with Pillow and saves it as `receive.bmp`.
  If the body is not a readable image, the connection is closed.
- If the request has `Connection: keep-alive`, the connection stays open
  for the next request. The response then carries `Keep-Alive: timeout=500`.
  Without that header, the connection is closed after the response.

A request line that is not `GET` or `POST`, or whose version is not
`HTTP/1.0` or `HTTP/1.1`, closes the connection without a response. So
does a malformed header line.

## Installing

```
pip install .
```

To install the test tools as well:

```
pip install .[test]
```

## Running

```
epollweb
```

Options:

- `--port`: port to listen on, on every IPv4 address. Default 8888. It must
  be between 1024 and 65535.
- `--threads`: number of worker threads. Default 4.
- `--queue-size`: most requests waiting for a worker. Default 65535.
- `--path`: path stored with each connection. Default `/`. It does not
  change where files are looked up.

If the socket cannot be bound, the command prints `socket bind failed: ...`
and exits with status 1. Ctrl-C stops the server.

## Using it from Python

```python
from epollweb.server import Server

server = Server(port=8888, thread_count=4, queue_size=65535, path="/")
try:
    server.serve_forever()
finally:
    server.close()
```

`Server.serve_once(timeout)` waits once for activity and hands ready
requests to the worker pool. It returns how many requests it handed over.
`epollweb.server.socket_bind_listen(port)` returns a listening socket. It
raises `ValueError` for ports outside 1024..65535.

The parts can also be used on their own:

- `epollweb.threadpool.ThreadPool(thread_count, queue_size)` is a bounded
  worker pool.
  - `submit(function, argument)` queues a call. It raises `QueueFullError`
    when the queue is full and `PoolShutdownError` once shutdown has begun.
  - `shutdown(ShutdownMode.GRACEFUL)` runs the queued tasks first.
    `ShutdownMode.IMMEDIATE` leaves them unrun.
  - Sizes out of range fall back to 4 threads and a queue of 1024.
  - The pool is also a context manager.
- `epollweb.timer.TimerManager` keeps per-connection deadlines in a heap.
  `handle_expired()` drops timers that are cleared or past due. It passes
  requests whose timers ran out to the `on_expire` callback.
- `epollweb.httpparse` has `parse_request_line` and the incremental
  `HeaderParser`. Both raise `HttpParseError` on malformed input.
- `epollweb.response` builds response heads and error pages.
  `handle_get` and `handle_post` answer requests and raise `AnalysisError`
  on failure.
- `epollweb.request.RequestData` holds the state of one connection.
  `epollweb.poller.Poller` tracks readiness of the listening socket and the
  connections.
- `epollweb.mime.get_mime(suffix)` and `mime_for(file_name)` map names to
  content types.
- `epollweb.util` has `read_available`, `write_all`, `set_nonblocking` and
  `ignore_sigpipe`.

## What it does not do

It serves only `GET` and `POST`. It has no TLS and no directory listings.
It does not accept chunked request bodies, and it does not confine file
names to a document root. Header names are matched exactly, so
`Content-Length` or `connection` are not recognised.