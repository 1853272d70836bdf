"""Testing utilities for exercising direwolf sessions end-to-end.

Provides a loopback HTTP server that serves queued responses and records every
request it receives, plus an HTTPX transport backed by the same queues so unit
tests can run without sockets.
"""

from __future__ import annotations

import contextlib
import http.server
import json
import logging
import socket
import threading
import time
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Deque, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple, Union
from urllib.parse import urljoin

import httpx

from .session import Session

__all__ = [
    "ResponseSpec",
    "RequestRecord",
    "TestServer",
    "mock_session",
]


@contextlib.contextmanager
def mock_session(handler, **session_kwargs) -> Iterator[Session]:
    """Yield a :class:`Session` whose every route is served by ``handler``.

    ``handler`` receives an ``httpx.Request`` and returns an ``httpx.Response``,
    exactly as for ``httpx.MockTransport``.
    """
    session = Session(transport=httpx.MockTransport(handler), **session_kwargs)
    try:
        yield session
    finally:
        session.close()


@dataclass
class ResponseSpec:
    """HTTP response definition served by the loopback test server."""

    status: int = 200
    body: Union[bytes, str, dict, list] = b""
    headers: Union[Mapping[str, str], Sequence[Tuple[str, str]]] = field(default_factory=dict)
    method: str = "GET"
    stream: Optional[Iterable[Union[bytes, str]]] = None
    delay_sec: Optional[float] = None

    def serialise_body(self) -> bytes:
        if isinstance(self.body, bytes):
            return self.body
        if isinstance(self.body, str):
            return self.body.encode("utf-8")
        return json.dumps(self.body).encode("utf-8")

    def header_items(self) -> List[Tuple[str, str]]:
        if isinstance(self.headers, Mapping):
            return list(self.headers.items())
        return list(self.headers)


@dataclass
class RequestRecord:
    """Captured HTTP request received by the test server."""

    method: str
    path: str
    query: str
    headers: Mapping[str, str]
    body: bytes


class _ThreadedHTTPServer(http.server.ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, server_address, RequestHandlerClass, *, owner) -> None:
        super().__init__(server_address, RequestHandlerClass)
        self.owner = owner


class _RequestHandler(http.server.BaseHTTPRequestHandler):
    server_version = "DirewolfTestServer/1.0"
    protocol_version = "HTTP/1.1"

    def log_message(self, format, *args):  # noqa: D401  (silence default logging)
        return

    def _handle(self) -> None:
        owner: TestServer = self.server.owner  # type: ignore[attr-defined]
        path, _, query = self.path.partition("?")
        record = RequestRecord(
            method=self.command,
            path=path,
            query=query,
            headers=httpx.Headers(list(self.headers.items())),
            body=self.rfile.read(int(self.headers.get("Content-Length", "0") or "0")),
        )
        owner._record(record)
        response = owner._dequeue_response(method=self.command, path=path)
        if response is None:
            self.send_error(404, "No response queued for path")
            return
        if response.delay_sec:
            time.sleep(response.delay_sec)
        body = response.serialise_body()
        headers = response.header_items()
        names = {key.lower() for key, _ in headers}
        if response.stream is not None:
            headers.append(("Connection", "close"))
        elif "content-length" not in names:
            headers.append(("Content-Length", str(len(body))))
        self.send_response(response.status)
        for key, value in headers:
            self.send_header(key, value)
        self.end_headers()
        if self.command != "HEAD":
            if response.stream is not None:
                for chunk in response.stream:
                    self.wfile.write(chunk.encode("utf-8") if isinstance(chunk, str) else chunk)
                    self.wfile.flush()
                self.close_connection = True
            else:
                self.wfile.write(body)

    do_GET = _handle
    do_HEAD = _handle
    do_POST = _handle
    do_PUT = _handle
    do_PATCH = _handle
    do_DELETE = _handle
    do_OPTIONS = _handle


def _find_free_port(host: str = "127.0.0.1") -> Tuple[str, int]:
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind((host, 0))
    addr, port = sock.getsockname()
    sock.close()
    return addr, port


class TestServer(contextlib.AbstractContextManager):
    """Loopback HTTP server serving queued :class:`ResponseSpec` objects.

    Responses are queued per ``(method, path)`` and served first in, first
    out; a request with nothing queued gets a 404. Every request is recorded,
    queued or not.

    Examples:
        >>> with TestServer() as server:
        ...     server.queue_response("/hello", ResponseSpec(body="hi"))
        ...     Session().get(server.url("/hello")).text  # doctest: +SKIP
        'hi'
    """

    __test__ = False  # not a pytest test class

    def __init__(self, *, logger: Optional[logging.Logger] = None) -> None:
        self._logger = logger or logging.getLogger("direwolf.testing")
        self._lock = threading.Lock()
        self._request_log: List[RequestRecord] = []
        self._responses: Dict[Tuple[str, str], Deque[ResponseSpec]] = defaultdict(deque)
        self._http_server: Optional[_ThreadedHTTPServer] = None
        self._http_thread: Optional[threading.Thread] = None
        self._http_root: Optional[str] = None

    def __enter__(self) -> "TestServer":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    def start(self) -> None:
        host, port = _find_free_port()
        server = _ThreadedHTTPServer((host, port), _RequestHandler, owner=self)
        thread = threading.Thread(target=server.serve_forever, name="DirewolfTestServer")
        thread.daemon = True
        thread.start()
        self._http_server = server
        self._http_thread = thread
        self._http_root = f"http://{host}:{port}/"
        self._logger.debug("Test server listening", extra={"root": self._http_root})

    def stop(self) -> None:
        if self._http_server is not None:
            self._http_server.shutdown()
            self._http_server.server_close()
            self._http_server = None
        if self._http_thread is not None:
            self._http_thread.join(timeout=5)
            self._http_thread = None
        with self._lock:
            self._responses.clear()
        self._http_root = None

    @property
    def root(self) -> str:
        if not self._http_root:
            raise RuntimeError("TestServer must be started before requesting URLs")
        return self._http_root

    def url(self, path: str = "/") -> str:
        """Return the absolute URL served for ``path``."""
        return urljoin(self.root, path.lstrip("/"))

    def queue_response(self, path: str, response: ResponseSpec) -> None:
        """Append ``response`` to the queue for ``(response.method, path)``."""
        key = (response.method.upper(), "/" + path.lstrip("/"))
        with self._lock:
            self._responses[key].append(response)

    def _dequeue_response(self, *, method: str, path: str) -> Optional[ResponseSpec]:
        key = (method.upper(), path)
        with self._lock:
            responses = self._responses.get(key)
            if not responses:
                return None
            return responses.popleft()

    def _record(self, record: RequestRecord) -> None:
        with self._lock:
            self._request_log.append(record)

    def build_httpx_transport(self) -> httpx.MockTransport:
        """Return an HTTPX transport that serves the same queues without sockets."""

        def handler(request: httpx.Request) -> httpx.Response:
            path = request.url.path
            self._record(
                RequestRecord(
                    method=request.method,
                    path=path,
                    query=request.url.query.decode("ascii"),
                    headers=httpx.Headers(request.headers),
                    body=request.read(),
                )
            )
            spec = self._dequeue_response(method=request.method, path=path)
            if spec is None:
                return httpx.Response(404, request=request)
            if spec.delay_sec:
                time.sleep(spec.delay_sec)
            content = spec.serialise_body() if spec.stream is None else b"".join(
                chunk.encode("utf-8") if isinstance(chunk, str) else chunk for chunk in spec.stream
            )
            return httpx.Response(
                spec.status,
                headers=spec.header_items(),
                content=content,
                request=request,
            )

        return httpx.MockTransport(handler)

    @property
    def requests(self) -> Sequence[RequestRecord]:
        """Return the list of captured requests."""
        with self._lock:
            return list(self._request_log)
