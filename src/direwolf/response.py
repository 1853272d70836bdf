"""Fully buffered HTTP response."""

from __future__ import annotations

import http.cookiejar
import json
from dataclasses import dataclass, field
from functools import cached_property
from typing import Any, List, Tuple

import httpx

from .datatypes import Cookie, Cookies
from .network.policy import DEFAULT_ENCODING
from .request import RequestSetting

__all__ = ["Response", "build_response", "parse_cookies"]


@dataclass(frozen=True, eq=False)
class Response:
    """Outcome of one completed request.

    The body has already been read in full; ``text`` and ``json()`` decode the
    stored bytes and never touch the network.

    Attributes:
        url: Final URL, after any redirects. ``request.url`` is the URL asked for.
        status_code: HTTP status of the final response.
        proto: Protocol string, e.g. ``"HTTP/1.1"``.
        encoding: Encoding used by ``text`` (always ``UTF-8``).
        headers: Response headers.
        cookies: Cookies set by the final response.
        request: The :class:`RequestSetting` that produced this response.
        content_length: Declared ``Content-Length``, ``-1`` when absent.
        content: Body bytes, decompressed.
        history: ``(url, status)`` for each redirect hop followed.
    """

    url: str
    status_code: int
    proto: str
    encoding: str
    headers: httpx.Headers
    cookies: Cookies
    request: RequestSetting
    content_length: int
    content: bytes = field(repr=False)
    history: List[Tuple[str, int]] = field(default_factory=list)

    @cached_property
    def text(self) -> str:
        return self.content.decode(self.encoding, errors="replace")

    def json(self, **kwargs: Any) -> Any:
        return json.loads(self.text, **kwargs)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400


def _is_http_only(item: http.cookiejar.Cookie) -> bool:
    # cookiejar keeps nonstandard attribute names exactly as the server spelled them
    return any(name.lower() == "httponly" for name in getattr(item, "_rest", {}))


def parse_cookies(raw: httpx.Response) -> Cookies:
    """Return the cookies set by ``raw`` as :class:`Cookie` entries."""
    cookies = Cookies()
    for item in raw.cookies.jar:
        cookies.append(
            Cookie(
                name=item.name,
                value=item.value or "",
                domain=item.domain,
                path=item.path,
                secure=bool(item.secure),
                http_only=_is_http_only(item),
                expires=item.expires,
            )
        )
    return cookies


def _content_length(headers: httpx.Headers) -> int:
    try:
        return int(headers.get("content-length", -1))
    except ValueError:
        return -1


def build_response(
    setting: RequestSetting,
    raw: httpx.Response,
    content: bytes,
    history: List[Tuple[str, int]] | None = None,
) -> Response:
    """Map a transport reply and its fully read body onto a :class:`Response`."""
    return Response(
        url=str(raw.url),
        status_code=raw.status_code,
        proto=raw.http_version,
        encoding=DEFAULT_ENCODING,
        headers=raw.headers,
        cookies=parse_cookies(raw),
        request=setting,
        content_length=_content_length(raw.headers),
        content=content,
        history=list(history or ()),
    )
