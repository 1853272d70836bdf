# === NAVMAP v1 ===
# {
#   "module": "direwolf.dispatch",
#   "purpose": "Execute one RequestSetting through a session and build its Response",
#   "sections": [
#     {"id": "deadline", "name": "Deadline", "anchor": "class-deadline", "kind": "class"},
#     {"id": "build-url", "name": "build_url", "anchor": "function-build-url", "kind": "function"},
#     {"id": "resolve-body", "name": "resolve_body", "anchor": "function-resolve-body", "kind": "function"},
#     {"id": "attach-cookies", "name": "attach_cookies", "anchor": "function-attach-cookies", "kind": "function"},
#     {"id": "read-body", "name": "read_body", "anchor": "function-read-body", "kind": "function"},
#     {"id": "dispatch", "name": "dispatch", "anchor": "function-dispatch", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Request dispatch: one :class:`RequestSetting` in, one :class:`Response` out.

:func:`dispatch` validates the request, resolves its policy against the
session, sends it through the session's client pool, follows redirects hop by
hop, and buffers the final body. Either a complete :class:`Response` is
returned or exactly one :class:`~direwolf.errors.DirewolfError` is raised;
nothing about the request is written onto the session.

Failure points, in order:

1. ``NewRequestError``: invalid method or URL.
2. ``ProxyURLError``: the selected proxy is incomplete or malformed.
3. ``RequestBodyError``: both ``body`` and ``post_form`` are set.
4. ``URLError``: a proxied hop targets a scheme other than http/https.
   A non-ASCII request cookie then raises ``NewRequestError``.
5. ``HTTPError``: the transport failed or the deadline passed
   (``RedirectError`` when the chain outgrows the redirect limit).
6. ``ResponseReadError``: the body could not be read after headers arrived.

``RequestCancelled`` may interrupt any step from 4 on.
"""

from __future__ import annotations

import logging
import re
import time
from typing import TYPE_CHECKING, Iterable, List, Optional, Tuple

import httpx

from .cancellation import CancellationToken
from .datatypes import Cookie
from .errors import (
    DirewolfError,
    HTTPError,
    NewRequestError,
    ProxyURLError,
    RedirectError,
    RequestBodyError,
    ResponseReadError,
)
from .network.policy import FORM_CONTENT_TYPE
from .network.redirect import build_redirect_request, format_audit_trail, is_redirect, redirect_url
from .request import RequestSetting
from .resolver import ResolvedPolicy, resolve_policy
from .response import Response, build_response

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .session import Session

logger = logging.getLogger(__name__)

__all__ = [
    "Deadline",
    "attach_cookies",
    "build_url",
    "dispatch",
    "read_body",
    "resolve_body",
]

# RFC 7230 token
_METHOD_TOKEN = re.compile(r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+")


class Deadline:
    """Time budget for a whole request: every hop plus the final body read.

    Per-phase HTTPX timeouts are derived from the remaining budget each time
    a hop is sent; the connect phase never waits longer than ``connect_cap``.
    """

    def __init__(self, seconds: Optional[float], *, connect_cap: float) -> None:
        self.seconds = seconds
        self.connect_cap = connect_cap
        self._expires_at = None if seconds is None else time.monotonic() + seconds

    def remaining(self) -> Optional[float]:
        if self._expires_at is None:
            return None
        return self._expires_at - time.monotonic()

    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def check(self, url: object) -> None:
        if self.expired():
            raise HTTPError(
                f"Request to {url} timed out after {self.seconds:g}s",
                url=str(url),
                timed_out=True,
            )

    def timeout(self) -> httpx.Timeout:
        """HTTPX timeouts for the next hop, bounded by the remaining budget."""
        remaining = self.remaining()
        if remaining is None:
            return httpx.Timeout(None, connect=self.connect_cap)
        remaining = max(remaining, 0.001)
        return httpx.Timeout(remaining, connect=min(self.connect_cap, remaining))


def validate_method(method: str) -> str:
    if not method or not _METHOD_TOKEN.fullmatch(method):
        raise NewRequestError(f"Invalid request method {method!r}")
    return method


def build_url(setting: RequestSetting) -> httpx.URL:
    """Parse the request URL and append its encoded params to the query.

    Raises:
        NewRequestError: The URL is not absolute or cannot be parsed.
    """
    try:
        url = httpx.URL(setting.url)
    except (httpx.InvalidURL, TypeError) as exc:
        raise NewRequestError(f"Invalid request URL {setting.url!r}: {exc}") from exc
    if not url.scheme or not url.host:
        raise NewRequestError(f"Request URL {setting.url!r} must include a scheme and host")

    encoded = setting.params.url_encode() if setting.params else ""
    if encoded:
        query = url.query.decode("ascii")
        query = f"{query}&{encoded}" if query else encoded
        url = url.copy_with(query=query.encode("ascii"))
    return url


def resolve_body(setting: RequestSetting) -> Tuple[Optional[bytes], Optional[str]]:
    """Return ``(content, content_type)`` for the request body.

    Raises:
        RequestBodyError: Both ``body`` and ``post_form`` are set.
    """
    if setting.body is not None and setting.post_form is not None:
        raise RequestBodyError("Body can't be sent together with PostForm")
    if setting.post_form is not None:
        return setting.post_form.url_encode().encode("ascii"), FORM_CONTENT_TYPE
    if setting.body is not None:
        return bytes(setting.body), None
    return None, None


def attach_cookies(request: httpx.Request, cookies: Optional[Iterable[Cookie]]) -> None:
    """Append each cookie as its own ``name=value`` entry of the Cookie header.

    Raises:
        NewRequestError: A cookie name or value is not ASCII.
    """
    if not cookies:
        return
    entries = [cookie.header_value() for cookie in cookies]
    existing = request.headers.get("Cookie")
    if existing:
        entries.insert(0, existing)
    value = "; ".join(entries)
    try:
        value.encode("ascii")
    except UnicodeEncodeError as exc:
        raise NewRequestError(
            f"Cookie header for {request.url} must be ASCII; percent-encode the value first"
        ) from exc
    request.headers["Cookie"] = value


def _checkpoint(cancel: Optional[CancellationToken], deadline: Deadline, url: object) -> None:
    if cancel is not None:
        cancel.raise_if_cancelled()
    deadline.check(url)


def _client_for(session: "Session", policy: ResolvedPolicy, url: httpx.URL) -> httpx.Client:
    proxy = policy.proxy(url) if policy.proxy is not None else None
    try:
        return session.pool.get(proxy)
    except ValueError as exc:
        # httpx rejects proxy URLs it cannot route through when building the client
        raise ProxyURLError(f"Proxy URL error: {proxy}: {exc}") from exc


def _send(client: httpx.Client, request: httpx.Request) -> httpx.Response:
    try:
        return client.send(request, stream=True, follow_redirects=False)
    except httpx.TimeoutException as exc:
        raise HTTPError(
            f"Request to {request.url} timed out: {exc}",
            url=str(request.url),
            timed_out=True,
        ) from exc
    except httpx.HTTPError as exc:
        raise HTTPError(f"Request to {request.url} failed: {exc}", url=str(request.url)) from exc


def read_body(
    raw: httpx.Response,
    deadline: Deadline,
    cancel: Optional[CancellationToken] = None,
) -> bytes:
    """Read the whole (decoded) body of ``raw``.

    Raises:
        HTTPError: The deadline passed while reading (``timed_out=True``).
        ResponseReadError: The transport failed mid-body.
    """
    chunks: List[bytes] = []
    try:
        for chunk in raw.iter_bytes():
            chunks.append(chunk)
            _checkpoint(cancel, deadline, raw.url)
    except httpx.TimeoutException as exc:
        raise HTTPError(
            f"Reading response from {raw.url} timed out: {exc}",
            url=str(raw.url),
            timed_out=True,
        ) from exc
    except httpx.HTTPError as exc:
        raise ResponseReadError(
            f"Read response body from {raw.url} failed: {exc}",
            url=str(raw.url),
            status_code=raw.status_code,
        ) from exc
    return b"".join(chunks)


def dispatch(
    session: "Session",
    setting: RequestSetting,
    *,
    cancel: Optional[CancellationToken] = None,
) -> Response:
    """Send ``setting`` through ``session`` and return the buffered response."""
    method = validate_method(setting.method)
    url = build_url(setting)
    policy = resolve_policy(setting, session)
    content, content_type = resolve_body(setting)

    headers = policy.headers
    if content_type is not None:
        headers["Content-Type"] = content_type
    deadline = Deadline(policy.timeout, connect_cap=session.settings.transport.connect_timeout)

    logger.debug(
        "Dispatching request",
        extra={
            "method": method,
            "host": url.host,
            "timeout": policy.timeout,
            "redirect_limit": policy.redirect_limit,
            "proxied": policy.proxy is not None,
        },
    )

    hops: List[Tuple[str, int]] = []
    try:
        _checkpoint(cancel, deadline, url)
        client = _client_for(session, policy, url)
        request = client.build_request(
            method, url, headers=headers, content=content, timeout=deadline.timeout()
        )
        attach_cookies(request, setting.cookies)

        while True:
            _checkpoint(cancel, deadline, request.url)
            raw = _send(client, request)
            try:
                hops.append((str(request.url), raw.status_code))
                if not is_redirect(raw) or len(hops) > policy.redirect_limit:
                    body = read_body(raw, deadline, cancel)
                    response = build_response(setting, raw, body, history=hops[:-1])
                    if is_redirect(raw):
                        raise RedirectError(policy.redirect_limit, hops, response=response)
                    break
                next_url = redirect_url(raw)
                client = _client_for(session, policy, next_url)
                _checkpoint(cancel, deadline, next_url)
                next_request = build_redirect_request(
                    client, request, raw, timeout=deadline.timeout()
                )
                if next_request.url.host == url.host:
                    attach_cookies(next_request, setting.cookies)
                request = next_request
            finally:
                raw.close()
    except DirewolfError as exc:
        logger.debug(
            "Request failed",
            extra={
                "method": method,
                "host": url.host,
                "error": type(exc).__name__,
                "hops": format_audit_trail(hops),
            },
        )
        raise

    logger.debug(
        "Request completed",
        extra={
            "method": method,
            "status": response.status_code,
            "hops": len(hops) - 1,
            "bytes": len(response.content),
        },
    )
    return response
