# === NAVMAP v1 ===
# {
#   "module": "direwolf.resolver",
#   "purpose": "Merge session defaults with per-request overrides",
#   "sections": [
#     {"id": "merge-headers", "name": "merge_headers", "anchor": "function-merge-headers", "kind": "function"},
#     {"id": "proxyselector", "name": "ProxySelector", "anchor": "class-proxyselector", "kind": "class"},
#     {"id": "get-proxy-selector", "name": "get_proxy_selector", "anchor": "function-get-proxy-selector", "kind": "function"},
#     {"id": "resolve-redirect-limit", "name": "resolve_redirect_limit", "anchor": "function-resolve-redirect-limit", "kind": "function"},
#     {"id": "resolve-timeout", "name": "resolve_timeout", "anchor": "function-resolve-timeout", "kind": "function"},
#     {"id": "resolve-policy", "name": "resolve_policy", "anchor": "function-resolve-policy", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Policy resolution: effective headers, proxy, redirect limit and timeout.

Every function here is pure. The dispatcher calls :func:`resolve_policy` once
per request and threads the result through the send loop, so nothing about
one request is ever written onto state another request can observe.

Precedence, highest first:

* headers: request value for a key replaces all session values for that key;
* proxy: request proxy, then session proxy, then the environment;
* redirects: request ``redirect_num``, then ``DEFAULT_REDIRECT_LIMIT``;
* timeout: request (``> 0`` seconds, ``< 0`` unlimited, ``0`` inherit), then
  session with the same encoding, then ``DEFAULT_TIMEOUT``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

import httpx

from .datatypes import Proxy
from .errors import ProxyURLError, URLError
from .network.policy import DEFAULT_REDIRECT_LIMIT, DEFAULT_TIMEOUT, PROXY_SCHEMES

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .request import RequestSetting
    from .session import Session

__all__ = [
    "ProxySelector",
    "ResolvedPolicy",
    "merge_headers",
    "get_proxy_selector",
    "resolve_redirect_limit",
    "resolve_timeout",
    "resolve_policy",
]


def merge_headers(
    request_headers: Optional[httpx.Headers],
    session_headers: Optional[httpx.Headers],
) -> httpx.Headers:
    """Overlay ``request_headers`` on ``session_headers`` key by key.

    Keys are matched case-insensitively. A key present in the request keeps
    only the request's values; keys present only in the session pass through.
    """
    request_headers = httpx.Headers(request_headers or {})
    overridden = {key.lower() for key in request_headers.keys()}
    merged = [
        (key, value)
        for key, value in httpx.Headers(session_headers or {}).multi_items()
        if key.lower() not in overridden
    ]
    merged.extend(request_headers.multi_items())
    return httpx.Headers(merged)


def _parse_proxy_url(raw: str) -> httpx.URL:
    if not raw:
        raise ProxyURLError("Proxy URL error: both http and https proxy URLs are required")
    try:
        url = httpx.URL(raw)
    except (httpx.InvalidURL, TypeError) as exc:
        raise ProxyURLError(f"Proxy URL error: {raw!r} is not a valid URL") from exc
    if not url.scheme or not url.host:
        raise ProxyURLError(f"Proxy URL error: {raw!r} must include a scheme and host")
    if url.scheme not in PROXY_SCHEMES:
        raise ProxyURLError(
            f"Proxy URL error: {raw!r} uses unsupported scheme {url.scheme!r}; "
            f"expected one of {sorted(PROXY_SCHEMES)}"
        )
    return url


class ProxySelector:
    """Chooses the proxy for an outgoing URL by its scheme."""

    def __init__(self, http: httpx.URL, https: httpx.URL) -> None:
        self.http = http
        self.https = https

    def __call__(self, url: httpx.URL) -> httpx.URL:
        if url.scheme == "http":
            return self.http
        if url.scheme == "https":
            return self.https
        raise URLError(
            f"URL scheme {url.scheme!r} is not http or https; no proxy applies",
            scheme=url.scheme,
        )

    def __repr__(self) -> str:
        return f"ProxySelector(http={str(self.http)!r}, https={str(self.https)!r})"


def get_proxy_selector(
    request_proxy: Optional[Proxy],
    session_proxy: Optional[Proxy],
) -> Optional[ProxySelector]:
    """Return the selector for the winning proxy, or ``None`` to use the environment.

    Raises:
        ProxyURLError: The winning proxy lacks a scheme URL or has a malformed one.
    """
    proxy = request_proxy if request_proxy is not None else session_proxy
    if proxy is None:
        return None
    return ProxySelector(_parse_proxy_url(proxy.http), _parse_proxy_url(proxy.https))


def resolve_redirect_limit(redirect_num: Optional[int]) -> int:
    """Return how many redirects may be followed; ``<= 0`` means none."""
    if redirect_num is None:
        return DEFAULT_REDIRECT_LIMIT
    return max(int(redirect_num), 0)


def resolve_timeout(
    request_timeout: Optional[float],
    session_timeout: Optional[float],
) -> Optional[float]:
    """Return the whole-request timeout in seconds, or ``None`` for no limit."""
    request_timeout = request_timeout or 0
    session_timeout = session_timeout or 0
    if request_timeout > 0:
        return float(request_timeout)
    if request_timeout < 0:
        return None
    if session_timeout > 0:
        return float(session_timeout)
    if session_timeout < 0:
        return None
    return DEFAULT_TIMEOUT


@dataclass(frozen=True)
class ResolvedPolicy:
    """Effective policy for exactly one dispatch."""

    headers: httpx.Headers
    proxy: Optional[ProxySelector]
    redirect_limit: int
    timeout: Optional[float]


def resolve_policy(setting: "RequestSetting", session: "Session") -> ResolvedPolicy:
    """Combine ``setting`` with the defaults currently held by ``session``."""
    return ResolvedPolicy(
        headers=merge_headers(setting.headers, session.headers),
        proxy=get_proxy_selector(setting.proxy, session.proxy),
        redirect_limit=resolve_redirect_limit(setting.redirect_num),
        timeout=resolve_timeout(setting.timeout, session.timeout),
    )
