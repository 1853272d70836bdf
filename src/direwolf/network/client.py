# === NAVMAP v1 ===
# {
#   "module": "direwolf.network.client",
#   "purpose": "HTTPX client factory and per-session client pool.",
#   "sections": [
#     {
#       "id": "create-ssl-context",
#       "name": "create_ssl_context",
#       "anchor": "function-create-ssl-context",
#       "kind": "function"
#     },
#     {
#       "id": "create-http-client",
#       "name": "create_http_client",
#       "anchor": "function-create-http-client",
#       "kind": "function"
#     },
#     {
#       "id": "clientpool",
#       "name": "ClientPool",
#       "anchor": "class-clientpool",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""HTTPX client factory and per-session client pool.

A session owns one :class:`ClientPool`. The pool holds one ``httpx.Client``
for direct traffic (which honours environment proxy variables when
``trust_env`` is on) plus one client per explicit proxy URL, created on first
use. Every client of a pool shares the session's cookie jar, so cookies set
through a proxy are sent on direct requests and vice versa.

Key design:
- **Per-call routing**: the dispatcher asks the pool for the client matching
  the proxy chosen for *this* hop; no client is reconfigured between requests.
- **Thread-safe**: client creation is guarded by a lock; ``httpx.Client`` and
  ``http.cookiejar.CookieJar`` are safe for concurrent use.
- **Redirects**: disabled on every client; the dispatcher follows them itself.

Example:
    >>> from http.cookiejar import CookieJar
    >>> from direwolf.settings import TransportSettings
    >>> pool = ClientPool(TransportSettings(), cookies=CookieJar())
    >>> client = pool.get(None)  # direct / environment proxies
    >>> pool.close()
"""

from __future__ import annotations

import logging
import ssl
import threading
from http.cookiejar import CookieJar
from typing import Any, Dict, Mapping, Optional

import certifi
import httpx

from direwolf.errors import SessionClosed
from direwolf.settings import TransportSettings

logger = logging.getLogger(__name__)

__all__ = ["ClientPool", "create_http_client", "create_ssl_context"]


def create_ssl_context(verify: bool = True) -> ssl.SSLContext:
    """Create SSL context with secure defaults.

    Uses the certifi bundle so verification does not depend on the host's
    certificate store.

    Returns:
        Configured ssl.SSLContext for use with HTTPX
    """
    if not verify:
        ctx = ssl.create_default_context()
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE
        logger.warning("TLS verification DISABLED")
        return ctx

    ctx = ssl.create_default_context(cafile=certifi.where())
    ctx.check_hostname = True
    ctx.verify_mode = ssl.CERT_REQUIRED
    return ctx


def create_http_client(
    settings: TransportSettings,
    *,
    cookies: CookieJar,
    proxy: Optional[httpx.URL] = None,
    transport: Optional[httpx.BaseTransport] = None,
    event_hooks: Optional[Mapping[str, list]] = None,
) -> httpx.Client:
    """Create an HTTPX client for one route of a session.

    Args:
        settings: Pool sizes, connect timeout, HTTP/2 and TLS switches.
        cookies: Cookie jar shared by every client of the session.
        proxy: Explicit proxy for this client; ``None`` for direct traffic.
        transport: Replacement transport (tests); bypasses proxies entirely.
        event_hooks: HTTPX event hooks to install.

    Returns:
        An ``httpx.Client`` with redirects disabled.
    """
    options: Dict[str, Any] = {
        "cookies": cookies,
        "follow_redirects": False,
        "event_hooks": dict(event_hooks or {}),
        "timeout": httpx.Timeout(None, connect=settings.connect_timeout),
    }
    if transport is not None:
        return httpx.Client(transport=transport, trust_env=False, **options)

    client = httpx.Client(
        proxy=proxy,
        trust_env=settings.trust_env if proxy is None else False,
        limits=httpx.Limits(
            max_connections=settings.max_connections,
            max_keepalive_connections=settings.max_idle_connections,
            keepalive_expiry=settings.idle_timeout,
        ),
        http2=settings.http2,
        verify=create_ssl_context(settings.verify),
        **options,
    )

    logger.debug(
        "HTTPX client created",
        extra={
            "proxy": str(proxy) if proxy is not None else None,
            "http2": settings.http2,
            "max_connections": settings.max_connections,
            "max_idle": settings.max_idle_connections,
        },
    )
    return client


class ClientPool:
    """Lazily created HTTPX clients of one session, keyed by proxy URL."""

    def __init__(
        self,
        settings: TransportSettings,
        *,
        cookies: CookieJar,
        transport: Optional[httpx.BaseTransport] = None,
        event_hooks: Optional[Mapping[str, list]] = None,
    ) -> None:
        self._settings = settings
        self._cookies = cookies
        self._transport = transport
        self._event_hooks = event_hooks
        self._clients: Dict[Optional[str], httpx.Client] = {}
        self._lock = threading.Lock()
        self._closed = False

    def get(self, proxy: Optional[httpx.URL]) -> httpx.Client:
        """Return the client routing through ``proxy`` (``None`` = direct).

        Raises:
            SessionClosed: The pool has been closed.
        """
        key = str(proxy) if proxy is not None else None
        client = self._clients.get(key)
        if client is not None:
            return client
        with self._lock:
            if self._closed:
                raise SessionClosed("session is closed")
            client = self._clients.get(key)
            if client is None:
                client = create_http_client(
                    self._settings,
                    cookies=self._cookies,
                    proxy=proxy,
                    transport=self._transport,
                    event_hooks=self._event_hooks,
                )
                self._clients[key] = client
            return client

    def __len__(self) -> int:
        return len(self._clients)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Close every client; safe to call more than once."""
        with self._lock:
            clients = list(self._clients.values())
            self._clients.clear()
            self._closed = True
        for client in clients:
            try:
                client.close()
            except Exception as e:
                logger.error(f"Error closing HTTP client: {e}")
