# === NAVMAP v1 ===
# {
#   "module": "direwolf.session",
#   "purpose": "Long-lived client holding default policy, cookies, and pooled transports",
#   "sections": [
#     {"id": "session", "name": "Session", "anchor": "class-session", "kind": "class"}
#   ]
# }
# === /NAVMAP ===

"""Sessions: default policy, a cookie store, and pooled connections.

Example:
    >>> from direwolf import Session, new_params
    >>> with Session(timeout=10) as session:
    ...     resp = session.get("https://example.org/search", params=new_params("q", "wolf"))
    ...     print(resp.status_code, resp.text[:40])  # doctest: +SKIP
"""

from __future__ import annotations

import logging
from http.cookiejar import CookieJar
from typing import Iterable, Optional, Union

import httpx

from .cancellation import CancellationToken
from .datatypes import Cookie, Params, PostForm, Proxy, to_headers
from .dispatch import dispatch
from .network.client import ClientPool
from .network.instrumentation import create_http_event_hooks
from .request import HeaderTypes, RequestSetting, new_request_setting
from .response import Response
from .settings import DirewolfSettings, get_settings

logger = logging.getLogger(__name__)

__all__ = ["Session"]


class Session:
    """Long-lived HTTP client.

    ``headers``, ``proxy`` and ``timeout`` are session defaults and may be
    changed between requests; each request resolves them at send time and
    never writes anything back, so one session can serve many threads.

    Args:
        headers: Default headers; ``User-Agent`` defaults to ``settings.user_agent``.
        proxy: Default :class:`Proxy`; ``None`` defers to the environment.
        timeout: Default timeout: ``> 0`` seconds, ``< 0`` no limit, ``0``
            uses the 30 second default. Defaults to ``settings.timeout``.
        settings: Settings snapshot; defaults to :func:`get_settings`.
        transport: Replacement HTTPX transport for every route (tests).
    """

    def __init__(
        self,
        *,
        headers: Optional[HeaderTypes] = None,
        proxy: Optional[Proxy] = None,
        timeout: Optional[float] = None,
        settings: Optional[DirewolfSettings] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.headers = httpx.Headers({"User-Agent": self.settings.user_agent})
        if headers is not None:
            self.headers.update(to_headers(headers))
        self.proxy = proxy
        self.timeout = self.settings.timeout if timeout is None else timeout

        self._jar = CookieJar()
        self.cookies = httpx.Cookies(self._jar)
        self.pool = ClientPool(
            self.settings.transport,
            cookies=self._jar,
            transport=transport,
            event_hooks=create_http_event_hooks(),
        )

    # --- Requests -----------------------------------------------------------------

    def request(
        self,
        setting: RequestSetting,
        *,
        cancel: Optional[CancellationToken] = None,
    ) -> Response:
        """Send a prepared :class:`RequestSetting`."""
        return dispatch(self, setting, cancel=cancel)

    def _request(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[HeaderTypes] = None,
        params: Optional[Params] = None,
        body: Optional[Union[bytes, str]] = None,
        post_form: Optional[PostForm] = None,
        cookies: Optional[Iterable[Cookie]] = None,
        proxy: Optional[Proxy] = None,
        redirect_num: Optional[int] = None,
        timeout: Optional[float] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> Response:
        setting = new_request_setting(
            method,
            url,
            headers=headers,
            params=params,
            body=body,
            post_form=post_form,
            cookies=cookies,
            proxy=proxy,
            redirect_num=redirect_num,
            timeout=timeout,
        )
        return self.request(setting, cancel=cancel)

    def get(self, url: str, **options) -> Response:
        return self._request("GET", url, **options)

    def post(self, url: str, **options) -> Response:
        return self._request("POST", url, **options)

    def head(self, url: str, **options) -> Response:
        return self._request("HEAD", url, **options)

    def put(self, url: str, **options) -> Response:
        return self._request("PUT", url, **options)

    def patch(self, url: str, **options) -> Response:
        return self._request("PATCH", url, **options)

    def delete(self, url: str, **options) -> Response:
        return self._request("DELETE", url, **options)

    def options(self, url: str, **options) -> Response:
        return self._request("OPTIONS", url, **options)

    # --- Lifecycle ----------------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self.pool.closed

    def close(self) -> None:
        """Close every pooled connection; safe to call more than once."""
        self.pool.close()
        logger.debug("Session closed")

    def __enter__(self) -> "Session":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"<Session proxy={self.proxy!r} timeout={self.timeout!r}>"
