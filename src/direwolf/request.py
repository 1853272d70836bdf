"""Description of a single logical request.

:class:`RequestSetting` collects everything one call needs: method, URL and the
optional overrides. It is built once per call, handed to the dispatcher and
not reused.

Two overrides use the sign of the number to carry meaning:

``timeout``
    ``> 0`` limits the whole request to that many seconds, ``< 0`` disables
    the limit, ``0`` / ``None`` inherits the session timeout (and then the 30
    second default).

``redirect_num``
    ``None`` uses the default of 5 redirects, ``> 0`` allows that many,
    ``<= 0`` forbids following any redirect.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Tuple, Union

import httpx

from .datatypes import Cookie, Params, PostForm, Proxy, to_headers

__all__ = ["HeaderTypes", "RequestSetting", "new_request_setting"]

HeaderTypes = Union[httpx.Headers, Mapping[str, str], Iterable[Tuple[str, str]]]


@dataclass(frozen=True, eq=False)
class RequestSetting:
    """Fully specified request, built from explicit keyword options.

    Frozen once built. Headers are copied and cookies are held as a tuple, so
    ``Response.request`` keeps describing the request that was sent.
    """

    method: str
    url: str
    headers: Optional[httpx.Headers] = None
    params: Optional[Params] = None
    body: Optional[bytes] = None
    post_form: Optional[PostForm] = None
    cookies: Optional[Tuple[Cookie, ...]] = None
    proxy: Optional[Proxy] = None
    redirect_num: Optional[int] = None
    timeout: Optional[float] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "method", self.method.upper())
        if self.headers is not None:
            object.__setattr__(self, "headers", to_headers(self.headers))
        if isinstance(self.body, str):
            object.__setattr__(self, "body", self.body.encode("utf-8"))
        if self.cookies is not None:
            object.__setattr__(
                self,
                "cookies",
                tuple(
                    cookie if isinstance(cookie, Cookie) else Cookie(*cookie)
                    for cookie in self.cookies
                ),
            )


def new_request_setting(
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
) -> RequestSetting:
    """Build a :class:`RequestSetting`; the recognised options are exactly the keywords."""
    return RequestSetting(
        method=method,
        url=url,
        headers=headers,  # type: ignore[arg-type]
        params=params,
        body=body,  # type: ignore[arg-type]
        post_form=post_form,
        cookies=cookies,  # type: ignore[arg-type]
        proxy=proxy,
        redirect_num=redirect_num,
        timeout=timeout,
    )
