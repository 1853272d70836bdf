# === NAVMAP v1 ===
# {
#   "module": "direwolf.errors",
#   "purpose": "Exception hierarchy for request construction, dispatch, and response reading",
#   "sections": [
#     {"id": "direwolferror", "name": "DirewolfError", "anchor": "class-direwolferror", "kind": "class"},
#     {"id": "httperror", "name": "HTTPError", "anchor": "class-httperror", "kind": "class"},
#     {"id": "redirecterror", "name": "RedirectError", "anchor": "class-redirecterror", "kind": "class"},
#     {"id": "responsereaderror", "name": "ResponseReadError", "anchor": "class-responsereaderror", "kind": "class"}
#   ]
# }
# === /NAVMAP ===

"""Exception hierarchy shared across request building, dispatch, and response reading.

A request can fail at several distinct points: while its arguments are being
assembled, while policy (proxy, redirects, body) is being resolved, on the wire,
or after the response headers arrived but before the body was fully read. Each
stage raises its own subclass of :class:`DirewolfError` so callers can build
retry logic on the category ("never got a response" vs. "got a response but
could not read it") while the underlying cause stays reachable through
``__cause__``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional, Tuple

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .response import Response

__all__ = [
    "DirewolfError",
    "MalformedArguments",
    "OutOfRange",
    "NewRequestError",
    "RequestBodyError",
    "ProxyURLError",
    "URLError",
    "HTTPError",
    "RedirectError",
    "ResponseReadError",
    "RequestCancelled",
    "SessionClosed",
]


class DirewolfError(RuntimeError):
    """Base exception for every failure raised by direwolf."""


class MalformedArguments(DirewolfError, ValueError):
    """Raised when a key/value builder receives an odd number of arguments."""


class OutOfRange(DirewolfError, IndexError):
    """Raised when a multi-value lookup asks for an index the key does not hold."""

    def __init__(self, key: str, index: int, size: int) -> None:
        super().__init__(f"index {index} out of range for key {key!r} holding {size} value(s)")
        self.key = key
        self.index = index
        self.size = size


class NewRequestError(DirewolfError):
    """Raised when the request method or URL is invalid; nothing was sent."""


class RequestBodyError(DirewolfError):
    """Raised when a request carries both a raw body and a post form."""


class ProxyURLError(DirewolfError):
    """Raised when a selected proxy is missing a scheme URL or has a malformed one."""


class URLError(DirewolfError):
    """Raised when a proxied request targets a scheme other than http or https."""

    def __init__(self, message: str, *, scheme: Optional[str] = None) -> None:
        super().__init__(message)
        self.scheme = scheme


class HTTPError(DirewolfError):
    """Raised when the transport fails to produce a response.

    Covers DNS, connect, TLS, and protocol failures as well as timeouts. The
    original transport exception is chained as ``__cause__``; ``timed_out``
    tells a timeout apart from a refused or broken connection.
    """

    def __init__(self, message: str, *, url: Optional[str] = None, timed_out: bool = False) -> None:
        super().__init__(message)
        self.url = url
        self.timed_out = timed_out

    @property
    def cause(self) -> Optional[BaseException]:
        return self.__cause__


class RedirectError(HTTPError):
    """Raised when a redirect chain is longer than the effective redirect limit.

    ``response`` holds the last response received (the redirect that was not
    followed), fully read, so callers can still inspect it.
    """

    def __init__(
        self,
        limit: int,
        hops: List[Tuple[str, int]],
        *,
        response: Optional["Response"] = None,
    ) -> None:
        trail = " -> ".join(url for url, _ in hops)
        super().__init__(
            f"Exceeded the maximum number of redirects ({limit}): {trail}",
            url=hops[-1][0] if hops else None,
        )
        self.limit = limit
        self.hops = list(hops)
        self.response = response


class ResponseReadError(DirewolfError):
    """Raised when the response body cannot be fully read after headers arrived."""

    def __init__(self, message: str, *, url: Optional[str] = None, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class RequestCancelled(DirewolfError):
    """Raised when a request is abandoned because its cancellation token fired."""


class SessionClosed(DirewolfError):
    """Raised when a request is sent through a session that has been closed."""
