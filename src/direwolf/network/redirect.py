# === NAVMAP v1 ===
# {
#   "module": "direwolf.network.redirect",
#   "purpose": "Build the next request of a manually followed redirect chain",
#   "sections": [
#     {"id": "is-redirect", "name": "is_redirect", "anchor": "function-is-redirect", "kind": "function"},
#     {"id": "redirect-url", "name": "redirect_url", "anchor": "function-redirect-url", "kind": "function"},
#     {"id": "redirect-method", "name": "redirect_method", "anchor": "function-redirect-method", "kind": "function"},
#     {"id": "build-redirect-request", "name": "build_redirect_request", "anchor": "function-build-redirect-request", "kind": "function"},
#     {"id": "format-audit-trail", "name": "format_audit_trail", "anchor": "function-format-audit-trail", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Manual redirect following.

Every session client is created with ``follow_redirects=False``; the
dispatcher walks the chain itself so the redirect limit, the timeout budget
and the proxy choice are applied per hop from the request's own policy.

Hop rules:
- **Method**: 303 turns anything but HEAD into GET; 301/302 turn POST into GET;
  307/308 keep the method and body.
- **Body**: dropped together with its content headers when the method becomes GET.
- **Credentials**: ``Authorization`` is dropped when the host changes.
- **Cookies**: the ``Cookie`` header is rebuilt from the session jar for the
  new URL; request-level cookies are re-attached by the dispatcher.

Example:
    >>> hops = [("http://a/", 302), ("http://b/", 200)]
    >>> format_audit_trail(hops)
    'http://a/ (302) → http://b/ (200)'
"""

import logging
from typing import List, Optional, Tuple

import httpx

from direwolf.errors import HTTPError
from direwolf.network.policy import REDIRECT_STATUS_CODES

logger = logging.getLogger(__name__)

_BODY_HEADERS = ("Content-Length", "Content-Type", "Transfer-Encoding")


def is_redirect(response: httpx.Response) -> bool:
    """True when ``response`` is a redirect that names a target."""
    return response.status_code in REDIRECT_STATUS_CODES and "location" in response.headers


def redirect_url(response: httpx.Response) -> httpx.URL:
    """Resolve the ``Location`` of ``response`` against the URL it came from.

    Raises:
        HTTPError: The ``Location`` header cannot be parsed as a URL.
    """
    location = response.headers["location"]
    try:
        url = response.request.url.join(location)
    except httpx.InvalidURL as exc:
        raise HTTPError(
            f"Invalid redirect location {location!r}",
            url=str(response.request.url),
        ) from exc
    if not url.fragment and response.request.url.fragment:
        url = url.copy_with(fragment=response.request.url.fragment)
    return url


def redirect_method(method: str, status_code: int) -> str:
    """Return the method used to follow a ``status_code`` redirect of ``method``."""
    if status_code == 303 and method != "HEAD":
        return "GET"
    if status_code in (301, 302) and method == "POST":
        return "GET"
    return method


def build_redirect_request(
    client: httpx.Client,
    request: httpx.Request,
    response: httpx.Response,
    *,
    timeout: httpx.Timeout,
) -> httpx.Request:
    """Build the request that follows ``response``, a redirect of ``request``.

    Args:
        client: Client the next hop is sent through; supplies jar cookies.
        request: The request that received the redirect.
        response: The redirect response.
        timeout: Per-phase timeouts for the next hop.

    Returns:
        The next ``httpx.Request``.
    """
    url = redirect_url(response)
    method = redirect_method(request.method, response.status_code)

    headers = httpx.Headers(request.headers)
    headers.pop("Host", None)
    headers.pop("Cookie", None)
    if url.host != request.url.host:
        headers.pop("Authorization", None)

    content: Optional[bytes] = request.content
    if method != request.method and method == "GET":
        content = None
        for name in _BODY_HEADERS:
            headers.pop(name, None)

    logger.debug(
        "Following redirect",
        extra={
            "from": str(request.url),
            "to": str(url),
            "status": response.status_code,
            "method": method,
        },
    )
    return client.build_request(
        method,
        url,
        headers=headers,
        content=content or None,
        timeout=timeout,
    )


def format_audit_trail(audit_trail: List[Tuple[str, int]]) -> str:
    """Format audit trail for logging/display.

    Args:
        audit_trail: List of (url, status) tuples

    Returns:
        Formatted string like "http://a (301) → http://b (200)"
    """
    parts = [f"{url} ({status})" for url, status in audit_trail]
    return " → ".join(parts)


__all__ = [
    "is_redirect",
    "redirect_url",
    "redirect_method",
    "build_redirect_request",
    "format_audit_trail",
]
