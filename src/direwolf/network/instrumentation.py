# === NAVMAP v1 ===
# {
#   "module": "direwolf.network.instrumentation",
#   "purpose": "HTTPX event hooks logging each wire exchange",
#   "sections": [
#     {
#       "id": "create-http-event-hooks",
#       "name": "create_http_event_hooks",
#       "anchor": "function-create-http-event-hooks",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""HTTP network layer instrumentation.

Logs one ``http.exchange`` record per request/response pair sent by a
session's HTTPX clients (each redirect hop is its own exchange), capturing
method, redacted URL, status, protocol and elapsed time.
"""

import logging
import time
from typing import Any, Optional
from urllib.parse import urlparse, urlunparse

logger = logging.getLogger("direwolf.network")

_START_KEY = "direwolf.started_at"


def create_http_event_hooks(log: Optional[logging.Logger] = None) -> dict:
    """Create HTTPX event hooks for exchange logging.

    Returns:
        Dict with 'request' and 'response' hooks for HTTPX client

    Usage:
        >>> import httpx
        >>> hooks = create_http_event_hooks()
        >>> client = httpx.Client(event_hooks=hooks)
    """
    log = log or logger

    def on_request(request: Any) -> None:
        request.extensions[_START_KEY] = time.perf_counter()

    def on_response(response: Any) -> None:
        start_time = response.request.extensions.get(_START_KEY)
        if start_time is None or not log.isEnabledFor(logging.DEBUG):
            return

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        log.debug(
            "http.exchange",
            extra={
                "method": response.request.method,
                "url_redacted": _redact_url(str(response.request.url)),
                "host": response.request.url.host or "unknown",
                "status": response.status_code,
                "http_version": response.http_version,
                "elapsed_ms": round(elapsed_ms, 3),
            },
        )

    return {
        "request": [on_request],
        "response": [on_response],
    }


def _redact_url(url: str) -> str:
    """Strip userinfo, query and fragment, keeping scheme + host + path."""
    parsed = urlparse(url)
    netloc = parsed.netloc.rsplit("@", 1)[-1]
    return urlunparse((parsed.scheme, netloc, parsed.path, "", "", ""))


__all__ = [
    "create_http_event_hooks",
]
