"""Network layer: HTTPX client pool, policy constants, redirects and instrumentation.

Modules:
- client: HTTPX client factory and the per-session ``ClientPool``
- policy: Request defaults, transport budgets and pool sizes
- instrumentation: Event hooks logging every wire exchange
- redirect: Manual redirect following (method rewrite, header scrubbing)

``client`` depends on :mod:`direwolf.settings`, which itself reads the
constants in ``policy``; import it directly as ``direwolf.network.client``.
"""

from direwolf.network.instrumentation import create_http_event_hooks
from direwolf.network.policy import (
    DEFAULT_ENCODING,
    DEFAULT_REDIRECT_LIMIT,
    DEFAULT_TIMEOUT,
    DIAL_TIMEOUT,
    FORM_CONTENT_TYPE,
    HTTP2_ENABLED,
    IDLE_CONNECTION_TIMEOUT,
    MAX_CONNECTIONS,
    MAX_IDLE_CONNECTIONS,
    REDIRECT_STATUS_CODES,
)
from direwolf.network.redirect import (
    build_redirect_request,
    format_audit_trail,
    is_redirect,
    redirect_method,
    redirect_url,
)

__all__ = [
    # Request defaults
    "DEFAULT_TIMEOUT",
    "DEFAULT_REDIRECT_LIMIT",
    "DEFAULT_ENCODING",
    "REDIRECT_STATUS_CODES",
    "FORM_CONTENT_TYPE",
    # Transport budgets and pooling
    "DIAL_TIMEOUT",
    "MAX_CONNECTIONS",
    "MAX_IDLE_CONNECTIONS",
    "IDLE_CONNECTION_TIMEOUT",
    "HTTP2_ENABLED",
    # Instrumentation
    "create_http_event_hooks",
    # Redirects
    "build_redirect_request",
    "format_audit_trail",
    "is_redirect",
    "redirect_method",
    "redirect_url",
]
