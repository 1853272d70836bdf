# === NAVMAP v1 ===
# {
#   "module": "direwolf.network.policy",
#   "purpose": "HTTP policy constants and defaults.",
#   "sections": []
# }
# === /NAVMAP ===

"""HTTP policy constants and defaults.

Defines the request-level defaults (timeout, redirect limit) that apply when
neither the request nor the session overrides them, and the connection-pool
budgets used to build the underlying HTTPX transports.
"""

# ============================================================================
# Request Defaults
# ============================================================================

#: Whole-request timeout (seconds) used when neither request nor session sets one.
#: Covers connect, every redirect hop and the full body read.
DEFAULT_TIMEOUT = 30.0

#: Redirect hops followed when the request carries no override.
DEFAULT_REDIRECT_LIMIT = 5

#: Encoding declared on every response and used by ``Response.text``.
DEFAULT_ENCODING = "UTF-8"

#: Status codes treated as redirects (``Location`` header required to follow).
REDIRECT_STATUS_CODES = frozenset({301, 302, 303, 307, 308})

#: Content type sent with post forms.
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

#: Proxy URL schemes the transport can route through (socks5 needs ``httpx[socks]``)
PROXY_SCHEMES = frozenset({"http", "https", "socks5"})

#: User-Agent sent by sessions unless overridden; filled with the package version
USER_AGENT_TEMPLATE = "direwolf/{version}"


# ============================================================================
# Transport Budgets (seconds)
# ============================================================================

#: Dial (TCP connect) timeout; also the connect cap when the request has no limit
DIAL_TIMEOUT = 30.0

#: TLS handshake budget. HTTPX performs the handshake inside the connect phase,
#: so this is informational; the connect timeout bounds it.
TLS_HANDSHAKE_TIMEOUT = 10.0

#: Expect: 100-continue budget. HTTPX never sends Expect headers on its own.
EXPECT_CONTINUE_TIMEOUT = 1.0


# ============================================================================
# Connection Pooling
# ============================================================================

#: Maximum concurrent connections per client
MAX_CONNECTIONS = 100

#: Maximum idle connections kept for reuse
MAX_IDLE_CONNECTIONS = 100

#: How long an idle connection stays in the pool (seconds)
IDLE_CONNECTION_TIMEOUT = 90.0


# ============================================================================
# HTTP/2 & Security
# ============================================================================

#: HTTP/2 is opt-in; requires the ``h2`` package (``httpx[http2]``)
HTTP2_ENABLED = False

#: Verify TLS certificates against the certifi bundle
TLS_VERIFY_ENABLED = True

#: Honour HTTP(S)_PROXY / NO_PROXY when no explicit proxy is selected
TRUST_ENV = True


__all__ = [
    # Request defaults
    "DEFAULT_TIMEOUT",
    "DEFAULT_REDIRECT_LIMIT",
    "DEFAULT_ENCODING",
    "REDIRECT_STATUS_CODES",
    "FORM_CONTENT_TYPE",
    "PROXY_SCHEMES",
    "USER_AGENT_TEMPLATE",
    # Timeouts
    "DIAL_TIMEOUT",
    "TLS_HANDSHAKE_TIMEOUT",
    "EXPECT_CONTINUE_TIMEOUT",
    # Connection pooling
    "MAX_CONNECTIONS",
    "MAX_IDLE_CONNECTIONS",
    "IDLE_CONNECTION_TIMEOUT",
    # HTTP/2 & security
    "HTTP2_ENABLED",
    "TLS_VERIFY_ENABLED",
    "TRUST_ENV",
]
