# === NAVMAP v1 ===
# {
#   "module": "direwolf.api",
#   "purpose": "Module-level request functions over a shared default session",
#   "sections": [
#     {
#       "id": "get-default-session",
#       "name": "get_default_session",
#       "anchor": "function-get-default-session",
#       "kind": "function"
#     },
#     {
#       "id": "close-default-session",
#       "name": "close_default_session",
#       "anchor": "function-close-default-session",
#       "kind": "function"
#     },
#     {
#       "id": "reset-default-session",
#       "name": "reset_default_session",
#       "anchor": "function-reset-default-session",
#       "kind": "function"
#     },
#     {
#       "id": "request-helpers",
#       "name": "get/post/request",
#       "anchor": "function-get",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Module-level request functions.

``direwolf.get(url, ...)`` and friends send through one shared
:class:`~direwolf.session.Session` so one-off calls still reuse connections
and cookies.

Key design:
- **Lazy initialization**: the session is created on first use, not at import time.
- **PID-aware**: a forked child detects the new PID and builds its own session
  instead of sharing the parent's sockets.
- **Thread-safe**: creation is guarded by a lock.

Example:
    >>> import direwolf
    >>> resp = direwolf.get("https://example.org/")  # doctest: +SKIP
    >>> direwolf.close_default_session()
"""

from __future__ import annotations

import logging
import os
import threading
from typing import Optional

from .cancellation import CancellationToken
from .request import RequestSetting
from .response import Response
from .session import Session
from .settings import reset_settings

logger = logging.getLogger(__name__)

__all__ = [
    "get_default_session",
    "close_default_session",
    "reset_default_session",
    "request",
    "get",
    "post",
    "head",
    "put",
    "patch",
    "delete",
    "options",
]


# ============================================================================
# Global Session State
# ============================================================================

_session: Optional[Session] = None
_session_lock = threading.Lock()
_session_pid: Optional[int] = None


def get_default_session() -> Session:
    """Get or create the shared session used by the module-level functions."""
    global _session, _session_pid

    if _session is not None and _session_pid == os.getpid():
        return _session

    with _session_lock:
        if _session is not None and _session_pid == os.getpid():
            return _session

        if _session is not None:
            # Forked: the parent's sockets are not ours to close.
            logger.debug("Process forked; discarding inherited default session")
            _session = None

        _session = Session()
        _session_pid = os.getpid()
        logger.debug("Default session initialized", extra={"pid": _session_pid})
        return _session


def close_default_session() -> None:
    """Close the shared session; safe to call when none exists."""
    global _session, _session_pid

    with _session_lock:
        if _session is not None:
            try:
                _session.close()
            finally:
                _session = None
                _session_pid = None


def reset_default_session() -> None:
    """Close the shared session and drop cached settings.

    The next call re-reads ``DIREWOLF_*`` from the environment and builds a
    fresh session from it.
    """
    close_default_session()
    reset_settings()


# ============================================================================
# Request Helpers
# ============================================================================


def request(setting: RequestSetting, *, cancel: Optional[CancellationToken] = None) -> Response:
    """Send a prepared :class:`RequestSetting` through the default session."""
    return get_default_session().request(setting, cancel=cancel)


def get(url: str, **options) -> Response:
    return get_default_session().get(url, **options)


def post(url: str, **options) -> Response:
    return get_default_session().post(url, **options)


def head(url: str, **options) -> Response:
    return get_default_session().head(url, **options)


def put(url: str, **options) -> Response:
    return get_default_session().put(url, **options)


def patch(url: str, **options) -> Response:
    return get_default_session().patch(url, **options)


def delete(url: str, **options) -> Response:
    return get_default_session().delete(url, **options)


def options(url: str, **kwargs) -> Response:
    return get_default_session().options(url, **kwargs)
