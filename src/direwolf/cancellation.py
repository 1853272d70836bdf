# === NAVMAP v1 ===
# {
#   "module": "direwolf.cancellation",
#   "purpose": "Cooperative cancellation handle for in-flight requests",
#   "sections": [
#     {"id": "cancellationtoken", "name": "CancellationToken", "anchor": "class-cancellationtoken", "kind": "class"}
#   ]
# }
# === /NAVMAP ===

"""Cooperative cancellation for in-flight requests.

A :class:`CancellationToken` is handed to a request call and cancelled from
any other thread. The dispatcher checks it before every redirect hop and
between body chunks, so a cancelled request stops at the next check and
raises :class:`~direwolf.errors.RequestCancelled`. A connect or read that is
already blocked inside the transport is bounded by the request timeout, not
interrupted by the token.
"""

from __future__ import annotations

import threading
from typing import Optional

from .errors import RequestCancelled

__all__ = ["CancellationToken"]


class CancellationToken:
    """Thread-safe, one-shot cancellation flag.

    Examples:
        >>> token = CancellationToken()
        >>> # worker thread
        >>> session.get(url, cancel=token)  # doctest: +SKIP
        >>> # controlling thread
        >>> token.cancel("user pressed stop")
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._reason: Optional[str] = None

    def cancel(self, reason: Optional[str] = None) -> None:
        """Request cancellation; the first reason given is kept."""
        with self._lock:
            if not self._event.is_set():
                self._reason = reason
                self._event.set()

    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until cancelled or ``timeout`` elapses; return the cancelled state."""
        return self._event.wait(timeout)

    def raise_if_cancelled(self) -> None:
        """Raise :class:`RequestCancelled` when cancellation has been requested."""
        if self._event.is_set():
            message = "request cancelled"
            if self._reason:
                message = f"{message}: {self._reason}"
            raise RequestCancelled(message)
