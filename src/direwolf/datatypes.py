# === NAVMAP v1 ===
# {
#   "module": "direwolf.datatypes",
#   "purpose": "Key/value request options: params, post forms, headers, cookies, proxies",
#   "sections": [
#     {"id": "multivaluemap", "name": "MultiValueMap", "anchor": "class-multivaluemap", "kind": "class"},
#     {"id": "params", "name": "Params", "anchor": "class-params", "kind": "class"},
#     {"id": "postform", "name": "PostForm", "anchor": "class-postform", "kind": "class"},
#     {"id": "cookie", "name": "Cookie", "anchor": "class-cookie", "kind": "class"},
#     {"id": "proxy", "name": "Proxy", "anchor": "class-proxy", "kind": "class"},
#     {"id": "builders", "name": "new_*", "anchor": "function-new-params", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Key/value request options.

Params, post forms, headers and cookies are all built from a flat sequence of
alternating keys and values::

    >>> params = new_params("q", "direwolf", "page", "2")
    >>> params.url_encode()
    'page=2&q=direwolf'

An odd-length sequence is a programming error and raises
:class:`~direwolf.errors.MalformedArguments` instead of silently dropping the
trailing key.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Sequence, Tuple
from urllib.parse import quote_plus

import httpx

from .errors import MalformedArguments, NewRequestError, OutOfRange

__all__ = [
    "MultiValueMap",
    "Params",
    "PostForm",
    "Cookie",
    "Cookies",
    "Proxy",
    "new_params",
    "new_post_form",
    "new_headers",
    "new_cookies",
    "to_headers",
]


def _pairs(key_values: Sequence[str]) -> List[Tuple[str, str]]:
    """Split ``key_values`` into ``(key, value)`` pairs."""
    if len(key_values) % 2 != 0:
        raise MalformedArguments(
            f"key and value must be pairs, got {len(key_values)} argument(s)"
        )
    return [(key_values[i], key_values[i + 1]) for i in range(0, len(key_values), 2)]


class MultiValueMap:
    """Ordered, multi-valued string map with deterministic URL encoding.

    Each key maps to the list of values added for it, in insertion order.
    :meth:`url_encode` visits keys in sorted order so the same content always
    encodes to the same string regardless of how it was assembled.
    """

    def __init__(self, *key_values: str) -> None:
        self._data: Dict[str, List[str]] = {}
        for key, value in _pairs(key_values):
            self.add(key, value)

    def add(self, key: str, value: str) -> None:
        """Append ``value`` to the values held for ``key``."""
        self._data.setdefault(key, []).append(value)

    def set(self, key: str, value: str) -> None:
        """Replace every value held for ``key`` with ``value``."""
        self._data[key] = [value]

    def delete(self, key: str) -> None:
        """Remove ``key``; absent keys are ignored."""
        self._data.pop(key, None)

    def get(self, key: str, index: int = 0) -> str:
        """Return the ``index``-th value of ``key``, or ``""`` when the key is absent.

        Raises:
            OutOfRange: ``key`` is present but holds no value at ``index``.
        """
        values = self._data.get(key)
        if not values:
            return ""
        if not -len(values) <= index < len(values):
            raise OutOfRange(key, index, len(values))
        return values[index]

    def get_all(self, key: str) -> List[str]:
        return list(self._data.get(key, ()))

    def keys(self) -> List[str]:
        return list(self._data)

    def items(self) -> List[Tuple[str, List[str]]]:
        return [(key, list(values)) for key, values in self._data.items()]

    def url_encode(self) -> str:
        """Encode as ``key=value&key=value`` with keys sorted lexicographically."""
        parts = []
        for key in sorted(self._data):
            escaped = quote_plus(key)
            for value in self._data[key]:
                parts.append(f"{escaped}={quote_plus(value)}")
        return "&".join(parts)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __bool__(self) -> bool:
        return bool(self._data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MultiValueMap):
            return NotImplemented
        return type(self) is type(other) and self._data == other._data

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self._data!r})"


class Params(MultiValueMap):
    """Query parameters appended to the request URL."""


class PostForm(MultiValueMap):
    """Form fields sent as an ``application/x-www-form-urlencoded`` body."""


@dataclass(frozen=True)
class Cookie:
    """A single cookie: sent with a request or parsed from a response."""

    name: str
    value: str
    domain: str = ""
    path: str = "/"
    secure: bool = False
    http_only: bool = False
    expires: Optional[int] = None

    def header_value(self) -> str:
        return f"{self.name}={self.value}"


class Cookies(list):
    """Ordered cookies; each one is sent as its own ``name=value`` entry."""

    def add(self, name: str, value: str) -> None:
        self.append(Cookie(name=name, value=value))

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        for cookie in self:
            if cookie.name == name:
                return cookie.value
        return default


@dataclass(frozen=True)
class Proxy:
    """Proxy server addresses, one per target scheme.

    Both URLs are required, e.g. ``Proxy(http="http://127.0.0.1:1080",
    https="http://127.0.0.1:1080")``. Validation happens when the proxy is
    selected for a request.
    """

    http: str = ""
    https: str = ""


def new_params(*key_values: str) -> Params:
    """Build :class:`Params` from alternating keys and values."""
    return Params(*key_values)


def new_post_form(*key_values: str) -> PostForm:
    """Build a :class:`PostForm` from alternating keys and values."""
    return PostForm(*key_values)


def to_headers(headers) -> httpx.Headers:
    """Convert a mapping, pair sequence or ``httpx.Headers`` into ``httpx.Headers``.

    Raises:
        NewRequestError: A header name or value is not ASCII.
    """
    try:
        return httpx.Headers(headers)
    except UnicodeEncodeError as exc:
        raise NewRequestError(
            f"Header names and values must be ASCII: {exc.object!r}"
        ) from exc


def new_headers(*key_values: str) -> httpx.Headers:
    """Build case-insensitive headers; repeated keys keep every value."""
    return to_headers(_pairs(key_values))


def new_cookies(*key_values: str) -> Cookies:
    """Build :class:`Cookies` from alternating names and values."""
    return Cookies(Cookie(name=key, value=value) for key, value in _pairs(key_values))
