"""direwolf: an ergonomic synchronous HTTP client.

Sessions hold default headers, a proxy, a timeout and a cookie jar; every
request may override any of them for itself without touching the session::

    >>> import direwolf
    >>> resp = direwolf.get(
    ...     "https://httpbin.org/get",
    ...     params=direwolf.new_params("q", "wolf"),
    ...     timeout=5,
    ... )  # doctest: +SKIP
    >>> resp.status_code, resp.json()["args"]  # doctest: +SKIP
    (200, {'q': 'wolf'})
"""

from .api import (
    close_default_session,
    delete,
    get,
    get_default_session,
    head,
    options,
    patch,
    post,
    put,
    request,
    reset_default_session,
)
from .cancellation import CancellationToken
from .datatypes import (
    Cookie,
    Cookies,
    MultiValueMap,
    Params,
    PostForm,
    Proxy,
    new_cookies,
    new_headers,
    new_params,
    new_post_form,
)
from .errors import (
    DirewolfError,
    HTTPError,
    MalformedArguments,
    NewRequestError,
    OutOfRange,
    ProxyURLError,
    RedirectError,
    RequestBodyError,
    RequestCancelled,
    ResponseReadError,
    SessionClosed,
    URLError,
)
from .logging_config import setup_logging
from .request import RequestSetting, new_request_setting
from .response import Response
from .session import Session
from .settings import DirewolfSettings, get_settings, package_version, reset_settings

__version__ = package_version()

__all__ = [
    "__version__",
    # Sessions and requests
    "Session",
    "RequestSetting",
    "new_request_setting",
    "Response",
    "CancellationToken",
    # Module-level API
    "request",
    "get",
    "post",
    "head",
    "put",
    "patch",
    "delete",
    "options",
    "get_default_session",
    "close_default_session",
    "reset_default_session",
    # Key/value options
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
    # Errors
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
    # Configuration
    "DirewolfSettings",
    "get_settings",
    "reset_settings",
    "setup_logging",
]
