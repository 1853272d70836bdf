"""Tests for request dispatch over an ``httpx.MockTransport``.

Tests cover:
- URL, method and body validation before any I/O
- PostForm encoding and the body/form conflict
- Request cookies and the session jar
- Manual redirect following and the redirect limit
- Timeout budget, transport failures and body read failures
- Proxy selection per request
- Cancellation
"""

import threading
import time
from urllib.parse import parse_qs

import httpx
import pytest

from direwolf import (
    CancellationToken,
    HTTPError,
    NewRequestError,
    Proxy,
    ProxyURLError,
    RedirectError,
    RequestBodyError,
    RequestCancelled,
    ResponseReadError,
    Session,
    URLError,
    new_cookies,
    new_headers,
    new_params,
    new_post_form,
    new_request_setting,
)
from direwolf.dispatch import Deadline, attach_cookies, build_url, resolve_body

from .conftest import Recorder, echoed


def chain_handler(request: httpx.Request) -> httpx.Response:
    """``/r/N`` redirects to ``/r/N-1``; ``/r/0`` answers 200."""
    remaining = int(request.url.path.rsplit("/", 1)[-1])
    if remaining == 0:
        return httpx.Response(200, text="done", request=request)
    return httpx.Response(302, headers={"Location": f"/r/{remaining - 1}"}, request=request)


class _BrokenStream(httpx.SyncByteStream):
    def __init__(self, exc: Exception) -> None:
        self._exc = exc

    def __iter__(self):
        yield b"partial"
        raise self._exc


class TestValidation:
    """Nothing reaches the transport when the request is invalid."""

    @pytest.mark.parametrize("url", ["not a url", "/relative/path", "http://"])
    def test_invalid_url(self, make_session, recorder, url):
        session = make_session(recorder)
        with pytest.raises(NewRequestError):
            session.get(url)
        assert recorder.requests == []

    @pytest.mark.parametrize("method", ["GE T", "", "GET\r\n"])
    def test_invalid_method(self, make_session, recorder, method):
        session = make_session(recorder)
        with pytest.raises(NewRequestError):
            session.request(new_request_setting(method, "http://example.org/"))
        assert recorder.requests == []

    def test_method_is_uppercased(self, make_session):
        session = make_session()
        resp = session.request(new_request_setting("get", "http://example.org/"))
        assert echoed(resp)["method"] == "GET"

    def test_custom_method_token_allowed(self, make_session):
        session = make_session()
        resp = session.request(new_request_setting("PROPFIND", "http://example.org/"))
        assert echoed(resp)["method"] == "PROPFIND"


class TestBody:
    def test_post_form_round_trip(self, make_session, recorder):
        session = make_session(recorder)
        form = new_post_form("name", "ghost wolf", "pack", "stark", "pack", "north")
        session.post("http://example.org/submit", post_form=form)

        sent = recorder.requests[0]
        assert sent.content == form.url_encode().encode("ascii")
        assert sent.headers["Content-Type"] == "application/x-www-form-urlencoded"
        fields = parse_qs(sent.content.decode("ascii"))
        assert fields == {"name": ["ghost wolf"], "pack": ["stark", "north"]}

    def test_form_content_type_replaces_caller_value(self, make_session, recorder):
        session = make_session(recorder)
        session.post(
            "http://example.org/submit",
            headers=new_headers("Content-Type", "text/plain"),
            post_form=new_post_form("a", "1"),
        )
        assert recorder.requests[0].headers.get_list("Content-Type") == [
            "application/x-www-form-urlencoded"
        ]

    def test_body_and_form_conflict(self, make_session, recorder):
        session = make_session(recorder)
        with pytest.raises(RequestBodyError):
            session.post(
                "http://example.org/submit",
                body=b"raw",
                post_form=new_post_form("a", "1"),
            )
        assert recorder.requests == []

    def test_raw_body_sent_as_is(self, make_session, recorder):
        session = make_session(recorder)
        session.put(
            "http://example.org/doc",
            body='{"k": "vé"}',
            headers={"Content-Type": "application/json"},
        )
        sent = recorder.requests[0]
        assert sent.content == '{"k": "vé"}'.encode("utf-8")
        assert sent.headers["Content-Type"] == "application/json"

    def test_no_body(self, make_session, recorder):
        session = make_session(recorder)
        session.get("http://example.org/")
        assert recorder.requests[0].content == b""

    def test_resolve_body_helper(self):
        setting = new_request_setting("POST", "http://x/", body="hi")
        assert resolve_body(setting) == (b"hi", None)
        assert resolve_body(new_request_setting("GET", "http://x/")) == (None, None)


class TestURLAndHeaders:
    def test_params_appended_to_existing_query(self, make_session):
        session = make_session()
        resp = session.get("http://example.org/p?x=1", params=new_params("b", "2", "a", "1"))
        assert echoed(resp)["query"] == "x=1&a=1&b=2"

    def test_build_url_without_params(self):
        url = build_url(new_request_setting("GET", "http://example.org/p?x=1"))
        assert url == httpx.URL("http://example.org/p?x=1")

    def test_request_header_overrides_session_header(self, make_session, recorder):
        session = make_session(recorder, headers={"X-Env": "session", "X-Keep": "yes"})
        session.get("http://example.org/", headers={"x-env": "request"})
        sent = recorder.requests[0]
        assert sent.headers.get_list("X-Env") == ["request"]
        assert sent.headers["X-Keep"] == "yes"
        assert session.headers["X-Env"] == "session"

    def test_default_user_agent(self, make_session, recorder):
        session = make_session(recorder)
        session.get("http://example.org/")
        assert recorder.requests[0].headers["User-Agent"].startswith("direwolf/")


class TestCookies:
    def test_each_cookie_is_a_distinct_entry(self, make_session, recorder):
        session = make_session(recorder)
        session.get("http://example.org/", cookies=new_cookies("a", "1", "b", "two words"))
        assert recorder.requests[0].headers["Cookie"] == "a=1; b=two words"

    def test_request_cookies_follow_jar_cookies(self, make_session, recorder):
        session = make_session(recorder)
        session.cookies.set("jar", "j", domain="example.org")
        session.get("http://example.org/", cookies=new_cookies("a", "1"))
        assert recorder.requests[0].headers["Cookie"] == "jar=j; a=1"

    def test_attach_cookies_without_cookies_is_noop(self):
        request = httpx.Request("GET", "http://example.org/")
        attach_cookies(request, None)
        assert "Cookie" not in request.headers

    def test_set_cookie_stored_in_session_jar(self, make_session, recorder):
        def handler(request):
            if request.url.path == "/login":
                return httpx.Response(
                    302,
                    headers=[("Location", "/home"), ("Set-Cookie", "sid=abc; Path=/; HttpOnly")],
                    request=request,
                )
            return httpx.Response(200, request=request)

        recorder.handler = handler
        session = make_session(recorder)
        resp = session.get("http://example.org/login")

        assert resp.status_code == 200
        assert recorder.requests[1].headers["Cookie"] == "sid=abc"
        assert session.cookies.get("sid") == "abc"

    def test_request_cookies_dropped_on_cross_host_redirect(self, make_session, recorder):
        def handler(request):
            if request.url.host == "a.example":
                return httpx.Response(
                    302, headers={"Location": "http://b.example/"}, request=request
                )
            return httpx.Response(200, request=request)

        recorder.handler = handler
        session = make_session(recorder)
        session.get("http://a.example/", cookies=new_cookies("a", "1"))

        assert recorder.requests[0].headers["Cookie"] == "a=1"
        assert "Cookie" not in recorder.requests[1].headers


class TestRedirects:
    @pytest.mark.parametrize("hops, limit", [(0, 0), (1, 1), (3, 3), (2, 5)])
    def test_chain_within_limit_succeeds(self, make_session, hops, limit):
        session = make_session(chain_handler)
        resp = session.get(f"http://example.org/r/{hops}", redirect_num=limit)
        assert resp.status_code == 200
        assert resp.text == "done"
        assert resp.url == "http://example.org/r/0"
        assert resp.request.url == f"http://example.org/r/{hops}"
        assert len(resp.history) == hops

    @pytest.mark.parametrize(
        "hops, limit, effective", [(1, 0, 0), (1, -3, 0), (3, 2, 2), (6, None, 5)]
    )
    def test_chain_over_limit_raises(self, make_session, hops, limit, effective):
        session = make_session(chain_handler)
        with pytest.raises(RedirectError) as excinfo:
            session.get(f"http://example.org/r/{hops}", redirect_num=limit)
        err = excinfo.value
        assert isinstance(err, HTTPError)
        assert err.limit == effective
        assert len(err.hops) == effective + 1
        assert err.response is not None
        assert err.response.status_code == 302

    def test_default_limit_allows_five(self, make_session):
        session = make_session(chain_handler)
        assert session.get("http://example.org/r/5").status_code == 200

    def test_303_turns_post_into_get_and_drops_body(self, make_session, recorder):
        def handler(request):
            if request.url.path == "/submit":
                return httpx.Response(303, headers={"Location": "/result"}, request=request)
            return httpx.Response(200, request=request)

        recorder.handler = handler
        session = make_session(recorder)
        session.post("http://example.org/submit", post_form=new_post_form("a", "1"))

        follow = recorder.requests[1]
        assert follow.method == "GET"
        assert follow.content == b""
        assert "Content-Type" not in follow.headers

    def test_307_keeps_method_and_body(self, make_session, recorder):
        def handler(request):
            if request.url.path == "/old":
                return httpx.Response(307, headers={"Location": "/new"}, request=request)
            return httpx.Response(200, request=request)

        recorder.handler = handler
        session = make_session(recorder)
        session.post("http://example.org/old", body=b"payload")

        follow = recorder.requests[1]
        assert follow.method == "POST"
        assert follow.content == b"payload"

    def test_authorization_dropped_on_host_change(self, make_session, recorder):
        def handler(request):
            if request.url.host == "a.example":
                return httpx.Response(302, headers={"Location": "http://b.example/"}, request=request)
            return httpx.Response(200, request=request)

        recorder.handler = handler
        session = make_session(recorder)
        session.get("http://a.example/", headers={"Authorization": "Bearer t"})

        assert recorder.requests[0].headers["Authorization"] == "Bearer t"
        assert "Authorization" not in recorder.requests[1].headers

    def test_redirect_without_location_is_returned(self, make_session):
        session = make_session(lambda request: httpx.Response(302, request=request))
        resp = session.get("http://example.org/")
        assert resp.status_code == 302
        assert resp.history == []


class TestTimeouts:
    def test_default_budget_reaches_transport(self, make_session):
        resp = make_session().get("http://example.org/")
        timeout = echoed(resp)["timeout"]
        assert 29.0 < timeout["read"] <= 30.0
        assert timeout["connect"] <= 30.0

    def test_request_timeout_bounds_every_phase(self, make_session):
        resp = make_session(timeout=20).get("http://example.org/", timeout=2)
        timeout = echoed(resp)["timeout"]
        assert 1.0 < timeout["read"] <= 2.0
        assert timeout["connect"] <= 2.0

    def test_negative_timeout_disables_limit(self, make_session):
        resp = make_session(timeout=5).get("http://example.org/", timeout=-1)
        timeout = echoed(resp)["timeout"]
        assert timeout["read"] is None
        assert timeout["connect"] == 30.0

    def test_session_timeout_used_when_request_has_none(self, make_session):
        resp = make_session(timeout=4).get("http://example.org/")
        assert 3.0 < echoed(resp)["timeout"]["read"] <= 4.0

    def test_transport_timeout_maps_to_http_error(self, make_session):
        def handler(request):
            raise httpx.ConnectTimeout("connect timed out", request=request)

        with pytest.raises(HTTPError) as excinfo:
            make_session(handler).get("http://example.org/")
        assert excinfo.value.timed_out is True
        assert isinstance(excinfo.value.cause, httpx.ConnectTimeout)

    def test_budget_spent_across_redirects(self, make_session):
        def handler(request):
            time.sleep(0.1)
            return httpx.Response(302, headers={"Location": "/again"}, request=request)

        with pytest.raises(HTTPError) as excinfo:
            make_session(handler).get("http://example.org/", timeout=0.05)
        assert excinfo.value.timed_out is True
        assert not isinstance(excinfo.value, RedirectError)

    def test_deadline_without_limit_never_expires(self):
        deadline = Deadline(None, connect_cap=30.0)
        assert deadline.remaining() is None
        assert not deadline.expired()
        deadline.check("http://example.org/")


class TestTransportFailures:
    def test_connect_error_maps_to_http_error(self, make_session):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(HTTPError) as excinfo:
            make_session(handler).get("http://example.org/")
        assert excinfo.value.timed_out is False
        assert excinfo.value.url == "http://example.org/"
        assert isinstance(excinfo.value.__cause__, httpx.ConnectError)

    def test_mid_body_failure_is_response_read_error(self, make_session):
        def handler(request):
            stream = _BrokenStream(httpx.ReadError("connection reset"))
            return httpx.Response(200, stream=stream, request=request)

        with pytest.raises(ResponseReadError) as excinfo:
            make_session(handler).get("http://example.org/")
        assert excinfo.value.status_code == 200
        assert not isinstance(excinfo.value, HTTPError)

    def test_timeout_while_reading_is_http_error(self, make_session):
        def handler(request):
            stream = _BrokenStream(httpx.ReadTimeout("read timed out"))
            return httpx.Response(200, stream=stream, request=request)

        with pytest.raises(HTTPError) as excinfo:
            make_session(handler).get("http://example.org/")
        assert excinfo.value.timed_out is True


class TestProxy:
    PROXY = Proxy(http="http://127.0.0.1:1080", https="http://127.0.0.1:1080")

    def test_incomplete_proxy_rejected_before_io(self, make_session, recorder):
        session = make_session(recorder)
        with pytest.raises(ProxyURLError):
            session.get("http://example.org/", proxy=Proxy(http="http://127.0.0.1:1080"))
        assert recorder.requests == []

    def test_proxied_request_uses_proxy_client(self, make_session):
        session = make_session()
        resp = session.get("http://example.org/", proxy=self.PROXY)
        assert resp.status_code == 200
        assert len(session.pool) == 1
        session.get("http://example.org/")
        assert len(session.pool) == 2

    def test_non_http_scheme_with_proxy_raises_url_error(self, make_session, recorder):
        session = make_session(recorder, proxy=self.PROXY)
        with pytest.raises(URLError):
            session.get("ftp://example.org/file")
        assert recorder.requests == []

    def test_session_proxy_not_modified_by_request_proxy(self, make_session):
        session = make_session()
        session.get("http://example.org/", proxy=self.PROXY)
        assert session.proxy is None


class TestCancellation:
    def test_cancelled_before_send(self, make_session, recorder):
        token = CancellationToken()
        token.cancel("shutting down")
        with pytest.raises(RequestCancelled, match="shutting down"):
            make_session(recorder).get("http://example.org/", cancel=token)
        assert recorder.requests == []

    def test_cancelled_between_hops(self, make_session, recorder):
        token = CancellationToken()

        def handler(request):
            token.cancel()
            return httpx.Response(302, headers={"Location": "/next"}, request=request)

        recorder.handler = handler
        with pytest.raises(RequestCancelled):
            make_session(recorder).get("http://example.org/", cancel=token)
        assert len(recorder.requests) == 1


class TestConcurrency:
    def test_per_request_overrides_do_not_leak_between_threads(self, make_session):
        session = make_session(headers={"X-Worker": "session"})
        results = {}

        def worker(index):
            resp = session.get(
                "http://example.org/",
                headers={"X-Worker": str(index)},
                timeout=index + 1,
            )
            results[index] = echoed(resp)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        for index, payload in results.items():
            headers = {key.lower(): value for key, value in payload["headers"]}
            assert headers["x-worker"] == str(index)
            assert payload["timeout"]["read"] <= index + 1
        assert session.headers["X-Worker"] == "session"
        assert len(results) == 8


class TestProxySchemes:
    """Proxy URLs the transport cannot route through never reach client creation."""

    @pytest.mark.parametrize("scheme", ["ftp", "gopher"])
    def test_unsupported_proxy_scheme_on_real_session(self, scheme):
        proxy = Proxy(http=f"{scheme}://p:1", https=f"{scheme}://p:1")
        with Session() as session:
            with pytest.raises(ProxyURLError, match=scheme):
                session.get("http://example.org/", proxy=proxy)
            assert len(session.pool) == 0

    def test_client_construction_failure_becomes_proxy_url_error(self, make_session, monkeypatch):
        session = make_session()

        def refuse(proxy):
            raise ValueError(f"Unknown scheme for proxy URL {proxy!r}")

        monkeypatch.setattr(session.pool, "get", refuse)
        with pytest.raises(ProxyURLError) as excinfo:
            session.get(
                "http://example.org/",
                proxy=Proxy(http="http://127.0.0.1:1080", https="http://127.0.0.1:1080"),
            )
        assert isinstance(excinfo.value.__cause__, ValueError)


class TestNonASCIIInput:
    def test_non_ascii_cookie_value(self, make_session, recorder):
        session = make_session(recorder)
        with pytest.raises(NewRequestError) as excinfo:
            session.get("http://example.org/", cookies=new_cookies("name", "díréwolf"))
        assert isinstance(excinfo.value.__cause__, UnicodeEncodeError)
        assert recorder.requests == []

    def test_percent_encoded_cookie_value_round_trips(self, make_session, recorder):
        session = make_session(recorder)
        session.get("http://example.org/", cookies=new_cookies("name", "d%C3%ADr%C3%A9wolf"))
        assert recorder.requests[0].headers["Cookie"] == "name=d%C3%ADr%C3%A9wolf"

    def test_non_ascii_header_value(self, make_session, recorder):
        session = make_session(recorder)
        with pytest.raises(NewRequestError):
            session.get("http://example.org/", headers={"X-Name": "díréwolf"})
        assert recorder.requests == []
