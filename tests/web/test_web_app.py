"""
Tests for sitefactory.web.app.

Tests cover:
- Serving pages through the catch-all route
- Path info, query and form parameters
- The X-Request-ID header, the bound log context and the access log
- Looking the site up through the instance registry
"""

import pytest
import structlog
from fastapi.testclient import TestClient
from starlette.applications import Starlette
from starlette.responses import JSONResponse
from starlette.routing import Route
from structlog.testing import capture_logs

from sitefactory.core.config.settings import clear_settings_cache
from sitefactory.web.app import create_app
from sitefactory.web.handler import RequestHandler
from sitefactory.web.middleware import RequestContextMiddleware, accept_request_id
from sitefactory.web.outcomes import StepOutcome


@pytest.fixture
def client(factory):
    with TestClient(create_app("music", factory=factory)) as c:
        yield c


class TestPages:
    def test_welcome(self, client):
        resp = client.get("/")

        assert resp.status_code == 200
        assert resp.text == "Welcome to music"
        assert resp.headers["content-type"] == "text/html; charset=utf-8"

    def test_query_parameters(self, client, albums):
        resp = client.get("/", params={"album": albums["axis"].id})

        assert resp.text == "album: Axis"

    def test_path_info(self, client, albums):
        resp = client.get(f"/album/{albums['kind_of_blue'].id}")

        assert resp.text == "album: Kind of Blue"

    def test_suffix_sets_mime_type(self, client):
        resp = client.get("/about.txt")

        assert resp.headers["content-type"] == "text/plain; charset=utf-8"
        assert resp.text == "About music"

    def test_form_post_creates(self, client, factory):
        resp = client.post("/", data={"type": "album", "id": "new", "op": "store", "title": "Posted"})

        assert resp.status_code == 200
        assert resp.text == "album: Posted"
        assert factory.count_all("album") == 1

    def test_not_found(self, client):
        resp = client.get("/", params={"type": "album", "id": "9999"})

        assert resp.status_code == 404
        assert resp.text.startswith("error: notfound")

    def test_head_has_no_body(self, client):
        resp = client.head("/")

        assert resp.status_code == 200
        assert resp.content == b""


class TestRequestID:
    def test_generated(self, client):
        assert len(client.get("/").headers["x-request-id"]) == 32

    def test_echoed(self, client):
        resp = client.get("/", headers={"X-Request-ID": "req-42"})

        assert resp.headers["x-request-id"] == "req-42"

    def test_unusable_id_replaced(self, client):
        resp = client.get("/", headers={"X-Request-ID": "not an id " + "x" * 80})

        assert len(resp.headers["x-request-id"]) == 32

    def test_access_log_line(self, client):
        with capture_logs() as logs:
            client.get("/about.txt", headers={"X-Request-ID": "req-7"})

        (entry,) = [e for e in logs if e["event"] == "web.request"]
        assert entry["method"] == "GET"
        assert entry["path"] == "/about.txt"
        assert entry["status"] == 200
        assert entry["duration_ms"] >= 0


class TestRequestContextMiddleware:
    @pytest.fixture
    def context_app(self):
        async def echo_context(request):
            return JSONResponse(
                {"bound": structlog.contextvars.get_contextvars(), "state": request.state.request_id}
            )

        app = Starlette(routes=[Route("/", echo_context)])
        app.add_middleware(RequestContextMiddleware, site_id="jazz", header="X-Correlation-ID")
        return app

    def test_site_and_id_bound_while_serving(self, context_app):
        with TestClient(context_app) as client:
            resp = client.get("/", headers={"X-Correlation-ID": "corr-1"})

        assert resp.json() == {"bound": {"site": "jazz", "request_id": "corr-1"}, "state": "corr-1"}
        assert resp.headers["x-correlation-id"] == "corr-1"

    def test_accept_request_id(self):
        assert accept_request_id("req-42") == "req-42"
        assert accept_request_id("trace:1.2_3") == "trace:1.2_3"
        assert accept_request_id(None) != accept_request_id(None)
        assert accept_request_id("x" * 65) != "x" * 65
        assert "\n" not in accept_request_id("forged\nline")


def test_redirect_with_cookie(factory):
    class Bouncer(RequestHandler):
        def check_permission(self):
            self.set_cookie("seen", "yes")
            return StepOutcome.redirect("/elsewhere")

    with TestClient(create_app("music", factory=factory, handler_class=Bouncer)) as client:
        resp = client.get("/", follow_redirects=False)

    assert resp.status_code == 302
    assert resp.headers["location"] == "/elsewhere"
    assert resp.headers["set-cookie"].startswith("seen=yes")


def test_site_from_instance_registry(factory, site_files, monkeypatch):
    global_conf, site_conf = site_files
    monkeypatch.setenv("SITEFACTORY_GLOBAL_CONFIG", str(global_conf))
    monkeypatch.setenv("SITEFACTORY_SITE_CONFIG", str(site_conf))
    clear_settings_cache()

    with TestClient(create_app("music")) as client:
        resp = client.get("/", params={"type": "album"})

    assert resp.status_code == 200
    assert resp.text == "album: "
