import pytest
from unittest.mock import AsyncMock, MagicMock
from fastapi.testclient import TestClient

from webrender import __version__
from webrender.api.main import app
from webrender.api.routes.render_routes import get_render_manager
from webrender.components.renderer.models import OutputKind, RenderResult
from webrender.core.exceptions import BrowserLaunchError, NavigationError
from webrender.core.metrics import METRICS_PREFIX, errors_total, registry, requests_total

client = TestClient(app)

PNG = b"\x89PNG\r\n\x1a\nrendered"
PDF = b"%PDF-1.7\nrendered"
CHANNEL = {"channel": "image"}


@pytest.fixture(autouse=True)
def reset_counters():
    requests_total.clear()
    errors_total.clear()
    yield
    requests_total.clear()
    errors_total.clear()


@pytest.fixture
def fake_manager():
    """Replaces the RenderManager dependency; no browser is launched."""
    manager = MagicMock()
    manager.render_form = AsyncMock(
        return_value=RenderResult(data=PNG, dom="<html></html>", kind=OutputKind.SCREENSHOT)
    )
    app.dependency_overrides[get_render_manager] = lambda: manager
    yield manager
    app.dependency_overrides.pop(get_render_manager, None)


def rendered_form(manager):
    return manager.render_form.call_args.args[0]


def counted(name):
    return registry.get_sample_value(f"{METRICS_PREFIX}_{name}_total", CHANNEL) or 0


def test_get_renders_png(fake_manager):
    response = client.get("/image", params={
        "url": "https://example.com",
        "width": "800",
        "height": "600",
        "headers[X-Token]": "abc",
    })

    assert response.status_code == 200
    assert response.headers["content-type"] == "image/png"
    assert response.content == PNG

    form = rendered_form(fake_manager)
    assert form.url == "https://example.com"
    assert (form.width, form.height) == (800, 600)
    assert form.headers == {"X-Token": "abc"}
    assert form.as_pdf is None
    assert counted("requests") == 1
    assert counted("errors") == 0


def test_post_form_fields(fake_manager):
    response = client.post("/image", data={
        "url": "https://example.com/page",
        "userAgent": "agent/1.0",
        "fullPage": "false",
        "delay": "0",
        "script": "document.body.innerHTML = 'hi'",
        "headers[Accept-Language]": "de",
    })

    assert response.status_code == 200
    form = rendered_form(fake_manager)
    assert form.user_agent == "agent/1.0"
    assert form.full_page is False
    assert form.delay == 0
    assert form.script == "document.body.innerHTML = 'hi'"
    assert form.headers == {"Accept-Language": "de"}


def test_post_json_body_returns_pdf(fake_manager):
    fake_manager.render_form.return_value = RenderResult(data=PDF, dom="", kind=OutputKind.PDF)

    response = client.post("/image", json={
        "url": "https://example.com",
        "asPDF": True,
        "timeout": 5,
        "headers": {"Authorization": "Bearer t"},
    })

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.content == PDF
    form = rendered_form(fake_manager)
    assert form.as_pdf is True
    assert form.timeout == 5
    assert form.headers == {"Authorization": "Bearer t"}


def test_headers_as_json_string_merge_with_bracket_fields(fake_manager):
    response = client.get("/image", params={
        "url": "https://example.com",
        "headers": '{"A": "1", "B": "2"}',
        "headers[B]": "3",
    })

    assert response.status_code == 200
    assert rendered_form(fake_manager).headers == {"A": "1", "B": "3"}


@pytest.mark.parametrize("params", [
    {},
    {"url": ""},
    {"url": "example.com"},
    {"url": "https://example.com", "width": "wide"},
    {"url": "https://example.com", "delay": "-1"},
    {"url": "https://example.com", "headers": "not json"},
])
def test_undecodable_requests_are_rejected(fake_manager, params):
    response = client.get("/image", params=params)

    assert response.status_code == 422
    assert response.json()["detail"].startswith("could not decode form")
    fake_manager.render_form.assert_not_called()
    assert counted("requests") == 1
    assert counted("errors") == 1


def test_non_object_json_body_is_rejected(fake_manager):
    response = client.post("/image", json=["https://example.com"])
    assert response.status_code == 422
    assert counted("errors") == 1


@pytest.mark.parametrize("error", [
    NavigationError("could not navigate to https://example.com: net::ERR_NAME_NOT_RESOLVED"),
    BrowserLaunchError("Failed to launch browser: Executable doesn't exist"),
])
def test_render_failures_return_500(fake_manager, error):
    fake_manager.render_form.side_effect = error

    response = client.get("/image", params={"url": "https://example.com"})

    assert response.status_code == 500
    detail = response.json()["detail"]
    assert detail.startswith("could not make image: ")
    assert error.message in detail
    assert counted("errors") == 1


def test_unexpected_failure_returns_500(fake_manager):
    fake_manager.render_form.side_effect = RuntimeError("event loop is closed")

    response = client.get("/image", params={"url": "https://example.com"})

    assert response.status_code == 500
    assert response.json()["detail"] == "could not make image: event loop is closed"
    assert counted("errors") == 1


def test_healthcheck():
    response = client.get("/healthcheck")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "version": __version__}


def test_metrics_endpoint_reports_counters(fake_manager):
    client.get("/image", params={"url": "https://example.com"})
    client.get("/image")

    response = client.get("/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert f'{METRICS_PREFIX}_requests_total{{channel="image"}} 2.0' in response.text
    assert f'{METRICS_PREFIX}_errors_total{{channel="image"}} 1.0' in response.text
    assert f"# HELP {METRICS_PREFIX}_requests_total Count of all render requests" in response.text


@pytest.mark.parametrize("headers", [[1, 2], "[1, 2]", 42])
def test_non_object_headers_are_rejected(fake_manager, headers):
    response = client.post("/image", json={"url": "https://example.com", "headers": headers})

    assert response.status_code == 422
    assert response.json()["detail"] == "could not decode form: headers must be a JSON object"
    fake_manager.render_form.assert_not_called()
    assert counted("errors") == 1
