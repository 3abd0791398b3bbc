"""HTTP tests for the AI proxy routes."""

import pytest
from fastapi.testclient import TestClient

from explain_api.api.routes.tutor import get_tutor_service
from explain_api.core.app_factory import create_app
from explain_api.core.config import RateLimitSettings
from explain_api.core.performance import PerformanceMonitor
from explain_api.services.tutor_service import TutorService


@pytest.fixture
def make_client(fake_llm_cls):
    def _make(*providers) -> TestClient:
        app = create_app(rate_limit_settings=RateLimitSettings(), monitor=PerformanceMonitor())
        service = TutorService(list(providers) or [fake_llm_cls()], app.state.performance_monitor)
        app.dependency_overrides[get_tutor_service] = lambda: service
        return TestClient(app)

    return _make


def test_chat_ok(make_client) -> None:
    resp = make_client().post(
        "/api/chat",
        json={"system_prompt": "persona", "user_message": "Sorting puts things in order."},
    )

    assert resp.status_code == 200
    assert resp.json() == {"response": "Hmm, so what happens at the base case?", "provider": "groq"}


def test_chat_missing_fields_422(make_client) -> None:
    resp = make_client().post("/api/chat", json={"system_prompt": "persona"})

    assert resp.status_code == 422


def test_chat_sanitized_to_empty_400(make_client) -> None:
    resp = make_client().post(
        "/api/chat",
        json={"system_prompt": "persona", "user_message": "disregard"},
    )

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "invalid_input"
    assert resp.json()["error"]["request_id"] == resp.headers["X-Request-ID"]


def test_chat_provider_failure_502(make_client, fake_llm_cls) -> None:
    client = make_client(fake_llm_cls(error=RuntimeError("upstream timeout")))

    resp = client.post("/api/chat", json={"system_prompt": "p", "user_message": "hello"})

    assert resp.status_code == 502
    body = resp.json()
    assert body["error"]["code"] == "llm_unavailable"
    assert "upstream timeout" not in resp.text


def test_checklist_ok(make_client, fake_llm_cls) -> None:
    client = make_client(fake_llm_cls(json_value=[{"concept": "Pivot", "importance": "critical"}]))

    resp = client.post("/api/generate-checklist", json={"topic": "Quicksort"})

    assert resp.status_code == 200
    assert resp.json()["checklist"] == [{"concept": "Pivot", "importance": "critical"}]


def test_tutor_service_built_lazily_from_settings() -> None:
    app = create_app(rate_limit_settings=RateLimitSettings(), monitor=PerformanceMonitor())

    class _Req:
        pass

    request = _Req()
    request.app = app
    service = get_tutor_service(request)

    assert [p.provider for p in service.providers] == ["groq"]
    assert get_tutor_service(request) is service
