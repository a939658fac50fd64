import pytest
from fastapi.testclient import TestClient

import app.api.v1.script as script_api
from app.main import app as application
from app.services.script.errors import ConfigError, TransientProviderError
from app.services.script.service import ScriptService
from conftest import FakeClient, kind_of


@pytest.fixture
def client():
    return TestClient(application)


def _use_service(monkeypatch, service):
    monkeypatch.setattr(script_api, "get_script_service", lambda: service)


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_generate_returns_document(client, monkeypatch, make_gateway, sink):
    def responder(call):
        assert kind_of(call.user_prompt) == "script"
        return {
            "title": "우주 대본",
            "scenes": [{"text": "가" * 175, "duration": 30}, {"text": "나" * 175, "duration": 30}],
        }

    service = ScriptService(gateway=make_gateway(FakeClient(responder)), diagnostics=sink)
    _use_service(monkeypatch, service)

    response = client.post(
        "/api/v1/script/generate",
        json={"topic": "우주", "duration_minutes": 1, "target_scene_count": 2},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["model"] == "fake-model"
    assert body["total_seconds"] == 60
    assert body["total_chars"] == 350
    scenes = body["document"]["scenes"]
    assert [(s["start_sec"], s["end_sec"]) for s in scenes] == [(0, 30), (30, 60)]


def test_generate_maps_errors_to_status(client, monkeypatch, make_gateway, sink):
    service = ScriptService(
        gateway=make_gateway(FakeClient(lambda call: "JSON이 아닌 응답")), diagnostics=sink
    )
    _use_service(monkeypatch, service)

    response = client.post("/api/v1/script/generate", json={"topic": "우주", "duration_minutes": 1})
    assert response.status_code == 502
    detail = response.json()["detail"]
    assert detail["error_code"] == "GENERATION_FAILED"
    assert detail["diagnostic_ref"].startswith("memory://generate-failed/")
    assert detail["errors"][0]["error_code"] == "MALFORMED_RESPONSE"


def test_config_error_is_500(client, monkeypatch):
    def broken():
        raise ConfigError("OPENAI_API_KEY가 설정되지 않았습니다.")

    monkeypatch.setattr(script_api, "get_script_service", broken)
    response = client.post("/api/v1/script/generate", json={"duration_minutes": 1})
    assert response.status_code == 500
    assert response.json()["detail"]["error_code"] == "CONFIG_ERROR"


class _TimeoutService:
    model_name = "fake-model"

    async def generate(self, request):
        raise TransientProviderError("deadline", timeout=True)


def test_timeout_is_504(client, monkeypatch):
    _use_service(monkeypatch, _TimeoutService())

    response = client.post("/api/v1/script/generate", json={"duration_minutes": 1})
    assert response.status_code == 504
    assert response.json()["detail"]["error_code"] == "PROVIDER_TIMEOUT"


def test_invalid_request_is_422(client):
    response = client.post(
        "/api/v1/script/generate",
        json={"duration_minutes": 1, "cpm_min": 500, "cpm_max": 300},
    )
    assert response.status_code == 422
    assert client.post("/api/v1/script/generate", json={"duration_minutes": 0}).status_code == 422
    one_sided = client.post(
        "/api/v1/script/generate", json={"duration_minutes": 1, "cpm_min": 500}
    )
    assert one_sided.status_code == 422
