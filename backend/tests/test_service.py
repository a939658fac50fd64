import asyncio

import pytest

from app.services.script.errors import (
    CompositeGenerationError,
    ConfigError,
    ProviderRequestError,
)
from app.services.script.policy import calc_length_policy
from app.services.script.schemas import GenerateRequest
from app.services.script.service import ScriptService
from app.services.script.validator import validate_policy
from conftest import FakeClient, kind_of


def _scenes(count, text, duration):
    return {
        "title": "테스트 대본",
        "scenes": [{"text": text, "duration": duration} for _ in range(count)],
    }


def _service(make_gateway, sink, responder):
    client = FakeClient(responder)
    return ScriptService(gateway=make_gateway(client), diagnostics=sink), client


def _generate(service, **fields):
    return asyncio.run(service.generate(GenerateRequest(**fields)))


def _assert_timeline(document, total):
    assert document.scenes[0].start_sec == 0
    assert document.scenes[-1].end_sec == total
    for prev, nxt in zip(document.scenes, document.scenes[1:]):
        assert prev.end_sec == nxt.start_sec
    assert [scene.scene_number for scene in document.scenes] == list(
        range(1, len(document.scenes) + 1)
    )


def test_short_scene_is_expanded(make_gateway, sink):
    short = _scenes(1, "가" * 50, 300)

    def responder(call):
        kind = kind_of(call.user_prompt)
        if kind == "script":
            return short
        if kind == "repair":
            return short
        if kind == "rewrite":
            return {"text": "나" * 1500}
        raise AssertionError(f"unexpected prompt: {kind}")

    service, client = _service(make_gateway, sink, responder)
    document = _generate(service, topic="우주 탐사", duration_minutes=5, target_scene_count=1)

    assert client.kinds() == ["script", "repair", "rewrite"]
    assert "확장" in client.calls[-1].user_prompt
    assert len(document.scenes) == 1
    assert document.scenes[0].start_sec == 0
    assert document.scenes[0].end_sec == 300
    assert document.scenes[0].text == "나" * 1500
    assert document.scenes[0].char_count == 1500
    assert not validate_policy(document, calc_length_policy(5, 1)).violated


def test_model_durations_are_rescaled(make_gateway, sink):
    service, client = _service(
        make_gateway, sink, lambda call: _scenes(7, "가" * 250, 40)
    )
    document = _generate(service, topic="역사", duration_minutes=5, target_scene_count=7)

    assert client.kinds() == ["script"]
    assert [scene.duration_sec for scene in document.scenes] == [43] * 6 + [42]
    _assert_timeline(document, 300)


def test_compiled_prompt_skips_longform_and_repair(make_gateway, sink):
    service, client = _service(
        make_gateway, sink, lambda call: _scenes(3, "짧은 장면", None)
    )
    document = _generate(
        service,
        duration_minutes=30,
        compiled_prompt="다음 형식으로 3개 장면 대본을 작성하세요.",
    )

    assert len(client.calls) == 1
    assert client.calls[0].user_prompt == "다음 형식으로 3개 장면 대본을 작성하세요."
    assert len(document.scenes) == 3
    _assert_timeline(document, 1800)


def test_longform_outline_comes_before_expansion(make_gateway, sink):
    outline = {
        "title": "장편 대본",
        "scenes": [{"duration": 40, "beats": [f"포인트 {i}"]} for i in range(1, 46)],
    }

    def responder(call):
        kind = kind_of(call.user_prompt)
        if kind == "outline":
            return outline
        if kind == "expand":
            return {"text": "다" * 230}
        raise AssertionError(f"unexpected prompt: {kind}")

    service, client = _service(make_gateway, sink, responder)
    document = _generate(service, topic="문명의 역사", duration_minutes=30)

    kinds = client.kinds()
    assert kinds[0] == "outline"
    assert kinds[1:] == ["expand"] * 45
    assert document.title == "장편 대본"
    assert len(document.scenes) == 45
    assert all(scene.duration_sec == 40 for scene in document.scenes)
    _assert_timeline(document, 1800)


def test_longform_partial_expansion_keeps_beats(make_gateway, sink):
    outline = {
        "title": "장편 대본",
        "scenes": [{"duration": 40, "beats": [f"포인트 {i}"]} for i in range(1, 46)],
    }

    def responder(call):
        kind = kind_of(call.user_prompt)
        if kind == "outline":
            return outline
        if kind == "expand":
            if "중 3번째 장면의 내레이션" in call.user_prompt:
                return ProviderRequestError("blocked", status_code=400)
            return {"text": "다" * 230}
        if kind == "rewrite":
            return {"text": "라" * 230}
        raise AssertionError(f"unexpected prompt: {kind}")

    service, client = _service(make_gateway, sink, responder)
    document = _generate(service, topic="문명의 역사", duration_minutes=30)

    assert len(document.scenes) == 45
    assert "repair" not in client.kinds()
    assert client.kinds().count("rewrite") == 1
    assert "포인트 3" in client.calls[-1].user_prompt
    assert document.scenes[2].text == "라" * 230
    assert document.scenes[3].text == "다" * 230
    _assert_timeline(document, 1800)


def test_longform_failure_falls_back_to_standard(make_gateway, sink):
    def responder(call):
        kind = kind_of(call.user_prompt)
        if kind == "outline":
            return {"message": "아웃라인을 만들 수 없습니다"}
        if kind == "script":
            return _scenes(10, "라" * 1050, 180)
        raise AssertionError(f"unexpected prompt: {kind}")

    service, client = _service(make_gateway, sink, responder)
    document = _generate(service, topic="바다", duration_minutes=30)

    assert client.kinds() == ["outline", "outline", "script"]
    assert len(document.scenes) == 10
    _assert_timeline(document, 1800)


def test_all_paths_failing_raise_composite_error(make_gateway, sink):
    service, _ = _service(make_gateway, sink, lambda call: "대본을 만들 수 없습니다.")

    with pytest.raises(CompositeGenerationError) as exc_info:
        _generate(service, topic="바다", duration_minutes=5)
    assert len(exc_info.value.errors) == 1
    assert exc_info.value.diagnostic_ref == "memory://generate-failed/2"

    with pytest.raises(CompositeGenerationError) as exc_info:
        _generate(service, topic="바다", duration_minutes=30)
    assert len(exc_info.value.errors) == 2
    body = exc_info.value.to_dict()
    assert body["error_code"] == "GENERATION_FAILED"
    assert [e["error_code"] for e in body["errors"]] == ["MALFORMED_RESPONSE"] * 2


def test_config_error_is_not_wrapped(make_gateway, sink):
    service, client = _service(
        make_gateway, sink, lambda call: ConfigError("GOOGLE_CLOUD_PROJECT 없음")
    )
    with pytest.raises(ConfigError):
        _generate(service, topic="바다", duration_minutes=30)
    assert len(client.calls) == 1


def test_failed_rewrite_leaves_scene_unchanged(make_gateway, sink):
    short = _scenes(1, "가" * 50, 300)

    def responder(call):
        if kind_of(call.user_prompt) == "script":
            return short
        return ProviderRequestError("blocked", status_code=400)

    service, client = _service(make_gateway, sink, responder)
    document = _generate(service, topic="바다", duration_minutes=5, target_scene_count=1)

    assert document.scenes[0].text == "가" * 50
    assert document.scenes[0].end_sec == 300
    assert client.kinds().count("rewrite") == 3 * 2
