"""
Script Prompt Builders

LLM 호출 유형별 (system, user) 프롬프트를 구성합니다.
템플릿 본문은 backend/prompts/{version}/ 아래 마크다운 파일에 있습니다.
"""

import json

from app.core.config import settings
from app.services.prompt_loader import format_prompt
from app.services.script.policy import LengthPolicy, SceneBounds
from app.services.script.schemas import GenerateRequest, OutlineEntry
from app.services.script.text import safe_excerpt
from output_schemas.script import ScriptDocument

SCRIPT_SHAPE = '{"title":"...","scenes":[{"text":"...","duration":N,"charCount":N}]}'
OUTLINE_SHAPE = '{"title":"...","scenes":[{"duration":N,"beats":["..."]}]}'
SCENE_TEXT_SHAPE = '{"text":"...","charCount":N}'


def _reference_block(reference_text: str | None, limit: int | None = None) -> str:
    if not reference_text or not reference_text.strip():
        return ""
    reference_text = safe_excerpt(reference_text, limit or settings.REFERENCE_EXCERPT_LIMIT)
    return f"\n[레퍼런스]\n{reference_text.strip()}\n"


def _topic(request: GenerateRequest) -> str:
    return request.topic.strip() or "(미지정)"


def _style(request: GenerateRequest) -> str:
    return request.style.strip() or "(자유)"


def build_script_prompts(request: GenerateRequest, policy: LengthPolicy) -> tuple[str, str]:
    """
    표준 경로 대본 생성 프롬프트.

    compiled_prompt가 있으면 정책 프롬프트 대신 그대로 사용합니다.
    """
    system = format_prompt("script_system")
    if request.uses_compiled_prompt:
        return system, request.compiled_prompt.strip()

    user = format_prompt(
        "script_policy",
        topic=_topic(request),
        style=_style(request),
        reference_block=_reference_block(request.reference_text),
        total_target=policy.total_target,
        total_min=policy.total_min,
        total_max=policy.total_max,
        scene_count=policy.scene_count,
        per_sec_min=f"{policy.per_sec_min:.2f}",
        per_sec_max=f"{policy.per_sec_max:.2f}",
        per_sec_target=f"{policy.per_sec_target:.2f}",
        hard_cap=policy.hard_cap_chars_per_scene,
        total_seconds=policy.total_target_seconds,
    )
    return system, user


def build_outline_prompts(
    request: GenerateRequest, policy: LengthPolicy, entry_count: int
) -> tuple[str, str]:
    """장편 아웃라인 프롬프트"""
    user = format_prompt(
        "outline",
        topic=_topic(request),
        style=_style(request),
        reference_block=_reference_block(
            request.reference_text, settings.REFERENCE_EXCERPT_LIMIT
        ),
        total_seconds=policy.total_target_seconds,
        entry_count=entry_count,
        seconds_per_scene=settings.OUTLINE_SECONDS_PER_SCENE,
    )
    return format_prompt("outline_system"), user


def build_expand_prompts(
    request: GenerateRequest,
    policy: LengthPolicy,
    title: str,
    entries: list[OutlineEntry],
    index: int,
) -> tuple[str, str]:
    """아웃라인 항목 하나를 내레이션으로 확장하는 프롬프트"""
    entry = entries[index]
    bounds = policy.bounds_for_sec(entry.duration_sec)
    previous = " / ".join(entries[index - 1].beats) if index > 0 else "(첫 장면)"
    user = format_prompt(
        "scene_expand",
        title=title,
        topic=_topic(request),
        style=_style(request),
        reference_block=_reference_block(
            request.reference_text, settings.REFERENCE_EXCERPT_LIMIT * 2 // 3
        ),
        entry_count=len(entries),
        scene_number=index + 1,
        previous_beats=previous,
        beats="\n".join(f"- {beat}" for beat in entry.beats),
        duration=entry.duration_sec,
        min_chars=bounds.min,
        max_chars=bounds.max,
        target_chars=bounds.target,
        hard_cap=policy.hard_cap_chars_per_scene,
    )
    return format_prompt("scene_text_system"), user


def build_rewrite_prompts(
    request: GenerateRequest,
    policy: LengthPolicy,
    text: str,
    duration_sec: int,
    bounds: SceneBounds,
    expand: bool,
) -> tuple[str, str]:
    """장면 하나를 확장/축약하는 프롬프트"""
    user = format_prompt(
        "scene_rewrite",
        need="확장" if expand else "축약",
        duration=duration_sec,
        min_chars=bounds.min,
        max_chars=bounds.max,
        target_chars=bounds.target,
        hard_cap=policy.hard_cap_chars_per_scene,
        topic=_topic(request),
        style=_style(request),
        text=text,
    )
    return format_prompt("scene_text_system"), user


def build_repair_input(document: ScriptDocument) -> str:
    """문서 전체 보정 요청에 넣을 장면 JSON"""
    return json.dumps(
        {
            "scenes": [
                {
                    "scene_number": scene.scene_number,
                    "duration": scene.duration_sec,
                    "text": scene.text,
                }
                for scene in document.scenes
            ]
        },
        ensure_ascii=False,
        indent=2,
    )


def build_repair_prompts(
    request: GenerateRequest, policy: LengthPolicy, document: ScriptDocument
) -> tuple[str, str]:
    """문서 전체 길이 보정 프롬프트"""
    user = format_prompt(
        "repair_document",
        per_sec_min=f"{policy.per_sec_min:.2f}",
        per_sec_max=f"{policy.per_sec_max:.2f}",
        per_sec_target=f"{policy.per_sec_target:.2f}",
        hard_cap=policy.hard_cap_chars_per_scene,
        total_min=policy.total_min,
        total_max=policy.total_max,
        topic=_topic(request),
        style=_style(request),
        input_json=build_repair_input(document),
    )
    return format_prompt("script_system"), user


def build_format_only_prompt(previous: str, expected_shape: str) -> str:
    """직전 응답을 순수 JSON으로 다시 출력하도록 요청하는 프롬프트"""
    return format_prompt(
        "format_only",
        expected_shape=expected_shape,
        previous=safe_excerpt(previous, 6000),
    )
