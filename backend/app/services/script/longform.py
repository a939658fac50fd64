"""
Long-form Decomposer

장편 대본을 두 단계로 생성합니다.

1. 아웃라인: 장면 수 = clamp(round(총초/40), 28, 60), 장면별 duration + 핵심 포인트(beats)
2. 확장: 아웃라인 항목마다 1회 LLM 호출, 고정 크기 배치로 동시 실행

일부 항목의 확장이 실패하면 beats를 임시 텍스트로 남기고 (이후 보정 루프가 확장),
모든 항목이 실패하면 StructuralValidationError를 발생시킵니다.
"""

from typing import Any

from loguru import logger

from app.core.config import settings
from app.services.script.allocator import allocate_durations, format_scenes
from app.services.script.batching import run_in_batches
from app.services.script.errors import ConfigError, StructuralValidationError
from app.services.script.gateway import LLMGateway
from app.services.script.normalizer import (
    DURATION_KEYS,
    accept_scene_text,
    coerce_to_scenes_shape,
    pick_text,
    resolve_title,
)
from app.services.script.policy import LengthPolicy
from app.services.script.prompts import (
    OUTLINE_SHAPE,
    SCENE_TEXT_SHAPE,
    build_expand_prompts,
    build_outline_prompts,
)
from app.services.script.schemas import GenerateRequest, Outline, OutlineEntry, RawScene
from app.services.script.text import round_half_up
from output_schemas.script import OutlinePayload, SceneTextPayload, ScriptDocument

MAX_BEATS = 4


def outline_entry_count(total_seconds: int) -> int:
    """아웃라인 장면 수: round(총초 / 40)을 [28, 60]으로 제한"""
    wanted = round_half_up(total_seconds / settings.OUTLINE_SECONDS_PER_SCENE)
    return max(settings.OUTLINE_MIN_SCENES, min(settings.OUTLINE_MAX_SCENES, wanted))


def _entry_beats(item: Any) -> list[str]:
    if isinstance(item, str):
        return [item.strip()] if item.strip() else []
    if not isinstance(item, dict):
        return []
    beats = item.get("beats") or item.get("points") or item.get("key_points")
    if isinstance(beats, list):
        cleaned = [str(beat).strip() for beat in beats if str(beat).strip()]
        if cleaned:
            return cleaned[:MAX_BEATS]
    for key in ("brief", "summary"):
        value = item.get(key)
        if isinstance(value, str) and value.strip():
            return [value.strip()]
    text = pick_text(item)
    return [text] if text else []


def _entry_duration(item: Any) -> int | None:
    if not isinstance(item, dict):
        return None
    for key in DURATION_KEYS:
        value = item.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0:
            return round_half_up(value)
    return None


def parse_outline(parsed: Any, total_seconds: int, topic: str | None = None) -> Outline | None:
    """
    아웃라인 응답을 Outline으로 변환합니다. 항목 길이는 총 시간에 정확히 맞춰 재조정합니다.

    Returns:
        Outline 또는 None (beats가 있는 항목이 없음)
    """
    shaped = coerce_to_scenes_shape(parsed)
    if not shaped:
        return None

    items = [item for item in shaped["scenes"] if _entry_beats(item)]
    if not items:
        return None

    durations = allocate_durations([_entry_duration(item) for item in items], total_seconds)
    entries = [
        OutlineEntry(id=f"s{i}", duration_sec=duration, beats=_entry_beats(item))
        for i, (item, duration) in enumerate(zip(items, durations), start=1)
    ]
    return Outline(title=resolve_title(shaped, topic), entries=entries)


class LongFormGenerator:
    """아웃라인 → 장면 확장 2단계 장편 생성기"""

    def __init__(self, gateway: LLMGateway, concurrency: int | None = None):
        self.gateway = gateway
        self.concurrency = concurrency or settings.SCRIPT_EXPAND_CONCURRENCY

    async def build_outline(self, request: GenerateRequest, policy: LengthPolicy) -> Outline:
        """아웃라인 생성 (1회 LLM 호출)"""
        entry_count = outline_entry_count(policy.total_target_seconds)
        system, user = build_outline_prompts(request, policy, entry_count)

        outline = await self.gateway.request_json(
            system,
            user,
            accept=lambda parsed: parse_outline(
                parsed, policy.total_target_seconds, request.topic
            ),
            max_tokens=settings.SCRIPT_MAX_OUTPUT_TOKENS,
            label="longform-outline",
            json_schema=OutlinePayload,
            expected_shape=OUTLINE_SHAPE,
        )
        logger.info(
            f"아웃라인 생성 완료: 요청 {entry_count}개 → {len(outline.entries)}개 항목, "
            f"제목={outline.title[:30]}"
        )
        return outline

    async def expand(
        self, request: GenerateRequest, policy: LengthPolicy, outline: Outline
    ) -> list[str | None]:
        """
        아웃라인 항목별 내레이션을 생성합니다.

        Returns:
            항목 순서대로의 텍스트 목록 (실패한 항목은 None)

        Raises:
            ConfigError: 설정 오류 발생 시
        """

        async def expand_entry(index: int, entry: OutlineEntry) -> str:
            system, user = build_expand_prompts(
                request, policy, outline.title, outline.entries, index
            )
            return await self.gateway.request_json(
                system,
                user,
                accept=accept_scene_text,
                max_tokens=settings.SCENE_EXPAND_MAX_TOKENS,
                label=f"longform-scene{index + 1}",
                json_schema=SceneTextPayload,
                expected_shape=SCENE_TEXT_SHAPE,
            )

        results = await run_in_batches(outline.entries, self.concurrency, expand_entry)

        texts: list[str | None] = []
        for index, result in enumerate(results):
            if isinstance(result, ConfigError):
                raise result
            if isinstance(result, BaseException):
                logger.warning(f"장면 {index + 1} 확장 실패: {type(result).__name__}: {result}")
                texts.append(None)
            else:
                texts.append(result)
        return texts

    async def generate(self, request: GenerateRequest, policy: LengthPolicy) -> ScriptDocument:
        """
        장편 대본을 생성합니다.

        Raises:
            ConfigError: 설정 오류
            StructuralValidationError: 모든 장면 확장 실패
            ScriptGenerationError: 아웃라인 생성 실패
        """
        outline = await self.build_outline(request, policy)
        texts = await self.expand(request, policy, outline)

        failed = sum(text is None for text in texts)
        if failed == len(texts):
            raise StructuralValidationError("장편 장면 확장이 모두 실패했습니다.")
        if failed:
            logger.warning(
                f"장편 장면 확장 일부 실패: {failed}/{len(texts)}개, beats를 임시 텍스트로 사용"
            )

        scenes = [
            RawScene(
                id=entry.id,
                scene_number=number,
                text=text if text is not None else " ".join(entry.beats),
                duration=entry.duration_sec,
            )
            for number, (entry, text) in enumerate(zip(outline.entries, texts), start=1)
        ]
        document = format_scenes(outline.title, scenes, policy.total_target_seconds)

        logger.info(
            f"장편 초안 완료: 장면 {len(document.scenes)}개, "
            f"총 {document.total_chars}자 (목표 {policy.total_target}자)"
        )
        return document
