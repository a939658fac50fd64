"""
Repair Loop

길이 정책을 위반한 대본을 제한된 횟수 안에서 보정합니다.

1. 문서 전체 보정: 장면 개수/순서/길이를 유지한 채 텍스트 분량만 다시 쓰도록 1회 요청
2. 장면별 확장/축약: 이탈이 큰 장면부터 고정 크기 배치로 재작성, 정책을 만족하거나
   패스 예산이 소진될 때까지 반복

재작성에 실패한 장면은 그대로 두며, 지금까지 본 문서 중 위반 정도가 가장 작은 문서를 반환합니다.
"""

from typing import Any

from loguru import logger

from app.core.config import settings
from app.services.script.allocator import format_scenes
from app.services.script.batching import run_in_batches
from app.services.script.errors import ConfigError, ScriptGenerationError
from app.services.script.gateway import LLMGateway
from app.services.script.normalizer import accept_scene_text, normalize_scenes
from app.services.script.policy import LengthPolicy, estimate_max_tokens
from app.services.script.prompts import (
    SCENE_TEXT_SHAPE,
    SCRIPT_SHAPE,
    build_repair_prompts,
    build_rewrite_prompts,
)
from app.services.script.schemas import GenerateRequest, RawScene
from app.services.script.text import count_chars
from app.services.script.validator import (
    SceneViolation,
    rank_violations,
    severity,
    validate_policy,
)
from output_schemas.script import SceneTextPayload, ScriptDocument, ScriptPayload


class RepairLoop:
    """길이 정책 보정 루프"""

    def __init__(self, gateway: LLMGateway, concurrency: int | None = None):
        self.gateway = gateway
        self.concurrency = concurrency or settings.SCRIPT_REPAIR_CONCURRENCY

    async def run(
        self,
        request: GenerateRequest,
        policy: LengthPolicy,
        document: ScriptDocument,
        *,
        max_passes: int | None = None,
        whole_document: bool = True,
    ) -> ScriptDocument:
        """
        대본을 보정합니다.

        Args:
            request: 원래 생성 요청 (주제/스타일 전달용)
            policy: 길이 정책
            document: 보정할 대본
            max_passes: 장면별 보정 최대 패스 수 (None이면 settings.SCRIPT_REPAIR_MAX_PASSES)
            whole_document: 문서 전체 보정 단계 수행 여부

        Returns:
            위반 정도가 가장 작은 대본

        Raises:
            ConfigError: 설정 오류 발생 시
        """
        passes = settings.SCRIPT_REPAIR_MAX_PASSES if max_passes is None else max_passes

        if not validate_policy(document, policy).violated:
            return document

        best, best_severity = document, severity(document, policy)

        if whole_document:
            repaired = await self.repair_document(request, policy, document)
            if repaired is not None:
                document = repaired
                current = severity(document, policy)
                if current < best_severity:
                    best, best_severity = document, current

        for pass_no in range(1, passes + 1):
            if not validate_policy(document, policy).violated:
                break
            violations = rank_violations(document, policy)
            if not violations:
                # 전체 분량/비율만 어긋나고 개별 재작성 대상이 없음
                break

            logger.info(f"장면별 보정 {pass_no}/{passes} 패스: 대상 {len(violations)}개")
            document = await self.rewrite_scenes(request, policy, document, violations)

            current = severity(document, policy)
            if current < best_severity:
                best, best_severity = document, current

        report = validate_policy(best, policy)
        logger.info(
            f"보정 완료: 전체 {report.total_chars}자 "
            f"(허용 {policy.total_min}~{policy.total_max}자), violated={report.violated}"
        )
        return best

    async def repair_document(
        self, request: GenerateRequest, policy: LengthPolicy, document: ScriptDocument
    ) -> ScriptDocument | None:
        """
        문서 전체 보정 (1회 LLM 호출).

        응답이 같은 개수의 장면을 돌려줄 때만 채택하며, 장면 id는 원본을 유지합니다.

        Returns:
            보정된 대본 또는 None (실패/구조 불일치)
        """
        original = document.scenes

        def accept(parsed: Any) -> list[RawScene] | None:
            normalized = normalize_scenes(parsed)
            if normalized is None:
                return None
            _, scenes = normalized
            if len(scenes) != len(original):
                return None
            return [
                RawScene(
                    id=source.id,
                    scene_number=source.scene_number,
                    text=scene.text,
                    duration=scene.duration or source.duration_sec or None,
                    visual_description=source.visual_description,
                )
                for source, scene in zip(original, scenes)
            ]

        system, user = build_repair_prompts(request, policy, document)
        try:
            scenes = await self.gateway.request_json(
                system,
                user,
                accept=accept,
                max_tokens=estimate_max_tokens(policy),
                label="repair-document",
                json_schema=ScriptPayload,
                expected_shape=SCRIPT_SHAPE,
            )
        except ConfigError:
            raise
        except ScriptGenerationError as e:
            logger.warning(f"문서 전체 보정 실패, 장면별 보정으로 진행: {e}")
            return None

        return format_scenes(document.title, scenes, policy.total_target_seconds)

    async def rewrite_scenes(
        self,
        request: GenerateRequest,
        policy: LengthPolicy,
        document: ScriptDocument,
        violations: list[SceneViolation],
    ) -> ScriptDocument:
        """
        위반 장면을 확장/축약합니다. 성공한 장면은 text/char_count만 교체합니다.
        """

        async def rewrite(_: int, violation: SceneViolation) -> str:
            scene = document.scenes[violation.index]
            system, user = build_rewrite_prompts(
                request,
                policy,
                scene.text,
                scene.duration_sec,
                policy.bounds_for_sec(scene.duration_sec),
                expand=violation.needs_expand,
            )
            return await self.gateway.request_json(
                system,
                user,
                accept=accept_scene_text,
                max_tokens=settings.SCENE_EXPAND_MAX_TOKENS,
                label=f"rewrite-scene{scene.scene_number}",
                json_schema=SceneTextPayload,
                expected_shape=SCENE_TEXT_SHAPE,
            )

        results = await run_in_batches(violations, self.concurrency, rewrite)

        scenes = list(document.scenes)
        for violation, result in zip(violations, results):
            if isinstance(result, ConfigError):
                raise result
            scene = scenes[violation.index]
            if isinstance(result, BaseException):
                logger.warning(
                    f"장면 {scene.scene_number} 재작성 실패, 원문 유지: "
                    f"{type(result).__name__}: {result}"
                )
                continue
            new_length = count_chars(result)
            logger.debug(
                f"장면 {scene.scene_number} {'확장' if violation.needs_expand else '축약'}: "
                f"{violation.length}자 → {new_length}자 "
                f"(범위 {violation.min}~{violation.max}자)"
            )
            scenes[violation.index] = scene.model_copy(
                update={"text": result, "char_count": new_length}
            )

        return document.model_copy(update={"scenes": scenes})
