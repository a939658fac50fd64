"""
Script Service

주제/스타일/목표 길이로부터 타임라인이 확정된 내레이션 대본(ScriptDocument)을 생성합니다.

경로 선택:
- compiled_prompt가 있으면 표준 경로 (정책 프롬프트와 보정 루프 생략, 장편보다 우선)
- 목표 길이가 SCRIPT_LONGFORM_MIN_MINUTES 이상이면 장편 경로 (실패 시 표준 경로로 대체)
- 그 외 표준 경로 (1회 생성 → 정규화 → 길이 배분 → 정책 검사 → 보정 루프)

모든 경로가 실패하면 수집된 에러를 담은 CompositeGenerationError를 발생시킵니다.
"""

from loguru import logger

from app.core.config import settings
from app.services.script.allocator import format_scenes
from app.services.script.diagnostics import (
    DiagnosticsSink,
    get_diagnostics_sink,
    safe_dump,
)
from app.services.script.errors import (
    CompositeGenerationError,
    ConfigError,
    ScriptGenerationError,
)
from app.services.script.gateway import LLMGateway
from app.services.script.llm import CompletionClient, create_completion_client
from app.services.script.longform import LongFormGenerator
from app.services.script.normalizer import (
    expand_scenes_to_target,
    normalize_scenes,
    resolve_title,
)
from app.services.script.policy import LengthPolicy, calc_length_policy, estimate_max_tokens
from app.services.script.prompts import SCRIPT_SHAPE, build_script_prompts
from app.services.script.repair import RepairLoop
from app.services.script.schemas import GenerateRequest
from output_schemas.script import ScriptDocument, ScriptPayload


class ScriptService:
    """내레이션 대본 생성 서비스"""

    def __init__(
        self,
        client: CompletionClient | None = None,
        gateway: LLMGateway | None = None,
        diagnostics: DiagnosticsSink | None = None,
    ):
        """
        Args:
            client: LLM 호출 포트 (None이면 settings.SCRIPT_LLM_PROVIDER로 생성)
            gateway: LLM 게이트웨이 (None이면 client로 생성)
            diagnostics: 실패 응답 덤프 대상 (None이면 로컬 파일)

        Raises:
            ConfigError: provider 설정 또는 자격 증명 오류
        """
        self.diagnostics = diagnostics or get_diagnostics_sink()
        if gateway is None:
            gateway = LLMGateway(
                client or create_completion_client(), diagnostics=self.diagnostics
            )
        self.gateway = gateway
        self.longform = LongFormGenerator(gateway)
        self.repair = RepairLoop(gateway)
        self.model_name = gateway.model

        logger.info(
            f"ScriptService 초기화 완료: provider={gateway.client.provider}, "
            f"models={gateway.models}, formats={[f.value for f in gateway.formats]}"
        )

    def use_longform(self, request: GenerateRequest) -> bool:
        if request.duration_minutes < settings.SCRIPT_LONGFORM_MIN_MINUTES:
            return False
        if request.uses_compiled_prompt:
            logger.info(
                f"{request.duration_minutes}분 요청이지만 compiled_prompt가 있어 표준 경로 사용"
            )
            return False
        return True

    async def generate(self, request: GenerateRequest) -> ScriptDocument:
        """
        대본을 생성합니다.

        Args:
            request: 대본 생성 요청

        Returns:
            ScriptDocument: 장면 타임라인이 총 재생 시간과 정확히 일치하는 대본

        Raises:
            ConfigError: 설정 오류 (즉시 전파)
            CompositeGenerationError: 모든 생성 전략 실패
        """
        policy = calc_length_policy(
            request.duration_minutes,
            request.target_scene_count,
            request.cpm_min,
            request.cpm_max,
        )
        errors: list[Exception] = []

        logger.info(
            f"대본 생성 요청: 주제={request.topic[:30]}, {request.duration_minutes}분, "
            f"장면 {request.target_scene_count}개, compiled={request.uses_compiled_prompt}"
        )

        if self.use_longform(request):
            try:
                return await self.generate_longform(request, policy)
            except ConfigError:
                raise
            except ScriptGenerationError as e:
                logger.warning(f"장편 경로 실패, 표준 경로로 대체: {e}")
                errors.append(e)

        try:
            return await self.generate_standard(request, policy)
        except ConfigError:
            raise
        except ScriptGenerationError as e:
            logger.error(f"표준 경로 실패: {e}")
            errors.append(e)

        ref = safe_dump(
            self.diagnostics,
            "generate-failed",
            {
                "request": request.model_dump(exclude={"reference_text"}),
                "errors": [
                    {
                        "type": type(e).__name__,
                        "detail": str(e),
                        "diagnostic_ref": getattr(e, "diagnostic_ref", None),
                    }
                    for e in errors
                ],
            },
        )
        raise CompositeGenerationError(errors, diagnostic_ref=ref)

    async def generate_standard(
        self, request: GenerateRequest, policy: LengthPolicy
    ) -> ScriptDocument:
        """
        표준 경로: 1회 생성 → 정규화 → 길이 배분 → (보정 루프)
        """
        system, user = build_script_prompts(request, policy)
        title, scenes = await self.gateway.request_json(
            system,
            user,
            accept=normalize_scenes,
            max_tokens=estimate_max_tokens(policy),
            label="script",
            json_schema=ScriptPayload,
            expected_shape=SCRIPT_SHAPE,
        )

        if not request.uses_compiled_prompt:
            scenes = expand_scenes_to_target(
                scenes, policy.scene_count, settings.SCENE_SPLIT_MIN_CHARS
            )

        document = format_scenes(
            resolve_title({"title": title}, request.topic),
            scenes,
            policy.total_target_seconds,
        )
        logger.info(
            f"대본 초안 완료: 장면 {len(document.scenes)}개, "
            f"총 {document.total_chars}자 (목표 {policy.total_target}자)"
        )

        if request.uses_compiled_prompt:
            return document
        return await self.repair.run(request, policy, document)

    async def generate_longform(
        self, request: GenerateRequest, policy: LengthPolicy
    ) -> ScriptDocument:
        """장편 경로: 아웃라인 → 장면 확장 → 장면별 보정"""
        document = await self.longform.generate(request, policy)
        return await self.repair.run(
            request,
            policy,
            document,
            max_passes=settings.SCRIPT_LONGFORM_REPAIR_MAX_PASSES,
            whole_document=False,
        )


# 싱글톤 인스턴스 (지연 초기화)
_script_service: ScriptService | None = None


def get_script_service() -> ScriptService:
    """
    ScriptService 싱글톤 인스턴스를 가져옵니다.

    Returns:
        ScriptService 인스턴스
    """
    global _script_service
    if _script_service is None:
        _script_service = ScriptService()
    return _script_service
