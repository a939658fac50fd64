"""
Script API Endpoint

내레이션 대본 생성 API를 제공합니다.
"""

import time

from fastapi import APIRouter, HTTPException
from loguru import logger
from pydantic import BaseModel, Field

from app.services.script import GenerateRequest, ScriptGenerationError, get_script_service
from output_schemas.script import ScriptDocument

router = APIRouter(prefix="/script", tags=["script"])


# ============================================================================
# Request/Response Schemas
# ============================================================================


class GenerateResponse(BaseModel):
    """대본 생성 응답 스키마"""

    document: ScriptDocument = Field(..., description="생성된 대본")
    model: str = Field(..., description="사용된 기본 모델 이름")
    total_seconds: int = Field(..., description="총 재생 시간 (초)")
    total_chars: int = Field(..., description="전체 글자수")
    processing_time_ms: int = Field(..., description="처리 시간 (밀리초)")


class ScriptErrorResponse(BaseModel):
    """대본 생성 에러 응답 스키마"""

    error_code: str = Field(..., description="에러 코드")
    message: str = Field(..., description="사용자 친화적 에러 메시지")
    detail: str | None = Field(None, description="개발자용 상세 정보")
    diagnostic_ref: str | None = Field(None, description="진단 덤프 경로")


def raise_script_error(error: ScriptGenerationError) -> None:
    """ScriptGenerationError를 HTTPException으로 변환하여 raise"""
    raise HTTPException(
        status_code=error.http_status,
        detail=error.to_dict(),
    ) from error


# ============================================================================
# API Endpoints
# ============================================================================


@router.post(
    "/generate",
    response_model=GenerateResponse,
    summary="대본 생성",
    responses={
        500: {"model": ScriptErrorResponse, "description": "설정 오류"},
        502: {"model": ScriptErrorResponse, "description": "LLM 응답 파싱/검증 실패"},
        503: {"model": ScriptErrorResponse, "description": "LLM 일시적 오류"},
        504: {"model": ScriptErrorResponse, "description": "LLM 타임아웃"},
    },
)
async def generate_script(request: GenerateRequest) -> GenerateResponse:
    """
    주제와 목표 길이로 장면별 내레이션 대본을 생성합니다.

    - **topic** / **style**: 주제와 문체
    - **duration_minutes**: 목표 재생 시간 (분). 25분 이상이면 아웃라인 → 장면 확장 방식
    - **target_scene_count**: 요청 장면 수
    - **reference_text**: 참고 자료 (선택)
    - **compiled_prompt**: 완성된 프롬프트 (선택). 있으면 길이 보정 없이 그대로 사용
    - **cpm_min** / **cpm_max**: 분당 글자수 범위 (기본 300~400)

    ## 에러 코드
    - CONFIG_ERROR (500): API 키/모델 설정 오류
    - MALFORMED_RESPONSE / STRUCTURAL_VALIDATION / GENERATION_FAILED (502)
    - PROVIDER_UNAVAILABLE (503), PROVIDER_TIMEOUT (504)
    """
    start_time = time.time()

    try:
        service = get_script_service()
        document = await service.generate(request)
    except ScriptGenerationError as e:
        logger.error(f"대본 생성 실패: {e.code.value} - {e}")
        raise_script_error(e)

    processing_time_ms = int((time.time() - start_time) * 1000)
    logger.info(
        f"대본 생성 API 완료: 장면 {len(document.scenes)}개, "
        f"{document.total_seconds}초, {document.total_chars}자, "
        f"처리시간={processing_time_ms}ms"
    )

    return GenerateResponse(
        document=document,
        model=service.model_name,
        total_seconds=document.total_seconds,
        total_chars=document.total_chars,
        processing_time_ms=processing_time_ms,
    )
