"""
Script Generation Error Definitions

대본 생성 관련 커스텀 에러 타입 및 사용자 친화적 메시지 시스템을 정의합니다.

에러 타입별 HTTP 상태 코드:
- 500: 설정 오류 (API 키 누락 등)
- 502: LLM 요청 실패, 응답 파싱/구조 검증 실패, 전체 전략 소진
- 503: 일시적 LLM 오류 (429, 5xx) 재시도 소진
- 504: LLM 응답 타임아웃
"""

from enum import Enum
from typing import Optional


class ScriptErrorCode(str, Enum):
    """대본 생성 에러 코드"""

    CONFIG_ERROR = "CONFIG_ERROR"
    PROVIDER_UNAVAILABLE = "PROVIDER_UNAVAILABLE"
    PROVIDER_TIMEOUT = "PROVIDER_TIMEOUT"
    PROVIDER_REQUEST_FAILED = "PROVIDER_REQUEST_FAILED"
    MALFORMED_RESPONSE = "MALFORMED_RESPONSE"
    STRUCTURAL_VALIDATION = "STRUCTURAL_VALIDATION"
    GENERATION_FAILED = "GENERATION_FAILED"


# 에러 코드별 사용자 친화적 메시지 (한국어)
ERROR_MESSAGES: dict[ScriptErrorCode, str] = {
    ScriptErrorCode.CONFIG_ERROR: "앗, 대본 생성 설정이 올바르지 않아요. API 키와 모델 설정을 확인해 주세요.",
    ScriptErrorCode.PROVIDER_UNAVAILABLE: "앗, AI 서버가 잠시 바쁜 것 같아요. 잠시 후 다시 시도해 주세요.",
    ScriptErrorCode.PROVIDER_TIMEOUT: "앗, AI 응답 시간이 너무 길어지고 있어요. 잠시 후 다시 시도해 주시겠어요?",
    ScriptErrorCode.PROVIDER_REQUEST_FAILED: "앗, AI 요청이 거절되었어요. 입력 내용을 확인해 주세요.",
    ScriptErrorCode.MALFORMED_RESPONSE: "앗, AI 응답을 해석하지 못했어요. 다시 시도해 주세요.",
    ScriptErrorCode.STRUCTURAL_VALIDATION: "앗, AI가 올바른 대본 형식을 만들지 못했어요. 다시 시도해 주세요.",
    ScriptErrorCode.GENERATION_FAILED: "앗, 대본을 만들지 못했어요. 주제나 길이를 바꿔서 다시 시도해 주세요.",
}

# 에러 코드별 HTTP 상태 코드 매핑
ERROR_HTTP_STATUS: dict[ScriptErrorCode, int] = {
    ScriptErrorCode.CONFIG_ERROR: 500,
    ScriptErrorCode.PROVIDER_UNAVAILABLE: 503,
    ScriptErrorCode.PROVIDER_TIMEOUT: 504,
    ScriptErrorCode.PROVIDER_REQUEST_FAILED: 502,
    ScriptErrorCode.MALFORMED_RESPONSE: 502,
    ScriptErrorCode.STRUCTURAL_VALIDATION: 502,
    ScriptErrorCode.GENERATION_FAILED: 502,
}


class ScriptGenerationError(Exception):
    """
    대본 생성 에러 기본 클래스

    Attributes:
        code: 에러 코드 (ScriptErrorCode)
        message: 사용자에게 표시할 메시지
        detail: 개발자용 상세 정보 (선택)
        diagnostic_ref: 원본 응답이 덤프된 진단 파일 경로 (선택)
        http_status: HTTP 상태 코드
    """

    def __init__(
        self,
        code: ScriptErrorCode,
        message: Optional[str] = None,
        detail: Optional[str] = None,
        diagnostic_ref: Optional[str] = None,
    ):
        self.code = code
        self.message = message or ERROR_MESSAGES.get(code, "알 수 없는 오류가 발생했습니다.")
        self.detail = detail
        self.diagnostic_ref = diagnostic_ref
        self.http_status = ERROR_HTTP_STATUS.get(code, 500)

        super().__init__(self.detail or self.message)

    def to_dict(self) -> dict:
        """API 응답용 딕셔너리 변환"""
        result = {
            "error_code": self.code.value,
            "message": self.message,
        }
        if self.detail:
            result["detail"] = self.detail
        if self.diagnostic_ref:
            result["diagnostic_ref"] = self.diagnostic_ref
        return result


class ConfigError(ScriptGenerationError):
    """설정 오류 (API 키 누락, 알 수 없는 provider) - 재시도 없음"""

    def __init__(self, detail: str):
        super().__init__(code=ScriptErrorCode.CONFIG_ERROR, detail=detail)


class TransientProviderError(ScriptGenerationError):
    """일시적 LLM 오류 (429, 5xx, 타임아웃, 연결 오류) - 재시도 대상"""

    def __init__(
        self,
        detail: str,
        status_code: Optional[int] = None,
        timeout: bool = False,
    ):
        super().__init__(
            code=(
                ScriptErrorCode.PROVIDER_TIMEOUT
                if timeout
                else ScriptErrorCode.PROVIDER_UNAVAILABLE
            ),
            detail=detail,
        )
        self.status_code = status_code
        self.timeout = timeout


class ProviderRequestError(ScriptGenerationError):
    """재시도 불가능한 LLM 요청 오류 (4xx, 미지원 응답 포맷 등)"""

    def __init__(self, detail: str, status_code: Optional[int] = None):
        super().__init__(code=ScriptErrorCode.PROVIDER_REQUEST_FAILED, detail=detail)
        self.status_code = status_code


class MalformedResponseError(ScriptGenerationError):
    """모든 응답 포맷 전략 이후에도 JSON을 추출하지 못한 경우"""

    def __init__(self, detail: str, diagnostic_ref: Optional[str] = None):
        super().__init__(
            code=ScriptErrorCode.MALFORMED_RESPONSE,
            detail=detail,
            diagnostic_ref=diagnostic_ref,
        )


class StructuralValidationError(ScriptGenerationError):
    """JSON은 파싱되었으나 사용 가능한 장면/텍스트가 없는 경우"""

    def __init__(self, detail: str, diagnostic_ref: Optional[str] = None):
        super().__init__(
            code=ScriptErrorCode.STRUCTURAL_VALIDATION,
            detail=detail,
            diagnostic_ref=diagnostic_ref,
        )


class CompositeGenerationError(ScriptGenerationError):
    """
    모든 생성 전략이 소진된 경우

    Attributes:
        errors: 각 전략에서 수집된 에러 목록 (시도 순서)
    """

    def __init__(
        self,
        errors: list[Exception],
        diagnostic_ref: Optional[str] = None,
    ):
        summary = "; ".join(f"{type(e).__name__}: {e}" for e in errors)
        super().__init__(
            code=ScriptErrorCode.GENERATION_FAILED,
            detail=f"모든 생성 전략 실패 ({len(errors)}건): {summary}",
            diagnostic_ref=diagnostic_ref,
        )
        self.errors = errors

    def to_dict(self) -> dict:
        result = super().to_dict()
        result["errors"] = [
            e.to_dict() if isinstance(e, ScriptGenerationError) else {"message": str(e)}
            for e in self.errors
        ]
        return result
