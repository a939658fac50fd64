"""
Script Package

내레이션 대본 생성 관련 모듈을 제공합니다.

공개 API:
- service: 대본 생성 서비스 (ScriptService, get_script_service)
- schemas: 요청/중간 데이터 모델 (GenerateRequest, RawScene, Outline, PolicyReport)
- policy: 길이 정책 계산 (LengthPolicy, calc_length_policy)
- parser / normalizer / allocator / validator: 응답 복구, 장면 정규화, 길이 배분, 정책 검사
- llm: LLM 호출 포트와 provider 어댑터 (CompletionClient, GeminiChatClient, OpenAIChatClient)
- diagnostics: 실패 응답 덤프 (DiagnosticsSink, LocalDiagnosticsSink)
- errors: 에러 타입 및 메시지 시스템
"""

from app.services.script.allocator import allocate_durations, assign_timeline, format_scenes
from app.services.script.diagnostics import (
    DiagnosticsSink,
    LocalDiagnosticsSink,
    get_diagnostics_sink,
)
from app.services.script.errors import (
    ERROR_HTTP_STATUS,
    ERROR_MESSAGES,
    CompositeGenerationError,
    ConfigError,
    MalformedResponseError,
    ProviderRequestError,
    ScriptErrorCode,
    ScriptGenerationError,
    StructuralValidationError,
    TransientProviderError,
)
from app.services.script.gateway import LLMGateway
from app.services.script.llm import (
    CompletionClient,
    GeminiChatClient,
    OpenAIChatClient,
    ResponseFormat,
    create_completion_client,
)
from app.services.script.normalizer import normalize_scenes
from app.services.script.parser import parse_response
from app.services.script.policy import LengthPolicy, SceneBounds, calc_length_policy
from app.services.script.schemas import (
    GenerateRequest,
    Outline,
    OutlineEntry,
    PolicyReport,
    RawScene,
)
from app.services.script.service import ScriptService, get_script_service
from app.services.script.text import count_chars
from app.services.script.validator import validate_policy

__all__ = [
    # Service
    "ScriptService",
    "get_script_service",
    # Schemas
    "GenerateRequest",
    "RawScene",
    "OutlineEntry",
    "Outline",
    "PolicyReport",
    # Pipeline
    "LengthPolicy",
    "SceneBounds",
    "calc_length_policy",
    "count_chars",
    "parse_response",
    "normalize_scenes",
    "allocate_durations",
    "assign_timeline",
    "format_scenes",
    "validate_policy",
    # LLM
    "CompletionClient",
    "ResponseFormat",
    "GeminiChatClient",
    "OpenAIChatClient",
    "create_completion_client",
    "LLMGateway",
    # Diagnostics
    "DiagnosticsSink",
    "LocalDiagnosticsSink",
    "get_diagnostics_sink",
    # Errors
    "ScriptGenerationError",
    "ScriptErrorCode",
    "ConfigError",
    "TransientProviderError",
    "ProviderRequestError",
    "MalformedResponseError",
    "StructuralValidationError",
    "CompositeGenerationError",
    "ERROR_MESSAGES",
    "ERROR_HTTP_STATUS",
]
