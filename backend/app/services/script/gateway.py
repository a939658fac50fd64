"""
Script LLM Gateway

(모델 × 응답 포맷) 전략 목록을 순서대로 시도하여 구조적으로 유효한 JSON 결과를 얻습니다.

전략 순서:
    기본 모델: json_schema → json_object → text
    대체 모델: json_schema → json_object → text
(클라이언트가 지원하는 포맷만 사용하며, 첫 번째 유효 결과에서 즉시 종료)

어떤 전략도 파싱 가능한 JSON을 내지 못하면 직전 응답을 순수 JSON으로 다시 출력하라는
형식 교정 요청을 정확히 한 번 보낸 뒤 MalformedResponseError를 발생시킵니다.
"""

from collections.abc import Callable
from typing import Any, TypeVar

from loguru import logger
from pydantic import BaseModel

from app.core.config import settings
from app.services.script.diagnostics import DiagnosticsSink, safe_dump
from app.services.script.errors import (
    ConfigError,
    MalformedResponseError,
    ProviderRequestError,
    StructuralValidationError,
    TransientProviderError,
)
from app.services.script.llm import CompletionClient, ResponseFormat, complete_with_retry
from app.services.script.parser import parse_response
from app.services.script.prompts import build_format_only_prompt

T = TypeVar("T")


class LLMGateway:
    """응답 포맷 전략 + 형식 교정 재요청을 담당하는 LLM 호출 계층"""

    def __init__(
        self,
        client: CompletionClient,
        model: str | None = None,
        fallback_model: str | None = None,
        response_formats: list[str] | None = None,
        diagnostics: DiagnosticsSink | None = None,
        temperature: float | None = None,
        max_retries: int | None = None,
        retry_base_delay: float | None = None,
    ):
        """
        Args:
            client: LLM 호출 포트 구현
            model: 기본 모델 (None이면 settings.SCRIPT_MODEL)
            fallback_model: 대체 모델 (None이면 settings.SCRIPT_FALLBACK_MODEL)
            response_formats: 응답 포맷 시도 순서 (None이면 settings.SCRIPT_RESPONSE_FORMATS)
            diagnostics: 실패 응답 덤프 대상
            temperature: 샘플링 온도
            max_retries: 일시적 오류 추가 재시도 횟수
            retry_base_delay: 백오프 기준 시간 (초)
        """
        self.client = client
        self.model = model or settings.SCRIPT_MODEL
        fallback = settings.SCRIPT_FALLBACK_MODEL if fallback_model is None else fallback_model
        self.models = [self.model] + ([fallback] if fallback and fallback != self.model else [])
        self.diagnostics = diagnostics
        self.temperature = settings.SCRIPT_TEMPERATURE if temperature is None else temperature
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay

        wanted = response_formats or settings.SCRIPT_RESPONSE_FORMATS
        self.formats = [
            ResponseFormat(name)
            for name in wanted
            if ResponseFormat(name) in client.supported_formats
        ] or [ResponseFormat.TEXT]

    def strategies(self) -> list[tuple[str, ResponseFormat]]:
        """(모델, 응답 포맷) 시도 순서"""
        return [(model, fmt) for model in self.models for fmt in self.formats]

    async def _complete(
        self,
        system_prompt: str,
        user_prompt: str,
        model: str,
        response_format: ResponseFormat,
        max_tokens: int,
        json_schema: type[BaseModel] | None,
    ) -> str:
        return await complete_with_retry(
            self.client,
            system_prompt,
            user_prompt,
            model=model,
            max_tokens=max_tokens,
            temperature=self.temperature,
            response_format=response_format,
            json_schema=json_schema,
            max_retries=self.max_retries,
            base_delay=self.retry_base_delay,
        )

    async def request_json(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        accept: Callable[[Any], T | None],
        max_tokens: int,
        label: str,
        json_schema: type[BaseModel] | None = None,
        expected_shape: str = "JSON object",
    ) -> T:
        """
        전략 목록을 순서대로 시도하여 accept()를 통과한 첫 결과를 반환합니다.

        Args:
            system_prompt: 시스템 프롬프트
            user_prompt: 사용자 프롬프트
            accept: 파싱된 JSON을 받아 결과를 만들거나, 구조가 맞지 않으면 None 반환
            max_tokens: 출력 토큰 예산
            label: 로그/진단 덤프 라벨
            json_schema: json_schema 포맷에 사용할 응답 스키마
            expected_shape: 형식 교정 요청에 안내할 최상위 구조

        Returns:
            accept()가 반환한 결과

        Raises:
            ConfigError: 설정 오류 (즉시 전파)
            MalformedResponseError: 모든 전략과 형식 교정 후에도 JSON 추출 실패
            StructuralValidationError: JSON은 있었으나 구조 검증 실패
            TransientProviderError | ProviderRequestError: 모든 전략이 호출 단계에서 실패
        """
        provider_errors: list[Exception] = []
        last_raw: str | None = None
        rejected_raw: str | None = None  # 파싱은 됐지만 구조 검증에서 탈락한 응답
        last_model = self.model

        for model, fmt in self.strategies():
            try:
                raw = await self._complete(
                    system_prompt, user_prompt, model, fmt, max_tokens, json_schema
                )
            except ConfigError:
                raise
            except (TransientProviderError, ProviderRequestError) as e:
                logger.warning(f"[{label}] {model}/{fmt.value} 호출 실패: {e}")
                provider_errors.append(e)
                continue

            last_raw, last_model = raw, model
            parsed = parse_response(raw)
            if parsed is None:
                logger.warning(f"[{label}] {model}/{fmt.value} 응답에서 JSON을 찾지 못함")
                continue

            result = accept(parsed)
            if result is not None:
                logger.debug(f"[{label}] {model}/{fmt.value} 응답 채택")
                return result
            rejected_raw = raw
            logger.warning(f"[{label}] {model}/{fmt.value} 응답 구조 검증 실패")

        if last_raw is None:
            # 모든 전략이 호출 단계에서 실패
            logger.error(f"[{label}] 모든 응답 포맷 전략 호출 실패 ({len(provider_errors)}건)")
            raise provider_errors[-1]

        if rejected_raw is not None:
            ref = safe_dump(self.diagnostics, f"{label}-invalid", rejected_raw)
            raise StructuralValidationError(
                f"[{label}] 파싱된 응답에서 사용 가능한 장면을 찾지 못했습니다.",
                diagnostic_ref=ref,
            )

        result = await self._reprompt_format_only(
            system_prompt, last_raw, last_model, accept, max_tokens, label, expected_shape
        )
        if result is not None:
            return result

        ref = safe_dump(self.diagnostics, f"{label}-malformed", last_raw)
        logger.error(f"[{label}] 형식 교정 후에도 JSON 추출 실패 (raw: {ref})")
        raise MalformedResponseError(
            f"[{label}] LLM 응답에서 JSON을 추출하지 못했습니다.", diagnostic_ref=ref
        )

    async def _reprompt_format_only(
        self,
        system_prompt: str,
        previous: str,
        model: str,
        accept: Callable[[Any], T | None],
        max_tokens: int,
        label: str,
        expected_shape: str,
    ) -> T | None:
        """직전 응답을 순수 JSON으로 다시 출력하도록 한 번만 요청합니다."""
        fmt = next((f for f in self.formats if f != ResponseFormat.JSON_SCHEMA), self.formats[0])
        logger.warning(f"[{label}] 형식 교정 재요청 ({model}/{fmt.value})")
        try:
            raw = await self._complete(
                system_prompt,
                build_format_only_prompt(previous, expected_shape),
                model,
                fmt,
                max_tokens,
                None,
            )
        except ConfigError:
            raise
        except (TransientProviderError, ProviderRequestError) as e:
            logger.warning(f"[{label}] 형식 교정 재요청 실패: {e}")
            return None

        parsed = parse_response(raw)
        return accept(parsed) if parsed is not None else None
