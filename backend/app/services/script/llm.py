"""
Script LLM Clients

대본 생성용 LLM 호출 포트(CompletionClient)와 provider 어댑터를 정의합니다.

- GeminiChatClient: langchain-google-genai (Vertex AI / Gemini Developer API)
- OpenAIChatClient: openai SDK (Chat Completions)

어댑터는 provider 예외를 대본 생성 에러 타입으로 변환만 하고 재시도는 하지 않습니다.
재시도(429/5xx/타임아웃)는 complete_with_retry()에서 tenacity로 처리합니다.
"""

import asyncio
import os
from enum import Enum
from pathlib import Path
from typing import Protocol, runtime_checkable

import openai
from google.oauth2 import service_account
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage
from langchain_google_genai import ChatGoogleGenerativeAI
from loguru import logger
from openai import AsyncOpenAI
from pydantic import BaseModel
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from app.core.config import settings
from app.services.script.errors import (
    ConfigError,
    ProviderRequestError,
    TransientProviderError,
)

RETRY_MAX_WAIT = 30  # 최대 대기 시간 (초)


class ResponseFormat(str, Enum):
    """LLM 응답 포맷 전략"""

    JSON_SCHEMA = "json_schema"
    JSON_OBJECT = "json_object"
    TEXT = "text"


@runtime_checkable
class CompletionClient(Protocol):
    """LLM 호출 포트 (인터페이스)"""

    provider: str
    supported_formats: tuple[ResponseFormat, ...]

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        model: str,
        max_tokens: int,
        temperature: float,
        response_format: ResponseFormat,
        json_schema: type[BaseModel] | None = None,
    ) -> str:
        """프롬프트를 보내고 응답 텍스트를 반환합니다.

        Raises:
            TransientProviderError: 429/5xx/타임아웃/연결 오류 (재시도 대상)
            ProviderRequestError: 그 밖의 요청 오류
            ConfigError: 인증 실패 등 설정 오류
        """
        ...


def _get_credentials() -> service_account.Credentials | None:
    """
    서비스 계정 자격 증명을 가져옵니다.

    GOOGLE_APPLICATION_CREDENTIALS가 가리키는 키 파일이 있으면 사용하고,
    없으면 None을 반환하여 ADC 자동 감지 또는 GOOGLE_API_KEY를 사용합니다.
    """
    credentials_path = os.environ.get("GOOGLE_APPLICATION_CREDENTIALS")
    if credentials_path and Path(credentials_path).exists():
        return service_account.Credentials.from_service_account_file(
            credentials_path,
            scopes=["https://www.googleapis.com/auth/cloud-platform"],
        )

    logger.warning(
        "서비스 계정 키 파일을 찾을 수 없습니다. ADC 자동 감지를 시도합니다."
    )
    return None


def _status_code_of(exc: Exception) -> int | None:
    for attr in ("status_code", "code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return int(value)
    return None


def _message_text(message: AIMessage) -> str:
    """AIMessage에서 본문 텍스트만 추출합니다 (thinking/reasoning 블록 제외)."""
    content = message.content
    if isinstance(content, str):
        return content
    parts = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


class GeminiChatClient:
    """langchain-google-genai 기반 Gemini 어댑터"""

    provider = "gemini"
    # Gemini는 JSON mime type만 사용 (스키마 강제 없음)
    supported_formats = (ResponseFormat.JSON_OBJECT, ResponseFormat.TEXT)

    def __init__(
        self,
        project_id: str | None = None,
        location: str | None = None,
        timeout: float | None = None,
        thinking_budget: int | None = None,
    ):
        """
        Args:
            project_id: Google Cloud 프로젝트 ID (None이면 settings/환경변수)
            location: Google Cloud 리전 (None이면 settings.GOOGLE_CLOUD_LOCATION)
            timeout: 요청 타임아웃 (초)
            thinking_budget: Thinking 토큰 예산 (None이면 settings)
        """
        self.project_id = (
            project_id
            or settings.GOOGLE_CLOUD_PROJECT
            or os.environ.get("GOOGLE_CLOUD_PROJECT")
            or None
        )
        self.location = location or settings.GOOGLE_CLOUD_LOCATION
        self.timeout = timeout or settings.LLM_REQUEST_TIMEOUT_SEC
        self.thinking_budget = (
            thinking_budget if thinking_budget is not None else settings.SCRIPT_THINKING_BUDGET
        )
        self.credentials = _get_credentials()
        self._models: dict[tuple, ChatGoogleGenerativeAI] = {}

        logger.info(
            f"GeminiChatClient 초기화 완료: project={self.project_id}, location={self.location}, "
            f"timeout={self.timeout}s, thinking_budget={self.thinking_budget}"
        )

    def _get_model(
        self, model: str, json_mode: bool, max_tokens: int, temperature: float
    ) -> ChatGoogleGenerativeAI:
        key = (model, json_mode, max_tokens, temperature)
        if key not in self._models:
            try:
                self._models[key] = ChatGoogleGenerativeAI(
                    model=model,
                    credentials=self.credentials,
                    project=self.project_id,
                    temperature=temperature,
                    max_output_tokens=max_tokens,
                    thinking_budget=self.thinking_budget,
                    response_mime_type="application/json" if json_mode else None,
                    max_retries=0,
                    timeout=self.timeout,
                )
            except Exception as e:
                raise ConfigError(f"Gemini 클라이언트 생성 실패: {e}") from e
        return self._models[key]

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        model: str,
        max_tokens: int,
        temperature: float,
        response_format: ResponseFormat,
        json_schema: type[BaseModel] | None = None,
    ) -> str:
        if response_format not in self.supported_formats:
            raise ProviderRequestError(f"Gemini 미지원 응답 포맷: {response_format.value}")

        llm = self._get_model(
            model, response_format == ResponseFormat.JSON_OBJECT, max_tokens, temperature
        )
        messages = [SystemMessage(content=system_prompt), HumanMessage(content=user_prompt)]

        try:
            result = await asyncio.wait_for(llm.ainvoke(messages), timeout=self.timeout)
        except (asyncio.TimeoutError, TimeoutError) as e:
            raise TransientProviderError(
                f"Gemini 응답 타임아웃 ({self.timeout}초)", timeout=True
            ) from e
        except Exception as e:
            status = _status_code_of(e)
            if status in (401, 403):
                raise ConfigError(f"Gemini 인증 실패: {e}") from e
            if status == 429 or (status is not None and status >= 500):
                raise TransientProviderError(f"Gemini 일시적 오류: {e}", status_code=status) from e
            if status is None and "deadline" in type(e).__name__.lower():
                raise TransientProviderError(f"Gemini 응답 타임아웃: {e}", timeout=True) from e
            raise ProviderRequestError(f"Gemini 요청 실패: {e}", status_code=status) from e

        return _message_text(result)


class OpenAIChatClient:
    """openai SDK 기반 Chat Completions 어댑터"""

    provider = "openai"
    supported_formats = (
        ResponseFormat.JSON_SCHEMA,
        ResponseFormat.JSON_OBJECT,
        ResponseFormat.TEXT,
    )

    def __init__(self, api_key: str | None = None, timeout: float | None = None):
        """
        Args:
            api_key: OpenAI API 키 (None이면 settings.OPENAI_API_KEY)
            timeout: 요청 타임아웃 (초)

        Raises:
            ConfigError: API 키가 없는 경우
        """
        api_key = api_key if api_key is not None else settings.OPENAI_API_KEY
        if not api_key:
            raise ConfigError("OPENAI_API_KEY가 설정되지 않았습니다.")

        self.timeout = timeout or settings.LLM_REQUEST_TIMEOUT_SEC
        # SDK 자체 재시도는 끄고 complete_with_retry()에서 일괄 처리
        self.client = AsyncOpenAI(api_key=api_key, timeout=self.timeout, max_retries=0)

        logger.info(f"OpenAIChatClient 초기화 완료: timeout={self.timeout}s")

    @staticmethod
    def _response_format_param(
        response_format: ResponseFormat, json_schema: type[BaseModel] | None
    ) -> dict | None:
        if response_format == ResponseFormat.JSON_SCHEMA:
            if json_schema is None:
                raise ProviderRequestError("json_schema 포맷에는 응답 스키마가 필요합니다.")
            return {
                "type": "json_schema",
                "json_schema": {
                    "name": json_schema.__name__,
                    "schema": json_schema.model_json_schema(),
                    "strict": False,
                },
            }
        if response_format == ResponseFormat.JSON_OBJECT:
            return {"type": "json_object"}
        return None

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        model: str,
        max_tokens: int,
        temperature: float,
        response_format: ResponseFormat,
        json_schema: type[BaseModel] | None = None,
    ) -> str:
        params = {
            "model": model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": temperature,
            "max_completion_tokens": max_tokens,
        }
        format_param = self._response_format_param(response_format, json_schema)
        if format_param is not None:
            params["response_format"] = format_param

        try:
            response = await self.client.chat.completions.create(**params)
        except openai.APITimeoutError as e:
            raise TransientProviderError(
                f"OpenAI 응답 타임아웃 ({self.timeout}초)", timeout=True
            ) from e
        except openai.APIConnectionError as e:
            raise TransientProviderError(f"OpenAI 연결 오류: {e}") from e
        except openai.AuthenticationError as e:
            raise ConfigError(f"OpenAI 인증 실패: {e}") from e
        except openai.APIStatusError as e:
            if e.status_code == 429 or e.status_code >= 500:
                raise TransientProviderError(
                    f"OpenAI 일시적 오류 ({e.status_code}): {e}", status_code=e.status_code
                ) from e
            raise ProviderRequestError(
                f"OpenAI 요청 실패 ({e.status_code}): {e}", status_code=e.status_code
            ) from e

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""


def create_completion_client(provider: str | None = None) -> CompletionClient:
    """
    설정된 provider의 CompletionClient를 생성합니다.

    Raises:
        ConfigError: 알 수 없는 provider이거나 자격 증명이 없는 경우
    """
    provider = (provider or settings.SCRIPT_LLM_PROVIDER).lower()
    if provider == "gemini":
        return GeminiChatClient()
    if provider == "openai":
        return OpenAIChatClient()
    raise ConfigError(f"알 수 없는 LLM provider: {provider}")


def _log_retry(retry_state) -> None:
    """재시도 전 로깅을 수행합니다."""
    exception = retry_state.outcome.exception()
    attempt = retry_state.attempt_number
    logger.warning(
        f"LLM API 호출 실패: {type(exception).__name__}: {exception}, "
        f"{attempt}번째 재시도 중..."
    )


async def complete_with_retry(
    client: CompletionClient,
    system_prompt: str,
    user_prompt: str,
    *,
    model: str,
    max_tokens: int,
    temperature: float,
    response_format: ResponseFormat,
    json_schema: type[BaseModel] | None = None,
    max_retries: int | None = None,
    base_delay: float | None = None,
) -> str:
    """
    일시적 오류(TransientProviderError)에 한해 지수 백오프로 재시도하며 LLM을 호출합니다.

    대기 시간은 base_delay * 2^attempt (attempt는 0부터) 입니다.

    Args:
        max_retries: 추가 재시도 횟수 (None이면 settings.LLM_MAX_RETRIES)
        base_delay: 백오프 기준 시간 (None이면 settings.LLM_RETRY_BASE_DELAY)

    Raises:
        TransientProviderError: 재시도 소진 시 마지막 에러
        ProviderRequestError, ConfigError: 즉시 전파
    """
    retries = settings.LLM_MAX_RETRIES if max_retries is None else max_retries
    delay = settings.LLM_RETRY_BASE_DELAY if base_delay is None else base_delay

    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(retries + 1),
        wait=wait_exponential(multiplier=delay, max=RETRY_MAX_WAIT),
        retry=retry_if_exception_type(TransientProviderError),
        before_sleep=_log_retry,
        reraise=True,
    ):
        with attempt:
            return await client.complete(
                system_prompt,
                user_prompt,
                model=model,
                max_tokens=max_tokens,
                temperature=temperature,
                response_format=response_format,
                json_schema=json_schema,
            )
