"""
Phoenix LLMOps Tracing

대본 생성 LLM 호출을 Arize Phoenix로 트레이싱합니다.

provider별 instrumentation:
- gemini: openinference LangChain instrumentation (ChatGoogleGenerativeAI)
- openai: openinference OpenAI instrumentation (AsyncOpenAI)

tracing extra가 설치되지 않았거나 collector 연결에 실패하면 트레이싱 없이 계속 진행합니다.
"""

from loguru import logger

from app.core.config import settings

_tracing_enabled = False


def _instrument(provider: str, tracer_provider) -> str:
    """provider에 맞는 instrumentor를 붙이고 그 이름을 반환합니다."""
    if provider == "openai":
        from openinference.instrumentation.openai import OpenAIInstrumentor

        OpenAIInstrumentor().instrument(tracer_provider=tracer_provider)
        return "openai"

    from openinference.instrumentation.langchain import LangChainInstrumentor

    LangChainInstrumentor().instrument(tracer_provider=tracer_provider)
    return "langchain"


def init_tracing() -> bool:
    """
    Phoenix 트레이싱을 초기화합니다. 여러 번 호출해도 한 번만 등록합니다.

    Returns:
        bool: 트레이싱 활성화 여부
    """
    global _tracing_enabled
    if _tracing_enabled:
        return True

    if not settings.PHOENIX_ENABLED:
        logger.info("Phoenix 트레이싱 비활성화 (PHOENIX_ENABLED=False)")
        return False

    provider = settings.SCRIPT_LLM_PROVIDER.lower()
    try:
        from phoenix.otel import register

        tracer_provider = register(
            project_name=settings.PHOENIX_PROJECT_NAME,
            endpoint=settings.PHOENIX_COLLECTOR_ENDPOINT,
        )
        instrumentation = _instrument(provider, tracer_provider)
    except ImportError as e:
        logger.warning(f"Phoenix 트레이싱 의존성 누락 ({e}), 트레이싱 없이 진행합니다.")
        return False
    except Exception as e:
        logger.warning(f"Phoenix 트레이싱 초기화 실패 ({e}), 트레이싱 없이 진행합니다.")
        return False

    _tracing_enabled = True
    logger.info(
        f"Phoenix 트레이싱 활성화: project={settings.PHOENIX_PROJECT_NAME}, "
        f"provider={provider}, instrumentation={instrumentation}, "
        f"endpoint={settings.PHOENIX_COLLECTOR_ENDPOINT}"
    )
    return True
