import json

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from loguru import logger

from app.api.v1 import script
from app.core.config import settings
from app.core.tracing import init_tracing

API_DESCRIPTION = """
## Script Writer API

주제와 목표 재생 시간으로 TTS용 장면별 내레이션 대본을 만듭니다.

### 생성 흐름

- **표준**: 1회 생성 → 응답 JSON 복구 → 장면 정규화 → 길이 배분 → 길이 정책 보정
- **장편** (25분 이상): 아웃라인 → 장면별 확장 (배치 동시 실행) → 장면별 보정
- **compiled_prompt**: 호출자가 만든 프롬프트를 그대로 사용, 보정 생략

모든 대본은 장면 타임라인이 0초에서 시작해 빈틈 없이 목표 시간에서 끝납니다.

### LLM Provider

- Gemini (`langchain-google-genai`)
- OpenAI (`openai`)
"""


def _add_cors(_app: FastAPI) -> None:
    origins = [str(origin).rstrip("/") for origin in settings.BACKEND_CORS_ORIGINS]
    if not origins:
        logger.warning("CORS origins 미설정 - CORS 미들웨어 비활성화")
        return
    _app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    logger.info(f"CORS 미들웨어 활성화 (origins: {origins})")


def get_application() -> FastAPI:
    init_tracing()

    openapi_path = f"{settings.API_V1_STR}/openapi.json"
    _app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        description=API_DESCRIPTION,
        openapi_url=None,  # 한글 깨짐 방지용 커스텀 엔드포인트 사용
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_tags=[{"name": "script", "description": "장면별 내레이션 대본 생성"}],
    )
    _add_cors(_app)
    _app.include_router(script.router, prefix=settings.API_V1_STR)

    @_app.get(openapi_path, include_in_schema=False)
    async def openapi_json():
        return Response(
            content=json.dumps(_app.openapi(), ensure_ascii=False, indent=2),
            media_type="application/json; charset=utf-8",
        )

    # Swagger UI / ReDoc이 스펙 위치를 찾도록 지정
    _app.openapi_url = openapi_path

    @_app.get("/")
    async def root():
        return {
            "message": f"Welcome to {settings.PROJECT_NAME} API",
            "version": settings.VERSION,
            "status": "running",
        }

    @_app.get("/health")
    async def health_check():
        return {
            "status": "ok",
            "provider": settings.SCRIPT_LLM_PROVIDER,
            "model": settings.SCRIPT_MODEL,
            "fallback_model": settings.SCRIPT_FALLBACK_MODEL or None,
            "prompt_version": settings.PROMPT_VERSION,
        }

    logger.info(
        f"{settings.PROJECT_NAME} {settings.VERSION} 준비 완료 "
        f"(provider={settings.SCRIPT_LLM_PROVIDER}, model={settings.SCRIPT_MODEL})"
    )
    return _app


app = get_application()


# 디버깅 용: python app/main.py로 실행 시
if __name__ == "__main__":
    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=True)
