import json

from pydantic import AnyHttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    PROJECT_NAME: str = "Script Writer"
    VERSION: str = "0.1.0"
    API_V1_STR: str = "/api/v1"

    # CORS 설정: 콤마로 구분된 문자열이나 리스트 모두 처리 가능하도록 검증
    BACKEND_CORS_ORIGINS: list[AnyHttpUrl] = []

    # ===== 대본 생성 LLM 설정 =====
    # SCRIPT_LLM_PROVIDER: "gemini" (langchain-google-genai) | "openai" (openai SDK)
    SCRIPT_LLM_PROVIDER: str = "gemini"
    SCRIPT_MODEL: str = "gemini-2.5-flash"
    # 기본 모델이 실패하면 같은 요청을 재시도할 모델 (빈 문자열이면 비활성화)
    SCRIPT_FALLBACK_MODEL: str = ""
    SCRIPT_TEMPERATURE: float = 0.2  # 분량 준수가 창의성보다 우선
    # Gemini Thinking 토큰 예산 (0이면 비활성화, 출력 토큰 예산을 본문에 모두 사용)
    SCRIPT_THINKING_BUDGET: int = 0
    # 응답 포맷 시도 순서: "json_schema" → "json_object" → "text"
    SCRIPT_RESPONSE_FORMATS: list[str] = ["json_schema", "json_object", "text"]
    PROMPT_VERSION: str = "v1"

    # Gemini (Vertex AI) 설정
    GOOGLE_CLOUD_PROJECT: str = ""
    GOOGLE_CLOUD_LOCATION: str = "us-central1"

    OPENAI_API_KEY: str = ""  # SCRIPT_LLM_PROVIDER=openai 시 필수

    # ===== LLM 호출 재시도/타임아웃 =====
    LLM_REQUEST_TIMEOUT_SEC: float = 120.0
    LLM_MAX_RETRIES: int = 2  # 일시적 오류(429/5xx/타임아웃) 추가 재시도 횟수
    LLM_RETRY_BASE_DELAY: float = 0.8  # 대기 시간 = base * 2^attempt (초)

    # ===== 출력 토큰 예산 =====
    SCRIPT_MIN_OUTPUT_TOKENS: int = 6000
    SCRIPT_MAX_OUTPUT_TOKENS: int = 8000
    SCRIPT_TOKEN_HEADROOM: int = 1200
    SCENE_EXPAND_MAX_TOKENS: int = 1300

    # ===== 길이 정책 (분당 글자수) =====
    CPM_MIN: int = 300
    CPM_MAX: int = 400
    SCENE_HARD_CAP: int = 1450
    # TTS 입력 한도 (~5000 bytes) 대비 여유, 한국어 1자 ≈ 3 bytes
    TTS_SAFE_BYTE_LIMIT: int = 4800
    BYTES_PER_CHAR: int = 3

    # ===== 정책 검증 임계값 =====
    POLICY_TOTAL_TOLERANCE: float = 0.05  # 전체 글자수 허용 오차
    POLICY_SOFT_BAND: float = 0.10  # 장면별 소프트 허용 범위
    POLICY_SOFT_RATIO: float = 0.2  # 소프트 범위 이탈 장면 비율 상한
    POLICY_OVERFLOW_SLACK: float = 0.05  # 재작성 대상 선정 시 최대치 여유

    # ===== 장편 (아웃라인 → 장면 확장) =====
    SCRIPT_LONGFORM_MIN_MINUTES: float = 25
    OUTLINE_SECONDS_PER_SCENE: int = 40
    OUTLINE_MIN_SCENES: int = 28
    OUTLINE_MAX_SCENES: int = 60
    SCRIPT_EXPAND_CONCURRENCY: int = 4
    REFERENCE_EXCERPT_LIMIT: int = 1200

    # ===== 보정 루프 =====
    SCRIPT_REPAIR_MAX_PASSES: int = 3
    SCRIPT_LONGFORM_REPAIR_MAX_PASSES: int = 4
    SCRIPT_REPAIR_CONCURRENCY: int = 3
    # 장면 수가 부족할 때 분할 대상이 되는 최소 글자수
    SCENE_SPLIT_MIN_CHARS: int = 400

    # ===== 진단 로그 (LLM 원본 응답 덤프) =====
    SCRIPT_DIAGNOSTICS_DIR: str = "logs"

    # ===== Phoenix LLMOps 설정 =====
    PHOENIX_COLLECTOR_ENDPOINT: str = "http://localhost:6006/v1/traces"
    PHOENIX_PROJECT_NAME: str = "script-writer"
    PHOENIX_ENABLED: bool = False

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: str | list[str]) -> list[str] | str:
        if isinstance(v, str):
            # JSON 배열 형태인 경우 파싱
            if v.startswith("["):
                try:
                    return json.loads(v)
                except json.JSONDecodeError:
                    pass
            # 콤마로 구분된 문자열인 경우
            return [i.strip() for i in v.split(",") if i.strip()]
        elif isinstance(v, list):
            return v
        raise ValueError(v)

    # .env 파일 위치 지정 (현재 파일 기준 상위 디렉토리 탐색 등)
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=True
    )


settings = Settings()
