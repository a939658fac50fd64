"""
Script Data Schemas

대본 생성 파이프라인의 요청 및 중간 데이터 모델을 정의합니다.
"""

from typing import Optional

from pydantic import BaseModel, Field, model_validator

from app.core.config import settings
from app.services.script.text import round_half_up


class GenerateRequest(BaseModel):
    """대본 생성 요청 스키마"""

    topic: str = Field("", description="대본 주제")
    style: str = Field("", description="문체/톤 (예: 다큐멘터리, 친근한 설명)")
    duration_minutes: float = Field(..., gt=0, description="목표 재생 시간 (분)")
    target_scene_count: int = Field(
        10, ge=1, description="요청 장면 수 (장편 모드에서는 아웃라인이 결정)"
    )
    reference_text: Optional[str] = Field(None, description="참고 자료 (레퍼런스 모드)")
    compiled_prompt: Optional[str] = Field(
        None,
        description="호출자가 완성한 프롬프트. 있으면 기본 정책 프롬프트와 보정 루프를 건너뜀",
    )
    cpm_min: Optional[int] = Field(None, gt=0, description="분당 최소 글자수 (기본 300)")
    cpm_max: Optional[int] = Field(None, gt=0, description="분당 최대 글자수 (기본 400)")

    @model_validator(mode="after")
    def check_cpm_range(self) -> "GenerateRequest":
        # 한쪽만 지정된 경우 기본값과 비교
        min_cpm = self.cpm_min if self.cpm_min is not None else settings.CPM_MIN
        max_cpm = self.cpm_max if self.cpm_max is not None else settings.CPM_MAX
        if min_cpm > max_cpm:
            raise ValueError(
                f"분당 최소 글자수({min_cpm})가 최대 글자수({max_cpm})보다 클 수 없습니다."
            )
        return self

    @model_validator(mode="after")
    def check_total_seconds(self) -> "GenerateRequest":
        if round_half_up(self.duration_minutes * 60) < 1:
            raise ValueError("목표 재생 시간은 반올림해서 1초 이상이어야 합니다.")
        return self

    @property
    def uses_compiled_prompt(self) -> bool:
        return bool(self.compiled_prompt and self.compiled_prompt.strip())


class RawScene(BaseModel):
    """정규화 단계에서 추출된 장면 (타임라인 확정 전)"""

    id: str
    scene_number: int
    text: str
    duration: Optional[int] = None  # 모델이 제안한 길이 (초), 없으면 균등 분배
    model_char_count: Optional[int] = None  # 모델이 보고한 글자수 (참고용, 신뢰하지 않음)
    visual_description: Optional[str] = None


class OutlineEntry(BaseModel):
    """장편 아웃라인 항목"""

    id: str
    duration_sec: int
    beats: list[str] = Field(default_factory=list)


class Outline(BaseModel):
    """장편 아웃라인"""

    title: str
    entries: list[OutlineEntry]


class PolicyReport(BaseModel):
    """길이 정책 검증 결과"""

    violated: bool
    total_chars: int
    total_bad: bool
    strict_fail: bool
    soft_out_ratio: float
