"""
Script Output Schema

대본 생성 결과와 LLM 구조화 출력(json_schema 모드)에 사용되는 Pydantic 스키마를 정의합니다.
"""

from pydantic import BaseModel, Field


class Scene(BaseModel):
    """타임라인이 확정된 내레이션 장면"""

    id: str = Field(..., description="장면 식별자 (예: s1)")
    scene_number: int = Field(..., ge=1, description="1부터 시작하는 장면 순서")
    text: str = Field(..., description="내레이션 텍스트")
    start_sec: int = Field(..., ge=0, description="시작 시각 (초)")
    end_sec: int = Field(..., ge=0, description="종료 시각 (초)")
    duration_sec: int = Field(..., ge=0, description="장면 길이 (초)")
    char_count: int = Field(..., ge=0, description="측정된 글자수 (NFC, 제로폭 문자 제외)")
    visual_description: str | None = Field(
        None, description="장면 시각 연출 설명 (선택)"
    )


class ScriptDocument(BaseModel):
    """대본 문서 - 제목 + 시간상 연속된 장면 목록"""

    title: str = Field(..., description="대본 제목")
    scenes: list[Scene] = Field(default_factory=list, description="장면 목록")

    @property
    def total_seconds(self) -> int:
        return self.scenes[-1].end_sec if self.scenes else 0

    @property
    def total_chars(self) -> int:
        return sum(scene.char_count for scene in self.scenes)


# ============================================================================
# LLM 응답 스키마 (json_schema 응답 포맷용)
# ============================================================================


class ScenePayload(BaseModel):
    """LLM이 반환하는 장면"""

    text: str = Field(..., description="내레이션 텍스트")
    duration: int = Field(..., description="장면 길이 (초)")
    charCount: int = Field(..., description="공백 포함 글자수")


class ScriptPayload(BaseModel):
    """LLM이 반환하는 대본"""

    title: str = Field(..., description="대본 제목")
    scenes: list[ScenePayload] = Field(..., description="장면 목록")


class OutlineEntryPayload(BaseModel):
    """LLM이 반환하는 아웃라인 항목"""

    duration: int = Field(..., description="장면 길이 (초)")
    beats: list[str] = Field(..., description="장면에서 다룰 핵심 포인트 (2-4개)")


class OutlinePayload(BaseModel):
    """LLM이 반환하는 장편 아웃라인"""

    title: str = Field(..., description="대본 제목")
    scenes: list[OutlineEntryPayload] = Field(..., description="아웃라인 항목 목록")


class SceneTextPayload(BaseModel):
    """LLM이 반환하는 단일 장면 텍스트 (확장/재작성)"""

    text: str = Field(..., description="내레이션 텍스트")
    charCount: int = Field(..., description="공백 포함 글자수")
