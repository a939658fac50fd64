"""
Length Policy Calculator

목표 재생 시간과 발화 속도(CPM, 분당 글자수)로부터
전체/장면별 글자수 범위를 계산합니다.
"""

from typing import NamedTuple

from loguru import logger
from pydantic import BaseModel

from app.core.config import settings
from app.services.script.text import round_half_up


class SceneBounds(NamedTuple):
    """장면 하나의 글자수 범위"""

    min: int
    max: int
    target: int


class LengthPolicy(BaseModel):
    """요청 단위 길이 정책"""

    total_target_seconds: int
    scene_count: int
    min_cpm: int
    max_cpm: int
    target_cpm: int
    hard_cap_chars_per_scene: int

    @property
    def per_sec_min(self) -> float:
        return self.min_cpm / 60

    @property
    def per_sec_max(self) -> float:
        return self.max_cpm / 60

    @property
    def per_sec_target(self) -> float:
        return self.target_cpm / 60

    @property
    def total_min(self) -> int:
        return round_half_up(self.total_target_seconds * self.per_sec_min)

    @property
    def total_max(self) -> int:
        return round_half_up(self.total_target_seconds * self.per_sec_max)

    @property
    def total_target(self) -> int:
        return round_half_up(self.total_target_seconds * self.per_sec_target)

    def bounds_for_sec(self, sec: float | None) -> SceneBounds:
        """
        장면 길이(초)에 대한 글자수 범위를 계산합니다.

        최소치는 상한으로 자르지 않으므로 아주 긴 장면은 min > max가 될 수 있습니다.

        Args:
            sec: 장면 길이 (초). None이나 0 이하는 1초로 취급

        Returns:
            SceneBounds(min, max, target)
        """
        s = max(1, round_half_up(sec or 0))
        cap = self.hard_cap_chars_per_scene
        return SceneBounds(
            min=round_half_up(s * self.per_sec_min),
            max=min(round_half_up(s * self.per_sec_max), cap),
            target=min(round_half_up(s * self.per_sec_target), cap - 20),
        )


def scene_hard_cap() -> int:
    """TTS 바이트 한도와 설정 상한 중 작은 값"""
    safe_char_cap = settings.TTS_SAFE_BYTE_LIMIT // settings.BYTES_PER_CHAR
    return min(safe_char_cap, settings.SCENE_HARD_CAP)


def calc_length_policy(
    duration_minutes: float,
    scene_count: int = 1,
    cpm_min: int | None = None,
    cpm_max: int | None = None,
) -> LengthPolicy:
    """
    요청 단위 길이 정책을 계산합니다.

    Args:
        duration_minutes: 목표 재생 시간 (분)
        scene_count: 요청 장면 수
        cpm_min: 분당 최소 글자수 (None이면 settings.CPM_MIN)
        cpm_max: 분당 최대 글자수 (None이면 settings.CPM_MAX)

    Returns:
        LengthPolicy

    Raises:
        ValueError: 목표 시간이 1초 미만이거나 CPM 범위가 뒤집힌 경우
    """
    min_cpm = cpm_min if cpm_min is not None else settings.CPM_MIN
    max_cpm = cpm_max if cpm_max is not None else settings.CPM_MAX
    if min_cpm > max_cpm:
        raise ValueError(f"CPM 범위가 잘못되었습니다: {min_cpm} > {max_cpm}")

    total_seconds = round_half_up((duration_minutes or 0) * 60)
    if total_seconds < 1:
        raise ValueError(f"목표 재생 시간이 1초 미만입니다: {duration_minutes}분")

    policy = LengthPolicy(
        total_target_seconds=total_seconds,
        scene_count=max(1, int(scene_count or 1)),
        min_cpm=min_cpm,
        max_cpm=max_cpm,
        target_cpm=round_half_up((min_cpm + max_cpm) / 2),
        hard_cap_chars_per_scene=scene_hard_cap(),
    )

    logger.debug(
        f"길이 정책 계산: {policy.total_target_seconds}초, 장면 {policy.scene_count}개, "
        f"전체 {policy.total_min}~{policy.total_max}자 (목표 {policy.total_target}자), "
        f"장면 상한 {policy.hard_cap_chars_per_scene}자"
    )
    return policy


def estimate_max_tokens(policy: LengthPolicy) -> int:
    """
    대본 전체 생성에 필요한 출력 토큰 예산을 추정합니다.

    한국어는 대략 1자 ≈ 1토큰이므로 목표 글자수에 JSON 오버헤드 여유를 더합니다.
    """
    per_scene_overhead = 40 * policy.scene_count
    wanted = policy.total_target + settings.SCRIPT_TOKEN_HEADROOM + per_scene_overhead
    return min(
        settings.SCRIPT_MAX_OUTPUT_TOKENS,
        max(settings.SCRIPT_MIN_OUTPUT_TOKENS, wanted),
    )
