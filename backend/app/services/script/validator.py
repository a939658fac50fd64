"""
Policy Validator

ScriptDocument가 길이 정책을 지키는지 검사하고, 재작성 대상 장면의 우선순위를 정합니다.
"""

from typing import NamedTuple

from loguru import logger

from app.core.config import settings
from app.services.script.policy import LengthPolicy
from app.services.script.schemas import PolicyReport
from app.services.script.text import count_chars, round_half_up
from output_schemas.script import ScriptDocument


class SceneViolation(NamedTuple):
    """재작성 대상 장면"""

    index: int
    gap: int
    length: int
    min: int
    max: int
    target: int

    @property
    def needs_expand(self) -> bool:
        return self.length < self.min


def validate_policy(document: ScriptDocument, policy: LengthPolicy) -> PolicyReport:
    """
    길이 정책 위반 여부를 판정합니다.

    위반 조건 (하나라도 해당하면 위반):
    - 전체 글자수가 [total_min*(1-tol), total_max*(1+tol)] 밖
    - 어느 장면이든 최소치 미만 (strict)
    - 소프트 범위(±band) 밖 장면 비율이 soft_ratio 이상
    """
    tolerance = settings.POLICY_TOTAL_TOLERANCE
    band = settings.POLICY_SOFT_BAND

    scenes = document.scenes
    lengths = [count_chars(scene.text) for scene in scenes]
    total_chars = sum(lengths)
    total_bad = (
        total_chars < policy.total_min * (1 - tolerance)
        or total_chars > policy.total_max * (1 + tolerance)
    )

    strict_fail = False
    soft_out = 0
    for scene, length in zip(scenes, lengths):
        bounds = policy.bounds_for_sec(scene.duration_sec)
        if length < bounds.min:
            strict_fail = True
        if length and (length < bounds.min * (1 - band) or length > bounds.max * (1 + band)):
            soft_out += 1
    soft_out_ratio = soft_out / len(scenes) if scenes else 0.0

    report = PolicyReport(
        violated=strict_fail or total_bad or soft_out_ratio >= settings.POLICY_SOFT_RATIO,
        total_chars=total_chars,
        total_bad=total_bad,
        strict_fail=strict_fail,
        soft_out_ratio=soft_out_ratio,
    )
    logger.debug(
        f"길이 정책 검사: 전체 {total_chars}자 "
        f"(허용 {policy.total_min}~{policy.total_max}자), "
        f"strict_fail={strict_fail}, soft_out_ratio={soft_out_ratio:.2f}, "
        f"violated={report.violated}"
    )
    return report


def rank_violations(document: ScriptDocument, policy: LengthPolicy) -> list[SceneViolation]:
    """
    범위를 벗어난 장면을 이탈 정도(gap)가 큰 순서로 반환합니다.

    gap = max(min - len, len - round(max * (1 + slack)), 0)
    """
    slack = settings.POLICY_OVERFLOW_SLACK
    violations = []
    for index, scene in enumerate(document.scenes):
        bounds = policy.bounds_for_sec(scene.duration_sec)
        length = count_chars(scene.text)
        gap = max(bounds.min - length, length - round_half_up(bounds.max * (1 + slack)), 0)
        if gap > 0:
            violations.append(
                SceneViolation(
                    index=index,
                    gap=gap,
                    length=length,
                    min=bounds.min,
                    max=bounds.max,
                    target=bounds.target,
                )
            )
    violations.sort(key=lambda v: v.gap, reverse=True)
    return violations


def severity(document: ScriptDocument, policy: LengthPolicy) -> tuple[int, int]:
    """
    문서의 위반 정도 (작을수록 좋음).

    (위반 여부, 장면별 gap 합계)로 비교하여 보정 루프에서 가장 나은 문서를 고릅니다.
    """
    report = validate_policy(document, policy)
    total_gap = sum(v.gap for v in rank_violations(document, policy))
    return int(report.violated), total_gap
