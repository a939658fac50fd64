"""
Duration Allocator

장면별 길이(초)를 목표 총 재생 시간에 정확히 맞추고,
누적 타임라인을 계산하여 ScriptDocument를 구성합니다.
"""

from collections.abc import Sequence

from loguru import logger

from app.services.script.schemas import RawScene
from app.services.script.text import count_chars, round_half_up
from output_schemas.script import Scene, ScriptDocument


def _even_split(total: int, n: int) -> list[int]:
    base = total // n
    durations = [base] * n
    durations[-1] += total - base * n
    return durations


def _trim_overshoot(durations: list[int], total: int) -> list[int]:
    """합계가 목표를 넘으면 가장 긴 장면부터 1초씩 줄입니다 (1초 미만으로는 줄이지 않음)."""
    overshoot = sum(durations) - total
    while overshoot > 0:
        idx = max(range(len(durations)), key=lambda i: durations[i])
        if durations[idx] <= 1:
            break
        durations[idx] -= 1
        overshoot -= 1
    # 장면 수가 총 초보다 많은 경우: 뒤쪽 장면을 0초로 만듦
    idx = len(durations) - 1
    while overshoot > 0 and idx >= 0:
        take = min(durations[idx], overshoot)
        durations[idx] -= take
        overshoot -= take
        idx -= 1
    return durations


def allocate_durations(model_durations: Sequence[int | None], total: int) -> list[int]:
    """
    장면별 길이를 목표 총 시간에 맞춰 배분합니다.

    - 모델이 준 길이가 하나도 없으면 균등 분배 (나머지는 마지막 장면)
    - 있으면 1초 이상으로 보정하고, 빠진 장면은 균등값으로 채운 뒤
      total/sum 비율로 스케일 (마지막 장면이 반올림 오차를 흡수)

    Args:
        model_durations: 장면별 모델 제안 길이 (없으면 None)
        total: 목표 총 시간 (초)

    Returns:
        합계가 정확히 total인 길이 목록
    """
    n = len(model_durations)
    if n == 0:
        return []
    total = max(0, int(total))

    usable = [d is not None and d > 0 for d in model_durations]
    if not any(usable):
        return _even_split(total, n)

    fallback = max(1, total // n)
    durations = [
        max(1, round_half_up(d)) if ok else fallback
        for d, ok in zip(model_durations, usable)
    ]

    current = sum(durations)
    if current != total:
        scale = total / current
        scaled = [max(1, round_half_up(d * scale)) for d in durations[:-1]]
        scaled.append(total - sum(scaled))
        durations = scaled

    if durations[-1] < 1:
        # 앞 장면 반올림으로 마지막 장면이 비었으면 앞에서 당겨옴
        durations[-1] = 1 if total >= n else max(0, durations[-1])
        durations = _trim_overshoot(durations, total)

    return durations


def assign_timeline(durations: Sequence[int], total: int) -> list[tuple[int, int]]:
    """누적 (start, end) 구간을 계산합니다. end는 total을 넘지 않습니다."""
    cursor = 0
    spans = []
    for duration in durations:
        start = cursor
        end = min(total, start + duration)
        spans.append((start, end))
        cursor = end
    return spans


def format_scenes(
    title: str,
    scenes: Sequence[RawScene],
    total_seconds: int,
) -> ScriptDocument:
    """
    RawScene 목록에 길이와 타임라인을 배정하여 ScriptDocument를 만듭니다.

    글자수는 항상 다시 측정하며, 장면 번호는 배열 순서대로 1..n을 부여합니다.

    Args:
        title: 대본 제목
        scenes: 정규화된 장면 목록
        total_seconds: 목표 총 시간 (초)

    Returns:
        ScriptDocument
    """
    durations = allocate_durations([scene.duration for scene in scenes], total_seconds)
    spans = assign_timeline(durations, total_seconds)

    formatted = [
        Scene(
            id=scene.id,
            scene_number=number,
            text=scene.text,
            start_sec=start,
            end_sec=end,
            duration_sec=end - start,
            char_count=count_chars(scene.text),
            visual_description=scene.visual_description,
        )
        for number, (scene, (start, end)) in enumerate(zip(scenes, spans), start=1)
    ]

    logger.debug(
        f"타임라인 배정: 장면 {len(formatted)}개, 총 {total_seconds}초, "
        f"길이={[scene.duration_sec for scene in formatted]}"
    )
    return ScriptDocument(title=title, scenes=formatted)
