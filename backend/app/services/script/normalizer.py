"""
Scene Normalizer

제각각인 LLM 응답 구조에서 장면 목록을 찾아 RawScene 목록으로 정규화합니다.

구조 매칭 순서 (첫 번째 성공 결과 사용):
1. 최상위 배열
2. "scenes" 키
3. result / output / script / data 아래의 "scenes"
4. 깊이 우선 탐색 (방문 집합으로 순환 방지, 깊이 제한)
"""

import math
import re
from collections.abc import Callable
from typing import Any

from loguru import logger

from app.services.script.schemas import RawScene
from app.services.script.text import round_half_up

# 장면 텍스트로 인정하는 키 (우선순위 순)
TEXT_KEYS = ("text", "content", "narration", "body", "description", "dialogue", "value")
# 깊이 탐색 시 먼저 살펴보는 컨테이너 키
SCENE_CONTAINER_KEYS = (
    "scenes",
    "scenario",
    "scene_list",
    "segments",
    "steps",
    "items",
    "parts",
    "chapters",
    "story",
    "content",
)
NESTED_PARENT_KEYS = ("result", "output", "script", "data")
DURATION_KEYS = ("duration", "duration_sec", "seconds", "length", "time")
SCENE_NUMBER_KEYS = ("scene_number", "sceneNumber", "no", "index")
CHAR_COUNT_KEYS = ("charCount", "char_count", "character_count", "model_char_count")

MAX_SEARCH_DEPTH = 8
DEFAULT_TITLE = "자동 생성 대본"

_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.?!。！？])\s+")

ShapeMatcher = Callable[[Any], dict | None]


def pick_text(item: Any) -> str:
    """
    장면 객체에서 내레이션 텍스트를 고릅니다.

    문자열이면 그대로, dict이면 TEXT_KEYS → lines(공백 결합) → summary 순으로 찾습니다.
    """
    if item is None:
        return ""
    if isinstance(item, str):
        return item.strip()
    if not isinstance(item, dict):
        return ""
    for key in TEXT_KEYS:
        value = item.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    lines = item.get("lines")
    if isinstance(lines, list):
        return " ".join(str(line) for line in lines if line).strip()
    summary = item.get("summary")
    if isinstance(summary, str):
        return summary.strip()
    return ""


def _has_textish(items: list) -> bool:
    return any(pick_text(item) for item in items)


def deep_find_scenes(node: Any, max_depth: int = MAX_SEARCH_DEPTH) -> list | None:
    """
    텍스트를 가진 원소가 있는 첫 번째 배열을 깊이 우선으로 찾습니다.

    Args:
        node: 파싱된 JSON 값
        max_depth: 최대 탐색 깊이

    Returns:
        장면 후보 배열 또는 None
    """
    visited: set[int] = set()

    def walk(current: Any, depth: int) -> list | None:
        if depth > max_depth or not isinstance(current, (dict, list)):
            return None
        if id(current) in visited:
            return None
        visited.add(id(current))

        if isinstance(current, list):
            if _has_textish(current):
                return current
            for child in current:
                found = walk(child, depth + 1)
                if found is not None:
                    return found
            return None

        for key in SCENE_CONTAINER_KEYS:
            value = current.get(key)
            if isinstance(value, list):
                if _has_textish(value):
                    return value
                found = walk(value, depth + 1)
                if found is not None:
                    return found
        for value in current.values():
            found = walk(value, depth + 1)
            if found is not None:
                return found
        return None

    return walk(node, 0)


def _match_top_level_list(parsed: Any) -> dict | None:
    if isinstance(parsed, list):
        return {"title": None, "scenes": parsed}
    return None


def _match_scenes_key(parsed: Any) -> dict | None:
    if isinstance(parsed, dict) and isinstance(parsed.get("scenes"), list):
        return {"title": parsed.get("title") or parsed.get("name"), "scenes": parsed["scenes"]}
    return None


def _match_nested_scenes(parsed: Any) -> dict | None:
    if not isinstance(parsed, dict):
        return None
    for parent_key in NESTED_PARENT_KEYS:
        parent = parsed.get(parent_key)
        if isinstance(parent, dict) and isinstance(parent.get("scenes"), list):
            return {
                "title": parsed.get("title") or parent.get("title"),
                "scenes": parent["scenes"],
            }
    return None


def _match_deep_search(parsed: Any) -> dict | None:
    if not isinstance(parsed, dict):
        return None
    found = deep_find_scenes(parsed)
    if found is None:
        return None
    return {"title": parsed.get("title") or parsed.get("name"), "scenes": found}


SHAPE_MATCHERS: list[ShapeMatcher] = [
    _match_top_level_list,
    _match_scenes_key,
    _match_nested_scenes,
    _match_deep_search,
]


def coerce_to_scenes_shape(parsed: Any) -> dict | None:
    """
    파싱된 값을 {"title": ..., "scenes": [...]} 형태로 맞춥니다.

    Returns:
        정규화된 dict 또는 None (장면 배열을 찾지 못함)
    """
    if parsed is None:
        return None
    for matcher in SHAPE_MATCHERS:
        shaped = matcher(parsed)
        if shaped is not None:
            return shaped
    return None


def validate_script_doc_loose(doc: Any) -> bool:
    """장면 배열이 비어 있지 않고 모든 장면에 텍스트가 있는지 확인합니다."""
    if not isinstance(doc, dict):
        return False
    scenes = doc.get("scenes")
    if not isinstance(scenes, list) or not scenes:
        return False
    return all(pick_text(scene) for scene in scenes)


def _first_number(item: dict, keys: tuple[str, ...]) -> float | None:
    for key in keys:
        value = item.get(key)
        if isinstance(value, bool):
            continue
        if isinstance(value, (int, float)):
            number = float(value)
        elif isinstance(value, str):
            try:
                number = float(value.strip())
            except ValueError:
                continue
        else:
            continue
        if math.isfinite(number):
            return number
    return None


def _extract_scene(item: Any, position: int) -> RawScene:
    data = item if isinstance(item, dict) else {}

    number = _first_number(data, SCENE_NUMBER_KEYS)
    scene_number = int(number) if number is not None and number >= 1 else position

    duration = _first_number(data, DURATION_KEYS)
    char_count = _first_number(data, CHAR_COUNT_KEYS)
    visual = data.get("visual_description")

    raw_id = data.get("id")
    return RawScene(
        id=str(raw_id) if raw_id not in (None, "") else f"s{scene_number}",
        scene_number=scene_number,
        text=pick_text(item),
        duration=round_half_up(duration) if duration and duration > 0 else None,
        model_char_count=round_half_up(char_count) if char_count is not None else None,
        visual_description=visual if isinstance(visual, str) else None,
    )


def extract_raw_scenes(doc: dict) -> list[RawScene]:
    """
    정규화된 문서에서 RawScene 목록을 추출합니다.

    텍스트가 없는 장면은 버리고, scene_number 순으로 안정 정렬한 뒤 1..n으로 다시 번호를 매깁니다.
    """
    scenes = [
        _extract_scene(item, position)
        for position, item in enumerate(doc.get("scenes") or [], start=1)
    ]
    scenes = [scene for scene in scenes if scene.text]
    scenes.sort(key=lambda scene: scene.scene_number)
    return [
        scene.model_copy(update={"scene_number": number})
        for number, scene in enumerate(scenes, start=1)
    ]


def resolve_title(doc: dict | None, topic: str | None = None) -> str:
    """문서 제목 → 주제 → 기본 제목 순으로 제목을 결정합니다."""
    title = (doc or {}).get("title")
    if isinstance(title, str) and title.strip():
        return title.strip()
    if topic and topic.strip():
        return topic.strip()
    return DEFAULT_TITLE


def normalize_scenes(parsed: Any) -> tuple[str | None, list[RawScene]] | None:
    """
    파싱된 응답을 (제목, RawScene 목록)으로 정규화합니다.

    Returns:
        (title, scenes) 또는 None (구조 검증 실패)
    """
    shaped = coerce_to_scenes_shape(parsed)
    if not validate_script_doc_loose(shaped):
        return None
    title = shaped.get("title")
    return (title if isinstance(title, str) else None), extract_raw_scenes(shaped)


def _split_text(text: str) -> tuple[str, str]:
    parts = [part for part in _SENTENCE_SPLIT_RE.split(text) if part]
    if len(parts) >= 2:
        mid = (len(parts) + 1) // 2
        return " ".join(parts[:mid]), " ".join(parts[mid:])
    mid = len(text) // 2
    return text[:mid], text[mid:]


def _split_duration(duration: int | None) -> tuple[int | None, int | None]:
    if duration is None:
        return None, None
    first = max(1, duration // 2)
    return first, max(1, duration - first)


def _split_id(base: str, taken: set[str]) -> str:
    n = 2
    while f"{base}_{n}" in taken:
        n += 1
    return f"{base}_{n}"


def expand_scenes_to_target(
    scenes: list[RawScene], target: int, min_split_chars: int = 400
) -> list[RawScene]:
    """
    장면 수가 요청보다 적으면 긴 장면을 문장 경계에서 둘로 나눠 채웁니다.

    Args:
        scenes: 정규화된 장면 목록
        target: 요청 장면 수
        min_split_chars: 분할 대상이 되는 최소 글자수

    Returns:
        분할된 장면 목록 (target개를 넘지 않음, 번호는 1..n으로 재부여)
    """
    if len(scenes) >= target:
        return scenes

    out = list(scenes)
    taken = {scene.id for scene in out}
    i = 0
    while len(out) < target and i < len(out):
        scene = out[i]
        if len(scene.text) < min_split_chars:
            i += 1
            continue
        first_text, second_text = _split_text(scene.text)
        first_dur, second_dur = _split_duration(scene.duration)
        second_id = _split_id(scene.id, taken)
        taken.add(second_id)
        out[i : i + 1] = [
            scene.model_copy(
                update={"text": first_text, "duration": first_dur, "model_char_count": None}
            ),
            scene.model_copy(
                update={
                    "id": second_id,
                    "text": second_text,
                    "duration": second_dur,
                    "model_char_count": None,
                    "visual_description": None,
                }
            ),
        ]

    if len(out) != len(scenes):
        logger.debug(f"장면 분할: {len(scenes)}개 → {len(out)}개 (요청 {target}개)")

    return [
        scene.model_copy(update={"scene_number": number})
        for number, scene in enumerate(out[:target], start=1)
    ]


def accept_scene_text(parsed: Any) -> str | None:
    """단일 장면 응답 ({"text": "...", "charCount": N})에서 텍스트를 꺼냅니다."""
    if isinstance(parsed, list) and len(parsed) == 1:
        parsed = parsed[0]
    if isinstance(parsed, dict) and isinstance(parsed.get("scene"), dict):
        parsed = parsed["scene"]
    text = pick_text(parsed) if isinstance(parsed, dict) else ""
    return text or None
