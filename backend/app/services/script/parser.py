"""
Response Parser

LLM의 자유 형식 응답에서 JSON 값을 복구합니다.
코드펜스 제거 → 직접 파싱 → 중괄호 구간 → 대괄호 구간 → 균형 중괄호 스캔 순으로 시도하며,
어떤 입력에도 예외를 던지지 않고 실패 시 None을 반환합니다.
"""

import json
import re
from typing import Any

_FENCE_JSON_RE = re.compile(r"```json\s*([\s\S]*?)```", re.IGNORECASE)
_FENCE_ANY_RE = re.compile(r"```\s*([\s\S]*?)```")


def strip_fence(raw: str | None) -> str:
    """마크다운 코드펜스가 있으면 안쪽 내용만 반환합니다."""
    if not raw:
        return ""
    text = str(raw)
    match = _FENCE_JSON_RE.search(text) or _FENCE_ANY_RE.search(text)
    return (match.group(1) if match else text).strip()


def _loads(text: str) -> Any | None:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError, ValueError):
        return None


def try_parse(text: str | None) -> Any | None:
    """
    문자열에서 JSON 값을 파싱합니다.

    Args:
        text: 코드펜스가 제거된 응답 문자열

    Returns:
        파싱된 값 또는 None
    """
    if not text:
        return None

    parsed = _loads(text)
    if parsed is not None:
        return parsed

    # 첫 '{' ~ 마지막 '}'
    start, end = text.find("{"), text.rfind("}")
    if 0 <= start < end:
        parsed = _loads(text[start : end + 1])
        if parsed is not None:
            return parsed

    # 첫 '[' ~ 마지막 ']' (배열인 경우만 인정)
    start, end = text.find("["), text.rfind("]")
    if 0 <= start < end:
        parsed = _loads(text[start : end + 1])
        if isinstance(parsed, list):
            return parsed

    return None


def extract_largest_json(text: str | None) -> dict | None:
    """
    균형 잡힌 중괄호 블록을 모두 스캔하여 파싱 가능한 가장 큰 객체를 반환합니다.

    설명문 사이에 JSON 블록이 여러 개 섞여 있을 때 사용합니다.
    """
    if not text:
        return None

    best: dict | None = None
    best_len = 0
    depth = 0
    start = -1
    in_string = False
    escaped = False

    for i, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"' and depth > 0:
            in_string = True
        elif ch == "{":
            if depth == 0:
                start = i
            depth += 1
        elif ch == "}" and depth > 0:
            depth -= 1
            if depth == 0 and start >= 0:
                candidate = text[start : i + 1]
                if len(candidate) > best_len:
                    parsed = _loads(candidate)
                    if isinstance(parsed, dict):
                        best, best_len = parsed, len(candidate)
                start = -1

    return best


def parse_response(raw: str | None) -> Any | None:
    """
    LLM 응답 원문에서 JSON 값을 복구합니다.

    Args:
        raw: LLM 응답 원문

    Returns:
        파싱된 dict/list 또는 None (복구 불가)
    """
    unfenced = strip_fence(raw)
    parsed = try_parse(unfenced)
    if parsed is not None:
        return parsed
    return extract_largest_json(unfenced)
