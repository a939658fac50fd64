"""
Narration Text Utilities

TTS 분량 계산에 쓰이는 글자수 측정과 레퍼런스 발췌 유틸리티입니다.
"""

import math
import re
import unicodedata

# 제로폭 공백/결합자 및 BOM
_ZERO_WIDTH_RE = re.compile(r"[\u200B-\u200D\uFEFF]")


def count_chars(text: str | None) -> int:
    """
    내레이션 글자수를 측정합니다.

    NFC 정규화 후 제로폭 문자를 제거하고 코드포인트 수를 셉니다.
    모델이 보고한 글자수 대신 항상 이 값을 사용합니다.

    Args:
        text: 측정할 텍스트

    Returns:
        글자수 (공백 포함)
    """
    if not text:
        return 0
    normalized = unicodedata.normalize("NFC", str(text))
    return len(_ZERO_WIDTH_RE.sub("", normalized))


def round_half_up(value: float) -> int:
    """0.5를 올림하는 반올림 (파이썬 기본 round는 은행가 반올림)"""
    return int(math.floor(value + 0.5))


def safe_excerpt(text: str | None, limit: int = 1200) -> str:
    """
    긴 레퍼런스를 앞부분 위주로 잘라냅니다.

    limit을 넘으면 앞 70%와 뒤 20%만 남기고 가운데를 생략합니다.
    """
    if not text:
        return ""
    text = str(text).strip()
    if len(text) <= limit:
        return text
    head = text[: int(limit * 0.7)]
    tail = text[-int(limit * 0.2):]
    return f"{head}\n...\n{tail}"
