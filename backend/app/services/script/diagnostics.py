"""
Diagnostics Sink

파싱/검증에 실패한 LLM 원본 응답을 사후 분석용으로 보관합니다.

저장 경로:
    {SCRIPT_DIAGNOSTICS_DIR}/llm-{YYYYmmdd-HHMMSS}-{label}.txt

덤프 실패는 원래 에러를 가리지 않도록 로그만 남기고 None을 반환합니다.
"""

import json
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from loguru import logger

from app.core.config import settings

_LABEL_RE = re.compile(r"[^A-Za-z0-9_.-]+")


@runtime_checkable
class DiagnosticsSink(Protocol):
    """진단 덤프 포트 (인터페이스)"""

    def dump(self, label: str, raw: Any) -> str | None:
        """원본 데이터를 저장하고 참조(경로)를 반환합니다. 실패 시 None."""
        ...


class LocalDiagnosticsSink:
    """로컬 파일시스템 진단 덤프"""

    def __init__(self, base_dir: Path | str | None = None):
        self.base_dir = Path(base_dir or settings.SCRIPT_DIAGNOSTICS_DIR)

    def dump(self, label: str, raw: Any) -> str | None:
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
            timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
            safe_label = _LABEL_RE.sub("-", label).strip("-") or "dump"
            file_path = self.base_dir / f"llm-{timestamp}-{safe_label}.txt"

            if isinstance(raw, str):
                body = raw
            else:
                body = json.dumps(raw, ensure_ascii=False, indent=2, default=str)
            file_path.write_text(body, encoding="utf-8")

            logger.debug(f"진단 덤프 저장됨: {file_path}")
            return str(file_path)
        except Exception as e:
            logger.error(f"진단 덤프 저장 실패 ({label}): {e}")
            return None


# 싱글톤 인스턴스 (지연 초기화)
_diagnostics_sink: DiagnosticsSink | None = None


def get_diagnostics_sink() -> DiagnosticsSink:
    """DiagnosticsSink 싱글톤 인스턴스를 가져옵니다."""
    global _diagnostics_sink
    if _diagnostics_sink is None:
        _diagnostics_sink = LocalDiagnosticsSink()
    return _diagnostics_sink


def safe_dump(sink: DiagnosticsSink | None, label: str, raw: Any) -> str | None:
    """sink 구현이 예외를 던져도 None으로 흡수합니다."""
    if sink is None:
        return None
    try:
        return sink.dump(label, raw)
    except Exception as e:
        logger.error(f"진단 덤프 실패 ({label}): {e}")
        return None
