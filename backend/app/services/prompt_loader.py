"""
Prompt Loader

대본 생성 프롬프트 템플릿(backend/prompts/{version}/{name}.md)을 로드하고 변수를 대입합니다.

- 변수 대입은 str.format 문법을 따르며, JSON 예시의 중괄호는 {{ }}로 이스케이프합니다.
- 템플릿에 필요한 변수가 빠지면 어떤 템플릿의 어떤 변수인지 담아 KeyError를 발생시킵니다.
"""

from functools import lru_cache
from pathlib import Path
from string import Formatter

from loguru import logger

from app.core.config import settings

PROMPTS_DIR = Path(__file__).parent.parent.parent / "prompts"


class PromptLoader:
    """버전별 프롬프트 템플릿 로더"""

    def __init__(self, base_dir: Path | None = None):
        self.base_dir = base_dir or PROMPTS_DIR

    def path_for(self, version: str, name: str) -> Path:
        return self.base_dir / version / f"{name}.md"

    def available(self, version: str) -> list[str]:
        """해당 버전에 있는 템플릿 이름 목록"""
        version_dir = self.base_dir / version
        if not version_dir.is_dir():
            return []
        return sorted(path.stem for path in version_dir.glob("*.md"))

    def load(self, version: str, name: str) -> str:
        """
        템플릿 원문을 읽습니다 (끝 공백 제거).

        Raises:
            FileNotFoundError: 템플릿 파일이 없을 경우
        """
        file_path = self.path_for(version, name)
        if not file_path.is_file():
            raise FileNotFoundError(
                f"프롬프트 파일을 찾을 수 없습니다: {file_path} "
                f"(사용 가능: {', '.join(self.available(version)) or '없음'})"
            )

        template = file_path.read_text(encoding="utf-8").rstrip()
        logger.debug(f"프롬프트 로드: {version}/{name} ({len(template)}자)")
        return template


@lru_cache(maxsize=32)
def get_prompt(version: str, name: str) -> str:
    return PromptLoader().load(version, name)


def template_fields(template: str) -> set[str]:
    """템플릿이 요구하는 변수 이름"""
    return {field for _, field, _, _ in Formatter().parse(template) if field}


def format_prompt(name: str, version: str | None = None, **kwargs) -> str:
    """
    프롬프트를 로드하고 변수를 대입합니다.

    Args:
        name: 템플릿 이름 (예: "script_policy")
        version: 템플릿 버전 (None이면 settings.PROMPT_VERSION)
        **kwargs: 대입할 변수

    Raises:
        FileNotFoundError: 템플릿이 없을 경우
        KeyError: 필요한 변수가 빠진 경우
    """
    version = version or settings.PROMPT_VERSION
    template = get_prompt(version, name)

    missing = template_fields(template) - kwargs.keys()
    if missing:
        raise KeyError(f"프롬프트 {version}/{name}에 필요한 변수 누락: {sorted(missing)}")
    return template.format(**kwargs)
