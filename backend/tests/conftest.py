from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Callable

import pytest

from app.services.script.gateway import LLMGateway
from app.services.script.llm import ResponseFormat


@dataclass
class Call:
    system_prompt: str
    user_prompt: str
    model: str
    response_format: ResponseFormat
    max_tokens: int


def kind_of(user_prompt: str) -> str:
    """Classify a prompt by the marker its template carries."""
    if "[직전 응답]" in user_prompt:
        return "format_only"
    if "[INPUT JSON]" in user_prompt:
        return "repair"
    if "[원문]" in user_prompt:
        return "rewrite"
    if "아웃라인" in user_prompt:
        return "outline"
    if "번째 장면의 내레이션" in user_prompt:
        return "expand"
    if "전체 글자수 목표" in user_prompt:
        return "script"
    return "custom"


class FakeClient:
    """CompletionClient that answers from a responder callable and records every call."""

    provider = "fake"
    supported_formats = (ResponseFormat.JSON_OBJECT, ResponseFormat.TEXT)

    def __init__(self, responder: Callable[[Call], Any]) -> None:
        self.responder = responder
        self.calls: list[Call] = []

    async def complete(
        self,
        system_prompt,
        user_prompt,
        *,
        model,
        max_tokens,
        temperature,
        response_format,
        json_schema=None,
    ) -> str:
        call = Call(system_prompt, user_prompt, model, response_format, max_tokens)
        self.calls.append(call)
        result = self.responder(call)
        if isinstance(result, Exception):
            raise result
        if isinstance(result, (dict, list)):
            return json.dumps(result, ensure_ascii=False)
        return result

    def kinds(self) -> list[str]:
        return [kind_of(call.user_prompt) for call in self.calls]


class MemorySink:
    def __init__(self) -> None:
        self.dumps: list[tuple[str, Any]] = []

    def dump(self, label: str, raw: Any) -> str | None:
        self.dumps.append((label, raw))
        return f"memory://{label}/{len(self.dumps)}"


class BrokenSink:
    def dump(self, label: str, raw: Any) -> str | None:
        raise RuntimeError("disk full")


@pytest.fixture
def sink() -> MemorySink:
    return MemorySink()


@pytest.fixture
def make_gateway(sink):
    def _make(client: FakeClient, **kwargs) -> LLMGateway:
        kwargs.setdefault("diagnostics", sink)
        kwargs.setdefault("max_retries", 0)
        kwargs.setdefault("retry_base_delay", 0)
        kwargs.setdefault("fallback_model", "")
        return LLMGateway(client, model="fake-model", **kwargs)

    return _make
