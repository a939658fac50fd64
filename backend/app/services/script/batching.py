"""
Batch Runner

LLM 호출을 고정 크기 배치로 나눠 동시에 실행합니다.
배치 하나가 모두 끝나야 다음 배치를 시작하며, 결과는 입력 순서의 슬롯에 기록됩니다.
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

from loguru import logger

T = TypeVar("T")
R = TypeVar("R")


async def run_in_batches(
    items: Sequence[T],
    batch_size: int,
    worker: Callable[[int, T], Awaitable[R]],
) -> list[R | BaseException]:
    """
    items를 batch_size 단위로 나눠 worker(index, item)를 동시에 실행합니다.

    Args:
        items: 처리할 항목
        batch_size: 배치 크기 (동시 실행 수)
        worker: (인덱스, 항목)을 받는 코루틴 함수

    Returns:
        입력 순서와 같은 결과 목록. 실패한 슬롯에는 예외 객체가 들어갑니다.
    """
    size = max(1, batch_size)
    results: list[R | BaseException | None] = [None] * len(items)

    for start in range(0, len(items), size):
        indices = range(start, min(start + size, len(items)))
        outcomes = await asyncio.gather(
            *(worker(i, items[i]) for i in indices),
            return_exceptions=True,
        )
        for i, outcome in zip(indices, outcomes):
            results[i] = outcome

        failed = sum(isinstance(outcome, BaseException) for outcome in outcomes)
        logger.debug(
            f"배치 완료: {start + 1}~{indices[-1] + 1}/{len(items)}"
            + (f", 실패 {failed}건" if failed else "")
        )

    return results
