import asyncio

from app.services.script.batching import run_in_batches


def test_results_keep_input_order():
    async def worker(index, item):
        await asyncio.sleep(0.01 * (5 - index))
        return item * 10

    results = asyncio.run(run_in_batches([1, 2, 3, 4, 5], 2, worker))
    assert results == [10, 20, 30, 40, 50]


def test_failures_stay_in_their_slots():
    async def worker(index, item):
        if index == 1:
            raise ValueError("boom")
        return item

    results = asyncio.run(run_in_batches(["a", "b", "c"], 3, worker))
    assert results[0] == "a"
    assert isinstance(results[1], ValueError)
    assert results[2] == "c"


def test_batches_limit_concurrency():
    running = 0
    peak = 0
    started = []

    async def worker(index, item):
        nonlocal running, peak
        running += 1
        peak = max(peak, running)
        started.append(index)
        await asyncio.sleep(0.01)
        running -= 1
        return index

    results = asyncio.run(run_in_batches(list(range(10)), 4, worker))
    assert results == list(range(10))
    assert peak == 4
    # a batch finishes before the next one starts
    assert sorted(started[:4]) == [0, 1, 2, 3]
    assert sorted(started[4:8]) == [4, 5, 6, 7]


def test_empty_input():
    async def worker(index, item):
        return item

    assert asyncio.run(run_in_batches([], 3, worker)) == []
