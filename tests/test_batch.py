import asyncio

from cleanshare.batch import run_batch


def test_concurrency_never_exceeds_limit():
    active = 0
    peak = 0

    async def worker(item):
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0.01)
        active -= 1
        return item * 2

    report = asyncio.run(run_batch(list(range(5)), worker, limit=3))
    assert peak <= 3
    assert report.max_in_flight == 3
    assert [r.result for r in report.results] == [0, 2, 4, 6, 8]
    assert report.succeeded == 5


def test_failure_is_isolated_and_order_kept():
    done = []

    async def worker(item):
        await asyncio.sleep(0.01 * (5 - item))
        if item == 2:
            raise ValueError("corrupt input")
        return item

    report = asyncio.run(run_batch(list(range(5)), worker, limit=2, on_done=done.append))
    assert [r.index for r in report.results] == [0, 1, 2, 3, 4]
    assert report.failed == 1
    failed = report.results[2]
    assert not failed.ok
    assert "corrupt input" in failed.error
    assert [r.result for r in report.results if r.ok] == [0, 1, 3, 4]
    assert len(done) == 5


def test_limit_below_one_still_runs():
    async def worker(item):
        return item

    report = asyncio.run(run_batch(["a", "b"], worker, limit=0))
    assert report.max_in_flight == 1
    assert report.succeeded == 2
