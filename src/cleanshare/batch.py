"""Bounded concurrent processing of many documents.

Documents are fanned out on the running event loop behind an
``asyncio.Semaphore``; at most ``limit`` of them are in flight at once. A
failure in one document is captured in its result and never cancels the
others.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, List, Optional, Sequence, TypeVar

from .logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")

DEFAULT_LIMIT = 3


@dataclass
class BatchItemResult(Generic[R]):
    index: int
    item: Any
    result: Optional[R] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BatchReport(Generic[R]):
    results: List[BatchItemResult[R]] = field(default_factory=list)
    max_in_flight: int = 0

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def failed(self) -> int:
        return len(self.results) - self.succeeded


async def run_batch(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[R]],
    limit: int = DEFAULT_LIMIT,
    on_done: Optional[Callable[[BatchItemResult[R]], None]] = None,
) -> BatchReport[R]:
    """Run ``worker`` over ``items`` with at most ``limit`` concurrent calls.

    Results keep the input order. ``on_done`` is called as each item
    finishes, e.g. to advance a progress bar.
    """
    semaphore = asyncio.Semaphore(max(1, int(limit)))
    report: BatchReport[R] = BatchReport()
    in_flight = 0

    async def _one(index: int, item: T) -> BatchItemResult[R]:
        nonlocal in_flight
        async with semaphore:
            in_flight += 1
            report.max_in_flight = max(report.max_in_flight, in_flight)
            try:
                out = BatchItemResult(index=index, item=item, result=await worker(item))
            except Exception as exc:  # one document must not sink the batch
                logger.warning(
                    "Batch item failed",
                    extra={"fields": {"index": index, "item": str(item), "error": str(exc)}},
                )
                out = BatchItemResult(index=index, item=item, error=str(exc))
            finally:
                in_flight -= 1
        if on_done is not None:
            on_done(out)
        return out

    report.results = list(await asyncio.gather(*(_one(i, it) for i, it in enumerate(items))))
    logger.info(
        "Batch finished",
        extra={
            "fields": {
                "items": len(items),
                "failed": report.failed,
                "max_in_flight": report.max_in_flight,
            }
        },
    )
    return report


__all__ = ["BatchItemResult", "BatchReport", "run_batch", "DEFAULT_LIMIT"]
