"""
Batch signing helpers.

Both helpers report one :class:`BatchResult` per item; a failing item never
aborts the rest of the batch.
"""
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Callable, Generic, Iterable, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class BatchResult(Generic[R]):
    """Outcome of one batch item: a value or the exception it raised."""
    index: int
    item: Any
    value: Optional[R] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _run(index: int, item: T, fn: Callable[[T], R]) -> BatchResult:
    try:
        return BatchResult(index=index, item=item, value=fn(item))
    except Exception as e:
        logger.warning(f"Batch item {index} failed: {e}")
        return BatchResult(index=index, item=item, error=e)


def sign_batch(
    items: Iterable[T],
    fn: Callable[[T], R],
    max_workers: Optional[int] = None,
) -> List[BatchResult]:
    """
    Fan ``fn`` out over ``items`` on a thread pool.

    Results are returned in completion order; use ``BatchResult.index`` to
    map them back to the input.

    Args:
        items: Payloads to sign
        fn: Signing function applied to each payload
        max_workers: Thread pool size (executor default when None)

    Returns:
        One BatchResult per item
    """
    items = list(items)
    if not items:
        return []
    results = []
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = [pool.submit(_run, i, item, fn) for i, item in enumerate(items)]
        for future in as_completed(futures):
            results.append(future.result())
    return results


def sign_sequential(
    items: Iterable[T],
    fn: Callable[[T], R],
    progress: Optional[Callable[[BatchResult, int, int], None]] = None,
) -> List[BatchResult]:
    """
    Apply ``fn`` to ``items`` one at a time.

    ``progress(result, done, total)`` is called after each item, in input
    order.
    """
    items = list(items)
    total = len(items)
    results = []
    for i, item in enumerate(items):
        result = _run(i, item, fn)
        results.append(result)
        if progress is not None:
            progress(result, i + 1, total)
    return results
