"""
Bounded worker pool with fixed-size windows and all-settled joins.
"""

from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Callable, Generic, List, Optional, Sequence, TypeVar

from loguru import logger

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class Settled(Generic[T, R]):
    """Outcome of one task: its input plus a value or an error"""
    item: T
    value: Optional[R] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def run_in_windows(
    items: Sequence[T],
    fn: Callable[[T], R],
    window_size: int = 3,
    thread_name_prefix: str = "worker",
) -> List[Settled[T, R]]:
    """
    Run fn over items, window_size at a time.

    All tasks in a window run concurrently; the next window starts only after
    every task in the current one has finished. One task's exception never
    cancels its siblings. Results are returned in input order.
    """
    if window_size < 1:
        raise ValueError("window_size must be at least 1")

    settled: List[Settled[T, R]] = []
    if not items:
        return settled

    with ThreadPoolExecutor(max_workers=window_size, thread_name_prefix=thread_name_prefix) as executor:
        for start in range(0, len(items), window_size):
            window = items[start:start + window_size]
            futures = [executor.submit(fn, item) for item in window]
            wait(futures)

            for item, future in zip(window, futures):
                error = future.exception()
                if error is not None:
                    settled.append(Settled(item=item, error=error))
                else:
                    settled.append(Settled(item=item, value=future.result()))

            logger.debug(
                f"Window {start // window_size + 1} settled: "
                f"{sum(1 for s in settled[start:] if s.ok)}/{len(window)} succeeded"
            )

    return settled
