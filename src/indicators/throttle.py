import asyncio
import time
from collections.abc import Awaitable, Iterable
from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar


ItemT = TypeVar("ItemT")
ResultT = TypeVar("ResultT")


@dataclass(frozen=True)
class BatchItemResult(Generic[ItemT, ResultT]):
    item: ItemT
    value: Optional[ResultT] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class Throttle:
    """Caps concurrent calls and spaces call starts by ``min_interval_seconds``."""

    def __init__(
        self,
        max_concurrency: int = 1,
        min_interval_seconds: float = 0.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        now: Callable[[], float] = time.monotonic,
    ) -> None:
        self._semaphore = asyncio.Semaphore(max(1, int(max_concurrency)))
        self._min_interval_seconds = max(0.0, float(min_interval_seconds))
        self._lock = asyncio.Lock()
        self._sleep = sleep
        self._now = now
        self._last_start: Optional[float] = None

    async def __aenter__(self) -> "Throttle":
        await self._semaphore.acquire()
        if self._min_interval_seconds > 0:
            async with self._lock:
                if self._last_start is not None:
                    elapsed = self._now() - self._last_start
                    if elapsed < self._min_interval_seconds:
                        await self._sleep(self._min_interval_seconds - elapsed)
                self._last_start = self._now()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self._semaphore.release()


async def gather_throttled(
    items: Iterable[ItemT],
    call: Callable[[ItemT], Awaitable[ResultT]],
    max_concurrency: int = 1,
    min_interval_seconds: float = 0.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> list[BatchItemResult[ItemT, ResultT]]:
    """Run ``call`` for every item; one item's failure never aborts the others.

    Results keep the input order.
    """
    throttle = Throttle(max_concurrency, min_interval_seconds, sleep=sleep)

    async def _run(item: ItemT) -> BatchItemResult[ItemT, ResultT]:
        async with throttle:
            try:
                return BatchItemResult(item=item, value=await call(item))
            except Exception as error:
                return BatchItemResult(item=item, error=error)

    return list(await asyncio.gather(*(_run(item) for item in items)))
