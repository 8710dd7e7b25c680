from __future__ import annotations

import asyncio
import contextlib
import inspect
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, TypeVar

T = TypeVar("T")

_Job = Tuple[Callable[[], Any], "asyncio.Future[Any]"]


class LaneQueue:
    """Single-flight FIFO per lane key.

    Jobs submitted under the same key run one at a time in submission order.
    Different keys run independently; ``max_concurrency`` optionally caps how
    many lanes run at once (None means no cap). A lane's worker exits once its
    queue drains and is recreated on the next submit.
    """

    def __init__(self, max_concurrency: Optional[int] = None) -> None:
        self._lanes: Dict[str, asyncio.Queue[_Job]] = {}
        self._workers: Dict[str, asyncio.Task[None]] = {}
        self._state_lock = asyncio.Lock()
        self._global_semaphore: Optional[asyncio.Semaphore] = (
            asyncio.Semaphore(max(1, max_concurrency)) if max_concurrency is not None else None
        )

    async def submit(self, lane_key: str, fn: Callable[[], Awaitable[T] | T]) -> T:
        loop = asyncio.get_running_loop()
        future: asyncio.Future[T] = loop.create_future()

        async with self._state_lock:
            queue = self._lanes.get(lane_key)
            if queue is None:
                queue = asyncio.Queue()
                self._lanes[lane_key] = queue
                self._workers[lane_key] = asyncio.create_task(self._lane_worker(lane_key, queue))
            queue.put_nowait((fn, future))

        return await future

    def active_lanes(self) -> list[str]:
        return list(self._lanes)

    async def _lane_worker(self, lane_key: str, queue: asyncio.Queue[_Job]) -> None:
        while True:
            fn, future = await queue.get()
            try:
                async with self._global_semaphore or contextlib.nullcontext():
                    result = fn()
                    if inspect.isawaitable(result):
                        result = await result
                if not future.cancelled():
                    future.set_result(result)
            except Exception as exc:
                if not future.cancelled():
                    future.set_exception(exc)
            finally:
                queue.task_done()

            async with self._state_lock:
                if queue.empty():
                    self._lanes.pop(lane_key, None)
                    self._workers.pop(lane_key, None)
                    return
