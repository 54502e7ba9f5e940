"""Rate limit coordinator.

One admission queue for every outbound metadata request in the process.
Requests are dispatched FIFO by a single loop that keeps a global floor
between dispatches plus a per-service interval, and never has more than
max_concurrent requests running at once.
"""

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Deque, Dict, Optional, Set, Tuple

from ..errors import QueueCancelledError

logger = logging.getLogger(__name__)

MIN_GLOBAL_INTERVAL = 0.1

# Seconds between requests to the same service
DEFAULT_SERVICE_INTERVALS: Dict[str, float] = {
    'igdb': 0.25,
    'steamgriddb': 0.25,
    'rawg': 0.25,
    'steam': 0.5,
    'search': 0.1,
    'artwork': 0.1,
    'description': 0.1,
}

DEFAULT_MAX_CONCURRENT = 2
DISPATCH_HISTORY_SIZE = 100


@dataclass
class QueuedRequest:
    service: str
    execute: Callable[[], Awaitable[Any]]
    future: asyncio.Future


class RateLimitCoordinator:
    """Process-wide throttle shared by every metadata provider"""

    def __init__(self,
                 service_intervals: Optional[Dict[str, float]] = None,
                 global_interval: float = MIN_GLOBAL_INTERVAL,
                 max_concurrent: int = DEFAULT_MAX_CONCURRENT,
                 clock: Callable[[], float] = time.monotonic):
        self.service_intervals = dict(DEFAULT_SERVICE_INTERVALS)
        if service_intervals:
            self.service_intervals.update(service_intervals)
        self.global_interval = global_interval
        self.max_concurrent = max(1, max_concurrent)
        self._clock = clock

        self._queue: Deque[QueuedRequest] = deque()
        self._last_dispatch: Optional[float] = None
        self._last_service_dispatch: Dict[str, float] = {}
        self._history: Deque[Tuple[str, float]] = deque(maxlen=DISPATCH_HISTORY_SIZE)
        self._slots: Optional[asyncio.Semaphore] = None
        self._in_flight: Set[asyncio.Task] = set()
        self._processing = False
        self._task: Optional[asyncio.Task] = None

    @property
    def is_processing(self) -> bool:
        return self._processing

    @property
    def queue_length(self) -> int:
        return len(self._queue)

    def get_interval(self, service: str) -> float:
        return max(self.service_intervals.get(service, self.global_interval), self.global_interval)

    async def queue_request(self, service: str, execute: Callable[[], Awaitable[Any]]) -> Any:
        """
        Queue a request and wait for its result.

        Args:
            service: Service tag used for the per-service interval.
            execute: Zero-argument coroutine function performing the call.

        Returns:
            Whatever execute() returns. Exceptions raised by execute()
            propagate to the caller; QueueCancelledError is raised when the
            queue is cleared before dispatch.
        """
        future = asyncio.get_running_loop().create_future()
        self._queue.append(QueuedRequest(service=service, execute=execute, future=future))
        self.start_processing()
        return await future

    def start_processing(self) -> None:
        """Start the dispatch loop unless it is already running."""
        if self._processing:
            return
        self._processing = True
        self._task = asyncio.get_running_loop().create_task(self._process_queue())

    def _wait_time(self, service: str) -> float:
        now = self._clock()
        wait = 0.0
        if self._last_dispatch is not None:
            wait = self._last_dispatch + self.global_interval - now
        last_service = self._last_service_dispatch.get(service)
        if last_service is not None:
            wait = max(wait, last_service + self.get_interval(service) - now)
        return max(0.0, wait)

    async def _process_queue(self) -> None:
        if self._slots is None:
            self._slots = asyncio.Semaphore(self.max_concurrent)
        try:
            while self._queue:
                await self._slots.acquire()
                if not self._queue:
                    self._slots.release()
                    break

                request = self._queue[0]
                wait = self._wait_time(request.service)
                while wait > 0:
                    await asyncio.sleep(wait)
                    wait = self._wait_time(request.service)

                if not self._queue or self._queue[0] is not request:
                    # cleared while we slept
                    self._slots.release()
                    continue
                self._queue.popleft()

                if request.future.done():
                    # caller went away
                    self._slots.release()
                    continue

                now = self._clock()
                self._last_dispatch = now
                self._last_service_dispatch[request.service] = now
                self._history.append((request.service, now))

                task = asyncio.get_running_loop().create_task(self._execute(request))
                self._in_flight.add(task)
                task.add_done_callback(self._in_flight.discard)
        finally:
            self._processing = False

    async def _execute(self, request: QueuedRequest) -> None:
        try:
            result = await request.execute()
        except asyncio.CancelledError:
            request.future.cancel()
            raise
        except Exception as e:
            if not request.future.done():
                request.future.set_exception(e)
        else:
            if not request.future.done():
                request.future.set_result(result)
        finally:
            self._slots.release()

    def clear_queue(self) -> int:
        """
        Reject every request that has not been dispatched yet.

        In-flight requests keep running.

        Returns:
            Number of requests cancelled.
        """
        cancelled = 0
        while self._queue:
            request = self._queue.popleft()
            if not request.future.done():
                request.future.set_exception(QueueCancelledError(f"Request to {request.service} was cancelled"))
                cancelled += 1
        if cancelled:
            logger.info(f"[RateLimit] Cleared {cancelled} queued requests")
        return cancelled

    def get_stats(self) -> Dict[str, Any]:
        return {
            'queue_length': len(self._queue),
            'processing': self._processing,
            'in_flight': len(self._in_flight),
            'last_request_time': self._last_dispatch,
            'service_last_request': dict(self._last_service_dispatch),
            'recent_dispatches': list(self._history),
        }

    async def close(self) -> None:
        """Cancel queued work and wait for in-flight requests to finish."""
        self.clear_queue()
        if self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)
        if self._task and not self._task.done():
            # queue is empty, the loop may only be sleeping out an interval
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._processing = False
