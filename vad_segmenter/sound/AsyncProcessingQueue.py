"""Single-consumer asyncio queue that serializes frame processing.

Producers call enqueue() from the event loop thread and never block; one
consumer task awaits the handler for each item in arrival order, so at most
one item is in flight regardless of how long individual handler calls take.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


class AsyncProcessingQueue(Generic[T]):
    """Serializes async handling of queued items.

    The consumer task is created lazily on the first enqueue (which therefore
    must happen while an event loop is running) and recreated after close().

    Handler exceptions are logged, counted and passed to on_error; the
    consumer continues with the next item. There is no backpressure: callers
    can watch ``depth`` to throttle upstream.

    close() hands every item it drops (queued or in flight) to on_discard and
    marks it done, so pending drain() calls return.

    Args:
        handler: Coroutine function processing one item
        on_error: Optional callback receiving (item, exception) for failed items
        on_discard: Optional callback receiving items dropped by close()
        name: Name used for the consumer task and log messages
    """

    def __init__(
        self,
        handler: Callable[[T], Awaitable[Any]],
        on_error: Optional[Callable[[T, Exception], None]] = None,
        on_discard: Optional[Callable[[T], None]] = None,
        name: str = "AsyncProcessingQueue",
    ) -> None:
        self._handler = handler
        self._on_error = on_error
        self._on_discard = on_discard
        self._name = name
        self._queue: asyncio.Queue[T] | None = None
        self._consumer_task: asyncio.Task[None] | None = None
        self._in_flight: int = 0
        self.processed_items: int = 0
        self.failed_items: int = 0

    # ------------------------------------------------------------------
    # Producer side
    # ------------------------------------------------------------------

    def enqueue(self, item: T) -> None:
        """Queue item for processing and return immediately.

        Raises:
            RuntimeError: If no event loop is running in this thread
        """
        self._ensure_consumer()
        self._queue.put_nowait(item)

    @property
    def depth(self) -> int:
        """Items waiting plus the item currently being handled."""
        waiting = self._queue.qsize() if self._queue is not None else 0
        return waiting + self._in_flight

    async def drain(self) -> None:
        """Wait until every item enqueued so far has been handled."""
        if self._queue is None:
            return
        await self._queue.join()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Cancel the consumer task and discard items still queued.

        The in-flight item and every queued item go to on_discard; all are
        marked done so drain() waiters wake up.
        """
        task = self._consumer_task
        queue = self._queue
        self._consumer_task = None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if queue is not None:
            discarded = 0
            while True:
                try:
                    item = queue.get_nowait()
                except asyncio.QueueEmpty:
                    break
                discarded += 1
                self._discard(item)
                queue.task_done()
            if discarded:
                logger.info("%s: discarded %d queued items on close", self._name, discarded)
        self._queue = None
        self._in_flight = 0

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _ensure_consumer(self) -> None:
        loop = asyncio.get_running_loop()
        if self._consumer_task is not None and self._consumer_task.get_loop() is not loop:
            # previous loop is gone; its queue cannot be awaited from this one
            stale = self.depth
            if stale:
                logger.warning("%s: event loop changed, discarding %d items queued on the old loop",
                               self._name, stale)
            self._consumer_task = None
            self._queue = None
            self._in_flight = 0
        if self._queue is None:
            self._queue = asyncio.Queue()
        if self._consumer_task is None or self._consumer_task.done():
            self._consumer_task = loop.create_task(self._consume(), name=self._name)

    async def _consume(self) -> None:
        """Consumer task: handle items one at a time in arrival order.

        Algorithm:
            1. await queue.get() - suspends until an item is available.
            2. await handler(item) - the only other suspension point.
            3. On handler error, log, count, notify on_error and continue.
               On cancellation, pass the item to on_discard and stop.
            4. task_done() so drain() can observe completion.
        """
        queue = self._queue
        while True:
            item = await queue.get()
            self._in_flight = 1
            try:
                await self._handler(item)
                self.processed_items += 1
            except asyncio.CancelledError:
                self._discard(item)
                raise
            except Exception as e:
                self.failed_items += 1
                logger.warning("%s: handler failed: %s", self._name, e)
                if self._on_error is not None:
                    try:
                        self._on_error(item, e)
                    except Exception:
                        logger.exception("%s: on_error callback failed", self._name)
            finally:
                self._in_flight = 0
                queue.task_done()

    def _discard(self, item: T) -> None:
        if self._on_discard is None:
            return
        try:
            self._on_discard(item)
        except Exception:
            logger.exception("%s: on_discard callback failed", self._name)
