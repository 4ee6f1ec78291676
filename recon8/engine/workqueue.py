"""
Work queues buffer the identities waiting to be synced. They follow the
semantics of the kubernetes client-go workqueue package:

* An item is held at most once while it waits. Adding it again is a no-op.
* An item being processed is never handed to a second worker. If it is added
  while in flight it is parked and re-queued when the worker calls done().
* No ordering is guaranteed between distinct items.
"""

# Standard
from collections import deque
from datetime import datetime, timedelta
from typing import Any, Deque, Dict, Optional, Set, Tuple
import threading

# First Party
import alog

# Local
from .rate_limiter import ItemExponentialFailureRateLimiter
from .threads.timer import TimerEvent, TimerThread

log = alog.use_channel("WRKQ")


class WorkQueue:
    """Deduplicating queue with in-flight tracking"""

    def __init__(self, name: str = ""):
        self.name = name
        self._queue: Deque[Any] = deque()
        # Items that need processing
        self._dirty: Set[Any] = set()
        # Items currently held by a worker
        self._processing: Set[Any] = set()
        self._cond = threading.Condition()
        self._shutting_down = False

    def add(self, item: Any):
        """Mark item as needing processing"""
        with self._cond:
            if self._shutting_down:
                log.debug3("[%s] Dropping %s added after shutdown", self.name, item)
                return
            if item in self._dirty:
                log.debug4("[%s] %s already queued", self.name, item)
                return

            self._dirty.add(item)
            if item in self._processing:
                log.debug4("[%s] %s in flight, deferring until done", self.name, item)
                return

            self._queue.append(item)
            self._cond.notify()

    def get(self) -> Tuple[Any, bool]:
        """Block until an item is available

        Returns:
            item:  Any
                The next item, None on shutdown
            shutdown:  bool
                True if the queue has been shut down and the caller should exit
        """
        with self._cond:
            while not self._queue and not self._shutting_down:
                self._cond.wait()
            if self._shutting_down:
                return None, True

            item = self._queue.popleft()
            self._processing.add(item)
            self._dirty.discard(item)
            return item, False

    def done(self, item: Any):
        """Mark item as done processing. If it was added again while in
        flight, it is queued again.
        """
        with self._cond:
            self._processing.discard(item)
            if item in self._dirty and not self._shutting_down:
                self._queue.append(item)
                self._cond.notify()

    def shut_down(self):
        """Stop accepting items and wake every blocked get()"""
        with self._cond:
            log.debug("[%s] Shutting down work queue", self.name)
            self._shutting_down = True
            self._cond.notify_all()

    def shutting_down(self) -> bool:
        with self._cond:
            return self._shutting_down

    def __len__(self):
        with self._cond:
            return len(self._queue)


class DelayingQueue(WorkQueue):
    """WorkQueue which can hold items back for a delay before adding them"""

    def __init__(self, name: str = "", timer_thread: Optional[TimerThread] = None):
        """
        Args:
            name:  str
                Name used in log lines
            timer_thread:  Optional[TimerThread]
                Shared timer to schedule delayed adds on. If not given the
                queue owns a private timer which stops with the queue.
        """
        super().__init__(name)
        self._owns_timer = timer_thread is None
        self._timer = timer_thread or TimerThread(name=f"{name or 'workqueue'}_timer")
        self._timer.start_thread()
        self._waiting: Dict[Any, TimerEvent] = {}
        self._waiting_lock = threading.Lock()

    def add_after(self, item: Any, delay: timedelta):
        """Add item once the delay has passed. If item is already waiting, the
        earlier of the two deadlines wins.
        """
        if self.shutting_down():
            return
        if delay <= timedelta(0):
            self.add(item)
            return

        deadline = datetime.now() + delay
        with self._waiting_lock:
            existing = self._waiting.get(item)
            if existing is not None and not existing.stale:
                if existing.time <= deadline:
                    log.debug4("[%s] %s already waiting for an earlier time", self.name, item)
                    return
                existing.cancel()

            log.debug3("[%s] Adding %s after %s", self.name, item, delay)
            event = self._timer.put_event(deadline, self._add_waiting, item)
            if event is not None:
                self._waiting[item] = event

    def shut_down(self):
        super().shut_down()
        with self._waiting_lock:
            for event in self._waiting.values():
                event.cancel()
            self._waiting.clear()
        if self._owns_timer:
            self._timer.stop_thread()

    def _add_waiting(self, item: Any):
        with self._waiting_lock:
            self._waiting.pop(item, None)
        self.add(item)


class RateLimitingQueue(DelayingQueue):
    """DelayingQueue which delays retries of an item based on how many times it
    has failed
    """

    def __init__(
        self,
        name: str = "",
        rate_limiter: Optional[ItemExponentialFailureRateLimiter] = None,
        timer_thread: Optional[TimerThread] = None,
    ):
        super().__init__(name, timer_thread)
        self.rate_limiter = rate_limiter or ItemExponentialFailureRateLimiter()

    def add_rate_limited(self, item: Any):
        """Add item after the rate limiter says it's ok"""
        self.add_after(item, self.rate_limiter.when(item))

    def forget(self, item: Any):
        """Stop tracking failures for item. Called after a successful sync"""
        self.rate_limiter.forget(item)

    def num_requeues(self, item: Any) -> int:
        return self.rate_limiter.num_requeues(item)
