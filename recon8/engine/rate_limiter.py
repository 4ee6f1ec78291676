"""
Rate limiters decide how long a failed work item waits before it is retried
"""

# Standard
from datetime import timedelta
from typing import Any, Dict, Optional
import threading

# First Party
import alog

# Local
from .. import config
from ..utils import parse_time_delta

log = alog.use_channel("RTLMT")


class ItemExponentialFailureRateLimiter:
    """Per item exponential backoff: base_delay * 2^failures, capped at
    max_delay. Items are never given up on. Once the cap is reached every retry
    waits max_delay until forget() is called.
    """

    def __init__(
        self,
        base_delay: Optional[timedelta] = None,
        max_delay: Optional[timedelta] = None,
    ):
        """
        Args:
            base_delay:  Optional[timedelta]
                Delay for the first retry. Defaults to workqueue.base_delay
            max_delay:  Optional[timedelta]
                Upper bound for any delay. Defaults to workqueue.max_delay
        """
        if base_delay is None:
            base_delay = parse_time_delta(config.workqueue.base_delay)
        if max_delay is None:
            max_delay = parse_time_delta(config.workqueue.max_delay)
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._failures: Dict[Any, int] = {}
        self._lock = threading.Lock()

    def when(self, item: Any) -> timedelta:
        """Get the delay for the next retry of item and record the failure"""
        with self._lock:
            failures = self._failures.get(item, 0)
            self._failures[item] = failures + 1

        if not self.base_delay:
            return self.base_delay

        # Compare as a ratio so large failure counts never overflow timedelta
        if failures >= 64 or 2**failures > self.max_delay / self.base_delay:
            return self.max_delay
        return self.base_delay * 2**failures

    def num_requeues(self, item: Any) -> int:
        """Number of failures recorded for item"""
        with self._lock:
            return self._failures.get(item, 0)

    def forget(self, item: Any):
        """Clear the failure history of item"""
        with self._lock:
            if self._failures.pop(item, None) is not None:
                log.debug3("Forgot failures for %s", item)
