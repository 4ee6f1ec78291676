"""
The TimerThread is a helper class used to run scheduled events
"""

# Standard
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from heapq import heappop, heappush
from typing import Any, Callable, Dict, List, Optional, Union
import threading

# First Party
import alog

# Local
from .base import ThreadBase

log = alog.use_channel("TMRTHRD")

# Shortest wait between checks of the heap
MIN_SLEEP_TIME = 0.001


@dataclass(order=True)
class TimerEvent:
    """Class for keeping track of an item in the timer queue. Time is the
    only comparable field to support the TimerThreads priority queue"""

    time: datetime
    action: Callable = field(compare=False)
    args: tuple = field(default_factory=tuple, compare=False)
    kwargs: dict = field(default_factory=dict, compare=False)
    stale: bool = field(default=False, compare=False)

    def cancel(self):
        """Cancel this event. It will not be executed when read from the
        queue"""
        self.stale = True


class TimerThread(ThreadBase):
    """The TimerThread class is a helper class to run scheduled actions. This is very similar
    to threading.Timer stdlib class except that it uses one shared thread for all events
    instead of a thread per event."""

    def __init__(self, name: Optional[str] = None):
        """Initialize a priorityqueue like object and a synchronization object"""
        super().__init__(name=name or "timer_thread", daemon=True)

        # Use a heap queue instead of a queue.PriorityQueue as we're already handling
        # synchronization with the notify condition
        self.timer_heap: List[TimerEvent] = []
        self.notify_condition = threading.Condition()

    def run(self):
        """The TimerThread's control loop sleeps until the next schedule
        event and executes all pending actions."""
        while True:
            # Wait until the next event or a new event is pushed
            with self.notify_condition:
                if self.should_stop():
                    return
                time_to_sleep = self._get_time_to_sleep()
                if time_to_sleep:
                    log.debug4(
                        "Timer waiting %ss until next scheduled event", time_to_sleep
                    )
                else:
                    log.debug4("Timer waiting until event queued")
                self.notify_condition.wait(timeout=time_to_sleep)

            if self.should_stop():
                return

            for event in self._get_all_current_events():
                log.debug3("Timer executing action for event: %s", event)
                try:
                    event.action(*event.args, **event.kwargs)
                except Exception as err:  # pylint: disable=broad-exception-caught
                    log.error("Timer action %s failed: %s", event.action, err, exc_info=True)

    ## Class Interface ###################################################

    def stop_thread(self):
        """Override stop_thread to wake the control loop"""
        super().stop_thread()
        with self.notify_condition:
            log.debug("Notifying TimerThread of shutdown")
            self.notify_condition.notify_all()

    ## Public Interface ###################################################

    def put_event(
        self,
        time: Union[datetime, timedelta],
        action: Callable,
        *args: Any,
        **kwargs: Dict,
    ) -> Optional[TimerEvent]:
        """Push an event to the timer

        Args:
            time: Union[datetime, timedelta]
                The datetime to execute the event at, or a delay from now
            action: Callable
                The action to execute
            *args: Any
                Args to pass to the action
            **kwargs: Dict
                Kwargs to pass to the action

        Returns:
            event: Optional[TimerEvent]
                TimerEvent describing the event and can be cancelled
        """
        # Don't allow pushing to a stopped thread
        if self.should_stop():
            return None

        if isinstance(time, timedelta):
            time = datetime.now() + time

        event = TimerEvent(time=time, action=action, args=args, kwargs=kwargs)
        with self.notify_condition:
            heappush(self.timer_heap, event)
            self.notify_condition.notify_all()
        return event

    ## Time Functions  ###################################################

    def _get_time_to_sleep(self) -> Optional[float]:
        """Calculate the time to sleep based on the current queue

        Returns:
            time_to_wait: Optional[float]
               The time to wait if there's an object in the queue"""
        with self.notify_condition:
            if self.timer_heap:
                time_to_sleep = (self.timer_heap[0].time - datetime.now()).total_seconds()
                return max(time_to_sleep, MIN_SLEEP_TIME)
            return None

    ## Queue Functions  ###################################################

    def _get_all_current_events(self) -> List[TimerEvent]:
        """Pop every event whose time has passed, skipping cancelled ones"""
        event_list = []
        now = datetime.now()
        with self.notify_condition:
            while self.timer_heap and self.timer_heap[0].time <= now:
                event = heappop(self.timer_heap)
                if event.stale:
                    log.debug4("Skipping timer event %s", event)
                    continue
                event_list.append(event)
        return event_list
