"""
The ControllerRunner wires a controller to its informers, its work queue and a
pool of workers
"""

# Standard
from typing import List, Optional

# First Party
import alog

# Local
from .. import config
from .controller import Controller
from .filters import FilterFuncs
from .threads import InformerThread, TimerThread, WorkerThread
from .threads.informer import KeyFunc
from .workqueue import RateLimitingQueue

log = alog.use_channel("RUNNR")


class ControllerRunner:
    """Runs one controller. Watch events from each informer pass through the
    registered filters into a single rate limited queue which a fixed pool of
    WorkerThreads drains.
    """

    def __init__(
        self,
        name: str,
        controller: Controller,
        queue: Optional[RateLimitingQueue] = None,
    ):
        """
        Args:
            name:  str
                Name used for the queue, the threads and log lines
            controller:  Controller
                The controller to run
            queue:  Optional[RateLimitingQueue]
                The queue to use. Defaults to a RateLimitingQueue with the
                configured backoff on a timer owned by this runner.
        """
        self.name = name
        self.controller = controller
        self.timer_thread = TimerThread(name=f"{name}_timer")
        if queue is None:
            queue = RateLimitingQueue(name=name, timer_thread=self.timer_thread)
        self.queue = queue
        self.informers: List[InformerThread] = []
        self.workers: List[WorkerThread] = []

    def add_informer(
        self,
        informer: InformerThread,
        filters: Optional[FilterFuncs] = None,
        key_func: Optional[KeyFunc] = None,
    ):
        """Enqueue events from the given informer which pass the filters

        Args:
            informer:  InformerThread
                The event source
            filters:  Optional[FilterFuncs]
                Predicates for the events. Defaults to passing adds and updates
            key_func:  Optional[KeyFunc]
                Maps an event object to the identity to enqueue
        """
        informer.add_handler(filters or FilterFuncs(), self.queue.add, key_func)
        if informer not in self.informers:
            self.informers.append(informer)

    def start(self, workers: Optional[int] = None):
        """Start the informers and the worker pool

        Args:
            workers:  Optional[int]
                Number of concurrent workers. Defaults to the workers config
        """
        workers = workers or config.workers
        log.info("Starting controller %s with %d workers", self.name, workers)
        self.timer_thread.start_thread()
        for informer in self.informers:
            informer.start_thread()
        for idx in range(workers):
            worker = WorkerThread(
                self.controller, self.queue, name=f"{self.name}_worker_{idx}"
            )
            self.workers.append(worker)
            worker.start_thread()

    def stop(self):
        """Stop pulling new work. Workers finish their current sync and exit"""
        log.info("Stopping controller %s", self.name)
        self.queue.shut_down()
        for informer in self.informers:
            informer.stop_thread()
        for worker in self.workers:
            worker.stop_thread()
        self.timer_thread.stop_thread()

    def wait(self, timeout: Optional[float] = None):
        """Wait for every worker to exit"""
        for worker in self.workers:
            worker.join(timeout)
