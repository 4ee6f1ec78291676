"""
The WorkerThread runs the reconciliation loop: take an identity off the queue,
resolve it to the current object, sync it and decide whether to forget or
retry it.
"""

# Standard
from typing import Optional

# First Party
import alog

# Local
from ...exceptions import NotFoundError, Recon8Error
from ..controller import Controller, ResourceIdentity
from .base import ThreadBase

log = alog.use_channel("WRKTHRD")

# Forward declaration of RateLimitingQueue
RATE_LIMITING_QUEUE_TYPE = "RateLimitingQueue"


class WorkerThread(ThreadBase):
    """A WorkerThread pulls identities from a shared queue until the queue is
    shut down. The queue never hands one identity to two workers at once."""

    def __init__(
        self,
        controller: Controller,
        queue: RATE_LIMITING_QUEUE_TYPE,
        name: Optional[str] = None,
    ):
        """
        Args:
            controller:  Controller
                The controller whose key and sync are run
            queue:  RateLimitingQueue
                The queue shared by every worker of the controller
            name:  Optional[str]
                Name of the thread
        """
        super().__init__(name=name or f"{controller.name}_worker", daemon=True)
        self.controller = controller
        self.queue = queue

    def run(self):
        """Process items until the queue is shut down"""
        while not self.should_stop() and self.process_next_work_item():
            pass
        log.debug("Worker %s exiting", self.name)

    ## Public Interface ###################################################

    def process_next_work_item(self) -> bool:
        """Run one iteration of the reconciliation loop

        Returns:
            keep_going:  bool
                False once the queue has been shut down
        """
        identity, shutdown = self.queue.get()
        if shutdown:
            return False

        try:
            self._reconcile(identity)
        finally:
            self.queue.done(identity)
        return True

    ## Implementation Details ###################################################

    def _reconcile(self, identity: ResourceIdentity):
        controller_name = self.controller.name
        try:
            resource = self.controller.key(identity.namespace, identity.name)
        except NotFoundError:
            log.debug(
                "[%s] %s no longer exists, nothing to do", controller_name, identity
            )
            self.queue.forget(identity)
            return
        except Exception as err:  # pylint: disable=broad-exception-caught
            self._requeue(identity, err, "fetching")
            return

        log.debug2(
            "[%s] Syncing %s",
            controller_name,
            identity,
            extra={"resource": resource, "controller": controller_name},
        )
        try:
            self.controller.sync(resource)
        except Exception as err:  # pylint: disable=broad-exception-caught
            self._requeue(identity, err, "syncing", resource)
            return

        log.debug3("[%s] Synced %s", controller_name, identity)
        self.queue.forget(identity)

    def _requeue(self, identity: ResourceIdentity, err: Exception, stage: str, resource=None):
        """Every error is retried. Fatal ones are logged louder."""
        is_fatal = not isinstance(err, Recon8Error) or err.is_fatal_error
        log_fn = log.error if is_fatal else log.warning
        log_fn(
            "[%s] Error %s %s, requeuing (attempt %d): %s",
            self.controller.name,
            stage,
            identity,
            self.queue.num_requeues(identity) + 1,
            err,
            exc_info=is_fatal,
            extra={"resource": resource, "controller": self.controller.name},
        )
        self.queue.add_rate_limited(identity)
