"""
The reconciliation engine: filters, work queues, informers and the workers
that run controllers
"""

# Local
from .controller import Controller, ResourceIdentity
from .filters import FilterFuncs, has_annotation, has_annotation_update
from .rate_limiter import ItemExponentialFailureRateLimiter
from .runner import ControllerRunner
from .threads import InformerThread, Lister, TimerThread, WorkerThread
from .workqueue import DelayingQueue, RateLimitingQueue, WorkQueue
