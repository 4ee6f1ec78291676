"""
Threads used by the reconciliation engine
"""

# Local
from .base import ThreadBase
from .informer import InformerThread, Lister
from .timer import TimerEvent, TimerThread
from .worker import WorkerThread
