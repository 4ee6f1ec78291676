"""
Package exports
"""

# Local
from . import config, status
from .engine import (
    Controller,
    ControllerRunner,
    FilterFuncs,
    InformerThread,
    Lister,
    RateLimitingQueue,
    ResourceIdentity,
)
from .exceptions import ConflictError, NotFoundError, StoreError, assert_config
from .store import DryRunStore, OpenshiftStore, StoreBase
from .watched_object import WatchedObject
