"""
The store is the abstraction in charge of reading, writing and watching the
objects owned by the cluster.
"""

# Local
from .base import StoreBase
from .dry_run_store import DryRunStore
from .kube_event import KubeEventType, KubeWatchEvent
from .openshift_store import OpenshiftStore
