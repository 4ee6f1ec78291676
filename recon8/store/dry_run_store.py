"""
The DryRunStore implements the Store interface but does not interact with a
cluster and instead holds the state of the cluster in a local map. It enforces
the same optimistic concurrency as a real API server so that conflict handling
can be exercised without one.
"""

# Standard
from collections import deque
from datetime import datetime, timedelta
from queue import Empty, Queue
from threading import RLock
from typing import Deque, Iterator, List, Optional, Tuple
import copy
import uuid

# First Party
import alog

# Local
from ..exceptions import ConflictError, NotFoundError, StoreError, WatchExpiredError
from ..watched_object import WatchedObject
from .base import StoreBase
from .kube_event import KubeEventType, KubeWatchEvent

log = alog.use_channel("DRY-RUN")

# How long a single wait on the watch queue blocks before rechecking the stop
# event and timeout
WATCH_POLL_INTERVAL = 0.05

# Number of past events kept so that a watch can resume from a resourceVersion
WATCH_HISTORY_SIZE = 1000


class DryRunStore(StoreBase):
    """
    Store which keeps the whole cluster in memory
    """

    def __init__(self, resources: Optional[List[dict]] = None):
        """Construct with an optional set of resources that already exist"""
        self._lock = RLock()
        self._cluster_content = {}
        self._resource_version = 0
        self._watches: List[Tuple[str, Optional[str], Optional[str], Queue]] = []
        self._history: Deque[Tuple[int, KubeEventType, dict]] = deque(
            maxlen=WATCH_HISTORY_SIZE
        )

        for resource in resources or []:
            self.create(resource)

    ## Interface ###############################################################

    def get(self, kind, name, namespace=None, api_version=None):
        log.debug2("DRY RUN get [%s/%s] in [%s]", kind, name, namespace)
        with self._lock:
            matches = [
                entries[name]
                for api_ver, entries in self._cluster_content.get(namespace, {})
                .get(kind, {})
                .items()
                if name in entries and api_version in (None, api_ver)
            ]
            if len(matches) != 1:
                raise NotFoundError(f"{kind} {namespace}/{name} not found")
            return copy.deepcopy(matches[0])

    def list(self, kind, namespace=None, api_version=None, label_selector=None):
        log.debug2("DRY RUN list [%s] in [%s]", kind, namespace)
        matches = []
        with self._lock:
            for resource in self._iter_resources(kind, namespace, api_version):
                labels = resource.get("metadata", {}).get("labels") or {}
                if label_selector and not _match_selector(labels, label_selector):
                    continue
                matches.append(copy.deepcopy(resource))
        return matches

    def create(self, resource):
        resource = copy.deepcopy(resource)
        api_version, kind, namespace, name = self._resource_identifiers(resource)
        log.debug("DRY RUN create [%s/%s/%s/%s]", namespace, kind, api_version, name)
        with self._lock:
            entries = (
                self._cluster_content.setdefault(namespace, {})
                .setdefault(kind, {})
                .setdefault(api_version, {})
            )
            if name in entries:
                raise StoreError(f"{kind} {namespace}/{name} already exists")

            metadata = resource.setdefault("metadata", {})
            metadata.setdefault("uid", str(uuid.uuid4()))
            metadata.setdefault("creationTimestamp", datetime.now().isoformat())
            metadata.setdefault("generation", 1)
            metadata["resourceVersion"] = self._next_resource_version()
            entries[name] = resource
            self._notify(KubeEventType.ADDED, resource)
            return copy.deepcopy(resource)

    def update(self, resource):
        return self._replace(resource, status_only=False)

    def update_status(self, resource):
        return self._replace(resource, status_only=True)

    def delete(self, kind, name, namespace=None, api_version=None):
        log.debug("DRY RUN delete [%s/%s] in [%s]", kind, name, namespace)
        with self._lock:
            try:
                current = self.get(kind, name, namespace, api_version)
            except NotFoundError:
                return
            entries = self._cluster_content[namespace][kind][current["apiVersion"]]
            stored = entries[name]

            # Objects with finalizers linger with a deletion timestamp
            if stored.get("metadata", {}).get("finalizers"):
                stored["metadata"].setdefault(
                    "deletionTimestamp", datetime.now().isoformat()
                )
                stored["metadata"]["resourceVersion"] = self._next_resource_version()
                self._notify(KubeEventType.MODIFIED, stored)
                return

            del entries[name]
            stored["metadata"]["resourceVersion"] = self._next_resource_version()
            self._notify(KubeEventType.DELETED, stored)

    def watch_objects(  # pylint: disable=too-many-arguments
        self,
        kind,
        api_version=None,
        namespace=None,
        resource_version=None,
        watch_manager=None,
        stop_event=None,
        timeout: Optional[float] = None,
    ) -> Iterator[KubeWatchEvent]:
        """Watch the DryRunStore for changes by registering an event queue.
        Without a resource_version the watch starts with an ADDED event for
        every existing object. With one it replays every later change.

        Args:
            timeout:  Optional[float]
                If given, the stream ends after this many seconds

        Raises:
            WatchExpiredError: The changes after resource_version are no
                longer kept
        """
        event_queue = Queue()
        watch = (kind, api_version, namespace, event_queue)

        with self._lock:
            if resource_version:
                initial = [
                    (event_type, copy.deepcopy(resource))
                    for event_type, resource in self._history_since(resource_version)
                    if self._watch_matches(watch, resource)
                ]
            else:
                initial = [
                    (KubeEventType.ADDED, copy.deepcopy(resource))
                    for resource in self._iter_resources(kind, namespace, api_version)
                ]
            self._watches.append(watch)

        try:
            for event_type, manifest in initial:
                event = KubeWatchEvent(event_type, WatchedObject(manifest))
                log.debug2("Yielding initial event %s", event)
                yield event

            end_time = datetime.max
            if timeout:
                end_time = datetime.now() + timedelta(seconds=timeout)

            while datetime.now() < end_time:
                if stop_event is not None and stop_event.is_set():
                    return
                try:
                    event = event_queue.get(timeout=WATCH_POLL_INTERVAL)
                except Empty:
                    continue
                log.debug2("Yielding event %s", event)
                yield event
        finally:
            with self._lock:
                self._watches.remove(watch)

    ## Implementation Details ##################################################

    def _replace(self, resource: dict, status_only: bool) -> dict:
        api_version, kind, namespace, name = self._resource_identifiers(resource)
        log.debug(
            "DRY RUN %s [%s/%s/%s/%s]",
            "update_status" if status_only else "update",
            namespace,
            kind,
            api_version,
            name,
        )
        with self._lock:
            entries = (
                self._cluster_content.get(namespace, {})
                .get(kind, {})
                .get(api_version, {})
            )
            if name not in entries:
                raise NotFoundError(f"{kind} {namespace}/{name} not found")

            current = entries[name]
            current_version = current["metadata"]["resourceVersion"]
            submitted_version = resource.get("metadata", {}).get("resourceVersion")
            if submitted_version and submitted_version != current_version:
                raise ConflictError(
                    f"Operation cannot be fulfilled on {kind} {namespace}/{name}: "
                    "the object has been modified"
                )

            updated = copy.deepcopy(current)
            if status_only:
                updated["status"] = copy.deepcopy(resource.get("status"))
            else:
                status = updated.get("status")
                updated = copy.deepcopy(resource)
                if status is not None:
                    updated["status"] = status
                else:
                    updated.pop("status", None)
                for key in ("uid", "creationTimestamp", "generation"):
                    if key in current["metadata"]:
                        updated["metadata"][key] = current["metadata"][key]
                if updated.get("spec") != current.get("spec"):
                    updated["metadata"]["generation"] = (
                        current["metadata"].get("generation", 0) + 1
                    )

            updated["metadata"]["resourceVersion"] = current_version
            if updated == current:
                log.debug2("No change for [%s/%s]", kind, name)
                return copy.deepcopy(current)

            updated["metadata"]["resourceVersion"] = self._next_resource_version()
            entries[name] = updated
            self._notify(KubeEventType.MODIFIED, updated)
            return copy.deepcopy(updated)

    def _iter_resources(
        self, kind: str, namespace: Optional[str], api_version: Optional[str]
    ) -> Iterator[dict]:
        namespaces = (
            [namespace] if namespace is not None else list(self._cluster_content)
        )
        for ns in namespaces:
            for api_ver, entries in self._cluster_content.get(ns, {}).get(kind, {}).items():
                if api_version not in (None, api_ver):
                    continue
                yield from entries.values()

    def _notify(self, event_type: KubeEventType, resource: dict):
        self._history.append(
            (
                int(resource["metadata"]["resourceVersion"]),
                event_type,
                copy.deepcopy(resource),
            )
        )
        for watch in self._watches:
            if self._watch_matches(watch, resource):
                watch[3].put(
                    KubeWatchEvent(event_type, WatchedObject(copy.deepcopy(resource)))
                )

    def _history_since(
        self, resource_version: str
    ) -> Iterator[Tuple[KubeEventType, dict]]:
        try:
            since = int(resource_version)
        except ValueError as err:
            raise WatchExpiredError(
                f"Invalid resourceVersion {resource_version}"
            ) from err

        # Once the history has rolled over, the oldest kept event must directly
        # follow the requested version
        if (
            len(self._history) == self._history.maxlen
            and since + 1 < self._history[0][0]
        ):
            raise WatchExpiredError(f"resourceVersion {resource_version} is too old")
        return (
            (event_type, resource)
            for version, event_type, resource in list(self._history)
            if version > since
        )

    def _watch_matches(self, watch: tuple, resource: dict) -> bool:
        watch_kind, watch_api_version, watch_namespace, _ = watch
        api_version, kind, namespace, _ = self._resource_identifiers(resource)
        return (
            watch_kind == kind
            and watch_api_version in (None, api_version)
            and watch_namespace in (None, namespace)
        )

    def _next_resource_version(self) -> str:
        self._resource_version += 1
        return str(self._resource_version)

    @staticmethod
    def _resource_identifiers(resource: dict) -> Tuple[str, str, Optional[str], str]:
        metadata = resource.get("metadata", {})
        return (
            resource.get("apiVersion"),
            resource.get("kind"),
            metadata.get("namespace"),
            metadata.get("name"),
        )


def _match_selector(labels: dict, label_selector: str) -> bool:
    """Match labels against an equality based selector such as
    'app=foo,tier!=db,managed'
    """
    for selector in filter(None, (part.strip() for part in label_selector.split(","))):
        if "!=" in selector:
            key, value = (part.strip() for part in selector.split("!=", 1))
            if labels.get(key) == value:
                return False
        elif "=" in selector:
            key, value = (part.strip() for part in selector.split("=", 1))
            if labels.get(key.rstrip("=")) != value.lstrip("="):
                return False
        elif selector.startswith("!"):
            if selector[1:] in labels:
                return False
        elif selector not in labels:
            return False
    return True
