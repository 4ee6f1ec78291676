"""The InformerThread watches one kind in the store, keeps a local cache of it
and turns watch events into work for the controllers that registered with it
"""
# Standard
from datetime import timedelta
from typing import Callable, Dict, List, NamedTuple, Optional
import os
import threading

# Third Party
from kubernetes import watch

# First Party
import alog

# Local
from ... import config
from ...exceptions import NotFoundError, WatchExpiredError
from ...store import KubeEventType, KubeWatchEvent, StoreBase
from ...utils import parse_time_delta
from ...watched_object import WatchedObject
from ..controller import ResourceIdentity
from ..filters import FilterFuncs
from .base import ThreadBase
from .timer import TimerThread

log = alog.use_channel("INFRMR")

KeyFunc = Callable[[WatchedObject], Optional[ResourceIdentity]]


class EventHandler(NamedTuple):
    """A registered consumer of the informer's events"""

    filters: FilterFuncs
    key_func: Optional[KeyFunc]
    enqueue: Callable[[ResourceIdentity], None]


class InformerThread(ThreadBase):  # pylint: disable=too-many-instance-attributes
    """The InformerThread streams events for a single kind either cluster-wide
    or for one namespace. Every event first updates the cache, then is tested
    against each handler's filters and enqueued for the handlers that pass.
    """

    def __init__(  # pylint: disable=too-many-arguments
        self,
        store: StoreBase,
        kind: str,
        api_version: Optional[str] = None,
        namespace: Optional[str] = None,
        resync_period: Optional[timedelta] = None,
    ):
        """
        Args:
            store:  StoreBase
                The store to watch
            kind:  str
                The kind to watch
            api_version:  Optional[str]
                The api_version to watch
            namespace:  Optional[str]
                The namespace to watch. If none then cluster-wide
            resync_period:  Optional[timedelta]
                How often every cached object is re-offered to the update
                filters. Defaults to informer.resync_period. A zero period
                disables resync.
        """
        self.store = store
        self.kind = kind
        self.api_version = api_version
        self.namespace = namespace

        name = f"informer_{self.api_version}_{self.kind}"
        if self.namespace:
            name = name + f"_{self.namespace}"
        super().__init__(name=name, daemon=True)

        self.kubernetes_watch = watch.Watch()

        self._cache: Dict[ResourceIdentity, WatchedObject] = {}
        self._cache_lock = threading.RLock()
        self._handlers: List[EventHandler] = []

        if resync_period is None:
            resync_period = parse_time_delta(config.informer.resync_period)
        self.resync_period = resync_period
        self._resync_timer = (
            TimerThread(name=f"{name}_resync") if self.resync_period else None
        )

        # Variables for tracking retries
        self.attempts_left = config.informer.watch_retry_count
        self.retry_delay = parse_time_delta(config.informer.watch_retry_delay or "")

    def run(self):
        """The control loop lists the kind, replaces the cache and then streams
        events from the store until shutdown. A failed watch is restarted from
        a fresh list. Once every retry has been used without a successful list
        the process exits so that it is restarted from a clean state.
        """
        if self._resync_timer:
            self._resync_timer.start_thread()
            self._resync_timer.put_event(self.resync_period, self._resync)

        while not self.should_stop():
            try:
                resource_version = self._relist()
                self.attempts_left = config.informer.watch_retry_count
                for event in self.store.watch_objects(
                    self.kind,
                    self.api_version,
                    namespace=self.namespace,
                    resource_version=resource_version,
                    watch_manager=self.kubernetes_watch,
                    stop_event=self.shutdown,
                ):
                    if self.should_stop():
                        log.debug("Shutdown requested. Ending informer %s", self.name)
                        return
                    self._handle_event(event)
            except WatchExpiredError as exc:
                log.debug("Watch for %s expired, listing again: %s", self.name, exc)
            except Exception as exc:  # pylint: disable=broad-exception-caught
                log.info(
                    "Exception raised when attempting to watch %s",
                    repr(exc),
                    exc_info=exc,
                )
                if self.attempts_left <= 0:
                    log.error(
                        "Unable to start watch within %d attempts",
                        config.informer.watch_retry_count,
                    )
                    os._exit(1)

                if not self.wait_on_precondition(self.retry_delay.total_seconds()):
                    log.debug("Shutdown requested during retry. Ending informer")
                    return
                self.attempts_left = self.attempts_left - 1
                log.info("Restarting watch with %d attempts left", self.attempts_left)

    ## Class Interface ###################################################

    def stop_thread(self):
        """Override stop_thread to stop the kubernetes client's Watch and the
        resync timer as well"""
        super().stop_thread()
        self.kubernetes_watch.stop()
        if self._resync_timer:
            self._resync_timer.stop_thread()

    ## Public Interface ###################################################

    def add_handler(
        self,
        filters: FilterFuncs,
        enqueue: Callable[[ResourceIdentity], None],
        key_func: Optional[KeyFunc] = None,
    ):
        """Register a consumer of this informer's events

        Args:
            filters:  FilterFuncs
                The predicates an event must pass
            enqueue:  Callable[[ResourceIdentity], None]
                Called with the identity of each passing event
            key_func:  Optional[KeyFunc]
                Maps the event object to the identity to enqueue. Defaults to
                the object's own identity. Returning None skips the event.
        """
        self._handlers.append(EventHandler(filters, key_func, enqueue))

    def get(self, namespace: Optional[str], name: str) -> WatchedObject:
        """Get an object from the cache, raising NotFoundError if missing"""
        with self._cache_lock:
            resource = self._cache.get(ResourceIdentity(namespace, name))
        if resource is None:
            raise NotFoundError(f"{self.kind} {namespace}/{name} not found in cache")
        return resource

    def list(self, namespace: Optional[str] = None) -> List[WatchedObject]:
        """List cached objects, optionally limited to one namespace"""
        with self._cache_lock:
            return [
                resource
                for identity, resource in self._cache.items()
                if namespace is None or identity.namespace == namespace
            ]

    def lister(self) -> "Lister":
        return Lister(self)

    ## Event Functions  ###################################################

    def _relist(self) -> Optional[str]:
        """Replace the cache with a fresh list of the kind. Cached objects that
        are missing from the list were deleted while no watch was running and
        are dispatched as DELETED. Listed objects go through the same path as
        watch events so known ones are offered as updates.

        Returns:
            resource_version:  Optional[str]
                The version to resume the watch from, None to start the watch
                with a full snapshot
        """
        listed = [
            WatchedObject(obj)
            for obj in self.store.list(
                self.kind, namespace=self.namespace, api_version=self.api_version
            )
        ]
        listed_ids = {ResourceIdentity.from_resource(resource) for resource in listed}
        with self._cache_lock:
            vanished = [
                resource
                for identity, resource in self._cache.items()
                if identity not in listed_ids
            ]

        log.debug(
            "Informer %s listed %d objects, %d vanished",
            self.name,
            len(listed),
            len(vanished),
        )
        for resource in vanished:
            self._handle_event(KubeWatchEvent(KubeEventType.DELETED, resource))
        for resource in listed:
            self._handle_event(KubeWatchEvent(KubeEventType.ADDED, resource))
        return _latest_resource_version(listed)

    def _handle_event(self, event: KubeWatchEvent):
        """Update the cache with the event then dispatch it"""
        resource = event.resource
        identity = ResourceIdentity.from_resource(resource)
        event_type = event.type

        with self._cache_lock:
            old_resource = self._cache.get(identity)
            if event_type == KubeEventType.DELETED:
                self._cache.pop(identity, None)
            else:
                self._cache[identity] = resource

        # A delete replayed after a relist already removed the object
        if event_type == KubeEventType.DELETED and old_resource is None:
            log.debug3("Informer %s ignoring delete of unknown %s", self.name, resource)
            return

        # A relist delivers known objects as ADDED and a missed ADDED shows up
        # as MODIFIED
        if event_type == KubeEventType.ADDED and old_resource is not None:
            event_type = KubeEventType.MODIFIED
        elif event_type == KubeEventType.MODIFIED and old_resource is None:
            event_type = KubeEventType.ADDED

        log.debug2("Informer %s received %s for %s", self.name, event_type, resource)
        self._dispatch(event_type, resource, old_resource)

    def _dispatch(
        self,
        event_type: KubeEventType,
        resource: WatchedObject,
        old_resource: Optional[WatchedObject] = None,
    ):
        for handler in list(self._handlers):
            try:
                if not handler.filters.test(event_type, resource, old_resource):
                    log.debug3("Event %s for %s filtered", event_type, resource)
                    continue
                identity = (
                    handler.key_func(resource)
                    if handler.key_func
                    else ResourceIdentity.from_resource(resource)
                )
            except Exception as err:  # pylint: disable=broad-exception-caught
                log.error(
                    "Handler failed for %s event on %s: %s",
                    event_type,
                    resource,
                    err,
                    exc_info=True,
                )
                continue

            if identity is None:
                log.debug3("No identity mapped for %s", resource)
                continue
            log.debug2("Enqueuing %s", identity, extra={"resource": resource})
            handler.enqueue(identity)

    def _resync(self):
        """Re-offer every cached object as an update of itself"""
        if self.should_stop():
            return
        resources = self.list()
        log.debug("Resyncing %d objects for %s", len(resources), self.name)
        for resource in resources:
            self._dispatch(KubeEventType.MODIFIED, resource, resource)
        self._resync_timer.put_event(self.resync_period, self._resync)


def _latest_resource_version(resources: List[WatchedObject]) -> Optional[str]:
    """Newest resourceVersion among the listed objects. resourceVersions are
    only comparable when numeric, so anything else starts a full watch.
    """
    versions = [resource.resource_version for resource in resources]
    if not versions or not all(str(version).isdigit() for version in versions):
        return None
    return str(max(int(version) for version in versions))


class Lister:
    """Synchronous, read-only view of an informer's cache. Objects returned
    are shared with the cache and must be copied before being changed.
    """

    def __init__(self, informer: InformerThread):
        self._informer = informer

    def get(self, namespace: Optional[str], name: str) -> WatchedObject:
        return self._informer.get(namespace, name)

    def list(self, namespace: Optional[str] = None) -> List[WatchedObject]:
        return self._informer.list(namespace)
