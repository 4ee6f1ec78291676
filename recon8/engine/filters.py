"""
Filters decide whether a watch event is relevant to a controller. They are
modeled on the kubernetes controller runtime's predicate Funcs:
https://pkg.go.dev/sigs.k8s.io/controller-runtime/pkg/predicate#Funcs
"""

# Standard
from dataclasses import dataclass
from typing import Callable, Optional

# First Party
import alog

# Local
from ..store import KubeEventType
from ..watched_object import WatchedObject

log = alog.use_channel("FILTR")

AddFunc = Callable[[WatchedObject], bool]
UpdateFunc = Callable[[WatchedObject, WatchedObject], bool]
DeleteFunc = Callable[[WatchedObject], bool]


@dataclass
class FilterFuncs:
    """Set of predicates for a single event source. A missing add_func or
    update_func lets every event of that type through. A missing delete_func
    drops delete events since the deleted object resolves to NotFound anyway.
    """

    add_func: Optional[AddFunc] = None
    update_func: Optional[UpdateFunc] = None
    delete_func: Optional[DeleteFunc] = None

    def test(
        self,
        event_type: KubeEventType,
        resource: WatchedObject,
        old_resource: Optional[WatchedObject] = None,
    ) -> bool:
        """Test an event against the matching predicate

        Args:
            event_type:  KubeEventType
                The type of the event
            resource:  WatchedObject
                The object carried by the event
            old_resource:  Optional[WatchedObject]
                The previously cached object for updates

        Returns:
            passed:  bool
                True if the event should be enqueued
        """
        if event_type == KubeEventType.ADDED:
            return self.add_func is None or bool(self.add_func(resource))

        if event_type == KubeEventType.MODIFIED:
            if self.update_func is None:
                return True
            old_resource = old_resource if old_resource is not None else resource
            return bool(self.update_func(old_resource, resource))

        if event_type == KubeEventType.DELETED:
            return self.delete_func is not None and bool(self.delete_func(resource))

        log.warning("Unknown event type %s", event_type)
        return False


## Common predicates ###########################################################


def has_annotation(annotation: str) -> AddFunc:
    """Build a predicate passing objects which carry the given annotation"""

    def _has_annotation(resource: WatchedObject) -> bool:
        return annotation in resource.annotations

    return _has_annotation


def has_annotation_update(annotation: str) -> UpdateFunc:
    """Build an update predicate which only looks at the new object. An
    annotation newly added to the object passes, one that was removed does not.
    """
    check = has_annotation(annotation)

    def _has_annotation_update(_: WatchedObject, new_resource: WatchedObject) -> bool:
        return check(new_resource)

    return _has_annotation_update

