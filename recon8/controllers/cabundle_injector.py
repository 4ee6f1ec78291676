"""
Controllers which copy the service CA bundle into objects that request it with
an annotation
"""

# Standard
from typing import Optional

# First Party
import alog

# Local
from .. import config
from ..engine import Controller, FilterFuncs, Lister, has_annotation, has_annotation_update
from ..store import StoreBase
from ..watched_object import WatchedObject

log = alog.use_channel("CAINJ")


class AnnotationInjectionController(Controller):
    """Generic injector. When an object carries the trigger annotation, its
    data field is replaced by a single entry mapping the data key to the
    current value. Any other content of the field is discarded.
    """

    def __init__(  # pylint: disable=too-many-arguments
        self,
        store: StoreBase,
        lister: Lister,
        value: str,
        data_field: str = "data",
        annotation: Optional[str] = None,
        data_key: Optional[str] = None,
    ):
        """
        Args:
            store:  StoreBase
                Store used to write the injected objects
            lister:  Lister
                Cache of the injected kind
            value:  str
                The value to inject
            data_field:  str
                Top level field of the object holding the data mapping
            annotation:  Optional[str]
                The trigger annotation. Defaults to cabundle.injection_annotation
            data_key:  Optional[str]
                The key to inject. Defaults to cabundle.data_key
        """
        self.store = store
        self.lister = lister
        self.value = value
        self.data_field = data_field
        self.annotation = annotation or config.cabundle.injection_annotation
        self.data_key = data_key or config.cabundle.data_key

    def filters(self) -> FilterFuncs:
        """Only objects carrying the annotation are of interest"""
        return FilterFuncs(
            add_func=has_annotation(self.annotation),
            update_func=has_annotation_update(self.annotation),
        )

    def key(self, namespace, name):
        return self.lister.get(namespace, name)

    def sync(self, resource: WatchedObject):
        # The annotation may have been removed since the event was queued
        if self.annotation not in resource.annotations:
            log.debug2("%s no longer requests injection", resource)
            return

        data = resource.get(self.data_field) or {}
        if len(data) == 1 and data.get(self.data_key) == self.value:
            log.debug3("%s already injected", resource)
            return

        updated = resource.deepcopy()
        updated[self.data_field] = {self.data_key: self.value}
        log.info(
            "Injecting %s into %s",
            self.data_key,
            resource,
            extra={"resource": resource, "controller": self.name},
        )
        self.store.update(updated)


class ConfigMapCABundleInjectionController(AnnotationInjectionController):
    """Injects the CA bundle into ConfigMaps annotated with
    service.alpha.openshift.io/inject-cabundle
    """

    kind = "ConfigMap"
    api_version = "v1"

    def __init__(self, store: StoreBase, lister: Lister, ca_bundle: str):
        super().__init__(store, lister, value=ca_bundle, data_field="data")
