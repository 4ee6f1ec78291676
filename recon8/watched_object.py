"""
Read-only view of an object owned by the external store
"""
# Standard
from typing import Any, Optional
import copy


class WatchedObject:  # pylint: disable=too-many-instance-attributes
    """Snapshot of an object delivered by a watch or read from a cache.

    The wrapped definition is shared with the cache it came from. Callers must
    use deepcopy() to get a private copy before changing any field.
    """

    def __init__(self, definition: dict):
        self.definition = definition
        self.kind = definition.get("kind")
        self.api_version = definition.get("apiVersion")
        self.metadata = definition.get("metadata") or {}
        self.name = self.metadata.get("name")
        self.namespace = self.metadata.get("namespace")
        self.uid = self.metadata.get("uid")
        self.resource_version = self.metadata.get("resourceVersion")

        assert self.kind is not None, "No kind found"
        assert self.name is not None, "No name found"

    @property
    def generation(self) -> Optional[int]:
        return self.metadata.get("generation")

    @property
    def annotations(self) -> dict:
        return self.metadata.get("annotations") or {}

    @property
    def deletion_timestamp(self) -> Optional[str]:
        return self.metadata.get("deletionTimestamp")

    def get(self, *args, **kwargs) -> Any:
        """Pass get calls to the object's definition"""
        return self.definition.get(*args, **kwargs)

    def deepcopy(self) -> dict:
        """Get a private, mutable copy of the definition"""
        return copy.deepcopy(self.definition)

    def __str__(self):
        if self.namespace:
            return f"{self.api_version}/{self.kind}/{self.namespace}/{self.name}"
        return f"{self.api_version}/{self.kind}/{self.name}"

    def __repr__(self):
        return str(self)
