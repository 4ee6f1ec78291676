"""
The Controller is the pluggable unit of the engine: a Key resolver that turns a
queued identity back into the current object and a Sync that drives that object
toward its desired state.
"""

# Standard
from dataclasses import dataclass
from typing import Optional, Union
import abc

# Local
from ..watched_object import WatchedObject


@dataclass(eq=True, frozen=True)
class ResourceIdentity:
    """The (namespace, name) pair which identifies a single object within a
    kind. Work queues deduplicate on this value.
    """

    namespace: Optional[str]
    name: str

    @classmethod
    def from_resource(
        cls, resource: Union[WatchedObject, dict]
    ) -> "ResourceIdentity":
        """Create an identity from an existing resource"""
        metadata = resource.get("metadata", {}) or {}
        return cls(namespace=metadata.get("namespace"), name=metadata.get("name"))

    def __str__(self):
        if self.namespace:
            return f"{self.namespace}/{self.name}"
        return self.name


class Controller(abc.ABC):
    """Base class for all controllers run by a ControllerRunner.

    Sync implementations must be state reconciling. Events for one identity
    collapse while it waits in the queue, so sync always sees the latest known
    state rather than a replay of each change.
    """

    @property
    def name(self) -> str:
        """Name used for the runner and its log lines"""
        return self.__class__.__name__

    ## Abstract Interface ######################################################
    #
    # These functions must be implemented by child classes
    ##

    @abc.abstractmethod
    def key(self, namespace: Optional[str], name: str) -> WatchedObject:
        """Resolve an identity to the current cached object

        Args:
            namespace:  Optional[str]
                The namespace of the object
            name:  str
                The name of the object

        Returns:
            resource:  WatchedObject
                Read-only snapshot of the current object

        Raises:
            NotFoundError: The object no longer exists. The work item is
                dropped without retry.
        """

    @abc.abstractmethod
    def sync(self, resource: WatchedObject):
        """Drive the given object toward its desired state. Must be idempotent.
        Raising any exception requests a retry with backoff.

        Args:
            resource:  WatchedObject
                Read-only snapshot. Use resource.deepcopy() before mutating.
        """
