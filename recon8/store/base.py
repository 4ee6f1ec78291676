"""
This defines the base class for all Store types.
"""

# Standard
from typing import Iterator, List, Optional
import abc
import threading

# Local
from .kube_event import KubeWatchEvent


class StoreBase(abc.ABC):
    """
    Base class for stores which are responsible for every read and write of
    cluster objects. Reads return plain dicts that the caller owns. Writes go
    through the store's optimistic concurrency check on resourceVersion.
    """

    @abc.abstractmethod
    def get(
        self,
        kind: str,
        name: str,
        namespace: Optional[str] = None,
        api_version: Optional[str] = None,
    ) -> dict:
        """Fetch the current state of a single object

        Args:
            kind:  str
                The kind of the object to fetch
            name:  str
                The name of the object to fetch
            namespace:  Optional[str]
                The namespace to search for the object, None for cluster scoped
            api_version:  Optional[str]
                The api_version of the resource kind to fetch

        Returns:
            current_state:  dict
                The dict representation of the object

        Raises:
            NotFoundError: the object does not exist
            StoreError: the fetch failed
        """

    @abc.abstractmethod
    def list(
        self,
        kind: str,
        namespace: Optional[str] = None,
        api_version: Optional[str] = None,
        label_selector: Optional[str] = None,
    ) -> List[dict]:
        """List all objects of a kind

        Args:
            kind:  str
                The kind of the objects to list
            namespace:  Optional[str]
                The namespace to list from, None for all namespaces
            api_version:  Optional[str]
                The api_version of the resource kind
            label_selector:  Optional[str]
                The label_selector to filter the objects

        Returns:
            current_state:  List[dict]
                The dict representations of all matching objects
        """

    @abc.abstractmethod
    def create(self, resource: dict) -> dict:
        """Create a new object

        Args:
            resource:  dict
                The full definition of the object

        Returns:
            created:  dict
                The stored object including server populated metadata
        """

    @abc.abstractmethod
    def update(self, resource: dict) -> dict:
        """Replace an existing object

        Args:
            resource:  dict
                The full definition of the object. If metadata.resourceVersion
                is set it must match the stored version.

        Returns:
            updated:  dict
                The stored object

        Raises:
            ConflictError: the resourceVersion is stale
            NotFoundError: the object no longer exists
        """

    @abc.abstractmethod
    def update_status(self, resource: dict) -> dict:
        """Replace the status subresource of an existing object. Same
        concurrency semantics as update().
        """

    @abc.abstractmethod
    def delete(
        self,
        kind: str,
        name: str,
        namespace: Optional[str] = None,
        api_version: Optional[str] = None,
    ):
        """Delete an object. Deleting a missing object is not an error."""

    @abc.abstractmethod
    def watch_objects(  # pylint: disable=too-many-arguments
        self,
        kind: str,
        api_version: Optional[str] = None,
        namespace: Optional[str] = None,
        resource_version: Optional[str] = None,
        watch_manager=None,
        stop_event: Optional[threading.Event] = None,
    ) -> Iterator[KubeWatchEvent]:
        """Stream change events for a kind. When no resource_version is given
        the stream begins with an ADDED event for every existing object.

        Args:
            kind:  str
                The kind of the objects to watch
            api_version:  Optional[str]
                The api_version of the resource kind
            namespace:  Optional[str]
                The namespace to watch, None for all namespaces
            resource_version:  Optional[str]
                Only stream changes newer than this version
            watch_manager:  Optional[kubernetes.watch.Watch]
                Handle the caller can use to interrupt a blocking stream
            stop_event:  Optional[threading.Event]
                When set, the stream ends at the next opportunity

        Returns:
            watch_stream: Iterator[KubeWatchEvent]
                A stream of KubeWatchEvents generated while watching

        Raises:
            WatchExpiredError: The stream can not resume from resource_version.
                The caller must list again.
        """
