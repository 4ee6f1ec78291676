"""
This Store is responsible for delegating cluster operations to the openshift
library. It is the one that will be used when the controllers run in the
cluster or outside the cluster against a live API server.
"""
# Standard
from typing import Iterator, Optional
import threading

# Third Party
from kubernetes import client
from kubernetes.watch import Watch
from openshift.dynamic import DynamicClient
from openshift.dynamic.exceptions import (
    ConflictError as DynamicConflictError,
    DynamicApiError,
    NotFoundError as DynamicNotFoundError,
    ResourceNotFoundError,
    ResourceNotUniqueError,
)
from openshift.dynamic.resource import Resource
import kubernetes
import urllib3

# First Party
import alog

# Local
from ..exceptions import ConflictError, NotFoundError, StoreError, WatchExpiredError
from ..watched_object import WatchedObject
from .base import StoreBase
from .kube_event import KubeEventType, KubeWatchEvent

log = alog.use_channel("OSFTS")

# See this document for value reasonings
# https://github.com/kubernetes-client/python/blob/master/examples/watch/timeout-settings.md
SERVER_WATCH_TIMEOUT = 3600
CLIENT_WATCH_TIMEOUT = 30


class OpenshiftStore(StoreBase):
    """This Store uses the openshift DynamicClient to interact with the
    cluster
    """

    def __init__(self, dynamic_client: Optional[DynamicClient] = None):
        """
        Args:
            dynamic_client:  Optional[DynamicClient]
                A preconfigured client. If not given, one is created lazily
                from the in-cluster config or the local kubeconfig.
        """
        self._client = dynamic_client

    @property
    def client(self) -> DynamicClient:
        """Lazy property access to the client"""
        if self._client is None:
            self._client = self._setup_client()
        return self._client

    ## Interface ###############################################################

    def get(self, kind, name, namespace=None, api_version=None):
        resources = self._get_resource_handle(kind, api_version, namespace)
        try:
            return resources.get(name=name, namespace=namespace).to_dict()
        except DynamicNotFoundError as err:
            log.debug(
                "No object named [%s/%s] found in namespace [%s]", kind, name, namespace
            )
            raise NotFoundError(f"{kind} {namespace}/{name} not found") from err
        except DynamicApiError as err:
            raise StoreError(f"Error getting {kind} {namespace}/{name}: {err}") from err

    def list(self, kind, namespace=None, api_version=None, label_selector=None):
        resources = self._get_resource_handle(kind, api_version, namespace)
        try:
            list_obj = resources.get(namespace=namespace, label_selector=label_selector)
        except DynamicNotFoundError:
            log.debug("No objects of kind [%s] found in namespace [%s]", kind, namespace)
            return []
        except DynamicApiError as err:
            raise StoreError(f"Error listing {kind} in {namespace}: {err}") from err
        return list_obj.to_dict().get("items", [])

    def create(self, resource):
        resources, namespace = self._handle_for(resource)
        try:
            return resources.create(body=resource, namespace=namespace).to_dict()
        except DynamicApiError as err:
            raise StoreError(f"Error creating {self._describe(resource)}: {err}") from err

    def update(self, resource):
        resources, namespace = self._handle_for(resource)
        return self._translate_write(
            resource, lambda: resources.replace(body=resource, namespace=namespace)
        )

    def update_status(self, resource):
        resources, namespace = self._handle_for(resource)
        return self._translate_write(
            resource,
            lambda: resources.status.replace(body=resource, namespace=namespace),
        )

    def delete(self, kind, name, namespace=None, api_version=None):
        resources = self._get_resource_handle(kind, api_version, namespace)
        try:
            resources.delete(name=name, namespace=namespace)
        except DynamicNotFoundError:
            log.debug("Object [%s/%s] already deleted", kind, name)
        except DynamicApiError as err:
            raise StoreError(f"Error deleting {kind} {namespace}/{name}: {err}") from err

    def watch_objects(  # pylint: disable=too-many-arguments
        self,
        kind: str,
        api_version: Optional[str] = None,
        namespace: Optional[str] = None,
        resource_version: Optional[str] = None,
        watch_manager: Optional[Watch] = None,
        stop_event: Optional[threading.Event] = None,
    ) -> Iterator[KubeWatchEvent]:
        watch_manager = watch_manager if watch_manager else Watch()
        resource_handle = self._get_resource_handle(kind, api_version, namespace)

        while True:
            try:
                for event_obj in watch_manager.stream(
                    resource_handle.get,
                    resource_version=resource_version,
                    namespace=namespace,
                    serialize=False,
                    timeout_seconds=SERVER_WATCH_TIMEOUT,
                    _request_timeout=CLIENT_WATCH_TIMEOUT,
                ):
                    event_type = KubeEventType(event_obj["type"])
                    event_resource = WatchedObject(event_obj["object"])
                    resource_version = event_resource.resource_version
                    yield KubeWatchEvent(event_type, event_resource)
            except client.exceptions.ApiException as exception:
                if exception.status == 410:
                    log.debug2("Resource age expired for watch %s/%s", kind, api_version)
                    raise WatchExpiredError(
                        f"Watch of {kind}/{api_version} expired at {resource_version}"
                    ) from exception
                log.info("Unknown ApiException received, re-raising")
                raise
            except urllib3.exceptions.ReadTimeoutError:
                log.debug4("Watch Socket closed, restarting watch %s/%s", kind, api_version)
            except urllib3.exceptions.ProtocolError:
                log.debug2("Invalid Chunk from server, restarting watch %s/%s", kind, api_version)

            if stop_event is not None and stop_event.is_set():
                log.debug("Stop requested. Ending watch for %s/%s", kind, api_version)
                return

    ## Implementation Helpers ##################################################

    @staticmethod
    def _setup_client() -> DynamicClient:
        """Create a DynamicClient that will work based on where the process is
        running
        """
        try:
            log.debug2("Running with in-cluster config")
            kube_config = kubernetes.client.Configuration()
            kubernetes.config.load_incluster_config(client_configuration=kube_config)
            api_client = kubernetes.client.ApiClient(kube_config)
            return DynamicClient(api_client)

        except kubernetes.config.ConfigException:
            log.debug2("Running with out-of-cluster config")
            return DynamicClient(kubernetes.config.new_client_from_config())

    def _get_resource_handle(
        self, kind: str, api_version: Optional[str], namespace: Optional[str]
    ) -> Resource:
        """Get the openshift resource handle for a specified kind and
        api_version
        """
        try:
            resources = self.client.resources.get(kind=kind, api_version=api_version)
        except (ResourceNotFoundError, ResourceNotUniqueError) as err:
            raise StoreError(
                f"No unique resource type found for {api_version}/{kind}"
            ) from err
        if not namespace:
            resources.namespaced = False
        return resources

    def _handle_for(self, resource: dict):
        metadata = resource.get("metadata", {})
        namespace = metadata.get("namespace")
        return (
            self._get_resource_handle(
                resource.get("kind"), resource.get("apiVersion"), namespace
            ),
            namespace,
        )

    @staticmethod
    def _describe(resource: dict) -> str:
        metadata = resource.get("metadata", {})
        return f"{resource.get('kind')} {metadata.get('namespace')}/{metadata.get('name')}"

    def _translate_write(self, resource: dict, operation) -> dict:
        """Run a write and map dynamic client errors onto store errors"""
        try:
            return operation().to_dict()
        except DynamicConflictError as err:
            raise ConflictError(
                f"Conflict writing {self._describe(resource)}: {err}"
            ) from err
        except DynamicNotFoundError as err:
            raise NotFoundError(f"{self._describe(resource)} not found") from err
        except DynamicApiError as err:
            raise StoreError(f"Error writing {self._describe(resource)}: {err}") from err
