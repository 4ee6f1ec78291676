"""
The operator status controller reports the aggregate health of the deployments
managed by the operator on the status of the operator config object.

The aggregation reads each managed deployment fresh from the store and stops at
the first deployment that rules out availability. Otherwise the highest
readiness tier reached by every deployment decides the conditions:

* complete: every replica is updated and available -> Available, not
  Progressing, version may be reported
* version ready: at least one replica available and none from an older
  revision -> Available, Progressing, version may be reported
* existing: at least one replica available -> Available, Progressing, version
  must not be reported
"""

# Standard
from typing import List, Optional

# First Party
import alog

# Local
from .. import config
from ..constants import (
    AVAILABLE_CONDITION,
    DEPLOYMENT_API_VERSION,
    DEPLOYMENT_KIND,
    FAILING_CONDITION,
    PROGRESSING_CONDITION,
)
from ..engine import Controller, Lister, ResourceIdentity
from ..exceptions import NotFoundError
from ..status import (
    OBSERVED_GENERATION_FIELD,
    VERSION_FIELD,
    make_condition,
    set_condition,
    status_changed,
)
from ..store import StoreBase
from ..watched_object import WatchedObject

log = alog.use_channel("OPSTS")

## Reasons #####################################################################

REASON_NOT_READY = "ManagedDeploymentsNotReady"
REASON_COMPLETE = "ManagedDeploymentsCompleteAndUpdated"
REASON_AVAILABLE_AND_UPDATED = "ManagedDeploymentsAvailableAndUpdated"
REASON_AVAILABLE = "ManagedDeploymentsAvailable"
REASON_AS_EXPECTED = "AsExpected"

## Deployment state ############################################################


def is_deployment_available(deployment: dict) -> bool:
    """At least one replica is available"""
    return (deployment.get("status") or {}).get("availableReplicas", 0) > 0


def is_deployment_available_and_updated(deployment: dict) -> bool:
    """At least one replica is available and no replica from a previous
    revision remains. More replicas may still be coming up.
    """
    status = deployment.get("status") or {}
    generation = (deployment.get("metadata") or {}).get("generation", 0)
    return (
        status.get("availableReplicas", 0) > 0
        and status.get("observedGeneration", 0) >= generation
        and status.get("updatedReplicas", 0) == status.get("replicas", 0)
    )


def is_deployment_complete(deployment: dict) -> bool:
    """Every desired replica is updated and available"""
    spec_replicas = (deployment.get("spec") or {}).get("replicas")
    replicas = 1 if spec_replicas is None else spec_replicas
    status = deployment.get("status") or {}
    generation = (deployment.get("metadata") or {}).get("generation", 0)
    return (
        status.get("updatedReplicas", 0) == replicas
        and status.get("replicas", 0) == replicas
        and status.get("availableReplicas", 0) == replicas
        and status.get("observedGeneration", 0) >= generation
    )


## Aggregation #################################################################


def _set_not_ready(conditions: List[dict], message: str):
    set_condition(
        conditions, make_condition(PROGRESSING_CONDITION, True, REASON_NOT_READY, message)
    )
    # Without a replica of every deployment the operator is not available
    set_condition(
        conditions, make_condition(AVAILABLE_CONDITION, False, REASON_NOT_READY, message)
    )


def sync_status(
    store: StoreBase,
    conditions: List[dict],
    deployments: List[str],
    namespace: str,
    operator_name: str = "",
) -> bool:
    """Set the Available, Progressing and Failing conditions from the state of
    the managed deployments

    Args:
        store:  StoreBase
            Store to read the deployments from
        conditions:  List[dict]
            The condition list to update in place. The caller must own it.
        deployments:  List[str]
            Names of the managed deployments
        namespace:  str
            Namespace holding the deployments
        operator_name:  str
            Name used in the completion message

    Returns:
        version_ready:  bool
            True if the reconciled version may be reported as active

    Raises:
        Exception: A deployment could not be read. Failing and Available are
            set before the error is raised.
    """
    version_ready = 0
    existing_deployments = 0
    deployments_complete = 0
    status_msg = ""
    for name in deployments:
        try:
            existing = store.get(
                DEPLOYMENT_KIND, name, namespace=namespace, api_version=DEPLOYMENT_API_VERSION
            )
        except NotFoundError:
            status_msg = f"Deployment {name} does not exist"
            _set_not_ready(conditions, status_msg)
            return False
        except Exception as err:
            status_msg = f"Error getting deployment {name}"
            set_condition(
                conditions, make_condition(FAILING_CONDITION, True, status_msg, str(err))
            )
            set_condition(
                conditions,
                make_condition(AVAILABLE_CONDITION, False, REASON_NOT_READY, status_msg),
            )
            raise

        if (existing.get("metadata") or {}).get("deletionTimestamp"):
            status_msg = f"Deployment {name} is being deleted"
            _set_not_ready(conditions, status_msg)
            return False

        if not is_deployment_available(existing):
            status_msg = f"Deployment {name} does not have available replicas"
            _set_not_ready(conditions, status_msg)
            return False

        existing_deployments += 1

        if is_deployment_complete(existing):
            log.debug("Deployment %s has desired replicas", name)
            deployments_complete += 1
        else:
            status_msg = f"Deployment {name} is creating replicas."

        if is_deployment_available_and_updated(existing):
            log.debug("Deployment %s is available and updated", name)
            version_ready += 1
        else:
            status_msg = f"Deployment {name} is updating"

    total = len(deployments)
    if deployments_complete == total:
        set_condition(conditions, make_condition(AVAILABLE_CONDITION, True, REASON_COMPLETE))
        set_condition(
            conditions,
            make_condition(
                PROGRESSING_CONDITION,
                False,
                REASON_COMPLETE,
                f"All {operator_name} deployments updated"
                if operator_name
                else "All deployments updated",
            ),
        )
        return True

    if version_ready == total:
        set_condition(
            conditions, make_condition(AVAILABLE_CONDITION, True, REASON_AVAILABLE_AND_UPDATED)
        )
        set_condition(
            conditions,
            make_condition(
                PROGRESSING_CONDITION, True, REASON_AVAILABLE_AND_UPDATED, status_msg
            ),
        )
        return True

    if existing_deployments == total:
        set_condition(conditions, make_condition(AVAILABLE_CONDITION, True, REASON_AVAILABLE))
        set_condition(
            conditions,
            make_condition(PROGRESSING_CONDITION, True, REASON_AVAILABLE, status_msg),
        )
        return False

    return False


def set_failing_false(conditions: List[dict], reason: str = REASON_AS_EXPECTED):
    """Clear the Failing condition after an aggregation that raised nothing"""
    set_condition(conditions, make_condition(FAILING_CONDITION, False, reason))


## Controller ##################################################################


class OperatorStatusController(Controller):
    """Keeps the status of the operator config object in line with the managed
    deployments. Deployment events are mapped onto the config object with
    deployment_key so any change to a managed deployment triggers a sync.
    """

    def __init__(  # pylint: disable=too-many-arguments
        self,
        store: StoreBase,
        lister: Lister,
        deployments: Optional[List[str]] = None,
        namespace: Optional[str] = None,
        version: Optional[str] = None,
        operator_name: Optional[str] = None,
    ):
        """
        Args:
            store:  StoreBase
                Store used to read deployments and write the status
            lister:  Lister
                Cache of the operator config kind
            deployments:  Optional[List[str]]
                Managed deployment names. Defaults to operator.managed_deployments
            namespace:  Optional[str]
                Namespace of the deployments. Defaults to operator.target_namespace
            version:  Optional[str]
                Version to report once ready. Defaults to operator_version
            operator_name:  Optional[str]
                Name used in condition messages. Defaults to operator.name
        """
        self.store = store
        self.lister = lister
        self.deployments = (
            deployments if deployments is not None else list(config.operator.managed_deployments)
        )
        self.namespace = namespace or config.operator.target_namespace
        self.version = version if version is not None else config.operator_version
        self.operator_name = operator_name or config.operator.name
        self.config_name = config.operator.config_name

    def deployment_key(self, deployment: WatchedObject) -> Optional[ResourceIdentity]:
        """Every managed deployment maps onto the single config object. Other
        deployments in the namespace are ignored.
        """
        if deployment.name not in self.deployments:
            return None
        return ResourceIdentity(namespace=None, name=self.config_name)

    def key(self, namespace, name):
        return self.lister.get(namespace, name)

    def sync(self, resource: WatchedObject):
        current_status = resource.get("status") or {}
        updated = resource.deepcopy()
        new_status = updated.get("status") or {}
        updated["status"] = new_status
        conditions = new_status.setdefault("conditions", [])

        try:
            version_ready = sync_status(
                self.store,
                conditions,
                self.deployments,
                self.namespace,
                self.operator_name,
            )
        except Exception:
            # The aggregation error is the one reported to the caller
            try:
                self._write_status(resource, current_status, updated)
            except Exception as write_err:  # pylint: disable=broad-exception-caught
                log.warning("Failed to write status of %s: %s", resource, write_err)
            raise

        set_failing_false(conditions)
        if version_ready and self.version:
            new_status[VERSION_FIELD] = self.version
        if resource.generation is not None:
            new_status[OBSERVED_GENERATION_FIELD] = resource.generation
        self._write_status(resource, current_status, updated)

    def _write_status(self, resource: WatchedObject, current_status: dict, updated: dict):
        if not status_changed(current_status, updated["status"]):
            log.debug3("No status change for %s", resource)
            return
        log.debug(
            "Updating status of %s",
            resource,
            extra={"resource": resource, "controller": self.name},
        )
        self.store.update_status(updated)
