"""
Tests for the operator status aggregation and controller
"""
# Standard
from datetime import timedelta

# Third Party
import pytest

# Local
from recon8.constants import (
    AVAILABLE_CONDITION,
    FAILING_CONDITION,
    PROGRESSING_CONDITION,
)
from recon8.controllers import OperatorStatusController, sync_status
from recon8.controllers.operator_status import (
    REASON_AS_EXPECTED,
    REASON_AVAILABLE,
    REASON_AVAILABLE_AND_UPDATED,
    REASON_COMPLETE,
    REASON_NOT_READY,
    is_deployment_available,
    is_deployment_available_and_updated,
    is_deployment_complete,
)
from recon8.engine import InformerThread, ResourceIdentity
from recon8.exceptions import ConflictError, StoreError
from recon8.status import get_condition, is_condition_true
from recon8.store import KubeEventType, KubeWatchEvent
from recon8.test_helpers.helpers import (
    OPERATOR_CONFIG_API_VERSION,
    OPERATOR_CONFIG_KIND,
    OPERATOR_CONFIG_NAME,
    TARGET_NAMESPACE,
    MockStore,
    make_deployment,
    make_operator_config,
)
from recon8.watched_object import WatchedObject

## Helpers #####################################################################


def run_sync(store, names, operator_name="service-ca-operator"):
    conditions = []
    version_ready = sync_status(store, conditions, names, TARGET_NAMESPACE, operator_name)
    return version_ready, {"conditions": conditions}


def condition(status, type_name):
    return get_condition(type_name, status)


## Deployment state ############################################################


def test_deployment_state_predicates():
    complete = make_deployment(spec_replicas=2)
    assert is_deployment_available(complete)
    assert is_deployment_available_and_updated(complete)
    assert is_deployment_complete(complete)

    scaling_up = make_deployment(spec_replicas=3, replicas=2)
    assert is_deployment_available_and_updated(scaling_up)
    assert not is_deployment_complete(scaling_up)

    stale = make_deployment(spec_replicas=2, available=1, updated=1)
    assert is_deployment_available(stale)
    assert not is_deployment_available_and_updated(stale)
    assert not is_deployment_complete(stale)

    unobserved = make_deployment(generation=2, observed_generation=1)
    assert not is_deployment_available_and_updated(unobserved)
    assert not is_deployment_complete(unobserved)

    assert not is_deployment_available(make_deployment(available=0))
    assert is_deployment_complete(make_deployment(spec_replicas=None))


## Aggregation #################################################################


def test_missing_deployment():
    version_ready, status = run_sync(MockStore(), ["missing"])
    assert not version_ready
    assert is_condition_true(PROGRESSING_CONDITION, status)
    assert condition(status, PROGRESSING_CONDITION)["reason"] == REASON_NOT_READY
    assert "does not exist" in condition(status, PROGRESSING_CONDITION)["message"]
    assert not is_condition_true(AVAILABLE_CONDITION, status)
    assert condition(status, AVAILABLE_CONDITION)


def test_all_deployments_complete():
    store = MockStore([make_deployment("d1", spec_replicas=2)])
    version_ready, status = run_sync(store, ["d1"])
    assert version_ready
    assert is_condition_true(AVAILABLE_CONDITION, status)
    assert not is_condition_true(PROGRESSING_CONDITION, status)
    assert condition(status, PROGRESSING_CONDITION)["reason"] == REASON_COMPLETE
    assert (
        condition(status, PROGRESSING_CONDITION)["message"]
        == "All service-ca-operator deployments updated"
    )


def test_one_deployment_with_stale_replicas():
    store = MockStore(
        [
            make_deployment("d1", spec_replicas=2),
            make_deployment("d2", spec_replicas=2, available=1, updated=1),
        ]
    )
    version_ready, status = run_sync(store, ["d1", "d2"])
    assert not version_ready
    assert is_condition_true(AVAILABLE_CONDITION, status)
    assert is_condition_true(PROGRESSING_CONDITION, status)
    assert condition(status, AVAILABLE_CONDITION)["reason"] == REASON_AVAILABLE
    assert condition(status, PROGRESSING_CONDITION)["message"] == "Deployment d2 is updating"


def test_version_ready_while_scaling():
    store = MockStore(
        [
            make_deployment("d1", spec_replicas=2),
            make_deployment("d2", spec_replicas=3, replicas=2),
        ]
    )
    version_ready, status = run_sync(store, ["d1", "d2"])
    assert version_ready
    assert is_condition_true(AVAILABLE_CONDITION, status)
    assert is_condition_true(PROGRESSING_CONDITION, status)
    assert (
        condition(status, PROGRESSING_CONDITION)["reason"]
        == REASON_AVAILABLE_AND_UPDATED
    )
    assert (
        condition(status, PROGRESSING_CONDITION)["message"]
        == "Deployment d2 is creating replicas."
    )


def test_deployment_being_deleted():
    store = MockStore([make_deployment("d1", deleting=True)])
    version_ready, status = run_sync(store, ["d1"])
    assert not version_ready
    assert "is being deleted" in condition(status, PROGRESSING_CONDITION)["message"]
    assert not is_condition_true(AVAILABLE_CONDITION, status)


def test_deployment_without_available_replicas():
    store = MockStore([make_deployment("d1", available=0)])
    version_ready, status = run_sync(store, ["d1"])
    assert not version_ready
    assert (
        condition(status, PROGRESSING_CONDITION)["message"]
        == "Deployment d1 does not have available replicas"
    )
    assert not is_condition_true(AVAILABLE_CONDITION, status)


def test_first_unavailable_deployment_stops_aggregation():
    store = MockStore([make_deployment("d2")])
    version_ready, status = run_sync(store, ["d1", "d2", "d3"])
    assert not version_ready
    assert "d1 does not exist" in condition(status, PROGRESSING_CONDITION)["message"]
    fetched = [call.args[1] for call in store.get.call_args_list]
    assert fetched == ["d1"]


def test_fetch_error_sets_failing_and_raises():
    store = MockStore([make_deployment("d1")], get_fail=StoreError("connection refused"))
    conditions = []
    with pytest.raises(StoreError):
        sync_status(store, conditions, ["d1"], TARGET_NAMESPACE)
    status = {"conditions": conditions}
    assert is_condition_true(FAILING_CONDITION, status)
    assert condition(status, FAILING_CONDITION)["reason"] == "Error getting deployment d1"
    assert condition(status, FAILING_CONDITION)["message"] == "connection refused"
    assert not is_condition_true(AVAILABLE_CONDITION, status)


def test_no_deployments_is_complete():
    version_ready, status = run_sync(MockStore(), [], operator_name="")
    assert version_ready
    assert condition(status, PROGRESSING_CONDITION)["message"] == "All deployments updated"


def test_tiers_are_monotonic():
    """Raising the readiness of a deployment never lowers the reported tier"""
    deployments = [
        make_deployment("d1", available=0),
        make_deployment("d1", spec_replicas=2, available=1, updated=1),
        make_deployment("d1", spec_replicas=3, replicas=2),
        make_deployment("d1", spec_replicas=2),
    ]
    expected = [
        (False, False),
        (True, False),
        (True, True),
        (True, True),
    ]
    for deployment, (available, version_ready_expected) in zip(deployments, expected):
        version_ready, status = run_sync(MockStore([deployment]), ["d1"])
        assert is_condition_true(AVAILABLE_CONDITION, status) == available
        assert version_ready == version_ready_expected


def test_conditions_keep_order_and_transition_time():
    store = MockStore([make_deployment("d1")])
    conditions = []
    sync_status(store, conditions, ["d1"], TARGET_NAMESPACE)
    order = [cond["type"] for cond in conditions]
    times = {cond["type"]: cond["lastTransitionTime"] for cond in conditions}
    sync_status(store, conditions, ["d1"], TARGET_NAMESPACE)
    assert [cond["type"] for cond in conditions] == order
    assert {cond["type"]: cond["lastTransitionTime"] for cond in conditions} == times


## Controller ##################################################################


def setup_controller(resources, version="4.1.0", deployments=("d1",)):
    store = MockStore(resources)
    informer = InformerThread(
        store, OPERATOR_CONFIG_KIND, OPERATOR_CONFIG_API_VERSION, resync_period=timedelta(0)
    )
    controller = OperatorStatusController(
        store,
        informer.lister(),
        deployments=list(deployments),
        namespace=TARGET_NAMESPACE,
        version=version,
    )
    return store, informer, controller


def current_config(store, informer=None):
    obj = store.get_obj(OPERATOR_CONFIG_KIND, OPERATOR_CONFIG_NAME)
    resource = WatchedObject(obj)
    if informer is not None:
        informer._handle_event(KubeWatchEvent(KubeEventType.MODIFIED, resource))
    return resource


def test_controller_reports_version_when_complete():
    store, informer, controller = setup_controller(
        [make_operator_config(generation=3), make_deployment("d1")]
    )
    controller.sync(current_config(store, informer))

    assert store.update_status.call_count == 1
    status = store.get_obj(OPERATOR_CONFIG_KIND, OPERATOR_CONFIG_NAME)["status"]
    assert status["version"] == "4.1.0"
    assert status["observedGeneration"] == 3
    assert is_condition_true(AVAILABLE_CONDITION, status)
    assert condition(status, FAILING_CONDITION)["status"] == "False"
    assert condition(status, FAILING_CONDITION)["reason"] == REASON_AS_EXPECTED


def test_controller_withholds_version_until_ready():
    store, informer, controller = setup_controller(
        [
            make_operator_config(),
            make_deployment("d1", spec_replicas=2, available=1, updated=1),
        ]
    )
    controller.sync(current_config(store, informer))
    status = store.get_obj(OPERATOR_CONFIG_KIND, OPERATOR_CONFIG_NAME)["status"]
    assert "version" not in status
    assert is_condition_true(PROGRESSING_CONDITION, status)


def test_controller_skips_unchanged_status():
    store, informer, controller = setup_controller(
        [make_operator_config(), make_deployment("d1")]
    )
    controller.sync(current_config(store, informer))
    controller.sync(current_config(store, informer))
    assert store.update_status.call_count == 1


def test_controller_writes_status_before_reraising():
    store, informer, controller = setup_controller(
        [make_operator_config(), make_deployment("d1")]
    )
    store.get.side_effect = StoreError("timeout")
    with pytest.raises(StoreError):
        controller.sync(current_config(store, informer))

    assert store.update_status.call_count == 1
    status = store.get_obj(OPERATOR_CONFIG_KIND, OPERATOR_CONFIG_NAME)["status"]
    assert is_condition_true(FAILING_CONDITION, status)
    assert "version" not in status


def test_controller_status_write_error_keeps_fetch_error():
    """A failed status write does not replace the aggregation error"""
    store, informer, controller = setup_controller(
        [make_operator_config(), make_deployment("d1")]
    )
    store.get.side_effect = StoreError("timeout")
    store.update_status.side_effect = ConflictError("stale")
    with pytest.raises(StoreError) as exc_info:
        controller.sync(current_config(store, informer))

    assert not isinstance(exc_info.value, ConflictError)
    assert str(exc_info.value) == "timeout"
    assert store.update_status.call_count == 1


def test_controller_does_not_mutate_cached_object():
    store, informer, controller = setup_controller(
        [make_operator_config(), make_deployment("d1")]
    )
    resource = current_config(store, informer)
    controller.sync(resource)
    assert resource.get("status") is None


def test_deployment_key():
    _, _, controller = setup_controller([], deployments=("d1", "d2"))
    assert controller.deployment_key(
        WatchedObject(make_deployment("d2"))
    ) == ResourceIdentity(None, OPERATOR_CONFIG_NAME)
    assert controller.deployment_key(WatchedObject(make_deployment("other"))) is None
