"""
This module holds common helper functions for making testing easy
"""

# Standard
from contextlib import contextmanager
from datetime import datetime
from typing import List, Optional
from unittest import mock
import copy
import inspect
import os
import time

# First Party
import aconfig
import alog

# Local
from recon8.config import library_config as config_detail_dict
from recon8.constants import (
    DEPLOYMENT_API_VERSION,
    DEPLOYMENT_KIND,
    INJECT_CABUNDLE_ANNOTATION_NAME,
)
from recon8.exceptions import NotFoundError
from recon8.store import DryRunStore
from recon8.utils import merge_configs

log = alog.use_channel("TEST")


def configure_logging():
    alog.configure(
        os.environ.get("LOG_LEVEL", "off"),
        os.environ.get("LOG_FILTERS", ""),
        formatter="json"
        if os.environ.get("LOG_JSON", "").lower() == "true"
        else "pretty",
        thread_id=os.environ.get("LOG_THREAD_ID", "").lower() == "true",
    )


configure_logging()

TEST_NAMESPACE = "test"
TARGET_NAMESPACE = "openshift-service-ca"
TEST_CA_BUNDLE = "-----BEGIN CERTIFICATE-----\nMIIB\n-----END CERTIFICATE-----\n"
OPERATOR_CONFIG_KIND = "ServiceCA"
OPERATOR_CONFIG_API_VERSION = "operator.openshift.io/v1"
OPERATOR_CONFIG_NAME = "cluster"


@contextmanager
def library_config(**config_overrides):
    """This context manager sets library config values temporarily and reverts
    them on completion. Nested sections may be given as dicts and are merged
    over the current section.
    """
    # Override the configs and hang onto the old values
    old_vals = {}
    for key, val in config_overrides.items():
        if key in config_detail_dict:
            old_vals[key] = config_detail_dict[key]
            if isinstance(val, dict):
                merged = merge_configs(copy.deepcopy(dict(config_detail_dict[key])), val)
                val = aconfig.Config(merged, override_env_vars=False)
        elif isinstance(val, dict):
            val = aconfig.Config(val, override_env_vars=False)
        config_detail_dict[key] = val

    try:
        yield
    finally:
        # Revert to the old values
        for key in config_overrides:
            if key in old_vals:
                config_detail_dict[key] = old_vals[key]
            else:
                del config_detail_dict[key]


def get_failable_method(fail_flag, method, failure_return=None):
    log.debug4(
        "Setting up failable mock of [%s] with fail flag: %s", str(method), fail_flag
    )

    def failable_method(*args, **kwargs):
        if isinstance(fail_flag, Exception) or (
            inspect.isclass(fail_flag) and issubclass(fail_flag, Exception)
        ):
            log.debug4("Raising in failable mock")
            raise fail_flag
        if callable(fail_flag):
            log.debug4("Calling callable fail flag")
            res = fail_flag()
            if res is not None:
                return res
        elif fail_flag == "assert":
            raise AssertionError(f"You told me to fail {method}!")
        elif fail_flag:
            return failure_return
        return method(*args, **kwargs)

    return failable_method


class FailOnce:
    """Helper callable that will fail once on the N'th call"""

    def __init__(self, fail_val, fail_number=1):
        self.call_count = 0
        self.fail_number = fail_number
        self.fail_val = fail_val

    def __call__(self, *_, **__):
        self.call_count += 1
        if self.call_count == self.fail_number:
            log.debug("Failing on call %d with %s", self.call_count, self.fail_val)
            if isinstance(self.fail_val, type) and issubclass(self.fail_val, Exception):
                raise self.fail_val("Raising!")
            return self.fail_val
        log.debug("Not failing on call %d", self.call_count)
        return None


class MockStore(DryRunStore):
    """The MockStore wraps a standard DryRunStore so that every call is
    recorded and any operation can be made to fail. A fail flag may be an
    exception (class or instance) to raise, a callable run before the real
    method, or "assert".
    """

    def __init__(  # pylint: disable=too-many-arguments
        self,
        resources: Optional[List[dict]] = None,
        get_fail=False,
        list_fail=False,
        update_fail=False,
        update_status_fail=False,
        watch_fail=False,
        auto_enable=True,
    ):
        super().__init__(resources)
        self.get_fail = get_fail
        self.list_fail = list_fail
        self.update_fail = update_fail
        self.update_status_fail = update_status_fail
        self.watch_fail = watch_fail

        # If auto-enabling, turn the mocks on now
        if auto_enable:
            self.enable_mocks()

    #######################
    ## Helpers for Tests ##
    #######################

    def enable_mocks(self):
        """Turn the mocks on"""
        self.get = mock.Mock(side_effect=get_failable_method(self.get_fail, super().get))
        self.list = mock.Mock(
            side_effect=get_failable_method(self.list_fail, super().list, [])
        )
        self.update = mock.Mock(
            side_effect=get_failable_method(self.update_fail, super().update)
        )
        self.update_status = mock.Mock(
            side_effect=get_failable_method(
                self.update_status_fail, super().update_status
            )
        )
        self.watch_objects = mock.Mock(
            side_effect=get_failable_method(self.watch_fail, super().watch_objects, [])
        )

    def get_obj(self, kind, name, namespace=None, api_version=None) -> Optional[dict]:
        """Read an object without recording the call"""
        try:
            return DryRunStore.get(self, kind, name, namespace, api_version)
        except NotFoundError:
            return None


## Factories ###################################################################


def make_configmap(
    name="test-cm",
    namespace=TEST_NAMESPACE,
    data=None,
    inject=True,
    annotations=None,
) -> dict:
    """Make a ConfigMap body, annotated for injection by default"""
    annotations = dict(annotations or {})
    if inject:
        annotations[INJECT_CABUNDLE_ANNOTATION_NAME] = "true"
    configmap = {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": {"name": name, "namespace": namespace},
    }
    if annotations:
        configmap["metadata"]["annotations"] = annotations
    if data is not None:
        configmap["data"] = data
    return configmap


def make_deployment(  # pylint: disable=too-many-arguments
    name="test-deployment",
    namespace=TARGET_NAMESPACE,
    spec_replicas=1,
    replicas=None,
    available=None,
    updated=None,
    generation=1,
    observed_generation=None,
    deleting=False,
) -> dict:
    """Make a Deployment body. Status counts default to a fully rolled out
    deployment of spec_replicas replicas.
    """
    if replicas is None:
        replicas = 1 if spec_replicas is None else spec_replicas
    deployment = {
        "apiVersion": DEPLOYMENT_API_VERSION,
        "kind": DEPLOYMENT_KIND,
        "metadata": {"name": name, "namespace": namespace, "generation": generation},
        "spec": {},
        "status": {
            "replicas": replicas,
            "availableReplicas": replicas if available is None else available,
            "updatedReplicas": replicas if updated is None else updated,
            "observedGeneration": generation
            if observed_generation is None
            else observed_generation,
        },
    }
    if spec_replicas is not None:
        deployment["spec"]["replicas"] = spec_replicas
    if deleting:
        deployment["metadata"]["deletionTimestamp"] = datetime.now().isoformat()
    return deployment


def make_operator_config(name=OPERATOR_CONFIG_NAME, status=None, generation=1) -> dict:
    """Make the cluster scoped operator config object"""
    operator_config = {
        "apiVersion": OPERATOR_CONFIG_API_VERSION,
        "kind": OPERATOR_CONFIG_KIND,
        "metadata": {"name": name, "generation": generation},
        "spec": {},
    }
    if status is not None:
        operator_config["status"] = status
    return operator_config


def wait_for(condition, timeout=5.0, interval=0.01) -> bool:
    """Poll until condition() is truthy or the timeout passes"""
    deadline = time.time() + timeout
    while time.time() < deadline:
        if condition():
            return True
        time.sleep(interval)
    return bool(condition())
