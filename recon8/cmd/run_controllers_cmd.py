"""
Run the CA bundle injection and operator status controllers
"""
# Standard
from typing import List, Optional
import argparse
import os
import signal
import threading

# Third Party
import yaml

# First Party
import alog

# Local
from .. import config
from ..constants import DEPLOYMENT_API_VERSION, DEPLOYMENT_KIND
from ..controllers import ConfigMapCABundleInjectionController, OperatorStatusController
from ..engine import ControllerRunner, FilterFuncs, InformerThread
from ..exceptions import assert_config
from ..store import DryRunStore, OpenshiftStore, StoreBase
from .base import CmdBase

log = alog.use_channel("MAIN")

CABUNDLE_CONTROLLER = "cabundle"
STATUS_CONTROLLER = "status"
ALL_CONTROLLERS = [CABUNDLE_CONTROLLER, STATUS_CONTROLLER]


class RunControllersCmd(CmdBase):
    """Run the reconciliation controllers until interrupted"""

    name = "run"

    ## Interface ##

    def add_arguments(self, parser: argparse.ArgumentParser):
        runtime_args = parser.add_argument_group("Runtime Configuration")
        runtime_args.add_argument(
            "--controllers",
            nargs="*",
            choices=ALL_CONTROLLERS,
            default=ALL_CONTROLLERS,
            help="The controllers to run",
        )
        runtime_args.add_argument(
            "--resource_dir",
            "-r",
            default=None,
            help="(dry run) Path to a directory of yaml files that should exist in the cluster",
        )

    def cmd(self, args: argparse.Namespace):
        assert_config(
            args.resource_dir is None
            or (config.dry_run and os.path.isdir(args.resource_dir)),
            "Can only specify --resource_dir with dry run and it must point to a valid directory",
        )

        ca_bundle = None
        if CABUNDLE_CONTROLLER in args.controllers:
            ca_bundle = read_ca_bundle(config.cabundle.ca_file)

        store = self._setup_store(self._parse_resource_dir(args.resource_dir))
        runners = build_runners(store, args.controllers, ca_bundle)

        # Register the signal handler to stop the runners
        stop_event = threading.Event()

        def do_stop(*_, **__):  # pragma: no cover
            stop_event.set()

        signal.signal(signal.SIGINT, do_stop)
        signal.signal(signal.SIGTERM, do_stop)

        log.info("Starting %d controllers", len(runners))
        for runner in runners:
            runner.start(config.workers)

        stop_event.wait()

        log.info("SHUTTING DOWN")
        for runner in runners:
            runner.stop()
        for runner in runners:
            runner.wait()

    ## Impl ##

    @staticmethod
    def _parse_resource_dir(resource_dir: Optional[str]) -> List[dict]:
        """If given, this will parse all yaml files found in the given directory"""
        all_resources = []
        if resource_dir is not None:
            for fname in sorted(os.listdir(resource_dir)):
                if fname.endswith(".yaml") or fname.endswith(".yml"):
                    resource_path = os.path.join(resource_dir, fname)
                    log.debug3("Reading resource file [%s]", resource_path)
                    with open(resource_path, encoding="utf-8") as handle:
                        all_resources.extend(
                            resource for resource in yaml.safe_load_all(handle) if resource
                        )
        return all_resources

    @staticmethod
    def _setup_store(resources: List[dict]) -> StoreBase:
        if config.dry_run:
            log.info("Running DRY RUN")
            return DryRunStore(resources=resources)
        return OpenshiftStore()


def read_ca_bundle(ca_file: str) -> str:
    """Read the CA bundle to inject"""
    assert_config(
        bool(ca_file) and os.path.isfile(ca_file),
        f"cabundle.ca_file must point to a valid file, got [{ca_file}]",
    )
    with open(ca_file, encoding="utf-8") as handle:
        return handle.read()


def build_runners(
    store: StoreBase,
    controllers: List[str],
    ca_bundle: Optional[str] = None,
) -> List[ControllerRunner]:
    """Assemble the runners for the requested controllers

    Args:
        store:  StoreBase
            The store every controller reads and writes through
        controllers:  List[str]
            Names of the controllers to run
        ca_bundle:  Optional[str]
            The CA bundle content, required for the cabundle controller

    Returns:
        runners:  List[ControllerRunner]
            The runners, not yet started
    """
    runners = []

    if CABUNDLE_CONTROLLER in controllers:
        assert_config(ca_bundle is not None, "A CA bundle is required for injection")
        configmaps = InformerThread(
            store,
            ConfigMapCABundleInjectionController.kind,
            ConfigMapCABundleInjectionController.api_version,
        )
        controller = ConfigMapCABundleInjectionController(
            store, configmaps.lister(), ca_bundle
        )
        runner = ControllerRunner("ConfigMapCABundleInjectionController", controller)
        runner.add_informer(configmaps, controller.filters())
        runners.append(runner)

    if STATUS_CONTROLLER in controllers:
        operator_configs = InformerThread(
            store, config.operator.config_kind, config.operator.config_api_version
        )
        deployments = InformerThread(
            store,
            DEPLOYMENT_KIND,
            DEPLOYMENT_API_VERSION,
            namespace=config.operator.target_namespace,
        )
        controller = OperatorStatusController(store, operator_configs.lister())
        runner = ControllerRunner("OperatorStatusController", controller)
        runner.add_informer(operator_configs, FilterFuncs())
        runner.add_informer(
            deployments,
            FilterFuncs(delete_func=lambda _: True),
            key_func=controller.deployment_key,
        )
        runners.append(runner)

    return runners
