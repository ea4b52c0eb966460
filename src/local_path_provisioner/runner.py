"""
Provisioner runner - bootstrap and lifecycle of the provisioning controller.
"""
import asyncio
import logging
import os
from enum import Enum
from typing import List, Mapping, Optional

from .config.policy import load_policy_config
from .config.resolver import ConfigResolver
from .config.schema import DEFAULT_SCHEMA, ConfigSchema
from .controller import ProvisionController
from .exceptions import ProvisionerError
from .kube import probe_server_version, resolve_connection
from .provisioner import LocalPathProvisioner
from .shutdown import ShutdownCoordinator

logger = logging.getLogger("local_path_provisioner")


class LifecycleState(str, Enum):
    STARTING = "Starting"
    CONNECTING_CONTROL_PLANE = "ConnectingControlPlane"
    RESOLVING_CONFIG = "ResolvingConfig"
    RUNNING = "Running"
    SHUTTING_DOWN = "ShuttingDown"
    STOPPED = "Stopped"
    FAILED = "Failed"


_TRANSITIONS = {
    LifecycleState.STARTING: {LifecycleState.CONNECTING_CONTROL_PLANE},
    LifecycleState.CONNECTING_CONTROL_PLANE: {LifecycleState.RESOLVING_CONFIG},
    LifecycleState.RESOLVING_CONFIG: {LifecycleState.RUNNING},
    LifecycleState.RUNNING: {LifecycleState.SHUTTING_DOWN},
    LifecycleState.SHUTTING_DOWN: {LifecycleState.STOPPED},
    LifecycleState.STOPPED: set(),
    LifecycleState.FAILED: set(),
}


class Lifecycle:
    """Process-level state machine. Any state before Running may fail."""

    def __init__(self):
        self.state = LifecycleState.STARTING
        self.history: List[LifecycleState] = [self.state]

    def transition(self, new_state: LifecycleState) -> None:
        allowed = _TRANSITIONS[self.state]
        if new_state == LifecycleState.FAILED:
            if self.state in (LifecycleState.RUNNING, LifecycleState.SHUTTING_DOWN, LifecycleState.STOPPED):
                raise RuntimeError(f"cannot fail from {self.state.value}")
        elif new_state not in allowed:
            raise RuntimeError(f"invalid transition {self.state.value} -> {new_state.value}")
        logger.debug(f"Lifecycle: {self.state.value} -> {new_state.value}")
        self.state = new_state
        self.history.append(new_state)


async def run_provisioner(
    flags: Mapping[str, Optional[str]],
    env: Optional[Mapping[str, str]] = None,
    schema: ConfigSchema = DEFAULT_SCHEMA,
    lifecycle: Optional[Lifecycle] = None,
    coordinator: Optional[ShutdownCoordinator] = None,
) -> None:
    """
    Main entry point for running the provisioner.

    Arms the shutdown handlers first, then connects, probes the API server,
    resolves the configuration and runs the controller until SIGINT/SIGTERM.
    Blocking client calls run in worker threads, off the event loop.

    Args:
        flags: CLI values keyed by setting name (``provisioner_name``, ``namespace``,
               ``helper_image``, ``config``, ``kubeconfig``).
        env: Environment to resolve from. Defaults to ``os.environ``.

    Raises:
        ProvisionerError: any startup failure. Nothing is retried here.
    """
    env = os.environ if env is None else env
    lifecycle = lifecycle or Lifecycle()
    coordinator = coordinator or ShutdownCoordinator()
    shutdown = coordinator.arm()

    api_client = None
    try:
        lifecycle.transition(LifecycleState.CONNECTING_CONTROL_PLANE)
        api_client = await asyncio.to_thread(resolve_connection, flags.get("kubeconfig") or "", env)
        server_version = await asyncio.to_thread(probe_server_version, api_client)

        lifecycle.transition(LifecycleState.RESOLVING_CONFIG)
        config = await asyncio.to_thread(ConfigResolver(schema).resolve, flags, env, api_client)
        policy = await asyncio.to_thread(load_policy_config, config.config_source)
        logger.info(
            f"Resolved provisioner {config.provisioner_name} in namespace {config.namespace} "
            f"with helper image {config.helper_image}"
        )

        provisioner = LocalPathProvisioner(api_client, policy, config.namespace, config.helper_image)
        controller = ProvisionController(api_client, config.provisioner_name, provisioner, server_version)

        lifecycle.transition(LifecycleState.RUNNING)
        logger.debug("Provisioner started")
        await controller.run(shutdown)
        lifecycle.transition(LifecycleState.SHUTTING_DOWN)
        logger.debug("Provisioner stopped")
    except ProvisionerError:
        lifecycle.transition(LifecycleState.FAILED)
        raise
    finally:
        coordinator.disarm()
        if api_client is not None:
            api_client.close()

    lifecycle.transition(LifecycleState.STOPPED)
