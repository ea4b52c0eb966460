# src/local_path_provisioner/provisioner.py
"""
Local path provisioning callbacks.

Volumes are directories on a node's filesystem. Creating and removing them is
done by short-lived helper pods scheduled onto that node, running the
configured helper image.
"""
import logging
import posixpath
import random
import time
from dataclasses import dataclass
from typing import List, Optional

from kubernetes import client as k8s_client
from kubernetes.client.rest import ApiException

from .config.policy import PolicyConfig
from .exceptions import ProvisioningError

logger = logging.getLogger("local_path_provisioner.provisioner")

HOSTNAME_LABEL = "kubernetes.io/hostname"
HELPER_MOUNT_PATH = "/data"

ACTION_CREATE = "create"
ACTION_DELETE = "delete"


@dataclass
class ProvisionOptions:
    """Everything the provisioner needs to know about a claim it is asked to satisfy."""
    pv_name: str
    claim: k8s_client.V1PersistentVolumeClaim
    selected_node: str
    storage_class: Optional[k8s_client.V1StorageClass] = None

    @property
    def reclaim_policy(self) -> str:
        if self.storage_class is not None and self.storage_class.reclaim_policy:
            return self.storage_class.reclaim_policy
        return "Delete"


class LocalPathProvisioner:
    HELPER_TIMEOUT = 120.0
    HELPER_POLL_INTERVAL = 1.0

    def __init__(self, api_client: k8s_client.ApiClient, policy: PolicyConfig, namespace: str, helper_image: str):
        self.core = k8s_client.CoreV1Api(api_client)
        self.policy = policy
        self.namespace = namespace
        self.helper_image = helper_image

    def pick_path(self, node: str) -> str:
        paths = self.policy.paths_for_node(node)
        if paths is None:
            raise ProvisioningError(f"config doesn't contain node {node}, and no default path is configured")
        if not paths:
            raise ProvisioningError(f"no local path is available on node {node}")
        return random.choice(paths)

    def provision(self, options: ProvisionOptions) -> k8s_client.V1PersistentVolume:
        claim = options.claim
        node = options.selected_node
        if not node:
            raise ProvisioningError(f"claim {claim.metadata.namespace}/{claim.metadata.name} has no selected node")

        resources = claim.spec.resources
        storage = (resources.requests or {}).get("storage") if resources else None
        if not storage:
            raise ProvisioningError(f"claim {claim.metadata.namespace}/{claim.metadata.name} does not request storage")

        base = self.pick_path(node)
        folder = f"{options.pv_name}_{claim.metadata.namespace}_{claim.metadata.name}"
        path = posixpath.join(base, folder)

        logger.info(f"Creating volume {options.pv_name} at {node}:{path}")
        self.run_helper(ACTION_CREATE, options.pv_name, path, node)

        return k8s_client.V1PersistentVolume(
            api_version="v1",
            kind="PersistentVolume",
            metadata=k8s_client.V1ObjectMeta(name=options.pv_name),
            spec=k8s_client.V1PersistentVolumeSpec(
                persistent_volume_reclaim_policy=options.reclaim_policy,
                access_modes=claim.spec.access_modes,
                volume_mode=claim.spec.volume_mode,
                capacity={"storage": storage},
                host_path=k8s_client.V1HostPathVolumeSource(path=path, type="DirectoryOrCreate"),
                node_affinity=k8s_client.V1VolumeNodeAffinity(
                    required=k8s_client.V1NodeSelector(
                        node_selector_terms=[
                            k8s_client.V1NodeSelectorTerm(
                                match_expressions=[
                                    k8s_client.V1NodeSelectorRequirement(
                                        key=HOSTNAME_LABEL, operator="In", values=[node]
                                    )
                                ]
                            )
                        ]
                    )
                ),
            ),
        )

    def delete(self, pv: k8s_client.V1PersistentVolume) -> None:
        name = pv.metadata.name
        path = pv.spec.host_path.path if pv.spec.host_path else None
        if not path:
            raise ProvisioningError(f"volume {name} has no host path, refusing to delete")
        node = volume_node(pv)
        if not node:
            raise ProvisioningError(f"volume {name} has no node affinity, refusing to delete")

        logger.info(f"Deleting volume {name} at {node}:{path}")
        self.run_helper(ACTION_DELETE, name, path, node)

    def helper_pod(self, action: str, pv_name: str, path: str, node: str) -> k8s_client.V1Pod:
        path = path.rstrip("/")
        parent, folder = posixpath.split(path)
        if not parent or not folder or parent == path:
            raise ProvisioningError(f"invalid volume path '{path}'")

        target = posixpath.join(HELPER_MOUNT_PATH, folder)
        if action == ACTION_CREATE:
            command = ["mkdir", "-m", "0777", "-p", target]
        elif action == ACTION_DELETE:
            command = ["rm", "-rf", target]
        else:
            raise ProvisioningError(f"unknown helper action '{action}'")

        return k8s_client.V1Pod(
            api_version="v1",
            kind="Pod",
            metadata=k8s_client.V1ObjectMeta(name=f"{action}-{pv_name}"[:63], namespace=self.namespace),
            spec=k8s_client.V1PodSpec(
                restart_policy="Never",
                node_name=node,
                tolerations=[k8s_client.V1Toleration(operator="Exists")],
                containers=[
                    k8s_client.V1Container(
                        name=f"local-path-{action}",
                        image=self.helper_image,
                        command=command,
                        volume_mounts=[k8s_client.V1VolumeMount(name="data", mount_path=HELPER_MOUNT_PATH)],
                    )
                ],
                volumes=[
                    k8s_client.V1Volume(
                        name="data",
                        host_path=k8s_client.V1HostPathVolumeSource(path=parent, type="DirectoryOrCreate"),
                    )
                ],
            ),
        )

    def run_helper(self, action: str, pv_name: str, path: str, node: str) -> None:
        """Run a helper pod to completion and always clean it up."""
        pod = self.helper_pod(action, pv_name, path, node)
        pod_name = pod.metadata.name
        try:
            self.core.create_namespaced_pod(self.namespace, pod)
        except ApiException as e:
            raise ProvisioningError(f"failed to create helper pod {pod_name}: {e.status} {e.reason}") from e

        try:
            self._wait_for_helper(pod_name)
        finally:
            try:
                self.core.delete_namespaced_pod(pod_name, self.namespace)
            except ApiException as e:
                if e.status != 404:
                    logger.error(f"Failed to delete helper pod {pod_name}: {e.status} {e.reason}")

    def _wait_for_helper(self, pod_name: str) -> None:
        deadline = time.monotonic() + self.HELPER_TIMEOUT
        while True:
            try:
                pod = self.core.read_namespaced_pod(pod_name, self.namespace)
            except ApiException as e:
                raise ProvisioningError(f"failed to read helper pod {pod_name}: {e.status} {e.reason}") from e

            phase = pod.status.phase if pod.status else None
            if phase == "Succeeded":
                logger.debug(f"Helper pod {pod_name} succeeded")
                return
            if phase == "Failed":
                raise ProvisioningError(f"helper pod {pod_name} failed")
            if time.monotonic() >= deadline:
                raise ProvisioningError(f"helper pod {pod_name} did not finish within {self.HELPER_TIMEOUT}s")
            time.sleep(self.HELPER_POLL_INTERVAL)


def volume_node(pv: k8s_client.V1PersistentVolume) -> Optional[str]:
    """The node a local volume is pinned to, from its required node affinity."""
    affinity = pv.spec.node_affinity
    if not affinity or not affinity.required:
        return None
    terms: List[k8s_client.V1NodeSelectorTerm] = affinity.required.node_selector_terms or []
    for term in terms:
        for expr in term.match_expressions or []:
            if expr.key == HOSTNAME_LABEL and expr.operator == "In" and expr.values:
                return expr.values[0]
    return None
