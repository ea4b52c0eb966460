# src/local_path_provisioner/controller.py
"""
Provision controller.

A periodic reconcile loop over claims and volumes that hands provisioning
decisions to a provisioner object exposing ``provision(options)`` and
``delete(pv)``. Failures on individual objects are logged and picked up again
on the next resync.
"""
import asyncio
import logging
from typing import Dict, Optional, Set

from kubernetes import client as k8s_client
from kubernetes.client.rest import ApiException

from .exceptions import ProvisioningError
from .provisioner import ProvisionOptions
from .shutdown import ShutdownSignal

logger = logging.getLogger("local_path_provisioner.controller")

ANN_PROVISIONED_BY = "pv.kubernetes.io/provisioned-by"
ANN_STORAGE_PROVISIONER = "volume.kubernetes.io/storage-provisioner"
ANN_STORAGE_PROVISIONER_BETA = "volume.beta.kubernetes.io/storage-provisioner"
ANN_SELECTED_NODE = "volume.kubernetes.io/selected-node"


def _annotations(obj) -> Dict[str, str]:
    metadata = getattr(obj, "metadata", None)
    return (metadata.annotations if metadata and metadata.annotations else {}) or {}


class ProvisionController:
    DEFAULT_RESYNC_PERIOD = 15.0

    def __init__(
        self,
        api_client: k8s_client.ApiClient,
        provisioner_name: str,
        provisioner,
        server_version: str,
        resync_period: Optional[float] = None,
    ):
        self.core = k8s_client.CoreV1Api(api_client)
        self.storage = k8s_client.StorageV1Api(api_client)
        self.provisioner_name = provisioner_name
        self.provisioner = provisioner
        self.server_version = server_version
        self.resync_period = resync_period if resync_period is not None else self.DEFAULT_RESYNC_PERIOD

    async def run(self, shutdown: ShutdownSignal) -> None:
        """Reconcile every resync period until ``shutdown`` fires."""
        if shutdown.is_set():
            logger.info("Shutdown requested before the controller started, not running")
            return

        logger.info(f"Starting provision controller {self.provisioner_name} (Kubernetes {self.server_version})")
        while not shutdown.is_set():
            try:
                await asyncio.to_thread(self.reconcile_once)
            except Exception as e:
                logger.error(f"Reconcile failed, retrying in {self.resync_period}s: {e}", exc_info=True)
            if await shutdown.wait_for(self.resync_period):
                break
        logger.info(f"Provision controller {self.provisioner_name} stopped")

    def reconcile_once(self) -> None:
        classes = {
            sc.metadata.name: sc
            for sc in self.storage.list_storage_class().items
            if sc.provisioner == self.provisioner_name
        }
        volumes = self.core.list_persistent_volume().items
        existing: Set[str] = {pv.metadata.name for pv in volumes}

        for claim in self.core.list_persistent_volume_claim_for_all_namespaces().items:
            if not self.should_provision(claim, classes):
                continue
            pv_name = self.volume_name_for(claim)
            if pv_name in existing:
                continue
            self._provision_claim(claim, pv_name, classes.get(claim.spec.storage_class_name))

        for pv in volumes:
            if self.should_delete(pv):
                self._delete_volume(pv)

    @staticmethod
    def volume_name_for(claim: k8s_client.V1PersistentVolumeClaim) -> str:
        return f"pvc-{claim.metadata.uid}"

    def should_provision(self, claim: k8s_client.V1PersistentVolumeClaim, classes: Dict[str, k8s_client.V1StorageClass]) -> bool:
        phase = claim.status.phase if claim.status else None
        if phase not in (None, "Pending"):
            return False
        if claim.spec.volume_name:
            return False

        annotations = _annotations(claim)
        requested = annotations.get(ANN_STORAGE_PROVISIONER) or annotations.get(ANN_STORAGE_PROVISIONER_BETA)
        if requested:
            ours = requested == self.provisioner_name
        else:
            ours = claim.spec.storage_class_name in classes
        if not ours:
            return False

        if not annotations.get(ANN_SELECTED_NODE):
            logger.debug(f"Claim {claim.metadata.namespace}/{claim.metadata.name} is waiting for a consumer to be scheduled")
            return False
        return True

    def should_delete(self, pv: k8s_client.V1PersistentVolume) -> bool:
        phase = pv.status.phase if pv.status else None
        return (
            phase == "Released"
            and pv.spec.persistent_volume_reclaim_policy == "Delete"
            and _annotations(pv).get(ANN_PROVISIONED_BY) == self.provisioner_name
        )

    def _provision_claim(self, claim, pv_name: str, storage_class: Optional[k8s_client.V1StorageClass]) -> None:
        claim_key = f"{claim.metadata.namespace}/{claim.metadata.name}"
        options = ProvisionOptions(
            pv_name=pv_name,
            claim=claim,
            selected_node=_annotations(claim)[ANN_SELECTED_NODE],
            storage_class=storage_class,
        )
        try:
            pv = self.provisioner.provision(options)
        except ProvisioningError as e:
            logger.error(f"Failed to provision volume for claim {claim_key}: {e}")
            return

        pv.metadata.annotations = dict(pv.metadata.annotations or {})
        pv.metadata.annotations[ANN_PROVISIONED_BY] = self.provisioner_name
        pv.spec.storage_class_name = claim.spec.storage_class_name
        pv.spec.claim_ref = k8s_client.V1ObjectReference(
            api_version="v1",
            kind="PersistentVolumeClaim",
            namespace=claim.metadata.namespace,
            name=claim.metadata.name,
            uid=claim.metadata.uid,
        )
        try:
            self.core.create_persistent_volume(pv)
        except ApiException as e:
            if e.status == 409:
                logger.debug(f"Volume {pv_name} already exists")
                return
            logger.error(f"Failed to create volume {pv_name} for claim {claim_key}: {e.status} {e.reason}")
            return
        logger.info(f"Volume {pv_name} provisioned for claim {claim_key}")

    def _delete_volume(self, pv: k8s_client.V1PersistentVolume) -> None:
        name = pv.metadata.name
        try:
            self.provisioner.delete(pv)
        except ProvisioningError as e:
            logger.error(f"Failed to delete volume {name}: {e}")
            return
        try:
            self.core.delete_persistent_volume(name)
        except ApiException as e:
            if e.status != 404:
                logger.error(f"Failed to delete volume object {name}: {e.status} {e.reason}")
                return
        logger.info(f"Volume {name} deleted")
