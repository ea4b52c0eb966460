import pytest
from unittest.mock import MagicMock

from kubernetes import client as k8s_client

from local_path_provisioner.config.policy import PolicyConfig

# renamed in kubernetes 29
_ResourceRequirements = getattr(k8s_client, "V1VolumeResourceRequirements", None) or k8s_client.V1ResourceRequirements


@pytest.fixture
def api_client():
    return MagicMock(spec=k8s_client.ApiClient)


@pytest.fixture
def policy():
    return PolicyConfig.model_validate({
        "nodePathMap": [
            {"node": "DEFAULT_PATH_FOR_NON_LISTED_NODES", "paths": ["/opt/local-path-provisioner"]},
            {"node": "node-1", "paths": ["/mnt/disk1"]},
        ]
    })


@pytest.fixture
def make_claim():
    def _make(name="data", namespace="default", uid="1234", storage_class="local-path",
              phase="Pending", volume_name=None, annotations=None, storage="1Gi"):
        return k8s_client.V1PersistentVolumeClaim(
            metadata=k8s_client.V1ObjectMeta(name=name, namespace=namespace, uid=uid, annotations=annotations),
            spec=k8s_client.V1PersistentVolumeClaimSpec(
                storage_class_name=storage_class,
                volume_name=volume_name,
                access_modes=["ReadWriteOnce"],
                resources=_ResourceRequirements(requests={"storage": storage}),
            ),
            status=k8s_client.V1PersistentVolumeClaimStatus(phase=phase),
        )
    return _make


@pytest.fixture
def make_volume():
    def _make(name="pvc-1234", path="/opt/local-path-provisioner/pvc-1234_default_data", node="node-1",
              phase="Released", reclaim_policy="Delete", provisioned_by="rancher.io/local-path"):
        annotations = {"pv.kubernetes.io/provisioned-by": provisioned_by} if provisioned_by else None
        node_affinity = None
        if node:
            node_affinity = k8s_client.V1VolumeNodeAffinity(
                required=k8s_client.V1NodeSelector(node_selector_terms=[
                    k8s_client.V1NodeSelectorTerm(match_expressions=[
                        k8s_client.V1NodeSelectorRequirement(key="kubernetes.io/hostname", operator="In", values=[node])
                    ])
                ])
            )
        return k8s_client.V1PersistentVolume(
            metadata=k8s_client.V1ObjectMeta(name=name, annotations=annotations),
            spec=k8s_client.V1PersistentVolumeSpec(
                persistent_volume_reclaim_policy=reclaim_policy,
                host_path=k8s_client.V1HostPathVolumeSource(path=path) if path else None,
                node_affinity=node_affinity,
            ),
            status=k8s_client.V1PersistentVolumeStatus(phase=phase),
        )
    return _make
