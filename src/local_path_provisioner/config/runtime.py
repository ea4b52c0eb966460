# src/local_path_provisioner/config/runtime.py
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RuntimeConfig(BaseModel):
    """Fully resolved settings. Immutable once built."""
    model_config = ConfigDict(frozen=True)

    provisioner_name: str = Field(..., description="Name the provisioner registers under")
    namespace: str = Field(..., description="Namespace the provisioner runs in")
    helper_image: str = Field(..., description="Image used by helper pods for host directory setup and teardown")
    config_source: str = Field(..., description="Policy config file path, or content read from the ConfigMap")
    kubeconfig: Optional[str] = Field(None, description="Kubeconfig path; empty means in-cluster identity")

    @field_validator("provisioner_name", "namespace", "helper_image", "config_source")
    @classmethod
    def _not_empty(cls, value: str, info) -> str:
        if not value or not value.strip():
            raise ValueError(f"{info.field_name} must not be empty")
        return value

    @property
    def uses_in_cluster_identity(self) -> bool:
        return not self.kubeconfig
