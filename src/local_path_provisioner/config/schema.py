# src/local_path_provisioner/config/schema.py
"""
Description of every setting the provisioner resolves at startup.

The schema is a frozen value handed to the resolver, so nothing about flag
names or defaults lives in module-level mutable state.
"""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class SettingSpec(BaseModel):
    """Where a single setting may come from, in priority order."""
    model_config = ConfigDict(frozen=True)

    flag: str = Field(..., description="CLI option name without leading dashes")
    env: Optional[str] = Field(None, description="Environment variable consulted after the flag")
    default: Optional[str] = Field(None, description="Built-in fallback")
    name: Optional[str] = Field(None, description="Name reported when the setting stays empty; the flag name when unset")

    @property
    def reported_name(self) -> str:
        return self.name or self.flag

    def describe_sources(self) -> List[str]:
        sources = [f"--{self.flag}"]
        if self.env:
            sources.append(f"${self.env}")
        if self.default:
            sources.append(f"default '{self.default}'")
        return sources


class ConfigSchema(BaseModel):
    model_config = ConfigDict(frozen=True)

    provisioner_name: SettingSpec = SettingSpec(
        flag="provisioner-name", env="PROVISIONER_NAME", default="rancher.io/local-path"
    )
    namespace: SettingSpec = SettingSpec(
        flag="namespace", env="POD_NAMESPACE", default="local-path-storage"
    )
    helper_image: SettingSpec = SettingSpec(
        flag="helper-image", env="HELPER_IMAGE", default="busybox"
    )
    config: SettingSpec = SettingSpec(flag="config", name="configFile")
    kubeconfig: SettingSpec = SettingSpec(flag="kubeconfig")

    # ConfigMap consulted when --config is empty
    configmap_name: str = "local-path-config"
    configmap_key: str = "config.json"

    default_kubeconfig_path: str = ".kube/config"


DEFAULT_SCHEMA = ConfigSchema()
