# src/local_path_provisioner/config/resolver.py
"""
Resolves the provisioner's runtime settings.

For every setting the first non-empty source wins: explicit flag, then
environment variable, then the built-in default. The policy config source has
no default; when its flag is empty it is read once from the
``local-path-config`` ConfigMap in the resolved namespace.
"""
import logging
from typing import Mapping, Optional, Tuple

from kubernetes import client as k8s_client
from kubernetes.client.rest import ApiException

from ..exceptions import MissingRequiredConfig
from .runtime import RuntimeConfig
from .schema import DEFAULT_SCHEMA, ConfigSchema, SettingSpec

logger = logging.getLogger("local_path_provisioner.config")


def _clean(value: Optional[str]) -> str:
    return value.strip() if isinstance(value, str) else ""


class ConfigResolver:
    """Turns flags, environment and cluster state into a RuntimeConfig."""

    def __init__(self, schema: ConfigSchema = DEFAULT_SCHEMA):
        self.schema = schema

    def pick(self, name: str, spec: SettingSpec, flags: Mapping[str, Optional[str]], env: Mapping[str, str]) -> Tuple[str, str]:
        """Return ``(value, source)`` for the first non-empty source, or ``("", "")``."""
        value = _clean(flags.get(name))
        if value:
            return value, f"--{spec.flag}"
        if spec.env:
            value = _clean(env.get(spec.env))
            if value:
                return value, f"${spec.env}"
        value = _clean(spec.default)
        if value:
            return value, "default"
        return "", ""

    def require(self, name: str, flags: Mapping[str, Optional[str]], env: Mapping[str, str]) -> str:
        spec: SettingSpec = getattr(self.schema, name)
        value, source = self.pick(name, spec, flags, env)
        if not value:
            raise MissingRequiredConfig(spec.reported_name, spec.describe_sources())
        logger.debug(f"Resolved {name}={value!r} from {source}")
        return value

    def resolve(
        self,
        flags: Mapping[str, Optional[str]],
        env: Mapping[str, str],
        api_client: Optional[k8s_client.ApiClient] = None,
    ) -> RuntimeConfig:
        provisioner_name = self.require("provisioner_name", flags, env)
        namespace = self.require("namespace", flags, env)

        config_source = _clean(flags.get("config"))
        if config_source:
            logger.debug(f"Using policy config from --{self.schema.config.flag}: {config_source}")
        else:
            config_source = self.config_from_configmap(api_client, namespace)

        helper_image = self.require("helper_image", flags, env)

        return RuntimeConfig(
            provisioner_name=provisioner_name,
            namespace=namespace,
            helper_image=helper_image,
            config_source=config_source,
            kubeconfig=_clean(flags.get("kubeconfig")) or None,
        )

    def config_from_configmap(self, api_client: Optional[k8s_client.ApiClient], namespace: str) -> str:
        """Read the policy config from the fallback ConfigMap. No retries."""
        name = self.schema.configmap_name
        key = self.schema.configmap_key
        location = f"ConfigMap {namespace}/{name}"
        sources = [f"--{self.schema.config.flag}", location]

        if api_client is None:
            raise MissingRequiredConfig(self.schema.config.reported_name, sources, "no control-plane client available for the fallback lookup")

        logger.info(f"--{self.schema.config.flag} is empty, reading '{key}' from {location}")
        try:
            configmap = k8s_client.CoreV1Api(api_client).read_namespaced_config_map(name, namespace)
        except ApiException as e:
            raise MissingRequiredConfig(
                self.schema.config.reported_name, sources, f"it also does not exist at {location} ({e.status} {e.reason})"
            ) from e

        data = configmap.data or {}
        if not _clean(data.get(key)):
            raise MissingRequiredConfig(self.schema.config.reported_name, sources, f"'{key}' does not exist in {location}")
        return data[key]
