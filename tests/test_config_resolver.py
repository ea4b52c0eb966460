import pytest
from unittest.mock import patch, MagicMock

from kubernetes import client as k8s_client
from kubernetes.client.rest import ApiException
from pydantic import ValidationError

from local_path_provisioner.config import ConfigResolver, ConfigSchema, SettingSpec, RuntimeConfig
from local_path_provisioner.exceptions import MissingRequiredConfig

CORE_API = "local_path_provisioner.config.resolver.k8s_client.CoreV1Api"


def _flags(**overrides):
    flags = {
        "config": "",
        "provisioner_name": "",
        "namespace": "",
        "helper_image": "",
        "kubeconfig": "",
    }
    flags.update(overrides)
    return flags


def test_resolve_explicit_flags_skips_cluster_lookup(api_client):
    flags = _flags(
        provisioner_name="custom.io/provisioner",
        namespace="storage-ns",
        helper_image="busybox:1.0",
        config="/etc/cfg.json",
    )
    with patch(CORE_API) as mock_core:
        config = ConfigResolver().resolve(flags, {}, api_client)

    assert config == RuntimeConfig(
        provisioner_name="custom.io/provisioner",
        namespace="storage-ns",
        helper_image="busybox:1.0",
        config_source="/etc/cfg.json",
        kubeconfig=None,
    )
    mock_core.assert_not_called()


@pytest.mark.parametrize("flag, env, expected", [
    ("from-flag", "from-env", "from-flag"),
    ("", "from-env", "from-env"),
    (None, "from-env", "from-env"),
    ("", "", "default"),
    ("  ", "  ", "default"),
])
def test_precedence_flag_env_default(flag, env, expected):
    schema = ConfigSchema(namespace=SettingSpec(flag="namespace", env="POD_NAMESPACE", default="default"))
    resolver = ConfigResolver(schema)
    value = resolver.require("namespace", {"namespace": flag}, {"POD_NAMESPACE": env})
    assert value == expected


def test_resolve_env_and_defaults(api_client):
    env = {"PROVISIONER_NAME": "env.io/provisioner", "POD_NAMESPACE": "env-ns"}
    config = ConfigResolver().resolve(_flags(config="/etc/cfg.json"), env, api_client)

    assert config.provisioner_name == "env.io/provisioner"
    assert config.namespace == "env-ns"
    assert config.helper_image == "busybox"


def test_resolve_builtin_defaults(api_client):
    config = ConfigResolver().resolve(_flags(config="/etc/cfg.json"), {}, api_client)

    assert config.provisioner_name == "rancher.io/local-path"
    assert config.namespace == "local-path-storage"
    assert config.helper_image == "busybox"
    assert config.uses_in_cluster_identity


def test_resolve_strips_whitespace(api_client):
    flags = _flags(config=" /etc/cfg.json ", namespace=" storage-ns ", kubeconfig=" /tmp/kube ")
    config = ConfigResolver().resolve(flags, {}, api_client)

    assert config.config_source == "/etc/cfg.json"
    assert config.namespace == "storage-ns"
    assert config.kubeconfig == "/tmp/kube"
    assert not config.uses_in_cluster_identity


def test_missing_setting_without_default_names_flag_and_sources(api_client):
    schema = ConfigSchema(provisioner_name=SettingSpec(flag="provisioner-name", env="PROVISIONER_NAME"))
    with pytest.raises(MissingRequiredConfig) as exc_info:
        ConfigResolver(schema).resolve(_flags(config="/etc/cfg.json"), {}, api_client)

    assert exc_info.value.field == "provisioner-name"
    assert "--provisioner-name" in str(exc_info.value)
    assert "$PROVISIONER_NAME" in str(exc_info.value)


def test_config_fallback_reads_configmap(api_client):
    with patch(CORE_API) as mock_core:
        mock_core.return_value.read_namespaced_config_map.return_value = k8s_client.V1ConfigMap(
            data={"config.json": "{}"}
        )
        config = ConfigResolver().resolve(_flags(namespace="storage-ns"), {}, api_client)

    assert config.config_source == "{}"
    mock_core.assert_called_once_with(api_client)
    mock_core.return_value.read_namespaced_config_map.assert_called_once_with("local-path-config", "storage-ns")


def test_config_fallback_missing_configmap(api_client):
    with patch(CORE_API) as mock_core:
        mock_core.return_value.read_namespaced_config_map.side_effect = ApiException(status=404, reason="Not Found")
        with pytest.raises(MissingRequiredConfig) as exc_info:
            ConfigResolver().resolve(_flags(namespace="storage-ns"), {}, api_client)

    assert exc_info.value.field == "configFile"
    assert "--config" in str(exc_info.value)
    assert "storage-ns/local-path-config" in str(exc_info.value)
    # a single lookup, no retries
    assert mock_core.return_value.read_namespaced_config_map.call_count == 1


@pytest.mark.parametrize("data", [None, {}, {"other.json": "{}"}, {"config.json": "   "}])
def test_config_fallback_missing_key(api_client, data):
    with patch(CORE_API) as mock_core:
        mock_core.return_value.read_namespaced_config_map.return_value = k8s_client.V1ConfigMap(data=data)
        with pytest.raises(MissingRequiredConfig) as exc_info:
            ConfigResolver().resolve(_flags(namespace="storage-ns"), {}, api_client)

    assert "config.json" in str(exc_info.value)


def test_config_fallback_without_client():
    with pytest.raises(MissingRequiredConfig) as exc_info:
        ConfigResolver().resolve(_flags(), {}, None)
    assert exc_info.value.field == "configFile"
    assert "--config" in str(exc_info.value)


def test_config_fallback_uses_resolved_namespace(api_client):
    with patch(CORE_API) as mock_core:
        mock_core.return_value.read_namespaced_config_map.return_value = k8s_client.V1ConfigMap(
            data={"config.json": '{"nodePathMap": []}'}
        )
        ConfigResolver().resolve(_flags(), {"POD_NAMESPACE": "env-ns"}, api_client)

    mock_core.return_value.read_namespaced_config_map.assert_called_once_with("local-path-config", "env-ns")


def test_runtime_config_is_immutable():
    config = RuntimeConfig(
        provisioner_name="p", namespace="ns", helper_image="busybox", config_source="/etc/cfg.json"
    )
    with pytest.raises(ValidationError):
        config.namespace = "other"


def test_runtime_config_rejects_empty_fields():
    with pytest.raises(ValidationError) as exc_info:
        RuntimeConfig(provisioner_name="p", namespace="", helper_image="busybox", config_source="/etc/cfg.json")
    assert "namespace must not be empty" in str(exc_info.value)
