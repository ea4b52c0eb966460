# src/local_path_provisioner/kube.py
"""
Control-plane connection helpers.

In-cluster service account credentials always win; a kubeconfig file is only
consulted when the process is not running inside a pod.
"""
import logging
import os
from typing import Mapping, Optional

import yaml
from kubernetes import client as k8s_client
from kubernetes import config as k8s_config
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from .config.schema import DEFAULT_SCHEMA
from .exceptions import ConfigNotFound, ControlPlaneConnectionError, ControlPlaneIncompatible

logger = logging.getLogger("local_path_provisioner.kube")


def home_dir(env: Optional[Mapping[str, str]] = None) -> str:
    env = os.environ if env is None else env
    return env.get("HOME") or env.get("USERPROFILE", "")


def default_kubeconfig_path(env: Optional[Mapping[str, str]] = None) -> str:
    home = home_dir(env)
    if not home:
        return ""
    return os.path.join(home, DEFAULT_SCHEMA.default_kubeconfig_path)


def resolve_connection(kubeconfig: str = "", env: Optional[Mapping[str, str]] = None) -> k8s_client.ApiClient:
    """
    Build an ApiClient for the control plane.

    Args:
        kubeconfig: Path to a kubeconfig file. Ignored when in-cluster credentials exist;
                    when empty, ``~/.kube/config`` is used.
        env: Environment used to locate the home directory (defaults to ``os.environ``).

    Raises:
        ConfigNotFound: the kubeconfig file does not exist.
        ControlPlaneConnectionError: the kubeconfig could not be loaded.
    """
    configuration = k8s_client.Configuration()
    try:
        k8s_config.load_incluster_config(client_configuration=configuration)
        logger.info("Using in-cluster Kubernetes configuration")
        return k8s_client.ApiClient(configuration)
    except k8s_config.ConfigException as e:
        logger.debug(f"In-cluster configuration unavailable: {e}")

    path = kubeconfig or default_kubeconfig_path(env)
    if not path or not os.path.exists(path):
        raise ConfigNotFound(path)

    try:
        api_client = k8s_config.new_client_from_config(config_file=path)
    except (k8s_config.ConfigException, yaml.YAMLError, OSError, ValueError) as e:
        raise ControlPlaneConnectionError(f"unable to get client config from '{path}': {e}") from e

    logger.info(f"Using kubeconfig {path}")
    return api_client


def probe_server_version(api_client: k8s_client.ApiClient) -> str:
    """Ask the API server for its version. Doubles as a readiness check."""
    try:
        info = k8s_client.VersionApi(api_client).get_code()
    except ApiException as e:
        raise ControlPlaneIncompatible(
            f"Cannot start Provisioner: failed to get Kubernetes server version: {e.status} {e.reason}"
        ) from e
    except (HTTPError, OSError) as e:
        raise ControlPlaneConnectionError(f"Cannot start Provisioner: API server unreachable: {e}") from e

    version = getattr(info, "git_version", None)
    if not version:
        raise ControlPlaneIncompatible("Cannot start Provisioner: API server did not report a version")
    logger.info(f"Connected to Kubernetes {version}")
    return version
