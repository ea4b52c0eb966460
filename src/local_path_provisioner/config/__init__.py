from .policy import NodePathEntry, PolicyConfig, load_policy_config, DEFAULT_NODE
from .resolver import ConfigResolver
from .runtime import RuntimeConfig
from .schema import ConfigSchema, SettingSpec, DEFAULT_SCHEMA

__all__ = [
    "ConfigResolver",
    "ConfigSchema",
    "SettingSpec",
    "DEFAULT_SCHEMA",
    "RuntimeConfig",
    "PolicyConfig",
    "NodePathEntry",
    "DEFAULT_NODE",
    "load_policy_config",
]
