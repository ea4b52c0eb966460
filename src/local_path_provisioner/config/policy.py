# src/local_path_provisioner/config/policy.py
"""
Policy config: which host directories volumes are carved out of, per node.

Example::

    {
      "nodePathMap": [
        {"node": "DEFAULT_PATH_FOR_NON_LISTED_NODES", "paths": ["/opt/local-path-provisioner"]},
        {"node": "worker-1", "paths": ["/mnt/disk1", "/mnt/disk2"]}
      ]
    }

The source is either a path to such a file, or the document itself (which is
what the ConfigMap fallback yields). JSON is parsed through PyYAML, so YAML
documents are accepted too.
"""
import logging
import os
import posixpath
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from ..exceptions import InvalidPolicyConfig

logger = logging.getLogger("local_path_provisioner.config")

DEFAULT_NODE = "DEFAULT_PATH_FOR_NON_LISTED_NODES"


class NodePathEntry(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    node: str = Field(..., min_length=1)
    paths: List[str] = Field(default_factory=list)

    @field_validator("paths")
    @classmethod
    def _check_paths(cls, paths: List[str]) -> List[str]:
        seen = set()
        cleaned = []
        for raw in paths:
            path = posixpath.normpath(raw.strip()) if raw and raw.strip() else ""
            if not posixpath.isabs(path):
                raise ValueError(f"path '{raw}' must be absolute")
            if path == "/":
                raise ValueError("cannot use root ('/') as path")
            if path in seen:
                raise ValueError(f"duplicate path '{path}'")
            seen.add(path)
            cleaned.append(path)
        return cleaned


class PolicyConfig(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    node_path_map: List[NodePathEntry] = Field(default_factory=list, alias="nodePathMap")

    @model_validator(mode="after")
    def _unique_nodes(self) -> "PolicyConfig":
        seen = set()
        for entry in self.node_path_map:
            if entry.node in seen:
                raise ValueError(f"duplicate node '{entry.node}'")
            seen.add(entry.node)
        return self

    def as_dict(self) -> Dict[str, List[str]]:
        return {entry.node: list(entry.paths) for entry in self.node_path_map}

    def paths_for_node(self, node: str) -> Optional[List[str]]:
        """Paths configured for ``node``, else the default entry's, else None."""
        mapping = self.as_dict()
        if node in mapping:
            return mapping[node]
        return mapping.get(DEFAULT_NODE)


def _read_source(source: str) -> str:
    if os.path.isfile(source):
        try:
            with open(source, "r", encoding="utf-8") as f:
                return f.read()
        except OSError as e:
            raise InvalidPolicyConfig(f"cannot read policy config file '{source}': {e}") from e
    return source


def load_policy_config(source: str) -> PolicyConfig:
    """Parse and validate the policy config from a file path or inline content."""
    text = _read_source(source)
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise InvalidPolicyConfig(f"policy config is not valid JSON/YAML: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        # a bare string means the caller passed a path that does not exist
        raise InvalidPolicyConfig(f"policy config file '{source}' does not exist or is not a mapping")

    try:
        policy = PolicyConfig.model_validate(data)
    except ValidationError as e:
        raise InvalidPolicyConfig(f"invalid policy config: {e}") from e

    if not policy.node_path_map:
        logger.warning("Policy config has an empty nodePathMap; every provision request will fail")
    else:
        logger.debug(f"Loaded policy config for nodes: {', '.join(policy.as_dict())}")
    return policy
