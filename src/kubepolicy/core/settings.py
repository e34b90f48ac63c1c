#!/usr/bin/env python3
"""
KUBEPOLICY SETTINGS
-------------------
Loads the JSON settings file that parameterizes policy generation:
annotation key, rules file, mount prefixes, registry access and cache.

Author: KubePolicy Team
Date: 2026-10-19
"""

import json
import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger("kubepolicy.settings")

CATALOG_DIR = Path(__file__).resolve().parent.parent / "catalog"
DEFAULT_SETTINGS_FILE = "settings.json"
DEFAULT_RULES_FILE = "rules.rego"


@dataclass
class PolicySettings:
    """
    Tunables for a policy generation run. Every key of the JSON file maps
    onto one attribute; unknown keys are rejected.
    """
    policy_annotation: str = "io.katacontainers.config.agent.policy"
    rules_path: Optional[str] = None
    pause_container_image: str = "registry.k8s.io/pause:3.9"
    emptydir_source_prefix: str = "^$(cpath)/$(sandbox-id)/local/"
    shared_files_prefix: str = "^$(cpath)/$(bundle-id)-[a-z0-9]{16}-"
    cache_path: str = "~/.cache/kubepolicy/images.json"
    request_timeout: float = 30.0
    insecure_registries: List[str] = field(default_factory=list)
    platform_os: str = "linux"
    platform_architecture: str = "amd64"
    passthrough_kinds: List[str] = field(default_factory=lambda: [
        "ConfigMap", "Secret", "Service", "ServiceAccount", "Namespace",
        "PersistentVolumeClaim", "Role", "RoleBinding", "ClusterRole",
        "ClusterRoleBinding", "Ingress", "NetworkPolicy",
    ])
    encode_policy: bool = True

    @classmethod
    def load(cls, path: Optional[str] = None) -> "PolicySettings":
        """
        Reads settings from `path`, or from the bundled catalog when no
        path is given.
        """
        resolved = Path(path).resolve() if path else resolve_catalog_file(DEFAULT_SETTINGS_FILE)
        try:
            with open(resolved, 'r') as f:
                data = json.load(f)
        except (FileNotFoundError, json.JSONDecodeError) as e:
            logger.error(f"Critical Failure: Unable to load settings from {resolved}")
            raise RuntimeError(f"Failed to load settings: {str(e)}")

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PolicySettings":
        if not isinstance(data, dict):
            raise RuntimeError("Failed to load settings: top-level value must be an object")
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise RuntimeError(f"Failed to load settings: unknown keys {', '.join(unknown)}")
        return cls(**data)

    def resolved_cache_path(self) -> Path:
        return Path(os.path.expanduser(self.cache_path))

    def load_rules(self) -> str:
        """Returns the Rego preamble placed before the generated policy data."""
        rules_file = Path(self.rules_path) if self.rules_path else resolve_catalog_file(DEFAULT_RULES_FILE)
        try:
            return rules_file.read_text(encoding='utf-8')
        except OSError as e:
            raise RuntimeError(f"Failed to load policy rules from {rules_file}: {str(e)}")


def resolve_catalog_file(name: str) -> Path:
    """
    Locates a bundled catalog file: the package catalog first, then a
    catalog/ directory at the project root for source checkouts.
    """
    search_locations = [
        CATALOG_DIR / name,
        CATALOG_DIR.parents[2] / "catalog" / name,
    ]
    for candidate in search_locations:
        if candidate.exists():
            return candidate
    return search_locations[0]
