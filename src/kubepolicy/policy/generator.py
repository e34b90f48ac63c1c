#!/usr/bin/env python3
"""
KUBEPOLICY GENERATOR - Agent Policy
-----------------------------------
Builds the policy text for one workload resource: the Rego rules
preamble followed by a `policy_data` document describing the sandbox
and each container it may run.

The generator only reads the resource through the WorkloadResource
interface, so it never needs to know the manifest kind.

Author: KubePolicy Team
Date: 2026-10-19
"""

import base64
import json
import logging
from typing import Any, Dict, List, Optional

from kubepolicy.core.models import Container
from kubepolicy.core.settings import PolicySettings
from kubepolicy.policy.types import KataMount, SerializedStorage

logger = logging.getLogger("kubepolicy.generator")


class AgentPolicy:
    """
    The policy context handed to every resource. Holds the settings and
    the rules preamble; stateless across resources.
    """

    def __init__(self, settings: Optional[PolicySettings] = None, rules: Optional[str] = None):
        self.settings = settings or PolicySettings()
        self.rules = rules if rules is not None else self.settings.load_rules()

    def generate_policy(self, resource: Any) -> str:
        """
        Returns the policy for `resource`, base64 encoded when the
        settings ask for it (the form the sandbox agent reads from the
        annotation).
        """
        text = self.policy_text(resource)
        if self.settings.encode_policy:
            return base64.b64encode(text.encode("utf-8")).decode("ascii")
        return text

    def policy_text(self, resource: Any) -> str:
        data = self.policy_data(resource)
        rules = self.rules if self.rules.endswith("\n") else self.rules + "\n"
        return f"{rules}\npolicy_data := {json.dumps(data, indent=2, sort_keys=True)}\n"

    def policy_data(self, resource: Any) -> Dict[str, Any]:
        containers = []
        for container in resource.init_containers():
            containers.append(self._container_entry(resource, container, init=True))
        for container in resource.containers():
            containers.append(self._container_entry(resource, container, init=False))

        return {
            "sandbox": {
                "name": resource.sandbox_name(),
                "namespace": resource.namespace(),
                "host_network": resource.uses_host_network(),
                "pause_image": self.settings.pause_container_image,
                "annotations": self._sandbox_annotations(resource.annotations()),
            },
            "containers": containers,
        }

    def _sandbox_annotations(self, annotations: Optional[Dict[str, str]]) -> Dict[str, str]:
        """User annotations, minus any previously generated policy."""
        if annotations is None:
            return {}
        if self.settings.policy_annotation in annotations:
            logger.info("Replacing the existing policy annotation")
        return {k: v for k, v in sorted(annotations.items()) if k != self.settings.policy_annotation}

    def _container_entry(self, resource: Any, container: Container, init: bool) -> Dict[str, Any]:
        mounts: List[KataMount] = []
        storages: List[SerializedStorage] = []
        resource.container_mounts_and_storages(mounts, storages, container, self)

        config = container.image_config
        return {
            "name": container.name,
            "init": init,
            "image": container.image,
            "image_digest": container.image_digest,
            "command": container.process_args(),
            "env": container.process_env(),
            "working_dir": container.working_dir or (config.working_dir if config else "") or "/",
            "user": config.user if config else "",
            "privileged": container.is_privileged(),
            "read_only_root": container.read_only_root(),
            "mounts": [m.to_dict() for m in mounts],
            "storages": [s.to_dict() for s in storages],
        }
