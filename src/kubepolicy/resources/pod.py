#!/usr/bin/env python3
"""
KUBEPOLICY POD
--------------
Reference / Kubernetes API / Workload Resources / Pod.

A bare pod is its own sandbox: its name identifies the sandbox and the
policy annotation goes on the pod's own metadata.

Author: KubePolicy Team
Date: 2026-10-19
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from kubepolicy.core.models import OBJECT, Container, PodSpec, kfield
from kubepolicy.policy.mounts import get_container_mounts_and_storages
from kubepolicy.policy.types import KataMount, SerializedStorage
from kubepolicy.resources.base import WorkloadResource


@dataclass
class Pod(WorkloadResource):
    KIND = "Pod"
    ANNOTATION_PATH = "metadata"

    spec: PodSpec = kfield("spec", OBJECT, PodSpec, required=True)

    def pod_spec(self) -> PodSpec:
        return self.spec

    def sandbox_name(self) -> Optional[str]:
        return self.metadata.name

    def container_mounts_and_storages(self, mounts: List[KataMount],
                                      storages: List[SerializedStorage],
                                      container: Container,
                                      policy_context: Any) -> None:
        if self.spec.volumes is not None:
            get_container_mounts_and_storages(mounts, storages, container, policy_context, self.spec.volumes)

    def containers(self) -> List[Container]:
        return self.spec.containers

    def annotations(self) -> Optional[Dict[str, str]]:
        if self.metadata.annotations is not None:
            return dict(self.metadata.annotations)
        return None

    def uses_host_network(self) -> bool:
        return bool(self.spec.host_network)
