#!/usr/bin/env python3
"""
KUBEPOLICY TEMPLATED WORKLOAD
-----------------------------
Shared behaviour for kinds that embed a pod template under
`spec.template` (Deployment, DaemonSet, ReplicaSet, Job). Each replica
the controller creates is its own sandbox, so none of them has a
single sandbox name, and the policy is annotated on the template
metadata that gets copied onto every pod.

Author: KubePolicy Team
Date: 2026-10-19
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from kubepolicy.core.models import Container, PodSpec, PodTemplateSpec
from kubepolicy.policy.mounts import get_container_mounts_and_storages
from kubepolicy.policy.types import KataMount, SerializedStorage
from kubepolicy.resources.base import WorkloadResource


@dataclass
class TemplatedWorkload(WorkloadResource):
    ANNOTATION_PATH = "spec.template.metadata"

    def pod_template(self) -> PodTemplateSpec:
        return self.spec.template

    def pod_spec(self) -> PodSpec:
        return self.pod_template().spec

    def sandbox_name(self) -> Optional[str]:
        return None

    def container_mounts_and_storages(self, mounts: List[KataMount],
                                      storages: List[SerializedStorage],
                                      container: Container,
                                      policy_context: Any) -> None:
        volumes = self.pod_spec().volumes
        if volumes is not None:
            get_container_mounts_and_storages(mounts, storages, container, policy_context, volumes)

    def containers(self) -> List[Container]:
        return self.pod_spec().containers

    def annotations(self) -> Optional[Dict[str, str]]:
        annotations = self.pod_template().metadata.annotations
        if annotations is not None:
            return dict(annotations)
        return None

    def uses_host_network(self) -> bool:
        host_network = self.pod_spec().host_network
        if host_network is not None:
            return host_network
        return False
