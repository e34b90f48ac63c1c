#!/usr/bin/env python3
"""
KUBEPOLICY REPLICASET
---------------------
Reference / Kubernetes API / Workload Resources / ReplicaSet.

Author: KubePolicy Team
Date: 2026-10-19
"""

from dataclasses import dataclass
from typing import Optional

from kubepolicy.core.models import INT, OBJECT, KubeObject, LabelSelector, PodTemplateSpec, kfield
from kubepolicy.resources.templated import TemplatedWorkload


@dataclass
class ReplicaSetSpec(KubeObject):
    replicas: Optional[int] = kfield("replicas", INT)
    min_ready_seconds: Optional[int] = kfield("minReadySeconds", INT)
    selector: Optional[LabelSelector] = kfield("selector", OBJECT, LabelSelector)
    template: PodTemplateSpec = kfield("template", OBJECT, PodTemplateSpec, required=True)


@dataclass
class ReplicaSet(TemplatedWorkload):
    KIND = "ReplicaSet"

    spec: ReplicaSetSpec = kfield("spec", OBJECT, ReplicaSetSpec, required=True)
