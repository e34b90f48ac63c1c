#!/usr/bin/env python3
"""
KUBEPOLICY RESOURCE REGISTRY
----------------------------
The closed set of manifest kinds that receive a policy. Dispatch goes
through this table only; a kind missing here never reaches a variant.

Author: KubePolicy Team
Date: 2026-10-19
"""

from typing import Any, Dict, Type

from kubepolicy.core.errors import UnsupportedKindError
from kubepolicy.resources.base import WorkloadResource
from kubepolicy.resources.daemon_set import DaemonSet
from kubepolicy.resources.deployment import Deployment
from kubepolicy.resources.job import Job
from kubepolicy.resources.pod import Pod
from kubepolicy.resources.replica_set import ReplicaSet

RESOURCE_KINDS: Dict[str, Type[WorkloadResource]] = {
    cls.KIND: cls for cls in (Pod, Deployment, DaemonSet, ReplicaSet, Job)
}


def resource_class(kind: Any) -> Type[WorkloadResource]:
    cls = RESOURCE_KINDS.get(kind) if isinstance(kind, str) else None
    if cls is None:
        raise UnsupportedKindError(kind)
    return cls


def new_resource(document: Any) -> WorkloadResource:
    """Parses a raw document into the typed variant for its kind."""
    kind = document.get("kind") if isinstance(document, dict) else None
    return resource_class(kind).parse(document)
