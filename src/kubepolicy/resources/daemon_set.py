#!/usr/bin/env python3
"""
KUBEPOLICY DAEMONSET
--------------------
Reference / Kubernetes API / Workload Resources / DaemonSet.

Author: KubePolicy Team
Date: 2026-10-19
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from kubepolicy.core.models import INT, OBJECT, OPAQUE, KubeObject, LabelSelector, PodTemplateSpec, kfield
from kubepolicy.resources.templated import TemplatedWorkload


@dataclass
class DaemonSetSpec(KubeObject):
    selector: Optional[LabelSelector] = kfield("selector", OBJECT, LabelSelector)
    update_strategy: Optional[Dict[str, Any]] = kfield("updateStrategy", OPAQUE)
    min_ready_seconds: Optional[int] = kfield("minReadySeconds", INT)
    revision_history_limit: Optional[int] = kfield("revisionHistoryLimit", INT)
    template: PodTemplateSpec = kfield("template", OBJECT, PodTemplateSpec, required=True)


@dataclass
class DaemonSet(TemplatedWorkload):
    KIND = "DaemonSet"

    spec: DaemonSetSpec = kfield("spec", OBJECT, DaemonSetSpec, required=True)
