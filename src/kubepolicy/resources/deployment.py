#!/usr/bin/env python3
"""
KUBEPOLICY DEPLOYMENT
---------------------
Reference / Kubernetes API / Workload Resources / Deployment.

A replicated workload: replicas, selector and rolling-update strategy
are modelled so they round-trip, but only the pod template feeds the
policy.

Author: KubePolicy Team
Date: 2026-10-19
"""

from dataclasses import dataclass
from typing import Optional, Union

from kubepolicy.core.models import (
    BOOL, INT, INT_OR_STR, OBJECT, KubeObject, LabelSelector, PodTemplateSpec, kfield
)
from kubepolicy.resources.templated import TemplatedWorkload


@dataclass
class RollingUpdateDeployment(KubeObject):
    # Either an absolute count or a percentage such as "25%"
    max_surge: Optional[Union[int, str]] = kfield("maxSurge", INT_OR_STR)
    max_unavailable: Optional[Union[int, str]] = kfield("maxUnavailable", INT_OR_STR)


@dataclass
class DeploymentStrategy(KubeObject):
    type_: Optional[str] = kfield("type")
    rolling_update: Optional[RollingUpdateDeployment] = kfield(
        "rollingUpdate", OBJECT, RollingUpdateDeployment)


@dataclass
class DeploymentSpec(KubeObject):
    replicas: Optional[int] = kfield("replicas", INT)
    selector: Optional[LabelSelector] = kfield("selector", OBJECT, LabelSelector)
    strategy: Optional[DeploymentStrategy] = kfield("strategy", OBJECT, DeploymentStrategy)
    min_ready_seconds: Optional[int] = kfield("minReadySeconds", INT)
    revision_history_limit: Optional[int] = kfield("revisionHistoryLimit", INT)
    progress_deadline_seconds: Optional[int] = kfield("progressDeadlineSeconds", INT)
    paused: Optional[bool] = kfield("paused", BOOL)
    template: PodTemplateSpec = kfield("template", OBJECT, PodTemplateSpec, required=True)


@dataclass
class Deployment(TemplatedWorkload):
    KIND = "Deployment"

    spec: DeploymentSpec = kfield("spec", OBJECT, DeploymentSpec, required=True)
