#!/usr/bin/env python3
"""
KUBEPOLICY JOB
--------------
Reference / Kubernetes API / Workload Resources / Job.

Run-to-completion pods; every attempt is a fresh sandbox.

Author: KubePolicy Team
Date: 2026-10-19
"""

from dataclasses import dataclass
from typing import Optional

from kubepolicy.core.models import (
    BOOL, INT, OBJECT, STR, KubeObject, LabelSelector, PodTemplateSpec, kfield
)
from kubepolicy.resources.templated import TemplatedWorkload


@dataclass
class JobSpec(KubeObject):
    parallelism: Optional[int] = kfield("parallelism", INT)
    completions: Optional[int] = kfield("completions", INT)
    completion_mode: Optional[str] = kfield("completionMode", STR)
    backoff_limit: Optional[int] = kfield("backoffLimit", INT)
    active_deadline_seconds: Optional[int] = kfield("activeDeadlineSeconds", INT)
    ttl_seconds_after_finished: Optional[int] = kfield("ttlSecondsAfterFinished", INT)
    manual_selector: Optional[bool] = kfield("manualSelector", BOOL)
    suspend: Optional[bool] = kfield("suspend", BOOL)
    selector: Optional[LabelSelector] = kfield("selector", OBJECT, LabelSelector)
    template: PodTemplateSpec = kfield("template", OBJECT, PodTemplateSpec, required=True)


@dataclass
class Job(TemplatedWorkload):
    KIND = "Job"

    spec: JobSpec = kfield("spec", OBJECT, JobSpec, required=True)
