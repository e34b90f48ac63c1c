#!/usr/bin/env python3
"""
KUBEPOLICY WORKLOAD RESOURCE - The Contract
-------------------------------------------
Every supported manifest kind implements WorkloadResource so that the
policy generator and the engine never need to know where a kind keeps
its pod spec or which metadata block receives the policy annotation.

A resource holds two views of one document: the typed dataclass fields
(source of truth for policy logic) and `doc_mapping`, a verbatim copy
of the raw round-trip tree (source of truth for re-emission). They are
only touched by initialize() and serialize().

Author: KubePolicy Team
Date: 2026-10-19
"""

import abc
import asyncio
import copy
import logging
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional

from kubepolicy.core.models import (
    OBJECT, Container, KubeObject, ObjectMeta, PodSpec, kfield
)
from kubepolicy.core.settings import PolicySettings
from kubepolicy.images.resolver import ImageResolver
from kubepolicy.manifest.exporter import KubeExporter
from kubepolicy.manifest.validator import KubeValidator
from kubepolicy.policy.annotator import POLICY_ANNOTATION, add_policy_annotation
from kubepolicy.policy.types import KataMount, SerializedStorage

logger = logging.getLogger("kubepolicy.resources")


@dataclass
class WorkloadResource(KubeObject, abc.ABC):
    """
    Base of every resource variant. Subclasses declare their own `spec`
    field and set KIND and ANNOTATION_PATH.
    """
    KIND: ClassVar[str] = ""
    ANNOTATION_PATH: ClassVar[str] = ""

    api_version: str = kfield("apiVersion", required=True)
    kind: str = kfield("kind", required=True)
    metadata: ObjectMeta = kfield("metadata", OBJECT, ObjectMeta, required=True)

    doc_mapping: Any = field(default=None, repr=False, compare=False)
    unsupported_fields: List[str] = field(default_factory=list, repr=False, compare=False)

    @classmethod
    def parse(cls, document: Any) -> "WorkloadResource":
        """
        Builds the typed view of a raw document. Raises
        SchemaRejectionError before anything is constructed.
        """
        KubeValidator().require_valid(document, cls)
        return cls.from_dict(document)

    async def initialize(self, use_cache: bool, raw_document: Any,
                         silent_unsupported_fields: bool = False,
                         resolver: Optional[ImageResolver] = None) -> None:
        """
        Resolves container images, then keeps a private copy of the raw
        document for serialize(). Unsupported fields are recorded in
        `unsupported_fields` for the caller to report.
        """
        await resolve_pod_spec_images(self.pod_spec(), use_cache, resolver)
        self.doc_mapping = copy.deepcopy(raw_document)

        if silent_unsupported_fields:
            self.unsupported_fields = []
        else:
            self.unsupported_fields = KubeValidator().find_unsupported_fields(raw_document, type(self))

    @abc.abstractmethod
    def pod_spec(self) -> PodSpec:
        """The pod spec whose containers are subject to policy."""

    @abc.abstractmethod
    def sandbox_name(self) -> Optional[str]:
        ...

    def namespace(self) -> str:
        return self.metadata.get_namespace()

    @abc.abstractmethod
    def container_mounts_and_storages(self, mounts: List[KataMount],
                                      storages: List[SerializedStorage],
                                      container: Container,
                                      policy_context: Any) -> None:
        ...

    def generate_policy(self, policy_context: Any) -> str:
        return policy_context.generate_policy(self)

    def serialize(self, policy: str, annotation_key: str = POLICY_ANNOTATION) -> str:
        """
        Stamps `policy` into the retained raw document at ANNOTATION_PATH
        and renders it.
        """
        if self.doc_mapping is None:
            raise RuntimeError(f"{self.KIND} serialized before initialize()")
        add_policy_annotation(self.doc_mapping, self.ANNOTATION_PATH, policy, annotation_key)
        return KubeExporter().dump(self.doc_mapping)

    @abc.abstractmethod
    def containers(self) -> List[Container]:
        ...

    def init_containers(self) -> List[Container]:
        return list(self.pod_spec().init_containers or [])

    @abc.abstractmethod
    def annotations(self) -> Optional[Dict[str, str]]:
        ...

    @abc.abstractmethod
    def uses_host_network(self) -> bool:
        ...


async def resolve_pod_spec_images(pod_spec: PodSpec, use_cache: bool,
                                  resolver: Optional[ImageResolver] = None) -> None:
    """
    Resolves every container image of the pod spec. All lookups finish
    before any container is touched: on failure or cancellation no
    container carries a half-resolved image.

    The first failed lookup cancels the others, and every lookup task is
    awaited before the error propagates. Without an explicit resolver,
    one is built from the bundled settings so `use_cache` reaches the
    on-disk image cache.
    """
    targets = pod_spec.all_containers()
    if not targets:
        return

    owned = resolver is None
    if owned:
        resolver = ImageResolver.from_settings(PolicySettings.load())

    tasks = [asyncio.ensure_future(resolver.resolve(c.image, use_cache)) for c in targets]
    try:
        await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        if owned:
            await resolver.close()

    for task in tasks:
        if not task.cancelled() and task.exception() is not None:
            raise task.exception()

    for container, task in zip(targets, tasks):
        info = task.result()
        container.image = info.reference
        container.image_digest = info.digest
        container.image_config = info.config
