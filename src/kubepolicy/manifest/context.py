#!/usr/bin/env python3
"""
KUBEPOLICY MANIFEST CONTEXT
---------------------------
State for one manifest file while it moves through loading, policy
generation and export. Each YAML document keeps its own status so one
bad document never hides the others.

Author: KubePolicy Team
Date: 2026-10-19
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional

from kubepolicy.resources.base import WorkloadResource

# Document states
PENDING = "PENDING"
PASSTHROUGH = "PASSTHROUGH"
POLICY_APPLIED = "POLICY_APPLIED"
REJECTED = "REJECTED"
FAILED = "FAILED"


@dataclass
class ManifestDocument:
    """One document of a (possibly multi-document) manifest file."""
    index: int                                   # Position in the file, 0-based
    raw: Any                                     # The round-trip tree as loaded
    kind: Optional[str] = None                   # The declared kind, if any
    resource: Optional[WorkloadResource] = None  # Typed view for policy-bearing kinds
    status: str = PENDING
    error: Optional[str] = None
    policy: Optional[str] = None                 # Generated policy annotation value
    rendered: Optional[str] = None               # Final YAML for this document
    warnings: List[str] = field(default_factory=list)

    @property
    def name(self) -> str:
        metadata = self.raw.get("metadata") if isinstance(self.raw, dict) else None
        if isinstance(metadata, dict) and metadata.get("name"):
            return str(metadata["name"])
        return f"document-{self.index}"


@dataclass
class ManifestContext:
    """
    Created by the ManifestPipeline and enriched by the engine as each
    document is initialized, annotated and rendered.
    """
    raw_text: str
    documents: List[ManifestDocument] = field(default_factory=list)

    @property
    def kinds(self) -> List[str]:
        return [d.kind or "Unknown" for d in self.documents]

    @property
    def failed(self) -> List[ManifestDocument]:
        return [d for d in self.documents if d.status in (REJECTED, FAILED)]
