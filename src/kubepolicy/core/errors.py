#!/usr/bin/env python3
"""
KUBEPOLICY ERRORS
-----------------
Exception hierarchy shared by the loader, resolver and annotator.
The engine converts every one of these into a per-document result entry.

Author: KubePolicy Team
Date: 2026-10-19
"""

from typing import Optional


class KubePolicyError(Exception):
    """Base class for all KubePolicy failures."""


class SchemaRejectionError(KubePolicyError):
    """
    Raised when a document does not match the structure of its kind.
    No typed object is built for a rejected document.
    """

    def __init__(self, path: str, message: str):
        self.path = path
        super().__init__(f"{path or '<root>'}: {message}")


class UnsupportedKindError(SchemaRejectionError):
    """Raised for a top-level kind with no registered resource variant."""

    def __init__(self, kind: Optional[str]):
        self.kind = kind
        super().__init__("kind", f"Unsupported resource kind '{kind}'")


class ResolverError(KubePolicyError):
    """Raised when a container image cannot be resolved."""

    def __init__(self, image: str, reason: str):
        self.image = image
        self.reason = reason
        super().__init__(f"Failed to resolve image '{image}': {reason}")


class AnnotationInjectionError(KubePolicyError):
    """Raised when the annotation target path is missing from the raw document."""

    def __init__(self, path: str, message: str):
        self.path = path
        super().__init__(f"Cannot annotate '{path}': {message}")
