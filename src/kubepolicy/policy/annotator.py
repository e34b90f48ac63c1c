#!/usr/bin/env python3
"""
KUBEPOLICY ANNOTATOR - Policy Injection
---------------------------------------
Stamps the generated policy into the retained round-trip document as
an annotation, at a kind-specific metadata path. The rest of the tree
(key order, comments, unmodelled fields) is left untouched.

Author: KubePolicy Team
Date: 2026-10-19
"""

from typing import Any
from ruamel.yaml.comments import CommentedMap

from kubepolicy.core.errors import AnnotationInjectionError

POLICY_ANNOTATION = "io.katacontainers.config.agent.policy"


class PolicyAnnotator:
    """
    Walks a dotted path ('spec.template.metadata') to a metadata mapping
    and sets one annotation key there.
    """

    def __init__(self, annotation_key: str = POLICY_ANNOTATION):
        self.annotation_key = annotation_key

    def inject(self, doc: Any, path: str, value: str) -> Any:
        """
        Sets `annotation_key` under `<path>.annotations`. Running it again
        with the same value leaves the document unchanged.
        """
        metadata = self._resolve(doc, path)

        if "annotations" not in metadata or metadata["annotations"] is None:
            # CommentedMap keeps the new block in round-trip form
            metadata["annotations"] = CommentedMap()

        annotations = metadata["annotations"]
        if not isinstance(annotations, dict):
            raise AnnotationInjectionError(path, "'annotations' is not a mapping")

        annotations[self.annotation_key] = value
        return doc

    def _resolve(self, doc: Any, path: str) -> Any:
        node = doc
        walked = []
        for segment in path.split("."):
            walked.append(segment)
            if not isinstance(node, dict) or segment not in node:
                raise AnnotationInjectionError(path, f"missing '{'.'.join(walked)}'")
            node = node[segment]

        if not isinstance(node, dict):
            raise AnnotationInjectionError(path, "target is not a mapping")
        return node


def add_policy_annotation(doc: Any, path: str, policy: str,
                          annotation_key: str = POLICY_ANNOTATION) -> Any:
    return PolicyAnnotator(annotation_key).inject(doc, path, policy)
