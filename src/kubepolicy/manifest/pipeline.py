#!/usr/bin/env python3
"""
KUBEPOLICY MANIFEST PIPELINE - The Intake
-----------------------------------------
Turns raw manifest text into a ManifestContext: every YAML document is
loaded in round-trip mode, classified by kind and, for policy-bearing
kinds, parsed into its typed resource variant.

Schema rejections are recorded per document; a YAML syntax error
rejects the whole file because document boundaries are then unknown.

Author: KubePolicy Team
Date: 2026-10-19
"""

import logging
from typing import Iterable, Optional

from kubepolicy.core.errors import SchemaRejectionError
from kubepolicy.manifest.context import (
    PASSTHROUGH, REJECTED, ManifestContext, ManifestDocument
)
from kubepolicy.manifest.exporter import round_trip_yaml
from kubepolicy.resources.registry import new_resource

logger = logging.getLogger("kubepolicy.pipeline")


class ManifestPipeline:
    """
    The Orchestrator for intake: cleaning, loading and classification
    happen in a fixed order.
    """

    def __init__(self, passthrough_kinds: Optional[Iterable[str]] = None):
        self.yaml = round_trip_yaml()
        self.passthrough_kinds = set(passthrough_kinds or [])

    def _clean_artifacts(self, text: str) -> str:
        """
        Removes invisible UTF-8 BOM markers and standardizes line endings.
        """
        text = text.lstrip('\ufeff')
        return text.replace('\r\n', '\n')

    def run(self, input_text: str) -> ManifestContext:
        """
        Raises ruamel.yaml.YAMLError for text that is not YAML.
        """
        cleaned_text = self._clean_artifacts(input_text)
        context = ManifestContext(raw_text=cleaned_text)

        index = 0
        for raw in self.yaml.load_all(cleaned_text):
            if raw is None:
                continue
            context.documents.append(self._classify(index, raw))
            index += 1

        return context

    def _classify(self, index: int, raw) -> ManifestDocument:
        kind = raw.get("kind") if isinstance(raw, dict) else None
        doc = ManifestDocument(index=index, raw=raw, kind=str(kind) if kind else None)

        if doc.kind in self.passthrough_kinds:
            doc.status = PASSTHROUGH
            return doc

        try:
            doc.resource = new_resource(raw)
        except SchemaRejectionError as e:
            logger.error(f"Rejected {doc.kind or 'document'} #{index}: {str(e)}")
            doc.status = REJECTED
            doc.error = str(e)

        return doc
