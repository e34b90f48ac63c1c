#!/usr/bin/env python3
"""
KUBEPOLICY ENGINE - The High Orchestrator
-----------------------------------------
The PolicyEngine drives a manifest file through intake, image
resolution, policy generation and export. It ensures atomic
persistence, per-document failure isolation and workspace integrity.

Author: KubePolicy Team
Date: 2026-10-19
"""

import asyncio
import os
import shutil
import time
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from ruamel.yaml import YAMLError

from kubepolicy.core.errors import KubePolicyError
from kubepolicy.core.settings import PolicySettings
from kubepolicy.images.resolver import ImageResolver
from kubepolicy.manifest.context import (
    FAILED, PENDING, POLICY_APPLIED, ManifestContext, ManifestDocument
)
from kubepolicy.manifest.exporter import KubeExporter
from kubepolicy.manifest.pipeline import ManifestPipeline
from kubepolicy.policy.generator import AgentPolicy

# Setup standardized logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("kubepolicy.engine")


class PolicyEngine:
    """
    Principal Orchestrator for policy generation.
    Maintains workspace state and coordinates the pipeline, resolver,
    generator and exporter.
    """

    def __init__(self, workspace_path: str, settings: Optional[PolicySettings] = None,
                 use_cache: bool = False, silent_unsupported_fields: bool = False,
                 resolver_factory: Optional[Callable[[], Any]] = None):
        """
        `resolver_factory` builds one resolver per processed file; the
        default talks to real registries using the settings.
        """
        self.workspace = Path(workspace_path).resolve()
        self.settings = settings or PolicySettings.load()
        self.use_cache = use_cache
        self.silent_unsupported_fields = silent_unsupported_fields

        self.pipeline = ManifestPipeline(self.settings.passthrough_kinds)
        self.exporter = KubeExporter()
        self.policy = AgentPolicy(self.settings)
        self.resolver_factory = resolver_factory or (lambda: ImageResolver.from_settings(self.settings))

        self._ensure_workspace()

    def _ensure_workspace(self):
        """Validates/Creates target workspace to prevent OS path errors."""
        if not self.workspace.exists():
            logger.info(f"Creating missing workspace: {self.workspace}")
            self.workspace.mkdir(parents=True, exist_ok=True)

    async def process_text(self, raw_text: str) -> ManifestContext:
        """
        Runs every document of `raw_text` to completion. Documents are
        initialized concurrently; a failure only marks its own document.
        """
        context = self.pipeline.run(raw_text)
        pending = [d for d in context.documents if d.status == PENDING]

        resolver = self.resolver_factory()
        try:
            outcomes = await asyncio.gather(
                *(self._initialize(doc, resolver) for doc in pending),
                return_exceptions=True,
            )
        finally:
            close = getattr(resolver, "close", None)
            if close is not None:
                await close()

        for doc, outcome in zip(pending, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                self._fail(doc, outcome)
                continue
            self._apply_policy(doc)

        for doc in context.documents:
            if doc.rendered is None:
                doc.rendered = self.exporter.dump(doc.raw)

        return context

    async def _initialize(self, doc: ManifestDocument, resolver: Any) -> None:
        await doc.resource.initialize(
            self.use_cache, doc.raw, self.silent_unsupported_fields, resolver=resolver
        )
        for path in doc.resource.unsupported_fields:
            message = f"Unsupported field '{path}' ignored"
            logger.warning(f"{doc.kind}/{doc.name}: {message}")
            doc.warnings.append(message)

    def _apply_policy(self, doc: ManifestDocument) -> None:
        try:
            doc.policy = doc.resource.generate_policy(self.policy)
            doc.rendered = doc.resource.serialize(doc.policy, self.settings.policy_annotation)
            doc.status = POLICY_APPLIED
        except KubePolicyError as e:
            self._fail(doc, e)

    def _fail(self, doc: ManifestDocument, error: Exception) -> None:
        logger.error(f"{doc.kind}/{doc.name}: {str(error)}")
        doc.status = FAILED
        doc.error = str(error)
        doc.policy = None

    def generate_for_file(self, relative_path: str, dry_run: bool = True,
                          force_write: bool = False) -> Dict[str, Any]:
        """
        Performs a full policy generation cycle on a single manifest file.
        """
        full_path = (self.workspace / relative_path).resolve()

        if not full_path.exists():
            return self._file_error(relative_path, "FILE_NOT_FOUND", f"Path missing: {full_path}")

        try:
            # Phase 1: Read (BOM-aware)
            raw_text = full_path.read_text(encoding='utf-8-sig')

            # Phase 2: Intake, resolution and policy generation
            context = asyncio.run(self.process_text(raw_text))

            # Phase 3: Export
            # A leading document marker in the source is kept
            explicit_start = context.raw_text.lstrip().startswith("---")
            final_yaml = self.exporter.export(
                [d.rendered for d in context.documents], explicit_start=explicit_start
            )

            success = bool(context.documents) and not context.failed
            partial = not success and any(d.status == POLICY_APPLIED for d in context.documents)
            is_modified = raw_text.strip() != final_yaml.strip()
            display_status = self._derive_status(is_modified, dry_run, success, partial)

        except (YAMLError, OSError) as e:
            logger.error(f"Error processing {relative_path}: {str(e)}")
            return self._file_error(relative_path, "PARSE_ERROR", str(e))

        result = {
            "file_path": str(relative_path),
            "success": success,
            "partial": partial,
            "status": display_status,
            "kind": ", ".join(context.kinds) or "Unknown",
            "documents": [self._document_report(d) for d in context.documents],
            "written": False,
            "backup_created": None,
            "policy_content": final_yaml if is_modified else None,
            "warnings": [w for d in context.documents for w in d.warnings],
            "git_warnings": self.check_git_safety(),
            "timestamp": time.time()
        }

        # Execution (Disk I/O)
        if not dry_run and is_modified and (success or (partial and force_write)):
            backup_path = self._create_unique_backup(full_path)
            try:
                shutil.copy2(full_path, backup_path)
                result["backup_created"] = str(backup_path.relative_to(self.workspace))
            except OSError as e:
                result["backup_warning"] = f"Backup failed: {str(e)}"

            try:
                self._atomic_write(full_path, final_yaml)
                result["written"] = True
            except IOError as e:
                result["write_error"] = str(e)
                result["success"] = False

        return result

    def discover_files(self, extension: str = ".yaml", max_depth: int = 10) -> List[Path]:
        """
        Recursively discovers manifest files under the workspace with safety gates.
        """
        try:
            max_depth = int(max_depth)
        except (ValueError, TypeError):
            logger.warning(f"Invalid max_depth '{max_depth}'. Falling back to default: 10")
            max_depth = 10

        patterns = sorted({f"*{extension.lower()}", f"*{extension.upper()}"})

        # Exclude symlinks to prevent loops
        all_files = []
        for p in patterns:
            all_files.extend([f for f in self.workspace.rglob(p) if f.is_file() and not f.is_symlink()])

        return [
            f for f in sorted(set(all_files))
            if len(f.relative_to(self.workspace).parts) <= max_depth
        ]

    def generate_summary(self, reports: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Aggregates per-file reports into run metrics."""
        if not reports:
            return {
                "total_files": 0, "success_rate": 0, "successful": 0,
                "system_errors": 0, "backups_created": 0, "policies_generated": 0
            }

        total = len(reports)
        successful = sum(1 for r in reports if r.get('success', False))
        writes = sum(1 for r in reports if r.get('written', False))
        backups_count = sum(1 for r in reports if r.get('backup_created') is not None)
        system_errors = sum(1 for r in reports if r.get('status') in ("PARSE_ERROR", "FILE_NOT_FOUND"))
        policies = sum(
            1 for r in reports for d in r.get('documents', []) if d.get('status') == POLICY_APPLIED
        )

        return {
            "total_files": total,
            "success_rate": (successful / total) if total > 0 else 0,
            "successful": successful,
            "written_to_disk": writes,
            "backups_created": backups_count,
            "system_errors": system_errors,
            "policies_generated": policies,
            "summary_timestamp": time.strftime("%Y-%m-%d %H:%M:%S")
        }

    def _document_report(self, doc: ManifestDocument) -> Dict[str, Any]:
        return {
            "index": doc.index,
            "kind": doc.kind or "Unknown",
            "name": doc.name,
            "status": doc.status,
            "error": doc.error,
            "policy": doc.policy,
            "warnings": list(doc.warnings),
        }

    def _derive_status(self, modified, dry, success, partial) -> str:
        if success and not modified: return "UNCHANGED"
        if not success and not partial: return "FAILED"
        if dry: return "PREVIEW"
        if success: return "APPLIED"
        return "PARTIAL"

    def _atomic_write(self, target_path: Path, content: str):
        if not os.access(target_path.parent, os.W_OK):
            raise PermissionError(f"No write access to {target_path.parent}")
        temp_file = target_path.with_suffix('.kubepolicy.tmp')
        try:
            temp_file.write_text(content, encoding='utf-8')
            os.replace(temp_file, target_path)
        except OSError as e:
            if temp_file.exists(): temp_file.unlink()
            raise IOError(f"Atomic write failed: {str(e)}")

    def _create_unique_backup(self, target_path: Path) -> Path:
        backup_path = target_path.with_suffix('.kubepolicy.backup')
        counter = 1
        while backup_path.exists():
            backup_path = target_path.with_name(f"{target_path.stem}-{counter}.kubepolicy.backup")
            counter += 1
        return backup_path

    def check_git_safety(self) -> List[str]:
        warnings = []
        gitignore = self.workspace / ".gitignore"
        if (self.workspace / ".git").exists() and gitignore.exists():
            try:
                content = gitignore.read_text(encoding='utf-8', errors='ignore')
            except OSError:
                return warnings
            for ext in ["*.kubepolicy.backup", "*.kubepolicy.tmp"]:
                if ext not in content:
                    warnings.append(f"Add '{ext}' to .gitignore")
        return warnings

    def _file_error(self, path: str, status: str, error: str) -> Dict[str, Any]:
        return {
            "file_path": path, "status": status, "error": error,
            "success": False, "partial": False,
            "system_errors": error, "kind": "Unknown", "documents": []
        }
