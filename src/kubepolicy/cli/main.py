#!/usr/bin/env python3
"""
KUBEPOLICY CLI
--------------
Command-line front end: `generate` writes policy annotations into
manifests, `preview` shows what would be written.

Author: KubePolicy Team
Date: 2026-10-19
"""

import sys
import argparse
from pathlib import Path
from typing import Any, Dict, List, Optional

# Rich library components for high-fidelity terminal UI
from rich.panel import Panel
from rich.progress import (
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
    BarColumn,
    TaskProgressColumn
)

from kubepolicy.cli.formatter import KubeFormatter, console
from kubepolicy.core.engine import PolicyEngine
from kubepolicy.core.settings import PolicySettings

VERSION = "1.0.0"


class KubePolicyCLI:
    """
    CLI wrapper that translates user commands into Engine actions.
    Provides visual feedback, safety confirmations and diffs.
    """

    def __init__(self):
        """Initializes the CLI and sets up the argument parser."""
        self.parser = argparse.ArgumentParser(
            prog="kubepolicy",
            description="KubePolicy - Sandbox runtime policy generator for Kubernetes manifests",
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )
        self.formatter = KubeFormatter()
        self._setup_args()

    def _add_common_args(self, parser: argparse.ArgumentParser):
        parser.add_argument("path", help="Path to a YAML file or directory")
        parser.add_argument("--ext", default=".yaml", help="File extension filter (default: .yaml)")
        parser.add_argument("--settings", help="Path to a settings JSON file (default: bundled)")
        parser.add_argument("--use-cache", action="store_true",
                            help="Read and update the local image cache")
        parser.add_argument("--silent-unsupported-fields", action="store_true",
                            help="Do not report manifest fields the generator ignores")
        parser.add_argument("--diff", action="store_true", help="Display the annotated diff")

    def _setup_args(self):
        """Configures the command-line flags and subcommands."""
        self.parser.add_argument("-v", "--version", action="version", version=f"kubepolicy v{VERSION}")
        subparsers = self.parser.add_subparsers(dest="command", metavar="Command")

        # 'generate' subcommand - writes annotated manifests
        gen_parser = subparsers.add_parser("generate", help="🛡️  Generate and annotate policies")
        self._add_common_args(gen_parser)
        gen_parser.add_argument("--dry-run", action="store_true", help="Preview results without writing")
        gen_parser.add_argument("-y", "--yes", action="store_true", help="Auto-confirm single file")
        gen_parser.add_argument("--yes-all", action="store_true", help="Auto-confirm batch operations")
        gen_parser.add_argument("--force", action="store_true",
                                help="Write files even when some documents failed")

        # 'preview' subcommand - read-only mode
        preview_parser = subparsers.add_parser("preview", help="🔍 Show generated policies without writing")
        self._add_common_args(preview_parser)
        preview_parser.add_argument("--show-policy", action="store_true", help="Print the decoded policy text")

    def print_header(self, subtitle: str):
        """Renders the KubePolicy splash header with themed styling."""
        console.print(Panel.fit(
            f"[bold cyan]KubePolicy v{VERSION}[/bold cyan]\n"
            "══════════════════════════════════════════════════════════════════",
            title=f"[bold white]{subtitle}[/bold white]",
            border_style="cyan"
        ))

    def _confirm_action(self, target_count: int, args: argparse.Namespace) -> bool:
        """Safety Gate logic: ensures the user wants to proceed with writes."""
        if args.dry_run:
            return True

        if target_count == 1:
            if args.yes or args.yes_all:
                return True
            choice = console.input("\n[bold yellow]Annotate this file? (y/N): [/bold yellow]").lower()
            return choice == 'y'

        if args.yes_all:
            return True

        console.print(Panel(
            f"[bold red]⚠️  CRITICAL: BATCH MODIFICATION DETECTED[/bold red]\n\n"
            f"Target Path: [white]{args.path}[/white]\n"
            f"File Count:  [bold cyan]{target_count} files[/bold cyan]\n",
            expand=False, border_style="red"
        ))
        return console.input("[bold yellow]Type 'CONFIRM' to write policies: [/bold yellow]") == "CONFIRM"

    def _load_settings(self, path: Optional[str]) -> PolicySettings:
        try:
            return PolicySettings.load(path)
        except RuntimeError as e:
            console.print(f"[bold red]CRITICAL ERROR:[/bold red] {str(e)}")
            sys.exit(1)

    def _target_files(self, engine: PolicyEngine, input_path: Path, ext: str) -> List[Path]:
        if input_path.is_file():
            return [input_path]
        return engine.discover_files(ext)

    def _run_engine(self, args: argparse.Namespace, is_write_mode: bool) -> int:
        """Main processing loop orchestration. Returns the exit code."""
        input_path = Path(args.path).resolve()
        if not input_path.exists():
            console.print(f"[bold red]Error:[/bold red] Path '{args.path}' not found.")
            return 1

        workspace = input_path if input_path.is_dir() else input_path.parent
        engine = PolicyEngine(
            str(workspace),
            settings=self._load_settings(args.settings),
            use_cache=args.use_cache,
            silent_unsupported_fields=args.silent_unsupported_fields,
        )

        target_files = self._target_files(engine, input_path, args.ext)
        if not target_files:
            console.print("\n[bold yellow]⚠️  No manifest files found.[/bold yellow]")
            return 0

        dry_run = getattr(args, "dry_run", False) or not is_write_mode
        if is_write_mode and not self._confirm_action(len(target_files), args):
            console.print("[bold red]Operation cancelled by user.[/bold red]")
            return 1

        reports: List[Dict[str, Any]] = []
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(bar_width=40),
            TaskProgressColumn(),
            TimeElapsedColumn(),
            console=console
        ) as progress:

            task_id = progress.add_task("Generating policies...", total=len(target_files))

            for file_path in target_files:
                rel_path = str(file_path.relative_to(workspace))
                old_content = file_path.read_text(encoding='utf-8-sig')

                report = engine.generate_for_file(
                    rel_path, dry_run=dry_run, force_write=getattr(args, "force", False)
                )
                reports.append(report)

                if args.diff or getattr(args, "show_policy", False) or report.get("warnings"):
                    progress.stop()
                    console.print(f"\n[bold cyan]Analysis for: {rel_path}[/bold cyan]")
                    self.formatter.show_warnings(report.get("warnings", []))
                    if getattr(args, "show_policy", False):
                        for doc in report.get("documents", []):
                            self.formatter.show_policy(doc)
                    if args.diff and report.get("policy_content"):
                        self.formatter.display_diff(old_content, report["policy_content"], rel_path)
                    progress.start()

                progress.update(task_id, advance=1, description=f"Checked: {file_path.name}")

        for report in reports:
            self.formatter.show_errors(report)
        self.formatter.print_final_table(reports)
        self.formatter.print_summary(engine.generate_summary(reports))

        return 0 if all(r.get("success") for r in reports) else 2

    def run(self, argv: Optional[List[str]] = None) -> int:
        """Primary routing entry point."""
        argv = sys.argv[1:] if argv is None else argv
        if not argv:
            self.print_header("Sandbox Policy Generator")
            self.parser.print_help()
            return 0

        args = self.parser.parse_args(argv)
        if args.command == "generate":
            self.print_header("Policy Generation")
            return self._run_engine(args, is_write_mode=True)
        if args.command == "preview":
            self.print_header("Policy Preview")
            return self._run_engine(args, is_write_mode=False)

        self.parser.print_help()
        return 0


def main():
    """Application entry point with interrupt handling."""
    try:
        sys.exit(KubePolicyCLI().run())
    except KeyboardInterrupt:
        console.print("\n[bold red]Terminated by user.[/bold red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
