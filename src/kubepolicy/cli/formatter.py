# src/kubepolicy/cli/formatter.py
import base64
import binascii
import difflib
from typing import Any, Dict, List

from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

# Initialize the Rich console for high-quality terminal output
console = Console()


class KubeFormatter:
    """
    KubeFormatter: The visual heart of the CLI.
    Responsible for rendering Diffs, Policy previews, Warnings and Execution Reports.
    """

    def __init__(self, out: Console = console):
        self.console = out

    def display_diff(self, original_text: str, annotated_text: str, file_name: str):
        """
        Renders a colorized unified diff between the original manifest
        and the annotated output. Only the policy annotation should show up.
        """
        if not annotated_text or not original_text:
            return

        diff_list = list(difflib.unified_diff(
            original_text.splitlines(),
            annotated_text.splitlines(),
            fromfile=f"Original: {file_name}",
            tofile="With Policy",
            lineterm=""
        ))

        if not diff_list:
            self.console.print(f"[dim]ℹ No changes for {file_name}.[/dim]")
            return

        syntax = Syntax("\n".join(diff_list), "diff", theme="monokai", line_numbers=True, word_wrap=True)
        self.console.print(Panel(
            syntax,
            title=f"Proposed Policy: {file_name}",
            border_style="green"
        ))

    def show_policy(self, document: Dict[str, Any]):
        """Prints the decoded Rego policy for one document."""
        policy = document.get("policy")
        if not policy:
            return
        try:
            text = base64.b64decode(policy, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            text = policy

        self.console.print(Panel(
            Syntax(text, "ruby", theme="monokai", line_numbers=True),
            title=f"[bold cyan]{document.get('kind')}/{document.get('name')}[/bold cyan]",
            border_style="cyan"
        ))

    def show_warnings(self, warnings: List[str]):
        """Surfaces unsupported-field diagnostics; they never fail a run."""
        for warning in warnings:
            self.console.print(f"[bold yellow]⚠️  Unsupported:[/bold yellow] [white]{warning}[/white]")

    def show_errors(self, report: Dict[str, Any]):
        if report.get("error"):
            self.console.print(f"[bold red]Error in {report['file_path']}:[/bold red] {report['error']}")
        for doc in report.get("documents", []):
            if doc.get("error"):
                self.console.print(
                    f"[bold red]{report['file_path']} {doc['kind']}/{doc['name']}:[/bold red] {doc['error']}"
                )

    def print_final_table(self, reports: List[Dict[str, Any]]):
        """
        Builds the summary table shown at the very end of a run.
        """
        table = Table(title="KubePolicy Execution Report", show_lines=True, header_style="bold magenta")
        table.add_column("File Path", style="cyan")
        table.add_column("Kind", style="white")
        table.add_column("Status", style="bold")
        table.add_column("Result", justify="center")

        for r in reports:
            success = r.get('success', False)
            partial = r.get('partial', False)
            status_color = "green" if success else "yellow" if partial else "red"
            result_icon = "✅" if success else "⚠️" if partial else "❌"

            table.add_row(
                str(r.get('file_path')), str(r.get('kind', 'Unknown')),
                f"[{status_color}]{r.get('status', 'FAILED')}[/{status_color}]",
                result_icon
            )

        self.console.print(table)

    def print_summary(self, summary: Dict[str, Any]):
        self.console.print(Panel(
            f"[bold white]Summary Report[/bold white]\n"
            f"════════════════════════════════════════\n"
            f"Total Files:      {summary['total_files']}\n"
            f"Success:          [green]{summary['successful']}[/green]\n"
            f"Policies:         {summary['policies_generated']}\n"
            f"System Errors:    [red]{summary['system_errors']}[/red]\n"
            f"Backups Created:  {summary['backups_created']}",
            border_style="dim"
        ))
