"""
Console output for dependency changes and cache statistics using Rich.
"""

import json
from dataclasses import asdict
from typing import List, Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .dependency import Dependency


class DependencyReporter:
    """Formats and displays dependency diffs."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def print_updates(self, updated: List[Dependency], previous: str, current: str) -> None:
        """
        Print updated dependencies as a table.

        Args:
            updated: Updated dependencies, sorted by name
            previous: Revision compared against
            current: Revision being released
        """
        self.console.print(
            Panel(
                f"Dependency changes {previous} → {current}",
                title="[bold blue]release-tool[/bold blue]",
                border_style="blue",
            )
        )

        if not updated:
            self.console.print("✅ No dependency changes.", style="green")
            return

        table = Table(box=box.ROUNDED, title_style="bold cyan")
        table.add_column("Dependency", style="bold")
        table.add_column("Previous")
        table.add_column("Current")
        table.add_column("Commit", style="dim")

        for dep in updated:
            previous_ref = dep.previous or "[green]new[/green]"
            table.add_row(dep.name, previous_ref, dep.ref, dep.sha)

        self.console.print(table)
        self.console.print(f"\n[dim]{len(updated)} dependencies changed[/dim]")

    def print_cache_stats(self, entries: int, size_bytes: int) -> None:
        self.console.print(
            Panel("[bold blue]📊 Remote Resolution Cache[/bold blue]", border_style="blue")
        )
        self.console.print(f"  Entries: {entries}")
        self.console.print(f"  Size: {size_bytes} bytes")


def dependencies_to_json(updated: List[Dependency]) -> str:
    return json.dumps([asdict(dep) for dep in updated], indent=2, ensure_ascii=False)
