"""Show recent sync runs from the audit log."""

from __future__ import annotations

from pathlib import Path

from rich.console import Console

from ..audit_log import format_audit_entry, read_audit_log


def run_log(vault_path: Path, last_n: int = 10) -> int:
    console = Console()
    entries = read_audit_log(vault_path, last_n=last_n)

    if not entries:
        console.print("No sync runs recorded yet.", style="dim")
        return 0

    for entry in entries:
        style = None if entry.success else "red"
        console.print(format_audit_entry(entry), style=style, markup=False, highlight=False)
    return 0
