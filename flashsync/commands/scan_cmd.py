"""Offline commands: list the notes rules match, and check that rules compile."""

from __future__ import annotations

from pathlib import Path

from rich.console import Console
from rich.table import Table

from ..anki.connect import AnkiConnectError, RemoteService
from ..rules.schema import Settings
from ..sync.exporter import Exporter
from ..vault.compiler import CompileError, compile_rule
from .sync_cmd import make_client


def _preview(fields: dict[str, str], width: int = 48) -> str:
    text = " | ".join(f"{name}: {value}" for name, value in fields.items())
    return text if len(text) <= width else text[: width - 1] + "…"


def run_scan(vault_path: Path, settings: Settings, remote: RemoteService | None = None) -> int:
    """List the notes every export rule matches, without changing anything.

    Field names come from the cached metadata; AnkiConnect is only asked for
    note types that were never synced.
    """
    console = Console()
    err = Console(stderr=True)

    exporter = Exporter(vault_path, settings, remote or make_client(settings))
    try:
        scanned = exporter.scan()
    except AnkiConnectError as e:
        err.print(f"Could not fetch note fields: {e}", style="bold red")
        return 1

    table = Table(title="Notes")
    table.add_column("location", style="cyan", no_wrap=True)
    table.add_column("rule", style="magenta")
    table.add_column("id", style="dim")
    table.add_column("deck")
    table.add_column("tags")
    table.add_column("fields")

    for note in scanned.notes:
        assert note.document is not None and note.span is not None
        table.add_row(
            f"{note.document.path}:{note.document.line_of(note.span.start)}",
            note.rule or "",
            str(note.id) if note.id is not None else "new",
            note.deck or "",
            ", ".join(note.tags),
            _preview(note.fields),
        )

    console.print(table)
    console.print(
        f"{len(scanned.notes)} notes in {len(scanned.documents)} documents", style="dim"
    )

    for name, error in scanned.errors.items():
        err.print(f"Rule '{name}': {error}", style="bold red")
    return 1 if scanned.errors else 0


def run_validate(vault_path: Path, settings: Settings, remote: RemoteService | None = None) -> int:
    """Compile every export rule and check every import rule's target."""
    console = Console()

    exporter = Exporter(vault_path, settings, remote or make_client(settings))
    failures = 0

    table = Table(title="Rules")
    table.add_column("rule", style="cyan")
    table.add_column("direction")
    table.add_column("status")
    table.add_column("messages")

    for rule in settings.export_rules:
        messages: list[str] = []
        try:
            pattern = compile_rule(rule, exporter.fields_for(rule.note_type))
        except (CompileError, AnkiConnectError) as e:
            failures += 1
            table.add_row(rule.name, "export", "[bold red]error[/]", str(e))
            continue

        messages.extend(pattern.warnings)
        if not rule.enabled:
            messages.append("disabled")
        status = "[yellow]warning[/]" if pattern.warnings else "[green]ok[/]"
        table.add_row(rule.name, "export", status, "\n".join(messages))

    for rule in settings.import_rules:
        messages = []
        if rule.type == "file" and not rule.file_path:
            messages.append("file rule without file_path")
        if rule.type == "folder" and not rule.file_name_format.strip():
            messages.append("folder rule without file_name_format")

        if messages:
            failures += 1
            table.add_row(rule.name, "import", "[bold red]error[/]", "\n".join(messages))
        else:
            table.add_row(rule.name, "import", "[green]ok[/]", "disabled" if not rule.enabled else "")

    console.print(table)
    return 1 if failures else 0
