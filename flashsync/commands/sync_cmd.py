"""Sync commands: export, import, or both after refreshing metadata."""

from __future__ import annotations

from pathlib import Path

from rich.console import Console
from rich.table import Table

from ..anki.connect import AnkiConnectClient, AnkiConnectConfig, AnkiConnectError, RemoteService
from ..audit_log import SyncResult
from ..rules.schema import Settings
from ..state import SyncState
from ..sync.exporter import Exporter
from ..sync.importer import Importer
from ..sync.metadata import sync_metadata


def make_client(settings: Settings) -> AnkiConnectClient:
    return AnkiConnectClient(AnkiConnectConfig(url=settings.anki.url, timeout_s=settings.anki.timeout_s))


def print_results(console: Console, results: list[SyncResult]) -> None:
    table = Table(title="Sync")
    table.add_column("direction", style="cyan")
    table.add_column("status")
    table.add_column("created", justify="right")
    table.add_column("updated", justify="right")
    table.add_column("deleted", justify="right")
    table.add_column("skipped", justify="right")
    table.add_column("documents", justify="right", style="dim")

    for result in results:
        status = "[green]ok[/]" if result.success else "[bold red]failed[/]"
        table.add_row(
            result.operation,
            status,
            str(result.created),
            str(result.updated),
            str(result.deleted),
            str(result.skipped),
            str(len(result.documents_written)),
        )
    console.print(table)

    for result in results:
        for warning in result.warnings:
            console.print(f"  {result.operation}: {warning}", style="yellow")
        if result.error:
            console.print(f"  {result.operation} failed: {result.error}", style="bold red")


def _exit_code(results: list[SyncResult]) -> int:
    return 0 if all(result.success for result in results) else 1


def run_export(vault_path: Path, settings: Settings, remote: RemoteService | None = None) -> int:
    console = Console()
    result = Exporter(vault_path, settings, remote or make_client(settings)).run()
    print_results(console, [result])
    return _exit_code([result])


def run_import(vault_path: Path, settings: Settings, remote: RemoteService | None = None) -> int:
    console = Console()
    result = Importer(vault_path, settings, remote or make_client(settings)).run()
    print_results(console, [result])
    return _exit_code([result])


def run_sync(
    vault_path: Path,
    settings: Settings,
    remote: RemoteService | None = None,
    *,
    refresh_metadata: bool = True,
) -> int:
    """Refresh metadata, then export, then import.

    Export goes first so notes it creates are registered before the import
    direction looks for notes it does not know yet.
    """
    console = Console()
    err = Console(stderr=True)
    remote = remote or make_client(settings)

    if refresh_metadata:
        state = SyncState.load(vault_path)
        try:
            sync_metadata(remote, state)
        except AnkiConnectError as e:
            err.print(f"Could not reach AnkiConnect at {settings.anki.url}: {e}", style="bold red")
            return 1
        state.save()

    results = [Exporter(vault_path, settings, remote).run()]
    if results[0].success:
        results.append(Importer(vault_path, settings, remote).run())

    print_results(console, results)
    return _exit_code(results)
