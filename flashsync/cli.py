"""CLI entrypoint for flashsync."""

import logging
import sys
from pathlib import Path

import click
from rich.logging import RichHandler

from . import __version__
from .rules.load import find_config, load_settings
from .rules.schema import Settings


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=verbose)],
    )


def _load_settings(vault: Path, config: Path | None) -> Settings:
    path = config or find_config(vault)
    if path is None:
        # No config: defaults only, which means no rules
        return Settings()

    try:
        return load_settings(path)
    except (OSError, ValueError) as e:
        raise click.ClickException(str(e)) from e


@click.group()
@click.version_option(__version__, prog_name="flashsync")
@click.option(
    "--vault",
    "-v",
    type=click.Path(exists=False, file_okay=False, dir_okay=True, path_type=Path),
    default=None,
    help="Path to the vault (defaults to the current directory)",
)
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Config file (defaults to flashsync.toml in the vault)",
)
@click.option("--verbose", is_flag=True, help="Log debug output")
@click.pass_context
def cli(ctx: click.Context, vault: Path | None, config: Path | None, verbose: bool) -> None:
    """flashsync - Keep flashcards written in a Markdown vault in sync with Anki.

    Notes are recognized in documents by the rules in flashsync.toml and
    exchanged with Anki through the AnkiConnect add-on.
    """
    _setup_logging(verbose)

    ctx.ensure_object(dict)
    vault = vault or Path.cwd()
    if not vault.exists() or not vault.is_dir():
        raise click.BadParameter(f"Directory '{vault}' does not exist.", param_hint="--vault / -v")

    vault = vault.resolve()
    ctx.obj["vault"] = vault
    ctx.obj["config"] = config


def _settings(ctx: click.Context) -> Settings:
    return _load_settings(ctx.obj["vault"], ctx.obj["config"])


@cli.command()
@click.option(
    "--no-metadata",
    is_flag=True,
    help="Skip refreshing note types, decks and fields from Anki",
)
@click.pass_context
def sync(ctx: click.Context, no_metadata: bool) -> None:
    """Export vault notes to Anki, then import notes from Anki.

    Examples:

        flashsync sync

        flashsync --vault ~/notes sync --no-metadata
    """
    from .commands.sync_cmd import run_sync

    exit_code = run_sync(ctx.obj["vault"], _settings(ctx), refresh_metadata=not no_metadata)
    sys.exit(exit_code)


@cli.command("export")
@click.pass_context
def export_cmd(ctx: click.Context) -> None:
    """Create, update and delete Anki notes from the vault."""
    from .commands.sync_cmd import run_export

    exit_code = run_export(ctx.obj["vault"], _settings(ctx))
    sys.exit(exit_code)


@cli.command("import")
@click.pass_context
def import_cmd(ctx: click.Context) -> None:
    """Write Anki notes selected by the import rules into the vault."""
    from .commands.sync_cmd import run_import

    exit_code = run_import(ctx.obj["vault"], _settings(ctx))
    sys.exit(exit_code)


@cli.command()
@click.pass_context
def scan(ctx: click.Context) -> None:
    """List the notes the export rules match, without changing anything."""
    from .commands.scan_cmd import run_scan

    exit_code = run_scan(ctx.obj["vault"], _settings(ctx))
    sys.exit(exit_code)


@cli.command()
@click.pass_context
def validate(ctx: click.Context) -> None:
    """Compile every rule and report errors and warnings."""
    from .commands.scan_cmd import run_validate

    exit_code = run_validate(ctx.obj["vault"], _settings(ctx))
    sys.exit(exit_code)


@cli.command()
@click.option("--last", "-n", "last_n", type=int, default=10, show_default=True, help="Number of runs to show")
@click.pass_context
def log(ctx: click.Context, last_n: int) -> None:
    """Show recent sync runs."""
    from .commands.log_cmd import run_log

    exit_code = run_log(ctx.obj["vault"], last_n)
    sys.exit(exit_code)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
