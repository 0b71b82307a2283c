from __future__ import annotations

from pathlib import Path

from click.testing import CliRunner
from conftest import FakeRemote, write_doc

from flashsync.cli import cli
from flashsync.commands.log_cmd import run_log
from flashsync.commands.scan_cmd import run_scan, run_validate
from flashsync.commands.sync_cmd import run_sync
from flashsync.rules.schema import ExportRule, ImportRule, Settings
from flashsync.state import SyncState
from flashsync.sync.metadata import sync_metadata

CONFIG = """
[[export.rules]]
name = "basic"
note_type = "Basic"
template = "Q: {{Front}}\\nA: {{Back}}"
folder = "cards"

[[export.rules]]
name = "broken"
note_type = "Basic"
type = "regex"
regex = "(unclosed"
"""


def test_sync_metadata_fills_state(remote: FakeRemote, state: SyncState) -> None:
    remote.fields["Cloze"] = ["Text", "Extra"]

    sync_metadata(remote, state)

    assert state.note_types == ["Basic", "Cloze"]
    assert state.decks == ["Default"]
    assert state.fields == {"Basic": ["Front", "Back"], "Cloze": ["Text", "Extra"]}
    assert state.cards == {"Basic": ["Card 1"], "Cloze": ["Card 1"]}


def test_run_sync_exports_then_imports(vault_path: Path, basic_export_rule: ExportRule, basic_import_rule: ImportRule, remote: FakeRemote) -> None:
    write_doc(vault_path / "cards" / "french.md", "Q: Bonjour\nA: Hello\n")
    remote.add_note(42, {"Front": "Capital of France?", "Back": "Paris"})
    settings = Settings(export_rules=[basic_export_rule], import_rules=[basic_import_rule])

    exit_code = run_sync(vault_path, settings, remote)

    assert exit_code == 0
    state = SyncState.load(vault_path)
    assert state.fields["Basic"] == ["Front", "Back"]
    # The exported note is not imported back into the inbox
    assert state.notes == {42: "Inbox.md", 1001: "cards/french.md"}
    assert "Bonjour" not in (vault_path / "Inbox.md").read_text(encoding="utf-8")


def test_run_sync_reports_unreachable_remote(vault_path: Path, export_settings: Settings, remote: FakeRemote) -> None:
    remote.fail_actions.add("modelNames")

    assert run_sync(vault_path, export_settings, remote) == 1


def test_run_scan_lists_notes_without_writing(vault_path: Path, export_settings: Settings, remote: FakeRemote, capsys) -> None:
    doc = vault_path / "cards" / "french.md"
    write_doc(doc, "Q: Bonjour\nA: Hello\n")

    assert run_scan(vault_path, export_settings, remote) == 0

    assert "1 notes in 1 documents" in capsys.readouterr().out
    assert doc.read_text(encoding="utf-8") == "Q: Bonjour\nA: Hello\n"
    assert remote.created == []


def test_run_validate_flags_broken_rules(vault_path: Path, basic_export_rule: ExportRule, remote: FakeRemote, capsys) -> None:
    broken = ExportRule(name="broken", note_type="Basic", type="regex", regex="(unclosed")
    settings = Settings(export_rules=[basic_export_rule, broken], import_rules=[ImportRule(name="nowhere", note_type="Basic")])

    assert run_validate(vault_path, settings, remote) == 1

    out = capsys.readouterr().out
    assert "broken" in out
    assert "nowhere" in out


def test_run_log_without_entries(vault_path: Path, capsys) -> None:
    assert run_log(vault_path) == 0
    assert "No sync runs recorded yet." in capsys.readouterr().out


def test_cli_validate_uses_cached_fields(vault_path: Path) -> None:
    (vault_path / "flashsync.toml").write_text(CONFIG, encoding="utf-8")
    state = SyncState.load(vault_path)
    state.fields["Basic"] = ["Front", "Back"]
    state.save()

    result = CliRunner().invoke(cli, ["--vault", str(vault_path), "validate"])

    assert result.exit_code == 1
    assert "broken" in result.output


def test_cli_rejects_invalid_config(vault_path: Path) -> None:
    (vault_path / "flashsync.toml").write_text("[export\n", encoding="utf-8")

    result = CliRunner().invoke(cli, ["--vault", str(vault_path), "log"])

    assert result.exit_code == 0

    result = CliRunner().invoke(cli, ["--vault", str(vault_path), "validate"])

    assert result.exit_code == 1
    assert "Invalid config" in result.output


def test_cli_log_shows_runs(vault_path: Path, export_settings: Settings, remote: FakeRemote) -> None:
    write_doc(vault_path / "cards" / "french.md", "Q: Bonjour\nA: Hello\n")
    run_sync(vault_path, export_settings, remote, refresh_metadata=False)

    result = CliRunner().invoke(cli, ["--vault", str(vault_path), "log", "-n", "5"])

    assert result.exit_code == 0
    assert "export (ok)" in result.output
    assert "1 created" in result.output
