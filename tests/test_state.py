from __future__ import annotations

from pathlib import Path

from flashsync.audit_log import SyncResult, format_audit_entry, log_run, read_audit_log
from flashsync.state import SyncState, get_state_dir


def test_state_round_trip(tmp_path: Path) -> None:
    state = SyncState.load(tmp_path)
    state.register(1001, "cards/a.md")
    state.register(1002, "cards/b.md")
    state.files["cards/a.md"] = "abc"
    state.fields["Basic"] = ["Front", "Back"]
    state.save()

    loaded = SyncState.load(tmp_path)

    assert loaded == state
    assert loaded.ids_in("cards/a.md") == {1001}
    assert loaded.is_registered(1002)


def test_missing_state_is_empty(tmp_path: Path) -> None:
    state = SyncState.load(tmp_path)

    assert state.notes == {}
    assert state.path == get_state_dir(tmp_path) / "state.json"


def test_unreadable_state_is_empty(tmp_path: Path) -> None:
    path = get_state_dir(tmp_path) / "state.json"
    path.parent.mkdir()
    path.write_text("{not json", encoding="utf-8")

    assert SyncState.load(tmp_path).notes == {}


def test_unregister() -> None:
    state = SyncState(notes={1: "a.md"})
    state.unregister(1)
    state.unregister(2)

    assert state.notes == {}


def test_audit_log_round_trip(tmp_path: Path) -> None:
    ok = SyncResult(operation="export", created=2, documents_written=["cards/a.md"])
    ok.warn("Could not create note at cards/a.md:3")
    failed = SyncResult(operation="import")
    failed.fail("AnkiConnect connection error: refused")

    log_run(tmp_path, ok)
    log_run(tmp_path, failed)

    entries = read_audit_log(tmp_path)
    assert [e.operation for e in entries] == ["export", "import"]
    assert entries[0].counts["created"] == 2
    assert entries[0].documents == ["cards/a.md"]
    assert not entries[1].success

    assert read_audit_log(tmp_path, last_n=1) == entries[1:]


def test_audit_log_skips_malformed_lines(tmp_path: Path) -> None:
    log_run(tmp_path, SyncResult(operation="export"))
    with (get_state_dir(tmp_path) / "sync.log").open("a", encoding="utf-8") as f:
        f.write("garbage\n")

    assert len(read_audit_log(tmp_path)) == 1


def test_format_audit_entry(tmp_path: Path) -> None:
    result = SyncResult(operation="export", updated=1)
    result.fail("boom")

    text = format_audit_entry(log_run(tmp_path, result))

    assert "export (FAILED)" in text
    assert "1 updated" in text
    assert "error: boom" in text
