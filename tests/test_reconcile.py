from __future__ import annotations

from datetime import datetime

from flashsync.anki.connect import CardInfo
from flashsync.models import Note, NoteStatus
from flashsync.sync.reconcile import (
    Deletion,
    build_query,
    classify_export,
    classify_import,
    find_deletions,
    plan_export,
    resolve_deck,
)
from flashsync.vault.span import Span


def _note(note_id: int | None = None) -> Note:
    return Note(note_type="Basic", fields={"Front": "a"}, id=note_id)


def test_classify_export() -> None:
    assert classify_export(_note(), {1}) == NoteStatus.EXPORT_CREATE
    assert classify_export(_note(1), {1}) == NoteStatus.EXPORT_UPDATE
    assert classify_export(_note(2), {1}) == NoteStatus.EXPORT_CREATE


def test_plan_export_recreates_duplicate_ids() -> None:
    first, second = _note(5), _note(5)

    plan = plan_export([first, second], {5})

    assert plan.update == [first]
    assert plan.create == [second]
    assert second.id is None
    assert second.status == NoteStatus.EXPORT_CREATE


def test_plan_export_keeps_deletions_of_ids_not_found() -> None:
    plan = plan_export([_note(1)], {1, 2}, [Deletion(id=2, document_path="a.md"), Deletion(id=1, document_path="a.md")])

    assert [d.id for d in plan.delete] == [2]
    assert not plan.is_empty


def test_find_deletions_only_in_scanned_documents() -> None:
    registered = {1: "a.md", 2: "a.md", 3: "elsewhere.md"}

    deletions = find_deletions(registered, found_ids={1}, scanned_paths={"a.md"})

    assert deletions == [Deletion(id=2, document_path="a.md")]


def test_find_deletions_carries_stray_marker_span() -> None:
    span = Span(10, 30)

    deletions = find_deletions({4: "old.md"}, set(), set(), stray={4: ("new.md", span)})

    assert deletions == [Deletion(id=4, document_path="new.md", span=span)]


def test_build_query() -> None:
    assert build_query("deck:French", "Basic") == '(deck:French) AND note:"Basic"'
    assert build_query("", "Basic") == 'note:"Basic"'
    assert build_query('note:"Basic" tag:x', "Basic") == 'note:"Basic" tag:x'


def test_classify_import_unknown_note_is_created() -> None:
    for action in ("update", "append", "ignore"):
        assert classify_import(_note(42), None, action) == NoteStatus.IMPORT_CREATE


def test_classify_import_update_carries_last_import() -> None:
    local = _note(42)
    local.last_import = datetime(2024, 1, 1)
    remote = _note(42)

    assert classify_import(remote, local, "update") == NoteStatus.IMPORT_UPDATE
    assert remote.last_import == datetime(2024, 1, 1)


def test_classify_import_append_and_ignore() -> None:
    assert classify_import(_note(42), _note(42), "append") == NoteStatus.IMPORT_CREATE
    assert classify_import(_note(42), _note(42), "ignore") is None


def test_resolve_deck_requires_agreement() -> None:
    cards = {1: CardInfo(1, "A"), 2: CardInfo(2, "A"), 3: CardInfo(3, "A"), 4: CardInfo(4, "B")}

    assert resolve_deck([1, 2, 3], cards) == "A"
    assert resolve_deck([1, 4, 2], cards) is None
    assert resolve_deck([1, 99], cards) is None
    assert resolve_deck([], cards) is None
