"""Pytest configuration and fixtures."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import pytest

from flashsync.anki.connect import AnkiConnectError, CardInfo, RemoteNote
from flashsync.rules.schema import ExportRule, ImportRule, Settings
from flashsync.state import SyncState


class FakeRemote:
    """In-memory stand-in for AnkiConnect."""

    def __init__(self, fields: dict[str, list[str]] | None = None) -> None:
        self.fields = fields or {"Basic": ["Front", "Back"]}
        self.decks: list[str] = ["Default"]
        self.notes: dict[int, RemoteNote] = {}
        self.card_decks: dict[int, str] = {}
        self.next_id = 1000
        self.calls: list[str] = []
        self.created: list[dict[str, Any]] = []
        self.updated: list[dict[str, Any]] = []
        self.deleted: list[int] = []
        self.reject_fronts: set[str] = set()  # create_notes returns None for these
        self.fail_actions: set[str] = set()  # these raise AnkiConnectError

    def _call(self, action: str) -> None:
        self.calls.append(action)
        if action in self.fail_actions:
            raise AnkiConnectError(f"{action} failed")

    def add_note(
        self,
        note_id: int,
        fields: dict[str, str],
        *,
        note_type: str = "Basic",
        tags: list[str] | None = None,
        decks: list[str] | None = None,
    ) -> RemoteNote:
        """Seed a remote note with one card per deck given."""
        cards = []
        for i, deck in enumerate(decks or ["Default"]):
            card_id = note_id * 10 + i
            self.card_decks[card_id] = deck
            cards.append(card_id)

        note = RemoteNote(id=note_id, note_type=note_type, fields=dict(fields), tags=list(tags or []), cards=cards)
        self.notes[note_id] = note
        self.next_id = max(self.next_id, note_id)
        return note

    def list_note_types(self) -> list[str]:
        self._call("modelNames")
        return list(self.fields)

    def list_decks(self) -> list[str]:
        self._call("deckNames")
        return list(self.decks)

    def list_fields(self, note_type: str) -> list[str]:
        self._call("modelFieldNames")
        if note_type not in self.fields:
            raise AnkiConnectError(f"model was not found: {note_type}")
        return list(self.fields[note_type])

    def list_fields_many(self, note_types: list[str]) -> dict[str, list[str]]:
        self._call("multi")
        return {t: list(self.fields.get(t, [])) for t in note_types}

    def list_card_templates(self, note_types: list[str]) -> dict[str, list[str]]:
        self._call("multi")
        return {t: ["Card 1"] for t in note_types}

    def create_decks(self, decks: list[str]) -> None:
        self._call("createDeck")
        for deck in decks:
            if deck not in self.decks:
                self.decks.append(deck)

    def create_notes(self, notes: list[dict[str, Any]]) -> list[int | None]:
        self._call("addNote")
        ids: list[int | None] = []
        for payload in notes:
            if payload["fields"].get("Front") in self.reject_fronts:
                ids.append(None)
                continue

            self.next_id += 1
            self.created.append(payload)
            self.add_note(
                self.next_id,
                payload["fields"],
                note_type=payload["modelName"],
                tags=payload["tags"],
                decks=[payload["deckName"]],
            )
            ids.append(self.next_id)
        return ids

    def update_notes(self, notes: list[dict[str, Any]]) -> list[str | None]:
        self._call("updateNote")
        errors: list[str | None] = []
        for payload in notes:
            self.updated.append(payload)
            errors.append(None if payload["id"] in self.notes else "note was not found")
        return errors

    def delete_notes(self, ids: list[int]) -> None:
        self._call("deleteNotes")
        for note_id in ids:
            self.deleted.append(note_id)
            self.notes.pop(note_id, None)

    def query_notes(self, query: str) -> list[RemoteNote]:
        self._call("notesInfo")
        if query.startswith("nid:"):
            wanted = {int(i) for i in query[4:].split(",")}
            return [note for note_id, note in sorted(self.notes.items()) if note_id in wanted]

        match = re.search(r'note:"([^"]+)"', query)
        note_type = match.group(1) if match else None
        return [n for _, n in sorted(self.notes.items()) if note_type is None or n.note_type == note_type]

    def get_cards_info(self, cards: list[int]) -> list[CardInfo]:
        self._call("cardsInfo")
        return [CardInfo(card_id=c, deck_name=self.card_decks[c]) for c in cards if c in self.card_decks]


def write_doc(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


@pytest.fixture
def remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def vault_path(tmp_path: Path) -> Path:
    """An empty vault directory."""
    path = tmp_path / "vault"
    path.mkdir()
    return path


@pytest.fixture
def state(vault_path: Path) -> SyncState:
    return SyncState.load(vault_path)


@pytest.fixture
def basic_export_rule() -> ExportRule:
    return ExportRule(
        name="basic",
        note_type="Basic",
        template="Q: {{Front}}\nA: {{Back}}",
        deck="Default",
        folder="cards",
    )


@pytest.fixture
def basic_import_rule() -> ImportRule:
    return ImportRule(
        name="inbox",
        note_type="Basic",
        template="Q: {{Front}}\nA: {{Back}}",
        file_path="Inbox.md",
        file_tag="",
    )


@pytest.fixture
def export_settings(basic_export_rule: ExportRule) -> Settings:
    return Settings(vault_name="notes", export_rules=[basic_export_rule])
