"""
Persisted sync state.

Stored as JSON in `.flashsync/state.json` next to the vault content:

- files: document path -> content hash when last seen
- notes: note id -> path of the document holding it
- note_types, decks, fields, cards: remote metadata cached by `sync`
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

STATE_DIR = ".flashsync"
STATE_FILE = "state.json"


def get_state_dir(vault_path: Path) -> Path:
    return vault_path / STATE_DIR


@dataclass
class SyncState:
    """State carried between sync runs."""

    files: dict[str, str] = field(default_factory=dict)
    notes: dict[int, str] = field(default_factory=dict)
    note_types: list[str] = field(default_factory=list)
    decks: list[str] = field(default_factory=list)
    fields: dict[str, list[str]] = field(default_factory=dict)
    cards: dict[str, list[str]] = field(default_factory=dict)

    path: Path | None = field(default=None, repr=False, compare=False)

    def register(self, note_id: int, document_path: str) -> None:
        self.notes[note_id] = document_path

    def unregister(self, note_id: int) -> None:
        self.notes.pop(note_id, None)

    def is_registered(self, note_id: int) -> bool:
        return note_id in self.notes

    def ids_in(self, document_path: str) -> set[int]:
        return {note_id for note_id, path in self.notes.items() if path == document_path}

    def to_dict(self) -> dict[str, Any]:
        return {
            "files": dict(sorted(self.files.items())),
            "notes": {str(k): v for k, v in sorted(self.notes.items())},
            "note_types": list(self.note_types),
            "decks": list(self.decks),
            "fields": dict(self.fields),
            "cards": dict(self.cards),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SyncState:
        notes: dict[int, str] = {}
        for key, value in (data.get("notes") or {}).items():
            try:
                notes[int(key)] = str(value)
            except (TypeError, ValueError):
                continue

        return cls(
            files={str(k): str(v) for k, v in (data.get("files") or {}).items()},
            notes=notes,
            note_types=list(data.get("note_types") or []),
            decks=list(data.get("decks") or []),
            fields={str(k): list(v) for k, v in (data.get("fields") or {}).items()},
            cards={str(k): list(v) for k, v in (data.get("cards") or {}).items()},
        )

    @classmethod
    def load(cls, vault_path: Path) -> SyncState:
        """Load state for a vault; a missing or unreadable file gives empty state."""
        path = get_state_dir(vault_path) / STATE_FILE

        state = cls()
        if path.exists():
            try:
                state = cls.from_dict(json.loads(path.read_text(encoding="utf-8")))
            except (json.JSONDecodeError, AttributeError) as e:
                logger.warning("Ignoring unreadable state file %s: %s", path, e)

        state.path = path
        return state

    def save(self) -> None:
        if self.path is None:
            return

        self.path.parent.mkdir(parents=True, exist_ok=True)

        # Write atomically (write to temp, then rename)
        temp_path = self.path.with_suffix(".tmp")
        temp_path.write_text(json.dumps(self.to_dict(), indent=2), encoding="utf-8")
        temp_path.replace(self.path)
