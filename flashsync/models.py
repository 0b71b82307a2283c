"""Data models for flashcard notes."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from .vault.markers import split_list
from .vault.template import format_uri

if TYPE_CHECKING:
    from .anki.connect import RemoteNote
    from .rules.schema import ExportRule
    from .vault.compiler import CompiledPattern
    from .vault.document import Document
    from .vault.scanner import MatchRecord
    from .vault.span import Span


class NoteStatus(str, Enum):
    """What a sync run decided to do with a note."""

    EXPORT_CREATE = "export-create"
    EXPORT_UPDATE = "export-update"
    EXPORT_DELETE = "export-delete"

    IMPORT_CREATE = "import-create"
    IMPORT_UPDATE = "import-update"
    IMPORT_IGNORE = "import-ignore"

    UNRESOLVED = "unresolved"


DEFAULT_ADD_OPTIONS: dict[str, Any] = {
    "allowDuplicate": False,
    "duplicateScope": "deck",
}


@dataclass
class Note:
    """One flashcard note, wherever it was found."""

    note_type: str
    fields: dict[str, str] = field(default_factory=dict)
    id: int | None = None
    deck: str | None = None
    tags: list[str] = field(default_factory=list)
    cards: list[int] = field(default_factory=list)

    # Provenance: the document is referenced, never owned
    document: Document | None = field(default=None, repr=False, compare=False)
    span: Span | None = None
    body: str = ""
    template: str | None = None  # regenerates the body; None keeps the scanned body
    rule: str | None = None

    last_import: datetime | None = None
    last_export: datetime | None = None
    status: NoteStatus = NoteStatus.UNRESOLVED

    def __post_init__(self) -> None:
        if not self.note_type:
            raise ValueError("Note requires a note type")
        if self.id is not None and self.id <= 0:
            raise ValueError(f"Invalid note id: {self.id}")
        if self.span is not None and self.document is None:
            raise ValueError("A note with a span must reference its document")

    @classmethod
    def _from_match(
        cls,
        record: MatchRecord,
        rule: ExportRule,
        document: Document,
        template: str | None,
    ) -> Note:
        pos = record.span.start

        deck = record.deck or document.deck_at(pos) or rule.deck or None

        tags = record.tags
        if tags is None:
            context_tags = document.tags_at(pos)
            tags = split_list(context_tags) if context_tags is not None else list(rule.tags)

        return cls(
            note_type=rule.note_type,
            fields=dict(record.fields),
            id=record.id,
            deck=deck,
            tags=tags,
            document=document,
            span=record.span,
            body=record.body,
            template=template,
            rule=rule.name,
            last_import=record.timestamp if record.direction == "import" else None,
            last_export=record.timestamp if record.direction == "export" else None,
        )

    @classmethod
    def from_template_match(cls, record: MatchRecord, rule: ExportRule, document: Document) -> Note:
        """Note scanned with a template rule; its body is regenerated from the template."""
        return cls._from_match(record, rule, document, template=rule.template)

    @classmethod
    def from_regex_match(cls, record: MatchRecord, rule: ExportRule, document: Document) -> Note:
        """Note scanned with a regex rule; its body is kept as written."""
        return cls._from_match(record, rule, document, template=None)

    @classmethod
    def from_match(
        cls,
        record: MatchRecord,
        rule: ExportRule,
        document: Document,
        pattern: CompiledPattern,
    ) -> Note:
        if pattern.mode == "regex":
            return cls.from_regex_match(record, rule, document)
        return cls.from_template_match(record, rule, document)

    @classmethod
    def from_remote(cls, info: RemoteNote) -> Note:
        """Note as the remote service reports it; fields keep the remote order."""
        return cls(
            note_type=info.note_type,
            fields=dict(info.fields),
            id=info.id,
            tags=list(info.tags),
            cards=list(info.cards),
        )

    @property
    def has_id(self) -> bool:
        return self.id is not None

    def set_link(self, vault: str, path: str, field_name: str) -> None:
        """Point a field back at the document the note came from."""
        uri = format_uri(vault, path)
        self.fields[field_name] = f'<a href="{uri}" class="obsidian-link">Obsidian</a>'

    def to_create_payload(self, options: dict[str, Any] | None = None) -> dict[str, Any]:
        return {
            "deckName": self.deck,
            "modelName": self.note_type,
            "fields": dict(self.fields),
            "tags": list(self.tags),
            "options": dict(options or DEFAULT_ADD_OPTIONS),
        }

    def to_update_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"id": self.id, "fields": dict(self.fields)}

        # Empty tags mean "leave the remote tags alone", not "clear them"
        if self.tags:
            payload["tags"] = list(self.tags)
        return payload

    def copy(self) -> Note:
        return replace(
            self,
            fields=dict(self.fields),
            tags=list(self.tags),
            cards=list(self.cards),
        )
