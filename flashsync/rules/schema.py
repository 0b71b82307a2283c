from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

ExportType = Literal["template", "regex"]
ImportType = Literal["file", "folder"]
ExistingAction = Literal["ignore", "update", "append"]

DEFAULT_TEMPLATE = """Deck: {{Deck}}
Tags: {{Tags}}
{{Fields}}
"""

DEFAULT_ANKI_URL = "http://127.0.0.1:8765"


@dataclass(frozen=True)
class ExportRule:
    """How to recognize notes of one note type in part of the vault."""

    name: str
    note_type: str
    type: ExportType = "template"
    enabled: bool = True
    template: str = DEFAULT_TEMPLATE
    regex: str = ""
    # Capture group number -> field name; a blank name skips the group
    captures: dict[int, str] = field(default_factory=dict)
    deck: str = "Default"
    tags: list[str] = field(default_factory=list)
    # Scope: an explicit document, or a folder filtered by globs ("!" excludes)
    path: str = ""
    folder: str = ""
    patterns: list[str] = field(default_factory=list)
    should_override: bool = False
    link_field: str = ""
    write_timestamp: bool = True

    @property
    def source(self) -> str:
        return self.path or self.folder


@dataclass(frozen=True)
class ImportRule:
    """Which remote notes to pull into the vault, and where to put them."""

    name: str
    note_type: str
    enabled: bool = True
    query: str = ""
    template: str = DEFAULT_TEMPLATE
    existing_action: ExistingAction = "update"
    type: ImportType = "file"
    file_path: str = ""
    folder_path: str = ""
    file_name_format: str = "{{Front}}"
    insert_after: str = ""  # empty disables
    file_tag: str = "anki/flashcard"  # empty disables


@dataclass(frozen=True)
class AnkiSettings:
    url: str = DEFAULT_ANKI_URL
    timeout_s: float = 10.0


@dataclass(frozen=True)
class Settings:
    vault_name: str | None = None
    anki: AnkiSettings = field(default_factory=AnkiSettings)
    file_deck_comment: str = "File deck"
    file_tags_comment: str = "File tags"
    export_rules: list[ExportRule] = field(default_factory=list)
    import_rules: list[ImportRule] = field(default_factory=list)
