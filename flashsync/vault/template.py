"""Generative use of note templates: fill `{{Token}}` placeholders from a note."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING
from urllib.parse import quote

from .compiler import DECK_TOKEN, FIELDS_TOKEN, TAGS_TOKEN, TOKEN_REGEX, normalize_template

if TYPE_CHECKING:
    from ..models import Note

CLOZE_REGEX = re.compile(r"\{\{c(?P<number>\d+)::(?P<value>.+?)(?:::[^}]*)?\}\}")
FILE_NAME_UNSAFE_REGEX = re.compile(r"[\[\]#^|\\/?:]")


def format_fields(fields: dict[str, str]) -> str:
    return "\n".join(f"{name}: {value}" for name, value in fields.items())


def fill_template(template: str, note: "Note") -> str:
    """Replace template tokens with the note's values.

    A token whose value is unset stays in the output literally, so a missing
    field shows up in the written text instead of silently vanishing.
    """

    def replace(match: re.Match[str]) -> str:
        key = match.group(1)

        if key in note.fields:
            return note.fields[key]
        if key == FIELDS_TOKEN:
            return format_fields(note.fields)
        if key == DECK_TOKEN and note.deck:
            return note.deck
        if key == TAGS_TOKEN:
            return ", ".join(note.tags)

        return match.group(0)

    return TOKEN_REGEX.sub(replace, normalize_template(template))


def escape_file_name(name: str, remove_clozes: bool = True) -> str:
    """Make a string safe to use as a vault file name."""
    result = name
    if remove_clozes:
        result = CLOZE_REGEX.sub(lambda m: m.group("value"), result)
    result = FILE_NAME_UNSAFE_REGEX.sub("", result)
    return " ".join(result.split())


def format_file_name(template: str, note: "Note") -> str:
    """Derive a Markdown file name for a note from a file-name template."""
    name = escape_file_name(fill_template(template, note)) or str(note.id or "untitled")
    if not name.endswith(".md"):
        name += ".md"
    return name


def format_uri(vault: str, path: str, line: int | None = None) -> str:
    """Link that opens a vault document in Obsidian."""
    uri = f"obsidian://open?vault={quote(vault, safe='')}&file={quote(path, safe='')}"
    if line:
        uri += f"&line={line}"
    return uri
