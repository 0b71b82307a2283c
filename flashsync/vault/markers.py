"""
Inline note markers: encoding and decoding.

Notes carry their sync metadata as HTML comments directly below the note
body, optionally wrapped in start/end comments:

    <!-- Note start -->
    Front: What is the capital of France?
    Back: Paris
    <!-- Note id: 1700000000000 -->
    <!-- Last export: 2024-05-01T12:30:45 -->
    <!-- Note end -->

Each marker is optional and may appear in any order; earlier versions wrote
different combinations, so decoding looks for every marker independently.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

Direction = Literal["import", "export"]

NOTE_START = "<!-- Note start -->"
NOTE_END = "<!-- Note end -->"

# Value shapes shared with the pattern compiler
ID_VALUE = r"\d+"
DECK_VALUE = r"[\w\- ]+(?:::[\w\- ]+)*"
TAG_VALUE = r"[\w/\-]+"
TAGS_VALUE = rf"{TAG_VALUE}(?:,\s*{TAG_VALUE})*"
CARD_VALUE = r"[\w/\- ]+"
CARDS_VALUE = rf"{CARD_VALUE}(?:,\s*{CARD_VALUE})*"
TIMESTAMP_VALUE = (
    r"\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?(?:Z|[+-]\d{2}:?\d{2})?"
)

LIST_SEP_REGEX = re.compile(r",\s*")

# Opening of any line recognized as a note marker (used to delimit metadata blocks)
MARKER_LINE = (
    r"[ \t]*<!--[ \t]*(?i:Note[ \t]+(?:id|deck|tags|cards)|Last[ \t]+(?:import|export))"
    r"[ \t]*:[^\n]*?-->[ \t]*"
)
START_LINE = r"[ \t]*<!--[ \t]*(?i:Note[ \t]+start)[ \t]*-->[ \t]*"
END_LINE = r"[ \t]*<!--[ \t]*(?i:Note[ \t]+end)[ \t]*-->[ \t]*"

START_LINE_REGEX = re.compile(START_LINE + r"\n")
MARKER_LINE_REGEX = re.compile(MARKER_LINE)

ID_MARKER_REGEX = re.compile(rf"<!--\s*Note id:\s*(?P<id>{ID_VALUE})\s*-->", re.IGNORECASE)
DECK_MARKER_REGEX = re.compile(rf"<!--\s*Note deck:\s*(?P<deck>{DECK_VALUE})\s*-->", re.IGNORECASE)
TAGS_MARKER_REGEX = re.compile(rf"<!--\s*Note tags:\s*(?P<tags>{TAGS_VALUE})\s*-->", re.IGNORECASE)
CARDS_MARKER_REGEX = re.compile(rf"<!--\s*Note cards:\s*(?P<cards>{CARDS_VALUE})\s*-->", re.IGNORECASE)
TIMESTAMP_MARKER_REGEX = re.compile(
    rf"<!--\s*Last (?P<direction>import|export):\s*(?P<timestamp>{TIMESTAMP_VALUE})\s*-->",
    re.IGNORECASE,
)

# A run of marker lines not attached to any note body
STRAY_BLOCK_REGEX = re.compile(
    rf"^(?:{START_LINE}\n)?(?:{MARKER_LINE}(?:\n|\Z))+(?:{END_LINE}(?:\n|\Z))?",
    re.MULTILINE,
)

_BLANK_RUN_REGEX = re.compile(r"\n[ \t]*\n(?:[ \t]*\n)+")


@dataclass
class Metadata:
    """Decoded contents of a note's marker block."""

    id: int | None = None
    deck: str | None = None
    tags: list[str] = field(default_factory=list)
    cards: list[str] = field(default_factory=list)
    timestamp: datetime | None = None
    direction: Direction | None = None

    @property
    def is_empty(self) -> bool:
        return (
            self.id is None
            and self.deck is None
            and not self.tags
            and not self.cards
            and self.timestamp is None
        )


def split_list(value: str | None) -> list[str]:
    """Split a comma-separated marker value into trimmed, non-empty items."""
    if not value:
        return []
    return [item.strip() for item in LIST_SEP_REGEX.split(value) if item.strip()]


def format_timestamp(timestamp: datetime) -> str:
    return timestamp.isoformat()


def parse_timestamp(value: str) -> datetime | None:
    try:
        return datetime.fromisoformat(value.strip())
    except ValueError:
        return None


def decode(block: str | None) -> Metadata:
    """Decode whatever markers are present in a metadata block."""
    meta = Metadata()
    if not block:
        return meta

    if match := ID_MARKER_REGEX.search(block):
        meta.id = int(match.group("id"))

    if match := DECK_MARKER_REGEX.search(block):
        meta.deck = match.group("deck").strip()

    if match := TAGS_MARKER_REGEX.search(block):
        meta.tags = split_list(match.group("tags"))

    if match := CARDS_MARKER_REGEX.search(block):
        meta.cards = split_list(match.group("cards"))

    if match := TIMESTAMP_MARKER_REGEX.search(block):
        meta.timestamp = parse_timestamp(match.group("timestamp"))
        meta.direction = match.group("direction").lower()  # type: ignore[assignment]

    return meta


def id_marker(note_id: int) -> str:
    return f"<!-- Note id: {note_id} -->"


def timestamp_marker(direction: Direction, timestamp: datetime) -> str:
    return f"<!-- Last {direction}: {format_timestamp(timestamp)} -->"


def encode(
    body: str,
    note_id: int | None,
    timestamp: datetime | None,
    direction: Direction,
) -> str:
    """
    Wrap a note body with its markers.

    The id marker is omitted while no id is assigned, the timestamp marker
    when no timestamp is given. Runs of blank lines collapse to one and
    trailing whitespace after the end marker is trimmed; the body keeps its
    own trailing spaces so a regex rule still matches the written text.
    """
    parts = [NOTE_START, body.strip("\n")]
    if note_id is not None:
        parts.append(id_marker(note_id))
    if timestamp is not None:
        parts.append(timestamp_marker(direction, timestamp))
    parts.append(NOTE_END)

    text = "\n".join(parts)
    text = _BLANK_RUN_REGEX.sub("\n\n", text)
    return text.rstrip()


def encode_export(body: str, note_id: int | None, timestamp: datetime | None) -> str:
    return encode(body, note_id, timestamp, "export")


def encode_import(body: str, note_id: int, timestamp: datetime) -> str:
    # The import direction always knows the remote id
    return encode(body, note_id, timestamp, "import")


def split_metadata(text: str) -> tuple[str, str]:
    """Split trailing marker lines off a block of text.

    Returns:
        (body, metadata block); the block keeps its leading newlines so it can
        be passed straight to `decode`.
    """
    lines = text.split("\n")
    cut = len(lines)
    while cut > 0 and MARKER_LINE_REGEX.fullmatch(lines[cut - 1]):
        cut -= 1

    body = "\n".join(lines[:cut])
    meta = "".join("\n" + line for line in lines[cut:])
    return body, meta
