"""Apply compiled patterns to document text."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterator

from . import markers
from .compiler import META_GROUP, CompiledPattern
from .markers import Direction, Metadata
from .span import Span, SpanSet

# A block body never crosses another start line
IMPORT_BLOCK_REGEX = re.compile(
    rf"^{markers.START_LINE}\n"
    rf"(?P<inner>(?:(?!^{markers.START_LINE}$)[\s\S])*?)"
    rf"\n{markers.END_LINE}$",
    re.MULTILINE,
)


@dataclass(frozen=True)
class MatchRecord:
    """One accepted match of a rule's pattern."""

    span: Span
    text: str
    body: str
    fields: dict[str, str] = field(default_factory=dict)
    id: int | None = None
    deck: str | None = None
    tags: list[str] | None = None
    cards: list[str] = field(default_factory=list)
    timestamp: datetime | None = None
    direction: Direction | None = None


@dataclass(frozen=True)
class ImportBlock:
    """A note block previously written by the import direction."""

    span: Span
    id: int
    body: str
    meta: Metadata

    def __post_init__(self) -> None:
        if self.id <= 0:
            raise ValueError(f"Invalid note id: {self.id}")


def _record(text: str, match: re.Match[str], pattern: CompiledPattern) -> MatchRecord:
    span = Span.from_match(match)

    # Body: the matched text between an optional start marker and the metadata block
    body_start = match.start()
    if start := markers.START_LINE_REGEX.match(text, body_start):
        body_start = start.end()
    body_end = match.start(META_GROUP)

    meta = markers.decode(match.group(META_GROUP))

    raw_id = pattern.special(match, "id")
    note_id = int(raw_id) if raw_id and raw_id.isdigit() else meta.id

    deck = pattern.special(match, "deck")
    deck = deck.strip() if deck and deck.strip() else meta.deck

    tags = pattern.extract_tags(match)
    if not tags:
        tags = meta.tags or tags

    cards_raw = pattern.special(match, "cards")
    cards = markers.split_list(cards_raw) if cards_raw else meta.cards

    return MatchRecord(
        span=span,
        text=match.group(0),
        body=text[body_start:body_end],
        fields=pattern.extract_fields(match),
        id=note_id or None,
        deck=deck,
        tags=tags,
        cards=cards,
        timestamp=meta.timestamp,
        direction=meta.direction,
    )


def scan(text: str, pattern: CompiledPattern, claimed: SpanSet) -> Iterator[MatchRecord]:
    """Yield matches of `pattern` left to right, claiming their spans.

    Matches overlapping text already claimed (by an earlier rule or an earlier
    match of this one) are skipped.
    """
    for match in pattern.regex.finditer(text):
        span = Span.from_match(match)
        if not span or claimed.overlaps(span):
            continue

        claimed.merge(span)
        yield _record(text, match, pattern)


def find_import_blocks(text: str, claimed: SpanSet | None = None) -> list[ImportBlock]:
    """Blocks written by the import direction, optionally claiming their spans."""
    blocks = []

    for match in IMPORT_BLOCK_REGEX.finditer(text):
        body, meta_block = markers.split_metadata(match.group("inner"))
        meta = markers.decode(meta_block)
        if meta.id is None or meta.direction != "import":
            continue

        span = Span.from_match(match)
        if claimed is not None:
            if claimed.overlaps(span):
                continue
            claimed.merge(span)

        blocks.append(ImportBlock(span=span, id=meta.id, body=body, meta=meta))

    return blocks


def find_stray_markers(text: str, claimed: SpanSet) -> list[tuple[Span, int]]:
    """Id markers outside every claimed span, with the span of their marker block.

    These are what remains of a note when its body was deleted but its
    markers were not.
    """
    result = []
    for match in markers.STRAY_BLOCK_REGEX.finditer(text):
        span = Span.from_match(match)
        if claimed.overlaps(span):
            continue

        meta = markers.decode(match.group(0))
        if meta.id is not None:
            result.append((span, meta.id))

    return result
