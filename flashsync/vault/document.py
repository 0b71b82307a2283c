"""Documents: text buffers with context markers and buffered edits."""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass, field
from enum import Enum

import frontmatter

from .markers import DECK_VALUE, TAGS_VALUE
from .span import Span, SpanSet

DEFAULT_FILE_DECK_COMMENT = "File deck"
DEFAULT_FILE_TAGS_COMMENT = "File tags"


class DocumentStatus(str, Enum):
    """Where a document stands relative to the last run."""

    NEW = "new"  # not seen before
    UNALTERED = "unaltered"  # same hash as last seen
    ALTERED = "altered"  # changed since last seen
    MODIFIED = "modified"  # edited by this run, must be written back


def content_hash(text: str) -> str:
    """SHA-256 hex digest of a document's text."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def file_deck_comment_regex(header: str) -> re.Pattern[str]:
    return re.compile(
        rf"^[ \t]*<!--\s*{re.escape(header)}:\s*(?P<value>{DECK_VALUE})\s*-->[ \t]*$",
        re.MULTILINE,
    )


def file_tags_comment_regex(header: str) -> re.Pattern[str]:
    return re.compile(
        rf"^[ \t]*<!--\s*{re.escape(header)}:\s*(?P<value>{TAGS_VALUE})\s*-->[ \t]*$",
        re.MULTILINE,
    )


def match_positions(regex: re.Pattern[str], text: str) -> list[tuple[int, str]]:
    """(offset, value) for every match, in ascending offset order."""
    return [(m.start(), m.group("value").strip()) for m in regex.finditer(text)]


def find_match(pos: int, context: list[tuple[int, str]]) -> str | None:
    """Value of the nearest context marker at or before `pos`."""
    result = None
    for marker_pos, value in context:
        if marker_pos > pos:
            break
        result = value
    return result


@dataclass
class Edit:
    span: Span
    text: str
    seq: int


@dataclass
class Document:
    """
    A vault document as seen by one sync run.

    `text` stays as read for the whole run so that every span recorded while
    scanning remains valid. Changes are queued as edits and applied together
    by `render()` when the document is flushed.
    """

    path: str
    text: str
    status: DocumentStatus = DocumentStatus.NEW
    deck_header: str = DEFAULT_FILE_DECK_COMMENT
    tags_header: str = DEFAULT_FILE_TAGS_COMMENT

    decks: list[tuple[int, str]] = field(default_factory=list)
    tags: list[tuple[int, str]] = field(default_factory=list)
    claimed: SpanSet = field(default_factory=SpanSet)

    edits: list[Edit] = field(default_factory=list)
    frontmatter_tags: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.decks = match_positions(file_deck_comment_regex(self.deck_header), self.text)
        self.tags = match_positions(file_tags_comment_regex(self.tags_header), self.text)

    @property
    def name(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    @property
    def hash(self) -> str:
        return content_hash(self.text)

    @property
    def is_modified(self) -> bool:
        return self.status == DocumentStatus.MODIFIED

    def deck_at(self, pos: int) -> str | None:
        return find_match(pos, self.decks)

    def tags_at(self, pos: int) -> str | None:
        return find_match(pos, self.tags)

    def line_of(self, pos: int) -> int:
        """1-based line number of an offset."""
        return self.text.count("\n", 0, pos) + 1

    def replace(self, span: Span, text: str) -> None:
        if span.end > len(self.text):
            raise ValueError(f"Span {span} is outside of {self.path}")
        if span.slice(self.text) == text:
            return
        self.edits.append(Edit(span=span, text=text, seq=len(self.edits)))
        self.status = DocumentStatus.MODIFIED

    def remove(self, span: Span) -> None:
        self.replace(span, "")

    def insert(self, pos: int | None, text: str) -> None:
        """Insert text at an offset, or at the end when `pos` is None."""
        pos = len(self.text) if pos is None else pos
        self.edits.append(Edit(span=Span(pos, pos), text=text, seq=len(self.edits)))
        self.status = DocumentStatus.MODIFIED

    def add_frontmatter_tag(self, tag: str) -> None:
        if tag and tag not in self.frontmatter_tags:
            self.frontmatter_tags.append(tag)
            self.status = DocumentStatus.MODIFIED

    def render(self) -> str:
        """Text with all queued edits applied."""
        # Apply back to front so earlier offsets stay valid; for inserts at the
        # same offset the first one queued ends up first.
        ordered = sorted(self.edits, key=lambda e: (e.span.start, e.span.end, e.seq), reverse=True)

        result = self.text
        limit = len(self.text)
        for edit in ordered:
            if edit.span.end > limit:
                raise ValueError(f"Overlapping edits in {self.path} at {edit.span}")
            result = result[: edit.span.start] + edit.text + result[edit.span.end :]
            limit = edit.span.start

        if self.frontmatter_tags:
            result = _with_frontmatter_tags(result, self.frontmatter_tags)

        return result


def _with_frontmatter_tags(text: str, tags: list[str]) -> str:
    post = frontmatter.loads(text)

    current = post.metadata.get("tags") or []
    if isinstance(current, str):
        current = [current]

    missing = [tag for tag in tags if tag not in current]
    if not missing:
        return text

    post.metadata["tags"] = [*current, *missing]
    result = frontmatter.dumps(post)
    return result if result.endswith("\n") else result + "\n"
