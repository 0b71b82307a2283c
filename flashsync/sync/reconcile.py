"""
Reconciliation: decide, per note, what a sync run does with it.

These functions are pure. The exporter and importer gather the inputs (local
scans, persisted ids, remote query results), ask for decisions here and then
carry them out.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from ..anki.connect import CardInfo
from ..models import Note, NoteStatus
from ..rules.schema import ExistingAction
from ..vault.span import Span


@dataclass
class Deletion:
    """A registered note that no longer exists locally."""

    id: int
    document_path: str
    span: Span | None = None  # leftover marker block to remove, if any


@dataclass
class ExportPlan:
    create: list[Note] = field(default_factory=list)
    update: list[Note] = field(default_factory=list)
    delete: list[Deletion] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.create or self.update or self.delete)


@dataclass
class ImportPlan:
    create: list[Note] = field(default_factory=list)
    update: list[Note] = field(default_factory=list)
    ignored: int = 0


def classify_export(note: Note, remote_ids: set[int]) -> NoteStatus:
    """Create notes without an id (or whose id the remote no longer knows), update the rest."""
    if note.id is not None and note.id in remote_ids:
        return NoteStatus.EXPORT_UPDATE
    return NoteStatus.EXPORT_CREATE


def plan_export(
    notes: list[Note],
    remote_ids: set[int],
    deletions: Iterable[Deletion] = (),
) -> ExportPlan:
    plan = ExportPlan()
    seen: set[int] = set()

    for note in notes:
        note.status = classify_export(note, remote_ids)

        # The same id found twice: only the first occurrence keeps it
        if note.status == NoteStatus.EXPORT_UPDATE:
            if note.id in seen:
                note.id = None
                note.status = NoteStatus.EXPORT_CREATE
            else:
                seen.add(note.id)  # type: ignore[arg-type]

        if note.status == NoteStatus.EXPORT_CREATE:
            plan.create.append(note)
        else:
            plan.update.append(note)

    plan.delete = [d for d in deletions if d.id not in seen]
    return plan


def find_deletions(
    registered: dict[int, str],
    found_ids: set[int],
    scanned_paths: set[str],
    stray: dict[int, tuple[str, Span]] | None = None,
) -> list[Deletion]:
    """Registered ids that were not found again in any scanned document.

    Only documents scanned in this run are considered, so notes in documents
    outside every rule's scope are left alone. A leftover marker block found
    for an id is returned with it so it can be removed as well.
    """
    stray = stray or {}
    deletions = []

    for note_id, path in sorted(registered.items()):
        if note_id in found_ids:
            continue

        if note_id in stray:
            stray_path, span = stray[note_id]
            deletions.append(Deletion(id=note_id, document_path=stray_path, span=span))
        elif path in scanned_paths:
            deletions.append(Deletion(id=note_id, document_path=path))

    return deletions


def build_query(query: str, note_type: str) -> str:
    """Restrict a search query to one note type unless it already is."""
    type_arg = f'note:"{note_type}"'
    query = query.strip()

    if type_arg in query:
        return query
    return f"({query}) AND {type_arg}" if query else type_arg


def classify_import(
    note: Note,
    local: Note | None,
    existing_action: ExistingAction,
) -> NoteStatus | None:
    """Decide what to do with a remote note; None drops it."""
    if local is None:
        return NoteStatus.IMPORT_CREATE

    if existing_action == "update":
        note.last_import = local.last_import
        return NoteStatus.IMPORT_UPDATE
    if existing_action == "append":
        return NoteStatus.IMPORT_CREATE
    return None


def resolve_deck(card_ids: list[int], cards_info: dict[int, CardInfo]) -> str | None:
    """Deck shared by every card of a note, or None when they disagree."""
    decks = set()
    for card_id in card_ids:
        info = cards_info.get(card_id)
        if info is None:
            return None
        decks.add(info.deck_name)

    if len(decks) != 1:
        return None
    return decks.pop()
