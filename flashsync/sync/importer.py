"""
Import direction: pull notes from the remote service into the vault.

Imported notes are written as marker-wrapped blocks carrying their remote id
and an import timestamp, so later runs recognize them and update them in
place instead of writing them again.
"""

from __future__ import annotations

import logging
from datetime import datetime

from ..anki.connect import AnkiConnectError, CardInfo, RemoteNote
from ..audit_log import SyncResult, log_run
from ..models import Note, NoteStatus
from ..rules.schema import ImportRule
from ..vault.document import Document
from ..vault.markers import encode_import
from ..vault.scanner import ImportBlock, find_import_blocks
from ..vault.template import fill_template, format_file_name
from .reconcile import ImportPlan, build_query, classify_import, resolve_deck
from .session import SyncSession, now

logger = logging.getLogger(__name__)


class Importer(SyncSession):
    """Runs the import direction for every enabled import rule."""

    operation = "import"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.blocks: dict[str, dict[int, ImportBlock]] = {}
        self.claimed_ids: set[int] = set()
        self.timestamp: datetime = now()

    def blocks_in(self, document: Document) -> dict[int, ImportBlock]:
        """Import blocks of a document by id, as read at the start of the run."""
        if document.path not in self.blocks:
            self.blocks[document.path] = {
                block.id: block for block in find_import_blocks(document.text)
            }
        return self.blocks[document.path]

    def _target_path(self, rule: ImportRule, note: Note) -> str:
        if rule.type == "file":
            return rule.file_path

        folder = self.store.ensure_folder(rule.folder_path)

        # Keep a note where an earlier run put it, even if its name would now differ
        registered = self.state.notes.get(note.id) if note.id is not None else None
        if registered is not None and (not folder or registered.startswith(folder + "/")):
            return registered

        name = format_file_name(rule.file_name_format, note)
        return f"{folder}/{name}" if folder else name

    def _cards_info(self, notes: list[RemoteNote]) -> dict[int, CardInfo]:
        card_ids = sorted({card for note in notes for card in note.cards})
        return {info.card_id: info for info in self.remote.get_cards_info(card_ids)}

    def plan(self, rule: ImportRule) -> ImportPlan:
        """Query the remote notes a rule selects and decide what to do with each."""
        plan = ImportPlan()
        if rule.type == "file" and not rule.file_path:
            self.result.warn(f"Import rule '{rule.name}' has no file_path, skipping it")
            return plan

        remote_notes = self.remote.query_notes(build_query(rule.query, rule.note_type))
        logger.info("Rule '%s' selected %d remote notes", rule.name, len(remote_notes))
        cards_info = self._cards_info(remote_notes)

        for info in remote_notes:
            # First rule in declaration order wins the note
            if info.id in self.claimed_ids:
                logger.debug("Note %s already placed by an earlier rule", info.id)
                continue

            note = Note.from_remote(info)
            note.deck = resolve_deck(note.cards, cards_info)
            note.template = rule.template
            note.rule = rule.name

            path = self._target_path(rule, note)
            registered = self.state.notes.get(info.id)
            if registered is not None and registered != path:
                # Written by the export direction or placed by another rule earlier
                logger.debug("Note %s is kept in %s", info.id, registered)
                self.claimed_ids.add(info.id)
                plan.ignored += 1
                continue

            document = self.open_document(path)
            block = self.blocks_in(document).get(info.id)
            local = None
            if block is not None:
                local = Note(
                    note_type=rule.note_type,
                    id=block.id,
                    document=document,
                    span=block.span,
                    body=block.body,
                    last_import=block.meta.timestamp,
                )

            status = classify_import(note, local, rule.existing_action)
            self.claimed_ids.add(info.id)
            if status is None:
                plan.ignored += 1
                continue

            note.status = status
            note.document = document
            note.body = fill_template(rule.template, note)
            if status == NoteStatus.IMPORT_UPDATE:
                assert local is not None
                note.span = local.span
                plan.update.append(note)
            else:
                plan.create.append(note)

        return plan

    def _insert_position(self, document: Document, literal: str) -> int | None:
        """Offset right after the first `literal` that is not inside an import block."""
        spans = [block.span for block in self.blocks_in(document).values()]

        found = document.text.find(literal)
        while found >= 0:
            pos = found + len(literal)
            inside = next((span for span in spans if span.start < pos < span.end), None)
            if inside is None:
                return pos
            found = document.text.find(literal, inside.end)
        return None

    def _insert(self, rule: ImportRule, note: Note, text: str) -> None:
        document = note.document
        assert document is not None

        pos = self._insert_position(document, rule.insert_after) if rule.insert_after else None
        if pos is not None:
            document.insert(pos, "\n\n" + text)
            return

        # At the end, one blank line after whatever precedes
        end = len(document.text)
        appended = any(edit.span.start == end for edit in document.edits)
        if appended or document.text.endswith("\n"):
            separator = "\n"
        elif document.text:
            separator = "\n\n"
        else:
            separator = ""
        document.insert(None, separator + text + "\n")

    def apply(self, rule: ImportRule, plan: ImportPlan) -> None:
        for note in plan.create:
            assert note.document is not None and note.id is not None
            note.last_import = self.timestamp
            self._insert(rule, note, encode_import(note.body, note.id, self.timestamp))
            note.document.add_frontmatter_tag(rule.file_tag)
            self.state.register(note.id, note.document.path)
            self.result.created += 1

        for note in plan.update:
            assert note.document is not None and note.id is not None and note.span is not None
            note.last_import = self.timestamp
            note.document.replace(note.span, encode_import(note.body, note.id, self.timestamp))
            note.document.add_frontmatter_tag(rule.file_tag)
            self.state.register(note.id, note.document.path)
            self.result.updated += 1

        self.result.skipped += plan.ignored

    def run(self) -> SyncResult:
        """Import every enabled rule; always flushes and logs, even after a remote failure."""
        try:
            for rule in self.settings.import_rules:
                if not rule.enabled:
                    logger.debug("Skipping disabled import rule '%s'", rule.name)
                    continue

                plan = self.plan(rule)
                logger.info(
                    "Import plan for '%s': %d to create, %d to update, %d ignored",
                    rule.name,
                    len(plan.create),
                    len(plan.update),
                    plan.ignored,
                )
                self.apply(rule, plan)
        except AnkiConnectError as e:
            logger.error("Import aborted: %s", e)
            self.result.fail(str(e))
        finally:
            self.flush()
            log_run(self.vault_path, self.result)

        return self.result
