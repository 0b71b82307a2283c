"""
Export direction: push notes written in the vault to the remote service.

One run scans every enabled export rule's documents, decides per note whether
to create, update or delete it remotely, and writes identifiers and export
timestamps back into the documents.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ..anki.connect import AnkiConnectError
from ..audit_log import SyncResult, log_run
from ..models import Note
from ..rules.schema import ExportRule
from ..vault.compiler import CompileError, CompiledPattern, compile_rule
from ..vault.document import Document
from ..vault.markers import encode_export
from ..vault.scanner import find_import_blocks, find_stray_markers, scan
from ..vault.span import Span
from ..vault.template import fill_template
from .reconcile import Deletion, ExportPlan, find_deletions, plan_export
from .session import SyncSession, now

logger = logging.getLogger(__name__)


@dataclass
class ScanResult:
    """Everything found locally before the remote service is asked anything."""

    notes: list[Note] = field(default_factory=list)
    documents: list[Document] = field(default_factory=list)
    patterns: dict[str, CompiledPattern] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)  # rule name -> compile error
    imported: set[int] = field(default_factory=set)  # ids held by import blocks
    stray: dict[int, tuple[str, Span]] = field(default_factory=dict)
    skipped_paths: set[str] = field(default_factory=set)  # covered by a rule that did not run

    @property
    def found_ids(self) -> set[int]:
        return {note.id for note in self.notes if note.id is not None}

    @property
    def scanned_paths(self) -> set[str]:
        """Documents every covering rule ran over; only these can lose notes."""
        return {d.path for d in self.documents if d.path not in self.skipped_paths}


class Exporter(SyncSession):
    """Runs the export direction over the vault."""

    operation = "export"

    def _prepare(self, document: Document, result: ScanResult) -> None:
        # Blocks written by the import direction belong to no export rule
        if any(d.path == document.path for d in result.documents):
            return
        result.documents.append(document)

        for block in find_import_blocks(document.text, document.claimed):
            result.imported.add(block.id)

    def _skip(self, rule: ExportRule, result: ScanResult) -> None:
        # Notes of a rule that did not run are neither found nor deleted
        result.skipped_paths.update(self.store.find_documents(rule.source, rule.patterns))

    def scan(self) -> ScanResult:
        """Apply every enabled export rule, in declaration order, to its documents."""
        result = ScanResult()

        for rule in self.settings.export_rules:
            if not rule.enabled:
                logger.debug("Skipping disabled export rule '%s'", rule.name)
                self._skip(rule, result)
                continue

            try:
                pattern = compile_rule(rule, self.fields_for(rule.note_type))
            except (CompileError, AnkiConnectError) as e:
                # Unknown note types fail the field lookup; only this rule is skipped
                logger.error("Export rule '%s' is invalid: %s", rule.name, e)
                result.errors[rule.name] = str(e)
                self._skip(rule, result)
                continue

            result.patterns[rule.name] = pattern
            matched = len(result.notes)
            for warning in pattern.warnings:
                self.result.warn(f"{rule.name}: {warning}")

            for document in self.find_documents(rule.source, rule.patterns):
                self._prepare(document, result)

                for record in scan(document.text, pattern, document.claimed):
                    note = Note.from_match(record, rule, document, pattern)
                    if note.template is not None:
                        note.body = fill_template(note.template, note)
                    if rule.link_field:
                        note.set_link(self.vault_name, document.path, rule.link_field)
                    result.notes.append(note)

            logger.info("Rule '%s' matched %d notes", rule.name, len(result.notes) - matched)

        for document in result.documents:
            if document.path in result.skipped_paths:
                continue
            for span, note_id in find_stray_markers(document.text, document.claimed):
                result.stray[note_id] = (document.path, span)

        # Notes kept in import blocks are still present locally
        for note_id in result.imported:
            result.stray.pop(note_id, None)
        return result

    def plan(self, scanned: ScanResult) -> ExportPlan:
        """Decide what to do with every note found by `scan`."""
        known = scanned.found_ids | set(self.state.notes)
        remote_ids = self._remote_ids(known)

        deletions = find_deletions(
            self.state.notes,
            scanned.found_ids | scanned.imported,
            scanned.scanned_paths,
            scanned.stray,
        )
        return plan_export(scanned.notes, remote_ids, deletions)

    def _remote_ids(self, ids: set[int]) -> set[int]:
        if not ids:
            return set()
        query = "nid:" + ",".join(str(i) for i in sorted(ids))
        return {info.id for info in self.remote.query_notes(query)}

    def _rules(self) -> dict[str, ExportRule]:
        return {rule.name: rule for rule in self.settings.export_rules}

    def _splice(self, note: Note, rule: ExportRule | None) -> None:
        assert note.document is not None and note.span is not None
        timestamp = now() if rule is None or rule.write_timestamp else None
        note.last_export = timestamp
        note.document.replace(note.span, encode_export(note.body, note.id, timestamp))

    def create(self, notes: list[Note]) -> None:
        if not notes:
            return

        rules = self._rules()
        decks = sorted({note.deck for note in notes if note.deck})
        if decks:
            self.remote.create_decks(decks)

        ids = self.remote.create_notes([note.to_create_payload() for note in notes])
        for note, new_id in zip(notes, ids):
            assert note.document is not None
            if new_id is None:
                line = note.document.line_of(note.span.start) if note.span else 0
                self.result.warn(f"Could not create note at {note.document.path}:{line}")
                self.result.skipped += 1
                continue

            # A stale id the remote no longer knows is replaced
            if note.id is not None:
                self.state.unregister(note.id)

            note.id = new_id
            self._splice(note, rules.get(note.rule or ""))
            self.state.register(new_id, note.document.path)
            self.result.created += 1

    def update(self, notes: list[Note]) -> None:
        if not notes:
            return

        rules = self._rules()
        for note in notes:
            assert note.document is not None and note.id is not None
            self._splice(note, rules.get(note.rule or ""))
            self.state.register(note.id, note.document.path)

        errors = self.remote.update_notes([note.to_update_payload() for note in notes])
        for note, error in zip(notes, errors):
            if error:
                self.result.warn(f"Could not update note {note.id}: {error}")
                self.result.skipped += 1
            else:
                self.result.updated += 1

    def delete(self, deletions: list[Deletion]) -> None:
        if not deletions:
            return

        for deletion in deletions:
            if deletion.span is not None:
                self.load_document(deletion.document_path).remove(deletion.span)
            self.state.unregister(deletion.id)

        self.remote.delete_notes([deletion.id for deletion in deletions])
        self.result.deleted += len(deletions)

    def run(self) -> SyncResult:
        """Scan, reconcile and apply; always flushes and logs, even after a remote failure."""
        try:
            scanned = self.scan()
            for name, error in scanned.errors.items():
                self.result.warn(f"Export rule '{name}' skipped: {error}")

            plan = self.plan(scanned)
            logger.info(
                "Export plan: %d to create, %d to update, %d to delete",
                len(plan.create),
                len(plan.update),
                len(plan.delete),
            )

            self.create(plan.create)
            self.update(plan.update)
            self.delete(plan.delete)
        except AnkiConnectError as e:
            logger.error("Export aborted: %s", e)
            self.result.fail(str(e))
        finally:
            self.flush()
            log_run(self.vault_path, self.result)

        return self.result
