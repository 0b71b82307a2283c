"""Shared document bookkeeping for one sync run."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

from ..anki.connect import RemoteService
from ..audit_log import SyncResult
from ..rules.schema import Settings
from ..state import SyncState
from ..vault.document import Document, DocumentStatus, content_hash
from ..vault.store import LocalVault, normalize_path

logger = logging.getLogger(__name__)


def now() -> datetime:
    """Timestamp written into note markers (local time, whole seconds)."""
    return datetime.now().replace(microsecond=0)


class SyncSession:
    """
    Documents, settings, state and remote service for one run.

    Each document is read once per run and cached; all rules see the same
    `Document`, so spans claimed by one rule are visible to the next.
    Documents are written back only by `flush()`.
    """

    operation = "sync"

    def __init__(
        self,
        vault_path: Path,
        settings: Settings,
        remote: RemoteService,
        state: SyncState | None = None,
    ):
        self.vault_path = vault_path
        self.store = LocalVault(vault_path)
        self.settings = settings
        self.remote = remote
        self.state = state if state is not None else SyncState.load(vault_path)
        self.documents: dict[str, Document] = {}
        self.result = SyncResult(operation=self.operation)

    @property
    def vault_name(self) -> str:
        return self.settings.vault_name or self.store.name

    def _make_document(self, path: str, text: str) -> Document:
        document = Document(
            path=path,
            text=text,
            deck_header=self.settings.file_deck_comment,
            tags_header=self.settings.file_tags_comment,
        )

        previous = self.state.files.get(path)
        if previous is not None:
            document.status = (
                DocumentStatus.UNALTERED if previous == document.hash else DocumentStatus.ALTERED
            )
        return document

    def load_document(self, path: str) -> Document:
        path = normalize_path(path)
        if path not in self.documents:
            self.documents[path] = self._make_document(path, self.store.read(path))
        return self.documents[path]

    def open_document(self, path: str) -> Document:
        """Load a document, creating it empty when it does not exist."""
        path = normalize_path(path)
        if path not in self.documents:
            text = self.store.create(path)
            self.documents[path] = self._make_document(path, text)
        return self.documents[path]

    def find_documents(self, source: str, patterns: list[str] | None = None) -> list[Document]:
        return [self.load_document(p) for p in self.store.find_documents(source, patterns)]

    def fields_for(self, note_type: str) -> list[str]:
        """Field names of a note type, from cached metadata or the remote service."""
        fields = self.state.fields.get(note_type)
        if fields is None:
            fields = self.remote.list_fields(note_type)
            self.state.fields[note_type] = list(fields)
        return list(fields)

    def flush(self) -> None:
        """Write modified documents and save state.

        Content hashes are remembered for every document that holds notes, so
        the next run can tell which documents changed in the meantime.
        """
        holding_notes = set(self.state.notes.values())

        for document in self.documents.values():
            text = document.text
            if document.is_modified:
                text = document.render()
                self.store.write(document.path, text)
                self.result.documents_written.append(document.path)
                logger.info("Wrote %s", document.path)

            if document.path in holding_notes:
                self.state.files[document.path] = content_hash(text)

        self.state.save()
