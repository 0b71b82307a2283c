"""Refresh the remote metadata cached in the sync state."""

from __future__ import annotations

import logging

from ..anki.connect import RemoteService
from ..state import SyncState

logger = logging.getLogger(__name__)


def sync_metadata(remote: RemoteService, state: SyncState) -> SyncState:
    """Fetch note types, decks, field names and card templates.

    Field names and card templates for all note types are requested in one
    batch each; the state is only touched once every request has returned.
    """
    note_types = remote.list_note_types()
    decks = remote.list_decks()
    fields = remote.list_fields_many(note_types)
    cards = remote.list_card_templates(note_types)

    state.note_types = list(note_types)
    state.decks = list(decks)
    state.fields = {name: list(values) for name, values in fields.items()}
    state.cards = {name: list(values) for name, values in cards.items()}

    logger.info("Cached %d note types and %d decks", len(note_types), len(decks))
    return state
