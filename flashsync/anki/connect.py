"""AnkiConnect HTTP client (small, dependency-free).

Targets the AnkiConnect add-on's JSON endpoint (API version 6). Every
request is a POST of `{"action", "version", "params"}`; every response is
exactly `{"error", "result"}`.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from ..rules.schema import DEFAULT_ANKI_URL

logger = logging.getLogger(__name__)

API_VERSION = 6


class AnkiConnectError(RuntimeError):
    """The remote service could not be reached or rejected a request."""


@dataclass(frozen=True)
class AnkiConnectConfig:
    url: str = DEFAULT_ANKI_URL
    timeout_s: float = 10.0


@dataclass(frozen=True)
class RemoteNote:
    """A note as returned by `notesInfo`, fields in the note type's order."""

    id: int
    note_type: str
    fields: dict[str, str] = field(default_factory=dict)
    tags: list[str] = field(default_factory=list)
    cards: list[int] = field(default_factory=list)

    @classmethod
    def from_info(cls, info: dict[str, Any]) -> RemoteNote:
        raw_fields = info.get("fields") or {}
        ordered = sorted(raw_fields.items(), key=lambda item: item[1].get("order", 0))
        return cls(
            id=int(info["noteId"]),
            note_type=str(info.get("modelName", "")),
            fields={name: str(value.get("value", "")) for name, value in ordered},
            tags=list(info.get("tags") or []),
            cards=[int(c) for c in info.get("cards") or []],
        )


@dataclass(frozen=True)
class CardInfo:
    card_id: int
    deck_name: str

    @classmethod
    def from_info(cls, info: dict[str, Any]) -> CardInfo:
        return cls(card_id=int(info["cardId"]), deck_name=str(info.get("deckName", "")))


class RemoteService(Protocol):
    """What the sync engine needs from the flashcard service."""

    def list_note_types(self) -> list[str]: ...

    def list_decks(self) -> list[str]: ...

    def list_fields(self, note_type: str) -> list[str]: ...

    def list_fields_many(self, note_types: list[str]) -> dict[str, list[str]]: ...

    def list_card_templates(self, note_types: list[str]) -> dict[str, list[str]]: ...

    def create_decks(self, decks: list[str]) -> None: ...

    def create_notes(self, notes: list[dict[str, Any]]) -> list[int | None]: ...

    def update_notes(self, notes: list[dict[str, Any]]) -> list[str | None]: ...

    def delete_notes(self, ids: list[int]) -> None: ...

    def query_notes(self, query: str) -> list[RemoteNote]: ...

    def get_cards_info(self, cards: list[int]) -> list[CardInfo]: ...


def create_request(action: str, **params: Any) -> dict[str, Any]:
    return {"action": action, "version": API_VERSION, "params": params}


class AnkiConnectClient:
    """Minimal AnkiConnect client."""

    def __init__(self, cfg: AnkiConnectConfig | None = None) -> None:
        self._cfg = cfg or AnkiConnectConfig()

    @property
    def url(self) -> str:
        return self._cfg.url

    def _post(self, request: dict[str, Any]) -> Any:
        body = json.dumps(request).encode("utf-8")
        req = Request(
            self._cfg.url,
            data=body,
            method="POST",
            headers={"Content-Type": "application/json"},
        )
        try:
            with urlopen(req, timeout=self._cfg.timeout_s) as resp:
                payload = json.loads(resp.read().decode("utf-8"))
        except HTTPError as e:
            raise AnkiConnectError(f"AnkiConnect HTTP error {e.code}: {e.reason}") from e
        except URLError as e:
            raise AnkiConnectError(f"AnkiConnect connection error: {e.reason}") from e
        except json.JSONDecodeError as e:
            raise AnkiConnectError(f"AnkiConnect returned invalid JSON: {e}") from e

        return parse_response(payload)

    def invoke(self, action: str, **params: Any) -> Any:
        """Run one action and return its result."""
        logger.debug("AnkiConnect %s", action)
        return self._post(create_request(action, **params))

    def multi(self, actions: list[dict[str, Any]]) -> list[Any]:
        """Run several actions in one request.

        A failing action yields None in its slot and is logged; only a failure
        of the request as a whole raises.
        """
        if not actions:
            return []

        responses = self.invoke("multi", actions=actions)
        results = []
        for action, response in zip(actions, responses):
            if isinstance(response, dict) and set(response) == {"error", "result"}:
                if response["error"]:
                    logger.warning("AnkiConnect %s failed: %s", action["action"], response["error"])
                results.append(response["result"])
            else:
                # Older AnkiConnect versions return bare results
                results.append(response)
        return results

    # Getters

    def list_note_types(self) -> list[str]:
        return list(self.invoke("modelNames"))

    def list_decks(self) -> list[str]:
        return list(self.invoke("deckNames"))

    def list_fields(self, note_type: str) -> list[str]:
        return list(self.invoke("modelFieldNames", modelName=note_type))

    def list_fields_many(self, note_types: list[str]) -> dict[str, list[str]]:
        responses = self.multi([create_request("modelFieldNames", modelName=t) for t in note_types])
        return {t: list(r or []) for t, r in zip(note_types, responses)}

    def list_card_templates(self, note_types: list[str]) -> dict[str, list[str]]:
        responses = self.multi([create_request("modelTemplates", modelName=t) for t in note_types])
        return {t: list((r or {}).keys()) for t, r in zip(note_types, responses)}

    def query_notes(self, query: str) -> list[RemoteNote]:
        return [RemoteNote.from_info(info) for info in self.invoke("notesInfo", query=query) or []]

    def get_cards_info(self, cards: list[int]) -> list[CardInfo]:
        if not cards:
            return []
        return [CardInfo.from_info(info) for info in self.invoke("cardsInfo", cards=cards) or []]

    # Modifiers

    def create_decks(self, decks: list[str]) -> None:
        self.multi([create_request("createDeck", deck=deck) for deck in decks])

    def create_notes(self, notes: list[dict[str, Any]]) -> list[int | None]:
        responses = self.multi([create_request("addNote", note=note) for note in notes])
        return [int(r) if r else None for r in responses]

    def update_notes(self, notes: list[dict[str, Any]]) -> list[str | None]:
        """Update notes; returns an error message (or None) per note."""
        if not notes:
            return []

        responses = self.invoke("multi", actions=[create_request("updateNote", note=n) for n in notes])
        errors: list[str | None] = []
        for note, response in zip(notes, responses):
            error = response.get("error") if isinstance(response, dict) else None
            if error:
                logger.warning("Updating note %s failed: %s", note.get("id"), error)
            errors.append(error)
        return errors

    def delete_notes(self, ids: list[int]) -> None:
        if ids:
            self.invoke("deleteNotes", notes=ids)


def parse_response(payload: Any) -> Any:
    """Validate an AnkiConnect response envelope and return its result."""
    if not isinstance(payload, dict):
        raise AnkiConnectError("response is not an object")
    if len(payload) != 2:
        raise AnkiConnectError("response has an unexpected number of fields")
    if "error" not in payload:
        raise AnkiConnectError("response is missing required error field")
    if "result" not in payload:
        raise AnkiConnectError("response is missing required result field")
    if payload["error"]:
        raise AnkiConnectError(str(payload["error"]))
    return payload["result"]
