from __future__ import annotations

from typing import Any
from urllib.error import URLError

import pytest

from flashsync.anki import connect
from flashsync.anki.connect import (
    AnkiConnectClient,
    AnkiConnectError,
    RemoteNote,
    create_request,
    parse_response,
)


class MockClient(AnkiConnectClient):
    """Client that answers requests from a queue instead of the network."""

    def __init__(self, *responses: Any) -> None:
        super().__init__()
        self.responses = list(responses)
        self.requests: list[dict[str, Any]] = []

    def _post(self, request: dict[str, Any]) -> Any:
        self.requests.append(request)
        return parse_response(self.responses.pop(0))


def test_create_request() -> None:
    assert create_request("deckNames") == {"action": "deckNames", "version": 6, "params": {}}


def test_parse_response_returns_result() -> None:
    assert parse_response({"error": None, "result": [1, 2]}) == [1, 2]


@pytest.mark.parametrize(
    "payload",
    [
        [],
        {"result": 1},
        {"error": None},
        {"error": None, "result": 1, "extra": True},
        {"error": "deck was not found", "result": None},
    ],
)
def test_parse_response_rejects_bad_envelopes(payload: Any) -> None:
    with pytest.raises(AnkiConnectError):
        parse_response(payload)


def test_create_notes_reports_failures_per_note() -> None:
    client = MockClient(
        {
            "error": None,
            "result": [
                {"error": None, "result": 1001},
                {"error": "cannot create note because it is a duplicate", "result": None},
            ],
        }
    )

    ids = client.create_notes([{"fields": {"Front": "a"}}, {"fields": {"Front": "b"}}])

    assert ids == [1001, None]
    [request] = client.requests
    assert request["action"] == "multi"
    assert [a["action"] for a in request["params"]["actions"]] == ["addNote", "addNote"]


def test_update_notes_returns_errors() -> None:
    client = MockClient(
        {"error": None, "result": [{"error": None, "result": None}, {"error": "note was not found", "result": None}]}
    )

    errors = client.update_notes([{"id": 1, "fields": {}}, {"id": 2, "fields": {}}])

    assert errors == [None, "note was not found"]


def test_list_fields_many_batches_requests() -> None:
    client = MockClient(
        {"error": None, "result": [{"error": None, "result": ["Front", "Back"]}, {"error": None, "result": ["Text"]}]}
    )

    fields = client.list_fields_many(["Basic", "Cloze"])

    assert fields == {"Basic": ["Front", "Back"], "Cloze": ["Text"]}
    assert len(client.requests) == 1


def test_query_notes_orders_fields() -> None:
    client = MockClient(
        {
            "error": None,
            "result": [
                {
                    "noteId": 42,
                    "modelName": "Basic",
                    "tags": ["geo"],
                    "fields": {"Back": {"value": "Paris", "order": 1}, "Front": {"value": "Capital?", "order": 0}},
                    "cards": [420],
                }
            ],
        }
    )

    [note] = client.query_notes('note:"Basic"')

    assert note == RemoteNote(id=42, note_type="Basic", fields={"Front": "Capital?", "Back": "Paris"}, tags=["geo"], cards=[420])
    assert list(note.fields) == ["Front", "Back"]


def test_empty_batches_skip_the_network() -> None:
    client = MockClient()

    assert client.get_cards_info([]) == []
    assert client.update_notes([]) == []
    client.delete_notes([])
    assert client.requests == []


def test_connection_failure_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    def refuse(*args: Any, **kwargs: Any) -> Any:
        raise URLError("connection refused")

    monkeypatch.setattr(connect, "urlopen", refuse)

    with pytest.raises(AnkiConnectError, match="connection refused"):
        AnkiConnectClient().list_decks()
