from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from flashsync.vault.markers import (
    NOTE_END,
    NOTE_START,
    decode,
    encode_export,
    encode_import,
    split_list,
    split_metadata,
)


@pytest.mark.parametrize(
    "timestamp",
    [
        datetime(2024, 1, 2, 3, 4, 5),
        datetime(2024, 1, 2, 3, 4, 5, 123456),
        datetime(2023, 12, 31, 23, 59, 0, tzinfo=timezone(timedelta(hours=2))),
    ],
)
def test_decode_reproduces_encoded_id_and_timestamp(timestamp: datetime) -> None:
    meta = decode(encode_export("Q: a\nA: b", 1234567890123, timestamp))

    assert meta.id == 1234567890123
    assert meta.timestamp == timestamp
    assert meta.direction == "export"


def test_encode_import_marks_direction() -> None:
    meta = decode(encode_import("body", 7, datetime(2024, 1, 1)))

    assert meta.direction == "import"
    assert meta.id == 7


def test_encode_layout() -> None:
    text = encode_export("Q: a\nA: b\n\n", 5, datetime(2024, 1, 2, 3, 4, 5))

    assert text == (
        f"{NOTE_START}\n"
        "Q: a\n"
        "A: b\n"
        "<!-- Note id: 5 -->\n"
        "<!-- Last export: 2024-01-02T03:04:05 -->\n"
        f"{NOTE_END}"
    )


def test_encode_omits_missing_id_and_timestamp() -> None:
    text = encode_export("body", None, None)

    assert text == f"{NOTE_START}\nbody\n{NOTE_END}"


def test_encode_collapses_blank_lines() -> None:
    text = encode_export("a\n\n\n\nb", 1, None)

    assert "a\n\nb" in text
    assert "\n\n\n" not in text


def test_encode_keeps_trailing_spaces_of_body() -> None:
    assert "Hello :: \n<!-- Note id: 1 -->" in encode_export("Hello :: ", 1, None)


def test_decode_any_subset_in_any_order() -> None:
    block = (
        "<!-- Last import: 2024-01-02T03:04:05 -->\n"
        "<!-- note TAGS: a, b/c -->\n"
        "<!-- Note deck: Lang::French -->\n"
    )

    meta = decode(block)

    assert meta.id is None
    assert meta.tags == ["a", "b/c"]
    assert meta.deck == "Lang::French"
    assert meta.direction == "import"
    assert meta.timestamp == datetime(2024, 1, 2, 3, 4, 5)


def test_decode_empty_block() -> None:
    assert decode("").is_empty
    assert decode(None).is_empty


def test_decode_cards() -> None:
    assert decode("<!-- Note cards: Card 1, Card 2 -->").cards == ["Card 1", "Card 2"]


def test_split_metadata() -> None:
    body, meta = split_metadata("Q: a\nA: b\n<!-- Note id: 3 -->\n<!-- Last import: 2024-01-02T03:04:05 -->")

    assert body == "Q: a\nA: b"
    assert meta == "\n<!-- Note id: 3 -->\n<!-- Last import: 2024-01-02T03:04:05 -->"


def test_split_list() -> None:
    assert split_list(" a,b ,  c,, ") == ["a", "b", "c"]
    assert split_list(None) == []
