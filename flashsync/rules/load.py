from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Any

from .schema import (
    DEFAULT_ANKI_URL,
    DEFAULT_TEMPLATE,
    AnkiSettings,
    ExportRule,
    ImportRule,
    Settings,
)

logger = logging.getLogger(__name__)

CONFIG_FILE = "flashsync.toml"

EXPORT_TYPES = ("template", "regex")
IMPORT_TYPES = ("file", "folder")
EXISTING_ACTIONS = ("ignore", "update", "append")


def _coerce_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _coerce_str(value: Any, default: str = "") -> str:
    return value if isinstance(value, str) else default


def _coerce_list(value: Any) -> list[str]:
    if isinstance(value, str):
        return [value] if value else []
    if isinstance(value, list):
        return [str(v) for v in value if str(v)]
    return []


def _coerce_choice(value: Any, choices: tuple[str, ...], default: str) -> str:
    text = str(value).strip().lower() if value is not None else default
    return text if text in choices else default


def _parse_captures(raw: Any) -> dict[int, str]:
    captures: dict[int, str] = {}
    for key, value in _coerce_dict(raw).items():
        try:
            group = int(key)
        except (TypeError, ValueError):
            logger.warning("Ignoring capture mapping with non-numeric group %r", key)
            continue
        captures[group] = str(value)
    return captures


def _parse_export_rule(raw: dict[str, Any]) -> ExportRule | None:
    name = _coerce_str(raw.get("name")).strip()
    note_type = _coerce_str(raw.get("note_type")).strip()
    if not name or not note_type:
        return None

    return ExportRule(
        name=name,
        note_type=note_type,
        type=_coerce_choice(raw.get("type"), EXPORT_TYPES, "template"),  # type: ignore[arg-type]
        enabled=bool(raw.get("enabled", True)),
        template=_coerce_str(raw.get("template"), DEFAULT_TEMPLATE),
        regex=_coerce_str(raw.get("regex")),
        captures=_parse_captures(raw.get("captures")),
        deck=_coerce_str(raw.get("deck"), "Default").strip(),
        tags=_coerce_list(raw.get("tags")),
        path=_coerce_str(raw.get("path")).strip(),
        folder=_coerce_str(raw.get("folder")).strip(),
        patterns=_coerce_list(raw.get("patterns")),
        should_override=bool(raw.get("should_override", False)),
        link_field=_coerce_str(raw.get("link_field")).strip(),
        write_timestamp=bool(raw.get("write_timestamp", True)),
    )


def _parse_import_rule(raw: dict[str, Any]) -> ImportRule | None:
    name = _coerce_str(raw.get("name")).strip()
    note_type = _coerce_str(raw.get("note_type")).strip()
    if not name or not note_type:
        return None

    return ImportRule(
        name=name,
        note_type=note_type,
        enabled=bool(raw.get("enabled", True)),
        query=_coerce_str(raw.get("query")).strip(),
        template=_coerce_str(raw.get("template"), DEFAULT_TEMPLATE),
        existing_action=_coerce_choice(raw.get("existing_action"), EXISTING_ACTIONS, "update"),  # type: ignore[arg-type]
        type=_coerce_choice(raw.get("type"), IMPORT_TYPES, "file"),  # type: ignore[arg-type]
        file_path=_coerce_str(raw.get("file_path")).strip(),
        folder_path=_coerce_str(raw.get("folder_path")).strip(),
        file_name_format=_coerce_str(raw.get("file_name_format"), "{{Front}}"),
        insert_after=_coerce_str(raw.get("insert_after")),
        file_tag=_coerce_str(raw.get("file_tag"), "anki/flashcard").strip(),
    )


def _parse_rules(section: dict[str, Any], parse, kind: str) -> list:
    rules = []
    seen: set[str] = set()

    for raw in section.get("rules", []):
        if not isinstance(raw, dict):
            continue

        rule = parse(raw)
        if rule is None:
            logger.warning("Skipping %s rule without name or note_type", kind)
            continue
        if rule.name in seen:
            logger.warning("Skipping duplicate %s rule '%s'", kind, rule.name)
            continue

        seen.add(rule.name)
        rules.append(rule)

    return rules


def parse_settings(data: dict[str, Any]) -> Settings:
    """Build settings from decoded TOML data."""
    anki = _coerce_dict(data.get("anki"))
    export = _coerce_dict(data.get("export"))
    import_ = _coerce_dict(data.get("import"))

    try:
        timeout_s = float(anki.get("timeout_s", 10.0))
    except (TypeError, ValueError) as e:
        raise ValueError("anki.timeout_s must be a number") from e

    vault_name = data.get("vault_name")

    return Settings(
        vault_name=str(vault_name) if isinstance(vault_name, str) and vault_name else None,
        anki=AnkiSettings(
            url=_coerce_str(anki.get("url"), DEFAULT_ANKI_URL).strip() or DEFAULT_ANKI_URL,
            timeout_s=timeout_s,
        ),
        file_deck_comment=_coerce_str(export.get("file_deck_comment"), "File deck").strip() or "File deck",
        file_tags_comment=_coerce_str(export.get("file_tags_comment"), "File tags").strip() or "File tags",
        export_rules=_parse_rules(export, _parse_export_rule, "export"),
        import_rules=_parse_rules(import_, _parse_import_rule, "import"),
    )


def load_settings(path: Path) -> Settings:
    """
    Load settings from TOML.

    Rules are data: each `[[export.rules]]` and `[[import.rules]]` table
    becomes one rule, in declaration order.
    """
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid config {path}: {e}") from e
    return parse_settings(data)


def find_config(vault_path: Path) -> Path | None:
    """The vault's config file, if present."""
    candidate = vault_path / CONFIG_FILE
    return candidate if candidate.is_file() else None
