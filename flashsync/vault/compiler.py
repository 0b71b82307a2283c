"""
Compile export rules into scanning patterns.

A rule's pattern source is either a template (literal text with `{{Token}}`
placeholders) or a raw regular expression. Both compile into one
`CompiledPattern`: a regex plus the table that binds its capture groups to
note fields. Patterns are built once per rule per run and applied to every
document in the rule's scope.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

from .markers import (
    DECK_VALUE,
    END_LINE,
    MARKER_LINE,
    START_LINE,
    TAGS_VALUE,
    split_list,
)

if TYPE_CHECKING:
    from ..rules.schema import ExportRule

logger = logging.getLogger(__name__)

TOKEN_REGEX = re.compile(r"\{\{([^:\"{}]*)\}\}")

FIELDS_TOKEN = "Fields"
DECK_TOKEN = "Deck"
TAGS_TOKEN = "Tags"
TEMPLATE_TOKENS = (FIELDS_TOKEN, DECK_TOKEN, TAGS_TOKEN)

META_GROUP = "fs_meta"
FIELDS_GROUP = "fs_fields"

# Named groups in a user regex that carry note properties instead of fields
SPECIAL_GROUPS = ("id", "deck", "tags", "cards")

_GLOBAL_FLAGS_REGEX = re.compile(r"^\(\?([aiLmsux]+)\)")

Mode = Literal["template", "regex"]


class CompileError(ValueError):
    """A rule's pattern cannot be turned into a working matcher."""


@dataclass(frozen=True)
class Binding:
    """Capture group (number or name) whose value populates a field."""

    group: int | str
    field: str


@dataclass(frozen=True)
class CompiledPattern:
    """Immutable matcher plus its field-binding table."""

    regex: re.Pattern[str]
    mode: Mode
    source: str
    bindings: tuple[Binding, ...] = ()
    known_fields: tuple[str, ...] = ()
    fields_line: re.Pattern[str] | None = None  # parses a {{Fields}} block
    special_groups: dict[str, int | str] = field(default_factory=dict)
    should_override: bool = False
    warnings: tuple[str, ...] = ()

    @property
    def field_names(self) -> list[str]:
        names = [b.field for b in self.bindings]
        if self.fields_line is not None:
            names.extend(self.known_fields)
        return list(dict.fromkeys(names))

    def special(self, match: re.Match[str], name: str) -> str | None:
        group = self.special_groups.get(name)
        if group is None:
            return None
        return match.group(group)

    def extract_fields(self, match: re.Match[str]) -> dict[str, str]:
        """Build the field set for one match.

        With override enabled a field whose capture did not participate in
        the match is set to an empty string; otherwise it is left out so the
        note keeps whatever value it already had.
        """
        fields: dict[str, str] = {}

        for binding in self.bindings:
            value = match.group(binding.group)
            if value is None:
                if not self.should_override:
                    continue
                value = ""
            elif self.mode == "template":
                value = value.strip()
            fields[binding.field] = value

        if self.fields_line is not None:
            block = match.group(FIELDS_GROUP) or ""
            for line in self.fields_line.finditer(block):
                fields[line.group("name")] = line.group("value").strip()

            if self.should_override:
                for name in self.known_fields:
                    fields.setdefault(name, "")

        # Declared field order first, anything else after
        ordered = {name: fields[name] for name in self.known_fields if name in fields}
        ordered.update((name, value) for name, value in fields.items() if name not in ordered)
        return ordered

    def extract_tags(self, match: re.Match[str]) -> list[str] | None:
        raw = self.special(match, "tags")
        return None if raw is None else split_list(raw)


def normalize_template(template: str) -> str:
    """Template text as it is compiled and filled: no leading blank lines, no trailing whitespace."""
    return template.lstrip("\n").rstrip()


def _wrap(body: str) -> str:
    """Surround a body pattern with optional start/end markers and the metadata block."""
    return (
        rf"(?:{START_LINE}\n)?"
        rf"(?:{body})"
        rf"(?P<{META_GROUP}>(?:\n{MARKER_LINE})*)"
        rf"(?:\n{END_LINE})?"
    )


def _field_alternation(fields: list[str]) -> str:
    # Longest names first so "Back Extra" is not cut short by "Back"
    names = sorted(fields, key=len, reverse=True)
    return "|".join(re.escape(name) for name in names)


def compile_template(
    template: str,
    fields: list[str],
    should_override: bool = False,
) -> CompiledPattern:
    """Compile a `{{Token}}` template against the note type's fields."""
    source = normalize_template(template)
    warnings: list[str] = []

    parts: list[str] = []
    bindings: list[Binding] = []
    group_for_field: dict[str, str] = {}
    special_groups: dict[str, int | str] = {}
    fields_line: re.Pattern[str] | None = None

    pos = 0
    for match in TOKEN_REGEX.finditer(source):
        parts.append(re.escape(source[pos : match.start()]))
        pos = match.end()

        token = match.group(1)

        # All fields at once, as "Field: value" lines
        if token == FIELDS_TOKEN:
            if not fields:
                warnings.append("Template uses {{Fields}} but the note type has no known fields")
                parts.append(re.escape(match.group(0)))
                continue
            if fields_line is not None:
                parts.append(f"(?P={FIELDS_GROUP})")
                continue

            names = _field_alternation(fields)
            line = rf"(?:{names})[ \t]*:[^\n]*"
            parts.append(rf"(?P<{FIELDS_GROUP}>{line}(?:\n{line})*)")
            fields_line = re.compile(
                rf"^(?P<name>{names})[ \t]*:(?P<value>[^\n]*)$", re.MULTILINE
            )

        # A single field
        elif token in fields:
            if token in group_for_field:
                parts.append(f"(?P={group_for_field[token]})")
                continue

            group = f"fs_f{len(group_for_field)}"
            group_for_field[token] = group

            # Stop lazily at literal text on the same line, otherwise run to end of line
            same_line = source[match.end() :].split("\n", 1)[0]
            value = ".+?" if same_line else ".+"
            parts.append(f"(?P<{group}>{value})")
            bindings.append(Binding(group=group, field=token))

        # Special properties
        elif token in (DECK_TOKEN, TAGS_TOKEN):
            name = token.lower()
            group = f"fs_{name}"
            if name in special_groups:
                parts.append(f"(?P={group})")
                continue

            value = DECK_VALUE if token == DECK_TOKEN else TAGS_VALUE
            parts.append(f"(?P<{group}>{value})?")
            special_groups[name] = group

        else:
            warnings.append(f"Pattern '{{{{{token}}}}}' doesn't match any field or property, matching it literally")
            parts.append(re.escape(match.group(0)))

    parts.append(re.escape(source[pos:]))

    if not bindings and fields_line is None:
        raise CompileError("Template does not capture any field")

    try:
        regex = re.compile(_wrap("^" + "".join(parts)), re.MULTILINE)
    except re.error as e:  # pragma: no cover - escaped input should always compile
        raise CompileError(f"Template compiled to an invalid pattern: {e}") from e

    for warning in warnings:
        logger.warning(warning)

    return CompiledPattern(
        regex=regex,
        mode="template",
        source=template,
        bindings=tuple(bindings),
        known_fields=tuple(fields),
        fields_line=fields_line,
        special_groups=special_groups,
        should_override=should_override,
        warnings=tuple(warnings),
    )


def _hoist_flags(source: str) -> tuple[str, str]:
    """Move leading global inline flags like `(?i)` out of the user pattern."""
    match = _GLOBAL_FLAGS_REGEX.match(source)
    if not match:
        return "", source
    return match.group(0), source[match.end() :]


def compile_regex(
    source: str,
    fields: list[str],
    captures: dict[int, str] | None = None,
    should_override: bool = False,
) -> CompiledPattern:
    """Compile a user regex, binding its capture groups to fields.

    Group `g` is bound to `captures[g]` when mapped (a blank mapping skips the
    group) and otherwise to the g-th declared field. Named groups `id`,
    `deck`, `tags` and `cards` carry note properties and are not bound.
    """
    captures = captures or {}
    warnings: list[str] = []

    try:
        user = re.compile(source, re.MULTILINE)
    except re.error as e:
        raise CompileError(f"Invalid regex: {e}") from e

    group_count = user.groups
    names_by_group = {number: name for name, number in user.groupindex.items()}
    special_groups: dict[str, int | str] = {
        name: name for name in SPECIAL_GROUPS if name in user.groupindex
    }

    for group in sorted(captures):
        if group < 1 or group > group_count:
            warnings.append(f"Capture group {group} is out of range (pattern has {group_count} groups)")

    bindings: list[Binding] = []
    bound: dict[str, int] = {}
    position = 0

    for group in range(1, group_count + 1):
        if names_by_group.get(group) in SPECIAL_GROUPS:
            continue

        if group in captures:
            name = captures[group].strip()
        elif position < len(fields):
            name = fields[position]
        else:
            name = ""
        position += 1

        if not name:
            continue

        if fields and name not in fields:
            warnings.append(f"Capture group {group} maps to unknown field '{name}'")
        if name in bound:
            warnings.append(f"Capture groups {bound[name]} and {group} both map to field '{name}'")
        else:
            bound[name] = group

        bindings.append(Binding(group=group, field=name))

    if not bindings:
        raise CompileError("Regex does not capture any field")

    flags, body = _hoist_flags(source)
    try:
        regex = re.compile(flags + _wrap(body), re.MULTILINE)
    except re.error as e:
        raise CompileError(f"Invalid regex: {e}") from e

    for warning in warnings:
        logger.warning(warning)

    return CompiledPattern(
        regex=regex,
        mode="regex",
        source=source,
        bindings=tuple(bindings),
        known_fields=tuple(fields),
        special_groups=special_groups,
        should_override=should_override,
        warnings=tuple(warnings),
    )


def compile_rule(rule: "ExportRule", fields: list[str]) -> CompiledPattern:
    """Compile an export rule for a note type with the given fields."""
    if rule.type == "regex":
        return compile_regex(rule.regex, fields, rule.captures, rule.should_override)
    return compile_template(rule.template, fields, rule.should_override)
