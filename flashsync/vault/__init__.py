"""Vault scanning: spans, pattern compilation, markers and documents."""

from .compiler import CompileError, CompiledPattern, compile_regex, compile_rule, compile_template
from .document import Document, DocumentStatus, content_hash, find_match
from .scanner import MatchRecord, find_import_blocks, find_stray_markers, scan
from .span import Span, SpanSet
from .store import LocalVault

__all__ = [
    "CompileError",
    "CompiledPattern",
    "Document",
    "DocumentStatus",
    "LocalVault",
    "MatchRecord",
    "Span",
    "SpanSet",
    "compile_regex",
    "compile_rule",
    "compile_template",
    "content_hash",
    "find_import_blocks",
    "find_match",
    "find_stray_markers",
    "scan",
]
