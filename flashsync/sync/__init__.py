"""Sync engine: reconcile vault notes with the remote service in either direction."""

from .exporter import Exporter
from .importer import Importer
from .metadata import sync_metadata
from .reconcile import (
    Deletion,
    ExportPlan,
    ImportPlan,
    build_query,
    classify_export,
    classify_import,
    find_deletions,
    plan_export,
    resolve_deck,
)
from .session import SyncSession

__all__ = [
    "Deletion",
    "ExportPlan",
    "Exporter",
    "ImportPlan",
    "Importer",
    "SyncSession",
    "build_query",
    "classify_export",
    "classify_import",
    "find_deletions",
    "plan_export",
    "resolve_deck",
    "sync_metadata",
]
