"""
Audit log of sync runs.

Every export or import run leaves one JSON Lines entry in
`.flashsync/sync.log`: what it created, updated and deleted on either side,
the warnings it raised and, when it failed, why.
"""

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .state import get_state_dir

AUDIT_LOG_FILE = "sync.log"


@dataclass
class SyncResult:
    """Outcome of one sync direction."""

    operation: str
    success: bool = True
    created: int = 0
    updated: int = 0
    deleted: int = 0
    skipped: int = 0
    documents_written: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    error: str | None = None

    def warn(self, message: str) -> None:
        self.warnings.append(message)

    def fail(self, error: str) -> None:
        self.success = False
        self.error = error

    @property
    def changed(self) -> int:
        return self.created + self.updated + self.deleted


@dataclass
class AuditEntry:
    """A single audit log entry."""

    timestamp: str
    operation: str
    success: bool
    counts: dict[str, int] = field(default_factory=dict)
    documents: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "AuditEntry":
        """Create from dictionary."""
        return cls(
            timestamp=data["timestamp"],
            operation=data["operation"],
            success=bool(data.get("success", True)),
            counts=dict(data.get("counts", {})),
            documents=list(data.get("documents", [])),
            warnings=list(data.get("warnings", [])),
            error=data.get("error"),
        )


def get_audit_log_path(vault_path: Path) -> Path:
    return get_state_dir(vault_path) / AUDIT_LOG_FILE


def log_run(vault_path: Path, result: SyncResult) -> AuditEntry:
    """Append the outcome of a run to the audit log."""
    entry = AuditEntry(
        timestamp=datetime.now(timezone.utc).isoformat(),
        operation=result.operation,
        success=result.success,
        counts={
            "created": result.created,
            "updated": result.updated,
            "deleted": result.deleted,
            "skipped": result.skipped,
        },
        documents=list(result.documents_written),
        warnings=list(result.warnings),
        error=result.error,
    )

    log_path = get_audit_log_path(vault_path)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    # Append as JSON Lines format (one JSON object per line)
    with log_path.open("a", encoding="utf-8") as f:
        f.write(json.dumps(entry.to_dict()) + "\n")

    return entry


def read_audit_log(vault_path: Path, last_n: int | None = None) -> list[AuditEntry]:
    """
    Read entries from the audit log.

    Args:
        vault_path: Path to the vault
        last_n: If specified, return only the last N entries

    Returns:
        List of audit entries, oldest first
    """
    log_path = get_audit_log_path(vault_path)
    if not log_path.exists():
        return []

    entries = []
    with log_path.open("r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line:
                try:
                    entries.append(AuditEntry.from_dict(json.loads(line)))
                except (json.JSONDecodeError, KeyError):
                    continue  # Skip malformed lines

    if last_n is not None:
        return entries[-last_n:]
    return entries


def format_audit_entry(entry: AuditEntry) -> str:
    """Format an audit entry for human-readable display."""
    status = "ok" if entry.success else "FAILED"
    lines = [f"[{entry.timestamp}] {entry.operation} ({status})"]

    counts = [f"{value} {key}" for key, value in entry.counts.items() if value]
    if counts:
        lines.append(f"  {', '.join(counts)}")

    if entry.documents:
        lines.append(f"  Documents: {', '.join(entry.documents)}")

    for warning in entry.warnings:
        lines.append(f"  warning: {warning}")

    if entry.error:
        lines.append(f"  error: {entry.error}")

    return "\n".join(lines)
