"""Local vault storage: enumerate, read and write Markdown documents."""

from __future__ import annotations

import fnmatch
import logging
from pathlib import Path, PurePosixPath

logger = logging.getLogger(__name__)


def normalize_path(path: str) -> str:
    """Vault-relative POSIX path without leading or trailing slashes ('' is the root)."""
    parts = [p for p in PurePosixPath(path.replace("\\", "/")).parts if p not in ("/", ".")]
    return "/".join(parts)


def matches_patterns(path: str, patterns: list[str]) -> bool:
    """Check a path against include/exclude globs.

    Patterns starting with `!` exclude. With no include patterns every path
    is included unless excluded.
    """
    includes = [p for p in patterns if p and not p.startswith("!")]
    excludes = [p[1:] for p in patterns if p.startswith("!")]

    if includes and not any(fnmatch.fnmatch(path, p) for p in includes):
        return False
    return not any(fnmatch.fnmatch(path, p) for p in excludes)


class LocalVault:
    """Markdown documents under a vault directory, addressed by relative path."""

    SUFFIX = ".md"

    def __init__(self, root: Path):
        self.root = root

    @property
    def name(self) -> str:
        return self.root.name

    def absolute(self, path: str) -> Path:
        return self.root / normalize_path(path)

    def exists(self, path: str) -> bool:
        return self.absolute(path).is_file()

    def find_documents(self, source: str = "", patterns: list[str] | None = None) -> list[str]:
        """Documents at or under `source`, filtered by glob patterns.

        A missing source yields nothing.
        """
        source_path = self.absolute(source)
        patterns = patterns or []

        if source_path.is_file():
            candidates = [source_path]
        elif source_path.is_dir():
            candidates = sorted(source_path.rglob(f"*{self.SUFFIX}"))
        else:
            logger.debug("Source %s does not exist in the vault", source)
            return []

        result = []
        for candidate in candidates:
            rel = candidate.relative_to(self.root)
            # Skip hidden files and directories
            if any(part.startswith(".") for part in rel.parts):
                continue

            rel_str = rel.as_posix()
            if patterns and not matches_patterns(rel_str, patterns):
                continue
            result.append(rel_str)

        return result

    def read(self, path: str) -> str:
        return self.absolute(path).read_text(encoding="utf-8")

    def write(self, path: str, text: str) -> None:
        target = self.absolute(path)
        target.parent.mkdir(parents=True, exist_ok=True)

        # Write atomically (write to temp, then rename)
        temp_path = target.with_suffix(target.suffix + ".tmp")
        temp_path.write_text(text, encoding="utf-8")
        temp_path.replace(target)

    def create(self, path: str, text: str = "") -> str:
        """Create a document if it does not exist yet and return its text."""
        if self.exists(path):
            return self.read(path)
        self.write(path, text)
        logger.info("Created %s", normalize_path(path))
        return text

    def ensure_folder(self, path: str) -> str:
        folder = self.absolute(path)
        folder.mkdir(parents=True, exist_ok=True)
        return normalize_path(path)
