"""Shared models and enums for dotlink."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path


class EntryType(str, Enum):
    """Kinds of paths found at a target."""

    FILE = "file"
    DIRECTORY = "directory"
    SYMLINK = "symlink"


@dataclass(frozen=True, slots=True)
class MappingEntry:
    """One declared association between a repository source and a target."""

    group: str
    relative_path: Path
    source: Path
    target: Path

    def key(self) -> tuple[str, str]:
        return (self.group, self.relative_path.as_posix())


class LinkState(str, Enum):
    """Classification of a target relative to its declared source."""

    ABSENT_TARGET = "absent_target"
    CORRECT_LINK = "correct_link"
    STALE_LINK = "stale_link"
    PLAIN_FILE = "plain_file"
    MISSING_SOURCE = "missing_source"
    SAME_PATH = "same_path"


@dataclass(frozen=True, slots=True)
class Classification:
    """Result of inspecting one mapping entry on disk."""

    entry: MappingEntry
    state: LinkState
    destination: str | None = None
    destination_exists: bool = True

    @property
    def broken(self) -> bool:
        return self.state is LinkState.STALE_LINK and not self.destination_exists


@dataclass(frozen=True, slots=True)
class BackupRecord:
    """A relocation performed to preserve a pre-existing target."""

    original_path: Path
    backup_path: Path
    timestamp: datetime
    dry_run: bool = False


class Action(str, Enum):
    """Action planned or performed for an entry."""

    CREATE = "create"
    BACKUP_AND_CREATE = "backup_and_create"
    REPLACE_LINK = "replace_link"
    REMOVE = "remove"
    IMPORT = "import"
    SKIP = "skip"
    NONE = "none"


class Outcome(str, Enum):
    """Per-entry result emitted by the engine."""

    CREATED = "created"
    SKIPPED = "skipped"
    FAILED = "failed"
    REMOVED = "removed"
    IMPORTED = "imported"
    VALID = "valid"
    BROKEN = "broken"
    DIFFERENT = "different"
    MISSING = "missing"


@dataclass(frozen=True, slots=True)
class EntryOutcome:
    """What happened to a single entry during a run."""

    entry: MappingEntry
    state: LinkState | None
    action: Action
    outcome: Outcome
    details: str | None = None
    backup: BackupRecord | None = None
    dry_run: bool = False


@dataclass(frozen=True, slots=True)
class DiscoveryCandidate:
    """An unmanaged target that can be imported into the repository."""

    index: int
    entry: MappingEntry
    kind: EntryType
    size: int

    def describe_size(self) -> str:
        if self.kind is EntryType.DIRECTORY:
            return f"{self.size} files"
        return f"{self.size} bytes"
