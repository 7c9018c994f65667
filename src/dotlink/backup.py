"""Run-scoped backups of targets that are about to be replaced."""

from __future__ import annotations

import errno
import logging
import os
from datetime import datetime
from pathlib import Path

from .filesystem import copy_entry, hash_path, lexists, remove_path
from .models import BackupRecord

logger = logging.getLogger(__name__)

BACKUP_PREFIX = ".dotfiles-backup-"
TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S"


def backup_root_for(backup_dir: Path, started: datetime) -> Path:
    """Return the backup root used by a run started at ``started``."""

    return backup_dir / f"{BACKUP_PREFIX}{started.strftime(TIMESTAMP_FORMAT)}"


class BackupManager:
    """Moves conflicting targets into a single per-run backup root.

    The root is only created when the first real backup happens, so runs that
    back up nothing leave no empty directories behind. When another run already
    owns the root name (two runs started within the same second), the root gets
    a numeric suffix instead of being shared.
    """

    def __init__(self, root: Path, *, dry_run: bool = False) -> None:
        self.root = root
        self.dry_run = dry_run
        self.records: list[BackupRecord] = []
        self._reserved: set[str] = set()
        self._claimed = False

    def backup(self, path: Path) -> BackupRecord:
        """Move ``path`` into the backup root and return where it went.

        On failure the original stays where it was and the error propagates.
        """

        if not lexists(path):
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(path))

        self._claim_root()
        destination = self._next_free(path.name)
        timestamp = datetime.now()

        if self.dry_run:
            self._reserved.add(destination.name)
            record = BackupRecord(path, destination, timestamp, dry_run=True)
            self.records.append(record)
            return record

        _move(path, destination)

        self._reserved.add(destination.name)
        record = BackupRecord(path, destination, timestamp)
        self.records.append(record)
        logger.info("Backed up: %s -> %s", path, destination)
        return record

    def restore(self, record: BackupRecord) -> None:
        """Move a backup made in this run back to where it came from."""

        if lexists(record.original_path):
            raise FileExistsError(errno.EEXIST, os.strerror(errno.EEXIST), str(record.original_path))
        _move(record.backup_path, record.original_path)
        self.records.remove(record)
        self._reserved.discard(record.backup_path.name)
        logger.info("Restored %s from %s", record.original_path, record.backup_path)

    def _claim_root(self) -> None:
        if self._claimed:
            return

        base = self.root
        counter = 0
        while True:
            if self.dry_run:
                if not lexists(self.root):
                    break
            else:
                try:
                    self.root.parent.mkdir(parents=True, exist_ok=True)
                    self.root.mkdir()
                    break
                except FileExistsError:
                    pass
            counter += 1
            self.root = base.with_name(f"{base.name}.{counter}")

        self._claimed = True

    def _next_free(self, name: str) -> Path:
        candidate = name
        counter = 0
        while candidate in self._reserved or lexists(self.root / candidate):
            counter += 1
            candidate = f"{name}.{counter}"
        return self.root / candidate


def _move(path: Path, destination: Path) -> None:
    try:
        os.rename(path, destination)
    except OSError as exc:
        if exc.errno != errno.EXDEV:
            raise
        _move_across_devices(path, destination)


def _move_across_devices(path: Path, destination: Path) -> None:
    staging = destination.with_name(f".{destination.name}.dotlink-partial")
    original_digest = hash_path(path)
    try:
        copy_entry(path, staging)
        if hash_path(staging) != original_digest:
            raise OSError(errno.EIO, f"Copy of '{path}' does not match the original")
        os.rename(staging, destination)
    except Exception:
        remove_path(staging)
        raise
    remove_path(path)
