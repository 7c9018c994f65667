"""Filesystem helpers for dotlink."""

from __future__ import annotations

import os
import shutil
from hashlib import blake2b
from pathlib import Path

from .models import EntryType


def ensure_parent(path: Path) -> None:
    """Ensure the parent directory exists."""

    path.parent.mkdir(parents=True, exist_ok=True)


def lexists(path: Path) -> bool:
    """Return ``True`` for existing paths, dangling symlinks included."""

    return os.path.lexists(path)


def detect_entry_type(path: Path) -> EntryType:
    """Determine the ``EntryType`` for ``path``."""

    if path.is_symlink():
        return EntryType.SYMLINK
    if path.is_dir():
        return EntryType.DIRECTORY
    return EntryType.FILE


def copy_entry(source: Path, destination: Path) -> EntryType:
    """Copy ``source`` into ``destination`` preserving metadata.

    ``destination`` must not exist; nested symlinks are copied as links.
    """

    entry_type = detect_entry_type(source)
    ensure_parent(destination)

    if entry_type == EntryType.SYMLINK:
        destination.symlink_to(os.readlink(source))
    elif entry_type == EntryType.DIRECTORY:
        shutil.copytree(
            source,
            destination,
            symlinks=True,
            copy_function=shutil.copy2,
            dirs_exist_ok=False,
        )
    else:
        shutil.copy2(source, destination)

    return entry_type


def measure(path: Path) -> int:
    """Return the size in bytes of a file, or the number of files below a directory."""

    if path.is_dir() and not path.is_symlink():
        return sum(1 for child in _iter_directory(path) if child.is_file() and not child.is_symlink())
    return path.lstat().st_size


def hash_path(path: Path) -> str:
    """Return a BLAKE2 hash for ``path`` contents and structure."""

    hasher = blake2b(digest_size=32)

    entry_type = detect_entry_type(path)
    hasher.update(entry_type.value.encode())
    if entry_type == EntryType.SYMLINK:
        hasher.update(b"\0")
        hasher.update(os.readlink(path).encode())
        return hasher.hexdigest()

    if entry_type == EntryType.FILE:
        _update_hash_with_file(hasher, path)
        return hasher.hexdigest()

    for child in _iter_directory(path):
        rel = child.relative_to(path).as_posix().encode()
        child_type = detect_entry_type(child)
        hasher.update(child_type.value.encode())
        hasher.update(b"\0")
        hasher.update(rel)
        hasher.update(b"\0")
        if child_type == EntryType.FILE:
            _update_hash_with_file(hasher, child)
        elif child_type == EntryType.SYMLINK:
            hasher.update(os.readlink(child).encode())

    return hasher.hexdigest()


def _update_hash_with_file(hasher, path: Path) -> None:
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(1024 * 1024), b""):
            hasher.update(chunk)


def _iter_directory(path: Path) -> list[Path]:
    entries: list[Path] = []
    for child in path.iterdir():
        entries.append(child)
        if child.is_dir() and not child.is_symlink():
            entries.extend(_iter_directory(child))
    return sorted(entries)


def create_symlink(link: Path, destination: Path) -> None:
    """Create ``link`` pointing at the absolute ``destination``.

    The recorded link text is exactly ``str(destination)`` so that it can be
    compared literally later on.
    """

    ensure_parent(link)
    link.symlink_to(destination)


def remove_path(path: Path) -> None:
    """Delete ``path`` whether it is a file, directory, or symlink."""

    if not lexists(path):
        return
    if path.is_symlink() or path.is_file():
        path.unlink()
        return
    shutil.rmtree(path)
