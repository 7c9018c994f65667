"""Classification of mapping entries against the filesystem."""

from __future__ import annotations

import logging
import os
import stat

from .models import Classification, LinkState, MappingEntry

logger = logging.getLogger(__name__)

_ABSENT_ERRORS = (FileNotFoundError, NotADirectoryError)


def _same_path(entry: MappingEntry) -> bool:
    if entry.target.name != entry.source.name:
        return False
    return os.path.samefile(entry.target.parent, entry.source.parent)


def classify(entry: MappingEntry) -> Classification:
    """Classify ``entry.target`` relative to ``entry.source``.

    Only the first hop of a symlink is inspected: the recorded link text is
    compared literally with the source path. A target reached through a parent
    directory that is itself linked into the repository is the source and is
    classified as ``SAME_PATH``. Errors other than a missing path (for example
    ``PermissionError``) propagate to the caller.
    """

    try:
        os.stat(entry.source)
    except _ABSENT_ERRORS:
        return Classification(entry=entry, state=LinkState.MISSING_SOURCE)

    try:
        target_stat = os.lstat(entry.target)
    except _ABSENT_ERRORS:
        return Classification(entry=entry, state=LinkState.ABSENT_TARGET)

    if _same_path(entry):
        logger.debug("%s is %s through a linked parent directory", entry.target, entry.source)
        return Classification(entry=entry, state=LinkState.SAME_PATH)

    if not stat.S_ISLNK(target_stat.st_mode):
        return Classification(entry=entry, state=LinkState.PLAIN_FILE)

    destination = os.readlink(entry.target)
    if destination == str(entry.source):
        return Classification(entry=entry, state=LinkState.CORRECT_LINK, destination=destination)

    destination_exists = os.path.exists(entry.target)
    logger.debug("%s points to %s instead of %s", entry.target, destination, entry.source)
    return Classification(
        entry=entry,
        state=LinkState.STALE_LINK,
        destination=destination,
        destination_exists=destination_exists,
    )
