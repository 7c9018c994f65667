"""High level orchestration for dotlink operations."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Sequence

from .backup import BackupManager, backup_root_for
from .classifier import classify
from .config import LinkerConfig
from .filesystem import copy_entry, create_symlink, detect_entry_type, lexists, measure, remove_path
from .models import (
    Action,
    BackupRecord,
    Classification,
    DiscoveryCandidate,
    EntryOutcome,
    EntryType,
    LinkState,
    MappingEntry,
    Outcome,
)
from .reporting import RunSummary

logger = logging.getLogger(__name__)

Confirm = Callable[[str], bool]
Selector = Callable[[Sequence[DiscoveryCandidate]], Sequence[int]]

LINK_ACTIONS = {
    LinkState.MISSING_SOURCE: Action.SKIP,
    LinkState.CORRECT_LINK: Action.SKIP,
    LinkState.SAME_PATH: Action.SKIP,
    LinkState.ABSENT_TARGET: Action.CREATE,
    LinkState.PLAIN_FILE: Action.BACKUP_AND_CREATE,
    LinkState.STALE_LINK: Action.REPLACE_LINK,
}

SKIP_DETAILS = {
    LinkState.MISSING_SOURCE: "source missing",
    LinkState.CORRECT_LINK: "already linked",
    LinkState.SAME_PATH: "target is the source through a linked parent directory",
}


class DotlinkError(RuntimeError):
    """Raised when dotlink encounters an unrecoverable state."""


class StructuralError(DotlinkError):
    """Raised before any entry is processed when the run cannot start at all."""


def parse_selection(text: str, count: int) -> list[int]:
    """Turn ``all``, ``none`` or ``1,3,5`` into sorted 1-based indices.

    Tokens that are not numbers or fall outside ``1..count`` are ignored.
    """

    choice = text.strip().lower()
    if choice == "all":
        return list(range(1, count + 1))
    if not choice or choice == "none":
        return []

    selected: set[int] = set()
    for token in choice.split(","):
        token = token.strip()
        if token.isdigit() and 1 <= int(token) <= count:
            selected.add(int(token))
    return sorted(selected)


def _error_text(entry: MappingEntry, exc: OSError) -> str:
    location = exc.filename or entry.target
    return f"{location}: {exc.strerror or exc}"


class Linker:
    """Applies the mapping table to the filesystem.

    Every operation walks the whole table in target order and records one
    outcome per entry; a failing entry never stops the batch.
    """

    def __init__(
        self,
        config: LinkerConfig,
        *,
        confirm: Confirm | None = None,
        started: datetime | None = None,
    ) -> None:
        if not config.entries:
            raise StructuralError("Mapping table is empty")
        if not config.repository_root.is_dir():
            raise StructuralError(f"Repository root '{config.repository_root}' does not exist")

        self.config = config
        self.started = started or datetime.now()
        self.backups = BackupManager(
            backup_root_for(config.settings.backup_dir, self.started),
            dry_run=config.dry_run,
        )
        self._confirm = confirm

    # ------------------------------------------------------------------
    # Operations

    def plan_link(self) -> list[tuple[Classification, Action]]:
        """Classify every entry and pair it with the action ``link`` would take.

        Nothing is changed on disk and no confirmation is requested.
        """

        return [self._plan_entry(entry) for entry in self.config.entries]

    def link(self) -> RunSummary:
        outcomes = [self._guard(entry, self._link_entry) for entry in self.config.entries]
        return self._summary("link", outcomes)

    def check(self) -> RunSummary:
        outcomes: list[EntryOutcome] = []
        for entry in self.config.entries:
            outcome = self._guard(entry, self._check_entry)
            if outcome is not None:
                outcomes.append(outcome)
        return self._summary("check", outcomes)

    def unlink(self) -> RunSummary:
        outcomes: list[EntryOutcome] = []
        linked: list[MappingEntry] = []

        for entry in self.config.entries:
            try:
                classification = classify(entry)
            except OSError as exc:
                outcomes.append(self._failed(entry, exc))
                continue
            if classification.state is LinkState.CORRECT_LINK:
                linked.append(entry)

        if linked and not self.config.dry_run and not self._confirmed(f"Remove {len(linked)} dotfile symlink(s)?"):
            outcomes.extend(
                self._outcome(entry, LinkState.CORRECT_LINK, Action.SKIP, Outcome.SKIPPED, "removal declined")
                for entry in linked
            )
            return self._summary("unlink", outcomes)

        for entry in linked:
            outcomes.append(self._guard(entry, self._unlink_entry))

        return self._summary("unlink", outcomes)

    def discover_candidates(self) -> list[DiscoveryCandidate]:
        """List targets holding real content whose source is not in the repository yet."""

        candidates: list[DiscoveryCandidate] = []
        for entry in self.config.entries:
            try:
                if classify(entry).state is not LinkState.MISSING_SOURCE:
                    continue
                if not lexists(entry.target) or entry.target.is_symlink():
                    continue
                kind = detect_entry_type(entry.target)
                size = measure(entry.target)
            except OSError as exc:
                logger.warning("Cannot inspect %s: %s", entry.target, _error_text(entry, exc))
                continue

            candidates.append(DiscoveryCandidate(index=len(candidates) + 1, entry=entry, kind=kind, size=size))

        return candidates

    def discover(self, select: Selector) -> RunSummary:
        """Copy selected candidates into the repository.

        Targets are left untouched; linking them is a separate ``link`` run.
        """

        candidates = self.discover_candidates()
        if not candidates:
            return self._summary("discover", [])

        chosen = set(select(candidates))
        outcomes: list[EntryOutcome] = []
        for candidate in candidates:
            if candidate.index not in chosen:
                outcomes.append(
                    self._outcome(
                        candidate.entry, LinkState.MISSING_SOURCE, Action.SKIP, Outcome.SKIPPED, "not selected"
                    )
                )
                continue
            outcomes.append(self._import_candidate(candidate))

        return self._summary("discover", outcomes)

    # ------------------------------------------------------------------
    # Internal helpers

    def _plan_entry(self, entry: MappingEntry) -> tuple[Classification, Action]:
        classification = classify(entry)
        return classification, LINK_ACTIONS[classification.state]

    def _link_entry(self, entry: MappingEntry) -> EntryOutcome:
        classification, action = self._plan_entry(entry)
        state = classification.state
        logger.debug("%s classified as %s", entry.target, state.value)

        if action is Action.SKIP:
            details = SKIP_DETAILS[state]
            return self._outcome(entry, state, action, Outcome.SKIPPED, details)

        if self.config.dry_run:
            return self._dry_run_link(classification, action)

        if action is Action.REPLACE_LINK:
            prompt = f"Replace {entry.target} -> {classification.destination} with a link to {entry.source}?"
            if not self._confirmed(prompt):
                logger.info("Kept existing link: %s -> %s", entry.target, classification.destination)
                return self._outcome(entry, state, Action.SKIP, Outcome.SKIPPED, "replacement declined")

        backup: BackupRecord | None = None
        try:
            if action is Action.BACKUP_AND_CREATE:
                backup = self.backups.backup(entry.target)
            elif action is Action.REPLACE_LINK:
                entry.target.unlink()
            create_symlink(entry.target, entry.source)
        except OSError as exc:
            self._roll_back(classification, action, backup)
            return self._failed(entry, exc, state=state, action=action)

        logger.info("Created symlink: %s -> %s", entry.target, entry.source)
        details = f"-> {entry.source}"
        if backup is not None:
            details = f"{details} (backup: {backup.backup_path})"
        elif action is Action.REPLACE_LINK:
            details = f"{details} (was -> {classification.destination})"
        return self._outcome(entry, state, action, Outcome.CREATED, details, backup=backup)

    def _dry_run_link(self, classification: Classification, action: Action) -> EntryOutcome:
        entry = classification.entry
        backup: BackupRecord | None = None
        if action is Action.BACKUP_AND_CREATE:
            backup = self.backups.backup(entry.target)
            details = f"would back up to {backup.backup_path} and link -> {entry.source}"
        elif action is Action.REPLACE_LINK:
            details = f"would replace link to {classification.destination} with -> {entry.source}"
        else:
            details = f"would link -> {entry.source}"
        return self._outcome(entry, classification.state, action, Outcome.CREATED, details, backup=backup)

    def _roll_back(self, classification: Classification, action: Action, backup: BackupRecord | None) -> None:
        target = classification.entry.target
        try:
            if backup is not None and not lexists(target):
                self.backups.restore(backup)
            elif action is Action.REPLACE_LINK and classification.destination and not lexists(target):
                target.symlink_to(classification.destination)
        except OSError as exc:
            logger.error("Could not roll back %s: %s", target, exc)

    def _check_entry(self, entry: MappingEntry) -> EntryOutcome | None:
        classification = classify(entry)
        state = classification.state

        if state is LinkState.MISSING_SOURCE:
            return None
        if state is LinkState.CORRECT_LINK:
            return self._outcome(entry, state, Action.NONE, Outcome.VALID, f"-> {entry.source}")
        if state is LinkState.SAME_PATH:
            return self._outcome(entry, state, Action.NONE, Outcome.VALID, "same path as source")
        if state is LinkState.STALE_LINK:
            if classification.broken:
                return self._outcome(
                    entry, state, Action.NONE, Outcome.BROKEN, f"broken link -> {classification.destination}"
                )
            return self._outcome(entry, state, Action.NONE, Outcome.DIFFERENT, f"-> {classification.destination}")
        if state is LinkState.PLAIN_FILE:
            return self._outcome(entry, state, Action.NONE, Outcome.DIFFERENT, "not a symlink")
        return self._outcome(entry, state, Action.NONE, Outcome.MISSING, "not linked")

    def _unlink_entry(self, entry: MappingEntry) -> EntryOutcome:
        if self.config.dry_run:
            return self._outcome(
                entry, LinkState.CORRECT_LINK, Action.REMOVE, Outcome.REMOVED, f"would remove link -> {entry.source}"
            )

        entry.target.unlink()
        logger.info("Removed symlink: %s", entry.target)
        return self._outcome(entry, LinkState.CORRECT_LINK, Action.REMOVE, Outcome.REMOVED, f"was -> {entry.source}")

    def _import_candidate(self, candidate: DiscoveryCandidate) -> EntryOutcome:
        entry = candidate.entry
        suffix = "/" if candidate.kind is EntryType.DIRECTORY else ""

        if self.config.dry_run:
            return self._outcome(
                entry,
                LinkState.MISSING_SOURCE,
                Action.IMPORT,
                Outcome.IMPORTED,
                f"would import {entry.target}{suffix} -> {entry.source}{suffix}",
            )

        source_existed = lexists(entry.source)
        try:
            copy_entry(entry.target, entry.source)
        except OSError as exc:
            if not source_existed:
                remove_path(entry.source)
            return self._failed(entry, exc, state=LinkState.MISSING_SOURCE, action=Action.IMPORT)

        logger.info("Imported: %s -> %s", entry.target, entry.source)
        return self._outcome(
            entry,
            LinkState.MISSING_SOURCE,
            Action.IMPORT,
            Outcome.IMPORTED,
            f"{candidate.describe_size()} -> {entry.source}{suffix}",
        )

    def _guard(
        self,
        entry: MappingEntry,
        handler: Callable[[MappingEntry], EntryOutcome | None],
    ) -> EntryOutcome | None:
        try:
            return handler(entry)
        except OSError as exc:
            return self._failed(entry, exc)

    def _confirmed(self, prompt: str) -> bool:
        if self.config.force:
            return True
        if self._confirm is None:
            return False
        return self._confirm(prompt)

    def _outcome(
        self,
        entry: MappingEntry,
        state: LinkState | None,
        action: Action,
        outcome: Outcome,
        details: str | None = None,
        *,
        backup: BackupRecord | None = None,
    ) -> EntryOutcome:
        return EntryOutcome(
            entry=entry,
            state=state,
            action=action,
            outcome=outcome,
            details=details,
            backup=backup,
            dry_run=self.config.dry_run,
        )

    def _failed(
        self,
        entry: MappingEntry,
        exc: OSError,
        *,
        state: LinkState | None = None,
        action: Action = Action.NONE,
    ) -> EntryOutcome:
        message = _error_text(entry, exc)
        logger.error("Failed: %s (%s)", entry.target, message)
        return self._outcome(entry, state, action, Outcome.FAILED, message)

    def _summary(self, operation: str, outcomes: Sequence[EntryOutcome | None]) -> RunSummary:
        return RunSummary.from_outcomes(
            operation,
            [outcome for outcome in outcomes if outcome is not None],
            backups=self.backups.records,
            backup_root=self.backups.root,
            dry_run=self.config.dry_run,
        )
