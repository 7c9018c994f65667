"""Aggregation and rendering of per-entry outcomes."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from rich.console import Console
from rich.table import Table

from .models import BackupRecord, EntryOutcome, Outcome

OPERATION_COUNTERS: dict[str, tuple[Outcome, ...]] = {
    "link": (Outcome.CREATED, Outcome.SKIPPED, Outcome.FAILED),
    "check": (Outcome.VALID, Outcome.BROKEN, Outcome.DIFFERENT, Outcome.MISSING, Outcome.FAILED),
    "unlink": (Outcome.REMOVED, Outcome.SKIPPED, Outcome.FAILED),
    "discover": (Outcome.IMPORTED, Outcome.SKIPPED, Outcome.FAILED),
}

# Outcomes that carry no news and are only listed with --verbose.
QUIET_OUTCOMES = frozenset({Outcome.SKIPPED, Outcome.VALID})

OUTCOME_STYLES = {
    Outcome.CREATED: "green",
    Outcome.REMOVED: "green",
    Outcome.IMPORTED: "green",
    Outcome.VALID: "green",
    Outcome.SKIPPED: "dim",
    Outcome.MISSING: "blue",
    Outcome.DIFFERENT: "yellow",
    Outcome.BROKEN: "red",
    Outcome.FAILED: "red",
}


@dataclass(frozen=True)
class RunSummary:
    """Counts and sorted outcomes for a single engine invocation."""

    operation: str
    outcomes: tuple[EntryOutcome, ...]
    counts: dict[Outcome, int] = field(default_factory=dict)
    backups: tuple[BackupRecord, ...] = ()
    backup_root: Path | None = None
    dry_run: bool = False

    @classmethod
    def from_outcomes(
        cls,
        operation: str,
        outcomes: Iterable[EntryOutcome],
        *,
        backups: Iterable[BackupRecord] = (),
        backup_root: Path | None = None,
        dry_run: bool = False,
    ) -> "RunSummary":
        ordered = tuple(sorted(outcomes, key=lambda item: str(item.entry.target)))
        counts = {outcome: 0 for outcome in OPERATION_COUNTERS.get(operation, ())}
        for item in ordered:
            counts[item.outcome] = counts.get(item.outcome, 0) + 1

        return cls(
            operation=operation,
            outcomes=ordered,
            counts=counts,
            backups=tuple(backups),
            backup_root=backup_root,
            dry_run=dry_run,
        )

    def count(self, outcome: Outcome) -> int:
        return self.counts.get(outcome, 0)

    @property
    def failures(self) -> tuple[EntryOutcome, ...]:
        return tuple(item for item in self.outcomes if item.outcome is Outcome.FAILED)

    @property
    def all_valid(self) -> bool:
        return all(item.outcome is Outcome.VALID for item in self.outcomes)

    def visible(self, verbose: bool) -> tuple[EntryOutcome, ...]:
        if verbose:
            return self.outcomes
        return tuple(item for item in self.outcomes if item.outcome not in QUIET_OUTCOMES)

    def counts_line(self) -> str:
        return ", ".join(f"{count} {outcome.value}" for outcome, count in self.counts.items())


def _display_path(path: Path, home: Path | None) -> str:
    if home is not None:
        try:
            return f"~/{path.relative_to(home).as_posix()}"
        except ValueError:
            pass
    return str(path)


def render_summary(console: Console, summary: RunSummary, *, verbose: bool = False, home: Path | None = None) -> None:
    """Print the outcome table followed by the final counts."""

    rows = summary.visible(verbose)
    if rows:
        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Target")
        table.add_column("Outcome")
        table.add_column("Details", overflow="fold")

        for item in rows:
            style = OUTCOME_STYLES.get(item.outcome, "white")
            table.add_row(
                _display_path(item.entry.target, home),
                f"[{style}]{item.outcome.value}[/{style}]",
                item.details or "",
            )

        console.print(table)

    prefix = "[DRY RUN] " if summary.dry_run else ""
    console.print(f"[bold]{prefix}Summary ({summary.operation}):[/bold] {summary.counts_line()}")

    for failure in summary.failures:
        console.print(f"[red]Failed: {failure.entry.target}: {failure.details}[/red]")

    real_backups = [record for record in summary.backups if not record.dry_run]
    if real_backups and summary.backup_root is not None:
        console.print(f"[blue]Backups saved to: {summary.backup_root}[/blue]")
