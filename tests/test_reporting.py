from __future__ import annotations

from datetime import datetime
from pathlib import Path

from rich.console import Console

from dotlink.models import Action, BackupRecord, EntryOutcome, LinkState, MappingEntry, Outcome
from dotlink.reporting import RunSummary, render_summary


def _entry(home: Path, name: str) -> MappingEntry:
    return MappingEntry(
        group="home",
        relative_path=Path(name),
        source=Path("/repo") / name,
        target=home / name,
    )


def _outcome(home: Path, name: str, outcome: Outcome, details: str | None = None) -> EntryOutcome:
    return EntryOutcome(
        entry=_entry(home, name),
        state=LinkState.ABSENT_TARGET,
        action=Action.CREATE,
        outcome=outcome,
        details=details,
    )


def test_summary_counts_and_sorts(tmp_path: Path) -> None:
    outcomes = [
        _outcome(tmp_path, ".zshrc", Outcome.CREATED),
        _outcome(tmp_path, ".bashrc", Outcome.SKIPPED),
        _outcome(tmp_path, ".profile", Outcome.FAILED, "denied"),
    ]

    summary = RunSummary.from_outcomes("link", outcomes)

    assert summary.counts == {Outcome.CREATED: 1, Outcome.SKIPPED: 1, Outcome.FAILED: 1}
    assert [item.entry.relative_path.as_posix() for item in summary.outcomes] == [".bashrc", ".profile", ".zshrc"]
    assert [item.details for item in summary.failures] == ["denied"]
    assert summary.counts_line() == "1 created, 1 skipped, 1 failed"


def test_summary_keeps_zero_counters_for_operation(tmp_path: Path) -> None:
    summary = RunSummary.from_outcomes("check", [_outcome(tmp_path, ".bashrc", Outcome.VALID)])

    assert summary.counts == {
        Outcome.VALID: 1,
        Outcome.BROKEN: 0,
        Outcome.DIFFERENT: 0,
        Outcome.MISSING: 0,
        Outcome.FAILED: 0,
    }
    assert summary.all_valid


def test_visible_hides_quiet_outcomes(tmp_path: Path) -> None:
    summary = RunSummary.from_outcomes(
        "check",
        [_outcome(tmp_path, ".bashrc", Outcome.VALID), _outcome(tmp_path, ".vimrc", Outcome.MISSING)],
    )

    assert [item.outcome for item in summary.visible(False)] == [Outcome.MISSING]
    assert len(summary.visible(True)) == 2
    assert not summary.all_valid


def test_render_summary_output(tmp_path: Path) -> None:
    backup_root = tmp_path / ".dotfiles-backup-20240101-000000"
    record = BackupRecord(tmp_path / ".vimrc", backup_root / ".vimrc", datetime(2024, 1, 1))
    summary = RunSummary.from_outcomes(
        "link",
        [
            _outcome(tmp_path, ".bashrc", Outcome.SKIPPED, "already linked"),
            _outcome(tmp_path, ".vimrc", Outcome.CREATED, "-> /repo/.vimrc"),
            _outcome(tmp_path, ".zshrc", Outcome.FAILED, "Permission denied"),
        ],
        backups=[record],
        backup_root=backup_root,
    )
    console = Console(record=True, width=200)

    render_summary(console, summary, home=tmp_path)
    text = console.export_text()

    assert "~/.vimrc" in text
    assert "~/.bashrc" not in text
    assert "1 created, 1 skipped, 1 failed" in text
    assert "Permission denied" in text
    assert f"Backups saved to: {backup_root}" in text


def test_render_summary_verbose_and_dry_run(tmp_path: Path) -> None:
    summary = RunSummary.from_outcomes(
        "link",
        [_outcome(tmp_path, ".bashrc", Outcome.SKIPPED, "already linked")],
        dry_run=True,
    )
    console = Console(record=True, width=200)

    render_summary(console, summary, verbose=True, home=tmp_path)
    text = console.export_text()

    assert "~/.bashrc" in text
    assert "[DRY RUN]" in text
    assert "Backups saved" not in text
