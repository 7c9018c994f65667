"""Command-line interface for dotlink."""

from __future__ import annotations

import io
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

import tomli_w
import typer
from rich.console import Console
from rich.table import Table

from .config import DEFAULT_CONFIG_FILENAME, DEFAULT_GROUPS, ConfigError, load_config, resolve_repository_root
from .linker import DotlinkError, Linker, parse_selection
from .models import DiscoveryCandidate
from .reporting import RunSummary, render_summary
from .runlog import run_log

app = typer.Typer(help="Symlink dotfiles from a managed repository into your home directory")
console = Console()

README_TEXT = """# Dotfiles

Configuration files managed by dotlink.

## Management

- `dotlink setup` - initialize, import existing configs and link in one go
- `dotlink discover` - find and import existing configs
- `dotlink link` - create symlinks
- `dotlink check` - check link status
- `dotlink unlink` - remove symlinks
"""

GITIGNORE_TEXT = """# Temporary files
*.tmp
*.swp
*.swo
*~
.DS_Store

# Sensitive data
.env
.secrets
*.key
*.pem

# Cache and logs
.cache/
*.log
.netrwhist

# Language specific
__pycache__/
*.pyc
node_modules/
.cargo/registry/
.cargo/git/

# Local overrides
*.local
"""


@dataclass
class RunOptions:
    repo: Path | None = None
    config: Path | None = None
    dry_run: bool = False
    force: bool = False
    verbose: bool = False


def _options(ctx: typer.Context) -> RunOptions:
    if isinstance(ctx.obj, RunOptions):
        return ctx.obj
    return RunOptions()


def _ask(prompt: str) -> bool:
    return typer.confirm(prompt, default=False)


def _load_linker(options: RunOptions) -> Linker:
    config = load_config(options.config, repository_root=options.repo)
    config = config.with_flags(dry_run=options.dry_run, force=options.force, verbose=options.verbose)
    return Linker(config, confirm=_ask)


def _handle_error(exc: Exception) -> None:
    if isinstance(exc, ConfigError):
        message = str(exc)
        console.print(f"[red]{message}[/red]")
        if "does not exist" in message:
            console.print("[yellow]Pass --config <path> or create a dotlink.toml in the repository.[/yellow]")
        raise typer.Exit(code=1)
    if isinstance(exc, DotlinkError):
        console.print(f"[red]{exc}[/red]")
        if "repository root" in str(exc).lower():
            console.print("[yellow]Use 'dotlink init' or set DOTFILES_DIR to point at your dotfiles.[/yellow]")
        raise typer.Exit(code=1)
    raise exc


def _report(linker: Linker, summary: RunSummary, log_path: Path) -> None:
    render_summary(
        console,
        summary,
        verbose=linker.config.verbose,
        home=linker.config.settings.home,
    )
    console.print(f"[dim]Log file: {log_path}[/dim]")


def _run_link(options: RunOptions) -> None:
    try:
        linker = _load_linker(options)
    except (ConfigError, DotlinkError) as exc:
        _handle_error(exc)
        return

    if options.dry_run:
        console.print("[yellow]DRY RUN MODE - no changes will be made[/yellow]")
    with run_log(linker.config.settings.log_dir, linker.started, verbose=options.verbose) as log_path:
        summary = linker.link()
    _report(linker, summary, log_path)


def _format_candidates(candidates: Sequence[DiscoveryCandidate], home: Path) -> None:
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("#", justify="right")
    table.add_column("Target")
    table.add_column("Size", justify="right")

    for candidate in candidates:
        target = candidate.entry.target
        try:
            label = f"~/{target.relative_to(home).as_posix()}"
        except ValueError:
            label = str(target)
        table.add_row(str(candidate.index), label, candidate.describe_size())

    console.print(table)


def _render_init_config() -> str:
    buffer = io.StringIO()
    buffer.write("# dotlink configuration\n\n")
    buffer.write(tomli_w.dumps({"groups": DEFAULT_GROUPS}))
    return buffer.getvalue()


def _write_if_missing(path: Path, text: str, *, overwrite: bool, dry_run: bool) -> None:
    if path.exists() and not overwrite:
        console.print(f"[blue]Keeping existing '{path}'.[/blue]")
        return
    if dry_run:
        console.print(f"[yellow][DRY RUN] Would write '{path}'.[/yellow]")
        return
    path.write_text(text)
    console.print(f"[green]Created '{path}'.[/green]")


def _init_repository(options: RunOptions, *, overwrite: bool) -> Path:
    root = resolve_repository_root(options.repo)

    if options.dry_run:
        console.print(f"[yellow][DRY RUN] Would ensure repository at '{root}'.[/yellow]")
    else:
        root.mkdir(parents=True, exist_ok=True)
        (root / ".config").mkdir(exist_ok=True)
        console.print(f"[green]Ensured repository root '{root}'.[/green]")

    _write_if_missing(root / "README.md", README_TEXT, overwrite=overwrite, dry_run=options.dry_run)
    _write_if_missing(root / ".gitignore", GITIGNORE_TEXT, overwrite=overwrite, dry_run=options.dry_run)
    _write_if_missing(
        root / DEFAULT_CONFIG_FILENAME,
        _render_init_config(),
        overwrite=overwrite,
        dry_run=options.dry_run,
    )
    return root


def _run_discover(options: RunOptions, select: str | None) -> None:
    try:
        linker = _load_linker(options)
    except (ConfigError, DotlinkError) as exc:
        _handle_error(exc)
        return

    home = linker.config.settings.home

    def choose(candidates: Sequence[DiscoveryCandidate]) -> list[int]:
        console.print(f"[blue]Found {len(candidates)} configuration(s):[/blue]")
        _format_candidates(candidates, home)
        raw = select
        if raw is None:
            raw = "all" if options.force else typer.prompt(
                "Select configs to import (e.g. 1,3,5 or 'all', 'none')", default="none"
            )
        chosen = parse_selection(raw, len(candidates))
        if not chosen:
            console.print("[yellow]No configurations selected.[/yellow]")
        return chosen

    with run_log(linker.config.settings.log_dir, linker.started, verbose=options.verbose) as log_path:
        summary = linker.discover(choose)

    if not summary.outcomes:
        console.print("[blue]No existing configurations found to import.[/blue]")
        return
    _report(linker, summary, log_path)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    repo: Path | None = typer.Option(
        None,
        "--repo",
        "-r",
        help="Dotfiles repository root (defaults to $DOTFILES_DIR or ~/.src/dotfiles)",
    ),
    config: Path | None = typer.Option(None, "--config", "-c", help="Path to dotlink.toml"),
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="Show what would be done without making changes"),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmations"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Also list entries that need no action"),
) -> None:
    """Manage dotfile symlinks. Runs 'link' when no command is given."""

    options = RunOptions(repo=repo, config=config, dry_run=dry_run, force=force, verbose=verbose)
    ctx.obj = options
    if ctx.invoked_subcommand is None:
        _run_link(options)


@app.command()
def init(
    ctx: typer.Context,
    overwrite: bool = typer.Option(False, "--overwrite", help="Rewrite README, .gitignore and config if present"),
) -> None:
    """Create the dotfiles repository skeleton and a starter configuration."""

    _init_repository(_options(ctx), overwrite=overwrite)


@app.command()
def discover(
    ctx: typer.Context,
    select: str | None = typer.Option(
        None,
        "--select",
        "-s",
        help="Entries to import: comma separated numbers, 'all' or 'none'",
    ),
) -> None:
    """Find existing configs that are not in the repository yet and import them."""

    _run_discover(_options(ctx), select)


@app.command()
def link(ctx: typer.Context) -> None:
    """Create symlinks, backing up real files that are in the way."""

    _run_link(_options(ctx))


@app.command()
def check(
    ctx: typer.Context,
    strict: bool = typer.Option(False, "--strict", help="Exit with status 1 unless every link is valid"),
) -> None:
    """Report link status without changing anything."""

    options = _options(ctx)
    try:
        linker = _load_linker(options)
    except (ConfigError, DotlinkError) as exc:
        _handle_error(exc)
        return

    with run_log(linker.config.settings.log_dir, linker.started, verbose=options.verbose) as log_path:
        summary = linker.check()
    _report(linker, summary, log_path)

    if strict and not summary.all_valid:
        console.print("[red]Some links are missing or out of date. Run 'dotlink link' to fix them.[/red]")
        raise typer.Exit(code=1)


@app.command()
def unlink(ctx: typer.Context) -> None:
    """Remove symlinks that point into the repository. Backups are not restored."""

    options = _options(ctx)
    try:
        linker = _load_linker(options)
    except (ConfigError, DotlinkError) as exc:
        _handle_error(exc)
        return

    with run_log(linker.config.settings.log_dir, linker.started, verbose=options.verbose) as log_path:
        summary = linker.unlink()
    _report(linker, summary, log_path)


@app.command()
def setup(
    ctx: typer.Context,
    select: str | None = typer.Option(
        None,
        "--select",
        "-s",
        help="Entries to import: comma separated numbers, 'all' or 'none'",
    ),
) -> None:
    """Initialize the repository, import existing configs and link everything."""

    options = _options(ctx)
    root = _init_repository(options, overwrite=False)
    if options.dry_run and not root.is_dir():
        console.print("[yellow][DRY RUN] Repository does not exist yet; skipping discover and link.[/yellow]")
        return

    console.print("[bold]Discovering existing configurations[/bold]")
    _run_discover(options, select)
    console.print("[bold]Linking[/bold]")
    _run_link(options)


def run() -> None:
    """Entry point used for console_script bindings."""

    app()
