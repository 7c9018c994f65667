"""Core package for the dotlink project."""

from .backup import BackupManager
from .classifier import classify
from .cli import app, run
from .config import ConfigError, GroupConfig, LinkerConfig, Settings, load_config
from .linker import DotlinkError, Linker, StructuralError, parse_selection
from .models import (
    Action,
    BackupRecord,
    Classification,
    DiscoveryCandidate,
    EntryOutcome,
    LinkState,
    MappingEntry,
    Outcome,
)
from .reporting import RunSummary, render_summary

__all__ = [
    "ConfigError",
    "GroupConfig",
    "LinkerConfig",
    "Settings",
    "load_config",
    "Linker",
    "DotlinkError",
    "StructuralError",
    "parse_selection",
    "BackupManager",
    "classify",
    "Action",
    "BackupRecord",
    "Classification",
    "DiscoveryCandidate",
    "EntryOutcome",
    "LinkState",
    "MappingEntry",
    "Outcome",
    "RunSummary",
    "render_summary",
    "app",
    "run",
]
