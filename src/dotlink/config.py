"""Mapping table and TOML configuration loading for dotlink."""

from __future__ import annotations

import os
import tempfile
import tomllib
from pathlib import Path
from typing import Any, Dict, Mapping

from pydantic import BaseModel, ConfigDict

from .models import MappingEntry

DEFAULT_CONFIG_FILENAME = "dotlink.toml"
DEFAULT_REPOSITORY_ROOT = "~/.src/dotfiles"

REPOSITORY_ENV = "DOTFILES_DIR"
CONFIG_HOME_ENV = "XDG_CONFIG_HOME"
BACKUP_DIR_ENV = "DOTLINK_BACKUP_DIR"
LOG_DIR_ENV = "DOTLINK_LOG_DIR"

HOME_GROUP = "home"
CONFIG_GROUP = "config"

# Built-in table used when the repository carries no dotlink.toml.
DEFAULT_GROUPS: dict[str, dict[str, Any]] = {
    HOME_GROUP: {
        "entries": [
            # shell
            ".bashrc",
            ".bash_profile",
            ".bash_aliases",
            ".bash_logout",
            ".profile",
            ".zshrc",
            ".zprofile",
            ".zshenv",
            # editors and terminal
            ".vimrc",
            ".vim",
            ".tmux.conf",
            # development tools
            ".gitconfig",
            ".gitignore_global",
            ".rgrc",
            ".fdignore",
            ".npmrc",
            ".cargo/config.toml",
        ],
    },
    CONFIG_GROUP: {
        "entries": [
            "nvim",
            "tmux",
            "alacritty",
            "kitty",
            "wezterm",
            "terminator",
            "git",
            "gh",
            "lazygit",
            "starship.toml",
            "fish",
            "zoxide",
            "htop",
            "bat",
            "bottom",
            "ripgrep",
            "i3",
            "sway",
            "polybar",
            "rofi",
            "dunst",
            "pip",
            "go",
        ],
    },
}


class ConfigError(RuntimeError):
    """Raised when a configuration file cannot be parsed or validated."""


def _expand_path(raw: str | os.PathLike[str] | Path, *, base_dir: Path) -> Path:
    """Return an absolute ``Path`` by expanding env vars and user segments.

    Symlinks are not resolved: targets such as ``~/.config`` may themselves be
    links and must keep their literal location.
    """

    text = str(raw)
    expanded = Path(os.path.expandvars(text)).expanduser()
    if not expanded.is_absolute():
        expanded = base_dir / expanded
    return Path(os.path.abspath(expanded))


def _env_path(name: str) -> str | None:
    value = os.environ.get(name, "").strip()
    return value or None


def _relative_part(group: str, raw: Any, label: str) -> Path:
    candidate = Path(str(raw))
    if candidate.is_absolute():
        raise ConfigError(f"Group '{group}' {label} '{candidate}' must be relative")
    if ".." in candidate.parts:
        raise ConfigError(f"Group '{group}' {label} '{candidate}' must not escape its base path")
    return candidate


class Settings(BaseModel):
    """Locations used by a run."""

    model_config = ConfigDict(frozen=True)

    repository_root: Path
    home: Path
    config_root: Path
    backup_dir: Path
    log_dir: Path

    @classmethod
    def from_raw(
        cls,
        raw: Mapping[str, Any],
        *,
        base_dir: Path,
        repository_root: Path | None = None,
    ) -> "Settings":
        home = Path(os.path.abspath(Path.home()))

        if repository_root is not None:
            repo = _expand_path(repository_root, base_dir=Path.cwd())
        else:
            repo = _expand_path(
                _env_path(REPOSITORY_ENV) or raw.get("repository_root", DEFAULT_REPOSITORY_ROOT),
                base_dir=base_dir,
            )

        config_home = _env_path(CONFIG_HOME_ENV)
        config_root = _expand_path(config_home, base_dir=home) if config_home else home / ".config"

        backup_dir = _expand_path(_env_path(BACKUP_DIR_ENV) or raw.get("backup_dir", home), base_dir=base_dir)
        log_dir = _expand_path(
            _env_path(LOG_DIR_ENV) or raw.get("log_dir", tempfile.gettempdir()),
            base_dir=base_dir,
        )

        return cls(
            repository_root=repo,
            home=home,
            config_root=config_root,
            backup_dir=backup_dir,
            log_dir=log_dir,
        )


class GroupConfig(BaseModel):
    """A set of entries sharing a target base and a repository prefix."""

    model_config = ConfigDict(frozen=True)

    name: str
    base_path: Path
    prefix: Path
    entries: tuple[Path, ...]

    @classmethod
    def from_raw(cls, name: str, raw: Mapping[str, Any], *, settings: Settings, base_dir: Path) -> "GroupConfig":
        entries_raw = raw.get("entries")
        if not entries_raw:
            raise ConfigError(f"Group '{name}' must define at least one entry")

        base_raw = raw.get("base")
        if base_raw is not None:
            base_path = _expand_path(base_raw, base_dir=base_dir)
        elif name == HOME_GROUP:
            base_path = settings.home
        elif name == CONFIG_GROUP:
            base_path = settings.config_root
        else:
            raise ConfigError(f"Group '{name}' must define a 'base' setting")

        default_prefix = ".config" if name == CONFIG_GROUP else ""
        prefix_raw = raw.get("prefix", default_prefix)
        prefix = _relative_part(name, prefix_raw, "prefix") if prefix_raw else Path()

        entries = tuple(_relative_part(name, entry, "entry") for entry in entries_raw)
        return cls(name=name, base_path=base_path, prefix=prefix, entries=entries)

    def source_path(self, repository_root: Path, entry: Path) -> Path:
        """Return the repository path for ``entry``."""

        return repository_root / self.prefix / entry

    def target_path(self, entry: Path) -> Path:
        """Return the home or config path for ``entry``."""

        return self.base_path / entry


class LinkerConfig(BaseModel):
    """Everything a ``Linker`` needs: locations, the mapping table and run flags."""

    model_config = ConfigDict(frozen=True)

    config_path: Path | None = None
    settings: Settings
    groups: Dict[str, GroupConfig]
    entries: tuple[MappingEntry, ...]
    dry_run: bool = False
    force: bool = False
    verbose: bool = False

    @property
    def repository_root(self) -> Path:
        return self.settings.repository_root

    @property
    def config_root(self) -> Path:
        return self.settings.config_root

    def with_flags(self, *, dry_run: bool = False, force: bool = False, verbose: bool = False) -> "LinkerConfig":
        return self.model_copy(update={"dry_run": dry_run, "force": force, "verbose": verbose})


def build_entries(settings: Settings, groups: Mapping[str, GroupConfig]) -> tuple[MappingEntry, ...]:
    """Expand groups into mapping entries sorted by target.

    Raises ``ConfigError`` when two entries claim the same target or an entry
    maps a path onto itself.
    """

    by_target: dict[Path, MappingEntry] = {}
    for group in groups.values():
        for relative in group.entries:
            entry = MappingEntry(
                group=group.name,
                relative_path=relative,
                source=group.source_path(settings.repository_root, relative),
                target=group.target_path(relative),
            )
            if entry.source == entry.target:
                raise ConfigError(f"Entry '{relative}' in group '{group.name}' maps '{entry.source}' onto itself")
            existing = by_target.get(entry.target)
            if existing is not None:
                raise ConfigError(
                    f"Target '{entry.target}' is declared by both "
                    f"'{existing.group}:{existing.relative_path}' and '{group.name}:{relative}'"
                )
            by_target[entry.target] = entry

    if not by_target:
        raise ConfigError("Mapping table is empty")

    return tuple(sorted(by_target.values(), key=lambda item: str(item.target)))


def load_config(path: Path | None = None, *, repository_root: Path | None = None) -> LinkerConfig:
    """Load the mapping table and settings.

    Args:
        path: Optional path to a TOML file or a directory holding one. When
            omitted, ``dotlink.toml`` inside the repository root is used if
            present, otherwise the built-in table.
        repository_root: Explicit repository root, taking precedence over
            ``$DOTFILES_DIR`` and the config file.
    """

    if path is not None:
        config_path: Path | None = _resolve_config_path(path)
    else:
        config_path = _default_config_path(repository_root)

    data: dict[str, Any] = {}
    base_dir = Path.cwd()
    if config_path is not None:
        base_dir = config_path.parent
        try:
            with config_path.open("rb") as handle:
                data = tomllib.load(handle)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"Configuration file '{config_path}' is not valid TOML: {exc}") from exc

    settings = Settings.from_raw(data.get("settings", {}), base_dir=base_dir, repository_root=repository_root)

    if config_path is None:
        groups_section: Mapping[str, Any] = DEFAULT_GROUPS
    else:
        groups_section = data.get("groups") or {}
        if not groups_section:
            raise ConfigError("Configuration must define at least one [groups.<name>] table")

    groups: Dict[str, GroupConfig] = {}
    for group_name, group_body in groups_section.items():
        if not isinstance(group_body, Mapping):
            raise ConfigError(f"Group '{group_name}' must be a table")
        groups[group_name] = GroupConfig.from_raw(group_name, group_body, settings=settings, base_dir=base_dir)

    entries = build_entries(settings, groups)
    return LinkerConfig(config_path=config_path, settings=settings, groups=groups, entries=entries)


def resolve_repository_root(repository_root: Path | None = None) -> Path:
    """Return the repository root from an explicit value, ``$DOTFILES_DIR`` or the default."""

    root_raw = repository_root or _env_path(REPOSITORY_ENV) or DEFAULT_REPOSITORY_ROOT
    return _expand_path(root_raw, base_dir=Path.cwd())


def _default_config_path(repository_root: Path | None) -> Path | None:
    candidate = resolve_repository_root(repository_root) / DEFAULT_CONFIG_FILENAME
    return candidate if candidate.is_file() else None


def _resolve_config_path(path: Path) -> Path:
    path = Path(path)

    if not path.exists():
        raise ConfigError(f"Configuration file '{path}' does not exist")
    if path.is_dir():
        candidate = path / DEFAULT_CONFIG_FILENAME
        if not candidate.exists():
            raise ConfigError(f"Expected to find '{DEFAULT_CONFIG_FILENAME}' inside '{path}', but none was located")
        path = candidate

    return Path(os.path.abspath(path))
