from __future__ import annotations

from pathlib import Path
from textwrap import dedent

import pytest

from dotlink.config import (
    DEFAULT_CONFIG_FILENAME,
    ConfigError,
    load_config,
    resolve_repository_root,
)


def _write_config(directory: Path, body: str) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    config_path = directory / DEFAULT_CONFIG_FILENAME
    config_path.write_text(dedent(body))
    return config_path


def test_load_config_happy_path(tmp_path: Path, fake_home: Path) -> None:
    repo = tmp_path / "dotfiles"
    _write_config(
        repo,
        """
        [groups.home]
        entries = [".bashrc", ".cargo/config.toml"]

        [groups.config]
        entries = ["nvim"]
        """,
    )

    config = load_config(repository_root=repo)

    assert config.config_path == repo / DEFAULT_CONFIG_FILENAME
    assert config.repository_root == repo
    assert config.config_root == fake_home / ".config"

    pairs = [(entry.source, entry.target) for entry in config.entries]
    assert pairs == [
        (repo / ".bashrc", fake_home / ".bashrc"),
        (repo / ".cargo" / "config.toml", fake_home / ".cargo" / "config.toml"),
        (repo / ".config" / "nvim", fake_home / ".config" / "nvim"),
    ]


def test_entries_are_sorted_by_target(tmp_path: Path, fake_home: Path) -> None:
    repo = tmp_path / "dotfiles"
    _write_config(
        repo,
        """
        [groups.home]
        entries = [".zshrc", ".bashrc", ".profile"]
        """,
    )

    config = load_config(repository_root=repo)

    assert [entry.relative_path.as_posix() for entry in config.entries] == [".bashrc", ".profile", ".zshrc"]


def test_builtin_table_used_without_config_file(tmp_path: Path, fake_home: Path) -> None:
    repo = tmp_path / "dotfiles"
    repo.mkdir()

    config = load_config(repository_root=repo)

    assert config.config_path is None
    targets = {entry.target for entry in config.entries}
    assert fake_home / ".bashrc" in targets
    assert fake_home / ".config" / "starship.toml" in targets
    starship = next(entry for entry in config.entries if entry.target.name == "starship.toml")
    assert starship.source == repo / ".config" / "starship.toml"


def test_xdg_config_home_is_respected(tmp_path: Path, fake_home: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    xdg = tmp_path / "xdg"
    monkeypatch.setenv("XDG_CONFIG_HOME", str(xdg))
    repo = tmp_path / "dotfiles"
    _write_config(
        repo,
        """
        [groups.config]
        entries = ["kitty"]
        """,
    )

    config = load_config(repository_root=repo)

    assert config.entries[0].target == xdg / "kitty"
    assert config.entries[0].source == repo / ".config" / "kitty"


def test_repository_root_from_environment(tmp_path: Path, fake_home: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    repo = tmp_path / "elsewhere"
    _write_config(
        repo,
        """
        [groups.home]
        entries = [".vimrc"]
        """,
    )
    monkeypatch.setenv("DOTFILES_DIR", str(repo))

    config = load_config()

    assert config.repository_root == repo
    assert config.config_path == repo / DEFAULT_CONFIG_FILENAME


def test_default_repository_root(fake_home: Path) -> None:
    assert resolve_repository_root() == fake_home / ".src" / "dotfiles"


def test_custom_group_with_base_and_prefix(tmp_path: Path, fake_home: Path) -> None:
    repo = tmp_path / "dotfiles"
    _write_config(
        repo,
        """
        [groups.work]
        base = "~/work"
        prefix = "work"
        entries = ["notes.md"]

        [settings]
        backup_dir = "./backups"
        log_dir = "./logs"
        """,
    )

    config = load_config(repository_root=repo)

    entry = config.entries[0]
    assert entry.source == repo / "work" / "notes.md"
    assert entry.target == fake_home / "work" / "notes.md"
    assert config.settings.backup_dir == repo / "backups"
    assert config.settings.log_dir == repo / "logs"


def test_environment_overrides_backup_and_log_dirs(
    tmp_path: Path, fake_home: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("DOTLINK_BACKUP_DIR", str(tmp_path / "b"))
    monkeypatch.setenv("DOTLINK_LOG_DIR", str(tmp_path / "l"))
    repo = tmp_path / "dotfiles"
    repo.mkdir()

    config = load_config(repository_root=repo)

    assert config.settings.backup_dir == tmp_path / "b"
    assert config.settings.log_dir == tmp_path / "l"


def test_duplicate_targets_rejected(tmp_path: Path, fake_home: Path) -> None:
    repo = tmp_path / "dotfiles"
    _write_config(
        repo,
        f"""
        [groups.home]
        entries = [".config/nvim"]

        [groups.config]
        base = "{fake_home / '.config'}"
        entries = ["nvim"]
        """,
    )

    with pytest.raises(ConfigError, match="declared by both"):
        load_config(repository_root=repo)


def test_source_equal_to_target_rejected(tmp_path: Path, fake_home: Path) -> None:
    repo = tmp_path / "dotfiles"
    _write_config(
        repo,
        f"""
        [groups.loop]
        base = "{repo}"
        entries = [".bashrc"]
        """,
    )

    with pytest.raises(ConfigError, match="onto itself"):
        load_config(repository_root=repo)


def test_group_without_base_rejected(tmp_path: Path, fake_home: Path) -> None:
    repo = tmp_path / "dotfiles"
    _write_config(
        repo,
        """
        [groups.misc]
        entries = ["file"]
        """,
    )

    with pytest.raises(ConfigError):
        load_config(repository_root=repo)


def test_absolute_entry_rejected(tmp_path: Path, fake_home: Path) -> None:
    repo = tmp_path / "dotfiles"
    _write_config(
        repo,
        """
        [groups.home]
        entries = ["/etc/passwd"]
        """,
    )

    with pytest.raises(ConfigError):
        load_config(repository_root=repo)


def test_escaping_entry_rejected(tmp_path: Path, fake_home: Path) -> None:
    repo = tmp_path / "dotfiles"
    _write_config(
        repo,
        """
        [groups.home]
        entries = ["../outside"]
        """,
    )

    with pytest.raises(ConfigError):
        load_config(repository_root=repo)


def test_config_without_groups_rejected(tmp_path: Path, fake_home: Path) -> None:
    repo = tmp_path / "dotfiles"
    _write_config(
        repo,
        """
        [settings]
        log_dir = "/tmp"
        """,
    )

    with pytest.raises(ConfigError):
        load_config(repository_root=repo)


def test_invalid_toml_rejected(tmp_path: Path, fake_home: Path) -> None:
    repo = tmp_path / "dotfiles"
    _write_config(repo, "[groups.home\n")

    with pytest.raises(ConfigError, match="not valid TOML"):
        load_config(repository_root=repo)


def test_directory_argument_resolves_default_file(tmp_path: Path, fake_home: Path) -> None:
    config_dir = tmp_path / "config"
    _write_config(
        config_dir,
        """
        [groups.home]
        entries = [".bashrc"]
        """,
    )

    config = load_config(config_dir)

    assert config.config_path == config_dir / DEFAULT_CONFIG_FILENAME


def test_missing_config_file_rejected(tmp_path: Path, fake_home: Path) -> None:
    with pytest.raises(ConfigError, match="does not exist"):
        load_config(tmp_path / "nope.toml")


def test_with_flags_returns_updated_copy(tmp_path: Path, fake_home: Path) -> None:
    repo = tmp_path / "dotfiles"
    repo.mkdir()
    config = load_config(repository_root=repo)

    flagged = config.with_flags(dry_run=True, force=True, verbose=True)

    assert (flagged.dry_run, flagged.force, flagged.verbose) == (True, True, True)
    assert (config.dry_run, config.force, config.verbose) == (False, False, False)
    assert flagged.entries == config.entries
