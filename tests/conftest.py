from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import pytest

from dotlink.config import DEFAULT_CONFIG_FILENAME, LinkerConfig, load_config


@pytest.fixture
def fake_home(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("USERPROFILE", str(home))
    monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
    monkeypatch.delenv("DOTFILES_DIR", raising=False)
    monkeypatch.delenv("DOTLINK_BACKUP_DIR", raising=False)
    monkeypatch.delenv("DOTLINK_LOG_DIR", raising=False)
    return home


@dataclass
class Workspace:
    home: Path
    repo: Path
    backups: Path
    logs: Path

    def write_config(self, body: str) -> Path:
        config_path = self.repo / DEFAULT_CONFIG_FILENAME
        config_path.write_text(body)
        return config_path

    def load(self, *, dry_run: bool = False, force: bool = False, verbose: bool = False) -> LinkerConfig:
        config = load_config(repository_root=self.repo)
        return config.with_flags(dry_run=dry_run, force=force, verbose=verbose)


@pytest.fixture
def workspace(monkeypatch: pytest.MonkeyPatch, tmp_path: Path, fake_home: Path) -> Workspace:
    repo = tmp_path / "dotfiles"
    backups = tmp_path / "backups"
    logs = tmp_path / "logs"
    repo.mkdir()
    monkeypatch.setenv("DOTFILES_DIR", str(repo))
    monkeypatch.setenv("DOTLINK_BACKUP_DIR", str(backups))
    monkeypatch.setenv("DOTLINK_LOG_DIR", str(logs))

    ws = Workspace(home=fake_home, repo=repo, backups=backups, logs=logs)
    ws.write_config(
        """
[groups.home]
entries = [".bashrc", ".vimrc"]

[groups.config]
entries = ["nvim", "starship.toml"]
"""
    )
    return ws
