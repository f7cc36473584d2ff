"""Pytest fixtures for gitswitch tests."""

from __future__ import annotations

import json
import os
import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from gitswitch.gh import GitHubCLI
from gitswitch.git import GitConfig
from gitswitch.jq import JsonQuery


@pytest.fixture
def temp_home(tmp_path: Path):
    """Create a temporary home directory for testing."""
    home = tmp_path / "home"
    home.mkdir()

    env_patch = {
        "HOME": str(home),
        "USERPROFILE": str(home),
        "XDG_CONFIG_HOME": str(home / ".config"),
        "GIT_CONFIG_NOSYSTEM": "1",
    }
    with patch.dict(os.environ, env_patch):
        for name in ("GITSWITCH_HOME", "GH_CONFIG_DIR", "GIT_CONFIG_GLOBAL", "GIT_DIR"):
            os.environ.pop(name, None)
        # Also patch Path.home() directly for cross-platform compatibility
        with patch("pathlib.Path.home", return_value=home):
            yield home


@pytest.fixture
def auth_status_output() -> str:
    """Sample `gh auth status` output with two hosts."""
    return (
        "github.com\n"
        "  ✓ Logged in to github.com account Alice (keyring)\n"
        "  - Active account: true\n"
        "  - Git operations protocol: https\n"
        "  - Token: gho_************************************\n"
        "\n"
        "  ✓ Logged in to github.com account bob-work (GH_CONFIG_DIR/hosts.yml)\n"
        "  - Active account: false\n"
        "\n"
        "github.example.com\n"
        "  ✓ Logged in to github.example.com account carol (keyring)\n"
        "  - Active account: true\n"
    )


@pytest.fixture
def user_payload() -> str:
    """Body of GET /user for the alice account."""
    return json.dumps({"login": "alice", "id": 42, "name": "Alice"})


@pytest.fixture
def fake_gh():
    """GitHubCLI mock with Alice and bob-work logged in to github.com."""
    gh = MagicMock(spec=GitHubCLI)
    gh.list_authenticated_accounts.return_value = {"Alice", "bob-work"}
    gh.fetch_user.return_value = json.dumps({"login": "alice", "id": 42})
    return gh


@pytest.fixture
def fake_jq():
    """JsonQuery stand-in that parses with the json module."""
    jq = MagicMock(spec=JsonQuery)

    def field(payload: str, name: str):
        value = json.loads(payload).get(name)
        return None if value is None else str(value)

    jq.field.side_effect = field
    return jq


@pytest.fixture
def fake_git():
    """GitConfig mock that reports being inside a working tree."""
    git = MagicMock(spec=GitConfig)
    git.is_inside_work_tree.return_value = True
    return git


@pytest.fixture
def git_repo(tmp_path: Path, temp_home: Path) -> Path:
    """An empty git repository with an isolated global config."""
    repo = tmp_path / "repo"
    repo.mkdir()
    subprocess.run(["git", "init", "-q", str(repo)], check=True)
    return repo
