"""Tests for the GitAccountSwitcher workflow."""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from gitswitch.exceptions import (
    DependencyError,
    IdentityFetchError,
    NotLoggedInError,
    PreconditionError,
    SwitchError,
)
from gitswitch.git import GitConfig
from gitswitch.models import Mode, ResolvedIdentity, RetryPolicy, Scope, SwitchRequest
from gitswitch.switcher import GitAccountSwitcher

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


@pytest.fixture
def switcher(temp_home: Path, fake_git, fake_gh, fake_jq):
    return GitAccountSwitcher(
        git=fake_git,
        gh=fake_gh,
        jq=fake_jq,
        retry_policy=RetryPolicy(delay=0),
        sleep=lambda _: None,
    )


class TestDependencies:
    def test_all_present(self, switcher):
        with patch("gitswitch.switcher.shutil.which", return_value="/usr/bin/tool"):
            switcher.check_dependencies()

    @pytest.mark.parametrize(
        "missing, message",
        [("git", "git is not installed"), ("gh", "gh CLI is not installed"), ("jq", "jq is not installed")],
    )
    def test_missing_tool(self, switcher, missing, message):
        def which(name):
            return None if name == missing else f"/usr/bin/{name}"

        with patch("gitswitch.switcher.shutil.which", side_effect=which):
            with pytest.raises(DependencyError, match=message):
                switcher.check_dependencies()


class TestSwitch:
    def test_global_switch(self, switcher, fake_git, fake_gh, capsys):
        identity = switcher.switch(SwitchRequest(username="bob-work"))

        assert identity == ResolvedIdentity(login="alice", id=42)
        fake_gh.switch.assert_called_once_with("bob-work", "github.com")
        fake_git.write_identity.assert_called_once_with(
            "alice", "42+alice@users.noreply.github.com", Scope.GLOBAL
        )
        fake_git.is_inside_work_tree.assert_not_called()
        out = capsys.readouterr().out
        assert "Successfully switched active account for github.com to alice" in out
        assert "local repository" not in out

    def test_username_match_is_case_insensitive(self, switcher, fake_gh):
        switcher.switch(SwitchRequest(username="alice"))
        fake_gh.switch.assert_called_once_with("alice", "github.com")

    def test_not_logged_in_does_not_switch(self, switcher, fake_gh, fake_git):
        with pytest.raises(NotLoggedInError) as exc_info:
            switcher.switch(SwitchRequest(username="mallory"))

        assert "gh auth login -u mallory -h github.com" in str(exc_info.value)
        assert "gitswitch [--single] [--hostname github.com] mallory" in str(exc_info.value)
        fake_gh.switch.assert_not_called()
        fake_gh.fetch_user.assert_not_called()
        fake_git.write_identity.assert_not_called()

    def test_partial_name_is_not_a_match(self, switcher, fake_gh):
        with pytest.raises(NotLoggedInError):
            switcher.switch(SwitchRequest(username="bob"))
        fake_gh.switch.assert_not_called()

    def test_no_accounts_means_not_logged_in(self, switcher, fake_gh):
        fake_gh.list_authenticated_accounts.return_value = set()
        with pytest.raises(NotLoggedInError):
            switcher.switch(SwitchRequest(username="alice"))

    def test_hostname_is_forwarded(self, switcher, fake_gh, fake_git):
        fake_gh.list_authenticated_accounts.return_value = {"carol"}
        switcher.switch(SwitchRequest(username="carol", hostname="github.example.com"))

        fake_gh.list_authenticated_accounts.assert_called_once_with("github.example.com")
        fake_gh.switch.assert_called_once_with("carol", "github.example.com")
        fake_gh.fetch_user.assert_called_with("github.example.com")
        assert fake_git.write_identity.call_args.args[1] == "42+alice@users.noreply.github.example.com"

    def test_not_logged_in_message_names_custom_hostname(self, switcher, fake_gh):
        with pytest.raises(NotLoggedInError, match=r"\[--hostname ghe\.example\.com\] alice"):
            switcher.switch(SwitchRequest(username="alice", hostname="ghe.example.com"))

    def test_custom_email(self, switcher, fake_git):
        switcher.switch(SwitchRequest(username="alice", email="custom@example.com"))
        fake_git.write_identity.assert_called_once_with("alice", "custom@example.com", Scope.GLOBAL)

    def test_switch_failure_propagates(self, switcher, fake_gh, fake_git):
        fake_gh.switch.side_effect = SwitchError("Failed to switch to user alice on github.com")
        with pytest.raises(SwitchError):
            switcher.switch(SwitchRequest(username="alice"))
        fake_git.write_identity.assert_not_called()

    def test_fetch_failure_leaves_config_untouched(self, switcher, fake_gh, fake_git):
        fake_gh.fetch_user.side_effect = IdentityFetchError("HTTP 500")
        with pytest.raises(IdentityFetchError, match="after 3 attempts"):
            switcher.switch(SwitchRequest(username="alice"))
        assert fake_gh.fetch_user.call_count == 3
        fake_git.write_identity.assert_not_called()


class TestLocalScope:
    def test_local_switch(self, switcher, fake_git, capsys):
        switcher.switch(SwitchRequest(username="alice", scope=Scope.LOCAL))

        fake_git.is_inside_work_tree.assert_called_once()
        fake_git.write_identity.assert_called_once_with(
            "alice", "42+alice@users.noreply.github.com", Scope.LOCAL
        )
        out = capsys.readouterr().out
        assert "(local repository settings applied)" in out
        assert "If not, run 'gitswitch alice' to switch." in out

    def test_local_switch_outside_work_tree(self, switcher, fake_git, fake_gh):
        fake_git.is_inside_work_tree.return_value = False
        with pytest.raises(PreconditionError, match="Use --single within a git repository"):
            switcher.switch(SwitchRequest(username="alice", scope=Scope.LOCAL))
        fake_gh.list_authenticated_accounts.assert_not_called()


class TestUnsetSingle:
    def test_unset(self, switcher, fake_git, fake_gh, capsys):
        switcher.unset_single()

        fake_git.unset_identity.assert_called_once()
        fake_gh.list_authenticated_accounts.assert_not_called()
        assert "Using global Git settings" in capsys.readouterr().out

    def test_unset_outside_work_tree(self, switcher, fake_git, fake_gh):
        fake_git.is_inside_work_tree.return_value = False
        with pytest.raises(PreconditionError, match="Use --unset-single within a git repository"):
            switcher.unset_single()
        fake_git.unset_identity.assert_not_called()
        fake_gh.fetch_user.assert_not_called()


class TestRun:
    def test_run_checks_dependencies_first(self, switcher, fake_gh):
        with patch("gitswitch.switcher.shutil.which", return_value=None):
            with pytest.raises(DependencyError):
                switcher.run(SwitchRequest(username="alice"))
        fake_gh.list_authenticated_accounts.assert_not_called()

    def test_run_dispatches_unset(self, switcher, fake_git):
        with patch("gitswitch.switcher.shutil.which", return_value="/usr/bin/tool"):
            switcher.run(SwitchRequest(mode=Mode.UNSET_LOCAL, scope=Scope.LOCAL))
        fake_git.unset_identity.assert_called_once()


@requires_git
class TestEndToEnd:
    """Real git, fake gh: `gitswitch --single --email x@y.com alice`."""

    def test_single_with_custom_email(self, git_repo: Path, fake_gh, fake_jq):
        switcher = GitAccountSwitcher(
            git=GitConfig(cwd=git_repo), gh=fake_gh, jq=fake_jq, sleep=lambda _: None
        )
        switcher.switch(
            SwitchRequest(username="alice", scope=Scope.LOCAL, email="x@y.com")
        )

        def local(key):
            return subprocess.run(
                ["git", "config", "--local", "--get", key],
                cwd=git_repo,
                capture_output=True,
                text=True,
            ).stdout.strip()

        assert local("user.name") == "alice"
        assert local("user.email") == "x@y.com"

    def test_unset_single_without_local_identity(self, git_repo: Path, fake_gh, fake_jq):
        switcher = GitAccountSwitcher(git=GitConfig(cwd=git_repo), gh=fake_gh, jq=fake_jq)
        switcher.unset_single()
        fake_gh.list_authenticated_accounts.assert_not_called()
