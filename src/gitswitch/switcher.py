"""Core account switch workflow for gitswitch."""

from __future__ import annotations

import shutil
import time
from pathlib import Path
from typing import Callable

from rich.markup import escape

from gitswitch import console
from gitswitch.exceptions import DependencyError, NotLoggedInError, PreconditionError
from gitswitch.gh import GitHubCLI
from gitswitch.git import GitConfig
from gitswitch.identity import IdentityResolver
from gitswitch.jq import JsonQuery
from gitswitch.logging_config import default_log_dir, setup_logging
from gitswitch.models import (
    Mode,
    ResolvedIdentity,
    RetryPolicy,
    Scope,
    SwitchRequest,
)

# Executable name -> how it is named in error messages
REQUIRED_TOOLS = {
    "git": "git",
    "gh": "gh CLI",
    "jq": "jq",
}


class GitAccountSwitcher:
    """Switches the active gh account and the git identity that goes with it."""

    def __init__(
        self,
        debug: bool = False,
        git: GitConfig | None = None,
        gh: GitHubCLI | None = None,
        jq: JsonQuery | None = None,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
        log_dir: Path | None = None,
    ):
        self.git = git or GitConfig()
        self.gh = gh or GitHubCLI()
        self.resolver = IdentityResolver(
            self.gh, jq or JsonQuery(), policy=retry_policy, sleep=sleep
        )
        self._logger = setup_logging(log_dir or default_log_dir(), debug=debug)

    def check_dependencies(self) -> None:
        """Fail on the first required executable missing from PATH."""
        for executable, label in REQUIRED_TOOLS.items():
            if shutil.which(executable) is None:
                self._logger.error(f"Missing dependency: {executable}")
                raise DependencyError(
                    f"{label} is not installed. Run 'gitswitch-install' or install it manually."
                )

    def _require_work_tree(self, flag: str) -> None:
        if not self.git.is_inside_work_tree():
            raise PreconditionError(
                f"Not inside a git repository. Use {flag} within a git repository."
            )

    def run(self, request: SwitchRequest) -> None:
        """Execute a validated request."""
        self.check_dependencies()
        if request.mode is Mode.UNSET_LOCAL:
            self.unset_single()
        else:
            self.switch(request)

    def unset_single(self) -> None:
        """Remove the repository-local identity so the global one applies."""
        self._require_work_tree("--unset-single")
        self.git.unset_identity()
        console.success(
            "Removed local user.name and user.email. Using global Git settings."
        )

    def switch(self, request: SwitchRequest) -> ResolvedIdentity:
        """Switch gh to request.username and write the matching git identity."""
        username = request.username
        hostname = request.hostname
        if request.scope is Scope.LOCAL:
            self._require_work_tree("--single")

        accounts = self.gh.list_authenticated_accounts(hostname)
        if username.lower() not in {account.lower() for account in accounts}:
            self._logger.info(f"{username} is not logged in to {hostname}")
            raise NotLoggedInError(
                f"Account {username} is not logged in to {hostname}.\n"
                f"Please log in first using:\n"
                f"  gh auth login -u {username} -h {hostname}\n"
                f"Then run 'gitswitch [--single] [--hostname {hostname}] {username}' again."
            )

        self.gh.switch(username, hostname)

        identity = self.resolver.resolve(hostname)
        email = identity.email_for(hostname, request.email)
        self.git.write_identity(identity.login, email, request.scope)

        self._logger.info(
            f"Switched {hostname} to {identity.login} <{email}> "
            f"({request.scope.name.lower()})"
        )
        self._report(identity, request)
        return identity

    def _report(self, identity: ResolvedIdentity, request: SwitchRequest) -> None:
        host = escape(request.hostname)
        login = escape(identity.login)
        if request.scope is Scope.LOCAL:
            console.success(
                f"Successfully switched active account for [bold]{host}[/bold] "
                f"to [bold]{login}[/bold] (local repository settings applied)"
            )
            console.console.print(
                "[bold]Note:[/bold] Local git user.name and user.email set for this repository only.\n"
                "      Ensure your authenticated GitHub user matches this repository's user before push/pull.\n"
                f"      If not, run 'gitswitch {escape(request.username)}' to switch."
            )
        else:
            console.success(
                f"Successfully switched active account for [bold]{host}[/bold] "
                f"to [bold]{login}[/bold]"
            )
