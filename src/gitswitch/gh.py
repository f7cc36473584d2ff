"""Thin wrapper around the GitHub CLI (gh)."""

from __future__ import annotations

import logging
import os
import re
import subprocess
from pathlib import Path

from gitswitch.exceptions import IdentityFetchError, SwitchError

API_CACHE_TTL = "5m"
API_ACCEPT_HEADER = "Accept: application/vnd.github+json"

logger = logging.getLogger(__name__)


def gh_config_dir() -> str:
    """Directory holding gh's stored credentials."""
    return os.environ.get("GH_CONFIG_DIR") or str(Path.home() / ".config" / "gh")


def parse_auth_status(output: str, hostname: str) -> set[str]:
    """Extract account names logged in to hostname from `gh auth status` text.

    gh prints one line per account, e.g.
    ``✓ Logged in to github.com account octocat (keyring)``.
    """
    pattern = re.compile(rf"Logged in to {re.escape(hostname)} account (\S+)")
    return {match.group(1) for match in pattern.finditer(output)}


class GitHubCLI:
    """Commands issued against gh for one hostname at a time."""

    def _run(
        self, *args: str, env: dict[str, str] | None = None
    ) -> subprocess.CompletedProcess:
        cmd = ["gh", *args]
        logger.debug(f"Running: {' '.join(cmd)}")
        return subprocess.run(cmd, capture_output=True, text=True, env=env)

    def list_authenticated_accounts(self, hostname: str) -> set[str]:
        """Return accounts gh holds credentials for on hostname.

        Any failure to query gh is treated as no accounts.
        """
        try:
            result = self._run("auth", "status", "--hostname", hostname)
        except OSError as e:
            logger.warning(f"gh auth status failed: {e}")
            return set()

        # gh exits non-zero when any stored token is invalid but still lists accounts
        accounts = parse_auth_status(result.stdout + result.stderr, hostname)
        logger.debug(f"Accounts on {hostname}: {sorted(accounts)}")
        return accounts

    def switch(self, username: str, hostname: str) -> None:
        """Make username the active gh account for hostname."""
        try:
            result = self._run("auth", "switch", "-u", username, "-h", hostname)
        except OSError as e:
            raise SwitchError(f"Failed to switch to user {username} on {hostname}: {e}")
        if result.returncode != 0:
            logger.error(f"gh auth switch failed: {result.stderr.strip()}")
            raise SwitchError(f"Failed to switch to user {username} on {hostname}")
        logger.info(f"Switched gh account on {hostname} to {username}")

    def fetch_user(self, hostname: str) -> str:
        """Return the raw JSON body of GET /user for the active account.

        Raises:
            IdentityFetchError: If gh could not complete the request.
        """
        env = {**os.environ, "GH_CONFIG_DIR": gh_config_dir()}
        try:
            result = self._run(
                "api",
                "--hostname",
                hostname,
                "--cache",
                API_CACHE_TTL,
                "-H",
                API_ACCEPT_HEADER,
                "user",
                env=env,
            )
        except OSError as e:
            raise IdentityFetchError(f"Could not run gh api: {e}")
        if result.returncode != 0:
            raise IdentityFetchError(result.stderr.strip() or "gh api user failed")
        return result.stdout
