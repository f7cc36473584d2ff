"""Access to git's configuration store."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from gitswitch.exceptions import ConfigWriteError
from gitswitch.models import IdentityTransaction, Scope

NAME_KEY = "user.name"
EMAIL_KEY = "user.email"

# `git config --unset` exits with 5 when the key is not set
KEY_NOT_SET = 5

logger = logging.getLogger(__name__)


class GitConfig:
    """Reads and writes git configuration relative to a working directory."""

    def __init__(self, cwd: Path | None = None):
        self.cwd = cwd

    def _run(self, *args: str) -> subprocess.CompletedProcess:
        cmd = ["git", *args]
        logger.debug(f"Running: {' '.join(cmd)}")
        return subprocess.run(
            cmd,
            cwd=self.cwd,
            capture_output=True,
            text=True,
        )

    def is_inside_work_tree(self) -> bool:
        """Check whether the working directory is inside a git working tree."""
        try:
            result = self._run("rev-parse", "--is-inside-work-tree")
        except OSError as e:
            logger.warning(f"Could not run git: {e}")
            return False
        return result.returncode == 0 and result.stdout.strip() == "true"

    def get(self, key: str, scope: Scope) -> str | None:
        """Return the value of key at scope, or None if it is not set."""
        result = self._run("config", scope.flag, "--get", key)
        if result.returncode != 0:
            return None
        return result.stdout.rstrip("\n")

    def set(self, key: str, value: str, scope: Scope) -> None:
        """Write key at scope.

        Raises:
            ConfigWriteError: If git refuses the write.
        """
        result = self._run("config", scope.flag, key, value)
        if result.returncode != 0:
            raise ConfigWriteError(
                f"Failed to set {key}: {result.stderr.strip() or 'git config failed'}"
            )
        logger.debug(f"Set {key}={value} ({scope.name.lower()})")

    def get_all(self, key: str, scope: Scope) -> list[str]:
        """Return every value of a multi-valued key at scope."""
        result = self._run("config", scope.flag, "--get-all", key)
        if result.returncode != 0:
            return []
        return result.stdout.splitlines()

    def add(self, key: str, value: str, scope: Scope) -> None:
        """Append another value to a multi-valued key."""
        result = self._run("config", scope.flag, "--add", key, value)
        if result.returncode != 0:
            raise ConfigWriteError(f"Failed to add {key}: {result.stderr.strip()}")

    def replace_all(self, key: str, value: str, scope: Scope) -> None:
        """Replace every value of a multi-valued key with value."""
        result = self._run("config", scope.flag, "--replace-all", key, value)
        if result.returncode != 0:
            raise ConfigWriteError(f"Failed to set {key}: {result.stderr.strip()}")

    def unset(self, key: str, scope: Scope) -> None:
        """Remove key at scope. Removing a key that is not set is a no-op."""
        result = self._run("config", scope.flag, "--unset", key)
        if result.returncode not in (0, KEY_NOT_SET):
            raise ConfigWriteError(
                f"Failed to unset {key}: {result.stderr.strip() or 'git config failed'}"
            )

    def unset_identity(self) -> None:
        """Drop the repository-local name and email override."""
        for key in (NAME_KEY, EMAIL_KEY):
            self.unset(key, Scope.LOCAL)
        logger.info("Removed local user.name and user.email")

    def write_identity(self, name: str, email: str, scope: Scope) -> None:
        """Write user.name and user.email, undoing the name if the email fails."""
        transaction = IdentityTransaction(
            scope=scope,
            previous_values={
                NAME_KEY: self.get(NAME_KEY, scope),
                EMAIL_KEY: self.get(EMAIL_KEY, scope),
            },
        )

        try:
            self.set(NAME_KEY, name, scope)
            transaction.record_step(NAME_KEY)
            self.set(EMAIL_KEY, email, scope)
            transaction.record_step(EMAIL_KEY)
        except ConfigWriteError as e:
            logger.error(f"Identity write failed: {e}, attempting rollback")
            if not transaction.completed_steps:
                raise
            if transaction.rollback(self):
                raise ConfigWriteError(f"{e} (previous {NAME_KEY} restored)")
            raise ConfigWriteError(
                f"{e}. Rollback also failed; check 'git config "
                f"{scope.flag} --list' manually."
            )

        logger.info(f"Wrote identity {name} <{email}> ({scope.name.lower()})")
