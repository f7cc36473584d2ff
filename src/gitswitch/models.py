"""Data models for gitswitch."""

from __future__ import annotations

import logging
import os
import platform as platform_module
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from gitswitch.git import GitConfig

DEFAULT_HOSTNAME = "github.com"

logger = logging.getLogger(__name__)


class Platform(Enum):
    """Supported platforms."""

    MACOS = auto()
    LINUX = auto()
    WSL = auto()
    WINDOWS = auto()
    UNKNOWN = auto()

    @classmethod
    def detect(cls) -> Platform:
        """Detect current platform."""
        system = platform_module.system()
        if system == "Darwin":
            return cls.MACOS
        elif system == "Windows":
            return cls.WINDOWS
        elif system == "Linux":
            if os.environ.get("WSL_DISTRO_NAME"):
                return cls.WSL
            return cls.LINUX
        return cls.UNKNOWN


class Mode(Enum):
    """What a single invocation does."""

    SWITCH = auto()
    UNSET_LOCAL = auto()


class Scope(Enum):
    """Git configuration layer written by a switch."""

    GLOBAL = "--global"
    LOCAL = "--local"

    @property
    def flag(self) -> str:
        return self.value


@dataclass
class SwitchRequest:
    """Validated configuration for one invocation."""

    username: str | None = None
    mode: Mode = Mode.SWITCH
    scope: Scope = Scope.GLOBAL
    hostname: str = DEFAULT_HOSTNAME
    email: str | None = None


@dataclass(frozen=True)
class ResolvedIdentity:
    """Profile of the active account as reported by the API."""

    login: str
    id: int

    def email_for(self, hostname: str, custom_email: str | None = None) -> str:
        """Return the commit email, preferring an explicit override."""
        if custom_email:
            return custom_email
        return f"{self.id}+{self.login}@users.noreply.{hostname}"


@dataclass(frozen=True)
class RetryPolicy:
    """Fixed-delay retry: no backoff, no jitter."""

    max_attempts: int = 3
    delay: float = 2.0


@dataclass
class IdentityTransaction:
    """Tracks the keys written during one identity update so they can be undone."""

    scope: Scope
    previous_values: dict[str, str | None] = field(default_factory=dict)
    completed_steps: list[str] = field(default_factory=list)

    def record_step(self, key: str) -> None:
        """Record a key that has been written."""
        self.completed_steps.append(key)

    def rollback(self, git: GitConfig) -> bool:
        """Restore all written keys in reverse order.

        Returns:
            True if rollback successful, False if any step failed.
        """
        success = True
        for key in reversed(self.completed_steps):
            previous = self.previous_values.get(key)
            try:
                if previous is None:
                    git.unset(key, self.scope)
                else:
                    git.set(key, previous, self.scope)
                logger.info(f"Rolled back {key} ({self.scope.name.lower()})")
            except Exception as e:
                logger.error(f"Failed to roll back {key}: {e}")
                success = False
        return success
