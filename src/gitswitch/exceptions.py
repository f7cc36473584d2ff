"""Custom exceptions for gitswitch."""


class GitSwitchError(Exception):
    """Base exception for gitswitch errors."""

    pass


class UsageError(GitSwitchError):
    """Malformed flags or arguments."""

    pass


class PreconditionError(GitSwitchError):
    """The requested operation needs a git working tree."""

    pass


class DependencyError(GitSwitchError):
    """A required external tool is not installed."""

    pass


class NotLoggedInError(GitSwitchError):
    """Requested account is not authenticated against the hostname."""

    pass


class SwitchError(GitSwitchError):
    """gh failed to switch the active account."""

    pass


class IdentityFetchError(GitSwitchError):
    """Fetching the authenticated user from the API failed."""

    pass


class PayloadError(GitSwitchError):
    """The API responded without the expected login or id."""

    pass


class ConfigWriteError(GitSwitchError):
    """Failed to write or remove git configuration."""

    pass


class InstallError(GitSwitchError):
    """Error while bootstrapping the environment."""

    pass
