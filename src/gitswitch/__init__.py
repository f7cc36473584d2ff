"""Switch the active GitHub CLI account and the matching git identity."""

from importlib.metadata import version

__version__ = version("gitswitch")

from gitswitch.switcher import GitAccountSwitcher

__all__ = ["GitAccountSwitcher", "__version__"]
