"""Command-line interface for gitswitch."""

from __future__ import annotations

import argparse
import re
import sys
from typing import Sequence

from gitswitch import __version__, console
from gitswitch.exceptions import GitSwitchError, UsageError
from gitswitch.models import DEFAULT_HOSTNAME, Mode, Scope, SwitchRequest
from gitswitch.switcher import GitAccountSwitcher

USAGE = """gitswitch [--single] [--hostname <host>] [--email <email>] <username>
    or gitswitch --unset-single"""

MISSING_VALUE = re.compile(r"argument --(hostname|email): expected one argument")


class _Parser(argparse.ArgumentParser):
    """ArgumentParser that reports problems as UsageError instead of exiting 2."""

    def error(self, message: str) -> None:
        match = MISSING_VALUE.match(message)
        if match:
            raise UsageError(f"Missing {match.group(1)} value")
        raise UsageError(message)


def build_parser() -> argparse.ArgumentParser:
    parser = _Parser(
        prog="gitswitch",
        usage=USAGE,
        description="Switches GitHub account using gh CLI and configures git user settings.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s octocat
  %(prog)s --single octocat
  %(prog)s --hostname github.example.com --email me@example.com octocat
  %(prog)s --unset-single
        """,
    )
    parser.add_argument(
        "username",
        nargs="*",
        help="The account to switch to",
    )
    parser.add_argument(
        "--single",
        action="store_true",
        help="Configure git user settings locally for current repository only "
        "(Note: gh auth user still changes globally)",
    )
    parser.add_argument(
        "--unset-single",
        action="store_true",
        help="Remove local user.name and user.email to use global settings",
    )
    parser.add_argument(
        "--hostname",
        metavar="HOST",
        help=f"The hostname of the GitHub instance (default: {DEFAULT_HOSTNAME})",
    )
    parser.add_argument(
        "--email",
        metavar="EMAIL",
        help="Custom email address to use instead of the default noreply email",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    return build_parser().parse_intermixed_args(argv)


def request_from_args(args: argparse.Namespace) -> SwitchRequest:
    """Validate parsed arguments into a SwitchRequest.

    Raises:
        UsageError: On any invalid combination of arguments.
    """
    if len(args.username) > 1:
        raise UsageError("Only one username can be provided")
    username = args.username[0] if args.username else None

    if args.hostname is not None and not args.hostname:
        raise UsageError("Missing hostname value")
    if args.email is not None and not args.email:
        raise UsageError("Missing email value")

    if args.unset_single:
        if username or args.single:
            raise UsageError("--unset-single cannot be combined with username or --single")
        return SwitchRequest(mode=Mode.UNSET_LOCAL, scope=Scope.LOCAL)

    if not username:
        raise UsageError("No username provided")

    return SwitchRequest(
        username=username,
        mode=Mode.SWITCH,
        scope=Scope.LOCAL if args.single else Scope.GLOBAL,
        hostname=args.hostname or DEFAULT_HOSTNAME,
        email=args.email,
    )


def main(argv: Sequence[str] | None = None) -> None:
    """Main entry point for the CLI."""
    try:
        args = parse_args(argv)
        request = request_from_args(args)
    except UsageError as e:
        console.error(str(e))
        console.err_console.print(f"Usage: {USAGE}", markup=False)
        sys.exit(1)

    try:
        switcher = GitAccountSwitcher(debug=args.debug)
        switcher.run(request)
    except GitSwitchError as e:
        console.error(str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        console.err_console.print("\nOperation cancelled")
        sys.exit(1)


def install_main(argv: Sequence[str] | None = None) -> None:
    """Entry point for gitswitch-install."""
    from gitswitch.installer import Installer

    parser = argparse.ArgumentParser(
        prog="gitswitch-install",
        description="Install gitswitch and its dependencies (gh, jq) and "
        "configure gh as git credential helper.",
    )
    parser.add_argument(
        "--yes",
        "-y",
        action="store_true",
        help="Answer yes to every prompt",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    args = parser.parse_args(argv)

    try:
        Installer(assume_yes=args.yes, debug=args.debug).run()
    except GitSwitchError as e:
        console.error(str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        console.err_console.print("\nInstallation cancelled")
        sys.exit(1)


if __name__ == "__main__":
    main()
