"""Environment bootstrap: dependencies, launcher, credential helper.

The per-platform install logic is data. ``INSTALL_RECIPES`` maps a
(tool, package manager) pair to the commands that install it, and
``RELEASE_ASSETS`` describes where to fetch a prebuilt binary when no
usable package manager is available.
"""

from __future__ import annotations

import io
import os
import platform as platform_module
import re
import shutil
import subprocess
import sys
import tarfile
from dataclasses import dataclass, replace
from pathlib import Path

import requests
from rich.markup import escape

from gitswitch import console
from gitswitch.exceptions import ConfigWriteError, InstallError
from gitswitch.git import GitConfig
from gitswitch.logging_config import default_log_dir, setup_logging
from gitswitch.models import Platform, Scope

SCRIPT_NAME = "gitswitch"
SYSTEM_BIN_DIR = Path("/usr/local/bin")

GH_KEYRING = "/usr/share/keyrings/githubcli-archive-keyring.gpg"
GH_KEYRING_URL = "https://cli.github.com/packages/githubcli-archive-keyring.gpg"
GH_APT_SOURCE = "/etc/apt/sources.list.d/github-cli.list"
GH_RPM_REPO = "https://cli.github.com/packages/rpm/gh-cli.repo"
GH_CREDENTIAL_HELPER = "gh auth git-credential"

RELEASES_API = "https://api.github.com/repos/{repo}/releases/latest"
DOWNLOAD_TIMEOUT = 60

# Tool executable -> human readable name
TOOLS = {
    "gh": "gh CLI",
    "jq": "jq",
}

# Probed in order on Linux; the first one found wins
LINUX_PACKAGE_MANAGERS = ("apt", "dnf5", "dnf", "yum")

ARCHITECTURES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
}


@dataclass(frozen=True)
class InstallStep:
    """One command of an install recipe.

    Parts of argv and stdin_text may contain ``{placeholders}`` filled in by
    render(). stdin_url is downloaded and fed to the command's stdin.
    """

    argv: tuple[str, ...]
    stdin_text: str | None = None
    stdin_url: str | None = None

    def render(self, **values: str) -> InstallStep:
        return replace(
            self,
            argv=tuple(part.format(**values) for part in self.argv),
            stdin_text=self.stdin_text.format(**values) if self.stdin_text else None,
        )


def _steps(*commands: str) -> tuple[InstallStep, ...]:
    return tuple(InstallStep(tuple(command.split())) for command in commands)


INSTALL_RECIPES: dict[tuple[str, str], tuple[InstallStep, ...]] = {
    ("gh", "brew"): _steps("brew install gh"),
    ("jq", "brew"): _steps("brew install jq"),
    ("gh", "apt"): (
        InstallStep(("sudo", "mkdir", "-p", "/usr/share/keyrings")),
        InstallStep(("sudo", "tee", GH_KEYRING), stdin_url=GH_KEYRING_URL),
        InstallStep(
            ("sudo", "tee", GH_APT_SOURCE),
            stdin_text=(
                "deb [arch={dpkg_arch} signed-by=" + GH_KEYRING + "] "
                "https://cli.github.com/packages stable main\n"
            ),
        ),
        InstallStep(("sudo", "apt-get", "update")),
        InstallStep(("sudo", "apt-get", "install", "-y", "gh")),
    ),
    ("jq", "apt"): _steps("sudo apt-get install -y jq"),
    ("gh", "dnf5"): _steps(
        "sudo dnf install -y dnf5-plugins",
        f"sudo dnf config-manager addrepo --from-repofile={GH_RPM_REPO}",
        "sudo dnf install -y gh --repo gh-cli",
    ),
    ("jq", "dnf5"): _steps("sudo dnf install -y jq"),
    ("gh", "dnf"): (
        InstallStep(("sudo", "dnf", "install", "-y", "dnf-command(config-manager)")),
        *_steps(
            f"sudo dnf config-manager --add-repo {GH_RPM_REPO}",
            "sudo dnf install -y gh --repo gh-cli",
        ),
    ),
    ("jq", "dnf"): _steps("sudo dnf install -y jq"),
    ("gh", "yum"): _steps(
        f"sudo yum-config-manager --add-repo {GH_RPM_REPO}",
        "sudo yum install -y gh",
    ),
    ("jq", "yum"): _steps("sudo yum install -y jq"),
}


@dataclass(frozen=True)
class ReleaseAsset:
    """Where to download a prebuilt binary of a tool."""

    repo: str
    url_template: str
    # Path suffix of the executable inside a .tar.gz; None for a bare binary
    archive_member: str | None = None

    @property
    def needs_version(self) -> bool:
        return "{version}" in self.url_template

    def url(self, os_name: str, arch: str, version: str = "") -> str:
        return self.url_template.format(os=os_name, arch=arch, version=version)


RELEASE_ASSETS = {
    "gh": ReleaseAsset(
        repo="cli/cli",
        url_template=(
            "https://github.com/cli/cli/releases/download/"
            "v{version}/gh_{version}_{os}_{arch}.tar.gz"
        ),
        archive_member="bin/gh",
    ),
    "jq": ReleaseAsset(
        repo="jqlang/jq",
        url_template="https://github.com/jqlang/jq/releases/latest/download/jq-{os}-{arch}",
    ),
}


@dataclass(frozen=True)
class InstallEnvironment:
    platform: Platform
    package_manager: str
    arch: str | None
    can_sudo: bool

    @property
    def use_release_binaries(self) -> bool:
        """Whether tools must come from release downloads instead of a package manager."""
        if self.package_manager == "brew":
            return False
        return self.package_manager == "none" or not self.can_sudo


def has_passwordless_sudo() -> bool:
    try:
        result = subprocess.run(["sudo", "-n", "true"], capture_output=True)
    except OSError:
        return False
    return result.returncode == 0


def detect_package_manager(current: Platform) -> str:
    if current is Platform.MACOS:
        return "brew"
    if current in (Platform.LINUX, Platform.WSL):
        for manager in LINUX_PACKAGE_MANAGERS:
            if shutil.which(manager):
                return manager
        return "none"
    raise InstallError("Unsupported operating system.")


def detect_environment() -> InstallEnvironment:
    """Inspect OS, package manager, CPU architecture and sudo rights."""
    current = Platform.detect()
    package_manager = detect_package_manager(current)
    return InstallEnvironment(
        platform=current,
        package_manager=package_manager,
        arch=ARCHITECTURES.get(platform_module.machine().lower()),
        can_sudo=has_passwordless_sudo(),
    )


def shell_rc_file(home: Path, shell: str | None = None) -> Path:
    """Startup file of the user's login shell."""
    shell_name = Path(shell).name if shell else "bash"
    if shell_name == "zsh":
        return home / ".zshrc"
    if shell_name == "bash" and (home / ".bash_profile").exists():
        return home / ".bash_profile"
    return home / ".bashrc"


def add_to_path_in_rc_files(bin_dir: Path, home: Path) -> list[Path]:
    """Append a PATH export for bin_dir to existing shell rc files, once.

    Returns:
        The rc files that were modified.
    """
    export_line = f'export PATH="$PATH:{bin_dir}"'
    modified = []
    for rc_file in (home / ".bashrc", home / ".zshrc"):
        if not rc_file.exists():
            continue
        content = rc_file.read_text()
        if export_line in content.splitlines():
            continue
        prefix = "" if not content or content.endswith("\n") else "\n"
        with rc_file.open("a") as f:
            f.write(f"{prefix}{export_line}\n")
        modified.append(rc_file)
    return modified


def launcher_script(python: str = sys.executable) -> str:
    return f'#!/bin/sh\nexec "{python}" -m gitswitch "$@"\n'


class Installer:
    """Bootstraps everything gitswitch needs on this machine."""

    def __init__(
        self,
        assume_yes: bool = False,
        debug: bool = False,
        environment: InstallEnvironment | None = None,
        git: GitConfig | None = None,
        session: requests.Session | None = None,
        home: Path | None = None,
        system_bin_dir: Path = SYSTEM_BIN_DIR,
        log_dir: Path | None = None,
    ):
        self.assume_yes = assume_yes
        self.home = home or Path.home()
        self.system_bin_dir = system_bin_dir
        self.fallback_bin_dir = self.home / ".local" / "bin"
        self.git = git or GitConfig()
        self.session = session or requests.Session()
        self._environment = environment
        self._logger = setup_logging(log_dir or default_log_dir(), debug=debug)

    @property
    def environment(self) -> InstallEnvironment:
        if self._environment is None:
            self._environment = detect_environment()
            self._logger.info(f"Detected environment: {self._environment}")
        return self._environment

    def _confirm(self, question: str) -> bool:
        """Ask a Y/n question. Non-interactive runs answer yes."""
        if self.assume_yes or not sys.stdin.isatty():
            return True
        response = input(f"{question} (Y/n): ")
        return not re.match(r"^[Nn]$", response.strip())

    def _download(self, url: str) -> bytes:
        self._logger.debug(f"Downloading {url}")
        try:
            response = self.session.get(url, timeout=DOWNLOAD_TIMEOUT)
            response.raise_for_status()
        except requests.RequestException as e:
            raise InstallError(f"Failed to download {url}: {e}")
        return response.content

    def latest_version(self, repo: str) -> str:
        """Latest release version of repo, without a leading 'v'."""
        url = RELEASES_API.format(repo=repo)
        try:
            response = self.session.get(url, timeout=DOWNLOAD_TIMEOUT)
            response.raise_for_status()
            tag = response.json()["tag_name"]
        except (requests.RequestException, KeyError, ValueError) as e:
            raise InstallError(f"Failed to fetch latest release of {repo}: {e}")
        return tag[1:] if tag.startswith("v") else tag

    def _template_values(self) -> dict[str, str]:
        if self.environment.package_manager != "apt":
            return {}
        try:
            result = subprocess.run(
                ["dpkg", "--print-architecture"], capture_output=True, text=True
            )
        except OSError as e:
            raise InstallError(f"Failed to determine the dpkg architecture: {e}")
        if result.returncode != 0:
            raise InstallError("Failed to determine the dpkg architecture.")
        return {"dpkg_arch": result.stdout.strip()}

    def run_step(self, step: InstallStep) -> None:
        stdin = None
        if step.stdin_url:
            stdin = self._download(step.stdin_url)
        elif step.stdin_text is not None:
            stdin = step.stdin_text.encode()

        self._logger.debug(f"Running: {' '.join(step.argv)}")
        try:
            result = subprocess.run(list(step.argv), input=stdin, capture_output=True)
        except OSError as e:
            raise InstallError(f"Failed to run {step.argv[0]}: {e}")
        if result.returncode != 0:
            self._logger.error(
                f"Command failed: {' '.join(step.argv)}: "
                f"{result.stderr.decode(errors='replace').strip()}"
            )
            raise InstallError(f"Command failed: {' '.join(step.argv)}")

    def install_with_package_manager(self, tool: str) -> None:
        manager = self.environment.package_manager
        recipe = INSTALL_RECIPES.get((tool, manager))
        if recipe is None:
            raise InstallError(f"No install recipe for {tool} with {manager}.")
        values = self._template_values()
        for step in recipe:
            self.run_step(step.render(**values))

    def install_release_binary(self, tool: str, bin_dir: Path) -> Path:
        """Download a prebuilt Linux binary of tool into bin_dir."""
        asset = RELEASE_ASSETS[tool]
        arch = self.environment.arch
        if arch is None:
            raise InstallError(
                f"Unsupported architecture for {tool} binary installation."
            )

        version = ""
        if asset.needs_version:
            console.info(f"Fetching latest {tool} release...")
            version = self.latest_version(asset.repo)

        console.info(f"Downloading {tool} {version or 'latest'} to {bin_dir}...")
        data = self._download(asset.url("linux", arch, version))

        if asset.archive_member:
            data = self._extract_member(data, asset.archive_member, tool)

        bin_dir.mkdir(parents=True, exist_ok=True)
        target = bin_dir / tool
        target.write_bytes(data)
        os.chmod(target, 0o755)
        self._logger.info(f"Installed {tool} {version} to {target}")
        return target

    def _extract_member(self, archive: bytes, member_suffix: str, tool: str) -> bytes:
        try:
            with tarfile.open(fileobj=io.BytesIO(archive), mode="r:gz") as tar:
                for member in tar.getmembers():
                    if member.isfile() and member.name.endswith(member_suffix):
                        return tar.extractfile(member).read()
        except tarfile.TarError as e:
            raise InstallError(f"Failed to extract {tool} binary: {e}")
        raise InstallError(f"{member_suffix} not found in {tool} release archive.")

    def ensure_tool(self, tool: str) -> None:
        """Install tool unless it is already on PATH."""
        if shutil.which(tool):
            self._logger.debug(f"{tool} already installed")
            return

        label = TOOLS[tool]
        if not self._confirm(f"{label} is not installed. Install it now?"):
            raise InstallError(
                f"{label} is required. Please install it manually and rerun the installer."
            )

        console.info(f"Installing {label}...")
        if self.environment.use_release_binaries:
            self.install_release_binary(tool, self.fallback_bin_dir)
        else:
            self.install_with_package_manager(tool)
        console.success(escape(f"{label} installed successfully."))

    def configure_credential_helper(self) -> None:
        """Register gh as git's credential helper in the global config."""
        gh_path = shutil.which("gh") or shutil.which(
            "gh", path=str(self.fallback_bin_dir)
        )
        if not gh_path:
            raise InstallError("gh CLI not found after installation.")

        helper = f"!{gh_path} auth git-credential"
        current = self.git.get_all("credential.helper", Scope.GLOBAL)
        if any(GH_CREDENTIAL_HELPER in value for value in current):
            self._logger.debug("gh credential helper already configured")
            return

        try:
            if current:
                console.console.print(
                    f"Existing Git credential helper detected: {', '.join(current)}",
                    markup=False,
                )
                if self._confirm(
                    "Add gh as an additional credential helper (Y) or overwrite the "
                    "existing credential helpers with gh as the only one (n)?"
                ):
                    console.info("Adding gh as Git credential helper...")
                    self.git.add("credential.helper", helper, Scope.GLOBAL)
                    return
            console.info("Configuring gh as Git credential helper...")
            self.git.replace_all("credential.helper", helper, Scope.GLOBAL)
        except ConfigWriteError as e:
            raise InstallError(f"Failed to configure Git credential helper: {e}")

    def install_launcher(self) -> Path:
        """Put a gitswitch launcher on PATH and return its location."""
        script = launcher_script()

        if os.access(self.system_bin_dir, os.W_OK):
            target = self.system_bin_dir / SCRIPT_NAME
            console.info(f"Installing {SCRIPT_NAME} to {target}...")
            target.write_text(script)
            os.chmod(target, 0o755)
        elif self.environment.can_sudo:
            target = self.system_bin_dir / SCRIPT_NAME
            console.info(f"Installing {SCRIPT_NAME} to {target}...")
            self.run_step(InstallStep(("sudo", "tee", str(target)), stdin_text=script))
            self.run_step(InstallStep(("sudo", "chmod", "+x", str(target))))
        else:
            target = self.fallback_bin_dir / SCRIPT_NAME
            console.info(f"Installing {SCRIPT_NAME} to {target} (user directory)...")
            self.fallback_bin_dir.mkdir(parents=True, exist_ok=True)
            target.write_text(script)
            os.chmod(target, 0o755)
            for rc_file in add_to_path_in_rc_files(self.fallback_bin_dir, self.home):
                self._logger.info(f"Added {self.fallback_bin_dir} to PATH in {rc_file}")

        self._logger.info(f"Installed launcher at {target}")
        return target

    def run(self) -> None:
        console.info("Starting gitswitch installation...")
        for tool in TOOLS:
            self.ensure_tool(tool)
        self.configure_credential_helper()
        target = self.install_launcher()

        search_path = os.environ.get("PATH", "").split(os.pathsep)
        if str(target.parent) not in search_path:
            rc_file = shell_rc_file(self.home, os.environ.get("SHELL"))
            if rc_file.exists():
                console.warn(
                    f"{target.parent} is not on PATH in this shell. "
                    f"Run 'source {rc_file}' or open a new terminal to use gitswitch."
                )
            else:
                console.warn(
                    f"{target.parent} is not on PATH in this shell. "
                    "Open a new terminal to use gitswitch."
                )
        console.success(
            escape("Installation complete! You can now use 'gitswitch <username>'.")
        )
