"""
Fedora Restore
--------------
Post-installation provisioning of a fresh Fedora system from a dotfiles
repository. Runs as the regular user and uses sudo for commands that
need root.

Every step asks before doing anything, reports what happened and moves
on; a failing step never stops the ones after it.
"""

import os
import shutil
import stat
import subprocess
import tarfile
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import requests
from rich.table import Table

from fedora_dotfiles.config import Config
from fedora_dotfiles.grub import (
    GRUB_DEFAULTS,
    add_kernel_arg,
    current_kernel_args,
    missing_kernel_args,
    regenerate_grub_config,
    set_grub_timeout,
)
from fedora_dotfiles.installers import (
    THIRD_PARTY_RPMS,
    VENDOR_REPOS,
    VSCODE_REPO,
    download_file,
    install_from_vendor_repo,
    install_rpm_from_url,
    run_remote_script,
)
from fedora_dotfiles.logger import get_logger
from fedora_dotfiles.packages import is_non_empty_file, parse_dnf_packages, read_list_file
from fedora_dotfiles.shell import (
    command_exists,
    command_output,
    run_command,
    run_task_with_logging,
    sudo,
    try_command,
)
from fedora_dotfiles.system_files import (
    ETC_ENVIRONMENT,
    FREETYPE_MARKERS,
    FREETYPE_SYSTEM_PROPERTIES,
    FREETYPE_USER_PROPERTIES,
    HOMEBREW_BIN,
    KEYD_CONFIG_FILE,
    KEYD_HYPERKEY_CONFIG,
    LIBINPUT_CONFIG_FILE,
    LIBINPUT_DEFAULT_CONFIG,
    STANDARD_SECURE_PATH,
    SUDOERS_SECURE_PATH_FILE,
    append_root_line,
    build_secure_path,
    env_file_has,
    file_has_line,
    read_root_file,
    remove_root_file,
    render_sudoers_secure_path,
    secure_path_line,
    write_root_file,
)
from fedora_dotfiles.ui import (
    NordColors,
    confirm,
    console,
    print_error,
    print_info,
    print_section,
    print_step,
    print_success,
    print_warning,
)

RPM_FUSION_URLS = [
    "https://download1.rpmfusion.org/free/fedora/rpmfusion-free-release-{release}.noarch.rpm",
    "https://download1.rpmfusion.org/nonfree/fedora/rpmfusion-nonfree-release-{release}.noarch.rpm",
]
HOMEBREW_INSTALL_URL = "https://raw.githubusercontent.com/Homebrew/install/HEAD/install.sh"
HOMEBREW_PREFIX = "/home/linuxbrew/.linuxbrew"
OH_MY_ZSH_INSTALL_URL = "https://raw.github.com/ohmyzsh/ohmyzsh/master/tools/install.sh"
WINDSURF_INSTALL_URL = "https://raw.githubusercontent.com/EstebanForge/windsurf-installer-linux/main/install-windsurf.sh"
NORDVPN_INSTALL_URL = "https://downloads.nordcdn.com/apps/linux/install.sh"
DOCKER_REPO_URL = "https://download.docker.com/linux/fedora/docker-ce.repo"
DOCKER_PACKAGES = ["docker-ce", "docker-ce-cli", "containerd.io", "docker-buildx-plugin", "docker-compose-plugin"]
DOCKER_SOCKET = "/var/run/docker.sock"
LOLCATE_URL = "https://github.com/ngirard/lolcate-rs/releases/download/v0.10.0/lolcate--x86_64-unknown-linux-musl.tar.gz"
LOLCATE_SYMLINK = "/usr/bin/lolcate"
LIBINPUT_CONFIG_REPO = "https://gitlab.com/warningnonpotablewater/libinput-config.git"
LIBINPUT_BUILD_DEPS = ["libinput-devel", "libudev-devel", "meson", "ninja-build", "git"]
PIP_PACKAGES = ["Pint", "simpleeval", "parsedatetime", "pytz", "babel", "lorem", "deepl"]
BITWARDEN_APP_ID = "com.bitwarden.desktop"
BITWARDEN_OVERRIDES = [
    "--env=ELECTRON_OZONE_PLATFORM_HINT=auto",
    "--socket=wayland",
    "--nosocket=x11",
    "--unshare=ipc",
]
AMD_KERNEL_ARGS = ["amd_pstate=guided", "mem_sleep_default=s2idle"]
SYSTEM_ENVIRONMENT_VARS = {
    "GNOME_SHELL_SLOWDOWN_FACTOR": "0.5",
    "ELECTRON_OZONE_PLATFORM_HINT": "wayland",
}
GRUB_TIMEOUT_SECONDS = 3

# dnf check-update exits 100 when updates are available
DNF_CHECK_UPDATE_OK = (0, 100)


@dataclass
class RestoreStep:
    name: str
    method: str
    description: str


RESTORE_STEPS: List[RestoreStep] = [
    RestoreStep("rsync_home", "rsync_source_home_to_user_home", "Copy repository home/ into $HOME"),
    RestoreStep("rpm_fusion", "setup_rpm_fusion", "RPM Fusion free and nonfree repositories"),
    RestoreStep("dnf_packages", "install_common_dnf_packages", "DNF groups and packages from dnf_packages.txt"),
    RestoreStep("flatpak_packages", "restore_flatpak_packages", "Flatpak applications from flatpak_apps.txt"),
    RestoreStep("flatpak_overrides", "setup_flatpak_overrides", "Bitwarden Flatpak overrides (Wayland, IPC)"),
    RestoreStep("homebrew", "install_homebrew", "Homebrew (Linuxbrew)"),
    RestoreStep("brew_packages", "install_brew_packages", "Brew packages from brew_packages.txt"),
    RestoreStep("ssh_permissions", "setup_ssh_permissions", "Recommended ~/.ssh permissions"),
    RestoreStep("zsh", "setup_zsh", "Zsh, Oh-My-Zsh and default shell"),
    RestoreStep("docker", "setup_docker", "Docker engine and service"),
    RestoreStep("gnome_tweaks", "setup_gnome_settings", "GNOME fractional scaling and touchpad drag lock"),
    RestoreStep("font_rendering", "setup_font_rendering", "macOS-like font rendering"),
    RestoreStep("crypto_policies", "setup_crypto_policies", "System-wide crypto policy"),
    RestoreStep("amd_pstate_grub", "setup_amd_pstates_and_s2idle_grub_args", "AMD P-States and s2idle kernel arguments"),
    RestoreStep("system_environment", "setup_system_environment", "GNOME animation speed and Electron Wayland"),
    RestoreStep("additional_software", "install_additional_software", "Browsers, editors, VPN and sync clients"),
    RestoreStep("vscode", "install_vscode", "Visual Studio Code"),
    RestoreStep("windsurf", "install_windsurf", "Windsurf editor"),
    RestoreStep("system_utilities", "install_system_utilities", "Flameshot, keyd, Ulauncher, lolcate, libinput-config"),
    RestoreStep("grub_timeout", "setup_grub_tweaks", "GRUB menu timeout"),
    RestoreStep("sudo_secure_path", "configure_sudo_secure_path", "sudo secure_path with Homebrew"),
    RestoreStep("gnome_settings", "restore_gnome_settings", "Load the GNOME dconf dump"),
]

STEP_NAMES = [step.name for step in RESTORE_STEPS]


def select_steps(only: Iterable[str] = (), skip: Iterable[str] = ()) -> List[RestoreStep]:
    """Steps to run, in their fixed order, after applying --only and --skip."""
    only, skip = set(only), set(skip)
    unknown = (only | skip) - set(STEP_NAMES)
    if unknown:
        raise ValueError(f"Unknown restore step(s): {', '.join(sorted(unknown))}")
    return [
        step
        for step in RESTORE_STEPS
        if (not only or step.name in only) and step.name not in skip
    ]


def fix_ssh_permissions(ssh_dir: Path) -> int:
    """
    Directory 0700, private files 0600, public keys and known_hosts 0644,
    authorized_keys 0600. Returns the number of files updated.
    """
    os.chmod(ssh_dir, 0o700)
    count = 0
    for root, _, files in os.walk(ssh_dir):
        for name in files:
            path = Path(root) / name
            if path.is_symlink():
                continue
            mode = 0o644 if name.endswith(".pub") else 0o600
            os.chmod(path, mode)
            count += 1
    authorized_keys = ssh_dir / "authorized_keys"
    if authorized_keys.is_file():
        os.chmod(authorized_keys, 0o600)
    known_hosts = ssh_dir / "known_hosts"
    if known_hosts.is_file():
        os.chmod(known_hosts, 0o644)
    return count


def activate_homebrew_env(prefix: str = HOMEBREW_PREFIX) -> bool:
    """Put a Homebrew installation on PATH for the rest of this process."""
    brew = Path(prefix) / "bin" / "brew"
    if not brew.is_file():
        return False
    path_entries = os.environ.get("PATH", "").split(os.pathsep)
    for entry in (f"{prefix}/sbin", f"{prefix}/bin"):
        if entry not in path_entries:
            path_entries.insert(0, entry)
    os.environ["PATH"] = os.pathsep.join(path_entries)
    os.environ.setdefault("HOMEBREW_PREFIX", prefix)
    os.environ.setdefault("HOMEBREW_CELLAR", f"{prefix}/Cellar")
    os.environ.setdefault("HOMEBREW_REPOSITORY", f"{prefix}/Homebrew")
    return True


class FedoraRestore:
    def __init__(self, config: Config):
        self.config = config
        self.logger = get_logger()
        self.results: List[Tuple[str, bool, str]] = []

    def confirm(self, question: str, weakens_security: bool = False) -> bool:
        if weakens_security and self.config.assume_yes:
            print_info(f"{question} [y/N] no (--yes never lowers security settings)")
            return False
        return confirm(question, assume_yes=self.config.assume_yes)

    # ------------------------------------------------------------
    # Files and package managers
    # ------------------------------------------------------------
    def rsync_source_home_to_user_home(self) -> None:
        source = self.config.home_source_dir
        target = self.config.user_home
        print_section(f"Copying files from '{source}/' to '{target}/' using rsync")
        if not source.is_dir():
            print_error(f"Source directory '{source}' not found. Skipping rsync.")
            return
        print_info(f"Source for rsync: {source}/")
        print_info(f"Target for rsync: {target}/")
        if not self.confirm(
            "Proceed with copying files using rsync? This will overwrite existing files in the "
            "target if they are different, and create directories as needed."
        ):
            print_step(f"Skipping rsync operation for {source}.")
            return
        if try_command(["rsync", "-avh", f"{source}/", f"{target}/"]):
            print_success("Rsync operation completed successfully.")
        else:
            print_error("Rsync operation encountered errors. Please review the output above.")

    def _dnf_check_update(self, warning: str) -> None:
        print_step("Updating DNF cache...")
        try:
            result = run_command(sudo(["dnf", "check-update"]), check=False)
        except (TimeoutError, OSError) as e:
            print_warning(f"{warning} ({e})")
            return
        if result.returncode in DNF_CHECK_UPDATE_OK:
            print_success("DNF cache updated successfully.")
        else:
            print_warning(warning)

    def setup_rpm_fusion(self) -> None:
        if not self.confirm("Install RPM Fusion repositories?"):
            print_step("Skipping RPM Fusion setup.")
            return
        release = (command_output(["rpm", "-E", "%fedora"]) or "").strip()
        if not release.isdigit():
            print_error("Could not determine the Fedora release with 'rpm -E %fedora'.")
            return
        print_step("Installing RPM Fusion...")
        urls = [url.format(release=release) for url in RPM_FUSION_URLS]
        if try_command(sudo(["dnf", "install", "-y"] + urls)):
            print_success("RPM Fusion installation attempted.")
        else:
            print_error("RPM Fusion installation failed.")
        self._dnf_check_update(
            "'dnf check-update' failed or returned an error. Consider running it manually."
        )

    def install_common_dnf_packages(self) -> None:
        packages_file = self.config.dnf_packages_file
        if not self.confirm(f"Install common DNF packages from {packages_file}?"):
            print_step("Skipping common DNF packages installation from file.")
            return
        if not packages_file.is_file() or not os.access(packages_file, os.R_OK):
            print_error(f"DNF packages file not found or not readable at {packages_file}.")
            print_step("Skipping DNF package installation from file.")
            return
        selection = parse_dnf_packages(packages_file.read_text().splitlines())
        if selection.is_empty():
            print_warning(f"No DNF groups or packages listed in {packages_file}.")
            return

        if selection.groups:
            groups = " ".join(selection.groups)
            print_step(f"Installing DNF groups: {groups}...")
            if try_command(sudo(["dnf", "group", "install", "-y"] + selection.groups)):
                print_success(f"DNF groups installation attempted successfully for: {groups}.")
            else:
                print_error(f"Error or issues encountered during DNF group installation for: {groups}.")
        else:
            print_info("No DNF groups to install from file.")

        if selection.packages:
            packages = " ".join(selection.packages)
            print_step(f"Installing DNF packages: {packages}...")
            cmd = ["dnf", "install", "-y"] + selection.packages + ["--skip-unavailable", "--allowerasing"]
            if try_command(sudo(cmd)):
                print_success(f"DNF packages installation attempted successfully for: {packages}.")
            else:
                print_error(f"Error or issues encountered during DNF package installation for: {packages}.")
        else:
            print_info("No DNF packages to install from file.")
        print_success("Common DNF packages processing from file completed.")

    def restore_flatpak_packages(self) -> None:
        print_section("Restoring Flatpak Packages")
        if not command_exists("flatpak"):
            print_warning("Flatpak command not found. Please install Flatpak first.")
            print_step("Skipping Flatpak package restoration.")
            return
        apps_file = self.config.flatpak_apps_file
        apps = read_list_file(apps_file)
        if not apps:
            print_warning(f"{apps_file} not found or empty. Skipping Flatpak application reinstallation.")
            return
        if not self.confirm(f"Reinstall user Flatpak applications from {apps_file}?"):
            print_step("Skipping user Flatpak application reinstallation.")
            return
        print_step(f"Reinstalling {len(apps)} Flatpak applications...")
        if try_command(["flatpak", "install", "--user", "-y"] + apps):
            print_success("User Flatpak applications reinstallation process completed.")
        else:
            print_error("Flatpak reported errors while reinstalling applications.")

    def setup_flatpak_overrides(self) -> None:
        if not command_exists("flatpak"):
            print_warning("Flatpak command not found. Skipping Flatpak overrides.")
            return
        if not self.confirm("Apply Flatpak overrides for Bitwarden (Wayland, IPC)?"):
            print_step("Skipping Flatpak overrides for Bitwarden.")
            return
        print_step(f"Applying Flatpak overrides for {BITWARDEN_APP_ID}...")
        failed = [
            override
            for override in BITWARDEN_OVERRIDES
            if not try_command(["flatpak", "override", "--user", override, BITWARDEN_APP_ID])
        ]
        if failed:
            print_warning(f"Some Bitwarden overrides failed: {', '.join(failed)}")
        else:
            print_success("Flatpak overrides for Bitwarden applied.")

    def install_homebrew(self) -> None:
        if command_exists("brew"):
            print_info("Homebrew already installed.")
            return
        if Path(HOMEBREW_PREFIX, "bin", "brew").is_file():
            print_step("Homebrew executable found, setting up environment for current session...")
            if activate_homebrew_env() and command_exists("brew"):
                print_success("Homebrew environment set up for current session.")
            else:
                print_warning("Failed to set up Homebrew environment from existing installation.")
            return
        if not self.confirm("Install Homebrew (Linuxbrew)?"):
            print_step("Skipping Homebrew installation.")
            return
        print_step("Installing Homebrew...")
        if not command_exists("curl"):
            print_step("curl is not installed. Attempting to install curl...")
            if try_command(sudo(["dnf", "install", "-y", "curl"])):
                print_success("curl installed successfully.")
            else:
                print_warning("Failed to install curl. Homebrew installation might fail.")
        run_remote_script(HOMEBREW_INSTALL_URL)
        print_info("Homebrew installation attempted. Please follow any on-screen instructions.")
        if activate_homebrew_env() and command_exists("brew"):
            print_success("Homebrew successfully added to PATH for this session.")
        else:
            print_warning(
                f"Homebrew executable not found under {HOMEBREW_PREFIX} after installation attempt. "
                "Manual PATH configuration might be needed."
            )
        print_info(
            "You might need to add Homebrew to your PATH permanently (e.g. in .zshrc or .bashrc). "
            "The installer usually provides instructions."
        )

    def install_brew_packages(self) -> None:
        activate_homebrew_env()
        if not command_exists("brew"):
            print_warning("Homebrew not found. Skipping Brew packages.")
            return
        brewfile = self.config.brew_packages_file
        if not self.confirm(f"Install Brew packages from {brewfile}?"):
            print_step("Skipping Brew packages installation.")
            return
        if not is_non_empty_file(brewfile):
            print_error(f"Brew packages file not found or empty at {brewfile}.")
            print_step("Skipping Brew package installation from file.")
            return
        print_step(f"Found {brewfile}. Attempting to install packages...")
        if try_command(["brew", "bundle", "install", f"--file={brewfile}"]):
            print_success(f"Brew packages installation from {brewfile} attempted successfully.")
        else:
            print_error(f"Error or issues encountered during Brew package installation from {brewfile}.")

    # ------------------------------------------------------------
    # User environment
    # ------------------------------------------------------------
    def setup_ssh_permissions(self) -> None:
        ssh_dir = self.config.user_home / ".ssh"
        if not ssh_dir.is_dir():
            print_warning(f"{ssh_dir} directory not found. Skipping SSH permissions setup.")
            return
        if not self.confirm(f"Set recommended SSH permissions for {ssh_dir}?"):
            print_step("Skipping SSH permissions setup.")
            return
        print_step("Setting SSH permissions...")
        try:
            count = fix_ssh_permissions(ssh_dir)
        except OSError as e:
            print_error(f"Could not set SSH permissions: {e}")
            return
        print_success(f"SSH permissions set on {count} files.")
        table = Table(show_header=True, header_style=f"bold {NordColors.FROST_3}")
        table.add_column("Mode")
        table.add_column("Path")
        for path in [ssh_dir] + sorted(ssh_dir.iterdir()):
            table.add_row(stat.filemode(path.lstat().st_mode), str(path))
        console.print(table)

    def setup_zsh(self) -> None:
        if not self.confirm("Install Zsh, Oh-My-Zsh, and set Zsh as the default shell?"):
            print_step("Skipping Zsh setup.")
            return
        print_step("Setting up Zsh...")
        if not command_exists("zsh") and not try_command(sudo(["dnf", "install", "-y", "zsh"])):
            print_error("Zsh installation failed.")
            return
        zsh_path = shutil.which("zsh")
        if zsh_path and os.environ.get("SHELL") != zsh_path:
            if self.confirm(f"Set Zsh as default shell for {self.config.username}?"):
                if try_command(["chsh", "-s", zsh_path]):
                    print_success(
                        "Zsh set as default shell. You may need to log out and log back in for this to take full effect."
                    )
                else:
                    print_error("Changing the default shell failed.")
        else:
            print_info("Zsh is already the default shell.")

        if not (self.config.user_home / ".oh-my-zsh").is_dir():
            print_step("Installing Oh-My-Zsh...")
            run_remote_script(OH_MY_ZSH_INSTALL_URL, ["--unattended"], shell="sh")
            print_info("Oh-My-Zsh installation attempted.")
        else:
            print_info("Oh-My-Zsh already installed.")

        print_info("Zsh plugins (zsh-syntax-highlighting, zsh-autosuggestions, zsh-completions) are installed via Homebrew.")
        print_info("Ensure they are sourced in your .zshrc, for example:")
        print_info("plugins=(git zsh-autosuggestions zsh-syntax-highlighting zsh-completions)")
        for plugin in ("zsh-autosuggestions", "zsh-syntax-highlighting", "zsh-completions"):
            print_info(f"source {HOMEBREW_PREFIX}/share/{plugin}/{plugin}.zsh")

    def setup_docker(self) -> None:
        if not self.confirm("Install Docker and configure?"):
            print_step("Skipping Docker setup.")
            return
        print_step("Setting up Docker...")
        if not command_exists("docker"):
            try:
                run_command(sudo(["dnf", "-y", "install", "dnf-plugins-core"]))
                run_command(sudo(["dnf", "config-manager", "addrepo", f"--from-repofile={DOCKER_REPO_URL}"]))
                run_command(sudo(["dnf", "install", "-y"] + DOCKER_PACKAGES))
                run_command(sudo(["systemctl", "start", "docker"]))
                run_command(sudo(["usermod", "-aG", "docker", self.config.username]))
            except (subprocess.CalledProcessError, OSError) as e:
                print_error(f"Docker installation failed: {e}")
                return
            print_success("Docker installed. You may need to log out and log back in for group changes to take effect.")
            try_command(sudo(["systemctl", "status", "docker", "--no-pager"]))
        else:
            print_info("Docker already installed.")

        if self.confirm("Set Docker to NOT start automatically on boot? (Otherwise it will be enabled)"):
            for cmd in (["stop", "docker.service"], ["disable", "docker.service"], ["disable", "docker.socket"]):
                try_command(sudo(["systemctl"] + cmd))
            print_success("Docker auto-start disabled.")
        elif not try_command(sudo(["systemctl", "is-enabled", "docker.service"]), capture_output=True):
            try_command(sudo(["systemctl", "enable", "docker.service"]))
            print_success("Docker auto-start enabled.")
        else:
            print_info("Docker auto-start was already enabled.")

        if os.path.exists(DOCKER_SOCKET):
            acl = command_output(["getfacl", DOCKER_SOCKET]) or ""
            if "group:docker:rw-" not in acl:
                try_command(sudo(["chown", "root:docker", DOCKER_SOCKET]))
                try_command(sudo(["chmod", "660", DOCKER_SOCKET]))
                print_success(f"Permissions for {DOCKER_SOCKET} verified/set.")

    def setup_gnome_settings(self) -> None:
        if not self.confirm("Apply various GNOME specific settings (fractional scaling, touchpad drag lock)?"):
            print_step("Skipping GNOME specific settings.")
            return
        print_step("Applying GNOME settings...")
        if try_command(["gsettings", "set", "org.gnome.mutter", "experimental-features", "['scale-monitor-framebuffer']"]):
            print_success("Enabled GNOME fractional scaling experimental feature.")
        else:
            print_error("Could not enable GNOME fractional scaling.")
        if try_command(["gsettings", "set", "org.gnome.desktop.peripherals.touchpad", "tap-and-drag-lock", "true"]):
            print_success("Enabled touchpad tap-and-drag-lock.")
        else:
            print_error("Could not enable touchpad tap-and-drag-lock.")

    def setup_font_rendering(self) -> None:
        if not self.confirm("Apply macOS-like font rendering settings (FreeType, GNOME)?"):
            print_step("Skipping macOS-like font rendering settings.")
            return
        print_step("Applying macOS-like font rendering settings...")
        env_dir = self.config.user_home / ".config" / "environment.d"
        env_dir.mkdir(parents=True, exist_ok=True)
        (env_dir / "freetype.conf").write_text(FREETYPE_USER_PROPERTIES + "\n")
        print_success(f"User FreeType properties set in {env_dir / 'freetype.conf'}")

        etc_env = read_root_file(ETC_ENVIRONMENT)
        try:
            if etc_env is not None and all(marker in etc_env for marker in FREETYPE_MARKERS):
                print_info(f"System FreeType properties already set in {ETC_ENVIRONMENT}.")
            elif etc_env is not None and any(
                line.startswith("FREETYPE_PROPERTIES=") for line in etc_env.splitlines()
            ):
                print_warning(f"FREETYPE_PROPERTIES already exists in {ETC_ENVIRONMENT}. Manual check recommended.")
                if not file_has_line(etc_env, FREETYPE_SYSTEM_PROPERTIES):
                    append_root_line(ETC_ENVIRONMENT, FREETYPE_SYSTEM_PROPERTIES)
                    print_warning(
                        f"System FreeType properties added to {ETC_ENVIRONMENT}. "
                        "Review this file for duplicate FREETYPE_PROPERTIES lines."
                    )
            else:
                append_root_line(ETC_ENVIRONMENT, FREETYPE_SYSTEM_PROPERTIES)
                print_success(f"System FreeType properties added to {ETC_ENVIRONMENT}.")
        except (subprocess.CalledProcessError, OSError) as e:
            print_error(f"Could not update {ETC_ENVIRONMENT}: {e}")

        hinting = try_command(["gsettings", "set", "org.gnome.desktop.interface", "font-hinting", "none"])
        antialiasing = try_command(["gsettings", "set", "org.gnome.desktop.interface", "font-antialiasing", "grayscale"])
        if hinting and antialiasing:
            print_success("GNOME font hinting set to 'none' and antialiasing to 'grayscale'.")
        else:
            print_warning("Some GNOME font settings could not be applied.")
        print_info("Font rendering changes may require a logout/reboot to take full effect.")

    def setup_system_environment(self) -> None:
        if not self.confirm("Configure system environment (GNOME animations, Electron Wayland)?"):
            print_step("Skipping system environment configuration.")
            return
        print_step("Configuring system environment...")
        etc_env = read_root_file(ETC_ENVIRONMENT)
        for name, value in SYSTEM_ENVIRONMENT_VARS.items():
            if env_file_has(etc_env, name):
                print_info(f"{name} already in {ETC_ENVIRONMENT}.")
                continue
            try:
                append_root_line(ETC_ENVIRONMENT, f"{name}={value}")
            except (subprocess.CalledProcessError, OSError) as e:
                print_error(f"Could not add {name} to {ETC_ENVIRONMENT}: {e}")
                continue
            print_success(f"{name} set in {ETC_ENVIRONMENT}.")
        print_info("These changes may require a logout/reboot to take full effect.")

    # ------------------------------------------------------------
    # System policy and boot
    # ------------------------------------------------------------
    def _show_crypto_policy(self) -> str:
        return (command_output(["update-crypto-policies", "--show"]) or "unknown").strip()

    def setup_crypto_policies(self) -> None:
        if not self.confirm("Manage system-wide crypto policies (e.g., for OpenSSL LEGACY)?"):
            print_step("Skipping crypto policy management.")
            return
        print_info(f"Current crypto policy: {self._show_crypto_policy()}")
        if self.confirm(
            "Set crypto policy to LEGACY (e.g., for Pantheon, older SSL/TLS)? This has security implications.",
            weakens_security=True,
        ):
            policy = "LEGACY"
        elif self.confirm("Set crypto policy to DEFAULT (revert from LEGACY or other)?"):
            policy = "DEFAULT"
        else:
            print_info("No changes made to crypto policies.")
            return
        print_step(f"Setting crypto policy to {policy}...")
        if try_command(sudo(["update-crypto-policies", "--set", policy])):
            print_success(f"Crypto policy set to {policy}. Current policy: {self._show_crypto_policy()}")
            if policy == "LEGACY":
                print_info("To revert, run the restore again or use: sudo update-crypto-policies --set DEFAULT")
        else:
            print_error(f"Failed to set crypto policy to {policy}.")

    def setup_amd_pstates_and_s2idle_grub_args(self) -> None:
        if not self.confirm(
            "Configure GRUB for AMD P-States (guided) and s2idle sleep? (Modifies kernel boot parameters)"
        ):
            print_step("Skipping AMD P-States and s2idle GRUB configuration.")
            return
        print_step("Applying AMD P-States (guided) and mem_sleep_default=s2idle to GRUB kernel arguments...")
        missing = missing_kernel_args(current_kernel_args(), AMD_KERNEL_ARGS)
        for arg in AMD_KERNEL_ARGS:
            if arg not in missing:
                print_info(f"Kernel argument '{arg}' seems to be already set.")
                continue
            print_step(f"Adding '{arg}' to kernel arguments...")
            try:
                add_kernel_arg(arg)
            except (subprocess.CalledProcessError, OSError) as e:
                print_error(f"Failed to add '{arg}': {e}")
                continue
            print_success(f"Successfully added '{arg}'.")
        self._regenerate_grub()
        print_info("Changes to GRUB will take effect on next reboot.")

    def _regenerate_grub(self) -> bool:
        print_step("Rebuilding GRUB configuration...")
        try:
            regenerate_grub_config()
        except (subprocess.CalledProcessError, OSError) as e:
            print_error(f"Failed to rebuild GRUB configuration: {e}")
            return False
        print_success("GRUB configuration rebuilt successfully.")
        return True

    def setup_grub_tweaks(self) -> None:
        if not self.confirm(f"Apply Grub tweaks (timeout {GRUB_TIMEOUT_SECONDS}s)?"):
            print_step("Skipping Grub tweaks.")
            return
        current = read_root_file(GRUB_DEFAULTS)
        if current is None:
            print_error(f"{GRUB_DEFAULTS} could not be read. Skipping Grub tweaks.")
            return
        try:
            write_root_file(GRUB_DEFAULTS, set_grub_timeout(current, GRUB_TIMEOUT_SECONDS))
        except (subprocess.CalledProcessError, OSError) as e:
            print_error(f"Could not update {GRUB_DEFAULTS}: {e}")
            return
        if self._regenerate_grub():
            print_success(f"Grub timeout set to {GRUB_TIMEOUT_SECONDS} seconds.")

    def configure_sudo_secure_path(self) -> None:
        print_step("Configuring sudo secure_path for Homebrew")
        value = build_secure_path(STANDARD_SECURE_PATH, [HOMEBREW_BIN])
        existing = read_root_file(SUDOERS_SECURE_PATH_FILE)
        if file_has_line(existing, secure_path_line(value)):
            print_info(f"Sudo secure_path already correctly configured in {SUDOERS_SECURE_PATH_FILE}.")
            return
        print_step(f"Creating/Updating {SUDOERS_SECURE_PATH_FILE} for sudo secure_path...")
        try:
            write_root_file(SUDOERS_SECURE_PATH_FILE, render_sudoers_secure_path(value), mode="0440")
        except (subprocess.CalledProcessError, OSError) as e:
            print_error(f"Failed to write {SUDOERS_SECURE_PATH_FILE}: {e}. Sudo secure_path not configured.")
            print_step(f"Attempting to remove potentially problematic {SUDOERS_SECURE_PATH_FILE}...")
            remove_root_file(SUDOERS_SECURE_PATH_FILE)
            return
        print_success(f"Successfully configured sudo secure_path in {SUDOERS_SECURE_PATH_FILE}.")
        print_warning("Please verify sudo functionality (e.g., by running 'sudo ls').")
        print_info(f"If sudo is broken, boot into recovery mode to remove or fix {SUDOERS_SECURE_PATH_FILE}.")

    # ------------------------------------------------------------
    # Third-party software
    # ------------------------------------------------------------
    def install_additional_software(self) -> None:
        labels = [repo.label for repo in VENDOR_REPOS] + [rpm.label for rpm in THIRD_PARTY_RPMS] + ["NordVPN"]
        if not self.confirm(f"Install additional software ({', '.join(labels)})?"):
            print_step("Skipping additional software installation.")
            return
        for repo in VENDOR_REPOS:
            if command_exists(repo.command):
                print_info(f"{repo.label} already installed.")
            else:
                install_from_vendor_repo(repo)
        for rpm in THIRD_PARTY_RPMS:
            if command_exists(rpm.command):
                print_info(f"{rpm.label} already installed.")
            else:
                install_rpm_from_url(rpm.label, rpm.url)
        self._install_nordvpn()

    def _install_nordvpn(self) -> None:
        if command_exists("nordvpn"):
            print_info("NordVPN already installed.")
            return
        print_step("Installing NordVPN...")
        if not run_remote_script(NORDVPN_INSTALL_URL, ["-p", "nordvpn-gui"], shell="sh"):
            print_error("NordVPN installation script failed.")
            return
        user = self.config.username
        groups = (command_output(["id", "-nG", user]) or "").split()
        if "nordvpn" in groups:
            print_info(f"User {user} is already in the nordvpn group.")
        elif try_command(sudo(["usermod", "-aG", "nordvpn", user])):
            print_success(f"User {user} added to nordvpn group. A logout/login may be required.")
        else:
            print_error(f"Failed to add user {user} to nordvpn group. Manual intervention may be required.")

    def install_vscode(self) -> None:
        if not self.confirm("Install Visual Studio Code?"):
            print_step("Skipping Visual Studio Code installation.")
            return
        if command_exists(VSCODE_REPO.command):
            print_info("Visual Studio Code already installed.")
            return
        try:
            run_command(sudo(["rpm", "--import", VSCODE_REPO.gpg_key]))
            write_root_file(VSCODE_REPO.repo_file, VSCODE_REPO.repo_content)
        except (subprocess.CalledProcessError, OSError) as e:
            print_error(f"Could not add the Visual Studio Code repository: {e}")
            return
        self._dnf_check_update(
            "'dnf check-update' failed. VSCode installation might fail or install an older version."
        )
        if try_command(sudo(["dnf", "install", "-y"] + VSCODE_REPO.packages)):
            print_success("Visual Studio Code installation attempted.")
        else:
            print_error("Visual Studio Code installation failed.")

    def install_windsurf(self) -> None:
        if not self.confirm("Install Windsurf?"):
            print_step("Skipping Windsurf installation.")
            return
        print_step("Installing Windsurf...")
        if run_remote_script(WINDSURF_INSTALL_URL):
            print_success("Windsurf installation script executed.")
        else:
            print_error("Windsurf installation script failed to execute.")

    def install_system_utilities(self) -> None:
        if not self.confirm(
            "Install system utilities (Flameshot, keyd, Ulauncher, lolcate, libinput-config, Python pip packages)?"
        ):
            print_step("Skipping system utilities installation.")
            return
        for utility in (
            self._install_flameshot,
            self._setup_keyd,
            self._install_ulauncher,
            self._install_pip_packages,
            self._setup_lolcate,
            self._setup_libinput_config,
        ):
            utility()

    def _install_flameshot(self) -> None:
        if command_exists("flameshot"):
            print_info("Flameshot already installed.")
            return
        if try_command(sudo(["dnf", "install", "-y", "flameshot"])):
            print_success("Flameshot installed. Configure shortcuts manually in GNOME Settings.")
            print_info('Suggested command for Wayland: sh -c -- "QT_QPA_PLATFORM=wayland flameshot gui > /dev/null"')
        else:
            print_error("Flameshot installation failed.")

    def _setup_keyd(self) -> None:
        print_step("Setting up keyd for Hyperkey...")
        if not command_exists("keyd"):
            copr_repos = command_output(sudo(["dnf", "copr", "list"])) or ""
            if "alternateved/keyd" in copr_repos:
                print_info("COPR repository alternateved/keyd already enabled.")
            elif try_command(sudo(["dnf", "copr", "enable", "-y", "alternateved/keyd"])):
                print_success("COPR repository alternateved/keyd enabled successfully.")
            else:
                print_warning("Failed to enable COPR repository alternateved/keyd. keyd installation might fail.")
            if not try_command(sudo(["dnf", "install", "-y", "keyd"])):
                print_error("Failed to install keyd. Skipping Hyperkey setup.")
                return
            print_success("keyd installed successfully.")
        else:
            print_info("keyd is already installed.")

        config_just_created = False
        if read_root_file(KEYD_CONFIG_FILE) is None:
            print_step(f"Creating keyd configuration file {KEYD_CONFIG_FILE} for Hyperkey...")
            try:
                write_root_file(KEYD_CONFIG_FILE, KEYD_HYPERKEY_CONFIG)
                config_just_created = True
                print_success("keyd configuration file created.")
            except (subprocess.CalledProcessError, OSError) as e:
                print_error(f"Could not create {KEYD_CONFIG_FILE}: {e}")
        else:
            print_info(f"keyd configuration file {KEYD_CONFIG_FILE} already exists.")

        if not try_command(sudo(["systemctl", "is-enabled", "--quiet", "keyd"])):
            try_command(sudo(["systemctl", "enable", "keyd"]))
            print_success("keyd service enabled.")
        if not try_command(sudo(["systemctl", "is-active", "--quiet", "keyd"])):
            try_command(sudo(["systemctl", "start", "keyd"]))
            print_success("keyd service started.")
        elif config_just_created:
            try_command(sudo(["systemctl", "restart", "keyd"]))
            print_success("keyd service restarted to apply the new configuration.")
        else:
            print_info("keyd service already active.")

    def _install_ulauncher(self) -> None:
        if command_exists("ulauncher"):
            print_info("Ulauncher already installed.")
            return
        if try_command(sudo(["dnf", "install", "-y", "ulauncher"])):
            print_success("Ulauncher installation attempted.")
            print_info("You may still want to install Ulauncher extensions and their Python dependencies separately.")
        else:
            print_error("Ulauncher installation failed.")

    def _install_pip_packages(self) -> None:
        print_step(f"Installing Python packages ({', '.join(PIP_PACKAGES)}) via pip...")
        if try_command(["python3", "-m", "pip", "install", "--user"] + PIP_PACKAGES):
            print_success("Python pip packages installed successfully.")
        else:
            print_error("Failed to install some Python pip packages. Please check for errors.")

    def _download_lolcate(self, destination: Path) -> bool:
        destination.parent.mkdir(parents=True, exist_ok=True)
        fd, archive = tempfile.mkstemp(prefix="fedora_dotfiles_", suffix=".tar.gz")
        os.close(fd)
        try:
            download_file(LOLCATE_URL, archive)
            with tarfile.open(archive, "r:gz") as tar:
                member = next(
                    (m for m in tar.getmembers() if m.isfile() and Path(m.name).name == "lolcate"),
                    None,
                )
                if member is None:
                    print_error("lolcate binary not found in the downloaded archive.")
                    return False
                source = tar.extractfile(member)
                with source, open(destination, "wb") as out_file:
                    shutil.copyfileobj(source, out_file)
            os.chmod(destination, 0o755)
            return True
        except (requests.RequestException, tarfile.TarError, OSError) as e:
            print_error(f"Failed to download or extract lolcate: {e}")
            return False
        finally:
            os.unlink(archive)

    def _setup_lolcate(self) -> None:
        print_step("Setting up lolcate file indexer...")
        user_bin = self.config.user_home / ".local" / "bin" / "lolcate"
        if not command_exists("lolcate") and not user_bin.is_file():
            print_step(f"lolcate not found. Downloading from {LOLCATE_URL}...")
            if self._download_lolcate(user_bin):
                print_success(f"lolcate downloaded and extracted to {user_bin}.")

        if user_bin.is_file():
            symlink = Path(LOLCATE_SYMLINK)
            if symlink.is_symlink():
                if Path(os.path.realpath(symlink)) != user_bin.resolve():
                    print_warning(f"{symlink} exists but points elsewhere. Consider removing it and re-running.")
                else:
                    print_info(f"Symlink {symlink} already exists and points correctly.")
            elif symlink.exists():
                print_warning(f"{symlink} exists but is not a symlink. Manual intervention may be needed.")
            elif try_command(sudo(["ln", "-s", str(user_bin), str(symlink)])):
                print_success(f"Symlink {symlink} created.")
            else:
                print_error(f"Failed to create symlink {symlink}.")

        if not command_exists("lolcate") and not user_bin.is_file():
            print_error("lolcate command not found even after installation attempt. Skipping index creation.")
            return
        lolcate = shutil.which("lolcate") or str(user_bin)
        config_dir = self.config.user_home / ".config" / "lolcate" / "default"
        config_dir.mkdir(parents=True, exist_ok=True)
        print_info(f"lolcate reads {config_dir}/config.toml and {config_dir}/ignores.")
        for flag in ("--create", "--update"):
            if try_command([lolcate, flag]):
                print_success(f"lolcate {flag} executed successfully.")
            else:
                print_warning(f"lolcate {flag} failed. This might be due to missing or default configuration.")

    def _setup_libinput_config(self) -> None:
        print_step("Setting up libinput-config for mouse scroll customization...")
        if not command_exists("libinput-config"):
            if not try_command(sudo(["dnf", "install", "-y"] + LIBINPUT_BUILD_DEPS)):
                print_error("Could not install libinput-config build dependencies.")
            else:
                with tempfile.TemporaryDirectory(prefix="fedora_dotfiles_") as tmp:
                    src = Path(tmp) / "libinput-config"
                    try:
                        run_command(["git", "clone", LIBINPUT_CONFIG_REPO, str(src)])
                        run_command(["meson", "build"], cwd=src)
                        run_command(["ninja"], cwd=src / "build")
                        run_command(sudo(["ninja", "install"]), cwd=src / "build")
                        print_success("libinput-config installed.")
                    except (subprocess.CalledProcessError, OSError) as e:
                        print_error(f"libinput-config build failed: {e}")
        else:
            print_info("libinput-config seems to be installed.")

        if read_root_file(LIBINPUT_CONFIG_FILE) is None:
            try:
                write_root_file(LIBINPUT_CONFIG_FILE, LIBINPUT_DEFAULT_CONFIG)
            except (subprocess.CalledProcessError, OSError) as e:
                print_error(f"Could not create {LIBINPUT_CONFIG_FILE}: {e}")
                return
            print_success(f"Created default {LIBINPUT_CONFIG_FILE}. You may need to reboot or restart your session.")
            print_info("Verify scroll-button event code with 'sudo evtest'.")
        else:
            print_info(f"{LIBINPUT_CONFIG_FILE} already exists. Review its settings.")

    # ------------------------------------------------------------
    # GNOME settings and wrap-up
    # ------------------------------------------------------------
    def restore_gnome_settings(self) -> None:
        print_section("Restoring GNOME Settings")
        dump = self.config.gnome_settings_file
        if not dump.is_file():
            print_warning(f"{dump} not found. Skipping GNOME settings restore.")
            return
        if not self.confirm(f"Restore GNOME settings from {dump}? (This will overwrite current settings)"):
            print_step("Skipping GNOME settings restore.")
            return
        print_step("Restoring GNOME settings...")
        with dump.open() as settings:
            if try_command(["dconf", "load", "/"], stdin=settings):
                print_success("GNOME settings restored.")
            else:
                print_error("dconf load failed.")

    def finalize_setup(self) -> None:
        print_section("Post-installation setup finished.")
        print_info("Please review the output above for any manual steps, errors, or further instructions.")
        print_info(
            "Some changes (like default shell, environment variables, services) may require a "
            "logout/login or a full system reboot to take effect."
        )
        print_info("Remember to configure applications like Ulauncher, Flameshot shortcuts, etc., to your liking.")

        appimages = read_list_file(self.config.appimage_list_file)
        if appimages:
            print_section("AppImage Restore Reminder")
            print_info(f"The following AppImages were previously backed up (list in {self.config.appimage_list_file}):")
            for name in appimages:
                print_info(f"  {name}")
            print_info(f"Ensure these are restored to {self.config.applications_dir}/ and made executable (chmod +x).")

        print_section("Remember to also:")
        print_info("  - Restore files not managed by these dotfiles from your full home backup, if applicable.")
        print_info("  - Source your shell configuration or restart your terminal for changes to take effect.")

        if self.results:
            table = Table(title="Restore Summary", show_header=True, header_style=f"bold {NordColors.FROST_3}")
            table.add_column("Step")
            table.add_column("Status")
            table.add_column("Time")
            for name, ok, elapsed in self.results:
                status = f"[{NordColors.GREEN}]done[/]" if ok else f"[{NordColors.RED}]failed[/]"
                table.add_row(name, status, elapsed)
            console.print(table)

    def run(self, steps: Optional[List[RestoreStep]] = None) -> bool:
        steps = RESTORE_STEPS if steps is None else steps
        print_step("Starting post-installation setup...")
        print_info("It should be run as your regular user. It will use 'sudo' for commands requiring root privileges.")
        print_info("Ensure you have 'sudo' privileges and an active internet connection.")
        self.logger.info(f"Restore from {self.config.repo_dir}: {', '.join(s.name for s in steps)}")

        handlers: Dict[str, Callable[[], None]] = {step.name: getattr(self, step.method) for step in steps}
        all_passed = True
        for step in steps:
            start = time.monotonic()
            try:
                run_task_with_logging(step.description, handlers[step.name])
                ok = True
            except Exception as e:
                print_error(f"Step '{step.name}' failed: {e}")
                ok = False
                all_passed = False
            self.results.append((step.name, ok, f"{time.monotonic() - start:.1f}s"))
        self.finalize_setup()
        return all_passed
