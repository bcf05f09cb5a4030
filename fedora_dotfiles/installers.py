"""
Third-party software installers: vendor RPM downloads, vendor DNF
repositories and remote installer scripts.
"""

import os
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

import requests
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TextColumn,
    TimeRemainingColumn,
)

from fedora_dotfiles.logger import get_logger
from fedora_dotfiles.shell import run_command, sudo
from fedora_dotfiles.system_files import write_root_file
from fedora_dotfiles.ui import NordColors, console, print_error, print_step, print_success

DOWNLOAD_TIMEOUT = 60
CHUNK_SIZE = 8192


@dataclass
class ThirdPartyRpm:
    label: str
    command: str
    url: str


@dataclass
class VendorRepo:
    label: str
    command: str
    packages: List[str]
    gpg_key: str
    repo_url: Optional[str] = None
    repo_file: Optional[str] = None
    repo_content: Optional[str] = None


THIRD_PARTY_RPMS: List[ThirdPartyRpm] = [
    ThirdPartyRpm(
        "1Password",
        "1password",
        "https://downloads.1password.com/linux/rpm/stable/x86_64/1password-latest.rpm",
    ),
    ThirdPartyRpm(
        "Beyond Compare",
        "bcompare",
        "https://www.scootersoftware.com/files/bcompare-5.1.0.31016.x86_64.rpm",
    ),
    ThirdPartyRpm(
        "Insync",
        "insync",
        "https://cdn.insynchq.com/builds/linux/3.9.6.60027/insync-3.9.6.60027-fc42.x86_64.rpm",
    ),
    ThirdPartyRpm(
        "LocalWP",
        "local",
        "https://cdn.localwp.com/releases-stable/9.2.4+6788/local-9.2.4-linux.rpm",
    ),
]

VENDOR_REPOS: List[VendorRepo] = [
    VendorRepo(
        label="Brave Browser",
        command="brave-browser",
        packages=["brave-browser"],
        gpg_key="https://brave-browser-rpm-release.s3.brave.com/brave-core.asc",
        repo_url="https://brave-browser-rpm-release.s3.brave.com/brave-browser.repo",
    ),
    VendorRepo(
        label="Sublime Text and Sublime Merge",
        command="subl",
        packages=["sublime-text", "sublime-merge"],
        gpg_key="https://download.sublimetext.com/sublimehq-rpm-pub.gpg",
        repo_url="https://download.sublimetext.com/rpm/stable/x86_64/sublime-text.repo",
    ),
    VendorRepo(
        label="GitHub Desktop",
        command="github-desktop",
        packages=["github-desktop"],
        gpg_key="https://mirror.mwt.me/shiftkey-desktop/gpgkey",
        repo_file="/etc/yum.repos.d/mwt-packages.repo",
        repo_content=(
            "[mwt-packages]\n"
            "name=GitHub Desktop\n"
            "baseurl=https://mirror.mwt.me/shiftkey-desktop/rpm\n"
            "enabled=1\n"
            "gpgcheck=1\n"
            "repo_gpgcheck=1\n"
            "gpgkey=https://mirror.mwt.me/shiftkey-desktop/gpgkey\n"
        ),
    ),
]

VSCODE_REPO = VendorRepo(
    label="Visual Studio Code",
    command="code",
    packages=["code"],
    gpg_key="https://packages.microsoft.com/keys/microsoft.asc",
    repo_file="/etc/yum.repos.d/vscode.repo",
    repo_content=(
        "[code]\n"
        "name=Visual Studio Code\n"
        "baseurl=https://packages.microsoft.com/yumrepos/vscode\n"
        "enabled=1\n"
        "gpgcheck=1\n"
        "gpgkey=https://packages.microsoft.com/keys/microsoft.asc\n"
    ),
)


def download_file(url: str, destination: Union[str, Path]) -> None:
    """Stream a download to disk with a Rich progress bar."""
    get_logger().debug(f"Downloading {url} to {destination}")
    with requests.get(url, stream=True, timeout=DOWNLOAD_TIMEOUT) as response:
        response.raise_for_status()
        total_length = int(response.headers.get("content-length", 0))
        with open(destination, "wb") as out_file, Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(style=NordColors.FROST_4, complete_style=NordColors.FROST_2),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            DownloadColumn(),
            TimeRemainingColumn(),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task(f"Downloading {Path(destination).name}", total=total_length or None)
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                if chunk:
                    out_file.write(chunk)
                    progress.update(task, advance=len(chunk))


def fetch_text(url: str) -> str:
    response = requests.get(url, timeout=DOWNLOAD_TIMEOUT)
    response.raise_for_status()
    return response.text


def install_rpm_from_url(label: str, url: str) -> bool:
    fd, rpm_path = tempfile.mkstemp(prefix="fedora_dotfiles_", suffix=".rpm")
    os.close(fd)
    try:
        print_step(f"Downloading {label} RPM from {url}...")
        try:
            download_file(url, rpm_path)
        except (requests.RequestException, OSError) as e:
            print_error(f"Failed to download {label} RPM: {e}")
            return False
        print_step(f"Download successful. Installing {label}...")
        try:
            run_command(sudo(["dnf", "install", "-y", rpm_path]))
        except (subprocess.CalledProcessError, OSError) as e:
            print_error(f"Failed to install {label} from RPM: {e}")
            return False
        print_success(f"{label} installation successful.")
        return True
    finally:
        if os.path.exists(rpm_path):
            os.unlink(rpm_path)


def install_from_vendor_repo(repo: VendorRepo) -> bool:
    print_step(f"Installing {repo.label}...")
    try:
        run_command(sudo(["rpm", "--import", repo.gpg_key]))
        if repo.repo_url:
            run_command(sudo(["dnf", "install", "-y", "dnf-plugins-core"]))
            run_command(sudo(["dnf", "config-manager", "addrepo", f"--from-repofile={repo.repo_url}"]))
        elif repo.repo_file and repo.repo_content:
            write_root_file(repo.repo_file, repo.repo_content)
        run_command(sudo(["dnf", "install", "-y"] + repo.packages))
    except (subprocess.CalledProcessError, OSError) as e:
        print_error(f"{repo.label} installation failed: {e}")
        return False
    print_success(f"{repo.label} installation attempted.")
    return True


def run_remote_script(url: str, args: Optional[List[str]] = None, shell: str = "bash") -> bool:
    """Fetch an installer script and run it with the given shell."""
    try:
        script = fetch_text(url)
    except requests.RequestException as e:
        print_error(f"Failed to fetch installer script {url}: {e}")
        return False
    # stdin stays on the terminal for the installer's own prompts
    fd, script_path = tempfile.mkstemp(prefix="fedora_dotfiles_", suffix=".sh")
    try:
        with os.fdopen(fd, "w") as script_file:
            script_file.write(script)
        run_command([shell, script_path] + list(args or []))
    except (subprocess.CalledProcessError, OSError) as e:
        print_error(f"Installer script {url} failed: {e}")
        return False
    finally:
        os.unlink(script_path)
    return True
