"""
Dotfiles Backup
---------------
Dumps GNOME settings, Flatpak/Homebrew/AppImage package lists and the
configured list of home directory items into the dotfiles repository.

Each step checks whether its tool exists, asks before overwriting a
non-empty file, runs the tool and reports the outcome. Only a missing
backup configuration file stops the run.
"""

import subprocess
from pathlib import Path
from typing import List, Optional

from fedora_dotfiles.config import Config, load_dotfiles_list
from fedora_dotfiles.logger import get_logger
from fedora_dotfiles.packages import (
    filter_brewfile,
    is_non_empty_file,
    list_appimages,
    merge_unique_sorted,
    replace_file,
    write_list_file,
)
from fedora_dotfiles.shell import command_exists, run_command, run_task_with_logging
from fedora_dotfiles.ui import (
    confirm,
    print_banner_box,
    print_error,
    print_info,
    print_section,
    print_step,
    print_success,
    print_warning,
)

SSH_ITEMS = (".ssh", ".ssh/")
RSYNC_BACKUP_FLAGS = ["-avh", "--no-perms", "--delete"]


def needs_ssh_warning(items: List[str]) -> bool:
    return any(item in SSH_ITEMS for item in items)


class DotfilesBackup:
    def __init__(self, config: Config):
        self.config = config
        self.logger = get_logger()
        self.dotfiles: List[str] = []

    def confirm(self, question: str) -> bool:
        return confirm(question, assume_yes=self.config.assume_yes)

    def _may_overwrite(self, path: Path) -> bool:
        if not is_non_empty_file(path):
            return True
        if self.confirm(f"'{path}' already exists and is not empty. Overwrite?"):
            return True
        print_step(f"Skipping update of '{path}'.")
        return False

    def ensure_directories(self) -> None:
        print_step("Ensuring base directories...")
        self.config.home_source_dir.mkdir(parents=True, exist_ok=True)
        print_info(f"Ensuring '{self.config.home_source_dir}' directory exists (for user dotfiles).")
        self.config.data_dir.mkdir(parents=True, exist_ok=True)
        print_info(f"Ensuring '{self.config.data_dir}' directory exists (for generated backup data).")

    def load_configuration(self) -> None:
        config_file = self.config.backup_config_file
        print_step(f"Loading configuration from {config_file}...")
        self.dotfiles = load_dotfiles_list(config_file)
        self.logger.info(f"Loaded {len(self.dotfiles)} dotfile entries from {config_file}")

    def backup_gnome_settings(self) -> None:
        print_section("Backing up GNOME settings...")
        target = self.config.gnome_settings_file
        if not self._may_overwrite(target):
            return
        if not command_exists("dconf"):
            print_warning("dconf command not found. Skipping GNOME settings backup.")
            return
        try:
            result = run_command(["dconf", "dump", "/"], capture_output=True)
        except (subprocess.CalledProcessError, OSError) as e:
            print_error(f"dconf dump failed: {e}")
            return
        target.write_text(result.stdout)
        print_success(f"GNOME settings backed up to {target}")

    def backup_flatpak_packages(self) -> None:
        print_section("Backing up Flatpak user and system-installed applications...")
        target = self.config.flatpak_apps_file
        target.parent.mkdir(parents=True, exist_ok=True)
        if not self._may_overwrite(target):
            return
        if not command_exists("flatpak"):
            print_warning("Flatpak command not found. Skipping Flatpak backup.")
            target.touch()
            return
        listings = []
        for scope in ([], ["--system"]):
            cmd = ["flatpak", "list", "--app"] + scope + ["--columns=application"]
            try:
                listings.append(run_command(cmd, capture_output=True).stdout.splitlines())
            except (subprocess.CalledProcessError, OSError) as e:
                print_warning(f"'{' '.join(cmd)}' failed: {e}")
        write_list_file(target, merge_unique_sorted(*listings))
        print_success(f"Combined Flatpak application list saved to {target}")

    def backup_brew_packages(self) -> None:
        target = self.config.brew_packages_file
        print_section(f"Backing up Brew packages to {target}...")
        if not self._may_overwrite(target):
            return
        if not command_exists("brew"):
            print_warning("Brew command not found. Skipping Brew backup.")
            target.touch()
            return
        try:
            run_command(["brew", "bundle", "dump", f"--file={target}", "--force"])
        except (subprocess.CalledProcessError, OSError) as e:
            print_error(f"brew bundle dump failed: {e}")
            return
        print_success(f"Brew packages saved to {target}")
        self._filter_vscode_extensions(target)

    def _filter_vscode_extensions(self, brewfile: Path) -> None:
        print_step(f"Filtering out vscode extensions from {brewfile}...")
        try:
            filtered = filter_brewfile(brewfile.read_text())
            replace_file(brewfile, filtered)
        except OSError as e:
            print_warning(f"Filtering vscode extensions failed: {e}. Original file kept.")
            return
        if filtered:
            print_success("Successfully filtered vscode extensions.")
        else:
            print_warning(
                "Filtered vscode extensions. The resulting file is empty: all packages were "
                "vscode extensions or the original was empty."
            )

    def backup_appimage_list(self) -> None:
        print_section("Backing up AppImage list...")
        target = self.config.appimage_list_file
        if not self._may_overwrite(target):
            return
        apps_dir = self.config.applications_dir
        if not apps_dir.is_dir():
            print_warning(f"No {apps_dir} directory found. Skipping AppImage backup.")
            target.touch()
            return
        write_list_file(target, list_appimages(apps_dir))
        print_success(f"AppImage list saved to {target}")

    def _backup_dotfile_item(self, item: str) -> Optional[bool]:
        source = self.config.user_home / item
        destination = self.config.home_source_dir / item
        parent = destination.parent
        if not parent.is_dir():
            parent.mkdir(parents=True, exist_ok=True)
            print_info(f"Created directory structure: {parent}")
        if not source.exists():
            print_info(f"Source '{source}' not found, skipping.")
            return None
        # rsync copies a directory's contents when the source ends in '/'
        src_arg = str(source) + ("/" if item.endswith("/") else "")
        dest_arg = str(destination) + ("/" if item.endswith("/") else "")
        print_step(f"Backing up '{src_arg}' to '{dest_arg}' using rsync...")
        try:
            run_command(["rsync"] + RSYNC_BACKUP_FLAGS + [src_arg, dest_arg])
        except (subprocess.CalledProcessError, OSError) as e:
            print_error(f"Error during rsync of '{item}': {e}")
            return False
        print_success(f"Successfully backed up '{item}'.")
        return True

    def backup_critical_dotfiles(self) -> None:
        print_section(
            f"Backing up critical dotfiles from {self.config.user_home} to "
            f"{self.config.home_source_dir}/ (based on {self.config.backup_config_file})..."
        )
        if not self.dotfiles:
            print_warning(
                f"No items listed in DOTFILES_TO_COPY_DIRECTLY in "
                f"{self.config.backup_config_file}. Skipping this section."
            )
            return
        if not command_exists("rsync"):
            print_error("rsync command not found. Install rsync to back up dotfiles.")
            return
        copied = failed = 0
        for item in self.dotfiles:
            outcome = self._backup_dotfile_item(item)
            if outcome is True:
                copied += 1
            elif outcome is False:
                failed += 1
        self.logger.info(f"Dotfiles: {copied} copied, {failed} failed, {len(self.dotfiles) - copied - failed} missing")

    def check_ssh_backup_warning(self) -> None:
        if needs_ssh_warning(self.dotfiles):
            print_banner_box(
                [
                    "WARNING: .ssh directory is configured for backup. This includes your private keys.",
                    "Ensure this dotfiles repository is stored securely. Not on a public server!",
                ]
            )

    def finalize_backup(self) -> None:
        print_section("Backup complete!")
        print_info("Review the output for any errors.")
        print_info("Make sure to backup this entire directory to a safe location, like")
        print_info("an external drive, local NAS or a secure cloud storage.")

    def run(self) -> bool:
        print_step("Starting backup process...")
        self.logger.info(f"Backup of {self.config.user_home} into {self.config.repo_dir}")
        # A missing configuration is fatal and propagates to the caller.
        self.load_configuration()
        self.ensure_directories()
        all_passed = True
        for step in (
            self.backup_gnome_settings,
            self.backup_flatpak_packages,
            self.backup_brew_packages,
            self.backup_appimage_list,
            self.backup_critical_dotfiles,
            self.check_ssh_backup_warning,
        ):
            try:
                run_task_with_logging(step.__name__.replace("_", " ").capitalize(), step)
            except Exception as e:
                print_error(f"Step '{step.__name__}' failed: {e}")
                all_passed = False
        self.finalize_backup()
        return all_passed
