"""Tests for backup module."""

import pytest

from fedora_dotfiles import packages
from fedora_dotfiles.backup import DotfilesBackup, needs_ssh_warning
from fedora_dotfiles.config import Config
from fedora_dotfiles.errors import ConfigurationError


def write_backup_config(config: Config, items: str) -> None:
    config.data_dir.mkdir(parents=True, exist_ok=True)
    config.backup_config_file.write_text(f"declare -a DOTFILES_TO_COPY_DIRECTLY=(\n{items}\n)\n")


def test_missing_configuration_is_fatal_before_creating_directories(config: Config, runner, available, prompt) -> None:
    with pytest.raises(ConfigurationError):
        DotfilesBackup(config).run()

    assert not config.home_source_dir.exists()
    assert runner.calls == []


def test_gnome_settings_dump(config: Config, runner, available, prompt) -> None:
    config.data_dir.mkdir()
    available(["dconf"])
    runner.outputs[("dconf", "dump", "/")] = "[org/gnome/desktop/interface]\nclock-format='24h'\n"

    DotfilesBackup(config).backup_gnome_settings()

    assert "clock-format" in config.gnome_settings_file.read_text()


def test_overwrite_declined_keeps_file(config: Config, runner, available, prompt) -> None:
    config.data_dir.mkdir()
    config.gnome_settings_file.write_text("old settings\n")
    available(["dconf"])
    prompt.answer = lambda question: False

    DotfilesBackup(config).backup_gnome_settings()

    assert config.gnome_settings_file.read_text() == "old settings\n"
    assert not runner.ran("dconf")
    assert "already exists and is not empty" in prompt.questions[0]


def test_empty_existing_file_is_overwritten_without_asking(config: Config, runner, available, prompt) -> None:
    config.data_dir.mkdir()
    config.flatpak_apps_file.write_text("")
    available(["flatpak"])

    DotfilesBackup(config).backup_flatpak_packages()

    assert prompt.questions == []


def test_flatpak_user_and_system_lists_are_merged(config: Config, runner, available, prompt) -> None:
    available(["flatpak"])
    runner.outputs[("flatpak", "list", "--app", "--columns=application")] = "org.mozilla.firefox\ncom.spotify.Client\n"
    runner.outputs[("flatpak", "list", "--app", "--system", "--columns=application")] = (
        "com.spotify.Client\norg.gnome.Calculator\n"
    )

    DotfilesBackup(config).backup_flatpak_packages()

    assert config.flatpak_apps_file.read_text().splitlines() == [
        "com.spotify.Client",
        "org.gnome.Calculator",
        "org.mozilla.firefox",
    ]


def test_flatpak_missing_leaves_empty_file(config: Config, runner, available, prompt) -> None:
    DotfilesBackup(config).backup_flatpak_packages()

    assert config.flatpak_apps_file.exists()
    assert config.flatpak_apps_file.read_text() == ""


def test_brew_dump_filters_vscode_extensions(config: Config, runner, available, prompt) -> None:
    config.data_dir.mkdir()
    brewfile = config.brew_packages_file
    available(["brew"])
    dump = 'brew "eza"\nvscode "ms-python.python"\ncask "font-fira-code"\n'
    runner.side_effects[("brew", "bundle", "dump")] = lambda cmd: brewfile.write_text(dump)

    DotfilesBackup(config).backup_brew_packages()

    assert runner.ran("brew", "bundle", "dump", f"--file={brewfile}", "--force")
    assert brewfile.read_text() == 'brew "eza"\ncask "font-fira-code"\n'


def test_appimage_list(config: Config, runner, available, prompt) -> None:
    config.data_dir.mkdir()
    config.applications_dir.mkdir()
    (config.applications_dir / "Obsidian.AppImage").write_text("")
    (config.applications_dir / "readme.md").write_text("")

    DotfilesBackup(config).backup_appimage_list()

    assert config.appimage_list_file.read_text() == "Obsidian.AppImage\n"


def test_dotfile_items_are_copied_with_rsync(config: Config, runner, available, prompt) -> None:
    write_backup_config(config, '  ".bashrc"\n  ".config/nvim/"\n  ".missing"')
    (config.user_home / ".bashrc").write_text("alias ll='ls -l'\n")
    (config.user_home / ".config" / "nvim").mkdir(parents=True)
    available(["rsync"])
    backup = DotfilesBackup(config)
    backup.load_configuration()

    backup.backup_critical_dotfiles()

    rsync_calls = runner.calls_starting("rsync")
    assert rsync_calls == [
        ["rsync", "-avh", "--no-perms", "--delete", str(config.user_home / ".bashrc"), str(config.home_source_dir / ".bashrc")],
        [
            "rsync",
            "-avh",
            "--no-perms",
            "--delete",
            str(config.user_home / ".config" / "nvim") + "/",
            str(config.home_source_dir / ".config" / "nvim") + "/",
        ],
    ]
    assert (config.home_source_dir / ".config").is_dir()


def test_rsync_failure_does_not_stop_other_items(config: Config, runner, available, prompt) -> None:
    write_backup_config(config, '".bashrc" ".zshrc"')
    (config.user_home / ".bashrc").write_text("")
    (config.user_home / ".zshrc").write_text("")
    available(["rsync"])
    runner.failing.append(("rsync", "-avh", "--no-perms", "--delete", str(config.user_home / ".bashrc")))
    backup = DotfilesBackup(config)
    backup.load_configuration()

    backup.backup_critical_dotfiles()

    assert len(runner.calls_starting("rsync")) == 2


def test_full_run_with_yes(config: Config, runner, available, prompt, capsys) -> None:
    write_backup_config(config, '".ssh/"')
    config.assume_yes = True

    DotfilesBackup(config).run()

    assert config.home_source_dir.is_dir()
    assert config.flatpak_apps_file.exists()
    assert config.brew_packages_file.exists()
    assert "WARNING: .ssh directory" in capsys.readouterr().out


@pytest.mark.parametrize("items,expected", [([".ssh"], True), ([".ssh/"], True), ([".sshrc", ".bashrc"], False)])
def test_needs_ssh_warning(items, expected) -> None:
    assert needs_ssh_warning(items) is expected


def test_brew_filter_failure_keeps_dump(config: Config, runner, available, prompt, monkeypatch) -> None:
    config.data_dir.mkdir()
    brewfile = config.brew_packages_file
    available(["brew"])
    dump = 'brew "eza"\nvscode "ms-python.python"\n'
    runner.side_effects[("brew", "bundle", "dump")] = lambda cmd: brewfile.write_text(dump)

    def disk_full(src, dst):
        raise OSError(28, "No space left on device")

    monkeypatch.setattr(packages.os, "replace", disk_full)

    DotfilesBackup(config).backup_brew_packages()

    assert brewfile.read_text() == dump


def test_unexpected_step_error_does_not_stop_backup(config: Config, runner, available, prompt) -> None:
    write_backup_config(config, '".bashrc"')
    (config.user_home / ".bashrc").write_text("")
    config.assume_yes = True
    available(["dconf", "rsync"])

    def undecodable(cmd):
        raise UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte")

    runner.side_effects[("dconf", "dump")] = undecodable

    assert DotfilesBackup(config).run() is False

    assert runner.ran("rsync")
    assert config.appimage_list_file.exists()


def test_clean_run_reports_success(config: Config, runner, available, prompt) -> None:
    write_backup_config(config, "")
    config.assume_yes = True

    assert DotfilesBackup(config).run() is True
