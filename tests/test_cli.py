"""Tests for cli module."""

from pathlib import Path

import pytest
from click.testing import CliRunner

from fedora_dotfiles import cli
from fedora_dotfiles.errors import EnrollmentError, OperationCancelled


@pytest.fixture
def log_args(tmp_path: Path):
    return ["--log-file", str(tmp_path / "logs" / "fedora-dotfiles.log")]


def test_help_lists_commands() -> None:
    result = CliRunner().invoke(cli.cli, ["--help"])

    assert result.exit_code == 0
    for command in ("backup", "restore", "luks-enroll-tpm2"):
        assert command in result.output


def test_list_steps(log_args) -> None:
    result = CliRunner().invoke(cli.cli, log_args + ["restore", "--list-steps"])

    assert result.exit_code == 0
    assert "sudo_secure_path" in result.output
    assert "gnome_settings" in result.output


def test_unknown_step_is_usage_error(log_args) -> None:
    result = CliRunner().invoke(cli.cli, log_args + ["restore", "--only", "bogus"])

    assert result.exit_code == 2


def test_backup_without_configuration_exits_1(tmp_path: Path, log_args) -> None:
    result = CliRunner().invoke(cli.cli, log_args + ["backup", "--repo-dir", str(tmp_path), "--yes"])

    assert result.exit_code == 1
    assert "ConfigurationError" in (tmp_path / "logs" / "fedora-dotfiles.log").read_text()


def test_restore_single_step(tmp_path: Path, log_args, monkeypatch, runner, available, prompt) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))

    result = CliRunner().invoke(
        cli.cli, log_args + ["restore", "--repo-dir", str(tmp_path), "--yes", "--only", "ssh_permissions"]
    )

    assert result.exit_code == 0
    assert "Post-installation setup finished" in result.output
    assert runner.calls == []


class FakeEnrollment:
    error = None

    def run(self) -> None:
        if self.error:
            raise self.error


@pytest.mark.parametrize(
    "error,exit_code",
    [(None, 0), (OperationCancelled("TPM2 enrollment cancelled by user."), 0), (EnrollmentError("no TPM"), 1)],
)
def test_luks_exit_codes(monkeypatch, log_args, error, exit_code) -> None:
    monkeypatch.setattr(FakeEnrollment, "error", error)
    monkeypatch.setattr(cli, "TpmEnrollment", FakeEnrollment)

    result = CliRunner().invoke(cli.cli, log_args + ["luks-enroll-tpm2"])

    assert result.exit_code == exit_code


def test_keyboard_interrupt_exits_130(monkeypatch, log_args) -> None:
    monkeypatch.setattr(FakeEnrollment, "error", KeyboardInterrupt())
    monkeypatch.setattr(cli, "TpmEnrollment", FakeEnrollment)

    result = CliRunner().invoke(cli.cli, log_args + ["luks-enroll-tpm2"])

    assert result.exit_code == 130


def test_backup_with_failed_step_exits_1(tmp_path: Path, log_args, monkeypatch) -> None:
    class PartialBackup:
        def __init__(self, config) -> None:
            pass

        def run(self) -> bool:
            return False

    monkeypatch.setattr(cli, "DotfilesBackup", PartialBackup)

    result = CliRunner().invoke(cli.cli, log_args + ["backup", "--repo-dir", str(tmp_path), "--yes"])

    assert result.exit_code == 1
