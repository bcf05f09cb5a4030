"""Tests for installers module."""

from pathlib import Path

import pytest
import requests

from fedora_dotfiles import installers


class FakeResponse:
    def __init__(self, body: bytes = b"", status: int = 200) -> None:
        self.body = body
        self.status = status
        self.headers = {"content-length": str(len(body))}
        self.text = body.decode()

    def __enter__(self):
        return self

    def __exit__(self, *exc) -> None:
        pass

    def raise_for_status(self) -> None:
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status} error")

    def iter_content(self, chunk_size: int = 1):
        for i in range(0, len(self.body), chunk_size):
            yield self.body[i : i + chunk_size]


def test_download_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(installers.requests, "get", lambda url, **kwargs: FakeResponse(b"rpm-bytes" * 1000))
    target = tmp_path / "package.rpm"

    installers.download_file("https://example.com/package.rpm", target)

    assert target.read_bytes() == b"rpm-bytes" * 1000


def test_install_rpm_from_url_removes_temp_file(runner, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(installers.requests, "get", lambda url, **kwargs: FakeResponse(b"rpm"))

    assert installers.install_rpm_from_url("Insync", "https://example.com/insync.rpm")

    cmd = runner.calls_starting("dnf", "install", "-y")[0]
    assert cmd[-1].endswith(".rpm")
    assert not Path(cmd[-1]).exists()


def test_install_rpm_from_url_download_failure(runner, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(installers.requests, "get", lambda url, **kwargs: FakeResponse(status=404))

    assert not installers.install_rpm_from_url("Insync", "https://example.com/insync.rpm")
    assert runner.calls == []


def test_install_from_vendor_repo_with_repo_file(runner, monkeypatch: pytest.MonkeyPatch) -> None:
    written = {}
    monkeypatch.setattr(installers, "write_root_file", lambda path, content: written.update({path: content}))
    github_desktop = installers.VENDOR_REPOS[2]

    assert installers.install_from_vendor_repo(github_desktop)

    assert runner.calls[0] == ["rpm", "--import", github_desktop.gpg_key]
    assert "[mwt-packages]" in written[github_desktop.repo_file]
    assert runner.calls[-1] == ["dnf", "install", "-y", "github-desktop"]


def test_run_remote_script(runner, monkeypatch: pytest.MonkeyPatch) -> None:
    seen = {}
    monkeypatch.setattr(installers.requests, "get", lambda url, **kwargs: FakeResponse(b"echo hi\n"))
    runner.side_effects[("sh",)] = lambda cmd: seen.update(script=Path(cmd[1]).read_text())

    assert installers.run_remote_script("https://example.com/install.sh", ["--unattended"], shell="sh")

    cmd = runner.calls[0]
    assert cmd[0] == "sh" and cmd[2:] == ["--unattended"]
    assert seen["script"] == "echo hi\n"
    assert not Path(cmd[1]).exists()


def test_install_rpm_from_url_write_failure(runner, monkeypatch: pytest.MonkeyPatch) -> None:
    def disk_full(url, destination):
        raise OSError(28, "No space left on device")

    monkeypatch.setattr(installers, "download_file", disk_full)

    assert not installers.install_rpm_from_url("Insync", "https://example.com/insync.rpm")
    assert runner.calls == []
