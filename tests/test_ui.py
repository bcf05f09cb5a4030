"""Tests for ui module."""

import pytest
from rich.panel import Panel

from fedora_dotfiles import ui


@pytest.mark.parametrize("answer", ["y", "Y", "yes", "YES", " Yes "])
def test_is_affirmative_accepts_yes(answer: str) -> None:
    assert ui.is_affirmative(answer)


@pytest.mark.parametrize("answer", ["", "n", "no", "yep", "ye", "1"])
def test_is_affirmative_rejects_everything_else(answer: str) -> None:
    assert not ui.is_affirmative(answer)


def test_confirm_assume_yes_skips_prompt(monkeypatch: pytest.MonkeyPatch) -> None:
    def fail(*args, **kwargs):
        raise AssertionError("prompted")

    monkeypatch.setattr(ui.Prompt, "ask", fail)

    assert ui.confirm("Proceed?", assume_yes=True)


@pytest.mark.parametrize("reply,expected", [("yes", True), ("", False), ("nope", False)])
def test_confirm_uses_prompt_answer(monkeypatch: pytest.MonkeyPatch, reply: str, expected: bool) -> None:
    monkeypatch.setattr(ui.Prompt, "ask", lambda *args, **kwargs: reply)

    assert ui.confirm("Proceed?") is expected


def test_print_helpers_escape_markup(capsys: pytest.CaptureFixture) -> None:
    ui.print_warning("file [bold]x[/bold] missing")

    assert "[bold]x[/bold]" in capsys.readouterr().out


def test_create_header_returns_panel() -> None:
    assert isinstance(ui.create_header("Fedora Dotfiles", "Backup", "1.0.0"), Panel)
