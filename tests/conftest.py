"""Shared fixtures: recording fakes for external commands and prompts."""

import subprocess
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Tuple

import pytest

from fedora_dotfiles import backup, grub, installers, luks, restore, shell, system_files
from fedora_dotfiles.config import Config

RUN_COMMAND_USERS = (shell, backup, restore, luks, grub, system_files, installers)
COMMAND_EXISTS_USERS = (backup, restore, luks)
CONFIRM_USERS = (backup, restore, luks)


class FakeRunner:
    """Stands in for ``run_command``; records commands without the sudo prefix."""

    def __init__(self) -> None:
        self.calls: List[List[str]] = []
        self.kwargs: List[Dict] = []
        self.outputs: Dict[Tuple[str, ...], str] = {}
        self.returncodes: Dict[Tuple[str, ...], int] = {}
        self.failing: List[Tuple[str, ...]] = []
        self.side_effects: Dict[Tuple[str, ...], Callable[[List[str]], None]] = {}

    def __call__(self, cmd: List[str], **kwargs) -> subprocess.CompletedProcess:
        cmd = list(cmd)
        if cmd and cmd[0] == "sudo":
            cmd = cmd[1:]
        self.calls.append(cmd)
        self.kwargs.append(kwargs)
        for prefix, effect in self.side_effects.items():
            if tuple(cmd[: len(prefix)]) == prefix:
                effect(cmd)
        for prefix in self.failing:
            if tuple(cmd[: len(prefix)]) == prefix:
                raise subprocess.CalledProcessError(1, cmd)
        return subprocess.CompletedProcess(
            cmd,
            self.returncodes.get(tuple(cmd), 0),
            stdout=self.outputs.get(tuple(cmd), ""),
            stderr="",
        )

    def ran(self, *prefix: str) -> bool:
        return any(tuple(call[: len(prefix)]) == prefix for call in self.calls)

    def calls_starting(self, *prefix: str) -> List[List[str]]:
        return [call for call in self.calls if tuple(call[: len(prefix)]) == prefix]


class FakePrompt:
    """Answers confirmations from a fixed value or a question -> answer function."""

    def __init__(self, answer: bool = True) -> None:
        self.answer: Callable[[str], bool] = lambda question: answer
        self.questions: List[str] = []

    def __call__(self, question: str, assume_yes: bool = False) -> bool:
        self.questions.append(question)
        return assume_yes or self.answer(question)


@pytest.fixture
def runner(monkeypatch: pytest.MonkeyPatch) -> FakeRunner:
    fake = FakeRunner()
    for module in RUN_COMMAND_USERS:
        monkeypatch.setattr(module, "run_command", fake)
    return fake


@pytest.fixture
def available(monkeypatch: pytest.MonkeyPatch) -> Callable[[Iterable[str]], None]:
    """Declare which commands exist on the fake system."""

    def set_available(commands: Iterable[str]) -> None:
        present = set(commands)
        for module in COMMAND_EXISTS_USERS:
            monkeypatch.setattr(module, "command_exists", lambda cmd: cmd in present)

    set_available([])
    return set_available


@pytest.fixture
def prompt(monkeypatch: pytest.MonkeyPatch) -> FakePrompt:
    fake = FakePrompt()
    for module in CONFIRM_USERS:
        monkeypatch.setattr(module, "confirm", fake)
    return fake


@pytest.fixture
def config(tmp_path: Path) -> Config:
    repo = tmp_path / "repo"
    home = tmp_path / "home"
    repo.mkdir()
    home.mkdir()
    return Config(repo_dir=repo, user_home=home, username="tester", log_file=tmp_path / "test.log")
