"""Tests for config module."""

from pathlib import Path

import pytest

from fedora_dotfiles.config import Config, load_dotfiles_list, parse_bash_array
from fedora_dotfiles.errors import ConfigurationError

SAMPLE_CONFIG = """\
#!/bin/bash
# Items copied from $HOME into home/

declare -a DOTFILES_TO_COPY_DIRECTLY=(
  ".bashrc"
  ".zshrc"
  ".config/nvim/"   # whole directory
  # ".config/skipped"
  'My Notes/todo.md'
  .ssh/
)

OTHER_SETTING="value"
"""


def test_parse_bash_array_reads_quoted_items_and_skips_comments() -> None:
    items = parse_bash_array(SAMPLE_CONFIG, "DOTFILES_TO_COPY_DIRECTLY")

    assert items == [".bashrc", ".zshrc", ".config/nvim/", "My Notes/todo.md", ".ssh/"]


def test_parse_bash_array_single_line_without_declare() -> None:
    text = 'ITEMS=(".gitconfig" ".vimrc")\n'

    assert parse_bash_array(text, "ITEMS") == [".gitconfig", ".vimrc"]


def test_parse_bash_array_empty() -> None:
    assert parse_bash_array("ITEMS=(\n)\n", "ITEMS") == []


def test_parse_bash_array_missing_array() -> None:
    with pytest.raises(ConfigurationError, match="not found"):
        parse_bash_array('OTHER=("a")\n', "ITEMS")


def test_parse_bash_array_unterminated() -> None:
    with pytest.raises(ConfigurationError):
        parse_bash_array('ITEMS=(\n  ".bashrc"\n', "ITEMS")


def test_parse_bash_array_unbalanced_quote() -> None:
    with pytest.raises(ConfigurationError, match="Could not parse"):
        parse_bash_array('ITEMS=(\n  ".bashrc\n)\n', "ITEMS")


def test_load_dotfiles_list_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="not found"):
        load_dotfiles_list(tmp_path / "backup_config.sh")


def test_load_dotfiles_list_reads_file(tmp_path: Path) -> None:
    config_file = tmp_path / "backup_config.sh"
    config_file.write_text(SAMPLE_CONFIG)

    assert load_dotfiles_list(config_file)[0] == ".bashrc"


def test_config_paths(tmp_path: Path) -> None:
    config = Config(repo_dir=tmp_path, user_home=tmp_path / "home", username="tester")

    assert config.home_source_dir == tmp_path.resolve() / "home"
    assert config.data_dir == tmp_path.resolve() / "config"
    assert config.backup_config_file.name == "backup_config.sh"
    assert config.flatpak_apps_file == config.data_dir / "flatpak_apps.txt"
    assert config.dnf_packages_file == config.data_dir / "dnf_packages.txt"
    assert config.applications_dir == tmp_path / "home" / "Applications"
    assert config.assume_yes is False
