import getpass
import re
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Union

from fedora_dotfiles.errors import ConfigurationError
from fedora_dotfiles.logger import DEFAULT_LOG_FILE

HOME_SOURCE_DIR = "home"
GENERATED_DATA_DIR = "config"

BACKUP_CONFIG_FILE = "backup_config.sh"
DOTFILES_ARRAY_NAME = "DOTFILES_TO_COPY_DIRECTLY"

GNOME_SETTINGS_FILE = "gnome-settings.dconf"
FLATPAK_APPS_FILE = "flatpak_apps.txt"
BREW_PACKAGES_FILE = "brew_packages.txt"
APPIMAGE_LIST_FILE = "appimage_list.txt"
DNF_PACKAGES_FILE = "dnf_packages.txt"


@dataclass
class Config:
    repo_dir: Path = field(default_factory=Path.cwd)
    user_home: Path = field(default_factory=Path.home)
    username: str = field(default_factory=getpass.getuser)
    log_file: Path = DEFAULT_LOG_FILE
    assume_yes: bool = False

    def __post_init__(self) -> None:
        self.repo_dir = Path(self.repo_dir).expanduser().resolve()
        self.user_home = Path(self.user_home).expanduser()
        self.log_file = Path(self.log_file).expanduser()

    @property
    def home_source_dir(self) -> Path:
        """Mirror of the user's home inside the dotfiles repository."""
        return self.repo_dir / HOME_SOURCE_DIR

    @property
    def data_dir(self) -> Path:
        """Generated backup data (package lists, dconf dump)."""
        return self.repo_dir / GENERATED_DATA_DIR

    @property
    def backup_config_file(self) -> Path:
        return self.data_dir / BACKUP_CONFIG_FILE

    @property
    def gnome_settings_file(self) -> Path:
        return self.data_dir / GNOME_SETTINGS_FILE

    @property
    def flatpak_apps_file(self) -> Path:
        return self.data_dir / FLATPAK_APPS_FILE

    @property
    def brew_packages_file(self) -> Path:
        return self.data_dir / BREW_PACKAGES_FILE

    @property
    def appimage_list_file(self) -> Path:
        return self.data_dir / APPIMAGE_LIST_FILE

    @property
    def dnf_packages_file(self) -> Path:
        return self.data_dir / DNF_PACKAGES_FILE

    @property
    def applications_dir(self) -> Path:
        return self.user_home / "Applications"


def parse_bash_array(text: str, name: str) -> List[str]:
    """
    Extract the items of a bash array assignment such as
    ``declare -a NAME=( "a" "b" # comment )`` without executing the file.
    Shell quoting and ``#`` comments are honoured.
    """
    start = re.search(
        rf"^[ \t]*(?:declare[ \t]+-a[ \t]+)?{re.escape(name)}=\(",
        text,
        re.MULTILINE,
    )
    if not start:
        raise ConfigurationError(f"Array {name} not found in configuration.")

    lexer = shlex.shlex(text[start.end():], posix=True, punctuation_chars="()")
    lexer.whitespace_split = True
    items: List[str] = []
    try:
        for token in lexer:
            if token == ")":
                return items
            items.append(token)
    except ValueError as e:
        raise ConfigurationError(f"Could not parse array {name}: {e}") from e
    raise ConfigurationError(f"Array {name} is not terminated with ')'.")


def load_dotfiles_list(path: Union[str, Path], name: str = DOTFILES_ARRAY_NAME) -> List[str]:
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"Configuration file {path} not found.")
    try:
        text = path.read_text()
    except OSError as e:
        raise ConfigurationError(f"Configuration file {path} is not readable: {e}") from e
    return parse_bash_array(text, name)
