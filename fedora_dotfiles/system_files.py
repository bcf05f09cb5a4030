"""
Root-owned configuration files touched during restore: /etc/environment,
sudoers drop-ins, keyd and libinput-config defaults.
"""

import os
import tempfile
from pathlib import Path
from typing import List, Optional, Union

from fedora_dotfiles.shell import command_output, run_command, sudo

ETC_ENVIRONMENT = "/etc/environment"

SUDOERS_SECURE_PATH_FILE = "/etc/sudoers.d/99-dotfiles-brew-securepath"
STANDARD_SECURE_PATH = "/usr/local/sbin:/usr/local/bin:/usr/sbin:/usr/bin:/sbin:/bin"
HOMEBREW_BIN = "/home/linuxbrew/.linuxbrew/bin"

FREETYPE_USER_PROPERTIES = (
    'FREETYPE_PROPERTIES="cff:no-stem-darkening=0 autofitter:no-stem-darkening=0 '
    'type1:no-stem-darkening=0 t1cid:no-stem-darkening=0"'
)
FREETYPE_SYSTEM_PROPERTIES = 'FREETYPE_PROPERTIES="cff:no-stem-darkening=0 autofitter:no-stem-darkening=0"'
FREETYPE_MARKERS = ("cff:no-stem-darkening=0", "autofitter:no-stem-darkening=0")

KEYD_CONFIG_FILE = "/etc/keyd/default.conf"
KEYD_HYPERKEY_CONFIG = """\
[ids]
*

[main]
capslock = overload(capslock_layer, esc)

[capslock_layer:C-S-A-M]
h = left
j = down
k = up
l = right
"""

LIBINPUT_CONFIG_FILE = "/etc/libinput.conf"
LIBINPUT_DEFAULT_CONFIG = """\
# /etc/libinput.conf
# Configuration for libinput-config

# Enable this to override your desktop environment's scroll settings
override-compositor=enabled

# Set the scroll method to 'on-button-down' to enable scrolling
# while a specific button is held down.
# Other options include: 'two-finger', 'edge', 'none'
scroll-method=on-button-down

# Set the button to trigger scrolling.
# Event code 273 typically corresponds to the secondary (right) mouse button.
scroll-button=273

# Set to 'enabled' if you want the scroll button to toggle scrolling
# on and off with each click, rather than requiring you to hold it down.
# 'disabled' means you must hold the button to scroll.
scroll-button-lock=disabled

# --- Optional Settings ---

# Speed adjustment for scrolling. Default is 1.0.
# Higher values mean faster scrolling, lower values mean slower.
scroll-factor=1.2

# Enable or disable natural scrolling (inverted scrolling).
# natural-scroll=enabled

# Left-handed mode (swaps primary and secondary buttons).
# left-handed=disabled

# Tapping for touchpads.
# tap-to-click=disabled

# Disable while typing for touchpads.
disable-while-typing=enabled
"""


# ----------------------------------------------------------------
# sudo secure_path
# ----------------------------------------------------------------
def build_secure_path(standard: str = STANDARD_SECURE_PATH, extra: Optional[List[str]] = None) -> str:
    """Join path lists with ':' keeping the first occurrence of each entry."""
    seen: List[str] = []
    for entry in standard.split(":") + list(extra or []):
        if entry and entry not in seen:
            seen.append(entry)
    return ":".join(seen)


def secure_path_line(value: str) -> str:
    return f"Defaults    secure_path = {value}"


def render_sudoers_secure_path(value: str) -> str:
    return (
        "# This file is automatically generated by the fedora-dotfiles restore command.\n"
        "# It defines sudo's secure_path to include Homebrew and standard system paths.\n"
        "# This file will effectively set the secure_path; other definitions might be overridden.\n"
        f"{secure_path_line(value)}\n"
    )


# ----------------------------------------------------------------
# Reading and writing root-owned files
# ----------------------------------------------------------------
def read_root_file(path: Union[str, Path]) -> Optional[str]:
    """Contents of a file that may only be readable by root."""
    path = Path(path)
    try:
        return path.read_text()
    except PermissionError:
        return command_output(sudo(["cat", str(path)]))
    except OSError:
        return None


def file_has_line(text: Optional[str], line: str) -> bool:
    return text is not None and line in text.splitlines()


def env_file_has(text: Optional[str], needle: str) -> bool:
    return text is not None and needle in text


def append_root_line(path: Union[str, Path], line: str) -> None:
    run_command(sudo(["tee", "-a", str(path)]), input=line + "\n", capture_output=True)


def write_root_file(path: Union[str, Path], content: str, mode: str = "0644", owner: str = "root:root") -> None:
    """
    Write a root-owned file through a private temporary file and
    ``install``, so the target never holds partial content.
    """
    fd, tmp_path = tempfile.mkstemp(prefix="fedora_dotfiles_")
    try:
        with os.fdopen(fd, "w") as tmp:
            tmp.write(content)
        user, _, group = owner.partition(":")
        run_command(
            sudo(["install", "-D", "-m", mode, "-o", user, "-g", group or user, tmp_path, str(path)])
        )
    finally:
        os.unlink(tmp_path)


def remove_root_file(path: Union[str, Path]) -> None:
    run_command(sudo(["rm", "-f", str(path)]), check=False)
