"""Kernel command line and GRUB configuration helpers (grubby, grub2-mkconfig)."""

import re
import subprocess
from typing import List

from fedora_dotfiles.shell import command_output, run_command, sudo

GRUB_CFG = "/boot/grub2/grub.cfg"
GRUB_DEFAULTS = "/etc/default/grub"


def parse_grubby_args(info_output: str) -> str:
    """Kernel arguments of the first entry in ``grubby --info`` output."""
    for line in info_output.splitlines():
        if line.startswith("args="):
            value = line[len("args="):]
            if value.startswith('"') and value.endswith('"') and len(value) >= 2:
                value = value[1:-1]
            return value
    return ""


def missing_kernel_args(current: str, wanted: List[str]) -> List[str]:
    return [arg for arg in wanted if arg not in current]


def current_kernel_args() -> str:
    output = command_output(sudo(["grubby", "--info=ALL"]))
    return parse_grubby_args(output or "")


def add_kernel_arg(arg: str) -> subprocess.CompletedProcess:
    return run_command(sudo(["grubby", "--update-kernel=ALL", f"--args={arg}"]))


def show_default_kernel() -> subprocess.CompletedProcess:
    return run_command(sudo(["grubby", "--info=DEFAULT"]))


def regenerate_grub_config() -> subprocess.CompletedProcess:
    return run_command(sudo(["grub2-mkconfig", "-o", GRUB_CFG]))


def set_grub_timeout(text: str, seconds: int) -> str:
    """Replace the GRUB_TIMEOUT line of /etc/default/grub, or append one."""
    line = f"GRUB_TIMEOUT={seconds}"
    if re.search(r"^GRUB_TIMEOUT=", text, re.MULTILINE):
        return re.sub(r"^GRUB_TIMEOUT=.*$", line, text, flags=re.MULTILINE)
    if text and not text.endswith("\n"):
        text += "\n"
    return text + line + "\n"
