"""Tests for grub module."""

from fedora_dotfiles import grub

GRUBBY_INFO = """\
index=0
kernel="/boot/vmlinuz-6.9.4-200.fc40.x86_64"
args="ro rootflags=subvol=root rhgb quiet amd_pstate=guided"
root="UUID=1234"
index=1
kernel="/boot/vmlinuz-6.8.11-300.fc40.x86_64"
args="ro rhgb quiet"
"""


def test_parse_grubby_args_uses_first_entry() -> None:
    assert grub.parse_grubby_args(GRUBBY_INFO) == "ro rootflags=subvol=root rhgb quiet amd_pstate=guided"


def test_parse_grubby_args_without_args_line() -> None:
    assert grub.parse_grubby_args("index=0\n") == ""


def test_missing_kernel_args() -> None:
    current = grub.parse_grubby_args(GRUBBY_INFO)

    assert grub.missing_kernel_args(current, ["amd_pstate=guided", "mem_sleep_default=s2idle"]) == [
        "mem_sleep_default=s2idle"
    ]


def test_set_grub_timeout_replaces_existing_line() -> None:
    text = 'GRUB_TIMEOUT=5\nGRUB_DISTRIBUTOR="$(sed \'s, release .*$,,g\' /etc/system-release)"\n'

    result = grub.set_grub_timeout(text, 3)

    assert result.splitlines()[0] == "GRUB_TIMEOUT=3"
    assert result.count("GRUB_TIMEOUT=") == 1
    assert "GRUB_DISTRIBUTOR" in result


def test_set_grub_timeout_appends_when_missing() -> None:
    assert grub.set_grub_timeout('GRUB_DEFAULT=saved', 3) == "GRUB_DEFAULT=saved\nGRUB_TIMEOUT=3\n"


def test_set_grub_timeout_keeps_timeout_style() -> None:
    result = grub.set_grub_timeout("GRUB_TIMEOUT_STYLE=menu\nGRUB_TIMEOUT=10\n", 3)

    assert result == "GRUB_TIMEOUT_STYLE=menu\nGRUB_TIMEOUT=3\n"


def test_kernel_arg_commands(runner) -> None:
    runner.outputs[("grubby", "--info=ALL")] = GRUBBY_INFO

    assert "amd_pstate=guided" in grub.current_kernel_args()
    grub.add_kernel_arg("mem_sleep_default=s2idle")
    grub.regenerate_grub_config()

    assert ["grubby", "--update-kernel=ALL", "--args=mem_sleep_default=s2idle"] in runner.calls
    assert ["grub2-mkconfig", "-o", "/boot/grub2/grub.cfg"] in runner.calls
