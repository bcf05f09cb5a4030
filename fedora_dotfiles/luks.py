"""
TPM2 LUKS Enrollment
--------------------
Binds the system's TPM2 chip to the first LUKS-encrypted partition so the
disk unlocks at boot without a passphrase, then updates the kernel
arguments, dracut and GRUB to match.

Requires SecureBoot. Intended for advanced users.
"""

import os
import subprocess
from typing import Callable, Optional

from fedora_dotfiles.errors import DependencyError, EnrollmentError, OperationCancelled
from fedora_dotfiles.grub import GRUB_CFG, add_kernel_arg, regenerate_grub_config, show_default_kernel
from fedora_dotfiles.logger import get_logger
from fedora_dotfiles.shell import command_exists, command_output, run_command, sudo, try_command
from fedora_dotfiles.system_files import write_root_file
from fedora_dotfiles.ui import (
    NordColors,
    confirm,
    console,
    print_banner_box,
    print_command,
    print_error,
    print_info,
    print_section,
    print_stderr,
    print_step,
    print_success,
    print_warning,
)

SECUREBOOT_ENABLED = "SecureBoot enabled"
CRYPTTAB = "/etc/crypttab"
DRACUT_TPM2_CONF = "/etc/dracut.conf.d/tpm2.conf"
DRACUT_TPM2_LINE = 'add_dracutmodules+=" tpm2-tss "'
TREE_GLYPHS = "├└─│"

WARNING_LINES = [
    "WARNING: This command is provided AS IS, with NO WARRANTY and NO GUARANTEE "
    "of fitness for any particular purpose.",
    "It is intended for advanced users. Use at your own risk. Always back up your data before proceeding!",
]


def parse_tpm2_device_list(output: str) -> Optional[str]:
    """First column of the first row after the header of
    ``systemd-cryptenroll --tpm2-device=list``."""
    lines = output.splitlines()
    if len(lines) < 2:
        return None
    fields = lines[1].split()
    return fields[0] if fields else None


def parse_luks_parent_partition(output: str) -> Optional[str]:
    """
    Parent partition of the first ``crypt`` device in ``lsblk -o NAME,TYPE``
    output: the nearest ``part`` row above it, tree glyphs removed.
    """
    parent = None
    for line in output.splitlines():
        fields = line.split()
        if len(fields) < 2:
            continue
        name, dev_type = fields[0], fields[1]
        if dev_type == "crypt":
            return parent
        if dev_type == "part":
            parent = name.translate({ord(glyph): None for glyph in TREE_GLYPHS}) or None
    return None


def has_crypt_device(output: str) -> bool:
    return any(len(line.split()) >= 2 and line.split()[1] == "crypt" for line in output.splitlines())


class TpmEnrollment:
    def __init__(self, path_exists: Callable[[str], bool] = os.path.exists):
        self.logger = get_logger()
        self.path_exists = path_exists
        self.tpm_device: Optional[str] = None
        self.luks_partition: Optional[str] = None

    @property
    def luks_device(self) -> str:
        return f"/dev/{self.luks_partition}"

    def print_warnings(self) -> None:
        for line in WARNING_LINES:
            print_stderr(line)

    def _require(self, cmd: str, package: str) -> None:
        if not command_exists(cmd):
            raise DependencyError(f"{cmd} command not found. Please install the {package} package.")

    # ------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------
    def check_secureboot_status(self) -> None:
        print_step("Checking SecureBoot status...")
        self._require("mokutil", "mokutil")
        status = (command_output(["mokutil", "--sb-state"]) or "").strip()
        if status != SECUREBOOT_ENABLED:
            print_warning("SecureBoot is not enabled.")
            print_info(f"Current status: {status}")
            print_info("Please enable SecureBoot in your BIOS/UEFI settings and try again.")
            raise EnrollmentError("SecureBoot is required for TPM2 LUKS integration.")
        print_success("SecureBoot is enabled. Proceeding...")

    def get_tpm2_device_path(self) -> str:
        print_step("Detecting TPM2 device...")
        self._require("systemd-cryptenroll", "systemd")
        output = command_output(["systemd-cryptenroll", "--tpm2-device=list"]) or ""
        if not output.strip():
            raise EnrollmentError("Failed to get TPM2 device list.")
        device = parse_tpm2_device_list(output)
        if not device or not self.path_exists(device):
            print_info("TPM2 output:")
            console.print(output, markup=False)
            raise EnrollmentError("No valid TPM2 device found or device not accessible.")
        print_success(f"Found TPM2 device: {device}")
        self.tpm_device = device
        return device

    def get_luks_partition(self) -> str:
        print_step("Detecting LUKS encrypted partition...")
        self._require("lsblk", "util-linux")
        output = command_output(["lsblk", "-o", "NAME,TYPE"]) or ""
        if not output.strip():
            raise EnrollmentError("Failed to get block device list.")
        if not has_crypt_device(output):
            print_info("lsblk output:")
            console.print(output, markup=False)
            raise EnrollmentError("No LUKS encrypted device found.")
        partition = parse_luks_parent_partition(output)
        if not partition:
            raise EnrollmentError("Could not determine parent partition of LUKS device.")
        print_success(f"Found LUKS parent partition: {partition}")
        self.luks_partition = partition
        return partition

    # ------------------------------------------------------------
    # Enrollment
    # ------------------------------------------------------------
    def enroll_tpm2_luks(self) -> None:
        print_section("Preparing to enroll TPM2 device with LUKS partition...")
        print_info(f"TPM2 Device: {self.tpm_device}")
        print_info(f"LUKS Partition: {self.luks_partition}")
        cmd = sudo(["systemd-cryptenroll", "--wipe-slot", "tpm2", "--tpm2-device", self.tpm_device, self.luks_device])
        print_command(
            [
                "sudo systemd-cryptenroll \\",
                "    --wipe-slot tpm2 \\",
                f"    --tpm2-device {self.tpm_device} \\",
                f"    {self.luks_device}",
            ]
        )
        if not confirm("Do you want to proceed with TPM2 enrollment?"):
            raise OperationCancelled("TPM2 enrollment cancelled by user.")
        print_step("Proceeding with TPM2 enrollment...")
        try:
            run_command(cmd)
        except (subprocess.CalledProcessError, OSError) as e:
            raise EnrollmentError(f"TPM2 enrollment failed: {e}") from e
        print_success("TPM2 enrollment completed successfully!")

    def verify_tpm2_enrollment(self) -> None:
        print_section("Verifying TPM2 enrollment status...")
        print_info(f"Running: sudo systemd-cryptenroll {self.luks_device}")
        if try_command(sudo(["systemd-cryptenroll", self.luks_device])):
            print_success("TPM2 enrollment verification completed.")
        else:
            print_warning("Could not verify enrollment status.")

    def update_grub_tpm2_args(self) -> bool:
        print_section("Preparing to update GRUB kernel arguments for TPM2 LUKS support...")
        arg = f"rd.luks.options=tpm2-device={self.tpm_device}"
        print_command(
            [
                "sudo grubby --update-kernel=ALL \\",
                f'    --args="{arg}"',
                "",
                "sudo grubby --info=DEFAULT",
            ]
        )
        if not confirm("Do you want to proceed with GRUB kernel arguments update?"):
            print_step("GRUB kernel arguments update cancelled by user.")
            return False
        try:
            add_kernel_arg(arg)
        except (subprocess.CalledProcessError, OSError) as e:
            print_error(f"Failed to update GRUB kernel arguments: {e}")
            return False
        print_success("GRUB kernel arguments updated successfully!")
        print_step("Verifying GRUB configuration...")
        try:
            show_default_kernel()
        except (subprocess.CalledProcessError, OSError) as e:
            print_warning(f"Could not show the default kernel entry: {e}")
        print_success("GRUB configuration update completed.")
        return True

    def check_crypttab_config(self) -> None:
        print_section(f"Checking {CRYPTTAB} configuration...")
        if not os.path.isfile(CRYPTTAB):
            print_warning(f"{CRYPTTAB} file not found.")
        elif try_command(sudo(["cat", CRYPTTAB])):
            print_success("Crypttab configuration displayed successfully.")
        else:
            print_warning(f"Could not read {CRYPTTAB} configuration.")
        print_info("Note: This shows how encrypted partitions are configured for boot-time unlocking.")

    def configure_dracut_tpm2(self) -> bool:
        print_section("Preparing to configure dracut for TPM2 support and regenerate boot configurations...")
        print_command(
            [
                f"echo '{DRACUT_TPM2_LINE}' | sudo tee {DRACUT_TPM2_CONF}",
                "",
                f"sudo grub2-mkconfig -o {GRUB_CFG}",
                "",
                "sudo dracut -vf",
            ]
        )
        if not confirm("Do you want to proceed with dracut TPM2 configuration and boot regeneration?"):
            print_step("Dracut TPM2 configuration cancelled by user.")
            return False

        sub_steps = [
            (
                "Step 1: Adding TPM2 module to dracut configuration...",
                lambda: write_root_file(DRACUT_TPM2_CONF, DRACUT_TPM2_LINE + "\n"),
                "TPM2 dracut configuration created successfully.",
                "Failed to create TPM2 dracut configuration",
            ),
            (
                "Step 2: Regenerating GRUB configuration...",
                regenerate_grub_config,
                "GRUB configuration regenerated successfully.",
                "Failed to regenerate GRUB configuration",
            ),
            (
                "Step 3: Regenerating initramfs with dracut (this may take a moment)...",
                lambda: run_command(sudo(["dracut", "-vf"])),
                "Initramfs regenerated successfully with TPM2 support.",
                "Failed to regenerate initramfs",
            ),
        ]
        for description, action, done, failed in sub_steps:
            print_step(description)
            try:
                action()
            except (subprocess.CalledProcessError, OSError) as e:
                print_error(f"{failed}: {e}")
                return False
            print_success(done)
        print_success("Dracut TPM2 configuration and boot regeneration completed successfully!")
        return True

    def summary(self) -> None:
        print_banner_box(
            [
                "TPM2 LUKS setup completed successfully!",
                "",
                "What was accomplished:",
                "✓ SecureBoot status verified",
                "✓ TPM2 device detected and enrolled",
                "✓ LUKS partition configured for TPM2 unlock",
                "✓ GRUB kernel arguments updated",
                "✓ Dracut configured for TPM2 support",
                "✓ Boot configurations regenerated",
            ],
            style=NordColors.GREEN,
        )
        print_warning("IMPORTANT: Please reboot your system to test automatic TPM2-based disk unlocking.")
        print_info(
            "After reboot, your system should unlock the encrypted disk automatically without prompting for a password."
        )

    def run(self) -> None:
        self.print_warnings()
        self.check_secureboot_status()
        self.get_tpm2_device_path()
        self.get_luks_partition()
        self.logger.info(f"Enrolling TPM2 device {self.tpm_device} into {self.luks_device}")
        self.enroll_tpm2_luks()
        self.verify_tpm2_enrollment()
        self.update_grub_tpm2_args()
        self.check_crypttab_config()
        self.configure_dracut_tpm2()
        self.summary()
