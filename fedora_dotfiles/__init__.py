"""
Fedora Dotfiles
---------------
Back up desktop settings, package lists and selected dotfiles into a
version-controlled directory, restore them onto a fresh Fedora install,
and enroll a TPM2 chip into a LUKS volume.
"""

APP_NAME = "Fedora Dotfiles"
VERSION = "1.0.0"
