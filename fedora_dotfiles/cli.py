"""
Command line entry point: ``fedora-dotfiles backup | restore | luks-enroll-tpm2``.
"""

import signal
import sys
from pathlib import Path
from typing import Any, Callable, Optional, Tuple

import click
from rich.table import Table

from fedora_dotfiles import APP_NAME, VERSION
from fedora_dotfiles.backup import DotfilesBackup
from fedora_dotfiles.config import Config
from fedora_dotfiles.errors import DotfilesError, OperationCancelled
from fedora_dotfiles.logger import DEFAULT_LOG_FILE, get_logger, setup_logger
from fedora_dotfiles.luks import TpmEnrollment
from fedora_dotfiles.restore import RESTORE_STEPS, STEP_NAMES, FedoraRestore, select_steps
from fedora_dotfiles.ui import NordColors, console, create_header, print_error, print_message, print_warning


def signal_handler(signum: int, frame: Optional[Any]) -> None:
    sig_name = f"signal {signum}"
    try:
        sig_name = signal.Signals(signum).name
    except ValueError:
        pass
    console.print()
    print_message(f"Process interrupted by {sig_name}", NordColors.YELLOW, "⚠")
    get_logger().error(f"Interrupted by {sig_name}. Exiting.")
    sys.exit(128 + signum)


def execute(subtitle: str, action: Callable[[], Optional[bool]]) -> None:
    """Run a command body and map its outcome onto the process exit code."""
    logger = get_logger()
    console.print(create_header(APP_NAME, subtitle, VERSION))
    try:
        result = action()
    except OperationCancelled as e:
        print_warning(str(e))
        logger.info(f"Cancelled: {e}")
        sys.exit(0)
    except DotfilesError as e:
        print_error(str(e))
        logger.error(f"{type(e).__name__}: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        print_warning("Operation interrupted by user.")
        logger.error("Interrupted by user.")
        sys.exit(130)
    if result is False:
        sys.exit(1)


repo_dir_option = click.option(
    "--repo-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=".",
    show_default=True,
    help="Dotfiles repository holding home/ and config/.",
)
yes_option = click.option("--yes", "-y", "assume_yes", is_flag=True, help="Answer yes to every confirmation.")


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--debug", is_flag=True, help="Also show log messages on the console.")
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=DEFAULT_LOG_FILE,
    show_default=True,
    help="Where the detailed log is written.",
)
@click.version_option(VERSION, prog_name=APP_NAME)
@click.pass_context
def cli(ctx: click.Context, debug: bool, log_file: Path) -> None:
    """Back up, restore and harden a Fedora workstation from a dotfiles repository."""
    ctx.ensure_object(dict)
    ctx.obj["log_file"] = log_file
    setup_logger(log_file, debug)


@cli.command()
@repo_dir_option
@yes_option
@click.pass_context
def backup(ctx: click.Context, repo_dir: Path, assume_yes: bool) -> None:
    """Save dotfiles, package lists and GNOME settings into the repository."""
    config = Config(repo_dir=repo_dir, log_file=ctx.obj["log_file"], assume_yes=assume_yes)
    execute("Dotfiles Backup", DotfilesBackup(config).run)


@cli.command()
@repo_dir_option
@yes_option
@click.option("--only", multiple=True, type=click.Choice(STEP_NAMES), help="Run only this step (repeatable).")
@click.option("--skip", multiple=True, type=click.Choice(STEP_NAMES), help="Skip this step (repeatable).")
@click.option("--list-steps", is_flag=True, help="List the restore steps and exit.")
@click.pass_context
def restore(
    ctx: click.Context,
    repo_dir: Path,
    assume_yes: bool,
    only: Tuple[str, ...],
    skip: Tuple[str, ...],
    list_steps: bool,
) -> None:
    """Provision this Fedora system from the repository."""
    if list_steps:
        table = Table(show_header=True, header_style=f"bold {NordColors.FROST_3}")
        table.add_column("Step", style=NordColors.FROST_2)
        table.add_column("Description")
        for step in RESTORE_STEPS:
            table.add_row(step.name, step.description)
        console.print(table)
        return
    config = Config(repo_dir=repo_dir, log_file=ctx.obj["log_file"], assume_yes=assume_yes)
    steps = select_steps(only, skip)
    execute("Fedora Post-Install Restore", lambda: FedoraRestore(config).run(steps))


@cli.command("luks-enroll-tpm2")
def luks_enroll_tpm2() -> None:
    """Enroll the TPM2 chip into the LUKS-encrypted root partition."""
    execute("TPM2 LUKS Enroll", TpmEnrollment().run)


def run() -> None:
    for sig in (signal.SIGINT, signal.SIGTERM):
        signal.signal(sig, signal_handler)
    cli(prog_name="fedora-dotfiles")
