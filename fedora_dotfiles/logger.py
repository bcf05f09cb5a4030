import logging
import os
import sys
from pathlib import Path
from typing import Union

from rich.logging import RichHandler

from fedora_dotfiles.ui import console

LOGGER_NAME = "fedora_dotfiles"
DEFAULT_LOG_FILE = Path.home() / ".local" / "state" / "fedora-dotfiles" / "fedora-dotfiles.log"
LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_logger() -> logging.Logger:
    return logging.getLogger(LOGGER_NAME)


def setup_logger(log_file: Union[str, Path] = DEFAULT_LOG_FILE, debug: bool = False) -> logging.Logger:
    """
    Configure the toolkit logger: a DEBUG file log that records every
    executed command, plus a Rich console handler when debugging.
    """
    logger = get_logger()
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    if debug:
        rich_handler = RichHandler(
            console=console,
            rich_tracebacks=True,
            markup=False,
            show_time=True,
            show_path=False,
        )
        rich_handler.setLevel(logging.DEBUG)
        logger.addHandler(rich_handler)

    log_file = Path(log_file).expanduser()
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT))
        logger.addHandler(file_handler)
        os.chmod(str(log_file), 0o600)
    except OSError as e:
        print(f"Warning: could not set up file logging to {log_file}: {e}", file=sys.stderr)

    if not logger.handlers:
        logger.addHandler(logging.NullHandler())
    return logger
