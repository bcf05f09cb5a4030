import os
import shutil
import subprocess
import time
from pathlib import Path
from typing import IO, Any, Callable, Dict, List, Optional, Union

from fedora_dotfiles.logger import get_logger

OPERATION_TIMEOUT = 1800
PROBE_TIMEOUT = 30


def run_command(
    cmd: List[str],
    capture_output: bool = False,
    text: bool = True,
    check: bool = True,
    timeout: Optional[int] = OPERATION_TIMEOUT,
    cwd: Optional[Union[str, Path]] = None,
    env: Optional[Dict[str, str]] = None,
    input: Optional[str] = None,
    stdin: Optional[IO[Any]] = None,
) -> subprocess.CompletedProcess:
    logger = get_logger()
    cmd_str = " ".join(cmd)
    logger.debug(f"Running command: {cmd_str}" + (f" in {cwd}" if cwd else ""))
    try:
        result = subprocess.run(
            cmd,
            capture_output=capture_output,
            text=text,
            check=check,
            timeout=timeout,
            cwd=cwd,
            env=env,
            input=input,
            stdin=stdin,
            errors="replace" if text else None,
        )
        if capture_output:
            if result.stdout and result.stdout.strip():
                logger.debug(f"Cmd stdout: {result.stdout.strip()}")
            if result.stderr and result.stderr.strip():
                logger.debug(f"Cmd stderr: {result.stderr.strip()}")
        logger.debug(f"Command finished with code {result.returncode}: {cmd_str}")
        return result
    except subprocess.TimeoutExpired as e:
        logger.error(f"Command timed out after {timeout} seconds: {cmd_str}")
        raise TimeoutError(f"Command '{cmd_str}' timed out after {timeout} seconds.") from e
    except FileNotFoundError:
        logger.error(f"Command not found: {cmd[0]}. Ensure it is installed and in PATH.")
        raise
    except subprocess.CalledProcessError as e:
        error_msg = f"Command '{cmd_str}' failed with code {e.returncode}."
        if e.stdout:
            error_msg += f"\nStdout: {e.stdout.strip()}"
        if e.stderr:
            error_msg += f"\nStderr: {e.stderr.strip()}"
        logger.error(error_msg)
        raise


def try_command(cmd: List[str], **kwargs: Any) -> bool:
    """Run a command and report whether it exited successfully."""
    try:
        run_command(cmd, **kwargs)
        return True
    except (subprocess.CalledProcessError, TimeoutError, OSError):
        return False


def command_output(cmd: List[str], timeout: int = PROBE_TIMEOUT) -> Optional[str]:
    """Captured stdout of a command, or None if it could not run or failed."""
    try:
        result = run_command(cmd, capture_output=True, check=True, timeout=timeout)
    except (subprocess.CalledProcessError, TimeoutError, OSError):
        return None
    return result.stdout


def command_exists(cmd: str) -> bool:
    exists = shutil.which(cmd)
    get_logger().debug(f"Command '{cmd}' found: {bool(exists)}")
    return bool(exists)


def sudo(cmd: List[str]) -> List[str]:
    """Prefix a command with sudo unless already running as root."""
    if os.geteuid() == 0:
        return list(cmd)
    return ["sudo"] + list(cmd)


def run_task_with_logging(description: str, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    logger = get_logger()
    logger.info(f"Starting: {description}...")
    start = time.monotonic()
    try:
        result = func(*args, **kwargs)
    except Exception as e:
        elapsed = time.monotonic() - start
        logger.error(f"Failed: {description} (after {elapsed:.2f}s): {e}")
        raise
    elapsed = time.monotonic() - start
    logger.info(f"Finished: {description} (took {elapsed:.2f}s)")
    return result
