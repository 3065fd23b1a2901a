# common/command_utils.py
# -*- coding: utf-8 -*-
"""
Utilities for executing probe commands and logging their output.
"""

import logging
import shutil
import subprocess
from typing import Dict, List, Optional, Union

from engine.config_models import SYMBOLS_DEFAULT, AppSettings

module_logger = logging.getLogger(__name__)


def log_bootstrap(
    message: str,
    level: str = "info",
    current_logger: Optional[logging.Logger] = None,
    app_settings: Optional[AppSettings] = None,
    exc_info: bool = False,
) -> None:
    """
    Logs a message at the given level on the provided logger, or on the module
    logger when none is given.

    Args:
        message (str): The log message to be recorded.
        level (str): The severity level of the log message. Defaults to "info".
            "success" is logged at info level.
        current_logger (Optional[logging.Logger]): A logger instance to use for logging.
        app_settings (Optional[AppSettings]): Settings whose log prefix is
            prepended to the message.
        exc_info (bool): Include exception details in the log record.
    """
    effective_logger = current_logger if current_logger else module_logger
    if app_settings is not None and app_settings.log_prefix:
        message = f"{app_settings.log_prefix} {message}"

    if level == "warning":
        effective_logger.warning(message, exc_info=exc_info)
    elif level == "error":
        effective_logger.error(message, exc_info=exc_info)
    elif level == "critical":
        effective_logger.critical(message, exc_info=exc_info)
    elif level == "debug":
        effective_logger.debug(message, exc_info=exc_info)
    else:
        effective_logger.info(message, exc_info=exc_info)


def get_symbols(app_settings: Optional[AppSettings]) -> Dict[str, str]:
    """Symbols from the settings, falling back to the defaults."""
    if app_settings is not None and app_settings.symbols:
        return app_settings.symbols
    return SYMBOLS_DEFAULT


def run_command(
    command: Union[List[str], str],
    app_settings: Optional[AppSettings],
    check: bool = True,
    capture_output: bool = False,
    text: bool = True,
    current_logger: Optional[logging.Logger] = None,
    cwd: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
    timeout: Optional[float] = None,
) -> subprocess.CompletedProcess:
    """
    Executes a command without a shell and logs the invocation and, when
    captured, its output.

    Args:
        command (Union[List[str], str]): The command to execute. A string is split
            on whitespace.
        app_settings (Optional[AppSettings]): Settings providing logging symbols.
        check (bool): Raise CalledProcessError on a non-zero exit code.
        capture_output (bool): Capture stdout and stderr.
        text (bool): Decode output streams as text.
        current_logger (Optional[logging.Logger]): Logger to use.
        cwd (Optional[str]): Working directory for the command.
        env (Optional[Dict[str, str]]): Environment for the command.
        timeout (Optional[float]): Seconds before the command is killed.

    Returns:
        subprocess.CompletedProcess: The completed process.

    Raises:
        subprocess.CalledProcessError: On a non-zero exit code when check is True.
        subprocess.TimeoutExpired: When the command exceeds the timeout.
        FileNotFoundError: When the executable is not found.
    """
    effective_logger = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)

    command_to_run = command.split() if isinstance(command, str) else list(command)
    command_to_log_str = subprocess.list2cmdline(command_to_run)

    log_bootstrap(
        f"{symbols.get('gear', '⚙️')} Executing: {command_to_log_str} {f'(in {cwd})' if cwd else ''}",
        "debug",
        effective_logger,
    )
    try:
        result = subprocess.run(
            command_to_run,
            check=check,
            capture_output=capture_output,
            text=text,
            cwd=cwd,
            env=env,
            timeout=timeout,
        )
    except subprocess.CalledProcessError as e:
        log_bootstrap(
            f"{symbols.get('error', '❌')} Command `{command_to_log_str}` failed (rc {e.returncode}).",
            "debug",
            effective_logger,
        )
        raise
    except subprocess.TimeoutExpired:
        log_bootstrap(
            f"{symbols.get('warning', '!')} Command `{command_to_log_str}` timed out after {timeout}s.",
            "warning",
            effective_logger,
        )
        raise
    except FileNotFoundError as e:
        log_bootstrap(
            f"{symbols.get('error', '❌')} Command not found: {e.filename}.",
            "debug",
            effective_logger,
        )
        raise

    if capture_output and result.stdout and result.stdout.strip():
        log_bootstrap(
            f"   stdout: {result.stdout.strip()}",
            "debug",
            effective_logger,
        )
    return result


def command_exists(command_name: str) -> bool:
    """
    Check if a command exists in the system's PATH.

    Parameters:
        command_name (str): The name of the command to check for existence.

    Returns:
        bool: True if the command is found in the system's PATH, False otherwise.
    """
    return shutil.which(command_name) is not None
