# engine/cli_handler.py
# -*- coding: utf-8 -*-
"""
Handles interactive Command Line Interface (CLI) interactions for the engine.
"""

import logging
import sys
from typing import Optional

from common.command_utils import log_bootstrap
from engine.config_models import AppSettings
from engine.resolver import EffectiveConfig

module_logger = logging.getLogger(__name__)


def cli_prompt_for_confirmation(
    prompt_message: str,
    app_settings: AppSettings,
    current_logger_instance: Optional[logging.Logger] = None,
) -> bool:
    """
    Prompt the user in the CLI to approve an unsafe unit. Defaults to "No" on
    end-of-file (EOF) and when the session is not interactive.

    Parameters:
    prompt_message : str
        The message to display in the CLI when prompting the user.
    app_settings : AppSettings
        The engine settings object providing symbols and the interactive flag.
    current_logger_instance : Optional[logging.Logger]
        The logger instance to use for logging. If not provided, a default module-level
        logger is used.

    Returns:
    bool
        True if the user inputs "y" or "yes" after the prompt, otherwise False.
    """
    logger_to_use = (
        current_logger_instance if current_logger_instance else module_logger
    )
    symbols = app_settings.symbols
    if not app_settings.interactive or not sys.stdin.isatty():
        log_bootstrap(
            f"{symbols.get('warning', '!')} Non-interactive session, defaulting to 'N' for prompt: '{prompt_message}'",
            "warning",
            logger_to_use,
            app_settings,
        )
        return False
    try:
        user_input = (
            input(f"   {symbols.get('info', 'ℹ️')} {prompt_message} (y/N): ")
            .strip()
            .lower()
        )
        return user_input in ("y", "yes")
    except EOFError:
        log_bootstrap(
            f"{symbols.get('warning', '!')} No user input (EOF), defaulting to 'N' for prompt: '{prompt_message}'",
            "warning",
            logger_to_use,
            app_settings,
        )
        return False


def view_effective_config(
    effective: EffectiveConfig,
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> str:
    """
    Format a resolved config section for display, one key per line with the
    layer each value came from.

    Returns:
        The formatted text.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols
    lines = [f"{symbols.get('gear', '⚙️')} [{effective.section}]"]
    if not effective.entries:
        lines.append("    (no keys)")
    for entry in effective.entries:
        lines.append(f"    {entry.key} = {entry.value!r:<30} ({entry.source.value})")
    text = "\n".join(lines)
    logger_to_use.debug(f"Displayed config section '{effective.section}'")
    return text
