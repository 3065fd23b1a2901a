# common/file_utils.py
# -*- coding: utf-8 -*-
"""
File system utility functions used when writing artifacts: timestamped
backups, atomic writes and removals.
"""

import datetime
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional

from engine.config_models import AppSettings

from .command_utils import get_symbols, log_bootstrap

module_logger = logging.getLogger(__name__)


def backup_file(
    file_path: Path,
    app_settings: Optional[AppSettings],
    current_logger: Optional[logging.Logger] = None,
) -> Optional[Path]:
    """
    Backup a file or directory to a timestamped sibling path.

    The backup is named '<name>.bak.<YYYYmmdd-HHMMSS>'; a numeric suffix is
    added when that name is already taken so earlier backups are never
    overwritten.

    Parameters:
        file_path (Path): The path to back up.
        app_settings (Optional[AppSettings]): Settings providing logging symbols.
        current_logger (Optional[logging.Logger]): Logger to use.

    Returns:
        Optional[Path]: The backup path, or None when there was nothing to back up.

    Raises:
        OSError: If the copy fails.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)

    if not file_path.exists():
        log_bootstrap(
            f"{symbols.get('info', 'ℹ️')} {file_path} does not exist. No backup needed.",
            "debug",
            logger_to_use,
        )
        return None

    timestamp = datetime.datetime.now().strftime("%Y%m%d-%H%M%S")
    backup_path = file_path.with_name(f"{file_path.name}.bak.{timestamp}")
    counter = 1
    while backup_path.exists():
        backup_path = file_path.with_name(
            f"{file_path.name}.bak.{timestamp}.{counter}"
        )
        counter += 1

    if file_path.is_dir():
        shutil.copytree(file_path, backup_path, symlinks=True)
    else:
        shutil.copy2(file_path, backup_path)
    log_bootstrap(
        f"{symbols.get('success', '✅')} Backed up {file_path} to {backup_path}",
        "debug",
        logger_to_use,
    )
    return backup_path


def write_file_atomic(file_path: Path, content: bytes) -> None:
    """
    Write bytes to a file through a temporary file in the same directory and
    an atomic rename. Parent directories are created as needed.

    Raises:
        OSError: If any step fails; the temporary file is removed.
    """
    file_path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_name = tempfile.mkstemp(
        prefix=f".{file_path.name}.", suffix=".tmp", dir=str(file_path.parent)
    )
    try:
        with os.fdopen(fd, "wb") as temp_f:
            temp_f.write(content)
        if file_path.exists():
            shutil.copymode(file_path, temp_name)
        os.replace(temp_name, file_path)
    finally:
        if os.path.exists(temp_name):
            os.unlink(temp_name)


def remove_path(path: Path) -> None:
    """Remove a file, symlink or directory tree."""
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()
