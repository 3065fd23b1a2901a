# common/constants_loader.py
# -*- coding: utf-8 -*-
"""
Constants loader for the engine.

Provides utilities for loading and accessing constants from the constants.yaml file.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

# Constants file path
CONSTANTS_FILE = Path(__file__).parent / "constants.yaml"

# Cache for loaded constants
_constants_cache: Optional[Dict[str, Any]] = None

# Set up logger
module_logger = logging.getLogger(__name__)


def get_constants() -> Dict[str, Any]:
    """
    Load constants from the YAML file.
    Returns a dictionary of constants.

    Returns:
        Dict[str, Any]: A dictionary containing all constants from the YAML file.

    Raises:
        FileNotFoundError: If the constants file doesn't exist.
        yaml.YAMLError: If there's an error parsing the YAML file.
    """
    global _constants_cache

    if _constants_cache is not None:
        return _constants_cache

    if not CONSTANTS_FILE.exists():
        raise FileNotFoundError(
            f"Constants file not found at {CONSTANTS_FILE}"
        )

    try:
        with open(CONSTANTS_FILE, "r", encoding="utf-8") as f:
            _constants_cache = yaml.safe_load(f)

        if _constants_cache is None:
            # If the file is empty or contains only comments
            _constants_cache = {}

        module_logger.debug(f"Loaded constants from {CONSTANTS_FILE}")
        return _constants_cache
    except yaml.YAMLError as e:
        module_logger.error(
            f"Error parsing constants file {CONSTANTS_FILE}: {e}"
        )
        raise


def clear_constants_cache() -> None:
    """Forget the cached constants so the next access re-reads the file."""
    global _constants_cache
    _constants_cache = None


def get_constant(path: str, default: Any = None) -> Any:
    """
    Get a constant value by its path.

    Args:
        path: Dot-separated path to the constant (e.g., "detection.tools")
        default: Default value to return if the constant is not found

    Returns:
        The constant value or the default if not found
    """
    constants = get_constants()

    current: Any = constants
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            module_logger.debug(
                f"Constant '{path}' not found, using default: {default}"
            )
            return default
        current = current[part]

    return current


def get_file_predicates() -> Dict[str, str]:
    """Predicate name -> project-relative path for file detection."""
    predicates = get_constant("detection.file_predicates", {})
    if not isinstance(predicates, dict):
        return {}
    return {str(k): str(v) for k, v in predicates.items()}


def get_probed_tools() -> List[str]:
    """Tools probed on every detection run."""
    tools = get_constant("detection.tools", [])
    return [str(t) for t in tools] if isinstance(tools, list) else []


def get_version_flags(tool: str) -> List[str]:
    """Arguments that make `tool` print its version."""
    flags = get_constant("detection.version_flags", {}) or {}
    return str(flags.get(tool, "--version")).split()
