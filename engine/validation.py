# engine/validation.py
# -*- coding: utf-8 -*-
"""
Post-run validation of unit outputs.

Each unit lists its checks in '@verify' lines:

    file_exists Dockerfile
    dir_exists .github/workflows
    file_contains .gitignore node_modules
    valid_json package.json
    valid_yaml docker-compose.yml
    yaml_has_key docker-compose.yml services
    test -f .editorconfig

Validation failures are data, never exceptions.
"""

import json
import logging
import shlex
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import yaml
from pydantic import BaseModel, ConfigDict

from registry.descriptor import ScriptDescriptor

module_logger = logging.getLogger(__name__)

CheckResult = Tuple[bool, str]


class ValidationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    script_id: str
    passed: bool
    failure_count: int = 0
    messages: Tuple[str, ...] = ()


def _check_file_exists(root: Path, args: List[str]) -> CheckResult:
    path = root / args[0]
    return path.is_file(), f"file {args[0]} {'exists' if path.is_file() else 'is missing'}"


def _check_dir_exists(root: Path, args: List[str]) -> CheckResult:
    path = root / args[0]
    return path.is_dir(), f"directory {args[0]} {'exists' if path.is_dir() else 'is missing'}"


def _check_file_contains(root: Path, args: List[str]) -> CheckResult:
    path = root / args[0]
    needle = " ".join(args[1:])
    if not path.is_file():
        return False, f"file {args[0]} is missing"
    found = needle in path.read_text(encoding="utf-8", errors="replace")
    return found, f"{args[0]} {'contains' if found else 'does not contain'} '{needle}'"


def _check_valid_json(root: Path, args: List[str]) -> CheckResult:
    path = root / args[0]
    if not path.is_file():
        return False, f"file {args[0]} is missing"
    try:
        json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        return False, f"{args[0]} is not valid JSON: {e}"
    return True, f"{args[0]} is valid JSON"


def _load_yaml(path: Path):
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def _check_valid_yaml(root: Path, args: List[str]) -> CheckResult:
    path = root / args[0]
    if not path.is_file():
        return False, f"file {args[0]} is missing"
    try:
        _load_yaml(path)
    except (yaml.YAMLError, UnicodeDecodeError) as e:
        return False, f"{args[0]} is not valid YAML: {e}"
    return True, f"{args[0]} is valid YAML"


def _check_yaml_has_key(root: Path, args: List[str]) -> CheckResult:
    path = root / args[0]
    dotted = args[1]
    if not path.is_file():
        return False, f"file {args[0]} is missing"
    try:
        current = _load_yaml(path)
    except (yaml.YAMLError, UnicodeDecodeError) as e:
        return False, f"{args[0]} is not valid YAML: {e}"
    for part in dotted.split("."):
        if not isinstance(current, dict) or part not in current:
            return False, f"{args[0]} has no key '{dotted}'"
        current = current[part]
    return True, f"{args[0]} has key '{dotted}'"


def _check_test(root: Path, args: List[str]) -> CheckResult:
    flag, target = args[0], args[1]
    if flag == "-f":
        return _check_file_exists(root, [target])
    if flag == "-d":
        return _check_dir_exists(root, [target])
    if flag == "-e":
        path = root / target
        return path.exists(), f"{target} {'exists' if path.exists() else 'is missing'}"
    return False, f"unsupported test flag '{flag}'"


CHECKS: Dict[str, Tuple[int, Callable[[Path, List[str]], CheckResult]]] = {
    "file_exists": (1, _check_file_exists),
    "dir_exists": (1, _check_dir_exists),
    "file_contains": (2, _check_file_contains),
    "valid_json": (1, _check_valid_json),
    "valid_yaml": (1, _check_valid_yaml),
    "yaml_has_key": (2, _check_yaml_has_key),
    "test": (2, _check_test),
}


class ValidationAggregator:
    """Runs every '@verify' check of a unit and folds the results."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def run_check(self, expression: str, project_root: Path) -> CheckResult:
        """
        Run one check expression.

        Returns:
            (passed, message). Malformed or unknown checks fail.
        """
        try:
            parts = shlex.split(expression)
        except ValueError as e:
            return False, f"cannot parse check '{expression}': {e}"
        if not parts:
            return False, "empty check"

        kind, args = parts[0], parts[1:]
        if kind not in CHECKS:
            return False, f"unknown check kind '{kind}'"
        min_args, check = CHECKS[kind]
        if len(args) < min_args:
            return False, f"check '{expression}' needs {min_args} argument(s)"
        try:
            return check(Path(project_root), args)
        except OSError as e:
            return False, f"check '{expression}' failed: {e}"

    def validate(self, descriptor: ScriptDescriptor, project_root: Path) -> ValidationResult:
        """
        Validate a unit's outputs. A unit with no checks passes.
        """
        messages: List[str] = []
        failures = 0
        for expression in descriptor.verify:
            passed, message = self.run_check(expression, project_root)
            if not passed:
                failures += 1
                messages.append(f"FAIL {message}")
                self.logger.warning(f"{descriptor.id}: validation failed: {message}")
            else:
                messages.append(f"ok   {message}")
        return ValidationResult(
            script_id=descriptor.id,
            passed=failures == 0,
            failure_count=failures,
            messages=tuple(messages),
        )
