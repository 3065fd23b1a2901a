# registry/descriptor.py
# -*- coding: utf-8 -*-
"""
Pydantic models describing one bootstrap unit.

A ScriptDescriptor is built from the metadata header of a 'bootstrap-*.sh'
file and is immutable once loaded.
"""

import re
from enum import Enum
from pathlib import Path
from typing import Any, Dict, FrozenSet, Optional, Tuple

from packaging.version import InvalidVersion, Version
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from engine.config import SCRIPT_ID_PREFIX

ID_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
SEMVER_PATTERN = re.compile(r"^\d+\.\d+\.\d+$")
VERSION_IN_OUTPUT = re.compile(r"\d+(?:\.\d+)+|\d+")
TOOL_PREFIX = "tool"


class Category(str, Enum):
    CORE = "core"
    VCS = "vcs"
    NODEJS = "nodejs"
    PYTHON = "python"
    DATABASE = "database"
    DOCS = "docs"
    CONFIG = "config"
    DEPLOY = "deploy"
    TEST = "test"
    AI = "ai"
    BUILD = "build"
    SECURITY = "security"


class Comparison(str, Enum):
    MIN = "min"
    MAX = "max"
    EXACT = "exact"


def normalize_script_id(raw_id: str) -> str:
    """Strip the 'bootstrap-' file prefix from a unit id."""
    raw_id = raw_id.strip()
    if raw_id.startswith(SCRIPT_ID_PREFIX):
        return raw_id[len(SCRIPT_ID_PREFIX):]
    return raw_id


def extract_version(output: str) -> Optional[str]:
    """Pull the first dotted version number out of '<tool> --version' output."""
    match = VERSION_IN_OUTPUT.search(output or "")
    return match.group(0) if match else None


def is_directory_target(path: str) -> bool:
    return path.endswith("/")


class ToolRequirement(BaseModel):
    """A required tool, optionally constrained by version."""

    model_config = ConfigDict(frozen=True)

    name: str
    version: Optional[str] = None
    comparison: Comparison = Comparison.MIN

    @classmethod
    def parse(cls, spec: str) -> "ToolRequirement":
        """
        Parse the header syntax '[tool:]name[:version[:comparison]]'.

        Examples: 'docker', 'tool:openssl', 'node:18.0.0', 'python3:3.12:max'.

        Raises:
            ValueError: If the spec has too many parts or a bad comparison.
        """
        parts = [p.strip() for p in spec.strip().split(":")]
        if parts[0] == TOOL_PREFIX and len(parts) > 1:
            parts = parts[1:]
        if not parts[0] or len(parts) > 3:
            raise ValueError(f"malformed tool requirement '{spec}'")
        name = parts[0]
        version = parts[1] if len(parts) > 1 and parts[1] else None
        comparison = Comparison(parts[2]) if len(parts) > 2 else Comparison.MIN
        return cls(name=name, version=version, comparison=comparison)

    def is_satisfied_by(self, found_version: Optional[str]) -> bool:
        """
        Check a detected version string against this requirement.

        A requirement without a version is satisfied by any detected tool,
        including one whose version could not be read.
        """
        if self.version is None:
            return True
        if not found_version:
            return False
        try:
            found = Version(found_version)
            wanted = Version(self.version)
        except InvalidVersion:
            return False
        if self.comparison == Comparison.MIN:
            return found >= wanted
        if self.comparison == Comparison.MAX:
            return found <= wanted
        return found == wanted

    def __str__(self) -> str:
        if self.version is None:
            return self.name
        return f"{self.name}:{self.version}:{self.comparison.value}"


class ScriptDescriptor(BaseModel):
    """Typed, validated metadata of one bootstrap unit."""

    model_config = ConfigDict(frozen=True)

    id: str
    version: str
    phase: int = Field(ge=1, le=5)
    category: Category
    priority: int = Field(ge=1, le=100)
    short_description: str = Field(min_length=1)
    long_description: str = ""

    depends_on: FrozenSet[str] = frozenset()
    detects: Tuple[str, ...] = ()
    creates: Tuple[str, ...] = ()
    modifies: Tuple[str, ...] = ()
    deletes: Tuple[str, ...] = ()
    requires_tools: Tuple[ToolRequirement, ...] = ()
    requires_env: Tuple[str, ...] = ()
    env_vars: Tuple[str, ...] = ()

    safe: bool = True
    idempotent: bool = False
    optional: bool = False

    config_section: str = ""
    defaults: Dict[str, str] = Field(default_factory=dict)
    mutates: Tuple[str, ...] = ()
    verify: Tuple[str, ...] = ()
    tags: Tuple[str, ...] = ()
    docs: str = ""
    source_path: Optional[Path] = None

    @model_validator(mode="before")
    @classmethod
    def _default_config_section(cls, data: Any) -> Any:
        if isinstance(data, dict):
            raw_id = normalize_script_id(str(data.get("id", "")))
            section = (data.get("config_section") or "").strip()
            if not section or section == "none":
                data = {**data, "config_section": raw_id}
        return data

    @field_validator("id")
    @classmethod
    def _check_id(cls, value: str) -> str:
        value = normalize_script_id(value)
        if not ID_PATTERN.match(value):
            raise ValueError(f"'{value}' is not a kebab-case id")
        return value

    @field_validator("version")
    @classmethod
    def _check_version(cls, value: str) -> str:
        if not SEMVER_PATTERN.match(value.strip()):
            raise ValueError(f"'{value}' is not MAJOR.MINOR.PATCH")
        return value.strip()

    @field_validator("depends_on", mode="before")
    @classmethod
    def _normalize_depends(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple, set, frozenset)):
            return frozenset(normalize_script_id(str(v)) for v in value)
        return value

    @model_validator(mode="after")
    def _check_self_dependency(self) -> "ScriptDescriptor":
        if self.id in self.depends_on:
            raise ValueError(f"unit '{self.id}' depends on itself")
        return self

    @property
    def targets(self) -> Tuple[str, ...]:
        """Every path the unit declares it touches."""
        return self.creates + self.modifies + self.deletes

    @property
    def file_targets(self) -> Tuple[str, ...]:
        """Declared targets that are rendered from a template."""
        return tuple(
            p for p in self.creates + self.modifies if not is_directory_target(p)
        )

    @property
    def predicates(self) -> Tuple[str, ...]:
        """Detection predicates named by 'detects' and 'mutates'."""
        seen: Dict[str, None] = {}
        for name in self.detects + self.mutates:
            seen.setdefault(name, None)
        return tuple(seen)

    def sort_key(self) -> Tuple[int, int, str]:
        """Scheduling order: phase ascending, priority descending, id ascending."""
        return (self.phase, -self.priority, self.id)
