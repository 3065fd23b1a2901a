# engine/errors.py
# -*- coding: utf-8 -*-
"""
Error hierarchy for the bootstrap engine.

Plan-building errors (metadata, scheduling) are raised before anything is
written. Execution-time errors (precondition, config, write) are caught by the
execution engine at unit boundaries and recorded in the run report.
Validation failures are never raised; they are data on the report.
"""

from typing import Iterable, List, Optional


class BootstrapError(Exception):
    """Base class for all engine errors."""

    kind = "bootstrap"
    script_id: Optional[str] = None


class MetadataError(BootstrapError):
    """A unit's metadata is malformed, undeclared or drifted from the manifest."""

    kind = "metadata"

    def __init__(self, script_id: Optional[str], field: str, detail: str):
        self.script_id = script_id
        self.field = field
        self.detail = detail
        super().__init__(
            f"[{script_id or '<unknown>'}] invalid '{field}': {detail}"
        )


class TemplateNotFoundError(MetadataError):
    """A declared artifact has no template blob."""

    def __init__(self, script_id: str, template_id: str):
        self.template_id = template_id
        super().__init__(script_id, "creates", f"no template '{template_id}'")


class DescriptorNotFoundError(KeyError, BootstrapError):
    """No unit is registered under the requested id."""

    kind = "not_found"

    def __init__(self, script_id: str):
        self.script_id = script_id
        super().__init__(script_id)

    def __str__(self) -> str:
        return f"No bootstrap unit registered with id '{self.script_id}'"


class SchedulingError(BootstrapError):
    """The descriptor set cannot be turned into an execution plan."""

    kind = "scheduling"


class CycleError(SchedulingError):
    """The depends-on graph contains a cycle."""

    kind = "cycle"

    def __init__(self, chain: List[str]):
        self.chain = list(chain)
        self.script_id = chain[0] if chain else None
        super().__init__(f"Dependency cycle detected: {' -> '.join(chain)}")


class UnknownDependencyError(SchedulingError):
    """A unit depends on an id that is not in the descriptor set."""

    kind = "unknown_dependency"

    def __init__(self, script_id: str, missing: Iterable[str]):
        self.script_id = script_id
        self.missing = sorted(missing)
        super().__init__(
            f"[{script_id}] depends on unknown unit(s): {', '.join(self.missing)}"
        )


class PhaseOrderError(SchedulingError):
    """A unit depends on a unit scheduled in a later phase."""

    kind = "phase_order"

    def __init__(self, script_id: str, phase: int, dependency: str, dependency_phase: int):
        self.script_id = script_id
        self.dependency = dependency
        super().__init__(
            f"[{script_id}] phase {phase} depends on '{dependency}' in later phase {dependency_phase}"
        )


class PreconditionError(BootstrapError):
    """A required tool or environment variable is missing."""

    kind = "precondition"

    def __init__(self, script_id: str, missing: List[str]):
        self.script_id = script_id
        self.missing = list(missing)
        super().__init__(
            f"[{script_id}] missing precondition(s): {', '.join(self.missing)}"
        )


class ConfigError(BootstrapError):
    """A configuration key has no value at any layer and no default."""

    kind = "config"

    def __init__(self, section: str, key: str, script_id: Optional[str] = None):
        self.section = section
        self.key = key
        self.script_id = script_id
        super().__init__(
            f"No value for '{section}.{key}' in env, answers, config file or defaults"
        )


class ConfigFileError(BootstrapError):
    """The project config file exists but cannot be read or parsed."""

    kind = "config_file"

    def __init__(self, path: str, detail: str, script_id: Optional[str] = None):
        self.path = path
        self.detail = detail
        self.script_id = script_id
        super().__init__(f"Cannot read config file '{path}': {detail}")


class WriteError(BootstrapError):
    """A filesystem write failed while producing an artifact."""

    kind = "write"

    def __init__(self, script_id: str, path: str, cause: BaseException):
        self.script_id = script_id
        self.path = path
        self.cause = cause
        super().__init__(f"[{script_id}] failed to write '{path}': {cause}")


class RunCancelled(BootstrapError):
    """The operator cancelled the run."""

    kind = "cancelled"

    def __init__(self, script_id: Optional[str] = None):
        self.script_id = script_id
        super().__init__(
            f"Run cancelled by operator{f' after {script_id}' if script_id else ''}"
        )
