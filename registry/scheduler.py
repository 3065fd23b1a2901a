# registry/scheduler.py
# -*- coding: utf-8 -*-
"""
Dependency and phase scheduler.

Turns a descriptor set into a deterministic execution plan: every
dependency runs before its dependents, phases never go backwards, and
within a phase higher priority runs first with ties broken by id.
"""

import heapq
import logging
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple

from engine.errors import CycleError, PhaseOrderError, UnknownDependencyError

from .descriptor import ScriptDescriptor

module_logger = logging.getLogger(__name__)


class ExecutionPlan:
    """An immutable, ordered sequence of descriptors."""

    def __init__(self, descriptors: Iterable[ScriptDescriptor]):
        self._descriptors: Tuple[ScriptDescriptor, ...] = tuple(descriptors)

    @property
    def descriptors(self) -> Tuple[ScriptDescriptor, ...]:
        return self._descriptors

    @property
    def ids(self) -> Tuple[str, ...]:
        return tuple(d.id for d in self._descriptors)

    def __iter__(self):
        return iter(self._descriptors)

    def __len__(self) -> int:
        return len(self._descriptors)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ExecutionPlan):
            return NotImplemented
        return self.ids == other.ids

    def __repr__(self) -> str:
        return f"ExecutionPlan({list(self.ids)})"

    def dependents_of(self, script_id: str) -> List[str]:
        """Ids later in the plan that depend on `script_id`, directly or transitively."""
        blocked = {script_id}
        result = []
        for descriptor in self._descriptors:
            if descriptor.id != script_id and descriptor.depends_on & blocked:
                blocked.add(descriptor.id)
                result.append(descriptor.id)
        return result


def _find_cycle(
    descriptors: Mapping[str, ScriptDescriptor], candidates: Set[str]
) -> List[str]:
    """
    Find one dependency cycle among `candidates`, the units Kahn's algorithm
    could not schedule. Returns the chain with the first id repeated at the
    end, e.g. ['a', 'b', 'a'].
    """
    visiting: List[str] = []
    on_path: Set[str] = set()
    done: Set[str] = set()

    def visit(node: str) -> Optional[List[str]]:
        visiting.append(node)
        on_path.add(node)
        for dep in sorted(descriptors[node].depends_on):
            if dep not in candidates or dep in done:
                continue
            if dep in on_path:
                start = visiting.index(dep)
                return visiting[start:] + [dep]
            found = visit(dep)
            if found:
                return found
        visiting.pop()
        on_path.discard(node)
        done.add(node)
        return None

    for start in sorted(candidates):
        if start not in done:
            chain = visit(start)
            if chain:
                return chain
    return sorted(candidates)


def build_plan(
    descriptors: Mapping[str, ScriptDescriptor],
    current_logger: Optional[logging.Logger] = None,
) -> ExecutionPlan:
    """
    Build the execution plan for a descriptor set.

    Args:
        descriptors: Unit id -> descriptor.
        current_logger: Logger to use.

    Returns:
        The execution plan. Building the same set twice yields identical plans.

    Raises:
        UnknownDependencyError: If a unit depends on an id outside the set.
        PhaseOrderError: If a unit depends on a unit in a later phase.
        CycleError: If the dependency graph has a cycle.
    """
    logger_to_use = current_logger if current_logger else module_logger

    for script_id in sorted(descriptors):
        descriptor = descriptors[script_id]
        missing = descriptor.depends_on - set(descriptors)
        if missing:
            raise UnknownDependencyError(script_id, missing)

    in_degree: Dict[str, int] = {
        script_id: len(d.depends_on) for script_id, d in descriptors.items()
    }
    dependents: Dict[str, List[str]] = {script_id: [] for script_id in descriptors}
    for script_id, descriptor in descriptors.items():
        for dep in descriptor.depends_on:
            dependents[dep].append(script_id)

    ready: List[Tuple[int, int, str]] = [
        descriptors[script_id].sort_key()
        for script_id, degree in in_degree.items()
        if degree == 0
    ]
    heapq.heapify(ready)

    ordered: List[ScriptDescriptor] = []
    while ready:
        _, _, script_id = heapq.heappop(ready)
        ordered.append(descriptors[script_id])
        for dependent in dependents[script_id]:
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                heapq.heappush(ready, descriptors[dependent].sort_key())

    if len(ordered) != len(descriptors):
        unscheduled = set(descriptors) - {d.id for d in ordered}
        raise CycleError(_find_cycle(descriptors, unscheduled))

    for descriptor in ordered:
        for dep in sorted(descriptor.depends_on):
            dep_phase = descriptors[dep].phase
            if dep_phase > descriptor.phase:
                raise PhaseOrderError(descriptor.id, descriptor.phase, dep, dep_phase)

    plan = ExecutionPlan(ordered)
    logger_to_use.debug(f"Execution plan: {' -> '.join(plan.ids) or '(empty)'}")
    return plan


def dependency_closure(
    descriptors: Mapping[str, ScriptDescriptor], targets: Iterable[str]
) -> Dict[str, ScriptDescriptor]:
    """
    Select `targets` plus everything they transitively depend on.

    Raises:
        UnknownDependencyError: If a target or a dependency is not in the set.
    """
    selected: Dict[str, ScriptDescriptor] = {}
    stack = list(targets)
    requested_by: Dict[str, str] = {}
    while stack:
        script_id = stack.pop()
        if script_id in selected:
            continue
        if script_id not in descriptors:
            raise UnknownDependencyError(requested_by.get(script_id, script_id), [script_id])
        descriptor = descriptors[script_id]
        selected[script_id] = descriptor
