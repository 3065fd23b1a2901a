"""
Unit catalog.

This package parses the metadata headers of bootstrap unit files into
descriptors, mirrors them in a manifest and schedules them into an
execution plan.
"""

from registry.descriptor import ScriptDescriptor, ToolRequirement
from registry.scheduler import ExecutionPlan, build_plan, dependency_closure
from registry.store import DescriptorStore

__all__ = [
    "DescriptorStore",
    "ExecutionPlan",
    "ScriptDescriptor",
    "ToolRequirement",
    "build_plan",
    "dependency_closure",
]
