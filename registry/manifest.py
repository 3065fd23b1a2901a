# registry/manifest.py
# -*- coding: utf-8 -*-
"""
Manifest of the unit catalog.

The manifest is a machine-readable mirror of every unit header:

    {
      "version": "2.0.0",
      "generated": "2025-12-08T10:00:00+00:00",
      "generator": "bootstrap-engine",
      "scripts": {
        "docker": {"version": "1.2.0", "phase": 3, ...}
      }
    }

It is written as JSON and read with PyYAML, so a hand-maintained YAML
manifest works as well.
"""

import datetime
import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import yaml

from engine.config import ENGINE_VERSION
from engine.errors import MetadataError
from common.file_utils import write_file_atomic

from .descriptor import ScriptDescriptor

module_logger = logging.getLogger(__name__)

ManifestEntry = Dict[str, Any]

GENERATOR_NAME = "bootstrap-engine"

# Manifest fields whose order carries no meaning.
UNORDERED_FIELDS = frozenset(["depends", "detects", "tags", "mutates"])


def build_entry(descriptor: ScriptDescriptor) -> ManifestEntry:
    """Manifest entry for one descriptor."""
    return {
        "version": descriptor.version,
        "phase": descriptor.phase,
        "category": descriptor.category.value,
        "priority": descriptor.priority,
        "short": descriptor.short_description,
        "description": descriptor.long_description,
        "safe": descriptor.safe,
        "idempotent": descriptor.idempotent,
        "optional": descriptor.optional,
        "creates": list(descriptor.creates),
        "modifies": list(descriptor.modifies),
        "deletes": list(descriptor.deletes),
        "depends": sorted(descriptor.depends_on),
        "requires": [str(r) for r in descriptor.requires_tools],
        "requires_env": list(descriptor.requires_env),
        "detects": list(descriptor.detects),
        "mutates": list(descriptor.mutates),
        "tags": list(descriptor.tags),
        "config_section": descriptor.config_section,
        "defaults": dict(sorted(descriptor.defaults.items())),
        "env_vars": list(descriptor.env_vars),
        "verify": list(descriptor.verify),
        "docs": descriptor.docs,
    }


def build_manifest(descriptors: Iterable[ScriptDescriptor]) -> Dict[str, Any]:
    """Full manifest document for a descriptor set, ids sorted."""
    ordered = sorted(descriptors, key=lambda d: d.id)
    return {
        "version": ENGINE_VERSION,
        "generated": datetime.datetime.now(datetime.timezone.utc).isoformat(
            timespec="seconds"
        ),
        "generator": GENERATOR_NAME,
        "scripts": {d.id: build_entry(d) for d in ordered},
    }


def write_manifest(
    path: Path,
    descriptors: Iterable[ScriptDescriptor],
    current_logger: Optional[logging.Logger] = None,
) -> Path:
    """
    Write the manifest for `descriptors` to `path` as JSON.

    Raises:
        OSError: If the file cannot be written.
    """
    logger_to_use = current_logger if current_logger else module_logger
    manifest = build_manifest(descriptors)
    content = json.dumps(manifest, indent=2, ensure_ascii=False) + "\n"
    write_file_atomic(path, content.encode("utf-8"))
    logger_to_use.info(
        f"Wrote manifest with {len(manifest['scripts'])} unit(s) to {path}"
    )
    return path


def load_manifest(path: Path) -> Dict[str, ManifestEntry]:
    """
    Read the 'scripts' table of a manifest file.

    Returns:
        Unit id -> manifest entry. Ids carry no 'bootstrap-' prefix.

    Raises:
        FileNotFoundError: If the manifest does not exist.
        MetadataError: If the file is not a manifest document.
    """
    with open(path, "r", encoding="utf-8") as f:
        try:
            document = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise MetadataError(None, "manifest", f"{path} is not valid JSON/YAML: {e}")

    if not isinstance(document, dict) or not isinstance(document.get("scripts"), dict):
        raise MetadataError(None, "manifest", f"{path} has no 'scripts' table")

    entries: Dict[str, ManifestEntry] = {}
    for script_id, entry in document["scripts"].items():
        if not isinstance(entry, dict):
            raise MetadataError(str(script_id), "manifest", "entry is not a mapping")
        entries[str(script_id)] = entry
    return entries


def _comparable(field: str, value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        items = [str(v) for v in value]
        return sorted(items) if field in UNORDERED_FIELDS else items
    if isinstance(value, dict):
        return {str(k): str(v) for k, v in value.items()}
    if value is None:
        return None
    return value if isinstance(value, (bool, int)) else str(value)


def detect_drift(descriptor: ScriptDescriptor, entry: ManifestEntry) -> List[str]:
    """
    Compare a descriptor with its manifest entry.

    Only fields present in the entry are compared, so older manifests that
    lack newer fields do not drift.

    Returns:
        Names of the differing fields, sorted.
    """
    expected = build_entry(descriptor)
    drifted = []
    for field, value in entry.items():
        if field not in expected:
            continue
        if _comparable(field, value) != _comparable(field, expected[field]):
            drifted.append(field)
    return sorted(drifted)
