# registry/store.py
# -*- coding: utf-8 -*-
"""
Descriptor store for bootstrap units.

The store parses every unit file in the catalog once, keeps the valid
descriptors and records a MetadataError for every unit that cannot be
trusted: malformed headers, duplicate ids and drift from the manifest.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Set

from engine.config import SCRIPT_GLOB
from engine.errors import DescriptorNotFoundError, MetadataError

from .descriptor import ScriptDescriptor
from .header_parser import parse_script
from .manifest import detect_drift, load_manifest

module_logger = logging.getLogger(__name__)


class DescriptorStore:
    """
    In-memory catalog of unit descriptors.

    Descriptors are loaded by load_all() and never change afterwards. Units
    that failed to load are listed in 'errors'; the caller decides whether
    that aborts the run or only removes the flagged units.
    """

    def __init__(
        self,
        scripts_dir: Path,
        manifest_path: Optional[Path] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.scripts_dir = Path(scripts_dir)
        self.manifest_path = Path(manifest_path) if manifest_path else None
        self.logger = logger or logging.getLogger(__name__)
        self.errors: List[MetadataError] = []
        self._descriptors: Dict[str, ScriptDescriptor] = {}
        self._loaded = False

    def load_all(self) -> Dict[str, ScriptDescriptor]:
        """
        Parse every unit file in the scripts directory.

        Returns:
            Unit id -> descriptor for every unit that loaded cleanly.
        """
        self.errors = []
        descriptors: Dict[str, ScriptDescriptor] = {}

        if not self.scripts_dir.is_dir():
            self.logger.warning(f"Scripts directory {self.scripts_dir} does not exist")
        else:
            for path in sorted(self.scripts_dir.glob(SCRIPT_GLOB)):
                try:
                    descriptor = parse_script(path)
                except MetadataError as e:
                    self._flag(e)
                    continue
                except OSError as e:
                    self._flag(MetadataError(path.stem, "file", f"cannot read {path}: {e}"))
                    continue

                if descriptor.id in descriptors:
                    self._flag(
                        MetadataError(
                            descriptor.id,
                            "script",
                            f"duplicate id also declared by {descriptors[descriptor.id].source_path}",
                        )
                    )
                    continue
                descriptors[descriptor.id] = descriptor

        if self.manifest_path is not None and self.manifest_path.exists():
            descriptors = self._check_manifest(descriptors)

        self._descriptors = descriptors
        self._loaded = True
        self.logger.debug(
            f"Loaded {len(descriptors)} unit(s) from {self.scripts_dir}, "
            f"{len(self.errors)} flagged"
        )
        return dict(descriptors)

    def _flag(self, error: MetadataError) -> None:
        self.logger.warning(f"Flagged unit: {error}")
        self.errors.append(error)

    def _check_manifest(
        self, descriptors: Dict[str, ScriptDescriptor]
    ) -> Dict[str, ScriptDescriptor]:
        try:
            entries = load_manifest(self.manifest_path)
        except MetadataError as e:
            self._flag(e)
            return descriptors

        clean: Dict[str, ScriptDescriptor] = {}
        for script_id, descriptor in descriptors.items():
            entry = entries.get(script_id)
            if entry is None:
                self._flag(MetadataError(script_id, "manifest", "unit is missing from the manifest"))
                continue
            drifted = detect_drift(descriptor, entry)
            if drifted:
                self._flag(
                    MetadataError(
                        script_id,
                        drifted[0],
                        f"header differs from manifest in: {', '.join(drifted)}",
                    )
                )
                continue
            clean[script_id] = descriptor

        for script_id in sorted(set(entries) - set(descriptors)):
            if not any(e.script_id == script_id for e in self.errors):
                self._flag(MetadataError(script_id, "manifest", "manifest entry has no unit file"))
        return clean

    @property
    def flagged_ids(self) -> Set[str]:
        return {e.script_id for e in self.errors if e.script_id}

    def get(self, script_id: str) -> ScriptDescriptor:
        """
        Get a descriptor by id.

        Raises:
            DescriptorNotFoundError: If no unit is registered under the id.
        """
        if not self._loaded:
            self.load_all()
        if script_id not in self._descriptors:
            raise DescriptorNotFoundError(script_id)
        return self._descriptors[script_id]

    def all(self) -> Dict[str, ScriptDescriptor]:
        if not self._loaded:
            self.load_all()
        return dict(self._descriptors)

    def usable_descriptors(self) -> Dict[str, ScriptDescriptor]:
        """
        Drop flagged units and, transitively, every unit depending on one.

        Used by the 'skip' metadata policy. Each removal is logged.
        """
        remaining = self.all()
        removed = set(self.flagged_ids)
        changed = True
        while changed:
            changed = False
            for script_id, descriptor in sorted(remaining.items()):
                if script_id in removed:
                    continue
                blocked = descriptor.depends_on & removed
                if blocked:
                    self.logger.warning(
                        f"Skipping '{script_id}': depends on flagged unit(s) {', '.join(sorted(blocked))}"
                    )
                    removed.add(script_id)
                    changed = True
        return {k: v for k, v in remaining.items() if k not in removed}
