# engine/seeding.py
# -*- coding: utf-8 -*-
"""
First-run seeding of the project config store.

Fills the [project], [git] and [packages] sections with values detected
from the project tree and the host: project name from the git remote,
git identity and branch, Node version and package manager. Existing keys
are kept unless overwrite is requested.
"""

import logging
import re
from pathlib import Path
from typing import Dict, Optional

from common.command_utils import get_symbols, log_bootstrap
from common.file_utils import backup_file
from engine.config_models import AppSettings
from engine.config_store import ConfigStore
from engine.detector import ProjectStateDetector
from engine.errors import WriteError
from engine.tracker import ArtifactAction, ArtifactTracker

module_logger = logging.getLogger(__name__)

SEED_OWNER = "config-init"
DEFAULT_BRANCH = "main"
DEFAULT_NODE_VERSION = "20"
DEFAULT_PACKAGE_MANAGER = "pnpm"
DEFAULT_PHASE = "POC"

# First match wins.
LOCK_FILES = (
    ("pnpm-lock.yaml", "pnpm"),
    ("yarn.lock", "yarn"),
    ("package-lock.json", "npm"),
)

PHASE_PATTERN = re.compile(r"Phase[^:\n]*:\s*(\w+)")


def project_name_from_remote(url: Optional[str]) -> Optional[str]:
    """'git@github.com:acme/shop.git' -> 'shop'."""
    if not url:
        return None
    name = re.split(r"[/:]", url.rstrip("/"))[-1]
    if name.endswith(".git"):
        name = name[: -len(".git")]
    return name or None


class ConfigSeeder:
    """Detects first-run values and writes them into the config store."""

    def __init__(
        self,
        detector: ProjectStateDetector,
        store: ConfigStore,
        tracker: ArtifactTracker,
        app_settings: AppSettings,
        logger: Optional[logging.Logger] = None,
    ):
        self.detector = detector
        self.store = store
        self.tracker = tracker
        self.app_settings = app_settings
        self.logger = logger or logging.getLogger(__name__)

    def _node_version(self, root: Path) -> str:
        nvmrc = root / ".nvmrc"
        if nvmrc.is_file():
            pinned = nvmrc.read_text(encoding="utf-8").strip().lstrip("v")
            if pinned:
                return pinned
        found = self.detector.probe_tool("node")
        if found:
            return found.split(".")[0]
        return DEFAULT_NODE_VERSION

    def _project_phase(self, root: Path) -> str:
        notes = root / "CLAUDE.md"
        if notes.is_file():
            match = PHASE_PATTERN.search(notes.read_text(encoding="utf-8", errors="replace"))
            if match:
                return match.group(1)
        return DEFAULT_PHASE

    def detect(self, project_root: Path) -> Dict[str, Dict[str, str]]:
        """
        Detect seed values for `project_root`.

        Values that cannot be detected and have no sensible fallback, such
        as the git identity, are left out.

        Returns:
            {section: {key: value}}
        """
        root = Path(project_root)
        has_repo = (root / ".git").exists()
        name = (
            project_name_from_remote(
                self.detector.git_output(root, "remote", "get-url", "origin") if has_repo else None
            )
            or root.name
        )

        git: Dict[str, str] = {}
        for key, git_key in (("user_name", "user.name"), ("user_email", "user.email")):
            value = self.detector.git_output(root, "config", git_key)
            if value:
                git[key] = value
        branch = self.detector.git_output(root, "symbolic-ref", "--short", "HEAD") if has_repo else None
        git["default_branch"] = branch or DEFAULT_BRANCH

        package_manager = next(
            (manager for lock, manager in LOCK_FILES if (root / lock).exists()),
            DEFAULT_PACKAGE_MANAGER,
        )

        return {
            "project": {"name": name, "phase": self._project_phase(root)},
            "git": git,
            "packages": {
                "package_manager": package_manager,
                "node_version": self._node_version(root),
            },
        }

    def seed(self, project_root: Path, overwrite: bool = False) -> Dict[str, Dict[str, str]]:
        """
        Write detected values into the config store.

        Args:
            project_root: The target project tree.
            overwrite: Replace keys that already have a stored value.

        Returns:
            The values that were written, by section. Empty when the store
            already held everything.

        Raises:
            ConfigFileError: If the existing config file cannot be parsed.
            WriteError: If the config file cannot be backed up or written.
        """
        root = Path(project_root)
        symbols = get_symbols(self.app_settings)
        written: Dict[str, Dict[str, str]] = {}
        for section, values in self.detect(root).items():
            for key, value in values.items():
                if not overwrite and self.store.get(section, key) is not None:
                    continue
                if self.store.get(section, key) == value:
                    continue
                self.store.set(section, key, value)
                written.setdefault(section, {})[key] = value

        try:
            display = str(self.store.path.relative_to(root))
        except ValueError:
            display = str(self.store.path)

        if not written:
            self.tracker.track(display, ArtifactAction.SKIPPED, SEED_OWNER, note="already seeded")
            log_bootstrap(
                f"{symbols.get('skip', '⏭️')} {display} already holds every detected value",
                "info",
                self.logger,
                self.app_settings,
            )
            return written

        existed = self.store.exists()
        try:
            backup = backup_file(self.store.path, self.app_settings, self.logger) if existed else None
            self.store.save()
        except OSError as e:
            raise WriteError(SEED_OWNER, display, e) from e
        self.tracker.track(
            display,
            ArtifactAction.MODIFIED if existed else ArtifactAction.CREATED,
            SEED_OWNER,
            backup_path=str(backup) if backup else None,
            note=f"seeded [{'], ['.join(sorted(written))}]",
        )
        log_bootstrap(
            f"{symbols.get('success', '✅')} Seeded {sum(len(v) for v in written.values())} value(s) into {display}",
            "success",
            self.logger,
            self.app_settings,
        )
        return written
