# engine/detector.py
# -*- coding: utf-8 -*-
"""
Project state detection.

Probes the target project tree and the host once per run: which tools are
installed and at what version, which well-known files exist, and whether
the tree is a git repository. Facts are named predicates such as
'has_package_json' or 'has_docker'; the predicate table lives in
'common/constants.yaml'.
"""

import datetime
import logging
import subprocess
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from common.command_utils import command_exists, get_symbols, log_bootstrap, run_command
from common.constants_loader import get_file_predicates, get_probed_tools, get_version_flags
from engine.config_models import AppSettings
from engine.errors import MetadataError
from registry.descriptor import extract_version

module_logger = logging.getLogger(__name__)

GIT_REPO_PREDICATE = "has_git_repo"


def tool_predicate(tool: str) -> str:
    """Fact name for a tool, e.g. 'docker-compose' -> 'has_docker_compose'."""
    return "has_" + tool.replace("-", "_").replace(".", "_")


class ProjectState(BaseModel):
    """Snapshot of the project tree and host tools at one point in time."""

    model_config = ConfigDict(frozen=True)

    root: Path
    tools: Dict[str, Optional[str]] = Field(default_factory=dict)
    facts: Dict[str, bool] = Field(default_factory=dict)
    git_branch: Optional[str] = None
    detected_at: datetime.datetime = Field(
        default_factory=lambda: datetime.datetime.now(datetime.timezone.utc)
    )

    def has_tool(self, name: str) -> bool:
        return self.tools.get(name) is not None


class ProjectStateDetector:
    """
    Detects project facts and tool availability.

    The detector never writes to the project tree.
    """

    def __init__(
        self,
        app_settings: AppSettings,
        extra_tools: Iterable[str] = (),
        logger: Optional[logging.Logger] = None,
    ):
        self.app_settings = app_settings
        self.logger = logger or logging.getLogger(__name__)
        self.file_predicates: Dict[str, str] = get_file_predicates()
        tools: Dict[str, None] = {}
        for tool in list(get_probed_tools()) + list(extra_tools):
            tools.setdefault(tool, None)
        self.tools: List[str] = list(tools)
        self._tool_predicates: Dict[str, str] = {
            tool_predicate(tool): tool for tool in self.tools
        }

    @property
    def known_predicates(self) -> FrozenSet[str]:
        return frozenset(
            list(self.file_predicates) + list(self._tool_predicates) + [GIT_REPO_PREDICATE]
        )

    def validate_predicates(
        self, names: Iterable[str], script_id: Optional[str] = None
    ) -> None:
        """
        Raises:
            MetadataError: Listing every name that is not a declared predicate.
        """
        unknown = sorted(set(names) - self.known_predicates)
        if unknown:
            raise MetadataError(
                script_id, "detects", f"unknown predicate(s): {', '.join(unknown)}"
            )

    def probe_tool(self, name: str) -> Optional[str]:
        """
        Probe one tool.

        Returns:
            The version string, '' when the tool exists but its version could
            not be read, or None when the tool is not installed.
        """
        if not command_exists(name):
            return None
        try:
            result = run_command(
                [name] + get_version_flags(name),
                self.app_settings,
                check=False,
                capture_output=True,
                current_logger=self.logger,
                timeout=self.app_settings.tool_probe_timeout,
            )
        except (OSError, subprocess.SubprocessError) as e:
            self.logger.debug(f"Could not read version of {name}: {e}")
            return ""
        output = f"{result.stdout or ''}\n{result.stderr or ''}"
        return extract_version(output) or ""

    def git_output(self, root: Path, *args: str) -> Optional[str]:
        """
        Stripped stdout of `git <args>` run in `root`.

        Returns:
            None when git is missing, fails or prints nothing.
        """
        if not command_exists("git"):
            return None
        try:
            result = run_command(
                ["git"] + list(args),
                self.app_settings,
                check=False,
                capture_output=True,
                current_logger=self.logger,
                cwd=str(root),
                timeout=self.app_settings.tool_probe_timeout,
            )
        except (OSError, subprocess.SubprocessError) as e:
            self.logger.debug(f"Could not run git {' '.join(args)} in {root}: {e}")
            return None
        output = (result.stdout or "").strip()
        return output if result.returncode == 0 and output else None

    def _git_branch(self, root: Path) -> Optional[str]:
        return self.git_output(root, "rev-parse", "--abbrev-ref", "HEAD")

    def detect(self, project_root: Path) -> ProjectState:
        """
        Take a full snapshot of `project_root` and the host tools.

        Args:
            project_root: The target project tree.

        Returns:
            A new ProjectState.
        """
        symbols = get_symbols(self.app_settings)
        root = Path(project_root)

        tools = {tool: self.probe_tool(tool) for tool in self.tools}
        facts: Dict[str, bool] = {
            name: (root / rel).exists() for name, rel in self.file_predicates.items()
        }
        for predicate, tool in self._tool_predicates.items():
            facts[predicate] = tools[tool] is not None
        facts[GIT_REPO_PREDICATE] = (root / ".git").exists()
        branch = self._git_branch(root) if facts[GIT_REPO_PREDICATE] else None

        found = sorted(name for name, present in facts.items() if present)
        log_bootstrap(
            f"{symbols.get('info', 'ℹ️')} Detected {len(found)} fact(s) in {root}: {', '.join(found) or 'none'}",
            "debug",
            self.logger,
        )
        return ProjectState(root=root, tools=tools, facts=facts, git_branch=branch)

    def evaluate(
        self, state: ProjectState, predicate: str, script_id: Optional[str] = None
    ) -> bool:
        """
        Evaluate one predicate against a snapshot.

        Raises:
            MetadataError: If the predicate is not declared.
        """
        if predicate not in self.known_predicates:
            raise MetadataError(script_id, "detects", f"unknown predicate '{predicate}'")
        return bool(state.facts.get(predicate, False))

    def refresh(self, state: ProjectState, predicates: Iterable[str]) -> ProjectState:
        """
        Re-probe only the given predicates and return a new snapshot.

        Raises:
            MetadataError: If any predicate is not declared.
        """
        names = list(predicates)
        self.validate_predicates(names)
        facts = dict(state.facts)
        tools = dict(state.tools)
        branch = state.git_branch

        for name in names:
            if name in self.file_predicates:
                facts[name] = (state.root / self.file_predicates[name]).exists()
            elif name in self._tool_predicates:
                tool = self._tool_predicates[name]
                tools[tool] = self.probe_tool(tool)
                facts[name] = tools[tool] is not None
            elif name == GIT_REPO_PREDICATE:
                facts[name] = (state.root / ".git").exists()
                branch = self._git_branch(state.root) if facts[name] else None

        self.logger.debug(f"Refreshed fact(s): {', '.join(names) or 'none'}")
        return state.model_copy(
            update={
                "facts": facts,
                "tools": tools,
                "git_branch": branch,
                "detected_at": datetime.datetime.now(datetime.timezone.utc),
            }
        )
