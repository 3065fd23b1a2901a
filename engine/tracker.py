# engine/tracker.py
# -*- coding: utf-8 -*-
"""
Artifact tracking for a run.

Every filesystem action the engine takes, or decides not to take, is
recorded here in order. The records feed the run summary and the rollback
plan.
"""

import datetime
import logging
import shlex
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from common.logging_config import log_artifact_event

module_logger = logging.getLogger(__name__)


class ArtifactAction(str, Enum):
    CREATED = "created"
    MODIFIED = "modified"
    SKIPPED = "skipped"
    DELETED = "deleted"
    WARNED = "warned"


class ArtifactRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str
    action: ArtifactAction
    owning_script_id: str
    timestamp: datetime.datetime = Field(
        default_factory=lambda: datetime.datetime.now(datetime.timezone.utc)
    )
    backup_path: Optional[str] = None
    note: Optional[str] = None


class RollbackStep(BaseModel):
    """One manual step that undoes an artifact action."""

    model_config = ConfigDict(frozen=True)

    path: str
    operation: str  # delete | restore | manual
    owning_script_id: str
    backup_path: Optional[str] = None
    command: str


class ArtifactTracker:
    """Append-only log of artifact actions."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self._records: List[ArtifactRecord] = []

    @property
    def records(self) -> List[ArtifactRecord]:
        return list(self._records)

    def record(self, record: ArtifactRecord) -> ArtifactRecord:
        self._records.append(record)
        log_artifact_event(
            record.action.value, record.path, record.owning_script_id, record.note
        )
        return record

    def track(
        self,
        path: str,
        action: ArtifactAction,
        script_id: str,
        backup_path: Optional[str] = None,
        note: Optional[str] = None,
    ) -> ArtifactRecord:
        return self.record(
            ArtifactRecord(
                path=path,
                action=action,
                owning_script_id=script_id,
                backup_path=backup_path,
                note=note,
            )
        )

    def reset(self) -> None:
        """Forget every record; called at the start of each run."""
        self._records.clear()

    def records_for(self, script_id: str) -> List[ArtifactRecord]:
        return [r for r in self._records if r.owning_script_id == script_id]

    def summary(self) -> Dict[str, List[str]]:
        """
        Paths grouped by action, in recording order.

        Returns:
            {'created': [...], 'modified': [...], 'skipped': [...],
             'deleted': [...], 'warned': [...]}
        """
        grouped: Dict[str, List[str]] = {action.value: [] for action in ArtifactAction}
        for record in self._records:
            grouped[record.action.value].append(record.path)
        return grouped

    def rollback_plan(self) -> List[RollbackStep]:
        """
        Steps that undo the run, most recent action first.

        Created paths are deleted. Modified and deleted paths are restored
        from their backup; without a backup the step is manual. The plan is
        never executed by the engine.
        """
        steps: List[RollbackStep] = []
        for record in reversed(self._records):
            quoted = shlex.quote(record.path)
            if record.action == ArtifactAction.CREATED:
                steps.append(
                    RollbackStep(
                        path=record.path,
                        operation="delete",
                        owning_script_id=record.owning_script_id,
                        command=f"rm -rf {quoted}",
                    )
                )
            elif record.action in (ArtifactAction.MODIFIED, ArtifactAction.DELETED):
                if record.backup_path:
                    steps.append(
                        RollbackStep(
                            path=record.path,
                            operation="restore",
                            owning_script_id=record.owning_script_id,
                            backup_path=record.backup_path,
                            command=f"rm -rf {quoted} && cp -a {shlex.quote(record.backup_path)} {quoted}",
                        )
                    )
                else:
                    steps.append(
                        RollbackStep(
                            path=record.path,
                            operation="manual",
                            owning_script_id=record.owning_script_id,
                            command=f"# no backup of {quoted}; restore it by hand",
                        )
                    )
        return steps
