# engine/report.py
# -*- coding: utf-8 -*-
"""
Run report: the immutable result of one engine run, its human-readable
summary, and persistence under the project's state directory.
"""

import datetime
import logging
import uuid
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, computed_field

from common.file_utils import write_file_atomic
from engine.config import RUNS_DIR_NAME, SYMBOLS
from engine.tracker import ArtifactAction, ArtifactRecord, RollbackStep
from engine.validation import ValidationResult

module_logger = logging.getLogger(__name__)

LATEST_REPORT_NAME = "latest.json"


class UnitStatus(str, Enum):
    COMPLETED = "completed"
    SKIPPED = "skipped"
    DECLINED = "declined"
    FAILED = "failed"
    NOT_RUN = "not_run"
    DRY_RUN = "dry_run"


class RunOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    force: bool = False
    auto_approve: bool = False
    dry_run: bool = False
    write_back_answers: bool = False


class UnitOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    script_id: str
    status: UnitStatus
    validation: Optional[ValidationResult] = None
    facts: Dict[str, bool] = Field(default_factory=dict)
    message: Optional[str] = None


class FatalError(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: str
    script_id: Optional[str] = None
    detail: str


class RunReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    run_id: str
    project_root: str
    started_at: datetime.datetime
    finished_at: datetime.datetime
    plan: Tuple[str, ...] = ()
    options: RunOptions = Field(default_factory=RunOptions)
    outcomes: Tuple[UnitOutcome, ...] = ()
    records: Tuple[ArtifactRecord, ...] = ()
    fatal_error: Optional[FatalError] = None
    cancelled: bool = False
    rollback_plan: Tuple[RollbackStep, ...] = ()

    @computed_field
    @property
    def green(self) -> bool:
        """True when every validated unit passed."""
        return all(o.validation.passed for o in self.outcomes if o.validation is not None)

    @computed_field
    @property
    def exit_code(self) -> int:
        return 1 if self.fatal_error is not None or self.cancelled else 0

    def outcome(self, script_id: str) -> Optional[UnitOutcome]:
        for outcome in self.outcomes:
            if outcome.script_id == script_id:
                return outcome
        return None

    def records_by_action(self) -> Dict[str, List[str]]:
        grouped: Dict[str, List[str]] = {action.value: [] for action in ArtifactAction}
        for record in self.records:
            grouped[record.action.value].append(record.path)
        return grouped


def new_run_id() -> str:
    """Sortable, unique run id: '<YYYYmmdd-HHMMSS>-<6 hex>'."""
    stamp = datetime.datetime.now().strftime("%Y%m%d-%H%M%S")
    return f"{stamp}-{uuid.uuid4().hex[:6]}"


def render_summary(report: RunReport, symbols: Optional[Dict[str, str]] = None) -> str:
    """
    Human-readable run summary: artifact lists, the validation table, the
    fatal error if any and the rollback plan.
    """
    symbols = symbols or SYMBOLS
    lines: List[str] = []
    lines.append("=" * 60)
    lines.append(f"  BOOTSTRAP RUN {report.run_id}")
    lines.append(f"  Project: {report.project_root}")
    if report.options.dry_run:
        lines.append("  Mode: dry run (nothing was written)")
    lines.append("=" * 60)

    labels = {
        "created": symbols.get("success", "✅"),
        "modified": symbols.get("gear", "⚙️"),
        "skipped": symbols.get("skip", "⏭️"),
        "deleted": symbols.get("error", "❌"),
        "warned": symbols.get("warning", "⚠️"),
    }
    grouped = report.records_by_action()
    for action, paths in grouped.items():
        lines.append(f"{labels[action]} {action.capitalize()}: {len(paths)}")
        for path in paths:
            lines.append(f"    {path}")

    lines.append("")
    lines.append("Units:")
    for outcome in report.outcomes:
        if outcome.validation is None:
            check = "-"
        elif outcome.validation.passed:
            check = "PASS"
        else:
            check = f"FAIL ({outcome.validation.failure_count})"
        message = f"  {outcome.message}" if outcome.message else ""
        lines.append(f"    {outcome.script_id:<24} {outcome.status.value:<10} {check}{message}")

    if report.fatal_error is not None:
        lines.append("")
        lines.append(
            f"{symbols.get('critical', '🔥')} Fatal {report.fatal_error.kind} error"
            f"{f' in {report.fatal_error.script_id}' if report.fatal_error.script_id else ''}: "
            f"{report.fatal_error.detail}"
        )
    if report.cancelled:
        lines.append(f"{symbols.get('warning', '⚠️')} Run cancelled by operator")

    if report.rollback_plan:
        lines.append("")
        lines.append(f"Rollback plan (run from {report.project_root}, not executed):")
        for step in report.rollback_plan:
            lines.append(f"    {step.command}")

    lines.append("")
    status = "GREEN" if report.green else "RED"
    lines.append(f"Validation: {status}   Exit code: {report.exit_code}")
    return "\n".join(lines)


def save_report(
    report: RunReport,
    state_dir: Path,
    current_logger: Optional[logging.Logger] = None,
) -> Path:
    """
    Persist a report as '<state_dir>/runs/<run_id>.json' and refresh
    '<state_dir>/runs/latest.json'.

    Returns:
        Path of the run-specific report file.

    Raises:
        OSError: If a file cannot be written.
    """
    logger_to_use = current_logger if current_logger else module_logger
    runs_dir = Path(state_dir) / RUNS_DIR_NAME
    content = report.model_dump_json(indent=2).encode("utf-8")
    report_path = runs_dir / f"{report.run_id}.json"
    write_file_atomic(report_path, content)
    write_file_atomic(runs_dir / LATEST_REPORT_NAME, content)
    logger_to_use.debug(f"Saved run report to {report_path}")
    return report_path


def load_report(path: Path) -> RunReport:
    """
    Raises:
        FileNotFoundError: If the report does not exist.
        pydantic.ValidationError: If the file is not a run report.
    """
    return RunReport.model_validate_json(Path(path).read_text(encoding="utf-8"))
