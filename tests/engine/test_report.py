import datetime
import json
from pathlib import Path

from engine.report import (
    FatalError,
    RunReport,
    UnitOutcome,
    UnitStatus,
    load_report,
    new_run_id,
    render_summary,
    save_report,
)
from engine.tracker import ArtifactAction, ArtifactRecord, RollbackStep
from engine.validation import ValidationResult

NOW = datetime.datetime(2026, 1, 2, 3, 4, 5, tzinfo=datetime.timezone.utc)


def _report(**fields) -> RunReport:
    data = dict(
        run_id="20260102-030405-abcdef",
        project_root="/work/demo",
        started_at=NOW,
        finished_at=NOW,
        plan=("git", "docker"),
        outcomes=(
            UnitOutcome(
                script_id="git",
                status=UnitStatus.COMPLETED,
                validation=ValidationResult(script_id="git", passed=True),
            ),
            UnitOutcome(
                script_id="docker",
                status=UnitStatus.COMPLETED,
                validation=ValidationResult(script_id="docker", passed=False, failure_count=1),
            ),
        ),
        records=(
            ArtifactRecord(path=".gitignore", action=ArtifactAction.CREATED, owning_script_id="git"),
            ArtifactRecord(path="Dockerfile", action=ArtifactAction.SKIPPED, owning_script_id="docker"),
        ),
        rollback_plan=(
            RollbackStep(path=".gitignore", operation="delete", owning_script_id="git", command="rm -rf .gitignore"),
        ),
    )
    data.update(fields)
    return RunReport(**data)


def test_green_and_exit_code():
    report = _report()
    assert report.green is False
    assert report.exit_code == 0

    fatal = _report(fatal_error=FatalError(kind="write", script_id="docker", detail="disk full"))
    assert fatal.exit_code == 1
    assert _report(cancelled=True).exit_code == 1
    assert _report(outcomes=()).green is True


def test_render_summary():
    text = render_summary(_report(fatal_error=FatalError(kind="write", script_id="docker", detail="disk full")))

    assert "BOOTSTRAP RUN 20260102-030405-abcdef" in text
    assert "Created: 1" in text
    assert "    .gitignore" in text
    assert "FAIL (1)" in text
    assert "Fatal write error in docker: disk full" in text
    assert "rm -rf .gitignore" in text
    assert text.endswith("Validation: RED   Exit code: 1")


def test_save_and_load_report(tmp_path: Path):
    report = _report()

    path = save_report(report, tmp_path / ".bootstrap")

    assert path == tmp_path / ".bootstrap" / "runs" / f"{report.run_id}.json"
    latest = tmp_path / ".bootstrap" / "runs" / "latest.json"
    assert json.loads(latest.read_text(encoding="utf-8"))["exit_code"] == 0
    loaded = load_report(latest)
    assert loaded.records == report.records
    assert loaded.outcome("docker").validation.failure_count == 1


def test_new_run_id_is_unique():
    assert new_run_id() != new_run_id()
