# engine/executor.py
# -*- coding: utf-8 -*-
"""
Execution engine.

Walks an execution plan against one project tree. For each unit it checks
preconditions, honours idempotency and safety, resolves configuration,
renders and writes artifacts, validates the result and refreshes the facts
the unit declares it can change. Every filesystem action goes through the
artifact tracker; the run ends with an immutable RunReport.
"""

import datetime
import logging
from pathlib import Path
from typing import Callable, Dict, List, Optional, Set, Tuple

from common.command_utils import get_symbols, log_bootstrap
from common.file_utils import backup_file, remove_path, write_file_atomic
from engine.cli_handler import cli_prompt_for_confirmation
from engine.config_models import AppSettings
from engine.detector import ProjectState, ProjectStateDetector
from engine.errors import (
    BootstrapError,
    ConfigError,
    ConfigFileError,
    MetadataError,
    PreconditionError,
    RunCancelled,
    TemplateNotFoundError,
    WriteError,
)
from engine.report import (
    FatalError,
    RunOptions,
    RunReport,
    UnitOutcome,
    UnitStatus,
    new_run_id,
)
from engine.resolver import ConfigResolver, canonical_name
from engine.templating import TemplateRenderer, template_id_for
from engine.tracker import ArtifactAction, ArtifactTracker
from engine.validation import ValidationAggregator
from registry.descriptor import ScriptDescriptor, is_directory_target
from registry.scheduler import ExecutionPlan

module_logger = logging.getLogger(__name__)

ConfirmCallback = Callable[[str, AppSettings, Optional[logging.Logger]], bool]

# Record path used for unit-level records of units that declare no targets.
UNIT_LEVEL_PATH = "."
BUILTIN_PLACEHOLDERS = ("PROJECT_ROOT", "PROJECT_NAME", "SCRIPT_ID")


class ExecutionEngine:
    """
    Runs execution plans.

    All collaborators are injected; the engine holds no global state and is
    the only component that writes to the project tree.
    """

    def __init__(
        self,
        detector: ProjectStateDetector,
        resolver: ConfigResolver,
        renderer: TemplateRenderer,
        tracker: ArtifactTracker,
        aggregator: ValidationAggregator,
        app_settings: AppSettings,
        confirm: ConfirmCallback = cli_prompt_for_confirmation,
        logger: Optional[logging.Logger] = None,
    ):
        self.detector = detector
        self.resolver = resolver
        self.renderer = renderer
        self.tracker = tracker
        self.aggregator = aggregator
        self.app_settings = app_settings
        self.confirm = confirm
        self.logger = logger or logging.getLogger(self.__class__.__name__)
        self.symbols = get_symbols(app_settings)
        self._cancel_requested = False

    def cancel(self) -> None:
        """Stop the run at the next unit boundary."""
        self._cancel_requested = True

    def _log(self, message: str, level: str = "info", exc_info: bool = False) -> None:
        log_bootstrap(message, level, self.logger, self.app_settings, exc_info=exc_info)

    # --- pre-flight ---------------------------------------------------------

    def preflight(self, plan: ExecutionPlan) -> None:
        """
        Check every unit of the plan before anything is written.

        Raises:
            MetadataError: On an unknown predicate or a target outside the
                project tree.
            TemplateNotFoundError: When a file target has no template.
        """
        for descriptor in plan:
            self.detector.validate_predicates(descriptor.predicates, descriptor.id)
            for target in descriptor.targets:
                parts = Path(target).parts
                if Path(target).is_absolute() or ".." in parts:
                    raise MetadataError(
                        descriptor.id, "creates", f"target '{target}' is outside the project tree"
                    )
            for target in descriptor.file_targets:
                template_id = template_id_for(descriptor.id, target)
                if not self.renderer.has_template(template_id):
                    raise TemplateNotFoundError(descriptor.id, template_id)

    # --- run ----------------------------------------------------------------

    def run(
        self,
        plan: ExecutionPlan,
        project_root: Path,
        options: Optional[RunOptions] = None,
    ) -> RunReport:
        """
        Execute a plan against a project tree.

        Fatal errors never escape; they are logged at critical level and
        stored in the report together with the rollback plan so far.

        Args:
            plan: The execution plan.
            project_root: The target project tree.
            options: Run options; defaults to RunOptions().

        Returns:
            The run report.
        """
        options = options or RunOptions()
        root = Path(project_root).resolve()
        run_id = new_run_id()
        started_at = datetime.datetime.now(datetime.timezone.utc)
        outcomes: Dict[str, UnitOutcome] = {}
        fatal: Optional[FatalError] = None
        cancelled = False
        self._cancel_requested = False
        self.tracker.reset()
        self.resolver.invalidate()

        self._log(
            f"{self.symbols.get('rocket', '🚀')} Run {run_id}: {len(plan)} unit(s) against {root}"
            f"{' (dry run)' if options.dry_run else ''}"
        )

        last_id: Optional[str] = None
        try:
            self.preflight(plan)
            state = self.detector.detect(root)
            failed: Set[str] = set()

            for index, descriptor in enumerate(plan, start=1):
                if self._cancel_requested:
                    raise RunCancelled(last_id)

                self._log(
                    f"{self.symbols.get('step', '➡️')} [{index}/{len(plan)}] {descriptor.id}: "
                    f"{descriptor.short_description}"
                )
                blocked = sorted(descriptor.depends_on & failed)
                if blocked:
                    note = f"not run: depends on failed unit(s) {', '.join(blocked)}"
                    self._record_all(descriptor, ArtifactAction.WARNED, note)
                    outcomes[descriptor.id] = UnitOutcome(
                        script_id=descriptor.id, status=UnitStatus.SKIPPED, message=note
                    )
                    failed.add(descriptor.id)
                    self._log(f"{self.symbols.get('warning', '⚠️')} {descriptor.id}: {note}", "warning")
                    continue

                outcome, state = self._run_unit(descriptor, root, state, options)
                outcomes[descriptor.id] = outcome
                if outcome.status == UnitStatus.FAILED:
                    failed.add(descriptor.id)
                last_id = descriptor.id

            if self._cancel_requested:
                raise RunCancelled(last_id)

        except KeyboardInterrupt:
            cancelled = True
            self._log(f"{self.symbols.get('warning', '⚠️')} Run interrupted by operator", "warning")
        except RunCancelled as e:
            cancelled = True
            self._log(f"{self.symbols.get('warning', '⚠️')} {e}", "warning")
        except BootstrapError as e:
            fatal = FatalError(kind=e.kind, script_id=e.script_id, detail=str(e))
            self._log(
                f"{self.symbols.get('critical', '🔥')} Fatal {e.kind} error"
                f"{f' in {e.script_id}' if e.script_id else ''}: {e}",
                "critical",
                exc_info=isinstance(e, WriteError),
            )

        for descriptor in plan:
            if descriptor.id not in outcomes:
                outcomes[descriptor.id] = UnitOutcome(
                    script_id=descriptor.id, status=UnitStatus.NOT_RUN
                )

        report = RunReport(
            run_id=run_id,
            project_root=str(root),
            started_at=started_at,
            finished_at=datetime.datetime.now(datetime.timezone.utc),
            plan=plan.ids,
            options=options,
            outcomes=tuple(outcomes[d.id] for d in plan),
            records=tuple(self.tracker.records),
            fatal_error=fatal,
            cancelled=cancelled,
            rollback_plan=tuple(self.tracker.rollback_plan()),
        )
        if report.exit_code == 0:
            self._log(f"{self.symbols.get('success', '✅')} Run {run_id} finished", "success")
        else:
            self._log(
                f"{self.symbols.get('error', '❌')} Run {run_id} failed with exit code {report.exit_code}",
                "error",
            )
        return report

    # --- per unit -----------------------------------------------------------

    def _run_unit(
        self,
        descriptor: ScriptDescriptor,
        root: Path,
        state: ProjectState,
        options: RunOptions,
    ) -> Tuple[UnitOutcome, ProjectState]:
        facts = {
            name: self.detector.evaluate(state, name, descriptor.id)
            for name in descriptor.detects
        }

        missing = self._missing_preconditions(descriptor, state)
        if missing:
            if not descriptor.optional:
                raise PreconditionError(descriptor.id, missing)
            note = f"optional unit skipped, missing: {', '.join(missing)}"
            self._record_all(descriptor, ArtifactAction.WARNED, note)
            self._log(f"{self.symbols.get('warning', '⚠️')} {descriptor.id}: {note}", "warning")
            return (
                UnitOutcome(
                    script_id=descriptor.id, status=UnitStatus.SKIPPED, facts=facts, message=note
                ),
                state,
            )

        if (
            descriptor.idempotent
            and descriptor.creates
            and not options.force
            and all((root / target).exists() for target in descriptor.creates)
        ):
            for target in descriptor.creates:
                self.tracker.track(target, ArtifactAction.SKIPPED, descriptor.id, note="already present")
            self._log(
                f"{self.symbols.get('skip', '⏭️')} {descriptor.id}: all artifacts present, skipping"
            )
            return (
                UnitOutcome(
                    script_id=descriptor.id,
                    status=UnitStatus.SKIPPED,
                    facts=facts,
                    message="already bootstrapped",
                ),
                state,
            )

        approved_unsafe = False
        if not descriptor.safe and not options.dry_run:
            if options.auto_approve or self.app_settings.auto_approve:
                approved_unsafe = True
            else:
                approved_unsafe = self.confirm(
                    f"Unit '{descriptor.id}' ({descriptor.short_description}) may overwrite files. Proceed?",
                    self.app_settings,
                    self.logger,
                )
            if not approved_unsafe:
                for target in descriptor.targets or (UNIT_LEVEL_PATH,):
                    self.tracker.track(target, ArtifactAction.SKIPPED, descriptor.id, note="declined")
                self._log(f"{self.symbols.get('skip', '⏭️')} {descriptor.id}: declined", "warning")
                return (
                    UnitOutcome(
                        script_id=descriptor.id, status=UnitStatus.DECLINED, facts=facts
                    ),
                    state,
                )

        try:
            substitutions = self._substitutions(descriptor, root)
        except ConfigFileError as e:
            e.script_id = descriptor.id
            raise
        except ConfigError as e:
            e.script_id = descriptor.id
            self._record_all(descriptor, ArtifactAction.WARNED, str(e))
            self._log(f"{self.symbols.get('error', '❌')} {descriptor.id}: {e}", "error")
            return (
                UnitOutcome(
                    script_id=descriptor.id, status=UnitStatus.FAILED, facts=facts, message=str(e)
                ),
                state,
            )

        if options.dry_run:
            for target in descriptor.targets:
                self.tracker.track(target, ArtifactAction.SKIPPED, descriptor.id, note="dry run")
            return (
                UnitOutcome(script_id=descriptor.id, status=UnitStatus.DRY_RUN, facts=facts),
                state,
            )

        self._apply(descriptor, root, substitutions, overwrite=options.force or approved_unsafe)

        validation = self.aggregator.validate(descriptor, root)
        if descriptor.mutates:
            state = self.detector.refresh(state, descriptor.mutates)
        if options.write_back_answers:
            self._write_back(descriptor, root)

        self._log(
            f"{self.symbols.get('success', '✅')} {descriptor.id}: completed"
            f"{'' if validation.passed else f' with {validation.failure_count} validation failure(s)'}",
            "success",
        )
        return (
            UnitOutcome(
                script_id=descriptor.id,
                status=UnitStatus.COMPLETED,
                validation=validation,
                facts=facts,
            ),
            state,
        )

    def _missing_preconditions(
        self, descriptor: ScriptDescriptor, state: ProjectState
    ) -> List[str]:
        missing: List[str] = []
        for requirement in descriptor.requires_tools:
            if requirement.name in state.tools:
                version = state.tools[requirement.name]
            else:
                version = self.detector.probe_tool(requirement.name)
            if version is None:
                missing.append(f"tool '{requirement.name}'")
            elif not requirement.is_satisfied_by(version):
                missing.append(f"tool '{requirement}' (found {version or 'unknown version'})")
        for name in descriptor.requires_env:
            if not self.resolver.environ.get(name):
                missing.append(f"env '{name}'")
        return missing

    def _substitutions(self, descriptor: ScriptDescriptor, root: Path) -> Dict[str, str]:
        """
        Placeholder table for a unit's templates.

        Raises:
            ConfigError: If a template needs a key no layer provides.
        """
        section = descriptor.config_section
        effective = self.resolver.resolve_section(section, descriptor.defaults)
        substitutions = effective.placeholders()
        substitutions.update(
            {
                "PROJECT_ROOT": str(root),
                "PROJECT_NAME": root.name,
                "SCRIPT_ID": descriptor.id,
            }
        )
        for name, key in self._template_keys(descriptor).items():
            if name in substitutions:
                continue
            substitutions[name] = self.resolver.resolve(section, key).value
        return substitutions

    def _template_keys(self, descriptor: ScriptDescriptor) -> Dict[str, str]:
        """Placeholder name -> section key, for every placeholder in the unit's templates."""
        prefix = canonical_name(descriptor.config_section, "")
        keys: Dict[str, str] = {}
        for target in descriptor.file_targets:
            for name in sorted(self.renderer.placeholders(template_id_for(descriptor.id, target))):
                if name in BUILTIN_PLACEHOLDERS:
                    continue
                keys[name] = (name[len(prefix):] if name.startswith(prefix) else name).lower()
        return keys

    def _record_all(self, descriptor: ScriptDescriptor, action: ArtifactAction, note: str) -> None:
        for target in descriptor.targets or (UNIT_LEVEL_PATH,):
            self.tracker.track(target, action, descriptor.id, note=note)

    # --- writes -------------------------------------------------------------

    def _backup(self, script_id: str, target: str, path: Path) -> Optional[str]:
        try:
            backup = backup_file(path, self.app_settings, self.logger)
        except OSError as e:
            raise WriteError(script_id, target, e) from e
        return str(backup) if backup else None

    def _write(self, descriptor: ScriptDescriptor, target: str, path: Path, substitutions: Dict[str, str]) -> None:
        try:
            content = self.renderer.render(template_id_for(descriptor.id, target), substitutions)
            write_file_atomic(path, content)
        except OSError as e:
            raise WriteError(descriptor.id, target, e) from e

    def _make_dir(self, descriptor: ScriptDescriptor, target: str, path: Path) -> None:
        if path.is_dir():
            self.tracker.track(target, ArtifactAction.SKIPPED, descriptor.id, note="already present")
            return
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise WriteError(descriptor.id, target, e) from e
        self.tracker.track(target, ArtifactAction.CREATED, descriptor.id)

    def _apply(
        self,
        descriptor: ScriptDescriptor,
        root: Path,
        substitutions: Dict[str, str],
        overwrite: bool,
    ) -> None:
        """
        Raises:
            WriteError: On any filesystem failure; the run stops.
        """
        for target in descriptor.creates:
            path = root / target
            if is_directory_target(target):
                self._make_dir(descriptor, target, path)
            elif path.exists() and not overwrite:
                self.tracker.track(target, ArtifactAction.SKIPPED, descriptor.id, note="exists")
            elif path.exists():
                backup = self._backup(descriptor.id, target, path)
                self._write(descriptor, target, path, substitutions)
                self.tracker.track(target, ArtifactAction.MODIFIED, descriptor.id, backup_path=backup)
            else:
                self._write(descriptor, target, path, substitutions)
                self.tracker.track(target, ArtifactAction.CREATED, descriptor.id)

        for target in descriptor.modifies:
            path = root / target
            if is_directory_target(target):
                self._make_dir(descriptor, target, path)
            elif path.exists():
                backup = self._backup(descriptor.id, target, path)
                self._write(descriptor, target, path, substitutions)
                self.tracker.track(target, ArtifactAction.MODIFIED, descriptor.id, backup_path=backup)
            else:
                self._write(descriptor, target, path, substitutions)
                self.tracker.track(target, ArtifactAction.CREATED, descriptor.id)

        for target in descriptor.deletes:
            path = root / target
            if not path.exists():
                self.tracker.track(target, ArtifactAction.SKIPPED, descriptor.id, note="absent")
                continue
            backup = self._backup(descriptor.id, target, path)
            try:
                remove_path(path)
            except OSError as e:
                raise WriteError(descriptor.id, target, e) from e
            self.tracker.track(target, ArtifactAction.DELETED, descriptor.id, backup_path=backup)

    def _write_back(self, descriptor: ScriptDescriptor, root: Path) -> None:
        """Fold the unit's answers into the config store and track the change."""
        section = descriptor.config_section
        store = self.resolver.store
        owned = (
            {key.lower() for key in descriptor.defaults}
            | set(store.section(section))
            | set(self._template_keys(descriptor).values())
        )
        keys = []
        for key in sorted(owned):
            answer = self.resolver.answer_for(section, key)
            if answer is not None and store.get(section, key) != answer:
                keys.append(key)
        if not keys:
            return

        existed = store.path.exists()
        try:
            display = str(store.path.relative_to(root))
        except ValueError:
            display = str(store.path)

        backup = self._backup(descriptor.id, display, store.path) if existed else None
        try:
            self.resolver.update_from_answers(section, keys)
        except OSError as e:
            raise WriteError(descriptor.id, display, e) from e
        self.tracker.track(
            display,
            ArtifactAction.MODIFIED if existed else ArtifactAction.CREATED,
            descriptor.id,
            backup_path=backup,
            note=f"answers for [{section}]",
        )
