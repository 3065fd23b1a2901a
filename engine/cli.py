# -*- coding: utf-8 -*-
"""
Command-line interface of the bootstrap engine.

    bootstrap-engine run all ./my-project --dry-run
    bootstrap-engine run docker ./my-project --yes
    bootstrap-engine plan
    bootstrap-engine manifest check
"""

import functools
import logging
import sys
from pathlib import Path
from typing import Dict, Optional

import click

from common.logging_config import setup_logging
from engine.cli_handler import view_effective_config
from engine.config import RUNS_DIR_NAME
from engine.config_loader import load_app_settings
from engine.config_models import AppSettings
from engine.config_store import ConfigStore
from engine.detector import ProjectStateDetector
from engine.errors import BootstrapError, DescriptorNotFoundError
from engine.executor import ExecutionEngine
from engine.report import LATEST_REPORT_NAME, RunOptions, load_report, render_summary, save_report
from engine.resolver import ConfigResolver, load_answers
from engine.seeding import ConfigSeeder
from engine.templating import PlaceholderTemplateRenderer
from engine.tracker import ArtifactTracker
from engine.validation import ValidationAggregator
from registry.descriptor import ScriptDescriptor, normalize_script_id
from registry.manifest import write_manifest
from registry.scheduler import build_plan, dependency_closure
from registry.store import DescriptorStore

logger = logging.getLogger("bootstrap-engine")


def handle_engine_errors(func):
    """Map engine errors to a logged message and exit code 1."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except BootstrapError as e:
            logger.critical(f"{e}")
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)

    return wrapper


def _settings(ctx: click.Context) -> AppSettings:
    if "settings" not in ctx.obj:
        overrides = {"log_level": "DEBUG"} if ctx.obj.get("verbose") else {}
        settings = load_app_settings(
            cli_overrides=overrides, config_file_path=ctx.obj.get("config_file")
        )
        setup_logging(
            "bootstrap-engine",
            log_level=settings.log_level,
            enable_file=bool(settings.log_file),
            log_file_path=settings.log_file or None,
        )
        ctx.obj["settings"] = settings
    return ctx.obj["settings"]


def _store(settings: AppSettings, with_manifest: bool = True) -> DescriptorStore:
    manifest = settings.manifest_path if with_manifest and settings.check_manifest else None
    return DescriptorStore(settings.scripts_dir, manifest)


def _usable_descriptors(settings: AppSettings) -> Dict[str, ScriptDescriptor]:
    """
    Load the catalog and apply the metadata error policy.

    Raises:
        MetadataError: The first flagged unit, under the 'abort' policy.
    """
    store = _store(settings)
    store.load_all()
    if store.errors and settings.on_metadata_error == "abort":
        for error in store.errors[1:]:
            logger.error(f"{error}")
        raise store.errors[0]
    return store.usable_descriptors()


def _select(descriptors: Dict[str, ScriptDescriptor], script_ids) -> Dict[str, ScriptDescriptor]:
    ids = [normalize_script_id(s) for s in script_ids]
    if not ids or "all" in ids:
        return descriptors
    for script_id in ids:
        if script_id not in descriptors:
            raise DescriptorNotFoundError(script_id)
    return dependency_closure(descriptors, ids)


def _project_root(project_path: Optional[str]) -> Path:
    root = Path(project_path or ".").resolve()
    if not root.is_dir():
        raise click.BadParameter(f"{root} is not a directory", param_hint="PROJECT_PATH")
    return root


@click.group()
@click.option("--config-file", default=None, help="YAML file with engine settings.")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx, config_file, verbose):
    """
    Bootstrap orchestration engine.

    Reads the metadata headers of the bootstrap unit catalog, builds a
    deterministic plan and runs it against a project tree.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_file"] = config_file
    ctx.obj["verbose"] = verbose


@cli.command(name="run")
@click.argument("script_id")
@click.argument("project_path", required=False)
@click.option("--force", is_flag=True, help="Re-run idempotent units and overwrite existing artifacts.")
@click.option("--yes", "--auto-approve", "auto_approve", is_flag=True, help="Approve unsafe units without prompting.")
@click.option("--dry-run", is_flag=True, help="Resolve and plan everything, write nothing.")
@click.option("--write-back", is_flag=True, help="Fold answers-file values into the project config store.")
@click.option("--config-file", default=None, help="YAML file with engine settings.")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
@handle_engine_errors
def run_command(ctx, script_id, project_path, force, auto_approve, dry_run, write_back, config_file, verbose):
    """
    Run SCRIPT_ID and its dependencies against PROJECT_PATH.

    SCRIPT_ID 'all' runs the whole catalog. PROJECT_PATH defaults to the
    current directory.
    """
    if config_file:
        ctx.obj["config_file"] = config_file
    if verbose:
        ctx.obj["verbose"] = True
    settings = _settings(ctx)
    root = _project_root(project_path)

    plan = build_plan(_select(_usable_descriptors(settings), [script_id]))
    required_tools = sorted({r.name for d in plan for r in d.requires_tools})

    store = ConfigStore(root / settings.config_file)
    resolver = ConfigResolver(store, load_answers(root / settings.answers_file))
    engine = ExecutionEngine(
        detector=ProjectStateDetector(settings, extra_tools=required_tools),
        resolver=resolver,
        renderer=PlaceholderTemplateRenderer(settings.templates_dir),
        tracker=ArtifactTracker(),
        aggregator=ValidationAggregator(),
        app_settings=settings,
    )
    options = RunOptions(
        force=force,
        auto_approve=auto_approve,
        dry_run=dry_run,
        write_back_answers=write_back,
    )
    report = engine.run(plan, root, options)
    click.echo(render_summary(report, settings.symbols))

    if not dry_run:
        try:
            path = save_report(report, root / settings.state_dir)
            click.echo(f"Run report: {path}")
        except OSError as e:
            logger.warning(f"Could not save run report: {e}")

    ctx.exit(report.exit_code)


@cli.command(name="plan")
@click.argument("script_ids", nargs=-1)
@click.pass_context
@handle_engine_errors
def plan_command(ctx, script_ids):
    """Show the execution order for SCRIPT_IDS (default: the whole catalog)."""
    settings = _settings(ctx)
    plan = build_plan(_select(_usable_descriptors(settings), script_ids))
    for index, descriptor in enumerate(plan, start=1):
        click.echo(
            f"{index:>3}. {descriptor.id:<24} phase {descriptor.phase}  "
            f"priority {descriptor.priority:>3}  {descriptor.short_description}"
        )


@cli.command(name="list")
@click.pass_context
@handle_engine_errors
def list_command(ctx):
    """List every unit in the catalog, including flagged ones."""
    settings = _settings(ctx)
    store = _store(settings)
    descriptors = store.load_all()
    symbols = settings.symbols
    for descriptor in sorted(descriptors.values(), key=lambda d: d.sort_key()):
        safety = "" if descriptor.safe else "  [unsafe]"
        click.echo(
            f"{descriptor.id:<24} {descriptor.category.value:<10} phase {descriptor.phase}  "
            f"{descriptor.short_description}{safety}"
        )
    for error in store.errors:
        click.echo(f"{symbols.get('error', '❌')} {error}")


@cli.command(name="detect")
@click.argument("project_path", required=False)
@click.pass_context
@handle_engine_errors
def detect_command(ctx, project_path):
    """Show detected facts and tools for PROJECT_PATH."""
    settings = _settings(ctx)
    root = _project_root(project_path)
    state = ProjectStateDetector(settings).detect(root)
    click.echo(f"Project: {state.root}")
    if state.git_branch:
        click.echo(f"Git branch: {state.git_branch}")
    click.echo("Facts:")
    for name, present in sorted(state.facts.items()):
        click.echo(f"    {name:<28} {'yes' if present else 'no'}")
    click.echo("Tools:")
    for name, version in sorted(state.tools.items()):
        shown = "not installed" if version is None else (version or "installed")
        click.echo(f"    {name:<28} {shown}")


@cli.group(name="manifest")
def manifest_group():
    """Generate or check the catalog manifest."""
    pass


@manifest_group.command(name="generate")
@click.option("--output", default=None, help="Write to this path instead of the configured manifest.")
@click.pass_context
@handle_engine_errors
def manifest_generate_command(ctx, output):
    """Regenerate the manifest from the unit headers."""
    settings = _settings(ctx)
    store = _store(settings, with_manifest=False)
    descriptors = store.load_all()
    if store.errors:
        raise store.errors[0]
    path = write_manifest(Path(output) if output else settings.manifest_path, descriptors.values())
    click.echo(f"Wrote {len(descriptors)} unit(s) to {path}")


@manifest_group.command(name="check")
@click.pass_context
@handle_engine_errors
def manifest_check_command(ctx):
    """Check that every unit header matches the manifest."""
    settings = _settings(ctx)
    if not settings.manifest_path.exists():
        click.echo(f"No manifest at {settings.manifest_path}", err=True)
        ctx.exit(1)
    store = DescriptorStore(settings.scripts_dir, settings.manifest_path)
    descriptors = store.load_all()
    for error in store.errors:
        click.echo(f"{settings.symbols.get('error', '❌')} {error}")
    if store.errors:
        ctx.exit(1)
    click.echo(f"{settings.symbols.get('success', '✅')} Manifest in sync ({len(descriptors)} unit(s))")


@cli.group(name="config")
def config_group():
    """Inspect or seed the project configuration."""
    pass


@config_group.command(name="show")
@click.argument("section")
@click.argument("project_path", required=False)
@click.pass_context
@handle_engine_errors
def config_show_command(ctx, section, project_path):
    """Show the resolved values of SECTION for PROJECT_PATH."""
    settings = _settings(ctx)
    root = _project_root(project_path)
    store = _store(settings)
    defaults: Dict[str, str] = {}
    for descriptor in store.load_all().values():
        if descriptor.config_section == section:
            defaults.update(descriptor.defaults)
    resolver = ConfigResolver(
        ConfigStore(root / settings.config_file),
        load_answers(root / settings.answers_file),
    )
    click.echo(view_effective_config(resolver.resolve_section(section, defaults), settings))


@config_group.command(name="init")
@click.argument("project_path", required=False)
@click.option("--force", is_flag=True, help="Replace values already in the config file.")
@click.pass_context
@handle_engine_errors
def config_init_command(ctx, project_path, force):
    """Seed the config file of PROJECT_PATH with detected values."""
    settings = _settings(ctx)
    root = _project_root(project_path)
    seeder = ConfigSeeder(
        detector=ProjectStateDetector(settings),
        store=ConfigStore(root / settings.config_file),
        tracker=ArtifactTracker(),
        app_settings=settings,
    )
    written = seeder.seed(root, overwrite=force)
    if not written:
        click.echo(f"{settings.config_file}: nothing to seed")
        return
    for section, values in written.items():
        click.echo(f"[{section}]")
        for key, value in values.items():
            click.echo(f"    {key}={value}")


@cli.command(name="rollback-plan")
@click.argument("project_path", required=False)
@click.pass_context
def rollback_plan_command(ctx, project_path):
    """Print the rollback plan of the latest run in PROJECT_PATH."""
    settings = _settings(ctx)
    root = _project_root(project_path)
    report_path = root / settings.state_dir / RUNS_DIR_NAME / LATEST_REPORT_NAME
    if not report_path.exists():
        click.echo(f"No run report at {report_path}", err=True)
        ctx.exit(1)
    report = load_report(report_path)
    if not report.rollback_plan:
        click.echo(f"Run {report.run_id}: nothing to roll back")
        return
    click.echo(f"# Rollback plan for run {report.run_id}; run from {report.project_root}")
    for step in report.rollback_plan:
        click.echo(step.command)


if __name__ == "__main__":
    cli()
