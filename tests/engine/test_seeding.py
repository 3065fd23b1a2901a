import subprocess
from pathlib import Path

import pytest
from pytest_mock import MockerFixture

from engine.config_models import AppSettings
from engine.config_store import ConfigStore
from engine.detector import ProjectStateDetector
from engine.seeding import SEED_OWNER, ConfigSeeder, project_name_from_remote
from engine.tracker import ArtifactAction, ArtifactTracker

GIT_ANSWERS = {
    ("remote", "get-url", "origin"): "git@github.com:acme/shop.git\n",
    ("config", "user.name"): "Ada Lovelace\n",
    ("config", "user.email"): "ada@example.com\n",
    ("symbolic-ref", "--short", "HEAD"): "develop\n",
}


@pytest.fixture
def fake_git(mocker: MockerFixture):
    """Host with git and node; git answers come from GIT_ANSWERS."""
    mocker.patch("engine.detector.command_exists", side_effect=lambda name: name in ("git", "node"))

    def run(command, app_settings, **kwargs):
        if command[0] == "node":
            return subprocess.CompletedProcess(command, 0, stdout="v18.19.0\n", stderr="")
        output = GIT_ANSWERS.get(tuple(command[1:]))
        return subprocess.CompletedProcess(command, 0 if output else 1, stdout=output or "", stderr="")

    return mocker.patch("engine.detector.run_command", side_effect=run)


@pytest.fixture
def no_tools(mocker: MockerFixture):
    mocker.patch("engine.detector.command_exists", return_value=False)


@pytest.fixture
def make_seeder(project_dir: Path):
    settings = AppSettings(interactive=False)

    def _make():
        return ConfigSeeder(
            detector=ProjectStateDetector(settings),
            store=ConfigStore(project_dir / settings.config_file),
            tracker=ArtifactTracker(),
            app_settings=settings,
        )

    return _make


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://github.com/acme/shop.git", "shop"),
        ("git@github.com:acme/shop.git", "shop"),
        ("https://gitlab.com/acme/shop/", "shop"),
        ("", None),
        (None, None),
    ],
)
def test_project_name_from_remote(url, expected):
    assert project_name_from_remote(url) == expected


def test_detect_from_git_and_host(make_seeder, fake_git, project_dir: Path):
    (project_dir / ".git").mkdir()
    (project_dir / "yarn.lock").write_text("", encoding="utf-8")
    (project_dir / "CLAUDE.md").write_text("# Notes\nPhase: MVP\n", encoding="utf-8")

    values = make_seeder().detect(project_dir)

    assert values == {
        "project": {"name": "shop", "phase": "MVP"},
        "git": {"user_name": "Ada Lovelace", "user_email": "ada@example.com", "default_branch": "develop"},
        "packages": {"package_manager": "yarn", "node_version": "18"},
    }


def test_detect_fallbacks_without_tools(make_seeder, no_tools, project_dir: Path):
    values = make_seeder().detect(project_dir)

    assert values == {
        "project": {"name": project_dir.name, "phase": "POC"},
        "git": {"default_branch": "main"},
        "packages": {"package_manager": "pnpm", "node_version": "20"},
    }


def test_nvmrc_and_lock_file_precedence(make_seeder, fake_git, project_dir: Path):
    (project_dir / ".nvmrc").write_text("v22\n", encoding="utf-8")
    (project_dir / "package-lock.json").write_text("{}", encoding="utf-8")
    (project_dir / "pnpm-lock.yaml").write_text("", encoding="utf-8")

    packages = make_seeder().detect(project_dir)["packages"]

    assert packages == {"package_manager": "pnpm", "node_version": "22"}


def test_seed_creates_config_file(make_seeder, no_tools, project_dir: Path):
    seeder = make_seeder()

    written = seeder.seed(project_dir)

    config_path = project_dir / ".bootstrap" / "bootstrap.config"
    assert written["git"] == {"default_branch": "main"}
    assert ConfigStore(config_path).get("packages", "package_manager") == "pnpm"
    [record] = seeder.tracker.records
    assert record.path == ".bootstrap/bootstrap.config"
    assert record.action == ArtifactAction.CREATED
    assert record.owning_script_id == SEED_OWNER


def test_seed_keeps_stored_values_unless_overwrite(make_seeder, no_tools, project_dir: Path):
    config_path = project_dir / ".bootstrap" / "bootstrap.config"
    config_path.parent.mkdir()
    config_path.write_text("[git]\ndefault_branch=trunk\n", encoding="utf-8")

    seeder = make_seeder()
    written = seeder.seed(project_dir)

    assert "git" not in written
    assert ConfigStore(config_path).get("git", "default_branch") == "trunk"
    [record] = seeder.tracker.records
    assert record.action == ArtifactAction.MODIFIED
    assert Path(record.backup_path).read_text(encoding="utf-8") == "[git]\ndefault_branch=trunk\n"

    make_seeder().seed(project_dir, overwrite=True)

    assert ConfigStore(config_path).get("git", "default_branch") == "main"


def test_seed_twice_writes_nothing_the_second_time(make_seeder, no_tools, project_dir: Path):
    make_seeder().seed(project_dir)
    seeder = make_seeder()

    assert seeder.seed(project_dir) == {}
    assert [r.action for r in seeder.tracker.records] == [ArtifactAction.SKIPPED]
