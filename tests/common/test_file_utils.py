import os
from pathlib import Path

import pytest
from pytest_mock import MockerFixture

from common.file_utils import backup_file, remove_path, write_file_atomic
from engine.config_models import AppSettings


def test_backup_file_success(tmp_path: Path):
    """Test successful backup of a file."""
    target = tmp_path / "Dockerfile"
    target.write_text("FROM node\n", encoding="utf-8")

    backup = backup_file(target, AppSettings())

    assert backup is not None
    assert backup.name.startswith("Dockerfile.bak.")
    assert backup.read_text(encoding="utf-8") == "FROM node\n"
    assert target.exists()


def test_backup_file_nonexistent(tmp_path: Path):
    """Test when file doesn't exist, no backup needed."""
    assert backup_file(tmp_path / "missing.txt", AppSettings()) is None


def test_backup_never_overwrites_earlier_backup(tmp_path: Path, mocker: MockerFixture):
    target = tmp_path / ".gitignore"
    target.write_text("one\n", encoding="utf-8")
    fixed = mocker.patch("common.file_utils.datetime")
    fixed.datetime.now.return_value.strftime.return_value = "20260101-000000"

    first = backup_file(target, None)
    target.write_text("two\n", encoding="utf-8")
    second = backup_file(target, None)

    assert first.name == ".gitignore.bak.20260101-000000"
    assert second.name == ".gitignore.bak.20260101-000000.1"
    assert first.read_text(encoding="utf-8") == "one\n"


def test_backup_directory(tmp_path: Path):
    target = tmp_path / ".vscode"
    target.mkdir()
    (target / "settings.json").write_text("{}", encoding="utf-8")

    backup = backup_file(target, AppSettings())

    assert (backup / "settings.json").read_text(encoding="utf-8") == "{}"


def test_write_file_atomic_creates_parents(tmp_path: Path):
    target = tmp_path / ".github" / "workflows" / "ci.yml"

    write_file_atomic(target, b"on: push\n")

    assert target.read_bytes() == b"on: push\n"
    assert [p.name for p in target.parent.iterdir()] == ["ci.yml"]


def test_write_file_atomic_keeps_mode(tmp_path: Path):
    target = tmp_path / "run.sh"
    target.write_text("old", encoding="utf-8")
    target.chmod(0o755)

    write_file_atomic(target, b"new")

    assert target.read_bytes() == b"new"
    assert os.stat(target).st_mode & 0o777 == 0o755


def test_write_file_atomic_failure_leaves_no_temp_file(tmp_path: Path, mocker: MockerFixture):
    target = tmp_path / "config.json"
    mocker.patch("common.file_utils.os.replace", side_effect=PermissionError("denied"))

    with pytest.raises(PermissionError):
        write_file_atomic(target, b"{}")

    assert list(tmp_path.iterdir()) == []


def test_remove_path(tmp_path: Path):
    file_path = tmp_path / ".travis.yml"
    file_path.write_text("x", encoding="utf-8")
    dir_path = tmp_path / "legacy"
    (dir_path / "nested").mkdir(parents=True)

    remove_path(file_path)
    remove_path(dir_path)

    assert list(tmp_path.iterdir()) == []
