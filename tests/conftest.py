# tests/conftest.py
from pathlib import Path
from typing import Dict, Iterable, List, Union

import pytest

from engine.config_models import AppSettings
from registry.descriptor import ScriptDescriptor

HeaderValue = Union[str, Iterable[str]]


def _make_descriptor(script_id: str, phase: int = 1, priority: int = 50, **fields) -> ScriptDescriptor:
    data = {
        "id": script_id,
        "version": "1.0.0",
        "phase": phase,
        "category": "config",
        "priority": priority,
        "short_description": f"{script_id} unit",
    }
    data.update(fields)
    return ScriptDescriptor(**data)


def _header_lines(tags: Dict[str, HeaderValue]) -> List[str]:
    lines = ["#!/bin/bash"]
    for tag, value in tags.items():
        values = [value] if isinstance(value, str) else list(value)
        for item in values:
            lines.append(f"# @{tag:<14} {item}")
    lines.append("")
    lines.append("set -euo pipefail")
    return lines


@pytest.fixture
def make_descriptor():
    """Factory for ScriptDescriptor with sensible defaults."""
    return _make_descriptor


@pytest.fixture
def scripts_dir(tmp_path: Path) -> Path:
    path = tmp_path / "scripts"
    path.mkdir()
    return path


@pytest.fixture
def templates_dir(tmp_path: Path) -> Path:
    path = tmp_path / "templates"
    path.mkdir()
    return path


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    path = tmp_path / "project"
    path.mkdir()
    return path


@pytest.fixture
def write_unit(scripts_dir: Path):
    """Write a bootstrap-<name>.sh file whose header holds the given tags."""

    def _write(name: str, **tags: HeaderValue) -> Path:
        header = {
            "script": f"bootstrap-{name}",
            "version": "1.0.0",
            "phase": "1",
            "category": "config",
            "priority": "50",
            "short": f"{name} unit",
        }
        header.update(tags)
        header = {k: v for k, v in header.items() if v is not None}
        path = scripts_dir / f"bootstrap-{name}.sh"
        path.write_text("\n".join(_header_lines(header)) + "\n", encoding="utf-8")
        return path

    return _write


@pytest.fixture
def write_template(templates_dir: Path):
    """Write a template blob at <templates_dir>/<script_id>/<target>."""

    def _write(script_id: str, target: str, content: str = "") -> Path:
        path = templates_dir / script_id / target
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def app_settings(scripts_dir: Path, templates_dir: Path, tmp_path: Path) -> AppSettings:
    return AppSettings(
        scripts_dir=scripts_dir,
        templates_dir=templates_dir,
        manifest_path=tmp_path / "bootstrap-manifest.json",
        interactive=False,
    )
