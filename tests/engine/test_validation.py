from pathlib import Path

import pytest

from engine.validation import ValidationAggregator


@pytest.fixture
def aggregator() -> ValidationAggregator:
    return ValidationAggregator()


@pytest.fixture
def project(project_dir: Path) -> Path:
    (project_dir / ".gitignore").write_text("node_modules\n.env\n", encoding="utf-8")
    (project_dir / "package.json").write_text('{"name": "demo"}', encoding="utf-8")
    (project_dir / "broken.json").write_text("{", encoding="utf-8")
    (project_dir / "docker-compose.yml").write_text(
        "services:\n  app:\n    image: node\n", encoding="utf-8"
    )
    (project_dir / ".github" / "workflows").mkdir(parents=True)
    return project_dir


@pytest.mark.parametrize(
    "expression, expected",
    [
        ("file_exists package.json", True),
        ("file_exists missing.txt", False),
        ("dir_exists .github/workflows", True),
        ("dir_exists package.json", False),
        ("file_contains .gitignore node_modules", True),
        ("file_contains .gitignore 'dist/'", False),
        ("valid_json package.json", True),
        ("valid_json broken.json", False),
        ("valid_yaml docker-compose.yml", True),
        ("yaml_has_key docker-compose.yml services.app.image", True),
        ("yaml_has_key docker-compose.yml services.db", False),
        ("test -f .gitignore", True),
        ("test -d .gitignore", False),
        ("test -e .github", True),
        ("test -x .gitignore", False),
        ("smoke_test http://localhost", False),
        ("file_contains .gitignore", False),
        ("file_exists 'unterminated", False),
        ("", False),
    ],
)
def test_run_check(aggregator: ValidationAggregator, project: Path, expression, expected):
    passed, message = aggregator.run_check(expression, project)

    assert passed is expected
    assert message


def test_validate_counts_failures(aggregator: ValidationAggregator, project: Path, make_descriptor):
    unit = make_descriptor(
        "docker",
        verify=(
            "file_exists docker-compose.yml",
            "file_exists Dockerfile",
            "valid_json broken.json",
        ),
    )

    result = aggregator.validate(unit, project)

    assert result.passed is False
    assert result.failure_count == 2
    assert result.messages[0].startswith("ok")
    assert result.messages[1].startswith("FAIL")


def test_unit_without_checks_passes(aggregator: ValidationAggregator, project: Path, make_descriptor):
    result = aggregator.validate(make_descriptor("editor"), project)

    assert result.passed is True
    assert result.failure_count == 0
    assert result.messages == ()
