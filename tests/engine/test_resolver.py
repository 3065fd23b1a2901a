from pathlib import Path

import pytest

from engine.config_store import ConfigStore
from engine.errors import ConfigError
from engine.resolver import (
    ConfigResolver,
    ConfigSource,
    canonical_name,
    load_answers,
)


@pytest.fixture
def store(tmp_path: Path) -> ConfigStore:
    path = tmp_path / "bootstrap.config"
    path.write_text("[docker]\nport=3000\nimage=node\n", encoding="utf-8")
    return ConfigStore(path)


def test_precedence_env_over_answers_over_file_over_default(store: ConfigStore):
    """V1 (env) > V2 (answers) > V3 (config file) > V4 (default)."""
    answers = {"DOCKER_PORT": "4000"}
    environ = {"DOCKER_PORT": "5000"}

    assert ConfigResolver(store, answers, environ).resolve("docker", "port", "1000").value == "5000"
    assert ConfigResolver(store, answers, {}).resolve("docker", "port", "1000").value == "4000"
    assert ConfigResolver(store, {}, {}).resolve("docker", "port", "1000").value == "3000"
    entry = ConfigResolver(store, {}, {}).resolve("docker", "workers", "2")
    assert entry.value == "2"
    assert entry.source == ConfigSource.DEFAULT


def test_sources_are_reported(store: ConfigStore):
    resolver = ConfigResolver(store, {"DOCKER_IMAGE": "python"}, {"DOCKER_PORT": "8080"})

    assert resolver.resolve("docker", "port").source == ConfigSource.ENV
    assert resolver.resolve("docker", "image").source == ConfigSource.ANSWERS_FILE
    assert ConfigResolver(store, {}, {}).resolve("docker", "image").source == ConfigSource.CONFIG_FILE


def test_flat_answer_name_falls_back_after_section_name(store: ConfigStore):
    entry = ConfigResolver(store, {"APP_PORT": "8080"}, {}).resolve("docker", "app_port", "3000")

    assert entry.value == "8080"
    assert entry.source == ConfigSource.ANSWERS_FILE

    answers = {"APP_PORT": "8080", "DOCKER_APP_PORT": "9090"}
    assert ConfigResolver(store, answers, {}).resolve("docker", "app_port").value == "9090"
    assert ConfigResolver(store, {"PORT": "1"}, {}).resolve("docker", "port").value == "1"


def test_environment_ignores_flat_names(store: ConfigStore):
    resolver = ConfigResolver(store, {}, {"PORT": "9999", "IMAGE": "alpine"})

    assert resolver.resolve("docker", "port").value == "3000"
    assert resolver.resolve("docker", "image").source == ConfigSource.CONFIG_FILE


def test_empty_string_wins_over_lower_layers(store: ConfigStore):
    resolver = ConfigResolver(store, {}, {"DOCKER_PORT": ""})

    entry = resolver.resolve("docker", "port", "1000")

    assert entry.value == ""
    assert entry.source == ConfigSource.ENV


def test_missing_everywhere_raises(store: ConfigStore):
    resolver = ConfigResolver(store, {}, {})

    with pytest.raises(ConfigError) as exc_info:
        resolver.resolve("docker", "registry")

    assert exc_info.value.section == "docker"
    assert exc_info.value.key == "registry"


def test_resolve_section_union_of_defaults_and_file(store: ConfigStore):
    resolver = ConfigResolver(store, {}, {"DOCKER_DATABASE": "mysql"})

    effective = resolver.resolve_section("docker", {"database": "postgres", "port": "1"})

    assert effective.values() == {"database": "mysql", "image": "node", "port": "3000"}
    assert effective.placeholders()["DOCKER_PORT"] == "3000"
    assert effective.placeholders()["PORT"] == "3000"


def test_resolve_section_is_cached_until_write_back(store: ConfigStore):
    answers = {"DOCKER_PORT": "9000"}
    resolver = ConfigResolver(store, answers, {})
    first = resolver.resolve_section("docker", {})
    assert resolver.resolve_section("docker", {}) is first

    assert resolver.update_from_answers("docker", ["port"]) is True

    assert resolver.resolve_section("docker", {}) is not first
    assert ConfigStore(store.path).get("docker", "port") == "9000"


def test_update_from_answers_without_changes(store: ConfigStore):
    resolver = ConfigResolver(store, {"DOCKER_PORT": "3000"}, {})
    assert resolver.update_from_answers("docker", ["port", "unknown"]) is False


def test_update_from_answers_accepts_flat_names(store: ConfigStore):
    resolver = ConfigResolver(store, {"DATABASE_NAME": "shop_dev"}, {})

    assert resolver.update_from_answers("docker", ["database_name"]) is True
    assert ConfigStore(store.path).get("docker", "database_name") == "shop_dev"


def test_canonical_name():
    assert canonical_name("docker", "port") == "DOCKER_PORT"
    assert canonical_name("ci-cd", "node.version") == "CI_CD_NODE_VERSION"


def test_load_answers(tmp_path: Path):
    path = tmp_path / ".bootstrap-answers.env"
    path.write_text('DOCKER_PORT="4000"\n# comment\nGIT_DEFAULT_BRANCH=main\nEMPTY=\n', encoding="utf-8")

    answers = load_answers(path)

    assert answers == {"DOCKER_PORT": "4000", "GIT_DEFAULT_BRANCH": "main", "EMPTY": ""}


def test_load_answers_missing_file(tmp_path: Path):
    assert load_answers(tmp_path / "absent.env") == {}
