from pathlib import Path

import pytest

from engine.errors import MetadataError
from registry.descriptor import Category, Comparison
from registry.header_parser import parse_script, read_header, split_values


def test_parse_full_header(write_unit):
    """All supported tags end up in the descriptor."""
    path = write_unit(
        "docker",
        phase="3",
        category="deploy",
        priority="60",
        description="Creates a Dockerfile",
        creates=["Dockerfile", "docker-compose.yml"],
        depends="bootstrap-environment",
        requires="docker:20.10.0:min",
        detects="has_dockerfile, has_docker_compose",
        mutates="has_dockerfile",
        defaults="port=3000, docker.node_version=20",
        safe="no",
        idempotent="yes",
        verify=["file_exists Dockerfile", "valid_yaml docker-compose.yml"],
        tags="docker containers",
    )

    descriptor = parse_script(path)

    assert descriptor.id == "docker"
    assert descriptor.phase == 3
    assert descriptor.category == Category.DEPLOY
    assert descriptor.priority == 60
    assert descriptor.creates == ("Dockerfile", "docker-compose.yml")
    assert descriptor.depends_on == frozenset({"environment"})
    assert descriptor.requires_tools[0].name == "docker"
    assert descriptor.requires_tools[0].version == "20.10.0"
    assert descriptor.requires_tools[0].comparison == Comparison.MIN
    assert descriptor.detects == ("has_dockerfile", "has_docker_compose")
    assert descriptor.defaults == {"port": "3000", "node_version": "20"}
    assert descriptor.safe is False
    assert descriptor.idempotent is True
    assert descriptor.verify == ("file_exists Dockerfile", "valid_yaml docker-compose.yml")
    assert descriptor.tags == ("docker", "containers")
    assert descriptor.config_section == "docker"
    assert descriptor.source_path == path


def test_description_continuation_lines(scripts_dir: Path):
    """Indented comment lines continue the description."""
    path = scripts_dir / "bootstrap-git.sh"
    path.write_text(
        "#!/bin/bash\n"
        "# ==========\n"
        "# @script         bootstrap-git\n"
        "# @version        1.0.0\n"
        "# @phase          1\n"
        "# @category       vcs\n"
        "# @priority       90\n"
        "# @short          Git files\n"
        "# @description    Creates a .gitignore covering Node\n"
        "#                 and Python artifacts.\n"
        "#\n"
        "#                 This line is not part of it.\n"
        "# @creates        .gitignore\n"
        "\n"
        "echo '# @creates not-a-header'\n",
        encoding="utf-8",
    )

    descriptor = parse_script(path)

    assert descriptor.long_description == "Creates a .gitignore covering Node and Python artifacts."
    assert descriptor.creates == (".gitignore",)


def test_header_stops_at_first_code_line(scripts_dir: Path):
    path = scripts_dir / "bootstrap-x.sh"
    path.write_text("# @script bootstrap-x\nset -e\n# @creates late.txt\n", encoding="utf-8")

    tags = read_header(path)

    assert tags == {"script": ["bootstrap-x"]}


@pytest.mark.parametrize(
    "missing_tag", ["script", "version", "phase", "category", "priority", "short"]
)
def test_missing_mandatory_tag(write_unit, missing_tag):
    path = write_unit("broken", **{missing_tag: None})

    with pytest.raises(MetadataError) as exc_info:
        parse_script(path)

    assert exc_info.value.field == missing_tag
    assert exc_info.value.script_id == "broken"


@pytest.mark.parametrize(
    "tags, field",
    [
        ({"phase": "6"}, "phase"),
        ({"phase": "first"}, "phase"),
        ({"priority": "0"}, "priority"),
        ({"priority": "101"}, "priority"),
        ({"category": "gaming"}, "category"),
        ({"version": "1.0"}, "version"),
        ({"safe": "maybe"}, "safe"),
        ({"requires": "node:18:sometimes"}, "requires"),
        ({"defaults": "port"}, "defaults"),
        ({"depends": "self-ref"}, "depends"),
    ],
)
def test_malformed_values(write_unit, tags, field):
    """Malformed values are MetadataErrors naming the offending tag."""
    name = "self-ref" if field == "depends" else "broken"
    path = write_unit(name, **tags)

    with pytest.raises(MetadataError) as exc_info:
        parse_script(path)

    assert exc_info.value.field == field


def test_config_section_none_defaults_to_id(write_unit):
    descriptor = parse_script(write_unit("editor", config_section="none"))
    assert descriptor.config_section == "editor"


def test_optional_and_requires_env(write_unit):
    descriptor = parse_script(
        write_unit("deploy", optional="yes", requires_env="DEPLOY_TOKEN, DEPLOY_HOST")
    )
    assert descriptor.optional is True
    assert descriptor.requires_env == ("DEPLOY_TOKEN", "DEPLOY_HOST")


def test_requires_with_tool_prefix(write_unit):
    descriptor = parse_script(
        write_unit("oauth", requires=["tool:docker", "tool:openssl:3.0.0"], requires_tools="git")
    )

    tools = {r.name: r.version for r in descriptor.requires_tools}
    assert tools == {"docker": None, "openssl": "3.0.0", "git": None}


def test_split_values_drops_none_and_duplicates():
    assert split_values(["a, b", "b c", "none"]) == ["a", "b", "c"]
