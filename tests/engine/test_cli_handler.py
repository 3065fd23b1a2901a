import pytest
from pytest_mock import MockerFixture

from engine.cli_handler import cli_prompt_for_confirmation, view_effective_config
from engine.config_models import AppSettings
from engine.resolver import ConfigEntry, ConfigSource, EffectiveConfig


@pytest.fixture
def tty(mocker: MockerFixture):
    mock_sys = mocker.patch("engine.cli_handler.sys")
    mock_sys.stdin.isatty.return_value = True
    return mock_sys


@pytest.mark.parametrize("answer, expected", [("y", True), ("YES", True), ("n", False), ("", False)])
def test_prompt_answers(mocker: MockerFixture, tty, answer, expected):
    mocker.patch("builtins.input", return_value=answer)

    assert cli_prompt_for_confirmation("Overwrite Dockerfile?", AppSettings()) is expected


def test_prompt_eof_defaults_to_no(mocker: MockerFixture, tty):
    mocker.patch("builtins.input", side_effect=EOFError)

    assert cli_prompt_for_confirmation("Overwrite Dockerfile?", AppSettings()) is False


def test_prompt_non_interactive_never_asks(mocker: MockerFixture, tty):
    mock_input = mocker.patch("builtins.input")

    assert cli_prompt_for_confirmation("Overwrite?", AppSettings(interactive=False)) is False
    mock_input.assert_not_called()


def test_view_effective_config():
    effective = EffectiveConfig(
        section="docker",
        entries=(
            ConfigEntry(section="docker", key="port", value="8080", source=ConfigSource.ENV),
            ConfigEntry(section="docker", key="database", value="postgres", source=ConfigSource.DEFAULT),
        ),
    )

    text = view_effective_config(effective, AppSettings())

    lines = text.splitlines()
    assert lines[0].endswith("[docker]")
    assert "port = '8080'" in lines[1]
    assert lines[1].endswith("(env)")
    assert lines[2].endswith("(default)")


def test_view_empty_section():
    text = view_effective_config(EffectiveConfig(section="ci"), AppSettings())

    assert "(no keys)" in text
