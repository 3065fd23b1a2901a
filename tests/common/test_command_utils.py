import logging
import subprocess
from unittest.mock import MagicMock

import pytest
from pytest_mock import MockerFixture

from common.command_utils import command_exists, get_symbols, log_bootstrap, run_command
from engine.config_models import SYMBOLS_DEFAULT, AppSettings


@pytest.fixture
def app_settings():
    """Fixture to provide a basic AppSettings object."""
    return AppSettings(
        log_prefix="test_prefix",
        symbols={
            "warning": "!",
            "gear": "⚙️",
            "error": "❌",
        },
    )


@pytest.fixture
def mock_logger():
    """Fixture to create a mock logger for testing."""
    return MagicMock(spec=logging.Logger)


@pytest.mark.parametrize(
    "level, method",
    [
        ("info", "info"),
        ("success", "info"),
        ("warning", "warning"),
        ("error", "error"),
        ("critical", "critical"),
        ("debug", "debug"),
    ],
)
def test_log_bootstrap_levels(mock_logger, app_settings, level, method):
    log_bootstrap("hello", level, mock_logger, app_settings)

    getattr(mock_logger, method).assert_called_once_with("test_prefix hello", exc_info=False)


def test_log_bootstrap_without_settings(mock_logger):
    log_bootstrap("plain", "warning", mock_logger, exc_info=True)

    mock_logger.warning.assert_called_once_with("plain", exc_info=True)


def test_get_symbols(app_settings):
    assert get_symbols(app_settings)["warning"] == "!"
    assert get_symbols(None) == SYMBOLS_DEFAULT


def test_run_command_success(mocker: MockerFixture, app_settings, mock_logger):
    mock_run = mocker.patch(
        "common.command_utils.subprocess.run",
        return_value=subprocess.CompletedProcess(["node", "--version"], 0, stdout="v20.1.0\n", stderr=""),
    )

    result = run_command("node --version", app_settings, capture_output=True, current_logger=mock_logger, timeout=5)

    assert result.stdout == "v20.1.0\n"
    mock_run.assert_called_once_with(
        ["node", "--version"],
        check=True,
        capture_output=True,
        text=True,
        cwd=None,
        env=None,
        timeout=5,
    )


def test_run_command_failure(mocker: MockerFixture, app_settings, mock_logger):
    mocker.patch(
        "common.command_utils.subprocess.run",
        side_effect=subprocess.CalledProcessError(1, ["git", "status"]),
    )

    with pytest.raises(subprocess.CalledProcessError):
        run_command(["git", "status"], app_settings, current_logger=mock_logger)


def test_run_command_timeout_is_logged(mocker: MockerFixture, app_settings, mock_logger):
    mocker.patch(
        "common.command_utils.subprocess.run",
        side_effect=subprocess.TimeoutExpired(["docker", "--version"], 5),
    )

    with pytest.raises(subprocess.TimeoutExpired):
        run_command(["docker", "--version"], app_settings, current_logger=mock_logger, timeout=5)
    mock_logger.warning.assert_called_once()


def test_command_exists(mocker: MockerFixture):
    mocker.patch("common.command_utils.shutil.which", side_effect=lambda name: "/usr/bin/git" if name == "git" else None)

    assert command_exists("git") is True
    assert command_exists("kubectl") is False
