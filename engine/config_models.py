# engine/config_models.py
# -*- coding: utf-8 -*-
"""
Pydantic models for the engine's own configuration.

This module defines the structured settings for the bootstrap engine,
including defaults, type annotations, and descriptions.
It utilizes Pydantic for data validation and settings management.
These are settings of the orchestrator itself; per-unit configuration
values are resolved by 'engine/resolver.py'.
"""

from pathlib import Path
from typing import Dict, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from engine import config as static_config

# --- Default Static Values (can be overridden by config file/env/cli) ---
LOG_PREFIX_DEFAULT: str = "[BOOTSTRAP]"
LOG_LEVEL_DEFAULT: str = "INFO"
TOOL_PROBE_TIMEOUT_DEFAULT: float = 5.0

SYMBOLS_DEFAULT: Dict[str, str] = dict(static_config.SYMBOLS)


class AppSettings(BaseSettings):
    """Main engine settings."""
    model_config = SettingsConfigDict(
        env_prefix="BOOTSTRAP_",
        extra="ignore",
    )

    scripts_dir: Path = Field(default=static_config.SCRIPTS_DIR,
                              description="Directory holding bootstrap-*.sh unit files.")
    templates_dir: Path = Field(default=static_config.TEMPLATES_DIR,
                                description="Directory holding template blobs, one subdirectory per unit id.")
    manifest_path: Path = Field(default=static_config.MANIFEST_PATH,
                                description="Canonical manifest used for drift detection.")
    check_manifest: bool = Field(default=True,
                                 description="Compare unit headers against the manifest when it exists.")

    config_file: str = Field(default=static_config.CONFIG_FILE_NAME,
                             description="Sectioned key=value config store, relative to the project root.")
    answers_file: str = Field(default=static_config.ANSWERS_FILE_NAME,
                              description="Transient answers file, relative to the project root.")
    state_dir: str = Field(default=static_config.STATE_DIR_NAME,
                           description="Directory for run reports, relative to the project root.")

    on_metadata_error: Literal["abort", "skip"] = Field(
        default="abort",
        description="Abort the run on any malformed unit, or skip malformed units and their dependents.",
    )
    auto_approve: bool = Field(default=False,
                               description="Approve unsafe units without prompting.")
    interactive: bool = Field(default=True,
                              description="Allow confirmation prompts; when False unsafe units are declined.")
    tool_probe_timeout: float = Field(default=TOOL_PROBE_TIMEOUT_DEFAULT,
                                      description="Seconds to wait for '<tool> --version'.")

    log_level: str = Field(default=LOG_LEVEL_DEFAULT, description="Logging level.")
    log_prefix: str = Field(default=LOG_PREFIX_DEFAULT,
                            description="Prefix for log messages from the engine.")
    log_file: str = Field(default="",
                          description="Optional JSON run log path; empty disables file logging.")

    symbols: Dict[str, str] = Field(default_factory=lambda: dict(SYMBOLS_DEFAULT))
