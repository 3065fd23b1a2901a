# engine/config.py
# -*- coding: utf-8 -*-
"""
Centralized static constants for the bootstrap engine.

This module holds truly static values: the engine version, default file
names relative to a project tree, the default catalog location and the
logging symbols.

Mutable runtime configuration (catalog paths, policies, log level) is handled
by 'engine/config_models.py' and 'engine/config_loader.py'.
"""

from pathlib import Path

ENGINE_VERSION: str = "2.0.0"

PROJECT_ROOT: Path = Path(__file__).resolve().parent.parent

CATALOG_DIR: Path = PROJECT_ROOT / "catalog"
SCRIPTS_DIR: Path = CATALOG_DIR / "scripts"
TEMPLATES_DIR: Path = CATALOG_DIR / "templates"
MANIFEST_PATH: Path = CATALOG_DIR / "bootstrap-manifest.json"

# Relative to the target project root
CONFIG_FILE_NAME: str = ".bootstrap/bootstrap.config"
ANSWERS_FILE_NAME: str = ".bootstrap-answers.env"
STATE_DIR_NAME: str = ".bootstrap"
RUNS_DIR_NAME: str = "runs"

SCRIPT_GLOB: str = "bootstrap-*.sh"
SCRIPT_ID_PREFIX: str = "bootstrap-"

SYMBOLS: dict[str, str] = {
    "success": "✅",
    "error": "❌",
    "warning": "⚠️",
    "info": "ℹ️",
    "step": "➡️",
    "gear": "⚙️",
    "package": "📦",
    "rocket": "🚀",
    "sparkles": "✨",
    "critical": "🔥",
    "debug": "🐛",
    "skip": "⏭️",
}
