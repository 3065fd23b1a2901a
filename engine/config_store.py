# engine/config_store.py
# -*- coding: utf-8 -*-
"""
Sectioned key=value configuration store of a project.

    [docker]
    port=3000
    database=postgres

One section per unit config section. Keys are case-insensitive and stored
lower-case. Reading never creates the file.
"""

import configparser
import io
import logging
from pathlib import Path
from typing import Dict, List, Optional

from common.file_utils import write_file_atomic
from engine.errors import ConfigFileError

module_logger = logging.getLogger(__name__)


class ConfigStore:
    """The persistent project config file, loaded lazily."""

    def __init__(self, path: Path, logger: Optional[logging.Logger] = None):
        self.path = Path(path)
        self.logger = logger or logging.getLogger(__name__)
        self._parser: Optional[configparser.ConfigParser] = None

    def _new_parser(self) -> configparser.ConfigParser:
        # Later duplicates win, as with a hand-appended key=value line.
        return configparser.ConfigParser(
            interpolation=None, default_section="__defaults__", strict=False
        )

    def _load(self) -> configparser.ConfigParser:
        """
        Raises:
            ConfigFileError: If the file exists but cannot be read or parsed.
        """
        if self._parser is None:
            parser = self._new_parser()
            if self.path.exists():
                try:
                    with open(self.path, "r", encoding="utf-8") as f:
                        parser.read_file(f, source=str(self.path))
                except (configparser.Error, UnicodeDecodeError, OSError) as e:
                    self.logger.error(f"Could not load config store {self.path}: {e}")
                    raise ConfigFileError(str(self.path), " ".join(str(e).split())) from e
                self.logger.debug(f"Loaded config store {self.path}")
            self._parser = parser
        return self._parser

    def exists(self) -> bool:
        return self.path.exists()

    def sections(self) -> List[str]:
        return self._load().sections()

    def get(self, section: str, key: str) -> Optional[str]:
        """Stored value of `section.key`, or None when absent."""
        parser = self._load()
        if not parser.has_section(section):
            return None
        return parser.get(section, key.lower(), fallback=None)

    def set(self, section: str, key: str, value: str) -> None:
        """Set a value in memory; call save() to persist it."""
        parser = self._load()
        if not parser.has_section(section):
            parser.add_section(section)
        parser.set(section, key.lower(), str(value))

    def section(self, section: str) -> Dict[str, str]:
        parser = self._load()
        if not parser.has_section(section):
            return {}
        return {key: parser.get(section, key) for key in parser.options(section)}

    def render(self) -> str:
        buffer = io.StringIO()
        self._load().write(buffer, space_around_delimiters=False)
        return buffer.getvalue()

    def save(self) -> Path:
        """
        Write the store to disk atomically.

        Raises:
            OSError: If the file cannot be written.
        """
        write_file_atomic(self.path, self.render().encode("utf-8"))
        self.logger.debug(f"Saved config store {self.path}")
        return self.path

    def reload(self) -> None:
        self._parser = None
