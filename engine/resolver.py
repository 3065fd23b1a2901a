# engine/resolver.py
# -*- coding: utf-8 -*-
"""
Layered configuration resolution for bootstrap units.

A value for 'section.key' is looked up in four layers, highest first:

1. Environment variables (SECTION_KEY)
2. The transient answers file (SECTION_KEY="value", then the bare KEY="value")
3. The project config store ([section] key=value)
4. The unit's declared default

An explicitly empty value at a higher layer wins over every lower layer.
Only the answers file falls back to the bare name; the environment holds
too many unrelated bare names (PATH, USER, HOME) to be trusted with it.
"""

import logging
import os
import re
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional, Tuple

from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict

from engine.config_store import ConfigStore
from engine.errors import ConfigError

module_logger = logging.getLogger(__name__)


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


MISSING = _Missing()


class ConfigSource(str, Enum):
    DEFAULT = "default"
    CONFIG_FILE = "config_file"
    ANSWERS_FILE = "answers_file"
    ENV = "env"


class ConfigEntry(BaseModel):
    """One resolved value and the layer it came from."""

    model_config = ConfigDict(frozen=True)

    section: str
    key: str
    value: str
    source: ConfigSource


class EffectiveConfig(BaseModel):
    """All resolved values of one config section."""

    model_config = ConfigDict(frozen=True)

    section: str
    entries: Tuple[ConfigEntry, ...] = ()

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        key = key.lower()
        for entry in self.entries:
            if entry.key == key:
                return entry.value
        return default

    def values(self) -> Dict[str, str]:
        return {entry.key: entry.value for entry in self.entries}

    def placeholders(self) -> Dict[str, str]:
        """
        Substitution names for templates: 'KEY' and 'SECTION_KEY' for every
        entry, both upper-case.
        """
        names: Dict[str, str] = {}
        for entry in self.entries:
            names[entry.key.upper()] = entry.value
            names[canonical_name(entry.section, entry.key)] = entry.value
        return names


def canonical_name(section: str, key: str) -> str:
    """Environment/answers name of a key: 'docker', 'port' -> 'DOCKER_PORT'."""
    return re.sub(r"[^A-Z0-9]", "_", f"{section}_{key}".upper())


def bare_name(key: str) -> str:
    """Flat answers-file name of a key: 'app_port' -> 'APP_PORT'."""
    return re.sub(r"[^A-Z0-9]", "_", key.upper())


def load_answers(path: Path) -> Dict[str, str]:
    """
    Read a flat KEY=value answers file.

    Returns:
        An empty dict when the file does not exist. Keys without a value
        map to ''.
    """
    path = Path(path)
    if not path.exists():
        return {}
    return {key: value or "" for key, value in dotenv_values(path).items()}


class ConfigResolver:
    """
    Resolves unit configuration across the environment, answers file, config
    store and declared defaults. Results are cached per section.
    """

    def __init__(
        self,
        store: ConfigStore,
        answers: Optional[Mapping[str, str]] = None,
        environ: Optional[Mapping[str, str]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.store = store
        self.answers: Dict[str, str] = dict(answers or {})
        self.environ: Mapping[str, str] = environ if environ is not None else os.environ
        self.logger = logger or logging.getLogger(__name__)
        self._cache: Dict[str, EffectiveConfig] = {}

    def answer_for(self, section: str, key: str) -> Optional[str]:
        """Answers-file value of `section.key`: SECTION_KEY first, then KEY."""
        for name in (canonical_name(section, key), bare_name(key)):
            if name in self.answers:
                return self.answers[name]
        return None

    def resolve(self, section: str, key: str, default=MISSING) -> ConfigEntry:
        """
        Resolve one key.

        Args:
            section: Config section, normally the unit's config_section.
            key: Key within the section.
            default: Value used when no layer has the key.

        Returns:
            The winning ConfigEntry.

        Raises:
            ConfigError: If no layer has the key and there is no default.
        """
        key = key.lower()
        name = canonical_name(section, key)

        if name in self.environ:
            return ConfigEntry(section=section, key=key, value=self.environ[name], source=ConfigSource.ENV)
        answer = self.answer_for(section, key)
        if answer is not None:
            return ConfigEntry(section=section, key=key, value=answer, source=ConfigSource.ANSWERS_FILE)
        stored = self.store.get(section, key)
        if stored is not None:
            return ConfigEntry(section=section, key=key, value=stored, source=ConfigSource.CONFIG_FILE)
        if default is not MISSING:
            return ConfigEntry(section=section, key=key, value=str(default), source=ConfigSource.DEFAULT)
        raise ConfigError(section, key)

    def resolve_section(
        self, section: str, defaults: Optional[Mapping[str, str]] = None
    ) -> EffectiveConfig:
        """
        Resolve every key of a section: the declared defaults plus the keys
        stored in the config file. Every such key has a value in at least
        one layer, so this never raises ConfigError.
        """
        if section in self._cache:
            return self._cache[section]

        defaults = {k.lower(): v for k, v in (defaults or {}).items()}
        keys = sorted(set(defaults) | set(self.store.section(section)))
        entries = tuple(
            self.resolve(section, key, defaults.get(key, MISSING)) for key in keys
        )
        effective = EffectiveConfig(section=section, entries=entries)
        self._cache[section] = effective
        self.logger.debug(
            f"Resolved section '{section}': "
            + ", ".join(f"{e.key} <- {e.source.value}" for e in entries)
        )
        return effective

    def invalidate(self) -> None:
        self._cache.clear()

    def update_from_answers(self, section: str, keys: Iterable[str]) -> bool:
        """
        Fold answers for `keys` into the config store and save it.

        Returns:
            True if the store changed and was saved.

        Raises:
            OSError: If the config store cannot be written.
        """
        changed = False
        for key in keys:
            answer = self.answer_for(section, key)
            if answer is None:
                continue
            if self.store.get(section, key) != answer:
                self.store.set(section, key, answer)
                changed = True
        if changed:
            self.store.save()
            self.logger.info(f"Wrote answers for section '{section}' to {self.store.path}")
        self.invalidate()
        return changed
