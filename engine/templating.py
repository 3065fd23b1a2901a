# engine/templating.py
# -*- coding: utf-8 -*-
"""
Template rendering boundary.

The engine treats template content as opaque blobs. A renderer maps a
template id ('<unit-id>/<target path>') plus a substitution table to the
bytes written into the project tree.
"""

import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Mapping, Optional, Set

module_logger = logging.getLogger(__name__)

PLACEHOLDER = re.compile(r"\{\{\s*([A-Z][A-Z0-9_]*)\s*\}\}")


def template_id_for(script_id: str, target: str) -> str:
    """Template id of a declared target, e.g. ('docker', 'Dockerfile') -> 'docker/Dockerfile'."""
    if target.startswith("./"):
        target = target[2:]
    return f"{script_id}/{target}"


class TemplateRenderer(ABC):
    """
    Base class for template renderers.

    Subclasses decide where template blobs come from and how substitutions
    are applied.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def has_template(self, template_id: str) -> bool:
        """
        Check whether a template exists.

        Returns:
            True if `template_id` can be rendered.
        """
        pass

    @abstractmethod
    def placeholders(self, template_id: str) -> Set[str]:
        """
        Names the template expects in its substitution table.
        """
        pass

    @abstractmethod
    def render(self, template_id: str, substitutions: Mapping[str, str]) -> bytes:
        """
        Render a template.

        Args:
            template_id: The template to render.
            substitutions: Placeholder name -> value.

        Returns:
            The rendered content.

        Raises:
            FileNotFoundError: If the template does not exist.
        """
        pass


class PlaceholderTemplateRenderer(TemplateRenderer):
    """
    Renders files from a template directory, replacing '{{NAME}}' markers.

    Placeholders without a substitution are left in place. Binary templates
    (not valid UTF-8) are copied verbatim.
    """

    def __init__(self, templates_dir: Path, logger: Optional[logging.Logger] = None):
        super().__init__(logger)
        self.templates_dir = Path(templates_dir)
        self._cache: Dict[str, bytes] = {}

    def _path(self, template_id: str) -> Path:
        return self.templates_dir / template_id

    def _read(self, template_id: str) -> bytes:
        if template_id not in self._cache:
            path = self._path(template_id)
            if not path.is_file():
                raise FileNotFoundError(f"Template '{template_id}' not found at {path}")
            self._cache[template_id] = path.read_bytes()
        return self._cache[template_id]

    def has_template(self, template_id: str) -> bool:
        return self._path(template_id).is_file()

    def placeholders(self, template_id: str) -> Set[str]:
        try:
            text = self._read(template_id).decode("utf-8")
        except UnicodeDecodeError:
            return set()
        return set(PLACEHOLDER.findall(text))

    def render(self, template_id: str, substitutions: Mapping[str, str]) -> bytes:
        raw = self._read(template_id)
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError:
            return raw

        def replace(match: "re.Match[str]") -> str:
            name = match.group(1)
            return str(substitutions[name]) if name in substitutions else match.group(0)

        rendered = PLACEHOLDER.sub(replace, text)
        self.logger.debug(f"Rendered template '{template_id}'")
        return rendered.encode("utf-8")
