# registry/header_parser.py
# -*- coding: utf-8 -*-
"""
Parser for the metadata header of bootstrap unit files.

A header is the leading comment block of a 'bootstrap-*.sh' file made of
'# @tag value' lines, for example:

    # @script         bootstrap-docker
    # @version        1.2.0
    # @phase          3
    # @category       deploy
    # @priority       60
    # @short          Docker and docker-compose setup
    # @description    Creates a multi-stage Dockerfile and a compose
    #                 file wired to the project's database.
    # @creates        Dockerfile
    # @creates        docker-compose.yml
    # @requires       docker:20.10.0:min
    # @safe           no
    # @idempotent     yes

Multi-value tags may repeat or list values separated by commas or spaces.
The value 'none' stands for an empty value.
"""

import logging
import re
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import ValidationError

from engine.errors import MetadataError

from .descriptor import ScriptDescriptor, ToolRequirement, normalize_script_id

module_logger = logging.getLogger(__name__)

TAG_LINE = re.compile(r"^#\s*@(?P<tag>[a-z_]+)\b\s*(?P<value>.*)$")
CONTINUATION_LINE = re.compile(r"^#\s{2,}(?P<text>[^@\s].*)$")

REQUIRED_TAGS = ("script", "version", "phase", "category", "priority", "short")

TRUE_WORDS = frozenset(["yes", "true", "1", "on"])
FALSE_WORDS = frozenset(["no", "false", "0", "off"])

# Descriptor field -> header tag, used to name the offending tag in errors.
FIELD_TO_TAG: Dict[str, str] = {
    "id": "script",
    "short_description": "short",
    "long_description": "description",
    "depends_on": "depends",
    "requires_tools": "requires",
}


def read_header(path: Path) -> Dict[str, List[str]]:
    """
    Collect the raw tag values from the leading comment block of a file.

    Args:
        path: The unit file.

    Returns:
        Tag name -> list of values, one per occurrence, in file order.

    Raises:
        OSError: If the file cannot be read.
    """
    tags: Dict[str, List[str]] = {}
    last_tag: Optional[str] = None

    with open(path, "r", encoding="utf-8", errors="replace") as f:
        for line in f:
            line = line.rstrip("\n")
            if line.startswith("#!"):
                continue
            if not line.strip():
                last_tag = None
                continue
            if not line.startswith("#"):
                break

            match = TAG_LINE.match(line)
            if match:
                last_tag = match.group("tag")
                tags.setdefault(last_tag, []).append(match.group("value").strip())
                continue

            continuation = CONTINUATION_LINE.match(line)
            if continuation and last_tag == "description":
                tags["description"][-1] = (
                    f"{tags['description'][-1]} {continuation.group('text').strip()}"
                ).strip()
            else:
                last_tag = None

    return tags


def split_values(values: List[str]) -> List[str]:
    """Split repeated, comma- or space-separated values, dropping 'none' and duplicates."""
    seen: Dict[str, None] = {}
    for value in values:
        for item in re.split(r"[,\s]+", value):
            item = item.strip()
            if item and item != "none":
                seen.setdefault(item, None)
    return list(seen)


def _single(tags: Dict[str, List[str]], tag: str) -> Optional[str]:
    values = tags.get(tag)
    if not values:
        return None
    return values[0]


def _parse_bool(script_id: str, tag: str, value: Optional[str], default: bool) -> bool:
    if value is None or value == "":
        return default
    lowered = value.lower()
    if lowered in TRUE_WORDS:
        return True
    if lowered in FALSE_WORDS:
        return False
    raise MetadataError(script_id, tag, f"expected yes/no, got '{value}'")


def _parse_int(script_id: str, tag: str, value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise MetadataError(script_id, tag, f"expected an integer, got '{value}'")


def _parse_defaults(
    script_id: str, values: List[str]
) -> Dict[str, str]:
    """
    Parse '@defaults KEY=value, KEY=value' lines.

    Keys are lower-cased. A 'section.' prefix on a key is dropped so both
    'port=3000' and 'docker.port=3000' name the same key.
    """
    defaults: Dict[str, str] = {}
    for value in values:
        for pair in value.split(","):
            pair = pair.strip()
            if not pair or pair == "none":
                continue
            if "=" not in pair:
                raise MetadataError(script_id, "defaults", f"expected KEY=value, got '{pair}'")
            key, _, default = pair.partition("=")
            key = key.strip().lower()
            if "." in key:
                key = key.rpartition(".")[2]
            if not key:
                raise MetadataError(script_id, "defaults", f"empty key in '{pair}'")
            defaults[key] = default.strip().strip('"').strip("'")
    return defaults


def descriptor_from_tags(
    tags: Dict[str, List[str]], source_path: Optional[Path] = None
) -> ScriptDescriptor:
    """
    Build a ScriptDescriptor from raw header tags.

    Raises:
        MetadataError: On a missing mandatory tag or any malformed value.
    """
    fallback_id = normalize_script_id(source_path.stem) if source_path else None
    raw_script = _single(tags, "script")
    script_id = normalize_script_id(raw_script) if raw_script else fallback_id

    for tag in REQUIRED_TAGS:
        if not _single(tags, tag):
            raise MetadataError(script_id, tag, "mandatory tag is missing")

    description_values = tags.get("description") or []
    config_section = _single(tags, "config_section") or ""

    try:
        requires_tools = tuple(
            ToolRequirement.parse(spec)
            for spec in split_values(tags.get("requires", []) + tags.get("requires_tools", []))
        )
    except ValueError as e:
        raise MetadataError(script_id, "requires", str(e))

    fields = {
        "id": raw_script,
        "version": _single(tags, "version"),
        "phase": _parse_int(script_id, "phase", _single(tags, "phase")),
        "category": _single(tags, "category"),
        "priority": _parse_int(script_id, "priority", _single(tags, "priority")),
        "short_description": _single(tags, "short"),
        "long_description": " ".join(description_values).strip(),
        "depends_on": split_values(tags.get("depends", [])),
        "detects": tuple(split_values(tags.get("detects", []))),
        "creates": tuple(split_values(tags.get("creates", []))),
        "modifies": tuple(split_values(tags.get("modifies", []))),
        "deletes": tuple(split_values(tags.get("deletes", []))),
        "requires_tools": requires_tools,
        "requires_env": tuple(split_values(tags.get("requires_env", []))),
        "env_vars": tuple(split_values(tags.get("env_vars", []))),
        "safe": _parse_bool(script_id, "safe", _single(tags, "safe"), True),
        "idempotent": _parse_bool(script_id, "idempotent", _single(tags, "idempotent"), False),
        "optional": _parse_bool(script_id, "optional", _single(tags, "optional"), False),
        "config_section": config_section,
        "defaults": _parse_defaults(script_id, tags.get("defaults", [])),
        "mutates": tuple(split_values(tags.get("mutates", []))),
        "verify": tuple(v for v in tags.get("verify", []) if v and v != "none"),
        "tags": tuple(split_values(tags.get("tags", []))),
        "docs": _single(tags, "docs") or "",
        "source_path": source_path,
    }

    try:
        return ScriptDescriptor(**fields)
    except ValidationError as e:
        first = e.errors()[0]
        field_name = str(first["loc"][0]) if first.get("loc") else "depends_on"
        raise MetadataError(
            script_id, FIELD_TO_TAG.get(field_name, field_name), first["msg"]
        ) from e


def parse_script(path: Path) -> ScriptDescriptor:
    """
    Parse one unit file into a ScriptDescriptor.

    Raises:
        MetadataError: If the header is missing tags or holds malformed values.
        OSError: If the file cannot be read.
    """
    tags = read_header(path)
    module_logger.debug(f"Parsed {len(tags)} header tag(s) from {path}")
    return descriptor_from_tags(tags, source_path=path)
