"""Minimal project config loader (testwarden-config.yml).

Supported shape, and nothing deeper:

    project-name: Task Manager
    acceptance-criteria:
      AC-1: Login: valid credentials
      AC-2: Task listing
    minimum-tests:
      AC-1: 3
    tags:
      - smoke

The format is line oriented, not YAML. A line is one of:

    key: value      top-level key (column 0); an empty value opens an object
      key: value    nested key, exactly two spaces in, under the current key
      - item        list item under the current key

Everything after the first ``: `` is the value, kept verbatim, so
descriptions may contain colons, ``#`` or a leading ``[``. Only a single
pair of matching surrounding quotes is removed. Whole-line ``#`` comments
and blank lines are skipped, and anything indented deeper is ignored with
a warning.
"""

import logging
import re
from pathlib import Path
from typing import Dict, List, Union

from testwarden.errors import ConfigFormatError

logger = logging.getLogger("testwarden.evidence.config_loader")

CONFIG_FILENAME = "testwarden-config.yml"

ConfigValue = Union[str, Dict[str, str], List[str]]

TOP_LEVEL = re.compile(r"^(\w[\w-]*):\s*(.*)$")
NESTED = re.compile(r"^  (\w[\w-]*):\s*(.*)$")
LIST_ITEM = re.compile(r"^(?:  )?-\s+(.*)$")


def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"":
        return value[1:-1]
    return value


def parse_minimal_config(text: str) -> Dict[str, ConfigValue]:
    """Parse config text into top-level scalars, flat mappings and lists.

    Raises:
        ConfigFormatError: a column-0 line is not ``key: value``, or an
            indented line appears before any top-level key.
    """
    result: Dict[str, ConfigValue] = {}
    section = None

    for lineno, raw in enumerate(text.splitlines(), 1):
        line = raw.rstrip()
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue

        if not line.startswith((" ", "\t", "-")):
            match = TOP_LEVEL.match(line)
            if not match:
                raise ConfigFormatError(
                    f"Config line {lineno}: expected 'key: value', got {stripped!r}", line=lineno,
                )
            section = match.group(1)
            value = _unquote(match.group(2))
            result[section] = value if value else {}
            continue

        if section is None:
            raise ConfigFormatError(
                f"Config line {lineno}: entry {stripped!r} appears before any top-level key",
                line=lineno,
            )

        current = result[section]
        item = LIST_ITEM.match(line)
        if item:
            if current == {}:
                current = result[section] = []
            if isinstance(current, list):
                current.append(_unquote(item.group(1)))
            else:
                logger.warning(f"Ignoring list item on line {lineno}: '{section}' is not a list")
            continue

        nested = NESTED.match(line)
        if nested:
            if isinstance(current, dict):
                value = _unquote(nested.group(2))
                if value:
                    current[nested.group(1)] = value
            else:
                logger.warning(f"Ignoring nested key on line {lineno}: '{section}' is not an object")
            continue

        logger.warning(
            f"Ignoring line {lineno} under '{section}': nesting deeper than one level is not supported"
        )
    return result


def load_minimal_config(path: Path) -> Dict[str, ConfigValue]:
    """Read and parse a config file.

    Raises:
        FileNotFoundError: the file does not exist.
        ConfigFormatError: the file is unreadable or malformed.
    """
    if not path.is_file():
        raise FileNotFoundError(f"Config not found: {path}")
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigFormatError(f"Cannot read config {path}: {e}") from e
    return parse_minimal_config(text)
