"""Acceptance-criteria catalog resolution.

The canonical AC catalog comes from the first source that yields at
least one definition; later sources are never consulted:

    1. an explicit config file (--config)
    2. testwarden-config.yml in the project root
    3. AC markdown documents, in priority order
    4. AC-<n> prefixes on the ingested test titles

Each source is a resolver returning Optional[ACCatalog]. A malformed
source yields None and resolution falls through to the next one.
"""

import logging
import re
from functools import partial
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

from testwarden.data_types import ACCatalog, ACDefinition, TestRecord
from testwarden.errors import ConfigFormatError
from testwarden.evidence.config_loader import CONFIG_FILENAME, load_minimal_config
from testwarden.utils import RunContext

logger = logging.getLogger("testwarden.evidence.ac_resolver")

MARKDOWN_CANDIDATES = [
    "docs/acceptance-criteria.md",
    "docs/acceptance_criteria.md",
    "acceptance-criteria.md",
]

# "## AC-1: Task Creation", "- AC-1: ...", "* **AC-1** ...", "AC-1 ..."
MARKDOWN_AC_LINE = re.compile(
    r"^(?:#+[ \t]*|[-*][ \t]*)?\**(AC-\d+)\**[:\t ]+(.+)$",
    re.MULTILINE,
)
TITLE_AC_PREFIX = re.compile(r"^(AC-\d+)[:\s]+(.+)")
AC_ID = re.compile(r"^AC-\d+$")

Resolver = Callable[[], Optional[ACCatalog]]


def catalog_from_config(path: Path, source: str = "config") -> Optional[ACCatalog]:
    """Definitions from the ``acceptance-criteria`` section of a config.

    ``minimum-tests`` overrides the per-AC minimum (default 1).
    """
    try:
        config = load_minimal_config(path)
    except FileNotFoundError:
        return None
    except ConfigFormatError as e:
        logger.warning(f"Ignoring malformed config {path}: {e}")
        return None

    entries: Dict[str, str] = {}
    section = config.get("acceptance-criteria")
    if isinstance(section, dict):
        entries.update(section)
    elif isinstance(section, list):
        for item in section:
            match = TITLE_AC_PREFIX.match(item)
            if match and match.group(1) not in entries:
                entries[match.group(1)] = match.group(2).strip()

    minimums = config.get("minimum-tests")
    if not isinstance(minimums, dict):
        minimums = {}

    definitions: Dict[str, ACDefinition] = {}
    for ac_id, description in entries.items():
        if not AC_ID.match(ac_id):
            logger.warning(f"Ignoring config key '{ac_id}' in {path}: not an AC-<number> id")
            continue
        definitions[ac_id] = ACDefinition(
            id=ac_id,
            description=description,
            minimum=minimums.get(ac_id, 1),
            provenance="config",
        )

    if not definitions:
        return None

    project_name = config.get("project-name") or config.get("name")
    return ACCatalog(
        definitions=definitions,
        project_name=project_name if isinstance(project_name, str) else None,
        source=f"{source}:{path.name}",
    )


def catalog_from_markdown(path: Path) -> Optional[ACCatalog]:
    """Definitions from heading or list lines starting with AC-<n>.

    The first occurrence of an id is canonical.
    """
    if not path.is_file():
        return None
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"Cannot read {path}: {e}")
        return None

    definitions: Dict[str, ACDefinition] = {}
    for match in MARKDOWN_AC_LINE.finditer(content):
        ac_id = match.group(1)
        if ac_id in definitions:
            continue
        description = match.group(2).replace("*", "").strip()
        if not description:
            continue
        definitions[ac_id] = ACDefinition(
            id=ac_id, description=description, provenance="markdown",
        )

    if not definitions:
        return None
    return ACCatalog(definitions=definitions, source=f"markdown:{path.name}")


def catalog_from_test_titles(titles: Iterable[str]) -> Optional[ACCatalog]:
    """Definitions inferred from ``AC-<n>: description`` test titles."""
    definitions: Dict[str, ACDefinition] = {}
    for title in titles:
        match = TITLE_AC_PREFIX.match(title or "")
        if not match or match.group(1) in definitions:
            continue
        definitions[match.group(1)] = ACDefinition(
            id=match.group(1),
            description=match.group(2).strip(),
            provenance="test-titles",
        )
    if not definitions:
        return None
    return ACCatalog(definitions=definitions, source="test-titles")


def _explicit_config(path: Path) -> Optional[ACCatalog]:
    catalog = catalog_from_config(path, source="explicit-config")
    if catalog is None:
        logger.warning(f"Config file {path} did not contain AC definitions.")
    return catalog


def build_resolvers(
    ctx: RunContext,
    records: List[TestRecord],
    config_path: Optional[str] = None,
) -> List[Resolver]:
    """The fallback chain, highest priority first."""
    resolvers: List[Resolver] = []
    if config_path:
        resolvers.append(partial(_explicit_config, ctx.resolve(config_path)))
    resolvers.append(partial(catalog_from_config, ctx.project_root / CONFIG_FILENAME))
    for candidate in MARKDOWN_CANDIDATES:
        resolvers.append(partial(catalog_from_markdown, ctx.project_root / candidate))
    resolvers.append(partial(catalog_from_test_titles, [r.title for r in records]))
    return resolvers


def resolve_ac_catalog(
    ctx: RunContext,
    records: List[TestRecord],
    config_path: Optional[str] = None,
) -> ACCatalog:
    """Return the first non-empty catalog in the fallback chain."""
    for resolver in build_resolvers(ctx, records, config_path):
        catalog = resolver()
        if catalog:
            logger.info(f"AC definitions: {len(catalog.definitions)} from {catalog.source}")
            return catalog

    logger.warning("No AC definitions found. Report will group tests by detected AC prefixes.")
    return ACCatalog(source="none")
