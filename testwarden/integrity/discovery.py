"""Test file discovery for the Rule Zero linter.

Resolution order:
    1. --file <path>: that file only (must exist)
    2. --dir <path>:  recurse into that directory (must exist)
    3. otherwise:     every conventional test directory under the project root
"""

import logging
import os
import re
from pathlib import Path
from typing import List, Optional

from testwarden.errors import InputNotFoundError
from testwarden.utils import RunContext

logger = logging.getLogger("testwarden.integrity.discovery")

AUTO_DETECT_DIRS = ["tests", "test", "__tests__", "spec", "Tests"]

SKIP_DIRS = {
    "node_modules", ".git", "bin", "obj", "__pycache__", ".venv", "venv",
    "dist", "build",
}

TEST_FILE_PATTERNS = [
    re.compile(r"\.spec\.js$"),
    re.compile(r"\.test\.js$"),
    re.compile(r"\.spec\.ts$"),
    re.compile(r"\.test\.ts$"),
    re.compile(r"\.spec\.mjs$"),
    re.compile(r"\.test\.mjs$"),
    re.compile(r"Tests\.cs$"),
    re.compile(r"^test_.*\.py$"),
    re.compile(r"^.+_test\.py$"),
    re.compile(r"^.+_test\.go$"),
]


def is_test_file(filename: str) -> bool:
    """True if a bare file name follows a test-file naming convention."""
    return any(p.search(filename) for p in TEST_FILE_PATTERNS)


def resolve_test_dirs(ctx: RunContext, cli_dir: Optional[str] = None) -> List[Path]:
    """Directories to scan.

    An explicit ``cli_dir`` must exist. Without one, every conventional
    test directory that exists is returned (possibly none).
    """
    if cli_dir:
        resolved = ctx.resolve(cli_dir)
        if not resolved.is_dir():
            raise InputNotFoundError(f"Directory not found: {resolved}")
        return [resolved]

    found: List[Path] = []
    seen = set()
    for name in AUTO_DETECT_DIRS:
        candidate = ctx.project_root / name
        if not candidate.is_dir():
            continue
        # tests/ and Tests/ are one directory on case-insensitive filesystems
        st = candidate.stat()
        identity = (st.st_dev, st.st_ino)
        if identity in seen:
            continue
        seen.add(identity)
        found.append(candidate)
    return found


def find_test_files(directory: Path) -> List[Path]:
    """Recursively collect test files, skipping dependency and build trees."""
    files: List[Path] = []
    for root, dirs, names in os.walk(directory):
        dirs[:] = sorted(d for d in dirs if d not in SKIP_DIRS)
        for name in sorted(names):
            if is_test_file(name):
                files.append(Path(root) / name)
    return files


def discover(
    ctx: RunContext,
    cli_file: Optional[str] = None,
    cli_dir: Optional[str] = None,
) -> Optional[List[Path]]:
    """Return the files to lint.

    Returns None when no test directory exists at all (nothing to check).

    Raises:
        InputNotFoundError: an explicitly named file or directory is missing.
    """
    if cli_file:
        resolved = ctx.resolve(cli_file)
        if not resolved.is_file():
            raise InputNotFoundError(f"File not found: {resolved}")
        return [resolved]

    dirs = resolve_test_dirs(ctx, cli_dir)
    if not dirs:
        return None

    files: List[Path] = []
    for directory in dirs:
        found = find_test_files(directory)
        logger.debug(f"{len(found)} test file(s) under {directory}")
        files.extend(found)
    return files
