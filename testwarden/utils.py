"""Utility functions for testwarden.

Provides the explicit run context threaded through discovery, resolvers
and the report compiler, logger setup, and small text formatters shared
by both pipelines.
"""

import logging
import os
import re
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

# Package root: testwarden/utils.py -> testwarden/
PACKAGE_ROOT = Path(__file__).resolve().parent

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"

_ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;]*m")


@dataclass(frozen=True)
class RunContext:
    """Directories one invocation works against.

    project_root: the project under test; relative CLI paths and all
        conventional locations resolve against it.
    resource_root: where bundled resources (the default report template)
        live.
    """
    project_root: Path
    resource_root: Path = field(default=PACKAGE_ROOT / "evidence")

    @classmethod
    def from_cli(cls, project_root: Optional[str] = None) -> "RunContext":
        """Build a context from a ``--project-root`` value.

        Falls back to ``TESTWARDEN_PROJECT_ROOT`` and then the current
        directory.
        """
        root = project_root or os.environ.get("TESTWARDEN_PROJECT_ROOT") or os.getcwd()
        return cls(project_root=Path(root).resolve())

    def resolve(self, path: Union[str, Path]) -> Path:
        """Resolve a user-supplied path against the project root."""
        p = Path(path)
        return p if p.is_absolute() else self.project_root / p

    def relative(self, path: Union[str, Path]) -> str:
        """Render a path relative to the project root when inside it."""
        p = Path(path)
        try:
            return p.resolve().relative_to(self.project_root).as_posix()
        except ValueError:
            return str(p)


def configure_cli_logging(level: int = logging.INFO, log_file: Optional[Path] = None) -> None:
    """Route log records to stderr so stdout stays machine-readable.

    With ``log_file``, records from every testwarden module down to DEBUG
    are also appended to that file; the console keeps ``level``.
    """
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=[console_handler])
    if log_file is not None:
        setup_log_file(log_file)


def setup_log_file(log_file: Path) -> logging.Logger:
    """Attach a DEBUG file handler to the ``testwarden`` package logger.

    Args:
        log_file: File receiving DEBUG and above; parent dirs are created

    Returns:
        The package logger
    """
    logger = logging.getLogger("testwarden")
    logger.setLevel(logging.DEBUG)

    # Replace the file handler of an earlier call instead of stacking
    for handler in list(logger.handlers):
        if isinstance(handler, logging.FileHandler):
            handler.close()
            logger.removeHandler(handler)

    log_file.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(str(log_file), mode="a", encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))
    logger.addHandler(file_handler)
    logger.debug(f"Log file: {log_file}")
    return logger


def strip_ansi(text: str) -> str:
    """Remove terminal color escape sequences."""
    return _ANSI_ESCAPE.sub("", text or "")


def format_duration(ms: Union[int, float]) -> str:
    """Format milliseconds as ``120ms`` or ``1.5s``."""
    ms = int(ms or 0)
    if ms < 1000:
        return f"{ms}ms"
    return f"{ms / 1000:.1f}s"


def timestamp_utc() -> str:
    """Return the current UTC time as ``YYYY-MM-DD HH:MM:SS UTC``."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")
