#!/usr/bin/env python3
"""Post-edit hook: lint a test file after it is written or edited.

Receives the edited file path as its only argument and exits silently
with 0 when the file is not a test file. Otherwise runs the Rule Zero
linter on that one file and exits with the linter's code.

Usage:
    python testwarden/integrity/lint_hook.py tests/e2e/login.spec.ts
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

BASE_DIR = Path(__file__).resolve().parent.parent.parent
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

from testwarden.integrity.discovery import is_test_file
from testwarden.integrity.linter import lint
from testwarden.utils import RunContext, configure_cli_logging


def run_hook(file_path: Optional[str], ctx: RunContext) -> int:
    if not file_path:
        return 0
    if not is_test_file(Path(file_path).name):
        return 0
    return lint(ctx, cli_file=file_path)


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Lint one edited test file for Rule Zero violations")
    parser.add_argument("file_path", nargs="?", default="", help="Path of the edited file")
    parser.add_argument("--project-root", help="Project root (default: cwd)")
    args = parser.parse_args(argv)
    configure_cli_logging()
    sys.exit(run_hook(args.file_path, RunContext.from_cli(args.project_root)))


if __name__ == "__main__":
    main()
