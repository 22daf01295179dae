#!/usr/bin/env python3
"""Test Integrity Linter: Rule Zero enforcement.

Scans test files for code that modifies the application under test.
Supports JavaScript/TypeScript (Playwright), C# (Selenium / Playwright
.NET), Python (Selenium / Playwright) and Go test files.

Run before tests execute.

Usage:
    python testwarden/integrity/linter.py
    python testwarden/integrity/linter.py --dir tests/e2e
    python testwarden/integrity/linter.py --file tests/e2e/login.spec.ts
    python testwarden/integrity/linter.py --json
    python testwarden/integrity/linter.py --fix-suggestions
    python testwarden/integrity/linter.py --log-file logs/lint.log

Exit codes: 0 = clean, warnings only, or no test directories found;
            1 = critical violations, or an explicit --file/--dir is missing.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

# ---------------------------------------------------------------------------
# Path setup
# ---------------------------------------------------------------------------
BASE_DIR = Path(__file__).resolve().parent.parent.parent
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

from testwarden.data_types import ScanSummary, Violation
from testwarden.errors import InputNotFoundError
from testwarden.integrity.discovery import discover
from testwarden.integrity.rule_catalog import FIX_SUGGESTION
from testwarden.integrity.scanner import scan_files
from testwarden.utils import RunContext, configure_cli_logging

logger = logging.getLogger("testwarden.integrity.linter")


def exit_code(summary: ScanSummary) -> int:
    """1 when any critical violation is present, else 0."""
    return 1 if summary.critical else 0


def _print_context(context: str, indent: str = "      ") -> None:
    for line in context.split("\n"):
        print(f"{indent}{line}")


def render_human(summary: ScanSummary, show_suggestions: bool = False) -> None:
    """Grouped printout: criticals with context, then warnings, then verdict."""
    critical: List[Violation] = summary.critical
    warnings: List[Violation] = summary.warnings

    if summary.unreadable:
        print(f"  UNREADABLE FILES (not scanned): {len(summary.unreadable)}\n")
        for u in summary.unreadable:
            print(f"  [UNREADABLE] {u.file}")
            print(f"    {u.error}")
        print()

    if not summary.violations:
        print("  PASS: No Rule Zero violations detected.\n")
        print("All test files respect application integrity.\n")
        return

    if critical:
        print(f"  CRITICAL VIOLATIONS: {len(critical)}\n")
        for v in critical:
            print(f"  [CRITICAL] {v.file}:{v.line}")
            print(f"    Violation: {v.description}")
            print(f"    Rule: {v.rule}")
            print("    Context:")
            _print_context(v.context)
            if show_suggestions:
                first, *rest = FIX_SUGGESTION.split("\n")
                print(f"    Fix: {first}")
                for line in rest:
                    print(f"         {line}")
            print()

    if warnings:
        print(f"  WARNINGS (manual review needed): {len(warnings)}\n")
        for v in warnings:
            print(f"  [WARNING] {v.file}:{v.line}")
            print(f"    {v.description}")
            print(f"    {v.rule}")
            print()

    print("---")
    print(
        f"Total violations: {len(summary.violations)} "
        f"({len(critical)} critical, {len(warnings)} warnings)"
    )
    print()

    if critical:
        print("BLOCKED: Tests cannot run until all critical Rule Zero violations are removed.")
        print("A test that modifies the application to make itself pass is worse than no test at all.")
        print()
    else:
        print("WARNINGS ONLY: Tests may proceed, but flagged items need manual review.")


def lint(
    ctx: RunContext,
    cli_file: Optional[str] = None,
    cli_dir: Optional[str] = None,
    json_output: bool = False,
    show_suggestions: bool = False,
) -> int:
    """Run discovery, scan and render. Returns the process exit code."""
    if not json_output:
        print()
        print("=== Test Integrity Linter: Rule Zero Enforcement ===")
        print()

    try:
        files = discover(ctx, cli_file=cli_file, cli_dir=cli_dir)
    except InputNotFoundError as e:
        if json_output:
            print(json.dumps({"error": str(e), "violations": [], "files": 0}))
        else:
            print(f"Error: {e}", file=sys.stderr)
        return 1

    if files is None:
        if json_output:
            print(json.dumps({"error": "No test directories found", "violations": [], "files": 0}))
        else:
            print("No test directories found. Use --dir or --file to specify.")
        return 0

    if not files:
        if json_output:
            print(json.dumps(ScanSummary().to_json_dict()))
        else:
            print("No test files found.")
        return 0

    if not json_output:
        print(f"Scanning {len(files)} test file(s)...\n")

    summary = scan_files(files, ctx)
    logger.debug(
        f"Scanned {summary.files} file(s): {len(summary.critical)} critical, "
        f"{len(summary.warnings)} warnings, {len(summary.unreadable)} unreadable"
    )

    if json_output:
        print(json.dumps(summary.to_json_dict(), indent=2))
    else:
        render_human(summary, show_suggestions=show_suggestions)
    return exit_code(summary)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Test Integrity Linter: Rule Zero enforcement"
    )
    parser.add_argument("--dir", help="Test directory to scan recursively")
    parser.add_argument("--file", help="Single test file to scan")
    parser.add_argument("--json", action="store_true", help="Output as JSON")
    parser.add_argument(
        "--fix-suggestions",
        action="store_true",
        help="Show remediation guidance for critical violations",
    )
    parser.add_argument(
        "--project-root",
        help="Project root for relative paths and auto-detection (default: cwd)",
    )
    parser.add_argument("--log-file", help="Also append DEBUG logs to this file")
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    ctx = RunContext.from_cli(args.project_root)
    configure_cli_logging(log_file=ctx.resolve(args.log_file) if args.log_file else None)
    sys.exit(lint(
        ctx,
        cli_file=args.file,
        cli_dir=args.dir,
        json_output=args.json,
        show_suggestions=args.fix_suggestions,
    ))


if __name__ == "__main__":
    main()
