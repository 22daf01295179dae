#!/usr/bin/env python3
"""Evidence Report Generator.

Reads the JSON results of a Playwright run, resolves the project's
acceptance criteria, embeds AC screenshots and writes a self-contained
HTML evidence report (traceability matrix, per-AC detail, coverage gaps,
review summary).

Usage:
    python testwarden/evidence/report_generator.py
    python testwarden/evidence/report_generator.py --results path/to/results.json
    python testwarden/evidence/report_generator.py --config testwarden-config.yml
    python testwarden/evidence/report_generator.py --output out/report.html
    python testwarden/evidence/report_generator.py --log-file logs/report.log

Exit codes: 0 = report written; 1 = missing input or malformed results.
"""

import argparse
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

from testwarden.data_types import ACCatalog, EvidenceReport
from testwarden.errors import ConfigFormatError, InputNotFoundError, TestwardenError
from testwarden.evidence.ac_resolver import resolve_ac_catalog
from testwarden.evidence.config_loader import CONFIG_FILENAME, load_minimal_config
from testwarden.evidence.evidence_binder import bind_evidence, find_evidence_dir
from testwarden.evidence.report_compiler import compile_report, render_document
from testwarden.evidence.results_ingestor import ingest_results, load_results
from testwarden.utils import RunContext, configure_cli_logging, format_duration

logger = logging.getLogger("testwarden.evidence.report_generator")

RESULTS_CANDIDATES = [
    "tests/report/test-results.json",
    "test-results/results.json",
    "test-results.json",
    "playwright-report/test-results.json",
    "reports/test-results.json",
]
TEMPLATE_NAME = "report_template.html"
DEFAULT_OUTPUT = "tests/report/evidence-report.html"


def find_results_file(ctx: RunContext, cli_results: Optional[str] = None) -> Path:
    """Explicit results path, else the first conventional location that exists.

    Raises:
        InputNotFoundError: nothing found; carries the searched paths.
    """
    if cli_results:
        path = ctx.resolve(cli_results)
        if not path.is_file():
            raise InputNotFoundError(f"Results file not found: {cli_results}")
        return path

    for candidate in RESULTS_CANDIDATES:
        path = ctx.project_root / candidate
        if path.is_file():
            return path
    raise InputNotFoundError(
        "No test results found. Run tests with the JSON reporter first.",
        searched=RESULTS_CANDIDATES,
    )


def find_template_path(ctx: RunContext, cli_template: Optional[str] = None) -> Path:
    """Explicit template path, else the template bundled with the package."""
    path = ctx.resolve(cli_template) if cli_template else ctx.resource_root / TEMPLATE_NAME
    if not path.is_file():
        raise InputNotFoundError(f"Report template not found: {path}")
    return path


def find_output_path(ctx: RunContext, cli_output: Optional[str] = None) -> Path:
    return ctx.resolve(cli_output or DEFAULT_OUTPUT)


def project_name_for(ctx: RunContext, catalog: ACCatalog, config_path: Optional[str] = None) -> str:
    """Config ``project-name``/``name``, else the project directory's name."""
    if catalog.project_name:
        return catalog.project_name

    paths = [ctx.resolve(config_path)] if config_path else []
    paths.append(ctx.project_root / CONFIG_FILENAME)
    for path in paths:
        try:
            config = load_minimal_config(path)
        except (FileNotFoundError, ConfigFormatError):
            continue
        name = config.get("project-name") or config.get("name")
        if isinstance(name, str) and name:
            return name
    return ctx.project_root.name


def print_summary(report: EvidenceReport, output_path: Path) -> None:
    print(f"Evidence report generated: {output_path}")
    print(
        f"  Total: {report.total} | Passed: {report.passed} | Failed: {report.failed} "
        f"| Skipped: {report.skipped} | Duration: {format_duration(report.duration)}"
    )
    print(f"  Screenshots embedded: {report.image_count}")
    print(f"  ACs covered: {report.acs_covered}/{len(report.coverage)}")


def generate_report(
    ctx: RunContext,
    cli_results: Optional[str] = None,
    cli_template: Optional[str] = None,
    cli_output: Optional[str] = None,
    config_path: Optional[str] = None,
) -> Path:
    """Run the full pipeline and write the document. Returns the output path.

    Raises:
        InputNotFoundError: missing results file or template.
        ResultsFormatError: unparseable results document.
    """
    results_path = find_results_file(ctx, cli_results)
    template_path = find_template_path(ctx, cli_template)
    output_path = find_output_path(ctx, cli_output)
    logger.info(f"Results: {ctx.relative(results_path)}")

    records = ingest_results(load_results(results_path))
    catalog = resolve_ac_catalog(ctx, records, config_path)
    images = bind_evidence(find_evidence_dir(ctx))

    report = compile_report(
        records,
        catalog,
        images,
        project_name=project_name_for(ctx, catalog, config_path),
    )
    document = render_document(report, template_path.read_text(encoding="utf-8"))

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(document, encoding="utf-8")

    print_summary(report, output_path)
    return output_path


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate a self-contained HTML evidence report from test results"
    )
    parser.add_argument("--results", help="Path to the JSON test results")
    parser.add_argument("--template", help="HTML report template (default: bundled)")
    parser.add_argument("--output", help=f"Output HTML path (default: {DEFAULT_OUTPUT})")
    parser.add_argument("--config", help=f"AC config file (default: {CONFIG_FILENAME} if present)")
    parser.add_argument("--project-root", help="Project root (default: cwd)")
    parser.add_argument("--log-file", help="Also append DEBUG logs to this file")
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    ctx = RunContext.from_cli(args.project_root)
    configure_cli_logging(log_file=ctx.resolve(args.log_file) if args.log_file else None)
    try:
        generate_report(
            ctx,
            cli_results=args.results,
            cli_template=args.template,
            cli_output=args.output,
            config_path=args.config,
        )
    except TestwardenError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)
    sys.exit(0)


if __name__ == "__main__":
    main()
