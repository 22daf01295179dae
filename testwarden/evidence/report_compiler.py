"""Evidence report compiler.

Joins test records, the AC catalog and bound screenshots into an
EvidenceReport, renders the HTML fragments (traceability matrix, AC
detail sections, coverage gaps, review summary) with Jinja2 and fills
them into the report template's placeholders.
"""

import html
import logging
import re
from typing import Dict, List, Optional

from jinja2 import BaseLoader, Environment

from testwarden.data_types import (
    ACCatalog, ACCoverage, ACDefinition, EvidenceImage, EvidenceReport, TestRecord,
)
from testwarden.utils import format_duration, timestamp_utc

logger = logging.getLogger("testwarden.evidence.report_compiler")

DISCOVERED_DESCRIPTION_CHARS = 60
TITLE_AC_STRIP = re.compile(r"^AC-\d+[:\s]+")

SCALAR_PLACEHOLDERS = [
    "PROJECT_NAME", "TIMESTAMP", "DURATION", "TOTAL", "PASSED", "FAILED", "SKIPPED",
]
BLOCK_PLACEHOLDERS = [
    "AC_ROWS", "AC_DETAIL_SECTIONS", "GAPS", "REVIEW_SUMMARY", "SECURITY_ROWS",
]

# ---------------------------------------------------------------------------
# Fragment templates
# ---------------------------------------------------------------------------
_MACROS = r"""
{% macro status_badge(status) -%}
{% if status == "PASS" %}<span class="pass-badge">PASS</span>
{%- elif status == "FAIL" %}<span class="fail-badge">FAIL</span>
{%- else %}<span class="skip-badge">BELOW MIN</span>{% endif %}
{%- endmacro %}
{% macro test_badge(status) -%}
{% if status == "passed" %}<span class="pass-badge">PASS</span>
{%- elif status == "skipped" %}<span class="skip-badge">SKIP</span>
{%- else %}<span class="fail-badge">FAIL</span>{% endif %}
{%- endmacro %}
{% macro screenshot_grid(images) -%}
<div class="screenshot-grid">
{% for img in images %}
  <div class="screenshot-item">
    <img src="{{ img.data_uri }}" alt="{{ img.caption }}" loading="lazy" onclick="openLightbox(this.src, this.alt)">
    <div class="caption">{{ img.caption }}</div>
  </div>
{% endfor %}
</div>
{%- endmacro %}
"""

AC_ROWS_TEMPLATE = _MACROS + r"""
{% for cov in coverage %}
<tr class="ac-row" data-ac="{{ cov.id }}">
  <td><strong>{{ cov.id }}</strong></td>
  <td>{{ cov.definition.description }}</td>
  <td>{{ cov.total }} (min: {{ cov.definition.minimum }})</td>
  <td>{{ cov.passed }}</td>
  <td>{{ cov.failed }}</td>
  <td>{{ status_badge(cov.status) }}</td>
</tr>
{% endfor %}
"""

AC_DETAIL_TEMPLATE = _MACROS + r"""
{% for cov in coverage if cov.tests %}
<div class="ac-section" id="ac-{{ cov.id }}" data-status="{{ 'fail' if cov.failed else 'pass' }}">
  <details>
    <summary>
      <span class="ac-title">{{ cov.id }}: {{ cov.definition.description }}</span>
      <span class="ac-stats">
        {{ status_badge(cov.status) }}
        <span>{{ cov.tests|length }} tests</span>
{% if cov.api_count %}
        <span class="api-badge">API {{ cov.api_count }}</span>
{% endif %}
{% if cov.e2e_count %}
        <span class="e2e-badge">E2E {{ cov.e2e_count }}</span>
{% endif %}
        <span>{{ cov.duration|duration }}</span>
{% if cov.images %}
        <span>{{ cov.images|length }} screenshots</span>
{% endif %}
      </span>
    </summary>
    <div class="ac-content">
{% for t in cov.tests %}
      <div class="test-card{% if t.flaky %} flaky{% endif %}">
        <div class="test-card-header">
          {{ test_badge(t.status) }} <span class="{{ t.lane }}-badge">{{ t.lane|upper }}</span>
          <span class="test-name">{{ t.title|strip_ac }}</span>
          <span class="test-meta">{{ t.duration|duration }} &middot; {{ t.file }}{% if t.line is not none %}:{{ t.line }}{% endif %}{% if t.attempts > 1 %} &middot; {{ t.attempts }} attempts{% endif %}</span>
        </div>
{% if t.stdout.strip() %}
        <div class="log-block">{{ t.stdout.strip() }}</div>
{% endif %}
{% for err in t.errors %}
        <div class="log-block error-block">{{ err }}</div>
{% endfor %}
      </div>
{% endfor %}
{% if cov.images %}
      <h4 class="evidence-heading">Screenshot Evidence</h4>
      {{ screenshot_grid(cov.images) }}
{% endif %}
    </div>
  </details>
</div>
{% endfor %}
{% if unassigned %}
<div class="ac-section" id="other-screenshots">
  <details>
    <summary>
      <span class="ac-title">Other Screenshots</span>
      <span class="ac-stats"><span>{{ unassigned|length }} screenshots</span></span>
    </summary>
    <div class="ac-content">
      {{ screenshot_grid(unassigned) }}
    </div>
  </details>
</div>
{% endif %}
"""

GAPS_TEMPLATE = r"""
{% for cov in gaps %}
<div class="gap-warning">
  <strong>{{ cov.id }}: {{ cov.definition.description }}</strong> &mdash; {{ cov.total }} tests found, minimum required: {{ cov.definition.minimum }}
</div>
{% else %}
<p class="gap-ok">All acceptance criteria meet or exceed minimum test coverage requirements.</p>
{% endfor %}
"""

REVIEW_SUMMARY_TEMPLATE = r"""
<table class="review-table">
  <thead>
    <tr><th>Criterion</th><th>Status</th><th>Notes</th></tr>
  </thead>
  <tbody>
    <tr><td>AC naming convention</td><td>{% if report.total %}<span class="pass-badge">PASS</span>{% else %}<span class="skip-badge">N/A</span>{% endif %}</td><td>{{ report.total }} tests scanned</td></tr>
    <tr><td>ACs covered</td><td>{% if covered == report.coverage|length %}<span class="pass-badge">PASS</span>{% else %}<span class="fail-badge">GAPS</span>{% endif %}</td><td>{{ covered }}/{{ report.coverage|length }} acceptance criteria have tests</td></tr>
    <tr><td>Minimum coverage met</td><td>{% if not gaps %}<span class="pass-badge">PASS</span>{% else %}<span class="fail-badge">GAPS</span>{% endif %}</td><td>{{ 'All ACs meet minimum test count' if not gaps else 'Some ACs below minimum' }}</td></tr>
  </tbody>
</table>
<p class="review-summary"><strong>Summary:</strong> {{ report.passed }}/{{ report.total }} tests passed across {{ covered }} acceptance criteria.</p>
"""


def _strip_ac(title: str) -> str:
    return TITLE_AC_STRIP.sub("", title or "", count=1)


def _environment() -> Environment:
    env = Environment(
        loader=BaseLoader(),
        autoescape=True,
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["duration"] = format_duration
    env.filters["strip_ac"] = _strip_ac
    return env


_ENV = _environment()


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------
def _with_discovered(catalog: ACCatalog, records: List[TestRecord]) -> Dict[str, ACDefinition]:
    """Catalog definitions plus any AC ids seen only in test titles."""
    definitions = dict(catalog.definitions)
    for record in records:
        if record.ac and record.ac not in definitions:
            definitions[record.ac] = ACDefinition(
                id=record.ac,
                description=_strip_ac(record.title)[:DISCOVERED_DESCRIPTION_CHARS],
                provenance="discovered",
            )
            logger.debug(f"Discovered {record.ac} from test title '{record.title}'")
    return definitions


def coverage_for(
    definition: ACDefinition,
    tests: List[TestRecord],
    images: List[EvidenceImage],
) -> ACCoverage:
    """Aggregate one AC. Skipped tests are listed but not counted."""
    passed = sum(1 for t in tests if t.status == "passed")
    failed = sum(1 for t in tests if t.status == "failed")
    total = passed + failed

    if failed:
        status = "FAIL"
    elif total < definition.minimum:
        status = "BELOW-MIN"
    else:
        status = "PASS"

    return ACCoverage(
        definition=definition,
        tests=tests,
        images=images,
        total=total,
        passed=passed,
        failed=failed,
        skipped=len(tests) - total,
        api_count=sum(1 for t in tests if t.lane == "api"),
        e2e_count=sum(1 for t in tests if t.lane == "e2e"),
        duration=sum(t.duration for t in tests),
        status=status,
    )


def compile_report(
    records: List[TestRecord],
    catalog: ACCatalog,
    images: List[EvidenceImage],
    project_name: str,
    timestamp: Optional[str] = None,
) -> EvidenceReport:
    """Compute global counts, per-AC coverage and screenshot placement."""
    definitions = _with_discovered(catalog, records)

    coverage: List[ACCoverage] = []
    placed = set()
    for ac_id, definition in definitions.items():
        tests = [r for r in records if r.ac == ac_id]
        # screenshots only render inside a detail section
        ac_images = [img for img in images if img.ac == ac_id] if tests else []
        placed.update(img.filename for img in ac_images)
        coverage.append(coverage_for(definition, tests, ac_images))

    unassigned = [img for img in images if img.filename not in placed]

    report = EvidenceReport(
        project_name=project_name,
        timestamp=timestamp or timestamp_utc(),
        total=len(records),
        passed=sum(1 for r in records if r.status == "passed"),
        failed=sum(1 for r in records if r.status == "failed"),
        skipped=sum(1 for r in records if r.status == "skipped"),
        duration=sum(r.duration for r in records),
        coverage=coverage,
        unassigned_images=unassigned,
        image_count=len(images),
    )
    logger.info(
        f"Compiled report: {report.total} tests, {len(coverage)} ACs, "
        f"{len(report.gaps)} coverage gaps, {report.image_count} screenshots"
    )
    return report


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------
def render_fragments(report: EvidenceReport) -> Dict[str, str]:
    """HTML for every placeholder, keyed by placeholder name."""
    gaps = report.gaps
    return {
        "PROJECT_NAME": html.escape(report.project_name),
        "TIMESTAMP": html.escape(report.timestamp),
        "DURATION": format_duration(report.duration),
        "TOTAL": str(report.total),
        "PASSED": str(report.passed),
        "FAILED": str(report.failed),
        "SKIPPED": str(report.skipped),
        "AC_ROWS": _ENV.from_string(AC_ROWS_TEMPLATE).render(coverage=report.coverage),
        "AC_DETAIL_SECTIONS": _ENV.from_string(AC_DETAIL_TEMPLATE).render(
            coverage=report.coverage, unassigned=report.unassigned_images,
        ),
        "GAPS": _ENV.from_string(GAPS_TEMPLATE).render(gaps=gaps),
        "REVIEW_SUMMARY": _ENV.from_string(REVIEW_SUMMARY_TEMPLATE).render(
            report=report, gaps=gaps, covered=report.acs_covered,
        ),
        "SECURITY_ROWS": "",
    }


_PLACEHOLDER = re.compile(
    "|".join(
        [re.escape(f"<!-- {{{{{name}}}}} -->") for name in BLOCK_PLACEHOLDERS]
        + [re.escape(f"{{{{{name}}}}}") for name in SCALAR_PLACEHOLDERS]
    )
)
_PLACEHOLDER_NAME = re.compile(r"\{\{(\w+)\}\}")


def fill_template(template: str, values: Dict[str, str]) -> str:
    """Substitute placeholders in one pass.

    Inserted fragments are never rescanned, so a test log that happens to
    contain ``{{TOTAL}}`` stays literal. Unknown or absent placeholders are
    left untouched.
    """
    def _replace(match: "re.Match") -> str:
        name = _PLACEHOLDER_NAME.search(match.group(0)).group(1)
        return values.get(name, match.group(0))

    return _PLACEHOLDER.sub(_replace, template)


def render_document(report: EvidenceReport, template: str) -> str:
    return fill_template(template, render_fragments(report))
