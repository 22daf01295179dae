"""Tests for report compilation, HTML fragment rendering and template filling."""

import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from testwarden.data_types import ACCatalog, ACDefinition, EvidenceImage, TestRecord
from testwarden.evidence.report_compiler import (
    compile_report,
    coverage_for,
    fill_template,
    render_document,
    render_fragments,
)
from testwarden.utils import PACKAGE_ROOT

BUNDLED_TEMPLATE = (PACKAGE_ROOT / "evidence" / "report_template.html").read_text(encoding="utf-8")


def _ac(ac_id, description="Criterion", minimum=1, provenance="config"):
    return ACDefinition(id=ac_id, description=description, minimum=minimum, provenance=provenance)


def _catalog(*definitions):
    return ACCatalog(definitions={d.id: d for d in definitions}, source="config:test")


def _test(title, status="passed", duration=100, project="e2e", **kwargs):
    ac = title.split(":")[0] if title.startswith("AC-") else None
    return TestRecord(title=title, ac=ac, status=status, duration=duration,
                      project=project, file="e2e/items.spec.ts", line=7, **kwargs)


def _image(filename, ac, caption="Shot"):
    return EvidenceImage(filename=filename, ac=ac, caption=caption,
                         data_uri="data:image/png;base64,AAAA")


# ---------------------------------------------------------------------------
# Coverage
# ---------------------------------------------------------------------------

class TestCoverage:

    def test_below_minimum(self):
        cov = coverage_for(_ac("AC-1", minimum=3), [_test("AC-1: a"), _test("AC-1: b")], [])
        assert cov.total == 2
        assert cov.passed == 2
        assert cov.failed == 0
        assert cov.status == "BELOW-MIN"
        assert cov.is_gap

    def test_failure_beats_minimum(self):
        tests = [_test("AC-1: a"), _test("AC-1: b", status="failed")]
        cov = coverage_for(_ac("AC-1", minimum=5), tests, [])
        assert cov.status == "FAIL"

    def test_skipped_listed_not_counted(self):
        tests = [_test("AC-1: a"), _test("AC-1: b", status="skipped")]
        cov = coverage_for(_ac("AC-1"), tests, [])
        assert cov.total == 1
        assert cov.skipped == 1
        assert len(cov.tests) == 2
        assert cov.status == "PASS"

    def test_lane_counts(self):
        tests = [_test("AC-1: a", project="api"), _test("AC-1: b"), _test("AC-1: c", project="")]
        cov = coverage_for(_ac("AC-1"), tests, [])
        assert cov.api_count == 1
        assert cov.e2e_count == 2
        assert cov.duration == 300


class TestCompileReport:

    def test_global_counts(self):
        records = [
            _test("AC-1: a", duration=50),
            _test("AC-1: b", status="failed", duration=70),
            _test("untagged", status="skipped", duration=0),
        ]
        report = compile_report(records, _catalog(_ac("AC-1")), [], "Demo", timestamp="T")
        assert (report.total, report.passed, report.failed, report.skipped) == (3, 1, 1, 1)
        assert report.duration == 120
        assert report.timestamp == "T"

    def test_discovered_acs_added(self):
        title = "AC-2: " + "x" * 80
        report = compile_report([_test(title)], _catalog(_ac("AC-1")), [], "Demo")
        ids = [c.id for c in report.coverage]
        assert ids == ["AC-1", "AC-2"]
        discovered = report.coverage[1].definition
        assert discovered.provenance == "discovered"
        assert discovered.minimum == 1
        assert len(discovered.description) == 60

    def test_gaps_and_covered(self):
        catalog = _catalog(_ac("AC-1"), _ac("AC-2", minimum=2))
        report = compile_report([_test("AC-1: a"), _test("AC-2: b")], catalog, [], "Demo")
        assert [c.id for c in report.gaps] == ["AC-2"]
        assert report.acs_covered == 2

    def test_images_placement(self):
        images = [
            _image("ac1-a.png", "AC-1"),
            _image("ac9-orphan.png", "AC-9"),
            _image("overview.png", None),
            _image("ac2-untested.png", "AC-2"),
        ]
        catalog = _catalog(_ac("AC-1"), _ac("AC-2"))
        report = compile_report([_test("AC-1: a")], catalog, images, "Demo")
        assert [i.filename for i in report.coverage[0].images] == ["ac1-a.png"]
        assert report.coverage[1].images == []
        assert sorted(i.filename for i in report.unassigned_images) == [
            "ac2-untested.png", "ac9-orphan.png", "overview.png",
        ]
        assert report.image_count == 4


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

class TestRenderFragments:

    def test_single_passing_ac_with_screenshot(self):
        record = _test("AC-1: Creates item", duration=120)
        catalog = ACCatalog(
            definitions={"AC-1": _ac("AC-1", "Creates item", provenance="test-titles")},
            source="test-titles",
        )
        image = _image("ac1-item-created.png", "AC-1", caption="Item Created")
        report = compile_report([record], catalog, [image], "Demo")
        fragments = render_fragments(report)

        rows = fragments["AC_ROWS"]
        assert 'data-ac="AC-1"' in rows
        assert "<td>1 (min: 1)</td>" in rows
        assert "<td>1</td>" in rows
        assert "<td>0</td>" in rows
        assert '<span class="pass-badge">PASS</span>' in rows

        detail = fragments["AC_DETAIL_SECTIONS"]
        assert detail.count('class="ac-section"') == 1
        assert "120ms" in detail
        assert '<div class="caption">Item Created</div>' in detail
        assert 'onclick="openLightbox(this.src, this.alt)"' in detail
        assert "1 screenshots" in detail
        assert '<span class="test-name">Creates item</span>' in detail

        assert "gap-ok" in fragments["GAPS"]
        assert fragments["SECURITY_ROWS"] == ""

    def test_below_min_badge_and_gap(self):
        report = compile_report(
            [_test("AC-1: a"), _test("AC-1: b")], _catalog(_ac("AC-1", minimum=3)), [], "Demo",
        )
        fragments = render_fragments(report)
        assert '<span class="skip-badge">BELOW MIN</span>' in fragments["AC_ROWS"]
        assert "2 tests found, minimum required: 3" in fragments["GAPS"]
        assert "Some ACs below minimum" in fragments["REVIEW_SUMMARY"]

    def test_failing_test_card(self):
        record = _test("AC-1: Breaks", status="failed", stdout="step 1\n",
                       errors=["Expected <b>1</b>"])
        report = compile_report([record], _catalog(_ac("AC-1")), [], "Demo")
        detail = render_fragments(report)["AC_DETAIL_SECTIONS"]
        assert 'data-status="fail"' in detail
        assert '<div class="log-block">step 1</div>' in detail
        assert "Expected &lt;b&gt;1&lt;/b&gt;" in detail
        assert "e2e/items.spec.ts:7" in detail

    def test_descriptions_escaped(self):
        report = compile_report([], _catalog(_ac("AC-1", "<script>alert(1)</script>")), [], "A & B")
        fragments = render_fragments(report)
        assert "<script>alert" not in fragments["AC_ROWS"]
        assert "&lt;script&gt;" in fragments["AC_ROWS"]
        assert fragments["PROJECT_NAME"] == "A &amp; B"

    def test_unassigned_gallery(self):
        report = compile_report([], ACCatalog(), [_image("overview.png", None, "Overview")], "Demo")
        detail = render_fragments(report)["AC_DETAIL_SECTIONS"]
        assert "Other Screenshots" in detail
        assert '<div class="caption">Overview</div>' in detail

    def test_review_summary(self):
        catalog = _catalog(_ac("AC-1"), _ac("AC-2"))
        report = compile_report([_test("AC-1: a")], catalog, [], "Demo")
        summary = render_fragments(report)["REVIEW_SUMMARY"]
        assert "1/2 acceptance criteria have tests" in summary
        assert "1/1 tests passed across 1 acceptance criteria." in summary


# ---------------------------------------------------------------------------
# Template filling
# ---------------------------------------------------------------------------

class TestFillTemplate:

    def test_scalars_replaced_everywhere(self):
        out = fill_template("{{TOTAL}} and {{TOTAL}}", {"TOTAL": "3"})
        assert out == "3 and 3"

    def test_block_marker_replaced(self):
        out = fill_template("<tbody><!-- {{AC_ROWS}} --></tbody>", {"AC_ROWS": "<tr></tr>"})
        assert out == "<tbody><tr></tr></tbody>"

    def test_missing_placeholders_are_noop(self):
        template = "<html><body>static</body></html>"
        assert fill_template(template, {"TOTAL": "1", "AC_ROWS": "x"}) == template

    def test_absent_value_leaves_token(self):
        assert fill_template("{{PASSED}}", {}) == "{{PASSED}}"

    def test_inserted_text_not_rescanned(self):
        out = fill_template("<!-- {{AC_ROWS}} --> {{TOTAL}}", {
            "AC_ROWS": "literal {{TOTAL}}", "TOTAL": "5",
        })
        assert out == "literal {{TOTAL}} 5"


class TestRenderDocument:

    def test_empty_run(self):
        report = compile_report([], ACCatalog(), [], "Empty Project", timestamp="2026-01-01 00:00:00 UTC")
        html = render_document(report, BUNDLED_TEMPLATE)
        assert '<div class="value">0</div><div class="label">Total</div>' in html
        assert '<div class="value">0</div><div class="label">Passed</div>' in html
        assert '<div class="value">0</div><div class="label">Failed</div>' in html
        assert 'class="ac-section"' not in html
        assert "{{" not in html
        assert "Empty Project" in html

    @pytest.mark.parametrize("token", [
        "{{PROJECT_NAME}}", "{{TIMESTAMP}}", "{{DURATION}}", "{{TOTAL}}",
        "{{PASSED}}", "{{FAILED}}", "{{SKIPPED}}",
        "<!-- {{AC_ROWS}} -->", "<!-- {{AC_DETAIL_SECTIONS}} -->", "<!-- {{GAPS}} -->",
        "<!-- {{REVIEW_SUMMARY}} -->", "<!-- {{SECURITY_ROWS}} -->",
    ])
    def test_bundled_template_has_placeholder(self, token):
        assert token in BUNDLED_TEMPLATE
