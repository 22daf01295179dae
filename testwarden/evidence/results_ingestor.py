"""Structured test-run ingestion (Playwright JSON reporter format).

Walks ``suites[].specs[].tests[].results[]`` (suites nest through
``suites[]``) and flattens every spec into one TestRecord. Only the first
test entry of a spec is read. When the runner retried a test, the final
result decides status, duration, logs and errors; earlier attempts only
count toward ``attempts`` and ``flaky``.
"""

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

from testwarden.data_types import TestRecord
from testwarden.errors import ResultsFormatError
from testwarden.utils import strip_ansi

logger = logging.getLogger("testwarden.evidence.results_ingestor")

AC_PREFIX = re.compile(r"^(AC-\d+)")


def extract_ac(title: str) -> Optional[str]:
    """``AC-3: Deletes item`` -> ``AC-3``; untagged titles -> None."""
    match = AC_PREFIX.match(title or "")
    return match.group(1) if match else None


def normalize_status(status: Optional[str]) -> str:
    """passed/skipped pass through; failed, timedOut, interrupted -> failed."""
    if status in ("passed", "skipped"):
        return status
    return "failed"


def load_results(path: Path) -> Dict[str, Any]:
    """Read a results document.

    Raises:
        ResultsFormatError: unreadable file, invalid JSON, or a root that is
            not an object.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ResultsFormatError(f"Cannot read test results {path}: {e}", path=str(path)) from e
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ResultsFormatError(
            f"Test results {path} is not valid JSON: {e.msg} (line {e.lineno}, column {e.colno})",
            path=str(path),
        ) from e
    if not isinstance(data, dict):
        raise ResultsFormatError(
            f"Test results {path} must be a JSON object with a 'suites' list", path=str(path)
        )
    return data


def _malformed(where: str, expected: str, value: Any) -> ResultsFormatError:
    return ResultsFormatError(
        f"Malformed test results: {where} must be {expected}, got {type(value).__name__}"
    )


def _as_list(value: Any, where: str) -> List[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise _malformed(where, "a list", value)
    return value


def _as_dict(value: Any, where: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise _malformed(where, "an object", value)
    return value


def _as_text(value: Any, where: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise _malformed(where, "a string", value)
    return value


def _as_duration(value: Any, where: str) -> int:
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        raise _malformed(where, "a number", value)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise _malformed(where, "a number", value) from None


def _stdout_text(result: Dict[str, Any], where: str) -> str:
    chunks = []
    for entry in _as_list(result.get("stdout"), f"{where}.stdout"):
        if isinstance(entry, dict):
            text = entry.get("text")
            chunks.append(text if isinstance(text, str) else "")
        elif isinstance(entry, str):
            chunks.append(entry)
    return strip_ansi("".join(chunks))


def _error_messages(result: Dict[str, Any], where: str) -> List[str]:
    messages = []
    for err in _as_list(result.get("errors"), f"{where}.errors"):
        if isinstance(err, dict):
            msg = err.get("message")
            if not isinstance(msg, str) or not msg:
                msg = json.dumps(err)
        else:
            msg = str(err)
        messages.append(strip_ansi(msg))
    return messages


def _record_for_spec(spec: Any, suite_file: str, where: str) -> Optional[TestRecord]:
    spec = _as_dict(spec, where)
    tests = _as_list(spec.get("tests"), f"{where}.tests")
    if not tests:
        return None
    test = _as_dict(tests[0], f"{where}.tests[0]")
    results = _as_list(test.get("results"), f"{where}.tests[0].results")
    if not results:
        return None

    attempts = [
        _as_dict(r, f"{where}.tests[0].results[{i}]") for i, r in enumerate(results)
    ]
    final = attempts[-1]
    final_where = f"{where}.tests[0].results[{len(attempts) - 1}]"
    status = normalize_status(final.get("status"))
    earlier_failed = any(normalize_status(r.get("status")) == "failed" for r in attempts[:-1])
    title = _as_text(spec.get("title"), f"{where}.title")
    line = spec.get("line")

    return TestRecord(
        title=title,
        ac=extract_ac(title),
        file=_as_text(spec.get("file"), f"{where}.file") or suite_file,
        line=line if isinstance(line, int) and not isinstance(line, bool) else None,
        status=status,
        duration=_as_duration(final.get("duration"), f"{final_where}.duration"),
        stdout=_stdout_text(final, final_where),
        errors=_error_messages(final, final_where),
        project=_as_text(test.get("projectName"), f"{where}.tests[0].projectName"),
        attempts=len(attempts),
        flaky=status == "passed" and earlier_failed,
    )


def _walk_suites(suites: List[Any], records: List[TestRecord], where: str) -> None:
    for i, suite in enumerate(suites):
        suite_where = f"{where}[{i}]"
        suite = _as_dict(suite, suite_where)
        suite_file = _as_text(suite.get("file"), f"{suite_where}.file")
        for j, spec in enumerate(_as_list(suite.get("specs"), f"{suite_where}.specs")):
            record = _record_for_spec(spec, suite_file, f"{suite_where}.specs[{j}]")
            if record is not None:
                records.append(record)
        _walk_suites(_as_list(suite.get("suites"), f"{suite_where}.suites"), records,
                     f"{suite_where}.suites")


def ingest_results(results: Dict[str, Any]) -> List[TestRecord]:
    """Flatten a results document into TestRecords, in document order.

    Raises:
        ResultsFormatError: a node of the suite tree has the wrong shape;
            the message names its location, e.g. ``suites[0].specs[2]``.
    """
    records: List[TestRecord] = []
    _walk_suites(_as_list(results.get("suites"), "suites"), records, "suites")

    if records:
        passed = sum(1 for r in records if r.passed)
        flaky = sum(1 for r in records if r.flaky)
        logger.info(
            f"Parsed {len(records)} test results: {passed} passed, "
            f"{len(records) - passed} not passed, {flaky} flaky"
        )
    return records
