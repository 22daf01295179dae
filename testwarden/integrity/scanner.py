"""Rule Zero scanner: apply the rule catalog to test files.

For each file the language is inferred from its extension and only the
rules of that language run. ``call`` rules search the argument spans
isolated by ``call_spans.find_call_spans``; ``file`` rules search the
whole text with comments and string contents blanked out, plus the
call spans themselves so script passed as a string is still seen. Each
match becomes a Violation positioned at the match offset, unless the
write lands directly on a read-only snapshot (``getComputedStyle(el)``,
``el.cloneNode(true)`` ...).

Violations are deduplicated by (file, line, rule id).
"""

import logging
from pathlib import Path
from typing import Iterable, List, Optional

from testwarden.data_types import Language, ScanSummary, UnreadableFile, Violation, ViolationRule
from testwarden.integrity.call_spans import CallSpan, find_call_spans, mask_literals, receiver_chain
from testwarden.integrity.rule_catalog import (
    compiled,
    is_read_only_receiver,
    language_for,
    rules_for,
)
from testwarden.utils import RunContext

logger = logging.getLogger("testwarden.integrity.scanner")

CONTEXT_BEFORE = 2
CONTEXT_AFTER = 5


def line_number(content: str, offset: int) -> int:
    """1-based line of ``offset``."""
    return content.count("\n", 0, offset) + 1


def context_window(lines: List[str], line: int) -> str:
    start = max(0, line - 1 - CONTEXT_BEFORE)
    end = min(len(lines), line + CONTEXT_AFTER)
    return "\n".join(l.rstrip("\r") for l in lines[start:end])


def _regions(rule: ViolationRule, content: str, masked: str, spans: List[CallSpan]):
    """(text, start, end) triples a rule is searched over."""
    regions = [(content, span.start, span.end) for span in spans]
    if rule.where == "file":
        regions.insert(0, (masked, 0, len(masked)))
    return regions


def scan_content(content: str, file_label: str, language: Optional[Language]) -> List[Violation]:
    """Scan already-loaded text. Results are deduplicated and in file order."""
    rules = rules_for(language)
    if not rules:
        return []

    spans = find_call_spans(content, language)
    masked = mask_literals(content, language)
    lines = content.split("\n")
    violations: List[Violation] = []
    seen = set()

    for rule in rules:
        pattern = compiled(rule)
        for text, start, end in _regions(rule, content, masked, spans):
            for match in pattern.finditer(text, start, end):
                receiver = receiver_chain(text, match.start(), floor=start)
                if is_read_only_receiver(receiver):
                    logger.debug(
                        f"{file_label}: {rule.id} skipped, read-only receiver {receiver!r}"
                    )
                    continue

                line = line_number(content, match.start())
                key = (file_label, line, rule.id)
                if key in seen:
                    continue
                seen.add(key)

                context = context_window(lines, line)
                if not context.strip():
                    context = match.group(0)
                violations.append(Violation(
                    file=file_label,
                    line=line,
                    id=rule.id,
                    severity=rule.severity,
                    description=rule.description,
                    rule=rule.rule,
                    context=context,
                ))

    violations.sort(key=lambda v: (v.line, v.id))
    return violations


def scan_file(path: Path, ctx: RunContext) -> List[Violation]:
    """Scan one file.

    Raises:
        OSError: the file could not be read.
    """
    content = path.read_text(encoding="utf-8", errors="replace")
    return scan_content(content, ctx.relative(path), language_for(path.name))


def scan_files(paths: Iterable[Path], ctx: RunContext) -> ScanSummary:
    """Scan every file; an unreadable file is recorded and skipped."""
    summary = ScanSummary()
    seen = set()
    for path in paths:
        summary.files += 1
        try:
            found = scan_file(path, ctx)
        except OSError as e:
            logger.warning(f"Skipping unreadable file {path}: {e}")
            summary.unreadable.append(UnreadableFile(file=ctx.relative(path), error=str(e)))
            continue
        for violation in found:
            if violation.key in seen:
                continue
            seen.add(violation.key)
            summary.violations.append(violation)
    return summary
