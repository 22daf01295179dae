"""Per-language tokenizer isolating script-execution call arguments.

Given a test file, finds every script-execution call (``page.evaluate(``,
``driver.ExecuteScript(``, ``driver.execute_script(`` ...) that sits in
real code, not inside a string or comment, and returns the span between
its opening parenthesis and the balanced closing one. String literals
and comments of the host language are skipped while balancing, so a
``)`` inside ``"arguments[0].remove()"`` does not end the span.

A call that never closes is cut off at ``MAX_SPAN_CHARS``.
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from testwarden.data_types import Language
from testwarden.integrity.rule_catalog import CALL_OPENERS

MAX_SPAN_CHARS = 4000

_IDENT_CHARS = re.compile(r"[\w$.?]")
_CLOSERS = {")": "(", "]": "["}


@dataclass(frozen=True)
class LexProfile:
    """Literal and comment syntax of a host language."""
    quotes: Tuple[str, ...]
    multiline_quotes: Tuple[str, ...] = ()
    triple_quotes: bool = False
    verbatim_prefix: Optional[str] = None
    line_comment: Optional[str] = None
    block_comment: Optional[Tuple[str, str]] = None


PROFILES: Dict[Language, LexProfile] = {
    "script": LexProfile(
        quotes=("'", '"'),
        multiline_quotes=("`",),
        line_comment="//",
        block_comment=("/*", "*/"),
    ),
    "csharp": LexProfile(
        quotes=("'", '"'),
        verbatim_prefix='@"',
        line_comment="//",
        block_comment=("/*", "*/"),
    ),
    "python": LexProfile(
        quotes=("'", '"'),
        triple_quotes=True,
        line_comment="#",
    ),
}


@dataclass(frozen=True)
class CallSpan:
    """Argument span of one script-execution call.

    call_start: offset of the matched opener
    start: first offset after ``(``
    end: offset of the closing ``)`` (or the cut-off point)
    """
    call_start: int
    start: int
    end: int
    truncated: bool = False


def _skip_quoted(text: str, i: int, quote: str, multiline: bool, escapes: bool = True) -> int:
    """Return the offset just past the literal opened at ``i``."""
    n = len(text)
    j = i + len(quote)
    while j < n:
        ch = text[j]
        if escapes and ch == "\\":
            j += 2
            continue
        if text.startswith(quote, j):
            return j + len(quote)
        if ch == "\n" and not multiline:
            return j
        j += 1
    return n


def _skip_verbatim(text: str, i: int, prefix: str) -> int:
    """C# verbatim string: no escapes, ``""`` is a literal quote."""
    n = len(text)
    j = i + len(prefix)
    while j < n:
        if text[j] == '"':
            if j + 1 < n and text[j + 1] == '"':
                j += 2
                continue
            return j + 1
        j += 1
    return n


def skip_literal(text: str, i: int, profile: LexProfile) -> Optional[int]:
    """If a string or comment starts at ``i``, return the offset past it."""
    if profile.line_comment and text.startswith(profile.line_comment, i):
        end = text.find("\n", i)
        return len(text) if end == -1 else end
    if profile.block_comment and text.startswith(profile.block_comment[0], i):
        end = text.find(profile.block_comment[1], i + len(profile.block_comment[0]))
        return len(text) if end == -1 else end + len(profile.block_comment[1])
    if profile.verbatim_prefix and text.startswith(profile.verbatim_prefix, i):
        return _skip_verbatim(text, i, profile.verbatim_prefix)
    if profile.triple_quotes:
        for triple in ('"""', "'''"):
            if text.startswith(triple, i):
                return _skip_quoted(text, i, triple, multiline=True)
    for quote in profile.multiline_quotes:
        if text.startswith(quote, i):
            return _skip_quoted(text, i, quote, multiline=True)
    for quote in profile.quotes:
        if text.startswith(quote, i):
            return _skip_quoted(text, i, quote, multiline=False)
    return None


def _is_comment(text: str, i: int, profile: LexProfile) -> bool:
    if profile.line_comment and text.startswith(profile.line_comment, i):
        return True
    return bool(profile.block_comment and text.startswith(profile.block_comment[0], i))


def mask_literals(text: str, language: Language) -> str:
    """Blank out comments and the contents of string literals.

    Offsets and newlines are preserved, and string delimiters are kept,
    so ``x = 'none'`` becomes ``x = '    '``.
    """
    profile = PROFILES.get(language)
    if profile is None:
        return text
    out = list(text)
    n = len(text)
    i = 0
    while i < n:
        end = skip_literal(text, i, profile)
        if end is None:
            i += 1
            continue
        if _is_comment(text, i, profile):
            lo, hi = i, end
        else:
            lo = i + 1
            hi = end - 1 if end - 1 > i and text[end - 1] in "'\"`" else end
        for k in range(lo, hi):
            if out[k] != "\n":
                out[k] = " "
        i = end
    return "".join(out)


def _close_paren(text: str, open_index: int, profile: LexProfile, window: int) -> Tuple[int, bool]:
    """Find the ``)`` balancing the ``(`` at ``open_index``."""
    limit = min(len(text), open_index + 1 + window)
    depth = 1
    j = open_index + 1
    while j < limit:
        skipped = skip_literal(text, j, profile)
        if skipped is not None:
            j = skipped
            continue
        ch = text[j]
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return j, False
        j += 1
    return limit, True


def _opener_regex(language: Language) -> Optional["re.Pattern"]:
    openers = CALL_OPENERS.get(language) or ()
    if not openers:
        return None
    return re.compile("|".join(f"(?:{o})" for o in openers))


_OPENERS = {language: _opener_regex(language) for language in CALL_OPENERS}


def find_call_spans(text: str, language: Language, window: int = MAX_SPAN_CHARS) -> List[CallSpan]:
    """Return the argument spans of all script-execution calls in ``text``.

    Spans never overlap: a call nested inside another call's arguments is
    already covered by the outer span.
    """
    opener = _OPENERS.get(language)
    if opener is None:
        return []
    profile = PROFILES[language]

    spans: List[CallSpan] = []
    pos = 0
    n = len(text)
    while pos < n:
        match = opener.search(text, pos)
        if not match:
            break

        # Walk the code between pos and the candidate so that openers
        # inside strings or comments are rejected.
        j = pos
        hidden = False
        while j < match.start():
            skipped = skip_literal(text, j, profile)
            if skipped is None:
                j += 1
                continue
            if skipped > match.start():
                hidden = True
            j = skipped
        if hidden:
            pos = j
            continue

        open_index = match.end() - 1
        end, truncated = _close_paren(text, open_index, profile, window)
        spans.append(CallSpan(
            call_start=match.start(),
            start=open_index + 1,
            end=end,
            truncated=truncated,
        ))
        pos = max(end, open_index + 1)
    return spans


def receiver_chain(text: str, index: int, floor: int = 0) -> str:
    """Return the member-access chain ending just before ``index``.

    For ``getComputedStyle(el).display = 'x'`` with ``index`` at ``.display``
    this yields ``getComputedStyle(el)``. Bracketed groups are skipped as a
    unit; whitespace or any other punctuation ends the chain.
    """
    j = index - 1
    while j >= floor:
        ch = text[j]
        if ch in _CLOSERS:
            opener = _CLOSERS[ch]
            depth = 0
            while j >= floor:
                if text[j] == ch:
                    depth += 1
                elif text[j] == opener:
                    depth -= 1
                    if depth == 0:
                        break
                j -= 1
            j -= 1
            continue
        if _IDENT_CHARS.match(ch):
            j -= 1
            continue
        break
    return text[j + 1:index]
