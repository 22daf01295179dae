"""Rule Zero violation catalog.

Rule Zero: tests must only observe the application under test, never
modify it. Every rule below matches a *mutating* construct: a write to a
DOM-affecting property, element removal/injection, style or script
injection, or a mutation observer.

Rules with ``where="call"`` are applied only inside the argument span of
a script-execution call (``page.evaluate(...)``, ``driver.ExecuteScript(...)``,
``driver.execute_script(...)``); see ``call_spans.py``. Rules with
``where="file"`` run over the whole file.

Severity:
    critical: blocks the test run
    warning:  property write on an element located by id/selector that
              cannot be proven read-only; needs manual review
"""

import re
from typing import Dict, List, Optional, Tuple

from testwarden.data_types import Language, ViolationRule

# Assignment or compound assignment (+=, -=), excluding comparisons
# (==, ===) and arrow functions (=>)
ASSIGN = r"\s*[+\-]?=(?![=>])"

# File extension -> language scope
LANGUAGE_BY_EXTENSION: Dict[str, Language] = {
    ".js": "script",
    ".mjs": "script",
    ".cjs": "script",
    ".jsx": "script",
    ".ts": "script",
    ".tsx": "script",
    ".cs": "csharp",
    ".py": "python",
    ".go": "go",
}

# Script-execution calls whose argument span is checked per language
CALL_OPENERS: Dict[Language, Tuple[str, ...]] = {
    "script": (
        r"\.\s*(?:evaluate|evaluateHandle|evaluateAll|\$eval|\$\$eval|addInitScript)\s*\(",
    ),
    "csharp": (
        r"\.\s*(?:ExecuteScript|ExecuteAsyncScript|EvaluateAsync|EvaluateHandleAsync"
        r"|EvalOnSelectorAsync|EvalOnSelectorAllAsync|AddInitScriptAsync)\s*(?:<[^<>()]*>)?\s*\(",
    ),
    "python": (
        r"\.\s*(?:execute_script|execute_async_script|evaluate|evaluate_handle"
        r"|eval_on_selector|eval_on_selector_all|add_init_script)\s*\(",
    ),
}

# Calls returning a detached, read-only snapshot of the page. A write
# directly on the returned value cannot change the application.
READ_ONLY_SNAPSHOTS: Tuple[str, ...] = (
    "getComputedStyle",
    "getBoundingClientRect",
    "getClientRects",
    "cloneNode",
)

_ID_PREFIX = {"script": "", "csharp": "CS_", "python": "PY_"}
_CALL_LABEL = {
    "script": "evaluate()",
    "csharp": "ExecuteScript()",
    "python": "execute_script()",
}

# (kind, severity, pattern, description template, rule text)
_CALL_RULES = [
    (
        "DOM_STYLE_MUTATION", "critical",
        r"\.\s*style\s*(?:\.\s*(?!display\b)\w+" + ASSIGN
        + r"|\[[^\]\n]*\]" + ASSIGN
        + r"|[+\-]?=(?![=>])"
        + r"|\.\s*(?:setProperty|removeProperty)\s*\()",
        "{call} modifies element .style property",
        "Rule Zero: Tests must never modify application CSS/styles",
    ),
    (
        "DOM_HIDDEN_MUTATION", "critical",
        r"\.\s*hidden" + ASSIGN
        + r"|\.\s*(?:setAttribute|removeAttribute|toggleAttribute)\s*\(\s*\\?['\"`]hidden",
        "{call} modifies element .hidden property",
        "Rule Zero: Tests must never modify application visibility",
    ),
    (
        "DOM_HTML_MUTATION", "critical",
        r"\.\s*(?:innerHTML|outerHTML)" + ASSIGN,
        "{call} modifies element innerHTML/outerHTML",
        "Rule Zero: Tests must never modify application DOM content",
    ),
    (
        "DOM_CLASS_MUTATION", "critical",
        r"\.\s*(?:className" + ASSIGN
        + r"|classList\s*\.\s*(?:add|remove|toggle|replace)\s*\()",
        "{call} modifies element classes",
        "Rule Zero: Tests must never modify application CSS classes",
    ),
    (
        "DOM_ELEMENT_REMOVAL", "critical",
        r"\.\s*(?:remove\s*\(\s*\)|removeChild\s*\(|replaceChildren\s*\(|replaceWith\s*\()",
        "{call} removes DOM elements",
        "Rule Zero: Tests must never remove application elements",
    ),
    (
        "DOM_ELEMENT_INJECTION", "critical",
        r"\.\s*(?:appendChild|insertBefore|insertAdjacentHTML|insertAdjacentElement)\s*\("
        r"|\bdocument\s*\.\s*write(?:ln)?\s*\("
        r"|\bcreateElement\s*\(\s*\\?['\"`](?:style|script|link)\b",
        "{call} injects elements, scripts or stylesheets",
        "Rule Zero: Tests must never inject content into the application",
    ),
    (
        "DOM_PROPERTY_SET", "warning",
        r"\bdocument\s*\.\s*getElementById\s*\([^)]*\)\s*\.\s*\w+" + ASSIGN,
        "{call} sets a property on a DOM element by ID",
        "Potential Rule Zero violation: verify this is read-only",
    ),
    (
        "DOM_QUERY_SET", "warning",
        r"\bdocument\s*\.\s*querySelector\s*\([^)]*\)\s*\.\s*\w+" + ASSIGN,
        "{call} sets a property on a queried DOM element",
        "Potential Rule Zero violation: verify this is read-only",
    ),
]

# Kinds that script files check across the whole file rather than only
# inside evaluate() spans; C# and Python check them inside call spans.
_DISPLAY_RULE = (
    "CSS_DISPLAY_OVERRIDE",
    "Rule Zero: Tests must never override application CSS display",
)
_OBSERVER_RULE = (
    "MUTATION_OBSERVER",
    "Rule Zero: Tests must never use MutationObserver to alter app behavior",
)

_INJECTION_CALLS = {
    "script": (r"\.\s*addStyleTag\s*\(", r"\.\s*addScriptTag\s*\("),
    "csharp": (r"\.\s*AddStyleTagAsync\s*\(", r"\.\s*AddScriptTagAsync\s*\("),
    "python": (r"\.\s*add_style_tag\s*\(", r"\.\s*add_script_tag\s*\("),
}


def _build_rules() -> Tuple[ViolationRule, ...]:
    rules: List[ViolationRule] = []
    for language in ("script", "csharp", "python"):
        prefix = _ID_PREFIX[language]
        call = _CALL_LABEL[language]

        for kind, severity, pattern, description, rule in _CALL_RULES:
            rules.append(ViolationRule(
                id=prefix + kind,
                language=language,
                severity=severity,
                pattern=pattern,
                where="call",
                description=description.format(call=call),
                rule=rule,
            ))

        if language == "script":
            rules.append(ViolationRule(
                id=_DISPLAY_RULE[0],
                language=language,
                severity="critical",
                pattern=r"\bstyle\s*\.\s*display" + ASSIGN + r"|\.\s*display" + ASSIGN + r"\s*['\"`]",
                where="file",
                description="Test overrides CSS display property",
                rule=_DISPLAY_RULE[1],
            ))
            rules.append(ViolationRule(
                id=_OBSERVER_RULE[0],
                language=language,
                severity="critical",
                pattern=r"\bnew\s+MutationObserver\b",
                where="file",
                description="Test creates a MutationObserver to reactively modify the DOM",
                rule=_OBSERVER_RULE[1],
            ))
        else:
            rules.append(ViolationRule(
                id=prefix + _DISPLAY_RULE[0],
                language=language,
                severity="critical",
                pattern=r"\.\s*display" + ASSIGN,
                where="call",
                description=f"{call} overrides CSS display property",
                rule=_DISPLAY_RULE[1],
            ))
            rules.append(ViolationRule(
                id=prefix + _OBSERVER_RULE[0],
                language=language,
                severity="critical",
                pattern=r"\bnew\s+MutationObserver\b",
                where="call",
                description=f"{call} creates a MutationObserver to reactively modify the DOM",
                rule=_OBSERVER_RULE[1],
            ))

        style_call, script_call = _INJECTION_CALLS[language]
        rules.append(ViolationRule(
            id=prefix + "INJECTED_STYLE",
            language=language,
            severity="critical",
            pattern=style_call,
            where="file",
            description="Test injects a <style> tag into the application",
            rule="Rule Zero: Tests must never inject CSS into the application",
        ))
        rules.append(ViolationRule(
            id=prefix + "INJECTED_SCRIPT",
            language=language,
            severity="critical",
            pattern=script_call,
            where="file",
            description="Test injects a <script> tag into the application",
            rule="Rule Zero: Tests must never inject JavaScript into the application",
        ))
    return tuple(rules)


RULES: Tuple[ViolationRule, ...] = _build_rules()

_COMPILED: Dict[str, "re.Pattern"] = {rule.id: re.compile(rule.pattern) for rule in RULES}
_SNAPSHOT_CALL = re.compile(r"\b(?:%s)\s*$" % "|".join(READ_ONLY_SNAPSHOTS))

FIX_SUGGESTION = (
    "Remove this code. If the application is broken, the test should FAIL\n"
    "and document the defect, not work around it."
)


def language_for(filename: str) -> Optional[Language]:
    """Infer the language scope from a file name's extension."""
    lower = filename.lower()
    for ext, language in LANGUAGE_BY_EXTENSION.items():
        if lower.endswith(ext):
            return language
    return None


def rules_for(language: Optional[Language]) -> List[ViolationRule]:
    """Rules whose scope matches ``language``."""
    return [rule for rule in RULES if rule.language == language]


def compiled(rule: ViolationRule) -> "re.Pattern":
    return _COMPILED[rule.id]


def is_read_only_receiver(receiver: str) -> bool:
    """True if the receiver is the direct result of a snapshot call.

    ``getComputedStyle(el)`` and ``el.cloneNode(true).`` qualify. Any
    index or member step after the call (``Array.from(...)[0]``,
    ``getComputedStyle(el).parentRule``) reaches back into live objects
    and does not.
    """
    chain = receiver.rstrip().rstrip(".?").rstrip()
    if not chain.endswith(")"):
        return False
    depth = 0
    for i in range(len(chain) - 1, -1, -1):
        if chain[i] == ")":
            depth += 1
        elif chain[i] == "(":
            depth -= 1
            if depth == 0:
                return bool(_SNAPSHOT_CALL.search(chain[:i]))
    return False
