"""Validator contract and the default pattern-based validator.

Rule bodies are deliberately shallow: a validator only needs to map
``(path, content)`` to an ordered list of :class:`ViolationRecord`. Anything
implementing :class:`Validator` can be plugged into the engine.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import PurePath
from typing import Protocol, runtime_checkable

from ..models import Severity, ViolationRecord


@runtime_checkable
class Validator(Protocol):
    """Anything that turns file content into violations.

    Implementations must be stateless (the engine calls them from several
    worker threads at once) and should return promptly; the engine enforces
    a per-file timeout.
    """

    def validate(self, path: str, content: bytes) -> list[ViolationRecord]: ...


@dataclass(frozen=True)
class PatternRule:
    """A single regex rule, applied line by line."""

    rule_id: str
    pattern: str
    severity: Severity
    message: str
    extensions: frozenset[str] = field(default_factory=frozenset)  # empty = all

    def applies_to(self, path: str) -> bool:
        return not self.extensions or PurePath(path).suffix.lower() in self.extensions


_PY = frozenset({".py"})
_JS = frozenset({".js", ".jsx", ".ts", ".tsx"})

DEFAULT_RULES: tuple[PatternRule, ...] = (
    PatternRule(
        rule_id="security/hardcoded-secret",
        pattern=r"""(?i)\b(password|passwd|secret|api[_-]?key|token)\b\s*[:=]\s*['"][^'"]{4,}['"]""",
        severity=Severity.CRITICAL,
        message="Hard-coded credential",
    ),
    PatternRule(
        rule_id="security/eval",
        pattern=r"\beval\s*\(",
        severity=Severity.CRITICAL,
        message="Use of eval()",
        extensions=_PY | _JS,
    ),
    PatternRule(
        rule_id="python/bare-except",
        pattern=r"^\s*except\s*:",
        severity=Severity.WARNING,
        message="Bare except clause",
        extensions=_PY,
    ),
    PatternRule(
        rule_id="python/debug-print",
        pattern=r"^\s*print\(",
        severity=Severity.WARNING,
        message="Debug print statement",
        extensions=_PY,
    ),
    PatternRule(
        rule_id="js/console-log",
        pattern=r"\bconsole\.log\(",
        severity=Severity.WARNING,
        message="console.log left in source",
        extensions=_JS,
    ),
    PatternRule(
        rule_id="js/var-declaration",
        pattern=r"^\s*var\s+\w+",
        severity=Severity.WARNING,
        message="Use let/const instead of var",
        extensions=_JS,
    ),
    PatternRule(
        rule_id="style/todo-marker",
        pattern=r"\b(TODO|FIXME|XXX)\b",
        severity=Severity.WARNING,
        message="Unresolved TODO/FIXME marker",
    ),
)


class PatternValidator:
    """Regex rule validator. Reports one violation per matching line per rule."""

    def __init__(self, rules: tuple[PatternRule, ...] = DEFAULT_RULES, encoding: str = "utf-8"):
        self.rules = tuple(rules)
        self.encoding = encoding
        self._compiled = [(rule, re.compile(rule.pattern)) for rule in self.rules]

    def validate(self, path: str, content: bytes) -> list[ViolationRecord]:
        text = content.decode(self.encoding, errors="replace")
        applicable = [(rule, rx) for rule, rx in self._compiled if rule.applies_to(path)]
        if not applicable:
            return []

        violations: list[ViolationRecord] = []
        for line_no, line in enumerate(text.splitlines(), start=1):
            for rule, rx in applicable:
                if rx.search(line):
                    violations.append(
                        ViolationRecord(
                            file_path=path,
                            rule_id=rule.rule_id,
                            severity=rule.severity,
                            message=rule.message,
                            line_number=line_no,
                        )
                    )
        return violations
