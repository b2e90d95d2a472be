"""Tests for the default pattern validator."""

from compliance_pulse.models import Severity
from compliance_pulse.validation import DEFAULT_RULES, PatternRule, PatternValidator, Validator


class TestPatternValidator:
    def test_satisfies_protocol(self):
        assert isinstance(PatternValidator(), Validator)

    def test_clean_file(self):
        assert PatternValidator().validate("a.py", b"def f():\n    return 1\n") == []

    def test_python_debug_print_line_number(self):
        violations = PatternValidator().validate("a.py", b"x = 1\nprint(x)\n")
        assert [(v.rule_id, v.line_number) for v in violations] == [("python/debug-print", 2)]
        assert violations[0].severity is Severity.WARNING
        assert violations[0].file_path == "a.py"

    def test_extension_scoping(self):
        # print() is only a finding in Python, console.log only in JS
        assert PatternValidator().validate("a.js", b"print(x)\n") == []
        rule_ids = [v.rule_id for v in PatternValidator().validate("a.js", b"console.log(x)\n")]
        assert rule_ids == ["js/console-log"]

    def test_secret_is_critical_everywhere(self):
        violations = PatternValidator().validate("deploy.yml", b'password: "hunter22"\n')
        assert len(violations) == 1
        assert violations[0].severity is Severity.CRITICAL

    def test_multiple_rules_one_line(self):
        violations = PatternValidator().validate("a.py", b"print(eval(x))  # TODO\n")
        assert {v.rule_id for v in violations} == {
            "python/debug-print",
            "security/eval",
            "style/todo-marker",
        }

    def test_invalid_utf8_does_not_raise(self):
        assert PatternValidator().validate("a.py", b"\xff\xfe print\n") == []

    def test_custom_rules(self):
        rule = PatternRule(
            rule_id="custom/no-foo",
            pattern=r"foo",
            severity=Severity.CRITICAL,
            message="foo",
            extensions=frozenset({".txt"}),
        )
        validator = PatternValidator(rules=(rule,))
        assert len(validator.validate("a.txt", b"foo\nbar\nfoo\n")) == 2
        assert validator.validate("a.py", b"foo\n") == []

    def test_default_rules_have_unique_ids(self):
        ids = [r.rule_id for r in DEFAULT_RULES]
        assert len(ids) == len(set(ids))
