import pytest

from cleanshare.detectors import classify
from cleanshare.patterns import PatternEngine, build_engine, patterns_from_regex
from cleanshare.types import CustomPattern, DetectionKind


def _rule(pid, pattern, **kw):
    return CustomPattern(id=pid, name=pid, pattern=pattern, **kw)


def test_first_matching_rule_wins():
    engine = PatternEngine(
        [
            _rule("a", r"^TICKET-\d+$", kind=DetectionKind.OTHER, confidence=0.7),
            _rule("b", r"^TICKET", kind=DetectionKind.API_KEY, confidence=0.9),
        ]
    )
    match = engine.match("TICKET-42")
    assert match.kind is DetectionKind.OTHER
    assert match.confidence == pytest.approx(0.7)


def test_invalid_rule_is_disabled_not_fatal():
    engine = PatternEngine([_rule("bad", r"([unclosed"), _rule("ok", r"^secret-\w+$")])
    assert engine.match("secret-sauce") is not None
    errors = engine.validate()
    assert len(errors) == 1
    assert errors[0].rule_id == "bad"
    assert "bad" in engine.warnings[0]


def test_case_sensitivity():
    engine = PatternEngine([_rule("cs", r"^ABC$", case_sensitive=True)])
    assert engine.match("ABC") is not None
    assert engine.match("abc") is None
    loose = PatternEngine([_rule("ci", r"^ABC$")])
    assert loose.match("abc") is not None


def test_build_engine_skips_malformed_dicts():
    engine = build_engine(
        [
            {"id": "x", "name": "x", "pattern": r"^x+$"},
            {"id": "no-pattern"},
            {"id": "y", "name": "y", "pattern": r"^y+$", "confidence": 3},
        ]
    )
    assert len(engine) == 1


def test_custom_rule_overrides_builtin_kind():
    engine = build_engine([_rule("mail", r"@corp\.example$", kind=DetectionKind.OTHER)])
    assert classify("bob@corp.example", engine).kind is DetectionKind.OTHER
    assert classify("bob@gmail.com", engine).kind is DetectionKind.EMAIL


def test_patterns_from_regex():
    rules = patterns_from_regex([r"^PRJ-\d+$", ""], prefix="legal")
    assert [r.id for r in rules] == ["legal-0"]
    assert rules[0].kind is DetectionKind.OTHER
