"""User-defined regex rules evaluated ahead of the built-in detectors.

Rules are kept in the order the user supplied them. Each one compiles lazily
on first use; a rule whose pattern does not compile is disabled with a single
warning and never aborts the batch.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Union

import regex as re

from .detectors import Match
from .errors import ValidationError
from .logging import get_logger
from .types import CustomPattern, DetectionKind

logger = get_logger(__name__)


class CompiledRule:
    """A custom pattern with its (lazily) compiled regex."""

    def __init__(self, definition: CustomPattern) -> None:
        self.definition = definition
        self._compiled: Optional[re.Pattern] = None
        self._error: Optional[ValidationError] = None

    @property
    def error(self) -> Optional[ValidationError]:
        return self._error

    def compile(self) -> Optional[re.Pattern]:
        """Compile on first use. Returns ``None`` if the rule is invalid."""
        if self._compiled is not None or self._error is not None:
            return self._compiled
        flags = 0 if self.definition.case_sensitive else re.IGNORECASE
        try:
            self._compiled = re.compile(self.definition.pattern, flags)
        except re.error as exc:
            self._error = ValidationError(
                f"Invalid custom pattern {self.definition.name!r}: {exc}",
                rule_id=self.definition.id,
            )
            logger.warning(
                "Skipping invalid custom pattern",
                extra={
                    "fields": {
                        "rule_id": self.definition.id,
                        "pattern": self.definition.pattern,
                        "error": str(exc),
                    }
                },
            )
        return self._compiled

    def match(self, text: str) -> Optional[Match]:
        compiled = self.compile()
        if compiled is None or compiled.search(text) is None:
            return None
        return Match(
            self.definition.kind,
            f"Custom pattern: {self.definition.name}",
            self.definition.confidence,
        )


class PatternEngine:
    """Ordered list of custom rules; the first matching rule wins."""

    def __init__(self, patterns: Iterable[CustomPattern] = ()) -> None:
        self.rules: List[CompiledRule] = [CompiledRule(p) for p in patterns]

    def __len__(self) -> int:
        return len(self.rules)

    def match(self, text: str) -> Optional[Match]:
        for rule in self.rules:
            found = rule.match(text)
            if found is not None:
                return found
        return None

    def validate(self) -> List[ValidationError]:
        """Compile every rule now and return the failures."""
        for rule in self.rules:
            rule.compile()
        return self.errors

    @property
    def errors(self) -> List[ValidationError]:
        return [r.error for r in self.rules if r.error is not None]

    @property
    def warnings(self) -> List[str]:
        return [str(e) for e in self.errors]


def patterns_from_regex(
    expressions: Sequence[str], prefix: str = "regex"
) -> List[CustomPattern]:
    """Wrap bare regex strings (legacy preset form) as ``OTHER`` rules."""
    return [
        CustomPattern(
            id=f"{prefix}-{i}",
            name=expr,
            pattern=expr,
            kind=DetectionKind.OTHER,
            confidence=0.8,
        )
        for i, expr in enumerate(expressions)
        if expr
    ]


def build_engine(
    patterns: Optional[Iterable[Union[CustomPattern, dict]]] = None,
) -> PatternEngine:
    """Build an engine from models or raw dicts; invalid dicts are skipped."""
    rules: List[CustomPattern] = []
    for item in patterns or ():
        if isinstance(item, CustomPattern):
            rules.append(item)
            continue
        try:
            rules.append(CustomPattern.model_validate(item))
        except ValueError as exc:
            logger.warning(
                "Skipping malformed custom pattern",
                extra={"fields": {"pattern": item, "error": str(exc)}},
            )
    return PatternEngine(rules)


__all__ = ["CompiledRule", "PatternEngine", "patterns_from_regex", "build_engine"]
