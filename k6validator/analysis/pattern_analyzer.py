"""Security pattern scanning over raw script text.

Works on text rather than the syntax tree so it also sees patterns hidden
in string literals, comments, and fragments that would not parse.
"""

from __future__ import annotations

import logging

from .models import AnalysisVerdict, PatternViolation
from .patterns import DEFAULT_REGISTRY, PatternCategory, PatternRegistry

logger = logging.getLogger(__name__)


class PatternAnalyzer:
    """Runs every registry pattern against a script.

    Each pattern contributes at most its leftmost match. Within one category
    identical matched text is reported once.
    """

    def __init__(self, registry: PatternRegistry = DEFAULT_REGISTRY) -> None:
        self.registry = registry

    def find_violations(self, script: str) -> list[PatternViolation]:
        """Return deduplicated violations in category, then pattern, order."""
        violations: list[PatternViolation] = []

        for category, category_patterns in self.registry:
            seen: set[str] = set()
            for index, pattern in enumerate(category_patterns):
                match = pattern.search(script)
                if match is None:
                    continue
                matched_text = match.group(0)
                if matched_text in seen:
                    continue
                seen.add(matched_text)
                violations.append(
                    PatternViolation(
                        category=category.value,
                        pattern_index=index,
                        matched_text=matched_text,
                        offset=match.start(),
                    )
                )

        return violations

    def analyze_script(self, script: str) -> AnalysisVerdict:
        """Scan *script* and return a verdict with one error per violation."""
        result = AnalysisVerdict()

        try:
            for violation in self.find_violations(script):
                description = PatternCategory(violation.category).description
                result.add_error(f"{description} (found: {violation.matched_text})")
                logger.warning(
                    "Security pattern detected",
                    extra={"event": "pattern_violation", "category": violation.category},
                )
        except Exception as e:
            logger.exception("Pattern analysis failed", extra={"analyzer": "pattern"})
            result.add_error(str(e) or "Security pattern analysis failed")

        return result
